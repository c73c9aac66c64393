from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ROOT_DIR = Path(__file__).resolve().parents[2]
load_dotenv(dotenv_path=ROOT_DIR / ".env")


def _get_env(*keys: str, default: str | None = None) -> str | None:
    for k in keys:
        v = os.getenv(k)
        if v is not None and str(v).strip() != "":
            return v.strip()
    return default


def _get_float(*keys: str, default: float) -> float:
    v = _get_env(*keys, default=None)
    if v is None:
        return default
    return float(v)


def _get_bool(*keys: str, default: bool = False) -> bool:
    v = _get_env(*keys, default=None)
    if v is None:
        return default
    return v.lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    api_url: str
    address_data_path: str
    timeout: float
    redirect_delay: float
    local: bool
    db_path: str
    address_file: str
    debug: bool


def load_settings() -> Settings:
    """Build a Settings object from the environment (and .env, if present)."""
    return Settings(
        api_url=_get_env("GIFTSHOP_API_URL", default="http://localhost:5000") or "",
        address_data_path=_get_env(
            "GIFTSHOP_ADDRESS_DATA_PATH", default="/addressData.json"
        )
        or "/addressData.json",
        timeout=_get_float("GIFTSHOP_TIMEOUT", default=10.0),
        redirect_delay=_get_float("GIFTSHOP_REDIRECT_DELAY", default=0.5),
        local=_get_bool("GIFTSHOP_LOCAL"),
        db_path=_get_env(
            "GIFTSHOP_DB_PATH", default=str(ROOT_DIR / "data" / "db.sqlite")
        )
        or "",
        address_file=_get_env(
            "GIFTSHOP_ADDRESS_FILE",
            default=str(ROOT_DIR / "data" / "addressData.json"),
        )
        or "",
        debug=_get_bool("DEBUG"),
    )


settings = load_settings()
