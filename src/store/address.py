"""
Cascading location lookup (state -> district -> area -> pincode).

The table is the static ``addressData.json`` payload:

    {"<state key>": {"statename": ..., "districts": [
        {"districtname": ..., "areas": [{"areaname": ..., "pincode": ...}, ...]},
        ...]}, ...}

``pincode`` on an area is optional. Lookups are pure, case-insensitive and
never raise; an unknown or unselected ancestor yields an empty sequence.
Loading reports one of three states (loading, error with a message, ready)
instead of raising.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from api.client import ApiError, StoreClient
from utils.logger import get_logger

_logger = get_logger(__name__)

FIELDS = ("state", "district", "area", "pincode")
_PINCODE_RE = re.compile(r"^\d{6}$")
_PHONE_RE = re.compile(r"^\+?\d{10,13}$")


class LoadState(str, Enum):
    LOADING = "loading"
    ERROR = "error"
    READY = "ready"


@dataclass(frozen=True)
class AddressSelection:
    state: str = ""
    district: str = ""
    area: str = ""
    pincode: str = ""


@dataclass(frozen=True)
class ShippingAddress:
    selection: AddressSelection
    recipient_name: str = ""
    phone_number: str = ""
    address_line1: str = ""
    address_line2: str = ""
    landmark: str = ""

    def summary_lines(self) -> List[str]:
        s = self.selection
        lines = [self.recipient_name, self.address_line1]
        if self.address_line2:
            lines.append(self.address_line2)
        if self.landmark:
            lines.append(f"Near {self.landmark}")
        lines.append(f"{s.area}, {s.district}")
        lines.append(f"{s.state} - {s.pincode}")
        lines.append(f"Phone: {self.phone_number}")
        return lines


@dataclass(frozen=True)
class Area:
    name: str
    pincode: Optional[str] = None


@dataclass(frozen=True)
class District:
    name: str
    areas: Tuple[Area, ...]


@dataclass(frozen=True)
class StateEntry:
    key: str
    name: str
    districts: Tuple[District, ...]


@dataclass(frozen=True)
class AreaMatch:
    state: str
    district: str
    area: str
    pincode: Optional[str] = None


@dataclass(frozen=True)
class AddressValidation:
    is_valid: bool
    errors: Tuple[str, ...] = ()


def _parse_pincode(value: Any) -> Optional[str]:
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip()
    return text if _PINCODE_RE.match(text) else None


def parse_location_table(payload: Any) -> Tuple[StateEntry, ...]:
    """Validate a decoded payload and turn it into StateEntry records; ValueError if malformed."""
    if not isinstance(payload, dict):
        raise ValueError("Address data must be a JSON object keyed by state")
    if not payload:
        raise ValueError("No address data available")

    states: List[StateEntry] = []
    for key, raw_state in payload.items():
        if not isinstance(raw_state, dict) or not isinstance(
            raw_state.get("statename"), str
        ):
            raise ValueError(f"State entry {key!r} has no statename")
        state_name = raw_state["statename"]
        raw_districts = raw_state.get("districts") or []
        if not isinstance(raw_districts, list):
            raise ValueError(f"State {state_name!r} has malformed districts")

        districts: List[District] = []
        for raw_district in raw_districts:
            if not isinstance(raw_district, dict) or not isinstance(
                raw_district.get("districtname"), str
            ):
                raise ValueError(
                    f"State {state_name!r} has a district without districtname"
                )
            raw_areas = raw_district.get("areas") or []
            if not isinstance(raw_areas, list):
                raise ValueError(
                    f"District {raw_district['districtname']!r} has malformed areas"
                )
            # area rows without a usable name are skipped
            areas = tuple(
                Area(a["areaname"], _parse_pincode(a.get("pincode")))
                for a in raw_areas
                if isinstance(a, dict) and isinstance(a.get("areaname"), str)
            )
            districts.append(District(raw_district["districtname"], areas))

        states.append(StateEntry(str(key), state_name, tuple(districts)))
    return tuple(states)


def _same(a: str, b: str) -> bool:
    return a.casefold() == b.casefold()


class AddressResolver:
    """Read-only view over a location table plus the cascade-reset rule."""

    def __init__(self) -> None:
        self._states: Tuple[StateEntry, ...] = ()
        self.status: LoadState = LoadState.LOADING
        self.error: Optional[str] = None

    @property
    def is_ready(self) -> bool:
        return self.status is LoadState.READY

    # ---------------------------
    # Loading
    # ---------------------------

    def load(self, payload: Any) -> bool:
        """Install a decoded table. Returns False (and enters the error state) if it is malformed."""
        try:
            states = parse_location_table(payload)
        except ValueError as exc:
            return self._fail(str(exc))
        self._states = states
        self.status = LoadState.READY
        self.error = None
        _logger.debug(f"Address data loaded: {len(states)} states")
        return True

    def load_json(self, text: Optional[str]) -> bool:
        if not text or not text.strip():
            return self._fail("Address data is empty")
        try:
            payload = json.loads(text)
        except ValueError as exc:
            return self._fail(f"Address data is not valid JSON: {exc}")
        return self.load(payload)

    async def load_from(
        self, client: StoreClient, path: str = "/addressData.json"
    ) -> bool:
        """Fetch and install the table; errors end in LoadState.ERROR, never an exception."""
        self.status = LoadState.LOADING
        self.error = None
        try:
            text = await client.fetch_address_data(path)
        except ApiError as exc:
            if exc.status_code:
                return self._fail(f"HTTP error! status: {exc.status_code}")
            return self._fail(exc.message or "Failed to load address data")
        return self.load_json(text)

    def _fail(self, message: str) -> bool:
        self._states = ()
        self.status = LoadState.ERROR
        self.error = message
        _logger.error(f"Error loading address data: {message}")
        return False

    # ---------------------------
    # Lookups
    # ---------------------------

    def _find_state(self, state: str) -> Optional[StateEntry]:
        if not state:
            return None
        for entry in self._states:
            if _same(entry.name, state):
                return entry
        return None

    def _find_district(self, state: str, district: str) -> Optional[District]:
        entry = self._find_state(state)
        if entry is None or not district:
            return None
        for d in entry.districts:
            if _same(d.name, district):
                return d
        return None

    def _find_area(self, state: str, district: str, area: str) -> Optional[Area]:
        d = self._find_district(state, district)
        if d is None or not area:
            return None
        for a in d.areas:
            if _same(a.name, area):
                return a
        return None

    def list_states(self) -> List[str]:
        return [entry.name for entry in self._states]

    def list_districts(self, state: str) -> List[str]:
        entry = self._find_state(state)
        if entry is None:
            return []
        return [d.name for d in entry.districts]

    def list_areas(self, state: str, district: str) -> List[str]:
        d = self._find_district(state, district)
        if d is None:
            return []
        return [a.name for a in d.areas]

    def pincode_for(self, state: str, district: str, area: str) -> Optional[str]:
        a = self._find_area(state, district, area)
        return a.pincode if a else None

    def search_areas(self, query: str, limit: int = 20) -> List[AreaMatch]:
        """Areas whose name contains query (case-insensitive), in table order."""
        needle = (query or "").strip().casefold()
        if not needle or limit <= 0:
            return []
        matches: List[AreaMatch] = []
        for entry in self._states:
            for d in entry.districts:
                for a in d.areas:
                    if needle in a.name.casefold():
                        matches.append(AreaMatch(entry.name, d.name, a.name, a.pincode))
                        if len(matches) >= limit:
                            return matches
        return matches

    def search_pincode(self, pincode: str) -> List[AreaMatch]:
        """Every area carrying exactly this pincode."""
        wanted = _parse_pincode(pincode)
        if wanted is None:
            return []
        return [
            AreaMatch(entry.name, d.name, a.name, a.pincode)
            for entry in self._states
            for d in entry.districts
            for a in d.areas
            if a.pincode == wanted
        ]

    def statistics(self) -> Dict[str, int]:
        all_areas = [
            a for entry in self._states for d in entry.districts for a in d.areas
        ]
        return {
            "states": len(self._states),
            "districts": sum(len(entry.districts) for entry in self._states),
            "areas": len(all_areas),
            "pincodes": len({a.pincode for a in all_areas if a.pincode}),
        }

    # ---------------------------
    # Selection
    # ---------------------------

    @staticmethod
    def apply_field_change(
        current: AddressSelection, field: str, value: str
    ) -> AddressSelection:
        """
        Set one field and clear every field below it.

        state clears district, area and pincode; district clears area and
        pincode; area clears pincode; pincode clears nothing.
        """
        if field not in FIELDS:
            raise ValueError(f"Unknown address field: {field!r}")
        cleared = {name: "" for name in FIELDS[FIELDS.index(field) + 1 :]}
        return replace(current, **{field: value or ""}, **cleared)

    @classmethod
    def selection_for(cls, match: AreaMatch) -> AddressSelection:
        """Selection for a search hit, applied field by field through the cascade."""
        selection = AddressSelection()
        for field in FIELDS:
            value = getattr(match, field) or ""
            selection = cls.apply_field_change(selection, field, value)
        return selection

    def validate(self, selection: AddressSelection) -> AddressValidation:
        if self.status is not LoadState.READY:
            return AddressValidation(False, ("Address data not loaded yet",))

        errors: List[str] = []
        state = self._find_state(selection.state)
        district = self._find_district(selection.state, selection.district)
        area = self._find_area(selection.state, selection.district, selection.area)

        if not selection.state:
            errors.append("State is required")
        elif state is None:
            errors.append(f"Unknown state: {selection.state}")

        if not selection.district:
            errors.append("District is required")
        elif state is not None and district is None:
            errors.append(f"Unknown district: {selection.district}")

        if not selection.area:
            errors.append("Area is required")
        elif district is not None and area is None:
            errors.append(f"Unknown area: {selection.area}")

        if not _PINCODE_RE.match(selection.pincode or ""):
            errors.append("Pincode must be exactly 6 digits")
        elif area is not None and area.pincode and area.pincode != selection.pincode:
            errors.append(
                f'Pincode {selection.pincode} does not match the area "{area.name}". '
                f"Expected pincode: {area.pincode}"
            )

        return AddressValidation(not errors, tuple(errors))

    def validate_shipping(self, address: ShippingAddress) -> AddressValidation:
        """Location checks from validate() plus the contact fields of the form."""
        errors: List[str] = []
        if not address.recipient_name.strip():
            errors.append("Recipient name is required")
        phone = re.sub(r"[\s-]", "", address.phone_number)
        if not _PHONE_RE.match(phone):
            errors.append("Valid phone number is required")
        if not address.address_line1.strip():
            errors.append("Address line 1 is required")
        errors.extend(self.validate(address.selection).errors)
        return AddressValidation(not errors, tuple(errors))
