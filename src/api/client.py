"""Async REST client for the storefront API.

Every screen and store talks to the backend through a single StoreClient
owned by the session. Error responses are raised as ApiError carrying the
HTTP status, the server's ``message`` and, when present, a structured
``code`` field.
"""

from __future__ import annotations

from typing import Any, List, Optional

import httpx

from db.models import CartLine, Product, User, WishlistEntry
from utils.config import Settings
from utils.logger import get_logger

_logger = get_logger(__name__)

# Default timeout for API calls (seconds).
_DEFAULT_TIMEOUT = 10.0


class ApiError(Exception):
    """An HTTP error response (or a network failure, status 0) from the API."""

    def __init__(self, status_code: int, message: str, code: Optional[str] = None):
        super().__init__(message or f"HTTP {status_code}")
        self.status_code = status_code
        self.message = message
        self.code = code

    @property
    def is_unauthorized(self) -> bool:
        return self.status_code == 401

    @classmethod
    def from_response(cls, response: httpx.Response) -> "ApiError":
        message = ""
        code = None
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            message = str(body.get("message") or "")
            code = body.get("code")
        elif response.text:
            message = response.text.strip()
        return cls(response.status_code, message, code)

    def __repr__(self) -> str:
        return f"ApiError(status_code={self.status_code}, message={self.message!r}, code={self.code!r})"


class StoreClient:
    """Thin async wrapper over httpx.AsyncClient for the storefront endpoints."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = _DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url
        self._http = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "StoreClient":
        """Client for the configured API, or for the in-process backend when settings.local is set."""
        if settings.local:
            from api.backend import LOCAL_BASE_URL, LocalBackendTransport

            return cls(
                LOCAL_BASE_URL,
                timeout=settings.timeout,
                transport=LocalBackendTransport(address_file=settings.address_file),
            )
        return cls(settings.api_url, timeout=settings.timeout)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "StoreClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Optional[dict] = None,
    ) -> httpx.Response:
        """Send a request; raise ApiError for error statuses and network failures."""
        _logger.debug(f"{method} {path}")
        try:
            response = await self._http.request(method, path, json=json, params=params)
        except httpx.RequestError as exc:
            _logger.error(f"{method} {path} failed: {exc!r}")
            raise ApiError(0, f"Network error: {exc}") from exc
        if response.is_error:
            raise ApiError.from_response(response)
        return response

    # ---------------------------
    # Auth
    # ---------------------------

    async def get_user(self) -> Optional[User]:
        """The logged-in user, or None when the session is not authenticated."""
        try:
            response = await self.request("GET", "/api/auth/user")
        except ApiError as exc:
            if exc.is_unauthorized:
                return None
            raise
        return User.from_json(response.json())

    async def login(self, email: str, password: str) -> User:
        response = await self.request(
            "POST", "/api/auth/login", json={"email": email, "password": password}
        )
        return User.from_json(response.json()["user"])

    async def register(
        self, email: str, password: str, first_name: str = "", last_name: str = ""
    ) -> User:
        response = await self.request(
            "POST",
            "/api/auth/register",
            json={
                "email": email,
                "password": password,
                "firstName": first_name,
                "lastName": last_name,
            },
        )
        return User.from_json(response.json()["user"])

    async def logout(self) -> None:
        await self.request("POST", "/api/auth/logout")

    # ---------------------------
    # Catalog
    # ---------------------------

    async def list_products(
        self,
        search: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Product]:
        params = {}
        if search:
            params["search"] = search
        if limit is not None:
            params["limit"] = limit
            params["offset"] = offset or 0
        response = await self.request("GET", "/api/products", params=params)
        return [Product.from_json(p) for p in response.json()]

    async def get_product(self, product_id: str) -> Optional[Product]:
        try:
            response = await self.request("GET", f"/api/products/{product_id}")
        except ApiError as exc:
            if exc.status_code == 404:
                return None
            raise
        return Product.from_json(response.json())

    # ---------------------------
    # Cart
    # ---------------------------

    async def list_cart(self) -> List[CartLine]:
        response = await self.request("GET", "/api/cart")
        return [CartLine.from_json(item) for item in response.json()]

    async def add_to_cart(self, product_id: str, quantity: int = 1) -> None:
        await self.request(
            "POST", "/api/cart", json={"productId": product_id, "quantity": quantity}
        )

    async def update_cart_item(self, product_id: str, quantity: int) -> None:
        await self.request(
            "PUT", f"/api/cart/{product_id}", json={"quantity": quantity}
        )

    async def remove_from_cart(self, product_id: str) -> None:
        await self.request("DELETE", f"/api/cart/{product_id}")

    async def clear_cart(self) -> None:
        await self.request("DELETE", "/api/cart")

    # ---------------------------
    # Wishlist
    # ---------------------------

    async def list_wishlist(self) -> List[WishlistEntry]:
        response = await self.request("GET", "/api/wishlist")
        return [WishlistEntry.from_json(item) for item in response.json()]

    async def add_to_wishlist(self, product_id: str) -> None:
        await self.request("POST", "/api/wishlist", json={"productId": product_id})

    async def remove_from_wishlist(self, product_id: str) -> None:
        await self.request("DELETE", f"/api/wishlist/{product_id}")

    async def check_wishlist(self, product_id: str) -> bool:
        response = await self.request("GET", f"/api/wishlist/check/{product_id}")
        return bool(response.json().get("isInWishlist"))

    # ---------------------------
    # Static assets
    # ---------------------------

    async def fetch_address_data(self, path: str = "/addressData.json") -> str:
        """Raw text of the location table; decoding is left to the resolver."""
        response = await self.request("GET", path)
        return response.text
