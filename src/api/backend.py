"""In-process storefront backend mounted as an httpx transport.

Serves the same REST contract as the remote storefront API out of the local
SQLite database, so the client can run without a server. Session identity
travels in a ``sid`` cookie.
"""

from __future__ import annotations

import json
import os
import re
from datetime import datetime
from http.cookies import SimpleCookie
from typing import Any, Awaitable, Callable, List, Optional, Tuple

import httpx

import db.crud as crud
from db.crud import BackendError
from db.models import User
from utils.logger import get_logger

_logger = get_logger(__name__)

LOCAL_BASE_URL = "http://giftshop.local"
SESSION_COOKIE = "sid"

Handler = Callable[..., Awaitable[httpx.Response]]


def _json(payload: Any, status_code: int = 200, headers: Optional[dict] = None) -> httpx.Response:
    return httpx.Response(status_code, json=payload, headers=headers)


def _error(status_code: int, message: str, code: Optional[str] = None) -> httpx.Response:
    body = {"message": message}
    if code:
        body["code"] = code
    return _json(body, status_code)


class LocalBackendTransport(httpx.AsyncBaseTransport):
    """
    Routes requests to db.crud the way the storefront server routes them.

    Auth-protected routes answer 401 {"message": "Unauthorized"} without a
    live session. Refused operations raise BackendError, which becomes a JSON
    error body with ``message`` and ``code``.
    """

    def __init__(self, address_file: Optional[str] = None) -> None:
        self.address_file = address_file
        self._routes: List[Tuple[str, re.Pattern, bool, Handler]] = []

        self._add("GET", r"/api/auth/user", self._auth_user, auth=False)
        self._add("POST", r"/api/auth/login", self._auth_login, auth=False)
        self._add("POST", r"/api/auth/register", self._auth_register, auth=False)
        self._add("POST", r"/api/auth/logout", self._auth_logout, auth=False)

        self._add("GET", r"/api/products", self._products_list, auth=False)
        self._add("GET", r"/api/products/(?P<product_id>[^/]+)", self._products_get, auth=False)

        self._add("GET", r"/api/cart", self._cart_list)
        self._add("POST", r"/api/cart", self._cart_add)
        self._add("DELETE", r"/api/cart", self._cart_clear)
        self._add("PUT", r"/api/cart/(?P<product_id>[^/]+)", self._cart_update)
        self._add("DELETE", r"/api/cart/(?P<product_id>[^/]+)", self._cart_remove)

        self._add("GET", r"/api/wishlist", self._wishlist_list)
        self._add("POST", r"/api/wishlist", self._wishlist_add)
        self._add("GET", r"/api/wishlist/check/(?P<product_id>[^/]+)", self._wishlist_check)
        self._add("DELETE", r"/api/wishlist/(?P<product_id>[^/]+)", self._wishlist_remove)

        self._add("GET", r"/addressData\.json", self._address_data, auth=False)

    def _add(self, method: str, pattern: str, handler: Handler, auth: bool = True) -> None:
        self._routes.append((method, re.compile(f"^{pattern}$"), auth, handler))

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        await request.aread()
        method, path = request.method, request.url.path
        _logger.debug(f"local backend: {method} {path}")

        path_matched = False
        for route_method, pattern, needs_auth, handler in self._routes:
            match = pattern.match(path)
            if not match:
                continue
            path_matched = True
            if route_method != method:
                continue

            try:
                user = await crud.session_user(_session_id(request))
                if needs_auth and user is None:
                    return _error(401, "Unauthorized")
                return await handler(request, user, **match.groupdict())
            except BackendError as exc:
                _logger.debug(f"local backend refused {method} {path}: {exc.message}")
                return _error(exc.status_code, exc.message, exc.code)

        if path_matched:
            return _error(405, "Method not allowed")
        return _error(404, "Not found")

    # ---------------------------
    # Auth
    # ---------------------------

    async def _auth_user(self, request, user: Optional[User]) -> httpx.Response:
        if user is None:
            return _error(401, "Not authenticated")
        return _json(user.to_json())

    async def _auth_login(self, request, user: Optional[User]) -> httpx.Response:
        body = _body(request)
        found = await crud.login(str(body.get("email") or ""), str(body.get("password") or ""))
        if found is None:
            return _error(401, "Invalid credentials")
        sid = await crud.start_session(found.id, datetime.now())
        return _json(
            {"message": "Login successful", "user": found.to_json()},
            headers={"set-cookie": f"{SESSION_COOKIE}={sid}; Path=/; HttpOnly"},
        )

    async def _auth_register(self, request, user: Optional[User]) -> httpx.Response:
        body = _body(request)
        created = await crud.register_user(
            str(body.get("email") or ""),
            str(body.get("password") or ""),
            str(body.get("firstName") or ""),
            str(body.get("lastName") or ""),
        )
        # registration logs the new user in
        sid = await crud.start_session(created.id, datetime.now())
        return _json(
            {"message": "Registration successful", "user": created.to_json()},
            headers={"set-cookie": f"{SESSION_COOKIE}={sid}; Path=/; HttpOnly"},
        )

    async def _auth_logout(self, request, user: Optional[User]) -> httpx.Response:
        sid = _session_id(request)
        if sid:
            await crud.end_session(sid, datetime.now())
        return _json(
            {"message": "Logged out successfully"},
            headers={"set-cookie": f"{SESSION_COOKIE}=; Path=/; Max-Age=0"},
        )

    # ---------------------------
    # Catalog
    # ---------------------------

    async def _products_list(self, request, user: Optional[User]) -> httpx.Response:
        params = request.url.params
        limit = params.get("limit")
        offset = params.get("offset")
        products = await crud.list_products(
            search=params.get("search"),
            limit=int(limit) if limit and limit.isdigit() else None,
            offset=int(offset) if offset and offset.isdigit() else None,
        )
        return _json([p.to_json() for p in products])

    async def _products_get(self, request, user: Optional[User], product_id: str) -> httpx.Response:
        product = await crud.get_product(product_id)
        if product is None:
            return _error(404, "Product not found", "not_found")
        return _json(product.to_json())

    # ---------------------------
    # Cart
    # ---------------------------

    async def _cart_list(self, request, user: User) -> httpx.Response:
        lines = await crud.list_cart(user.id)
        return _json([line.to_json(user.id) for line in lines])

    async def _cart_add(self, request, user: User) -> httpx.Response:
        body = _body(request)
        line = await crud.add_to_cart(
            user.id, body.get("productId"), _quantity(body.get("quantity"), default=1)
        )
        return _json(line.to_json(user.id))

    async def _cart_update(self, request, user: User, product_id: str) -> httpx.Response:
        body = _body(request)
        line = await crud.update_cart_item(
            user.id, product_id, _quantity(body.get("quantity"), default=0)
        )
        return _json(line.to_json(user.id))

    async def _cart_remove(self, request, user: User, product_id: str) -> httpx.Response:
        await crud.remove_from_cart(user.id, product_id)
        return _json({"message": "Item removed from cart"})

    async def _cart_clear(self, request, user: User) -> httpx.Response:
        await crud.clear_cart(user.id)
        return _json({"message": "Cart cleared"})

    # ---------------------------
    # Wishlist
    # ---------------------------

    async def _wishlist_list(self, request, user: User) -> httpx.Response:
        entries = await crud.list_wishlist(user.id)
        return _json([e.to_json() for e in entries])

    async def _wishlist_add(self, request, user: User) -> httpx.Response:
        body = _body(request)
        entry = await crud.add_to_wishlist(user.id, body.get("productId"))
        return _json(entry.to_json())

    async def _wishlist_remove(self, request, user: User, product_id: str) -> httpx.Response:
        await crud.remove_from_wishlist(user.id, product_id)
        return _json({"message": "Item removed from wishlist"})

    async def _wishlist_check(self, request, user: User, product_id: str) -> httpx.Response:
        return _json({"isInWishlist": await crud.is_in_wishlist(user.id, product_id)})

    # ---------------------------
    # Static assets
    # ---------------------------

    async def _address_data(self, request, user: Optional[User]) -> httpx.Response:
        if not self.address_file or not os.path.exists(self.address_file):
            return _error(404, "Not found")
        with open(self.address_file, "rb") as f:
            content = f.read()
        return httpx.Response(
            200, content=content, headers={"content-type": "application/json"}
        )


def _session_id(request: httpx.Request) -> Optional[str]:
    header = request.headers.get("cookie")
    if not header:
        return None
    cookie = SimpleCookie()
    cookie.load(header)
    morsel = cookie.get(SESSION_COOKIE)
    return morsel.value if morsel and morsel.value else None


def _body(request: httpx.Request) -> dict:
    if not request.content:
        return {}
    try:
        body = json.loads(request.content)
    except ValueError:
        raise BackendError(400, "Invalid JSON body", code="validation")
    if not isinstance(body, dict):
        raise BackendError(400, "Invalid JSON body", code="validation")
    return body


def _quantity(value, default: int) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise BackendError(400, "Quantity must be a whole number", code="validation")
