"""In-memory storefront API for store and session tests, served through httpx.MockTransport."""

import dataclasses
import json
import os
import sys
from typing import Any, Dict, List, Optional, Tuple

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
src_path = os.path.join(ROOT, "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

import httpx  # noqa: E402

from api.client import StoreClient  # noqa: E402
from db.models import User  # noqa: E402
from utils.config import load_settings  # noqa: E402
from utils.state import SessionContext  # noqa: E402

BASE_URL = "http://giftshop.test"

ASHA = User(
    id="640000000000000000000001",
    user_id="GS000001",
    email="asha@example.com",
    first_name="Asha",
    last_name="Menon",
)


def product(pid: str, name: str, price: str, stock: int = 10, **extra) -> Dict[str, Any]:
    data = {
        "_id": pid,
        "name": name,
        "price": price,
        "stock": stock,
        "minOrderQuantity": 1,
        "hasDeliveryCharge": False,
        "deliveryCharge": "0",
    }
    data.update(extra)
    return data


class FakeStoreApi:
    """
    Just enough of the REST contract to drive the stores.

    ``fail[(method, path)] = (status, body)`` makes that request answer with
    an error instead.
    """

    def __init__(self) -> None:
        self.cart: List[Dict[str, Any]] = []
        self.wishlist: List[Dict[str, Any]] = []
        self.products: Dict[str, Dict[str, Any]] = {}
        self.fail: Dict[Tuple[str, str], Tuple[int, Any]] = {}
        self.calls: List[Tuple[str, str]] = []
        self.address_payload: Optional[str] = None
        self.user: Optional[User] = ASHA

    def count(self, method: str, path: str) -> int:
        return self.calls.count((method, path))

    def add_product(self, data: Dict[str, Any]) -> None:
        self.products[data["_id"]] = data

    def put_line(self, pid: str, quantity: int) -> None:
        self.cart.append(
            {
                "id": f"line-{pid}",
                "productId": pid,
                "quantity": quantity,
                "product": self.products[pid],
            }
        )

    def handler(self, request: httpx.Request) -> httpx.Response:
        method, path = request.method, request.url.path
        self.calls.append((method, path))

        if (method, path) in self.fail:
            status, body = self.fail[(method, path)]
            if isinstance(body, str):
                return httpx.Response(status, text=body)
            return httpx.Response(status, json=body)

        body = json.loads(request.content) if request.content else {}

        if path == "/api/auth/login" and method == "POST":
            return httpx.Response(200, json={"user": ASHA.to_json()})
        if path == "/api/auth/logout" and method == "POST":
            return httpx.Response(200, json={"message": "Logged out successfully"})
        if path == "/api/auth/user":
            if self.user is None:
                return httpx.Response(401, json={"message": "Not authenticated"})
            return httpx.Response(200, json=self.user.to_json())

        if path == "/api/cart":
            if method == "GET":
                return httpx.Response(200, json=self.cart)
            if method == "POST":
                self.put_line(body["productId"], body.get("quantity", 1))
                return httpx.Response(200, json=self.cart[-1])
            if method == "DELETE":
                self.cart.clear()
                return httpx.Response(200, json={"message": "Cart cleared"})
        if path.startswith("/api/cart/"):
            pid = path.rsplit("/", 1)[-1]
            if method == "PUT":
                for line in self.cart:
                    if line["productId"] == pid:
                        line["quantity"] = body["quantity"]
                return httpx.Response(200, json={})
            if method == "DELETE":
                self.cart = [l for l in self.cart if l["productId"] != pid]
                return httpx.Response(200, json={"message": "Item removed from cart"})

        if path == "/api/wishlist":
            if method == "GET":
                return httpx.Response(200, json=self.wishlist)
            if method == "POST":
                pid = body["productId"]
                self.wishlist.append(
                    {
                        "_id": f"wish-{pid}",
                        "userId": ASHA.id,
                        "productId": pid,
                        "product": self.products.get(pid),
                    }
                )
                return httpx.Response(200, json=self.wishlist[-1])
        if path.startswith("/api/wishlist/check/"):
            pid = path.rsplit("/", 1)[-1]
            present = any(w["productId"] == pid for w in self.wishlist)
            return httpx.Response(200, json={"isInWishlist": present})
        if path.startswith("/api/wishlist/") and method == "DELETE":
            pid = path.rsplit("/", 1)[-1]
            self.wishlist = [w for w in self.wishlist if w["productId"] != pid]
            return httpx.Response(200, json={"message": "Item removed from wishlist"})

        if path == "/addressData.json" and self.address_payload is not None:
            return httpx.Response(200, text=self.address_payload)

        return httpx.Response(404, json={"message": "Not found"})


def make_session(
    api: FakeStoreApi, redirects: List[str], logged_in: bool = True, handler=None
):
    """SessionContext over the fake API with an immediate login redirect."""
    transport = httpx.MockTransport(handler or api.handler)
    client = StoreClient(BASE_URL, transport=transport)
    settings = dataclasses.replace(load_settings(), redirect_delay=0.0)
    session = SessionContext(client, settings, on_redirect=redirects.append)
    if logged_in:
        session.user = ASHA
    return session
