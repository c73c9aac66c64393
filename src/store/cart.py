from __future__ import annotations

from decimal import Decimal
from typing import List, Optional

from db.models import CartLine
from store.notices import MutationResult, Notice, Operation
from store.synced import SyncedStore
from utils.pure import parse_price


class CartStore(SyncedStore[CartLine]):
    """
    Synchronized cache of the server-held cart.

    Totals are derived from the cached lines on every read. Prices stay
    strings on the wire and are parsed into Decimal here, so sums are exact.
    """

    name = "cart"

    async def _fetch(self) -> List[CartLine]:
        return await self._session.client.list_cart()

    # ---------------------------
    # Mutations
    # ---------------------------

    async def add_item(self, product_id: str, quantity: int = 1) -> MutationResult:
        return await self._mutate(
            Operation.CART_ADD,
            lambda: self._session.client.add_to_cart(product_id, quantity),
        )

    async def update_quantity(self, product_id: str, quantity: int) -> MutationResult:
        return await self._mutate(
            Operation.CART_UPDATE,
            lambda: self._session.client.update_cart_item(product_id, quantity),
        )

    async def remove_item(self, product_id: str) -> MutationResult:
        return await self._mutate(
            Operation.CART_REMOVE,
            lambda: self._session.client.remove_from_cart(product_id),
        )

    async def clear_cart(self) -> MutationResult:
        return await self._mutate(
            Operation.CART_CLEAR, lambda: self._session.client.clear_cart()
        )

    # ---------------------------
    # Derived values
    # ---------------------------

    @property
    def total_items(self) -> int:
        return sum(line.quantity for line in self._items)

    @property
    def total_price(self) -> Decimal:
        return sum(
            (parse_price(line.product.price) * line.quantity for line in self._items),
            Decimal("0"),
        )

    @property
    def delivery_total(self) -> Decimal:
        return sum(
            (
                parse_price(line.product.delivery_charge)
                for line in self._items
                if line.product.has_delivery_charge
            ),
            Decimal("0"),
        )

    @property
    def grand_total(self) -> Decimal:
        return self.total_price + self.delivery_total

    def line_for(self, product_id: str) -> Optional[CartLine]:
        for line in self._items:
            if line.product_id == product_id:
                return line
        return None

    @staticmethod
    def check_step(line: CartLine, delta: int) -> Optional[Notice]:
        """
        Pre-check a +/- step on a cart line without calling the server.

        Returns a notice when the new quantity would drop below the minimum
        order quantity or exceed stock, otherwise None.
        """
        new_qty = line.quantity + delta
        min_qty = line.product.min_order_quantity or 1
        if new_qty < min_qty:
            return Notice(
                "Minimum Order Quantity",
                f"Cannot reduce below minimum order quantity of {min_qty} items.",
                "error",
            )
        if new_qty > line.product.stock:
            return Notice(
                "Limited Stock",
                f"Only {line.product.stock} items available in stock.",
                "error",
            )
        return None
