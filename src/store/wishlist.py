from __future__ import annotations

from typing import List

from api.client import ApiError
from db.models import WishlistEntry
from store.notices import LOGIN_REQUIRED_NOTICE, MutationResult, Operation
from store.synced import SyncedStore
from utils.logger import get_logger

_logger = get_logger(__name__)


class WishlistStore(SyncedStore[WishlistEntry]):
    """Presence-only counterpart of the cart: one entry per (user, product)."""

    name = "wishlist"

    async def _fetch(self) -> List[WishlistEntry]:
        return await self._session.client.list_wishlist()

    async def add(self, product_id: str) -> MutationResult:
        if not self._session.is_authenticated:
            self._session.schedule_login_redirect()
            return MutationResult(ok=False, notice=LOGIN_REQUIRED_NOTICE)
        return await self._mutate(
            Operation.WISHLIST_ADD,
            lambda: self._session.client.add_to_wishlist(product_id),
        )

    async def remove(self, product_id: str) -> MutationResult:
        return await self._mutate(
            Operation.WISHLIST_REMOVE,
            lambda: self._session.client.remove_from_wishlist(product_id),
        )

    async def toggle(self, product_id: str) -> MutationResult:
        """Remove the product if the current wishlist has it, otherwise add it."""
        if self._session.is_authenticated:
            await self.items()
        if self.contains(product_id):
            return await self.remove(product_id)
        return await self.add(product_id)

    def contains(self, product_id: str) -> bool:
        return any(str(e.product_id) == product_id for e in self._items)

    async def check_status(self, product_id: str) -> bool:
        """Ask the server directly; any failure reads as "not in wishlist"."""
        if not self._session.is_authenticated:
            return False
        try:
            return await self._session.client.check_wishlist(product_id)
        except ApiError as exc:
            _logger.debug(f"wishlist check for {product_id} failed: {exc.message}")
            return False
