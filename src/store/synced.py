from __future__ import annotations

from typing import TYPE_CHECKING, Awaitable, Callable, Generic, List, TypeVar

from api.client import ApiError
from store.notices import (
    SUCCESS_NOTICES,
    MutationResult,
    Operation,
    classify,
    notice_for,
)
from utils.logger import get_logger

if TYPE_CHECKING:
    from utils.state import SessionContext

_logger = get_logger(__name__)

T = TypeVar("T")
Listener = Callable[[], None]


class SyncedStore(Generic[T]):
    """
    Client cache of a server-held list.

    The cache is a read replica: every successful mutation marks it stale and
    notifies listeners, and the next read fetches the canonical list again.
    Mutations are never retried; failures come back as a MutationResult.
    """

    name = "store"

    def __init__(self, session: "SessionContext") -> None:
        self._session = session
        self._items: List[T] = []
        self._stale = True
        self._generation = 0
        self._pending = 0
        self._listeners: List[Listener] = []

    @property
    def session(self) -> "SessionContext":
        return self._session

    @property
    def lines(self) -> List[T]:
        """Cached items as of the last fetch (may be stale)."""
        return list(self._items)

    @property
    def is_stale(self) -> bool:
        return self._stale

    @property
    def is_pending(self) -> bool:
        return self._pending > 0

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def invalidate(self) -> None:
        self._generation += 1
        self._stale = True
        for listener in list(self._listeners):
            listener()

    def reset(self) -> None:
        """Drop the cache, e.g. when the session ends."""
        self._items = []
        self.invalidate()

    async def _fetch(self) -> List[T]:
        raise NotImplementedError

    async def refresh(self) -> List[T]:
        """
        Fetch the canonical list from the server and replace the cache.

        A response that arrives after an invalidation is dropped and the list
        is fetched again, so the cache always ends on the latest server state.
        """
        while True:
            if not self._session.is_authenticated:
                self._items = []
                self._stale = False
                return []
            generation = self._generation
            try:
                items = await self._fetch()
            except ApiError as exc:
                if exc.is_unauthorized:
                    self._session.handle_unauthorized()
                else:
                    _logger.error(f"Failed to fetch {self.name}: {exc.message}")
                return self.lines
            if generation == self._generation:
                break
            _logger.debug(f"{self.name} changed during fetch, fetching again")

        self._items = items
        self._stale = False
        return self.lines

    async def items(self) -> List[T]:
        """Cached items, re-fetched first when stale."""
        if self._stale:
            return await self.refresh()
        return self.lines

    async def _mutate(
        self, operation: Operation, call: Callable[[], Awaitable[object]]
    ) -> MutationResult:
        # idle -> pending -> (success: invalidate | error: notice) -> idle
        self._pending += 1
        try:
            await call()
        except ApiError as exc:
            kind = classify(exc, operation)
            _logger.warning(
                f"{operation.value} failed ({exc.status_code}, {kind.value}): {exc.message}"
            )
            if exc.is_unauthorized:
                self._session.handle_unauthorized()
            return MutationResult(
                ok=False, notice=notice_for(kind, operation, exc.message), kind=kind
            )
        finally:
            self._pending -= 1

        self.invalidate()
        return MutationResult(ok=True, notice=SUCCESS_NOTICES[operation])
