from __future__ import annotations

import asyncio
from typing import Callable, Optional

from api.client import ApiError, StoreClient
from db.models import User
from store.cart import CartStore
from store.wishlist import WishlistStore
from utils.config import Settings, settings as default_settings
from utils.logger import get_logger

_logger = get_logger(__name__)

LOGIN_ROUTE = "/login"

RedirectHandler = Callable[[str], None]


class SessionContext:
    """
    Application state shared by screens.

    Owns the API client, the logged-in user and both synchronized stores.
    Screens reach it through ``self.app.state``.

    Fields:
      - client: StoreClient used for every request
      - user: the authenticated user, None when logged out
      - cart / wishlist: server-synchronized caches
      - on_redirect: called with LOGIN_ROUTE when the session has expired
    """

    def __init__(
        self,
        client: StoreClient,
        settings: Optional[Settings] = None,
        on_redirect: Optional[RedirectHandler] = None,
    ) -> None:
        self.client = client
        self.settings = settings or default_settings
        self.on_redirect = on_redirect
        self.user: Optional[User] = None
        self.cart = CartStore(self)
        self.wishlist = WishlistStore(self)
        self._redirect_handle: Optional[asyncio.TimerHandle] = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def redirect_pending(self) -> bool:
        return self._redirect_handle is not None

    async def restore(self) -> Optional[User]:
        """Pick up an existing server session, if the client still holds one."""
        try:
            self.user = await self.client.get_user()
        except ApiError as exc:
            _logger.warning(f"Could not restore session: {exc.message}")
            self.user = None
        return self.user

    async def login(self, email: str, password: str) -> User:
        """Raises ApiError on bad credentials."""
        self.user = await self.client.login(email, password)
        self._after_auth_change()
        _logger.info(f"User {self.user.user_id} logged in")
        return self.user

    async def register(
        self, email: str, password: str, first_name: str = "", last_name: str = ""
    ) -> User:
        self.user = await self.client.register(email, password, first_name, last_name)
        self._after_auth_change()
        _logger.info(f"User {self.user.user_id} registered")
        return self.user

    async def end(self) -> None:
        """
        End the current session if one exists.
        This is only called upon logging out
        """
        if self.user is None:
            return
        try:
            await self.client.logout()
        except ApiError as exc:
            _logger.warning(f"Logout request failed: {exc.message}")
        _logger.info(f"User {self.user.user_id} logged out")
        self.user = None
        self._after_auth_change()

    async def close(self) -> None:
        self.cancel_redirect()
        await self.client.aclose()

    def _after_auth_change(self) -> None:
        self.cancel_redirect()
        self.cart.reset()
        self.wishlist.reset()

    # ---------------------------
    # Expiry
    # ---------------------------

    def handle_unauthorized(self) -> None:
        """Drop the session state after a 401 and send the user to the login flow."""
        _logger.warning("Session expired or unauthorized, logging out")
        self.user = None
        self.cart.reset()
        self.wishlist.reset()
        self.schedule_login_redirect()

    def schedule_login_redirect(self) -> None:
        # at most one pending redirect
        if self._redirect_handle is not None:
            return
        loop = asyncio.get_running_loop()
        self._redirect_handle = loop.call_later(
            self.settings.redirect_delay, self._fire_redirect
        )

    def cancel_redirect(self) -> None:
        if self._redirect_handle is not None:
            self._redirect_handle.cancel()
            self._redirect_handle = None

    def _fire_redirect(self) -> None:
        self._redirect_handle = None
        if self.on_redirect is not None:
            self.on_redirect(LOGIN_ROUTE)
