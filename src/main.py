import argparse
import dataclasses
from typing import Optional

from textual import on, work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import LoadingIndicator

from api.client import StoreClient
from utils.config import Settings, settings as default_settings
from utils.logger import get_logger
from utils.messages import (
    CartChangedMessage,
    ModeSwitchedMessage,
    QuitRequestedMessage,
    SessionExpiredMessage,
    UserLogoutMessage,
    WishlistChangedMessage,
)
from utils.state import SessionContext
from views.scr_cart import CartScreen
from views.scr_catalog import CatalogScreen
from views.scr_login import LoginScreen
from views.scr_wishlist import WishlistScreen

_logger = get_logger(__name__)


class GiftShopApp(App):
    BINDINGS = [
        Binding("ctrl+t", "switch_light", "Toggle Theme", show=True),
    ]

    MODES = {
        "catalog": CatalogScreen,
        "cart": CartScreen,
        "wishlist": WishlistScreen,
    }

    CUSTOMER_MODES = {
        "catalog": "Browse Gifts",
        "cart": "Cart",
        "wishlist": "Wishlist",
    }

    CSS_PATH = [
        "styles/index.tcss",
        "styles/login.tcss",
        "styles/catalog.tcss",
        "styles/cart.tcss",
        "styles/wishlist.tcss",
        "styles/checkout.tcss",
    ]

    state: SessionContext

    def __init__(self, settings: Optional[Settings] = None):
        super().__init__()
        settings = settings or default_settings
        self.state = SessionContext(
            StoreClient.from_settings(settings),
            settings,
            on_redirect=self._on_session_redirect,
        )
        self.state.cart.add_listener(self._on_cart_changed)
        self.state.wishlist.add_listener(self._on_wishlist_changed)

    def compose(self) -> ComposeResult:
        yield LoadingIndicator()

    async def on_mount(self) -> None:
        self.main_flow()

    def action_switch_light(self):
        if self.theme == "textual-dark":
            self.theme = "solarized-light"
        else:
            self.theme = "textual-dark"
        self.notify(f"Theme changed to {self.theme}")

    # store listeners run synchronously inside the store; hand off as messages
    def _on_cart_changed(self) -> None:
        self.screen.post_message(CartChangedMessage())

    def _on_wishlist_changed(self) -> None:
        self.screen.post_message(WishlistChangedMessage())

    def _on_session_redirect(self, route: str) -> None:
        self.post_message(SessionExpiredMessage(route))

    @on(SessionExpiredMessage)
    @work(exclusive=True, group="expired")
    async def handle_session_expired(self, message: SessionExpiredMessage):
        _logger.info(f"Redirecting to {message.route}")
        if isinstance(self.screen, LoginScreen):
            return
        await self.push_screen_wait(
            LoginScreen("Your session has expired. Please log in again.")
        )

    @on(UserLogoutMessage)
    @work
    async def handle_user_logout(self):
        await self.state.end()
        self.notify("Logout successful.")
        self.main_flow()

    @on(QuitRequestedMessage)
    @work
    async def handle_quit(self):
        await self.state.end()
        await self.state.close()
        self.exit()

    @work(exclusive=True, group="session")
    async def main_flow(self):
        if await self.state.restore() is None:
            await self.push_screen_wait(LoginScreen())
        self.post_message(ModeSwitchedMessage(self.current_mode, "catalog"))
        await self.switch_mode("catalog")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Gift shop storefront")
    parser.add_argument(
        "--local",
        action="store_true",
        help="serve the API from the bundled SQLite backend instead of GIFTSHOP_API_URL",
    )
    parser.add_argument("--api-url", help="override GIFTSHOP_API_URL")
    return parser.parse_args(argv)


def main(argv=None) -> None:
    args = parse_args(argv)
    settings = default_settings
    if args.local:
        settings = dataclasses.replace(settings, local=True)
    if args.api_url:
        settings = dataclasses.replace(settings, api_url=args.api_url)
    GiftShopApp(settings).run()


if __name__ == "__main__":
    main()
