from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal
from textual.events import ScreenResume
from textual.reactive import reactive
from textual.widgets import Button, DataTable, Input, Label

from api.client import ApiError
from utils.messages import (
    CartChangedMessage,
    ModeSwitchedMessage,
    UserLoginMessage,
    WishlistChangedMessage,
)
from utils.pure import format_price
from views.base_screen import BaseScreen
from views.modal_prod_detail import ProdDetailModal

PAGE_SIZE = 10


class CatalogScreen(BaseScreen):
    """
    Product browsing with search and server-side paging.
    """

    BINDINGS = [
        Binding("ctrl+right", "next_page", "Next Page", show=True),
        Binding("ctrl+left", "prev_page", "Prev Page", show=True),
    ]

    page_idx = reactive(1)
    query_str = reactive("")

    def __init__(self):
        super().__init__()
        self._has_next = False

    def compose(self) -> ComposeResult:
        yield from super().compose()
        yield Input(id="input-search", placeholder="Search gifts by name...")
        yield DataTable(id="table-catalog")
        with Horizontal(id="hort-paging"):
            yield Button("<", id="btn-prev-page")
            yield Label("Page 1", id="label-page")
            yield Button(">", id="btn-next-page")

    def on_mount(self):
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("Name", "Category", "Price", "Stock", "Min Qty", "In Cart", "♥")

        self.query_one("#input-search").focus()

    def on_input_changed(self, message: Input.Changed) -> None:
        if message.input.id == "input-search":
            self.query_str = message.value.strip()
            self.page_idx = 1
            self.update_catalog()

    def watch_page_idx(self, _, new_page_idx: int) -> None:
        self.query_one("#label-page", Label).update(f"Page {new_page_idx}")

    def action_next_page(self) -> None:
        if self._has_next:
            self.page_idx += 1
            self.update_catalog()

    def action_prev_page(self) -> None:
        if self.page_idx > 1:
            self.page_idx -= 1
            self.update_catalog()

    @on(Button.Pressed, "#btn-next-page")
    def handle_next_page(self) -> None:
        self.action_next_page()

    @on(Button.Pressed, "#btn-prev-page")
    def handle_prev_page(self) -> None:
        self.action_prev_page()

    @on(DataTable.RowSelected, "#table-catalog")
    @work
    async def handle_row_selected(self, event: DataTable.RowSelected) -> None:
        product_id = event.row_key.value
        if await self.app.push_screen_wait(ProdDetailModal(product_id)):
            self.update_catalog()

    @on(CartChangedMessage)
    @on(WishlistChangedMessage)
    @on(UserLoginMessage)
    @on(ModeSwitchedMessage)
    @on(ScreenResume)
    def handle_refresh_trigger(self) -> None:
        self.update_catalog()

    @work(exclusive=True)
    async def update_catalog(self) -> None:
        state = self.app.state
        try:
            products = await state.client.list_products(
                search=self.query_str or None,
                limit=PAGE_SIZE + 1,
                offset=(self.page_idx - 1) * PAGE_SIZE,
            )
        except ApiError as exc:
            self.notify(f"Failed to load products: {exc.message}", severity="error")
            return

        self._has_next = len(products) > PAGE_SIZE
        products = products[:PAGE_SIZE]

        await state.cart.items()
        await state.wishlist.items()

        table = self.query_one(DataTable)
        table.clear()
        for p in products:
            line = state.cart.line_for(p.id)
            table.add_row(
                p.name,
                p.category,
                format_price(p.unit_price),
                str(p.stock) if p.in_stock else "Out of stock",
                str(p.min_order_quantity),
                str(line.quantity) if line else "",
                "♥" if state.wishlist.contains(p.id) else "",
                key=p.id,
            )

        self.query_one("#btn-prev-page").disabled = self.page_idx <= 1
        self.query_one("#btn-next-page").disabled = not self._has_next
