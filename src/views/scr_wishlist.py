from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal
from textual.events import ScreenResume
from textual.widgets import Button, DataTable, Label

from utils.messages import ModeSwitchedMessage, UserLoginMessage, WishlistChangedMessage
from utils.pure import format_price
from views.base_screen import BaseScreen
from views.modal_dialog import show_notice
from views.modal_prod_detail import ProdDetailModal


class WishlistScreen(BaseScreen):
    """
    Saved products. Enter opens the product, the buttons act on the highlighted row.
    """

    BINDINGS = [
        Binding("delete", "remove_selected", "Remove", show=True),
        Binding("ctrl+a", "move_to_cart", "Add to Cart", show=True),
    ]

    def compose(self) -> ComposeResult:
        yield from super().compose()
        yield DataTable(id="table-wishlist")
        yield Label("", id="label-wishlist-count")
        with Horizontal(id="hort-buttons"):
            yield Button("Remove", id="btn-remove", variant="warning")
            yield Button("Add to Cart", id="btn-move-to-cart", variant="primary")

    def on_mount(self):
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("Name", "Price", "Stock", "Added")
        self.update_wishlist()

    @on(WishlistChangedMessage)
    @on(ModeSwitchedMessage)
    @on(UserLoginMessage)
    @on(ScreenResume)
    @work(exclusive=True)
    async def update_wishlist(self) -> None:
        entries = await self.app.state.wishlist.items()

        table = self.query_one(DataTable)
        table.clear()
        for e in entries:
            prod = e.product
            table.add_row(
                prod.name if prod else e.product_id,
                format_price(prod.unit_price) if prod else "-",
                str(prod.stock) if prod else "-",
                e.created_at[:10],
                key=e.product_id,
            )
        self.query_one("#label-wishlist-count", Label).update(
            f"{len(entries)} item(s) in your wishlist"
        )

    def _selected_product_id(self):
        table = self.query_one(DataTable)
        if not table.row_count:
            return None
        row_key, _ = table.coordinate_to_cell_key(table.cursor_coordinate)
        return row_key.value

    @on(DataTable.RowSelected, "#table-wishlist")
    @work
    async def handle_row_selected(self, event: DataTable.RowSelected) -> None:
        await self.app.push_screen_wait(ProdDetailModal(event.row_key.value))

    @on(Button.Pressed, "#btn-remove")
    def handle_remove(self) -> None:
        self.action_remove_selected()

    @on(Button.Pressed, "#btn-move-to-cart")
    def handle_move_to_cart(self) -> None:
        self.action_move_to_cart()

    @work(exclusive=True, group="wishlist-action")
    async def action_remove_selected(self) -> None:
        product_id = self._selected_product_id()
        if product_id is None:
            self.notify("Wishlist is empty.", severity="warning")
            return
        result = await self.app.state.wishlist.remove(product_id)
        show_notice(self.app, result.notice)

    @work(exclusive=True, group="wishlist-action")
    async def action_move_to_cart(self) -> None:
        product_id = self._selected_product_id()
        if product_id is None:
            self.notify("Wishlist is empty.", severity="warning")
            return
        entry = next(
            (e for e in self.app.state.wishlist.lines if e.product_id == product_id),
            None,
        )
        qty = entry.product.min_order_quantity if entry and entry.product else 1
        result = await self.app.state.cart.add_item(product_id, qty)
        show_notice(self.app, result.notice)
