from typing import Optional

from textual import events, on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.reactive import reactive
from textual.screen import ModalScreen
from textual.validation import Number
from textual.widgets import Button, Input, Label, MarkdownViewer

from api.client import ApiError
from db.models import CartLine, Product
from utils.pure import format_price, generate_markdown_table, parse_price
from views.modal_dialog import show_notice


class ProdDetailModal(ModalScreen[bool]):
    """
    Product detail plus the add/update cart and wishlist controls.
    Returns True if the cart or wishlist changed, False if not.
    """

    order_qty = reactive(1)

    def __init__(self, product_id: str) -> None:
        super().__init__()

        self._product_id = product_id

        self._prod: Optional[Product] = None
        self._existing_line: Optional[CartLine] = None
        self._in_wishlist = False
        self._changed = False

    def compose(self) -> ComposeResult:
        with Horizontal(id="hort-prod-detail"):
            yield MarkdownViewer("", show_table_of_contents=False)
            with Vertical(id="vert-prod-actions"):
                yield Label("Order Quantity")
                with Horizontal():
                    yield Button("-", id="btn-sub-qty")
                    yield Input(value="1", id="input-order-qty", type="integer")
                    yield Button("+", id="btn-add-qty")
                yield Button("♡ Wishlist", id="btn-wishlist")
                with Horizontal():
                    yield Button("Go Back", id="btn-quit")
                    yield Button("Add to Cart", id="btn-addcart", variant="primary")

    async def on_mount(self):
        state = self.app.state
        try:
            self._prod = await state.client.get_product(self._product_id)
        except ApiError as exc:
            self.notify(f"Failed to load product: {exc.message}", severity="error")
            self.dismiss(False)
            return
        if self._prod is None:
            self.notify("Product not found.", severity="error")
            self.dismiss(False)
            return

        prod = self._prod
        table_rows = [
            ["Category", prod.category or "-"],
            ["Price", format_price(prod.unit_price)],
            ["Stock", prod.stock],
            ["Minimum order", prod.min_order_quantity],
        ]
        if prod.original_price:
            mrp = format_price(parse_price(prod.original_price))
            table_rows.insert(2, ["MRP", mrp])
        if prod.has_delivery_charge:
            delivery = format_price(parse_price(prod.delivery_charge))
            table_rows.append(["Delivery charge", delivery])
        md_table_str = generate_markdown_table(
            ["Attribute", "Value"], table_rows, ["l", "l"]
        )
        header_md = f"### {prod.name}\n\n{prod.descr}\n\n"
        await self.query_one(MarkdownViewer).document.update(header_md + md_table_str)

        # update elements depending on stock cnt
        if not prod.in_stock:
            order_btn = self.query_one("#btn-addcart", Button)
            order_btn.label = "Out of Stock"
            order_btn.disabled = True
            order_btn.variant = "warning"

        self.query_one("#input-order-qty").validators = [
            Number(minimum=prod.min_order_quantity, maximum=max(prod.stock, 1))
        ]

        # update elements based on cart status
        await state.cart.items()
        self._existing_line = state.cart.line_for(prod.id)
        if self._existing_line:
            self.order_qty = self._existing_line.quantity
            self.query_one("#btn-addcart", Button).label = "Update Cart"
        else:
            self.order_qty = prod.min_order_quantity

        self._in_wishlist = await state.wishlist.check_status(prod.id)
        self._update_wishlist_button()

        self.query_one("#input-order-qty").focus()

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(self._changed)

    async def on_input_changed(self, message: Input.Changed) -> None:
        if (
            message.input.id == "input-order-qty"
            and message.input.is_valid
            and self.focused == message.input
        ):
            self.order_qty = int(message.value)

    def watch_order_qty(self, qty: int):
        if self._prod is None:
            return
        btn_sub_qty = self.query_one("#btn-sub-qty")
        btn_add_qty = self.query_one("#btn-add-qty")

        btn_sub_qty.disabled = qty <= self._prod.min_order_quantity
        btn_add_qty.disabled = qty >= self._prod.stock

        input_order_qty = self.query_one("#input-order-qty", Input)
        if input_order_qty.value != str(qty):
            input_order_qty.value = str(qty)

    @on(Button.Pressed, "#btn-add-qty")
    def handle_add_qty(self):
        self.order_qty += 1

    @on(Button.Pressed, "#btn-sub-qty")
    def handle_sub_qty(self):
        self.order_qty -= 1

    @on(Button.Pressed, "#btn-quit")
    def handle_quit(self):
        self.dismiss(self._changed)

    def _update_wishlist_button(self) -> None:
        btn = self.query_one("#btn-wishlist", Button)
        btn.label = "♥ In Wishlist" if self._in_wishlist else "♡ Wishlist"
        btn.variant = "success" if self._in_wishlist else "default"

    @on(Button.Pressed, "#btn-wishlist")
    @work(exclusive=True, group="wishlist")
    async def handle_wishlist(self):
        result = await self.app.state.wishlist.toggle(self._product_id)
        show_notice(self.app, result.notice)
        if result.ok:
            self._in_wishlist = not self._in_wishlist
            self._changed = True
            self._update_wishlist_button()

    @on(Button.Pressed, "#btn-addcart")
    @work(exclusive=True, group="cart")
    async def handle_addcart(self):
        cart = self.app.state.cart
        if not self._existing_line:
            result = await cart.add_item(self._product_id, self.order_qty)
        else:
            result = await cart.update_quantity(self._product_id, self.order_qty)
            if result.ok:
                self.app.notify("Updated cart item quantity.")

        show_notice(self.app, result.notice)
        if result.ok:
            self.dismiss(True)
