from textual import on, work
from textual.app import ComposeResult
from textual.containers import Container, Horizontal, HorizontalGroup, VerticalScroll
from textual.events import ScreenResume
from textual.message import Message
from textual.widgets import Button, Label, Rule

from db.models import CartLine
from utils.messages import CartChangedMessage, ModeSwitchedMessage, UserLoginMessage
from utils.pure import format_price
from views.base_screen import BaseScreen
from views.modal_checkout import CheckoutModal
from views.modal_dialog import DialogModal, show_notice
from views.modal_prod_detail import ProdDetailModal


class CartItemActionMessage(Message):
    bubble = True

    def __init__(self, action: str) -> None:
        super().__init__()
        self.action = action


class CartItemActionLabel(Label):
    def action_edit(self):
        self.post_message(CartItemActionMessage("edit"))

    def action_remove(self):
        self.post_message(CartItemActionMessage("remove"))


class CartItemWidget(HorizontalGroup):
    def __init__(self, line: CartLine):
        super().__init__()
        self.line = line

    def compose(self):
        prod = self.line.product
        with Container(id="div-cart-item-group"):
            with Container(id="div-item"):
                yield Label(prod.name, id="label-item-name")
                with Horizontal(id="div-item-qty"):
                    yield Button("-", id="btn-item-dec")
                    yield Label(str(self.line.quantity), id="label-item-qty")
                    yield Button("+", id="btn-item-inc")
                yield Label(
                    f"{format_price(prod.unit_price)} x {self.line.quantity}"
                    f" = {format_price(self.line.subtotal)}",
                    id="label-item-price",
                )
            with Container(id="div-actions"):
                yield CartItemActionLabel("[@click=edit()]Edit[/]", id="link-item-edit")
                yield CartItemActionLabel(
                    "[@click=remove()]Remove[/]", id="link-item-remove"
                )

    @on(Button.Pressed, "#btn-item-inc")
    def handle_inc(self):
        self.step(+1)

    @on(Button.Pressed, "#btn-item-dec")
    def handle_dec(self):
        self.step(-1)

    def _set_stepper_disabled(self, disabled: bool) -> None:
        for btn in self.query("#div-item-qty Button"):
            btn.disabled = disabled

    @work(group="step")
    async def step(self, delta: int):
        cart = self.app.state.cart
        # one quantity change in flight at a time
        if cart.is_pending:
            return
        # pre-check against stock and minimum before calling the server
        notice = cart.check_step(self.line, delta)
        if notice:
            show_notice(self.app, notice)
            return
        self._set_stepper_disabled(True)
        try:
            result = await cart.update_quantity(
                self.line.product_id, self.line.quantity + delta
            )
        finally:
            self._set_stepper_disabled(False)
        show_notice(self.app, result.notice)

    @on(CartItemActionMessage)
    def handle_item_action(self, message: CartItemActionMessage):
        message.stop()
        if message.action == "edit":
            self.edit_item()
        else:
            self.remove_item()

    @work()
    async def edit_item(self):
        await self.app.push_screen_wait(ProdDetailModal(self.line.product_id))

    @work()
    async def remove_item(self):
        remove_confirmed = await self.app.push_screen_wait(
            DialogModal(
                "Do you really want to remove this item from cart?",
                primary_text="Yes",
                secondary_text="No",
                tone="warning",
            )
        )
        if remove_confirmed:
            result = await self.app.state.cart.remove_item(self.line.product_id)
            show_notice(self.app, result.notice)


class CartScreen(BaseScreen):
    """
    Cart lines, totals and checkout.
    """

    def compose(self) -> ComposeResult:
        yield from super().compose()
        yield VerticalScroll(id="vertscroll-content")
        yield Label("", id="label-cart-total")
        yield Rule(line_style="dashed")
        with Horizontal(id="hort-buttons"):
            yield Button("Clear Cart", id="btn-clear-cart")
            yield Button("Refresh", id="btn-refresh")
            yield Button("Checkout", id="btn-checkout", variant="primary")

    def on_mount(self):
        self.handle_cart_change()

    @on(CartChangedMessage)
    @on(ModeSwitchedMessage)
    @on(UserLoginMessage)
    @on(ScreenResume)
    @on(Button.Pressed, "#btn-refresh")
    @work(exclusive=True)  # must exclusive, else might race cond and gen duplicate
    async def handle_cart_change(self):
        cart = self.app.state.cart
        lines = await cart.items()

        total_label = (
            f"Items: {cart.total_items}   "
            f"Subtotal: {format_price(cart.total_price)}"
        )
        if cart.delivery_total:
            total_label += f"   Delivery: {format_price(cart.delivery_total)}"
        total_label += f"   Total: {format_price(cart.grand_total)}"
        self.query_one("#label-cart-total", Label).update(total_label)

        content = self.query_one("#vertscroll-content")
        content.set_class(not lines, "no-items")
        if [c.line for c in content.children] == lines:
            return

        await content.remove_children()
        await content.mount_all([CartItemWidget(line) for line in lines])

        self.refresh()

    @on(Button.Pressed, "#btn-clear-cart")
    @work
    async def handle_clear_cart(self) -> None:
        if not await self.app.state.cart.items():
            self.app.notify("Cart is empty.", severity="warning")
            return

        remove_confirmed = await self.app.push_screen_wait(
            DialogModal(
                "Do you really want to remove all items from cart?",
                primary_text="Yes",
                secondary_text="No",
                tone="error",
            )
        )
        if remove_confirmed:
            result = await self.app.state.cart.clear_cart()
            show_notice(self.app, result.notice)

    @on(Button.Pressed, "#btn-checkout")
    @work
    async def handle_checkout(self) -> None:
        if not await self.app.state.cart.items():
            self.app.notify("Cart is empty.", severity="warning")
            return

        address = await self.app.push_screen_wait(CheckoutModal())
        if address is None:
            return

        cart = self.app.state.cart
        await self.app.push_screen_wait(
            DialogModal(
                f"{cart.total_items} item(s), {format_price(cart.grand_total)}, "
                f"shipping to {address.selection.area} {address.selection.pincode}.\n"
                "Complete payment on the storefront website to place the order."
            )
        )
