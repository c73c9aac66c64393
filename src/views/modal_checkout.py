from typing import List, Optional

from textual import events, on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label, MarkdownViewer, OptionList, Select

from store.address import (
    AddressResolver,
    AddressSelection,
    AreaMatch,
    LoadState,
    ShippingAddress,
)
from utils.pure import format_price, generate_markdown_table
from views.modal_dialog import DialogModal


class CheckoutModal(ModalScreen[Optional[ShippingAddress]]):
    """
    Order summary and shipping address capture.
    Returns the confirmed ShippingAddress, or None if the user backed out.
    """

    def __init__(self):
        super().__init__()
        self._resolver = AddressResolver()
        self._selection = AddressSelection()
        self._matches: List[AreaMatch] = []

    def compose(self) -> ComposeResult:
        with Horizontal(id="hort-checkout"):
            yield MarkdownViewer("", show_table_of_contents=False)
            with VerticalScroll(id="vert-shipping"):
                yield Label("Shipping Address", id="label-shipping")
                yield Input(placeholder="Recipient name", id="input-recipient")
                yield Input(placeholder="Phone number", id="input-phone")
                yield Input(placeholder="House no, street", id="input-line1")
                yield Input(placeholder="Apartment, suite (optional)", id="input-line2")
                yield Input(placeholder="Landmark (optional)", id="input-landmark")
                yield Label("Loading address data...", id="label-address-status")
                with Vertical(id="div-address-picker"):
                    yield Input(
                        placeholder="Search area or pincode",
                        id="input-address-search",
                    )
                    yield OptionList(id="list-address-matches")
                    yield Select([], prompt="Select state", id="select-state")
                    yield Select([], prompt="Select district", id="select-district")
                    yield Select([], prompt="Select area", id="select-area")
                    yield Input(
                        placeholder="Pincode",
                        id="input-pincode",
                        max_length=6,
                        restrict=r"\d*",
                    )
                yield Button("Retry", id="btn-retry-address", variant="warning")
                with Horizontal():
                    yield Button("Go Back", id="btn-quit")
                    yield Button("Confirm Address", id="btn-submit", variant="primary")

    async def on_mount(self):
        # generate the order summary
        cart = self.app.state.cart
        lines = await cart.items()
        headers = ["Product Name", "Unit Price", "Quantity", "Total Price"]
        rows = [
            [
                line.product.name,
                format_price(line.product.unit_price),
                line.quantity,
                format_price(line.subtotal),
            ]
            for line in lines
        ]
        aligns = ["l", "c", "c", "c"]
        md = "### Order Summary\n\n" + generate_markdown_table(headers, rows, aligns)
        md += f"\n\n**Subtotal:** {format_price(cart.total_price)}"
        if cart.delivery_total:
            md += f"\n\n**Delivery:** {format_price(cart.delivery_total)}"
        md += f"\n\n**Total:** {format_price(cart.grand_total)}"
        await self.query_one(MarkdownViewer).document.update(md)

        user = self.app.state.user
        if user is not None:
            self.query_one("#input-recipient", Input).value = user.display_name
        self.query_one("#input-recipient").focus()

        self.load_address_data()

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(None)

    # ---------------------------
    # Address picker
    # ---------------------------

    @work(exclusive=True, group="address")
    async def load_address_data(self) -> None:
        self._render_address_status(LoadState.LOADING)
        await self._resolver.load_from(
            self.app.state.client, self.app.state.settings.address_data_path
        )
        self._render_address_status(self._resolver.status)
        if self._resolver.is_ready:
            self._selection = AddressSelection()
            self.query_one("#select-state", Select).set_options(
                (name, name) for name in self._resolver.list_states()
            )
            stats = self._resolver.statistics()
            self.query_one("#input-address-search", Input).placeholder = (
                f"Search {stats['areas']} areas or {stats['pincodes']} pincodes"
            )
            self._show_matches([])

    def _render_address_status(self, status: LoadState) -> None:
        label = self.query_one("#label-address-status", Label)
        picker = self.query_one("#div-address-picker")
        retry = self.query_one("#btn-retry-address")

        picker.display = status is LoadState.READY
        retry.display = status is LoadState.ERROR
        label.display = status is not LoadState.READY
        label.set_class(status is LoadState.ERROR, "-error")
        if status is LoadState.LOADING:
            label.update("Loading address data...")
        elif status is LoadState.ERROR:
            label.update(f"Could not load address data: {self._resolver.error}")

    def _change_field(self, field: str, value: str) -> bool:
        new_selection = self._resolver.apply_field_change(self._selection, field, value)
        if new_selection == self._selection:
            return False
        self._selection = new_selection
        return True

    @on(Select.Changed, "#select-state")
    def handle_state_changed(self, event: Select.Changed) -> None:
        value = "" if event.select.is_blank() else str(event.value)
        if not self._change_field("state", value):
            return
        self.query_one("#select-district", Select).set_options(
            (d, d) for d in self._resolver.list_districts(self._selection.state)
        )
        self.query_one("#select-area", Select).set_options([])
        self.query_one("#input-pincode", Input).value = ""

    @on(Select.Changed, "#select-district")
    def handle_district_changed(self, event: Select.Changed) -> None:
        value = "" if event.select.is_blank() else str(event.value)
        if not self._change_field("district", value):
            return
        s = self._selection
        self.query_one("#select-area", Select).set_options(
            (a, a) for a in self._resolver.list_areas(s.state, s.district)
        )
        self.query_one("#input-pincode", Input).value = ""

    @on(Select.Changed, "#select-area")
    def handle_area_changed(self, event: Select.Changed) -> None:
        value = "" if event.select.is_blank() else str(event.value)
        if not self._change_field("area", value):
            return
        s = self._selection
        # known pincodes are filled in; the user can still edit them
        pincode = self._resolver.pincode_for(s.state, s.district, s.area) or ""
        self.query_one("#input-pincode", Input).value = pincode

    @on(Input.Changed, "#input-pincode")
    def handle_pincode_changed(self, event: Input.Changed) -> None:
        self._change_field("pincode", event.value.strip())

    @on(Input.Changed, "#input-address-search")
    def handle_search_changed(self, event: Input.Changed) -> None:
        query = event.value.strip()
        if query.isdigit() and len(query) == 6:
            matches = self._resolver.search_pincode(query)
        elif query.isdigit():
            matches = []
        else:
            matches = self._resolver.search_areas(query, limit=8)
        self._show_matches(matches)

    def _show_matches(self, matches: List[AreaMatch]) -> None:
        self._matches = matches
        option_list = self.query_one("#list-address-matches", OptionList)
        option_list.clear_options()
        option_list.add_options(
            f"{m.area}, {m.district}, {m.state}"
            + (f" - {m.pincode}" if m.pincode else "")
            for m in matches
        )
        option_list.display = bool(matches)

    @on(OptionList.OptionSelected, "#list-address-matches")
    def handle_match_selected(self, event: OptionList.OptionSelected) -> None:
        match = self._matches[event.option_index]
        selection = self._resolver.selection_for(match)
        self._selection = selection

        # fill the picker without replaying the cascade handlers
        state_select = self.query_one("#select-state", Select)
        district_select = self.query_one("#select-district", Select)
        area_select = self.query_one("#select-area", Select)
        pincode_input = self.query_one("#input-pincode", Input)
        with state_select.prevent(Select.Changed):
            state_select.value = match.state
        with district_select.prevent(Select.Changed):
            district_select.set_options(
                (d, d) for d in self._resolver.list_districts(match.state)
            )
            district_select.value = match.district
        with area_select.prevent(Select.Changed):
            area_select.set_options(
                (a, a) for a in self._resolver.list_areas(match.state, match.district)
            )
            area_select.value = match.area
        with pincode_input.prevent(Input.Changed):
            pincode_input.value = selection.pincode

        search = self.query_one("#input-address-search", Input)
        with search.prevent(Input.Changed):
            search.value = ""
        self._show_matches([])
        self.query_one("#input-pincode", Input).focus()

    @on(Button.Pressed, "#btn-retry-address")
    def handle_retry(self) -> None:
        self.load_address_data()

    # ---------------------------
    # Submit
    # ---------------------------

    def _shipping_address(self) -> ShippingAddress:
        return ShippingAddress(
            selection=self._selection,
            recipient_name=self.query_one("#input-recipient", Input).value.strip(),
            phone_number=self.query_one("#input-phone", Input).value.strip(),
            address_line1=self.query_one("#input-line1", Input).value.strip(),
            address_line2=self.query_one("#input-line2", Input).value.strip(),
            landmark=self.query_one("#input-landmark", Input).value.strip(),
        )

    @on(Button.Pressed, "#btn-submit")
    @work(exclusive=True, group="submit")
    async def handle_submit(self):
        address = self._shipping_address()
        result = self._resolver.validate_shipping(address)
        if not result.is_valid:
            self.notify("\n".join(result.errors), title="Check address", severity="error")
            return

        if not await self.app.push_screen_wait(
            DialogModal(
                "Ship to this address?\n\n" + "\n".join(address.summary_lines()),
                primary_text="Yes",
                secondary_text="No",
                tone="positive",
            )
        ):
            return

        self.notify("Shipping address confirmed.")
        self.dismiss(address)

    @on(Button.Pressed, "#btn-quit")
    def handle_quit(self):
        self.dismiss(None)
