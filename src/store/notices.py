"""Classification of failed storefront mutations into user-facing notices.

The backend may answer with a structured ``code``; when it does not, the
``message`` text is matched against the phrases the storefront server uses.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Literal, Optional, Tuple

from api.client import ApiError

Severity = Literal["information", "warning", "error"]


class ErrorKind(str, Enum):
    UNAUTHORIZED = "unauthorized"
    INSUFFICIENT_STOCK = "insufficient_stock"
    MIN_ORDER_QUANTITY = "min_order_quantity"
    BELOW_MINIMUM = "below_minimum"
    INVALID_ID = "invalid_id"
    ALREADY_PRESENT = "already_present"
    NOT_FOUND = "not_found"
    UNKNOWN = "unknown"


class Operation(str, Enum):
    CART_ADD = "cart.add"
    CART_UPDATE = "cart.update"
    CART_REMOVE = "cart.remove"
    CART_CLEAR = "cart.clear"
    WISHLIST_ADD = "wishlist.add"
    WISHLIST_REMOVE = "wishlist.remove"


@dataclass(frozen=True)
class Notice:
    title: str
    description: str
    severity: Severity = "information"


@dataclass(frozen=True)
class MutationResult:
    ok: bool
    notice: Optional[Notice] = None
    kind: Optional[ErrorKind] = None


# (phrases, kind) checked in order; first phrase hit wins
_RULES: Dict[Operation, List[Tuple[Tuple[str, ...], ErrorKind]]] = {
    Operation.CART_ADD: [
        (("Cannot add", "Insufficient stock"), ErrorKind.INSUFFICIENT_STOCK),
        (("Minimum order quantity",), ErrorKind.MIN_ORDER_QUANTITY),
        (("BSONError", "24 character hex string"), ErrorKind.INVALID_ID),
    ],
    Operation.CART_UPDATE: [
        (
            ("Cannot add", "Cannot set quantity", "Insufficient stock"),
            ErrorKind.INSUFFICIENT_STOCK,
        ),
        (("Minimum order quantity",), ErrorKind.MIN_ORDER_QUANTITY),
        (("Cannot reduce quantity",), ErrorKind.BELOW_MINIMUM),
    ],
    Operation.CART_REMOVE: [],
    Operation.CART_CLEAR: [],
    Operation.WISHLIST_ADD: [
        (("already in your wishlist",), ErrorKind.ALREADY_PRESENT),
    ],
    Operation.WISHLIST_REMOVE: [],
}

FALLBACK_MESSAGES: Dict[Operation, str] = {
    Operation.CART_ADD: "Failed to add item to cart",
    Operation.CART_UPDATE: "Failed to update cart item",
    Operation.CART_REMOVE: "Failed to remove item from cart",
    Operation.CART_CLEAR: "Failed to clear cart",
    Operation.WISHLIST_ADD: "Failed to add to wishlist",
    Operation.WISHLIST_REMOVE: "Failed to remove from wishlist",
}

SUCCESS_NOTICES: Dict[Operation, Optional[Notice]] = {
    Operation.CART_ADD: Notice("Added to cart", "Item has been added to your cart"),
    Operation.CART_UPDATE: None,
    Operation.CART_REMOVE: Notice(
        "Removed from cart", "Item has been removed from your cart"
    ),
    Operation.CART_CLEAR: Notice(
        "Cart cleared", "All items have been removed from your cart"
    ),
    Operation.WISHLIST_ADD: Notice(
        "Added to Wishlist", "Item has been added to your wishlist"
    ),
    Operation.WISHLIST_REMOVE: Notice(
        "Removed from Wishlist", "Item has been removed from your wishlist"
    ),
}

_TITLES: Dict[ErrorKind, str] = {
    ErrorKind.UNAUTHORIZED: "Unauthorized",
    ErrorKind.INSUFFICIENT_STOCK: "Limited Stock Available",
    ErrorKind.MIN_ORDER_QUANTITY: "Minimum Order Quantity",
    ErrorKind.BELOW_MINIMUM: "Minimum Order Quantity",
    ErrorKind.INVALID_ID: "Invalid Product ID",
    ErrorKind.ALREADY_PRESENT: "Already in Wishlist",
    ErrorKind.NOT_FOUND: "Not Found",
    ErrorKind.UNKNOWN: "Error",
}

UNAUTHORIZED_NOTICE = Notice(
    "Unauthorized", "You are logged out. Logging in again...", "error"
)
LOGIN_REQUIRED_NOTICE = Notice(
    "Login Required", "Please login to add items to wishlist", "error"
)


def classify(error: ApiError, operation: Operation) -> ErrorKind:
    """
    Map a failed mutation to an ErrorKind.

    401 always wins. A structured code is honoured only when it names a kind
    the operation can produce; otherwise the message is matched by substring.
    """
    if error.is_unauthorized:
        return ErrorKind.UNAUTHORIZED

    rules = _RULES[operation]
    allowed = {kind for _, kind in rules}
    if error.code:
        try:
            kind = ErrorKind(str(error.code).lower())
        except ValueError:
            kind = None
        if kind in allowed:
            return kind

    message = error.message or ""
    for phrases, kind in rules:
        if any(phrase in message for phrase in phrases):
            return kind
    return ErrorKind.UNKNOWN


def notice_for(kind: ErrorKind, operation: Operation, message: str = "") -> Notice:
    """The notification shown for a classified failure."""
    if kind is ErrorKind.UNAUTHORIZED:
        return UNAUTHORIZED_NOTICE
    if kind is ErrorKind.INVALID_ID:
        return Notice(
            _TITLES[kind],
            "The product ID format is invalid. Please try again.",
            "error",
        )
    return Notice(
        _TITLES[kind], message or FALLBACK_MESSAGES[operation], "error"
    )
