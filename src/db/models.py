# provide dataclass models, shared by the REST client and the local backend

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Optional

from utils.pure import parse_price


def _object_id(data: Dict[str, Any], *keys: str) -> str:
    for key in keys:
        val = data.get(key)
        if val:
            return str(val)
    return ""


@dataclass(frozen=True)
class User:
    id: str
    user_id: str
    email: str
    first_name: str = ""
    last_name: str = ""
    role: str = "customer"  # "customer" or "admin"

    @property
    def display_name(self) -> str:
        full = f"{self.first_name} {self.last_name}".strip()
        return full or self.email

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "User":
        return cls(
            id=_object_id(data, "id", "_id"),
            user_id=str(data.get("userId") or ""),
            email=str(data.get("email") or ""),
            first_name=str(data.get("firstName") or ""),
            last_name=str(data.get("lastName") or ""),
            role=str(data.get("role") or "customer"),
        )

    def to_json(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "email": self.email,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "role": self.role,
        }


@dataclass(frozen=True)
class Product:
    id: str
    name: str
    price: str  # decimal string, parsed at read time
    stock: int = 0
    min_order_quantity: int = 1
    slug: str = ""
    category: str = ""
    descr: str = ""
    original_price: Optional[str] = None
    is_active: bool = True
    has_delivery_charge: bool = False
    delivery_charge: str = "0"

    @property
    def unit_price(self) -> Decimal:
        return parse_price(self.price)

    @property
    def in_stock(self) -> bool:
        return self.stock > 0

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "Product":
        original_price = data.get("originalPrice")
        return cls(
            id=_object_id(data, "id", "_id"),
            name=str(data.get("name") or ""),
            price=str(data.get("price") if data.get("price") is not None else "0"),
            stock=int(data.get("stock") or 0),
            min_order_quantity=int(data.get("minOrderQuantity") or 1),
            slug=str(data.get("slug") or ""),
            category=str(data.get("category") or ""),
            descr=str(data.get("description") or ""),
            original_price=str(original_price) if original_price is not None else None,
            is_active=bool(data.get("isActive", True)),
            has_delivery_charge=bool(data.get("hasDeliveryCharge", False)),
            delivery_charge=str(data.get("deliveryCharge") or "0"),
        )

    def to_json(self) -> Dict[str, Any]:
        return {
            "_id": self.id,
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "description": self.descr,
            "category": self.category,
            "price": self.price,
            "originalPrice": self.original_price,
            "stock": self.stock,
            "minOrderQuantity": self.min_order_quantity,
            "isActive": self.is_active,
            "hasDeliveryCharge": self.has_delivery_charge,
            "deliveryCharge": self.delivery_charge,
        }


@dataclass(frozen=True)
class CartLine:
    id: str
    product_id: str
    quantity: int
    product: Product

    @property
    def subtotal(self) -> Decimal:
        return self.product.unit_price * self.quantity

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "CartLine":
        product_data = data.get("product") or {}
        product = Product.from_json(product_data)
        return cls(
            id=_object_id(data, "id", "_id"),
            product_id=_object_id(data, "productId") or product.id,
            quantity=int(data.get("quantity") or 0),
            product=product,
        )

    def to_json(self, user_id: str) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userId": user_id,
            "productId": self.product_id,
            "quantity": self.quantity,
            "product": self.product.to_json(),
        }


@dataclass(frozen=True)
class WishlistEntry:
    id: str
    user_id: str
    product_id: str
    product: Optional[Product] = None
    created_at: str = field(default="", compare=False)

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "WishlistEntry":
        product_data = data.get("product")
        return cls(
            id=_object_id(data, "_id", "id"),
            user_id=str(data.get("userId") or ""),
            product_id=str(data.get("productId") or ""),
            product=Product.from_json(product_data) if product_data else None,
            created_at=str(data.get("createdAt") or ""),
        )

    def to_json(self) -> Dict[str, Any]:
        return {
            "_id": self.id,
            "userId": self.user_id,
            "productId": self.product_id,
            "product": self.product.to_json() if self.product else None,
            "createdAt": self.created_at,
        }
