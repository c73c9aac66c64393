# src/db/crud.py
from __future__ import annotations

import re
import secrets
from datetime import datetime
from typing import List, Optional

from passlib.context import CryptContext

from db import models
from db.database import connect

_OBJECT_ID_RE = re.compile(r"^[0-9a-fA-F]{24}$")

_PRODUCT_COLUMNS = """
    p.id, p.name, p.slug, p.category, p.descr, p.price, p.original_price, p.stock,
    p.min_order_quantity, p.is_active, p.has_delivery_charge, p.delivery_charge
"""


class BackendError(Exception):
    """A request the backend refuses; carries the HTTP status and a stable code."""

    def __init__(self, status_code: int, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.code = code


def new_object_id() -> str:
    return secrets.token_hex(12)


def is_object_id(value) -> bool:
    return isinstance(value, str) and bool(_OBJECT_ID_RE.match(value))


def _require_object_id(value) -> str:
    # same wording as the bson driver so clients can recognise it
    if not is_object_id(value):
        raise BackendError(
            400,
            "BSONError: input must be a 24 character hex string, "
            "12 byte Uint8Array, or an integer",
            code="invalid_id",
        )
    return value.lower()


# seed rows carry sha512_crypt hashes; they are rehashed with bcrypt on login
pwd_context = CryptContext(schemes=["bcrypt", "sha512_crypt"], deprecated="auto")


def _row_to_user(row) -> models.User:
    return models.User(
        id=row["id"],
        user_id=row["user_id"],
        email=row["email"],
        first_name=row["first_name"],
        last_name=row["last_name"],
        role=row["role"],
    )


def _row_to_product(row) -> models.Product:
    return models.Product(
        id=row["id"],
        name=row["name"],
        slug=row["slug"],
        category=row["category"],
        descr=row["descr"],
        price=row["price"],
        original_price=row["original_price"],
        stock=int(row["stock"]),
        min_order_quantity=int(row["min_order_quantity"] or 1),
        is_active=bool(row["is_active"]),
        has_delivery_charge=bool(row["has_delivery_charge"]),
        delivery_charge=row["delivery_charge"],
    )


# ---------------------------
# Auth & Registration
# ---------------------------


async def email_available(email: str) -> bool:
    """True if no user already registered with the given email."""
    async with connect() as conn:
        cur = await conn.execute(
            "SELECT 1 FROM users WHERE LOWER(email) = LOWER(?) LIMIT 1;", (email,)
        )
        row = await cur.fetchone()
        await cur.close()
        return row is None


async def _generate_user_id() -> str:
    """Next human readable user id, GS + six digits."""
    async with connect() as conn:
        cur = await conn.execute("SELECT COUNT(*) FROM users;")
        count = (await cur.fetchone())[0]
        await cur.close()
        while True:
            count += 1
            cand = f"GS{count:06d}"
            cur = await conn.execute("SELECT 1 FROM users WHERE user_id = ?;", (cand,))
            exists = await cur.fetchone()
            await cur.close()
            if not exists:
                return cand


async def register_user(
    email: str, pwd: str, first_name: str = "", last_name: str = ""
) -> models.User:
    """
    Create a new customer account and return it.
    """
    email = (email or "").strip()
    if not email or not pwd:
        raise BackendError(400, "Email and password are required", code="validation")
    if len(pwd) < 6:
        raise BackendError(
            400, "Password must be at least 6 characters long", code="validation"
        )
    if not await email_available(email):
        raise BackendError(400, "User already exists with this email", code="conflict")

    user = models.User(
        id=new_object_id(),
        user_id=await _generate_user_id(),
        email=email,
        first_name=first_name.strip(),
        last_name=last_name.strip(),
        role="customer",
    )
    async with connect() as conn:
        await conn.execute(
            """
            INSERT INTO users(id, user_id, email, pwd_hash, first_name, last_name, role)
            VALUES (?, ?, ?, ?, ?, ?, 'customer');
            """,
            (
                user.id,
                user.user_id,
                user.email,
                pwd_context.hash(pwd),
                user.first_name,
                user.last_name,
            ),
        )
        await conn.commit()
    return user


async def login(email: str, pwd: str) -> Optional[models.User]:
    """Return User if email/pwd match; otherwise None."""
    async with connect() as conn:
        cur = await conn.execute(
            """
            SELECT id, user_id, email, pwd_hash, first_name, last_name, role
            FROM users
            WHERE LOWER(email) = LOWER(?);
            """,
            ((email or "").strip(),),
        )
        row = await cur.fetchone()
        await cur.close()
    if not row:
        return None
    valid, new_hash = pwd_context.verify_and_update(pwd or "", row["pwd_hash"])
    if not valid:
        return None
    if new_hash:
        async with connect() as conn:
            await conn.execute(
                "UPDATE users SET pwd_hash = ? WHERE id = ?;", (new_hash, row["id"])
            )
            await conn.commit()
    return _row_to_user(row)


async def get_user(user_id: str) -> Optional[models.User]:
    """Return a User object for the given id, or None if not found."""
    async with connect() as conn:
        cur = await conn.execute(
            "SELECT id, user_id, email, first_name, last_name, role FROM users WHERE id = ?;",
            (user_id,),
        )
        row = await cur.fetchone()
        await cur.close()
    if not row:
        return None
    return _row_to_user(row)


# ---------------------------
# Sessions
# ---------------------------


async def start_session(user_id: str, start_time: datetime) -> str:
    """
    Start a login session for a user and return its session id (sid).
    """
    sid = secrets.token_urlsafe(24)
    async with connect() as conn:
        await conn.execute(
            "INSERT INTO sessions(sid, user_id, start_time, end_time) VALUES(?, ?, ?, NULL);",
            (sid, user_id, start_time.isoformat(sep=" ")),
        )
        await conn.commit()
    return sid


async def end_session(sid: str, end_time: datetime) -> None:
    """Set sessions.end_time for the given sid."""
    async with connect() as conn:
        await conn.execute(
            "UPDATE sessions SET end_time = ? WHERE sid = ? AND end_time IS NULL;",
            (end_time.isoformat(sep=" "), sid),
        )
        await conn.commit()


async def session_user(sid: Optional[str]) -> Optional[models.User]:
    """The user owning an open session, or None when sid is unknown or ended."""
    if not sid:
        return None
    async with connect() as conn:
        cur = await conn.execute(
            """
            SELECT u.id, u.user_id, u.email, u.first_name, u.last_name, u.role
            FROM sessions s
            JOIN users u ON u.id = s.user_id
            WHERE s.sid = ? AND s.end_time IS NULL;
            """,
            (sid,),
        )
        row = await cur.fetchone()
        await cur.close()
    if not row:
        return None
    return _row_to_user(row)


# ---------------------------
# Products
# ---------------------------


async def list_products(
    search: Optional[str] = None,
    limit: Optional[int] = None,
    offset: Optional[int] = None,
) -> List[models.Product]:
    """
    Active products ordered by name.

    Search is case-insensitive over name/descr/category. If the query contains
    spaces, the whole phrase and each word are all matched and the union is
    returned without duplicates.
    """
    phrase = (search or "").strip().lower()
    words = [w for w in phrase.split() if w]

    terms: List[str] = []
    if len(words) > 1:
        terms.append(phrase)
        seen = {phrase}
        for w in words:
            if w not in seen:
                terms.append(w)
                seen.add(w)
    elif phrase:
        terms = [phrase]

    where = "p.is_active = 1"
    params: List[str | int] = []
    if terms:
        cond = " OR ".join(
            ["(LOWER(p.name) LIKE ? OR LOWER(p.descr) LIKE ? OR LOWER(p.category) LIKE ?)"]
            * len(terms)
        )
        where += f" AND ({cond})"
        for t in terms:
            like = f"%{t}%"
            params.extend([like, like, like])

    sql = f"SELECT {_PRODUCT_COLUMNS} FROM products p WHERE {where} ORDER BY p.name"
    if limit is not None:
        sql += " LIMIT ? OFFSET ?"
        params.extend([max(int(limit), 0), max(int(offset or 0), 0)])

    async with connect() as conn:
        cur = await conn.execute(sql + ";", tuple(params))
        rows = await cur.fetchall()
        await cur.close()
    return [_row_to_product(row) for row in rows]


async def get_product(product_id: str) -> Optional[models.Product]:
    """Fetch a product by id."""
    if not is_object_id(product_id):
        return None
    async with connect() as conn:
        cur = await conn.execute(
            f"SELECT {_PRODUCT_COLUMNS} FROM products p WHERE p.id = ?;",
            (product_id.lower(),),
        )
        row = await cur.fetchone()
        await cur.close()
    if not row:
        return None
    return _row_to_product(row)


# ---------------------------
# Cart Management
# ---------------------------


async def list_cart(user_id: str) -> List[models.CartLine]:
    """Cart lines of a user with the current product snapshot, ordered by product name."""
    async with connect() as conn:
        cur = await conn.execute(
            f"""
            SELECT c.id AS cart_id, c.qty, {_PRODUCT_COLUMNS}
            FROM cart c
            JOIN products p ON p.id = c.product_id
            WHERE c.user_id = ?
            ORDER BY p.name;
            """,
            (user_id,),
        )
        rows = await cur.fetchall()
        await cur.close()
    return [
        models.CartLine(
            id=row["cart_id"],
            product_id=row["id"],
            quantity=int(row["qty"]),
            product=_row_to_product(row),
        )
        for row in rows
    ]


async def _cart_line(user_id: str, product_id: str) -> Optional[models.CartLine]:
    for line in await list_cart(user_id):
        if line.product_id == product_id:
            return line
    return None


async def add_to_cart(user_id: str, product_id: str, qty: int = 1) -> models.CartLine:
    """
    Add qty of a product to the user's cart, merging with an existing line.

    The requested qty must reach the product's minimum order quantity and the
    merged total may not exceed stock.
    """
    product_id = _require_object_id(product_id)
    product = await get_product(product_id)
    if not product:
        raise BackendError(404, "Product not found", code="not_found")

    existing = await _cart_line(user_id, product_id)
    requested = qty or 1
    current = existing.quantity if existing else 0
    total = current + requested
    min_qty = product.min_order_quantity or 1

    if requested < min_qty:
        raise BackendError(
            400,
            f"Minimum order quantity for this product is {min_qty} items.",
            code="min_order_quantity",
        )

    if total > product.stock:
        if current > 0:
            raise BackendError(
                400,
                f"Cannot add {requested} more items. You already have {current} in "
                f"your cart, but only {product.stock} total items are available in stock.",
                code="insufficient_stock",
            )
        raise BackendError(
            400,
            f"Insufficient stock. Only {product.stock} items available, but you're "
            f"trying to add {requested} items.",
            code="insufficient_stock",
        )

    async with connect() as conn:
        if existing:
            await conn.execute(
                "UPDATE cart SET qty = ? WHERE user_id = ? AND product_id = ?;",
                (total, user_id, product_id),
            )
        else:
            await conn.execute(
                "INSERT INTO cart(id, user_id, product_id, qty) VALUES(?, ?, ?, ?);",
                (new_object_id(), user_id, product_id, total),
            )
        await conn.commit()
    return await _cart_line(user_id, product_id)


async def update_cart_item(user_id: str, product_id: str, qty: int) -> models.CartLine:
    """Set the quantity of an existing cart line, within [min order quantity, stock]."""
    product_id = _require_object_id(product_id)
    product = await get_product(product_id)
    if not product:
        raise BackendError(404, "Product not found", code="not_found")

    min_qty = product.min_order_quantity or 1
    if qty < min_qty:
        raise BackendError(
            400,
            f"Cannot reduce quantity below minimum order quantity of {min_qty} items.",
            code="below_minimum",
        )
    if qty > product.stock:
        raise BackendError(
            400,
            f"Cannot set quantity to {qty}. Only {product.stock} items available in stock.",
            code="insufficient_stock",
        )

    async with connect() as conn:
        res = await conn.execute(
            "UPDATE cart SET qty = ? WHERE user_id = ? AND product_id = ?;",
            (qty, user_id, product_id),
        )
        await conn.commit()
        if res.rowcount == 0:
            raise BackendError(404, "Cart item not found", code="not_found")
    return await _cart_line(user_id, product_id)


async def remove_from_cart(user_id: str, product_id: str) -> None:
    """Remove a single product from the user's cart."""
    product_id = _require_object_id(product_id)
    async with connect() as conn:
        res = await conn.execute(
            "DELETE FROM cart WHERE user_id = ? AND product_id = ?;",
            (user_id, product_id),
        )
        await conn.commit()
        if res.rowcount == 0:
            raise BackendError(
                404, "Cart item not found or already removed", code="not_found"
            )


async def clear_cart(user_id: str) -> None:
    """Remove all items from the user's cart."""
    async with connect() as conn:
        await conn.execute("DELETE FROM cart WHERE user_id = ?;", (user_id,))
        await conn.commit()


# ---------------------------
# Wishlist
# ---------------------------


async def list_wishlist(user_id: str) -> List[models.WishlistEntry]:
    """Wishlist entries of a user, newest first."""
    async with connect() as conn:
        cur = await conn.execute(
            f"""
            SELECT w.id AS wish_id, w.user_id AS wish_user, w.created_at, {_PRODUCT_COLUMNS}
            FROM wishlist w
            JOIN products p ON p.id = w.product_id
            WHERE w.user_id = ?
            ORDER BY w.created_at DESC, w.id;
            """,
            (user_id,),
        )
        rows = await cur.fetchall()
        await cur.close()
    return [
        models.WishlistEntry(
            id=row["wish_id"],
            user_id=row["wish_user"],
            product_id=row["id"],
            product=_row_to_product(row),
            created_at=str(row["created_at"]),
        )
        for row in rows
    ]


async def is_in_wishlist(user_id: str, product_id: str) -> bool:
    if not is_object_id(product_id):
        return False
    async with connect() as conn:
        cur = await conn.execute(
            "SELECT 1 FROM wishlist WHERE user_id = ? AND product_id = ?;",
            (user_id, product_id.lower()),
        )
        row = await cur.fetchone()
        await cur.close()
    return row is not None


async def add_to_wishlist(
    user_id: str, product_id: str, when: Optional[datetime] = None
) -> models.WishlistEntry:
    product_id = _require_object_id(product_id)
    if not await get_product(product_id):
        raise BackendError(404, "Product not found", code="not_found")
    if await is_in_wishlist(user_id, product_id):
        raise BackendError(
            400, "Product is already in your wishlist", code="already_present"
        )

    entry_id = new_object_id()
    created = when or datetime.now()
    async with connect() as conn:
        await conn.execute(
            "INSERT INTO wishlist(id, user_id, product_id, created_at) VALUES(?, ?, ?, ?);",
            (entry_id, user_id, product_id, created.isoformat(sep=" ")),
        )
        await conn.commit()
    return models.WishlistEntry(
        id=entry_id,
        user_id=user_id,
        product_id=product_id,
        created_at=created.isoformat(sep=" "),
    )


async def remove_from_wishlist(user_id: str, product_id: str) -> None:
    product_id = _require_object_id(product_id)
    async with connect() as conn:
        res = await conn.execute(
            "DELETE FROM wishlist WHERE user_id = ? AND product_id = ?;",
            (user_id, product_id),
        )
        await conn.commit()
        if res.rowcount == 0:
            raise BackendError(
                404, "Wishlist item not found or already removed", code="not_found"
            )
