"""
Record constructors and input validation.

User input is validated here, before a record exists; rejected input raises
`ValidationError` synchronously to the caller.
"""
from __future__ import annotations

import time
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Callable, Dict, Iterable, Optional, Union

from agrofacil.domain.models import Cost, CostCategory, Product, Sale
from agrofacil.errors import ValidationError

CENTS = Decimal("0.01")

AmountInput = Union[str, int, float, Decimal]


class IdGenerator:
    """
    Time-based identifier source.

    Ids are millisecond timestamps, bumped so every id is strictly greater than
    any id issued or observed before. Seed it with the ids already stored so a
    restarted process never hands out an existing id.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._last = 0

    def observe(self, ids: Iterable[int]) -> None:
        for value in ids:
            if value > self._last:
                self._last = value

    def next_id(self) -> int:
        candidate = int(self._clock() * 1000)
        if candidate <= self._last:
            candidate = self._last + 1
        self._last = candidate
        return candidate


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_amount(value: AmountInput, field: str = "price") -> Decimal:
    """
    Parse a money amount typed by a user.

    Accepts a comma as decimal separator ("10,50"). Rejects non-numeric,
    non-finite and negative values. The result is rounded to cents.
    """
    if isinstance(value, bool):
        raise ValidationError(f"Invalid {field}: {value!r}")
    if isinstance(value, str):
        text = value.strip().replace(",", ".")
        if not text:
            raise ValidationError(f"{field} is required")
    else:
        text = str(value)
    try:
        amount = Decimal(text)
    except InvalidOperation as exc:
        raise ValidationError(f"Invalid {field}: {value!r}") from exc
    if not amount.is_finite():
        raise ValidationError(f"Invalid {field}: {value!r}")
    if amount < 0:
        raise ValidationError(f"{field} must not be negative")
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def require_text(value: Optional[str], field: str) -> str:
    text = (value or "").strip()
    if not text:
        raise ValidationError(f"{field} is required")
    return text


def parse_quantity(value: Union[str, int]) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"Invalid quantity: {value!r}")
    try:
        quantity = int(str(value).strip())
    except ValueError as exc:
        raise ValidationError(f"Invalid quantity: {value!r}") from exc
    if quantity <= 0:
        raise ValidationError("quantity must be a positive integer")
    return quantity


def parse_category(value: Union[str, CostCategory, None]) -> CostCategory:
    if isinstance(value, CostCategory):
        return value
    text = require_text(value, "category").lower()
    legacy = {"insumo": "supply", "transporte": "transport", "outro": "other"}
    try:
        return CostCategory(legacy.get(text, text))
    except ValueError as exc:
        allowed = ", ".join(c.value for c in CostCategory)
        raise ValidationError(f"Invalid category {value!r}; expected one of: {allowed}") from exc


def new_product(ids: IdGenerator, name: Optional[str], price: AmountInput) -> Product:
    clean_name = require_text(name, "name")
    clean_price = parse_amount(price, "price")
    return Product(id=ids.next_id(), name=clean_name, price=clean_price)


def edit_product(
    product: Product,
    name: Optional[str] = None,
    price: Optional[AmountInput] = None,
) -> Product:
    """Return an edited, unsynced copy of `product`. Omitted fields are kept."""
    changes: Dict[str, Any] = {"synced": False}
    if name is not None:
        changes["name"] = require_text(name, "name")
    if price is not None:
        changes["price"] = parse_amount(price, "price")
    return product.model_copy(update=changes)


def new_sale(
    ids: IdGenerator,
    product: Product,
    quantity: Union[str, int],
    now: Optional[datetime] = None,
) -> Sale:
    """
    Build a sale from the product as it is right now.

    The product name and the total are copied into the sale and never
    recomputed afterwards.
    """
    qty = parse_quantity(quantity)
    total = (product.price * qty).quantize(CENTS, rounding=ROUND_HALF_UP)
    return Sale(
        id=ids.next_id(),
        product_id=product.id,
        product_name=product.name,
        quantity=qty,
        total_amount=total,
        created_at=now or _utcnow(),
    )


def new_cost(
    ids: IdGenerator,
    description: Optional[str],
    amount: AmountInput,
    category: Union[str, CostCategory, None],
    now: Optional[datetime] = None,
) -> Cost:
    clean_description = require_text(description, "description")
    clean_amount = parse_amount(amount, "amount")
    clean_category = parse_category(category)
    return Cost(
        id=ids.next_id(),
        description=clean_description,
        amount=clean_amount,
        category=clean_category,
        occurred_at=now or _utcnow(),
    )


__all__ = [
    "CENTS",
    "IdGenerator",
    "parse_amount",
    "parse_quantity",
    "parse_category",
    "require_text",
    "new_product",
    "edit_product",
    "new_sale",
    "new_cost",
]
