"""
nexaproc/line_items.py

Goods line items: typed values, JSON codec and money helpers.

Every document stores its goods as a JSON text column. The column is opaque
to the database: it is decoded into dataclasses before use and re-encoded
after mutation. Decode(encode(items)) must give back equal items, so
quantities and prices travel as Decimal strings, never floats.

Request payloads (untrusted) go through parse_line_items / parse_requested_goods,
which raise ValidationError. Stored JSON (trusted, possibly legacy) goes
through load_line_items / load_requested_goods, which never raise.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable

from .errors import ValidationError

ZERO = Decimal("0.00")


# ---------------------------------------------------------------------
# Money helpers
# ---------------------------------------------------------------------
def to_decimal(value) -> Decimal:
    """Convert Numeric/None to Decimal safely."""
    if value is None:
        return ZERO
    return Decimal(str(value))


def money(x: Decimal) -> Decimal:
    return x.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def parse_decimal(value: Any, *, field_name: str) -> Decimal:
    """Parse a decimal from user input (accepts comma or dot). Empty means zero."""
    if value is None:
        return Decimal("0")
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a number")
    raw = str(value).strip().replace(",", ".")
    if raw == "":
        return Decimal("0")
    try:
        parsed = Decimal(raw)
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field_name} must be a number", value=str(value)) from None
    if not parsed.is_finite():
        raise ValidationError(f"{field_name} must be a number", value=str(value))
    return parsed


def _stored_decimal(value: Any) -> Decimal:
    """Decimal from stored JSON; legacy junk reads as zero."""
    try:
        parsed = Decimal(str(value if value not in (None, "") else "0"))
    except (InvalidOperation, ValueError):
        return Decimal("0")
    return parsed if parsed.is_finite() else Decimal("0")


def _optional_int(value: Any, *, field_name: str) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be an integer", value=str(value)) from None


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


# ---------------------------------------------------------------------
# Line item types
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class LineItem:
    """One goods row on a quotation, sales order, delivery order or invoice."""

    good_id: int | None = None
    name: str | None = None
    description: str | None = None
    unit: str | None = None
    qty: Decimal = field(default_factory=lambda: Decimal("0"))
    price: Decimal = field(default_factory=lambda: Decimal("0"))
    delivery_time: int | None = None

    @property
    def subtotal(self) -> Decimal:
        return money(self.qty * self.price)

    @property
    def label(self) -> str:
        return self.name or self.description or (f"good #{self.good_id}" if self.good_id else "-")

    def with_qty(self, qty: Decimal) -> "LineItem":
        return replace(self, qty=qty)

    def to_dict(self) -> dict:
        return {
            "good_id": self.good_id,
            "name": self.name,
            "description": self.description,
            "unit": self.unit,
            "qty": str(self.qty),
            "price": str(self.price),
            "delivery_time": self.delivery_time,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "LineItem":
        return cls(
            good_id=data.get("good_id"),
            name=data.get("name"),
            description=data.get("description"),
            unit=data.get("unit"),
            qty=_stored_decimal(data.get("qty")),
            price=_stored_decimal(data.get("price")),
            delivery_time=data.get("delivery_time"),
        )


@dataclass(frozen=True)
class RequestedGood:
    """RFQ row: either a reference to an existing Good or a free-text name."""

    type: str = "other"
    good_id: int | None = None
    name: str | None = None

    def to_dict(self) -> dict:
        return {"type": self.type, "good_id": self.good_id, "name": self.name}

    @classmethod
    def from_dict(cls, data: dict) -> "RequestedGood":
        return cls(
            type=data.get("type") or ("existing" if data.get("good_id") else "other"),
            good_id=data.get("good_id"),
            name=data.get("name"),
        )


# ---------------------------------------------------------------------
# Stored JSON codec
# ---------------------------------------------------------------------
def _load_dicts(raw: str | None) -> list[dict]:
    if not raw:
        return []
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        return []
    if not isinstance(parsed, list):
        return []
    return [row for row in parsed if isinstance(row, dict)]


def dump_line_items(items: Iterable[LineItem]) -> str:
    return json.dumps([item.to_dict() for item in items], ensure_ascii=False)


def load_line_items(raw: str | None) -> list[LineItem]:
    return [LineItem.from_dict(row) for row in _load_dicts(raw)]


def dump_requested_goods(items: Iterable[RequestedGood]) -> str:
    return json.dumps([item.to_dict() for item in items], ensure_ascii=False)


def load_requested_goods(raw: str | None) -> list[RequestedGood]:
    return [RequestedGood.from_dict(row) for row in _load_dicts(raw)]


# ---------------------------------------------------------------------
# Request payload parsing
# ---------------------------------------------------------------------
def parse_line_items(raw: Any, *, field_name: str = "goods") -> list[LineItem]:
    """Validate a goods list from a JSON payload."""
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValidationError(f"{field_name} must be a list")

    items = []
    for index, row in enumerate(raw, start=1):
        if not isinstance(row, dict):
            raise ValidationError(f"{field_name}[{index}] must be an object")

        good_id = _optional_int(row.get("good_id"), field_name=f"{field_name}[{index}].good_id")
        name = _optional_str(row.get("name"))
        if good_id is None and name is None:
            raise ValidationError(f"{field_name}[{index}] needs a good_id or a name")

        items.append(
            LineItem(
                good_id=good_id,
                name=name,
                description=_optional_str(row.get("description")),
                unit=_optional_str(row.get("unit")),
                qty=parse_decimal(row.get("qty"), field_name=f"{field_name}[{index}].qty"),
                price=parse_decimal(row.get("price"), field_name=f"{field_name}[{index}].price"),
                delivery_time=_optional_int(
                    row.get("delivery_time"), field_name=f"{field_name}[{index}].delivery_time"
                ),
            )
        )
    return items


def parse_requested_goods(raw: Any) -> list[RequestedGood]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValidationError("goods must be a list")

    items = []
    for index, row in enumerate(raw, start=1):
        if not isinstance(row, dict):
            raise ValidationError(f"goods[{index}] must be an object")
        good_id = _optional_int(row.get("good_id"), field_name=f"goods[{index}].good_id")
        name = _optional_str(row.get("name"))
        if good_id is None and name is None:
            raise ValidationError(f"goods[{index}] needs a good_id or a name")
        items.append(
            RequestedGood(
                type=row.get("type") or ("existing" if good_id else "other"),
                good_id=good_id,
                name=name,
            )
        )
    return items


# ---------------------------------------------------------------------
# Totals
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class Totals:
    total_amount: Decimal
    tax_amount: Decimal
    grand_total: Decimal


def compute_totals(items: Iterable[LineItem], tax_rate_percent, include_tax: bool = False) -> Totals:
    """
    Compute quotation totals from the lines.

    include_tax=False: tax is added on top of the line sum.
    include_tax=True:  line prices already contain the tax; it is carved out.
    """
    raw_total = sum((item.qty * item.price for item in items), Decimal("0"))
    rate = to_decimal(tax_rate_percent)

    if include_tax:
        tax = raw_total * rate / (Decimal("100") + rate)
        return Totals(
            total_amount=money(raw_total - tax),
            tax_amount=money(tax),
            grand_total=money(raw_total),
        )

    tax = raw_total * rate / Decimal("100")
    return Totals(
        total_amount=money(raw_total),
        tax_amount=money(tax),
        grand_total=money(raw_total + tax),
    )
