"""
nexaproc/workflow/ledger.py

Goods ledger: ordered vs. shipped quantities for one sales order.

Shipped state is always computed from the delivery orders; it is never
stored on the sales order. Lines are matched by good reference when present,
otherwise by name.

An order with no lines is never fully shipped, so an empty order cannot slip
into "waiting approval".
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from ..line_items import LineItem

ZERO = Decimal("0")

LineKey = tuple[str, object]


def line_key(item: LineItem) -> LineKey:
    if item.good_id:
        return ("id", item.good_id)
    return ("name", item.name)


def shipped_quantities(deliveries: Iterable[Iterable[LineItem]]) -> dict[LineKey, Decimal]:
    """Sum shipped qty per line key across every delivery's goods."""
    shipped: dict[LineKey, Decimal] = defaultdict(lambda: ZERO)
    for goods in deliveries:
        for item in goods:
            shipped[line_key(item)] += item.qty
    return dict(shipped)


def _line_satisfied(ordered: Decimal, shipped: Decimal) -> bool:
    return ordered <= ZERO or shipped >= ordered


def ordered_quantities(order_items: Iterable[LineItem]) -> dict[LineKey, Decimal]:
    """Ordered qty per line key; duplicate order lines are added up.

    Only the delivery cap uses this. Completion is judged per line item.
    """
    ordered: dict[LineKey, Decimal] = defaultdict(lambda: ZERO)
    for item in order_items:
        ordered[line_key(item)] += item.qty
    return dict(ordered)


def is_fully_shipped(order_items: list[LineItem], shipped: dict[LineKey, Decimal]) -> bool:
    if not order_items:
        return False
    return all(_line_satisfied(item.qty, shipped.get(line_key(item), ZERO)) for item in order_items)


@dataclass(frozen=True)
class LedgerLine:
    item: LineItem
    ordered: Decimal
    shipped: Decimal

    @property
    def remaining(self) -> Decimal:
        return max(self.ordered - self.shipped, ZERO)

    @property
    def satisfied(self) -> bool:
        return _line_satisfied(self.ordered, self.shipped)

    def to_dict(self) -> dict:
        return {
            "good_id": self.item.good_id,
            "name": self.item.name,
            "unit": self.item.unit,
            "ordered_qty": str(self.ordered),
            "shipped_qty": str(self.shipped),
            "remaining_qty": str(self.remaining),
        }


@dataclass(frozen=True)
class LedgerSummary:
    lines: list[LedgerLine]
    fully_shipped: bool

    def to_dict(self) -> dict:
        return {
            "fully_shipped": self.fully_shipped,
            "lines": [line.to_dict() for line in self.lines],
        }


def remaining_quantities(
    order_items: list[LineItem], deliveries: Iterable[Iterable[LineItem]]
) -> dict[LineKey, Decimal]:
    """Per line key: ordered minus shipped, floored at zero."""
    shipped = shipped_quantities(deliveries)
    return {
        key: max(qty - shipped.get(key, ZERO), ZERO) for key, qty in ordered_quantities(order_items).items()
    }


def summarize(order_items: list[LineItem], deliveries: Iterable[Iterable[LineItem]]) -> LedgerSummary:
    shipped = shipped_quantities(deliveries)
    lines = [
        LedgerLine(item=item, ordered=item.qty, shipped=shipped.get(line_key(item), ZERO))
        for item in order_items
    ]
    return LedgerSummary(lines=lines, fully_shipped=is_fully_shipped(order_items, shipped))
