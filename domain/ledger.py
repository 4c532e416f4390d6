"""
Domain: Ledger (settlement record).

Contract excerpts implemented here:
- A ledger is created exactly once per completed order and is immutable.
- line_total = quantity * unit_price; total_amount = sum of line totals.
- Zero quantities are allowed (ordered but not shipped); negatives are not.
- The ledger carries the order's phase so rollups never re-derive it.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from .errors import InvalidInput
from .order import OrderKind, OrderPhase
from .time import require_utc_timestamp

UNCATEGORIZED = "uncategorized"
UNKNOWN_PRODUCT_CODE = "UNKNOWN"


@dataclass(frozen=True, slots=True)
class LedgerLine:
    product_id: str
    product_code: str
    category: str
    quantity: int
    unit_price: Decimal
    product_name: Optional[str] = None

    def __post_init__(self) -> None:
        if self.quantity < 0:
            raise InvalidInput(f"shipped quantity must be >= 0 (product {self.product_id})")
        if self.unit_price < 0:
            raise InvalidInput(f"unit_price must be >= 0 (product {self.product_id})")

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True, slots=True)
class Ledger:
    ledger_id: str
    ledger_number: str
    kind: OrderKind
    order_number: str
    phase: OrderPhase
    counterparty_id: str
    counterparty_name: str
    lines: tuple[LedgerLine, ...]
    settled_at: datetime
    settled_by: str
    settled_by_name: Optional[str] = None
    notes: Optional[str] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("settled_at", self.settled_at)

    @property
    def total_amount(self) -> Decimal:
        return sum((line.line_total for line in self.lines), Decimal("0"))

    @property
    def item_count(self) -> int:
        return len(self.lines)

    @property
    def total_quantity(self) -> int:
        return sum(line.quantity for line in self.lines)


__all__ = ["Ledger", "LedgerLine", "UNCATEGORIZED", "UNKNOWN_PRODUCT_CODE"]
