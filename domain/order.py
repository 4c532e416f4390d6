"""
Domain: Sale and purchase orders.

Contract excerpts implemented here:
- Every order is stamped with a phase (regular / additional) exactly once, at
  creation, from the cutoff window snapshot read in the creation transaction.
  Later window transitions never change it.
- Open window: phase regular, status placed. Closed window: phase additional,
  status confirmed (late orders are auto-confirmed).
- Status advances along a fixed transition table until a terminal state. Only
  confirmed orders may be settled.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, Sequence

from .cutoff import CutoffWindow
from .errors import InvalidInput, InvalidState
from .sequence import DocumentDomain
from .time import require_utc_timestamp


class OrderKind(str, Enum):
    SALE = "sale"
    PURCHASE = "purchase"

    @property
    def order_domain(self) -> DocumentDomain:
        if self is OrderKind.SALE:
            return DocumentDomain.SALE_ORDER
        return DocumentDomain.PURCHASE_ORDER

    @property
    def ledger_domain(self) -> DocumentDomain:
        if self is OrderKind.SALE:
            return DocumentDomain.SALE_LEDGER
        return DocumentDomain.PURCHASE_LEDGER


class OrderStatus(str, Enum):
    PLACED = "placed"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REJECTED = "rejected"
    PENDED = "pended"


class OrderPhase(str, Enum):
    REGULAR = "regular"
    ADDITIONAL = "additional"


# completed is reachable only through settlement, never through a plain transition.
_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PLACED: frozenset(
        {OrderStatus.CONFIRMED, OrderStatus.PENDED, OrderStatus.REJECTED, OrderStatus.CANCELLED}
    ),
    OrderStatus.PENDED: frozenset({OrderStatus.CONFIRMED, OrderStatus.REJECTED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.CANCELLED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.REJECTED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset(status for status, targets in _TRANSITIONS.items() if not targets)


def classify_new_order(window: CutoffWindow) -> tuple[OrderStatus, OrderPhase]:
    """
    Decide (status, phase) for an order created under `window`.

    Only the window's is_closed flag matters; the order timestamp relative to
    window_start is deliberately ignored.
    """

    if window.is_closed:
        return OrderStatus.CONFIRMED, OrderPhase.ADDITIONAL
    return OrderStatus.PLACED, OrderPhase.REGULAR


@dataclass(frozen=True, slots=True)
class OrderLine:
    product_id: str
    quantity: int
    unit_price: Decimal
    product_name: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.product_id:
            raise InvalidInput("product_id is required")
        if self.quantity < 0:
            raise InvalidInput(f"quantity must be >= 0 (product {self.product_id})")
        if self.unit_price < 0:
            raise InvalidInput(f"unit_price must be >= 0 (product {self.product_id})")

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True, slots=True)
class Order:
    """
    Immutable snapshot of an order document.

    Status changes produce new instances through `transition` / `completed`.
    """

    order_number: str
    kind: OrderKind
    status: OrderStatus
    phase: OrderPhase
    counterparty_id: str
    counterparty_name: str
    lines: tuple[OrderLine, ...]
    placed_at: datetime
    placed_by: str
    confirmed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    ledger_number: Optional[str] = None
    ledger_id: Optional[str] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("placed_at", self.placed_at)
        for name in ("confirmed_at", "completed_at", "updated_at"):
            value = getattr(self, name)
            if value is not None:
                require_utc_timestamp(name, value)

    @property
    def total_amount(self) -> Decimal:
        return sum((line.line_total for line in self.lines), Decimal("0"))

    @property
    def total_quantity(self) -> int:
        return sum(line.quantity for line in self.lines)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def can_transition_to(self, target: OrderStatus) -> bool:
        return target in _TRANSITIONS[self.status]

    def transition(self, target: OrderStatus, now: datetime) -> "Order":
        """Return the order moved to `target`, or raise InvalidState."""

        if target is OrderStatus.COMPLETED:
            raise InvalidState("Orders are completed only by settlement")
        if not self.can_transition_to(target):
            raise InvalidState(
                f"Order {self.order_number} cannot move from {self.status.value} to {target.value}"
            )
        require_utc_timestamp("now", now)
        confirmed_at = now if target is OrderStatus.CONFIRMED else self.confirmed_at
        return replace(self, status=target, confirmed_at=confirmed_at, updated_at=now)

    def completed(self, *, ledger_number: str, ledger_id: str, now: datetime) -> "Order":
        """Return the order as settled; phase and lines are carried over untouched."""

        if self.status is OrderStatus.COMPLETED:
            raise InvalidState(f"Order {self.order_number} is already completed")
        if self.status is not OrderStatus.CONFIRMED:
            raise InvalidState(
                f"Order {self.order_number} must be confirmed before settlement (status: {self.status.value})"
            )
        require_utc_timestamp("now", now)
        return replace(
            self,
            status=OrderStatus.COMPLETED,
            completed_at=now,
            ledger_number=ledger_number,
            ledger_id=ledger_id,
            updated_at=now,
        )


def require_order_lines(lines: Sequence[OrderLine]) -> tuple[OrderLine, ...]:
    if not lines:
        raise InvalidInput("An order needs at least one line")
    return tuple(lines)


__all__ = [
    "OrderKind",
    "OrderStatus",
    "OrderPhase",
    "OrderLine",
    "Order",
    "TERMINAL_STATUSES",
    "classify_new_order",
    "require_order_lines",
]
