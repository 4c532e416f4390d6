"""
Order repository (persistence).

This module provides *only* persistence operations for Order documents
(`orders` collection, keyed by order number). Status rules and phase stamping
live in domain/order.py and services/order_service.py.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, List, Mapping, Optional

from domain.order import Order, OrderKind, OrderLine, OrderPhase, OrderStatus
from repositories.document_store import DocumentStore, Filter, Transaction
from repositories.serialization import (
    decimal_to_str,
    optional_iso_utc,
    optional_utc_datetime,
    parse_utc_datetime,
    to_decimal,
    to_iso_utc,
)

_ORDERS: str = "orders"


def _row_to_line(row: Mapping[str, Any]) -> OrderLine:
    return OrderLine(
        product_id=str(row["product_id"]),
        quantity=int(row["quantity"]),
        unit_price=to_decimal(row["unit_price"]),
        product_name=row.get("product_name"),
    )


def _row_to_order(row: Mapping[str, Any]) -> Order:
    """Convert a stored document into an Order."""

    return Order(
        order_number=str(row["order_number"]),
        kind=OrderKind(str(row["kind"])),
        status=OrderStatus(str(row["status"])),
        phase=OrderPhase(str(row["phase"])),
        counterparty_id=str(row["counterparty_id"]),
        counterparty_name=str(row.get("counterparty_name") or ""),
        lines=tuple(_row_to_line(line) for line in row.get("lines") or []),
        placed_at=parse_utc_datetime(row["placed_at_utc"]),
        placed_by=str(row.get("placed_by") or ""),
        confirmed_at=optional_utc_datetime(row.get("confirmed_at_utc")),
        completed_at=optional_utc_datetime(row.get("completed_at_utc")),
        ledger_number=row.get("ledger_number"),
        ledger_id=row.get("ledger_id"),
        updated_at=optional_utc_datetime(row.get("updated_at_utc")),
    )


def _order_to_row(order: Order) -> dict[str, Any]:
    return {
        "order_number": order.order_number,
        "kind": order.kind.value,
        "status": order.status.value,
        "phase": order.phase.value,
        "counterparty_id": order.counterparty_id,
        "counterparty_name": order.counterparty_name,
        "lines": [
            {
                "product_id": line.product_id,
                "product_name": line.product_name,
                "quantity": line.quantity,
                "unit_price": decimal_to_str(line.unit_price),
                "line_total": decimal_to_str(line.line_total),
            }
            for line in order.lines
        ],
        "total_amount": decimal_to_str(order.total_amount),
        "total_quantity": order.total_quantity,
        "placed_at_utc": to_iso_utc(order.placed_at, name="placed_at"),
        "placed_by": order.placed_by,
        "confirmed_at_utc": optional_iso_utc(order.confirmed_at, name="confirmed_at"),
        "completed_at_utc": optional_iso_utc(order.completed_at, name="completed_at"),
        "ledger_number": order.ledger_number,
        "ledger_id": order.ledger_id,
        "updated_at_utc": optional_iso_utc(order.updated_at, name="updated_at"),
    }


def read_order(txn: Transaction, order_number: str) -> Optional[Order]:
    row = txn.get(_ORDERS, order_number)
    if row is None:
        return None
    return _row_to_order(row)


def create_order(txn: Transaction, order: Order) -> None:
    """Insert a new order; the commit fails if the number is already taken."""

    txn.create(_ORDERS, order.order_number, _order_to_row(order))


def save_order(txn: Transaction, order: Order) -> None:
    txn.set(_ORDERS, order.order_number, _order_to_row(order))


def get_order(store: DocumentStore, order_number: str) -> Optional[Order]:
    row = store.get(_ORDERS, order_number)
    if row is None:
        return None
    return _row_to_order(row)


def list_orders(
    store: DocumentStore,
    *,
    kind: Optional[OrderKind] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    counterparty_id: Optional[str] = None,
    statuses: Optional[Iterable[OrderStatus]] = None,
    phase: Optional[OrderPhase] = None,
) -> List[Order]:
    """
    List orders placed in [start, end), oldest first.

    Every argument is an optional filter.
    """

    filters: List[Filter] = []
    if kind is not None:
        filters.append(("kind", "==", kind.value))
    if start is not None:
        filters.append(("placed_at_utc", ">=", to_iso_utc(start, name="start")))
    if end is not None:
        filters.append(("placed_at_utc", "<", to_iso_utc(end, name="end")))
    if counterparty_id is not None:
        filters.append(("counterparty_id", "==", counterparty_id))
    if statuses is not None:
        filters.append(("status", "in", [status.value for status in statuses]))
    if phase is not None:
        filters.append(("phase", "==", phase.value))

    rows = store.query(_ORDERS, filters, order_by="placed_at_utc")
    return [_row_to_order(row) for row in rows]


__all__ = ["read_order", "create_order", "save_order", "get_order", "list_orders"]
