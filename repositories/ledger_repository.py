"""
Ledger repository (persistence).

Ledgers are written once, inside the settlement transaction, and never
updated. Documents live in the `ledgers` collection keyed by ledger id.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Mapping, Optional

from domain.ledger import Ledger, LedgerLine, UNCATEGORIZED, UNKNOWN_PRODUCT_CODE
from domain.order import OrderKind, OrderPhase
from repositories.document_store import DocumentStore, Filter, Transaction
from repositories.serialization import decimal_to_str, parse_utc_datetime, to_decimal, to_iso_utc

_LEDGERS: str = "ledgers"


def _row_to_line(row: Mapping[str, Any]) -> LedgerLine:
    return LedgerLine(
        product_id=str(row["product_id"]),
        product_code=str(row.get("product_code") or UNKNOWN_PRODUCT_CODE),
        category=str(row.get("category") or UNCATEGORIZED),
        quantity=int(row["quantity"]),
        unit_price=to_decimal(row["unit_price"]),
        product_name=row.get("product_name"),
    )


def _row_to_ledger(row: Mapping[str, Any]) -> Ledger:
    """Convert a stored document into a Ledger."""

    return Ledger(
        ledger_id=str(row["ledger_id"]),
        ledger_number=str(row["ledger_number"]),
        kind=OrderKind(str(row["kind"])),
        order_number=str(row["order_number"]),
        phase=OrderPhase(str(row["phase"])),
        counterparty_id=str(row["counterparty_id"]),
        counterparty_name=str(row.get("counterparty_name") or ""),
        lines=tuple(_row_to_line(line) for line in row.get("lines") or []),
        settled_at=parse_utc_datetime(row["settled_at_utc"]),
        settled_by=str(row.get("settled_by") or ""),
        settled_by_name=row.get("settled_by_name"),
        notes=row.get("notes"),
    )


def _ledger_to_row(ledger: Ledger) -> dict[str, Any]:
    return {
        "ledger_id": ledger.ledger_id,
        "ledger_number": ledger.ledger_number,
        "kind": ledger.kind.value,
        "order_number": ledger.order_number,
        "phase": ledger.phase.value,
        "counterparty_id": ledger.counterparty_id,
        "counterparty_name": ledger.counterparty_name,
        "lines": [
            {
                "product_id": line.product_id,
                "product_code": line.product_code,
                "product_name": line.product_name,
                "category": line.category,
                "quantity": line.quantity,
                "unit_price": decimal_to_str(line.unit_price),
                "line_total": decimal_to_str(line.line_total),
            }
            for line in ledger.lines
        ],
        "total_amount": decimal_to_str(ledger.total_amount),
        "item_count": ledger.item_count,
        "total_quantity": ledger.total_quantity,
        "settled_at_utc": to_iso_utc(ledger.settled_at, name="settled_at"),
        "settled_by": ledger.settled_by,
        "settled_by_name": ledger.settled_by_name,
        "notes": ledger.notes,
    }


def create_ledger(txn: Transaction, ledger: Ledger) -> None:
    txn.create(_LEDGERS, ledger.ledger_id, _ledger_to_row(ledger))


def get_ledger(store: DocumentStore, ledger_id: str) -> Optional[Ledger]:
    row = store.get(_LEDGERS, ledger_id)
    if row is None:
        return None
    return _row_to_ledger(row)


def get_ledger_by_number(store: DocumentStore, ledger_number: str) -> Optional[Ledger]:
    rows = store.query(_LEDGERS, [("ledger_number", "==", ledger_number)], limit=1)
    if not rows:
        return None
    return _row_to_ledger(rows[0])


def list_ledgers(
    store: DocumentStore,
    *,
    kind: Optional[OrderKind] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    counterparty_id: Optional[str] = None,
    order_number: Optional[str] = None,
    phase: Optional[OrderPhase] = None,
) -> List[Ledger]:
    """List ledgers settled in [start, end), oldest first."""

    filters: List[Filter] = []
    if kind is not None:
        filters.append(("kind", "==", kind.value))
    if start is not None:
        filters.append(("settled_at_utc", ">=", to_iso_utc(start, name="start")))
    if end is not None:
        filters.append(("settled_at_utc", "<", to_iso_utc(end, name="end")))
    if counterparty_id is not None:
        filters.append(("counterparty_id", "==", counterparty_id))
    if order_number is not None:
        filters.append(("order_number", "==", order_number))
    if phase is not None:
        filters.append(("phase", "==", phase.value))

    rows = store.query(_LEDGERS, filters, order_by="settled_at_utc")
    return [_row_to_ledger(row) for row in rows]


__all__ = ["create_ledger", "get_ledger", "get_ledger_by_number", "list_ledgers"]
