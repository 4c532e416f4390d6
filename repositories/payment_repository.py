"""
Payment repository (persistence).

Customer collections and supplier payouts share the `payments` collection,
keyed by payment id and distinguished by `direction`.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Mapping, Optional

from domain.payment import PaymentDirection, PaymentMethod, PaymentRecord, TaxInvoice
from repositories.document_store import DocumentStore, Filter, Transaction
from repositories.serialization import (
    decimal_to_str,
    parse_utc_datetime,
    to_decimal,
    to_iso_utc,
)

_PAYMENTS: str = "payments"


def _row_to_tax_invoice(row: Optional[Mapping[str, Any]]) -> Optional[TaxInvoice]:
    if not row:
        return None
    return TaxInvoice(
        invoice_number=str(row["invoice_number"]),
        issue_date=parse_utc_datetime(row["issue_date_utc"]),
        bank_account=str(row.get("bank_account") or ""),
        deposit_date=parse_utc_datetime(row["deposit_date_utc"]),
    )


def _tax_invoice_to_row(invoice: Optional[TaxInvoice]) -> Optional[dict[str, Any]]:
    if invoice is None:
        return None
    return {
        "invoice_number": invoice.invoice_number,
        "issue_date_utc": to_iso_utc(invoice.issue_date, name="issue_date"),
        "bank_account": invoice.bank_account,
        "deposit_date_utc": to_iso_utc(invoice.deposit_date, name="deposit_date"),
    }


def _row_to_payment(row: Mapping[str, Any]) -> PaymentRecord:
    return PaymentRecord(
        payment_id=str(row["payment_id"]),
        document_number=str(row["document_number"]),
        direction=PaymentDirection(str(row["direction"])),
        counterparty_id=str(row["counterparty_id"]),
        counterparty_name=str(row.get("counterparty_name") or ""),
        amount=to_decimal(row["amount"]),
        method=PaymentMethod(str(row["method"])),
        occurred_at=parse_utc_datetime(row["occurred_at_utc"]),
        processed_by=str(row.get("processed_by") or ""),
        processed_by_name=str(row.get("processed_by_name") or ""),
        created_at=parse_utc_datetime(row["created_at_utc"]),
        tax_invoice=_row_to_tax_invoice(row.get("tax_invoice")),
        notes=row.get("notes"),
    )


def _payment_to_row(payment: PaymentRecord) -> dict[str, Any]:
    return {
        "payment_id": payment.payment_id,
        "document_number": payment.document_number,
        "direction": payment.direction.value,
        "counterparty_id": payment.counterparty_id,
        "counterparty_name": payment.counterparty_name,
        "amount": decimal_to_str(payment.amount),
        "method": payment.method.value,
        "occurred_at_utc": to_iso_utc(payment.occurred_at, name="occurred_at"),
        "processed_by": payment.processed_by,
        "processed_by_name": payment.processed_by_name,
        "created_at_utc": to_iso_utc(payment.created_at, name="created_at"),
        "tax_invoice": _tax_invoice_to_row(payment.tax_invoice),
        "notes": payment.notes,
    }


def create_payment(txn: Transaction, payment: PaymentRecord) -> None:
    txn.create(_PAYMENTS, payment.payment_id, _payment_to_row(payment))


def get_payment(store: DocumentStore, payment_id: str) -> Optional[PaymentRecord]:
    row = store.get(_PAYMENTS, payment_id)
    if row is None:
        return None
    return _row_to_payment(row)


def get_payment_by_number(store: DocumentStore, document_number: str) -> Optional[PaymentRecord]:
    rows = store.query(_PAYMENTS, [("document_number", "==", document_number)], limit=1)
    if not rows:
        return None
    return _row_to_payment(rows[0])


def list_payments(
    store: DocumentStore,
    *,
    direction: Optional[PaymentDirection] = None,
    counterparty_id: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> List[PaymentRecord]:
    """List payments that occurred in [start, end), oldest first."""

    filters: List[Filter] = []
    if direction is not None:
        filters.append(("direction", "==", direction.value))
    if counterparty_id is not None:
        filters.append(("counterparty_id", "==", counterparty_id))
    if start is not None:
        filters.append(("occurred_at_utc", ">=", to_iso_utc(start, name="start")))
    if end is not None:
        filters.append(("occurred_at_utc", "<", to_iso_utc(end, name="end")))

    rows = store.query(_PAYMENTS, filters, order_by="occurred_at_utc")
    return [_row_to_payment(row) for row in rows]


__all__ = ["create_payment", "get_payment", "get_payment_by_number", "list_payments"]
