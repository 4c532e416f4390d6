"""
Domain: Sequential business document numbers.

Contract excerpts implemented here:
- Document numbers are formatted PREFIX-YYMMDD-NNN.
- NNN is zero-padded to at least 3 digits; it is never capped and never wraps.
- A counter exists per document domain. Its number restarts at 1 whenever the
  business day (YYMMDD) changes.

This module is pure. Atomicity of the read-modify-write lives with the
sequence service and the document store.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class DocumentDomain(str, Enum):
    SALE_ORDER = "sale_order"
    PURCHASE_ORDER = "purchase_order"
    SALE_LEDGER = "sale_ledger"
    PURCHASE_LEDGER = "purchase_ledger"
    CUSTOMER_COLLECTION = "customer_collection"
    SUPPLIER_PAYOUT = "supplier_payout"

    @property
    def prefix(self) -> str:
        return _PREFIXES[self]


_PREFIXES: dict[DocumentDomain, str] = {
    DocumentDomain.SALE_ORDER: "SO",
    DocumentDomain.PURCHASE_ORDER: "PO",
    DocumentDomain.SALE_LEDGER: "SL",
    DocumentDomain.PURCHASE_LEDGER: "PL",
    DocumentDomain.CUSTOMER_COLLECTION: "CM",
    DocumentDomain.SUPPLIER_PAYOUT: "SP",
}


def format_document_number(domain: DocumentDomain, date_key: str, number: int) -> str:
    """
    Render a document number.

    Example:
        format_document_number(DocumentDomain.SALE_LEDGER, "251017", 47)
        # 'SL-251017-047'
        format_document_number(DocumentDomain.SALE_LEDGER, "251017", 1234)
        # 'SL-251017-1234'
    """

    if number < 1:
        raise ValueError("document number must be >= 1")
    if len(date_key) != 6 or not date_key.isdigit():
        raise ValueError("date_key must be a 6-digit YYMMDD string")
    return f"{domain.prefix}-{date_key}-{number:03d}"


def parse_document_number(value: str) -> tuple[str, str, int]:
    """Split a document number into (prefix, date_key, number)."""

    parts = value.split("-")
    if len(parts) != 3 or not parts[1].isdigit() or not parts[2].isdigit():
        raise ValueError(f"Malformed document number: {value!r}")
    return parts[0], parts[1], int(parts[2])


def document_sort_key(value: str) -> tuple[str, str, int]:
    """
    Ordering key for document numbers.

    Compares by date key, then numerically, so SL-251017-1000 sorts after
    SL-251017-999. Malformed numbers sort by their raw text.
    """

    try:
        prefix, date_key, number = parse_document_number(value)
    except ValueError:
        return ("", value, 0)
    return (date_key, prefix, number)


@dataclass(frozen=True, slots=True)
class Counter:
    """
    Last number handed out for a document domain on a given business day.

    Invariant: for a fixed (domain, date_key), last_number only grows.
    """

    domain: DocumentDomain
    date_key: str
    last_number: int

    @staticmethod
    def fresh(domain: DocumentDomain, date_key: str) -> "Counter":
        return Counter(domain=domain, date_key=date_key, last_number=0)

    def advance(self, date_key: str) -> "Counter":
        """
        Return the counter after handing out the next number for `date_key`.

        Same day: last_number + 1. Different day: restart at 1 and adopt the
        new date_key.
        """

        if date_key == self.date_key:
            return Counter(domain=self.domain, date_key=date_key, last_number=self.last_number + 1)
        return Counter(domain=self.domain, date_key=date_key, last_number=1)

    @property
    def document_number(self) -> str:
        return format_document_number(self.domain, self.date_key, self.last_number)


__all__ = [
    "DocumentDomain",
    "Counter",
    "format_document_number",
    "parse_document_number",
    "document_sort_key",
]
