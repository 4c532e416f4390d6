"""
Counter repository (persistence).

One document per document domain in the `counters` collection. The sequence
service owns the read-modify-write; this module only converts documents.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from domain.sequence import Counter, DocumentDomain
from repositories.document_store import DocumentStore, Transaction

_COUNTERS: str = "counters"


def _row_to_counter(row: Mapping[str, Any]) -> Counter:
    return Counter(
        domain=DocumentDomain(str(row["domain"])),
        date_key=str(row["date_key"]),
        last_number=int(row["last_number"]),
    )


def _counter_to_row(counter: Counter) -> dict[str, Any]:
    return {
        "domain": counter.domain.value,
        "date_key": counter.date_key,
        "last_number": counter.last_number,
    }


def read_counter(txn: Transaction, domain: DocumentDomain) -> Optional[Counter]:
    row = txn.get(_COUNTERS, domain.value)
    if row is None:
        return None
    return _row_to_counter(row)


def write_counter(txn: Transaction, counter: Counter) -> None:
    txn.set(_COUNTERS, counter.domain.value, _counter_to_row(counter))


def get_counter(store: DocumentStore, domain: DocumentDomain) -> Optional[Counter]:
    row = store.get(_COUNTERS, domain.value)
    if row is None:
        return None
    return _row_to_counter(row)


__all__ = ["read_counter", "write_counter", "get_counter"]
