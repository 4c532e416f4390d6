"""
Tests for `repositories/document_store.py`.

Covers:
- Reads before writes (read-after-write is a usage error).
- Optimistic conflict detection on commit.
- run_transaction retry, exhaustion and business-error propagation.
- Snapshot queries (filters, ordering, limit).
"""

from __future__ import annotations

import pytest

from domain.errors import Conflict, InvalidInput, NotFound
from repositories.document_store import (
    InMemoryDocumentStore,
    TransactionConflict,
    TransactionUsageError,
)


def test_commit_applies_buffered_writes_and_bumps_version() -> None:
    store = InMemoryDocumentStore()

    txn = store.begin()
    assert txn.get("things", "a") is None
    txn.set("things", "a", {"n": 1})
    assert store.get("things", "a") is None  # buffered until commit
    txn.commit()

    assert store.get("things", "a") == {"n": 1}
    assert store.version_of("things", "a") == 1

    store.put("things", "a", {"n": 2})
    assert store.version_of("things", "a") == 2


def test_read_after_write_is_rejected() -> None:
    store = InMemoryDocumentStore()
    txn = store.begin()
    txn.set("things", "a", {"n": 1})

    with pytest.raises(TransactionUsageError):
        txn.get("things", "b")


def test_commit_conflicts_when_read_document_changed() -> None:
    store = InMemoryDocumentStore()
    store.put("things", "a", {"n": 1})

    txn = store.begin()
    seen = txn.get("things", "a")
    store.put("things", "a", {"n": 99})  # concurrent writer
    txn.set("things", "a", {"n": seen["n"] + 1})

    with pytest.raises(TransactionConflict):
        txn.commit()
    assert store.get("things", "a") == {"n": 99}


def test_commit_conflicts_when_absent_document_appeared() -> None:
    store = InMemoryDocumentStore()

    txn = store.begin()
    assert txn.get("things", "a") is None
    store.put("things", "a", {"n": 5})
    txn.set("things", "a", {"n": 1})

    with pytest.raises(TransactionConflict):
        txn.commit()
    assert store.get("things", "a") == {"n": 5}


def test_set_of_document_read_as_absent_is_buffered_as_create() -> None:
    store = InMemoryDocumentStore()

    txn = store.begin()
    assert txn.get("things", "a") is None
    txn.set("things", "a", {"n": 1})
    txn.set("things", "b", {"n": 2})

    assert [(write.doc_id, write.op) for write in txn.writes] == [("a", "create"), ("b", "set")]


def test_failed_commit_writes_nothing() -> None:
    store = InMemoryDocumentStore()
    store.put("things", "taken", {"n": 1})

    txn = store.begin()
    txn.set("things", "fresh", {"n": 1})
    txn.create("things", "taken", {"n": 2})

    with pytest.raises(TransactionConflict):
        txn.commit()
    assert store.get("things", "fresh") is None
    assert store.get("things", "taken") == {"n": 1}


def test_update_of_missing_document_is_not_found() -> None:
    store = InMemoryDocumentStore()
    txn = store.begin()
    txn.update("things", "ghost", {"n": 1})

    with pytest.raises(NotFound):
        txn.commit()


def test_update_merges_fields() -> None:
    store = InMemoryDocumentStore()
    store.put("things", "a", {"n": 1, "label": "x"})

    txn = store.begin()
    txn.update("things", "a", {"n": 2})
    txn.commit()

    assert store.get("things", "a") == {"n": 2, "label": "x"}


def test_run_transaction_retries_after_conflict() -> None:
    store = InMemoryDocumentStore()
    store.put("counters", "c", {"value": 0})
    attempts = []

    def work(txn):
        current = txn.get("counters", "c")["value"]
        attempts.append(current)
        if len(attempts) == 1:
            store.put("counters", "c", {"value": 10})
        txn.set("counters", "c", {"value": current + 1})
        return current + 1

    result = store.run_transaction(work, max_attempts=3)

    assert result == 11
    assert attempts == [0, 10]
    assert store.get("counters", "c") == {"value": 11}


def test_run_transaction_raises_conflict_when_attempts_run_out() -> None:
    store = InMemoryDocumentStore()
    store.put("counters", "c", {"value": 0})
    calls = []

    def always_contended(txn):
        current = txn.get("counters", "c")["value"]
        calls.append(current)
        store.put("counters", "c", {"value": current + 100})
        txn.set("counters", "c", {"value": current + 1})

    with pytest.raises(Conflict) as excinfo:
        store.run_transaction(always_contended, max_attempts=3)

    assert not isinstance(excinfo.value, TransactionConflict)
    assert len(calls) == 3


def test_business_error_propagates_without_retry_or_writes() -> None:
    store = InMemoryDocumentStore()
    calls = []

    def work(txn):
        calls.append(1)
        txn.get("things", "a")
        raise InvalidInput("bad amount")

    with pytest.raises(InvalidInput):
        store.run_transaction(work)

    assert calls == [1]
    assert store.get("things", "a") is None


def test_query_filters_orders_and_limits() -> None:
    store = InMemoryDocumentStore()
    store.put("orders", "1", {"kind": "sale", "placed_at_utc": "2025-10-17T01:00:00.000000+00:00"})
    store.put("orders", "2", {"kind": "sale", "placed_at_utc": "2025-10-17T03:00:00.000000+00:00"})
    store.put("orders", "3", {"kind": "purchase", "placed_at_utc": "2025-10-17T02:00:00.000000+00:00"})
    store.put("orders", "4", {"kind": "sale", "placed_at_utc": "2025-10-18T00:00:00.000000+00:00"})

    rows = store.query(
        "orders",
        [
            ("kind", "==", "sale"),
            ("placed_at_utc", ">=", "2025-10-17T00:00:00.000000+00:00"),
            ("placed_at_utc", "<", "2025-10-18T00:00:00.000000+00:00"),
        ],
        order_by="placed_at_utc",
        descending=True,
    )
    assert [row["placed_at_utc"][:13] for row in rows] == ["2025-10-17T03", "2025-10-17T01"]

    limited = store.query("orders", [("kind", "in", ["sale", "purchase"])], order_by="placed_at_utc", limit=2)
    assert len(limited) == 2


def test_query_treats_missing_field_as_no_match() -> None:
    store = InMemoryDocumentStore()
    store.put("things", "a", {"n": 1})
    store.put("things", "b", {"n": None})

    assert store.query("things", [("n", ">=", 0)]) == [{"n": 1}]
