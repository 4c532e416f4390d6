"""
Document store with optimistic, all-or-nothing transactions.

Every document lives at (collection, doc_id), holds a JSON-compatible dict and
carries a version number (0 means "does not exist"). A Transaction:

- records the version of every document it reads,
- buffers its writes,
- refuses reads once a write has been issued (all reads first, then writes),
- commits atomically: if any document it read changed in the meantime, or a
  document it meant to create already exists, nothing is written and
  TransactionConflict is raised.

`run_transaction` retries the whole callback from scratch on conflict, a
bounded number of times, and then surfaces Conflict to the caller.

Backends:
- InMemoryDocumentStore (this module): a process-local store guarded by a
  lock. Used by tests, the demo script and STORE_BACKEND=memory.
- SupabaseDocumentStore (repositories/supabase_store.py): commits through the
  commit_documents() PostgreSQL function.
"""

from __future__ import annotations

import copy
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, TypeVar

from domain.errors import Conflict, NotFound

logger = logging.getLogger(__name__)

T = TypeVar("T")

DocKey = Tuple[str, str]

# (field, operator, value); operators: == != < <= > >= in
Filter = Tuple[str, str, Any]

DEFAULT_MAX_ATTEMPTS = 3


class TransactionConflict(Conflict):
    """A document read by the transaction changed before it could commit."""

    code = "TRANSACTION_CONFLICT"


class TransactionUsageError(RuntimeError):
    """The transaction was used in a way the commit protocol forbids."""


@dataclass(frozen=True, slots=True)
class PendingWrite:
    op: str  # set | create | update
    collection: str
    doc_id: str
    data: Dict[str, Any]


class Transaction:
    """
    Unit of work against a DocumentStore.

    Obtain one through `DocumentStore.run_transaction`; do not commit by hand
    unless you also handle retries.
    """

    def __init__(self, store: "DocumentStore") -> None:
        self._store = store
        self._read_versions: Dict[DocKey, int] = {}
        self._snapshots: Dict[DocKey, Optional[Dict[str, Any]]] = {}
        self._writes: List[PendingWrite] = []
        self._finished = False

    @property
    def read_versions(self) -> Mapping[DocKey, int]:
        return dict(self._read_versions)

    @property
    def writes(self) -> Sequence[PendingWrite]:
        return list(self._writes)

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Read a document (None if absent) and remember the version seen."""

        self._require_open()
        if self._writes:
            raise TransactionUsageError(
                f"Read of {collection}/{doc_id} after a write; all reads must happen before any write"
            )
        key = (collection, doc_id)
        if key not in self._snapshots:
            data, version = self._store._load(collection, doc_id)
            self._read_versions[key] = version
            self._snapshots[key] = data
        return copy.deepcopy(self._snapshots[key])

    def set(self, collection: str, doc_id: str, data: Mapping[str, Any]) -> None:
        """
        Create or fully replace a document.

        A document this transaction read as absent is written as a create, so
        a concurrent creator makes the commit conflict instead of being
        overwritten.
        """

        op = "create" if self._read_versions.get((collection, doc_id)) == 0 else "set"
        self._buffer(op, collection, doc_id, data)

    def create(self, collection: str, doc_id: str, data: Mapping[str, Any]) -> None:
        """Create a document; the commit fails if it already exists."""

        self._buffer("create", collection, doc_id, data)

    def update(self, collection: str, doc_id: str, changes: Mapping[str, Any]) -> None:
        """Merge `changes` into an existing document."""

        self._buffer("update", collection, doc_id, changes)

    def commit(self) -> None:
        self._require_open()
        self._finished = True
        if not self._writes:
            return
        self._store._commit(self._read_versions, self._writes)

    def _buffer(self, op: str, collection: str, doc_id: str, data: Mapping[str, Any]) -> None:
        self._require_open()
        self._writes.append(PendingWrite(op=op, collection=collection, doc_id=doc_id, data=copy.deepcopy(dict(data))))

    def _require_open(self) -> None:
        if self._finished:
            raise TransactionUsageError("Transaction has already been committed")


class DocumentStore:
    """Backend-neutral store interface."""

    def _load(self, collection: str, doc_id: str) -> Tuple[Optional[Dict[str, Any]], int]:
        raise NotImplementedError

    def _commit(self, read_versions: Mapping[DocKey, int], writes: Sequence[PendingWrite]) -> None:
        raise NotImplementedError

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Non-transactional read of a single document."""

        data, _ = self._load(collection, doc_id)
        return data

    def query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Non-transactional snapshot query over one collection."""

        raise NotImplementedError

    def begin(self) -> Transaction:
        return Transaction(self)

    def run_transaction(
        self,
        work: Callable[[Transaction], T],
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        label: str = "transaction",
    ) -> T:
        """
        Run `work` inside a transaction and commit it.

        On TransactionConflict the callback is run again against fresh reads,
        up to `max_attempts` times in total. Business errors raised by `work`
        propagate immediately and nothing is written.
        """

        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")

        for attempt in range(1, max_attempts + 1):
            txn = self.begin()
            result = work(txn)
            try:
                txn.commit()
            except TransactionConflict as exc:
                if attempt == max_attempts:
                    raise Conflict(
                        f"{label} aborted after {max_attempts} attempts due to concurrent updates"
                    ) from exc
                logger.warning("%s conflicted (attempt %d/%d), retrying", label, attempt, max_attempts)
                continue
            return result

        raise AssertionError("unreachable")

    def put(self, collection: str, doc_id: str, data: Mapping[str, Any]) -> None:
        """Blind create-or-replace in its own transaction (seeding, admin tools)."""

        def _write(txn: Transaction) -> None:
            txn.set(collection, doc_id, data)

        self.run_transaction(_write, label=f"put {collection}/{doc_id}")


def matches_filters(data: Mapping[str, Any], filters: Sequence[Filter]) -> bool:
    for field_name, op, value in filters:
        if field_name not in data or data[field_name] is None:
            return False
        current = data[field_name]
        if op == "==":
            ok = current == value
        elif op == "!=":
            ok = current != value
        elif op == "<":
            ok = current < value
        elif op == "<=":
            ok = current <= value
        elif op == ">":
            ok = current > value
        elif op == ">=":
            ok = current >= value
        elif op == "in":
            ok = current in value
        else:
            raise ValueError(f"Unsupported filter operator: {op!r}")
        if not ok:
            return False
    return True


class InMemoryDocumentStore(DocumentStore):
    """
    Process-local store.

    Commits are validated and applied under a single lock, which makes each
    commit atomic and serializes conflicting writers exactly like a row-level
    compare-and-swap would.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._documents: Dict[DocKey, Tuple[Dict[str, Any], int]] = {}

    def _load(self, collection: str, doc_id: str) -> Tuple[Optional[Dict[str, Any]], int]:
        with self._lock:
            entry = self._documents.get((collection, doc_id))
            if entry is None:
                return None, 0
            data, version = entry
            return copy.deepcopy(data), version

    def _commit(self, read_versions: Mapping[DocKey, int], writes: Sequence[PendingWrite]) -> None:
        with self._lock:
            for key, seen_version in read_versions.items():
                entry = self._documents.get(key)
                current_version = entry[1] if entry is not None else 0
                if current_version != seen_version:
                    raise TransactionConflict(
                        f"{key[0]}/{key[1]} changed (version {seen_version} -> {current_version})"
                    )

            staged: Dict[DocKey, Tuple[Dict[str, Any], int]] = {}
            for write in writes:
                key = (write.collection, write.doc_id)
                entry = staged.get(key, self._documents.get(key))
                if write.op == "create":
                    if entry is not None:
                        raise TransactionConflict(f"{key[0]}/{key[1]} already exists")
                    staged[key] = (copy.deepcopy(write.data), 1)
                elif write.op == "set":
                    version = entry[1] if entry is not None else 0
                    staged[key] = (copy.deepcopy(write.data), version + 1)
                elif write.op == "update":
                    if entry is None:
                        raise NotFound(f"Cannot update missing document {key[0]}/{key[1]}")
                    merged = copy.deepcopy(entry[0])
                    merged.update(copy.deepcopy(write.data))
                    staged[key] = (merged, entry[1] + 1)
                else:
                    raise ValueError(f"Unsupported write op: {write.op!r}")

            self._documents.update(staged)

    def query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        with self._lock:
            rows = [
                copy.deepcopy(data)
                for (coll, _), (data, _) in self._documents.items()
                if coll == collection and matches_filters(data, filters)
            ]

        if order_by is not None:
            rows = [row for row in rows if row.get(order_by) is not None]
            rows.sort(key=lambda row: row[order_by], reverse=descending)
        if limit is not None:
            rows = rows[:limit]
        return rows

    def version_of(self, collection: str, doc_id: str) -> int:
        with self._lock:
            entry = self._documents.get((collection, doc_id))
            return entry[1] if entry is not None else 0


__all__ = [
    "DocumentStore",
    "InMemoryDocumentStore",
    "Transaction",
    "TransactionConflict",
    "TransactionUsageError",
    "PendingWrite",
    "Filter",
    "DEFAULT_MAX_ATTEMPTS",
    "matches_filters",
]
