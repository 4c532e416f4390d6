"""
Sequence service: collision-free business document numbers.

Handles:
- Per-domain daily counters (SO/PO/SL/PL/CM/SP-YYMMDD-NNN)
- Atomic read-modify-write through the document store
- Use inside a larger transaction (settlement, payment, order placement), so
  a failed operation never consumes a number

Usage inside another transaction:

    counter = reserve_number(txn, DocumentDomain.SALE_LEDGER, now=now, tz=tz)
    ...  # remaining reads
    ...  # writes that use counter.document_number
    commit_number(txn, counter)
"""

from __future__ import annotations

import logging
from datetime import datetime, tzinfo
from typing import Optional

from domain.sequence import Counter, DocumentDomain
from domain.time import business_date_key, utc_now
from repositories import counter_repository
from repositories.client import get_store
from repositories.document_store import DocumentStore, Transaction
from services.config import EngineSettings, get_settings

logger = logging.getLogger(__name__)


def reserve_number(txn: Transaction, domain: DocumentDomain, *, now: datetime, tz: tzinfo) -> Counter:
    """
    Read the domain counter and return it advanced by one (read phase only).

    The caller must later pass the returned counter to `commit_number` in the
    same transaction.
    """

    date_key = business_date_key(now, tz)
    current = counter_repository.read_counter(txn, domain) or Counter.fresh(domain, date_key)
    return current.advance(date_key)


def commit_number(txn: Transaction, counter: Counter) -> None:
    counter_repository.write_counter(txn, counter)


def next_document_number(
    domain: DocumentDomain,
    *,
    store: Optional[DocumentStore] = None,
    now: Optional[datetime] = None,
    settings: Optional[EngineSettings] = None,
) -> str:
    """
    Hand out the next document number for `domain` in its own transaction.

    Example:
        next_document_number(DocumentDomain.SALE_LEDGER)
        # 'SL-251017-047'

    Raises:
        Conflict: the counter stayed contended for every retry attempt.
    """

    store = store or get_store()
    settings = settings or get_settings()
    moment = now or utc_now()

    def _work(txn: Transaction) -> Counter:
        counter = reserve_number(txn, domain, now=moment, tz=settings.business_timezone)
        commit_number(txn, counter)
        return counter

    counter = store.run_transaction(
        _work,
        max_attempts=settings.transaction_max_attempts,
        label=f"next_document_number({domain.value})",
    )
    logger.debug(
        f"Issued document number {counter.document_number}",
        extra={"domain": domain.value, "date_key": counter.date_key, "number": counter.last_number},
    )
    return counter.document_number


__all__ = ["next_document_number", "reserve_number", "commit_number"]
