"""
Domain: Account statements (pure).

Contract excerpts implemented here:
- previous_balance = settlements before start - payments before start.
- closing_balance = previous_balance + settlements in [start, end)
  - payments in [start, end).
- Entries are merged in ascending time order to accumulate the running
  balance; entries sharing a timestamp are ordered by document number.
- For display the balance-annotated list is reversed (newest first).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Iterable, List, Optional

from .account import AccountSide
from .sequence import document_sort_key
from .time import require_utc_timestamp


class EntryType(str, Enum):
    SETTLEMENT = "settlement"
    PAYMENT = "payment"


@dataclass(frozen=True, slots=True)
class Movement:
    """A settlement (debit) or payment (credit) before balance annotation."""

    occurred_at: datetime
    entry_type: EntryType
    document_number: str
    description: str
    debit: Decimal = Decimal("0")
    credit: Decimal = Decimal("0")
    notes: Optional[str] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("occurred_at", self.occurred_at)


@dataclass(frozen=True, slots=True)
class StatementEntry:
    occurred_at: datetime
    entry_type: EntryType
    document_number: str
    description: str
    debit: Decimal
    credit: Decimal
    balance: Decimal
    notes: Optional[str] = None


def chronological(movements: Iterable[Movement]) -> List[Movement]:
    return sorted(movements, key=lambda m: (m.occurred_at, document_sort_key(m.document_number)))


def annotate_running_balance(opening_balance: Decimal, movements: Iterable[Movement]) -> List[StatementEntry]:
    """Sort movements ascending and attach the balance after each one."""

    running = opening_balance
    entries: List[StatementEntry] = []
    for movement in chronological(movements):
        running = running + movement.debit - movement.credit
        entries.append(
            StatementEntry(
                occurred_at=movement.occurred_at,
                entry_type=movement.entry_type,
                document_number=movement.document_number,
                description=movement.description,
                debit=movement.debit,
                credit=movement.credit,
                balance=running,
                notes=movement.notes,
            )
        )
    return entries


@dataclass(frozen=True, slots=True)
class Statement:
    counterparty_id: str
    side: AccountSide
    counterparty_name: str
    period_start: datetime
    period_end: datetime
    previous_balance: Decimal
    period_settled_amount: Decimal
    period_collected_amount: Decimal
    closing_balance: Decimal
    stored_balance: Decimal
    balance_matches_stored: Optional[bool]
    generated_at: datetime
    generated_by: str
    entries: List[StatementEntry] = field(default_factory=list)

    @property
    def display_entries(self) -> List[StatementEntry]:
        return list(reversed(self.entries))


__all__ = [
    "EntryType",
    "Movement",
    "StatementEntry",
    "Statement",
    "annotate_running_balance",
    "chronological",
]
