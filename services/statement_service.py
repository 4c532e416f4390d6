"""
Statement service: counterparty statements and single-ledger slips.

Statement arithmetic (half-open period [start, end)):

    previous_balance = settlements before start - payments before start
    closing_balance  = previous_balance
                       + settlements in [start, end)
                       - payments in [start, end)

Settlements are debits, collections/payouts are credits. Entries carry the
running balance in ascending time order; Statement.display_entries gives the
newest-first view.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from domain.account import AccountSide
from domain.actor import Actor, SYSTEM_ACTOR
from domain.errors import InvalidInput, NotFound
from domain.ledger import Ledger
from domain.order import OrderKind
from domain.payment import PaymentDirection, PaymentRecord
from domain.statement import EntryType, Movement, Statement, annotate_running_balance
from domain.time import require_utc_timestamp, utc_now
from repositories import account_repository, directory_repository, ledger_repository, payment_repository
from repositories.client import get_store
from repositories.document_store import DocumentStore

logger = logging.getLogger(__name__)

_ZERO = Decimal("0")


@dataclass(frozen=True, slots=True)
class LedgerSlip:
    """Printable transaction slip for one ledger."""
    ledger: Ledger
    counterparty_name: str
    previous_balance: Decimal
    current_balance: Decimal
    generated_at: datetime
    generated_by: str


def _settlement_movement(ledger: Ledger) -> Movement:
    return Movement(
        occurred_at=ledger.settled_at,
        entry_type=EntryType.SETTLEMENT,
        document_number=ledger.ledger_number,
        description=f"{ledger.kind.value} settlement of {ledger.order_number} ({ledger.item_count} item(s))",
        debit=ledger.total_amount,
        notes=ledger.notes,
    )


def _payment_movement(payment: PaymentRecord) -> Movement:
    return Movement(
        occurred_at=payment.occurred_at,
        entry_type=EntryType.PAYMENT,
        document_number=payment.document_number,
        description=f"{payment.direction.value} ({payment.method.value})",
        credit=payment.amount,
        notes=payment.notes,
    )


def generate_statement(
    counterparty_id: str,
    side: AccountSide,
    start: datetime,
    end: Optional[datetime] = None,
    actor: Actor = SYSTEM_ACTOR,
    *,
    store: Optional[DocumentStore] = None,
    now: Optional[datetime] = None,
) -> Statement:
    """
    Build the statement of one counterparty for [start, end).

    `balance_matches_stored` compares the derived closing balance with the
    stored account balance; it is only meaningful (and only computed) when
    the period reaches the present, otherwise it is None.

    Raises:
        InvalidInput: naive timestamps or end <= start.
        NotFound: the counterparty has neither a directory entry nor an account.
    """

    store = store or get_store()
    moment = now or utc_now()
    end = end or moment
    try:
        require_utc_timestamp("start", start)
        require_utc_timestamp("end", end)
    except ValueError as e:
        raise InvalidInput(str(e)) from e
    if end <= start:
        raise InvalidInput("end must be after start")

    counterparty = directory_repository.get_counterparty(store, side, counterparty_id)
    account = account_repository.get_account(store, side, counterparty_id)
    if counterparty is None and account is None:
        raise NotFound(f"{side.value} counterparty not found: {counterparty_id}")
    name = counterparty.name if counterparty is not None else account.counterparty_name

    kind = OrderKind.SALE if side is AccountSide.RECEIVABLE else OrderKind.PURCHASE
    ledgers = ledger_repository.list_ledgers(store, kind=kind, end=end, counterparty_id=counterparty_id)
    payments = payment_repository.list_payments(
        store, direction=PaymentDirection.for_side(side), counterparty_id=counterparty_id, end=end
    )

    settled_before = sum((ledger.total_amount for ledger in ledgers if ledger.settled_at < start), _ZERO)
    paid_before = sum((payment.amount for payment in payments if payment.occurred_at < start), _ZERO)
    previous_balance = settled_before - paid_before

    period_ledgers = [ledger for ledger in ledgers if ledger.settled_at >= start]
    period_payments = [payment for payment in payments if payment.occurred_at >= start]
    period_settled = sum((ledger.total_amount for ledger in period_ledgers), _ZERO)
    period_collected = sum((payment.amount for payment in period_payments), _ZERO)
    closing_balance = previous_balance + period_settled - period_collected

    movements: List[Movement] = [_settlement_movement(ledger) for ledger in period_ledgers]
    movements.extend(_payment_movement(payment) for payment in period_payments)
    entries = annotate_running_balance(previous_balance, movements)

    stored_balance = account.current_balance if account is not None else _ZERO
    matches: Optional[bool] = None
    if end >= moment:
        matches = closing_balance == stored_balance
        if not matches:
            logger.warning(
                f"Statement balance for {counterparty_id} differs from stored account balance",
                extra={
                    "counterparty_id": counterparty_id,
                    "side": side.value,
                    "derived_balance": str(closing_balance),
                    "stored_balance": str(stored_balance),
                },
            )

    return Statement(
        counterparty_id=counterparty_id,
        side=side,
        counterparty_name=name,
        period_start=start,
        period_end=end,
        previous_balance=previous_balance,
        period_settled_amount=period_settled,
        period_collected_amount=period_collected,
        closing_balance=closing_balance,
        stored_balance=stored_balance,
        balance_matches_stored=matches,
        generated_at=moment,
        generated_by=actor.user_id,
        entries=entries,
    )


def build_ledger_slip(
    ledger_id: str,
    actor: Actor = SYSTEM_ACTOR,
    *,
    store: Optional[DocumentStore] = None,
    now: Optional[datetime] = None,
) -> LedgerSlip:
    """
    Counterparty + ledger snapshot for the print workflow.

    previous_balance is the stored balance minus this ledger's total, the
    figure printed as the balance carried forward.
    """

    store = store or get_store()
    moment = now or utc_now()

    ledger = ledger_repository.get_ledger(store, ledger_id)
    if ledger is None:
        raise NotFound(f"Ledger not found: {ledger_id}")
    side = AccountSide.for_order_kind(ledger.kind)
    account = account_repository.get_account(store, side, ledger.counterparty_id)
    if account is None:
        raise NotFound(f"No {side.value} account for {ledger.counterparty_id}")
    counterparty = directory_repository.get_counterparty(store, side, ledger.counterparty_id)

    return LedgerSlip(
        ledger=ledger,
        counterparty_name=counterparty.name if counterparty is not None else ledger.counterparty_name,
        previous_balance=account.current_balance - ledger.total_amount,
        current_balance=account.current_balance,
        generated_at=moment,
        generated_by=actor.user_id,
    )


__all__ = ["LedgerSlip", "generate_statement", "build_ledger_slip"]
