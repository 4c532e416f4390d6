"""
Collection/payout service.

Records money received from a customer (collection, CM-...) or paid to a
supplier (payout, SP-...) and lowers the counterparty's running balance in
the same atomic unit that issues the document number.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import List, Optional
from uuid import uuid4

from domain.account import AccountBalance, AccountSide
from domain.actor import Actor
from domain.errors import InvalidInput, NotFound
from domain.payment import PaymentDirection, PaymentMethod, PaymentRecord, TaxInvoice
from domain.time import utc_now
from repositories import account_repository, directory_repository, payment_repository
from repositories.client import get_store
from repositories.document_store import DocumentStore, Transaction
from services import sequence_service
from services.config import EngineSettings, get_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PaymentResult:
    document_number: str
    payment_id: str


def _require_amount(amount: Decimal) -> Decimal:
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError) as e:
        raise InvalidInput(f"Invalid payment amount: {amount!r}") from e
    if not value.is_finite() or value <= 0:
        raise InvalidInput("payment amount must be > 0")
    return value


def _require_aware(occurred_at: datetime) -> datetime:
    if occurred_at.tzinfo is None or occurred_at.utcoffset() is None:
        raise InvalidInput("occurred_at must be timezone-aware")
    return occurred_at.astimezone(timezone.utc)


def record_payment(
    counterparty_id: str,
    amount: Decimal,
    method: PaymentMethod,
    occurred_at: datetime,
    actor: Actor,
    direction: PaymentDirection = PaymentDirection.COLLECTION,
    notes: Optional[str] = None,
    tax_invoice: Optional[TaxInvoice] = None,
    *,
    store: Optional[DocumentStore] = None,
    now: Optional[datetime] = None,
    settings: Optional[EngineSettings] = None,
) -> PaymentResult:
    """
    Record a collection or payout and lower the balance by `amount`.

    Raises:
        InvalidInput: amount <= 0, naive occurred_at, a tax-invoice payment
            without invoice details, or (when negative balances are not
            allowed) a payment larger than the balance owed.
        NotFound: unknown counterparty, or no account yet (nothing has been
            settled for this counterparty).
    """

    store = store or get_store()
    settings = settings or get_settings()
    moment = now or utc_now()

    value = _require_amount(amount)
    occurred = _require_aware(occurred_at)
    if method is PaymentMethod.TAX_INVOICE and tax_invoice is None:
        raise InvalidInput("tax_invoice details are required for tax invoice payments")
    side = direction.account_side

    def _work(txn: Transaction) -> PaymentRecord:
        counterparty = directory_repository.read_counterparty(txn, side, counterparty_id)
        if counterparty is None:
            raise NotFound(f"{side.value} counterparty not found: {counterparty_id}")
        account = account_repository.read_account(txn, side, counterparty_id)
        if account is None:
            raise NotFound(f"No {side.value} account for {counterparty_id}; nothing has been settled yet")
        counter = sequence_service.reserve_number(
            txn, direction.document_domain, now=moment, tz=settings.business_timezone
        )

        updated: AccountBalance = account.with_collection(value, moment)
        if not settings.allow_negative_balance and updated.current_balance < 0:
            raise InvalidInput(
                f"Payment of {value} exceeds the outstanding balance {account.current_balance} for {counterparty_id}"
            )

        payment = PaymentRecord(
            payment_id=str(uuid4()),
            document_number=counter.document_number,
            direction=direction,
            counterparty_id=counterparty_id,
            counterparty_name=counterparty.name,
            amount=value,
            method=method,
            occurred_at=occurred,
            processed_by=actor.user_id,
            processed_by_name=actor.display_name,
            created_at=moment,
            tax_invoice=tax_invoice,
            notes=notes,
        )
        payment_repository.create_payment(txn, payment)
        account_repository.write_account(txn, updated)
        sequence_service.commit_number(txn, counter)
        return payment

    payment = store.run_transaction(
        _work, max_attempts=settings.transaction_max_attempts, label=f"record_payment({counterparty_id})"
    )
    logger.info(
        f"{direction.value.capitalize()} {payment.document_number} recorded",
        extra={
            "document_number": payment.document_number,
            "counterparty_id": counterparty_id,
            "amount": str(value),
            "method": method.value,
            "actor": actor.user_id,
        },
    )
    return PaymentResult(document_number=payment.document_number, payment_id=payment.payment_id)


def get_account(side: AccountSide, counterparty_id: str, *, store: Optional[DocumentStore] = None) -> AccountBalance:
    store = store or get_store()
    account = account_repository.get_account(store, side, counterparty_id)
    if account is None:
        raise NotFound(f"No {side.value} account for {counterparty_id}")
    return account


def list_accounts(side: AccountSide, *, store: Optional[DocumentStore] = None) -> List[AccountBalance]:
    """Accounts on one side, largest balance first."""

    store = store or get_store()
    return account_repository.list_accounts(store, side)


def list_payments(
    *,
    direction: Optional[PaymentDirection] = None,
    counterparty_id: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    store: Optional[DocumentStore] = None,
) -> List[PaymentRecord]:
    store = store or get_store()
    return payment_repository.list_payments(
        store, direction=direction, counterparty_id=counterparty_id, start=start, end=end
    )


def get_payment_by_number(document_number: str, *, store: Optional[DocumentStore] = None) -> PaymentRecord:
    store = store or get_store()
    payment = payment_repository.get_payment_by_number(store, document_number)
    if payment is None:
        raise NotFound(f"Payment not found: {document_number}")
    return payment


__all__ = [
    "PaymentResult",
    "record_payment",
    "get_account",
    "list_accounts",
    "list_payments",
    "get_payment_by_number",
]
