"""
Domain: Collections (money in from customers) and payouts (money out to
suppliers).

Both are immutable payment events that lower the counterparty's running
balance by `amount`.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from .account import AccountSide
from .errors import InvalidInput
from .sequence import DocumentDomain
from .time import require_utc_timestamp


class PaymentDirection(str, Enum):
    COLLECTION = "collection"
    PAYOUT = "payout"

    @property
    def account_side(self) -> AccountSide:
        if self is PaymentDirection.COLLECTION:
            return AccountSide.RECEIVABLE
        return AccountSide.PAYABLE

    @property
    def document_domain(self) -> DocumentDomain:
        if self is PaymentDirection.COLLECTION:
            return DocumentDomain.CUSTOMER_COLLECTION
        return DocumentDomain.SUPPLIER_PAYOUT

    @staticmethod
    def for_side(side: AccountSide) -> "PaymentDirection":
        if side is AccountSide.RECEIVABLE:
            return PaymentDirection.COLLECTION
        return PaymentDirection.PAYOUT


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"
    BANK_TRANSFER = "bank_transfer"
    TAX_INVOICE = "tax_invoice"


@dataclass(frozen=True, slots=True)
class TaxInvoice:
    invoice_number: str
    issue_date: datetime
    bank_account: str
    deposit_date: datetime

    def __post_init__(self) -> None:
        require_utc_timestamp("issue_date", self.issue_date)
        require_utc_timestamp("deposit_date", self.deposit_date)


@dataclass(frozen=True, slots=True)
class PaymentRecord:
    payment_id: str
    document_number: str
    direction: PaymentDirection
    counterparty_id: str
    counterparty_name: str
    amount: Decimal
    method: PaymentMethod
    occurred_at: datetime
    processed_by: str
    processed_by_name: str
    created_at: datetime
    tax_invoice: Optional[TaxInvoice] = None
    notes: Optional[str] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("occurred_at", self.occurred_at)
        require_utc_timestamp("created_at", self.created_at)
        if self.amount <= 0:
            raise InvalidInput("payment amount must be > 0")


__all__ = ["PaymentDirection", "PaymentMethod", "PaymentRecord", "TaxInvoice"]
