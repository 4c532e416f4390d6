"""
Domain: Running counterparty balances.

Contract excerpts implemented here:
- current_balance == total_settled_amount - total_collected_amount at all
  times, on both the receivable (customer) and payable (supplier) side.
- Settlement raises the balance; a collection or payout lowers it.
- An account is created by the first settlement for a counterparty.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from .order import OrderKind
from .time import require_utc_timestamp


class AccountSide(str, Enum):
    RECEIVABLE = "receivable"
    PAYABLE = "payable"

    @staticmethod
    def for_order_kind(kind: OrderKind) -> "AccountSide":
        if kind is OrderKind.SALE:
            return AccountSide.RECEIVABLE
        return AccountSide.PAYABLE


@dataclass(frozen=True, slots=True)
class AccountBalance:
    counterparty_id: str
    side: AccountSide
    counterparty_name: str
    total_settled_amount: Decimal
    total_collected_amount: Decimal
    current_balance: Decimal
    transaction_count: int = 0
    last_settlement_at: Optional[datetime] = None
    last_collection_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        for name in ("last_settlement_at", "last_collection_at", "created_at", "updated_at"):
            value = getattr(self, name)
            if value is not None:
                require_utc_timestamp(name, value)
        if self.current_balance != self.total_settled_amount - self.total_collected_amount:
            raise ValueError(
                f"Balance invariant violated for {self.side.value} account {self.counterparty_id}: "
                f"{self.current_balance} != {self.total_settled_amount} - {self.total_collected_amount}"
            )

    @staticmethod
    def empty(counterparty_id: str, side: AccountSide, counterparty_name: str, now: datetime) -> "AccountBalance":
        zero = Decimal("0")
        return AccountBalance(
            counterparty_id=counterparty_id,
            side=side,
            counterparty_name=counterparty_name,
            total_settled_amount=zero,
            total_collected_amount=zero,
            current_balance=zero,
            created_at=now,
            updated_at=now,
        )

    def with_settlement(self, amount: Decimal, now: datetime) -> "AccountBalance":
        return AccountBalance(
            counterparty_id=self.counterparty_id,
            side=self.side,
            counterparty_name=self.counterparty_name,
            total_settled_amount=self.total_settled_amount + amount,
            total_collected_amount=self.total_collected_amount,
            current_balance=self.current_balance + amount,
            transaction_count=self.transaction_count + 1,
            last_settlement_at=now,
            last_collection_at=self.last_collection_at,
            created_at=self.created_at,
            updated_at=now,
        )

    def with_collection(self, amount: Decimal, now: datetime) -> "AccountBalance":
        return AccountBalance(
            counterparty_id=self.counterparty_id,
            side=self.side,
            counterparty_name=self.counterparty_name,
            total_settled_amount=self.total_settled_amount,
            total_collected_amount=self.total_collected_amount + amount,
            current_balance=self.current_balance - amount,
            transaction_count=self.transaction_count,
            last_settlement_at=self.last_settlement_at,
            last_collection_at=now,
            created_at=self.created_at,
            updated_at=now,
        )


__all__ = ["AccountSide", "AccountBalance"]
