"""
Account balance repository (persistence).

Receivable (customer) and payable (supplier) balances share the `accounts`
collection; the document id is "<side>:<counterparty_id>" so the same id may
exist on both sides.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional

from domain.account import AccountBalance, AccountSide
from repositories.document_store import DocumentStore, Transaction
from repositories.serialization import (
    decimal_to_str,
    optional_iso_utc,
    optional_utc_datetime,
    to_decimal,
)

_ACCOUNTS: str = "accounts"


def account_doc_id(side: AccountSide, counterparty_id: str) -> str:
    return f"{side.value}:{counterparty_id}"


def _row_to_account(row: Mapping[str, Any]) -> AccountBalance:
    return AccountBalance(
        counterparty_id=str(row["counterparty_id"]),
        side=AccountSide(str(row["side"])),
        counterparty_name=str(row.get("counterparty_name") or ""),
        total_settled_amount=to_decimal(row.get("total_settled_amount")),
        total_collected_amount=to_decimal(row.get("total_collected_amount")),
        current_balance=to_decimal(row.get("current_balance")),
        transaction_count=int(row.get("transaction_count") or 0),
        last_settlement_at=optional_utc_datetime(row.get("last_settlement_at_utc")),
        last_collection_at=optional_utc_datetime(row.get("last_collection_at_utc")),
        created_at=optional_utc_datetime(row.get("created_at_utc")),
        updated_at=optional_utc_datetime(row.get("updated_at_utc")),
    )


def _account_to_row(account: AccountBalance) -> dict[str, Any]:
    return {
        "counterparty_id": account.counterparty_id,
        "side": account.side.value,
        "counterparty_name": account.counterparty_name,
        "total_settled_amount": decimal_to_str(account.total_settled_amount),
        "total_collected_amount": decimal_to_str(account.total_collected_amount),
        "current_balance": decimal_to_str(account.current_balance),
        "transaction_count": account.transaction_count,
        "last_settlement_at_utc": optional_iso_utc(account.last_settlement_at, name="last_settlement_at"),
        "last_collection_at_utc": optional_iso_utc(account.last_collection_at, name="last_collection_at"),
        "created_at_utc": optional_iso_utc(account.created_at, name="created_at"),
        "updated_at_utc": optional_iso_utc(account.updated_at, name="updated_at"),
    }


def read_account(txn: Transaction, side: AccountSide, counterparty_id: str) -> Optional[AccountBalance]:
    row = txn.get(_ACCOUNTS, account_doc_id(side, counterparty_id))
    if row is None:
        return None
    return _row_to_account(row)


def write_account(txn: Transaction, account: AccountBalance) -> None:
    txn.set(_ACCOUNTS, account_doc_id(account.side, account.counterparty_id), _account_to_row(account))


def get_account(store: DocumentStore, side: AccountSide, counterparty_id: str) -> Optional[AccountBalance]:
    row = store.get(_ACCOUNTS, account_doc_id(side, counterparty_id))
    if row is None:
        return None
    return _row_to_account(row)


def list_accounts(store: DocumentStore, side: AccountSide) -> List[AccountBalance]:
    """All balances on one side, largest current balance first."""

    rows = store.query(_ACCOUNTS, [("side", "==", side.value)])
    accounts = [_row_to_account(row) for row in rows]
    # Balances are stored as strings; sort numerically here.
    accounts.sort(key=lambda account: (-account.current_balance, account.counterparty_id))
    return accounts


__all__ = ["account_doc_id", "read_account", "write_account", "get_account", "list_accounts"]
