"""
Payments and Accounts API Endpoints.

Endpoints for recording collections/payouts and reading running balances.
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends

from api.dependencies import get_actor, http_error
from api.models import (
    AccountListResponse,
    AccountResponse,
    PaymentRequest,
    PaymentResponse,
    TaxInvoiceModel,
)
from domain.account import AccountBalance, AccountSide
from domain.actor import Actor
from domain.errors import InvalidInput
from domain.payment import TaxInvoice
from services.payment_service import get_account, list_accounts, record_payment

router = APIRouter()


def _utc(value: datetime, name: str) -> datetime:
    if value.tzinfo is None or value.utcoffset() is None:
        raise InvalidInput(f"{name} must be timezone-aware")
    return value.astimezone(timezone.utc)


def _tax_invoice(model: Optional[TaxInvoiceModel]) -> Optional[TaxInvoice]:
    if model is None:
        return None
    return TaxInvoice(
        invoice_number=model.invoice_number,
        issue_date=_utc(model.issue_date, "issue_date"),
        bank_account=model.bank_account,
        deposit_date=_utc(model.deposit_date, "deposit_date"),
    )


def _account_response(account: AccountBalance) -> AccountResponse:
    return AccountResponse(
        counterparty_id=account.counterparty_id,
        side=account.side,
        counterparty_name=account.counterparty_name,
        total_settled_amount=account.total_settled_amount,
        total_collected_amount=account.total_collected_amount,
        current_balance=account.current_balance,
        transaction_count=account.transaction_count,
        last_settlement_at=account.last_settlement_at,
        last_collection_at=account.last_collection_at,
    )


@router.post(
    "/payments",
    response_model=PaymentResponse,
    status_code=201,
    summary="Record Payment",
    description="Record a customer collection (CM) or supplier payout (SP) and lower the balance."
)
def create_payment(request: PaymentRequest, actor: Actor = Depends(get_actor)):
    try:
        result = record_payment(
            request.counterparty_id,
            request.amount,
            request.method,
            request.occurred_at,
            actor,
            direction=request.direction,
            notes=request.notes,
            tax_invoice=_tax_invoice(request.tax_invoice),
        )
    except Exception as e:
        raise http_error(e, "record payment")
    return PaymentResponse(document_number=result.document_number, payment_id=result.payment_id)


@router.get(
    "/accounts/{side}",
    response_model=AccountListResponse,
    summary="List Accounts",
    description="Running balances on one side, largest balance first."
)
def read_accounts(side: AccountSide):
    try:
        accounts = list_accounts(side)
    except Exception as e:
        raise http_error(e, "list accounts")
    return AccountListResponse(
        items=[_account_response(account) for account in accounts],
        total_count=len(accounts),
    )


@router.get(
    "/accounts/{side}/{counterparty_id}",
    response_model=AccountResponse,
    summary="Get Account"
)
def read_account(side: AccountSide, counterparty_id: str):
    try:
        return _account_response(get_account(side, counterparty_id))
    except Exception as e:
        raise http_error(e, "get account")
