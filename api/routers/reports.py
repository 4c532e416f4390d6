"""
Reports and Statements API Endpoints.

Order/ledger rollups (regular vs additional) and counterparty statements.
"""

from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_actor, http_error
from api.models import (
    BucketTotalsModel,
    CategoryRollupModel,
    LedgerRollupResponse,
    LedgerStatsModel,
    OrderRollupResponse,
    ProductRollupModel,
    StatementEntryModel,
    StatementResponse,
    SupplierRollupModel,
)
from domain.account import AccountSide
from domain.actor import Actor
from domain.errors import InvalidInput
from domain.order import OrderKind, OrderStatus
from services.aggregation_service import (
    BucketTotals,
    CategoryRollup,
    aggregate_ledgers,
    aggregate_orders,
)
from services.statement_service import generate_statement

router = APIRouter()


def _utc(value: Optional[datetime], name: str) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None or value.utcoffset() is None:
        raise InvalidInput(f"{name} must include a timezone offset")
    return value.astimezone(timezone.utc)


def _bucket(totals: BucketTotals) -> BucketTotalsModel:
    return BucketTotalsModel(count=totals.count, amount=totals.amount, quantity=totals.quantity)


def _categories(categories: List[CategoryRollup]) -> List[CategoryRollupModel]:
    return [
        CategoryRollupModel(
            category=category.category,
            total_amount=category.total_amount,
            suppliers=[
                SupplierRollupModel(
                    supplier_id=supplier.supplier_id,
                    supplier_name=supplier.supplier_name,
                    total_amount=supplier.total_amount,
                    products=[
                        ProductRollupModel(
                            product_id=product.product_id,
                            product_code=product.product_code,
                            product_name=product.product_name,
                            regular_quantity=product.regular_quantity,
                            regular_amount=product.regular_amount,
                            additional_quantity=product.additional_quantity,
                            additional_amount=product.additional_amount,
                            total_quantity=product.total_quantity,
                            total_amount=product.total_amount,
                        )
                        for product in supplier.products
                    ],
                )
                for supplier in category.suppliers
            ],
        )
        for category in categories
    ]


@router.get(
    "/reports/orders",
    response_model=OrderRollupResponse,
    summary="Order Rollup",
    description="Orders placed in [start, end) split into regular/additional/pended/rejected, "
                "with a category -> supplier -> product tree. start defaults to the window start."
)
def order_rollup(
    kind: OrderKind = OrderKind.SALE,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    counterparty_id: Optional[str] = None,
    category: Optional[str] = None,
    supplier_id: Optional[str] = None,
    statuses: Optional[List[OrderStatus]] = Query(default=None),
):
    try:
        rollup = aggregate_orders(
            kind,
            _utc(start, "start"),
            _utc(end, "end"),
            counterparty_id=counterparty_id,
            category=category,
            supplier_id=supplier_id,
            statuses=statuses,
        )
    except Exception as e:
        raise http_error(e, "aggregate orders")
    return OrderRollupResponse(
        kind=rollup.kind,
        start=rollup.start,
        end=rollup.end,
        regular=_bucket(rollup.regular),
        additional=_bucket(rollup.additional),
        pended=_bucket(rollup.pended),
        rejected=_bucket(rollup.rejected),
        categories=_categories(rollup.categories),
    )


@router.get(
    "/reports/ledgers",
    response_model=LedgerRollupResponse,
    summary="Ledger Rollup",
    description="Ledgers settled in [start, end) split by phase, with totals and averages."
)
def ledger_rollup(
    kind: OrderKind = OrderKind.SALE,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    counterparty_id: Optional[str] = None,
    category: Optional[str] = None,
    supplier_id: Optional[str] = None,
):
    try:
        rollup = aggregate_ledgers(
            kind,
            _utc(start, "start"),
            _utc(end, "end"),
            counterparty_id=counterparty_id,
            category=category,
            supplier_id=supplier_id,
        )
    except Exception as e:
        raise http_error(e, "aggregate ledgers")
    return LedgerRollupResponse(
        kind=rollup.kind,
        start=rollup.start,
        end=rollup.end,
        regular=_bucket(rollup.regular),
        additional=_bucket(rollup.additional),
        categories=_categories(rollup.categories),
        stats=LedgerStatsModel(
            ledger_count=rollup.stats.ledger_count,
            total_amount=rollup.stats.total_amount,
            average_amount=rollup.stats.average_amount,
            total_quantity=rollup.stats.total_quantity,
            unique_product_count=rollup.stats.unique_product_count,
        ),
    )


@router.get(
    "/statements/{side}/{counterparty_id}",
    response_model=StatementResponse,
    summary="Counterparty Statement",
    description="Previous balance, period movements with running balance (newest first) and closing balance."
)
def statement(
    side: AccountSide,
    counterparty_id: str,
    start: datetime,
    end: Optional[datetime] = None,
    actor: Actor = Depends(get_actor),
):
    try:
        result = generate_statement(
            counterparty_id,
            side,
            _utc(start, "start"),
            _utc(end, "end"),
            actor,
        )
    except Exception as e:
        raise http_error(e, "generate statement")
    return StatementResponse(
        counterparty_id=result.counterparty_id,
        side=result.side,
        counterparty_name=result.counterparty_name,
        period_start=result.period_start,
        period_end=result.period_end,
        previous_balance=result.previous_balance,
        period_settled_amount=result.period_settled_amount,
        period_collected_amount=result.period_collected_amount,
        closing_balance=result.closing_balance,
        stored_balance=result.stored_balance,
        balance_matches_stored=result.balance_matches_stored,
        generated_at=result.generated_at,
        generated_by=result.generated_by,
        entries=[
            StatementEntryModel(
                occurred_at=entry.occurred_at,
                entry_type=entry.entry_type,
                document_number=entry.document_number,
                description=entry.description,
                debit=entry.debit,
                credit=entry.credit,
                balance=entry.balance,
                notes=entry.notes,
            )
            for entry in result.display_entries
        ],
    )
