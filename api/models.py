"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from domain.account import AccountSide
from domain.order import OrderKind, OrderPhase, OrderStatus
from domain.payment import PaymentDirection, PaymentMethod
from domain.statement import EntryType


# ============================================================================
# Cutoff Models
# ============================================================================

class CutoffWindowResponse(BaseModel):
    """Current cutoff window."""
    window_start: datetime
    is_closed: bool
    closed_at: Optional[datetime] = None
    closed_by: Optional[str] = None
    closed_by_name: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "window_start": "2025-10-16T15:00:00Z",
                "is_closed": True,
                "closed_at": "2025-10-17T02:00:00Z",
                "closed_by": "user-17",
                "closed_by_name": "Kim"
            }
        }


class ConfirmRegularOrdersResponse(BaseModel):
    confirmed_order_numbers: List[str]
    confirmed_count: int


# ============================================================================
# Order Models
# ============================================================================

class OrderLineModel(BaseModel):
    product_id: str = Field(..., min_length=1)
    quantity: int
    unit_price: Decimal
    product_name: Optional[str] = None


class PlaceOrderRequest(BaseModel):
    """Request to place a sale or purchase order."""
    kind: OrderKind
    counterparty_id: str = Field(..., min_length=1)
    lines: List[OrderLineModel] = Field(..., min_length=1)

    class Config:
        json_schema_extra = {
            "example": {
                "kind": "sale",
                "counterparty_id": "cust-001",
                "lines": [
                    {"product_id": "p-apple", "quantity": 10, "unit_price": "3000"},
                    {"product_id": "p-pear", "quantity": 5, "unit_price": "4000"}
                ]
            }
        }


class OrderLineResponse(BaseModel):
    product_id: str
    product_name: Optional[str] = None
    quantity: int
    unit_price: Decimal
    line_total: Decimal


class OrderResponse(BaseModel):
    order_number: str
    kind: OrderKind
    status: OrderStatus
    phase: OrderPhase
    counterparty_id: str
    counterparty_name: str
    lines: List[OrderLineResponse]
    total_amount: Decimal
    placed_at: datetime
    placed_by: str
    confirmed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    ledger_number: Optional[str] = None
    ledger_id: Optional[str] = None


class TransitionRequest(BaseModel):
    status: OrderStatus


# ============================================================================
# Settlement Models
# ============================================================================

class ShippedLineModel(BaseModel):
    product_id: str = Field(..., min_length=1)
    shipped_qty: int
    unit_price: Decimal
    product_name: Optional[str] = None


class SettleRequest(BaseModel):
    """Shipped (sale) or received (purchase) quantities for a confirmed order."""
    lines: List[ShippedLineModel] = Field(..., min_length=1)
    notes: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "lines": [
                    {"product_id": "p-apple", "shipped_qty": 10, "unit_price": "3000"},
                    {"product_id": "p-pear", "shipped_qty": 0, "unit_price": "4000"}
                ],
                "notes": "pear out of stock"
            }
        }


class SettlementResponse(BaseModel):
    ledger_number: str
    ledger_id: str
    total_amount: Decimal


# ============================================================================
# Payment / Account Models
# ============================================================================

class TaxInvoiceModel(BaseModel):
    invoice_number: str
    issue_date: datetime
    bank_account: str
    deposit_date: datetime


class PaymentRequest(BaseModel):
    """Collection from a customer or payout to a supplier."""
    counterparty_id: str = Field(..., min_length=1)
    amount: Decimal
    method: PaymentMethod
    occurred_at: datetime
    direction: PaymentDirection = PaymentDirection.COLLECTION
    notes: Optional[str] = None
    tax_invoice: Optional[TaxInvoiceModel] = None

    class Config:
        json_schema_extra = {
            "example": {
                "counterparty_id": "cust-001",
                "amount": "30000",
                "method": "bank_transfer",
                "occurred_at": "2025-10-17T05:00:00Z",
                "direction": "collection"
            }
        }


class PaymentResponse(BaseModel):
    document_number: str
    payment_id: str


class AccountResponse(BaseModel):
    counterparty_id: str
    side: AccountSide
    counterparty_name: str
    total_settled_amount: Decimal
    total_collected_amount: Decimal
    current_balance: Decimal
    transaction_count: int
    last_settlement_at: Optional[datetime] = None
    last_collection_at: Optional[datetime] = None


class AccountListResponse(BaseModel):
    items: List[AccountResponse]
    total_count: int


# ============================================================================
# Report Models
# ============================================================================

class BucketTotalsModel(BaseModel):
    count: int
    amount: Decimal
    quantity: int


class ProductRollupModel(BaseModel):
    product_id: str
    product_code: str
    product_name: Optional[str] = None
    regular_quantity: int
    regular_amount: Decimal
    additional_quantity: int
    additional_amount: Decimal
    total_quantity: int
    total_amount: Decimal


class SupplierRollupModel(BaseModel):
    supplier_id: str
    supplier_name: str
    total_amount: Decimal
    products: List[ProductRollupModel]


class CategoryRollupModel(BaseModel):
    category: str
    total_amount: Decimal
    suppliers: List[SupplierRollupModel]


class OrderRollupResponse(BaseModel):
    kind: OrderKind
    start: datetime
    end: datetime
    regular: BucketTotalsModel
    additional: BucketTotalsModel
    pended: BucketTotalsModel
    rejected: BucketTotalsModel
    categories: List[CategoryRollupModel]


class LedgerStatsModel(BaseModel):
    ledger_count: int
    total_amount: Decimal
    average_amount: Decimal
    total_quantity: int
    unique_product_count: int


class LedgerRollupResponse(BaseModel):
    kind: OrderKind
    start: datetime
    end: datetime
    regular: BucketTotalsModel
    additional: BucketTotalsModel
    categories: List[CategoryRollupModel]
    stats: LedgerStatsModel


class StatementEntryModel(BaseModel):
    occurred_at: datetime
    entry_type: EntryType
    document_number: str
    description: str
    debit: Decimal
    credit: Decimal
    balance: Decimal
    notes: Optional[str] = None


class StatementResponse(BaseModel):
    """Counterparty statement; entries are newest first."""
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
    balance_matches_stored: Optional[bool] = None
    generated_at: datetime
    generated_by: str
    entries: List[StatementEntryModel]
