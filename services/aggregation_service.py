"""
Aggregation service: order and ledger rollups for the back-office reports.

Rollups split by the phase stored on each record (regular vs additional);
the current cutoff window is only used for the default start of the range.

Tree shape: category -> supplier -> product, suppliers sorted by total amount
descending. Products missing from the catalog land under "uncategorized" /
"unassigned".
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Set, Tuple

from domain.account import AccountSide
from domain.directory import Product
from domain.errors import InvalidInput
from domain.ledger import UNCATEGORIZED, UNKNOWN_PRODUCT_CODE
from domain.order import OrderKind, OrderPhase, OrderStatus
from domain.payment import PaymentDirection
from domain.time import require_utc_timestamp, utc_now
from repositories import directory_repository, ledger_repository, order_repository, payment_repository
from repositories.client import get_store
from repositories.document_store import DocumentStore
from services import cutoff_service
from services.config import EngineSettings, get_settings

UNASSIGNED_SUPPLIER = "unassigned"

_ZERO = Decimal("0")


@dataclass(slots=True)
class BucketTotals:
    count: int = 0
    amount: Decimal = _ZERO
    quantity: int = 0


@dataclass(slots=True)
class ProductRollup:
    product_id: str
    product_code: str
    product_name: Optional[str]
    regular_quantity: int = 0
    regular_amount: Decimal = _ZERO
    additional_quantity: int = 0
    additional_amount: Decimal = _ZERO

    @property
    def total_quantity(self) -> int:
        return self.regular_quantity + self.additional_quantity

    @property
    def total_amount(self) -> Decimal:
        return self.regular_amount + self.additional_amount


@dataclass(slots=True)
class SupplierRollup:
    supplier_id: str
    supplier_name: str
    products: List[ProductRollup] = field(default_factory=list)

    @property
    def total_amount(self) -> Decimal:
        return sum((product.total_amount for product in self.products), _ZERO)

    @property
    def total_quantity(self) -> int:
        return sum(product.total_quantity for product in self.products)


@dataclass(slots=True)
class CategoryRollup:
    category: str
    suppliers: List[SupplierRollup] = field(default_factory=list)

    @property
    def total_amount(self) -> Decimal:
        return sum((supplier.total_amount for supplier in self.suppliers), _ZERO)


@dataclass(frozen=True, slots=True)
class OrderRollup:
    kind: OrderKind
    start: datetime
    end: datetime
    regular: BucketTotals
    additional: BucketTotals
    pended: BucketTotals
    rejected: BucketTotals
    categories: List[CategoryRollup]


@dataclass(frozen=True, slots=True)
class LedgerStats:
    ledger_count: int
    total_amount: Decimal
    average_amount: Decimal
    total_quantity: int
    unique_product_count: int


@dataclass(frozen=True, slots=True)
class LedgerRollup:
    kind: OrderKind
    start: datetime
    end: datetime
    regular: BucketTotals
    additional: BucketTotals
    categories: List[CategoryRollup]
    stats: LedgerStats


@dataclass(frozen=True, slots=True)
class PeriodSummary:
    """Settled vs collected totals for one counterparty over [start, end)."""
    counterparty_id: str
    side: AccountSide
    start: datetime
    end: datetime
    settled_amount: Decimal
    collected_amount: Decimal
    difference: Decimal
    ledger_count: int
    payment_count: int
    unique_product_count: int
    total_quantity: int


# (category, supplier_id, product_id) -> ProductRollup
_TreeKey = Tuple[str, str, str]


class _TreeBuilder:
    def __init__(self) -> None:
        self._products: Dict[_TreeKey, ProductRollup] = {}

    def add(
        self,
        *,
        category: str,
        supplier_id: str,
        product_id: str,
        product_code: str,
        product_name: Optional[str],
        phase: OrderPhase,
        quantity: int,
        amount: Decimal,
    ) -> None:
        key = (category, supplier_id, product_id)
        rollup = self._products.get(key)
        if rollup is None:
            rollup = ProductRollup(product_id=product_id, product_code=product_code, product_name=product_name)
            self._products[key] = rollup
        if phase is OrderPhase.ADDITIONAL:
            rollup.additional_quantity += quantity
            rollup.additional_amount += amount
        else:
            rollup.regular_quantity += quantity
            rollup.regular_amount += amount

    def build(self, supplier_names: Dict[str, str]) -> List[CategoryRollup]:
        categories: Dict[str, Dict[str, SupplierRollup]] = {}
        for (category, supplier_id, _), product in self._products.items():
            suppliers = categories.setdefault(category, {})
            supplier = suppliers.get(supplier_id)
            if supplier is None:
                supplier = SupplierRollup(
                    supplier_id=supplier_id,
                    supplier_name=supplier_names.get(supplier_id, supplier_id),
                )
                suppliers[supplier_id] = supplier
            supplier.products.append(product)

        result: List[CategoryRollup] = []
        for category in sorted(categories, key=lambda name: (name == UNCATEGORIZED, name)):
            suppliers = list(categories[category].values())
            for supplier in suppliers:
                supplier.products.sort(key=lambda product: product.product_code)
            suppliers.sort(key=lambda supplier: (-supplier.total_amount, supplier.supplier_id))
            result.append(CategoryRollup(category=category, suppliers=suppliers))
        return result


def _resolve_range(
    store: DocumentStore,
    settings: EngineSettings,
    start: Optional[datetime],
    end: Optional[datetime],
    now: Optional[datetime],
) -> Tuple[datetime, datetime]:
    moment = now or utc_now()
    if start is None:
        start = cutoff_service.current_range_start(store=store, now=moment, settings=settings)
    if end is None:
        end = moment
    try:
        require_utc_timestamp("start", start)
        require_utc_timestamp("end", end)
    except ValueError as e:
        raise InvalidInput(str(e)) from e
    if end <= start:
        raise InvalidInput("end must be after start")
    return start, end


def _supplier_names(store: DocumentStore) -> Dict[str, str]:
    names = {
        supplier.counterparty_id: supplier.name
        for supplier in directory_repository.list_counterparties(store, AccountSide.PAYABLE)
    }
    names.setdefault(UNASSIGNED_SUPPLIER, UNASSIGNED_SUPPLIER)
    return names


def _line_matches(
    product: Optional[Product],
    category: str,
    *,
    category_filter: Optional[str],
    supplier_filter: Optional[str],
) -> bool:
    if category_filter is not None and category != category_filter:
        return False
    if supplier_filter is not None:
        supplier_id = product.supplier_id if product is not None else None
        if (supplier_id or UNASSIGNED_SUPPLIER) != supplier_filter:
            return False
    return True


def aggregate_orders(
    kind: OrderKind,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    *,
    counterparty_id: Optional[str] = None,
    category: Optional[str] = None,
    supplier_id: Optional[str] = None,
    statuses: Optional[Iterable[OrderStatus]] = None,
    store: Optional[DocumentStore] = None,
    now: Optional[datetime] = None,
    settings: Optional[EngineSettings] = None,
) -> OrderRollup:
    """
    Roll up orders placed in [start, end).

    Pended and rejected orders are only counted in their own buckets.
    Cancelled orders are always excluded. Everything else is split by the
    order's stored phase and added to the product tree.

    Defaults: start = current window start, end = now.
    """

    store = store or get_store()
    settings = settings or get_settings()
    start, end = _resolve_range(store, settings, start, end, now)
    wanted: Optional[Set[OrderStatus]] = set(statuses) if statuses is not None else None

    catalog = directory_repository.product_catalog(store)
    orders = order_repository.list_orders(
        store, kind=kind, start=start, end=end, counterparty_id=counterparty_id
    )

    buckets = {
        "regular": BucketTotals(),
        "additional": BucketTotals(),
        "pended": BucketTotals(),
        "rejected": BucketTotals(),
    }
    tree = _TreeBuilder()

    for order in orders:
        if order.status is OrderStatus.CANCELLED:
            continue
        if wanted is not None and order.status not in wanted:
            continue

        matched = []
        for line in order.lines:
            product = catalog.get(line.product_id)
            line_category = (product.category if product is not None else None) or UNCATEGORIZED
            if _line_matches(product, line_category, category_filter=category, supplier_filter=supplier_id):
                matched.append((line, product, line_category))
        if not matched:
            continue

        amount = sum((line.line_total for line, _, _ in matched), _ZERO)
        quantity = sum(line.quantity for line, _, _ in matched)

        if order.status is OrderStatus.PENDED:
            bucket = buckets["pended"]
        elif order.status is OrderStatus.REJECTED:
            bucket = buckets["rejected"]
        else:
            bucket = buckets[order.phase.value]
            for line, product, line_category in matched:
                tree.add(
                    category=line_category,
                    supplier_id=(product.supplier_id if product is not None else None) or UNASSIGNED_SUPPLIER,
                    product_id=line.product_id,
                    product_code=product.product_code if product is not None else UNKNOWN_PRODUCT_CODE,
                    product_name=line.product_name or (product.name if product is not None else None),
                    phase=order.phase,
                    quantity=line.quantity,
                    amount=line.line_total,
                )
        bucket.count += 1
        bucket.amount += amount
        bucket.quantity += quantity

    return OrderRollup(
        kind=kind,
        start=start,
        end=end,
        regular=buckets["regular"],
        additional=buckets["additional"],
        pended=buckets["pended"],
        rejected=buckets["rejected"],
        categories=tree.build(_supplier_names(store)),
    )


def aggregate_ledgers(
    kind: OrderKind,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    *,
    counterparty_id: Optional[str] = None,
    category: Optional[str] = None,
    supplier_id: Optional[str] = None,
    store: Optional[DocumentStore] = None,
    now: Optional[datetime] = None,
    settings: Optional[EngineSettings] = None,
) -> LedgerRollup:
    """
    Roll up ledgers settled in [start, end), split by the phase each ledger
    carries, plus overall stats.
    """

    store = store or get_store()
    settings = settings or get_settings()
    start, end = _resolve_range(store, settings, start, end, now)

    catalog = directory_repository.product_catalog(store)
    ledgers = ledger_repository.list_ledgers(
        store, kind=kind, start=start, end=end, counterparty_id=counterparty_id
    )

    regular = BucketTotals()
    additional = BucketTotals()
    tree = _TreeBuilder()
    product_ids: Set[str] = set()
    ledger_count = 0
    total_amount = _ZERO
    total_quantity = 0

    for ledger in ledgers:
        matched = [
            line
            for line in ledger.lines
            if _line_matches(
                catalog.get(line.product_id),
                line.category,
                category_filter=category,
                supplier_filter=supplier_id,
            )
        ]
        if not matched:
            continue

        amount = sum((line.line_total for line in matched), _ZERO)
        quantity = sum(line.quantity for line in matched)
        bucket = additional if ledger.phase is OrderPhase.ADDITIONAL else regular
        bucket.count += 1
        bucket.amount += amount
        bucket.quantity += quantity

        ledger_count += 1
        total_amount += amount
        total_quantity += quantity

        for line in matched:
            product = catalog.get(line.product_id)
            product_ids.add(line.product_id)
            tree.add(
                category=line.category,
                supplier_id=(product.supplier_id if product is not None else None) or UNASSIGNED_SUPPLIER,
                product_id=line.product_id,
                product_code=line.product_code,
                product_name=line.product_name,
                phase=ledger.phase,
                quantity=line.quantity,
                amount=line.line_total,
            )

    stats = LedgerStats(
        ledger_count=ledger_count,
        total_amount=total_amount,
        average_amount=(total_amount / ledger_count) if ledger_count else _ZERO,
        total_quantity=total_quantity,
        unique_product_count=len(product_ids),
    )
    return LedgerRollup(
        kind=kind,
        start=start,
        end=end,
        regular=regular,
        additional=additional,
        categories=tree.build(_supplier_names(store)),
        stats=stats,
    )


def summarize_period(
    counterparty_id: str,
    side: AccountSide,
    start: datetime,
    end: datetime,
    *,
    store: Optional[DocumentStore] = None,
    settings: Optional[EngineSettings] = None,
) -> PeriodSummary:
    """Settled and collected totals for one counterparty (monthly stats view)."""

    store = store or get_store()
    settings = settings or get_settings()
    start, end = _resolve_range(store, settings, start, end, None)

    kind = OrderKind.SALE if side is AccountSide.RECEIVABLE else OrderKind.PURCHASE
    ledgers = ledger_repository.list_ledgers(store, kind=kind, start=start, end=end, counterparty_id=counterparty_id)
    payments = payment_repository.list_payments(
        store,
        direction=PaymentDirection.for_side(side),
        counterparty_id=counterparty_id,
        start=start,
        end=end,
    )

    settled = sum((ledger.total_amount for ledger in ledgers), _ZERO)
    collected = sum((payment.amount for payment in payments), _ZERO)
    return PeriodSummary(
        counterparty_id=counterparty_id,
        side=side,
        start=start,
        end=end,
        settled_amount=settled,
        collected_amount=collected,
        difference=settled - collected,
        ledger_count=len(ledgers),
        payment_count=len(payments),
        unique_product_count=len({line.product_id for ledger in ledgers for line in ledger.lines}),
        total_quantity=sum(ledger.total_quantity for ledger in ledgers),
    )


__all__ = [
    "BucketTotals",
    "ProductRollup",
    "SupplierRollup",
    "CategoryRollup",
    "OrderRollup",
    "LedgerRollup",
    "LedgerStats",
    "PeriodSummary",
    "UNASSIGNED_SUPPLIER",
    "aggregate_orders",
    "aggregate_ledgers",
    "summarize_period",
]
