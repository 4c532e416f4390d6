"""
Order service: placement, phase stamping and status transitions.

Handles:
- Order placement with the phase taken from the cutoff window read in the
  same transaction (open -> regular/placed, closed -> additional/confirmed)
- Order numbering (SO/PO) inside the placement transaction
- Status transitions along the fixed table in domain/order.py
- Batch confirmation of the regular orders at cutoff
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable, List, Optional

from domain.account import AccountSide
from domain.actor import Actor
from domain.errors import InvalidInput, InvalidState, NotFound
from domain.order import (
    Order,
    OrderKind,
    OrderLine,
    OrderPhase,
    OrderStatus,
    classify_new_order,
    require_order_lines,
)
from domain.time import utc_now
from repositories import directory_repository, order_repository
from repositories.client import get_store
from repositories.document_store import DocumentStore, Transaction
from services import cutoff_service, sequence_service
from services.config import EngineSettings, get_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class OrderLineRequest:
    product_id: str
    quantity: int
    unit_price: Decimal
    product_name: Optional[str] = None


@dataclass(frozen=True, slots=True)
class PlaceOrderRequest:
    """
    Request to place a sale or purchase order.

    kind: sale (customer order) or purchase (order to a supplier)
    counterparty_id: customer id for sales, supplier id for purchases
    """
    kind: OrderKind
    counterparty_id: str
    lines: List[OrderLineRequest]


def place_order(
    request: PlaceOrderRequest,
    actor: Actor,
    *,
    store: Optional[DocumentStore] = None,
    now: Optional[datetime] = None,
    settings: Optional[EngineSettings] = None,
) -> Order:
    """
    Create an order, stamping its phase from the current cutoff window.

    Raises:
        InvalidInput: no lines, or a negative quantity/price.
        NotFound: the counterparty is not in the directory.
        InvalidState: the counterparty is inactive.
    """

    store = store or get_store()
    settings = settings or get_settings()
    moment = now or utc_now()

    if not request.counterparty_id:
        raise InvalidInput("counterparty_id is required")
    requested_lines = require_order_lines(
        [
            OrderLine(
                product_id=line.product_id,
                quantity=line.quantity,
                unit_price=Decimal(str(line.unit_price)),
                product_name=line.product_name,
            )
            for line in request.lines
        ]
    )
    side = AccountSide.for_order_kind(request.kind)

    def _work(txn: Transaction) -> Order:
        counterparty = directory_repository.read_counterparty(txn, side, request.counterparty_id)
        if counterparty is None:
            raise NotFound(f"{side.value} counterparty not found: {request.counterparty_id}")
        if not counterparty.active:
            raise InvalidState(f"Counterparty {request.counterparty_id} is inactive")

        products = {
            product_id: directory_repository.read_product(txn, product_id)
            for product_id in sorted({line.product_id for line in requested_lines})
        }
        window = cutoff_service.read_window_or_default(txn, now=moment, tz=settings.business_timezone)
        counter = sequence_service.reserve_number(
            txn, request.kind.order_domain, now=moment, tz=settings.business_timezone
        )

        # Reads done; everything below only writes.
        status, phase = classify_new_order(window)
        lines = tuple(
            line
            if line.product_name or products[line.product_id] is None
            else OrderLine(
                product_id=line.product_id,
                quantity=line.quantity,
                unit_price=line.unit_price,
                product_name=products[line.product_id].name,
            )
            for line in requested_lines
        )
        order = Order(
            order_number=counter.document_number,
            kind=request.kind,
            status=status,
            phase=phase,
            counterparty_id=counterparty.counterparty_id,
            counterparty_name=counterparty.name,
            lines=lines,
            placed_at=moment,
            placed_by=actor.user_id,
            confirmed_at=moment if status is OrderStatus.CONFIRMED else None,
            updated_at=moment,
        )
        order_repository.create_order(txn, order)
        sequence_service.commit_number(txn, counter)
        return order

    order = store.run_transaction(
        _work, max_attempts=settings.transaction_max_attempts, label="place_order"
    )
    logger.info(
        f"Order {order.order_number} placed ({order.phase.value}/{order.status.value})",
        extra={
            "order_number": order.order_number,
            "kind": order.kind.value,
            "counterparty_id": order.counterparty_id,
            "total_amount": str(order.total_amount),
            "actor": actor.user_id,
        },
    )
    return order


def get_order(order_number: str, *, store: Optional[DocumentStore] = None) -> Order:
    """
    Raises:
        NotFound: no order with this number.
    """

    store = store or get_store()
    order = order_repository.get_order(store, order_number)
    if order is None:
        raise NotFound(f"Order not found: {order_number}")
    return order


def list_orders(
    *,
    kind: Optional[OrderKind] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    counterparty_id: Optional[str] = None,
    statuses: Optional[Iterable[OrderStatus]] = None,
    phase: Optional[OrderPhase] = None,
    store: Optional[DocumentStore] = None,
) -> List[Order]:
    store = store or get_store()
    return order_repository.list_orders(
        store,
        kind=kind,
        start=start,
        end=end,
        counterparty_id=counterparty_id,
        statuses=statuses,
        phase=phase,
    )


def transition_order(
    order_number: str,
    target: OrderStatus,
    actor: Actor,
    *,
    store: Optional[DocumentStore] = None,
    now: Optional[datetime] = None,
    settings: Optional[EngineSettings] = None,
) -> Order:
    """
    Move an order to `target` status. Phase is never touched.

    Raises:
        NotFound: no order with this number.
        InvalidState: the transition is not allowed (completion included;
            use settlement for that).
    """

    store = store or get_store()
    settings = settings or get_settings()
    moment = now or utc_now()

    def _work(txn: Transaction) -> Order:
        order = order_repository.read_order(txn, order_number)
        if order is None:
            raise NotFound(f"Order not found: {order_number}")
        updated = order.transition(target, moment)
        order_repository.save_order(txn, updated)
        return updated

    order = store.run_transaction(
        _work, max_attempts=settings.transaction_max_attempts, label=f"transition_order({order_number})"
    )
    logger.info(
        f"Order {order_number} moved to {target.value}",
        extra={"order_number": order_number, "status": target.value, "actor": actor.user_id},
    )
    return order


def confirm_regular_orders(
    actor: Actor,
    *,
    kind: Optional[OrderKind] = None,
    store: Optional[DocumentStore] = None,
    now: Optional[datetime] = None,
    settings: Optional[EngineSettings] = None,
) -> List[str]:
    """
    Confirm every `placed` regular order placed since the current window start.

    Each order is confirmed in its own transaction. An order that changed
    status concurrently is skipped with a warning.

    Returns:
        Order numbers that were confirmed.
    """

    store = store or get_store()
    settings = settings or get_settings()
    moment = now or utc_now()

    window_start = cutoff_service.current_range_start(store=store, now=moment, settings=settings)
    candidates = order_repository.list_orders(
        store,
        kind=kind,
        start=window_start,
        statuses=[OrderStatus.PLACED],
        phase=OrderPhase.REGULAR,
    )

    confirmed: List[str] = []
    for order in candidates:
        try:
            transition_order(
                order.order_number,
                OrderStatus.CONFIRMED,
                actor,
                store=store,
                now=moment,
                settings=settings,
            )
        except InvalidState as e:
            logger.warning(
                f"Skipped confirming order {order.order_number}: {e}",
                extra={"order_number": order.order_number},
            )
            continue
        confirmed.append(order.order_number)

    logger.info(f"Confirmed {len(confirmed)} regular order(s)", extra={"actor": actor.user_id})
    return confirmed


__all__ = [
    "OrderLineRequest",
    "PlaceOrderRequest",
    "place_order",
    "get_order",
    "list_orders",
    "transition_order",
    "confirm_regular_orders",
]
