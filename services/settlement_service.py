"""
Settlement service: confirmed order -> immutable ledger + running balance.

One atomic unit per settlement:
- Read the order, the product metadata, the counterparty account and the
  ledger counter (all reads first)
- Write the ledger, complete the order with the ledger back-reference,
  create/update the account balance and advance the counter
- Purchase settlements also write the settled unit price back to the product

Contention aborts the unit and it is retried from the reads. A retry that
finds the order already completed fails with Conflict, so an order is never
settled twice.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, List, Optional
from uuid import uuid4

from domain.account import AccountBalance, AccountSide
from domain.actor import Actor
from domain.directory import Product
from domain.errors import Conflict, InvalidInput, InvalidState, NotFound
from domain.ledger import Ledger, LedgerLine, UNCATEGORIZED, UNKNOWN_PRODUCT_CODE
from domain.order import OrderKind, OrderPhase, OrderStatus
from domain.time import utc_now
from repositories import (
    account_repository,
    directory_repository,
    ledger_repository,
    order_repository,
)
from repositories.client import get_store
from repositories.document_store import DocumentStore, Transaction
from services import sequence_service
from services.config import EngineSettings, get_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ShippedLine:
    """Quantity actually shipped (sale) or received (purchase) for one product."""
    product_id: str
    shipped_qty: int
    unit_price: Decimal
    product_name: Optional[str] = None


@dataclass(frozen=True, slots=True)
class SettlementResult:
    ledger_number: str
    ledger_id: str
    total_amount: Decimal


def _validate_shipped_lines(shipped_lines: Iterable[ShippedLine]) -> List[ShippedLine]:
    lines = list(shipped_lines)
    if not lines:
        raise InvalidInput("Settlement needs at least one shipped line")
    for line in lines:
        if not line.product_id:
            raise InvalidInput("product_id is required on every shipped line")
        if line.shipped_qty < 0:
            raise InvalidInput(f"shipped_qty must be >= 0 (product {line.product_id})")
        try:
            price = Decimal(str(line.unit_price))
        except (InvalidOperation, ValueError) as e:
            raise InvalidInput(f"Invalid unit_price {line.unit_price!r} (product {line.product_id})") from e
        if not price.is_finite() or price < 0:
            raise InvalidInput(f"unit_price must be a finite amount >= 0 (product {line.product_id})")
    return lines


def _ledger_line(line: ShippedLine, product: Optional[Product], order_number: str) -> LedgerLine:
    if product is None:
        logger.warning(
            f"Product metadata missing for {line.product_id}; settling as {UNCATEGORIZED}",
            extra={"order_number": order_number, "product_id": line.product_id},
        )
        return LedgerLine(
            product_id=line.product_id,
            product_code=UNKNOWN_PRODUCT_CODE,
            category=UNCATEGORIZED,
            quantity=line.shipped_qty,
            unit_price=Decimal(str(line.unit_price)),
            product_name=line.product_name,
        )
    return LedgerLine(
        product_id=line.product_id,
        product_code=product.product_code or UNKNOWN_PRODUCT_CODE,
        category=product.category or UNCATEGORIZED,
        quantity=line.shipped_qty,
        unit_price=Decimal(str(line.unit_price)),
        product_name=line.product_name or product.name,
    )


def settle_order(
    order_number: str,
    shipped_lines: Iterable[ShippedLine],
    actor: Actor,
    notes: Optional[str] = None,
    *,
    store: Optional[DocumentStore] = None,
    now: Optional[datetime] = None,
    settings: Optional[EngineSettings] = None,
) -> SettlementResult:
    """
    Settle a confirmed order into a ledger and raise the counterparty balance.

    Args:
        order_number: Order to settle (SO-... or PO-...)
        shipped_lines: What actually shipped; zero quantities are allowed
        actor: Who performed the settlement
        notes: Free-text note stored on the ledger

    Returns:
        SettlementResult with the ledger number, ledger id and total amount

    Raises:
        NotFound: no such order.
        Conflict: the order is already completed (or contention persisted).
        InvalidState: the order is not confirmed.
        InvalidInput: negative quantity/price or no lines.
    """

    store = store or get_store()
    settings = settings or get_settings()
    moment = now or utc_now()
    lines = _validate_shipped_lines(shipped_lines)

    def _work(txn: Transaction) -> Ledger:
        # Read phase.
        order = order_repository.read_order(txn, order_number)
        if order is None:
            raise NotFound(f"Order not found: {order_number}")
        if order.status is OrderStatus.COMPLETED:
            raise Conflict(f"Order {order_number} is already settled ({order.ledger_number})")
        if order.status is not OrderStatus.CONFIRMED:
            raise InvalidState(
                f"Order {order_number} must be confirmed before settlement (status: {order.status.value})"
            )

        products: Dict[str, Optional[Product]] = {
            product_id: directory_repository.read_product(txn, product_id)
            for product_id in sorted({line.product_id for line in lines})
        }
        side = AccountSide.for_order_kind(order.kind)
        account = account_repository.read_account(txn, side, order.counterparty_id)
        counter = sequence_service.reserve_number(
            txn, order.kind.ledger_domain, now=moment, tz=settings.business_timezone
        )

        # Compute.
        ledger = Ledger(
            ledger_id=str(uuid4()),
            ledger_number=counter.document_number,
            kind=order.kind,
            order_number=order.order_number,
            phase=order.phase,
            counterparty_id=order.counterparty_id,
            counterparty_name=order.counterparty_name,
            lines=tuple(_ledger_line(line, products[line.product_id], order_number) for line in lines),
            settled_at=moment,
            settled_by=actor.user_id,
            settled_by_name=actor.display_name,
            notes=notes,
        )
        completed = order.completed(ledger_number=ledger.ledger_number, ledger_id=ledger.ledger_id, now=moment)
        if account is None:
            account = AccountBalance.empty(order.counterparty_id, side, order.counterparty_name, moment)
        account = account.with_settlement(ledger.total_amount, moment)

        # Write phase.
        ledger_repository.create_ledger(txn, ledger)
        order_repository.save_order(txn, completed)
        account_repository.write_account(txn, account)
        sequence_service.commit_number(txn, counter)
        if order.kind is OrderKind.PURCHASE:
            for line in ledger.lines:
                if products[line.product_id] is not None:
                    directory_repository.update_purchase_price(txn, line.product_id, line.unit_price)
        return ledger

    ledger = store.run_transaction(
        _work, max_attempts=settings.transaction_max_attempts, label=f"settle_order({order_number})"
    )
    logger.info(
        f"Order {order_number} settled as {ledger.ledger_number}",
        extra={
            "order_number": order_number,
            "ledger_number": ledger.ledger_number,
            "ledger_id": ledger.ledger_id,
            "phase": ledger.phase.value,
            "total_amount": str(ledger.total_amount),
            "actor": actor.user_id,
        },
    )
    return SettlementResult(
        ledger_number=ledger.ledger_number,
        ledger_id=ledger.ledger_id,
        total_amount=ledger.total_amount,
    )


def get_ledger(ledger_id: str, *, store: Optional[DocumentStore] = None) -> Ledger:
    store = store or get_store()
    ledger = ledger_repository.get_ledger(store, ledger_id)
    if ledger is None:
        raise NotFound(f"Ledger not found: {ledger_id}")
    return ledger


def get_ledger_by_number(ledger_number: str, *, store: Optional[DocumentStore] = None) -> Ledger:
    store = store or get_store()
    ledger = ledger_repository.get_ledger_by_number(store, ledger_number)
    if ledger is None:
        raise NotFound(f"Ledger not found: {ledger_number}")
    return ledger


def list_ledgers(
    *,
    kind: Optional[OrderKind] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    counterparty_id: Optional[str] = None,
    phase: Optional[OrderPhase] = None,
    store: Optional[DocumentStore] = None,
) -> List[Ledger]:
    store = store or get_store()
    return ledger_repository.list_ledgers(
        store, kind=kind, start=start, end=end, counterparty_id=counterparty_id, phase=phase
    )


__all__ = [
    "ShippedLine",
    "SettlementResult",
    "settle_order",
    "get_ledger",
    "get_ledger_by_number",
    "list_ledgers",
]
