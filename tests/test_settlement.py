"""
Tests for `services/settlement_service.py`.

Covers contract rules:
- One atomic unit: ledger, completed order, balance and counter together.
- Settlement is idempotent: a second attempt raises Conflict and changes
  nothing, including when the duplicate is discovered on retry.
- A failed settlement consumes no ledger number.
- Missing product metadata degrades to uncategorized/UNKNOWN.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from decimal import Decimal

import pytest

from domain.account import AccountSide
from domain.directory import Counterparty
from domain.errors import Conflict, InvalidInput, InvalidState, NotFound
from domain.ledger import UNCATEGORIZED, UNKNOWN_PRODUCT_CODE
from domain.order import OrderKind, OrderPhase, OrderStatus
from domain.sequence import DocumentDomain
from repositories import account_repository, directory_repository, ledger_repository
from repositories.document_store import InMemoryDocumentStore
from services import cutoff_service
from services.order_service import OrderLineRequest, PlaceOrderRequest, get_order, place_order
from services.sequence_service import next_document_number
from services.settlement_service import ShippedLine, get_ledger, get_ledger_by_number, settle_order


def test_settlement_creates_ledger_completes_order_and_opens_account(
    directory, settings, clock, actor, confirmed_order
) -> None:
    order = confirmed_order([("p-apple", 10, "3000"), ("p-pear", 5, "4000")])

    result = settle_order(
        order.order_number,
        [ShippedLine("p-apple", 10, Decimal("3000")), ShippedLine("p-pear", 0, Decimal("4000"))],
        actor,
        notes="pear out of stock",
        store=directory,
        now=clock,
        settings=settings,
    )

    assert result.ledger_number == "SL-251017-001"
    assert result.total_amount == Decimal("30000")

    ledger = get_ledger(result.ledger_id, store=directory)
    assert ledger.ledger_number == result.ledger_number
    assert ledger.order_number == order.order_number
    assert ledger.phase is OrderPhase.REGULAR
    assert ledger.notes == "pear out of stock"
    assert [(line.product_code, line.category, line.quantity) for line in ledger.lines] == [
        ("FR-001", "fruit", 10),
        ("FR-002", "fruit", 0),
    ]
    assert get_ledger_by_number(result.ledger_number, store=directory) == ledger

    completed = get_order(order.order_number, store=directory)
    assert completed.status is OrderStatus.COMPLETED
    assert completed.completed_at == clock
    assert (completed.ledger_number, completed.ledger_id) == (result.ledger_number, result.ledger_id)
    assert completed.phase is order.phase

    account = account_repository.get_account(directory, AccountSide.RECEIVABLE, "cust-1")
    assert account.total_settled_amount == Decimal("30000")
    assert account.current_balance == Decimal("30000")
    assert account.total_collected_amount == Decimal("0")
    assert account.transaction_count == 1
    assert account.last_settlement_at == clock


def test_second_settlement_is_a_conflict_and_changes_nothing(
    directory, settings, clock, actor, confirmed_order
) -> None:
    order = confirmed_order([("p-apple", 2, "1000")])
    lines = [ShippedLine("p-apple", 2, Decimal("1000"))]
    settle_order(order.order_number, lines, actor, store=directory, now=clock, settings=settings)

    with pytest.raises(Conflict):
        settle_order(order.order_number, lines, actor, store=directory, now=clock, settings=settings)

    assert len(ledger_repository.list_ledgers(directory, order_number=order.order_number)) == 1
    account = account_repository.get_account(directory, AccountSide.RECEIVABLE, "cust-1")
    assert account.current_balance == Decimal("2000")
    assert account.transaction_count == 1


def test_balance_accumulates_across_settlements(directory, settings, clock, actor, confirmed_order) -> None:
    first = confirmed_order([("p-apple", 1, "1000")])
    second = confirmed_order([("p-pear", 3, "500")])

    settle_order(first.order_number, [ShippedLine("p-apple", 1, Decimal("1000"))], actor,
                 store=directory, now=clock, settings=settings)
    result = settle_order(second.order_number, [ShippedLine("p-pear", 3, Decimal("500"))], actor,
                          store=directory, now=clock, settings=settings)

    assert result.ledger_number == "SL-251017-002"
    account = account_repository.get_account(directory, AccountSide.RECEIVABLE, "cust-1")
    assert account.total_settled_amount == Decimal("2500")
    assert account.current_balance == account.total_settled_amount - account.total_collected_amount
    assert account.transaction_count == 2


def test_unconfirmed_order_is_invalid_state_and_consumes_no_number(
    directory, settings, clock, actor
) -> None:
    order = place_order(
        PlaceOrderRequest(OrderKind.SALE, "cust-1", [OrderLineRequest("p-apple", 1, Decimal("100"))]),
        actor, store=directory, now=clock, settings=settings,
    )
    assert order.status is OrderStatus.PLACED

    with pytest.raises(InvalidState):
        settle_order(order.order_number, [ShippedLine("p-apple", 1, Decimal("100"))], actor,
                     store=directory, now=clock, settings=settings)

    assert account_repository.get_account(directory, AccountSide.RECEIVABLE, "cust-1") is None
    assert next_document_number(DocumentDomain.SALE_LEDGER, store=directory, now=clock, settings=settings) == "SL-251017-001"


def test_missing_order_and_bad_lines(directory, settings, clock, actor, confirmed_order) -> None:
    with pytest.raises(NotFound):
        settle_order("SO-251017-404", [ShippedLine("p-apple", 1, Decimal("1"))], actor,
                     store=directory, now=clock, settings=settings)

    order = confirmed_order([("p-apple", 1, "100")])
    with pytest.raises(InvalidInput):
        settle_order(order.order_number, [ShippedLine("p-apple", -1, Decimal("100"))], actor,
                     store=directory, now=clock, settings=settings)
    with pytest.raises(InvalidInput):
        settle_order(order.order_number, [ShippedLine("p-apple", 1, Decimal("-5"))], actor,
                     store=directory, now=clock, settings=settings)
    with pytest.raises(InvalidInput):
        settle_order(order.order_number, [], actor, store=directory, now=clock, settings=settings)
    for price in ("NaN", "Infinity", "-Infinity"):
        with pytest.raises(InvalidInput):
            settle_order(order.order_number, [ShippedLine("p-apple", 1, Decimal(price))], actor,
                         store=directory, now=clock, settings=settings)

    assert get_order(order.order_number, store=directory).status is OrderStatus.CONFIRMED


def test_missing_product_metadata_degrades_with_warning(
    directory, settings, clock, actor, confirmed_order, caplog
) -> None:
    order = confirmed_order([("p-ghost", 2, "700")])

    with caplog.at_level(logging.WARNING, logger="services.settlement_service"):
        result = settle_order(order.order_number, [ShippedLine("p-ghost", 2, Decimal("700"), "Mystery box")], actor,
                              store=directory, now=clock, settings=settings)

    ledger = get_ledger(result.ledger_id, store=directory)
    assert ledger.lines[0].category == UNCATEGORIZED
    assert ledger.lines[0].product_code == UNKNOWN_PRODUCT_CODE
    assert ledger.lines[0].product_name == "Mystery box"
    assert result.total_amount == Decimal("1400")
    assert "p-ghost" in caplog.text


def test_ledger_carries_additional_phase(directory, settings, clock, actor, confirmed_order) -> None:
    cutoff_service.close_window(actor, store=directory, now=clock, settings=settings)
    order = confirmed_order([("p-apple", 1, "1000")], now=clock + timedelta(minutes=10))
    assert order.phase is OrderPhase.ADDITIONAL

    cutoff_service.reset_window(actor, store=directory, now=clock + timedelta(hours=1), settings=settings)
    result = settle_order(order.order_number, [ShippedLine("p-apple", 1, Decimal("1000"))], actor,
                          store=directory, now=clock + timedelta(hours=2), settings=settings)

    assert get_ledger(result.ledger_id, store=directory).phase is OrderPhase.ADDITIONAL


def test_purchase_settlement_updates_payable_and_purchase_price(
    directory, settings, clock, actor, confirmed_order
) -> None:
    order = confirmed_order([("p-apple", 100, "1800")], kind=OrderKind.PURCHASE, counterparty_id="sup-1")

    result = settle_order(order.order_number, [ShippedLine("p-apple", 90, Decimal("1800"))], actor,
                          store=directory, now=clock, settings=settings)

    assert result.ledger_number == "PL-251017-001"
    payable = account_repository.get_account(directory, AccountSide.PAYABLE, "sup-1")
    assert payable.current_balance == Decimal("162000")
    assert account_repository.get_account(directory, AccountSide.RECEIVABLE, "sup-1") is None
    assert directory_repository.get_product(directory, "p-apple").purchase_price == Decimal("1800")


class _RacingStore(InMemoryDocumentStore):
    """Runs `race` right before the first commit after arming."""

    def __init__(self) -> None:
        super().__init__()
        self._race = None

    def arm(self, race) -> None:
        self._race = race

    def _commit(self, read_versions, writes):
        race, self._race = self._race, None
        if race is not None:
            race()
        super()._commit(read_versions, writes)


def test_retry_that_finds_order_completed_raises_conflict(settings, clock, actor) -> None:
    store = _RacingStore()
    directory_repository.save_counterparty(store, Counterparty("cust-1", AccountSide.RECEIVABLE, "Alpha Mart"))
    cutoff_service.close_window(actor, store=store, now=clock, settings=settings)
    order = place_order(
        PlaceOrderRequest(OrderKind.SALE, "cust-1", [OrderLineRequest("p-apple", 1, Decimal("500"))]),
        actor, store=store, now=clock, settings=settings,
    )
    lines = [ShippedLine("p-apple", 1, Decimal("500"))]

    # A concurrent settlement commits between our reads and our commit.
    store.arm(lambda: settle_order(order.order_number, lines, actor, store=store, now=clock, settings=settings))

    with pytest.raises(Conflict):
        settle_order(order.order_number, lines, actor, store=store, now=clock, settings=settings)

    assert len(ledger_repository.list_ledgers(store, order_number=order.order_number)) == 1
    account = account_repository.get_account(store, AccountSide.RECEIVABLE, "cust-1")
    assert account.current_balance == Decimal("500")
    assert account.transaction_count == 1
