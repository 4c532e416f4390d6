"""
Tests for `services/aggregation_service.py`.

Covers contract rules:
- Buckets: regular/additional by stored phase; pended and rejected apart;
  cancelled excluded.
- Category -> supplier -> product tree, suppliers by amount descending,
  unknown products under uncategorized/unassigned.
- Phase comes from the record, never from the current window.
"""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import pytest

from domain.account import AccountSide
from domain.directory import Product
from domain.errors import InvalidInput
from domain.order import OrderKind, OrderStatus
from domain.payment import PaymentMethod
from repositories.directory_repository import save_product
from services import cutoff_service
from services.aggregation_service import (
    UNASSIGNED_SUPPLIER,
    aggregate_ledgers,
    aggregate_orders,
    summarize_period,
)
from services.order_service import OrderLineRequest, PlaceOrderRequest, place_order, transition_order
from services.payment_service import record_payment
from services.settlement_service import ShippedLine, settle_order


@pytest.fixture
def day(directory, settings, clock, actor):
    """
    One ordering day:
      A regular   cust-1 apple 10x3000, mackerel 2x5000, grape 1x60000 (confirmed)
      B regular   cust-2 pear 4x2500 (pended)
      C regular   cust-1 apple 1x3000 (rejected)
      D regular   cust-1 pear 1x2500 (cancelled)
      -- window closed --
      E additional cust-2 apple 5x3000, ghost 1x100 (auto-confirmed)
      -- window reset --
    """

    save_product(directory, Product("p-grape", "FR-003", "Grape", "fruit", "sup-2", Decimal("40000")))
    cutoff_service.open_window(actor, store=directory, now=clock, settings=settings)

    def place(minutes, counterparty_id, lines, status=None):
        moment = clock + timedelta(minutes=minutes)
        order = place_order(
            PlaceOrderRequest(
                OrderKind.SALE,
                counterparty_id,
                [OrderLineRequest(product_id, qty, Decimal(price)) for product_id, qty, price in lines],
            ),
            actor, store=directory, now=moment, settings=settings,
        )
        if status is not None:
            order = transition_order(order.order_number, status, actor, store=directory, now=moment, settings=settings)
        return order

    orders = {
        "A": place(1, "cust-1", [("p-apple", 10, "3000"), ("p-mackerel", 2, "5000"), ("p-grape", 1, "60000")],
                   OrderStatus.CONFIRMED),
        "B": place(2, "cust-2", [("p-pear", 4, "2500")], OrderStatus.PENDED),
        "C": place(3, "cust-1", [("p-apple", 1, "3000")], OrderStatus.REJECTED),
        "D": place(4, "cust-1", [("p-pear", 1, "2500")], OrderStatus.CANCELLED),
    }
    cutoff_service.close_window(actor, store=directory, now=clock + timedelta(hours=1), settings=settings)
    orders["E"] = place(70, "cust-2", [("p-apple", 5, "3000"), ("p-ghost", 1, "100")])
    cutoff_service.reset_window(actor, store=directory, now=clock + timedelta(hours=2), settings=settings)
    return orders


def _settle_all(directory, settings, clock, actor, orders):
    moment = clock + timedelta(hours=2, minutes=30)
    for key in ("A", "E"):
        order = orders[key]
        settle_order(
            order.order_number,
            [ShippedLine(line.product_id, line.quantity, line.unit_price) for line in order.lines],
            actor, store=directory, now=moment, settings=settings,
        )


def test_order_buckets(directory, settings, clock, day) -> None:
    rollup = aggregate_orders(OrderKind.SALE, clock, clock + timedelta(hours=3), store=directory, settings=settings)

    assert (rollup.regular.count, rollup.regular.amount, rollup.regular.quantity) == (1, Decimal("100000"), 13)
    assert (rollup.additional.count, rollup.additional.amount, rollup.additional.quantity) == (1, Decimal("15100"), 6)
    assert (rollup.pended.count, rollup.pended.amount) == (1, Decimal("10000"))
    assert (rollup.rejected.count, rollup.rejected.amount) == (1, Decimal("3000"))


def test_order_tree_shape(directory, settings, clock, day) -> None:
    rollup = aggregate_orders(OrderKind.SALE, clock, clock + timedelta(hours=3), store=directory, settings=settings)

    assert [category.category for category in rollup.categories] == ["fruit", "seafood", "uncategorized"]

    fruit = rollup.categories[0]
    # Blue Fisheries (60000) outsells Green Farms (45000) in fruit.
    assert [(s.supplier_id, s.supplier_name, s.total_amount) for s in fruit.suppliers] == [
        ("sup-2", "Blue Fisheries", Decimal("60000")),
        ("sup-1", "Green Farms", Decimal("45000")),
    ]
    apple = fruit.suppliers[1].products[0]
    assert (apple.product_code, apple.regular_quantity, apple.additional_quantity) == ("FR-001", 10, 5)
    assert (apple.regular_amount, apple.additional_amount, apple.total_amount) == (
        Decimal("30000"), Decimal("15000"), Decimal("45000")
    )

    unknown = rollup.categories[2].suppliers[0]
    assert unknown.supplier_id == UNASSIGNED_SUPPLIER
    assert unknown.products[0].product_code == "UNKNOWN"
    assert unknown.products[0].additional_amount == Decimal("100")


def test_order_filters(directory, settings, clock, day) -> None:
    end = clock + timedelta(hours=3)

    seafood = aggregate_orders(OrderKind.SALE, clock, end, category="seafood", store=directory, settings=settings)
    assert (seafood.regular.count, seafood.regular.amount) == (1, Decimal("10000"))
    assert seafood.additional.count == 0

    green = aggregate_orders(OrderKind.SALE, clock, end, supplier_id="sup-1", store=directory, settings=settings)
    assert green.regular.amount == Decimal("30000")
    assert green.additional.amount == Decimal("15000")
    assert green.pended.amount == Decimal("10000")

    only_cust_2 = aggregate_orders(OrderKind.SALE, clock, end, counterparty_id="cust-2", store=directory,
                                   settings=settings)
    assert only_cust_2.regular.count == 0
    assert only_cust_2.pended.count == 1
    assert only_cust_2.additional.count == 1

    confirmed_only = aggregate_orders(OrderKind.SALE, clock, end, statuses=[OrderStatus.CONFIRMED],
                                      store=directory, settings=settings)
    assert confirmed_only.pended.count == confirmed_only.rejected.count == 0
    assert confirmed_only.regular.count == confirmed_only.additional.count == 1


def test_default_range_starts_at_current_window(directory, settings, clock, day) -> None:
    # The window was reset after every order was placed.
    rollup = aggregate_orders(OrderKind.SALE, store=directory, now=clock + timedelta(hours=3), settings=settings)

    assert rollup.start == clock + timedelta(hours=2)
    assert rollup.regular.count == rollup.additional.count == 0


def test_range_validation(directory, settings, clock) -> None:
    with pytest.raises(InvalidInput):
        aggregate_orders(OrderKind.SALE, clock, clock, store=directory, settings=settings)


def test_ledger_rollup_and_stats(directory, settings, clock, actor, day) -> None:
    _settle_all(directory, settings, clock, actor, day)

    rollup = aggregate_ledgers(OrderKind.SALE, clock, clock + timedelta(hours=3), store=directory, settings=settings)

    assert (rollup.regular.count, rollup.regular.amount) == (1, Decimal("100000"))
    assert (rollup.additional.count, rollup.additional.amount) == (1, Decimal("15100"))
    assert rollup.stats.ledger_count == 2
    assert rollup.stats.total_amount == Decimal("115100")
    assert rollup.stats.average_amount == Decimal("57550")
    assert rollup.stats.total_quantity == 19
    assert rollup.stats.unique_product_count == 4
    assert rollup.categories[-1].category == "uncategorized"

    purchases = aggregate_ledgers(OrderKind.PURCHASE, clock, clock + timedelta(hours=3), store=directory,
                                  settings=settings)
    assert purchases.stats.ledger_count == 0
    assert purchases.stats.average_amount == Decimal("0")


def test_summarize_period(directory, settings, clock, actor, day) -> None:
    _settle_all(directory, settings, clock, actor, day)
    record_payment("cust-1", Decimal("30000"), PaymentMethod.CASH, clock + timedelta(hours=2, minutes=45), actor,
                   store=directory, now=clock + timedelta(hours=2, minutes=45), settings=settings)

    summary = summarize_period("cust-1", AccountSide.RECEIVABLE, clock, clock + timedelta(hours=3),
                               store=directory, settings=settings)

    assert summary.settled_amount == Decimal("100000")
    assert summary.collected_amount == Decimal("30000")
    assert summary.difference == Decimal("70000")
    assert (summary.ledger_count, summary.payment_count) == (1, 1)
    assert summary.unique_product_count == 3
    assert summary.total_quantity == 13
