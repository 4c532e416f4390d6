"""
Tests for `domain/order.py` and `services/order_service.py`.

Covers contract rules:
- Phase/status stamping from the cutoff window at creation.
- Phase never changes after creation (close/reset do not touch it).
- Transition table; completion only through settlement.
"""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import pytest

from domain.errors import InvalidInput, InvalidState, NotFound
from domain.order import OrderKind, OrderLine, OrderPhase, OrderStatus
from services import cutoff_service
from services.order_service import (
    OrderLineRequest,
    PlaceOrderRequest,
    confirm_regular_orders,
    get_order,
    list_orders,
    place_order,
    transition_order,
)


def _request(kind=OrderKind.SALE, counterparty_id="cust-1", lines=None) -> PlaceOrderRequest:
    return PlaceOrderRequest(
        kind=kind,
        counterparty_id=counterparty_id,
        lines=lines if lines is not None else [OrderLineRequest("p-apple", 10, Decimal("3000"))],
    )


def test_order_line_rejects_negative_values() -> None:
    with pytest.raises(InvalidInput):
        OrderLine("p-apple", -1, Decimal("100"))
    with pytest.raises(InvalidInput):
        OrderLine("p-apple", 1, Decimal("-100"))
    assert OrderLine("p-apple", 0, Decimal("100")).line_total == Decimal("0")


def test_open_window_places_regular_order(directory, settings, clock, actor) -> None:
    order = place_order(_request(), actor, store=directory, now=clock, settings=settings)

    assert order.order_number == "SO-251017-001"
    assert order.status is OrderStatus.PLACED
    assert order.phase is OrderPhase.REGULAR
    assert order.counterparty_name == "Alpha Mart"
    assert order.total_amount == Decimal("30000")
    # Name filled from the catalog.
    assert order.lines[0].product_name == "Apple"
    assert get_order(order.order_number, store=directory) == order


def test_closed_window_auto_confirms_additional_order(directory, settings, clock, actor) -> None:
    cutoff_service.close_window(actor, store=directory, now=clock, settings=settings)

    order = place_order(_request(), actor, store=directory, now=clock + timedelta(minutes=5), settings=settings)

    assert order.status is OrderStatus.CONFIRMED
    assert order.phase is OrderPhase.ADDITIONAL
    assert order.confirmed_at == clock + timedelta(minutes=5)


def test_purchase_orders_use_po_numbers_and_suppliers(directory, settings, clock, actor) -> None:
    order = place_order(
        _request(kind=OrderKind.PURCHASE, counterparty_id="sup-1"),
        actor,
        store=directory,
        now=clock,
        settings=settings,
    )
    assert order.order_number == "PO-251017-001"
    assert order.counterparty_name == "Green Farms"


def test_phase_is_fixed_at_creation(directory, settings, clock, actor) -> None:
    regular = place_order(_request(), actor, store=directory, now=clock, settings=settings)

    cutoff_service.close_window(actor, store=directory, now=clock + timedelta(hours=1), settings=settings)
    additional = place_order(_request(), actor, store=directory, now=clock + timedelta(hours=2), settings=settings)
    cutoff_service.reset_window(actor, store=directory, now=clock + timedelta(hours=3), settings=settings)

    transition_order(
        regular.order_number, OrderStatus.CONFIRMED, actor,
        store=directory, now=clock + timedelta(hours=4), settings=settings,
    )

    assert get_order(regular.order_number, store=directory).phase is OrderPhase.REGULAR
    assert get_order(additional.order_number, store=directory).phase is OrderPhase.ADDITIONAL


def test_placement_validation(directory, settings, clock, actor) -> None:
    with pytest.raises(InvalidInput):
        place_order(_request(lines=[]), actor, store=directory, now=clock, settings=settings)
    with pytest.raises(InvalidInput):
        place_order(
            _request(lines=[OrderLineRequest("p-apple", -2, Decimal("100"))]),
            actor, store=directory, now=clock, settings=settings,
        )
    with pytest.raises(NotFound):
        place_order(_request(counterparty_id="nobody"), actor, store=directory, now=clock, settings=settings)
    with pytest.raises(InvalidState):
        place_order(_request(counterparty_id="cust-off"), actor, store=directory, now=clock, settings=settings)

    # None of the failures consumed an order number.
    order = place_order(_request(), actor, store=directory, now=clock, settings=settings)
    assert order.order_number == "SO-251017-001"


@pytest.mark.parametrize(
    "path",
    [
        [OrderStatus.CONFIRMED, OrderStatus.CANCELLED],
        [OrderStatus.PENDED, OrderStatus.CONFIRMED],
        [OrderStatus.PENDED, OrderStatus.REJECTED],
        [OrderStatus.REJECTED],
        [OrderStatus.CANCELLED],
    ],
)
def test_allowed_transitions(directory, settings, clock, actor, path) -> None:
    order = place_order(_request(), actor, store=directory, now=clock, settings=settings)
    for target in path:
        order = transition_order(order.order_number, target, actor, store=directory, now=clock, settings=settings)
    assert order.status is path[-1]


@pytest.mark.parametrize(
    "path, forbidden",
    [
        ([OrderStatus.CONFIRMED], OrderStatus.PENDED),
        ([OrderStatus.CONFIRMED], OrderStatus.PLACED),
        ([OrderStatus.REJECTED], OrderStatus.CONFIRMED),
        ([OrderStatus.CANCELLED], OrderStatus.PLACED),
        ([], OrderStatus.COMPLETED),
        ([OrderStatus.CONFIRMED], OrderStatus.COMPLETED),
    ],
)
def test_forbidden_transitions(directory, settings, clock, actor, path, forbidden) -> None:
    order = place_order(_request(), actor, store=directory, now=clock, settings=settings)
    for target in path:
        transition_order(order.order_number, target, actor, store=directory, now=clock, settings=settings)

    with pytest.raises(InvalidState):
        transition_order(order.order_number, forbidden, actor, store=directory, now=clock, settings=settings)


def test_transition_of_missing_order_is_not_found(directory, settings, clock, actor) -> None:
    with pytest.raises(NotFound):
        transition_order("SO-251017-999", OrderStatus.CONFIRMED, actor, store=directory, now=clock, settings=settings)
    with pytest.raises(NotFound):
        get_order("SO-251017-999", store=directory)


def test_confirm_regular_orders_confirms_only_placed_regular_orders(directory, settings, clock, actor) -> None:
    cutoff_service.open_window(actor, store=directory, now=clock, settings=settings)
    first = place_order(_request(), actor, store=directory, now=clock + timedelta(minutes=1), settings=settings)
    pended = place_order(_request(), actor, store=directory, now=clock + timedelta(minutes=2), settings=settings)
    transition_order(pended.order_number, OrderStatus.PENDED, actor, store=directory, now=clock, settings=settings)
    second = place_order(_request(), actor, store=directory, now=clock + timedelta(minutes=3), settings=settings)

    confirmed = confirm_regular_orders(actor, store=directory, now=clock + timedelta(hours=1), settings=settings)

    assert confirmed == [first.order_number, second.order_number]
    statuses = {order.order_number: order.status for order in list_orders(store=directory)}
    assert statuses[first.order_number] is OrderStatus.CONFIRMED
    assert statuses[pended.order_number] is OrderStatus.PENDED
