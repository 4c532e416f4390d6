"""
Pytest configuration.

This file adds the parent directory to the Python path so that tests
can import from the domain, repositories, services and api modules, and
provides the shared fixtures: a fresh in-memory store per test, a fixed
clock and a seeded counterparty/product directory.
"""

import sys
from pathlib import Path

# Add the project root to the Python path
# so tests can import domain, repositories, etc.
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from domain.account import AccountSide
from domain.actor import Actor
from domain.directory import Counterparty, Product
from domain.order import OrderKind, OrderStatus
from repositories.client import set_store
from repositories.directory_repository import save_counterparty, save_product
from repositories.document_store import InMemoryDocumentStore
from services.config import EngineSettings
from services.order_service import OrderLineRequest, PlaceOrderRequest, place_order, transition_order


@pytest.fixture
def store():
    store = InMemoryDocumentStore()
    set_store(store)
    yield store
    set_store(None)


@pytest.fixture
def settings() -> EngineSettings:
    return EngineSettings()


@pytest.fixture
def clock() -> datetime:
    # 12:00 in Asia/Seoul on 2025-10-17
    return datetime(2025, 10, 17, 3, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def actor() -> Actor:
    return Actor(user_id="user-1", display_name="Kim Manager")


@pytest.fixture
def directory(store):
    """Store seeded with customers, suppliers and a small catalog."""

    save_counterparty(store, Counterparty("cust-1", AccountSide.RECEIVABLE, "Alpha Mart"))
    save_counterparty(store, Counterparty("cust-2", AccountSide.RECEIVABLE, "Beta Foods"))
    save_counterparty(store, Counterparty("cust-off", AccountSide.RECEIVABLE, "Closed Shop", active=False))
    save_counterparty(store, Counterparty("sup-1", AccountSide.PAYABLE, "Green Farms"))
    save_counterparty(store, Counterparty("sup-2", AccountSide.PAYABLE, "Blue Fisheries"))
    save_product(store, Product("p-apple", "FR-001", "Apple", "fruit", "sup-1", Decimal("2000")))
    save_product(store, Product("p-pear", "FR-002", "Pear", "fruit", "sup-1", Decimal("2500")))
    save_product(store, Product("p-mackerel", "SF-001", "Mackerel", "seafood", "sup-2", Decimal("5000")))
    return store


@pytest.fixture
def confirmed_order(directory, settings, clock, actor):
    """Factory: place an order and confirm it if it landed as placed."""

    def _make(lines, *, kind=OrderKind.SALE, counterparty_id="cust-1", now=None):
        moment = now or clock
        order = place_order(
            PlaceOrderRequest(
                kind=kind,
                counterparty_id=counterparty_id,
                lines=[OrderLineRequest(product_id, qty, Decimal(price)) for product_id, qty, price in lines],
            ),
            actor,
            store=directory,
            now=moment,
            settings=settings,
        )
        if order.status is OrderStatus.PLACED:
            order = transition_order(
                order.order_number,
                OrderStatus.CONFIRMED,
                actor,
                store=directory,
                now=moment,
                settings=settings,
            )
        return order

    return _make
