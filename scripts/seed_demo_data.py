"""
Seed demo data and walk one order through the full settlement flow.

Creates:
- Customer: cust-demo (Demo Mart)
- Supplier: sup-demo (Demo Farms)
- Products: p-apple, p-pear (category: fruit, supplier: sup-demo)

Then places a sale order, confirms it, settles it, records a collection and
prints the resulting balance and statement.

Uses the backend selected by STORE_BACKEND (memory by default, so the run is
self-contained).
"""

import logging
import sys
from pathlib import Path

# Add parent directory to path so we can import from repositories
sys.path.insert(0, str(Path(__file__).parent.parent))

from datetime import datetime, timedelta, timezone
from decimal import Decimal

from domain.account import AccountSide
from domain.actor import Actor
from domain.directory import Counterparty, Product
from domain.order import OrderKind, OrderStatus
from domain.payment import PaymentMethod
from repositories.client import get_store
from repositories.directory_repository import save_counterparty, save_product
from services.order_service import OrderLineRequest, PlaceOrderRequest, place_order, transition_order
from services.payment_service import get_account, record_payment
from services.settlement_service import ShippedLine, settle_order
from services.statement_service import generate_statement


DEMO_CUSTOMER_ID = "cust-demo"
DEMO_SUPPLIER_ID = "sup-demo"
DEMO_ACTOR = Actor(user_id="demo-admin", display_name="Demo Admin")


def seed_directory():
    """Create or update the demo counterparties and products."""

    store = get_store()
    save_counterparty(store, Counterparty(DEMO_CUSTOMER_ID, AccountSide.RECEIVABLE, "Demo Mart"))
    save_counterparty(store, Counterparty(DEMO_SUPPLIER_ID, AccountSide.PAYABLE, "Demo Farms"))
    save_product(store, Product("p-apple", "FR-001", "Apple", "fruit", DEMO_SUPPLIER_ID, Decimal("2000")))
    save_product(store, Product("p-pear", "FR-002", "Pear", "fruit", DEMO_SUPPLIER_ID, Decimal("2500")))
    print("[SUCCESS] Demo directory seeded")
    print(f"  Customer: {DEMO_CUSTOMER_ID} (Demo Mart)")
    print(f"  Supplier: {DEMO_SUPPLIER_ID} (Demo Farms)")


def run_demo_flow():
    """Place -> confirm -> settle -> collect, printing each step."""

    started_at = datetime.now(timezone.utc)

    order = place_order(
        PlaceOrderRequest(
            kind=OrderKind.SALE,
            counterparty_id=DEMO_CUSTOMER_ID,
            lines=[
                OrderLineRequest("p-apple", 10, Decimal("3000")),
                OrderLineRequest("p-pear", 4, Decimal("4000")),
            ],
        ),
        DEMO_ACTOR,
    )
    print(f"Placed {order.order_number}: {order.status.value}/{order.phase.value}, total {order.total_amount}")

    if order.status is OrderStatus.PLACED:
        order = transition_order(order.order_number, OrderStatus.CONFIRMED, DEMO_ACTOR)
        print(f"Confirmed {order.order_number}")

    result = settle_order(
        order.order_number,
        [
            ShippedLine("p-apple", 10, Decimal("3000")),
            ShippedLine("p-pear", 3, Decimal("4000")),
        ],
        DEMO_ACTOR,
        notes="one pear short",
    )
    print(f"Settled as {result.ledger_number} (ledger id {result.ledger_id}), total {result.total_amount}")

    payment = record_payment(
        DEMO_CUSTOMER_ID,
        Decimal("20000"),
        PaymentMethod.BANK_TRANSFER,
        datetime.now(timezone.utc),
        DEMO_ACTOR,
    )
    print(f"Collected 20000 as {payment.document_number}")

    account = get_account(AccountSide.RECEIVABLE, DEMO_CUSTOMER_ID)
    print(
        f"Balance: settled {account.total_settled_amount} - collected {account.total_collected_amount}"
        f" = {account.current_balance}"
    )

    statement = generate_statement(
        DEMO_CUSTOMER_ID,
        AccountSide.RECEIVABLE,
        started_at - timedelta(days=1),
        actor=DEMO_ACTOR,
    )
    print(f"Statement for {statement.counterparty_name}:")
    print(f"  Previous balance: {statement.previous_balance}")
    for entry in statement.display_entries:
        print(
            f"  {entry.occurred_at.isoformat()}  {entry.document_number:<16} "
            f"debit {entry.debit:>10}  credit {entry.credit:>10}  balance {entry.balance:>10}"
        )
    print(f"  Closing balance: {statement.closing_balance} (matches stored: {statement.balance_matches_stored})")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    seed_directory()
    run_demo_flow()
