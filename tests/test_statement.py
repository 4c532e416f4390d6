"""
Tests for `domain/statement.py` and `services/statement_service.py`.

Covers contract rules:
- previous/closing balance arithmetic over [start, end).
- Statement identity: splitting a period anywhere gives the same closing
  balance, and one statement's closing is the next one's previous balance.
- Ascending running balance, ties broken by document number, display
  order reversed.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from domain.account import AccountSide
from domain.errors import InvalidInput, NotFound
from domain.payment import PaymentMethod
from domain.statement import EntryType, Movement, annotate_running_balance
from services.payment_service import record_payment
from services.settlement_service import ShippedLine, settle_order
from services.statement_service import build_ledger_slip, generate_statement


def _at(day: int, hour: int = 1) -> datetime:
    return datetime(2025, 10, day, hour, 0, tzinfo=timezone.utc)


@pytest.fixture
def history(directory, settings, actor, confirmed_order):
    """
    cust-1 history:
      10-01 settle 10000
      10-05 collect 4000
      10-10 settle 5000 and collect 2000 at the same instant
      10-15 settle 3000
    """

    def settle_at(moment: datetime, amount: str):
        order = confirmed_order([("p-apple", 1, amount)], now=moment)
        return settle_order(order.order_number, [ShippedLine("p-apple", 1, Decimal(amount))], actor,
                            store=directory, now=moment, settings=settings)

    def collect_at(moment: datetime, amount: str):
        return record_payment("cust-1", Decimal(amount), PaymentMethod.CASH, moment, actor,
                              store=directory, now=moment, settings=settings)

    settle_at(_at(1), "10000")
    collect_at(_at(5), "4000")
    settle_at(_at(10), "5000")
    collect_at(_at(10), "2000")
    last = settle_at(_at(15), "3000")
    return {"last_ledger_id": last.ledger_id}


def test_running_balance_orders_ties_by_document_number() -> None:
    moment = _at(10)
    movements = [
        Movement(moment, EntryType.SETTLEMENT, "SL-251010-002", "b", debit=Decimal("50")),
        Movement(moment, EntryType.SETTLEMENT, "SL-251010-001", "a", debit=Decimal("100")),
        Movement(moment - timedelta(hours=1), EntryType.PAYMENT, "CM-251010-001", "c", credit=Decimal("30")),
    ]

    entries = annotate_running_balance(Decimal("10"), movements)

    assert [entry.document_number for entry in entries] == ["CM-251010-001", "SL-251010-001", "SL-251010-002"]
    assert [entry.balance for entry in entries] == [Decimal("-20"), Decimal("80"), Decimal("130")]


def test_statement_balances_and_entries(directory, history, actor) -> None:
    statement = generate_statement(
        "cust-1", AccountSide.RECEIVABLE, _at(8), _at(16), actor, store=directory, now=_at(17),
    )

    assert statement.counterparty_name == "Alpha Mart"
    assert statement.previous_balance == Decimal("6000")
    assert statement.period_settled_amount == Decimal("8000")
    assert statement.period_collected_amount == Decimal("2000")
    assert statement.closing_balance == Decimal("12000")
    assert statement.balance_matches_stored is None  # period ends in the past

    # Same-instant collection (CM) sorts before the settlement (SL).
    ascending = [(entry.entry_type, entry.balance) for entry in statement.entries]
    assert ascending == [
        (EntryType.PAYMENT, Decimal("4000")),
        (EntryType.SETTLEMENT, Decimal("9000")),
        (EntryType.SETTLEMENT, Decimal("12000")),
    ]
    assert statement.display_entries == list(reversed(statement.entries))
    assert statement.entries[-1].balance == statement.closing_balance


@pytest.mark.parametrize("split_day", [2, 5, 9, 10, 11, 15, 16])
def test_statement_identity_for_any_split_point(directory, history, actor, split_day) -> None:
    origin, end = _at(1, 0), _at(17)
    whole = generate_statement("cust-1", AccountSide.RECEIVABLE, origin, end, actor, store=directory, now=end)
    split = _at(split_day, 0)

    before = generate_statement("cust-1", AccountSide.RECEIVABLE, origin, split, actor, store=directory, now=end)
    after = generate_statement("cust-1", AccountSide.RECEIVABLE, split, end, actor, store=directory, now=end)

    assert before.closing_balance == after.previous_balance
    assert after.closing_balance == whole.closing_balance == Decimal("12000")
    assert (
        after.previous_balance + after.period_settled_amount - after.period_collected_amount
        == after.closing_balance
    )


def test_statement_up_to_now_matches_stored_balance(directory, history, actor) -> None:
    now = _at(17)
    statement = generate_statement("cust-1", AccountSide.RECEIVABLE, _at(12), actor=actor, store=directory, now=now)

    assert statement.period_end == now
    assert statement.stored_balance == Decimal("12000")
    assert statement.balance_matches_stored is True


def test_statement_validation(directory, actor) -> None:
    with pytest.raises(InvalidInput):
        generate_statement("cust-1", AccountSide.RECEIVABLE, _at(10), _at(9), actor, store=directory, now=_at(17))
    with pytest.raises(InvalidInput):
        generate_statement("cust-1", AccountSide.RECEIVABLE, datetime(2025, 10, 1), _at(9), actor,
                           store=directory, now=_at(17))
    with pytest.raises(NotFound):
        generate_statement("nobody", AccountSide.RECEIVABLE, _at(1), _at(9), actor, store=directory, now=_at(17))


def test_statement_for_party_without_history_is_empty(directory, actor) -> None:
    statement = generate_statement("cust-2", AccountSide.RECEIVABLE, _at(1), _at(17), actor,
                                   store=directory, now=_at(17))

    assert statement.entries == []
    assert statement.previous_balance == statement.closing_balance == Decimal("0")
    assert statement.balance_matches_stored is True


def test_ledger_slip_shows_balance_carried_forward(directory, history, actor) -> None:
    slip = build_ledger_slip(history["last_ledger_id"], actor, store=directory, now=_at(17))

    assert slip.ledger.total_amount == Decimal("3000")
    assert slip.counterparty_name == "Alpha Mart"
    assert slip.current_balance == Decimal("12000")
    assert slip.previous_balance == Decimal("9000")
    assert slip.generated_by == actor.user_id

    with pytest.raises(NotFound):
        build_ledger_slip("missing", actor, store=directory, now=_at(17))
