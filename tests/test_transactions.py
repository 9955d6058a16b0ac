from datetime import date

import pytest
from pydantic import ValidationError
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from csv_utils import MAX_AMOUNT_CENTS
from database import Base
from models import TransactionSource, TransactionType
from schemas import TransactionFieldIn, TransactionIn
from services import FilingService, SummaryService, TransactionService


def _add(session: Session, user_id: str, day: date, txn_type: TransactionType, cents: int, **kwargs):
    return TransactionService(session, user_id).create(
        TransactionIn(date=day, type=txn_type, amount_cents=cents, **kwargs)
    )


def test_create_attaches_current_year_filing_by_default() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        txn = _add(session, "user-1", date(2024, 5, 1), TransactionType.expense, 1999)
        assert txn.filing is not None
        assert txn.filing.tax_year == date.today().year
        assert txn.source == TransactionSource.manual
        assert txn.amount == pytest.approx(19.99)


def test_create_rejects_foreign_filing() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        other = FilingService(session, "user-2").create(2024)
        with pytest.raises(ValueError, match="Filing not found"):
            _add(session, "user-1", date(2024, 5, 1), TransactionType.expense, 100, filing_id=other.id)


def test_update_field_amount_type_and_category() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        service = TransactionService(session, "user-1")
        txn = _add(session, "user-1", date(2024, 5, 1), TransactionType.expense, 100)

        service.update_field(txn.id, TransactionFieldIn(field="amount", value="-42.10"))
        service.update_field(txn.id, TransactionFieldIn(field="type", value="income"))
        updated = service.update_field(txn.id, TransactionFieldIn(field="category", value=" Sales "))

        assert updated.amount_cents == -4210
        assert updated.type == TransactionType.income
        assert updated.category == "Sales"

        with pytest.raises(ValueError):
            service.update_field(txn.id, TransactionFieldIn(field="type", value="refund"))
        with pytest.raises(ValueError, match="Invalid amount"):
            service.update_field(txn.id, TransactionFieldIn(field="amount", value="lots"))


def test_update_notes_keeps_receipt_when_none_uploaded() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        service = TransactionService(session, "user-1")
        txn = _add(session, "user-1", date(2024, 5, 1), TransactionType.expense, 100)

        service.update_notes(txn.id, "Lunch with client", "https://files.example/receipt-1")
        updated = service.update_notes(txn.id, "Lunch with a client")

        assert updated.description == "Lunch with a client"
        assert updated.receipt_url == "https://files.example/receipt-1"


def test_delete_is_owner_scoped() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        txn = _add(session, "user-1", date(2024, 5, 1), TransactionType.expense, 100)

        with pytest.raises(ValueError, match="Transaction not found"):
            TransactionService(session, "user-2").delete(txn.id)

        TransactionService(session, "user-1").delete(txn.id)
        assert TransactionService(session, "user-1").list_all() == []


def test_totals_and_grouping() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        _add(session, "user-1", date(2024, 1, 5), TransactionType.income, 100000)
        _add(session, "user-1", date(2024, 2, 5), TransactionType.expense, 25050)
        _add(session, "user-1", date(2024, 2, 7), TransactionType.expense, 1000)
        _add(session, "user-2", date(2024, 2, 7), TransactionType.expense, 999999)

        service = TransactionService(session, "user-1")
        totals = service.totals()
        assert totals.income == pytest.approx(1000)
        assert totals.expenses == pytest.approx(260.5)
        assert totals.net == pytest.approx(739.5)

        groups = service.grouped_by_month()
        assert [label for label, _ in groups] == ["February 2024", "January 2024"]
        assert [t.date.day for t in groups[0][1]] == [7, 5]


def test_monthly_summary_filters_and_cards() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        _add(session, "user-1", date(2024, 1, 5), TransactionType.expense, 5000, description="Uber ride")
        _add(session, "user-1", date(2024, 2, 5), TransactionType.expense, 3000, category="Food")
        _add(session, "user-1", date(2024, 2, 9), TransactionType.income, 90000, description="Client invoice")

        summary = SummaryService(session, "user-1")
        view = summary.monthly_summary(today=date(2024, 2, 20))
        assert [card.month for card in view.cards] == ["January 2024", "February 2024"]
        assert view.cards[1].is_current
        assert view.cards[1].previous_net == pytest.approx(-50)
        assert view.summary.trend == pytest.approx(-20)
        assert view.categories == ["Food", "Income", "Transport"]

        filtered = summary.monthly_summary(category="Transport", today=date(2024, 2, 20))
        assert [card.month for card in filtered.cards] == ["January 2024"]
        assert filtered.cards[0].top_categories == [("Transport", 50.0)]
        transport = summary.month_transactions("January 2024", category="Transport")
        assert [t.description for t in transport] == ["Uber ride"]
        assert summary.month_transactions("January 2024", category="Food") == []

        only_feb = summary.monthly_summary(month="February 2024", today=date(2024, 2, 20))
        assert [card.month for card in only_feb.cards] == ["February 2024"]
        assert only_feb.cards[0].top_categories == [("Food", 30.0)]

        incomes = summary.month_transactions("February 2024", TransactionType.income)
        assert [t.amount_cents for t in incomes] == [90000]


def test_transaction_amount_is_bounded() -> None:
    limit = MAX_AMOUNT_CENTS
    assert TransactionIn(date=date(2024, 1, 1), type=TransactionType.expense, amount_cents=-limit)
    for cents in (limit + 1, -(limit + 1), 10**20):
        with pytest.raises(ValidationError):
            TransactionIn(date=date(2024, 1, 1), type=TransactionType.expense, amount_cents=cents)
