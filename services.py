from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from csv_utils import ParsedTransaction, parse_amount, parse_float, to_cents
from models import (
    Filing,
    FilingStatus,
    Profile,
    Transaction,
    TransactionSource,
    TransactionType,
)
from schemas import FilingIn, ProfileIn, SignupIn, TransactionFieldIn, TransactionIn
from tax import (
    MonthTotals,
    Summary,
    TaxData,
    build_tax_data,
    effective_category,
    generate_summary,
    month_label,
    recent_months,
    top_expense_categories,
)

logger = logging.getLogger(__name__)

YEARLY_CATEGORY = "yearly"


class ProfileService:
    def __init__(self, session: Session, user_id: str) -> None:
        self.session = session
        self.user_id = user_id

    def get(self) -> Optional[Profile]:
        return self.session.get(Profile, self.user_id)

    def create_from_signup(self, data: SignupIn) -> Profile:
        profile = self.get()
        if profile is None:
            profile = Profile(id=self.user_id, full_name=data.full_name)
            self.session.add(profile)
        profile.email = data.email
        profile.full_name = data.full_name
        profile.dob = data.dob
        profile.ni_number = data.ni_number
        profile.country = data.country
        profile.occupation = data.occupation
        profile.account_method = data.resolved_account_method
        profile.phone_number = data.full_phone_number
        self.session.commit()
        self.session.refresh(profile)
        return profile

    def update(self, data: ProfileIn) -> Profile:
        profile = self.get()
        if profile is None:
            profile = Profile(id=self.user_id, full_name=data.full_name)
            self.session.add(profile)
        for field_name, value in data.model_dump().items():
            setattr(profile, field_name, value)
        self.session.commit()
        self.session.refresh(profile)
        return profile


class FilingService:
    def __init__(self, session: Session, user_id: str) -> None:
        self.session = session
        self.user_id = user_id

    def list_all(self) -> list[Filing]:
        stmt = (
            select(Filing)
            .where(Filing.user_id == self.user_id)
            .order_by(Filing.tax_year.desc(), Filing.id.desc())
        )
        return list(self.session.scalars(stmt))

    def get(self, filing_id: int) -> Filing:
        filing = self.session.scalar(
            select(Filing).where(Filing.user_id == self.user_id, Filing.id == filing_id)
        )
        if not filing:
            raise ValueError("Filing not found")
        return filing

    def create(self, tax_year: int, month: Optional[str] = None) -> Filing:
        filing = Filing(
            user_id=self.user_id,
            tax_year=tax_year,
            month=month,
            status=FilingStatus.draft,
        )
        self.session.add(filing)
        self.session.commit()
        self.session.refresh(filing)
        return filing

    def create_with_totals(self, data: FilingIn, today: Optional[date] = None) -> Filing:
        """Open a draft filing seeded with one income and one expense entry."""
        today = today or date.today()
        filing = Filing(
            user_id=self.user_id,
            tax_year=data.tax_year,
            month=data.month,
            status=FilingStatus.draft,
        )
        self.session.add(filing)
        self.session.flush()
        category = data.month if data.mode == "monthly" else YEARLY_CATEGORY
        for txn_type, cents in (
            (TransactionType.income, data.income_cents),
            (TransactionType.expense, data.expense_cents),
        ):
            self.session.add(
                Transaction(
                    user_id=self.user_id,
                    filing_id=filing.id,
                    date=today,
                    type=txn_type,
                    amount_cents=cents,
                    category=category,
                    source=TransactionSource.manual,
                )
            )
        self.session.commit()
        self.session.refresh(filing)
        logger.info(f"filing_created: user={self.user_id} filing={filing.id}")
        return filing

    def get_or_create_for_year(self, tax_year: int) -> Filing:
        filing = self.session.scalar(
            select(Filing)
            .where(Filing.user_id == self.user_id, Filing.tax_year == tax_year)
            .order_by(Filing.id)
            .limit(1)
        )
        if filing:
            return filing
        filing = Filing(user_id=self.user_id, tax_year=tax_year, status=FilingStatus.open)
        self.session.add(filing)
        self.session.flush()
        return filing

    def submit(self, filing_id: int) -> Filing:
        filing = self.get(filing_id)
        if filing.status == FilingStatus.submitted:
            return filing
        filing.status = FilingStatus.submitted
        filing.submitted_at = datetime.utcnow()
        self.session.commit()
        self.session.refresh(filing)
        logger.info(f"filing_submitted: user={self.user_id} filing={filing.id}")
        return filing

    def pending_count(self) -> int:
        stmt = select(func.count(Filing.id)).where(
            Filing.user_id == self.user_id,
            Filing.status.in_([FilingStatus.draft, FilingStatus.open]),
        )
        return self.session.execute(stmt).scalar_one() or 0


@dataclass(frozen=True)
class Totals:
    income: float
    expenses: float

    @property
    def net(self) -> float:
        return self.income - self.expenses


class TransactionService:
    def __init__(self, session: Session, user_id: str) -> None:
        self.session = session
        self.user_id = user_id

    def create(self, data: TransactionIn) -> Transaction:
        if data.filing_id is not None:
            FilingService(self.session, self.user_id).get(data.filing_id)
            filing_id = data.filing_id
        else:
            filing_id = (
                FilingService(self.session, self.user_id)
                .get_or_create_for_year(date.today().year)
                .id
            )
        txn = Transaction(
            user_id=self.user_id,
            filing_id=filing_id,
            date=data.date,
            type=data.type,
            amount_cents=data.amount_cents,
            category=data.category,
            description=data.description,
            source=data.source,
        )
        self.session.add(txn)
        self.session.commit()
        self.session.refresh(txn)
        return txn

    def get(self, transaction_id: int) -> Transaction:
        txn = self.session.scalar(
            select(Transaction).where(
                Transaction.user_id == self.user_id, Transaction.id == transaction_id
            )
        )
        if not txn:
            raise ValueError("Transaction not found")
        return txn

    def list_all(self) -> list[Transaction]:
        stmt = (
            select(Transaction)
            .where(Transaction.user_id == self.user_id)
            .order_by(Transaction.date.desc(), Transaction.id.desc())
        )
        return list(self.session.scalars(stmt))

    def list_for_filing(self, filing_id: int) -> list[Transaction]:
        stmt = (
            select(Transaction)
            .where(
                Transaction.user_id == self.user_id,
                Transaction.filing_id == filing_id,
            )
            .order_by(Transaction.date.asc(), Transaction.id.asc())
        )
        return list(self.session.scalars(stmt))

    def update(self, transaction_id: int, data: TransactionIn) -> Transaction:
        txn = self.get(transaction_id)
        txn.date = data.date
        txn.type = data.type
        txn.amount_cents = data.amount_cents
        txn.category = data.category
        txn.description = data.description
        self.session.commit()
        self.session.refresh(txn)
        return txn

    def update_field(self, transaction_id: int, data: TransactionFieldIn) -> Transaction:
        txn = self.get(transaction_id)
        if data.field == "amount":
            txn.amount_cents = parse_amount(data.value, allow_negative=True)
        elif data.field == "type":
            txn.type = TransactionType(data.value)
        else:
            txn.category = data.value.strip() or None
        self.session.commit()
        self.session.refresh(txn)
        return txn

    def update_notes(
        self,
        transaction_id: int,
        description: Optional[str],
        receipt_url: Optional[str] = None,
    ) -> Transaction:
        txn = self.get(transaction_id)
        txn.description = description or None
        if receipt_url:
            txn.receipt_url = receipt_url
        self.session.commit()
        self.session.refresh(txn)
        return txn

    def delete(self, transaction_id: int) -> None:
        txn = self.get(transaction_id)
        self.session.execute(
            delete(Transaction).where(
                Transaction.user_id == self.user_id, Transaction.id == txn.id
            )
        )
        self.session.commit()

    def totals(self) -> Totals:
        stmt = (
            select(Transaction.type, func.coalesce(func.sum(Transaction.amount_cents), 0))
            .where(Transaction.user_id == self.user_id)
            .group_by(Transaction.type)
        )
        sums = {row[0]: int(row[1]) for row in self.session.execute(stmt)}
        return Totals(
            income=sums.get(TransactionType.income, 0) / 100,
            expenses=sums.get(TransactionType.expense, 0) / 100,
        )

    def grouped_by_month(self) -> list[tuple[str, list[Transaction]]]:
        """Newest month first, each month's rows newest first."""
        groups: dict[str, list[Transaction]] = {}
        for txn in self.list_all():
            groups.setdefault(month_label(txn.date), []).append(txn)
        return list(groups.items())


class ImportService:
    def __init__(self, session: Session, user_id: str) -> None:
        self.session = session
        self.user_id = user_id

    def accept(self, row: ParsedTransaction) -> Transaction:
        """Persist one reviewed CSV row as an imported expense."""
        if not row.amount_valid:
            raise ValueError("Invalid amount. Please edit the transaction first.")
        try:
            txn_date = date.fromisoformat(row.date.strip())
        except ValueError as exc:
            raise ValueError(f"Invalid date '{row.date}'") from exc
        filing = FilingService(self.session, self.user_id).get_or_create_for_year(
            date.today().year
        )
        return TransactionService(self.session, self.user_id).create(
            TransactionIn(
                date=txn_date,
                type=TransactionType.expense,
                amount_cents=to_cents(row.amount),
                category=row.category,
                description=row.vendor,
                source=TransactionSource.import_,
                filing_id=filing.id,
            )
        )

    @staticmethod
    def row_from_form(form) -> ParsedTransaction:
        amount_text = str(form.get("amount", ""))
        try:
            amount = parse_float(amount_text)
            amount_valid = True
        except ValueError:
            amount = 0.0
            amount_valid = False
        return ParsedTransaction(
            date=str(form.get("date", "")),
            amount=amount,
            vendor=str(form.get("vendor", "")).strip(),
            category=str(form.get("category", "")).strip() or "Uncategorized",
            amount_valid=amount_valid,
        )


@dataclass(frozen=True)
class MonthCard:
    month: str
    totals: MonthTotals
    top_categories: list[tuple[str, float]]
    previous_net: Optional[float]
    is_current: bool


@dataclass(frozen=True)
class MonthlySummaryView:
    summary: Summary
    months: list[str]
    categories: list[str]
    cards: list[MonthCard]
    selected_month: Optional[str]
    selected_category: Optional[str]


class SummaryService:
    def __init__(self, session: Session, user_id: str) -> None:
        self.session = session
        self.user_id = user_id
        self.transactions = TransactionService(session, user_id)

    def tax_data(self) -> TaxData:
        txns = self.transactions.list_all()
        if not txns:
            logger.info(f"tax_data: no transactions for user={self.user_id}")
        return build_tax_data(txns)

    def month_transactions(
        self,
        month: str,
        txn_type: Optional[TransactionType] = None,
        category: Optional[str] = None,
    ) -> list[Transaction]:
        rows = [t for t in self.transactions.list_all() if month_label(t.date) == month]
        if txn_type is not None:
            rows = [t for t in rows if t.type == txn_type]
        if category:
            rows = [t for t in rows if effective_category(t) == category]
        return sorted(rows, key=lambda t: (t.date, t.id))

    def monthly_summary(
        self,
        month: Optional[str] = None,
        category: Optional[str] = None,
        today: Optional[date] = None,
    ) -> MonthlySummaryView:
        today = today or date.today()
        txns = self.transactions.list_all()
        categorized = [(t, effective_category(t)) for t in txns]

        filtered = [
            t
            for t, cat in categorized
            if (not month or month_label(t.date) == month)
            and (not category or cat == category)
        ]
        filtered_summary = generate_summary(filtered)

        cards: list[MonthCard] = []
        previous_net: Optional[float] = None
        for label, totals in filtered_summary.grouped.items():
            month_rows = [t for t in filtered if month_label(t.date) == label]
            cards.append(
                MonthCard(
                    month=label,
                    totals=totals,
                    top_categories=top_expense_categories(month_rows),
                    previous_net=previous_net,
                    is_current=label == month_label(today),
                )
            )
            previous_net = totals.net

        return MonthlySummaryView(
            summary=generate_summary(txns),
            months=recent_months(month_label(t.date) for t in txns),
            categories=sorted({cat for _, cat in categorized if cat}),
            cards=cards,
            selected_month=month,
            selected_category=category,
        )
