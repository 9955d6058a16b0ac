from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Iterable, Optional, Protocol

from models import TransactionType

TAX_RATE = 0.2
FALLBACK_CATEGORY = "Other"

# Ordered: the first rule whose keyword appears in the description wins.
CATEGORY_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Transport", ("uber", "train")),
    ("Groceries", ("tesco", "sainsbury")),
    ("Income", ("stripe", "client")),
    ("Housing", ("rent", "mortgage")),
)


class TransactionLike(Protocol):
    date: date
    type: TransactionType
    category: Optional[str]
    description: Optional[str]

    @property
    def amount(self) -> float: ...


@dataclass(frozen=True)
class TaxSummary:
    income: float
    expenses: float
    net: float
    estimated_tax: float


@dataclass(frozen=True)
class MonthlyBreakdown:
    month: str
    income: float
    expenses: float
    net: float
    estimated_tax: float


@dataclass(frozen=True)
class TaxData:
    summary: TaxSummary
    monthly_breakdown: list[MonthlyBreakdown]


@dataclass
class MonthTotals:
    income: float = 0.0
    expense: float = 0.0

    @property
    def net(self) -> float:
        return self.income - self.expense


@dataclass
class Summary:
    grouped: dict[str, MonthTotals] = field(default_factory=dict)
    latest: Optional[str] = None
    previous: Optional[str] = None
    trend: Optional[float] = None


def auto_categorize(description: str) -> str:
    desc = description.lower()
    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in desc for keyword in keywords):
            return category
    return FALLBACK_CATEGORY


def effective_category(txn: TransactionLike) -> str:
    return txn.category or auto_categorize(txn.description or "")


def month_label(value: date) -> str:
    return value.strftime("%B %Y")


def estimate_tax(net: float) -> float:
    return max(0, net) * TAX_RATE


def _group_by_month(
    transactions: Iterable[TransactionLike],
) -> dict[str, MonthTotals]:
    buckets: dict[tuple[int, int], tuple[str, MonthTotals]] = {}
    for txn in transactions:
        key = (txn.date.year, txn.date.month)
        if key not in buckets:
            buckets[key] = (month_label(txn.date), MonthTotals())
        totals = buckets[key][1]
        if txn.type == TransactionType.income:
            totals.income += txn.amount
        elif txn.type == TransactionType.expense:
            totals.expense += txn.amount
    return {label: totals for _, (label, totals) in sorted(buckets.items())}


def build_tax_data(transactions: Iterable[TransactionLike]) -> TaxData:
    """Monthly income/expense buckets plus a flat-rate tax estimate.

    Rows without a date or with a zero amount are ignored. Months are
    returned oldest first.
    """
    usable = [txn for txn in transactions if txn.date and txn.amount]
    grouped = _group_by_month(usable)

    breakdown: list[MonthlyBreakdown] = []
    for month, totals in grouped.items():
        net = totals.income - totals.expense
        breakdown.append(
            MonthlyBreakdown(
                month=month,
                income=totals.income,
                expenses=totals.expense,
                net=net,
                estimated_tax=estimate_tax(net),
            )
        )

    total_income = sum(row.income for row in breakdown)
    total_expenses = sum(row.expenses for row in breakdown)
    net_profit = total_income - total_expenses
    return TaxData(
        summary=TaxSummary(
            income=total_income,
            expenses=total_expenses,
            net=net_profit,
            estimated_tax=estimate_tax(net_profit),
        ),
        monthly_breakdown=breakdown,
    )


def generate_summary(transactions: Iterable[TransactionLike]) -> Summary:
    grouped = _group_by_month(transactions)
    months = list(grouped)
    if len(months) < 2:
        return Summary(grouped=grouped, latest=months[-1] if months else None)
    latest, previous = months[-1], months[-2]
    return Summary(
        grouped=grouped,
        latest=latest,
        previous=previous,
        trend=grouped[latest].expense - grouped[previous].expense,
    )


def top_expense_categories(
    transactions: Iterable[TransactionLike], limit: int = 3
) -> list[tuple[str, float]]:
    totals: dict[str, float] = {}
    for txn in transactions:
        if txn.type == TransactionType.expense:
            category = effective_category(txn)
            totals[category] = totals.get(category, 0.0) + txn.amount
    return sorted(totals.items(), key=lambda item: item[1], reverse=True)[:limit]


def recent_months(labels: Iterable[str], limit: int = 3) -> list[str]:
    """Latest ``limit`` distinct month labels, oldest first."""
    unique = set(labels)
    return sorted(unique, key=lambda label: datetime.strptime(label, "%B %Y"))[-limit:]
