from datetime import date

import pytest

from csv_utils import (
    ParsedTransaction,
    export_tax_breakdown,
    export_transactions,
    parse_amount,
    parse_csv,
    to_cents,
)
from models import Transaction, TransactionType
from tax import MonthlyBreakdown


def test_parse_csv_skips_header_and_reads_rows() -> None:
    content = "date,amount,vendor,category\n2024-01-03,12.50,Tesco,Groceries\n2024-01-04,8,Uber,\n"

    rows = parse_csv(content)

    assert rows == [
        ParsedTransaction(date="2024-01-03", amount=12.5, vendor="Tesco", category="Groceries"),
        ParsedTransaction(date="2024-01-04", amount=8.0, vendor="Uber", category="Uncategorized"),
    ]


def test_parse_csv_drops_rows_missing_required_fields() -> None:
    content = "date,amount,vendor\n2024-01-03,,Tesco\n,5,Uber\n2024-01-05,5\n2024-01-06,7,Train\n"

    rows = parse_csv(content)

    assert [row.vendor for row in rows] == ["Train"]


def test_parse_csv_flags_non_numeric_amount() -> None:
    rows = parse_csv("date,amount,vendor\n2024-02-01,abc,Stripe\n")

    assert len(rows) == 1
    assert rows[0].amount == 0.0
    assert rows[0].amount_valid is False


def test_parse_csv_ignores_blank_lines_and_header_only() -> None:
    assert parse_csv("") == []
    assert parse_csv("date,amount,vendor\n\n\n") == []


def test_parse_csv_does_not_understand_quotes() -> None:
    rows = parse_csv('date,amount,vendor\n2024-03-01,10,"Smith, J"\n')

    assert rows[0].vendor == '"Smith'
    assert rows[0].category == 'J"'


@pytest.mark.parametrize(
    ("raw", "cents"),
    [("12.34", 1234), ("£1,200.50", 120050), (" 7 ", 700), ("1,234", 123400)],
)
def test_parse_amount_to_cents(raw: str, cents: int) -> None:
    assert parse_amount(raw) == cents


def test_parse_amount_rejects_bad_input() -> None:
    with pytest.raises(ValueError, match="Invalid amount"):
        parse_amount("twelve")
    with pytest.raises(ValueError, match="Amount must be positive"):
        parse_amount("-3")
    assert parse_amount("-3", allow_negative=True) == -300


@pytest.mark.parametrize("raw", ["1e30", "99999999999999999999", "-1e30", "NaN", "Infinity"])
def test_parse_amount_rejects_out_of_range(raw: str) -> None:
    with pytest.raises(ValueError, match="Invalid amount"):
        parse_amount(raw, allow_negative=True)


def test_to_cents_rejects_out_of_range() -> None:
    assert to_cents(-4.5) == -450
    with pytest.raises(ValueError, match="Invalid amount"):
        to_cents(1e30)
    with pytest.raises(ValueError, match="Invalid amount"):
        to_cents(float("nan"))


def test_parse_csv_flags_oversized_amount() -> None:
    rows = parse_csv("date,amount,vendor\n2024-02-01,1e30,Stripe\n2024-02-02,inf,Uber\n")

    assert [row.amount_valid for row in rows] == [False, False]
    assert [row.amount for row in rows] == [0.0, 0.0]


def test_export_transactions_uses_plain_number_format() -> None:
    txns = [
        Transaction(
            date=date(2024, 1, 3),
            type=TransactionType.expense,
            amount_cents=1250,
            category="Groceries",
            description="Tesco",
        ),
        Transaction(
            date=date(2024, 1, 9),
            type=TransactionType.income,
            amount_cents=100000,
            category=None,
            description=None,
        ),
    ]

    assert export_transactions(txns).split("\n") == [
        "Date,Type,Amount,Category,Description",
        "2024-01-03,expense,12.5,Groceries,Tesco",
        "2024-01-09,income,1000,Other,",
    ]


def test_export_tax_breakdown_two_decimals() -> None:
    breakdown = [
        MonthlyBreakdown(month="January 2024", income=1000.0, expenses=250.5, net=749.5, estimated_tax=149.9)
    ]

    assert export_tax_breakdown(breakdown).split("\n") == [
        "Month,Income,Expenses,Net,Estimated Tax",
        "January 2024,1000.00,250.50,749.50,149.90",
    ]
