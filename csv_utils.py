import math
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Iterable, Sequence

from models import Transaction
from tax import effective_category

DEFAULT_CATEGORY = "Uncategorized"

# Largest stored amount, in cents; fits a signed 64-bit column with room to spare.
MAX_AMOUNT_CENTS = 10**13

TRANSACTION_EXPORT_HEADER = ["Date", "Type", "Amount", "Category", "Description"]
TAX_BREAKDOWN_EXPORT_HEADER = ["Month", "Income", "Expenses", "Net", "Estimated Tax"]


@dataclass
class ParsedTransaction:
    date: str
    amount: float
    vendor: str
    category: str = DEFAULT_CATEGORY
    # False when the amount column was not a usable number; amount is then 0.0.
    amount_valid: bool = True


def parse_float(value: str) -> float:
    """Parse a float, rejecting NaN, infinities and out-of-range amounts."""
    number = float(value.strip())
    if not math.isfinite(number):
        raise ValueError("Amount must be a finite number")
    if abs(number) * 100 > MAX_AMOUNT_CENTS:
        raise ValueError("Amount is too large")
    return number


def _decimal_to_cents(amount: Decimal) -> int:
    if not amount.is_finite() or abs(amount) * 100 > MAX_AMOUNT_CENTS:
        raise ValueError("Invalid amount")
    try:
        return int((amount * 100).quantize(Decimal("1")))
    except InvalidOperation as exc:
        raise ValueError("Invalid amount") from exc


def parse_amount(value: str, *, allow_negative: bool = False) -> int:
    clean = value.strip().replace("£", "").replace("$", "").replace(" ", "")
    clean = clean.replace(",", "")
    try:
        amount = Decimal(clean)
    except InvalidOperation as exc:
        raise ValueError("Invalid amount") from exc
    cents = _decimal_to_cents(amount)
    if cents < 0 and not allow_negative:
        raise ValueError("Amount must be positive")
    return cents


def to_cents(amount: float) -> int:
    return _decimal_to_cents(Decimal(repr(float(amount))))


def parse_csv(content: str) -> list[ParsedTransaction]:
    """Parse ``date,amount,vendor,category`` bank exports.

    The first non-empty line is a header and is skipped without inspection.
    Fields are split on bare commas; quoting is not understood. Rows missing
    a date, amount or vendor are dropped silently. A non-numeric amount
    becomes a 0.0 placeholder flagged with ``amount_valid=False`` so the row
    can be corrected before it is accepted.
    """
    lines = [line for line in content.split("\n") if line]
    rows: list[ParsedTransaction] = []
    for line in lines[1:]:
        fields = line.split(",")
        date_raw = fields[0] if len(fields) > 0 else ""
        amount_raw = fields[1] if len(fields) > 1 else ""
        vendor_raw = fields[2] if len(fields) > 2 else ""
        category_raw = fields[3] if len(fields) > 3 else ""
        if not date_raw or not amount_raw or not vendor_raw:
            continue
        try:
            amount = parse_float(amount_raw)
            amount_valid = True
        except ValueError:
            amount = 0.0
            amount_valid = False
        rows.append(
            ParsedTransaction(
                date=date_raw.strip(),
                amount=amount,
                vendor=vendor_raw.strip(),
                category=category_raw.strip() or DEFAULT_CATEGORY,
                amount_valid=amount_valid,
            )
        )
    return rows


def _join_rows(header: Sequence[str], rows: Iterable[Sequence[object]]) -> str:
    lines = [",".join(header)]
    lines.extend(",".join(str(value) for value in row) for row in rows)
    return "\n".join(lines)


def format_amount(value: float) -> str:
    # Mirrors a bare JS number: 12.5 -> "12.5", 10.0 -> "10".
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def export_transactions(transactions: Sequence[Transaction]) -> str:
    return _join_rows(
        TRANSACTION_EXPORT_HEADER,
        (
            [
                txn.date.isoformat(),
                txn.type.value,
                format_amount(txn.amount),
                effective_category(txn),
                txn.description or "",
            ]
            for txn in transactions
        ),
    )


def export_tax_breakdown(breakdown) -> str:
    return _join_rows(
        TAX_BREAKDOWN_EXPORT_HEADER,
        (
            [
                row.month,
                f"{row.income:.2f}",
                f"{row.expenses:.2f}",
                f"{row.net:.2f}",
                f"{row.estimated_tax:.2f}",
            ]
            for row in breakdown
        ),
    )
