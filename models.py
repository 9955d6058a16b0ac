from datetime import date, datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base


class TransactionType(str, Enum):
    income = "income"
    expense = "expense"


class TransactionSource(str, Enum):
    manual = "manual"
    import_ = "import"


class FilingStatus(str, Enum):
    draft = "draft"
    open = "open"
    submitted = "submitted"


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class Profile(Base, TimestampMixin):
    __tablename__ = "profiles"

    # Same value as the identity service's user id.
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    email: Mapped[Optional[str]] = mapped_column(String(320))
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    dob: Mapped[Optional[date]] = mapped_column(Date)
    ni_number: Mapped[Optional[str]] = mapped_column(String(9))
    country: Mapped[Optional[str]] = mapped_column(String(80))
    occupation: Mapped[Optional[str]] = mapped_column(String(120))
    account_method: Mapped[Optional[str]] = mapped_column(String(80))
    phone_number: Mapped[Optional[str]] = mapped_column(String(32))


class Filing(Base, TimestampMixin):
    __tablename__ = "filings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    tax_year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[Optional[str]] = mapped_column(String(12))
    status: Mapped[FilingStatus] = mapped_column(
        SAEnum(FilingStatus), nullable=False, default=FilingStatus.draft
    )
    submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    transactions: Mapped[list["Transaction"]] = relationship(
        "Transaction", back_populates="filing"
    )

    __table_args__ = (Index("ix_filings_user_year", "user_id", "tax_year"),)

    @property
    def period_label(self) -> str:
        if self.month:
            return f"{self.month} {self.tax_year}"
        return str(self.tax_year)

    @property
    def is_submitted(self) -> bool:
        return self.status == FilingStatus.submitted


class Transaction(Base, TimestampMixin):
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    filing_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("filings.id", ondelete="SET NULL")
    )
    date: Mapped[date] = mapped_column(Date, nullable=False)
    type: Mapped[TransactionType] = mapped_column(
        SAEnum(TransactionType), nullable=False
    )
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String(100))
    description: Mapped[Optional[str]] = mapped_column(Text)
    receipt_url: Mapped[Optional[str]] = mapped_column(String(500))
    source: Mapped[TransactionSource] = mapped_column(
        SAEnum(
            TransactionSource,
            name="transactionsource",
            values_callable=_enum_values,
        ),
        nullable=False,
        default=TransactionSource.manual,
    )

    filing: Mapped[Optional["Filing"]] = relationship(
        "Filing", back_populates="transactions"
    )

    __table_args__ = (
        Index("ix_transactions_user_date", "user_id", "date"),
        Index("ix_transactions_filing_date", "filing_id", "date"),
    )

    @property
    def amount(self) -> float:
        return self.amount_cents / 100
