import re
from datetime import date
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from csv_utils import MAX_AMOUNT_CENTS
from models import TransactionSource, TransactionType

MONTH_NAMES = [
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
]

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
NI_NUMBER_RE = re.compile(r"^[A-Za-z0-9]{9}$")


class SignupIn(BaseModel):
    full_name: str = Field(..., max_length=200)
    email: str = Field(..., max_length=320)
    country_code: str = "+44"
    phone_number: str
    occupation: str = Field(..., max_length=120)
    country: Optional[str] = Field(default=None, max_length=80)
    ni_number: str
    dob: date
    account_method: str
    account_method_other: Optional[str] = None
    password: str
    confirm_password: str

    @field_validator("full_name", "occupation")
    @classmethod
    def _required(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("This field is required.")
        return value.strip()

    @field_validator("email")
    @classmethod
    def _email(cls, value: str) -> str:
        value = value.strip()
        if not EMAIL_RE.match(value):
            raise ValueError("Enter a valid email address.")
        return value

    @field_validator("ni_number")
    @classmethod
    def _ni_number(cls, value: str) -> str:
        if not NI_NUMBER_RE.match(value):
            raise ValueError("NI Number must be exactly 9 characters.")
        return value.upper()

    @field_validator("dob")
    @classmethod
    def _dob(cls, value: date) -> date:
        if not date(1900, 1, 1) <= value <= date(2013, 12, 31):
            raise ValueError("Date of birth must be between 1900 and 2013.")
        return value

    @field_validator("password")
    @classmethod
    def _password(cls, value: str) -> str:
        if (
            len(value) < 8
            or not re.search(r"[A-Z]", value)
            or not re.search(r"\d", value)
        ):
            raise ValueError(
                "Password must be at least 8 characters with an uppercase letter and a number."
            )
        return value

    @model_validator(mode="after")
    def _cross_fields(self) -> "SignupIn":
        number = self.phone_number.strip()
        if self.country_code == "+44":
            valid_phone = bool(re.match(r"^0\d{10}$", number) or re.match(r"^7\d{9}$", number))
        else:
            valid_phone = bool(re.match(r"^\d{7,15}$", number))
        if not valid_phone:
            raise ValueError("Enter a valid phone number.")
        if not self.account_method.strip():
            raise ValueError("Please select an accounting method.")
        if self.account_method == "other" and not (self.account_method_other or "").strip():
            raise ValueError("Please specify your accounting method.")
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match.")
        return self

    @property
    def resolved_account_method(self) -> str:
        if self.account_method == "other":
            return (self.account_method_other or "").strip()
        return self.account_method

    @property
    def full_phone_number(self) -> str:
        return f"{self.country_code}{self.phone_number.strip()}"


class ProfileIn(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=200)
    dob: Optional[date] = None
    ni_number: Optional[str] = Field(default=None, max_length=9)
    country: Optional[str] = Field(default=None, max_length=80)
    occupation: Optional[str] = Field(default=None, max_length=120)
    account_method: Optional[str] = Field(default=None, max_length=80)
    phone_number: Optional[str] = Field(default=None, max_length=32)


class FilingIn(BaseModel):
    mode: Literal["monthly", "yearly"] = "monthly"
    tax_year: int = Field(..., ge=2000, le=2100)
    month: Optional[str] = None
    income_cents: int = Field(default=0, ge=0, le=MAX_AMOUNT_CENTS)
    expense_cents: int = Field(default=0, ge=0, le=MAX_AMOUNT_CENTS)

    @model_validator(mode="after")
    def _month_for_mode(self) -> "FilingIn":
        if self.mode == "monthly":
            if self.month not in MONTH_NAMES:
                raise ValueError("Select a month for a monthly filing")
        else:
            self.month = None
        return self


class TransactionIn(BaseModel):
    date: date
    type: TransactionType
    amount_cents: int = Field(..., ge=-MAX_AMOUNT_CENTS, le=MAX_AMOUNT_CENTS)
    category: Optional[str] = Field(default=None, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    source: TransactionSource = TransactionSource.manual
    filing_id: Optional[int] = None


class TransactionFieldIn(BaseModel):
    field: Literal["amount", "type", "category"]
    value: str


class AssistantIn(BaseModel):
    message: str


class AssistantOut(BaseModel):
    reply: str
