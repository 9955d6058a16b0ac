from datetime import date

import pytest
from pydantic import ValidationError
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from database import Base
from schemas import ProfileIn, SignupIn
from services import ProfileService


def _signup(**overrides) -> dict:
    data = {
        "full_name": "Ada Lovelace",
        "email": "ada@example.com",
        "country_code": "+44",
        "phone_number": "07123456789",
        "occupation": "Engineer",
        "country": "United Kingdom",
        "ni_number": "ab123456c",
        "dob": "1990-12-10",
        "account_method": "cash",
        "password": "Secret123",
        "confirm_password": "Secret123",
    }
    data.update(overrides)
    return data


def test_valid_signup_normalises_fields() -> None:
    data = SignupIn(**_signup())

    assert data.ni_number == "AB123456C"
    assert data.dob == date(1990, 12, 10)
    assert data.full_phone_number == "+4407123456789"
    assert data.resolved_account_method == "cash"


@pytest.mark.parametrize(
    ("overrides", "message"),
    [
        ({"email": "not-an-email"}, "valid email"),
        ({"ni_number": "AB12"}, "exactly 9 characters"),
        ({"dob": "2015-01-01"}, "between 1900 and 2013"),
        ({"password": "secret", "confirm_password": "secret"}, "at least 8 characters"),
        ({"confirm_password": "Secret124"}, "Passwords do not match"),
        ({"phone_number": "12345"}, "valid phone number"),
        ({"account_method": "other"}, "specify your accounting method"),
        ({"full_name": "   "}, "required"),
    ],
)
def test_signup_rejects_invalid_input(overrides: dict, message: str) -> None:
    with pytest.raises(ValidationError, match=message):
        SignupIn(**_signup(**overrides))


def test_non_uk_phone_and_other_account_method() -> None:
    data = SignupIn(
        **_signup(
            country_code="+1",
            phone_number="4155550100",
            account_method="other",
            account_method_other="Hybrid",
        )
    )
    assert data.full_phone_number == "+14155550100"
    assert data.resolved_account_method == "Hybrid"


def test_profile_created_from_signup_then_updated() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        service = ProfileService(session, "user-1")
        profile = service.create_from_signup(SignupIn(**_signup()))
        assert profile.id == "user-1"
        assert profile.email == "ada@example.com"
        assert profile.phone_number == "+4407123456789"

        updated = service.update(ProfileIn(full_name="Ada King", occupation="Analyst"))
        assert updated.full_name == "Ada King"
        assert updated.occupation == "Analyst"
        assert ProfileService(session, "user-2").get() is None
