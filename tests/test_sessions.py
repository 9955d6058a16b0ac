from sqlalchemy import create_engine
from sqlalchemy.orm import Session
from starlette.responses import Response

from csrf import ANONYMOUS, generate_csrf_token, validate_csrf_token
from database import Base
from identity import AuthSession, AuthUser, IdentityError
from models import Profile
from sessions import (
    SESSION_COOKIE,
    PortalSession,
    SessionState,
    read_access_token,
    store_session,
)

USER = AuthUser(id="user-1", email="ada@example.com")


class StubIdentity:
    def __init__(self, user=USER, error: bool = False) -> None:
        self.user = user
        self.error = error

    def get_user(self, token):
        if self.error:
            raise IdentityError("auth service unreachable")
        return self.user if token == "token-1" else None


def _cookie() -> str:
    response = Response()
    store_session(response, AuthSession("token-1", "refresh-1", USER))
    header = response.headers["set-cookie"]
    assert header.startswith(f"{SESSION_COOKIE}=")
    assert "httponly" in header.lower()
    return header.split(";", 1)[0].split("=", 1)[1]


def test_csrf_token_is_bound_to_owner() -> None:
    token = generate_csrf_token("user-1")

    assert validate_csrf_token(token, "user-1")
    assert not validate_csrf_token(token, "user-2")
    assert not validate_csrf_token(token, ANONYMOUS)
    assert not validate_csrf_token(token + "x", "user-1")
    assert not validate_csrf_token("", "user-1")
    assert validate_csrf_token(generate_csrf_token())


def test_csrf_token_expires() -> None:
    token = generate_csrf_token("user-1")
    assert not validate_csrf_token(token, "user-1", max_age_secs=-1)


def test_session_cookie_round_trip_and_tampering() -> None:
    cookie = _cookie()

    assert read_access_token(cookie) == "token-1"
    assert read_access_token(cookie[:-2] + "zz") is None
    assert read_access_token(None) is None


def test_resolve_authenticates_and_loads_profile() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as db:
        db.add(Profile(id="user-1", full_name="Ada Lovelace"))
        db.commit()

        portal = PortalSession(db=db, identity=StubIdentity(), cookie=_cookie())
        assert portal.state == SessionState.loading
        assert portal.resolve() == SessionState.authenticated
        assert portal.user_id == "user-1"
        assert portal.display_name == "Ada Lovelace"


def test_resolve_redirects_without_valid_session() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as db:
        assert PortalSession(db=db, identity=StubIdentity(), cookie=None).resolve() == SessionState.redirecting
        assert (
            PortalSession(db=db, identity=StubIdentity(user=None), cookie=_cookie()).resolve()
            == SessionState.redirecting
        )
        unreachable = PortalSession(db=db, identity=StubIdentity(error=True), cookie=_cookie())
        assert unreachable.resolve() == SessionState.redirecting
        assert unreachable.user is None


def test_display_name_falls_back_to_email() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as db:
        portal = PortalSession(db=db, identity=StubIdentity(), cookie=_cookie())
        portal.resolve()
        assert portal.profile is None
        assert portal.display_name == "ada@example.com"
