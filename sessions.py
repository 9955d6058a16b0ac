"""Per-request authenticated context for portal pages.

The browser holds a signed cookie with the identity service's tokens. Every
portal request re-validates the access token remotely and loads the
matching profile row; anything short of a valid user sends the visitor to
the login page.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from itsdangerous import BadData, URLSafeTimedSerializer
from sqlalchemy.orm import Session
from starlette.responses import Response

from config import get_settings
from identity import AuthSession, AuthUser, IdentityClient, IdentityError
from models import Profile
from services import ProfileService

logger = logging.getLogger(__name__)

SESSION_COOKIE = "taxmate_session"


class SessionState(str, Enum):
    loading = "loading"
    authenticated = "authenticated"
    redirecting = "redirecting"


class LoginRequired(Exception):
    """Raised from portal dependencies; handled as a redirect to /login."""


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(get_settings().secret_key, salt="session")


def store_session(response: Response, auth: AuthSession) -> None:
    settings = get_settings()
    token = _serializer().dumps(
        {"at": auth.access_token, "rt": auth.refresh_token, "uid": auth.user.id}
    )
    response.set_cookie(
        SESSION_COOKIE,
        token,
        max_age=settings.session_max_age_secs,
        httponly=True,
        samesite="lax",
    )


def clear_session(response: Response) -> None:
    response.delete_cookie(SESSION_COOKIE)


def read_access_token(cookie: Optional[str]) -> Optional[str]:
    if not cookie:
        return None
    try:
        data = _serializer().loads(cookie, max_age=get_settings().session_max_age_secs)
    except BadData:
        return None
    return data.get("at")


@dataclass
class PortalSession:
    db: Session
    identity: IdentityClient
    cookie: Optional[str]
    state: SessionState = SessionState.loading
    user: Optional[AuthUser] = None
    profile: Optional[Profile] = None
    access_token: Optional[str] = None

    def resolve(self) -> SessionState:
        self.access_token = read_access_token(self.cookie)
        if not self.access_token:
            self.state = SessionState.redirecting
            return self.state
        try:
            user = self.identity.get_user(self.access_token)
        except IdentityError as exc:
            logger.error(f"session_lookup_failed: error={exc}")
            user = None
        if user is None:
            self.state = SessionState.redirecting
            return self.state
        self.user = user
        self.profile = ProfileService(self.db, user.id).get()
        self.state = SessionState.authenticated
        return self.state

    @property
    def user_id(self) -> str:
        if self.user is None:
            raise LoginRequired()
        return self.user.id

    @property
    def display_name(self) -> str:
        if self.profile and self.profile.full_name:
            return self.profile.full_name
        if self.user and self.user.email:
            return self.user.email
        return "there"
