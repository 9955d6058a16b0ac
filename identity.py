"""Client for the hosted identity service.

Credentials never touch this application's database: sign-up, sign-in,
password recovery and token validation are all calls to the service's
REST API.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import urlencode

from config import get_settings
from remote import RemoteServiceError, request_json


class IdentityError(RemoteServiceError):
    pass


@dataclass(frozen=True)
class AuthUser:
    id: str
    email: Optional[str]


@dataclass(frozen=True)
class AuthSession:
    access_token: str
    refresh_token: Optional[str]
    user: AuthUser


def _user_from_payload(payload: Any) -> AuthUser:
    if not isinstance(payload, dict) or payload.get("id") is None:
        raise IdentityError("Unexpected response from identity service")
    return AuthUser(id=str(payload["id"]), email=payload.get("email"))


def _session_from_payload(payload: Any) -> Optional[AuthSession]:
    token = payload.get("access_token") if isinstance(payload, dict) else None
    if not token:
        return None
    return AuthSession(
        access_token=token,
        refresh_token=payload.get("refresh_token"),
        user=_user_from_payload(payload["user"]),
    )


class IdentityClient:
    def __init__(self) -> None:
        self.settings = get_settings()

    def _headers(self, token: Optional[str] = None) -> dict[str, str]:
        headers = {"apikey": self.settings.auth_api_key}
        headers["Authorization"] = f"Bearer {token or self.settings.auth_api_key}"
        return headers

    def _call(
        self,
        method: str,
        path: str,
        *,
        payload: Any = None,
        token: Optional[str] = None,
    ) -> Any:
        url = f"{self.settings.auth_url}{path}"
        try:
            return request_json(
                method,
                url,
                payload=payload,
                headers=self._headers(token),
                timeout=self.settings.http_timeout_secs,
            )
        except RemoteServiceError as exc:
            raise IdentityError(str(exc), status=exc.status) from exc

    def sign_up(self, email: str, password: str) -> tuple[AuthUser, Optional[AuthSession]]:
        """Register credentials.

        The service returns a session straight away unless it is configured
        to require email confirmation, in which case only the user comes back.
        """
        payload = self._call(
            "POST", "/signup", payload={"email": email, "password": password}
        ) or {}
        if isinstance(payload, dict) and "user" in payload:
            session = _session_from_payload(payload)
            return _user_from_payload(payload["user"]), session
        return _user_from_payload(payload), None

    def sign_in(self, email: str, password: str) -> AuthSession:
        payload = self._call(
            "POST",
            "/token?grant_type=password",
            payload={"email": email, "password": password},
        )
        session = _session_from_payload(payload)
        if session is None:
            raise IdentityError("Sign-in did not return a session")
        return session

    def sign_out(self, access_token: str) -> None:
        try:
            self._call("POST", "/logout", token=access_token)
        except IdentityError as exc:
            # An already revoked token still counts as signed out.
            if exc.status not in (401, 403):
                raise

    def send_password_reset(self, email: str, redirect_to: Optional[str] = None) -> None:
        path = "/recover"
        if redirect_to:
            path = f"{path}?{urlencode({'redirect_to': redirect_to})}"
        self._call("POST", path, payload={"email": email})

    def update_password(self, access_token: str, password: str) -> AuthUser:
        payload = self._call("PUT", "/user", payload={"password": password}, token=access_token)
        return _user_from_payload(payload)

    def get_user(self, access_token: str) -> Optional[AuthUser]:
        try:
            payload = self._call("GET", "/user", token=access_token)
        except IdentityError as exc:
            if exc.status in (401, 403):
                return None
            raise
        if not payload:
            return None
        return _user_from_payload(payload)


def get_identity() -> IdentityClient:
    return IdentityClient()
