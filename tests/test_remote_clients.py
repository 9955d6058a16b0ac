import io
import json
from urllib.error import HTTPError, URLError

import pytest

import remote
from assistant import AssistantClient, AssistantError
from identity import IdentityClient, IdentityError
from storage import ReceiptStorage, StorageError, receipt_key, validate_receipt


class FakeResponse:
    def __init__(self, body: bytes) -> None:
        self.body = body

    def read(self) -> bytes:
        return self.body

    def __enter__(self):
        return self

    def __exit__(self, *exc) -> None:
        return None


class Recorder:
    def __init__(self, *responses) -> None:
        self.responses = list(responses)
        self.requests = []

    def __call__(self, req, timeout):
        self.requests.append(req)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return FakeResponse(json.dumps(response).encode("utf-8") if response is not None else b"")


def _http_error(url: str, code: int, payload: dict) -> HTTPError:
    return HTTPError(url, code, "error", {}, io.BytesIO(json.dumps(payload).encode("utf-8")))


def test_sign_in_returns_session(monkeypatch: pytest.MonkeyPatch) -> None:
    recorder = Recorder(
        {"access_token": "at", "refresh_token": "rt", "user": {"id": "u-1", "email": "a@example.com"}}
    )
    monkeypatch.setattr(remote, "urlopen", recorder)

    session = IdentityClient().sign_in("a@example.com", "Secret123")

    assert session.access_token == "at"
    assert session.user.id == "u-1"
    req = recorder.requests[0]
    assert req.get_method() == "POST"
    assert req.full_url.endswith("/token?grant_type=password")
    assert json.loads(req.data) == {"email": "a@example.com", "password": "Secret123"}


def test_sign_in_surfaces_service_message(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        remote,
        "urlopen",
        Recorder(_http_error("http://auth/token", 400, {"error_description": "Invalid login credentials"})),
    )

    with pytest.raises(IdentityError, match="Invalid login credentials") as excinfo:
        IdentityClient().sign_in("a@example.com", "wrong")
    assert excinfo.value.status == 400


def test_sign_up_without_confirmation_returns_no_session(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(remote, "urlopen", Recorder({"id": "u-2", "email": "b@example.com"}))

    user, session = IdentityClient().sign_up("b@example.com", "Secret123")

    assert user.id == "u-2"
    assert session is None


@pytest.mark.parametrize("body", [None, {}, {"user": None}, {"email": "b@example.com"}, ["u-2"]])
def test_sign_up_rejects_malformed_response(monkeypatch: pytest.MonkeyPatch, body) -> None:
    monkeypatch.setattr(remote, "urlopen", Recorder(body))

    with pytest.raises(IdentityError, match="Unexpected response"):
        IdentityClient().sign_up("b@example.com", "Secret123")


def test_update_password_rejects_empty_response(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(remote, "urlopen", Recorder(None))

    with pytest.raises(IdentityError, match="Unexpected response"):
        IdentityClient().update_password("at", "NewSecret123")


def test_get_user_treats_unauthorized_as_signed_out(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        remote, "urlopen", Recorder(_http_error("http://auth/user", 401, {"msg": "expired"}))
    )
    assert IdentityClient().get_user("stale") is None

    monkeypatch.setattr(remote, "urlopen", Recorder(URLError("connection refused")))
    with pytest.raises(IdentityError):
        IdentityClient().get_user("token")


def test_sign_out_ignores_revoked_token(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        remote, "urlopen", Recorder(_http_error("http://auth/logout", 403, {}))
    )
    IdentityClient().sign_out("revoked")


def test_password_reset_passes_redirect(monkeypatch: pytest.MonkeyPatch) -> None:
    recorder = Recorder(None)
    monkeypatch.setattr(remote, "urlopen", recorder)

    IdentityClient().send_password_reset("a@example.com", "http://testserver/forgot-password")

    assert "/recover?redirect_to=http%3A%2F%2Ftestserver%2Fforgot-password" in recorder.requests[0].full_url


def test_receipt_upload_and_public_url(monkeypatch: pytest.MonkeyPatch) -> None:
    recorder = Recorder({"Key": "receipts/receipt-7"})
    monkeypatch.setattr(remote, "urlopen", recorder)
    storage = ReceiptStorage()

    key = storage.upload(receipt_key(7), b"%PDF-1.4", "application/pdf")

    req = recorder.requests[0]
    assert key == "receipt-7"
    assert req.full_url.endswith("/object/receipts/receipt-7")
    assert req.get_header("X-upsert") == "true"
    assert req.data == b"%PDF-1.4"
    assert storage.public_url(key).endswith("/object/public/receipts/receipt-7")


def test_receipt_upload_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        remote, "urlopen", Recorder(_http_error("http://storage", 413, {"message": "Payload too large"}))
    )
    with pytest.raises(StorageError, match="Payload too large"):
        ReceiptStorage().upload("receipt-1", b"x", "image/png")


def test_validate_receipt() -> None:
    validate_receipt("image/png", 1024)
    with pytest.raises(ValueError, match="Unsupported file type"):
        validate_receipt("text/plain", 10)
    with pytest.raises(ValueError, match="under 10MB"):
        validate_receipt("application/pdf", 10 * 1024 * 1024 + 1)


def test_assistant_reply(monkeypatch: pytest.MonkeyPatch) -> None:
    recorder = Recorder({"reply": "Keep your receipts."})
    monkeypatch.setattr(remote, "urlopen", recorder)

    assert AssistantClient().ask("What can I claim?") == "Keep your receipts."
    assert json.loads(recorder.requests[0].data) == {
        "messages": [{"role": "user", "content": "What can I claim?"}]
    }


def test_assistant_unexpected_payload(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(remote, "urlopen", Recorder({"answer": "?"}))
    with pytest.raises(AssistantError, match="Unexpected assistant response"):
        AssistantClient().ask("hello")
