from __future__ import annotations

import json
import logging
from typing import Any, Optional
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

logger = logging.getLogger(__name__)


class RemoteServiceError(RuntimeError):
    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


def _error_message(body: bytes, fallback: str) -> str:
    try:
        payload = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return fallback
    if isinstance(payload, dict):
        for key in ("error_description", "msg", "message", "error"):
            if payload.get(key):
                return str(payload[key])
    return fallback


def request_json(
    method: str,
    url: str,
    *,
    payload: Any = None,
    data: Optional[bytes] = None,
    headers: Optional[dict[str, str]] = None,
    timeout: float,
) -> Any:
    """Send a request and decode the JSON response body.

    Empty bodies decode to ``None``. HTTP and transport failures raise
    :class:`RemoteServiceError` carrying the service's own message when it
    returned one.
    """
    all_headers = {"Accept": "application/json"}
    all_headers.update(headers or {})
    if payload is not None:
        data = json.dumps(payload).encode("utf-8")
        all_headers.setdefault("Content-Type", "application/json")
    req = Request(url, data=data, headers=all_headers, method=method)
    try:
        with urlopen(req, timeout=timeout) as resp:
            body = resp.read()
    except HTTPError as exc:
        message = _error_message(exc.read(), f"{method} {url} failed with {exc.code}")
        logger.warning(f"remote_error: method={method} url={url} status={exc.code}")
        raise RemoteServiceError(message, status=exc.code) from exc
    except (URLError, TimeoutError) as exc:
        logger.error(f"remote_unreachable: method={method} url={url} error={exc}")
        raise RemoteServiceError(f"{method} {url} failed: {exc}") from exc

    if not body:
        return None
    try:
        return json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise RemoteServiceError(f"Unexpected response from {url}") from exc
