from __future__ import annotations

import logging

from config import get_settings
from remote import RemoteServiceError, request_json

logger = logging.getLogger(__name__)


class AssistantError(RemoteServiceError):
    pass


class AssistantClient:
    """Forwards one user message to the chat service and returns its reply."""

    def __init__(self) -> None:
        self.settings = get_settings()

    def ask(self, message: str) -> str:
        payload = {"messages": [{"role": "user", "content": message}]}
        try:
            data = request_json(
                "POST",
                self.settings.assistant_url,
                payload=payload,
                timeout=self.settings.http_timeout_secs,
            )
        except RemoteServiceError as exc:
            raise AssistantError(str(exc), status=exc.status) from exc
        try:
            reply = data["reply"]
        except (KeyError, TypeError) as exc:
            raise AssistantError("Unexpected assistant response") from exc
        return str(reply)


def get_assistant() -> AssistantClient:
    return AssistantClient()
