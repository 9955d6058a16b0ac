from __future__ import annotations

import logging
from urllib.parse import quote

from config import get_settings
from remote import RemoteServiceError, request_json

logger = logging.getLogger(__name__)

MAX_RECEIPT_BYTES = 10 * 1024 * 1024
ALLOWED_RECEIPT_TYPES = {
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "image/jpeg",
    "image/png",
    "image/webp",
}


class StorageError(RemoteServiceError):
    pass


def validate_receipt(content_type: str, size: int) -> None:
    if content_type not in ALLOWED_RECEIPT_TYPES:
        raise ValueError("Unsupported file type. Please upload a PDF, Word doc, or image.")
    if size > MAX_RECEIPT_BYTES:
        raise ValueError("File must be under 10MB.")


def receipt_key(transaction_id: int) -> str:
    return f"receipt-{transaction_id}"


class ReceiptStorage:
    def __init__(self) -> None:
        self.settings = get_settings()

    @property
    def bucket(self) -> str:
        return self.settings.receipts_bucket

    def upload(self, path: str, content: bytes, content_type: str) -> str:
        """Upsert an object into the receipts bucket and return its key."""
        url = f"{self.settings.storage_url}/object/{self.bucket}/{quote(path)}"
        headers = {
            "apikey": self.settings.auth_api_key,
            "Authorization": f"Bearer {self.settings.auth_api_key}",
            "Content-Type": content_type,
            "x-upsert": "true",
        }
        try:
            request_json(
                "POST",
                url,
                data=content,
                headers=headers,
                timeout=self.settings.http_timeout_secs,
            )
        except RemoteServiceError as exc:
            logger.error(f"receipt_upload_failed: path={path} error={exc}")
            raise StorageError(str(exc), status=exc.status) from exc
        return path

    def public_url(self, path: str) -> str:
        return f"{self.settings.storage_url}/object/public/{self.bucket}/{quote(path)}"


def get_receipt_storage() -> ReceiptStorage:
    return ReceiptStorage()
