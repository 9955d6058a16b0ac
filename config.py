import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        secret_key: str,
        session_max_age_secs: int,
        auth_url: str,
        auth_api_key: str,
        storage_url: str,
        receipts_bucket: str,
        assistant_url: str,
        http_timeout_secs: float,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.secret_key = secret_key
        self.session_max_age_secs = session_max_age_secs
        self.auth_url = auth_url
        self.auth_api_key = auth_api_key
        self.storage_url = storage_url
        self.receipts_bucket = receipts_bucket
        self.assistant_url = assistant_url
        self.http_timeout_secs = http_timeout_secs


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("TAXMATE_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "taxmate.db"
    database_url = os.getenv("TAXMATE_DATABASE_URL", f"sqlite:///{default_db}")
    timezone = os.getenv("TAXMATE_TIMEZONE", "Europe/London")
    secret_key = os.getenv(
        "TAXMATE_SECRET_KEY",
        "3f9c2b1e7a5d48c0b6e2f1a9d7c3e5b8a1f0d2c4e6b8a0c2e4f6a8b0c2d4e6f8",
    )
    session_max_age_secs = int(os.getenv("TAXMATE_SESSION_MAX_AGE_SECS", "604800"))
    auth_url = os.getenv("TAXMATE_AUTH_URL", "http://localhost:54321/auth/v1")
    auth_api_key = os.getenv("TAXMATE_AUTH_API_KEY", "")
    storage_url = os.getenv("TAXMATE_STORAGE_URL", "http://localhost:54321/storage/v1")
    receipts_bucket = os.getenv("TAXMATE_RECEIPTS_BUCKET", "receipts")
    assistant_url = os.getenv("TAXMATE_ASSISTANT_URL", "https://api.copilot.live/chat")
    http_timeout_secs = float(os.getenv("TAXMATE_HTTP_TIMEOUT_SECS", "10"))
    return Settings(
        database_url=database_url,
        timezone=timezone,
        secret_key=secret_key,
        session_max_age_secs=session_max_age_secs,
        auth_url=auth_url.rstrip("/"),
        auth_api_key=auth_api_key,
        storage_url=storage_url.rstrip("/"),
        receipts_bucket=receipts_bucket,
        assistant_url=assistant_url,
        http_timeout_secs=http_timeout_secs,
    )
