import os
from dataclasses import dataclass
from typing import Optional


def _env_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is None or v == "":
        return default
    try:
        return int(v)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    v = os.getenv(name)
    if v is None or v == "":
        return default
    try:
        return float(v)
    except ValueError:
        return default


def _env_bool(name: str, default: bool) -> bool:
    v = os.getenv(name)
    if v is None or v.strip() == "":
        return default
    return v.strip() not in {"0", "false", "False", "no", "NO"}


@dataclass(frozen=True)
class Settings:
    env: str
    app_base_url: str

    check_in_radius_m: float
    invoice_due_days: int
    default_currency: str

    photo_storage_dir: str
    photo_max_bytes: int

    outbox_worker_enabled: bool
    outbox_poll_seconds: float
    outbox_batch_size: int
    outbox_max_retries: int

    smtp_host: Optional[str]
    smtp_port: int
    smtp_username: Optional[str]
    smtp_password: Optional[str]
    smtp_tls: bool
    mail_from: Optional[str]

    @property
    def is_dev(self) -> bool:
        return self.env in {"dev", "local", "test"}

    @property
    def smtp_configured(self) -> bool:
        return bool(self.smtp_host and self.mail_from)


def get_settings() -> Settings:
    """Read settings from the environment on every call so tests can monkeypatch env vars."""
    return Settings(
        env=os.getenv("ENV", "dev").lower(),
        app_base_url=os.getenv("APP_BASE_URL", "http://localhost:8000").rstrip("/"),
        check_in_radius_m=_env_float("CHECK_IN_RADIUS_M", 200.0),
        invoice_due_days=_env_int("INVOICE_DUE_DAYS", 14),
        default_currency=os.getenv("DEFAULT_CURRENCY", "GBP"),
        photo_storage_dir=os.getenv("PHOTO_STORAGE_DIR", "var/storage"),
        photo_max_bytes=_env_int("PHOTO_MAX_BYTES", 10 * 1024 * 1024),
        outbox_worker_enabled=_env_bool("OUTBOX_WORKER_ENABLED", True),
        outbox_poll_seconds=_env_float("OUTBOX_POLL_SECONDS", 1.0),
        outbox_batch_size=_env_int("OUTBOX_BATCH_SIZE", 50),
        outbox_max_retries=_env_int("OUTBOX_MAX_RETRIES", 5),
        smtp_host=os.getenv("SMTP_HOST") or None,
        smtp_port=_env_int("SMTP_PORT", 587),
        smtp_username=os.getenv("SMTP_USERNAME") or None,
        smtp_password=os.getenv("SMTP_PASSWORD") or None,
        smtp_tls=_env_bool("SMTP_TLS", True),
        mail_from=os.getenv("MAIL_FROM") or None,
    )
