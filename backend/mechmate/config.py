"""
Configuration management for Mechmate.
"""
from typing import Optional, Dict
from pydantic import Field
from pydantic_settings import BaseSettings
import base64
import json
from pathlib import Path
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives import serialization
import os
from loguru import logger

from mechmate.constants import (
    DEFAULT_NOTIFICATION_CRON_SCHEDULE,
    NOTIFICATION_LOG_RETENTION_DAYS,
    PUSH_TIMEOUT_SECONDS,
    PUSH_TTL_SECONDS,
)


class Settings(BaseSettings):
    """Application settings loaded from environment and config file."""

    # Application
    app_name: str = "Mechmate"
    app_version: str = Field(default_factory=lambda: __import__('mechmate').__version__)
    debug: bool = False

    # Server
    host: str = "0.0.0.0"
    port: int = 3000

    # Storage
    data_dir: str = Field("/data", description="Directory for the database, logs and generated keys")
    database_url: str = Field(
        "sqlite+aiosqlite:////data/mechmate.db",
        description="Database connection URL (SQLite embedded)"
    )
    log_to_file: bool = True

    # Calendar day boundaries for threshold matching and the notification log
    timezone: str = Field("UTC", description="IANA timezone that defines 'today'")

    # Scheduler
    scheduler_enabled: bool = True
    notification_cron_schedule: str = Field(
        DEFAULT_NOTIFICATION_CRON_SCHEDULE,
        description="Crontab expression for the due-task check"
    )

    # Web push (VAPID)
    vapid_public_key: Optional[str] = None
    vapid_private_key: Optional[str] = None
    vapid_subject: str = "mailto:noreply@mechmate.local"
    push_ttl_seconds: int = PUSH_TTL_SECONDS
    push_timeout_seconds: float = PUSH_TIMEOUT_SECONDS

    # Notification log
    notification_log_requires_delivery: bool = Field(
        False,
        description="Only record a task as notified when at least one device accepted the push"
    )
    notification_log_retention_days: int = Field(NOTIFICATION_LOG_RETENTION_DAYS, ge=1)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        env_nested_delimiter = "__"


def _atomic_write_file(file_path: Path, content: bytes | str) -> bool:
    """
    Atomically write content to a file using a temporary file and rename.
    This prevents race conditions and partial writes.

    Returns:
        True if successful, False otherwise
    """
    import tempfile
    temp_file = None
    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        # Create temp file in same directory for atomic rename
        fd, temp_path = tempfile.mkstemp(dir=file_path.parent)
        temp_file = Path(temp_path)

        os.write(fd, content.encode() if isinstance(content, str) else content)
        os.close(fd)

        # Set permissions before rename
        temp_file.chmod(0o600)
        temp_file.rename(file_path)
        return True
    except Exception as e:
        logger.warning(f"Failed to atomically write {file_path}: {e}")
        if temp_file and temp_file.exists():
            try:
                temp_file.unlink()
            except OSError:
                pass
        return False


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode()


def generate_vapid_keys() -> Dict[str, str]:
    """
    Generate a new VAPID key pair on the P-256 curve.

    Returns:
        Dict with base64url (unpadded) "public_key" (65-byte uncompressed point,
        usable as the browser's applicationServerKey) and "private_key"
        (32-byte raw scalar, accepted by pywebpush).
    """
    private_key = ec.generate_private_key(ec.SECP256R1())
    private_raw = private_key.private_numbers().private_value.to_bytes(32, "big")
    public_raw = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.X962,
        format=serialization.PublicFormat.UncompressedPoint,
    )
    return {"public_key": _b64url(public_raw), "private_key": _b64url(private_raw)}


def get_vapid_keys(config: Optional[Settings] = None) -> Dict[str, str]:
    """
    Get or create the VAPID key pair used to sign push requests.

    Priority order:
    1. VAPID_PUBLIC_KEY / VAPID_PRIVATE_KEY environment variables
    2. Stored pair in <data_dir>/.vapid_keys.json
    3. Generate a new pair and save it to that file (atomic write)
    """
    config = config or settings

    if config.vapid_public_key and config.vapid_private_key:
        return {"public_key": config.vapid_public_key, "private_key": config.vapid_private_key}

    key_file = Path(config.data_dir) / ".vapid_keys.json"
    if key_file.exists():
        try:
            stored = json.loads(key_file.read_text())
            if stored.get("public_key") and stored.get("private_key"):
                return {"public_key": stored["public_key"], "private_key": stored["private_key"]}
            logger.warning("Stored VAPID keys are incomplete, regenerating")
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to read VAPID key file: {e}")

    keys = generate_vapid_keys()
    if _atomic_write_file(key_file, json.dumps(keys)):
        logger.info(f"Generated new VAPID keys and saved to {key_file}")
    else:
        logger.warning("Could not persist VAPID keys - subscriptions will break on restart")

    return keys


def is_push_configured(keys: Optional[Dict[str, str]], config: Optional[Settings] = None) -> bool:
    """Check that a private key and a VAPID subject are available for signing."""
    config = config or settings
    return bool(keys and keys.get("private_key") and config.vapid_subject)


# Global settings instance
settings = Settings()
