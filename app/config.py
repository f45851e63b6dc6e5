"""
Runtime configuration loaded from environment variables (.env supported).

Required:
- GMAIL_OAUTH_CREDENTIALS: JSON with client_id, client_secret, refresh_token
- CALENDAR_NAME: Name of the calendar holding the bill reminders
"""

import json
import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Pub/Sub keeps unacknowledged messages for at most 7 days
MIN_LEDGER_TTL_DAYS = 7


class ConfigError(RuntimeError):
    """Raised when a required setting is missing or malformed."""


class Settings(BaseModel):
    """Process-wide settings, built once at startup."""
    gmail_oauth_credentials: str
    calendar_name: str
    gcp_project_id: Optional[str] = None
    pubsub_topic: str = "gmail-transaction-events"
    drive_root_folder: str = "root"
    ledger_ttl_days: int = MIN_LEDGER_TTL_DAYS
    timezone: str = "America/New_York"
    log_level: str = "INFO"

    @field_validator("ledger_ttl_days")
    @classmethod
    def _ttl_covers_redelivery(cls, value: int) -> int:
        # A claim must outlive any possible redelivery of the same notification
        return max(value, MIN_LEDGER_TTL_DAYS)

    @classmethod
    def from_env(cls) -> "Settings":
        """Read settings from the environment, loading .env first."""
        load_dotenv()

        credentials = os.getenv("GMAIL_OAUTH_CREDENTIALS")
        calendar_name = os.getenv("CALENDAR_NAME")
        if not credentials or not calendar_name:
            raise ConfigError(
                "GMAIL_OAUTH_CREDENTIALS and CALENDAR_NAME env vars are required"
            )

        values = {
            "gmail_oauth_credentials": credentials,
            "calendar_name": calendar_name,
        }
        optional = {
            "gcp_project_id": "GCP_PROJECT_ID",
            "pubsub_topic": "PUBSUB_TOPIC",
            "drive_root_folder": "DRIVE_ROOT_FOLDER",
            "ledger_ttl_days": "LEDGER_TTL_DAYS",
            "timezone": "TIMEZONE",
            "log_level": "LOG_LEVEL",
        }
        for field, env_name in optional.items():
            value = os.getenv(env_name)
            if value:
                values[field] = value

        return cls(**values)

    def oauth_client_info(self) -> dict:
        """Parse the OAuth client JSON into client_id/client_secret/refresh_token."""
        try:
            info = json.loads(self.gmail_oauth_credentials)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Failed to parse GMAIL_OAUTH_CREDENTIALS: {e}") from e

        missing = [k for k in ("client_id", "client_secret", "refresh_token") if not info.get(k)]
        if missing:
            raise ConfigError(
                f"GMAIL_OAUTH_CREDENTIALS is missing: {', '.join(missing)}"
            )
        return info
