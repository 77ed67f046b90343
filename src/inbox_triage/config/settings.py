"""Configuration via pydantic-settings with .env support."""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_IGNORED_SENDERS = [
    "comments-noreply@docs.google.com",
    "calendar-server.bounces.google.com",
    "noreply@google.com",
    "drive-shares-noreply@google.com",
    "meet-recordings-noreply@google.com",
    "calendar-notification@google.com",
    "notifications-noreply@google.com",
]


class InboxTriageSettings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(
        env_prefix="INBOX_TRIAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # OAuth credentials
    credentials_path: Path = Path("credentials/client_secret.json")
    token_path: Path = Path("credentials/token.json")

    # Gmail API settings
    user_id: str = "me"
    label: str = "INBOX"
    page_size: int = 50
    num_retries: int = 0

    # Gmail request queue
    mail_min_interval_seconds: float = 0.5
    mail_max_retries: int = 3
    mail_base_delay_seconds: float = 1.0
    mail_max_delay_seconds: float = 60.0

    # OpenAI request queue
    classifier_min_interval_seconds: float = 0.2
    classifier_max_retries: int = 2
    classifier_base_delay_seconds: float = 0.5
    classifier_max_delay_seconds: float = 5.0

    # Upper bound on server-supplied Retry-After hints
    max_retry_after_seconds: float = 60.0

    # OpenAI
    openai_api_key: str | None = None
    openai_model: str = "gpt-3.5-turbo"

    # Pipeline
    batch_size: int = 30
    ignored_senders: list[str] = list(DEFAULT_IGNORED_SENDERS)

    # Logging
    log_level: str = "INFO"

    def ensure_directories(self) -> None:
        """Create the credentials directory if it doesn't exist."""
        self.credentials_path.parent.mkdir(parents=True, exist_ok=True)
        self.token_path.parent.mkdir(parents=True, exist_ok=True)
