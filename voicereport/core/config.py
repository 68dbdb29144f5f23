"""
Application configuration via pydantic-settings.

Loads values from .env file with sensible defaults for local development.
Use ``get_settings()`` to obtain the cached singleton instance.
"""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """voicereport settings loaded from environment / .env file.

    All settings can be overridden via environment variables or a `.env` file.
    Field names map directly to env var names (case-insensitive).

    Attributes:
        credential_url_template: Host template for the report service; the
            shared secret is substituted for ``{secret}``.
        transcription_url: Speech-to-text endpoint (OpenAI-compatible).
        submission_encoding: How ``/process`` fields are sent ("json" or "query").
        database_url: Async SQLAlchemy connection string for SQLite.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Silently ignore unrecognized env vars
    )

    # --- Credential bootstrap ---
    # The shared secret doubles as the tunnel subdomain of the report service
    credential_url_template: str = "https://{secret}.ngrok-free.app"
    tunnel_bypass_header: str = "ngrok-skip-browser-warning"

    # --- Speech-to-text ---
    transcription_url: str = "https://api.groq.com/openai/v1/audio/transcriptions"
    transcription_model: str = "whisper-large-v3-turbo"
    transcription_timeout: float = 120.0

    # --- Report submission ---
    submission_encoding: Literal["json", "query"] = "json"
    http_timeout: float = 30.0

    # --- Audio capture ---
    sample_rate: int = 16000  # Microphone capture rate (Hz)
    channels: int = 1

    # --- Storage ---
    database_url: str = "sqlite+aiosqlite:///data/voicereport.db"
    chat_history_key: str = "chat_history"
    chat_retention_days: int = 7

    # --- Application ---
    notice_seconds: float = 5.0  # How long transient messages stay visible
    log_level: str = "INFO"  # Python logging level


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings singleton.

    Uses ``functools.lru_cache`` so the .env file is read only once.
    Subsequent calls return the same ``Settings`` instance.

    Returns:
        Settings: The application-wide configuration object.
    """
    return Settings()
