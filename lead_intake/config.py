"""
Centralized configuration using Pydantic Settings.

All environment variables are loaded and validated here.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # IMAP mailbox (lead intake lane)
    imap_host: str = ""
    imap_port: int = 993
    imap_user: str = ""
    imap_password: str = ""
    imap_tls: bool = True
    imap_folder: str = "INBOX"
    imap_connect_timeout_seconds: float = 10.0

    # Watch mode: IDLE push plus a fallback poll
    imap_poll_interval_ms: int = 60000
    imap_idle_enabled: bool = True
    imap_idle_timeout_seconds: int = 30

    # Messages above this size are never fetched
    imap_max_msg_size_bytes: int = 5_000_000

    # Optional folders to move finished messages into
    imap_move_processed: str | None = None
    imap_move_failed: str | None = None

    # Lane separation: recipients matching these belong to the webhook lane
    lane_reserved_patterns: list[str] = ["reply@", "noreply@", "no-reply@"]
    campaign_sending_domains: list[str] = []

    # Sender domain allow-list ("*" or empty means any sender)
    lead_ingest_allowed_senders: list[str] = []

    # Parser limits
    lead_parse_max_content: int = 200_000
    lead_parse_max_field: int = 200

    # CSV upload limits
    csv_max_file_size: int = 10 * 1024 * 1024
    csv_max_rows: int = 10_000

    # Lead store (in-memory when unset)
    database_url: str | None = None

    # Memory service (disabled when unset)
    memory_sink_url: str | None = None

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    @property
    def imap_poll_interval_seconds(self) -> float:
        """Fallback poll interval in seconds."""
        return self.imap_poll_interval_ms / 1000

    @property
    def reserved_recipient_patterns(self) -> list[str]:
        """Lane patterns including the campaign sending domains."""
        patterns = [p.lower() for p in self.lane_reserved_patterns]
        patterns.extend(f"@{domain.lower().lstrip('@')}" for domain in self.campaign_sending_domains)
        return patterns


# Global settings instance
settings = Settings()
