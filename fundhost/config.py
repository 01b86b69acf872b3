"""Application configuration from environment variables."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from FUNDHOST_* environment variables (and .env)."""

    model_config = SettingsConfigDict(
        env_prefix="FUNDHOST_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    database_url: str = Field(
        default="sqlite:///./fundhost.db",
        description="SQLAlchemy connection string",
    )
    database_echo: bool = Field(default=False, description="Log SQL queries")

    # Secrets
    encryption_key: str | None = Field(
        default=None,
        description="Fernet key used to encrypt secrets at rest (urlsafe base64, 32 bytes)",
    )

    # Links
    website_url: str = Field(
        default="http://localhost:3000", description="Public website used in invite links"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: str | None = Field(default=None, description="Optional log file path")

    # Error reporting
    sentry_dsn: str | None = Field(default=None, description="Sentry DSN (optional)")

    # Platform
    platform_collective_id: int = Field(
        default=8686, description="Collective receiving platform tips"
    )
    max_core_contributors_per_account: int = Field(
        default=30, description="Max admins + members + accountants (incl. invitations)"
    )

    # Tax forms
    tax_form_threshold_amount: int = Field(
        default=60000, description="Yearly expense total (cents) above which a tax form is required"
    )
    tax_form_reminder_min_age_hours: int = Field(
        default=48, description="Minimum age of a request before reminding"
    )
    tax_form_reminder_max_age_days: int = Field(
        default=7, description="Requests older than this are not reminded anymore"
    )

    # Recurring expenses
    deterministic_draft_keys: bool = Field(
        default=False, description="Use the literal 'draft-key' for drafts (e2e/ci)"
    )


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Return the current settings instance."""
    return settings


__all__ = ["Settings", "settings", "get_settings"]
