"""Application configuration."""
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings.

    Environment variables take precedence over .env file.
    This makes it compatible with Docker (uses env vars) and
    local development (uses .env file).
    """

    APP_NAME: str = "Retail Admin"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False

    # Database
    DATABASE_URL: str = "sqlite:///./retail_admin.db"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    # Well-known rows
    MAIN_RECORD_ID: str = "89d38477-6a3a-4c02-95f2-ddafa5880706"
    DEFAULT_CUSTOMER_ID: str = "00000000-0000-0000-0000-000000000001"
    TRANSFER_RECORD_NAME: str = "سجل النقل"

    # Order auto-transition rules
    CANCELLED_ORDER_TTL_HOURS: int = 24
    SHIPPED_AUTO_DELIVER_DAYS: int = 6
    ORDER_SWEEP_INTERVAL_SECONDS: int = 3600
    ORDER_SWEEP_ENABLED: bool = True

    # Receipt header
    COMPANY_NAME: Optional[str] = None
    COMPANY_LOGO_URL: Optional[str] = None

    model_config = SettingsConfigDict(
        # Only load .env file if it exists (for local dev)
        # Docker will use environment variables directly
        env_file=".env" if Path(".env").exists() else None,
        env_file_encoding="utf-8",
        # Environment variables take precedence over .env file
        extra="ignore",
    )


settings = Settings()
