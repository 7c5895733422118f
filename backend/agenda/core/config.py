# backend/agenda/core/config.py
import logging
import os
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import pytz


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs, and is
    not expected to be present in production environments.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"  # Goes up to backend/.env
    logger.debug("[CONFIG] Looking for .env at: %s (exists=%s)", env_path, env_path.exists())
    load_dotenv(env_path)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    environment: Literal["development", "test", "staging", "production"] = Field(
        default="development",
        alias="ENVIRONMENT",
        description="Deployment environment name",
    )
    is_testing: bool = False  # Set to True when running tests

    database_url: str = Field(
        default="sqlite:///./agenda.db",
        alias="DATABASE_URL",
        description="SQLAlchemy database URL",
    )
    database_echo: bool = Field(default=False, alias="DATABASE_ECHO")
    sqlite_busy_timeout_s: float = Field(
        default=15.0,
        gt=0,
        alias="SQLITE_BUSY_TIMEOUT_S",
        description="Seconds a SQLite connection waits for the database write lock",
    )

    # Calendar policy
    store_timezone: str = Field(
        default="America/Sao_Paulo",
        alias="STORE_TIMEZONE",
        description="Single timezone used to interpret store working hours",
    )
    slot_interval_minutes: int = Field(
        default=30,
        ge=5,
        le=240,
        alias="SLOT_INTERVAL_MINUTES",
        description="Step between candidate starts in the availability grid",
    )

    # Booking commit policy
    booking_commit_retries: int = Field(
        default=1,
        ge=0,
        le=3,
        alias="BOOKING_COMMIT_RETRIES",
        description="Fresh availability re-checks after a commit-time slot collision",
    )
    simple_booking_auto_confirm: bool = Field(
        default=True,
        alias="SIMPLE_BOOKING_AUTO_CONFIRM",
        description="First-party simple bookings start CONFIRMED instead of PENDING",
    )

    # Integration API
    default_api_rate_limit: int = Field(
        default=1000,
        ge=1,
        alias="DEFAULT_API_RATE_LIMIT",
        description="Requests per hour allowed for a key without its own limit",
    )
    api_usage_logging_enabled: bool = Field(default=True, alias="API_USAGE_LOGGING_ENABLED")

    # Observability
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    slow_operation_threshold_s: float = Field(default=1.0, alias="SLOW_OPERATION_THRESHOLD_S")

    cors_origins: list[str] = Field(default_factory=lambda: ["*"], alias="CORS_ORIGINS")

    @field_validator("store_timezone")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        try:
            pytz.timezone(value)
        except pytz.UnknownTimeZoneError as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        return value.strip().upper() or "INFO"

    def get_database_url(self) -> str:
        """Get the appropriate database URL based on context."""
        test_url = os.getenv("TEST_DATABASE_URL")
        if (self.is_testing or is_running_tests()) and test_url:
            return test_url
        return self.database_url


settings = Settings()
