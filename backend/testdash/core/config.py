"""
Core configuration settings
"""
from pydantic import ValidationError as PydanticValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from apscheduler.triggers.cron import CronTrigger
from typing import Optional

from testdash.core.exceptions import ValidationError

# SQLite refuses statements with more than 999 bound parameters on older builds
SQLITE_MAX_PARAMS = 999


class Settings(BaseSettings):
    """Application settings"""

    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=".env",
        extra="ignore",
        frozen=True,
    )

    # App
    APP_NAME: str = "Test Dashboard"
    APP_VERSION: str = "1.0.0"

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./test-results/test-results.db"
    SQL_ECHO: bool = False

    # File Storage
    OUTPUT_DIR: str = "./test-results"
    ATTACHMENTS_DIR: str = "./test-results/attachments"
    ATTACHMENTS_URL_PREFIX: str = "/attachments"

    # Query defaults
    DEFAULT_TESTS_LIMIT: int = 100
    DEFAULT_HISTORY_LIMIT: int = 10
    DEFAULT_RUNS_LIMIT: int = 50

    # Analytics
    FLAKY_DEFAULT_DAYS: int = 30
    FLAKY_DEFAULT_THRESHOLD: int = 10
    FLAKY_MAX_RESULTS: int = 50
    TIMELINE_DEFAULT_DAYS: int = 30

    # Notes
    NOTE_MAX_LENGTH: int = 1000

    # Retention
    DELETE_BATCH_SIZE: int = 900
    RETENTION_ENABLED: bool = False
    RETENTION_DAYS: Optional[int] = None
    RETENTION_MAX_PER_TEST: Optional[int] = None
    RETENTION_CRON: str = "0 3 * * *"

    # Logging
    LOG_LEVEL: str = "INFO"

    @field_validator(
        "DEFAULT_TESTS_LIMIT",
        "DEFAULT_HISTORY_LIMIT",
        "DEFAULT_RUNS_LIMIT",
        "FLAKY_DEFAULT_DAYS",
        "FLAKY_MAX_RESULTS",
        "TIMELINE_DEFAULT_DAYS",
        "NOTE_MAX_LENGTH",
        "DELETE_BATCH_SIZE",
    )
    @classmethod
    def _positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be a positive integer")
        return value

    @field_validator("RETENTION_DAYS", "RETENTION_MAX_PER_TEST")
    @classmethod
    def _positive_or_unset(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and value < 1:
            raise ValueError("must be a positive integer when set")
        return value

    @field_validator("FLAKY_DEFAULT_THRESHOLD")
    @classmethod
    def _percentage(cls, value: int) -> int:
        if not 0 <= value <= 100:
            raise ValueError("must be between 0 and 100")
        return value

    @field_validator("DELETE_BATCH_SIZE")
    @classmethod
    def _within_param_ceiling(cls, value: int) -> int:
        if value > SQLITE_MAX_PARAMS:
            raise ValueError(f"must not exceed {SQLITE_MAX_PARAMS} (SQLite parameter limit)")
        return value

    @field_validator("RETENTION_CRON")
    @classmethod
    def _valid_cron(cls, value: str) -> str:
        CronTrigger.from_crontab(value)
        return value

    @field_validator("LOG_LEVEL")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level '{value}'")
        return level

    @model_validator(mode="after")
    def _retention_policy(self) -> "Settings":
        if self.RETENTION_ENABLED and self.RETENTION_DAYS is None and self.RETENTION_MAX_PER_TEST is None:
            raise ValueError("RETENTION_ENABLED requires RETENTION_DAYS or RETENTION_MAX_PER_TEST")
        return self


def load_settings(**overrides) -> Settings:
    """
    Build and validate the settings once at startup.

    Keyword overrides take precedence over environment variables and ``.env``.

    Raises:
        ValidationError: if any value is invalid
    """
    try:
        return Settings(**overrides)
    except PydanticValidationError as e:
        raise ValidationError(
            f"Invalid configuration: {e.error_count()} error(s)",
            details={"errors": e.errors(include_url=False)},
        ) from e
