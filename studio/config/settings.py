import os
from pathlib import Path

from loguru import logger
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def get_database_url() -> str:
    """Get database URL, using absolute path for SQLite to avoid path resolution issues.

    ⚠️ SQLite is fine for a single studio workstation but should be replaced
    with PostgreSQL when the dashboard is deployed.
    """
    db_url = os.getenv("DATABASE_URL", "")
    if db_url:
        logger.info(f"Using DATABASE_URL from environment: {db_url}")
        return db_url

    db_path = Path(__file__).parent.parent.parent / "studio.db"
    abs_path = db_path.resolve()
    db_url = f"sqlite:///{abs_path}"
    logger.warning(f"Using SQLite database (LOCAL DEV ONLY): {db_url}")
    return db_url


LOCALTIME_PATH = Path("/etc/localtime")
TIMEZONE_FILE_PATH = Path("/etc/timezone")


def get_system_timezone() -> str:
    """Return the host timezone name.

    Resolution order: the TZ environment variable, the zoneinfo file that
    /etc/localtime links to, the name in /etc/timezone, then UTC.
    """
    tz_env = os.getenv("TZ", "").lstrip(":")
    if tz_env:
        return tz_env

    if LOCALTIME_PATH.is_symlink():
        target = LOCALTIME_PATH.resolve().as_posix()
        if "/zoneinfo/" in target:
            return target.split("/zoneinfo/", 1)[1]

    if TIMEZONE_FILE_PATH.is_file():
        name = TIMEZONE_FILE_PATH.read_text().strip()
        if name:
            return name

    logger.warning("Could not determine host timezone, using UTC")
    return "UTC"


class Settings(BaseSettings):
    database_url: str = Field(
        default_factory=get_database_url,
        validation_alias="DATABASE_URL",
    )
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_file: str | None = Field(default=None, validation_alias="LOG_FILE")

    studio_timezone: str = Field(
        default_factory=get_system_timezone,
        validation_alias="STUDIO_TIMEZONE",
        description="IANA zone used for recurring class wall-clock times",
    )
    class_capacity: int = Field(
        default=10,
        validation_alias="CLASS_CAPACITY",
        description="Denominator shown next to attendee counts (e.g. 3/10)",
    )
    display_start_hour: int = Field(default=7, validation_alias="DISPLAY_START_HOUR")
    display_end_hour: int = Field(default=20, validation_alias="DISPLAY_END_HOUR")

    generation_horizon_days: int = Field(
        default=28,
        validation_alias="GENERATION_HORIZON_DAYS",
        description="Days materialized when a recurring pattern is created",
    )
    regeneration_horizon_days: int = Field(
        default=60,
        validation_alias="REGENERATION_HORIZON_DAYS",
        description="Days materialized by the periodic regeneration job",
    )
    regeneration_interval_hours: int = Field(
        default=24,
        validation_alias="REGENERATION_INTERVAL_HOURS",
    )
    regeneration_enabled: bool = Field(default=True, validation_alias="REGENERATION_ENABLED")

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Validate that log level is one of the standard logging levels."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_value = value.upper()
        if upper_value not in valid_levels:
            logger.warning(f"Invalid LOG_LEVEL '{value}'. Valid levels are: {', '.join(valid_levels)}. Defaulting to INFO.")
            return "INFO"
        return upper_value

    @field_validator("class_capacity")
    @classmethod
    def validate_class_capacity(cls, value: int) -> int:
        if value <= 0:
            logger.warning(f"CLASS_CAPACITY must be positive, got {value}. Defaulting to 10.")
            return 10
        return value

    @field_validator("generation_horizon_days", "regeneration_horizon_days", "regeneration_interval_hours")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError(f"must be positive, got {value}")
        return value

    @model_validator(mode="after")
    def validate_display_hours(self) -> "Settings":
        """Fall back to the 07:00-20:00 grid when the configured hour range is unusable."""
        start, end = self.display_start_hour, self.display_end_hour
        if not (0 <= start <= 23 and 0 <= end <= 23 and start <= end):
            logger.warning(f"Invalid display hour range {start}-{end}. Defaulting to 7-20.")
            self.display_start_hour = 7
            self.display_end_hour = 20
        return self


settings = Settings()
