"""Scheduling configuration loaded from environment variables."""

from pydantic import Field
from pydantic_settings import BaseSettings


class SchedulingConfig(BaseSettings):
    """Scheduling configuration loaded from environment variables.

    Settings are loaded from environment variables with sensible defaults.
    For local development, create a .env file in the project root.
    """

    # Resilient operations
    retry_max_attempts: int = Field(
        default=5,
        ge=1,
        description="Total attempts for a rate-limited store operation",
    )
    retry_initial_delay_ms: int = Field(
        default=1000,
        ge=0,
        description="Backoff before the second attempt; doubles every attempt",
    )

    # Recurrence expansion
    recurrence_max_instances: int = Field(
        default=100,
        ge=1,
        description="Hard cap on instances generated for one recurring schedule",
    )
    recurrence_horizon_days: int = Field(
        default=365,
        ge=1,
        description="End bound used when a recurring pattern has no endDate",
    )
    timezone: str = Field(
        default="Asia/Bangkok",
        description="Local timezone for weekday/time-of-day of recurring schedules",
    )

    # Collections
    schedules_collection: str = Field(default="schedules")
    permissions_collection: str = Field(default="schedule_permissions")
    users_collection: str = Field(default="users")
    classes_collection: str = Field(default="classes")

    # Google Calendar mirror
    google_calendar_id: str = Field(
        default="",
        description="Calendar that created schedules are mirrored into",
    )
    google_client_email: str = Field(
        default="",
        description="Service account email for the calendar mirror",
    )
    google_private_key: str = Field(
        default="",
        description="Service account private key (PEM, \\n escaped allowed)",
    )

    # Logging
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format (for production)",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    model_config = {
        "env_prefix": "SCHEDULING_",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def calendar_mirror_enabled(self) -> bool:
        return bool(
            self.google_calendar_id
            and self.google_client_email
            and self.google_private_key
        )


# Singleton pattern
_config: SchedulingConfig | None = None


def get_config() -> SchedulingConfig:
    """Get the scheduling configuration singleton.

    Returns:
        SchedulingConfig: Scheduling configuration instance
    """
    global _config
    if _config is None:
        _config = SchedulingConfig()
    return _config


def reset_config() -> None:
    """Drop the cached configuration so the next get_config() re-reads the env."""
    global _config
    _config = None
