"""Configuration management for LaunchHub.

This module provides centralized configuration using Pydantic Settings,
read from environment variables and an optional ``.env`` file.

Environment Profiles:
    - DEVELOPMENT: Verbose logging, human-readable output
    - PRODUCTION: JSON logs, tracing enabled, cron endpoint always gated
    - TESTING: In-memory database, minimal logging, fast execution

Example:
    >>> from launchhub.config import settings, Environment
    >>> print(settings.database_url)
    sqlite:///data/launchhub.db
    >>> if settings.is_production:
    ...     print("Running in production mode")
"""

from enum import StrEnum
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(StrEnum):
    """Runtime environment with specific behavior profiles.

    Attributes:
        DEVELOPMENT: Verbose logging, safe defaults
        PRODUCTION: Structured logs, tracing enabled
        TESTING: In-memory database, minimal logging, fast execution
        STAGING: Pre-production validation environment
    """

    DEVELOPMENT = "development"
    PRODUCTION = "production"
    TESTING = "testing"
    STAGING = "staging"


class Settings(BaseSettings):
    """Application settings with environment variable support.

    Attributes:
        environment: Runtime profile
        data_dir: Base directory for the SQLite database and log files
        database_path: Path to SQLite database file
        database_override: Full SQLAlchemy URL, wins over database_path
        cron_secret: Bearer token required by the cron endpoint
        launch_timezone: IANA zone used to compute calendar-day launch windows
        leaderboard_size: Number of winners returned per day
        default_page_size: Default page size for paginated procedures
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Environment Configuration
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Runtime environment (development, production, testing, staging)",
    )

    # Data Directory Configuration
    data_dir: Path = Field(
        Path("./data"),
        description="Base directory for all data files (database, logs)",
    )

    # Database Configuration
    database_path: Path = Field(
        Path("launchhub.db"),  # Will be updated to data_dir/launchhub.db by validator
        description="Path to SQLite database file (defaults to data_dir/launchhub.db)",
    )
    database_override: Optional[str] = Field(
        None,
        alias="DATABASE_URL",
        description="SQLAlchemy database URL (e.g. postgresql://...), overrides database_path",
    )

    # Cron Configuration
    cron_secret: Optional[str] = Field(
        None,
        alias="CRON_SECRET",
        description="Bearer token expected by the /api/cron endpoint",
    )

    # Launch / Leaderboard Parameters
    launch_timezone: str = Field(
        "UTC",
        description="Timezone used to bucket launches into calendar days",
    )
    leaderboard_size: int = Field(
        3,
        ge=1,
        le=50,
        description="Number of winners shown per launch day",
    )
    default_page_size: int = Field(
        12,
        ge=1,
        le=50,
        description="Default number of items per page",
    )

    # Server Configuration
    host: str = Field("127.0.0.1", description="Bind address for `launchhub serve`")
    port: int = Field(3000, ge=1, le=65535, description="Bind port for `launchhub serve`")

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    log_to_file: bool = Field(
        default=False,
        description="Enable file logging in addition to console",
    )
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format (recommended for production)",
    )

    # Observability (OpenTelemetry)
    enable_tracing: bool = Field(
        default=False,
        description="Enable OpenTelemetry distributed tracing",
    )
    otlp_endpoint: Optional[str] = Field(
        default=None,
        description="OpenTelemetry OTLP endpoint for traces (e.g., http://localhost:4317)",
    )

    @field_validator("data_dir", mode="before")
    @classmethod
    def expand_data_dir(cls, v: str | Path) -> Path:
        """Expand and resolve data directory path."""
        return Path(v).expanduser().resolve()

    @field_validator("launch_timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Reject zone names unknown to the tz database."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {v}") from e
        return v

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.upper()

    @model_validator(mode="after")
    def set_database_path_default(self) -> "Settings":
        """Set database_path to data_dir/launchhub.db if not explicitly provided."""
        if self.database_path == Path("launchhub.db"):
            self.database_path = self.data_dir / "launchhub.db"
        return self

    @model_validator(mode="after")
    def apply_environment_profile(self) -> "Settings":
        """Apply environment-specific defaults.

        Profiles:
            - PRODUCTION: INFO logging unless stricter, JSON logs, tracing enabled
            - DEVELOPMENT: DEBUG logging, human-readable logs, tracing disabled
            - TESTING: In-memory database, ERROR logging, no file logging, no tracing
            - STAGING: Production-like with INFO logging

        Returns:
            Modified settings instance with environment-specific adjustments
        """
        if self.environment == Environment.PRODUCTION:
            if self.log_level == "DEBUG":
                self.log_level = "INFO"
            self.log_json = True
            self.enable_tracing = True

        elif self.environment == Environment.DEVELOPMENT:
            self.log_level = "DEBUG"
            self.log_json = False
            self.enable_tracing = False

        elif self.environment == Environment.TESTING:
            self.database_path = Path(":memory:")
            self.database_override = None
            self.log_level = "ERROR"
            self.log_to_file = False
            self.log_json = False
            self.enable_tracing = False

        elif self.environment == Environment.STAGING:
            self.log_level = "INFO"
            self.log_json = True
            self.enable_tracing = True

        return self

    @property
    def database_url(self) -> str:
        """Get SQLAlchemy database URL."""
        if self.database_override:
            return self.database_override
        if str(self.database_path) == ":memory:":
            return "sqlite://"
        return f"sqlite:///{self.database_path}"

    @property
    def tz(self) -> ZoneInfo:
        """Timezone object for launch-day bucketing."""
        return ZoneInfo(self.launch_timezone)

    @property
    def log_file(self) -> Path | None:
        """Log file location, or None when file logging is off."""
        return self.data_dir / "launchhub.log" if self.log_to_file else None

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == Environment.PRODUCTION

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == Environment.DEVELOPMENT

    @property
    def is_testing(self) -> bool:
        """Check if running in testing environment."""
        return self.environment == Environment.TESTING

    @property
    def is_staging(self) -> bool:
        """Check if running in staging environment."""
        return self.environment == Environment.STAGING

    @property
    def cron_requires_auth(self) -> bool:
        """Whether /api/cron must check the bearer token."""
        return self.cron_secret is not None or self.is_production


def get_settings() -> Settings:
    """Get a fresh settings instance from the current environment.

    Returns:
        Configured Settings instance
    """
    return Settings()


# Global settings instance
settings = get_settings()
