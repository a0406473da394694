"""Configuration management for PublishDB.

This module provides centralized configuration using Pydantic Settings,
loaded from environment variables and an optional ``.env`` file.

Environment Profiles:
    - DEVELOPMENT: Verbose logging, SQL echo off, safe defaults
    - PRODUCTION: Structured logs, tracing enabled, conservative pool
    - TESTING: In-memory database, minimal logging, fast execution

Example:
    >>> from publishdb.config import settings, Environment
    >>> print(settings.database_url)
    sqlite:////.../data/publishdb.db
    >>> if settings.is_production:
    ...     print("Running in production mode")
"""

from enum import StrEnum
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ContentStatus(StrEnum):
    """Lifecycle status of a content item."""

    ACTIVE = "active"
    DRAFT = "draft"
    ARCHIVED = "archived"


class EntityKind(StrEnum):
    """Entity types known to the content model."""

    ACCOUNT = "Account"
    PROFILE = "Profile"
    CONTENT = "Content"
    TAG = "Tag"
    CONTENT_TAG = "ContentTag"


class Environment(StrEnum):
    """Runtime environment with specific behavior profiles.

    Attributes:
        DEVELOPMENT: Verbose logging, safe defaults
        PRODUCTION: Structured logs, tracing enabled
        TESTING: In-memory database, minimal logging
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
        data_dir: Base directory for the database file and logs
        database_path: Path to SQLite database file
        database_url: Full SQLAlchemy URL; overrides database_path when set
        pool_size: Connections kept open by the pool (non-SQLite engines)
        pool_timeout: Seconds to wait for a pooled connection
        echo_sql: Log every SQL statement emitted by the engine
        default_page_size: Page size used when a caller does not pass one
        restrict_account_delete: Reject account deletion while profile/content exist
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
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
        Path("publishdb.db"),  # Will be updated to data_dir/publishdb.db by validator
        description="Path to SQLite database file (defaults to data_dir/publishdb.db)",
    )
    database_url: Optional[str] = Field(
        default=None,
        description="SQLAlchemy URL (e.g. postgresql+psycopg://...); overrides database_path",
    )
    pool_size: int = Field(
        5,
        ge=1,
        le=50,
        description="Number of pooled connections for server databases",
    )
    pool_timeout: float = Field(
        30.0,
        gt=0,
        description="Seconds to wait for a connection from the pool",
    )
    echo_sql: bool = Field(
        default=False,
        description="Echo SQL statements through the engine logger",
    )

    # Behaviour
    default_page_size: int = Field(
        10,
        ge=1,
        le=100,
        description="Page size for content listings when none is supplied",
    )
    restrict_account_delete: bool = Field(
        default=False,
        description="Refuse to delete an account that still owns a profile or content",
    )

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

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        """Upper-case and check the log level name."""
        level = v.upper()
        if level not in {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @model_validator(mode="after")
    def set_database_path_default(self) -> "Settings":
        """Set database_path to data_dir/publishdb.db if not explicitly provided."""
        if self.database_path == Path("publishdb.db"):
            self.database_path = self.data_dir / "publishdb.db"
        return self

    @model_validator(mode="after")
    def apply_environment_profile(self) -> "Settings":
        """Apply environment-specific defaults.

        Profiles:
            - PRODUCTION: INFO logging (unless stricter), JSON logs, tracing enabled
            - DEVELOPMENT: DEBUG logging, human-readable logs, tracing disabled
            - TESTING: In-memory database, ERROR logging, no file logging, no tracing
            - STAGING: Production-like with INFO logging
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
            self.database_url = None
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
    def resolved_database_url(self) -> str:
        """Get SQLAlchemy database URL."""
        if self.database_url:
            return self.database_url
        if str(self.database_path) == ":memory:":
            return "sqlite://"
        return f"sqlite:///{self.database_path}"

    @property
    def log_file(self) -> Path:
        """Get log file path inside the data directory."""
        return self.data_dir / "publishdb.log"

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


def get_settings() -> Settings:
    """Get a freshly loaded settings instance.

    Returns:
        Configured Settings instance
    """
    return Settings()


# Global settings instance
settings = get_settings()
