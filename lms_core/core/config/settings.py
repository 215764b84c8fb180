# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Application configuration settings using Pydantic Settings.

Settings are loaded from environment variables (and an optional .env
file) with sensible defaults. The Settings class aggregates all
subsettings; a cached singleton is provided via get_settings().

Example:
    >>> from lms_core.core.config.settings import get_settings
    >>> settings = get_settings()
    >>> settings.audit.retention_days
    365
"""

from functools import lru_cache
from typing import Literal, Self

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DB_PASSWORD = "lms_password"


class DatabaseSettings(BaseSettings):
    """Database configuration.

    All tenants share one database; tenant isolation is a filter on
    every query, not a separate connection.

    Attributes:
        user: PostgreSQL username.
        password: PostgreSQL password.
        host: Database host address.
        port: Database port number.
        database: Database name.
        url_override: Full async URL, takes precedence over the components.
        pool_size: Connection pool size.
        max_overflow: Maximum overflow connections.
        echo: Echo SQL statements.
    """

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        extra="ignore",
        populate_by_name=True,
    )

    user: str = "lms"
    password: SecretStr = SecretStr(DEFAULT_DB_PASSWORD)
    host: str = "localhost"
    port: int = 5432
    database: str = "lms"
    url_override: str | None = Field(default=None, validation_alias="DATABASE_URL")
    pool_size: int = 10
    max_overflow: int = 20
    echo: bool = False

    @property
    def url(self) -> str:
        """Build the async database URL from components."""
        if self.url_override:
            return self.url_override
        pwd = self.password.get_secret_value()
        return f"postgresql+asyncpg://{self.user}:{pwd}@{self.host}:{self.port}/{self.database}"

    @property
    def sync_url(self) -> str:
        """Build the sync database URL for migrations."""
        if self.url_override:
            return self.url_override.replace("+asyncpg", "").replace("+aiosqlite", "")
        pwd = self.password.get_secret_value()
        return f"postgresql://{self.user}:{pwd}@{self.host}:{self.port}/{self.database}"

    @property
    def is_sqlite(self) -> bool:
        """Whether the configured URL targets SQLite."""
        return self.url.startswith("sqlite")


class AuditSettings(BaseSettings):
    """Activity log configuration.

    Attributes:
        retention_days: Age after which activity log entries are purged.
        default_page_size: Page size for log listings.
        max_page_size: Upper bound accepted for log listings.
        entity_history_limit: Entries returned for one entity's history.
        stats_window_days: Default trailing window for statistics.
        max_stats_window_days: Largest trailing window accepted for statistics.
    """

    model_config = SettingsConfigDict(
        env_prefix="AUDIT_",
        extra="ignore",
    )

    retention_days: int = Field(default=365, ge=1)
    default_page_size: int = Field(default=50, ge=1)
    max_page_size: int = Field(default=200, ge=1)
    entity_history_limit: int = Field(default=100, ge=1)
    stats_window_days: int = Field(default=30, ge=1)
    max_stats_window_days: int = Field(default=3650, ge=1)


class GradingSettings(BaseSettings):
    """Exam grading configuration.

    Attributes:
        default_passing_grade: Grade assigned to a pass when none is given.
        min_passing_grade: Lowest grade a passed exam may carry.
        max_passing_grade: Highest grade a passed exam may carry.
        failing_grade: Grade assigned to every failed exam.
        scale_min: Default lower bound of a tenant grade scale.
        scale_max: Default upper bound of a tenant grade scale.
    """

    model_config = SettingsConfigDict(
        env_prefix="GRADING_",
        extra="ignore",
    )

    default_passing_grade: int = 6
    min_passing_grade: int = 6
    max_passing_grade: int = 10
    failing_grade: int = 5
    scale_min: int = 5
    scale_max: int = 10

    @model_validator(mode="after")
    def validate_bounds(self) -> Self:
        """Validate that the grade bounds are consistent.

        Raises:
            ValueError: If the passing range or the scale is inverted.
        """
        if self.min_passing_grade > self.max_passing_grade:
            raise ValueError("min_passing_grade cannot exceed max_passing_grade")
        if not self.min_passing_grade <= self.default_passing_grade <= self.max_passing_grade:
            raise ValueError("default_passing_grade must lie within the passing range")
        if self.scale_min > self.scale_max:
            raise ValueError("scale_min cannot exceed scale_max")
        return self


class Settings(BaseSettings):
    """Main application settings aggregating all subsettings.

    Use get_settings() to obtain a cached singleton instance.

    Attributes:
        environment: Current environment (development, staging, production).
        debug: Enable debug mode.
        log_level: Logging level.
        db: Database settings.
        audit: Activity log settings.
        grading: Exam grading settings.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    environment: Literal["development", "staging", "production", "test"] = "development"
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "DEBUG"

    db: DatabaseSettings = Field(default_factory=DatabaseSettings)
    audit: AuditSettings = Field(default_factory=AuditSettings)
    grading: GradingSettings = Field(default_factory=GradingSettings)

    @model_validator(mode="after")
    def validate_production_settings(self) -> Self:
        """Validate that production settings are properly configured.

        Raises:
            ValueError: If running in production with insecure defaults.
        """
        if self.environment == "production":
            if (
                self.db.url_override is None
                and self.db.password.get_secret_value() == DEFAULT_DB_PASSWORD
            ):
                raise ValueError(
                    "Database password must be changed from default in production. "
                    "Set DB_PASSWORD or DATABASE_URL environment variable."
                )
        return self

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Cached Settings instance.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Call this if you need to reload settings from environment.
    """
    get_settings.cache_clear()
