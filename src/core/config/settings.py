# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Workshop scheduler settings loaded from the environment.

Two groups are read with their own prefixes: DATABASE_ for the store and
RECONCILIATION_ for the matching rules. Settings aggregates both and
get_settings() returns the process-wide instance.

Example:
    >>> from src.core.config.settings import get_settings
    >>> settings = get_settings()
    >>> print(settings.reconciliation.session_match_key)
    'date_start'
"""

from functools import lru_cache
from typing import Literal, Self

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DATABASE_PASSWORD = "workshop_password"


class DatabaseSettings(BaseSettings):
    """Database configuration for the scheduling store.

    The store holds enrollees, their assigned slots, calendar sessions
    and the session/enrollee link table.

    Attributes:
        user: PostgreSQL username.
        password: PostgreSQL password.
        host: Database host address.
        port: Database port number.
        database: Database name.
        url_override: Full connection URL; takes precedence over components.
        pool_size: Connection pool size.
        max_overflow: Maximum overflow connections.
        statement_timeout: Seconds a single store call may take.
    """

    model_config = SettingsConfigDict(
        env_prefix="DATABASE_",
        extra="ignore",
        populate_by_name=True,
    )

    user: str = "workshop"
    password: SecretStr = SecretStr(DEFAULT_DATABASE_PASSWORD)
    host: str = "localhost"
    port: int = 5432
    database: str = "workshop"
    url_override: str | None = Field(
        default=None,
        validation_alias="DATABASE_URL",
    )
    pool_size: int = 5
    max_overflow: int = 10
    statement_timeout: float = 10.0

    @property
    def url(self) -> str:
        """Build the async database URL from components."""
        if self.url_override:
            return self.url_override
        pwd = self.password.get_secret_value()
        return f"postgresql+asyncpg://{self.user}:{pwd}@{self.host}:{self.port}/{self.database}"

    @property
    def is_sqlite(self) -> bool:
        """Check whether the configured URL points at SQLite."""
        return self.url.startswith("sqlite")


class ReconciliationSettings(BaseSettings):
    """Enrollment/session reconciliation configuration.

    Attributes:
        session_match_key: Tuple used to find-or-create a session for a slot.
            ``date_start`` matches on (date, start_time); ``full`` matches on
            (date, start_time, end_time, kind).
        default_session_kind: Kind given to derived sessions when the
            enrollee declares no preference.
    """

    model_config = SettingsConfigDict(
        env_prefix="RECONCILIATION_",
        extra="ignore",
    )

    session_match_key: Literal["date_start", "full"] = "date_start"
    default_session_kind: Literal["mesa", "torno", "workshop", "privada"] = "mesa"


class Settings(BaseSettings):
    """Main application settings.

    Use get_settings() to obtain a cached singleton instance.

    Attributes:
        environment: Current environment (development, staging, production).
        debug: Enable debug mode.
        log_level: Logging level.
        database: Database settings.
        reconciliation: Reconciliation engine settings.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # Environment
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "DEBUG"

    # Groups
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    reconciliation: ReconciliationSettings = Field(default_factory=ReconciliationSettings)

    @model_validator(mode="after")
    def validate_production_settings(self) -> Self:
        """Validate that production settings are properly configured.

        Raises:
            ValueError: If running in production with insecure defaults.
        """
        if self.environment == "production" and not self.database.url_override:
            if self.database.password.get_secret_value() == DEFAULT_DATABASE_PASSWORD:
                raise ValueError(
                    "Database password must be changed from default in production. "
                    "Set DATABASE_PASSWORD environment variable."
                )
        return self

    @property
    def is_development(self) -> bool:
        """Whether running in development."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Whether running in production."""
        return self.environment == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide Settings, reading the environment once."""
    return Settings()


def clear_settings_cache() -> None:
    """Forget the cached Settings so the next call re-reads the environment."""
    get_settings.cache_clear()
