# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Application configuration settings using Pydantic Settings.

This module provides centralized configuration management for the roster
engine. Settings are loaded from environment variables with sensible
defaults.

The Settings class is the main entry point and aggregates all subsettings.
A singleton instance is provided via get_settings() for dependency injection.

Example:
    >>> from src.core.config.settings import get_settings
    >>> settings = get_settings()
    >>> print(settings.environment)
    'development'
"""

from functools import lru_cache
from typing import Literal, Self

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Relational store configuration.

    The store holds the allow-list, profiles, draft records, enrollments
    and institution grants.

    Attributes:
        user: PostgreSQL username.
        password: PostgreSQL password.
        host: Database host address.
        port: Database port number.
        database: Database name.
        url_override: Full async URL; wins over the components when set
            (e.g. ``sqlite+aiosqlite:///roster.db`` for local runs).
        pool_size: Connection pool size.
        max_overflow: Maximum overflow connections.
    """

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        extra="ignore",
        populate_by_name=True,
    )

    user: str = "roster"
    password: SecretStr = SecretStr("roster_password")
    host: str = "localhost"
    port: int = 5432
    database: str = "roster"
    url_override: str | None = Field(default=None, validation_alias="DATABASE_URL")
    pool_size: int = 10
    max_overflow: int = 20

    @property
    def url(self) -> str:
        """Build the async database URL from components."""
        if self.url_override:
            return self.url_override
        pwd = self.password.get_secret_value()
        return f"postgresql+asyncpg://{self.user}:{pwd}@{self.host}:{self.port}/{self.database}"

    @property
    def is_sqlite(self) -> bool:
        """Whether the configured URL points at SQLite."""
        return self.url.startswith("sqlite")


class IdentityProviderSettings(BaseSettings):
    """Identity provider (hosted auth admin API) configuration.

    Attributes:
        base_url: Base URL of the auth service.
        service_role_key: Privileged key for the admin endpoints.
        timeout: Request timeout in seconds.
        page_size: Page size used when listing accounts.
    """

    model_config = SettingsConfigDict(
        env_prefix="IDP_",
        extra="ignore",
    )

    base_url: str = "http://localhost:54321/auth/v1"
    service_role_key: SecretStr = SecretStr("")
    timeout: float = 10.0
    page_size: int = 1000


class ExtractionSettings(BaseSettings):
    """Text extraction (LLM) configuration using LiteLLM.

    Attributes:
        model: LiteLLM model identifier.
        api_key: Provider API key.
        api_base: Optional provider base URL.
        timeout: Request timeout in seconds.
        chunk_lines: Lines of pasted text sent per extraction call.
    """

    model_config = SettingsConfigDict(
        env_prefix="EXTRACTION_",
        extra="ignore",
    )

    model: str = "openai/gpt-4o-mini"
    api_key: SecretStr | None = None
    api_base: str | None = None
    timeout: float = 60.0
    chunk_lines: int = 60


class RosterSettings(BaseSettings):
    """Roster reconciliation behavior.

    Attributes:
        provision_accounts: Create durable accounts through the identity
            provider for reconciled emails that have none yet.
        teacher_roles: Enrollment roles treated as teaching staff.
        student_roles: Enrollment roles treated as students when staff
            list or remove students.
    """

    model_config = SettingsConfigDict(
        env_prefix="ROSTER_",
        extra="ignore",
    )

    provision_accounts: bool = False
    teacher_roles: list[str] = ["docente"]
    student_roles: list[str] = ["estudiante", "alumno"]


class APISettings(BaseSettings):
    """API server configuration.

    Attributes:
        host: Host to bind to.
        port: Port to listen on.
        workers: Number of worker processes.
        reload: Whether to enable auto-reload.
    """

    model_config = SettingsConfigDict(
        env_prefix="API_",
        extra="ignore",
    )

    host: str = "0.0.0.0"
    port: int = 34000
    workers: int = 2
    reload: bool = False


class CORSSettings(BaseSettings):
    """CORS configuration for API.

    Attributes:
        origins: Comma-separated list of allowed origins.
        allow_credentials: Whether to allow credentials.
        allow_methods: Allowed HTTP methods.
        allow_headers: Allowed HTTP headers.
    """

    model_config = SettingsConfigDict(
        env_prefix="CORS_",
        extra="ignore",
    )

    origins: str = "http://localhost:3000"
    allow_credentials: bool = True
    allow_methods: list[str] = ["*"]
    allow_headers: list[str] = ["*"]

    @property
    def origins_list(self) -> list[str]:
        """Parse origins string into a list."""
        return [origin.strip() for origin in self.origins.split(",") if origin.strip()]


class Settings(BaseSettings):
    """Main application settings aggregating all subsettings.

    Use get_settings() to obtain a cached singleton instance.

    Attributes:
        environment: Current environment (development, staging, production).
        debug: Enable debug mode.
        log_level: Logging level.
        db: Relational store settings.
        identity_provider: Identity provider settings.
        extraction: Text extraction settings.
        roster: Roster reconciliation settings.
        api: API server settings.
        cors: CORS settings.
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

    # Subsettings - loaded with their own env prefixes
    db: DatabaseSettings = Field(default_factory=DatabaseSettings)
    identity_provider: IdentityProviderSettings = Field(default_factory=IdentityProviderSettings)
    extraction: ExtractionSettings = Field(default_factory=ExtractionSettings)
    roster: RosterSettings = Field(default_factory=RosterSettings)
    api: APISettings = Field(default_factory=APISettings)
    cors: CORSSettings = Field(default_factory=CORSSettings)

    @model_validator(mode="after")
    def validate_production_settings(self) -> Self:
        """Validate that production settings are properly configured.

        Raises:
            ValueError: If running in production without an identity provider key.
        """
        if self.environment == "production":
            if not self.identity_provider.service_role_key.get_secret_value():
                raise ValueError(
                    "Identity provider service key must be set in production. "
                    "Set IDP_SERVICE_ROLE_KEY environment variable."
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

    Uses lru_cache to ensure settings are only loaded once.
    Call clear_settings_cache() if you need to reload settings.

    Returns:
        Cached Settings instance.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Call this if you need to reload settings from environment.
    Useful for testing or dynamic configuration updates.
    """
    get_settings.cache_clear()
