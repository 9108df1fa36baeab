# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

import sys
from functools import lru_cache
from typing import Annotated

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

_SECTION_CONFIG = SettingsConfigDict(
    env_file=".env",
    env_file_encoding="utf-8",
    extra="ignore",
    validate_by_name=True,
)


def _parse_bool_value(value: str | bool) -> bool:
    if isinstance(value, str):
        return value.lower() in ("1", "true", "yes")
    return bool(value)


def _parse_csv(value: str | list[str]) -> list[str]:
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return value


class DatabaseConfig(BaseSettings):
    url: str = Field("sqlite:///authgate.db", alias="DATABASE_URL")
    pool_size: int = Field(10, ge=1, alias="DATABASE_POOL_SIZE")
    max_overflow: int = Field(5, ge=0, alias="DATABASE_MAX_OVERFLOW")
    pool_timeout: float = Field(30.0, ge=0.1, alias="DATABASE_POOL_TIMEOUT")

    model_config = _SECTION_CONFIG


class NotificationConfig(BaseSettings):
    max_size: int = Field(1000, ge=1, alias="NOTIFY_QUEUE_MAX_SIZE")
    max_retries: int = Field(3, ge=0, alias="NOTIFY_RETRIES")
    backoff_base: float = Field(0.5, ge=0.01, alias="NOTIFY_BACKOFF_BASE")
    backoff_cap: float = Field(8.0, ge=0.01, alias="NOTIFY_BACKOFF_CAP")

    model_config = _SECTION_CONFIG


class ObservabilityConfig(BaseSettings):
    metrics_enabled: bool = Field(True, alias="METRICS_ENABLED")
    service_name: str = Field("authgate", alias="SERVICE_NAME")

    model_config = _SECTION_CONFIG


class SecurityConfig(BaseSettings):
    # Cookie security
    cookie_secure: bool = Field(False, alias="COOKIE_SECURE")
    cookie_samesite: str = Field("Lax", alias="COOKIE_SAMESITE")
    session_cookie_name: str = Field("authgate_session", alias="SESSION_COOKIE")

    # CORS
    allowed_origins: Annotated[list[str], NoDecode] = Field(["*"], alias="ALLOWED_ORIGINS")

    # CSRF protection
    enable_csrf: bool = Field(False, alias="ENABLE_CSRF")

    # HSTS
    enable_hsts: bool = Field(False, alias="ENABLE_HSTS")

    # Reverse proxies in front of the app whose X-Forwarded-* headers are trusted
    trusted_proxy_hops: int = Field(0, ge=0, alias="TRUSTED_PROXY_HOPS")

    model_config = _SECTION_CONFIG

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def _parse_origins(cls, value: str | list[str]) -> list[str]:
        return _parse_csv(value)

    @field_validator("cookie_secure", "enable_csrf", "enable_hsts", mode="before")
    @classmethod
    def _parse_bool(cls, value: str | bool) -> bool:
        return _parse_bool_value(value)


class AuthConfig(BaseSettings):
    # Domains whose browser requests receive cookie sessions instead of tokens
    stateful_domains: Annotated[list[str], NoDecode] = Field(
        ["localhost", "localhost:3000", "127.0.0.1", "127.0.0.1:8000", "::1"],
        alias="STATEFUL_DOMAINS",
    )

    session_idle_timeout: int = Field(120 * 60, ge=1, alias="SESSION_LIFETIME")
    session_max_lifetime: int = Field(12 * 60 * 60, ge=1, alias="SESSION_MAX_LIFETIME")
    token_ttl: int | None = Field(None, ge=1, alias="TOKEN_EXPIRATION")

    password_reset_ttl: int = Field(60 * 60, ge=1, alias="PASSWORD_RESET_TTL")
    verification_ttl: int = Field(24 * 60 * 60, ge=1, alias="EMAIL_VERIFICATION_TTL")
    require_email_verification: bool = Field(True, alias="REQUIRE_EMAIL_VERIFICATION")

    login_max_attempts: int = Field(5, ge=1, alias="LOGIN_MAX_ATTEMPTS")
    login_window: float = Field(60.0, ge=1.0, alias="LOGIN_WINDOW")
    password_reset_max_attempts: int = Field(5, ge=1, alias="PASSWORD_RESET_MAX_ATTEMPTS")
    password_reset_window: float = Field(60.0, ge=1.0, alias="PASSWORD_RESET_WINDOW")
    two_factor_max_attempts: int = Field(5, ge=1, alias="TWO_FACTOR_MAX_ATTEMPTS")
    two_factor_window: float = Field(60.0, ge=1.0, alias="TWO_FACTOR_WINDOW")

    # werkzeug method string, e.g. "scrypt:32768:8:1" or "pbkdf2:sha256:600000"
    password_hash_method: str = Field("scrypt", alias="PASSWORD_HASH_METHOD")

    model_config = _SECTION_CONFIG

    @field_validator("stateful_domains", mode="before")
    @classmethod
    def _parse_domains(cls, value: str | list[str]) -> list[str]:
        return [domain.lower() for domain in _parse_csv(value)]

    @field_validator("require_email_verification", mode="before")
    @classmethod
    def _parse_bool(cls, value: str | bool) -> bool:
        return _parse_bool_value(value)

    @model_validator(mode="after")
    def _check_session_bounds(self) -> "AuthConfig":
        if self.session_max_lifetime < self.session_idle_timeout:
            raise ValueError("SESSION_MAX_LIFETIME must not be shorter than SESSION_LIFETIME")
        return self


def _database_config_factory() -> DatabaseConfig:
    return DatabaseConfig()  # type: ignore[call-arg]


def _notification_config_factory() -> NotificationConfig:
    return NotificationConfig()  # type: ignore[call-arg]


def _observability_config_factory() -> ObservabilityConfig:
    return ObservabilityConfig()  # type: ignore[call-arg]


def _security_config_factory() -> SecurityConfig:
    return SecurityConfig()  # type: ignore[call-arg]


def _auth_config_factory() -> AuthConfig:
    return AuthConfig()  # type: ignore[call-arg]


class AppConfig(BaseSettings):
    app_env: str = Field("development", alias="APP_ENV")
    secret_key: str = Field("dev", alias="SECRET_KEY")
    admin_email: str | None = Field(None, alias="ADMIN_EMAIL")
    debug_logging: bool = Field(False, alias="DEBUG_LOGGING")

    database: DatabaseConfig = Field(default_factory=_database_config_factory)
    notifications: NotificationConfig = Field(default_factory=_notification_config_factory)
    observability: ObservabilityConfig = Field(default_factory=_observability_config_factory)
    security: SecurityConfig = Field(default_factory=_security_config_factory)
    auth: AuthConfig = Field(default_factory=_auth_config_factory)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        validate_by_name=True,
        validate_assignment=True,
    )

    @field_validator("debug_logging", mode="before")
    @classmethod
    def _parse_debug_logging(cls, value: str | bool) -> bool:
        return _parse_bool_value(value)

    @model_validator(mode="after")
    def _validate_production_settings(self) -> "AppConfig":
        if not self.is_production():
            return self

        if self.secret_key in ("dev", "development", "test", ""):
            print(
                "\n❌ CRITICAL SECURITY ERROR: Insecure SECRET_KEY detected in production!\n"
                "   SECRET_KEY must be a strong random value in production.\n"
                "   Generate one with: python -c \"import secrets; print(secrets.token_urlsafe(32))\"\n",
                file=sys.stderr,
            )
            sys.exit(1)

        warnings = []
        if not self.security.enable_csrf:
            warnings.append("⚠️  CSRF protection is DISABLED")
        if not self.security.cookie_secure:
            warnings.append("⚠️  Cookie Secure flag is DISABLED (use HTTPS!)")
        if "*" in self.security.allowed_origins:
            warnings.append("⚠️  CORS allows wildcard (*) origins")
        if not self.security.enable_hsts:
            warnings.append("⚠️  HSTS is DISABLED (recommended for HTTPS)")
        if any(domain.startswith("localhost") for domain in self.auth.stateful_domains):
            warnings.append("⚠️  localhost is listed in STATEFUL_DOMAINS")

        if warnings:
            print("\n⚠️  PRODUCTION SECURITY WARNINGS:", file=sys.stderr)
            for warning in warnings:
                print(f"   {warning}", file=sys.stderr)
            print(
                "   Consider enabling these security features in production.\n",
                file=sys.stderr,
            )

        return self

    def is_production(self) -> bool:
        return self.app_env.lower() in ("production", "prod")


@lru_cache(maxsize=1)
def load_config() -> AppConfig:
    return AppConfig()  # type: ignore[call-arg]


__all__ = [
    "AppConfig",
    "AuthConfig",
    "DatabaseConfig",
    "NotificationConfig",
    "ObservabilityConfig",
    "SecurityConfig",
    "load_config",
]
