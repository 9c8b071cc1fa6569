# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

import re
import sys
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

_INSECURE_SECRETS = frozenset(
    {
        "",
        "dev",
        "test",
        "secret",
        "change-me",
        "dev-access-secret-change-me",
        "dev-refresh-secret-change-me",
    }
)

_DURATION_RE = re.compile(r"^(\d+)([smhd])$")
_DURATION_UNITS = {"s": 1, "m": 60, "h": 60 * 60, "d": 24 * 60 * 60}


def parse_duration(value: str | int | float) -> int:
    """Convert ``"15m"``/``"7d"`` style durations (or plain seconds) to seconds."""

    if isinstance(value, bool):
        raise ValueError("duration must be a number of seconds or <n>[smhd]")
    if isinstance(value, (int, float)):
        return int(value)
    text = value.strip().lower()
    if text.isdigit():
        return int(text)
    match = _DURATION_RE.match(text)
    if not match:
        raise ValueError(f"invalid duration format: {value!r}")
    return int(match.group(1)) * _DURATION_UNITS[match.group(2)]


def _parse_bool(value: str | bool) -> bool:
    if isinstance(value, str):
        return value.lower() in ("1", "true", "yes")
    return bool(value)


class DeploymentProfile(str, Enum):
    DEVELOPMENT = "development"
    TEST = "test"
    PRODUCTION = "production"

    @classmethod
    def resolve(cls, value: str | None) -> "DeploymentProfile":
        name = (value or "").strip().lower()
        if name in ("production", "prod"):
            return cls.PRODUCTION
        if name in ("test", "testing"):
            return cls.TEST
        return cls.DEVELOPMENT


_GROUP_CONFIG = SettingsConfigDict(
    env_file=".env",
    env_file_encoding="utf-8",
    extra="ignore",
    validate_by_name=True,
    frozen=True,
)


class DatabaseConfig(BaseSettings):
    url: str = Field("sqlite:///habitauth.db", alias="DATABASE_URL")
    pool_size: int = Field(10, ge=1, alias="DATABASE_POOL_SIZE")
    max_overflow: int = Field(5, ge=0, alias="DATABASE_MAX_OVERFLOW")
    pool_timeout: float = Field(30.0, ge=0.1, alias="DATABASE_POOL_TIMEOUT")

    model_config = _GROUP_CONFIG


class AuthConfig(BaseSettings):
    access_secret: str = Field("dev-access-secret-change-me", alias="JWT_ACCESS_SECRET")
    refresh_secret: str = Field("dev-refresh-secret-change-me", alias="JWT_REFRESH_SECRET")
    access_ttl: int = Field(15 * 60, ge=1, alias="JWT_ACCESS_TTL")
    refresh_ttl: int = Field(7 * 24 * 60 * 60, ge=1, alias="JWT_REFRESH_TTL")
    issuer: str = Field("habitauth", alias="JWT_ISSUER")
    fresh_token_max_age: int = Field(5 * 60, ge=1, alias="FRESH_TOKEN_MAX_AGE")

    model_config = _GROUP_CONFIG

    @field_validator("access_ttl", "refresh_ttl", "fresh_token_max_age", mode="before")
    @classmethod
    def _parse_duration(cls, value: str | int | float) -> int:
        return parse_duration(value)

    @model_validator(mode="after")
    def _secrets_must_differ(self) -> "AuthConfig":
        if self.access_secret == self.refresh_secret:
            raise ValueError("JWT_ACCESS_SECRET and JWT_REFRESH_SECRET must differ")
        return self


class PasswordConfig(BaseSettings):
    hash_method: str = Field("scrypt", alias="PASSWORD_HASH_METHOD")
    require_special: bool = Field(False, alias="PASSWORD_REQUIRE_SPECIAL")

    model_config = _GROUP_CONFIG

    @field_validator("require_special", mode="before")
    @classmethod
    def _parse_require_special(cls, value: str | bool) -> bool:
        return _parse_bool(value)


class RateLimitPolicy(BaseModel):
    window_seconds: float = Field(gt=0)
    max_attempts: int = Field(ge=1)
    skip_successful_requests: bool = False

    model_config = ConfigDict(frozen=True)


def default_rate_limits() -> dict[str, RateLimitPolicy]:
    return {
        "login": RateLimitPolicy(
            window_seconds=15 * 60, max_attempts=5, skip_successful_requests=True
        ),
        "register": RateLimitPolicy(
            window_seconds=60 * 60, max_attempts=3, skip_successful_requests=True
        ),
        "password_reset": RateLimitPolicy(
            window_seconds=60 * 60, max_attempts=3, skip_successful_requests=True
        ),
        "token_refresh": RateLimitPolicy(window_seconds=15 * 60, max_attempts=20),
        "account_deletion": RateLimitPolicy(window_seconds=60 * 60, max_attempts=2),
    }


class SecurityConfig(BaseSettings):
    # CORS
    allowed_origins: Annotated[list[str], NoDecode] = Field(["*"], alias="ALLOWED_ORIGINS")

    # HSTS
    enable_hsts: bool = Field(False, alias="ENABLE_HSTS")

    # Reverse proxies in front of the app whose X-Forwarded-* headers are trusted
    trusted_proxy_hops: int = Field(0, ge=0, alias="TRUSTED_PROXY_HOPS")

    # Rate limiting
    enable_rate_limit: bool = Field(True, alias="ENABLE_RATE_LIMIT")
    rate_limits: dict[str, RateLimitPolicy] = Field(
        default_factory=default_rate_limits, alias="RATE_LIMITS"
    )

    model_config = _GROUP_CONFIG

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def _parse_origins(cls, value: str | list[str]) -> list[str]:
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @field_validator("enable_hsts", "enable_rate_limit", mode="before")
    @classmethod
    def _parse_flags(cls, value: str | bool) -> bool:
        return _parse_bool(value)

    @field_validator("rate_limits", mode="before")
    @classmethod
    def _merge_rate_limits(cls, value: Any) -> Any:
        # Overrides replace individual operations, the rest keep their defaults.
        if not isinstance(value, dict):
            return value
        merged: dict[str, Any] = dict(default_rate_limits())
        merged.update(value)
        return merged


def _database_config_factory() -> DatabaseConfig:
    return DatabaseConfig()  # type: ignore[call-arg]


def _auth_config_factory() -> AuthConfig:
    return AuthConfig()  # type: ignore[call-arg]


def _password_config_factory() -> PasswordConfig:
    return PasswordConfig()  # type: ignore[call-arg]


def _security_config_factory() -> SecurityConfig:
    return SecurityConfig()  # type: ignore[call-arg]


class AppConfig(BaseSettings):
    app_env: str = Field("development", alias="APP_ENV")
    debug_logging: bool = Field(False, alias="DEBUG_LOGGING")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_file: Path | None = Field(None, alias="LOG_FILE")
    account_deletion_skip_confirmation: bool = Field(
        False, alias="ACCOUNT_DELETION_SKIP_CONFIRMATION"
    )

    database: DatabaseConfig = Field(default_factory=_database_config_factory)
    auth: AuthConfig = Field(default_factory=_auth_config_factory)
    password: PasswordConfig = Field(default_factory=_password_config_factory)
    security: SecurityConfig = Field(default_factory=_security_config_factory)

    model_config = _GROUP_CONFIG

    @field_validator("debug_logging", "account_deletion_skip_confirmation", mode="before")
    @classmethod
    def _parse_flags(cls, value: str | bool) -> bool:
        return _parse_bool(value)

    @model_validator(mode="after")
    def _validate_profile_settings(self) -> "AppConfig":
        if self.account_deletion_skip_confirmation and self.profile is not DeploymentProfile.TEST:
            raise ValueError(
                "ACCOUNT_DELETION_SKIP_CONFIRMATION is only allowed with APP_ENV=test"
            )

        if not self.is_production():
            return self

        insecure = [
            name
            for name, value in (
                ("JWT_ACCESS_SECRET", self.auth.access_secret),
                ("JWT_REFRESH_SECRET", self.auth.refresh_secret),
            )
            if value in _INSECURE_SECRETS or len(value) < 32
        ]
        if insecure:
            print(
                "\n❌ CRITICAL SECURITY ERROR: Insecure signing secret detected in production!\n"
                f"   {', '.join(insecure)} must be strong random values (32+ characters).\n"
                "   Generate one with: python -c \"import secrets; print(secrets.token_urlsafe(48))\"\n",
                file=sys.stderr,
            )
            sys.exit(1)

        warnings = []
        if "*" in self.security.allowed_origins:
            warnings.append("⚠️  CORS allows wildcard (*) origins")
        if not self.security.enable_hsts:
            warnings.append("⚠️  HSTS is DISABLED (recommended for HTTPS)")
        if not self.security.enable_rate_limit:
            warnings.append("⚠️  Rate limiting is DISABLED")

        if warnings:
            print("\n⚠️  PRODUCTION SECURITY WARNINGS:", file=sys.stderr)
            for warning in warnings:
                print(f"   {warning}", file=sys.stderr)
            print(
                "   Consider enabling these security features in production.\n",
                file=sys.stderr,
            )

        return self

    @property
    def profile(self) -> DeploymentProfile:
        return DeploymentProfile.resolve(self.app_env)

    def is_production(self) -> bool:
        return self.profile is DeploymentProfile.PRODUCTION


@lru_cache(maxsize=1)
def load_config() -> AppConfig:
    return AppConfig()  # type: ignore[call-arg]


__all__ = [
    "AppConfig",
    "AuthConfig",
    "DatabaseConfig",
    "DeploymentProfile",
    "PasswordConfig",
    "RateLimitPolicy",
    "SecurityConfig",
    "default_rate_limits",
    "load_config",
    "parse_duration",
]
