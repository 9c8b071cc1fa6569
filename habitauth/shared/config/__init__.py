# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from .settings import (
    AppConfig,
    AuthConfig,
    DatabaseConfig,
    DeploymentProfile,
    PasswordConfig,
    RateLimitPolicy,
    SecurityConfig,
    load_config,
    parse_duration,
)

__all__ = [
    "AppConfig",
    "AuthConfig",
    "DatabaseConfig",
    "DeploymentProfile",
    "PasswordConfig",
    "RateLimitPolicy",
    "SecurityConfig",
    "load_config",
    "parse_duration",
]
