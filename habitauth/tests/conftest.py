from __future__ import annotations

import pytest
from flask import Flask
from flask.testing import FlaskClient

from habitauth.app import create_app
from habitauth.container import Container
from habitauth.shared.config import (
    AppConfig,
    AuthConfig,
    DatabaseConfig,
    PasswordConfig,
    SecurityConfig,
)

ACCESS_SECRET = "test-access-secret-0123456789abcdefghijklmnop"
REFRESH_SECRET = "test-refresh-secret-0123456789abcdefghijklmnop"
FAST_HASH = "pbkdf2:sha256:1000"


def build_config(**overrides) -> AppConfig:
    values = {
        "APP_ENV": "test",
        "LOG_LEVEL": "WARNING",
        "database": DatabaseConfig(DATABASE_URL="sqlite://"),
        "auth": AuthConfig(JWT_ACCESS_SECRET=ACCESS_SECRET, JWT_REFRESH_SECRET=REFRESH_SECRET),
        "password": PasswordConfig(PASSWORD_HASH_METHOD=FAST_HASH),
        "security": SecurityConfig(ALLOWED_ORIGINS="http://localhost:3000"),
    }
    values.update(overrides)
    return AppConfig(**values)


@pytest.fixture()
def app_config() -> AppConfig:
    return build_config()


@pytest.fixture()
def container(app_config: AppConfig) -> Container:
    return Container(app_config)


@pytest.fixture()
def app(container: Container) -> Flask:
    return create_app(container=container)


@pytest.fixture()
def client(app: Flask) -> FlaskClient:
    return app.test_client()


@pytest.fixture()
def make_config():
    return build_config
