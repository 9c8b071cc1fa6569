# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

import hashlib
import secrets
import time
from typing import Any

from flask import Flask, g, request

from habitauth.shared.logging import clear_correlation_id, logger, set_correlation_id

from .client import client_address

_SENSITIVE_HEADERS = frozenset(
    {"authorization", "cookie", "set-cookie", "x-api-key", "x-auth-token", "x-session-id"}
)
_SENSITIVE_PARAMS = ("password", "token", "secret", "auth", "confirmation")


def _get_user_id() -> str | None:
    auth = getattr(g, "auth", None)
    if auth is None or auth.identity is None:
        return None
    return auth.identity.user_id


def _sanitize_headers(headers: dict[str, str]) -> dict[str, str]:
    sanitized = {}
    for key, value in headers.items():
        if key.lower() in _SENSITIVE_HEADERS:
            sanitized[key] = f"<hashed:{hashlib.sha256(value.encode()).hexdigest()[:8]}>"
        else:
            sanitized[key] = value
    return sanitized


def _sanitize_query_params(params: dict[str, Any]) -> dict[str, Any]:
    sanitized = {}
    for key, value in params.items():
        if any(sensitive in key.lower() for sensitive in _SENSITIVE_PARAMS):
            sanitized[key] = "<redacted>"
        else:
            sanitized[key] = value
    return sanitized


def _log_request_start(debug_mode: bool) -> None:
    ip_address = client_address(request)

    if debug_mode:
        headers = _sanitize_headers(dict(request.headers))
        query_params = _sanitize_query_params(dict(request.args))
        logger.info(
            f"Request started: {request.method} {request.path} "
            f"from {ip_address}, "
            f"query={query_params}, headers={headers}, "
            f"body_size={request.content_length or 0}"
        )
    else:
        logger.info(f"Request: {request.method} {request.path} from {ip_address}")


def _log_request_end(debug_mode: bool, status_code: int, start_time: float) -> None:
    duration = time.perf_counter() - start_time

    if debug_mode:
        logger.info(
            f"Request completed: {request.method} {request.path} "
            f"status={status_code}, duration={duration:.3f}s, "
            f"from {client_address(request)}, user={_get_user_id()}"
        )
    else:
        logger.info(
            f"Response: {request.method} {request.path} "
            f"status={status_code}, duration={duration:.3f}s"
        )


def configure_request_logging(app: Flask, *, debug_mode: bool = False) -> None:
    @app.before_request
    def _before_request() -> None:
        incoming = (request.headers.get("X-Request-ID") or "").strip()
        set_correlation_id(incoming[:64] or secrets.token_urlsafe(8))
        g.request_start_time = time.perf_counter()
        _log_request_start(debug_mode)

    @app.after_request
    def _after_request(response):
        start_time = getattr(g, "request_start_time", time.perf_counter())
        _log_request_end(debug_mode, response.status_code, start_time)
        return response

    @app.teardown_request
    def _teardown_request(exc: BaseException | None) -> None:
        if exc is not None:
            logger.error(
                f"Request error: {type(exc).__name__} on "
                f"{request.method} {request.path}, user={_get_user_id()}"
            )
        clear_correlation_id()


__all__ = ["configure_request_logging"]
