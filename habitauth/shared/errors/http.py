# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from http import HTTPStatus

from flask import Flask, Response, g, jsonify, request
from werkzeug.exceptions import HTTPException

from habitauth.shared.logging import logger
from habitauth.shared.middleware.client import client_address

from .base import AppError, InfrastructureError, RateLimitError


def handle_app_error(error: AppError) -> tuple[Response, HTTPStatus]:
    response = jsonify(error.to_dict())
    if isinstance(error, RateLimitError):
        response.headers["Retry-After"] = str(error.retry_after)
    return response, error.status


def register_error_handler(
    app: Flask,
    *,
    debug_mode: bool = False,
    default_status: HTTPStatus = HTTPStatus.INTERNAL_SERVER_ERROR,
) -> None:
    @app.errorhandler(AppError)
    def _handle_app_error(exc: AppError):
        if isinstance(exc, InfrastructureError):
            cause = exc.__cause__
            logger.error(
                f"Infrastructure failure {exc.code} on {request.method} {request.path}: "
                f"{type(cause).__name__ if cause else 'n/a'}: {cause}"
            )
        return handle_app_error(exc)

    @app.errorhandler(HTTPException)
    def _handle_http(exc: HTTPException):
        response = jsonify(
            {"error": (exc.name or "HTTP_ERROR").upper().replace(" ", "_"), "message": exc.description}
        )
        return response, exc.code or default_status

    @app.errorhandler(Exception)
    def _handle_unexpected(exc: Exception):
        auth = getattr(g, "auth", None)
        user_id = auth.identity.user_id if auth is not None and auth.identity else None

        if debug_mode:
            logger.exception(
                f"Unhandled exception: {request.method} {request.path} "
                f"from {client_address(request)}, user={user_id}, "
                f"query={dict(request.args)}, body_size={len(request.data)}"
            )
        else:
            logger.error(f"Error: {type(exc).__name__} on {request.method} {request.path}")

        response = jsonify({"error": "INTERNAL_ERROR", "message": "Internal server error"})
        return response, default_status
