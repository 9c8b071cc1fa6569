# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from http import HTTPStatus
from typing import Any, cast


@dataclass(slots=True)
class AppError(Exception):
    code: str
    status: HTTPStatus
    context: Mapping[str, Any] | None = None
    message: str | None = None

    def __post_init__(self) -> None:
        Exception.__init__(self, self.message or self.code)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.code}
        if self.message:
            payload["message"] = self.message
        if self.context:
            payload["context"] = dict(self.context)
        return payload


class DomainError(AppError):
    def __init__(
        self,
        *,
        code: str | None = None,
        status: HTTPStatus | None = None,
        context: Mapping[str, Any] | None = None,
        message: str | None = None,
    ) -> None:
        resolved_code = code or cast(str, getattr(self, "code", "DOMAIN_ERROR"))
        resolved_status = status or cast(
            HTTPStatus, getattr(self, "status", HTTPStatus.BAD_REQUEST)
        )
        resolved_message = message or cast("str | None", getattr(self, "message", None))
        super().__init__(
            code=resolved_code,
            status=resolved_status,
            context=context,
            message=resolved_message,
        )


class InfrastructureError(AppError):
    def __init__(
        self,
        code: str = "INTERNAL_ERROR",
        *,
        status: HTTPStatus | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        resolved_status = status or HTTPStatus.INTERNAL_SERVER_ERROR
        # Driver text stays in the logs, clients get a generic message.
        super().__init__(
            code=code,
            status=resolved_status,
            context=context,
            message="Internal server error",
        )


class ValidationError(AppError):
    def __init__(
        self,
        code: str = "VALIDATION_FAILED",
        *,
        context: Mapping[str, Any] | None = None,
        message: str | None = "Validation failed",
    ) -> None:
        super().__init__(
            code=code,
            status=HTTPStatus.BAD_REQUEST,
            context=context,
            message=message,
        )


class AuthenticationError(AppError):
    def __init__(
        self,
        code: str = "NOT_AUTHENTICATED",
        *,
        message: str | None = "Authentication required",
        context: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(
            code=code,
            status=HTTPStatus.UNAUTHORIZED,
            context=context,
            message=message,
        )


class AuthorizationError(AppError):
    def __init__(
        self,
        code: str = "INSUFFICIENT_PERMISSIONS",
        *,
        message: str | None = "Insufficient permissions",
        context: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(
            code=code,
            status=HTTPStatus.FORBIDDEN,
            context=context,
            message=message,
        )


class NotFoundError(AppError):
    def __init__(
        self,
        code: str = "NOT_FOUND",
        *,
        message: str | None = "Resource not found",
        context: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(
            code=code,
            status=HTTPStatus.NOT_FOUND,
            context=context,
            message=message,
        )


class ConflictError(AppError):
    def __init__(
        self,
        code: str = "CONFLICT",
        *,
        message: str | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(
            code=code,
            status=HTTPStatus.CONFLICT,
            context=context,
            message=message,
        )


class RateLimitError(AppError):
    def __init__(self, operation: str, retry_after: int) -> None:
        super().__init__(
            code="RATE_LIMIT_EXCEEDED",
            status=HTTPStatus.TOO_MANY_REQUESTS,
            context={"operation": operation, "retry_after": retry_after},
            message="Too many requests, please try again later",
        )

    @property
    def retry_after(self) -> int:
        return int((self.context or {}).get("retry_after", 0))
