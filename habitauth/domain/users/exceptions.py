# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from http import HTTPStatus

from habitauth.shared.errors.base import DomainError


class UserAlreadyExistsError(DomainError):
    code = "USER_EXISTS"
    status = HTTPStatus.CONFLICT
    message = "An account with this email already exists"


class InvalidCredentialsError(DomainError):
    code = "AUTH_FAILED"
    status = HTTPStatus.UNAUTHORIZED
    message = "Invalid email or password"


class UserNotFoundError(DomainError):
    code = "USER_NOT_FOUND"
    status = HTTPStatus.NOT_FOUND
    message = "User account not found"


class PasswordInputError(DomainError):
    code = "INVALID_PASSWORD_INPUT"
    status = HTTPStatus.BAD_REQUEST

    def __init__(self, reason: str) -> None:
        super().__init__(context={"reason": reason}, message=f"Password rejected: {reason}")

    @property
    def reason(self) -> str:
        return str((self.context or {}).get("reason", ""))


class WeakPasswordError(DomainError):
    code = "WEAK_PASSWORD"
    status = HTTPStatus.BAD_REQUEST
    message = "Password does not meet security requirements"

    def __init__(self, violations: list[str], messages: list[str] | None = None) -> None:
        super().__init__(context={"violations": violations, "messages": messages or []})


class SamePasswordError(DomainError):
    code = "SAME_PASSWORD"
    status = HTTPStatus.BAD_REQUEST
    message = "New password must be different from current password"


class InvalidCurrentPasswordError(DomainError):
    code = "INVALID_CURRENT_PASSWORD"
    status = HTTPStatus.UNAUTHORIZED
    message = "Current password is incorrect"


class NoRefreshTokenError(DomainError):
    code = "NO_REFRESH_TOKEN"
    status = HTTPStatus.UNAUTHORIZED
    message = "Refresh token is required for token refresh"


class InvalidRefreshTokenError(DomainError):
    code = "INVALID_REFRESH_TOKEN"
    status = HTTPStatus.UNAUTHORIZED
    message = "Please login again"


class RefreshTokenExpiredError(DomainError):
    code = "REFRESH_TOKEN_EXPIRED"
    status = HTTPStatus.UNAUTHORIZED
    message = "Please login again"


class RefreshTokenReusedError(DomainError):
    code = "REFRESH_TOKEN_REUSED"
    status = HTTPStatus.UNAUTHORIZED
    message = "Please login again"


class SessionExpiredError(DomainError):
    code = "SESSION_EXPIRED"
    status = HTTPStatus.UNAUTHORIZED
    message = "Please login again"


class InvalidConfirmationError(DomainError):
    code = "INVALID_CONFIRMATION"
    message = "Invalid confirmation phrase. Type exactly: DELETE MY ACCOUNT"


class MissingEmailConfirmationError(DomainError):
    code = "MISSING_EMAIL_CONFIRMATION"
    message = "Email confirmation is required"


class InvalidEmailFormatError(DomainError):
    code = "INVALID_EMAIL_FORMAT"
    message = "Invalid email format"


class EmailMismatchError(DomainError):
    code = "EMAIL_MISMATCH"
    message = "Email confirmation does not match account email"
