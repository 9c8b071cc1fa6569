# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from habitauth.application.interfaces import AuditAction, AuditTrail
from habitauth.domain.users.email import is_valid_email, normalize_email
from habitauth.domain.users.entities import DeletionSummary
from habitauth.domain.users.exceptions import (
    EmailMismatchError,
    InvalidConfirmationError,
    InvalidEmailFormatError,
    MissingEmailConfirmationError,
    UserNotFoundError,
)
from habitauth.domain.users.repositories import UserRepository
from habitauth.shared.logging import logger

CONFIRMATION_PHRASE = "DELETE MY ACCOUNT"


class DeleteAccountUseCase:
    def __init__(
        self,
        *,
        users: UserRepository,
        audit: AuditTrail,
        skip_confirmation: bool = False,
    ) -> None:
        self._users = users
        self._audit = audit
        self._skip_confirmation = skip_confirmation

    def execute(
        self,
        user_id: str,
        confirmation: str | None,
        email: str | None,
        *,
        ip_address: str | None = None,
    ) -> DeletionSummary:
        if not self._skip_confirmation:
            if confirmation != CONFIRMATION_PHRASE:
                raise InvalidConfirmationError()
            if not email or not isinstance(email, str) or not email.strip():
                raise MissingEmailConfirmationError()
            if not is_valid_email(email):
                raise InvalidEmailFormatError()

        user = self._users.find_by_id(user_id)
        if user is None:
            raise UserNotFoundError()

        if not self._skip_confirmation and normalize_email(email or "") != user.email:
            raise EmailMismatchError()

        summary = self._users.delete_with_sessions(user.id)
        logger.info(
            f"account.delete: removed user {user.id} with {summary.sessions_deleted} session(s)"
        )
        self._audit.log(
            AuditAction.ACCOUNT_DELETED,
            user_id=user.id,
            ip_address=ip_address,
            details={"sessions_deleted": summary.sessions_deleted},
        )
        return summary
