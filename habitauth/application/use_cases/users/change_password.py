# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from habitauth.application.interfaces import AuditAction, AuditTrail, Clock
from habitauth.application.services.password_hashing import WerkzeugPasswordHasher
from habitauth.domain.users.entities import User
from habitauth.domain.users.exceptions import (
    InvalidCurrentPasswordError,
    SamePasswordError,
    UserNotFoundError,
    WeakPasswordError,
)
from habitauth.domain.users.repositories import UserRepository

from .common import utcnow


class ChangePasswordUseCase:
    def __init__(
        self,
        *,
        users: UserRepository,
        password_hasher: WerkzeugPasswordHasher,
        audit: AuditTrail,
        clock: Clock = utcnow,
    ) -> None:
        self._users = users
        self._password_hasher = password_hasher
        self._audit = audit
        self._clock = clock

    def execute(
        self,
        user_id: str,
        current_password: str,
        new_password: str,
        *,
        ip_address: str | None = None,
    ) -> User:
        user = self._users.find_by_id(user_id)
        if user is None:
            raise UserNotFoundError()

        if not self._password_hasher.compare(current_password, user.password_hash):
            self._audit.log(
                AuditAction.PASSWORD_CHANGE_FAILED,
                user_id=user.id,
                ip_address=ip_address,
                details={"reason": "invalid_current_password"},
                success=False,
            )
            raise InvalidCurrentPasswordError()

        if current_password == new_password:
            raise SamePasswordError()

        strength = self._password_hasher.strength(new_password)
        if not strength.valid:
            raise WeakPasswordError(
                [violation.value for violation in strength.violations], strength.messages
            )

        updated = self._users.update_password(
            user.id, self._password_hasher.hash(new_password), self._clock()
        )
        self._audit.log(AuditAction.PASSWORD_CHANGED, user_id=user.id, ip_address=ip_address)
        return updated
