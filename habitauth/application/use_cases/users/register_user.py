# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

import uuid

from habitauth.application.interfaces import AuditAction, AuditTrail, Clock
from habitauth.application.services.password_hashing import WerkzeugPasswordHasher
from habitauth.application.services.token_codec import TokenCodec
from habitauth.domain.users.email import email_problem, normalize_email
from habitauth.domain.users.entities import SessionMeta, User
from habitauth.domain.users.exceptions import UserAlreadyExistsError
from habitauth.domain.users.repositories import UserRepository
from habitauth.shared.errors import ValidationError

from .common import AuthResult, access_claims, utcnow


class RegisterUserUseCase:
    def __init__(
        self,
        *,
        users: UserRepository,
        password_hasher: WerkzeugPasswordHasher,
        token_codec: TokenCodec,
        audit: AuditTrail,
        clock: Clock = utcnow,
    ) -> None:
        self._users = users
        self._password_hasher = password_hasher
        self._token_codec = token_codec
        self._audit = audit
        self._clock = clock

    def execute(self, email: str, password: str, meta: SessionMeta | None = None) -> AuthResult:
        meta = meta or SessionMeta()
        problem = email_problem(email)
        if problem:
            raise ValidationError(
                context={
                    "fields": ["email"],
                    "errors": [{"field": "email", "type": "email", "message": problem}],
                }
            )
        email = normalize_email(email)

        if self._users.find_by_email(email):
            raise UserAlreadyExistsError()

        strength = self._password_hasher.strength(password)
        if not strength.valid:
            raise ValidationError(
                context={
                    "fields": ["password"],
                    "violations": [violation.value for violation in strength.violations],
                    "errors": [
                        {"field": "password", "type": violation.value, "message": violation.message}
                        for violation in strength.violations
                    ],
                }
            )

        now = self._clock()
        user = User(
            id=uuid.uuid4().hex,
            email=email,
            password_hash=self._password_hasher.hash(password),
            password_changed_at=now,
            created_at=now,
        )
        tokens = self._token_codec.issue_pair(access_claims(user))
        # Credential and first session commit together or not at all.
        user, session = self._users.add_with_session(
            user, tokens.refresh.jti, meta, tokens.refresh.expires_at
        )

        self._audit.log(AuditAction.REGISTER, user_id=user.id, ip_address=meta.ip_address)
        return AuthResult(user=user, session=session, tokens=tokens)
