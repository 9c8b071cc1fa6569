# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from dataclasses import replace

from habitauth.application.interfaces import AuditAction, AuditTrail, Clock
from habitauth.application.services.token_codec import TokenCodec
from habitauth.domain.users.email import normalize_email
from habitauth.domain.users.entities import SessionMeta, User
from habitauth.domain.users.exceptions import InvalidCredentialsError, PasswordInputError
from habitauth.domain.users.repositories import PasswordHasher, SessionRepository, UserRepository
from habitauth.shared.logging import logger

from .common import AuthResult, access_claims, utcnow


class LoginUserUseCase:
    def __init__(
        self,
        *,
        users: UserRepository,
        sessions: SessionRepository,
        password_hasher: PasswordHasher,
        token_codec: TokenCodec,
        audit: AuditTrail,
        clock: Clock = utcnow,
    ) -> None:
        self._users = users
        self._sessions = sessions
        self._password_hasher = password_hasher
        self._token_codec = token_codec
        self._audit = audit
        self._clock = clock

    def execute(self, email: str, password: str, meta: SessionMeta | None = None) -> AuthResult:
        meta = meta or SessionMeta()
        email = normalize_email(email) if isinstance(email, str) else ""

        user = self._users.find_by_email(email) if email else None
        if user is None:
            # Unknown email must cost as much as a wrong password.
            self._password_hasher.compare_decoy(password)
            password_valid = False
        else:
            password_valid = self._password_hasher.compare(password, user.password_hash)

        if user is None or not password_valid:
            self._audit.log(
                AuditAction.LOGIN_FAILED,
                user_id=user.id if user else None,
                ip_address=meta.ip_address,
                success=False,
            )
            raise InvalidCredentialsError()

        user = self._upgrade_hash(user, password)
        tokens = self._token_codec.issue_pair(access_claims(user))
        session = self._sessions.replace_for_user(
            user.id, tokens.refresh.jti, meta, tokens.refresh.expires_at
        )
        now = self._clock()
        self._users.touch_last_login(user.id, now)

        self._audit.log(AuditAction.LOGIN_SUCCESS, user_id=user.id, ip_address=meta.ip_address)
        return AuthResult(user=replace(user, last_login_at=now), session=session, tokens=tokens)

    def _upgrade_hash(self, user: User, password: str) -> User:
        if not self._password_hasher.needs_rehash(user.password_hash):
            return user
        try:
            password_hash = self._password_hasher.hash(password)
        except PasswordInputError as exc:
            logger.warning(f"auth.login: cannot rehash password for user {user.id}: {exc.reason}")
            return user
        self._users.rehash_password(user.id, password_hash)
        logger.info(f"auth.login: upgraded password hash for user {user.id}")
        return replace(user, password_hash=password_hash)
