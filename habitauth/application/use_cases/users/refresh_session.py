# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from habitauth.application.interfaces import AuditAction, AuditTrail, Clock
from habitauth.application.services.token_codec import Rejected, TokenCodec, TokenErrorKind
from habitauth.domain.users.exceptions import (
    InvalidRefreshTokenError,
    NoRefreshTokenError,
    RefreshTokenExpiredError,
    RefreshTokenReusedError,
    SessionExpiredError,
)
from habitauth.domain.users.repositories import SessionRepository, UserRepository
from habitauth.shared.logging import logger

from .common import AuthResult, access_claims, utcnow


class RefreshSessionUseCase:
    """Exchange a refresh token for a new token pair, rotating the session's token id."""

    def __init__(
        self,
        *,
        users: UserRepository,
        sessions: SessionRepository,
        token_codec: TokenCodec,
        audit: AuditTrail,
        clock: Clock = utcnow,
    ) -> None:
        self._users = users
        self._sessions = sessions
        self._token_codec = token_codec
        self._audit = audit
        self._clock = clock

    def execute(self, refresh_token: str | None, *, ip_address: str | None = None) -> AuthResult:
        verified = self._token_codec.verify_refresh(refresh_token)
        if isinstance(verified, Rejected):
            if verified.kind is TokenErrorKind.NO_TOKEN:
                raise NoRefreshTokenError()
            if verified.kind is TokenErrorKind.EXPIRED:
                raise RefreshTokenExpiredError()
            raise InvalidRefreshTokenError()

        claims = verified.claims
        session = self._sessions.find_by_refresh_token_id(claims.jti)
        if session is None:
            superseded = self._sessions.find_by_previous_refresh_token_id(claims.jti)
            if superseded is not None:
                self._sessions.deactivate(superseded.id)
                logger.warning(
                    f"auth.refresh: superseded token replayed, session {superseded.id} revoked"
                )
                self._audit.log(
                    AuditAction.REFRESH_TOKEN_REUSED,
                    user_id=superseded.user_id,
                    ip_address=ip_address,
                    success=False,
                )
                raise RefreshTokenReusedError()
            raise SessionExpiredError()

        if not session.is_usable(self._clock()) or session.user_id != claims.subject_id:
            raise SessionExpiredError()

        user = self._users.find_by_id(session.user_id)
        if user is None:
            raise SessionExpiredError()

        tokens = self._token_codec.issue_pair(access_claims(user))
        rotated = self._sessions.rotate(
            session.id, claims.jti, tokens.refresh.jti, tokens.refresh.expires_at
        )
        if rotated is None:
            logger.info(f"auth.refresh: lost rotation race for session {session.id}")
            raise SessionExpiredError()

        self._audit.log(AuditAction.TOKEN_REFRESHED, user_id=user.id, ip_address=ip_address)
        return AuthResult(user=user, session=rotated, tokens=tokens)
