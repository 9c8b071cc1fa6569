"""Use-case for ending a user's sessions."""

from __future__ import annotations

from habitauth.application.interfaces import AuditAction, AuditTrail
from habitauth.application.services.token_codec import TokenCodec, Verified
from habitauth.domain.users.repositories import SessionRepository
from habitauth.shared.errors import InfrastructureError
from habitauth.shared.logging import logger


class LogoutUserUseCase:
    def __init__(
        self,
        *,
        sessions: SessionRepository,
        token_codec: TokenCodec,
        audit: AuditTrail,
    ) -> None:
        self._sessions = sessions
        self._token_codec = token_codec
        self._audit = audit

    def execute(
        self,
        user_id: str | None,
        *,
        refresh_token: str | None = None,
        ip_address: str | None = None,
    ) -> int:
        """Deactivate every session of the caller. Never fails, returns sessions closed."""

        if user_id is None and refresh_token:
            verified = self._token_codec.verify_refresh(refresh_token)
            if isinstance(verified, Verified):
                user_id = verified.claims.subject_id
        if user_id is None:
            return 0

        try:
            closed = self._sessions.deactivate_all(user_id)
        except InfrastructureError as exc:
            logger.warning(f"auth.logout: session store unavailable for user {user_id}: {exc.code}")
            return 0

        self._audit.log(
            AuditAction.LOGOUT,
            user_id=user_id,
            ip_address=ip_address,
            details={"sessions_closed": closed},
        )
        return closed
