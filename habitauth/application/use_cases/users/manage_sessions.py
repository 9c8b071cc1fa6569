# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from habitauth.application.interfaces import AuditAction, AuditTrail, Clock
from habitauth.domain.users.entities import Session
from habitauth.domain.users.repositories import SessionRepository

from .common import utcnow


class LogoutAllDevicesUseCase:
    def __init__(self, *, sessions: SessionRepository, audit: AuditTrail) -> None:
        self._sessions = sessions
        self._audit = audit

    def execute(self, user_id: str, *, ip_address: str | None = None) -> int:
        closed = self._sessions.deactivate_all(user_id)
        self._audit.log(
            AuditAction.LOGOUT_ALL,
            user_id=user_id,
            ip_address=ip_address,
            details={"sessions_closed": closed},
        )
        return closed


class ListSessionsUseCase:
    def __init__(self, *, sessions: SessionRepository) -> None:
        self._sessions = sessions

    def execute(self, user_id: str) -> list[Session]:
        return self._sessions.list_for_user(user_id)


class PurgeExpiredSessionsUseCase:
    def __init__(
        self, *, sessions: SessionRepository, audit: AuditTrail, clock: Clock = utcnow
    ) -> None:
        self._sessions = sessions
        self._audit = audit
        self._clock = clock

    def execute(self, *, requested_by: str | None = None) -> int:
        purged = self._sessions.purge_expired(self._clock())
        self._audit.log(
            AuditAction.SESSIONS_PURGED, user_id=requested_by, details={"purged": purged}
        )
        return purged
