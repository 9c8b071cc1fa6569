# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

import json
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from habitauth.application.interfaces import AuditAction, AuditTrail
from habitauth.infrastructure.db.models import AuditLog
from habitauth.shared.logging import logger

_SENSITIVE_KEYS = ("password", "token", "secret", "hash", "cookie", "confirmation")


def _sanitize_details(details: dict[str, Any]) -> dict[str, Any]:
    sanitized = {}
    for key, value in details.items():
        if any(sensitive in key.lower() for sensitive in _SENSITIVE_KEYS):
            sanitized[key] = "***REDACTED***"
        else:
            sanitized[key] = value
    return sanitized


class SqlAlchemyAuditTrail(AuditTrail):
    """Writes security events to the log and to ``audit_logs``; storage is best-effort."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def log(
        self,
        action: AuditAction,
        *,
        user_id: str | None = None,
        ip_address: str | None = None,
        details: dict[str, Any] | None = None,
        success: bool = True,
    ) -> None:
        timestamp = datetime.now(UTC)
        safe_details = _sanitize_details(details) if details else {}

        log_message = (
            f"AUDIT: {action.value} | "
            f"user_id={user_id} | "
            f"ip={ip_address} | "
            f"success={success}"
        )
        if safe_details:
            log_message += f" | details={safe_details}"

        if success:
            logger.info(log_message)
        else:
            logger.warning(log_message)

        self._store(timestamp, action.value, user_id, ip_address, success, safe_details)

    def _store(
        self,
        timestamp: datetime,
        action: str,
        user_id: str | None,
        ip_address: str | None,
        success: bool,
        details: dict[str, Any],
    ) -> None:
        db = self._session_factory()
        try:
            db.add(
                AuditLog(
                    timestamp=timestamp,
                    action=action,
                    user_id=user_id,
                    ip_address=ip_address,
                    success=success,
                    details_json=json.dumps(details, default=str)[:2048] if details else None,
                )
            )
            db.commit()
        except SQLAlchemyError as db_error:
            db.rollback()
            logger.warning(f"Failed to store audit log in database: {type(db_error).__name__}")
        finally:
            db.close()


__all__ = ["SqlAlchemyAuditTrail"]
