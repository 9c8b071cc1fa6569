# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

DEFAULT_ROLES: tuple[str, ...] = ("user",)


class TokenKind(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"


@dataclass(slots=True, frozen=True)
class User:

    id: str
    email: str
    password_hash: str
    password_changed_at: datetime
    created_at: datetime
    token_version: int = 0
    roles: tuple[str, ...] = DEFAULT_ROLES
    last_login_at: datetime | None = None


@dataclass(slots=True, frozen=True)
class SessionMeta:
    """Advisory client details recorded with a session."""

    device_info: str | None = None
    ip_address: str | None = None


@dataclass(slots=True, frozen=True)
class Session:

    id: str
    user_id: str
    refresh_token_id: str
    created_at: datetime
    last_accessed_at: datetime
    expires_at: datetime
    is_active: bool = True
    previous_refresh_token_id: str | None = None
    device_info: str | None = None
    ip_address: str | None = None

    def is_usable(self, now: datetime) -> bool:
        return self.is_active and self.expires_at > now


@dataclass(slots=True, frozen=True)
class TokenClaims:

    subject_id: str
    kind: TokenKind
    jti: str
    issuer: str
    issued_at: int
    expires_at: int
    token_version: int | None = None
    email: str | None = None
    roles: tuple[str, ...] = ()


@dataclass(slots=True, frozen=True)
class DeletionSummary:

    user_id: str
    sessions_deleted: int
