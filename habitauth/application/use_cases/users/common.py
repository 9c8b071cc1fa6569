# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from habitauth.application.services.token_codec import TokenPair
from habitauth.domain.users.entities import Session, User


def utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(slots=True, frozen=True)
class AuthResult:
    user: User
    session: Session
    tokens: TokenPair


def access_claims(user: User) -> dict[str, Any]:
    return {
        "subject_id": user.id,
        "email": user.email,
        "roles": list(user.roles),
        "token_version": user.token_version,
    }
