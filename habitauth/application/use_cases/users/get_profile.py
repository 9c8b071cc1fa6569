# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from dataclasses import dataclass

from habitauth.domain.users.entities import Session, User
from habitauth.domain.users.exceptions import UserNotFoundError
from habitauth.domain.users.repositories import SessionRepository, UserRepository


@dataclass(slots=True, frozen=True)
class ProfileResult:
    user: User
    active_session: Session | None


class GetProfileUseCase:
    def __init__(self, *, users: UserRepository, sessions: SessionRepository) -> None:
        self._users = users
        self._sessions = sessions

    def execute(self, user_id: str) -> ProfileResult:
        user = self._users.find_by_id(user_id)
        if user is None:
            raise UserNotFoundError()
        return ProfileResult(user=user, active_session=self._sessions.find_active_by_subject(user.id))
