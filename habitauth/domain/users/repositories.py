# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from .entities import DeletionSummary, Session, SessionMeta, User


class UserRepository(Protocol):
    def find_by_email(self, email: str) -> User | None: ...
    def find_by_id(self, user_id: str) -> User | None: ...
    def add(self, user: User) -> User: ...

    def add_with_session(
        self, user: User, refresh_token_id: str, meta: SessionMeta, expires_at: datetime
    ) -> tuple[User, Session]: ...

    def update_password(self, user_id: str, password_hash: str, changed_at: datetime) -> User: ...
    def rehash_password(self, user_id: str, password_hash: str) -> None: ...
    def touch_last_login(self, user_id: str, at: datetime) -> None: ...
    def delete_with_sessions(self, user_id: str) -> DeletionSummary: ...


class SessionRepository(Protocol):
    def create(
        self, user_id: str, refresh_token_id: str, meta: SessionMeta, expires_at: datetime
    ) -> Session: ...

    def replace_for_user(
        self, user_id: str, refresh_token_id: str, meta: SessionMeta, expires_at: datetime
    ) -> Session: ...

    def find_active_by_subject(self, user_id: str) -> Session | None: ...
    def find_by_refresh_token_id(self, refresh_token_id: str) -> Session | None: ...
    def find_by_previous_refresh_token_id(self, refresh_token_id: str) -> Session | None: ...

    def rotate(
        self,
        session_id: str,
        expected_refresh_token_id: str,
        new_refresh_token_id: str,
        expires_at: datetime,
    ) -> Session | None: ...

    def deactivate_all(self, user_id: str) -> int: ...
    def deactivate(self, session_id: str) -> None: ...
    def list_for_user(self, user_id: str) -> list[Session]: ...
    def purge_expired(self, now: datetime) -> int: ...


class PasswordHasher(Protocol):
    def hash(self, password: str) -> str: ...
    def compare(self, password: str, hashed: str) -> bool: ...
    def compare_decoy(self, password: str) -> bool: ...
    def needs_rehash(self, hashed: str) -> bool: ...
