# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import UTC, datetime

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session as OrmSession

from habitauth.domain.users.entities import DeletionSummary, Session, SessionMeta, User
from habitauth.domain.users.exceptions import UserAlreadyExistsError, UserNotFoundError
from habitauth.domain.users.repositories import SessionRepository, UserRepository
from habitauth.infrastructure.db.models import User as UserRow
from habitauth.infrastructure.db.models import UserSession as SessionRow
from habitauth.infrastructure.unit_of_work import unit_of_work_scope
from habitauth.shared.errors import InfrastructureError
from habitauth.shared.logging import logger

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes.
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


def _new_id() -> str:
    return uuid.uuid4().hex


def _clip(value: str | None, size: int) -> str | None:
    return value[:size] if value else None


@contextmanager
def _store_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except IntegrityError:
        raise
    except SQLAlchemyError as exc:
        logger.error(f"store: {operation} failed: {type(exc).__name__}")
        raise InfrastructureError("STORE_UNAVAILABLE") from exc


def _new_session_row(
    user_id: str, refresh_token_id: str, meta: SessionMeta, expires_at: datetime, now: datetime
) -> SessionRow:
    return SessionRow(
        id=_new_id(),
        user_id=user_id,
        refresh_token_id=refresh_token_id,
        device_info=_clip(meta.device_info, 512),
        ip_address=_clip(meta.ip_address, 64),
        created_at=now,
        last_accessed_at=now,
        expires_at=expires_at,
        is_active=True,
    )


def _user_row(user: User) -> UserRow:
    return UserRow(
        id=user.id or _new_id(),
        email=user.email,
        password_hash=user.password_hash,
        password_changed_at=user.password_changed_at,
        created_at=user.created_at,
        token_version=user.token_version,
        roles=",".join(user.roles),
        last_login_at=user.last_login_at,
    )


def _user_to_domain(row: UserRow) -> User:
    roles = tuple(role for role in (row.roles or "").split(",") if role)
    return User(
        id=row.id,
        email=row.email,
        password_hash=row.password_hash,
        password_changed_at=_as_utc(row.password_changed_at),
        created_at=_as_utc(row.created_at),
        token_version=int(row.token_version or 0),
        roles=roles or ("user",),
        last_login_at=_as_utc(row.last_login_at),
    )


def _session_to_domain(row: SessionRow) -> Session:
    return Session(
        id=row.id,
        user_id=row.user_id,
        refresh_token_id=row.refresh_token_id,
        previous_refresh_token_id=row.previous_refresh_token_id,
        device_info=row.device_info,
        ip_address=row.ip_address,
        created_at=_as_utc(row.created_at),
        last_accessed_at=_as_utc(row.last_accessed_at),
        expires_at=_as_utc(row.expires_at),
        is_active=bool(row.is_active),
    )


class SqlAlchemyUserRepository(UserRepository):
    def __init__(self, session_factory: Callable[[], OrmSession], *, clock: Clock = _utcnow):
        self._session_factory = session_factory
        self._clock = clock

    def find_by_email(self, email: str) -> User | None:
        with _store_errors("find_user_by_email"), unit_of_work_scope(
            self._session_factory
        ) as session:
            row = session.execute(select(UserRow).where(UserRow.email == email)).scalar_one_or_none()
            return _user_to_domain(row) if row else None

    def find_by_id(self, user_id: str) -> User | None:
        with _store_errors("find_user_by_id"), unit_of_work_scope(self._session_factory) as session:
            row = session.get(UserRow, user_id)
            return _user_to_domain(row) if row else None

    def add(self, user: User) -> User:
        try:
            with _store_errors("add_user"), unit_of_work_scope(self._session_factory) as session:
                row = _user_row(user)
                session.add(row)
                session.flush()
                return _user_to_domain(row)
        except IntegrityError as exc:
            raise UserAlreadyExistsError() from exc

    def add_with_session(
        self, user: User, refresh_token_id: str, meta: SessionMeta, expires_at: datetime
    ) -> tuple[User, Session]:
        """Insert the credential and its first session in one transaction."""

        try:
            with _store_errors("register_user"), unit_of_work_scope(
                self._session_factory
            ) as session:
                row = _user_row(user)
                session.add(row)
                session.flush()
                session_row = _new_session_row(
                    row.id, refresh_token_id, meta, expires_at, self._clock()
                )
                session.add(session_row)
                session.flush()
                return _user_to_domain(row), _session_to_domain(session_row)
        except IntegrityError as exc:
            raise UserAlreadyExistsError() from exc

    def update_password(self, user_id: str, password_hash: str, changed_at: datetime) -> User:
        with _store_errors("update_password"), unit_of_work_scope(
            self._session_factory
        ) as session:
            row = session.get(UserRow, user_id)
            if row is None:
                raise UserNotFoundError()
            row.password_hash = password_hash
            row.password_changed_at = changed_at
            row.token_version = int(row.token_version or 0) + 1
            session.flush()
            return _user_to_domain(row)

    def rehash_password(self, user_id: str, password_hash: str) -> None:
        with _store_errors("rehash_password"), unit_of_work_scope(
            self._session_factory
        ) as session:
            session.execute(
                update(UserRow).where(UserRow.id == user_id).values(password_hash=password_hash)
            )

    def touch_last_login(self, user_id: str, at: datetime) -> None:
        with _store_errors("touch_last_login"), unit_of_work_scope(
            self._session_factory
        ) as session:
            session.execute(update(UserRow).where(UserRow.id == user_id).values(last_login_at=at))

    def delete_with_sessions(self, user_id: str) -> DeletionSummary:
        with _store_errors("delete_user"), unit_of_work_scope(self._session_factory) as session:
            row = session.get(UserRow, user_id)
            if row is None:
                raise UserNotFoundError()
            removed = session.execute(
                delete(SessionRow).where(SessionRow.user_id == user_id)
            ).rowcount
            session.execute(delete(UserRow).where(UserRow.id == user_id))
            return DeletionSummary(user_id=user_id, sessions_deleted=int(removed or 0))


class SqlAlchemySessionRepository(SessionRepository):
    def __init__(self, session_factory: Callable[[], OrmSession], *, clock: Clock = _utcnow):
        self._session_factory = session_factory
        self._clock = clock

    def _insert(
        self,
        session: OrmSession,
        user_id: str,
        refresh_token_id: str,
        meta: SessionMeta,
        expires_at: datetime,
    ) -> SessionRow:
        row = _new_session_row(user_id, refresh_token_id, meta, expires_at, self._clock())
        session.add(row)
        session.flush()
        return row

    def create(
        self, user_id: str, refresh_token_id: str, meta: SessionMeta, expires_at: datetime
    ) -> Session:
        with _store_errors("create_session"), unit_of_work_scope(
            self._session_factory
        ) as session:
            row = self._insert(session, user_id, refresh_token_id, meta, expires_at)
            return _session_to_domain(row)

    def replace_for_user(
        self, user_id: str, refresh_token_id: str, meta: SessionMeta, expires_at: datetime
    ) -> Session:
        with _store_errors("replace_sessions"), unit_of_work_scope(
            self._session_factory
        ) as session:
            # Row lock serializes concurrent logins of the same user.
            owner = session.execute(
                select(UserRow.id).where(UserRow.id == user_id).with_for_update()
            ).scalar_one_or_none()
            if owner is None:
                raise UserNotFoundError()
            replaced = session.execute(
                update(SessionRow)
                .where(SessionRow.user_id == user_id, SessionRow.is_active.is_(True))
                .values(is_active=False)
            ).rowcount
            row = self._insert(session, user_id, refresh_token_id, meta, expires_at)
            logger.debug(f"store: replaced {replaced or 0} active session(s) for user {user_id}")
            return _session_to_domain(row)

    def find_active_by_subject(self, user_id: str) -> Session | None:
        with _store_errors("find_active_session"), unit_of_work_scope(
            self._session_factory
        ) as session:
            row = (
                session.execute(
                    select(SessionRow)
                    .where(
                        SessionRow.user_id == user_id,
                        SessionRow.is_active.is_(True),
                        SessionRow.expires_at > self._clock(),
                    )
                    .order_by(SessionRow.created_at.desc())
                    .limit(1)
                )
                .scalars()
                .first()
            )
            return _session_to_domain(row) if row else None

    def find_by_refresh_token_id(self, refresh_token_id: str) -> Session | None:
        with _store_errors("find_session"), unit_of_work_scope(self._session_factory) as session:
            row = session.execute(
                select(SessionRow).where(SessionRow.refresh_token_id == refresh_token_id)
            ).scalar_one_or_none()
            return _session_to_domain(row) if row else None

    def find_by_previous_refresh_token_id(self, refresh_token_id: str) -> Session | None:
        with _store_errors("find_session"), unit_of_work_scope(self._session_factory) as session:
            row = (
                session.execute(
                    select(SessionRow).where(
                        SessionRow.previous_refresh_token_id == refresh_token_id
                    )
                )
                .scalars()
                .first()
            )
            return _session_to_domain(row) if row else None

    def rotate(
        self,
        session_id: str,
        expected_refresh_token_id: str,
        new_refresh_token_id: str,
        expires_at: datetime,
    ) -> Session | None:
        with _store_errors("rotate_session"), unit_of_work_scope(
            self._session_factory
        ) as session:
            result = session.execute(
                update(SessionRow)
                .where(
                    SessionRow.id == session_id,
                    SessionRow.refresh_token_id == expected_refresh_token_id,
                    SessionRow.is_active.is_(True),
                )
                .values(
                    refresh_token_id=new_refresh_token_id,
                    previous_refresh_token_id=expected_refresh_token_id,
                    last_accessed_at=self._clock(),
                    expires_at=expires_at,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                return None
            row = session.get(SessionRow, session_id)
            return _session_to_domain(row) if row else None

    def deactivate_all(self, user_id: str) -> int:
        with _store_errors("deactivate_sessions"), unit_of_work_scope(
            self._session_factory
        ) as session:
            result = session.execute(
                update(SessionRow)
                .where(SessionRow.user_id == user_id, SessionRow.is_active.is_(True))
                .values(is_active=False)
            )
            return int(result.rowcount or 0)

    def deactivate(self, session_id: str) -> None:
        with _store_errors("deactivate_session"), unit_of_work_scope(
            self._session_factory
        ) as session:
            session.execute(
                update(SessionRow).where(SessionRow.id == session_id).values(is_active=False)
            )

    def list_for_user(self, user_id: str) -> list[Session]:
        with _store_errors("list_sessions"), unit_of_work_scope(self._session_factory) as session:
            rows = (
                session.execute(
                    select(SessionRow)
                    .where(SessionRow.user_id == user_id)
                    .order_by(SessionRow.created_at.desc())
                )
                .scalars()
                .all()
            )
            return [_session_to_domain(row) for row in rows]

    def purge_expired(self, now: datetime) -> int:
        with _store_errors("purge_sessions"), unit_of_work_scope(
            self._session_factory
        ) as session:
            result = session.execute(
                delete(SessionRow).where(
                    SessionRow.is_active.is_(False), SessionRow.expires_at < now
                )
            )
            return int(result.rowcount or 0)

