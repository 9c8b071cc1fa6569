from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock

import pytest

from habitauth.application.interfaces import AuditAction
from habitauth.application.services.password_hashing import WerkzeugPasswordHasher
from habitauth.application.services.token_codec import TokenCodec
from habitauth.application.use_cases.users.change_password import ChangePasswordUseCase
from habitauth.application.use_cases.users.delete_account import (
    CONFIRMATION_PHRASE,
    DeleteAccountUseCase,
)
from habitauth.application.use_cases.users.get_profile import GetProfileUseCase
from habitauth.application.use_cases.users.login_user import LoginUserUseCase
from habitauth.application.use_cases.users.logout_user import LogoutUserUseCase
from habitauth.application.use_cases.users.manage_sessions import (
    ListSessionsUseCase,
    LogoutAllDevicesUseCase,
    PurgeExpiredSessionsUseCase,
)
from habitauth.application.use_cases.users.refresh_session import RefreshSessionUseCase
from habitauth.application.use_cases.users.register_user import RegisterUserUseCase
from habitauth.domain.users.entities import DeletionSummary, Session, SessionMeta, User
from habitauth.domain.users.exceptions import (
    EmailMismatchError,
    InvalidConfirmationError,
    InvalidCredentialsError,
    InvalidCurrentPasswordError,
    InvalidEmailFormatError,
    InvalidRefreshTokenError,
    MissingEmailConfirmationError,
    NoRefreshTokenError,
    RefreshTokenExpiredError,
    RefreshTokenReusedError,
    SamePasswordError,
    SessionExpiredError,
    UserAlreadyExistsError,
    UserNotFoundError,
    WeakPasswordError,
)
from habitauth.shared.config import AuthConfig
from habitauth.shared.errors import InfrastructureError, ValidationError

PASSWORD = "Sup3rSecret!x"
AUTH_CONFIG = AuthConfig(
    JWT_ACCESS_SECRET="uc-access-secret-0123456789abcdefghijklmn",
    JWT_REFRESH_SECRET="uc-refresh-secret-0123456789abcdefghijklmn",
)


def _now() -> datetime:
    return datetime.now(UTC)


class InMemoryUserRepository:
    def __init__(self) -> None:
        self._users: dict[str, User] = {}
        self.sessions: InMemorySessionRepository | None = None

    def find_by_email(self, email: str) -> User | None:
        return next((user for user in self._users.values() if user.email == email), None)

    def find_by_id(self, user_id: str) -> User | None:
        return self._users.get(user_id)

    def add(self, user: User) -> User:
        if self.find_by_email(user.email):
            raise UserAlreadyExistsError()
        self._users[user.id] = user
        return user

    def add_with_session(
        self, user: User, refresh_token_id: str, meta: SessionMeta, expires_at: datetime
    ) -> tuple[User, Session]:
        stored = self.add(user)
        return stored, self.sessions.create(stored.id, refresh_token_id, meta, expires_at)

    def update_password(self, user_id: str, password_hash: str, changed_at: datetime) -> User:
        user = self._users[user_id]
        updated = replace(
            user,
            password_hash=password_hash,
            password_changed_at=changed_at,
            token_version=user.token_version + 1,
        )
        self._users[user_id] = updated
        return updated

    def rehash_password(self, user_id: str, password_hash: str) -> None:
        self._users[user_id] = replace(self._users[user_id], password_hash=password_hash)

    def touch_last_login(self, user_id: str, at: datetime) -> None:
        self._users[user_id] = replace(self._users[user_id], last_login_at=at)

    def delete_with_sessions(self, user_id: str) -> DeletionSummary:
        removed = self.sessions.remove_for_user(user_id) if self.sessions else 0
        self._users.pop(user_id, None)
        return DeletionSummary(user_id=user_id, sessions_deleted=removed)


class InMemorySessionRepository:
    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}

    def create(
        self, user_id: str, refresh_token_id: str, meta: SessionMeta, expires_at: datetime
    ) -> Session:
        now = _now()
        session = Session(
            id=uuid.uuid4().hex,
            user_id=user_id,
            refresh_token_id=refresh_token_id,
            created_at=now,
            last_accessed_at=now,
            expires_at=expires_at,
            device_info=meta.device_info,
            ip_address=meta.ip_address,
        )
        self._sessions[session.id] = session
        return session

    def replace_for_user(
        self, user_id: str, refresh_token_id: str, meta: SessionMeta, expires_at: datetime
    ) -> Session:
        self.deactivate_all(user_id)
        return self.create(user_id, refresh_token_id, meta, expires_at)

    def find_active_by_subject(self, user_id: str) -> Session | None:
        active = [s for s in self._sessions.values() if s.user_id == user_id and s.is_active]
        return max(active, key=lambda s: s.created_at, default=None)

    def find_by_refresh_token_id(self, refresh_token_id: str) -> Session | None:
        return next(
            (s for s in self._sessions.values() if s.refresh_token_id == refresh_token_id), None
        )

    def find_by_previous_refresh_token_id(self, refresh_token_id: str) -> Session | None:
        return next(
            (
                s
                for s in self._sessions.values()
                if s.previous_refresh_token_id == refresh_token_id
            ),
            None,
        )

    def rotate(
        self,
        session_id: str,
        expected_refresh_token_id: str,
        new_refresh_token_id: str,
        expires_at: datetime,
    ) -> Session | None:
        current = self._sessions.get(session_id)
        if (
            current is None
            or not current.is_active
            or current.refresh_token_id != expected_refresh_token_id
        ):
            return None
        rotated = replace(
            current,
            refresh_token_id=new_refresh_token_id,
            previous_refresh_token_id=expected_refresh_token_id,
            last_accessed_at=_now(),
            expires_at=expires_at,
        )
        self._sessions[session_id] = rotated
        return rotated

    def deactivate_all(self, user_id: str) -> int:
        closed = 0
        for key, session in list(self._sessions.items()):
            if session.user_id == user_id and session.is_active:
                self._sessions[key] = replace(session, is_active=False)
                closed += 1
        return closed

    def deactivate(self, session_id: str) -> None:
        self._sessions[session_id] = replace(self._sessions[session_id], is_active=False)

    def list_for_user(self, user_id: str) -> list[Session]:
        return [s for s in self._sessions.values() if s.user_id == user_id]

    def purge_expired(self, now: datetime) -> int:
        doomed = [
            key for key, s in self._sessions.items() if not s.is_active and s.expires_at < now
        ]
        for key in doomed:
            del self._sessions[key]
        return len(doomed)

    def remove_for_user(self, user_id: str) -> int:
        doomed = [key for key, s in self._sessions.items() if s.user_id == user_id]
        for key in doomed:
            del self._sessions[key]
        return len(doomed)

    def put(self, session: Session) -> None:
        self._sessions[session.id] = session


@pytest.fixture()
def users() -> InMemoryUserRepository:
    return InMemoryUserRepository()


@pytest.fixture()
def sessions(users: InMemoryUserRepository) -> InMemorySessionRepository:
    repo = InMemorySessionRepository()
    users.sessions = repo
    return repo


@pytest.fixture()
def hasher() -> WerkzeugPasswordHasher:
    return WerkzeugPasswordHasher("pbkdf2:sha256:1000")


@pytest.fixture()
def codec() -> TokenCodec:
    return TokenCodec(AUTH_CONFIG)


@pytest.fixture()
def audit() -> MagicMock:
    return MagicMock()


@pytest.fixture()
def register(users, sessions, hasher, codec, audit) -> RegisterUserUseCase:
    return RegisterUserUseCase(
        users=users, password_hasher=hasher, token_codec=codec, audit=audit
    )


@pytest.fixture()
def login(users, sessions, hasher, codec, audit) -> LoginUserUseCase:
    return LoginUserUseCase(
        users=users, sessions=sessions, password_hasher=hasher, token_codec=codec, audit=audit
    )


@pytest.fixture()
def refresh(users, sessions, codec, audit) -> RefreshSessionUseCase:
    return RefreshSessionUseCase(users=users, sessions=sessions, token_codec=codec, audit=audit)


def _actions(audit: MagicMock) -> list[AuditAction]:
    return [call.args[0] for call in audit.log.call_args_list]


def test_register_user_success(
    register: RegisterUserUseCase,
    users: InMemoryUserRepository,
    sessions: InMemorySessionRepository,
    codec: TokenCodec,
    audit: MagicMock,
) -> None:
    result = register.execute(" Alice@Example.COM ", PASSWORD, SessionMeta("pytest", "127.0.0.1"))

    assert result.user.email == "alice@example.com"
    assert result.user.password_hash != PASSWORD
    assert users.find_by_email("alice@example.com") == result.user
    assert result.session.refresh_token_id == result.tokens.refresh.jti
    assert result.session.device_info == "pytest"
    assert sessions.find_active_by_subject(result.user.id) == result.session
    assert codec.verify_access(result.tokens.access.token).claims.subject_id == result.user.id
    assert _actions(audit) == [AuditAction.REGISTER]


def test_register_duplicate_email_is_case_insensitive(register: RegisterUserUseCase) -> None:
    register.execute("alice@example.com", PASSWORD)

    with pytest.raises(UserAlreadyExistsError) as exc_info:
        register.execute("ALICE@example.com", PASSWORD)

    assert exc_info.value.status == 409


def test_register_weak_password_lists_violations(
    register: RegisterUserUseCase, users: InMemoryUserRepository
) -> None:
    with pytest.raises(ValidationError) as exc_info:
        register.execute("bob@example.com", "short")

    context = exc_info.value.context
    assert exc_info.value.code == "VALIDATION_FAILED"
    assert "too_short" in context["violations"]
    assert context["fields"] == ["password"]
    assert users.find_by_email("bob@example.com") is None


@pytest.mark.parametrize("email", ["", "not-an-email", "a@mailinator.com"])
def test_register_rejects_bad_email(register: RegisterUserUseCase, email: str) -> None:
    with pytest.raises(ValidationError) as exc_info:
        register.execute(email, PASSWORD)

    assert exc_info.value.context["fields"] == ["email"]


def test_login_success_replaces_existing_session(
    register: RegisterUserUseCase,
    login: LoginUserUseCase,
    sessions: InMemorySessionRepository,
    audit: MagicMock,
) -> None:
    registered = register.execute("alice@example.com", PASSWORD)

    result = login.execute("ALICE@example.com", PASSWORD)

    assert result.user.id == registered.user.id
    assert result.user.last_login_at is not None
    active = [s for s in sessions.list_for_user(registered.user.id) if s.is_active]
    assert active == [result.session]
    assert AuditAction.LOGIN_SUCCESS in _actions(audit)


def test_login_wrong_password_and_unknown_user_look_the_same(
    register: RegisterUserUseCase, login: LoginUserUseCase, audit: MagicMock
) -> None:
    register.execute("alice@example.com", PASSWORD)

    with pytest.raises(InvalidCredentialsError) as wrong_password:
        login.execute("alice@example.com", "Wr0ngPassword")
    with pytest.raises(InvalidCredentialsError) as unknown_user:
        login.execute("nobody@example.com", PASSWORD)

    assert wrong_password.value.to_dict() == unknown_user.value.to_dict()
    assert _actions(audit).count(AuditAction.LOGIN_FAILED) == 2


def test_login_upgrades_outdated_password_hash(
    register: RegisterUserUseCase, users: InMemoryUserRepository, sessions, codec, audit
) -> None:
    registered = register.execute("alice@example.com", PASSWORD)
    upgraded = WerkzeugPasswordHasher("pbkdf2:sha256:2000")
    login = LoginUserUseCase(
        users=users, sessions=sessions, password_hasher=upgraded, token_codec=codec, audit=audit
    )

    result = login.execute("alice@example.com", PASSWORD)

    stored = users.find_by_id(registered.user.id)
    assert stored.password_hash.startswith("pbkdf2:sha256:2000$")
    assert upgraded.needs_rehash(stored.password_hash) is False
    assert stored.token_version == registered.user.token_version
    assert result.user.password_hash == stored.password_hash

    login.execute("alice@example.com", PASSWORD)
    assert users.find_by_id(registered.user.id).password_hash == stored.password_hash


def test_login_unknown_user_runs_decoy_comparison(users, sessions, codec, audit) -> None:
    hasher = MagicMock()
    use_case = LoginUserUseCase(
        users=users, sessions=sessions, password_hasher=hasher, token_codec=codec, audit=audit
    )

    with pytest.raises(InvalidCredentialsError):
        use_case.execute("ghost@example.com", PASSWORD)

    hasher.compare_decoy.assert_called_once_with(PASSWORD)
    hasher.compare.assert_not_called()


def test_refresh_rotates_refresh_token(
    register: RegisterUserUseCase, refresh: RefreshSessionUseCase, codec: TokenCodec
) -> None:
    registered = register.execute("alice@example.com", PASSWORD)

    result = refresh.execute(registered.tokens.refresh.token)

    assert result.session.id == registered.session.id
    assert result.session.refresh_token_id == result.tokens.refresh.jti
    assert result.session.previous_refresh_token_id == registered.tokens.refresh.jti
    assert result.tokens.refresh.jti != registered.tokens.refresh.jti
    assert codec.verify_access(result.tokens.access.token).ok is True


def test_refresh_replay_revokes_session(
    register: RegisterUserUseCase,
    refresh: RefreshSessionUseCase,
    sessions: InMemorySessionRepository,
    audit: MagicMock,
) -> None:
    registered = register.execute("alice@example.com", PASSWORD)
    rotated = refresh.execute(registered.tokens.refresh.token)

    with pytest.raises(RefreshTokenReusedError):
        refresh.execute(registered.tokens.refresh.token)

    assert sessions.find_active_by_subject(registered.user.id) is None
    assert AuditAction.REFRESH_TOKEN_REUSED in _actions(audit)
    with pytest.raises(SessionExpiredError):
        refresh.execute(rotated.tokens.refresh.token)


def test_refresh_token_errors(refresh: RefreshSessionUseCase, codec: TokenCodec) -> None:
    expired = TokenCodec(AUTH_CONFIG, clock=lambda: 0).issue_refresh({"subject_id": "u-1"})

    with pytest.raises(NoRefreshTokenError):
        refresh.execute(None)
    with pytest.raises(InvalidRefreshTokenError):
        refresh.execute("garbage")
    with pytest.raises(RefreshTokenExpiredError):
        refresh.execute(expired.token)
    with pytest.raises(SessionExpiredError):
        refresh.execute(codec.issue_refresh({"subject_id": "u-1"}).token)


def test_refresh_expired_session(
    register: RegisterUserUseCase,
    refresh: RefreshSessionUseCase,
    sessions: InMemorySessionRepository,
) -> None:
    registered = register.execute("alice@example.com", PASSWORD)
    sessions.put(replace(registered.session, expires_at=_now() - timedelta(seconds=1)))

    with pytest.raises(SessionExpiredError):
        refresh.execute(registered.tokens.refresh.token)


def test_refresh_lost_rotation_race(
    register: RegisterUserUseCase,
    refresh: RefreshSessionUseCase,
    sessions: InMemorySessionRepository,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    registered = register.execute("alice@example.com", PASSWORD)
    monkeypatch.setattr(sessions, "rotate", lambda *args, **kwargs: None)

    with pytest.raises(SessionExpiredError):
        refresh.execute(registered.tokens.refresh.token)


def test_logout_deactivates_sessions(
    register: RegisterUserUseCase,
    sessions: InMemorySessionRepository,
    codec: TokenCodec,
    audit: MagicMock,
) -> None:
    registered = register.execute("alice@example.com", PASSWORD)
    use_case = LogoutUserUseCase(sessions=sessions, token_codec=codec, audit=audit)

    assert use_case.execute(registered.user.id) == 1
    assert sessions.find_active_by_subject(registered.user.id) is None
    assert use_case.execute(registered.user.id) == 0


def test_logout_falls_back_to_refresh_token_subject(
    register: RegisterUserUseCase,
    sessions: InMemorySessionRepository,
    codec: TokenCodec,
    audit: MagicMock,
) -> None:
    registered = register.execute("alice@example.com", PASSWORD)
    use_case = LogoutUserUseCase(sessions=sessions, token_codec=codec, audit=audit)

    assert use_case.execute(None, refresh_token=registered.tokens.refresh.token) == 1
    assert use_case.execute(None, refresh_token="garbage") == 0
    assert use_case.execute(None) == 0


def test_logout_swallows_store_failures(codec: TokenCodec, audit: MagicMock) -> None:
    failing = MagicMock()
    failing.deactivate_all.side_effect = InfrastructureError("STORE_UNAVAILABLE")
    use_case = LogoutUserUseCase(sessions=failing, token_codec=codec, audit=audit)

    assert use_case.execute("u-1") == 0
    audit.log.assert_not_called()


def test_get_profile(register: RegisterUserUseCase, users, sessions) -> None:
    registered = register.execute("alice@example.com", PASSWORD)
    use_case = GetProfileUseCase(users=users, sessions=sessions)

    profile = use_case.execute(registered.user.id)

    assert profile.user == registered.user
    assert profile.active_session == registered.session
    with pytest.raises(UserNotFoundError):
        use_case.execute("missing")


def test_change_password_flow(
    register: RegisterUserUseCase, users, hasher: WerkzeugPasswordHasher, audit: MagicMock
) -> None:
    registered = register.execute("alice@example.com", PASSWORD)
    use_case = ChangePasswordUseCase(users=users, password_hasher=hasher, audit=audit)

    with pytest.raises(UserNotFoundError):
        use_case.execute("missing", PASSWORD, "N3wSecret!x")
    with pytest.raises(InvalidCurrentPasswordError):
        use_case.execute(registered.user.id, "Wr0ngPassword", "N3wSecret!x")
    with pytest.raises(SamePasswordError):
        use_case.execute(registered.user.id, PASSWORD, PASSWORD)
    with pytest.raises(WeakPasswordError) as weak:
        use_case.execute(registered.user.id, PASSWORD, "weak")

    assert "too_short" in weak.value.context["violations"]

    updated = use_case.execute(registered.user.id, PASSWORD, "N3wSecret!x")

    assert updated.token_version == registered.user.token_version + 1
    assert hasher.compare("N3wSecret!x", updated.password_hash) is True
    assert _actions(audit)[-2:] == [
        AuditAction.PASSWORD_CHANGE_FAILED,
        AuditAction.PASSWORD_CHANGED,
    ]


def test_delete_account_validations(register: RegisterUserUseCase, users, audit) -> None:
    registered = register.execute("alice@example.com", PASSWORD)
    use_case = DeleteAccountUseCase(users=users, audit=audit)
    user_id = registered.user.id

    with pytest.raises(InvalidConfirmationError):
        use_case.execute(user_id, "delete my account", "alice@example.com")
    with pytest.raises(MissingEmailConfirmationError):
        use_case.execute(user_id, CONFIRMATION_PHRASE, "  ")
    with pytest.raises(InvalidEmailFormatError):
        use_case.execute(user_id, CONFIRMATION_PHRASE, "alice")
    with pytest.raises(EmailMismatchError):
        use_case.execute(user_id, CONFIRMATION_PHRASE, "bob@example.com")
    with pytest.raises(UserNotFoundError):
        use_case.execute("missing", CONFIRMATION_PHRASE, "alice@example.com")


def test_delete_account_removes_user_and_sessions(
    register: RegisterUserUseCase, users, sessions, audit
) -> None:
    registered = register.execute("alice@example.com", PASSWORD)
    use_case = DeleteAccountUseCase(users=users, audit=audit)

    summary = use_case.execute(registered.user.id, CONFIRMATION_PHRASE, "Alice@Example.com")

    assert summary.sessions_deleted == 1
    assert users.find_by_id(registered.user.id) is None
    assert sessions.list_for_user(registered.user.id) == []
    assert AuditAction.ACCOUNT_DELETED in _actions(audit)


def test_delete_account_can_skip_confirmation(
    register: RegisterUserUseCase, users, audit
) -> None:
    registered = register.execute("alice@example.com", PASSWORD)
    use_case = DeleteAccountUseCase(users=users, audit=audit, skip_confirmation=True)

    assert use_case.execute(registered.user.id, None, None).user_id == registered.user.id


def test_session_management(register: RegisterUserUseCase, sessions, audit) -> None:
    registered = register.execute("alice@example.com", PASSWORD)
    stale = replace(
        registered.session,
        id="stale",
        refresh_token_id="stale-jti",
        is_active=False,
        expires_at=_now() - timedelta(days=1),
    )
    sessions.put(stale)

    assert len(ListSessionsUseCase(sessions=sessions).execute(registered.user.id)) == 2
    assert PurgeExpiredSessionsUseCase(sessions=sessions, audit=audit).execute() == 1
    assert LogoutAllDevicesUseCase(sessions=sessions, audit=audit).execute(registered.user.id) == 1
    assert ListSessionsUseCase(sessions=sessions).execute(registered.user.id)[0].is_active is False
