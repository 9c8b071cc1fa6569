"""Application dependency container."""

from __future__ import annotations

from functools import cached_property

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from habitauth.application.services.password_hashing import WerkzeugPasswordHasher
from habitauth.application.services.token_codec import TokenCodec
from habitauth.application.use_cases.users.change_password import ChangePasswordUseCase
from habitauth.application.use_cases.users.delete_account import DeleteAccountUseCase
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
from habitauth.infrastructure.audit import SqlAlchemyAuditTrail
from habitauth.infrastructure.db import build_engine, build_session_factory
from habitauth.infrastructure.repositories.users.sqlalchemy_user_repository import (
    SqlAlchemySessionRepository,
    SqlAlchemyUserRepository,
)
from habitauth.interfaces.http.controllers.admin_controller import AdminController
from habitauth.interfaces.http.controllers.auth_controller import AuthController
from habitauth.interfaces.http.controllers.user_controller import UserController
from habitauth.shared.config import AppConfig, DeploymentProfile
from habitauth.shared.middleware.rate_limit import RateLimiter


class Container:
    def __init__(self, config: AppConfig) -> None:
        self.config = config

    @property
    def profile(self) -> DeploymentProfile:
        return self.config.profile

    @cached_property
    def engine(self) -> Engine:
        return build_engine(self.config.database)

    @cached_property
    def session_factory(self) -> sessionmaker[Session]:
        return build_session_factory(self.engine)

    @cached_property
    def password_hasher(self) -> WerkzeugPasswordHasher:
        return WerkzeugPasswordHasher(
            self.config.password.hash_method,
            require_special=self.config.password.require_special,
        )

    @cached_property
    def token_codec(self) -> TokenCodec:
        return TokenCodec(self.config.auth)

    @cached_property
    def rate_limiter(self) -> RateLimiter:
        return RateLimiter(
            self.config.security.rate_limits,
            enabled=self.config.security.enable_rate_limit,
        )

    @cached_property
    def audit_trail(self) -> SqlAlchemyAuditTrail:
        return SqlAlchemyAuditTrail(self.session_factory)

    @cached_property
    def user_repository(self) -> SqlAlchemyUserRepository:
        return SqlAlchemyUserRepository(self.session_factory)

    @cached_property
    def session_repository(self) -> SqlAlchemySessionRepository:
        return SqlAlchemySessionRepository(self.session_factory)

    @cached_property
    def register_user_use_case(self) -> RegisterUserUseCase:
        return RegisterUserUseCase(
            users=self.user_repository,
            password_hasher=self.password_hasher,
            token_codec=self.token_codec,
            audit=self.audit_trail,
        )

    @cached_property
    def login_user_use_case(self) -> LoginUserUseCase:
        return LoginUserUseCase(
            users=self.user_repository,
            sessions=self.session_repository,
            password_hasher=self.password_hasher,
            token_codec=self.token_codec,
            audit=self.audit_trail,
        )

    @cached_property
    def logout_user_use_case(self) -> LogoutUserUseCase:
        return LogoutUserUseCase(
            sessions=self.session_repository,
            token_codec=self.token_codec,
            audit=self.audit_trail,
        )

    @cached_property
    def refresh_session_use_case(self) -> RefreshSessionUseCase:
        return RefreshSessionUseCase(
            users=self.user_repository,
            sessions=self.session_repository,
            token_codec=self.token_codec,
            audit=self.audit_trail,
        )

    @cached_property
    def get_profile_use_case(self) -> GetProfileUseCase:
        return GetProfileUseCase(users=self.user_repository, sessions=self.session_repository)

    @cached_property
    def change_password_use_case(self) -> ChangePasswordUseCase:
        return ChangePasswordUseCase(
            users=self.user_repository,
            password_hasher=self.password_hasher,
            audit=self.audit_trail,
        )

    @cached_property
    def delete_account_use_case(self) -> DeleteAccountUseCase:
        return DeleteAccountUseCase(
            users=self.user_repository,
            audit=self.audit_trail,
            skip_confirmation=(
                self.profile is DeploymentProfile.TEST
                and self.config.account_deletion_skip_confirmation
            ),
        )

    @cached_property
    def logout_all_devices_use_case(self) -> LogoutAllDevicesUseCase:
        return LogoutAllDevicesUseCase(sessions=self.session_repository, audit=self.audit_trail)

    @cached_property
    def list_sessions_use_case(self) -> ListSessionsUseCase:
        return ListSessionsUseCase(sessions=self.session_repository)

    @cached_property
    def purge_expired_sessions_use_case(self) -> PurgeExpiredSessionsUseCase:
        return PurgeExpiredSessionsUseCase(sessions=self.session_repository, audit=self.audit_trail)

    @cached_property
    def auth_controller(self) -> AuthController:
        return AuthController(
            register_use_case=self.register_user_use_case,
            login_use_case=self.login_user_use_case,
            logout_use_case=self.logout_user_use_case,
            refresh_use_case=self.refresh_session_use_case,
            profile_use_case=self.get_profile_use_case,
            token_codec=self.token_codec,
            rate_limiter=self.rate_limiter,
            profile=self.profile,
        )

    @cached_property
    def user_controller(self) -> UserController:
        return UserController(
            change_password_use_case=self.change_password_use_case,
            delete_account_use_case=self.delete_account_use_case,
            logout_all_use_case=self.logout_all_devices_use_case,
            list_sessions_use_case=self.list_sessions_use_case,
            token_codec=self.token_codec,
            rate_limiter=self.rate_limiter,
            profile=self.profile,
            fresh_token_max_age=self.config.auth.fresh_token_max_age,
        )

    @cached_property
    def admin_controller(self) -> AdminController:
        return AdminController(
            purge_sessions_use_case=self.purge_expired_sessions_use_case,
            token_codec=self.token_codec,
        )
