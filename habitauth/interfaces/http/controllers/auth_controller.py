# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

import time

from flask import Blueprint, Response, g, jsonify

from habitauth.application.services.token_codec import TokenCodec
from habitauth.application.use_cases.users.common import AuthResult
from habitauth.application.use_cases.users.get_profile import GetProfileUseCase
from habitauth.application.use_cases.users.login_user import LoginUserUseCase
from habitauth.application.use_cases.users.logout_user import LogoutUserUseCase
from habitauth.application.use_cases.users.refresh_session import RefreshSessionUseCase
from habitauth.application.use_cases.users.register_user import RegisterUserUseCase
from habitauth.interfaces.http.dto.auth import (
    AuthSuccessDTO,
    LoginRequestDTO,
    MessageDTO,
    RegisterRequestDTO,
    SessionDTO,
    TokenMetaDTO,
    UserProfileDTO,
)
from habitauth.interfaces.http.middleware.auth import (
    authenticate,
    context_from_request,
    extract_refresh_token,
    guarded,
    optional_auth,
)
from habitauth.interfaces.http.requests import (
    clear_auth_cookies,
    parse_body,
    session_meta,
    set_auth_cookies,
)
from habitauth.shared.config import DeploymentProfile
from habitauth.shared.errors import AppError, handle_app_error
from habitauth.shared.logging import logger
from habitauth.shared.middleware.rate_limit import RateLimiter, rate_limited


class AuthController:
    def __init__(
        self,
        *,
        register_use_case: RegisterUserUseCase,
        login_use_case: LoginUserUseCase,
        logout_use_case: LogoutUserUseCase,
        refresh_use_case: RefreshSessionUseCase,
        profile_use_case: GetProfileUseCase,
        token_codec: TokenCodec,
        rate_limiter: RateLimiter,
        profile: DeploymentProfile,
    ) -> None:
        self._register_use_case = register_use_case
        self._login_use_case = login_use_case
        self._logout_use_case = logout_use_case
        self._refresh_use_case = refresh_use_case
        self._profile_use_case = profile_use_case
        self._token_codec = token_codec
        self._rate_limiter = rate_limiter
        self._profile = profile

    def _auth_response(self, result: AuthResult, message: str, status: int) -> tuple[Response, int]:
        payload = AuthSuccessDTO(
            message=message,
            user=UserProfileDTO.from_user(result.user),
            tokens=TokenMetaDTO(
                access_token_expires_in=result.tokens.access.expires_in,
                refresh_token_expires_in=result.tokens.refresh.expires_in,
            ),
        ).model_dump(mode="json", by_alias=True)
        response = jsonify(payload)
        set_auth_cookies(response, result.tokens, self._token_codec, self._profile)
        return response, status

    def register(self) -> tuple[Response, int]:
        dto = parse_body(RegisterRequestDTO)
        result = self._register_use_case.execute(dto.email, dto.password, session_meta())
        logger.info(f"auth.register: ok user_id={result.user.id}")
        return self._auth_response(result, "User registered successfully", 201)

    def login(self) -> tuple[Response, int]:
        dto = parse_body(LoginRequestDTO)
        result = self._login_use_case.execute(dto.email, dto.password, session_meta())
        logger.info(f"auth.login: ok user_id={result.user.id}")
        return self._auth_response(result, "Login successful", 200)

    def logout(self) -> tuple[Response, int]:
        ctx = g.auth
        user_id = ctx.identity.user_id if ctx.identity else None
        closed = self._logout_use_case.execute(
            user_id,
            refresh_token=extract_refresh_token(ctx),
            ip_address=ctx.client_ip,
        )

        response = jsonify(MessageDTO(message="Logout successful").model_dump())
        clear_auth_cookies(response, self._token_codec, self._profile)
        logger.info(f"auth.logout: ok user_id={user_id} sessions_closed={closed}")
        return response, 200

    def refresh(self) -> tuple[Response, int]:
        ctx = context_from_request()
        try:
            result = self._refresh_use_case.execute(
                extract_refresh_token(ctx), ip_address=ctx.client_ip
            )
        except AppError as exc:
            logger.info(f"auth.refresh: rejected code={exc.code}")
            response, status = handle_app_error(exc)
            clear_auth_cookies(response, self._token_codec, self._profile)
            return response, status
        return self._auth_response(result, "Tokens refreshed successfully", 200)

    def me(self) -> tuple[Response, int]:
        ctx = g.auth
        result = self._profile_use_case.execute(ctx.identity.user_id)
        session = result.active_session
        payload = {
            "ok": True,
            "user": UserProfileDTO.from_user(result.user).model_dump(mode="json", by_alias=True),
            "session": (
                SessionDTO.from_session(session).model_dump(mode="json", by_alias=True)
                if session
                else None
            ),
            "token": {
                "expiresIn": max(0, int(ctx.token_info.expires_at - time.time())),
                "tokenVersion": ctx.token_info.token_version,
            },
        }
        return jsonify(payload), 200

    def health(self) -> tuple[Response, int]:
        return jsonify({"status": "ok", "service": "auth"}), 200

    def as_blueprint(self) -> Blueprint:
        limit = self._rate_limiter
        codec = self._token_codec
        bp = Blueprint("auth", __name__, url_prefix="/api/auth")
        bp.add_url_rule(
            "/register", view_func=rate_limited(limit, "register")(self.register), methods=["POST"]
        )
        bp.add_url_rule(
            "/login", view_func=rate_limited(limit, "login")(self.login), methods=["POST"]
        )
        bp.add_url_rule(
            "/logout", view_func=guarded(optional_auth(codec))(self.logout), methods=["POST"]
        )
        bp.add_url_rule(
            "/refresh",
            view_func=rate_limited(limit, "token_refresh")(self.refresh),
            methods=["POST"],
        )
        bp.add_url_rule("/me", view_func=guarded(authenticate(codec))(self.me), methods=["GET"])
        bp.add_url_rule("/health", view_func=self.health, methods=["GET"])
        return bp
