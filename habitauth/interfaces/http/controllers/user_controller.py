# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from flask import Blueprint, Response, g, jsonify

from habitauth.application.services.token_codec import TokenCodec
from habitauth.application.use_cases.users.change_password import ChangePasswordUseCase
from habitauth.application.use_cases.users.delete_account import DeleteAccountUseCase
from habitauth.application.use_cases.users.manage_sessions import (
    ListSessionsUseCase,
    LogoutAllDevicesUseCase,
)
from habitauth.interfaces.http.dto.auth import (
    ChangePasswordRequestDTO,
    DeleteAccountRequestDTO,
    MessageDTO,
    SessionDTO,
)
from habitauth.interfaces.http.middleware.auth import (
    authenticate,
    guarded,
    require_fresh_token,
    require_ownership,
)
from habitauth.interfaces.http.requests import clear_auth_cookies, parse_body
from habitauth.shared.config import DeploymentProfile
from habitauth.shared.logging import logger
from habitauth.shared.middleware.rate_limit import RateLimiter, rate_limited


class UserController:
    def __init__(
        self,
        *,
        change_password_use_case: ChangePasswordUseCase,
        delete_account_use_case: DeleteAccountUseCase,
        logout_all_use_case: LogoutAllDevicesUseCase,
        list_sessions_use_case: ListSessionsUseCase,
        token_codec: TokenCodec,
        rate_limiter: RateLimiter,
        profile: DeploymentProfile,
        fresh_token_max_age: int,
    ) -> None:
        self._change_password_use_case = change_password_use_case
        self._delete_account_use_case = delete_account_use_case
        self._logout_all_use_case = logout_all_use_case
        self._list_sessions_use_case = list_sessions_use_case
        self._token_codec = token_codec
        self._rate_limiter = rate_limiter
        self._profile = profile
        self._fresh_token_max_age = fresh_token_max_age

    def change_password(self) -> tuple[Response, int]:
        ctx = g.auth
        dto = parse_body(ChangePasswordRequestDTO)
        self._change_password_use_case.execute(
            ctx.identity.user_id,
            dto.current_password,
            dto.new_password,
            ip_address=ctx.client_ip,
        )
        logger.info(f"user.change_password: ok user_id={ctx.identity.user_id}")
        return jsonify(MessageDTO(message="Password changed successfully").model_dump()), 200

    def logout_all(self) -> tuple[Response, int]:
        ctx = g.auth
        closed = self._logout_all_use_case.execute(ctx.identity.user_id, ip_address=ctx.client_ip)
        payload = MessageDTO(message="Logged out from all devices").model_dump()
        payload["sessionsClosed"] = closed
        response = jsonify(payload)
        clear_auth_cookies(response, self._token_codec, self._profile)
        return response, 200

    def delete_account(self) -> tuple[Response, int]:
        ctx = g.auth
        dto = parse_body(DeleteAccountRequestDTO)
        summary = self._delete_account_use_case.execute(
            ctx.identity.user_id, dto.confirmation, dto.email, ip_address=ctx.client_ip
        )
        payload = MessageDTO(message="Account deleted successfully").model_dump()
        payload["sessionsDeleted"] = summary.sessions_deleted
        response = jsonify(payload)
        clear_auth_cookies(response, self._token_codec, self._profile)
        return response, 200

    def list_sessions(self, user_id: str) -> tuple[Response, int]:
        sessions = self._list_sessions_use_case.execute(user_id)
        return jsonify(
            {
                "ok": True,
                "sessions": [
                    SessionDTO.from_session(session).model_dump(mode="json", by_alias=True)
                    for session in sessions
                ],
            }
        ), 200

    def as_blueprint(self) -> Blueprint:
        limit = self._rate_limiter
        codec = self._token_codec
        bp = Blueprint("user", __name__, url_prefix="/api/user")
        bp.add_url_rule(
            "/change-password",
            view_func=rate_limited(limit, "password_reset")(
                guarded(authenticate(codec))(self.change_password)
            ),
            methods=["POST"],
        )
        bp.add_url_rule(
            "/logout-all",
            view_func=guarded(authenticate(codec))(self.logout_all),
            methods=["POST"],
        )
        bp.add_url_rule(
            "/account",
            view_func=rate_limited(limit, "account_deletion")(
                guarded(
                    authenticate(codec),
                    require_fresh_token(self._fresh_token_max_age),
                )(self.delete_account)
            ),
            methods=["DELETE"],
        )
        bp.add_url_rule(
            "/<user_id>/sessions",
            view_func=guarded(authenticate(codec), require_ownership("user_id"))(
                self.list_sessions
            ),
            methods=["GET"],
        )
        return bp
