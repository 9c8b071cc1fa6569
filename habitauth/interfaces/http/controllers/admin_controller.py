# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from flask import Blueprint, Response, g, jsonify

from habitauth.application.services.token_codec import TokenCodec
from habitauth.application.use_cases.users.manage_sessions import PurgeExpiredSessionsUseCase
from habitauth.interfaces.http.middleware.auth import authenticate, authorize, guarded
from habitauth.shared.logging import logger

ADMIN_ROLE = "admin"


class AdminController:
    def __init__(
        self,
        *,
        purge_sessions_use_case: PurgeExpiredSessionsUseCase,
        token_codec: TokenCodec,
    ) -> None:
        self._purge_sessions_use_case = purge_sessions_use_case
        self._token_codec = token_codec

    def purge_sessions(self) -> tuple[Response, int]:
        admin_id = g.auth.identity.user_id
        purged = self._purge_sessions_use_case.execute(requested_by=admin_id)
        logger.info(f"admin.purge_sessions: purged={purged} by user_id={admin_id}")
        return jsonify({"ok": True, "purged": purged}), 200

    def as_blueprint(self) -> Blueprint:
        bp = Blueprint("admin", __name__, url_prefix="/api/admin")
        bp.add_url_rule(
            "/sessions/purge",
            view_func=guarded(authenticate(self._token_codec), authorize(ADMIN_ROLE))(
                self.purge_sessions
            ),
            methods=["POST"],
        )
        return bp
