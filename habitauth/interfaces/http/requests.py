# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from typing import TypeVar

from flask import Response, request
from pydantic import BaseModel, ValidationError

from habitauth.application.services.token_codec import TokenCodec, TokenPair, cookie_options
from habitauth.domain.users.entities import SessionMeta
from habitauth.interfaces.http.middleware.auth import ACCESS_COOKIE, REFRESH_COOKIE
from habitauth.shared.config import DeploymentProfile
from habitauth.shared.errors.validation import raise_validation_error
from habitauth.shared.middleware.client import client_address

DTO = TypeVar("DTO", bound=BaseModel)


def parse_body(model: type[DTO]) -> DTO:
    try:
        return model.model_validate(request.get_json(silent=True) or {})
    except ValidationError as exc:
        raise_validation_error(exc)


def session_meta() -> SessionMeta:
    return SessionMeta(
        device_info=request.headers.get("User-Agent"),
        ip_address=client_address(request),
    )


def set_auth_cookies(
    response: Response, tokens: TokenPair, codec: TokenCodec, profile: DeploymentProfile
) -> None:
    response.set_cookie(
        ACCESS_COOKIE, tokens.access.token, **cookie_options(profile, codec.access_ttl).as_kwargs()
    )
    response.set_cookie(
        REFRESH_COOKIE,
        tokens.refresh.token,
        **cookie_options(profile, codec.refresh_ttl).as_kwargs(),
    )


def clear_auth_cookies(response: Response, codec: TokenCodec, profile: DeploymentProfile) -> None:
    for name, ttl in ((ACCESS_COOKIE, codec.access_ttl), (REFRESH_COOKIE, codec.refresh_ttl)):
        options = cookie_options(profile, ttl)
        response.delete_cookie(
            name,
            path=options.path,
            secure=options.secure,
            httponly=options.httponly,
            samesite=options.samesite,
        )
