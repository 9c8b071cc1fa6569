# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

"""Composable request guards.

Each stage is a plain function ``RequestContext -> RequestContext | Denied``.
``run_chain`` applies stages in order and stops at the first denial; ``guarded``
adapts a chain to a Flask view and exposes the resulting context as ``g.auth``.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field, replace
from functools import wraps
from http import HTTPStatus
from typing import Any

from flask import g, request

from habitauth.application.services.token_codec import (
    Rejected,
    TokenCodec,
    TokenErrorKind,
)
from habitauth.domain.users.entities import TokenClaims
from habitauth.shared.errors import AppError
from habitauth.shared.logging import logger
from habitauth.shared.middleware.client import client_address

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"


@dataclass(slots=True, frozen=True)
class Identity:
    user_id: str
    email: str | None
    roles: tuple[str, ...] = ()


@dataclass(slots=True, frozen=True)
class TokenInfo:
    jti: str
    issued_at: int
    expires_at: int
    token_version: int | None = None


@dataclass(slots=True, frozen=True)
class RequestContext:
    headers: Mapping[str, str] = field(default_factory=dict)
    cookies: Mapping[str, str] = field(default_factory=dict)
    query: Mapping[str, str] = field(default_factory=dict)
    route_params: Mapping[str, Any] = field(default_factory=dict)
    body: Mapping[str, Any] = field(default_factory=dict)
    client_ip: str | None = None
    identity: Identity | None = None
    token_info: TokenInfo | None = None
    authenticated: bool = False

    def header(self, name: str) -> str | None:
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return None


@dataclass(slots=True, frozen=True)
class Denied:
    status: HTTPStatus
    code: str
    message: str

    def to_error(self) -> AppError:
        return AppError(code=self.code, status=self.status, message=self.message)


Stage = Callable[[RequestContext], "RequestContext | Denied"]


def run_chain(ctx: RequestContext, stages: Iterable[Stage]) -> RequestContext | Denied:
    for stage in stages:
        outcome = stage(ctx)
        if isinstance(outcome, Denied):
            return outcome
        ctx = outcome
    return ctx


def extract_token(ctx: RequestContext, *, allow_query: bool = True) -> str | None:
    header = ctx.header("Authorization") or ""
    if header.startswith("Bearer "):
        token = header[7:].strip()
        if token:
            return token
    cookie = ctx.cookies.get(ACCESS_COOKIE)
    if cookie:
        return cookie
    if allow_query:
        return ctx.query.get("token") or None
    return None


def extract_refresh_token(ctx: RequestContext) -> str | None:
    cookie = ctx.cookies.get(REFRESH_COOKIE)
    if cookie:
        return cookie
    candidate = ctx.body.get("refreshToken")
    if isinstance(candidate, str) and candidate:
        return candidate
    return None


def _with_claims(ctx: RequestContext, claims: TokenClaims) -> RequestContext:
    return replace(
        ctx,
        identity=Identity(user_id=claims.subject_id, email=claims.email, roles=claims.roles),
        token_info=TokenInfo(
            jti=claims.jti,
            issued_at=claims.issued_at,
            expires_at=claims.expires_at,
            token_version=claims.token_version,
        ),
        authenticated=True,
    )


def authenticate(codec: TokenCodec) -> Stage:
    def stage(ctx: RequestContext) -> RequestContext | Denied:
        token = extract_token(ctx)
        if not token:
            return Denied(
                HTTPStatus.UNAUTHORIZED, "NO_TOKEN", "Access token is required for this operation"
            )
        result = codec.verify_access(token)
        if isinstance(result, Rejected):
            if result.kind is TokenErrorKind.EXPIRED:
                return Denied(HTTPStatus.UNAUTHORIZED, "TOKEN_EXPIRED", "Access token has expired")
            return Denied(HTTPStatus.UNAUTHORIZED, "INVALID_TOKEN", "Invalid access token")
        return _with_claims(ctx, result.claims)

    return stage


def optional_auth(codec: TokenCodec) -> Stage:
    def stage(ctx: RequestContext) -> RequestContext | Denied:
        token = extract_token(ctx)
        if token:
            result = codec.verify_access(token)
            if not isinstance(result, Rejected):
                return _with_claims(ctx, result.claims)
        return replace(ctx, identity=None, token_info=None, authenticated=False)

    return stage


def authorize(*roles: str) -> Stage:
    def stage(ctx: RequestContext) -> RequestContext | Denied:
        if ctx.identity is None:
            return Denied(
                HTTPStatus.UNAUTHORIZED,
                "NOT_AUTHENTICATED",
                "User must be authenticated to access this resource",
            )
        if not roles or set(roles) & set(ctx.identity.roles):
            return ctx
        return Denied(
            HTTPStatus.FORBIDDEN,
            "INSUFFICIENT_PERMISSIONS",
            f"Required role(s): {', '.join(roles)}",
        )

    return stage


def require_fresh_token(
    max_age_seconds: int = 300, clock: Callable[[], float] = time.time
) -> Stage:
    def stage(ctx: RequestContext) -> RequestContext | Denied:
        if ctx.token_info is None:
            return Denied(
                HTTPStatus.UNAUTHORIZED,
                "NOT_AUTHENTICATED",
                "Authentication required for this operation",
            )
        if clock() - ctx.token_info.issued_at > max_age_seconds:
            return Denied(
                HTTPStatus.UNAUTHORIZED,
                "TOKEN_TOO_OLD",
                f"Token must be less than {max_age_seconds} seconds old for this operation",
            )
        return ctx

    return stage


def require_ownership(param: str = "user_id") -> Stage:
    def stage(ctx: RequestContext) -> RequestContext | Denied:
        if ctx.identity is None:
            return Denied(
                HTTPStatus.UNAUTHORIZED,
                "NOT_AUTHENTICATED",
                "Authentication required for this operation",
            )
        value = ctx.route_params.get(param) or ctx.body.get(param) or ctx.query.get(param)
        if value is None or value == "":
            return Denied(HTTPStatus.BAD_REQUEST, "MISSING_RESOURCE_ID", f"Resource {param} is required")
        if str(value) != ctx.identity.user_id:
            return Denied(
                HTTPStatus.FORBIDDEN, "NOT_RESOURCE_OWNER", "You can only access your own resources"
            )
        return ctx

    return stage


def context_from_request(route_params: Mapping[str, Any] | None = None) -> RequestContext:
    body = request.get_json(silent=True)
    return RequestContext(
        headers=dict(request.headers),
        cookies=request.cookies.to_dict(),
        query=request.args.to_dict(),
        route_params=dict(route_params or {}),
        body=body if isinstance(body, dict) else {},
        client_ip=client_address(request),
    )


def guarded(*stages: Stage):
    """Run ``stages`` before the view; denials surface as ``AppError``."""

    def decorator(view: Callable):
        @wraps(view)
        def wrapper(*args, **kwargs):
            outcome = run_chain(context_from_request(kwargs), stages)
            if isinstance(outcome, Denied):
                logger.info(
                    f"auth.guard: denied {request.method} {request.path} "
                    f"code={outcome.code} status={int(outcome.status)}"
                )
                raise outcome.to_error()
            g.auth = outcome
            return view(*args, **kwargs)

        return wrapper

    return decorator


__all__ = [
    "ACCESS_COOKIE",
    "REFRESH_COOKIE",
    "Denied",
    "Identity",
    "RequestContext",
    "Stage",
    "TokenInfo",
    "authenticate",
    "authorize",
    "context_from_request",
    "extract_refresh_token",
    "extract_token",
    "guarded",
    "optional_auth",
    "require_fresh_token",
    "require_ownership",
    "run_chain",
]
