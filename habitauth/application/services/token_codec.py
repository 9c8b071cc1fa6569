# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

"""Signed access/refresh token issuance and verification."""

from __future__ import annotations

import time
import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any

import jwt

from habitauth.domain.exceptions import InvariantViolation
from habitauth.domain.users.entities import TokenClaims, TokenKind
from habitauth.shared.config import AuthConfig, DeploymentProfile
from habitauth.shared.logging import logger

ALGORITHM = "HS256"
_REQUIRED_CLAIMS = ["sub", "type", "jti", "iss", "iat", "exp"]
# Time claims are checked against the codec clock, not the wall clock.
_DECODE_OPTIONS = {
    "require": _REQUIRED_CLAIMS,
    "verify_exp": False,
    "verify_nbf": False,
    "verify_iat": False,
}


class TokenErrorKind(str, Enum):
    NO_TOKEN = "no_token"
    EXPIRED = "expired"
    INVALID = "invalid"
    WRONG_TYPE = "wrong_type"
    NOT_YET_VALID = "not_yet_valid"


@dataclass(slots=True, frozen=True)
class Verified:
    claims: TokenClaims

    @property
    def ok(self) -> bool:
        return True


@dataclass(slots=True, frozen=True)
class Rejected:
    kind: TokenErrorKind

    @property
    def ok(self) -> bool:
        return False


VerificationResult = Verified | Rejected


@dataclass(slots=True, frozen=True)
class IssuedToken:
    token: str
    jti: str
    expires_at: datetime
    expires_in: int


@dataclass(slots=True, frozen=True)
class TokenPair:
    access: IssuedToken
    refresh: IssuedToken


@dataclass(slots=True, frozen=True)
class CookieOptions:
    max_age: int
    secure: bool
    samesite: str
    httponly: bool = True
    path: str = "/"

    def as_kwargs(self) -> dict[str, Any]:
        return {
            "max_age": self.max_age,
            "secure": self.secure,
            "samesite": self.samesite,
            "httponly": self.httponly,
            "path": self.path,
        }


def cookie_options(profile: DeploymentProfile, max_age: int) -> CookieOptions:
    production = profile is DeploymentProfile.PRODUCTION
    return CookieOptions(
        max_age=int(max_age),
        secure=production,
        samesite="Strict" if production else "Lax",
    )


def _require_subject(claims: Mapping[str, Any]) -> str:
    subject = claims.get("subject_id")
    if subject is None or subject == "":
        raise InvariantViolation("subject id is required", field="subject_id")
    return str(subject)


def _is_timestamp(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _claims_from_payload(payload: Mapping[str, Any]) -> TokenClaims:
    roles = payload.get("roles") or ()
    version = payload.get("token_version")
    return TokenClaims(
        subject_id=str(payload["sub"]),
        kind=TokenKind(payload["type"]),
        jti=str(payload["jti"]),
        issuer=str(payload["iss"]),
        issued_at=int(payload["iat"]),
        expires_at=int(payload["exp"]),
        token_version=int(version) if isinstance(version, (int, float)) else None,
        email=payload.get("email"),
        roles=tuple(str(role) for role in roles),
    )


class TokenCodec:
    """Issues and verifies HS256 tokens. Issuance and expiry checks share ``clock``."""

    def __init__(self, config: AuthConfig, *, clock: Callable[[], float] = time.time) -> None:
        self._config = config
        self._clock = clock

    @property
    def access_ttl(self) -> int:
        return self._config.access_ttl

    @property
    def refresh_ttl(self) -> int:
        return self._config.refresh_ttl

    def _issue(
        self, payload: dict[str, Any], kind: TokenKind, secret: str, lifetime: int
    ) -> IssuedToken:
        now = int(self._clock())
        jti = uuid.uuid4().hex
        payload.update(
            {
                "type": kind.value,
                "jti": jti,
                "iss": self._config.issuer,
                "iat": now,
                "exp": now + int(lifetime),
            }
        )
        token = jwt.encode(payload, secret, algorithm=ALGORITHM)
        return IssuedToken(
            token=token,
            jti=jti,
            expires_at=datetime.fromtimestamp(now + int(lifetime), UTC),
            expires_in=int(lifetime),
        )

    def issue_access(self, claims: Mapping[str, Any], lifetime: int | None = None) -> IssuedToken:
        subject = _require_subject(claims)
        version = claims.get("token_version")
        if isinstance(version, bool) or not isinstance(version, (int, float)):
            raise InvariantViolation("token version must be a number", field="token_version")
        payload: dict[str, Any] = {
            "sub": subject,
            "email": claims.get("email"),
            "roles": list(claims.get("roles") or ()),
            "token_version": version,
        }
        return self._issue(
            payload,
            TokenKind.ACCESS,
            self._config.access_secret,
            self._config.access_ttl if lifetime is None else lifetime,
        )

    def issue_refresh(self, claims: Mapping[str, Any], lifetime: int | None = None) -> IssuedToken:
        payload: dict[str, Any] = {"sub": _require_subject(claims)}
        return self._issue(
            payload,
            TokenKind.REFRESH,
            self._config.refresh_secret,
            self._config.refresh_ttl if lifetime is None else lifetime,
        )

    def issue_pair(self, claims: Mapping[str, Any]) -> TokenPair:
        return TokenPair(access=self.issue_access(claims), refresh=self.issue_refresh(claims))

    def _verify(self, token: str | None, kind: TokenKind, secret: str) -> VerificationResult:
        if not token or not isinstance(token, str):
            return Rejected(TokenErrorKind.NO_TOKEN)
        try:
            payload = jwt.decode(
                token,
                secret,
                algorithms=[ALGORITHM],
                issuer=self._config.issuer,
                options=_DECODE_OPTIONS,
            )
        except jwt.InvalidTokenError as exc:
            logger.debug(f"token: {kind.value} rejected: {type(exc).__name__}")
            return Rejected(TokenErrorKind.INVALID)

        now = self._clock()
        exp, iat, nbf = payload.get("exp"), payload.get("iat"), payload.get("nbf")
        if not all(_is_timestamp(value) for value in (exp, iat)) or (
            nbf is not None and not _is_timestamp(nbf)
        ):
            return Rejected(TokenErrorKind.INVALID)
        if exp <= now:
            return Rejected(TokenErrorKind.EXPIRED)
        if nbf is not None and nbf > now:
            return Rejected(TokenErrorKind.NOT_YET_VALID)

        if payload.get("type") != kind.value:
            return Rejected(TokenErrorKind.WRONG_TYPE)
        try:
            return Verified(_claims_from_payload(payload))
        except (KeyError, TypeError, ValueError):
            return Rejected(TokenErrorKind.INVALID)

    def verify_access(self, token: str | None) -> VerificationResult:
        return self._verify(token, TokenKind.ACCESS, self._config.access_secret)

    def verify_refresh(self, token: str | None) -> VerificationResult:
        return self._verify(token, TokenKind.REFRESH, self._config.refresh_secret)

    @staticmethod
    def decode_unsafe(token: str | None) -> dict[str, Any] | None:
        """Read the payload without checking the signature. Never use for access decisions."""

        if not token or not isinstance(token, str):
            return None
        try:
            return jwt.decode(token, options={"verify_signature": False})
        except jwt.InvalidTokenError:
            return None

    def seconds_remaining(self, token: str | None) -> int:
        payload = self.decode_unsafe(token)
        if not payload or not isinstance(payload.get("exp"), (int, float)):
            return 0
        return max(0, int(payload["exp"] - self._clock()))

    def is_expired(self, token: str | None) -> bool:
        payload = self.decode_unsafe(token)
        if not payload or not isinstance(payload.get("exp"), (int, float)):
            return True
        return payload["exp"] <= self._clock()
