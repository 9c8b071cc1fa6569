# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

"""Password hashing strategies."""

from __future__ import annotations

import re
import secrets
import string
from dataclasses import dataclass
from enum import Enum

from werkzeug.security import check_password_hash, generate_password_hash

from habitauth.domain.users.exceptions import PasswordInputError
from habitauth.domain.users.repositories import PasswordHasher

MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_LENGTH = 128

COMMON_PASSWORDS = frozenset(
    {
        "password",
        "123456",
        "123456789",
        "qwerty",
        "abc123",
        "password123",
        "admin",
        "letmein",
        "welcome",
        "monkey",
    }
)

_SEQUENTIAL_RE = re.compile(r"123456|abcdef|qwerty", re.IGNORECASE)
_REPEATED_RE = re.compile(r"(.)\1{2,}")
_SPECIAL_CHARS = "!@#$%^&*()_+-=[]{};':\"\\|,.<>/?"


class PasswordViolation(str, Enum):
    TOO_SHORT = "too_short"
    TOO_LONG = "too_long"
    MISSING_LOWERCASE = "missing_lowercase"
    MISSING_UPPERCASE = "missing_uppercase"
    MISSING_DIGIT = "missing_digit"
    MISSING_SPECIAL = "missing_special"
    COMMON_PASSWORD = "common_password"
    SEQUENTIAL_CHARACTERS = "sequential_characters"
    REPEATED_CHARACTERS = "repeated_characters"

    @property
    def message(self) -> str:
        return _VIOLATION_MESSAGES[self]


_VIOLATION_MESSAGES = {
    PasswordViolation.TOO_SHORT: f"Password must be at least {MIN_PASSWORD_LENGTH} characters long",
    PasswordViolation.TOO_LONG: f"Password must be no more than {MAX_PASSWORD_LENGTH} characters long",
    PasswordViolation.MISSING_LOWERCASE: "Password must contain at least one lowercase letter",
    PasswordViolation.MISSING_UPPERCASE: "Password must contain at least one uppercase letter",
    PasswordViolation.MISSING_DIGIT: "Password must contain at least one number",
    PasswordViolation.MISSING_SPECIAL: "Password must contain at least one special character",
    PasswordViolation.COMMON_PASSWORD: "Password is too common. Please choose a more unique password",
    PasswordViolation.SEQUENTIAL_CHARACTERS: "Password should not contain sequential characters",
    PasswordViolation.REPEATED_CHARACTERS: (
        "Password should not contain more than 2 repeated characters in a row"
    ),
}


@dataclass(slots=True, frozen=True)
class PasswordStrength:
    valid: bool
    violations: tuple[PasswordViolation, ...] = ()

    @property
    def messages(self) -> list[str]:
        return [violation.message for violation in self.violations]


def _method_of(digest: str) -> str:
    return digest.split("$", 1)[0]


class WerkzeugPasswordHasher(PasswordHasher):
    def __init__(self, method: str = "scrypt", *, require_special: bool = False) -> None:
        self._method = method
        self._require_special = require_special
        # Decoy target for unknown-user logins, also pins the normalized method string.
        self._decoy_digest = generate_password_hash(secrets.token_urlsafe(24), method=method)
        self._normalized_method = _method_of(self._decoy_digest)

    def hash(self, password: str) -> str:
        if not isinstance(password, str) or not password:
            raise PasswordInputError("empty")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise PasswordInputError("too_short")
        if len(password) > MAX_PASSWORD_LENGTH:
            raise PasswordInputError("too_long")
        return str(generate_password_hash(password, method=self._method))

    def compare(self, password: str, hashed: str) -> bool:
        if not isinstance(hashed, str) or not hashed:
            raise PasswordInputError("malformed_digest")
        if not isinstance(password, str) or not password:
            return False
        return bool(check_password_hash(hashed, password))

    def compare_decoy(self, password: str) -> bool:
        check_password_hash(self._decoy_digest, password if isinstance(password, str) else "")
        return False

    def needs_rehash(self, hashed: str) -> bool:
        return _method_of(hashed) != self._normalized_method

    def strength(self, password: str) -> PasswordStrength:
        if not isinstance(password, str) or not password:
            return PasswordStrength(valid=False, violations=(PasswordViolation.TOO_SHORT,))

        violations: list[PasswordViolation] = []
        if len(password) < MIN_PASSWORD_LENGTH:
            violations.append(PasswordViolation.TOO_SHORT)
        if len(password) > MAX_PASSWORD_LENGTH:
            violations.append(PasswordViolation.TOO_LONG)
            return PasswordStrength(valid=False, violations=tuple(violations))

        if not any(ch.islower() for ch in password):
            violations.append(PasswordViolation.MISSING_LOWERCASE)
        if not any(ch.isupper() for ch in password):
            violations.append(PasswordViolation.MISSING_UPPERCASE)
        if not any(ch.isdigit() for ch in password):
            violations.append(PasswordViolation.MISSING_DIGIT)
        if self._require_special and not any(ch in _SPECIAL_CHARS for ch in password):
            violations.append(PasswordViolation.MISSING_SPECIAL)
        if password.lower() in COMMON_PASSWORDS:
            violations.append(PasswordViolation.COMMON_PASSWORD)
        if _SEQUENTIAL_RE.search(password):
            violations.append(PasswordViolation.SEQUENTIAL_CHARACTERS)
        if _REPEATED_RE.search(password):
            violations.append(PasswordViolation.REPEATED_CHARACTERS)

        return PasswordStrength(valid=not violations, violations=tuple(violations))


def generate_password(length: int = 16) -> str:
    """Random password that satisfies the default strength policy."""

    length = max(length, MIN_PASSWORD_LENGTH)
    alphabet = string.ascii_letters + string.digits + "!@#$%^&*"
    while True:
        candidate = [
            secrets.choice(string.ascii_lowercase),
            secrets.choice(string.ascii_uppercase),
            secrets.choice(string.digits),
            secrets.choice("!@#$%^&*"),
        ]
        candidate += [secrets.choice(alphabet) for _ in range(length - len(candidate))]
        secrets.SystemRandom().shuffle(candidate)
        password = "".join(candidate)
        if not _SEQUENTIAL_RE.search(password) and not _REPEATED_RE.search(password):
            return password
