from __future__ import annotations

import pytest

from habitauth.application.services.password_hashing import (
    MAX_PASSWORD_LENGTH,
    PasswordViolation,
    WerkzeugPasswordHasher,
    generate_password,
)
from habitauth.domain.users.exceptions import PasswordInputError


@pytest.fixture()
def hasher() -> WerkzeugPasswordHasher:
    return WerkzeugPasswordHasher("pbkdf2:sha256:1000")


def test_hash_and_compare(hasher: WerkzeugPasswordHasher) -> None:
    digest = hasher.hash("Sup3rSecret!x")

    assert digest != "Sup3rSecret!x"
    assert digest.startswith("pbkdf2:sha256:1000$")
    assert hasher.compare("Sup3rSecret!x", digest) is True
    assert hasher.compare("Sup3rSecret!y", digest) is False


def test_hash_is_salted(hasher: WerkzeugPasswordHasher) -> None:
    assert hasher.hash("Sup3rSecret!x") != hasher.hash("Sup3rSecret!x")


@pytest.mark.parametrize(
    ("password", "reason"),
    [("", "empty"), ("Ab1", "too_short"), ("A" * (MAX_PASSWORD_LENGTH + 1), "too_long")],
)
def test_hash_rejects_unusable_input(
    hasher: WerkzeugPasswordHasher, password: str, reason: str
) -> None:
    with pytest.raises(PasswordInputError) as exc_info:
        hasher.hash(password)

    assert exc_info.value.reason == reason


def test_compare_rejects_malformed_digest(hasher: WerkzeugPasswordHasher) -> None:
    with pytest.raises(PasswordInputError):
        hasher.compare("Sup3rSecret!x", "")


def test_compare_empty_password_is_false(hasher: WerkzeugPasswordHasher) -> None:
    assert hasher.compare("", hasher.hash("Sup3rSecret!x")) is False


def test_compare_decoy_never_matches(hasher: WerkzeugPasswordHasher) -> None:
    assert hasher.compare_decoy("anything") is False
    assert hasher.compare_decoy("") is False


def test_needs_rehash_detects_method_change(hasher: WerkzeugPasswordHasher) -> None:
    digest = hasher.hash("Sup3rSecret!x")
    other = WerkzeugPasswordHasher("pbkdf2:sha256:2000")

    assert hasher.needs_rehash(digest) is False
    assert other.needs_rehash(digest) is True


def test_strength_accepts_strong_password(hasher: WerkzeugPasswordHasher) -> None:
    result = hasher.strength("Sup3rSecret!x")

    assert result.valid is True
    assert result.violations == ()


def test_strength_reports_every_violation(hasher: WerkzeugPasswordHasher) -> None:
    result = hasher.strength("aaa")

    assert result.valid is False
    assert PasswordViolation.TOO_SHORT in result.violations
    assert PasswordViolation.MISSING_UPPERCASE in result.violations
    assert PasswordViolation.MISSING_DIGIT in result.violations
    assert PasswordViolation.REPEATED_CHARACTERS in result.violations
    assert len(result.messages) == len(result.violations)


def test_strength_flags_common_and_sequential(hasher: WerkzeugPasswordHasher) -> None:
    assert PasswordViolation.COMMON_PASSWORD in hasher.strength("Password123").violations
    assert PasswordViolation.SEQUENTIAL_CHARACTERS in hasher.strength("Qwerty12X").violations


def test_special_character_rule_is_optional() -> None:
    relaxed = WerkzeugPasswordHasher("pbkdf2:sha256:1000")
    strict = WerkzeugPasswordHasher("pbkdf2:sha256:1000", require_special=True)

    assert relaxed.strength("Sup3rSecretx").valid is True
    assert strict.strength("Sup3rSecretx").violations == (PasswordViolation.MISSING_SPECIAL,)


def test_generate_password_satisfies_policy(hasher: WerkzeugPasswordHasher) -> None:
    password = generate_password(20)

    assert len(password) == 20
    assert hasher.strength(password).valid is True
