# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

import re

MAX_EMAIL_LENGTH = 254

_EMAIL_RE = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+@"
    r"[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)+$"
)

DISPOSABLE_DOMAINS = frozenset(
    {
        "10minutemail.com",
        "tempmail.org",
        "guerrillamail.com",
        "mailinator.com",
        "yopmail.com",
        "throwaway.email",
    }
)


def normalize_email(value: str) -> str:
    return value.strip().lower()


def email_problem(value: object) -> str | None:
    """Return why ``value`` is not an acceptable address, or ``None``."""

    if not isinstance(value, str) or not value.strip():
        return "Email is required"
    email = normalize_email(value)
    if len(email) > MAX_EMAIL_LENGTH:
        return f"Email is too long (maximum {MAX_EMAIL_LENGTH} characters)"
    if not _EMAIL_RE.match(email) or ".." in email:
        return "Invalid email format"
    if email.rsplit("@", 1)[1] in DISPOSABLE_DOMAINS:
        return "Disposable email addresses are not allowed"
    return None


def is_valid_email(value: object) -> bool:
    return email_problem(value) is None
