# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

import re
from typing import Any

SENSITIVE_PATTERNS = [
    # Signed tokens (header.payload.signature)
    (r"\beyJ[a-zA-Z0-9_\-]*\.[a-zA-Z0-9_\-]+\.[a-zA-Z0-9_\-]+", r"***JWT***"),
    (r"(bearer\s+)([a-zA-Z0-9_\-\.]{20,})", r"\1***REDACTED***", re.IGNORECASE),
    (
        r"((?:access|refresh)[_-]?token\s*[:=]\s*['\"]?)([a-zA-Z0-9_\-\.]{20,})(['\"]?)",
        r"\1***REDACTED***\3",
        re.IGNORECASE,
    ),
    (r"(token\s*[:=]\s*['\"]?)([a-zA-Z0-9_\-\.]{20,})(['\"]?)", r"\1***REDACTED***\3"),
    (
        r"((?:jwt[_-]?)?(?:access|refresh)?[_-]?secret\s*[:=]\s*['\"]?)([^\s'\"]{8,})(['\"]?)",
        r"\1***REDACTED***\3",
        re.IGNORECASE,
    ),
    # Cookies and authorization headers
    (r"(cookie\s*:\s*)([^\r\n]+)", r"\1***REDACTED***", re.IGNORECASE),
    (r"(authorization\s*:\s*['\"]?)([^'\"]{10,})(['\"]?)", r"\1***REDACTED***\3", re.IGNORECASE),
    # Passwords and password digests
    (
        r"((?:current|new)?[_-]?password\s*[:=]\s*['\"]?)([^'\"\s,}]{1,})(['\"]?)",
        r"\1***REDACTED***\3",
        re.IGNORECASE,
    ),
    (r"\b(?:scrypt|pbkdf2):[^\s'\"]+\$[^\s'\"]+\$[0-9a-f]+", r"***HASH***"),
    # Database URLs with credentials
    (r"(postgres(?:ql)?|mysql|mariadb)(\+\w+)?://([^:/]+):([^@]+)@", r"\1\2://\3:***REDACTED***@"),
    # Email addresses (partial masking)
    (r"([a-zA-Z0-9._%+-]+)@([a-zA-Z0-9.-]+\.[a-zA-Z]{2,})", r"***@\2"),
]

_COMPILED = [
    re.compile(entry[0], entry[2] if len(entry) == 3 else 0) for entry in SENSITIVE_PATTERNS
]
_REPLACEMENTS = [entry[1] for entry in SENSITIVE_PATTERNS]


def sanitize_message(message: str) -> str:
    sanitized = message
    for pattern, replacement in zip(_COMPILED, _REPLACEMENTS):
        sanitized = pattern.sub(replacement, sanitized)
    return sanitized


def sanitize_record(record: dict[str, Any]) -> bool:
    if "message" in record:
        record["message"] = sanitize_message(record["message"])
    return True
