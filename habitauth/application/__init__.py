# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from .interfaces import AuditAction, AuditTrail, Clock

__all__ = [
    "AuditAction",
    "AuditTrail",
    "Clock",
]
