# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from flask import Request


def client_address(req: Request) -> str:
    """Peer address of the request.

    Forwarding headers are honoured only through ``ProxyFix`` in ``create_app``,
    which rewrites ``remote_addr`` for the configured number of trusted hops.
    """

    return req.remote_addr or "unknown"
