# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

import math
import threading
import time
from collections import defaultdict, deque
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from functools import wraps

from flask import request

from habitauth.shared.config import RateLimitPolicy
from habitauth.shared.errors import RateLimitError
from habitauth.shared.logging import logger

from .client import client_address


@dataclass
class Bucket:
    timestamps: deque[float] = field(default_factory=deque)


@dataclass(slots=True, frozen=True)
class Reservation:
    operation: str
    key: str
    stamp: float


class RateLimiter:
    """Sliding-window counters keyed by operation and client address."""

    def __init__(
        self,
        policies: Mapping[str, RateLimitPolicy],
        *,
        enabled: bool = True,
        clock: Callable[[], float] = time.monotonic,
        sweep_interval: int = 256,
    ) -> None:
        self._policies = dict(policies)
        self._enabled = enabled
        self._clock = clock
        self._lock = threading.Lock()
        self._buckets: dict[tuple[str, str], Bucket] = defaultdict(Bucket)
        self._sweep_interval = max(1, int(sweep_interval))
        self._calls = 0

    @property
    def tracked_keys(self) -> int:
        with self._lock:
            return len(self._buckets)

    @property
    def enabled(self) -> bool:
        return self._enabled

    def policy(self, operation: str) -> RateLimitPolicy:
        try:
            return self._policies[operation]
        except KeyError:
            raise KeyError(f"no rate limit policy for operation {operation!r}") from None

    def acquire(self, operation: str, key: str) -> Reservation:
        """Reserve a slot or raise ``RateLimitError`` with the seconds to wait."""

        policy = self.policy(operation)
        with self._lock:
            now = self._clock()
            self._calls += 1
            if self._calls % self._sweep_interval == 0:
                self._sweep(now)
            bucket = self._buckets[(operation, key)]
            while bucket.timestamps and (now - bucket.timestamps[0]) >= policy.window_seconds:
                bucket.timestamps.popleft()
            if len(bucket.timestamps) >= policy.max_attempts:
                retry_after = policy.window_seconds - (now - bucket.timestamps[0])
                raise RateLimitError(operation, max(1, math.ceil(retry_after)))
            bucket.timestamps.append(now)
            return Reservation(operation=operation, key=key, stamp=now)

    def _sweep(self, now: float) -> None:
        # Caller holds the lock.
        stale = [
            bucket_key
            for bucket_key, bucket in self._buckets.items()
            if not bucket.timestamps
            or now - bucket.timestamps[-1] >= self._policies[bucket_key[0]].window_seconds
        ]
        for bucket_key in stale:
            del self._buckets[bucket_key]
        if stale:
            logger.debug(f"rate limit: dropped {len(stale)} idle bucket(s)")

    def release(self, reservation: Reservation) -> None:
        with self._lock:
            bucket = self._buckets.get((reservation.operation, reservation.key))
            if bucket is None:
                return
            try:
                bucket.timestamps.remove(reservation.stamp)
            except ValueError:
                return
            if not bucket.timestamps:
                del self._buckets[(reservation.operation, reservation.key)]

    def reset(self) -> None:
        with self._lock:
            self._buckets.clear()


def _status_of(result) -> int:
    if isinstance(result, tuple) and len(result) > 1 and isinstance(result[1], int):
        return int(result[1])
    return int(getattr(result, "status_code", 200))


def rate_limited(limiter: RateLimiter, operation: str):
    """Wrap a Flask view so each call consumes a slot of ``operation``'s window."""

    def decorator(f: Callable):
        if not limiter.enabled:
            return f

        @wraps(f)
        def wrapper(*args, **kwargs):
            policy = limiter.policy(operation)
            key = client_address(request)
            try:
                reservation = limiter.acquire(operation, key)
            except RateLimitError:
                logger.warning(f"Rate limit exceeded: operation={operation} from {key}")
                raise

            result = f(*args, **kwargs)
            if policy.skip_successful_requests and _status_of(result) < 400:
                limiter.release(reservation)
            return result

        return wrapper

    return decorator


__all__ = ["RateLimiter", "Reservation", "rate_limited"]
