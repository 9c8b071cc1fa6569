from __future__ import annotations

import pytest
from flask import Flask, jsonify

from habitauth.shared.config import RateLimitPolicy
from habitauth.shared.errors import RateLimitError, register_error_handler
from habitauth.shared.middleware.rate_limit import RateLimiter, rate_limited


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def limiter(clock: FakeClock) -> RateLimiter:
    return RateLimiter(
        {
            "login": RateLimitPolicy(
                window_seconds=60, max_attempts=2, skip_successful_requests=True
            ),
            "token_refresh": RateLimitPolicy(window_seconds=60, max_attempts=2),
        },
        clock=clock,
    )


def test_acquire_blocks_after_max_attempts(limiter: RateLimiter, clock: FakeClock) -> None:
    limiter.acquire("login", "1.1.1.1")
    clock.now += 10
    limiter.acquire("login", "1.1.1.1")

    with pytest.raises(RateLimitError) as exc_info:
        limiter.acquire("login", "1.1.1.1")

    assert exc_info.value.retry_after == 50
    limiter.acquire("login", "2.2.2.2")


def test_window_slides(limiter: RateLimiter, clock: FakeClock) -> None:
    limiter.acquire("login", "ip")
    limiter.acquire("login", "ip")
    clock.now += 60

    limiter.acquire("login", "ip")


def test_release_frees_slot(limiter: RateLimiter) -> None:
    first = limiter.acquire("login", "ip")
    limiter.acquire("login", "ip")
    limiter.release(first)

    limiter.acquire("login", "ip")


def test_unknown_operation_raises(limiter: RateLimiter) -> None:
    with pytest.raises(KeyError):
        limiter.acquire("unknown", "ip")


def _app(limiter: RateLimiter) -> Flask:
    app = Flask(__name__)
    register_error_handler(app)

    @app.post("/login/<outcome>")
    @rate_limited(limiter, "login")
    def login(outcome: str):
        return jsonify({"outcome": outcome}), 200 if outcome == "ok" else 401

    @app.post("/refresh")
    @rate_limited(limiter, "token_refresh")
    def refresh():
        return jsonify({"ok": True}), 200

    return app


def test_successful_requests_are_not_counted_when_skipped(limiter: RateLimiter) -> None:
    client = _app(limiter).test_client()

    for _ in range(5):
        assert client.post("/login/ok").status_code == 200

    assert client.post("/login/fail").status_code == 401
    assert client.post("/login/fail").status_code == 401
    blocked = client.post("/login/ok")

    assert blocked.status_code == 429
    assert blocked.get_json()["error"] == "RATE_LIMIT_EXCEEDED"
    assert int(blocked.headers["Retry-After"]) >= 1


def test_every_request_counts_without_skip(limiter: RateLimiter) -> None:
    client = _app(limiter).test_client()

    assert client.post("/refresh").status_code == 200
    assert client.post("/refresh").status_code == 200
    assert client.post("/refresh").status_code == 429


def test_forwarded_header_does_not_reset_the_budget(limiter: RateLimiter) -> None:
    client = _app(limiter).test_client()

    assert client.post("/refresh", headers={"X-Forwarded-For": "10.0.0.1"}).status_code == 200
    assert client.post("/refresh", headers={"X-Forwarded-For": "10.0.0.2"}).status_code == 200

    blocked = client.post("/refresh", headers={"X-Forwarded-For": "10.0.0.3"})
    assert blocked.status_code == 429


def test_idle_buckets_are_swept(clock: FakeClock) -> None:
    limiter = RateLimiter(
        {"login": RateLimitPolicy(window_seconds=60, max_attempts=1)}, clock=clock, sweep_interval=10
    )
    for i in range(9):
        limiter.acquire("login", f"10.0.0.{i}")
    assert limiter.tracked_keys == 9

    clock.now += 61
    limiter.acquire("login", "10.0.1.1")

    assert limiter.tracked_keys == 1


def test_sweep_keeps_buckets_inside_their_window(clock: FakeClock) -> None:
    limiter = RateLimiter(
        {"login": RateLimitPolicy(window_seconds=60, max_attempts=1)}, clock=clock, sweep_interval=2
    )
    limiter.acquire("login", "10.0.0.1")
    clock.now += 30
    limiter.acquire("login", "10.0.0.2")

    assert limiter.tracked_keys == 2
    with pytest.raises(RateLimitError):
        limiter.acquire("login", "10.0.0.1")


def test_disabled_limiter_passes_through() -> None:
    limiter = RateLimiter(
        {"token_refresh": RateLimitPolicy(window_seconds=60, max_attempts=1)}, enabled=False
    )
    client = _app(limiter).test_client()

    assert all(client.post("/refresh").status_code == 200 for _ in range(3))
