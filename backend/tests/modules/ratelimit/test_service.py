"""Tests for the fixed-window rate limiter."""

import pytest

from modules.ratelimit import RateLimiter, RateLimitExceededError


class FakeClock:
    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


class TestPerCallerWindow:
    def test_admits_up_to_limit(self, clock):
        limiter = RateLimiter(per_caller_limit=3, global_limit=100, window_seconds=60, clock=clock)

        decisions = [limiter.admit("ip:1.2.3.4") for _ in range(3)]

        assert all(d.allowed for d in decisions)
        assert [d.remaining for d in decisions] == [2, 1, 0]

    def test_rejects_over_limit_with_retry_after(self, clock):
        limiter = RateLimiter(per_caller_limit=3, global_limit=100, window_seconds=60, clock=clock)
        for _ in range(3):
            limiter.admit("ip:1.2.3.4")
        clock.now += 10

        decision = limiter.admit("ip:1.2.3.4")

        assert not decision.allowed
        assert decision.scope == "caller"
        assert 0 < decision.retry_after <= 60
        assert decision.retry_after == 50
        assert decision.headers()["Retry-After"] == "50"

    def test_window_resets(self, clock):
        limiter = RateLimiter(per_caller_limit=1, global_limit=100, window_seconds=60, clock=clock)
        limiter.admit("user:1")
        assert not limiter.admit("user:1").allowed

        clock.now += 60

        assert limiter.admit("user:1").allowed

    def test_callers_are_independent(self, clock):
        limiter = RateLimiter(per_caller_limit=1, global_limit=100, window_seconds=60, clock=clock)
        limiter.admit("user:1")

        assert limiter.admit("user:2").allowed

    def test_rejected_request_is_not_counted(self, clock):
        limiter = RateLimiter(per_caller_limit=1, global_limit=100, window_seconds=60, clock=clock)
        limiter.admit("user:1")
        limiter.admit("user:1")

        decision = limiter.admit("user:2")
        assert decision.global_remaining == 98


class TestGlobalWindow:
    def test_global_checked_first(self, clock):
        limiter = RateLimiter(per_caller_limit=10, global_limit=2, window_seconds=60, clock=clock)
        limiter.admit("user:1")
        limiter.admit("user:2")

        decision = limiter.admit("user:3")

        assert not decision.allowed
        assert decision.scope == "global"
        # The caller's own budget is untouched
        assert decision.remaining == 10

    def test_error_message_names_scope(self, clock):
        limiter = RateLimiter(per_caller_limit=10, global_limit=1, window_seconds=60, clock=clock)
        limiter.admit("user:1")
        error = RateLimitExceededError(limiter.admit("user:2"))

        assert error.status_code == 429
        assert error.code == "RATE_LIMITED"
        assert error.message.startswith("Server is busy")
        assert error.details["retryAfter"] == 60
        assert error.headers["Retry-After"] == "60"


class TestHeaders:
    def test_allowed_headers(self, clock):
        limiter = RateLimiter(per_caller_limit=5, global_limit=50, window_seconds=60, clock=clock)

        headers = limiter.admit("user:1").headers()

        assert headers == {
            "X-RateLimit-Limit": "5",
            "X-RateLimit-Remaining": "4",
            "X-RateLimit-Reset": "1060",
            "X-RateLimit-Global-Remaining": "49",
            "X-RateLimit-Global-Reset": "1060",
        }


class TestSweep:
    def test_drops_expired_caller_windows(self, clock):
        limiter = RateLimiter(per_caller_limit=5, global_limit=50, window_seconds=60, clock=clock)
        limiter.admit("user:1")
        clock.now += 30
        limiter.admit("user:2")
        clock.now += 40

        assert limiter.sweep() == 1
        assert len(limiter) == 1

    def test_reset(self, clock):
        limiter = RateLimiter(per_caller_limit=1, global_limit=50, window_seconds=60, clock=clock)
        limiter.admit("user:1")
        limiter.reset()

        assert limiter.admit("user:1").allowed
