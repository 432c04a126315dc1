from __future__ import annotations

import pytest

from deepreport.errors import RateLimitedError
from deepreport.services.rate_limiter import RateLimiter


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_limit_applies_per_operation_and_key():
    clock = FakeClock()
    limiter = RateLimiter({"search": 2}, clock=clock)

    limiter.check("search", "s1")
    limiter.check("search", "s1")
    with pytest.raises(RateLimitedError):
        limiter.check("search", "s1")

    limiter.check("search", "s2")
    limiter.check("report_generation", "s1")


def test_window_slides():
    clock = FakeClock()
    limiter = RateLimiter({"search": 1}, clock=clock)

    limiter.check("search")
    clock.now += 59
    with pytest.raises(RateLimitedError, match="Try again in 2 seconds"):
        limiter.check("search")
    clock.now += 1
    limiter.check("search")


def test_disabled_limiter_allows_everything():
    limiter = RateLimiter({"search": 1}, enabled=False)
    for _ in range(5):
        limiter.check("search")
