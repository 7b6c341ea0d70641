from __future__ import annotations

import pytest

from regmirror.sources.rate_limit import (
    NullRateLimiter,
    RateLimit,
    TokenBucketRateLimiter,
    limiter_for_pause,
)


class FakeClock:
    def __init__(self):
        self.t = 0.0
        self.sleeps: list[float] = []

    def now(self) -> float:
        return self.t

    def sleep(self, dt: float) -> None:
        self.sleeps.append(dt)
        self.t += dt


def test_rate_limiter_allows_burst():
    c = FakeClock()
    rl = TokenBucketRateLimiter(RateLimit(rps=1.0, burst=2), now=c.now, sleep=c.sleep)

    rl.acquire()
    rl.acquire()
    assert c.sleeps == []  # within burst, no waiting


def test_rate_limiter_waits_after_burst():
    c = FakeClock()
    rl = TokenBucketRateLimiter(RateLimit(rps=1.0, burst=1), now=c.now, sleep=c.sleep)

    rl.acquire()
    rl.acquire()
    assert len(c.sleeps) == 1
    assert abs(c.sleeps[0] - 1.0) < 1e-9


def test_rate_limiter_refills_over_time():
    c = FakeClock()
    rl = TokenBucketRateLimiter(RateLimit(rps=2.0, burst=1), now=c.now, sleep=c.sleep)

    rl.acquire()
    c.t += 0.5
    rl.acquire()
    assert c.sleeps == []


def test_fixed_interval_gate_spaces_requests():
    c = FakeClock()
    rl = limiter_for_pause(0.1, now=c.now, sleep=c.sleep)

    for _ in range(4):
        rl.acquire()
    # first request is free, each following one waits the full pause
    assert len(c.sleeps) == 3
    assert all(abs(s - 0.1) < 1e-9 for s in c.sleeps)


def test_zero_pause_is_unthrottled():
    assert isinstance(limiter_for_pause(0), NullRateLimiter)


def test_invalid_config_rejected():
    with pytest.raises(ValueError):
        TokenBucketRateLimiter(RateLimit(rps=0))
    with pytest.raises(ValueError):
        RateLimit.from_interval(0)
