from __future__ import annotations

import time
from dataclasses import dataclass
from threading import Lock


@dataclass
class RateLimit:
    """Rate limit config.

    rps: requests per second (float, e.g. 10.0 = one request every 100ms)
    burst: maximum tokens available instantly
    """

    rps: float = 1.0
    burst: int = 1

    @classmethod
    def from_interval(cls, pause_s: float) -> "RateLimit":
        """Fixed-interval gate: at most one request every ``pause_s`` seconds."""

        if pause_s <= 0:
            raise ValueError("pause_s must be > 0")
        return cls(rps=1.0 / pause_s, burst=1)


class TokenBucketRateLimiter:
    """Deterministic token bucket limiter.

    Shared by every call a client makes, so the pacing holds no matter which
    loop drives the requests. Clock and sleep are injectable for unit tests.
    """

    def __init__(self, cfg: RateLimit, now=time.monotonic, sleep=time.sleep):
        if cfg.rps <= 0:
            raise ValueError("rps must be > 0")
        if cfg.burst <= 0:
            raise ValueError("burst must be > 0")
        self.cfg = cfg
        self._now = now
        self._sleep = sleep
        self._lock = Lock()
        self._tokens = float(cfg.burst)
        self._last = self._now()

    def acquire(self, tokens: float = 1.0) -> None:
        if tokens <= 0:
            return
        with self._lock:
            while True:
                now = self._now()
                elapsed = max(0.0, now - self._last)
                self._last = now

                self._tokens = min(float(self.cfg.burst), self._tokens + elapsed * self.cfg.rps)

                if self._tokens >= tokens:
                    self._tokens -= tokens
                    return

                deficit = tokens - self._tokens
                self._sleep(deficit / self.cfg.rps)


class NullRateLimiter:
    """Limiter that never waits; used when the configured pause is zero."""

    def acquire(self, tokens: float = 1.0) -> None:
        return None


def limiter_for_pause(pause_s: float, now=time.monotonic, sleep=time.sleep):
    """Return the limiter enforcing ``pause_s`` between successive requests."""

    if pause_s <= 0:
        return NullRateLimiter()
    return TokenBucketRateLimiter(RateLimit.from_interval(pause_s), now=now, sleep=sleep)
