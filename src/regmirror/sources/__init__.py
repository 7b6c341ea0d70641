"""Remote registry access: HTTP client, payload schemas and request pacing."""

from .rate_limit import NullRateLimiter, RateLimit, TokenBucketRateLimiter, limiter_for_pause
from .registry import RegistryClient

__all__ = [
    "NullRateLimiter",
    "RateLimit",
    "RegistryClient",
    "TokenBucketRateLimiter",
    "limiter_for_pause",
]
