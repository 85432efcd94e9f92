"""Common infrastructure utilities."""

from __future__ import annotations

from .batch import process_all
from .fetcher import DETAIL_TIMEOUT, ResilientFetcher
from .rate_limiter import SlidingWindowRateLimiter
from .retry import RetryPolicy

__all__ = [
    "DETAIL_TIMEOUT",
    "ResilientFetcher",
    "RetryPolicy",
    "SlidingWindowRateLimiter",
    "process_all",
]
