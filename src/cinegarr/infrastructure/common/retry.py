"""Retry policy with exponential backoff and jitter."""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog

from cinegarr.domain.errors import (
    FetchError,
    FetchErrorKind,
    ScrapingError,
    ValidationError,
)

log = structlog.get_logger(__name__)

T = TypeVar("T")


def is_retryable(exc: BaseException) -> bool:
    """Validation errors and 4xx scraping errors are terminal.

    Timeouts carry 408 for the error envelope but are retried.
    """
    if isinstance(exc, ValidationError):
        return False
    if isinstance(exc, FetchError) and exc.kind is FetchErrorKind.TIMEOUT:
        return True
    if isinstance(exc, ScrapingError) and exc.is_client_error:
        return False
    return True


class RetryPolicy:
    """Run an async operation, retrying transient failures.

    Delay before retry *n* (0-based) is
    ``base_delay * 2**n + uniform(0, max_jitter)``.

    Args:
        max_retries: Retries after the first attempt.
        base_delay: Backoff base in seconds.
        max_jitter: Upper bound of the random jitter in seconds.
    """

    def __init__(
        self,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_jitter: float = 1.0,
    ) -> None:
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_jitter = max_jitter

    def compute_delay(self, attempt: int) -> float:
        jitter = random.uniform(0, self.max_jitter)  # noqa: S311
        return self.base_delay * (2**attempt) + jitter

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        context: str = "",
    ) -> T:
        """Await *operation*, retrying until it succeeds or the cap is hit.

        Raises:
            ValidationError: Re-raised immediately.
            ScrapingError: 4xx errors other than timeouts re-raised
                immediately; any other failure after ``max_retries``
                retries, with the last error as ``cause``.
        """
        last_error: BaseException | None = None

        for attempt in range(self.max_retries + 1):
            try:
                return await operation()
            except Exception as exc:
                if not is_retryable(exc):
                    raise
                last_error = exc

            if attempt == self.max_retries:
                break

            delay = self.compute_delay(attempt)
            log.warning(
                "scrape_retry",
                context=context,
                attempt=attempt + 1,
                delay=round(delay, 2),
                error=str(last_error),
            )
            await asyncio.sleep(delay)

        raise ScrapingError(
            f"Operation failed after {self.max_retries + 1} attempts: {last_error}",
            500,
            cause=last_error,
        )
