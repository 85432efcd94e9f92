"""Tests for RetryPolicy (exponential backoff + jitter)."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from cinegarr.domain.errors import (
    FetchError,
    FetchErrorKind,
    ScrapingError,
    ValidationError,
)
from cinegarr.infrastructure.common.retry import RetryPolicy, is_retryable

_SLEEP = "cinegarr.infrastructure.common.retry.asyncio.sleep"


class TestIsRetryable:
    def test_terminal_errors(self) -> None:
        assert is_retryable(ValidationError("bad")) is False
        assert is_retryable(FetchError(FetchErrorKind.NOT_FOUND, "nf", 404)) is False
        assert is_retryable(ScrapingError("limited", 429)) is False

    def test_transient_errors(self) -> None:
        assert is_retryable(FetchError(FetchErrorKind.SERVER_ERROR, "5xx", 503)) is True
        assert is_retryable(FetchError(FetchErrorKind.UNKNOWN, "reset")) is True
        assert is_retryable(RuntimeError("parse")) is True

    def test_timeout_retryable_despite_408(self) -> None:
        timeout = FetchError(FetchErrorKind.TIMEOUT, "Request timeout", status_code=408)
        assert timeout.is_client_error is True
        assert is_retryable(timeout) is True


class TestComputeDelay:
    def test_exponential_plus_jitter(self) -> None:
        policy = RetryPolicy(base_delay=1.0, max_jitter=1.0)
        with patch("cinegarr.infrastructure.common.retry.random.uniform", return_value=0.5):
            assert policy.compute_delay(0) == 1.5
            assert policy.compute_delay(2) == 4.5

    def test_jitter_bounds(self) -> None:
        policy = RetryPolicy(base_delay=1.0, max_jitter=1.0)
        for _ in range(50):
            assert 2.0 <= policy.compute_delay(1) <= 3.0


class TestRun:
    @pytest.mark.asyncio
    async def test_success_first_try(self) -> None:
        op = AsyncMock(return_value="ok")
        with patch(_SLEEP, new=AsyncMock()) as sleep:
            assert await RetryPolicy().run(op) == "ok"
        assert op.await_count == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_transient_failure_then_success(self) -> None:
        op = AsyncMock(side_effect=[RuntimeError("flaky"), "ok"])
        with patch(_SLEEP, new=AsyncMock()) as sleep:
            assert await RetryPolicy().run(op, context="test") == "ok"
        assert op.await_count == 2
        assert sleep.await_count == 1

    @pytest.mark.asyncio
    async def test_exhausted_raises_scraping_error(self) -> None:
        last = FetchError(FetchErrorKind.SERVER_ERROR, "Server error", 502)
        op = AsyncMock(side_effect=[RuntimeError("a"), RuntimeError("b"), RuntimeError("c"), last])
        with patch(_SLEEP, new=AsyncMock()) as sleep:
            with pytest.raises(ScrapingError) as exc_info:
                await RetryPolicy(max_retries=3).run(op)

        assert op.await_count == 4
        assert sleep.await_count == 3
        assert "Operation failed after 4 attempts" in str(exc_info.value)
        assert exc_info.value.status_code == 500
        assert exc_info.value.cause is last

    @pytest.mark.asyncio
    async def test_validation_error_not_retried(self) -> None:
        op = AsyncMock(side_effect=ValidationError("bad"))
        with patch(_SLEEP, new=AsyncMock()) as sleep:
            with pytest.raises(ValidationError):
                await RetryPolicy().run(op)
        assert op.await_count == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self) -> None:
        err = FetchError(FetchErrorKind.FORBIDDEN, "Access forbidden", 403)
        op = AsyncMock(side_effect=err)
        with patch(_SLEEP, new=AsyncMock()):
            with pytest.raises(FetchError) as exc_info:
                await RetryPolicy().run(op)
        assert exc_info.value is err
        assert op.await_count == 1

    @pytest.mark.asyncio
    async def test_zero_retries(self) -> None:
        op = AsyncMock(side_effect=RuntimeError("once"))
        with patch(_SLEEP, new=AsyncMock()) as sleep:
            with pytest.raises(ScrapingError):
                await RetryPolicy(max_retries=0).run(op)
        assert op.await_count == 1
        sleep.assert_not_awaited()
