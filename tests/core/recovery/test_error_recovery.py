"""
Tests for the Error Recovery System

Tests for error classification and the fixed-delay retry strategy.
"""

import httpx
import pytest
from unittest.mock import AsyncMock

from xpayr.core.recovery import (
    # Errors
    RecoverableError,
    UnrecoverableError,
    RateLimitError,
    NetworkError,
    TimeoutError,
    ValidationError,
    TransactionRevertedError,
    classify_error,
    # Strategies
    RetryConfig,
    RetryStrategy,
)
from xpayr.core.recovery.errors import ErrorCategory


# =============================================================================
# Error Classification Tests
# =============================================================================

class TestErrorClassification:
    """Tests for error classification."""

    def test_recoverable_error_is_recoverable(self):
        error = RecoverableError("Test error")
        assert error.context.recoverable is True

    def test_unrecoverable_error_is_not_recoverable(self):
        error = UnrecoverableError("Test error")
        assert error.context.recoverable is False

    def test_rate_limit_error(self):
        """Test RateLimitError properties."""
        error = RateLimitError(retry_after=30.0, provider="iris")

        assert error.category == ErrorCategory.RATE_LIMIT
        assert error.retry_after == 30.0
        assert error.context.provider == "iris"

    def test_transaction_reverted_error(self):
        error = TransactionRevertedError(tx_hash="0xabc", reason="ERC20: insufficient allowance")

        assert error.context.recoverable is False
        assert error.tx_hash == "0xabc"
        assert error.context.details["revert_reason"] == "ERC20: insufficient allowance"

    def test_validation_error_keeps_field(self):
        error = ValidationError("bad recipient", field_name="recipient")
        assert error.field_name == "recipient"
        assert error.context.category == ErrorCategory.VALIDATION

    def test_classify_httpx_timeout(self):
        context = classify_error(httpx.ReadTimeout("slow"))
        assert context.category == ErrorCategory.TIMEOUT
        assert context.recoverable is True

    def test_classify_httpx_status_errors(self):
        request = httpx.Request("GET", "https://iris.example/attestations/0x1")

        def status_error(code):
            response = httpx.Response(code, request=request)
            return httpx.HTTPStatusError("boom", request=request, response=response)

        assert classify_error(status_error(429)).category == ErrorCategory.RATE_LIMIT
        assert classify_error(status_error(503)).recoverable is True
        assert classify_error(status_error(400)).recoverable is False

    def test_classify_httpx_connect_error(self):
        context = classify_error(httpx.ConnectError("refused"))
        assert context.category == ErrorCategory.NETWORK
        assert context.recoverable is True

    def test_classify_revert_message(self):
        context = classify_error(Exception("execution reverted"))
        assert context.category == ErrorCategory.TRANSACTION_REVERTED
        assert context.recoverable is False

    def test_classify_unknown_is_not_retried(self):
        context = classify_error(Exception("something odd"))
        assert context.category == ErrorCategory.UNKNOWN
        assert context.recoverable is False


# =============================================================================
# Retry Strategy Tests
# =============================================================================

class TestRetryStrategy:
    """Tests for RetryStrategy."""

    @pytest.mark.asyncio
    async def test_success_first_try(self):
        strategy = RetryStrategy(RetryConfig(max_attempts=3, delay_seconds=0), sleep=AsyncMock())
        operation = AsyncMock(return_value="ok")

        result = await strategy.execute(operation)

        assert result == "ok"
        assert operation.await_count == 1

    @pytest.mark.asyncio
    async def test_retries_recoverable_then_succeeds(self):
        sleep = AsyncMock()
        strategy = RetryStrategy(RetryConfig(max_attempts=3, delay_seconds=2.0), sleep=sleep)
        operation = AsyncMock(side_effect=[NetworkError("down"), TimeoutError("slow"), 42])

        result = await strategy.execute(operation, operation_name="get_balance")

        assert result == 42
        assert operation.await_count == 3
        assert [c.args[0] for c in sleep.await_args_list] == [2.0, 2.0]

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        strategy = RetryStrategy(RetryConfig(max_attempts=3, delay_seconds=0), sleep=AsyncMock())
        operation = AsyncMock(side_effect=NetworkError("down"))

        with pytest.raises(NetworkError):
            await strategy.execute(operation)

        assert operation.await_count == 3

    @pytest.mark.asyncio
    async def test_unrecoverable_not_retried(self):
        strategy = RetryStrategy(RetryConfig(max_attempts=5, delay_seconds=0), sleep=AsyncMock())
        operation = AsyncMock(side_effect=TransactionRevertedError("reverted"))

        with pytest.raises(TransactionRevertedError):
            await strategy.execute(operation)

        assert operation.await_count == 1

    @pytest.mark.asyncio
    async def test_retry_after_hint_used_as_delay(self):
        sleep = AsyncMock()
        strategy = RetryStrategy(RetryConfig(max_attempts=2, delay_seconds=1.0), sleep=sleep)
        operation = AsyncMock(side_effect=[RateLimitError(retry_after=7.5), "ok"])

        await strategy.execute(operation)

        sleep.assert_awaited_once_with(7.5)

    def test_should_retry_plain_exceptions_by_classification(self):
        strategy = RetryStrategy(RetryConfig(max_attempts=3))

        assert strategy.should_retry(Exception("connection reset"), 0) is True
        assert strategy.should_retry(Exception("connection reset"), 2) is False
        assert strategy.should_retry(ValueError("bad"), 0) is False

    def test_from_settings(self):
        class Config:
            transient_retry_attempts = 4
            transient_retry_delay_seconds = 0.5

        strategy = RetryStrategy.from_settings(Config())

        assert strategy.config.max_attempts == 4
        assert strategy.config.delay_seconds == 0.5
