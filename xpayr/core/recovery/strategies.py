"""
Recovery Strategies

Fixed-delay retry for transient failures around RPC and attestation calls.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Coroutine, Optional, TypeVar

from .errors import RecoverableError, UnrecoverableError, classify_error

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[Any]]


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_attempts: int = 3
    delay_seconds: float = 2.0

    def get_delay(self, error: Exception) -> float:
        """Delay before the next attempt; honours provider retry-after hints."""
        if isinstance(error, RecoverableError) and error.retry_after:
            return error.retry_after
        return self.delay_seconds


class RetryStrategy:
    """
    Bounded retry with a fixed delay.

    Retries recoverable errors up to ``max_attempts`` times. Unrecoverable
    errors (reverts, validation) propagate on the first occurrence.
    """

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        logger: Optional[logging.Logger] = None,
        sleep: Optional[Sleep] = None,
    ):
        self.config = config or RetryConfig()
        self.logger = logger or logging.getLogger(__name__)
        self._sleep = sleep or asyncio.sleep

    @classmethod
    def from_settings(cls, config: Any, **kwargs: Any) -> "RetryStrategy":
        return cls(
            RetryConfig(
                max_attempts=config.transient_retry_attempts,
                delay_seconds=config.transient_retry_delay_seconds,
            ),
            **kwargs,
        )

    async def execute(
        self,
        operation: Callable[[], Coroutine[Any, Any, T]],
        operation_name: str = "operation",
    ) -> T:
        last_error: Optional[Exception] = None

        for attempt in range(self.config.max_attempts):
            try:
                return await operation()
            except Exception as e:
                last_error = e

                if not self.should_retry(e, attempt):
                    raise

                delay = self.config.get_delay(e)
                self.logger.warning(
                    "%s attempt %d/%d failed: %s. Retrying in %.1fs",
                    operation_name,
                    attempt + 1,
                    self.config.max_attempts,
                    e,
                    delay,
                )
                await self._sleep(delay)

        # Unreachable unless max_attempts < 1
        raise last_error or RuntimeError(f"{operation_name}: no attempts made")

    def should_retry(self, error: Exception, attempt: int) -> bool:
        if attempt >= self.config.max_attempts - 1:
            return False

        if isinstance(error, UnrecoverableError):
            return False

        if isinstance(error, RecoverableError):
            return True

        return classify_error(error).recoverable
