"""Fixed-interval polling of the attestation authority."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from ...providers.base import AttestationAuthority
from ..recovery import ErrorCategory, RetryStrategy, UnrecoverableError

logger = logging.getLogger(__name__)


class AttestationWaitTimeout(UnrecoverableError):
    """No attestation after the configured number of polls."""

    def __init__(self, message_hash: str, attempts: int):
        super().__init__(
            f"No attestation for {message_hash} after {attempts} polls",
            category=ErrorCategory.ATTESTATION,
        )
        self.message_hash = message_hash
        self.attempts = attempts


class AttestationRejected(UnrecoverableError):
    """The authority reported the message as failed."""

    def __init__(self, message_hash: str, detail: Optional[str] = None):
        super().__init__(
            f"Attestation failed for {message_hash}: {detail or 'no detail'}",
            category=ErrorCategory.ATTESTATION,
        )
        self.message_hash = message_hash
        self.detail = detail


class AttestationWaiter:
    """
    Poll the attestation authority until complete, failed or out of attempts.

    ``pending`` (including a not-found record) waits ``poll_interval_seconds``
    and polls again. Each poll is wrapped in the transient-error retry
    strategy; a poll that still fails after retries propagates.
    """

    def __init__(
        self,
        authority: AttestationAuthority,
        *,
        poll_interval_seconds: float = 10.0,
        max_attempts: int = 60,
        retry: Optional[RetryStrategy] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ) -> None:
        self.authority = authority
        self.poll_interval_seconds = poll_interval_seconds
        self.max_attempts = max_attempts
        self._sleep = sleep or asyncio.sleep
        self.retry = retry or RetryStrategy(sleep=self._sleep)

    @classmethod
    def from_settings(cls, config: Any, authority: AttestationAuthority, **kwargs: Any) -> "AttestationWaiter":
        kwargs.setdefault("retry", RetryStrategy.from_settings(config, sleep=kwargs.get("sleep")))
        return cls(
            authority,
            poll_interval_seconds=config.attestation_poll_interval_seconds,
            max_attempts=config.attestation_max_attempts,
            **kwargs,
        )

    async def wait(
        self,
        message_hash: str,
        max_attempts: Optional[int] = None,
        poll_interval_seconds: Optional[float] = None,
    ) -> str:
        """Return the attestation signature for ``message_hash``."""
        attempts = max_attempts if max_attempts is not None else self.max_attempts
        interval = poll_interval_seconds if poll_interval_seconds is not None else self.poll_interval_seconds

        for attempt in range(1, attempts + 1):
            status = await self.retry.execute(
                lambda: self.authority.get_attestation(message_hash),
                operation_name="get_attestation",
            )

            if status.state == "complete" and status.attestation:
                logger.info("Attestation received for %s after %d polls", message_hash, attempt)
                return status.attestation

            if status.state == "failed":
                raise AttestationRejected(message_hash, status.detail)

            logger.debug(
                "Attestation pending for %s (poll %d/%d, %s)",
                message_hash,
                attempt,
                attempts,
                status.detail or "pending",
            )
            if attempt < attempts:
                await self._sleep(interval)

        raise AttestationWaitTimeout(message_hash, attempts)
