"""Tests for AttestationWaiter polling."""

import pytest
from unittest.mock import AsyncMock

from conftest import ATTESTATION, MESSAGE_HASH, complete, make_authority, no_wait_retry, pending
from xpayr.core.bridge.attestation import AttestationRejected, AttestationWaiter, AttestationWaitTimeout
from xpayr.core.recovery import NetworkError
from xpayr.providers.base import AttestationStatus


def build_waiter(authority, sleep, max_attempts=60, poll_interval_seconds=10):
    return AttestationWaiter(
        authority,
        poll_interval_seconds=poll_interval_seconds,
        max_attempts=max_attempts,
        retry=no_wait_retry(),
        sleep=sleep,
    )


class TestAttestationWaiter:

    @pytest.mark.asyncio
    async def test_returns_immediately_when_complete(self, sleep):
        authority = make_authority(complete())
        waiter = build_waiter(authority, sleep)

        assert await waiter.wait(MESSAGE_HASH) == ATTESTATION
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_polls_until_complete(self, sleep):
        authority = make_authority(pending(), pending(), complete())
        waiter = build_waiter(authority, sleep, poll_interval_seconds=4)

        assert await waiter.wait(MESSAGE_HASH) == ATTESTATION
        assert authority.get_attestation.await_count == 3
        assert [c.args[0] for c in sleep.await_args_list] == [4, 4]

    @pytest.mark.asyncio
    async def test_complete_without_signature_keeps_polling(self, sleep):
        authority = make_authority(AttestationStatus(state="complete"), complete())
        waiter = build_waiter(authority, sleep)

        assert await waiter.wait(MESSAGE_HASH) == ATTESTATION
        assert authority.get_attestation.await_count == 2

    @pytest.mark.asyncio
    async def test_timeout_after_max_attempts(self, sleep):
        authority = make_authority(*([pending()] * 4))
        waiter = build_waiter(authority, sleep, max_attempts=4)

        with pytest.raises(AttestationWaitTimeout) as exc_info:
            await waiter.wait(MESSAGE_HASH)

        assert exc_info.value.attempts == 4
        assert authority.get_attestation.await_count == 4
        # No sleep after the final poll
        assert sleep.await_count == 3

    @pytest.mark.asyncio
    async def test_per_call_overrides(self, sleep):
        authority = make_authority(pending(), pending())
        waiter = build_waiter(authority, sleep, max_attempts=60)

        with pytest.raises(AttestationWaitTimeout):
            await waiter.wait(MESSAGE_HASH, max_attempts=2, poll_interval_seconds=1)

        sleep.assert_awaited_once_with(1)

    @pytest.mark.asyncio
    async def test_failed_state_raises_rejected(self, sleep):
        authority = make_authority(pending(), AttestationStatus(state="failed", detail="bad nonce"))
        waiter = build_waiter(authority, sleep)

        with pytest.raises(AttestationRejected) as exc_info:
            await waiter.wait(MESSAGE_HASH)

        assert exc_info.value.detail == "bad nonce"

    @pytest.mark.asyncio
    async def test_transient_errors_retried_within_a_poll(self, sleep):
        authority = make_authority()
        authority.get_attestation.side_effect = [NetworkError("reset"), complete()]
        waiter = build_waiter(authority, sleep)

        assert await waiter.wait(MESSAGE_HASH) == ATTESTATION
        assert authority.get_attestation.await_count == 2

    @pytest.mark.asyncio
    async def test_transient_errors_exhausted_propagate(self, sleep):
        authority = make_authority()
        authority.get_attestation.side_effect = NetworkError("down")
        waiter = build_waiter(authority, sleep)

        with pytest.raises(NetworkError):
            await waiter.wait(MESSAGE_HASH)

    def test_from_settings(self):
        class Config:
            attestation_poll_interval_seconds = 3
            attestation_max_attempts = 7
            transient_retry_attempts = 2
            transient_retry_delay_seconds = 0.1

        waiter = AttestationWaiter.from_settings(Config(), make_authority(), sleep=AsyncMock())

        assert waiter.poll_interval_seconds == 3
        assert waiter.max_attempts == 7
        assert waiter.retry.config.max_attempts == 2
