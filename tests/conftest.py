"""Shared fakes for the chain gateway, signer and attestation authority."""

import itertools
from unittest.mock import AsyncMock, MagicMock

import pytest

from xpayr.core.bridge.attestation import AttestationWaiter
from xpayr.core.bridge.chains import ChainRegistry
from xpayr.core.bridge.encoding import MESSAGE_SENT_TOPIC, message_hash
from xpayr.core.bridge.executor import BridgeExecutor
from xpayr.core.bridge.models import BridgeRequest, SenderCredential
from xpayr.core.recovery import RetryConfig, RetryStrategy
from xpayr.providers.base import (
    AttestationAuthority,
    AttestationStatus,
    ChainGateway,
    LogEntry,
    Signer,
    TransactionHandle,
    TransactionReceipt,
)

SENDER = "0x" + "11" * 20
RECIPIENT_A = "0x" + "22" * 20
RECIPIENT_B = "0x" + "33" * 20
RECIPIENT_C = "0x" + "44" * 20

MESSAGE = bytes.fromhex("000000000000000300000006") + b"\x42" * 100
MESSAGE_HASH = message_hash(MESSAGE)
ATTESTATION = "0x" + "ab" * 65

GAS_USED = 50_000
GAS_PRICE = 10**9


def pending() -> AttestationStatus:
    return AttestationStatus(state="pending")


def complete(signature: str = ATTESTATION) -> AttestationStatus:
    return AttestationStatus(state="complete", attestation=signature)


def message_sent_log(message: bytes = MESSAGE) -> LogEntry:
    return LogEntry(
        address="0x7865fAfC2db2093669d92c0F33AeEF291086BEFD",
        topics=[MESSAGE_SENT_TOPIC],
        data="0x",
        fields={"message_bytes": "0x" + message.hex(), "message_hash": message_hash(message)},
    )


def make_gateway(balance: int = 10**12) -> MagicMock:
    """Gateway whose transactions all confirm and whose burns emit MessageSent."""
    counter = itertools.count(1)
    gateway = MagicMock(spec=ChainGateway)

    def submit(chain, signed_payload):
        return TransactionHandle(chain=chain, tx_hash="0x%064x" % next(counter))

    def confirm(handle, confirmations=1, timeout_seconds=300):
        return TransactionReceipt(
            chain=handle.chain,
            tx_hash=handle.tx_hash,
            block_number=100,
            status=1,
            gas_used=GAS_USED,
            effective_gas_price=GAS_PRICE,
        )

    gateway.get_balance = AsyncMock(return_value=balance)
    gateway.get_gas_price = AsyncMock(return_value=GAS_PRICE)
    gateway.submit_transaction = AsyncMock(side_effect=submit)
    gateway.wait_for_confirmation = AsyncMock(side_effect=confirm)
    gateway.get_logs = AsyncMock(return_value=[message_sent_log()])
    gateway.close = AsyncMock()
    return gateway


def make_signer() -> MagicMock:
    signer = MagicMock(spec=Signer)
    signer.sign = AsyncMock(side_effect=lambda chain, intent: f"0xsigned:{chain}:{intent.data[:10]}")
    return signer


def make_authority(*statuses: AttestationStatus) -> MagicMock:
    authority = MagicMock(spec=AttestationAuthority)
    authority.get_attestation = AsyncMock(side_effect=list(statuses) if statuses else None)
    if not statuses:
        authority.get_attestation.return_value = complete()
    authority.close = AsyncMock()
    return authority


def no_wait_retry(max_attempts: int = 3) -> RetryStrategy:
    return RetryStrategy(RetryConfig(max_attempts=max_attempts, delay_seconds=0), sleep=AsyncMock())


@pytest.fixture
def chains() -> ChainRegistry:
    return ChainRegistry.for_network("testnet")


@pytest.fixture
def gateway() -> MagicMock:
    return make_gateway()


@pytest.fixture
def signer() -> MagicMock:
    return make_signer()


@pytest.fixture
def authority() -> MagicMock:
    return make_authority()


@pytest.fixture
def sleep() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def waiter(authority, sleep) -> AttestationWaiter:
    return AttestationWaiter(
        authority,
        poll_interval_seconds=10,
        max_attempts=60,
        retry=no_wait_retry(),
        sleep=sleep,
    )


@pytest.fixture
def executor(chains, gateway, signer, waiter) -> BridgeExecutor:
    return BridgeExecutor(
        chains,
        gateway,
        signer,
        waiter,
        confirmation_depth=1,
        confirmation_timeout_seconds=30,
        retry=no_wait_retry(),
    )


@pytest.fixture
def credential() -> SenderCredential:
    return SenderCredential(address=SENDER, key_id="treasury")


@pytest.fixture
def bridge_request(credential) -> BridgeRequest:
    return BridgeRequest(
        source_chain="ethereum",
        target_chain="base",
        amount=250_000_000,
        recipient=RECIPIENT_A,
        credential=credential,
    )
