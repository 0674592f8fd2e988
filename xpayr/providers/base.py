"""Contracts for the external collaborators the bridge depends on."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional


@dataclass(frozen=True)
class TransactionIntent:
    """An unsigned contract call the Signer turns into a raw transaction."""

    chain: str
    sender: str
    to: str
    data: str
    value: int = 0
    key_id: Optional[str] = None
    description: str = ""


@dataclass(frozen=True)
class TransactionHandle:
    chain: str
    tx_hash: str


@dataclass
class LogEntry:
    address: str
    topics: List[str]
    data: str
    # Decoded event fields, filled in by the gateway for known events
    fields: Dict[str, Any] = field(default_factory=dict)


@dataclass
class TransactionReceipt:
    chain: str
    tx_hash: str
    block_number: int
    status: int
    gas_used: int = 0
    effective_gas_price: int = 0
    logs: List[LogEntry] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status == 1

    @property
    def fee_wei(self) -> int:
        return self.gas_used * self.effective_gas_price


@dataclass(frozen=True)
class AttestationStatus:
    state: Literal["pending", "complete", "failed"]
    attestation: Optional[str] = None
    detail: Optional[str] = None


class ChainGateway(ABC):
    """Per-chain access: balance reads, submission, receipts and logs."""

    name: str = "chain-gateway"

    @abstractmethod
    async def get_balance(self, chain: str, address: str) -> int:
        """USDC balance of ``address`` on ``chain`` in base units."""

    @abstractmethod
    async def get_gas_price(self, chain: str) -> int:
        """Current gas price on ``chain`` in wei."""

    @abstractmethod
    async def submit_transaction(self, chain: str, signed_payload: str) -> TransactionHandle:
        """Broadcast a signed transaction."""

    @abstractmethod
    async def wait_for_confirmation(
        self,
        handle: TransactionHandle,
        confirmations: int = 1,
        timeout_seconds: float = 300,
    ) -> TransactionReceipt:
        """Block until ``handle`` is mined with enough confirmations.

        Raises TransactionRevertedError on revert and TimeoutError when no
        receipt arrives in time.
        """

    @abstractmethod
    async def get_logs(self, receipt: TransactionReceipt, event_topic: str) -> List[LogEntry]:
        """Logs in ``receipt`` whose first topic is ``event_topic``."""

    async def close(self) -> None:
        return None


class Signer(ABC):
    """Wallet custody: local key or remote custodial API."""

    @abstractmethod
    async def sign(self, chain: str, intent: TransactionIntent) -> str:
        """Return the signed raw transaction for ``intent``."""


class AttestationAuthority(ABC):
    """Off-chain service that attests burn messages."""

    name: str = "attestation"

    @abstractmethod
    async def get_attestation(self, message_hash: str) -> AttestationStatus:
        pass

    async def close(self) -> None:
        return None
