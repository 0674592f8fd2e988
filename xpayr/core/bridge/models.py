"""Typed models used by the bridge subsystem."""

from __future__ import annotations

import secrets
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Set


class BridgePhase(str, Enum):
    """Phases of a single burn-and-mint transfer."""

    PENDING = "pending"
    BALANCE_CHECKED = "balance_checked"
    APPROVED = "approved"
    BURNED = "burned"
    ATTESTING = "attesting"
    MINTED = "minted"
    FAILED = "failed"


# Valid phase transitions; order is strictly forward
TRANSITIONS: Dict[BridgePhase, Set[BridgePhase]] = {
    BridgePhase.PENDING: {
        BridgePhase.BALANCE_CHECKED,
        BridgePhase.FAILED,
    },
    BridgePhase.BALANCE_CHECKED: {
        BridgePhase.APPROVED,
        BridgePhase.FAILED,
    },
    BridgePhase.APPROVED: {
        BridgePhase.BURNED,
        BridgePhase.FAILED,
    },
    BridgePhase.BURNED: {
        BridgePhase.ATTESTING,
        BridgePhase.FAILED,
    },
    BridgePhase.ATTESTING: {
        BridgePhase.MINTED,
        BridgePhase.FAILED,
    },
    BridgePhase.MINTED: set(),
    BridgePhase.FAILED: {
        BridgePhase.ATTESTING,  # Operator resume of a stuck transfer
    },
}

TERMINAL_PHASES = frozenset({BridgePhase.MINTED, BridgePhase.FAILED})


class InvalidTransitionError(Exception):
    """Raised when an invalid phase transition is attempted."""

    def __init__(self, from_phase: BridgePhase, to_phase: BridgePhase):
        self.from_phase = from_phase
        self.to_phase = to_phase
        self.message = f"Cannot transition from {from_phase.value} to {to_phase.value}"
        super().__init__(self.message)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_execution_id() -> str:
    return f"bridge_{secrets.token_hex(8)}"


@dataclass(frozen=True)
class SenderCredential:
    """Identifies the wallet that signs on both chains.

    ``key_id`` is an opaque handle understood by the configured Signer
    (a keystore alias or a custodial wallet id); it is never a raw key.
    """

    address: str
    key_id: Optional[str] = None


@dataclass(frozen=True)
class BridgeRequest:
    source_chain: str
    target_chain: str
    amount: int
    recipient: str
    credential: SenderCredential

    @property
    def sender(self) -> str:
        return self.credential.address

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sourceChain": self.source_chain,
            "targetChain": self.target_chain,
            "amount": str(self.amount),
            "recipient": self.recipient,
            "sender": self.sender,
        }


@dataclass
class PhaseTransition:
    """Record of a phase change."""

    from_phase: BridgePhase
    to_phase: BridgePhase
    timestamp: datetime = field(default_factory=_utcnow)
    detail: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fromPhase": self.from_phase.value,
            "toPhase": self.to_phase.value,
            "timestamp": self.timestamp.isoformat(),
            "detail": self.detail,
        }


@dataclass
class BridgeExecution:
    """Mutable record of one BridgeRequest moving through its phases."""

    request: BridgeRequest
    execution_id: str = field(default_factory=_new_execution_id)
    phase: BridgePhase = BridgePhase.PENDING

    approve_tx_hash: Optional[str] = None
    burn_tx_hash: Optional[str] = None
    mint_tx_hash: Optional[str] = None

    message_bytes: Optional[str] = None
    message_hash: Optional[str] = None
    attestation: Optional[str] = None

    source_fee_wei: int = 0
    destination_fee_wei: int = 0

    error: Optional[Dict[str, Any]] = None
    failed_phase: Optional[BridgePhase] = None

    explorer_links: Dict[str, str] = field(default_factory=dict)
    history: List[PhaseTransition] = field(default_factory=list)
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def can_transition_to(self, to_phase: BridgePhase) -> bool:
        return to_phase in TRANSITIONS.get(self.phase, set())

    def advance(self, to_phase: BridgePhase, detail: Optional[str] = None) -> PhaseTransition:
        if not self.can_transition_to(to_phase):
            raise InvalidTransitionError(self.phase, to_phase)

        transition = PhaseTransition(from_phase=self.phase, to_phase=to_phase, detail=detail)
        self.history.append(transition)
        self.phase = to_phase
        self.updated_at = transition.timestamp
        return transition

    def fail(self, error: Dict[str, Any], failed_phase: BridgePhase) -> PhaseTransition:
        self.error = error
        self.failed_phase = failed_phase
        return self.advance(BridgePhase.FAILED, detail=error.get("message"))

    @property
    def is_terminal(self) -> bool:
        return self.phase in TERMINAL_PHASES

    @property
    def succeeded(self) -> bool:
        return self.phase == BridgePhase.MINTED

    @property
    def is_stuck(self) -> bool:
        """Burned on the source chain but not minted on the destination."""
        return self.phase == BridgePhase.FAILED and self.message_hash is not None

    @property
    def total_fee_wei(self) -> int:
        return self.source_fee_wei + self.destination_fee_wei

    def to_dict(self) -> Dict[str, Any]:
        return {
            "executionId": self.execution_id,
            "request": self.request.to_dict(),
            "phase": self.phase.value,
            "approveTxHash": self.approve_tx_hash,
            "burnTxHash": self.burn_tx_hash,
            "mintTxHash": self.mint_tx_hash,
            "messageHash": self.message_hash,
            "sourceFeeWei": str(self.source_fee_wei),
            "destinationFeeWei": str(self.destination_fee_wei),
            "error": self.error,
            "failedPhase": self.failed_phase.value if self.failed_phase else None,
            "stuck": self.is_stuck,
            "explorerLinks": dict(self.explorer_links),
            "history": [t.to_dict() for t in self.history],
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }
