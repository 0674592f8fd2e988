"""Typed models for dispatch planning, execution results and monitoring."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple


@dataclass(frozen=True)
class ChainBalanceSample:
    """A merchant wallet's USDC balance captured at planning time."""

    chain: str
    wallet: str
    balance: int
    min_threshold: int

    @property
    def deficit(self) -> int:
        return max(0, self.min_threshold - self.balance)


@dataclass(frozen=True)
class DispatchEntry:
    chain: str
    amount: int


@dataclass(frozen=True)
class DispatchPlan:
    """Per-chain amounts, index-aligned with the samples they came from.

    Construction fails unless every amount is non-negative and the amounts
    sum exactly to ``total_amount``.
    """

    entries: Tuple[DispatchEntry, ...]
    total_amount: int

    def __post_init__(self) -> None:
        if any(entry.amount < 0 for entry in self.entries):
            raise ValueError("Dispatch amounts must be non-negative")
        if sum(entry.amount for entry in self.entries) != self.total_amount:
            raise ValueError("Dispatch amounts must sum to the total amount")

    @classmethod
    def from_amounts(cls, chains: Sequence[str], amounts: Sequence[int]) -> "DispatchPlan":
        if len(chains) != len(amounts):
            raise ValueError("chains and amounts must have the same length")
        entries = tuple(DispatchEntry(chain=c, amount=a) for c, a in zip(chains, amounts))
        return cls(entries=entries, total_amount=sum(amounts))

    @property
    def amounts(self) -> List[int]:
        return [entry.amount for entry in self.entries]

    @property
    def chains(self) -> List[str]:
        return [entry.chain for entry in self.entries]

    def __len__(self) -> int:
        return len(self.entries)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entries": [{"chain": e.chain, "amount": str(e.amount)} for e in self.entries],
            "totalAmount": str(self.total_amount),
        }


class DispatchStatus(str, Enum):
    SIMULATED = "simulated"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class DispatchEntryResult:
    chain: str
    recipient: str
    amount: int
    status: DispatchStatus
    execution_id: Optional[str] = None
    phase: Optional[str] = None
    message_hash: Optional[str] = None
    fee_wei: int = 0
    estimated_time_seconds: Optional[int] = None
    error: Optional[Dict[str, Any]] = None
    quote: Optional[Dict[str, Any]] = None
    execution: Optional[Dict[str, Any]] = None

    @property
    def succeeded(self) -> bool:
        return self.status == DispatchStatus.COMPLETED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chain": self.chain,
            "recipient": self.recipient,
            "amount": str(self.amount),
            "status": self.status.value,
            "executionId": self.execution_id,
            "phase": self.phase,
            "messageHash": self.message_hash,
            "feeWei": str(self.fee_wei),
            "estimatedTimeSeconds": self.estimated_time_seconds,
            "error": self.error,
            "quote": self.quote,
            "execution": self.execution,
        }


@dataclass
class DispatchResult:
    dispatch_id: str
    source_chain: str
    entries: List[DispatchEntryResult]
    total_amount: int
    total_fees_wei: int
    overall_success: bool
    dry_run: bool = False
    feasible: bool = True
    warnings: List[str] = field(default_factory=list)
    estimated_time_seconds: Optional[int] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def failed_entries(self) -> List[DispatchEntryResult]:
        return [e for e in self.entries if e.status == DispatchStatus.FAILED]

    @property
    def failed_chains(self) -> List[str]:
        return [e.chain for e in self.failed_entries]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dispatchId": self.dispatch_id,
            "sourceChain": self.source_chain,
            "dryRun": self.dry_run,
            "overallSuccess": self.overall_success,
            "feasible": self.feasible,
            "totalAmount": str(self.total_amount),
            "totalFeesWei": str(self.total_fees_wei),
            "estimatedTimeSeconds": self.estimated_time_seconds,
            "warnings": list(self.warnings),
            "failedChains": self.failed_chains,
            "entries": [e.to_dict() for e in self.entries],
            "createdAt": self.created_at.isoformat(),
        }


class MessageStatus(str, Enum):
    PENDING = "pending"
    CONFIRMING = "confirming"
    ATTESTING = "attesting"
    READY_TO_MINT = "ready_to_mint"
    COMPLETED = "completed"
    FAILED = "failed"
    UNKNOWN = "unknown"


MESSAGE_PROGRESS: Dict[MessageStatus, int] = {
    MessageStatus.PENDING: 10,
    MessageStatus.CONFIRMING: 30,
    MessageStatus.ATTESTING: 60,
    MessageStatus.READY_TO_MINT: 90,
    MessageStatus.COMPLETED: 100,
    MessageStatus.FAILED: 0,
    MessageStatus.UNKNOWN: 0,
}


@dataclass
class MessageStatusReport:
    message_id: str
    status: MessageStatus
    execution_id: Optional[str] = None
    phase: Optional[str] = None
    target_chain: Optional[str] = None
    stuck: bool = False
    error: Optional[Any] = None

    @property
    def progress(self) -> int:
        return MESSAGE_PROGRESS[self.status]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "messageId": self.message_id,
            "status": self.status.value,
            "progress": self.progress,
            "executionId": self.execution_id,
            "phase": self.phase,
            "targetChain": self.target_chain,
            "stuck": self.stuck,
            "error": self.error,
        }


@dataclass
class MonitorSummary:
    messages: List[MessageStatusReport]

    def _count(self, *statuses: MessageStatus) -> int:
        return sum(1 for m in self.messages if m.status in statuses)

    @property
    def completed(self) -> int:
        return self._count(MessageStatus.COMPLETED)

    @property
    def failed(self) -> int:
        return self._count(MessageStatus.FAILED)

    @property
    def unknown(self) -> int:
        return self._count(MessageStatus.UNKNOWN)

    @property
    def pending(self) -> int:
        return len(self.messages) - self.completed - self.failed - self.unknown

    @property
    def all_completed(self) -> bool:
        return bool(self.messages) and self.completed == len(self.messages)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": len(self.messages),
            "completed": self.completed,
            "pending": self.pending,
            "failed": self.failed,
            "unknown": self.unknown,
            "allCompleted": self.all_completed,
            "messages": [m.to_dict() for m in self.messages],
        }
