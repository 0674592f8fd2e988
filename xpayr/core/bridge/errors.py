"""
Bridge Errors

Every failure of a bridge execution is reported as a ``BridgeError``
carrying a machine-checkable kind, the phase that was being attempted,
the chain it happened on and the amount in flight.
"""

from enum import Enum
from typing import Any, Dict, Optional

from ..recovery import ErrorCategory, ErrorContext, UnrecoverableError
from .models import BridgePhase


class BridgeErrorKind(str, Enum):
    INSUFFICIENT_BALANCE = "insufficient_balance"
    BALANCE_CHECK_FAILED = "balance_check_failed"
    APPROVAL_FAILED = "approval_failed"
    BURN_FAILED = "burn_failed"
    ATTESTATION_TIMEOUT = "attestation_timeout"
    ATTESTATION_FAILED = "attestation_failed"
    MINT_FAILED = "mint_failed"
    DEADLINE_EXCEEDED = "deadline_exceeded"
    UNEXPECTED = "unexpected"


class BridgeError(UnrecoverableError):
    """Terminal failure of one bridge execution."""

    kind: BridgeErrorKind = BridgeErrorKind.UNEXPECTED
    phase: BridgePhase = BridgePhase.PENDING
    category: ErrorCategory = ErrorCategory.UNKNOWN
    # Funds burned on the source chain but not minted
    stuck: bool = False

    def __init__(
        self,
        message: str,
        *,
        chain: Optional[str] = None,
        amount: Optional[int] = None,
        tx_hash: Optional[str] = None,
        cause: Optional[BaseException] = None,
        phase: Optional[BridgePhase] = None,
    ):
        if phase is not None:
            self.phase = phase
        self.chain = chain
        self.amount = amount
        self.tx_hash = tx_hash
        self.cause = cause
        super().__init__(
            message,
            category=self.category,
            context=ErrorContext(
                category=self.category,
                recoverable=False,
                chain=chain,
                tx_hash=tx_hash,
                suggested_action=(
                    "Operator action required: resume attestation and mint"
                    if self.stuck
                    else None
                ),
                details={"cause": repr(cause)} if cause else {},
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "phase": self.phase.value,
            "chain": self.chain,
            "amount": str(self.amount) if self.amount is not None else None,
            "txHash": self.tx_hash,
            "stuck": self.stuck,
            "cause": type(self.cause).__name__ if self.cause else None,
        }


class InsufficientBalanceError(BridgeError):
    kind = BridgeErrorKind.INSUFFICIENT_BALANCE
    phase = BridgePhase.BALANCE_CHECKED
    category = ErrorCategory.INSUFFICIENT_FUNDS

    def __init__(self, message: str, *, available: Optional[int] = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.available = available

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["available"] = str(self.available) if self.available is not None else None
        return data


class BalanceCheckError(BridgeError):
    """Balance could not be read after exhausting retries."""

    kind = BridgeErrorKind.BALANCE_CHECK_FAILED
    phase = BridgePhase.BALANCE_CHECKED
    category = ErrorCategory.NETWORK


class ApprovalFailedError(BridgeError):
    kind = BridgeErrorKind.APPROVAL_FAILED
    phase = BridgePhase.APPROVED
    category = ErrorCategory.TRANSACTION_REVERTED


class BurnFailedError(BridgeError):
    kind = BridgeErrorKind.BURN_FAILED
    phase = BridgePhase.BURNED
    category = ErrorCategory.TRANSACTION_REVERTED


class AttestationTimeoutError(BridgeError):
    kind = BridgeErrorKind.ATTESTATION_TIMEOUT
    phase = BridgePhase.ATTESTING
    category = ErrorCategory.ATTESTATION
    stuck = True


class AttestationFailedError(BridgeError):
    kind = BridgeErrorKind.ATTESTATION_FAILED
    phase = BridgePhase.ATTESTING
    category = ErrorCategory.ATTESTATION
    stuck = True


class MintFailedError(BridgeError):
    kind = BridgeErrorKind.MINT_FAILED
    phase = BridgePhase.MINTED
    category = ErrorCategory.TRANSACTION_REVERTED
    stuck = True


class DispatchTimeoutError(BridgeError):
    """Dispatch deadline passed while the execution was still in flight."""

    kind = BridgeErrorKind.DEADLINE_EXCEEDED
    category = ErrorCategory.TIMEOUT
