"""
Error Classification

Defines error types for the recovery system.
Errors are classified as recoverable (transient, retried) or unrecoverable
(validation problems and on-chain rejections, surfaced immediately).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

import httpx


class ErrorCategory(str, Enum):
    """Categories of errors for recovery decisions."""

    NETWORK = "network"           # RPC / HTTP connectivity issues
    RATE_LIMIT = "rate_limit"     # API rate limits
    TIMEOUT = "timeout"           # Operation timed out
    INSUFFICIENT_FUNDS = "insufficient_funds"  # Not enough balance
    TRANSACTION_REVERTED = "transaction_reverted"  # On-chain revert
    ATTESTATION = "attestation"   # Attestation authority outcome
    PROVIDER = "provider"         # External provider returned an error
    VALIDATION = "validation"     # Input validation error
    CONFIGURATION = "configuration"  # Missing wiring (signer, RPC URL)
    UNKNOWN = "unknown"           # Unclassified error


@dataclass
class ErrorContext:
    """Additional context about an error."""

    category: ErrorCategory = ErrorCategory.UNKNOWN
    recoverable: bool = True
    retry_after_seconds: Optional[float] = None
    suggested_action: Optional[str] = None
    provider: Optional[str] = None
    chain: Optional[str] = None
    tx_hash: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category.value,
            "recoverable": self.recoverable,
            "retryAfterSeconds": self.retry_after_seconds,
            "suggestedAction": self.suggested_action,
            "provider": self.provider,
            "chain": self.chain,
            "txHash": self.tx_hash,
            "details": self.details,
        }


class RecoverableError(Exception):
    """
    Base class for errors that can be retried.

    These errors are typically transient:
    - RPC timeouts
    - Attestation endpoint 5xx / connection failures
    - Rate limits
    """

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        retry_after: Optional[float] = None,
        context: Optional[ErrorContext] = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.retry_after = retry_after
        self.context = context or ErrorContext(category=category, recoverable=True)


class UnrecoverableError(Exception):
    """
    Base class for errors that cannot be retried.

    These errors need a different input or an operator:
    - Malformed requests
    - Insufficient funds
    - Transaction reverts
    """

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        context: Optional[ErrorContext] = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.context = context or ErrorContext(category=category, recoverable=False)


# Specific recoverable errors
class RateLimitError(RecoverableError):
    """API rate limit exceeded."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        retry_after: Optional[float] = None,
        provider: Optional[str] = None,
    ):
        super().__init__(
            message,
            category=ErrorCategory.RATE_LIMIT,
            retry_after=retry_after,
            context=ErrorContext(
                category=ErrorCategory.RATE_LIMIT,
                recoverable=True,
                retry_after_seconds=retry_after,
                provider=provider,
                suggested_action="Slow down requests to the provider",
            ),
        )


class NetworkError(RecoverableError):
    """Network connectivity error."""

    def __init__(
        self,
        message: str = "Network error",
        provider: Optional[str] = None,
        chain: Optional[str] = None,
    ):
        super().__init__(
            message,
            category=ErrorCategory.NETWORK,
            context=ErrorContext(
                category=ErrorCategory.NETWORK,
                recoverable=True,
                provider=provider,
                chain=chain,
                suggested_action="Retry after a short delay",
            ),
        )


class TimeoutError(RecoverableError):
    """Operation timed out."""

    def __init__(
        self,
        message: str = "Operation timed out",
        operation: Optional[str] = None,
        chain: Optional[str] = None,
    ):
        super().__init__(
            message,
            category=ErrorCategory.TIMEOUT,
            context=ErrorContext(
                category=ErrorCategory.TIMEOUT,
                recoverable=True,
                chain=chain,
                suggested_action="Retry with longer timeout",
                details={"operation": operation} if operation else {},
            ),
        )


# Specific unrecoverable errors
class ValidationError(UnrecoverableError):
    """Request rejected before any I/O."""

    def __init__(self, message: str, field_name: Optional[str] = None):
        super().__init__(
            message,
            category=ErrorCategory.VALIDATION,
            context=ErrorContext(
                category=ErrorCategory.VALIDATION,
                recoverable=False,
                suggested_action="Fix the request and resubmit",
                details={"field": field_name} if field_name else {},
            ),
        )
        self.field_name = field_name


class ConfigurationError(UnrecoverableError):
    """A required collaborator or endpoint is not configured."""

    def __init__(self, message: str):
        super().__init__(
            message,
            category=ErrorCategory.CONFIGURATION,
            context=ErrorContext(
                category=ErrorCategory.CONFIGURATION,
                recoverable=False,
                suggested_action="Check service configuration",
            ),
        )


class TransactionRevertedError(UnrecoverableError):
    """Transaction reverted on-chain."""

    def __init__(
        self,
        message: str = "Transaction reverted",
        tx_hash: Optional[str] = None,
        reason: Optional[str] = None,
        chain: Optional[str] = None,
    ):
        super().__init__(
            message,
            category=ErrorCategory.TRANSACTION_REVERTED,
            context=ErrorContext(
                category=ErrorCategory.TRANSACTION_REVERTED,
                recoverable=False,
                tx_hash=tx_hash,
                chain=chain,
                suggested_action="Review transaction parameters",
                details={"revert_reason": reason} if reason else {},
            ),
        )
        self.tx_hash = tx_hash
        self.reason = reason


def classify_error(error: Exception) -> ErrorContext:
    """
    Classify an exception and return its error context.

    Already-classified errors keep their own context; httpx failures are
    mapped by type and status; anything else falls back to message sniffing.
    """
    if isinstance(error, (RecoverableError, UnrecoverableError)):
        return error.context

    if isinstance(error, httpx.TimeoutException):
        return ErrorContext(category=ErrorCategory.TIMEOUT, recoverable=True)

    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        if status == 429:
            return ErrorContext(category=ErrorCategory.RATE_LIMIT, recoverable=True)
        if status >= 500:
            return ErrorContext(category=ErrorCategory.NETWORK, recoverable=True)
        return ErrorContext(
            category=ErrorCategory.PROVIDER,
            recoverable=False,
            details={"status_code": status},
        )

    if isinstance(error, httpx.TransportError):
        return ErrorContext(category=ErrorCategory.NETWORK, recoverable=True)

    message = str(error).lower()

    if any(p in message for p in ("rate limit", "too many requests", "429")):
        return ErrorContext(category=ErrorCategory.RATE_LIMIT, recoverable=True)

    if any(p in message for p in ("timeout", "timed out", "deadline")):
        return ErrorContext(category=ErrorCategory.TIMEOUT, recoverable=True)

    if any(p in message for p in ("connection", "network", "unreachable", "refused")):
        return ErrorContext(category=ErrorCategory.NETWORK, recoverable=True)

    if any(p in message for p in ("insufficient", "exceeds balance")):
        return ErrorContext(category=ErrorCategory.INSUFFICIENT_FUNDS, recoverable=False)

    if any(p in message for p in ("revert", "already known", "nonce too low", "out of gas")):
        return ErrorContext(category=ErrorCategory.TRANSACTION_REVERTED, recoverable=False)

    # Unknown failures are surfaced, never resubmitted
    return ErrorContext(
        category=ErrorCategory.UNKNOWN,
        recoverable=False,
        suggested_action="Inspect the error before retrying",
    )
