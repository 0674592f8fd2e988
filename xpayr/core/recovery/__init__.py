"""
Error Recovery Module

Provides error classification and bounded retry for resilient execution
of chain and attestation calls.
"""

from .errors import (
    ConfigurationError,
    ErrorCategory,
    ErrorContext,
    RecoverableError,
    UnrecoverableError,
    RateLimitError,
    NetworkError,
    TimeoutError,
    ValidationError,
    TransactionRevertedError,
    classify_error,
)
from .strategies import RetryConfig, RetryStrategy

__all__ = [
    # Errors
    "ConfigurationError",
    "ErrorCategory",
    "ErrorContext",
    "RecoverableError",
    "UnrecoverableError",
    "RateLimitError",
    "NetworkError",
    "TimeoutError",
    "ValidationError",
    "TransactionRevertedError",
    "classify_error",
    # Strategies
    "RetryConfig",
    "RetryStrategy",
]
