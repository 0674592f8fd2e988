"""CCTP bridge components."""

from typing import TYPE_CHECKING

from .models import BridgeExecution, BridgePhase, BridgeRequest, SenderCredential

if TYPE_CHECKING:  # pragma: no cover
    from .attestation import AttestationWaiter
    from .executor import BridgeExecutor
    from .quotes import BridgeQuote, QuoteEstimator

__all__ = [
    "AttestationWaiter",
    "BridgeExecution",
    "BridgeExecutor",
    "BridgePhase",
    "BridgeQuote",
    "BridgeRequest",
    "QuoteEstimator",
    "SenderCredential",
]


def __getattr__(name: str):  # pragma: no cover - simple thunk
    if name == "BridgeExecutor":
        from .executor import BridgeExecutor as _BridgeExecutor

        return _BridgeExecutor
    if name == "AttestationWaiter":
        from .attestation import AttestationWaiter as _AttestationWaiter

        return _AttestationWaiter
    if name in ("BridgeQuote", "QuoteEstimator"):
        from . import quotes

        return getattr(quotes, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
