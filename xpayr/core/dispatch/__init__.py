"""Dispatch planning, orchestration and monitoring."""

from .allocation import AllocationEngine, allocate, compute_deficits
from .models import (
    ChainBalanceSample,
    DispatchEntry,
    DispatchEntryResult,
    DispatchPlan,
    DispatchResult,
    DispatchStatus,
    MessageStatus,
    MonitorSummary,
)
from .units import format_usdc_amount, parse_usdc_amount

__all__ = [
    "AllocationEngine",
    "ChainBalanceSample",
    "DispatchEntry",
    "DispatchEntryResult",
    "DispatchPlan",
    "DispatchResult",
    "DispatchStatus",
    "MessageStatus",
    "MonitorSummary",
    "allocate",
    "compute_deficits",
    "format_usdc_amount",
    "parse_usdc_amount",
]
