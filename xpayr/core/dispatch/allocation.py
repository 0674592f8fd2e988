"""
Allocation Engine

Turns per-chain balances and minimum thresholds into a dispatch plan.

Rules (integer arithmetic only, deterministic):
- No chain below threshold: split evenly, remainder to the lowest indices.
- Exactly one chain below threshold: it receives the whole amount.
- Several below threshold and enough to cover them: fill every deficit,
  then split what is left evenly across all chains.
- Several below threshold and not enough: proportional to deficit
  (floored); leftover units go one at a time, in index order, to chains
  whose share is already non-zero.
"""

from typing import List, Sequence

from ..recovery import ValidationError
from .models import ChainBalanceSample, DispatchPlan


def compute_deficits(balances: Sequence[int], thresholds: Sequence[int]) -> List[int]:
    return [max(0, threshold - balance) for balance, threshold in zip(balances, thresholds)]


def _even_split(total: int, n: int) -> List[int]:
    base, remainder = divmod(total, n)
    return [base + 1 if i < remainder else base for i in range(n)]


def _validate(balances: Sequence[int], thresholds: Sequence[int], total_amount: int) -> None:
    if len(balances) != len(thresholds):
        raise ValidationError(
            f"balances ({len(balances)}) and thresholds ({len(thresholds)}) differ in length",
            field_name="thresholds",
        )
    if not balances:
        raise ValidationError("At least one chain is required", field_name="balances")
    if total_amount < 0:
        raise ValidationError("Total amount must be non-negative", field_name="total_amount")
    if any(b < 0 for b in balances) or any(t < 0 for t in thresholds):
        raise ValidationError("Balances and thresholds must be non-negative")


def allocate(balances: Sequence[int], thresholds: Sequence[int], total_amount: int) -> List[int]:
    """Per-chain amounts summing exactly to ``total_amount``."""
    _validate(balances, thresholds, total_amount)

    n = len(balances)
    deficits = compute_deficits(balances, thresholds)
    deficient = [i for i, d in enumerate(deficits) if d > 0]
    total_deficit = sum(deficits)

    if not deficient:
        return _even_split(total_amount, n)

    if len(deficient) == 1:
        plan = [0] * n
        plan[deficient[0]] = total_amount
        return plan

    if total_amount >= total_deficit:
        extra = _even_split(total_amount - total_deficit, n)
        return [deficits[i] + extra[i] for i in range(n)]

    plan = [total_amount * d // total_deficit for d in deficits]
    leftover = total_amount - sum(plan)
    while leftover > 0:
        recipients = [i for i in range(n) if plan[i] > 0]
        if not recipients:
            # Every proportional share floored to zero
            recipients = deficient
        for i in recipients:
            if leftover == 0:
                break
            plan[i] += 1
            leftover -= 1

    return plan


class AllocationEngine:
    """Pure planner over captured balance samples."""

    def plan(self, samples: Sequence[ChainBalanceSample], total_amount: int) -> DispatchPlan:
        amounts = allocate(
            [s.balance for s in samples],
            [s.min_threshold for s in samples],
            total_amount,
        )
        return DispatchPlan.from_amounts([s.chain for s in samples], amounts)
