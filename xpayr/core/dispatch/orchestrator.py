"""
Dispatch Orchestrator

Fans a dispatch plan out into one bridge execution per non-zero entry,
aggregates the outcomes and answers status queries for in-flight
transfers.
"""

from __future__ import annotations

import asyncio
import logging
import re
import secrets
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Set, Tuple

from ...logging_config import transfer_context
from ...providers.base import AttestationAuthority
from ..bridge.chains import ChainRegistry
from ..bridge.encoding import is_valid_address
from ..bridge.errors import DispatchTimeoutError
from ..bridge.executor import BridgeExecutor
from ..bridge.models import BridgeExecution, BridgePhase, BridgeRequest, SenderCredential
from ..bridge.quotes import BridgeQuote, QuoteEstimator
from ..recovery import ConfigurationError, ValidationError
from .models import (
    DispatchEntryResult,
    DispatchPlan,
    DispatchResult,
    DispatchStatus,
    MessageStatus,
    MessageStatusReport,
    MonitorSummary,
)

logger = logging.getLogger(__name__)

_MESSAGE_HASH_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")

_PHASE_TO_MESSAGE_STATUS: Dict[BridgePhase, MessageStatus] = {
    BridgePhase.PENDING: MessageStatus.PENDING,
    BridgePhase.BALANCE_CHECKED: MessageStatus.PENDING,
    BridgePhase.APPROVED: MessageStatus.CONFIRMING,
    BridgePhase.BURNED: MessageStatus.CONFIRMING,
    BridgePhase.ATTESTING: MessageStatus.ATTESTING,
    BridgePhase.MINTED: MessageStatus.COMPLETED,
    BridgePhase.FAILED: MessageStatus.FAILED,
}


def _new_dispatch_id() -> str:
    return f"dispatch_{secrets.token_hex(8)}"


class DispatchOrchestrator:
    """
    Runs a DispatchPlan from one source chain to many targets.

    Entries run concurrently, staggered by ``submission_delay_seconds``.
    A deadline bounds the whole call: executions still in flight when it
    passes keep running in the background and are reported as failed with
    ``deadline_exceeded``. Completed transfers are never rolled back.
    """

    def __init__(
        self,
        chains: ChainRegistry,
        quotes: QuoteEstimator,
        executor: Optional[BridgeExecutor] = None,
        attestation: Optional[AttestationAuthority] = None,
        *,
        deadline_seconds: float = 1800,
        submission_delay_seconds: float = 1.0,
        max_retained_executions: int = 1000,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ) -> None:
        self.chains = chains
        self.quotes = quotes
        self.executor = executor
        self.attestation = attestation
        self.deadline_seconds = deadline_seconds
        self.submission_delay_seconds = submission_delay_seconds
        self.max_retained_executions = max_retained_executions
        self._sleep = sleep or asyncio.sleep
        # Insertion ordered; oldest finished executions are evicted first
        self._executions: Dict[str, BridgeExecution] = {}
        self._in_flight: Dict[str, BridgeExecution] = {}
        self._by_message_hash: Dict[str, str] = {}
        self._background: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self, plan: DispatchPlan, source_chain: str, recipients: Sequence[str]) -> str:
        """Check structural invariants; returns the canonical source chain key."""
        if len(plan) != len(recipients):
            raise ValidationError(
                f"Plan has {len(plan)} entries but {len(recipients)} recipients were given",
                field_name="recipients",
            )
        for recipient in recipients:
            if not is_valid_address(recipient):
                raise ValidationError(f"Invalid recipient address: {recipient}", field_name="recipients")
        if plan.total_amount <= 0:
            raise ValidationError("Dispatch total must be positive", field_name="plan")

        source = self.chains.normalize(source_chain)
        for entry in plan.entries:
            target = self.chains.normalize(entry.chain)
            if entry.amount > 0 and target == source:
                raise ValidationError(
                    f"Cannot dispatch {entry.amount} from {source} to itself",
                    field_name="plan",
                )
        return source

    # ------------------------------------------------------------------
    # Quotes and simulation
    # ------------------------------------------------------------------

    async def quote(
        self,
        plan: DispatchPlan,
        source_chain: str,
        recipients: Sequence[str],
    ) -> List[BridgeQuote]:
        """Quotes for every non-zero entry, in plan order."""
        source = self.validate(plan, source_chain, recipients)
        return list(
            await asyncio.gather(
                *(
                    self.quotes.quote(source, entry.chain, entry.amount, recipient)
                    for entry, recipient in zip(plan.entries, recipients)
                    if entry.amount > 0
                )
            )
        )

    async def simulate(
        self,
        plan: DispatchPlan,
        source_chain: str,
        recipients: Sequence[str],
    ) -> DispatchResult:
        """Dry run: quotes only, nothing is signed or submitted."""
        source = self.validate(plan, source_chain, recipients)
        quotes = iter(await self.quote(plan, source, recipients))

        entries: List[DispatchEntryResult] = []
        warnings: List[str] = []
        feasible = True
        for entry, recipient in zip(plan.entries, recipients):
            target = self.chains.normalize(entry.chain)
            if entry.amount == 0:
                entries.append(
                    DispatchEntryResult(
                        chain=target,
                        recipient=recipient,
                        amount=0,
                        status=DispatchStatus.SIMULATED,
                    )
                )
                continue

            quote = next(quotes)
            feasible = feasible and quote.within_limits
            warnings.extend(f"{target}: {w}" for w in quote.warnings)
            entries.append(
                DispatchEntryResult(
                    chain=target,
                    recipient=recipient,
                    amount=entry.amount,
                    status=DispatchStatus.SIMULATED,
                    fee_wei=quote.total_fee_wei,
                    estimated_time_seconds=quote.estimated_time_seconds,
                    quote=quote.to_dict(),
                )
            )

        times = [e.estimated_time_seconds for e in entries if e.estimated_time_seconds is not None]
        return DispatchResult(
            dispatch_id=_new_dispatch_id(),
            source_chain=source,
            entries=entries,
            total_amount=plan.total_amount,
            total_fees_wei=sum(e.fee_wei for e in entries),
            overall_success=feasible,
            dry_run=True,
            feasible=feasible,
            warnings=warnings,
            estimated_time_seconds=max(times) if times else 0,
        )

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def execute(
        self,
        plan: DispatchPlan,
        source_chain: str,
        recipients: Sequence[str],
        credential: Optional[SenderCredential],
        dry_run: bool = False,
        deadline_seconds: Optional[float] = None,
    ) -> DispatchResult:
        """
        Execute ``plan`` and wait for every entry to finish or the deadline.

        Returns:
            DispatchResult with one entry per plan entry, in plan order.
            ``overall_success`` is true only if every non-zero entry minted.
        """
        if dry_run:
            return await self.simulate(plan, source_chain, recipients)

        source = self.validate(plan, source_chain, recipients)
        if self.executor is None:
            raise ConfigurationError("No signer configured; only dry runs are available")
        if credential is None:
            raise ValidationError("A sender credential is required to execute", field_name="credential")

        # Build and validate every request before submitting anything
        requests: List[Optional[BridgeRequest]] = []
        for entry, recipient in zip(plan.entries, recipients):
            if entry.amount == 0:
                requests.append(None)
                continue
            request = BridgeRequest(
                source_chain=source,
                target_chain=self.chains.normalize(entry.chain),
                amount=entry.amount,
                recipient=recipient,
                credential=credential,
            )
            self.executor.validate(request)
            requests.append(request)

        dispatch_id = _new_dispatch_id()
        with transfer_context(dispatch_id=dispatch_id):
            return await self._run_dispatch(dispatch_id, plan, source, recipients, requests, deadline_seconds)

    async def _run_dispatch(
        self,
        dispatch_id: str,
        plan: DispatchPlan,
        source: str,
        recipients: Sequence[str],
        requests: List[Optional[BridgeRequest]],
        deadline_seconds: Optional[float],
    ) -> DispatchResult:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + (deadline_seconds if deadline_seconds is not None else self.deadline_seconds)
        logger.info(
            "Dispatch %s: %d transfers from %s, total %d",
            dispatch_id,
            sum(1 for r in requests if r is not None),
            source,
            plan.total_amount,
        )

        results: List[Optional[DispatchEntryResult]] = [None] * len(requests)
        launched: Dict[asyncio.Task, Tuple[int, BridgeExecution]] = {}

        for index, (entry, recipient, request) in enumerate(zip(plan.entries, recipients, requests)):
            if request is None:
                results[index] = DispatchEntryResult(
                    chain=self.chains.normalize(entry.chain),
                    recipient=recipient,
                    amount=0,
                    status=DispatchStatus.COMPLETED,
                )
                continue

            if launched and self.submission_delay_seconds > 0:
                await self._sleep(min(self.submission_delay_seconds, max(0.0, deadline - loop.time())))

            execution = BridgeExecution(request=request)
            self._track(execution)

            if loop.time() >= deadline:
                # Never submitted, so safe to fail outright
                error = self._deadline_error(execution)
                execution.fail(error.to_dict(), error.phase)
                results[index] = self._entry_from_execution(execution, error=error.to_dict())
                self._settle(execution)
                continue

            task = asyncio.create_task(self.executor.execute(request, execution))
            launched[task] = (index, execution)

        if launched:
            _, pending = await asyncio.wait(launched.keys(), timeout=max(0.0, deadline - loop.time()))
        else:
            pending = set()

        for task, (index, execution) in launched.items():
            if task in pending:
                self._detach(task, execution)
                error = self._deadline_error(execution)
                results[index] = self._entry_from_execution(execution, error=error.to_dict())
                continue

            if task.exception() is not None:
                exc = task.exception()
                logger.error("Dispatch %s entry %d raised: %s", dispatch_id, index, exc)
                results[index] = self._entry_from_execution(
                    execution,
                    error={"kind": "unexpected", "message": str(exc), "phase": execution.phase.value},
                )
            else:
                results[index] = self._entry_from_execution(task.result())
            self._settle(execution)

        entries = [r for r in results if r is not None]
        non_zero = [e for e in entries if e.amount > 0]
        overall_success = all(e.succeeded for e in non_zero)
        result = DispatchResult(
            dispatch_id=dispatch_id,
            source_chain=source,
            entries=entries,
            total_amount=plan.total_amount,
            total_fees_wei=sum(e.fee_wei for e in entries),
            overall_success=overall_success,
            warnings=[f"{e.chain}: {(e.error or {}).get('kind', 'failed')}" for e in entries if not e.succeeded],
        )

        if overall_success:
            logger.info("Dispatch %s completed", dispatch_id)
        else:
            logger.warning("Dispatch %s finished with failures on %s", dispatch_id, ", ".join(result.failed_chains))
        return result

    def _deadline_error(self, execution: BridgeExecution) -> DispatchTimeoutError:
        request = execution.request
        return DispatchTimeoutError(
            f"Dispatch deadline exceeded while {execution.phase.value}",
            chain=request.target_chain,
            amount=request.amount,
            tx_hash=execution.burn_tx_hash,
            phase=execution.phase,
        )

    def _detach(self, task: asyncio.Task, execution: BridgeExecution) -> None:
        """Let an in-flight execution finish after the deadline; burns cannot be cancelled."""
        self._background.add(task)

        def _done(t: asyncio.Task) -> None:
            self._background.discard(t)
            self._settle(execution)
            if not t.cancelled() and t.exception() is None:
                logger.info(
                    "Late bridge %s finished in %s",
                    execution.execution_id,
                    execution.phase.value,
                )

        task.add_done_callback(_done)

    @staticmethod
    def _entry_from_execution(
        execution: BridgeExecution,
        error: Optional[Dict[str, Any]] = None,
    ) -> DispatchEntryResult:
        request = execution.request
        succeeded = execution.phase == BridgePhase.MINTED and error is None
        return DispatchEntryResult(
            chain=request.target_chain,
            recipient=request.recipient,
            amount=request.amount,
            status=DispatchStatus.COMPLETED if succeeded else DispatchStatus.FAILED,
            execution_id=execution.execution_id,
            phase=execution.phase.value,
            message_hash=execution.message_hash,
            fee_wei=execution.total_fee_wei,
            error=error if error is not None else execution.error,
            execution=execution.to_dict(),
        )

    # ------------------------------------------------------------------
    # Tracking
    # ------------------------------------------------------------------

    def _track(self, execution: BridgeExecution) -> None:
        self._executions[execution.execution_id] = execution
        self._in_flight[execution.execution_id] = execution

    def _settle(self, execution: BridgeExecution) -> None:
        self._in_flight.pop(execution.execution_id, None)
        if execution.message_hash:
            self._by_message_hash[execution.message_hash.lower()] = execution.execution_id
        self._prune()

    def _prune(self) -> None:
        """Forget the oldest finished executions beyond ``max_retained_executions``.

        In-flight and stuck executions are never evicted.
        """
        excess = len(self._executions) - self.max_retained_executions
        if excess <= 0:
            return
        evictable = [
            execution_id
            for execution_id, execution in self._executions.items()
            if execution_id not in self._in_flight and not execution.is_stuck
        ]
        evicted = evictable[:excess]
        for execution_id in evicted:
            execution = self._executions.pop(execution_id)
            key = (execution.message_hash or "").lower()
            if self._by_message_hash.get(key) == execution_id:
                del self._by_message_hash[key]
        if evicted:
            logger.debug("Evicted %d finished executions", len(evicted))

    def get_execution(self, id_or_hash: str) -> Optional[BridgeExecution]:
        execution = self._executions.get(id_or_hash)
        if execution is not None:
            return execution
        key = id_or_hash.lower()
        execution_id = self._by_message_hash.get(key)
        if execution_id is not None:
            return self._executions.get(execution_id)
        # Running transfers learn their message hash mid-flight
        for candidate in self._in_flight.values():
            if candidate.message_hash and candidate.message_hash.lower() == key:
                return candidate
        return None

    async def resume(self, execution_id: str) -> BridgeExecution:
        """Operator action: retry attestation and mint for a stuck execution."""
        if self.executor is None:
            raise ConfigurationError("No signer configured; cannot resume")
        execution = self.get_execution(execution_id)
        if execution is None:
            raise ValidationError(f"Unknown execution: {execution_id}", field_name="execution_id")
        if execution.execution_id in self._in_flight:
            raise ValidationError(f"Execution {execution.execution_id} is still running", field_name="execution_id")

        self._in_flight[execution.execution_id] = execution
        try:
            return await self.executor.resume(execution)
        finally:
            self._settle(execution)

    async def monitor(self, message_ids: Sequence[str]) -> MonitorSummary:
        """Status of each id (execution id or burn message hash)."""
        reports = await asyncio.gather(*(self._status_for(mid) for mid in message_ids))
        return MonitorSummary(messages=list(reports))

    async def _status_for(self, message_id: str) -> MessageStatusReport:
        execution = self.get_execution(message_id)
        if execution is not None:
            status = _PHASE_TO_MESSAGE_STATUS[execution.phase]
            if status == MessageStatus.ATTESTING and execution.attestation:
                status = MessageStatus.READY_TO_MINT
            return MessageStatusReport(
                message_id=message_id,
                status=status,
                execution_id=execution.execution_id,
                phase=execution.phase.value,
                target_chain=execution.request.target_chain,
                stuck=execution.is_stuck,
                error=execution.error,
            )

        if self.attestation is None or not _MESSAGE_HASH_RE.match(message_id):
            return MessageStatusReport(message_id=message_id, status=MessageStatus.UNKNOWN)

        try:
            attestation = await self.attestation.get_attestation(message_id)
        except Exception as e:
            logger.warning("Attestation lookup failed for %s: %s", message_id, e)
            return MessageStatusReport(message_id=message_id, status=MessageStatus.UNKNOWN, error=str(e))

        if attestation.state == "complete":
            status = MessageStatus.READY_TO_MINT
        elif attestation.state == "failed":
            status = MessageStatus.FAILED
        else:
            status = MessageStatus.ATTESTING
        return MessageStatusReport(
            message_id=message_id,
            status=status,
            error=attestation.detail if status == MessageStatus.FAILED else None,
        )
