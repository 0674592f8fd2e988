"""
Dispatch Service

Facade exposing the four dispatch operations (plan, quote, execute,
monitor) and wiring the collaborators together from settings.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from ...config import settings
from ...providers.base import AttestationAuthority, ChainGateway, Signer
from ...providers.iris import IrisAttestationClient
from ...providers.rpc import JsonRpcChainGateway
from ..bridge.attestation import AttestationWaiter
from ..bridge.chains import ChainRegistry
from ..bridge.executor import BridgeExecutor
from ..bridge.models import BridgeExecution, SenderCredential
from ..bridge.quotes import BridgeQuote, QuoteEstimator
from ..recovery import RetryStrategy, ValidationError
from .allocation import AllocationEngine
from .models import ChainBalanceSample, DispatchPlan, DispatchResult, MonitorSummary
from .orchestrator import DispatchOrchestrator
from .sampling import BalanceSampler, MerchantWallet

logger = logging.getLogger(__name__)


class DispatchService:
    """
    Entry point used by the HTTP API and the CLI.

    Usage:
        service = DispatchService.from_settings(settings)
        plan = service.plan_dispatch([500, 2000], [1000, 1000], 1000, ["base", "arbitrum"])
        result = await service.execute_dispatch(plan, "ethereum", recipients, credential, dry_run=True)
    """

    def __init__(
        self,
        chains: ChainRegistry,
        orchestrator: DispatchOrchestrator,
        *,
        engine: Optional[AllocationEngine] = None,
        sampler: Optional[BalanceSampler] = None,
        gateway: Optional[ChainGateway] = None,
        attestation: Optional[AttestationAuthority] = None,
    ) -> None:
        self.chains = chains
        self.orchestrator = orchestrator
        self.engine = engine or AllocationEngine()
        self.sampler = sampler
        self._gateway = gateway
        self._attestation = attestation

    @classmethod
    def from_settings(
        cls,
        config: Any,
        *,
        signer: Optional[Signer] = None,
        gateway: Optional[ChainGateway] = None,
        attestation: Optional[AttestationAuthority] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ) -> "DispatchService":
        chains = ChainRegistry.from_settings(config)
        gateway = gateway or JsonRpcChainGateway.from_settings(config, chains)
        attestation = attestation or IrisAttestationClient.from_settings(config)
        retry = RetryStrategy.from_settings(config, sleep=sleep)

        quotes = QuoteEstimator.from_settings(config, chains, gateway)
        executor: Optional[BridgeExecutor] = None
        if signer is not None:
            waiter = AttestationWaiter.from_settings(config, attestation, retry=retry, sleep=sleep)
            executor = BridgeExecutor.from_settings(config, chains, gateway, signer, waiter, sleep=sleep)

        orchestrator = DispatchOrchestrator(
            chains,
            quotes,
            executor,
            attestation,
            deadline_seconds=config.dispatch_deadline_seconds,
            submission_delay_seconds=config.submission_delay_seconds,
            max_retained_executions=config.max_retained_executions,
            sleep=sleep,
        )
        logger.info(
            "Dispatch service ready (network=%s, chains=%s, execution=%s)",
            config.network,
            ",".join(chains.keys()),
            "enabled" if executor is not None else "dry-run only",
        )
        return cls(
            chains,
            orchestrator,
            sampler=BalanceSampler(chains, gateway, retry=retry),
            gateway=gateway,
            attestation=attestation,
        )

    def plan_dispatch(
        self,
        balances: Sequence[int],
        thresholds: Sequence[int],
        total_amount: int,
        chains: Sequence[str],
    ) -> DispatchPlan:
        if not (len(chains) == len(balances) == len(thresholds)):
            raise ValidationError(
                "chains, balances and thresholds must have the same length",
                field_name="chains",
            )
        samples = [
            ChainBalanceSample(
                chain=self.chains.normalize(chain),
                wallet="",
                balance=balance,
                min_threshold=threshold,
            )
            for chain, balance, threshold in zip(chains, balances, thresholds)
        ]
        return self.engine.plan(samples, total_amount)

    async def plan_from_wallets(self, wallets: Sequence[MerchantWallet], total_amount: int) -> DispatchPlan:
        if self.sampler is None:
            raise ValidationError("Balance sampling is not configured")
        samples = await self.sampler.sample(wallets)
        return self.engine.plan(samples, total_amount)

    async def quote_dispatch(
        self,
        plan: DispatchPlan,
        source_chain: str,
        recipients: Sequence[str],
    ) -> List[BridgeQuote]:
        return await self.orchestrator.quote(plan, source_chain, recipients)

    async def execute_dispatch(
        self,
        plan: DispatchPlan,
        source_chain: str,
        recipients: Sequence[str],
        credential: Optional[SenderCredential] = None,
        dry_run: bool = False,
    ) -> DispatchResult:
        return await self.orchestrator.execute(
            plan,
            source_chain,
            recipients,
            credential,
            dry_run=dry_run,
        )

    async def monitor_dispatch(self, message_ids: Sequence[str]) -> MonitorSummary:
        return await self.orchestrator.monitor(message_ids)

    async def resume_execution(self, execution_id: str) -> BridgeExecution:
        return await self.orchestrator.resume(execution_id)

    def get_execution(self, execution_id: str) -> Optional[BridgeExecution]:
        return self.orchestrator.get_execution(execution_id)

    async def close(self) -> None:
        for client in (self._gateway, self._attestation):
            if client is not None:
                await client.close()


# Singleton instance
_service: Optional[DispatchService] = None


def get_dispatch_service() -> DispatchService:
    """Get the process-wide dispatch service, built from settings on first use."""
    global _service
    if _service is None:
        _service = DispatchService.from_settings(settings)
    return _service


async def close_dispatch_service() -> None:
    """Release HTTP clients held by the process-wide service, if one was built."""
    global _service
    if _service is not None:
        await _service.close()
        _service = None
