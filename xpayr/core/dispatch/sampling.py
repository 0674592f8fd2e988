"""Capture merchant wallet balances for planning."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import List, Optional, Sequence

from ...providers.base import ChainGateway
from ..bridge.chains import ChainRegistry
from ..recovery import RetryStrategy
from .models import ChainBalanceSample


@dataclass(frozen=True)
class MerchantWallet:
    chain: str
    address: str
    min_threshold: int


class BalanceSampler:
    """Reads every wallet's USDC balance concurrently; any failure aborts the sample."""

    def __init__(
        self,
        chains: ChainRegistry,
        gateway: ChainGateway,
        retry: Optional[RetryStrategy] = None,
    ) -> None:
        self.chains = chains
        self.gateway = gateway
        self.retry = retry or RetryStrategy()

    async def _sample_one(self, wallet: MerchantWallet) -> ChainBalanceSample:
        chain = self.chains.normalize(wallet.chain)
        balance = await self.retry.execute(
            lambda: self.gateway.get_balance(chain, wallet.address),
            operation_name=f"get_balance[{chain}]",
        )
        return ChainBalanceSample(
            chain=chain,
            wallet=wallet.address,
            balance=balance,
            min_threshold=wallet.min_threshold,
        )

    async def sample(self, wallets: Sequence[MerchantWallet]) -> List[ChainBalanceSample]:
        return list(await asyncio.gather(*(self._sample_one(w) for w in wallets)))
