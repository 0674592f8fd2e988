"""Advisory fee and time estimates for a single bridge transfer."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import ROUND_UP, Decimal
from typing import Any, Dict, List, Literal

from ...providers.base import ChainGateway
from ..recovery import ValidationError
from .chains import ChainRegistry
from .encoding import is_valid_address

logger = logging.getLogger(__name__)


@dataclass
class BridgeQuote:
    source_chain: str
    target_chain: str
    amount: int
    recipient: str
    gas_fee_wei: int
    bridge_fee_wei: int
    total_fee_wei: int
    estimated_time_seconds: int
    fee_source: Literal["live", "fallback"]
    native_symbol: str
    token_messenger: str
    message_transmitter: str
    min_amount: int
    max_amount: int
    warnings: List[str] = field(default_factory=list)

    @property
    def within_limits(self) -> bool:
        return self.min_amount <= self.amount <= self.max_amount

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sourceChain": self.source_chain,
            "targetChain": self.target_chain,
            "amount": str(self.amount),
            "recipient": self.recipient,
            "fees": {
                "gasFeeWei": str(self.gas_fee_wei),
                "bridgeFeeWei": str(self.bridge_fee_wei),
                "totalFeeWei": str(self.total_fee_wei),
                "nativeSymbol": self.native_symbol,
                "source": self.fee_source,
            },
            "estimatedTimeSeconds": self.estimated_time_seconds,
            "route": {
                "protocol": "cctp",
                "tokenMessenger": self.token_messenger,
                "messageTransmitter": self.message_transmitter,
            },
            "limits": {
                "minAmount": str(self.min_amount),
                "maxAmount": str(self.max_amount),
            },
            "warnings": list(self.warnings),
        }


class QuoteEstimator:
    """
    Estimate the cost of one burn-and-mint transfer.

    Gas fee is ``gas_price(source) * gas_limit`` with an optional safety
    margin. When live gas data cannot be fetched the chain's static
    fallback fee is used instead of failing. CCTP charges no bridge fee.
    Never submits anything.
    """

    def __init__(
        self,
        chains: ChainRegistry,
        gateway: ChainGateway,
        *,
        gas_limit: int = 200_000,
        fee_margin_percent: float = 0.0,
        base_time_seconds: int = 180,
        min_amount: int = 1,
        max_amount: int = 1_000_000 * 10**6,
    ) -> None:
        self.chains = chains
        self.gateway = gateway
        self.gas_limit = gas_limit
        self.fee_margin_percent = fee_margin_percent
        self.base_time_seconds = base_time_seconds
        self.min_amount = min_amount
        self.max_amount = max_amount

    @classmethod
    def from_settings(cls, config: Any, chains: ChainRegistry, gateway: ChainGateway) -> "QuoteEstimator":
        return cls(
            chains,
            gateway,
            gas_limit=config.bridge_gas_limit,
            fee_margin_percent=config.quote_fee_margin_percent,
            base_time_seconds=config.protocol_base_time_seconds,
            min_amount=config.min_bridge_amount,
            max_amount=config.max_bridge_amount,
        )

    def _apply_margin(self, fee_wei: int) -> int:
        if not self.fee_margin_percent:
            return fee_wei
        factor = (Decimal(100) + Decimal(str(self.fee_margin_percent))) / Decimal(100)
        return int((Decimal(fee_wei) * factor).to_integral_value(rounding=ROUND_UP))

    def estimate_time_seconds(self, source_chain: str, target_chain: str) -> int:
        source = self.chains.get(source_chain)
        target = self.chains.get(target_chain)
        return self.base_time_seconds + max(source.settlement_delay_seconds, target.settlement_delay_seconds)

    async def quote(
        self,
        source_chain: str,
        target_chain: str,
        amount: int,
        recipient: str,
    ) -> BridgeQuote:
        source = self.chains.get(source_chain)
        target = self.chains.get(target_chain)
        if not is_valid_address(recipient):
            raise ValidationError(f"Invalid recipient address: {recipient}", field_name="recipient")

        warnings: List[str] = []
        fee_source: Literal["live", "fallback"] = "live"
        try:
            gas_price = await self.gateway.get_gas_price(source.key)
            gas_fee = gas_price * self.gas_limit
        except Exception as e:
            logger.warning("Live gas price unavailable on %s, using fallback: %s", source.key, e)
            gas_fee = source.fallback_fee_wei
            fee_source = "fallback"
            warnings.append(f"Fee for {source.key} is a static estimate")

        gas_fee = self._apply_margin(gas_fee)

        if amount < self.min_amount:
            warnings.append(f"Amount {amount} below minimum {self.min_amount}")
        elif amount > self.max_amount:
            warnings.append(f"Amount {amount} above maximum {self.max_amount}")

        return BridgeQuote(
            source_chain=source.key,
            target_chain=target.key,
            amount=amount,
            recipient=recipient,
            gas_fee_wei=gas_fee,
            bridge_fee_wei=0,
            total_fee_wei=gas_fee,
            estimated_time_seconds=self.estimate_time_seconds(source.key, target.key),
            fee_source=fee_source,
            native_symbol=source.native_symbol,
            token_messenger=source.token_messenger,
            message_transmitter=target.message_transmitter,
            min_amount=self.min_amount,
            max_amount=self.max_amount,
            warnings=warnings,
        )

