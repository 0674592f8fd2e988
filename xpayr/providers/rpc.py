"""JSON-RPC ChainGateway backed by httpx."""

from __future__ import annotations

import asyncio
import logging
import math
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from ..core.bridge.chains import ChainRegistry
from ..core.bridge.encoding import (
    MESSAGE_SENT_TOPIC,
    decode_message_sent,
    encode_balance_of,
    message_hash,
)
from ..core.recovery import (
    NetworkError,
    RateLimitError,
    RecoverableError,
    TimeoutError,
    TransactionRevertedError,
)
from .base import ChainGateway, LogEntry, TransactionHandle, TransactionReceipt

logger = logging.getLogger(__name__)


def _hex_to_int(value: Optional[str], default: int = 0) -> int:
    if value is None:
        return default
    return int(value, 16)


class JsonRpcChainGateway(ChainGateway):
    """
    ChainGateway over plain Ethereum JSON-RPC.

    Reads balances with ``eth_call``, broadcasts with
    ``eth_sendRawTransaction`` and polls ``eth_getTransactionReceipt``
    plus ``eth_blockNumber`` for confirmation depth. MessageSent logs are
    decoded here so callers only see ``message_bytes``/``message_hash``.
    """

    name = "json-rpc"

    def __init__(
        self,
        chains: ChainRegistry,
        *,
        client: Optional[httpx.AsyncClient] = None,
        timeout_s: float = 30,
        poll_interval_seconds: float = 2.0,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ) -> None:
        self.chains = chains
        self.poll_interval_seconds = poll_interval_seconds
        self._client = client or httpx.AsyncClient(timeout=timeout_s)
        self._sleep = sleep or asyncio.sleep
        self._request_id = 0

    @classmethod
    def from_settings(cls, config: Any, chains: ChainRegistry, **kwargs: Any) -> "JsonRpcChainGateway":
        return cls(
            chains,
            timeout_s=config.rpc_timeout_seconds,
            poll_interval_seconds=config.confirmation_poll_interval_seconds,
            **kwargs,
        )

    async def _rpc_call(self, chain: str, method: str, params: List[Any]) -> Any:
        """Make an RPC call to the chain."""
        rpc_url = self.chains.get(chain).rpc_url
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": self._request_id,
        }

        try:
            response = await self._client.post(rpc_url, json=payload)
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise TimeoutError(f"{method} timed out: {exc}", operation=method, chain=chain) from exc
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            if status == 429:
                retry_after = exc.response.headers.get("retry-after")
                raise RateLimitError(
                    f"RPC rate limited on {chain}",
                    retry_after=float(retry_after) if retry_after and retry_after.isdigit() else None,
                    provider=self.name,
                ) from exc
            if status >= 500:
                raise NetworkError(f"RPC {status} on {chain}", provider=self.name, chain=chain) from exc
            raise
        except httpx.TransportError as exc:
            raise NetworkError(f"RPC transport error on {chain}: {exc}", provider=self.name, chain=chain) from exc

        result = response.json()
        if "error" in result:
            error = result["error"] or {}
            message = str(error.get("message", error)) if isinstance(error, dict) else str(error)
            if "revert" in message.lower():
                raise TransactionRevertedError(f"RPC error: {message}", reason=message, chain=chain)
            raise RuntimeError(f"RPC error: {message}")

        return result.get("result")

    async def get_balance(self, chain: str, address: str) -> int:
        usdc = self.chains.get(chain).usdc
        call_obj = {
            "to": usdc,
            "data": encode_balance_of(address),
        }
        raw = await self._rpc_call(chain, "eth_call", [call_obj, "latest"])
        if not raw or raw == "0x":
            return 0
        return int(raw, 16)

    async def get_gas_price(self, chain: str) -> int:
        return _hex_to_int(await self._rpc_call(chain, "eth_gasPrice", []))

    async def submit_transaction(self, chain: str, signed_payload: str) -> TransactionHandle:
        tx_hash = await self._rpc_call(chain, "eth_sendRawTransaction", [signed_payload])
        logger.info("Transaction submitted on %s: %s", chain, tx_hash)
        return TransactionHandle(chain=chain, tx_hash=tx_hash)

    async def wait_for_confirmation(
        self,
        handle: TransactionHandle,
        confirmations: int = 1,
        timeout_seconds: float = 300,
    ) -> TransactionReceipt:
        if self.poll_interval_seconds > 0:
            attempts = max(1, math.ceil(timeout_seconds / self.poll_interval_seconds))
        else:
            attempts = max(1, int(timeout_seconds))

        for _ in range(attempts):
            try:
                raw = await self._rpc_call(handle.chain, "eth_getTransactionReceipt", [handle.tx_hash])
                if raw:
                    receipt = self._parse_receipt(handle, raw)
                    if not receipt.succeeded:
                        raise TransactionRevertedError(
                            "Transaction reverted",
                            tx_hash=handle.tx_hash,
                            chain=handle.chain,
                        )

                    current_block = _hex_to_int(await self._rpc_call(handle.chain, "eth_blockNumber", []))
                    depth = current_block - receipt.block_number + 1
                    if depth >= confirmations:
                        logger.info(
                            "Transaction confirmed: %s (block %d, %d confirmations)",
                            handle.tx_hash,
                            receipt.block_number,
                            depth,
                        )
                        return receipt
            except RecoverableError as e:
                logger.warning("Error checking transaction status: %s", e)

            await self._sleep(self.poll_interval_seconds)

        raise TimeoutError(
            f"Confirmation timeout after {timeout_seconds}s for {handle.tx_hash}",
            operation="wait_for_confirmation",
            chain=handle.chain,
        )

    async def get_logs(self, receipt: TransactionReceipt, event_topic: str) -> List[LogEntry]:
        matches = [
            log for log in receipt.logs
            if log.topics and log.topics[0].lower() == event_topic.lower()
        ]
        if event_topic.lower() == MESSAGE_SENT_TOPIC:
            for log in matches:
                payload = decode_message_sent(log.data)
                log.fields = {
                    "message_bytes": "0x" + payload.hex(),
                    "message_hash": message_hash(payload),
                }
        return matches

    @staticmethod
    def _parse_receipt(handle: TransactionHandle, raw: Dict[str, Any]) -> TransactionReceipt:
        return TransactionReceipt(
            chain=handle.chain,
            tx_hash=handle.tx_hash,
            block_number=_hex_to_int(raw.get("blockNumber")),
            status=_hex_to_int(raw.get("status"), default=1),
            gas_used=_hex_to_int(raw.get("gasUsed")),
            effective_gas_price=_hex_to_int(raw.get("effectiveGasPrice")),
            logs=[
                LogEntry(
                    address=entry.get("address", ""),
                    topics=list(entry.get("topics", [])),
                    data=entry.get("data", "0x"),
                )
                for entry in raw.get("logs", [])
            ],
        )

    async def close(self) -> None:
        """Close HTTP client."""
        await self._client.aclose()
