"""CCTP chain metadata and the immutable chain registry built from it."""

from __future__ import annotations

from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional

from ..recovery import ValidationError


@dataclass(frozen=True)
class ChainConfig:
    """Static configuration for one CCTP-enabled chain."""

    key: str
    name: str
    chain_id: int
    domain: int
    usdc: str
    token_messenger: str
    message_transmitter: str
    rpc_url: str
    explorer_url: str
    native_symbol: str = "ETH"
    # Static fee estimate (wei) used when live gas data is unavailable
    fallback_fee_wei: int = 10**16
    # Extra settlement latency added to quotes touching this chain
    settlement_delay_seconds: int = 0

    def explorer_tx_url(self, tx_hash: str) -> str:
        return f"{self.explorer_url}/tx/{tx_hash}"

    def explorer_address_url(self, address: str) -> str:
        return f"{self.explorer_url}/address/{address}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "name": self.name,
            "chainId": self.chain_id,
            "domain": self.domain,
            "nativeSymbol": self.native_symbol,
            "contracts": {
                "usdc": self.usdc,
                "tokenMessenger": self.token_messenger,
                "messageTransmitter": self.message_transmitter,
            },
            "explorerUrl": self.explorer_url,
        }


TESTNET_CHAINS: Dict[str, ChainConfig] = {
    "ethereum": ChainConfig(
        key="ethereum",
        name="Ethereum Sepolia",
        chain_id=11155111,
        domain=0,
        usdc="0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238",
        token_messenger="0x9f3B8679c73C2Fef8b59B4f3444d4e156fb70AA5",
        message_transmitter="0x7865fAfC2db2093669d92c0F33AeEF291086BEFD",
        rpc_url="https://rpc.sepolia.org",
        explorer_url="https://sepolia.etherscan.io",
        fallback_fee_wei=2 * 10**16,
    ),
    "avalanche": ChainConfig(
        key="avalanche",
        name="Avalanche Fuji",
        chain_id=43113,
        domain=1,
        usdc="0x5425890298aed601595a70AB815c96711a31Bc65",
        token_messenger="0xeb08f243E5d3FCFF26A9E38Ae5520A669f4019d0",
        message_transmitter="0xa9fB1b3009DCb79E2fe346c16a604B8Fa8aE0a79",
        rpc_url="https://api.avax-test.network/ext/bc/C/rpc",
        explorer_url="https://testnet.snowtrace.io",
        native_symbol="AVAX",
    ),
    "arbitrum": ChainConfig(
        key="arbitrum",
        name="Arbitrum Sepolia",
        chain_id=421614,
        domain=3,
        usdc="0x75faf114eafb1BDBe2F0316DF893fD58CE46AA4d",
        token_messenger="0x9f3B8679c73C2Fef8b59B4f3444d4e156fb70AA5",
        message_transmitter="0xaCF1ceeF35Caac005e15888dDb8a3515C41B4872",
        rpc_url="https://sepolia-rollup.arbitrum.io/rpc",
        explorer_url="https://sepolia.arbiscan.io",
        fallback_fee_wei=10**15,
    ),
    "base": ChainConfig(
        key="base",
        name="Base Sepolia",
        chain_id=84532,
        domain=6,
        usdc="0x036CbD53842c5426634e7929541eC2318f3dCF7e",
        token_messenger="0x9f3B8679c73C2Fef8b59B4f3444d4e156fb70AA5",
        message_transmitter="0x7865fAfC2db2093669d92c0F33AeEF291086BEFD",
        rpc_url="https://sepolia.base.org",
        explorer_url="https://sepolia.basescan.org",
        fallback_fee_wei=10**15,
    ),
    "polygon": ChainConfig(
        key="polygon",
        name="Polygon Amoy",
        chain_id=80002,
        domain=7,
        usdc="0x41E94Eb019C0762f9Bfcf9Fb1E58725BfB0e7582",
        token_messenger="0x9f3B8679c73C2Fef8b59B4f3444d4e156fb70AA5",
        message_transmitter="0x7865fAfC2db2093669d92c0F33AeEF291086BEFD",
        rpc_url="https://rpc-amoy.polygon.technology",
        explorer_url="https://amoy.polygonscan.com",
        native_symbol="POL",
        fallback_fee_wei=5 * 10**15,
        settlement_delay_seconds=30,  # checkpoint delays
    ),
}

MAINNET_CHAINS: Dict[str, ChainConfig] = {
    "ethereum": ChainConfig(
        key="ethereum",
        name="Ethereum",
        chain_id=1,
        domain=0,
        usdc="0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
        token_messenger="0xBd3fa81B58Ba92a82136038B25aDec7066af3155",
        message_transmitter="0x0a992d191DEeC32aFe36203Ad87D7d289a738F81",
        rpc_url="https://eth.llamarpc.com",
        explorer_url="https://etherscan.io",
        fallback_fee_wei=2 * 10**16,
    ),
    "avalanche": ChainConfig(
        key="avalanche",
        name="Avalanche",
        chain_id=43114,
        domain=1,
        usdc="0xB97EF9Ef8734C71904D8002F8b6Bc66Dd9c48a6E",
        token_messenger="0x6B25532e1060CE10cc3B0A99e5683b91BFDe6982",
        message_transmitter="0x8186359aF5F57FbB40c6b14A588d2A59C0C29880",
        rpc_url="https://api.avax.network/ext/bc/C/rpc",
        explorer_url="https://snowtrace.io",
        native_symbol="AVAX",
    ),
    "arbitrum": ChainConfig(
        key="arbitrum",
        name="Arbitrum One",
        chain_id=42161,
        domain=3,
        usdc="0xaf88d065e77c8cC2239327C5EDb3A432268e5831",
        token_messenger="0x19330d10D9Cc8751218eaf51E8885D058642E08A",
        message_transmitter="0xC30362313FBBA5cf9163F0bb16a0e01f01A896ca",
        rpc_url="https://arbitrum.llamarpc.com",
        explorer_url="https://arbiscan.io",
        fallback_fee_wei=10**15,
    ),
    "base": ChainConfig(
        key="base",
        name="Base",
        chain_id=8453,
        domain=6,
        usdc="0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
        token_messenger="0x1682Ae6375C4E4A97e4B583BC394c861A46D8962",
        message_transmitter="0xAD09780d193884d503182aD4588450C416D6F9D4",
        rpc_url="https://base.llamarpc.com",
        explorer_url="https://basescan.org",
        fallback_fee_wei=10**15,
    ),
    "polygon": ChainConfig(
        key="polygon",
        name="Polygon PoS",
        chain_id=137,
        domain=7,
        usdc="0x3c499c542cEF5E3811e1192ce70d8cC03d5c3359",
        token_messenger="0x9daF8c91AEFAE50b9c0E69629D3F6Ca40cA3B3FE",
        message_transmitter="0xF3be9355363857F3e001be68856A2f96b4C39Ba9",
        rpc_url="https://polygon-rpc.com",
        explorer_url="https://polygonscan.com",
        native_symbol="POL",
        fallback_fee_wei=5 * 10**15,
        settlement_delay_seconds=30,
    ),
}

CHAIN_ALIASES: Dict[str, str] = {
    "eth": "ethereum",
    "mainnet": "ethereum",
    "sepolia": "ethereum",
    "avax": "avalanche",
    "fuji": "avalanche",
    "arb": "arbitrum",
    "arbitrum one": "arbitrum",
    "matic": "polygon",
    "amoy": "polygon",
    "base mainnet": "base",
}


class ChainRegistry:
    """Read-only lookup table of chain configurations.

    Built once at process start from the selected network plus RPC
    overrides; never mutated afterwards.

    Usage:
        registry = ChainRegistry.from_settings(settings)
        registry.get("ARB").domain  # 3
    """

    def __init__(self, chains: Mapping[str, ChainConfig]) -> None:
        self._chains: Mapping[str, ChainConfig] = MappingProxyType(dict(chains))

    @classmethod
    def for_network(
        cls,
        network: str = "testnet",
        rpc_overrides: Optional[Mapping[str, str]] = None,
    ) -> "ChainRegistry":
        table = TESTNET_CHAINS if network == "testnet" else MAINNET_CHAINS
        overrides = rpc_overrides or {}
        chains = {
            key: replace(config, rpc_url=overrides[key]) if key in overrides else config
            for key, config in table.items()
        }
        return cls(chains)

    @classmethod
    def from_settings(cls, config: Any) -> "ChainRegistry":
        return cls.for_network(config.network, config.rpc_url_overrides())

    def normalize(self, chain: str) -> str:
        """Collapse user-provided identifiers (``ARB``, ``matic``) into canonical keys."""
        if not chain:
            raise ValidationError("Chain identifier is required", field_name="chain")
        lowered = chain.strip().lower()
        key = CHAIN_ALIASES.get(lowered, lowered)
        if key not in self._chains:
            raise ValidationError(
                f"Unsupported chain: {chain}. Supported: {', '.join(self.keys())}",
                field_name="chain",
            )
        return key

    def get(self, chain: str) -> ChainConfig:
        return self._chains[self.normalize(chain)]

    def is_supported(self, chain: str) -> bool:
        try:
            self.normalize(chain)
        except ValidationError:
            return False
        return True

    def keys(self) -> List[str]:
        return list(self._chains.keys())

    def by_chain_id(self, chain_id: int) -> Optional[ChainConfig]:
        for config in self._chains.values():
            if config.chain_id == chain_id:
                return config
        return None

    def __iter__(self) -> Iterator[ChainConfig]:
        return iter(self._chains.values())

    def __len__(self) -> int:
        return len(self._chains)
