from pathlib import Path
from typing import Dict, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parents[1]

IRIS_API_TESTNET = "https://iris-api-sandbox.circle.com"
IRIS_API_MAINNET = "https://iris-api.circle.com"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Server Settings
    host: str = Field(default="127.0.0.1", description="Server host")
    port: int = Field(default=8000, description="Server port")
    log_level: str = Field(default="INFO", description="Logging level")

    # Network selection
    network: Literal["testnet", "mainnet"] = Field(
        default="testnet",
        description="Selects the CCTP contract table and attestation host",
    )
    attestation_base_url: str = Field(
        default="",
        description="Override the Circle Iris attestation API base URL",
    )
    circle_api_key: str = Field(default="", description="Optional Circle API key (bearer token)")

    # RPC endpoints (empty means use the public default for the network)
    ethereum_rpc_url: str = Field(default="", description="Ethereum RPC URL")
    base_rpc_url: str = Field(default="", description="Base RPC URL")
    arbitrum_rpc_url: str = Field(default="", description="Arbitrum RPC URL")
    polygon_rpc_url: str = Field(default="", description="Polygon RPC URL")
    avalanche_rpc_url: str = Field(default="", description="Avalanche RPC URL")
    rpc_timeout_seconds: int = Field(default=30, ge=1, description="JSON-RPC request timeout")

    # Attestation polling
    attestation_poll_interval_seconds: float = Field(
        default=10.0,
        ge=0,
        description="Fixed delay between attestation polls",
    )
    attestation_max_attempts: int = Field(
        default=60,
        ge=1,
        description="Maximum attestation polls before giving up (~10 minutes at default interval)",
    )

    # Transaction confirmation
    confirmation_depth: int = Field(default=1, ge=1, description="Confirmations required per transaction")
    confirmation_timeout_seconds: int = Field(default=300, ge=1, description="Max wait for a receipt")
    confirmation_poll_interval_seconds: float = Field(default=2.0, ge=0, description="Receipt poll interval")

    # Transient error retries
    transient_retry_attempts: int = Field(default=3, ge=1, description="Attempts for transient network errors")
    transient_retry_delay_seconds: float = Field(default=2.0, ge=0, description="Fixed delay between retries")

    # Quotes
    bridge_gas_limit: int = Field(
        default=200_000,
        ge=21_000,
        description="Gas budget for approve + depositForBurn used in fee quotes",
    )
    quote_fee_margin_percent: float = Field(
        default=0.0,
        ge=0,
        le=100,
        description="Safety margin applied on top of quoted gas fees",
    )
    protocol_base_time_seconds: int = Field(
        default=180,
        ge=0,
        description="Protocol-level floor for bridge completion time",
    )

    # Dispatch
    dispatch_deadline_seconds: int = Field(
        default=1800,
        ge=1,
        description="Deadline bounding one orchestrated dispatch",
    )
    submission_delay_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Stagger between successive bridge submissions",
    )
    max_retained_executions: int = Field(
        default=1000,
        ge=1,
        description="Finished executions kept in memory for status queries and resume",
    )
    min_bridge_amount: int = Field(default=1, ge=1, description="Minimum bridge amount (base units)")
    max_bridge_amount: int = Field(
        default=1_000_000 * 10**6,
        ge=1,
        description="Maximum bridge amount per transfer (base units)",
    )

    @property
    def is_testnet(self) -> bool:
        return self.network == "testnet"

    @property
    def has_circle_api_key(self) -> bool:
        return bool(self.circle_api_key)

    def resolve_attestation_base_url(self) -> str:
        if self.attestation_base_url:
            return self.attestation_base_url.rstrip("/")
        return IRIS_API_TESTNET if self.is_testnet else IRIS_API_MAINNET

    def rpc_url_overrides(self) -> Dict[str, str]:
        """Chain key -> configured RPC URL, skipping blanks."""
        configured = {
            "ethereum": self.ethereum_rpc_url,
            "base": self.base_rpc_url,
            "arbitrum": self.arbitrum_rpc_url,
            "polygon": self.polygon_rpc_url,
            "avalanche": self.avalanche_rpc_url,
        }
        return {chain: url for chain, url in configured.items() if url}


# Global settings instance
settings = Settings()
