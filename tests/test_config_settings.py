from xpayr.config import IRIS_API_MAINNET, IRIS_API_TESTNET, Settings
from xpayr.core.bridge.chains import ChainRegistry


def test_defaults_to_testnet(monkeypatch):
    """Without configuration the sandbox attestation host is used."""

    monkeypatch.delenv("NETWORK", raising=False)
    monkeypatch.delenv("ATTESTATION_BASE_URL", raising=False)

    settings = Settings()

    assert settings.is_testnet
    assert settings.resolve_attestation_base_url() == IRIS_API_TESTNET


def test_mainnet_selects_mainnet_attestation_host(monkeypatch):
    monkeypatch.setenv("NETWORK", "mainnet")
    monkeypatch.delenv("ATTESTATION_BASE_URL", raising=False)

    settings = Settings()

    assert settings.resolve_attestation_base_url() == IRIS_API_MAINNET
    assert ChainRegistry.from_settings(settings).get("base").chain_id == 8453


def test_attestation_url_override(monkeypatch):
    monkeypatch.setenv("ATTESTATION_BASE_URL", "https://iris.internal.example/")

    assert Settings().resolve_attestation_base_url() == "https://iris.internal.example"


def test_rpc_overrides_skip_blanks(monkeypatch):
    """Only explicitly configured RPC URLs override the chain table."""

    monkeypatch.setenv("BASE_RPC_URL", "https://base.rpc.example")
    monkeypatch.setenv("POLYGON_RPC_URL", "")

    settings = Settings()

    assert settings.rpc_url_overrides().get("base") == "https://base.rpc.example"
    assert "polygon" not in settings.rpc_url_overrides()
    assert ChainRegistry.from_settings(settings).get("base").rpc_url == "https://base.rpc.example"


def test_numeric_knobs_from_env(monkeypatch):
    monkeypatch.setenv("ATTESTATION_MAX_ATTEMPTS", "5")
    monkeypatch.setenv("DISPATCH_DEADLINE_SECONDS", "120")
    monkeypatch.setenv("MAX_RETAINED_EXECUTIONS", "50")

    settings = Settings()

    assert settings.attestation_max_attempts == 5
    assert settings.dispatch_deadline_seconds == 120
    assert settings.max_retained_executions == 50
