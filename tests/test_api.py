from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from conftest import RECIPIENT_A, RECIPIENT_B, SENDER, make_authority, make_gateway, make_signer
from xpayr.config import Settings
from xpayr.core.dispatch.service import DispatchService, get_dispatch_service
from xpayr.main import app

client = TestClient(app)


@pytest.fixture(autouse=True)
def service():
    """Route every request to a dispatch service backed by in-memory fakes."""
    svc = DispatchService.from_settings(
        Settings(),
        signer=make_signer(),
        gateway=make_gateway(),
        attestation=make_authority(),
        sleep=AsyncMock(),
    )
    app.dependency_overrides[get_dispatch_service] = lambda: svc
    yield svc
    app.dependency_overrides.clear()


def plan_body(amounts=("600000000", "400000000")):
    return {"entries": [{"chain": c, "amount": a} for c, a in zip(["base", "polygon"], amounts)]}


class TestHealthAPI:
    """Health and metadata endpoints"""

    def test_health_endpoint(self):
        response = client.get("/healthz")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "healthy"
        assert data["chains"] == 5
        assert data["execution_enabled"] is True
        assert data["attestation_api"].startswith("https://")

    def test_chains_endpoint(self):
        data = client.get("/chains").json()

        keys = {chain["key"] for chain in data["chains"]}
        assert {"ethereum", "base", "arbitrum", "polygon", "avalanche"} <= keys

    def test_root(self):
        assert client.get("/").json()["health"] == "/healthz"


class TestPlanAPI:
    """POST /dispatch/plan"""

    def test_plan_in_base_units(self):
        response = client.post(
            "/dispatch/plan",
            json={
                "chains": ["base", "polygon"],
                "balances": ["500", "200"],
                "thresholds": ["1000", "500"],
                "totalAmount": "1000",
            },
        )
        assert response.status_code == 200

        plan = response.json()["plan"]
        assert [e["amount"] for e in plan["entries"]] == ["600", "400"]
        assert plan["totalAmount"] == "1000"

    def test_plan_in_usdc(self):
        response = client.post(
            "/dispatch/plan",
            json={
                "chains": ["base", "polygon"],
                "balances": ["1500", "2000"],
                "thresholds": ["1000", "1000"],
                "totalAmount": "1000.5",
                "unit": "usdc",
            },
        )

        amounts = [e["amount"] for e in response.json()["plan"]["entries"]]
        assert amounts == ["500250000", "500250000"]

    def test_plan_length_mismatch(self):
        response = client.post(
            "/dispatch/plan",
            json={"chains": ["base"], "balances": ["1", "2"], "thresholds": ["1", "2"], "totalAmount": "10"},
        )
        assert response.status_code == 422

    def test_plan_rejects_non_integer_amounts(self):
        response = client.post(
            "/dispatch/plan",
            json={"chains": ["base"], "balances": ["1.5"], "thresholds": ["1"], "totalAmount": "10"},
        )
        assert response.status_code == 422


class TestQuoteAndExecuteAPI:
    """POST /dispatch/quote and /dispatch/execute"""

    def test_quote(self):
        response = client.post(
            "/dispatch/quote",
            json={"plan": plan_body(), "sourceChain": "ethereum", "recipients": [RECIPIENT_A, RECIPIENT_B]},
        )
        assert response.status_code == 200

        quotes = response.json()["quotes"]
        assert [q["targetChain"] for q in quotes] == ["base", "polygon"]
        assert quotes[1]["estimatedTimeSeconds"] > quotes[0]["estimatedTimeSeconds"]

    def test_dry_run(self, service):
        response = client.post(
            "/dispatch/execute",
            json={
                "plan": plan_body(),
                "sourceChain": "ethereum",
                "recipients": [RECIPIENT_A, RECIPIENT_B],
                "dryRun": True,
            },
        )
        assert response.status_code == 200

        result = response.json()["result"]
        assert result["dryRun"] is True
        assert [e["status"] for e in result["entries"]] == ["simulated", "simulated"]
        service._gateway.submit_transaction.assert_not_awaited()

    def test_execute_requires_sender(self):
        response = client.post(
            "/dispatch/execute",
            json={"plan": plan_body(), "sourceChain": "ethereum", "recipients": [RECIPIENT_A, RECIPIENT_B]},
        )
        assert response.status_code == 422

    def test_execute_and_lookup(self):
        response = client.post(
            "/dispatch/execute",
            json={
                "plan": plan_body(),
                "sourceChain": "ethereum",
                "recipients": [RECIPIENT_A, RECIPIENT_B],
                "sender": SENDER,
                "keyId": "treasury",
            },
        )
        assert response.status_code == 200

        body = response.json()
        assert body["success"] is True
        execution_id = body["result"]["entries"][0]["executionId"]

        lookup = client.get(f"/dispatch/executions/{execution_id}")
        assert lookup.status_code == 200
        assert lookup.json()["execution"]["phase"] == "minted"

        monitor = client.post("/dispatch/monitor", json={"messageIds": [execution_id]})
        assert monitor.json()["summary"]["allCompleted"] is True

    def test_execute_bad_recipient(self):
        response = client.post(
            "/dispatch/execute",
            json={
                "plan": plan_body(),
                "sourceChain": "ethereum",
                "recipients": [RECIPIENT_A, "0xnope"],
                "sender": SENDER,
            },
        )
        assert response.status_code == 422

    def test_execute_same_chain(self):
        response = client.post(
            "/dispatch/execute",
            json={"plan": plan_body(), "sourceChain": "base", "recipients": [RECIPIENT_A, RECIPIENT_B], "dryRun": True},
        )
        assert response.status_code == 422


class TestExecutionAPI:
    """Execution lookup and resume"""

    def test_unknown_execution(self):
        assert client.get("/dispatch/executions/bridge_missing").status_code == 404

    def test_resume_unknown_execution(self):
        assert client.post("/dispatch/executions/bridge_missing/resume").status_code == 422

    def test_monitor_requires_ids(self):
        assert client.post("/dispatch/monitor", json={"messageIds": []}).status_code == 422
