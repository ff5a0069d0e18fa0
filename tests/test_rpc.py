"""
Tests for the operator RPC (FastAPI)
"""
import pytest
from fastapi.testclient import TestClient

from protocol.types.common import ShareClass
from protocol.types.share import ShareSubmission
from pool.rpc import api


@pytest.fixture
def client(controller, monkeypatch):
    monkeypatch.setattr(api, "controller", controller)
    return TestClient(api.app)


def test_requires_controller(monkeypatch):
    monkeypatch.setattr(api, "controller", None)
    client = TestClient(api.app)

    assert client.get("/status").status_code == 503


def test_status_and_round(client, controller):
    assert client.get("/round").status_code == 404

    controller.start_new_round()
    status = client.get("/status").json()
    assert status["round_id"] == 1
    assert status["state"] == "OPEN"
    assert status["operator_address"] == controller.operator_address

    body = client.get("/round").json()
    assert body["template"]["round_id"] == 1
    assert body["template"]["proof"] is None


def test_send_tx(client, controller):
    tx = {"from_address": "alice", "to_address": "bob", "amount": 10}

    first = client.post("/tx/send", json=tx)
    second = client.post("/tx/send", json=tx)

    assert first.status_code == 200
    assert first.json()["status"] == "queued"
    assert second.json()["status"] == "duplicate"
    assert controller.pending.size() == 1


def test_send_invalid_tx(client):
    resp = client.post("/tx/send", json={"to_address": "bob", "amount": -1})

    assert resp.status_code == 400
    assert "negative_amount" in resp.json()["detail"]


def test_ledger_summary_and_payouts(client, controller, find_proofs):
    controller.start_new_round()
    share = find_proofs(controller.template, ShareClass.SHARE)[0]
    controller.handle_share(ShareSubmission(worker_address="A", candidate=controller.template.with_proof(share)))

    ledger = client.get("/ledger").json()
    assert ledger["contributions"] == {"A": 1}
    assert ledger["total_shares"] == 1

    assert client.get("/rounds/1").status_code == 404

    full = find_proofs(controller.template, ShareClass.FULL_PROOF)[0]
    controller.handle_share(ShareSubmission(worker_address="B", candidate=controller.template.with_proof(full)))

    summary = client.get("/rounds/1").json()
    assert summary["winner"] == "B"
    assert summary["total_shares"] == 2
    assert sum(p["amount"] for p in summary["payouts"]) == 25 * 10**6

    receipt = controller.distributor.receipts.for_round(1)[0]
    payout = client.get(f"/payouts/{receipt.tx_hash}").json()
    assert payout["status"] == "submitted"
    assert client.get("/payouts/unknown").status_code == 404
    assert client.get("/payouts", params={"status": "failed"}).json() == []


def test_metrics_endpoint(client, controller):
    controller.start_new_round()

    resp = client.get("/metrics")

    assert resp.status_code == 200
    assert "proppool_current_round" in resp.text
