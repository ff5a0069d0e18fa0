from fastapi import FastAPI, HTTPException
from fastapi.responses import Response
from pydantic import BaseModel
from typing import Optional
from protocol.types.tx import Transaction
from protocol.types.common import InvalidTransaction
from ..core.round_controller import RoundController
import logging

logger = logging.getLogger(__name__)

app = FastAPI(title="PropPool Operator RPC")

# Set by the node CLI (or tests) before serving
controller: Optional[RoundController] = None

class TxResponse(BaseModel):
    tx_hash: str
    status: str
    error: Optional[str] = None

def _require_controller() -> RoundController:
    if not controller:
        raise HTTPException(status_code=503, detail="Pool not initialized")
    return controller

@app.get("/status")
async def get_status():
    ctrl = _require_controller()
    status = ctrl.status()
    status["operator_address"] = ctrl.operator_address
    return status

@app.get("/round")
async def get_current_round():
    ctrl = _require_controller()
    if not ctrl.template:
        raise HTTPException(status_code=404, detail="No round started")
    return {
        "round_id": ctrl.round_id,
        "state": ctrl.state.value,
        "template": ctrl.template.model_dump(),
    }

@app.get("/ledger")
async def get_ledger():
    """Share counts for the open round."""
    ctrl = _require_controller()
    counts = dict(ctrl.ledger.counts()) if ctrl.ledger else {}
    return {
        "round_id": ctrl.round_id,
        "state": ctrl.state.value,
        "total_shares": sum(counts.values()),
        "contributions": counts,
    }

@app.get("/rounds/{round_id}")
async def get_round(round_id: int):
    ctrl = _require_controller()
    summary = ctrl.get_round(round_id)
    if not summary:
        raise HTTPException(status_code=404, detail="Round not found or not finalized")
    return summary.to_dict()

@app.post("/tx/send", response_model=TxResponse)
async def send_tx(tx: Transaction):
    ctrl = _require_controller()
    try:
        added = ctrl.queue_transaction(tx)
    except InvalidTransaction as e:
        raise HTTPException(status_code=400, detail=str(e))

    return TxResponse(tx_hash=tx.hash_hex, status="queued" if added else "duplicate")

@app.get("/payouts/{tx_hash}")
async def get_payout(tx_hash: str):
    ctrl = _require_controller()
    receipt = ctrl.distributor.receipts.get(tx_hash)
    if not receipt:
        raise HTTPException(status_code=404, detail="Payout not found")
    return receipt.to_dict()

@app.get("/payouts")
async def list_failed_payouts(status: str = "failed"):
    ctrl = _require_controller()
    if status != "failed":
        raise HTTPException(status_code=400, detail="Only status=failed is supported")
    return [r.to_dict() for r in ctrl.distributor.receipts.failed()]

@app.get("/metrics")
async def get_metrics():
    """
    Prometheus metrics endpoint.

    Returns metrics in Prometheus text format.
    """
    from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
    from ..observability.metrics import metrics_registry, update_metrics

    if controller:
        update_metrics(controller)

    return Response(content=generate_latest(metrics_registry), media_type=CONTENT_TYPE_LATEST)
