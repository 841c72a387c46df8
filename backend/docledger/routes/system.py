# backend/docledger/routes/system.py
"""
System health endpoint.
"""

import time

from flask import Blueprint, current_app, jsonify
from sqlalchemy import text

from ..extensions import db
from ..models import GoodsReceivedVoucher, InventoryMovement
from ..time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        elapsed_ms = (time.time() - start_time) * 1000
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2)}
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {"status": "unhealthy", "latency_ms": round(elapsed_ms, 2), "error": "Database error"}


def check_ledger_review_queue() -> dict:
    """Rows waiting on manual stock review. Informational; never degrades health."""
    return {
        "movements_needing_review": InventoryMovement.query.filter_by(needs_review=True).count(),
        "grvs_requiring_review": GoodsReceivedVoucher.query.filter_by(requires_review=True).count(),
    }


@system_bp.get("/health")
def health():
    database = check_database_health()
    healthy = database["status"] == "healthy"
    body = {
        "status": "ok" if healthy else "degraded",
        "checked_at": to_utc_z(utcnow()),
        "checks": {"database": database},
    }
    if healthy:
        body["review_queue"] = check_ledger_review_queue()
    return jsonify(body), 200 if healthy else 503
