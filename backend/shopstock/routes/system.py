# backend/shopstock/routes/system.py
"""
System health endpoint.

Checks the database and the stock tables the engine depends on, plus the
backlog of undelivered outbox events.
"""

import time
from flask import Blueprint, current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import StockLedgerEntry, ReceiptHeader, OutboxEvent, SessionToken
from shopstock.time_utils import utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        ledger_count = db.session.query(StockLedgerEntry).count()
        receipt_count = db.session.query(ReceiptHeader).count()
        active_sessions = db.session.query(SessionToken).filter_by(is_revoked=False).count()

        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "ledger_entries": ledger_count,
                "receipts": receipt_count,
                "active_sessions": active_sessions,
            }
        }
    except SQLAlchemyError:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_outbox_health() -> dict:
    """Failed events degrade the service; they never make it unhealthy."""
    start_time = time.time()
    try:
        pending = db.session.query(OutboxEvent).filter_by(status="PENDING").count()
        failed = db.session.query(OutboxEvent).filter_by(status="FAILED").count()
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "degraded" if failed else "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {"pending": pending, "failed": failed},
        }
    except SQLAlchemyError:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Outbox health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Outbox error"
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: one or more checks unhealthy
    """
    start_time = time.time()

    database_health = check_database_health()
    outbox_health = check_outbox_health()

    all_checks = [database_health, outbox_health]
    if any(check["status"] == "unhealthy" for check in all_checks):
        overall_status, http_status = "unhealthy", 503
    elif any(check["status"] == "degraded" for check in all_checks):
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    response = {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": {
            "database": database_health,
            "outbox": outbox_health,
        }
    }
    return response, http_status
