# Overview: Flask API routes for system health; reports database and order cycle state.

import time

from flask import Blueprint, current_app
from sqlalchemy import text

from ..extensions import db
from ..models import CutoffWindow, OrderCycle, SINGLETON_ID
from ..time_utils import utcnow


system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity with a trivial query.
    """
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database connection failed",
        }


def check_cycle_state_health() -> dict:
    """
    Check that the cutoff window and order cycle rows exist.

    Missing rows are not fatal (both fall back to start-of-day defaults),
    so they only degrade the report.
    """
    start_time = time.time()
    try:
        window = db.session.get(CutoffWindow, SINGLETON_ID)
        cycle = db.session.get(OrderCycle, SINGLETON_ID)
        elapsed_ms = (time.time() - start_time) * 1000

        missing = []
        if window is None:
            missing.append("cutoff_window")
        if cycle is None:
            missing.append("order_cycle")

        result = {
            "status": "degraded" if missing else "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "cutoff_status": window.status if window else None,
                "cycle_confirmed": bool(cycle.is_confirmed) if cycle else False,
            },
        }
        if missing:
            result["warning"] = f"Not initialized yet: {', '.join(missing)}"
        return result
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Cycle state health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Cycle state unavailable",
        }


@system_bp.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: healthy or degraded
    - 503: database unreachable
    """
    start_time = time.time()

    database_health = check_database_health()
    cycle_health = check_cycle_state_health()

    all_checks = [database_health, cycle_health]
    if any(check["status"] == "unhealthy" for check in all_checks):
        overall_status = "unhealthy"
        http_status = 503
    elif any(check["status"] == "degraded" for check in all_checks):
        overall_status = "degraded"
        http_status = 200
    else:
        overall_status = "healthy"
        http_status = 200

    total_elapsed_ms = (time.time() - start_time) * 1000

    response = {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round(total_elapsed_ms, 2),
        "checks": {
            "database": database_health,
            "cycle_state": cycle_health,
        },
    }
    return response, http_status
