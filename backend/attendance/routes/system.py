# backend/attendance/routes/system.py
"""
System health endpoint.

Reports database connectivity and the expiry sweep configuration for
deployment debugging.
"""

import time
from flask import Blueprint, current_app, jsonify
from ..extensions import db
from ..models import AttendanceEntry, Employee, EntryStatus
from ..services.runtime import get_runtime

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        employee_count = db.session.query(Employee).count()
        open_count = db.session.query(AttendanceEntry).filter_by(status=EntryStatus.IN_PROGRESS).count()

        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "employees": employee_count,
                "open_sessions": open_count,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


@system_bp.get("/health")
def health_route():
    database = check_database_health()
    policy = get_runtime().policy
    body = {
        "status": database["status"],
        "checks": {"database": database},
        "expiry": {
            "max_session_seconds": policy.max_session_seconds,
            "sweep_interval_seconds": policy.sweep_interval_seconds,
            "scheduler_enabled": bool(current_app.config.get("ATTENDANCE_SCHEDULER_ENABLED")),
        },
    }
    return jsonify(body), 200 if database["status"] == "healthy" else 503
