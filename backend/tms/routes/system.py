# backend/tms/routes/system.py
"""
System health endpoint.

Reports database reachability and whether report stages have been seeded.
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import Organization, DriverReport
from ..time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api/system")


def check_database_health() -> dict:
    start_time = time.time()
    try:
        org_count = db.session.query(Organization).count()
        stage_count = db.session.query(DriverReport).count()
        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy" if org_count == 0 or stage_count > 0 else "degraded",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "organizations": org_count,
                "report_stages": stage_count,
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
def health():
    """
    Returns:
    - 200: healthy or degraded (organizations exist without report stages)
    - 503: database unreachable
    """
    database_health = check_database_health()
    http_status = 503 if database_health["status"] == "unhealthy" else 200

    response = {
        "status": database_health["status"],
        "timestamp": to_utc_z(utcnow()),
        "checks": {
            "database": database_health,
        },
        "settlement": {
            "money_precision": current_app.config.get("MONEY_PRECISION"),
            "payroll_unit": current_app.config.get("PAYROLL_UNIT"),
        },
    }
    return response, http_status
