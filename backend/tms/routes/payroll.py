# Overview: Flask API routes for driver payroll reports.

from flask import Blueprint, request, jsonify, current_app

from ..services import payroll_service
from ..validation import TmsError


payroll_bp = Blueprint("payroll", __name__, url_prefix="/api/orgs/<int:org_id>")


@payroll_bp.get("/drivers/<int:driver_id>/payroll")
def driver_payroll_route(org_id: int, driver_id: int):
    """
    Driver settlement report.

    Query params:
    - start, end: ISO dates or datetimes (bare dates cover the whole day)
    - stage_types: comma-separated payable stage types (default DELIVERED,COMPLETED)
    - mode: RESOLVED_START_DATE | STATUS_CREATED_AT | TRIP_PICKUP_DATE | TRIP_DELIVERY_DATE
    """
    try:
        stage_types = request.args.get("stage_types") or "DELIVERED,COMPLETED"
        settlements = payroll_service.resolve_driver_payroll(
            org_id,
            driver_id,
            request.args.get("start"),
            request.args.get("end"),
            [s for s in stage_types.split(",") if s.strip()],
            mode=request.args.get("mode") or None,
        )
        return jsonify({
            "settlements": settlements,
            "summary": payroll_service.summarize_payroll(settlements),
        }), 200
    except TmsError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to build driver payroll")
        return jsonify({"error": "Internal server error"}), 500
