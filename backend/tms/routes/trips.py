# Overview: Flask API routes for order trips; parses input and returns JSON responses.

"""Trip lifecycle API routes (organization scoped)."""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import with_actor
from ..services import trip_service, expense_service
from ..validation import TmsError


trips_bp = Blueprint("trips", __name__, url_prefix="/api/orgs/<int:org_id>")


def _error_response(e: TmsError):
    return jsonify(e.to_dict()), e.status_code


def _result_response(result, success_status: int = 200):
    if result.ok:
        return jsonify(result.to_dict()), success_status
    return jsonify(result.to_dict()), result.error.status_code


@trips_bp.post("/orders/<int:order_id>/trips")
@with_actor
def create_trip_route(org_id: int, order_id: int):
    """
    Schedule a trip under an order.

    Request body:
    {
        "weight": "12.5",
        "pickup_date": "2024-01-10T08:00:00Z",
        "delivery_date": "2024-01-12T09:00:00Z",
        "vehicle_id": 3,
        "driver_id": 7,
        "use_route_defaults": true,
        "cost_overrides": {"bridge_toll": "150000"}
    }
    """
    try:
        data = request.get_json() or {}
        result = trip_service.create_trip(
            org_id,
            order_id,
            weight=data.get("weight"),
            pickup_date=data.get("pickup_date"),
            delivery_date=data.get("delivery_date"),
            vehicle_id=data.get("vehicle_id"),
            driver_id=data.get("driver_id"),
            cost_overrides=data.get("cost_overrides"),
            use_route_defaults=bool(data.get("use_route_defaults", False)),
            created_by_user_id=g.user_id,
            actor_name=g.actor_name,
        )
        return _result_response(result, 201)
    except TmsError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create trip")
        return jsonify({"error": "Internal server error"}), 500


@trips_bp.get("/trips/<int:trip_id>")
def get_trip_route(org_id: int, trip_id: int):
    try:
        trip = trip_service.get_trip(org_id, trip_id)
        flags = trip_service.get_trip_status_flags(org_id, trip_id)
        return jsonify({"trip": trip, "status_flags": flags}), 200
    except TmsError as e:
        return _error_response(e)


@trips_bp.patch("/trips/<int:trip_id>")
@with_actor
def update_trip_route(org_id: int, trip_id: int):
    """
    Edit plan, assignment or flat costs.

    Request body:
    {
        "expected_version": 2,
        "patch": {"delivery_date": "2024-01-13T09:00:00Z", "bridge_toll": "180000"}
    }
    """
    try:
        data = request.get_json() or {}
        result = trip_service.update_trip(
            org_id,
            trip_id,
            data.get("patch"),
            expected_version=data.get("expected_version"),
            updated_by_user_id=g.user_id,
        )
        return _result_response(result)
    except TmsError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update trip")
        return jsonify({"error": "Internal server error"}), 500


@trips_bp.get("/trips/<int:trip_id>/statuses")
def list_statuses_route(org_id: int, trip_id: int):
    try:
        return jsonify({"statuses": trip_service.list_status_history(org_id, trip_id)}), 200
    except TmsError as e:
        return _error_response(e)


@trips_bp.post("/trips/<int:trip_id>/status")
@with_actor
def advance_status_route(org_id: int, trip_id: int):
    """
    Append a status event.

    Request body:
    {
        "stage_type": "WAITING_FOR_PICKUP",
        "expected_version": 3,
        "notes": "optional",
        "driver_report_id": 12
    }

    Returns:
        200: Status appended
        400: Unknown stage or trip canceled
        404: Trip not found
        409: Trip changed since it was loaded
    """
    try:
        data = request.get_json() or {}
        result = trip_service.advance_status(
            org_id,
            trip_id,
            data.get("stage_type"),
            expected_version=data.get("expected_version"),
            notes=data.get("notes"),
            driver_report_id=data.get("driver_report_id"),
            updated_by_user_id=g.user_id,
            actor_name=g.actor_name,
        )
        return _result_response(result)
    except TmsError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to advance trip status")
        return jsonify({"error": "Internal server error"}), 500


@trips_bp.post("/trips/<int:trip_id>/cancel")
@with_actor
def cancel_trip_route(org_id: int, trip_id: int):
    try:
        data = request.get_json() or {}
        result = trip_service.cancel_trip(
            org_id,
            trip_id,
            expected_version=data.get("expected_version"),
            notes=data.get("notes"),
            updated_by_user_id=g.user_id,
            actor_name=g.actor_name,
        )
        return _result_response(result)
    except TmsError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to cancel trip")
        return jsonify({"error": "Internal server error"}), 500


@trips_bp.put("/trips/<int:trip_id>/bill-of-lading")
@with_actor
def update_bill_of_lading_route(org_id: int, trip_id: int):
    """
    Request body:
    {
        "bill_of_lading": "BOL-001",
        "images_added": ["uploads/bol/1.jpg"],
        "images_removed": [],
        "received": true,
        "expected_version": 4
    }
    """
    try:
        data = request.get_json() or {}
        trip = trip_service.update_bill_of_lading(
            org_id,
            trip_id,
            bill_of_lading=data.get("bill_of_lading"),
            images_added=data.get("images_added") or [],
            images_removed=data.get("images_removed") or [],
            received=data.get("received"),
            updated_by_user_id=g.user_id,
            expected_version=data.get("expected_version"),
        )
        return jsonify({"trip": trip}), 200
    except TmsError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update bill of lading")
        return jsonify({"error": "Internal server error"}), 500


@trips_bp.post("/trips/<int:trip_id>/notification-schedule/reset")
def reset_notification_schedule_route(org_id: int, trip_id: int):
    try:
        return jsonify(trip_service.reset_notification_schedule(org_id, trip_id)), 200
    except TmsError as e:
        return _error_response(e)


@trips_bp.post("/trips/reset-driver-expenses")
@with_actor
def reset_driver_expenses_route(org_id: int):
    """
    Re-apply route defaults to trips.

    Request body:
    {
        "trip_ids": [1, 2, 3],
        "route_id": 5            (optional, defaults to each trip's order route)
    }

    Returns 200 when every trip was reset, 207 when some failed.
    """
    try:
        data = request.get_json() or {}
        trip_ids = data.get("trip_ids")
        if not isinstance(trip_ids, list) or not trip_ids:
            return jsonify({"error": "trip_ids required", "code": "VALIDATION_ERROR"}), 400
        try:
            trip_ids = [int(t) for t in trip_ids]
        except (TypeError, ValueError):
            return jsonify({"error": "trip_ids must be integers", "code": "VALIDATION_ERROR"}), 400

        result = expense_service.reset_to_route_defaults(
            org_id,
            trip_ids,
            route_id=data.get("route_id"),
            updated_by_user_id=g.user_id,
        )
        return jsonify(result.to_dict()), 200 if result.ok else 207
    except TmsError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to reset driver expenses")
        return jsonify({"error": "Internal server error"}), 500


@trips_bp.put("/trips/<int:trip_id>/driver-expenses")
@with_actor
def replace_driver_expenses_route(org_id: int, trip_id: int):
    """
    Request body:
    {
        "expected_version": 2,
        "lines": [{"driver_expense_id": 1, "amount": "500000"}]
    }
    """
    try:
        data = request.get_json() or {}
        result = expense_service.replace_trip_expenses(
            org_id,
            trip_id,
            data.get("lines") or [],
            expected_version=data.get("expected_version"),
            updated_by_user_id=g.user_id,
        )
        return _result_response(result)
    except TmsError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to replace driver expenses")
        return jsonify({"error": "Internal server error"}), 500


@trips_bp.get("/routes/<int:route_id>")
def get_route_route(org_id: int, route_id: int):
    try:
        return jsonify({"route": expense_service.get_route(org_id, route_id)}), 200
    except TmsError as e:
        return _error_response(e)
