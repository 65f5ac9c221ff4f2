# Overview: Flask API routes for the report stage catalog.

from flask import Blueprint, request, jsonify

from ..services import report_stage_service
from ..validation import TmsError


report_stages_bp = Blueprint("report_stages", __name__, url_prefix="/api/orgs/<int:org_id>/report-stages")


@report_stages_bp.get("")
def list_stages_route(org_id: int):
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    stages = report_stage_service.list_report_stages(org_id, include_inactive=include_inactive)
    return jsonify({"report_stages": [s.to_dict() for s in stages]}), 200


@report_stages_bp.post("")
def create_stage_route(org_id: int):
    """
    Append a custom stage at the end of the pipeline.

    Request body:
    {"name": "Customs cleared", "type": null, "is_photo_required": true}
    """
    try:
        data = request.get_json() or {}
        stage = report_stage_service.create_report_stage(
            org_id,
            name=data.get("name"),
            stage_type=data.get("type"),
            is_required=bool(data.get("is_required", False)),
            is_photo_required=bool(data.get("is_photo_required", False)),
            is_bill_of_lading_required=bool(data.get("is_bill_of_lading_required", False)),
        )
        return jsonify({"report_stage": stage}), 201
    except TmsError as e:
        return jsonify(e.to_dict()), e.status_code


@report_stages_bp.put("/order")
def update_order_route(org_id: int):
    """Request body: {"ordered_ids": [4, 1, 2, 3]}"""
    try:
        data = request.get_json() or {}
        stages = report_stage_service.update_display_order(org_id, data.get("ordered_ids") or [])
        return jsonify({"report_stages": stages}), 200
    except TmsError as e:
        return jsonify(e.to_dict()), e.status_code
