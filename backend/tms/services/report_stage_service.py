# Overview: Report stage catalog: the per-organization ordered pipeline of trip stages.

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DriverReport
from ..models.orders import (
    TRIP_STATUS_NEW,
    TRIP_STATUS_PENDING_CONFIRMATION,
    TRIP_STATUS_CONFIRMED,
    TRIP_STATUS_WAITING_FOR_PICKUP,
    TRIP_STATUS_WAREHOUSE_GOING_TO_PICKUP,
    TRIP_STATUS_WAREHOUSE_PICKED_UP,
    TRIP_STATUS_WAITING_FOR_DELIVERY,
    TRIP_STATUS_DELIVERED,
    TRIP_STATUS_COMPLETED,
)
from ..validation import ValidationError, NotFoundError

logger = logging.getLogger(__name__)


# (type, name, is_required, is_photo_required, is_bill_of_lading_required)
DEFAULT_STAGES = [
    (TRIP_STATUS_NEW, "New", True, False, False),
    (TRIP_STATUS_PENDING_CONFIRMATION, "Pending confirmation", False, False, False),
    (TRIP_STATUS_CONFIRMED, "Confirmed", False, False, False),
    (TRIP_STATUS_WAITING_FOR_PICKUP, "Waiting for pickup", True, False, False),
    (TRIP_STATUS_WAREHOUSE_GOING_TO_PICKUP, "Warehouse: going to pickup", False, False, False),
    (TRIP_STATUS_WAREHOUSE_PICKED_UP, "Warehouse: picked up", False, True, False),
    (TRIP_STATUS_WAITING_FOR_DELIVERY, "Waiting for delivery", False, False, False),
    (TRIP_STATUS_DELIVERED, "Delivered", True, True, True),
    (TRIP_STATUS_COMPLETED, "Completed", True, False, False),
]


@dataclass
class StageOrder:
    """
    Snapshot of an organization's stage ordering.

    Read once per operation; callers must not cache it across requests since
    organizations can re-order their pipeline at any time.
    """
    stages: list = field(default_factory=list)

    def __post_init__(self):
        self._by_type = {}
        self._by_id = {}
        for stage in self.stages:
            self._by_id[stage.id] = stage
            # First stage wins if a type is (mis)configured twice
            if stage.type and stage.type not in self._by_type:
                self._by_type[stage.type] = stage

    def stage_for_type(self, stage_type: str | None):
        if not stage_type:
            return None
        return self._by_type.get(stage_type)

    def stage_for_id(self, stage_id: int | None):
        if stage_id is None:
            return None
        return self._by_id.get(stage_id)

    def order_of(self, stage_type: str | None) -> int | None:
        stage = self.stage_for_type(stage_type)
        return stage.display_order if stage else None

    def has_type(self, stage_type: str | None) -> bool:
        return self.stage_for_type(stage_type) is not None


def list_report_stages(org_id: int, *, include_inactive: bool = False) -> list[DriverReport]:
    query = db.session.query(DriverReport).filter(DriverReport.org_id == org_id)
    if not include_inactive:
        query = query.filter(DriverReport.is_active.is_(True))
    return query.order_by(DriverReport.display_order.asc(), DriverReport.id.asc()).all()


def get_stage_order(org_id: int) -> StageOrder:
    return StageOrder(stages=list_report_stages(org_id))


def initialize_report_stages(org_id: int) -> list[dict]:
    """
    Seed the default pipeline for an organization.

    Idempotent: stage types that already exist are left untouched and new
    ones are appended after the current highest display_order.
    """
    existing = list_report_stages(org_id, include_inactive=True)
    existing_types = {s.type for s in existing if s.type}
    next_order = max((s.display_order for s in existing), default=0) + 1

    created = 0
    for stage_type, name, is_required, is_photo_required, is_bol_required in DEFAULT_STAGES:
        if stage_type in existing_types:
            continue
        db.session.add(
            DriverReport(
                org_id=org_id,
                type=stage_type,
                name=name,
                display_order=next_order,
                is_required=is_required,
                is_photo_required=is_photo_required,
                is_bill_of_lading_required=is_bol_required,
                is_system=True,
            )
        )
        next_order += 1
        created += 1

    db.session.commit()
    if created:
        logger.info("Seeded %s report stages for org %s", created, org_id)
    return [s.to_dict() for s in list_report_stages(org_id)]


def create_report_stage(
    org_id: int,
    *,
    name: str,
    stage_type: str | None = None,
    is_required: bool = False,
    is_photo_required: bool = False,
    is_bill_of_lading_required: bool = False,
) -> dict:
    name = (name or "").strip()
    if not name:
        raise ValidationError("name is required")

    stage_type = (stage_type or "").strip().upper() or None
    if stage_type:
        dup = (
            db.session.query(DriverReport.id)
            .filter(DriverReport.org_id == org_id, DriverReport.type == stage_type)
            .first()
        )
        if dup:
            raise ValidationError(f"Report stage of type {stage_type} already exists")

    max_order = (
        db.session.query(db.func.max(DriverReport.display_order))
        .filter(DriverReport.org_id == org_id)
        .scalar()
    )
    stage = DriverReport(
        org_id=org_id,
        type=stage_type,
        name=name,
        display_order=(max_order or 0) + 1,
        is_required=bool(is_required),
        is_photo_required=bool(is_photo_required),
        is_bill_of_lading_required=bool(is_bill_of_lading_required),
        is_system=False,
    )
    db.session.add(stage)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError("Report stage display order collided; retry the request")
    return stage.to_dict()


def update_display_order(org_id: int, ordered_ids: list[int]) -> list[dict]:
    """
    Re-number an organization's stages in the given order (1..n).

    ordered_ids must list every stage of the organization exactly once.
    """
    stages = list_report_stages(org_id, include_inactive=True)
    by_id = {s.id: s for s in stages}

    try:
        ids = [int(i) for i in ordered_ids]
    except (TypeError, ValueError):
        raise ValidationError("ordered_ids must be a list of integers")

    if len(ids) != len(set(ids)):
        raise ValidationError("ordered_ids contains duplicates")
    unknown = [i for i in ids if i not in by_id]
    if unknown:
        raise NotFoundError(f"Report stage(s) not found: {unknown}")
    if set(ids) != set(by_id):
        raise ValidationError("ordered_ids must include every report stage of the organization")

    # Two passes so the unique (org_id, display_order) constraint never sees a
    # transient duplicate.
    offset = len(ids) + max((s.display_order for s in stages), default=0)
    for position, stage_id in enumerate(ids, start=1):
        by_id[stage_id].display_order = offset + position
    db.session.flush()
    for position, stage_id in enumerate(ids, start=1):
        by_id[stage_id].display_order = position
    db.session.commit()

    return [s.to_dict() for s in list_report_stages(org_id, include_inactive=True)]
