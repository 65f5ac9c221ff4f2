# Overview: Trip lifecycle: creation, status advancement, cancellation and bill-of-lading bookkeeping.

"""
TMS Trip Lifecycle Service

================================================================================
PURPOSE: Move OrderTrips through the organization's report stage pipeline
================================================================================

STATE MACHINE:
    NEW -> PENDING_CONFIRMATION -> CONFIRMED -> WAITING_FOR_PICKUP
        -> (intermediate carrier stages...) -> DELIVERED -> COMPLETED
    CANCELED from any state except CANCELED.

    Only NEW, CANCELED and DELIVERED/COMPLETED are structural. Every other
    stage comes from the organization's catalog (report_stage_service).

RULES:
1. Status events are append-only; the trip row's last_status_type is written
   in the same unit of work as the event it mirrors.
   Event timestamps never step back within a trip, so the latest event by
   created_at is always the one last_status_type mirrors.
2. Transitions between non-canceled stages are free (skip or revisit).
3. CANCELED is terminal: every later transition is rejected.
4. Every mutation carries the caller's expected_version. The check happens
   on the row locked inside the write transaction, and the ORM repeats it on
   UPDATE (version_id_col). Either mismatch -> ConflictError, nothing written.
5. Notification intents are emitted only after commit.
================================================================================
"""

from __future__ import annotations

import calendar
import logging
from datetime import datetime, timedelta

from flask import current_app, has_app_context
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..models import (
    BillOfLadingImage,
    Driver,
    Order,
    OrderStatus,
    OrderTrip,
    OrderTripStatus,
    Vehicle,
)
from ..models.orders import (
    ORDER_STATUS_CANCELED,
    ORDER_STATUS_IN_PROGRESS,
    ORDER_STATUS_RECEIVED,
    TRIP_STATUS_CANCELED,
    TRIP_STATUS_COMPLETED,
    TRIP_STATUS_CONFIRMED,
    TRIP_STATUS_DELIVERED,
    TRIP_STATUS_NEW,
    TRIP_STATUS_PENDING_CONFIRMATION,
    TRIP_STATUS_WAITING_FOR_PICKUP,
)
from ..time_utils import utcnow, start_of_day, end_of_day, to_utc_naive
from ..validation import (
    ConflictError,
    DuplicateCodeError,
    NotFoundError,
    UnknownError,
    ValidationError,
    coerce_datetime,
    coerce_decimal,
    enforce_rules_trip,
    round_money,
)
from . import expense_service, settings_service
from .concurrency import check_expected_version, lock_for_update
from .notification_service import emit_safely, order_in_progress_intent, trip_canceled_intent
from .report_stage_service import get_stage_order
from .results import TripResult

logger = logging.getLogger(__name__)


COST_FIELDS = ("driver_cost", "subcontractor_cost", "bridge_toll", "other_cost")

BOL_WINDOW_START_OF_MONTH = "START_OF_MONTH"
BOL_WINDOW_END_OF_MONTH = "END_OF_MONTH"


def _config(key: str, default):
    if has_app_context():
        return current_app.config.get(key, default)
    return default


def generate_trip_code(order_code: str, sequence: int) -> str:
    return f"{order_code}-{sequence:03d}"


def _published_trips(org_id: int):
    return db.session.query(OrderTrip).filter(
        OrderTrip.org_id == org_id,
        OrderTrip.published_at.isnot(None),
    )


def _require_trip(org_id: int, trip_id: int, *, for_update: bool = False) -> OrderTrip:
    query = _published_trips(org_id).filter(OrderTrip.id == trip_id)
    if for_update:
        query = lock_for_update(query)
    trip = query.first()
    if not trip:
        raise NotFoundError(f"Trip {trip_id} not found")
    return trip


def _require_version(expected_version) -> None:
    if expected_version is None or expected_version == "":
        raise ValidationError("expected_version is required")


# -----------------------------------------------------------------------------
# Reads
# -----------------------------------------------------------------------------

def get_trip(org_id: int, trip_id: int) -> dict:
    return _require_trip(org_id, trip_id).to_dict(include_children=True)


def list_status_history(org_id: int, trip_id: int) -> list[dict]:
    trip = _require_trip(org_id, trip_id)
    rows = (
        db.session.query(OrderTripStatus)
        .filter(OrderTripStatus.trip_id == trip.id)
        .order_by(OrderTripStatus.created_at.asc(), OrderTripStatus.id.asc())
        .all()
    )
    return [r.to_dict() for r in rows]


def get_trip_status_flags(org_id: int, trip_id: int) -> dict:
    """Boolean view of a trip's current stage for UIs and guards."""
    trip = _require_trip(org_id, trip_id)
    stage_order = get_stage_order(org_id)
    status = trip.last_status_type

    current = stage_order.order_of(status)
    wfp = stage_order.order_of(TRIP_STATUS_WAITING_FOR_PICKUP)
    delivered = stage_order.order_of(TRIP_STATUS_DELIVERED)

    return {
        "trip_id": trip.id,
        "status": status,
        "is_new": status == TRIP_STATUS_NEW,
        "is_pending_confirmation": status == TRIP_STATUS_PENDING_CONFIRMATION,
        "is_confirmed": status == TRIP_STATUS_CONFIRMED,
        "is_waiting_for_pickup": status == TRIP_STATUS_WAITING_FOR_PICKUP,
        "is_delivered": status == TRIP_STATUS_DELIVERED,
        "is_completed": status == TRIP_STATUS_COMPLETED,
        "is_canceled": status == TRIP_STATUS_CANCELED,
        "is_picked_up": current is not None and wfp is not None and current > wfp,
        "is_delivery_reached": current is not None and delivered is not None and current >= delivered,
        "can_transition": status != TRIP_STATUS_CANCELED,
    }


def list_trips_missing_bill_of_lading(org_id: int, *, stage_types=(TRIP_STATUS_DELIVERED, TRIP_STATUS_COMPLETED), limit: int = 200) -> list[dict]:
    """
    Reminder query: delivered trips whose bill of lading is still missing or
    not received, and that have no reminder scheduled yet.
    """
    rows = (
        _published_trips(org_id)
        .filter(
            OrderTrip.last_status_type.in_(list(stage_types)),
            OrderTrip.notification_scheduled_at.is_(None),
            db.or_(
                OrderTrip.bill_of_lading.is_(None),
                func.trim(OrderTrip.bill_of_lading) == "",
                OrderTrip.bill_of_lading_received.is_(False),
            ),
        )
        .order_by(OrderTrip.delivery_date.asc(), OrderTrip.id.asc())
        .limit(limit)
        .all()
    )
    return [t.to_dict() for t in rows]


# -----------------------------------------------------------------------------
# Create
# -----------------------------------------------------------------------------

class _TripCodeTaken(Exception):
    """The allocated code was inserted by a concurrent writer before our commit."""

    def __init__(self, sequence: int):
        super().__init__(sequence)
        self.sequence = sequence


def _is_trip_code_collision(exc: IntegrityError) -> bool:
    message = str(exc.orig)
    return "uq_order_trips_org" in message or "order_trips.code" in message


def _allocate_trip_code(org_id: int, order: Order, *, after: int = 0, attempts: int = 10) -> tuple[str, int]:
    """Next free "{order.code}-NNN" above both the order's trip count and `after`."""
    count = db.session.query(func.count(OrderTrip.id)).filter(OrderTrip.order_id == order.id).scalar() or 0
    sequence = max(count, after)

    for _ in range(attempts):
        sequence += 1
        code = generate_trip_code(order.code, sequence)
        exists = (
            db.session.query(OrderTrip.id)
            .filter(OrderTrip.org_id == org_id, OrderTrip.code == code)
            .first()
        )
        if not exists:
            return code, sequence

    logger.error("Trip code allocation exhausted %s attempts for order %s", attempts, order.code)
    raise DuplicateCodeError(f"Could not allocate a trip code for order {order.code}")


def _validate_assignment(org_id: int, vehicle_id, driver_id) -> None:
    if settings_service.get_org_setting_bool(org_id, settings_service.REQUIRE_VEHICLE_AND_DRIVER):
        if vehicle_id is None or driver_id is None:
            raise ValidationError("vehicle_id and driver_id are required", code="ASSIGNMENT_REQUIRED")

    if vehicle_id is not None:
        if not db.session.query(Vehicle.id).filter_by(id=vehicle_id, org_id=org_id).first():
            raise ValidationError(f"Vehicle {vehicle_id} not found")
    if driver_id is not None:
        if not db.session.query(Driver.id).filter_by(id=driver_id, org_id=org_id).first():
            raise ValidationError(f"Driver {driver_id} not found")


def _parse_cost_overrides(cost_overrides) -> dict:
    if not cost_overrides:
        return {}
    if not isinstance(cost_overrides, dict):
        raise ValidationError("cost_overrides must be an object")
    unknown = sorted(set(cost_overrides) - set(COST_FIELDS))
    if unknown:
        raise ValidationError(f"Unknown cost field(s): {unknown}")
    return {key: coerce_decimal(key, value) for key, value in cost_overrides.items()}


def create_trip(
    org_id: int,
    order_id: int,
    *,
    weight,
    pickup_date,
    delivery_date,
    vehicle_id: int | None = None,
    driver_id: int | None = None,
    cost_overrides: dict | None = None,
    use_route_defaults: bool = False,
    created_by_user_id: int | None = None,
    actor_name: str | None = None,
) -> TripResult:
    """
    Schedule a new trip under an order.

    The trip, its NEW status event, its expense lines and (when the order
    was RECEIVED) the order's IN_PROGRESS status are written in one commit.
    """
    patch = {
        "weight": coerce_decimal("weight", weight, allow_none=False),
        "pickup_date": coerce_datetime("pickup_date", pickup_date),
        "delivery_date": coerce_datetime("delivery_date", delivery_date),
    }
    overrides = _parse_cost_overrides(cost_overrides)
    patch.update(overrides)
    enforce_rules_trip(patch)

    if use_route_defaults and overrides.get("driver_cost") is not None:
        raise ValidationError("driver_cost is derived from route expense lines when route defaults are used")

    _validate_assignment(org_id, vehicle_id, driver_id)

    max_attempts = int(_config("TRIP_CODE_MAX_ATTEMPTS", 10))
    taken = 0
    for attempt in range(1, max_attempts + 1):
        try:
            trip, order, intent = _write_trip(
                org_id,
                order_id,
                patch,
                overrides,
                vehicle_id=vehicle_id,
                driver_id=driver_id,
                use_route_defaults=use_route_defaults,
                created_by_user_id=created_by_user_id,
                actor_name=actor_name,
                after=taken,
                attempts=max_attempts - attempt + 1,
            )
        except _TripCodeTaken as e:
            taken = e.sequence
            logger.warning("Trip code sequence %s for order %s taken at commit (attempt %s/%s)", taken, order_id, attempt, max_attempts)
            continue

        if trip is None:
            return TripResult.failure(NotFoundError(f"Order {order_id} not found"))

        logger.info("Trip %s created (order=%s, org=%s)", trip.code, order.code, org_id)
        emit_safely(intent)
        return TripResult.success(trip.to_dict(include_children=True))

    logger.error("Trip code allocation exhausted %s attempts for order %s", max_attempts, order_id)
    raise DuplicateCodeError(f"Could not allocate a trip code for order {order_id}")


def _write_trip(
    org_id: int,
    order_id: int,
    patch: dict,
    overrides: dict,
    *,
    vehicle_id,
    driver_id,
    use_route_defaults: bool,
    created_by_user_id,
    actor_name,
    after: int,
    attempts: int,
):
    """One unit of work for create_trip. Returns (trip, order, intent); trip is None when the order is missing."""
    precision = expense_service.money_precision()
    intent = None
    sequence = None
    try:
        order = lock_for_update(
            db.session.query(Order).filter(
                Order.id == order_id,
                Order.org_id == org_id,
                Order.published_at.isnot(None),
            )
        ).first()
        if not order:
            db.session.rollback()
            return None, None, None
        if order.last_status_type == ORDER_STATUS_CANCELED:
            raise ValidationError(f"Order {order.code} is canceled", code="ORDER_CANCELED")

        code, sequence = _allocate_trip_code(org_id, order, after=after, attempts=attempts)
        now = utcnow()

        trip = OrderTrip(
            org_id=org_id,
            order_id=order.id,
            code=code,
            sequence=sequence,
            weight=patch["weight"],
            pickup_date=patch["pickup_date"],
            delivery_date=patch["delivery_date"],
            vehicle_id=vehicle_id,
            driver_id=driver_id,
            last_status_type=TRIP_STATUS_NEW,
            published_at=now,
            created_at=now,
            created_by_user_id=created_by_user_id,
        )
        db.session.add(trip)

        # Single INSERT keeps the new row at version 1
        with db.session.no_autoflush:
            if use_route_defaults:
                if order.route is None:
                    raise ValidationError(f"Order {order.code} has no route to copy driver expenses from")
                expense_service.apply_route_defaults(trip, order.route, created_by_user_id=created_by_user_id)

            for key, value in overrides.items():
                setattr(trip, key, round_money(value, precision))

            new_stage = get_stage_order(org_id).stage_for_type(TRIP_STATUS_NEW)
            trip.statuses.append(
                OrderTripStatus(
                    type=TRIP_STATUS_NEW,
                    driver_report_id=new_stage.id if new_stage else None,
                    created_at=now,
                    created_by_user_id=created_by_user_id,
                )
            )

        if order.last_status_type == ORDER_STATUS_RECEIVED:
            order.statuses.append(
                OrderStatus(type=ORDER_STATUS_IN_PROGRESS, created_at=now, created_by_user_id=created_by_user_id)
            )
            order.last_status_type = ORDER_STATUS_IN_PROGRESS
            order.updated_at = now
            order.updated_by_user_id = created_by_user_id
            intent = order_in_progress_intent(order, actor_name=actor_name, created_by_user_id=created_by_user_id)

        db.session.commit()
    except (ValidationError, DuplicateCodeError):
        db.session.rollback()
        raise
    except IntegrityError as e:
        db.session.rollback()
        if sequence is not None and _is_trip_code_collision(e):
            raise _TripCodeTaken(sequence)
        logger.warning("Trip insert for order %s hit a constraint: %s", order_id, e)
        raise UnknownError("Trip could not be saved; retry the request")
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.exception("Failed to create trip for order %s", order_id)
        raise UnknownError(str(e))

    return trip, order, intent


UPDATABLE_FIELDS = (
    "weight",
    "pickup_date",
    "delivery_date",
    "vehicle_id",
    "driver_id",
    "subcontractor_cost",
    "bridge_toll",
    "other_cost",
)


def update_trip(
    org_id: int,
    trip_id: int,
    patch: dict,
    *,
    expected_version,
    updated_by_user_id: int | None = None,
) -> TripResult:
    """
    Edit a scheduled trip's plan, assignment or flat costs.

    driver_cost is not patchable: it follows the expense lines
    (replace_trip_expenses / reset_to_route_defaults).
    """
    _require_version(expected_version)
    if not isinstance(patch, dict) or not patch:
        raise ValidationError("patch must be a non-empty object")
    unknown = sorted(set(patch) - set(UPDATABLE_FIELDS))
    if unknown:
        raise ValidationError(f"Field(s) not updatable: {unknown}")

    precision = expense_service.money_precision()
    values = {}
    if "weight" in patch:
        values["weight"] = coerce_decimal("weight", patch["weight"], allow_none=False)
    for key in ("pickup_date", "delivery_date"):
        if key in patch:
            values[key] = coerce_datetime(key, patch[key])
    for key in ("subcontractor_cost", "bridge_toll", "other_cost"):
        if key in patch:
            values[key] = round_money(coerce_decimal(key, patch[key]), precision)

    try:
        trip = _require_trip(org_id, trip_id, for_update=True)
        check_expected_version(trip, expected_version)
        if trip.is_canceled:
            raise ValidationError(f"Trip {trip.code} is canceled", code="TRIP_CANCELED")

        merged = {key: getattr(trip, key) for key in ("weight", "pickup_date", "delivery_date") + COST_FIELDS}
        merged.update(values)
        enforce_rules_trip(merged)

        if "vehicle_id" in patch or "driver_id" in patch:
            vehicle_id = patch.get("vehicle_id", trip.vehicle_id)
            driver_id = patch.get("driver_id", trip.driver_id)
            _validate_assignment(org_id, vehicle_id, driver_id)
            values["vehicle_id"] = vehicle_id
            values["driver_id"] = driver_id

        for key, value in values.items():
            setattr(trip, key, value)
        trip.updated_at = utcnow()
        trip.updated_by_user_id = updated_by_user_id
        db.session.commit()
    except (ConflictError, NotFoundError) as e:
        db.session.rollback()
        return TripResult.failure(e)
    except StaleDataError:
        db.session.rollback()
        logger.info("Concurrent update detected on trip %s", trip_id)
        return TripResult.failure(ConflictError())
    except ValidationError:
        db.session.rollback()
        raise
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.exception("Failed to update trip %s", trip_id)
        raise UnknownError(str(e))

    logger.info("Trip %s updated (%s)", trip.code, ", ".join(sorted(values)))
    return TripResult.success(trip.to_dict(include_children=True))


# -----------------------------------------------------------------------------
# Status transitions
# -----------------------------------------------------------------------------

def _resolve_stage(org_id: int, stage_type: str, driver_report_id):
    stage_order = get_stage_order(org_id)
    if driver_report_id is not None:
        try:
            stage = stage_order.stage_for_id(int(driver_report_id))
        except (TypeError, ValueError):
            raise ValidationError("driver_report_id must be an integer")
        if stage is None:
            raise ValidationError(f"Report stage {driver_report_id} not found")
        if stage.type != stage_type:
            raise ValidationError(f"Report stage {driver_report_id} is not a {stage_type} stage")
        return stage

    stage = stage_order.stage_for_type(stage_type)
    if stage is None:
        raise ValidationError(f"Unknown report stage type: {stage_type}", code="UNKNOWN_STAGE")
    return stage


def _next_event_time(trip: OrderTrip) -> datetime:
    """Server clock, but never at or before the trip's latest event."""
    now = utcnow()
    latest = to_utc_naive(
        db.session.query(func.max(OrderTripStatus.created_at))
        .filter(OrderTripStatus.trip_id == trip.id)
        .scalar()
    )
    if latest is not None and now <= latest:
        logger.warning("Clock behind latest event on trip %s (%s <= %s)", trip.code, now, latest)
        return latest + timedelta(microseconds=1)
    return now


def _append_status(trip: OrderTrip, stage_type: str, *, driver_report_id, notes, user_id) -> OrderTripStatus:
    now = _next_event_time(trip)
    event = OrderTripStatus(
        type=stage_type,
        notes=notes,
        driver_report_id=driver_report_id,
        created_at=now,
        created_by_user_id=user_id,
    )
    trip.statuses.append(event)
    trip.last_status_type = stage_type
    trip.updated_at = now
    trip.updated_by_user_id = user_id
    return event


def advance_status(
    org_id: int,
    trip_id: int,
    stage_type: str,
    *,
    expected_version,
    notes: str | None = None,
    driver_report_id: int | None = None,
    updated_by_user_id: int | None = None,
    actor_name: str | None = None,
) -> TripResult:
    stage_type = (stage_type or "").strip().upper()
    if not stage_type:
        raise ValidationError("stage_type is required")
    _require_version(expected_version)

    if stage_type == TRIP_STATUS_CANCELED:
        return cancel_trip(
            org_id,
            trip_id,
            expected_version=expected_version,
            notes=notes,
            updated_by_user_id=updated_by_user_id,
            actor_name=actor_name,
        )

    stage = _resolve_stage(org_id, stage_type, driver_report_id)

    try:
        trip = _require_trip(org_id, trip_id, for_update=True)
        check_expected_version(trip, expected_version)
        if trip.is_canceled:
            raise ValidationError(f"Trip {trip.code} is canceled", code="TRIP_CANCELED")

        _append_status(trip, stage_type, driver_report_id=stage.id, notes=notes, user_id=updated_by_user_id)
        db.session.commit()
    except (ConflictError, NotFoundError) as e:
        db.session.rollback()
        return TripResult.failure(e)
    except StaleDataError:
        db.session.rollback()
        logger.info("Concurrent update detected on trip %s", trip_id)
        return TripResult.failure(ConflictError())
    except ValidationError:
        db.session.rollback()
        raise
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.exception("Failed to advance trip %s to %s", trip_id, stage_type)
        raise UnknownError(str(e))

    logger.info("Trip %s -> %s", trip.code, stage_type)
    return TripResult.success(trip.to_dict())


def cancel_trip(
    org_id: int,
    trip_id: int,
    *,
    expected_version,
    notes: str | None = None,
    updated_by_user_id: int | None = None,
    actor_name: str | None = None,
) -> TripResult:
    _require_version(expected_version)

    try:
        trip = _require_trip(org_id, trip_id, for_update=True)
        check_expected_version(trip, expected_version)
        if trip.is_canceled:
            raise ValidationError(f"Trip {trip.code} is already canceled", code="TRIP_CANCELED")

        _append_status(trip, TRIP_STATUS_CANCELED, driver_report_id=None, notes=notes, user_id=updated_by_user_id)
        db.session.commit()
    except (ConflictError, NotFoundError) as e:
        db.session.rollback()
        return TripResult.failure(e)
    except StaleDataError:
        db.session.rollback()
        logger.info("Concurrent update detected on trip %s", trip_id)
        return TripResult.failure(ConflictError())
    except ValidationError:
        db.session.rollback()
        raise
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.exception("Failed to cancel trip %s", trip_id)
        raise UnknownError(str(e))

    logger.info("Trip %s canceled", trip.code)
    emit_safely(trip_canceled_intent(trip, actor_name=actor_name, created_by_user_id=updated_by_user_id))
    return TripResult.success(trip.to_dict())


# -----------------------------------------------------------------------------
# Bill of lading
# -----------------------------------------------------------------------------

def _shift_days(value: datetime, days: int) -> datetime:
    return value + timedelta(days=days)


def _first_of_month(value: datetime) -> datetime:
    return value.replace(day=1)


def _previous_month_first(value: datetime) -> datetime:
    first = _first_of_month(value)
    return _first_of_month(first - timedelta(days=1))


def _last_of_month(value: datetime) -> datetime:
    return value.replace(day=calendar.monthrange(value.year, value.month)[1])


def bill_of_lading_window(pickup_date: datetime, start_day: str) -> tuple[datetime, datetime] | None:
    """
    Pickup-date window a bill-of-lading code must be unique in.

    start_day is either a day offset N (previous month's 1st + N days through
    this month's 1st + N days), START_OF_MONTH (the pickup month) or
    END_OF_MONTH (last day of previous month through end of pickup month).
    """
    value = str(start_day).strip().upper()
    if value.lstrip("-").isdigit():
        offset = int(value)
        start = start_of_day(_shift_days(_previous_month_first(pickup_date), offset))
        end = end_of_day(_shift_days(_first_of_month(pickup_date), offset))
        return start, end
    if value == BOL_WINDOW_START_OF_MONTH:
        return start_of_day(_first_of_month(pickup_date)), end_of_day(_last_of_month(pickup_date))
    if value == BOL_WINDOW_END_OF_MONTH:
        previous_last = _first_of_month(pickup_date) - timedelta(days=1)
        return start_of_day(previous_last), end_of_day(_last_of_month(pickup_date))
    logger.warning("Unrecognized bill-of-lading window setting %r; checking all trips", start_day)
    return None


def check_bill_of_lading_exists(org_id: int, trip_id: int, bill_of_lading: str | None) -> bool:
    """True when another published trip already uses this bill-of-lading code."""
    code = (bill_of_lading or "").strip()
    if not code:
        return False
    if not settings_service.get_org_setting_bool(org_id, settings_service.PREVENT_DUPLICATE_BILL_OF_LADING):
        return False

    query = _published_trips(org_id).filter(
        OrderTrip.id != trip_id,
        OrderTrip.bill_of_lading == code,
    )

    start_day = settings_service.get_org_setting(org_id, settings_service.BOL_DUPLICATE_CHECK_START_DAY)
    if start_day:
        trip = db.session.get(OrderTrip, trip_id)
        if trip is None or trip.pickup_date is None:
            return False
        window = bill_of_lading_window(trip.pickup_date, start_day)
        if window:
            query = query.filter(OrderTrip.pickup_date >= window[0], OrderTrip.pickup_date <= window[1])

    return db.session.query(query.exists()).scalar()


def update_bill_of_lading(
    org_id: int,
    trip_id: int,
    *,
    bill_of_lading: str | None,
    images_added=(),
    images_removed=(),
    received: bool | None = None,
    updated_by_user_id: int | None = None,
    expected_version=None,
) -> dict:
    """Record the bill-of-lading code, scans and receipt. Independent of status."""
    code = (bill_of_lading or "").strip() or None
    added = [str(ref).strip() for ref in (images_added or []) if str(ref).strip()]
    removed = {str(ref).strip() for ref in (images_removed or [])}

    try:
        trip = _require_trip(org_id, trip_id, for_update=True)
        check_expected_version(trip, expected_version)
        if code and check_bill_of_lading_exists(org_id, trip_id, code):
            raise ValidationError(f"Bill of lading {code} is already used by another trip", code="BILL_OF_LADING_EXISTS")

        trip.bill_of_lading = code

        for image in list(trip.bill_of_lading_images):
            if image.image_ref in removed:
                trip.bill_of_lading_images.remove(image)

        existing = {image.image_ref for image in trip.bill_of_lading_images}
        next_order = max((image.sort_order for image in trip.bill_of_lading_images), default=-1) + 1
        for ref in added:
            if ref in existing:
                continue
            trip.bill_of_lading_images.append(
                BillOfLadingImage(image_ref=ref, sort_order=next_order, created_by_user_id=updated_by_user_id)
            )
            existing.add(ref)
            next_order += 1

        now = utcnow()
        if received is True:
            if not trip.bill_of_lading_received or trip.bill_of_lading_received_date is None:
                trip.bill_of_lading_received_date = now
            trip.bill_of_lading_received = True
        elif received is False:
            trip.bill_of_lading_received = False
            trip.bill_of_lading_received_date = None

        trip.updated_at = now
        trip.updated_by_user_id = updated_by_user_id
        db.session.commit()
    except (ConflictError, NotFoundError):
        db.session.rollback()
        raise
    except StaleDataError:
        db.session.rollback()
        raise ConflictError()
    except ValidationError:
        db.session.rollback()
        raise
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.exception("Failed to update bill of lading on trip %s", trip_id)
        raise UnknownError(str(e))

    return trip.to_dict(include_children=True)


# -----------------------------------------------------------------------------
# Housekeeping
# -----------------------------------------------------------------------------

def reset_notification_schedule(org_id: int, trip_id: int) -> dict:
    """
    Clear a trip's pending reminder so it is picked up again.

    Not a status transition; leaves version_id alone so open editors keep
    a valid expected_version.
    """
    trip = _require_trip(org_id, trip_id)
    db.session.query(OrderTrip).filter(OrderTrip.id == trip.id).update(
        {OrderTrip.notification_scheduled_at: None},
        synchronize_session=False,
    )
    db.session.commit()
    return {"trip_id": trip.id, "notification_scheduled_at": None}


def mark_notification_scheduled(org_id: int, trip_ids: list[int], scheduled_at: datetime | None = None) -> int:
    """Stamp notification_scheduled_at on trips picked for a reminder."""
    if not trip_ids:
        return 0
    scheduled_at = scheduled_at or utcnow()
    count = (
        _published_trips(org_id)
        .filter(OrderTrip.id.in_(list(trip_ids)))
        .update({OrderTrip.notification_scheduled_at: scheduled_at}, synchronize_session=False)
    )
    db.session.commit()
    return count


def unpublish_trip(org_id: int, trip_id: int, *, expected_version=None, updated_by_user_id: int | None = None) -> dict:
    """Soft delete: hide the trip from every reporting and dispatch view."""
    try:
        trip = _require_trip(org_id, trip_id, for_update=True)
        check_expected_version(trip, expected_version)
        trip.published_at = None
        trip.updated_at = utcnow()
        trip.updated_by_user_id = updated_by_user_id
        db.session.commit()
    except (ConflictError, NotFoundError):
        db.session.rollback()
        raise
    except StaleDataError:
        db.session.rollback()
        raise ConflictError()

    logger.info("Trip %s unpublished", trip.code)
    return trip.to_dict()
