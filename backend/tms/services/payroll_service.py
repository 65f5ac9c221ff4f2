# Overview: Driver payroll: resolves each trip's settlement window from its status history.

"""
Payroll window resolution.

Pure read-side projection: nothing is cached or written, so the same inputs
always give the same settlements.

Per trip:
  start = pickup_date                     if current stage < WAITING_FOR_PICKUP
        = current event created_at        if current stage == WAITING_FOR_PICKUP
        = latest WAITING_FOR_PICKUP event (fallback pickup_date) otherwise
  end   = delivery_date                   if current stage < DELIVERED
        = current event created_at        otherwise
A stage missing from the organization's catalog falls through to the
"otherwise" branch.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from flask import current_app, has_app_context
from sqlalchemy import func

from ..extensions import db
from ..models import DriverExpense, Order, OrderTrip, OrderTripStatus, TripDriverExpense
from ..models.orders import ORDER_STATUS_CANCELED, TRIP_STATUS_DELIVERED, TRIP_STATUS_WAITING_FOR_PICKUP
from ..models.routing import EXPENSE_TYPE_DRIVER_COST
from ..time_utils import end_of_day, parse_iso_datetime, start_of_day, to_utc_z
from ..validation import ValidationError, format_decimal, round_money
from . import settings_service
from .expense_service import money_precision
from .report_stage_service import StageOrder, get_stage_order


MODE_RESOLVED_START_DATE = "RESOLVED_START_DATE"
MODE_STATUS_CREATED_AT = "STATUS_CREATED_AT"
MODE_TRIP_PICKUP_DATE = "TRIP_PICKUP_DATE"
MODE_TRIP_DELIVERY_DATE = "TRIP_DELIVERY_DATE"
VALID_MODES = {
    MODE_RESOLVED_START_DATE,
    MODE_STATUS_CREATED_AT,
    MODE_TRIP_PICKUP_DATE,
    MODE_TRIP_DELIVERY_DATE,
}
DEFAULT_MODE = MODE_RESOLVED_START_DATE


@dataclass
class StatusEvent:
    id: int
    type: str
    created_at: datetime


@dataclass
class PayrollSettlement:
    trip_id: int
    trip_code: str
    order_code: str
    driver_id: int
    start_date: datetime | None
    end_date: datetime | None
    amount: Decimal
    unit: str
    current_status: str
    current_status_at: datetime | None
    pickup_date: datetime | None
    delivery_date: datetime | None
    bill_of_lading: str | None

    def to_dict(self) -> dict:
        return {
            "trip_id": self.trip_id,
            "trip_code": self.trip_code,
            "order_code": self.order_code,
            "driver_id": self.driver_id,
            "start_date": to_utc_z(self.start_date),
            "end_date": to_utc_z(self.end_date),
            "amount": format_decimal(self.amount),
            "unit": self.unit,
            "current_status": self.current_status,
            "current_status_at": to_utc_z(self.current_status_at),
            "pickup_date": to_utc_z(self.pickup_date),
            "delivery_date": to_utc_z(self.delivery_date),
            "bill_of_lading": self.bill_of_lading,
        }


def _range_bound(field: str, value, *, is_end: bool) -> datetime:
    if value is None or value == "":
        raise ValidationError(f"{field} is required")
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return end_of_day(value) if is_end else start_of_day(value)
    if isinstance(value, str):
        s = value.strip()
        try:
            parsed = parse_iso_datetime(s)
        except ValueError:
            raise ValidationError(f"{field} must be an ISO-8601 date or datetime")
        # Bare dates cover the whole day
        if len(s) == 10:
            return end_of_day(parsed) if is_end else start_of_day(parsed)
        return parsed
    raise ValidationError(f"{field} must be a date or datetime")


def resolve_mode(org_id: int, mode: str | None = None) -> str:
    if mode is None:
        mode = settings_service.get_org_setting(org_id, settings_service.REPORT_CALCULATION_DATE_FLAG, DEFAULT_MODE)
    mode = str(mode).strip().upper()
    if mode not in VALID_MODES:
        raise ValidationError(f"mode must be one of: {', '.join(sorted(VALID_MODES))}")
    return mode


def resolve_window(
    *,
    pickup_date: datetime | None,
    delivery_date: datetime | None,
    current: StatusEvent | None,
    latest_by_type: dict[str, StatusEvent],
    stage_order: StageOrder,
) -> tuple[datetime | None, datetime | None]:
    current_type = current.type if current else None
    current_at = current.created_at if current else None
    current_order = stage_order.order_of(current_type)
    wfp = stage_order.order_of(TRIP_STATUS_WAITING_FOR_PICKUP)
    delivered = stage_order.order_of(TRIP_STATUS_DELIVERED)

    comparable = current_order is not None
    if comparable and wfp is not None and current_order < wfp:
        start = pickup_date
    elif comparable and wfp is not None and current_order == wfp:
        start = current_at
    else:
        wfp_event = latest_by_type.get(TRIP_STATUS_WAITING_FOR_PICKUP)
        start = wfp_event.created_at if wfp_event else pickup_date

    if comparable and delivered is not None and current_order < delivered:
        end = delivery_date
    else:
        end = current_at
    return start, end


def _latest_events_by_trip(trip_ids: list[int]) -> dict[int, dict[str, StatusEvent]]:
    """Latest event per (trip, type) via ROW_NUMBER() window."""
    if not trip_ids:
        return {}
    rn = func.row_number().over(
        partition_by=(OrderTripStatus.trip_id, OrderTripStatus.type),
        order_by=(OrderTripStatus.created_at.desc(), OrderTripStatus.id.desc()),
    ).label("rn")
    ranked = (
        db.session.query(
            OrderTripStatus.id.label("id"),
            OrderTripStatus.trip_id.label("trip_id"),
            OrderTripStatus.type.label("type"),
            OrderTripStatus.created_at.label("created_at"),
            rn,
        )
        .filter(OrderTripStatus.trip_id.in_(trip_ids))
        .subquery()
    )
    rows = db.session.query(ranked).filter(ranked.c.rn == 1).all()

    result: dict[int, dict[str, StatusEvent]] = defaultdict(dict)
    for row in rows:
        result[row.trip_id][row.type] = StatusEvent(id=row.id, type=row.type, created_at=row.created_at)
    return result


def _driver_cost_by_trip(trip_ids: list[int]) -> dict[int, Decimal]:
    if not trip_ids:
        return {}
    rows = (
        db.session.query(TripDriverExpense.trip_id, TripDriverExpense.amount)
        .join(DriverExpense, DriverExpense.id == TripDriverExpense.driver_expense_id)
        .filter(
            TripDriverExpense.trip_id.in_(trip_ids),
            DriverExpense.type == EXPENSE_TYPE_DRIVER_COST,
        )
        .all()
    )
    totals: dict[int, Decimal] = defaultdict(Decimal)
    for trip_id, amount in rows:
        if amount is not None:
            totals[trip_id] += Decimal(amount)
    return totals


def _in_range(value: datetime | None, start: datetime, end: datetime) -> bool:
    return value is not None and start <= value <= end


def resolve_driver_payroll(
    org_id: int,
    driver_id: int,
    start,
    end,
    payable_stage_types,
    *,
    mode: str | None = None,
) -> list[dict]:
    """
    Settlements for one driver over [start, end].

    payable_stage_types lists the stage types whose trips are payable (for
    example DELIVERED and COMPLETED). mode defaults to the organization's
    report.calculation_date_flag setting.
    """
    range_start = _range_bound("start", start, is_end=False)
    range_end = _range_bound("end", end, is_end=True)
    if range_start > range_end:
        raise ValidationError("start must not be after end")

    payable = {str(t).strip().upper() for t in (payable_stage_types or []) if str(t).strip()}
    if not payable:
        raise ValidationError("payable_stage_types must not be empty")

    mode = resolve_mode(org_id, mode)
    precision = money_precision()
    unit = current_app.config.get("PAYROLL_UNIT", "VND") if has_app_context() else "VND"

    trips = (
        db.session.query(OrderTrip, Order.code)
        .join(Order, Order.id == OrderTrip.order_id)
        .filter(
            OrderTrip.org_id == org_id,
            OrderTrip.driver_id == driver_id,
            OrderTrip.published_at.isnot(None),
            OrderTrip.bill_of_lading.isnot(None),
            func.trim(OrderTrip.bill_of_lading) != "",
            Order.published_at.isnot(None),
            Order.last_status_type != ORDER_STATUS_CANCELED,
        )
        .all()
    )
    trip_ids = [trip.id for trip, _ in trips]

    stage_order = get_stage_order(org_id)
    events = _latest_events_by_trip(trip_ids)
    costs = _driver_cost_by_trip(trip_ids)

    settlements = []
    for trip, order_code in trips:
        latest_by_type = events.get(trip.id, {})
        current = max(latest_by_type.values(), key=lambda e: (e.created_at, e.id), default=None)
        if current is None or current.type not in payable:
            continue

        start_date, end_date = resolve_window(
            pickup_date=trip.pickup_date,
            delivery_date=trip.delivery_date,
            current=current,
            latest_by_type=latest_by_type,
            stage_order=stage_order,
        )

        if mode == MODE_RESOLVED_START_DATE:
            gate = start_date
        elif mode == MODE_STATUS_CREATED_AT:
            gate = current.created_at
        elif mode == MODE_TRIP_PICKUP_DATE:
            gate = trip.pickup_date
        else:
            gate = trip.delivery_date
        if not _in_range(gate, range_start, range_end):
            continue

        settlements.append(
            PayrollSettlement(
                trip_id=trip.id,
                trip_code=trip.code,
                order_code=order_code,
                driver_id=trip.driver_id,
                start_date=start_date,
                end_date=end_date,
                amount=round_money(costs.get(trip.id, Decimal(0)), precision),
                unit=unit,
                current_status=current.type,
                current_status_at=current.created_at,
                pickup_date=trip.pickup_date,
                delivery_date=trip.delivery_date,
                bill_of_lading=trip.bill_of_lading,
            )
        )

    settlements.sort(key=lambda s: (s.start_date is None, s.start_date or datetime.min, s.trip_id))
    return [s.to_dict() for s in settlements]


def summarize_payroll(settlements: list[dict]) -> list[dict]:
    """Per-driver totals for report headers."""
    totals: dict[int, dict] = {}
    for row in settlements:
        driver_id = row["driver_id"]
        entry = totals.setdefault(
            driver_id,
            {"driver_id": driver_id, "trip_count": 0, "total_amount": Decimal(0), "unit": row.get("unit")},
        )
        entry["trip_count"] += 1
        entry["total_amount"] += Decimal(str(row.get("amount") or "0"))

    return [
        {**entry, "total_amount": format_decimal(entry["total_amount"])}
        for _, entry in sorted(totals.items())
    ]
