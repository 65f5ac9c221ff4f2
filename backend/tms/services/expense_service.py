# Overview: Driver expense computation: route defaults, vehicle-type proration and trip expense lines.

"""
Driver expense calculator.

RULES:
1. DRIVER_COST route lines are multiplied by the vehicle type's
   driver_expense_rate / 100. A NULL rate means no proration.
2. Other line types, bridge_toll, subcontractor_cost and other_cost are copied
   verbatim, never prorated.
3. Every line is rounded half-up to MONEY_PRECISION before summing.
4. trip.driver_cost always equals the sum of its DRIVER_COST lines.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal

from flask import current_app, has_app_context
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..models import DriverExpense, Order, OrderTrip, Route, TripDriverExpense, Vehicle
from ..time_utils import utcnow
from ..validation import (
    ConflictError,
    NotFoundError,
    TmsError,
    UnknownError,
    ValidationError,
    coerce_decimal,
    round_money,
)
from .concurrency import check_expected_version, lock_for_update
from .results import TripResult

logger = logging.getLogger(__name__)

HUNDRED = Decimal(100)


@dataclass
class ExpenseLine:
    driver_expense_id: int
    expense_type: str
    amount: Decimal | None
    sort_order: int

    @property
    def is_driver_cost(self) -> bool:
        return self.expense_type == "DRIVER_COST"


@dataclass
class RouteExpenseComputation:
    lines: list[ExpenseLine] = field(default_factory=list)
    driver_cost: Decimal = Decimal(0)
    bridge_toll: Decimal | None = None
    subcontractor_cost: Decimal | None = None
    other_cost: Decimal | None = None


@dataclass
class ExpenseResetResult:
    results: dict[int, TripResult] = field(default_factory=dict)

    @property
    def updated(self) -> list[dict]:
        return [r.trip for r in self.results.values() if r.ok]

    @property
    def failed(self) -> list[dict]:
        return [
            {"trip_id": trip_id, **(r.error.to_dict() if r.error else {})}
            for trip_id, r in self.results.items()
            if not r.ok
        ]

    @property
    def ok(self) -> bool:
        return all(r.ok for r in self.results.values())

    def to_dict(self) -> dict:
        return {"ok": self.ok, "updated": self.updated, "failed": self.failed}


def money_precision() -> int:
    if has_app_context():
        return int(current_app.config.get("MONEY_PRECISION", 2))
    return 2


def sum_driver_cost(lines) -> Decimal:
    total = Decimal(0)
    for line in lines:
        if line.is_driver_cost and line.amount is not None:
            total += line.amount
    return total


def compute_from_route(route: Route, vehicle_expense_rate, *, precision: int | None = None) -> RouteExpenseComputation:
    """Pure computation of a trip's cost sheet from a route and a vehicle rate."""
    if precision is None:
        precision = money_precision()
    rate = coerce_decimal("driver_expense_rate", vehicle_expense_rate)

    lines = []
    for index, route_line in enumerate(route.driver_expenses):
        expense = route_line.driver_expense
        amount = route_line.amount
        if amount is not None:
            amount = Decimal(amount)
            if expense.is_driver_cost and rate is not None:
                amount = amount * rate / HUNDRED
            amount = round_money(amount, precision)
        lines.append(
            ExpenseLine(
                driver_expense_id=expense.id,
                expense_type=expense.type,
                amount=amount,
                sort_order=index,
            )
        )

    return RouteExpenseComputation(
        lines=lines,
        driver_cost=round_money(sum_driver_cost(lines), precision),
        bridge_toll=route.bridge_toll,
        subcontractor_cost=route.subcontractor_cost,
        other_cost=route.other_cost,
    )


def _vehicle_rate(trip: OrderTrip):
    if trip.vehicle_id is None:
        return None
    vehicle = db.session.get(Vehicle, trip.vehicle_id)
    return vehicle.driver_expense_rate if vehicle else None


def apply_route_defaults(trip: OrderTrip, route: Route, *, created_by_user_id: int | None = None) -> RouteExpenseComputation:
    """
    Replace a trip's expense lines and cost fields with the route's defaults.

    Runs inside the caller's unit of work; does not commit.
    """
    computation = compute_from_route(route, _vehicle_rate(trip))

    trip.driver_expenses.clear()
    for line in computation.lines:
        trip.driver_expenses.append(
            TripDriverExpense(
                driver_expense_id=line.driver_expense_id,
                amount=line.amount,
                sort_order=line.sort_order,
                created_by_user_id=created_by_user_id,
            )
        )
    trip.driver_cost = computation.driver_cost
    trip.bridge_toll = computation.bridge_toll
    trip.subcontractor_cost = computation.subcontractor_cost
    trip.other_cost = computation.other_cost
    return computation


def _load_trip_for_update(org_id: int, trip_id: int) -> OrderTrip:
    trip = lock_for_update(
        db.session.query(OrderTrip).filter(
            OrderTrip.id == trip_id,
            OrderTrip.org_id == org_id,
            OrderTrip.published_at.isnot(None),
        )
    ).first()
    if not trip:
        raise NotFoundError(f"Trip {trip_id} not found")
    return trip


def _load_route(org_id: int, route_id: int) -> Route:
    route = db.session.query(Route).filter_by(id=route_id, org_id=org_id).first()
    if not route:
        raise NotFoundError(f"Route {route_id} not found")
    return route


def get_route(org_id: int, route_id: int) -> dict:
    """Route with its nested driver-expense lines."""
    return _load_route(org_id, route_id).to_dict(include_expenses=True)


def _resolve_route(org_id: int, trip: OrderTrip, route_id: int | None) -> Route:
    if route_id is None:
        order = db.session.get(Order, trip.order_id)
        route_id = order.route_id if order else None
    if route_id is None:
        raise ValidationError(f"Trip {trip.code} has no route to copy driver expenses from")
    return _load_route(org_id, route_id)


def _require_not_canceled(trip: OrderTrip) -> None:
    if trip.is_canceled:
        raise ValidationError(f"Trip {trip.code} is canceled", code="TRIP_CANCELED")


def reset_to_route_defaults(
    org_id: int,
    trip_ids: list[int],
    *,
    route_id: int | None = None,
    updated_by_user_id: int | None = None,
) -> ExpenseResetResult:
    """
    Re-apply route defaults to each trip, replacing manual expense lines.

    Each trip is its own transaction: a failing trip keeps its previous
    expense set and is reported in `failed`; the others still commit.
    """
    result = ExpenseResetResult()
    for trip_id in dict.fromkeys(trip_ids):
        try:
            trip = _load_trip_for_update(org_id, trip_id)
            _require_not_canceled(trip)
            route = _resolve_route(org_id, trip, route_id)
            apply_route_defaults(trip, route, created_by_user_id=updated_by_user_id)
            trip.updated_at = utcnow()
            trip.updated_by_user_id = updated_by_user_id
            db.session.commit()
            result.results[trip_id] = TripResult.success(trip.to_dict(include_children=True))
        except StaleDataError:
            db.session.rollback()
            result.results[trip_id] = TripResult.failure(ConflictError())
        except TmsError as e:
            db.session.rollback()
            result.results[trip_id] = TripResult.failure(e)
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.exception("Failed to reset driver expenses for trip %s", trip_id)
            result.results[trip_id] = TripResult.failure(UnknownError(str(e)))

    if result.failed:
        logger.warning("Driver expense reset for org %s: %s failed", org_id, len(result.failed))
    return result


def _normalize_lines(org_id: int, lines: list[dict], precision: int) -> list[ExpenseLine]:
    if not isinstance(lines, list):
        raise ValidationError("lines must be a list")

    expense_ids = set()
    for raw in lines:
        if not isinstance(raw, dict) or raw.get("driver_expense_id") is None:
            raise ValidationError("each line requires driver_expense_id")
        try:
            expense_ids.add(int(raw["driver_expense_id"]))
        except (TypeError, ValueError):
            raise ValidationError("driver_expense_id must be an integer")

    catalog = {}
    if expense_ids:
        rows = (
            db.session.query(DriverExpense)
            .filter(DriverExpense.org_id == org_id, DriverExpense.id.in_(expense_ids))
            .all()
        )
        catalog = {row.id: row for row in rows}
    missing = sorted(expense_ids - set(catalog))
    if missing:
        raise ValidationError(f"Unknown driver expense(s): {missing}")

    normalized = []
    for index, raw in enumerate(lines):
        amount = coerce_decimal("amount", raw.get("amount"))
        if amount is not None and amount < 0:
            raise ValidationError("amount must be >= 0")
        expense = catalog[int(raw["driver_expense_id"])]
        normalized.append(
            ExpenseLine(
                driver_expense_id=expense.id,
                expense_type=expense.type,
                amount=round_money(amount, precision),
                sort_order=index,
            )
        )
    return normalized


def replace_trip_expenses(
    org_id: int,
    trip_id: int,
    lines: list[dict],
    *,
    expected_version,
    updated_by_user_id: int | None = None,
) -> TripResult:
    """Manual edit of a trip's expense lines with the same rounding and sum rule."""
    precision = money_precision()
    normalized = _normalize_lines(org_id, lines, precision)

    try:
        trip = _load_trip_for_update(org_id, trip_id)
        check_expected_version(trip, expected_version)
        _require_not_canceled(trip)

        trip.driver_expenses.clear()
        for line in normalized:
            trip.driver_expenses.append(
                TripDriverExpense(
                    driver_expense_id=line.driver_expense_id,
                    amount=line.amount,
                    sort_order=line.sort_order,
                    created_by_user_id=updated_by_user_id,
                )
            )
        trip.driver_cost = round_money(sum_driver_cost(normalized), precision)
        trip.updated_at = utcnow()
        trip.updated_by_user_id = updated_by_user_id
        db.session.commit()
    except (ConflictError, NotFoundError) as e:
        db.session.rollback()
        return TripResult.failure(e)
    except StaleDataError:
        db.session.rollback()
        return TripResult.failure(ConflictError())
    except ValidationError:
        db.session.rollback()
        raise
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.exception("Failed to replace driver expenses for trip %s", trip_id)
        raise UnknownError(str(e))

    logger.info("Trip %s driver expenses replaced (%s lines)", trip.code, len(normalized))
    return TripResult.success(trip.to_dict(include_children=True))
