# Overview: Pytest coverage for driver expense computation and reset.

from decimal import Decimal

import pytest

from tms.models import DriverExpense, OrderTrip, Route, RouteDriverExpense
from tms.services import expense_service, trip_service
from tms.validation import ConflictError, NotFoundError, ValidationError


def _route(*lines, bridge_toll=None):
    route = Route(code="R", name="R", bridge_toll=bridge_toll)
    for index, (expense_id, expense_type, amount) in enumerate(lines):
        route.driver_expenses.append(
            RouteDriverExpense(
                driver_expense=DriverExpense(id=expense_id, key=f"K{expense_id}", name="x", type=expense_type),
                amount=Decimal(amount) if amount is not None else None,
                sort_order=index,
            )
        )
    return route


class TestComputeFromRoute:
    """Pure route -> cost sheet computation."""

    def test_driver_cost_lines_prorated_by_rate(self):
        route = _route((1, "DRIVER_COST", "1000"), (2, "OTHER", "300"), bridge_toll=Decimal("200"))
        result = expense_service.compute_from_route(route, Decimal("80"), precision=2)

        assert [line.amount for line in result.lines] == [Decimal("800.00"), Decimal("300.00")]
        assert result.driver_cost == Decimal("800.00")
        assert result.bridge_toll == Decimal("200")

    def test_missing_rate_means_no_proration(self):
        route = _route((1, "DRIVER_COST", "1000"))
        result = expense_service.compute_from_route(route, None, precision=2)
        assert result.driver_cost == Decimal("1000.00")

    def test_zero_rate_zeroes_driver_cost(self):
        route = _route((1, "DRIVER_COST", "1000"), (2, "OTHER", "40"))
        result = expense_service.compute_from_route(route, 0, precision=2)
        assert result.driver_cost == Decimal("0.00")
        assert result.lines[1].amount == Decimal("40.00")

    def test_lines_rounded_before_summing(self):
        route = _route((1, "DRIVER_COST", "0.01"), (2, "DRIVER_COST", "0.01"))
        result = expense_service.compute_from_route(route, Decimal("50"), precision=2)

        assert [line.amount for line in result.lines] == [Decimal("0.01"), Decimal("0.01")]
        assert result.driver_cost == Decimal("0.02")

    def test_no_driver_cost_lines_sum_to_zero(self):
        route = _route((2, "OTHER", "300"))
        result = expense_service.compute_from_route(route, Decimal("80"), precision=2)
        assert result.driver_cost == Decimal("0")

    def test_null_line_amount_is_kept(self):
        route = _route((1, "DRIVER_COST", None), (2, "DRIVER_COST", "10"))
        result = expense_service.compute_from_route(route, Decimal("100"), precision=2)
        assert result.lines[0].amount is None
        assert result.driver_cost == Decimal("10.00")


class TestResetToRouteDefaults:
    """Batch reset of trip expenses."""

    def test_reset_restores_route_lines(self, org_a, make_trip, expense_types_a):
        trip = make_trip()
        edited = expense_service.replace_trip_expenses(
            org_a.id, trip["id"],
            [{"driver_expense_id": expense_types_a["salary"].id, "amount": "123.456"}],
            expected_version=trip["version_id"],
        )
        assert edited.ok
        assert Decimal(edited.trip["driver_cost"]) == Decimal("123.46")

        outcome = expense_service.reset_to_route_defaults(org_a.id, [trip["id"]], updated_by_user_id=7)

        assert outcome.ok
        reset = outcome.updated[0]
        amounts = [Decimal(line["amount"]) for line in reset["driver_expenses"]]
        assert amounts == [Decimal("800"), Decimal("300")]
        assert Decimal(reset["driver_cost"]) == Decimal("800")
        assert reset["updated_by_user_id"] == 7

    def test_driver_cost_equals_sum_of_driver_cost_lines(self, db_session, org_a, make_trip):
        trip = make_trip()
        expense_service.reset_to_route_defaults(org_a.id, [trip["id"]])

        row = db_session.get(OrderTrip, trip["id"])
        expected = sum(
            (line.amount for line in row.driver_expenses if line.driver_expense.type == "DRIVER_COST"),
            Decimal(0),
        )
        assert row.driver_cost == expected

    def test_failures_are_isolated_per_trip(self, org_a, make_order, make_trip):
        good = make_trip()
        orphan_order = make_order("ORD-NOROUTE")
        orphan = make_trip(order=orphan_order, use_route_defaults=False, cost_overrides={"driver_cost": "42"})

        outcome = expense_service.reset_to_route_defaults(org_a.id, [good["id"], 99999, orphan["id"]])

        assert not outcome.ok
        assert [t["id"] for t in outcome.updated] == [good["id"]]
        failed = {row["trip_id"]: row for row in outcome.failed}
        assert set(failed) == {99999, orphan["id"]}
        assert isinstance(outcome.results[99999].error, NotFoundError)
        assert isinstance(outcome.results[orphan["id"]].error, ValidationError)

        untouched = trip_service.get_trip(org_a.id, orphan["id"])
        assert Decimal(untouched["driver_cost"]) == Decimal("42")
        assert untouched["version_id"] == orphan["version_id"]

    def test_canceled_trip_keeps_its_lines(self, org_a, make_trip, expense_types_a):
        trip = make_trip()
        edited = expense_service.replace_trip_expenses(
            org_a.id, trip["id"],
            [{"driver_expense_id": expense_types_a["salary"].id, "amount": "123"}],
            expected_version=trip["version_id"],
        )
        trip_service.cancel_trip(org_a.id, trip["id"], expected_version=edited.trip["version_id"])

        outcome = expense_service.reset_to_route_defaults(org_a.id, [trip["id"]])

        assert not outcome.ok
        assert outcome.results[trip["id"]].error.code == "TRIP_CANCELED"
        assert Decimal(trip_service.get_trip(org_a.id, trip["id"])["driver_cost"]) == Decimal("123")

    def test_explicit_route_override(self, org_a, make_order, make_trip, route_a):
        orphan = make_trip(order=make_order("ORD-NOROUTE"), use_route_defaults=False)
        outcome = expense_service.reset_to_route_defaults(org_a.id, [orphan["id"]], route_id=route_a.id)
        assert outcome.ok
        assert Decimal(outcome.updated[0]["driver_cost"]) == Decimal("800")


class TestReplaceTripExpenses:
    """Manual edits of expense lines."""

    def test_stale_version_conflicts(self, org_a, make_trip, expense_types_a):
        trip = make_trip()
        result = expense_service.replace_trip_expenses(
            org_a.id, trip["id"],
            [{"driver_expense_id": expense_types_a["salary"].id, "amount": "1"}],
            expected_version=trip["version_id"] + 1,
        )
        assert not result.ok
        assert isinstance(result.error, ConflictError)
        assert Decimal(trip_service.get_trip(org_a.id, trip["id"])["driver_cost"]) == Decimal("800")

    def test_other_lines_do_not_count_as_driver_cost(self, org_a, make_trip, expense_types_a):
        trip = make_trip()
        result = expense_service.replace_trip_expenses(
            org_a.id, trip["id"],
            [
                {"driver_expense_id": expense_types_a["salary"].id, "amount": "500"},
                {"driver_expense_id": expense_types_a["parking"].id, "amount": "75"},
            ],
            expected_version=trip["version_id"],
        )
        assert result.ok
        assert Decimal(result.trip["driver_cost"]) == Decimal("500")
        assert result.trip["version_id"] == trip["version_id"] + 1

    def test_unknown_expense_rejected(self, org_a, make_trip):
        trip = make_trip()
        with pytest.raises(ValidationError):
            expense_service.replace_trip_expenses(
                org_a.id, trip["id"],
                [{"driver_expense_id": 4040, "amount": "1"}],
                expected_version=trip["version_id"],
            )

    def test_canceled_trip_rejected(self, org_a, make_trip, expense_types_a):
        trip = make_trip()
        canceled = trip_service.cancel_trip(org_a.id, trip["id"], expected_version=trip["version_id"])

        with pytest.raises(ValidationError) as exc:
            expense_service.replace_trip_expenses(
                org_a.id, trip["id"],
                [{"driver_expense_id": expense_types_a["salary"].id, "amount": "1"}],
                expected_version=canceled.trip["version_id"],
            )
        assert exc.value.code == "TRIP_CANCELED"
        assert Decimal(trip_service.get_trip(org_a.id, trip["id"])["driver_cost"]) == Decimal("800")

    def test_negative_amount_rejected(self, org_a, make_trip, expense_types_a):
        trip = make_trip()
        with pytest.raises(ValidationError):
            expense_service.replace_trip_expenses(
                org_a.id, trip["id"],
                [{"driver_expense_id": expense_types_a["salary"].id, "amount": "-1"}],
                expected_version=trip["version_id"],
            )
