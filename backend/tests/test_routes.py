# Overview: Pytest coverage for the HTTP API surface.

from datetime import datetime
from decimal import Decimal

from tms.services import trip_service


def _trip_url(org_id, trip_id, suffix=""):
    return f"/api/orgs/{org_id}/trips/{trip_id}{suffix}"


class TestSystemRoutes:
    def test_health(self, client, db_session):
        resp = client.get("/api/system/health")
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "healthy"


class TestTripRoutes:
    def test_create_trip(self, client, org_a, order_a, vehicle_a, driver_a, stages_a, notifications):
        resp = client.post(
            f"/api/orgs/{org_a.id}/orders/{order_a.id}/trips",
            json={
                "weight": "12.5",
                "pickup_date": "2024-01-10T00:00:00Z",
                "delivery_date": "2024-01-12T09:00:00Z",
                "vehicle_id": vehicle_a.id,
                "driver_id": driver_a.id,
                "use_route_defaults": True,
            },
            headers={"X-User-Id": "12", "X-User-Name": "Dispatcher Le"},
        )
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["ok"] is True
        assert body["trip"]["code"] == "ORD-0001-001"
        assert body["trip"]["created_by_user_id"] == 12
        assert Decimal(body["trip"]["driver_cost"]) == Decimal("800")
        assert notifications.emitted[0].data["full_name"] == "Dispatcher Le"

    def test_create_trip_validation_error(self, client, org_a, order_a, stages_a):
        resp = client.post(f"/api/orgs/{org_a.id}/orders/{order_a.id}/trips", json={"weight": "0"})
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "VALIDATION_ERROR"

    def test_create_trip_unknown_order(self, client, org_a, stages_a):
        resp = client.post(f"/api/orgs/{org_a.id}/orders/9999/trips", json={"weight": "1"})
        assert resp.status_code == 404
        assert resp.get_json()["error"]["code"] == "NOT_FOUND"

    def test_bad_user_header(self, client, org_a, order_a):
        resp = client.post(
            f"/api/orgs/{org_a.id}/orders/{order_a.id}/trips",
            json={"weight": "1"},
            headers={"X-User-Id": "abc"},
        )
        assert resp.status_code == 400

    def test_get_trip_with_flags(self, client, org_a, make_trip):
        trip = make_trip()
        resp = client.get(_trip_url(org_a.id, trip["id"]))
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["trip"]["id"] == trip["id"]
        assert body["status_flags"]["is_new"] is True

    def test_get_trip_other_org(self, client, org_a, org_b, make_trip):
        trip = make_trip()
        resp = client.get(_trip_url(org_b.id, trip["id"]))
        assert resp.status_code == 404

    def test_advance_and_history(self, client, org_a, make_trip):
        trip = make_trip()
        resp = client.post(
            _trip_url(org_a.id, trip["id"], "/status"),
            json={"stage_type": "CONFIRMED", "expected_version": trip["version_id"]},
            headers={"X-User-Id": "12"},
        )
        assert resp.status_code == 200
        assert resp.get_json()["trip"]["last_status_type"] == "CONFIRMED"

        history = client.get(_trip_url(org_a.id, trip["id"], "/statuses")).get_json()["statuses"]
        assert [h["type"] for h in history] == ["NEW", "CONFIRMED"]

    def test_stale_version_is_409(self, client, org_a, make_trip):
        trip = make_trip()
        resp = client.post(
            _trip_url(org_a.id, trip["id"], "/status"),
            json={"stage_type": "CONFIRMED", "expected_version": trip["version_id"] + 1},
        )
        assert resp.status_code == 409
        assert resp.get_json()["error"]["code"] == "CONFLICT"

    def test_missing_version_is_400(self, client, org_a, make_trip):
        trip = make_trip()
        resp = client.post(_trip_url(org_a.id, trip["id"], "/status"), json={"stage_type": "CONFIRMED"})
        assert resp.status_code == 400

    def test_cancel_then_transition_rejected(self, client, org_a, make_trip):
        trip = make_trip()
        resp = client.post(_trip_url(org_a.id, trip["id"], "/cancel"), json={"expected_version": trip["version_id"]})
        assert resp.status_code == 200
        version = resp.get_json()["trip"]["version_id"]

        resp = client.post(
            _trip_url(org_a.id, trip["id"], "/status"),
            json={"stage_type": "DELIVERED", "expected_version": version},
        )
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "TRIP_CANCELED"

    def test_bill_of_lading(self, client, org_a, make_trip):
        trip = make_trip()
        resp = client.put(
            _trip_url(org_a.id, trip["id"], "/bill-of-lading"),
            json={"bill_of_lading": "BOL-55", "images_added": ["a.jpg"], "received": True},
        )
        assert resp.status_code == 200
        body = resp.get_json()["trip"]
        assert body["bill_of_lading"] == "BOL-55"
        assert body["bill_of_lading_images"] == ["a.jpg"]

    def test_reset_notification_schedule(self, client, org_a, make_trip):
        trip = make_trip()
        trip_service.mark_notification_scheduled(org_a.id, [trip["id"]])
        resp = client.post(_trip_url(org_a.id, trip["id"], "/notification-schedule/reset"))
        assert resp.status_code == 200
        assert resp.get_json() == {"trip_id": trip["id"], "notification_scheduled_at": None}

    def test_reset_driver_expenses_partial(self, client, org_a, make_trip):
        trip = make_trip()
        resp = client.post(
            f"/api/orgs/{org_a.id}/trips/reset-driver-expenses",
            json={"trip_ids": [trip["id"], 777]},
        )
        assert resp.status_code == 207
        body = resp.get_json()
        assert [t["id"] for t in body["updated"]] == [trip["id"]]
        assert body["failed"][0]["trip_id"] == 777

    def test_reset_driver_expenses_requires_ids(self, client, org_a):
        resp = client.post(f"/api/orgs/{org_a.id}/trips/reset-driver-expenses", json={})
        assert resp.status_code == 400

    def test_replace_driver_expenses(self, client, org_a, make_trip, expense_types_a):
        trip = make_trip()
        resp = client.put(
            _trip_url(org_a.id, trip["id"], "/driver-expenses"),
            json={
                "expected_version": trip["version_id"],
                "lines": [{"driver_expense_id": expense_types_a["salary"].id, "amount": "640"}],
            },
        )
        assert resp.status_code == 200
        assert Decimal(resp.get_json()["trip"]["driver_cost"]) == Decimal("640")


class TestPayrollRoutes:
    def test_driver_payroll(self, client, org_a, driver_a, make_trip, clock):
        trip = make_trip()
        trip_service.update_bill_of_lading(org_a.id, trip["id"], bill_of_lading="BOL-1")
        clock.set(datetime(2024, 1, 12, 17, 30))
        trip_service.advance_status(org_a.id, trip["id"], "DELIVERED", expected_version=trip["version_id"] + 1)

        resp = client.get(
            f"/api/orgs/{org_a.id}/drivers/{driver_a.id}/payroll",
            query_string={"start": "2024-01-01", "end": "2024-01-31"},
        )
        assert resp.status_code == 200
        body = resp.get_json()
        assert [s["trip_id"] for s in body["settlements"]] == [trip["id"]]
        assert body["summary"] == [
            {"driver_id": driver_a.id, "trip_count": 1, "total_amount": "800.00", "unit": "VND"},
        ]

    def test_driver_payroll_bad_mode(self, client, org_a, driver_a, stages_a):
        resp = client.get(
            f"/api/orgs/{org_a.id}/drivers/{driver_a.id}/payroll",
            query_string={"start": "2024-01-01", "end": "2024-01-31", "mode": "LUNAR"},
        )
        assert resp.status_code == 400


class TestReportStageRoutes:
    def test_list_create_reorder(self, client, org_a, stages_a):
        listed = client.get(f"/api/orgs/{org_a.id}/report-stages").get_json()["report_stages"]
        assert len(listed) == len(stages_a)

        resp = client.post(f"/api/orgs/{org_a.id}/report-stages", json={"name": "Customs", "type": "CUSTOMS"})
        assert resp.status_code == 201
        custom = resp.get_json()["report_stage"]

        ids = [custom["id"]] + [s["id"] for s in listed]
        resp = client.put(f"/api/orgs/{org_a.id}/report-stages/order", json={"ordered_ids": ids})
        assert resp.status_code == 200
        assert resp.get_json()["report_stages"][0]["type"] == "CUSTOMS"

    def test_duplicate_stage_is_400(self, client, org_a, stages_a):
        resp = client.post(f"/api/orgs/{org_a.id}/report-stages", json={"name": "Dup", "type": "NEW"})
        assert resp.status_code == 400


class TestRouteLookup:
    def test_route_with_lines(self, client, org_a, route_a):
        resp = client.get(f"/api/orgs/{org_a.id}/routes/{route_a.id}")
        assert resp.status_code == 200
        route = resp.get_json()["route"]
        assert route["code"] == "SGN-BDG"
        assert [line["driver_expense_type"] for line in route["driver_expenses"]] == ["DRIVER_COST", "OTHER"]

    def test_other_org_route_is_404(self, client, org_b, route_a):
        resp = client.get(f"/api/orgs/{org_b.id}/routes/{route_a.id}")
        assert resp.status_code == 404


class TestTripPatchRoute:
    def test_patch_trip(self, client, org_a, make_trip):
        trip = make_trip()
        resp = client.patch(
            _trip_url(org_a.id, trip["id"]),
            json={"expected_version": trip["version_id"], "patch": {"other_cost": "25"}},
            headers={"X-User-Id": "8"},
        )
        assert resp.status_code == 200
        body = resp.get_json()["trip"]
        assert Decimal(body["other_cost"]) == Decimal("25")
        assert body["updated_by_user_id"] == 8

    def test_patch_trip_stale(self, client, org_a, make_trip):
        trip = make_trip()
        resp = client.patch(
            _trip_url(org_a.id, trip["id"]),
            json={"expected_version": 0, "patch": {"other_cost": "25"}},
        )
        assert resp.status_code == 409
