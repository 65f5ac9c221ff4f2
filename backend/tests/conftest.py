"""
Pytest fixtures for TMS backend tests.

Provides test database setup, organization/fleet/route/order fixtures, a
frozen clock for status timestamps and a capturing notification sink.
"""

from datetime import datetime
from decimal import Decimal

import pytest
from tms import create_app
from tms.extensions import db
from tms.models import (
    Organization, VehicleType, Vehicle, Driver,
    DriverExpense, Route, RouteDriverExpense, Order,
)
from tms.services import expense_service, report_stage_service, trip_service
from tms.services.notification_service import CapturingNotificationSink, SINK_EXTENSION_KEY


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOG_LEVEL': 'WARNING',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def notifications(app):
    """Swap in an in-memory sink and hand it to the test."""
    previous = app.extensions.get(SINK_EXTENSION_KEY)
    sink = CapturingNotificationSink()
    app.extensions[SINK_EXTENSION_KEY] = sink
    yield sink
    app.extensions[SINK_EXTENSION_KEY] = previous


class FrozenClock:
    """Callable stand-in for time_utils.utcnow."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, value: datetime) -> None:
        self.now = value


@pytest.fixture(scope='function')
def clock(monkeypatch):
    frozen = FrozenClock(datetime(2024, 1, 2, 7, 0, 0))
    monkeypatch.setattr(trip_service, "utcnow", frozen)
    monkeypatch.setattr(expense_service, "utcnow", frozen)
    return frozen


@pytest.fixture(scope='function')
def org_a(db_session):
    """Create Organization A (first tenant)."""
    org = Organization(name="Org A - Saigon Freight", code="SGF", is_active=True)
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture(scope='function')
def org_b(db_session):
    """Create Organization B (second tenant)."""
    org = Organization(name="Org B - Hanoi Haulage", code="HNH", is_active=True)
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture(scope='function')
def stages_a(db_session, org_a):
    """Default report stage pipeline for Organization A."""
    return report_stage_service.initialize_report_stages(org_a.id)


@pytest.fixture(scope='function')
def vehicle_a(db_session, org_a):
    """8-ton truck whose type pays drivers 80% of route driver cost."""
    vehicle_type = VehicleType(org_id=org_a.id, name="8T box truck", driver_expense_rate=Decimal("80"))
    db_session.add(vehicle_type)
    db_session.flush()
    vehicle = Vehicle(org_id=org_a.id, vehicle_number="51C-123.45", vehicle_type_id=vehicle_type.id)
    db_session.add(vehicle)
    db_session.commit()
    return vehicle


@pytest.fixture(scope='function')
def driver_a(db_session, org_a):
    driver = Driver(org_id=org_a.id, full_name="Nguyen Van A", phone="0901000001", user_id=501)
    db_session.add(driver)
    db_session.commit()
    return driver


@pytest.fixture(scope='function')
def driver_b(db_session, org_a):
    driver = Driver(org_id=org_a.id, full_name="Tran Thi B", phone="0901000002", user_id=502)
    db_session.add(driver)
    db_session.commit()
    return driver


@pytest.fixture(scope='function')
def expense_types_a(db_session, org_a):
    """Salary (DRIVER_COST) and parking (OTHER) expense kinds."""
    salary = DriverExpense(org_id=org_a.id, key="SALARY", name="Trip salary", type="DRIVER_COST")
    parking = DriverExpense(org_id=org_a.id, key="PARKING", name="Parking fee", type="OTHER")
    db_session.add_all([salary, parking])
    db_session.commit()
    return {"salary": salary, "parking": parking}


@pytest.fixture(scope='function')
def route_a(db_session, org_a, expense_types_a):
    """Route with salary 1000, parking 300, bridge toll 200, subcontractor 50."""
    route = Route(
        org_id=org_a.id,
        code="SGN-BDG",
        name="Saigon - Binh Duong",
        driver_cost=Decimal("1000"),
        bridge_toll=Decimal("200"),
        subcontractor_cost=Decimal("50"),
        other_cost=None,
    )
    db_session.add(route)
    db_session.flush()
    db_session.add_all([
        RouteDriverExpense(route_id=route.id, driver_expense_id=expense_types_a["salary"].id, amount=Decimal("1000"), sort_order=0),
        RouteDriverExpense(route_id=route.id, driver_expense_id=expense_types_a["parking"].id, amount=Decimal("300"), sort_order=1),
    ])
    db_session.commit()
    return route


def _make_order(db_session, org, *, code, route=None, status="RECEIVED", published=True):
    order = Order(
        org_id=org.id,
        code=code,
        customer_name="ACME Logistics",
        route_id=route.id if route else None,
        last_status_type=status,
        published_at=datetime(2024, 1, 1) if published else None,
    )
    db_session.add(order)
    db_session.commit()
    return order


@pytest.fixture(scope='function')
def order_a(db_session, org_a, route_a):
    """Published RECEIVED order on route_a."""
    return _make_order(db_session, org_a, code="ORD-0001", route=route_a)


@pytest.fixture(scope='function')
def make_order(db_session, org_a):
    def _factory(code, **kwargs):
        return _make_order(db_session, org_a, code=code, **kwargs)
    return _factory


@pytest.fixture(scope='function')
def make_trip(db_session, org_a, order_a, vehicle_a, driver_a, stages_a, clock):
    """Create a trip through the service and return its dict."""
    def _factory(order=None, **overrides):
        params = {
            "weight": "12.5",
            "pickup_date": "2024-01-10T00:00:00Z",
            "delivery_date": "2024-01-12T09:00:00Z",
            "vehicle_id": vehicle_a.id,
            "driver_id": driver_a.id,
            "use_route_defaults": True,
        }
        params.update(overrides)
        target = order or order_a
        result = trip_service.create_trip(org_a.id, target.id, **params)
        assert result.ok, result.error
        return result.trip
    return _factory
