from __future__ import annotations

from ..extensions import db
from tms.time_utils import to_utc_z
from tms.validation import format_decimal


# Order.last_status_type values
ORDER_STATUS_NEW = "NEW"
ORDER_STATUS_RECEIVED = "RECEIVED"
ORDER_STATUS_IN_PROGRESS = "IN_PROGRESS"
ORDER_STATUS_COMPLETED = "COMPLETED"
ORDER_STATUS_CANCELED = "CANCELED"

# Trip stage types the engine reasons about structurally; everything else is
# data-driven through the organization's report stage catalog.
TRIP_STATUS_NEW = "NEW"
TRIP_STATUS_PENDING_CONFIRMATION = "PENDING_CONFIRMATION"
TRIP_STATUS_CONFIRMED = "CONFIRMED"
TRIP_STATUS_WAITING_FOR_PICKUP = "WAITING_FOR_PICKUP"
TRIP_STATUS_WAREHOUSE_GOING_TO_PICKUP = "WAREHOUSE_GOING_TO_PICKUP"
TRIP_STATUS_WAREHOUSE_PICKED_UP = "WAREHOUSE_PICKED_UP"
TRIP_STATUS_WAITING_FOR_DELIVERY = "WAITING_FOR_DELIVERY"
TRIP_STATUS_DELIVERED = "DELIVERED"
TRIP_STATUS_COMPLETED = "COMPLETED"
TRIP_STATUS_CANCELED = "CANCELED"


class Order(db.Model):
    """
    Customer freight order. Split into one or more OrderTrips when scheduled.

    last_status_type mirrors the latest OrderStatus row.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("org_id", "code", name="uq_orders_org_code"),
        db.Index("ix_orders_org_status", "org_id", "last_status_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    code = db.Column(db.String(64), nullable=False)

    customer_name = db.Column(db.String(255), nullable=True)
    route_id = db.Column(db.Integer, db.ForeignKey("routes.id"), nullable=True, index=True)
    weight = db.Column(db.Numeric(14, 3), nullable=True)

    last_status_type = db.Column(db.String(32), nullable=False, default=ORDER_STATUS_NEW)

    # Soft-delete marker: NULL means unpublished (draft or deleted)
    published_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    created_by_user_id = db.Column(db.Integer, nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    updated_by_user_id = db.Column(db.Integer, nullable=True)

    route = db.relationship("Route", lazy=True)
    statuses = db.relationship(
        "OrderStatus",
        backref=db.backref("order", lazy=True),
        order_by="OrderStatus.id",
        lazy=True,
    )

    @property
    def is_published(self) -> bool:
        return self.published_at is not None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "code": self.code,
            "customer_name": self.customer_name,
            "route_id": self.route_id,
            "weight": format_decimal(self.weight),
            "last_status_type": self.last_status_type,
            "published_at": to_utc_z(self.published_at),
            "created_at": to_utc_z(self.created_at),
            "created_by_user_id": self.created_by_user_id,
            "updated_at": to_utc_z(self.updated_at),
            "updated_by_user_id": self.updated_by_user_id,
        }


class OrderStatus(db.Model):
    """Append-only order status log."""
    __tablename__ = "order_statuses"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    type = db.Column(db.String(32), nullable=False)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    created_by_user_id = db.Column(db.Integer, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "type": self.type,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "created_by_user_id": self.created_by_user_id,
        }


class OrderTrip(db.Model):
    """
    One vehicle/driver leg of an Order.

    DESIGN:
    - code is "{order.code}-{sequence:03d}", unique per order and per org.
    - last_status_type is denormalized from the latest OrderTripStatus and is
      only ever written together with that row.
    - version_id is the optimistic concurrency counter; SQLAlchemy adds
      "AND version_id = :loaded" to every UPDATE and bumps it.
    - published_at NULL hides the trip from every reporting and dispatch view.
    """
    __tablename__ = "order_trips"
    __table_args__ = (
        db.UniqueConstraint("org_id", "order_id", "code", name="uq_order_trips_org_order_code"),
        db.UniqueConstraint("org_id", "code", name="uq_order_trips_org_code"),
        db.Index("ix_order_trips_org_driver", "org_id", "driver_id"),
        db.Index("ix_order_trips_org_status", "org_id", "last_status_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)

    code = db.Column(db.String(80), nullable=False)
    sequence = db.Column(db.Integer, nullable=False)

    weight = db.Column(db.Numeric(14, 3), nullable=False)
    pickup_date = db.Column(db.DateTime(timezone=True), nullable=True)
    delivery_date = db.Column(db.DateTime(timezone=True), nullable=True)

    vehicle_id = db.Column(db.Integer, db.ForeignKey("vehicles.id"), nullable=True, index=True)
    driver_id = db.Column(db.Integer, db.ForeignKey("drivers.id"), nullable=True)

    # Costs (currency amounts, rounded to MONEY_PRECISION)
    driver_cost = db.Column(db.Numeric(18, 4), nullable=True)
    subcontractor_cost = db.Column(db.Numeric(18, 4), nullable=True)
    bridge_toll = db.Column(db.Numeric(18, 4), nullable=True)
    other_cost = db.Column(db.Numeric(18, 4), nullable=True)

    last_status_type = db.Column(db.String(32), nullable=False, default=TRIP_STATUS_NEW)

    bill_of_lading = db.Column(db.String(255), nullable=True)
    bill_of_lading_received = db.Column(db.Boolean, nullable=False, default=False)
    bill_of_lading_received_date = db.Column(db.DateTime(timezone=True), nullable=True)

    notification_scheduled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    published_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    created_by_user_id = db.Column(db.Integer, nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    updated_by_user_id = db.Column(db.Integer, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    order = db.relationship("Order", backref=db.backref("trips", lazy=True))
    vehicle = db.relationship("Vehicle", lazy=True)
    driver = db.relationship("Driver", lazy=True)
    statuses = db.relationship(
        "OrderTripStatus",
        backref=db.backref("trip", lazy=True),
        order_by="OrderTripStatus.id",
        lazy=True,
    )
    driver_expenses = db.relationship(
        "TripDriverExpense",
        backref=db.backref("trip", lazy=True),
        order_by="TripDriverExpense.sort_order",
        cascade="all, delete-orphan",
        lazy=True,
    )
    bill_of_lading_images = db.relationship(
        "BillOfLadingImage",
        backref=db.backref("trip", lazy=True),
        order_by="BillOfLadingImage.sort_order",
        cascade="all, delete-orphan",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_published(self) -> bool:
        return self.published_at is not None

    @property
    def is_canceled(self) -> bool:
        return self.last_status_type == TRIP_STATUS_CANCELED

    def to_dict(self, include_children: bool = False) -> dict:
        data = {
            "id": self.id,
            "org_id": self.org_id,
            "order_id": self.order_id,
            "code": self.code,
            "sequence": self.sequence,
            "weight": format_decimal(self.weight),
            "pickup_date": to_utc_z(self.pickup_date),
            "delivery_date": to_utc_z(self.delivery_date),
            "vehicle_id": self.vehicle_id,
            "driver_id": self.driver_id,
            "driver_cost": format_decimal(self.driver_cost),
            "subcontractor_cost": format_decimal(self.subcontractor_cost),
            "bridge_toll": format_decimal(self.bridge_toll),
            "other_cost": format_decimal(self.other_cost),
            "last_status_type": self.last_status_type,
            "bill_of_lading": self.bill_of_lading,
            "bill_of_lading_received": self.bill_of_lading_received,
            "bill_of_lading_received_date": to_utc_z(self.bill_of_lading_received_date),
            "notification_scheduled_at": to_utc_z(self.notification_scheduled_at),
            "published_at": to_utc_z(self.published_at),
            "created_at": to_utc_z(self.created_at),
            "created_by_user_id": self.created_by_user_id,
            "updated_at": to_utc_z(self.updated_at),
            "updated_by_user_id": self.updated_by_user_id,
            "version_id": self.version_id,
        }
        if include_children:
            data["driver_expenses"] = [line.to_dict() for line in self.driver_expenses]
            data["bill_of_lading_images"] = [img.image_ref for img in self.bill_of_lading_images]
        return data


class OrderTripStatus(db.Model):
    """
    Append-only trip status event. Never updated or deleted.

    driver_report_id links the event to the catalog stage it was reported
    against (NULL for CANCELED or stages missing from the catalog).
    """
    __tablename__ = "order_trip_statuses"
    __table_args__ = (
        db.Index("ix_order_trip_statuses_trip_type_created", "trip_id", "type", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    trip_id = db.Column(db.Integer, db.ForeignKey("order_trips.id"), nullable=False, index=True)
    type = db.Column(db.String(32), nullable=False)
    notes = db.Column(db.Text, nullable=True)
    driver_report_id = db.Column(db.Integer, db.ForeignKey("driver_reports.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    created_by_user_id = db.Column(db.Integer, nullable=True)

    driver_report = db.relationship("DriverReport", lazy=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "trip_id": self.trip_id,
            "type": self.type,
            "notes": self.notes,
            "driver_report_id": self.driver_report_id,
            "created_at": to_utc_z(self.created_at),
            "created_by_user_id": self.created_by_user_id,
        }


class TripDriverExpense(db.Model):
    """Driver expense line copied from a route (or edited manually) onto a trip."""
    __tablename__ = "trip_driver_expenses"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    trip_id = db.Column(db.Integer, db.ForeignKey("order_trips.id"), nullable=False, index=True)
    driver_expense_id = db.Column(db.Integer, db.ForeignKey("driver_expenses.id"), nullable=False)
    amount = db.Column(db.Numeric(18, 4), nullable=True)
    sort_order = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    created_by_user_id = db.Column(db.Integer, nullable=True)

    driver_expense = db.relationship("DriverExpense", lazy="joined")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "trip_id": self.trip_id,
            "driver_expense_id": self.driver_expense_id,
            "driver_expense_type": self.driver_expense.type if self.driver_expense else None,
            "amount": format_decimal(self.amount),
            "sort_order": self.sort_order,
        }


class BillOfLadingImage(db.Model):
    """Opaque reference (storage key or URL) to a bill-of-lading scan."""
    __tablename__ = "bill_of_lading_images"
    __table_args__ = (
        db.UniqueConstraint("trip_id", "image_ref", name="uq_bol_images_trip_ref"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    trip_id = db.Column(db.Integer, db.ForeignKey("order_trips.id"), nullable=False, index=True)
    image_ref = db.Column(db.String(512), nullable=False)
    sort_order = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    created_by_user_id = db.Column(db.Integer, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "trip_id": self.trip_id,
            "image_ref": self.image_ref,
            "sort_order": self.sort_order,
            "created_at": to_utc_z(self.created_at),
        }
