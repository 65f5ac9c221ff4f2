from __future__ import annotations

from ..extensions import db
from tms.time_utils import to_utc_z
from tms.validation import format_decimal


class VehicleType(db.Model):
    """
    Vehicle category (e.g. 8-ton box truck, 40ft tractor).

    driver_expense_rate is a percentage applied to DRIVER_COST route lines when
    route defaults are copied onto a trip. NULL means "no proration" (100%).
    """
    __tablename__ = "vehicle_types"
    __table_args__ = (
        db.UniqueConstraint("org_id", "name", name="uq_vehicle_types_org_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    driver_expense_rate = db.Column(db.Numeric(7, 2), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "name": self.name,
            "driver_expense_rate": format_decimal(self.driver_expense_rate),
            "created_at": to_utc_z(self.created_at),
        }


class Vehicle(db.Model):
    __tablename__ = "vehicles"
    __table_args__ = (
        db.UniqueConstraint("org_id", "vehicle_number", name="uq_vehicles_org_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    vehicle_number = db.Column(db.String(32), nullable=False)
    vehicle_type_id = db.Column(db.Integer, db.ForeignKey("vehicle_types.id"), nullable=True, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    vehicle_type = db.relationship("VehicleType", backref=db.backref("vehicles", lazy=True))

    @property
    def driver_expense_rate(self):
        return self.vehicle_type.driver_expense_rate if self.vehicle_type else None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "vehicle_number": self.vehicle_number,
            "vehicle_type_id": self.vehicle_type_id,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class Driver(db.Model):
    """
    Driver profile.

    user_id points at the driver's mobile-app account (owned by the external
    auth system) and is what notification intents address.
    """
    __tablename__ = "drivers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    full_name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    user_id = db.Column(db.Integer, nullable=True, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "full_name": self.full_name,
            "phone": self.phone,
            "user_id": self.user_id,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
