from __future__ import annotations

from ..extensions import db
from tms.time_utils import to_utc_z
from tms.validation import format_decimal


# DriverExpense.type values
EXPENSE_TYPE_DRIVER_COST = "DRIVER_COST"
EXPENSE_TYPE_OTHER = "OTHER"


class DriverExpense(db.Model):
    """
    Organization catalog of driver expense kinds (salary, meal allowance, ...).

    Only DRIVER_COST kinds are prorated by the vehicle type rate and count
    toward a trip's driver_cost.
    """
    __tablename__ = "driver_expenses"
    __table_args__ = (
        db.UniqueConstraint("org_id", "key", name="uq_driver_expenses_org_key"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    key = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    type = db.Column(db.String(16), nullable=False, default=EXPENSE_TYPE_DRIVER_COST)  # DRIVER_COST, OTHER
    display_order = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    @property
    def is_driver_cost(self) -> bool:
        return self.type == EXPENSE_TYPE_DRIVER_COST

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "key": self.key,
            "name": self.name,
            "type": self.type,
            "display_order": self.display_order,
            "is_active": self.is_active,
        }


class Route(db.Model):
    """
    Customer route with its default cost sheet.

    Read-only from the trip engine's point of view: trips copy from it, never
    write to it.
    """
    __tablename__ = "routes"
    __table_args__ = (
        db.UniqueConstraint("org_id", "code", name="uq_routes_org_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    code = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)

    driver_cost = db.Column(db.Numeric(18, 4), nullable=True)
    bridge_toll = db.Column(db.Numeric(18, 4), nullable=True)
    subcontractor_cost = db.Column(db.Numeric(18, 4), nullable=True)
    other_cost = db.Column(db.Numeric(18, 4), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    driver_expenses = db.relationship(
        "RouteDriverExpense",
        backref=db.backref("route", lazy=True),
        order_by="RouteDriverExpense.sort_order",
        lazy=True,
    )

    def to_dict(self, include_expenses: bool = False) -> dict:
        data = {
            "id": self.id,
            "org_id": self.org_id,
            "code": self.code,
            "name": self.name,
            "driver_cost": format_decimal(self.driver_cost),
            "bridge_toll": format_decimal(self.bridge_toll),
            "subcontractor_cost": format_decimal(self.subcontractor_cost),
            "other_cost": format_decimal(self.other_cost),
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
        if include_expenses:
            data["driver_expenses"] = [line.to_dict() for line in self.driver_expenses]
        return data


class RouteDriverExpense(db.Model):
    __tablename__ = "route_driver_expenses"
    __table_args__ = (
        db.Index("ix_route_driver_expenses_route", "route_id", "sort_order"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    route_id = db.Column(db.Integer, db.ForeignKey("routes.id"), nullable=False)
    driver_expense_id = db.Column(db.Integer, db.ForeignKey("driver_expenses.id"), nullable=False, index=True)
    amount = db.Column(db.Numeric(18, 4), nullable=True)
    sort_order = db.Column(db.Integer, nullable=False, default=0)

    driver_expense = db.relationship("DriverExpense", lazy="joined")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "route_id": self.route_id,
            "driver_expense_id": self.driver_expense_id,
            "driver_expense_type": self.driver_expense.type if self.driver_expense else None,
            "amount": format_decimal(self.amount),
            "sort_order": self.sort_order,
        }
