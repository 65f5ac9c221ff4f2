from __future__ import annotations

from ..extensions import db
from tms.time_utils import to_utc_z


class DriverReport(db.Model):
    """
    One stage of an organization's delivery pipeline ("driver report").

    DESIGN:
    - display_order defines the pipeline sequence and is strictly increasing
      within an organization (enforced by a unique constraint).
    - type tags the stages the engine reasons about (NEW, WAITING_FOR_PICKUP,
      DELIVERED, ...). Custom intermediate stages may leave it NULL.
    - Never assume a hardcoded order: read it per organization at call time.
    """
    __tablename__ = "driver_reports"
    __table_args__ = (
        db.UniqueConstraint("org_id", "display_order", name="uq_driver_reports_org_display_order"),
        db.Index("ix_driver_reports_org_type", "org_id", "type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    type = db.Column(db.String(32), nullable=True)
    name = db.Column(db.String(255), nullable=False)
    display_order = db.Column(db.Integer, nullable=False)

    is_required = db.Column(db.Boolean, nullable=False, default=False)
    is_photo_required = db.Column(db.Boolean, nullable=False, default=False)
    is_bill_of_lading_required = db.Column(db.Boolean, nullable=False, default=False)
    is_system = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def __repr__(self) -> str:
        return f"<DriverReport id={self.id} type={self.type} order={self.display_order}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "type": self.type,
            "name": self.name,
            "display_order": self.display_order,
            "is_required": self.is_required,
            "is_photo_required": self.is_photo_required,
            "is_bill_of_lading_required": self.is_bill_of_lading_required,
            "is_system": self.is_system,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
