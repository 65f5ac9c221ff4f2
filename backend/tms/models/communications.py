from __future__ import annotations

from ..extensions import db
from tms.time_utils import to_utc_z


class NotificationOutbox(db.Model):
    """
    Notification descriptors waiting for the external delivery service.

    The engine only decides that a notification fires and with what payload;
    a dispatcher outside this package reads undispatched rows and stamps
    dispatched_at.
    """
    __tablename__ = "notification_outbox"
    __table_args__ = (
        db.Index("ix_notification_outbox_org_dispatched", "org_id", "dispatched_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    type = db.Column(db.String(64), nullable=False)  # ORDER_STATUS_CHANGED, TRIP_STATUS_CHANGED
    audience_roles = db.Column(db.JSON, nullable=False, default=list)  # ["MANAGER", "ACCOUNTANT"]
    recipient_user_ids = db.Column(db.JSON, nullable=False, default=list)
    target_id = db.Column(db.Integer, nullable=True)
    data = db.Column(db.JSON, nullable=False, default=dict)

    created_by_user_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    dispatched_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self):
        return {
            "id": self.id,
            "org_id": self.org_id,
            "type": self.type,
            "audience_roles": self.audience_roles,
            "recipient_user_ids": self.recipient_user_ids,
            "target_id": self.target_id,
            "data": self.data,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "dispatched_at": to_utc_z(self.dispatched_at),
        }
