# Overview: Notification intents for trip/order events and the sinks that receive them.

"""
The engine decides THAT a notification fires and WITH WHAT payload; delivery
(push, email, websocket) belongs to an external service.

Intents are emitted after the business transaction commits. Sink failures are
logged and never propagate back into the operation that produced the intent.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from flask import current_app, has_app_context

from ..extensions import db
from ..models import NotificationOutbox

logger = logging.getLogger(__name__)


ORDER_STATUS_CHANGED = "ORDER_STATUS_CHANGED"
TRIP_STATUS_CHANGED = "TRIP_STATUS_CHANGED"

ROLE_MANAGER = "MANAGER"
ROLE_ACCOUNTANT = "ACCOUNTANT"

SINK_EXTENSION_KEY = "tms.notification_sink"


@dataclass
class NotificationDescriptor:
    type: str
    org_id: int
    audience: list[str] = field(default_factory=list)
    recipients: list[int] = field(default_factory=list)
    target_id: int | None = None
    data: dict = field(default_factory=dict)
    created_by_user_id: int | None = None

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "org_id": self.org_id,
            "audience": list(self.audience),
            "recipients": list(self.recipients),
            "target_id": self.target_id,
            "data": dict(self.data),
            "created_by_user_id": self.created_by_user_id,
        }


def order_in_progress_intent(order, *, actor_name: str | None = None, created_by_user_id: int | None = None) -> NotificationDescriptor:
    """An order moved RECEIVED -> IN_PROGRESS because its first trip was scheduled."""
    return NotificationDescriptor(
        type=ORDER_STATUS_CHANGED,
        org_id=order.org_id,
        audience=[ROLE_MANAGER, ROLE_ACCOUNTANT],
        target_id=order.id,
        data={
            "order_code": order.code,
            "full_name": actor_name or "",
            "order_status": "IN_PROGRESS",
        },
        created_by_user_id=created_by_user_id,
    )


def trip_canceled_intent(trip, *, actor_name: str | None = None, created_by_user_id: int | None = None) -> NotificationDescriptor:
    """A trip was canceled; managers, accountants and the assigned driver hear about it."""
    driver = trip.driver
    vehicle = trip.vehicle
    recipients = [driver.user_id] if driver is not None and driver.user_id else []
    return NotificationDescriptor(
        type=TRIP_STATUS_CHANGED,
        org_id=trip.org_id,
        audience=[ROLE_MANAGER, ROLE_ACCOUNTANT],
        recipients=recipients,
        target_id=trip.id,
        data={
            "order_code": trip.order.code if trip.order else None,
            "trip_code": trip.code,
            "full_name": actor_name or "",
            "trip_status": "CANCELED",
            "vehicle_number": vehicle.vehicle_number if vehicle else None,
        },
        created_by_user_id=created_by_user_id,
    )


class NotificationSink:
    def emit(self, descriptor: NotificationDescriptor) -> None:
        raise NotImplementedError


class OutboxNotificationSink(NotificationSink):
    """Persist descriptors to notification_outbox in their own commit."""

    def emit(self, descriptor: NotificationDescriptor) -> None:
        row = NotificationOutbox(
            org_id=descriptor.org_id,
            type=descriptor.type,
            audience_roles=list(descriptor.audience),
            recipient_user_ids=list(descriptor.recipients),
            target_id=descriptor.target_id,
            data=dict(descriptor.data),
            created_by_user_id=descriptor.created_by_user_id,
        )
        db.session.add(row)
        try:
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise


class LoggingNotificationSink(NotificationSink):
    def emit(self, descriptor: NotificationDescriptor) -> None:
        logger.info("Notification %s org=%s target=%s data=%s", descriptor.type, descriptor.org_id, descriptor.target_id, descriptor.data)


class CapturingNotificationSink(NotificationSink):
    """Keeps descriptors in memory (tests, dry runs)."""

    def __init__(self):
        self.emitted: list[NotificationDescriptor] = []

    def emit(self, descriptor: NotificationDescriptor) -> None:
        self.emitted.append(descriptor)

    def clear(self) -> None:
        self.emitted.clear()


def get_sink() -> NotificationSink:
    if has_app_context():
        sink = current_app.extensions.get(SINK_EXTENSION_KEY)
        if sink is not None:
            return sink
    return LoggingNotificationSink()


def emit_safely(descriptor: NotificationDescriptor | None, sink: NotificationSink | None = None) -> bool:
    """Hand a descriptor to the sink. Returns False (and logs) on failure."""
    if descriptor is None:
        return False
    sink = sink or get_sink()
    try:
        sink.emit(descriptor)
    except Exception:
        logger.exception("Failed to emit %s notification for target %s", descriptor.type, descriptor.target_id)
        return False
    return True
