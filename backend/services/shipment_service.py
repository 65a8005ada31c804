"""Shipment status transitions shared by the customer, admin and webhook endpoints.

Like the notification helpers, these only mutate session objects; callers commit.
"""

import logging
from datetime import datetime
from ..logging_config import log_fields
from ..models import now, TrackingEvent
from ..config import WAREHOUSE_LOCATION
from .notification_service import create_notification
from shared.enums import ShipmentStatus, PackageStatus, NotificationType, NotificationPriority
from shared.models import APP_TIMEZONE


logger = logging.getLogger(__name__)

STATUS_DESCRIPTIONS = {
    ShipmentStatus.PENDING.value: 'Shipment created and pending processing',
    ShipmentStatus.PROCESSING.value: 'Shipment is being prepared at the warehouse',
    ShipmentStatus.IN_TRANSIT.value: 'Shipment is in transit to Morocco',
    ShipmentStatus.DELIVERED.value: 'Shipment delivered',
    ShipmentStatus.CANCELLED.value: 'Shipment cancelled',
}


def parse_carrier_time(value):
    """Carrier checkpoint time as naive Africa/Casablanca wall-clock time.

    Accepts ISO-8601 strings (a trailing ``Z`` included) or datetimes. Aware
    values are converted first; naive values are taken as already local, which
    is also how the database hands stored times back.
    Returns None for a missing or unreadable value.
    """
    if not value:
        return None
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.strip().replace('Z', '+00:00'))
        except ValueError:
            logger.warning(f"Unreadable carrier timestamp: {value!r}")
            return None
    if value.tzinfo is not None:
        value = value.astimezone(APP_TIMEZONE).replace(tzinfo=None)
    return value


def checkpoint_key(description, location, timestamp):
    """Identity of a tracking checkpoint, comparable across naive and aware times."""
    if timestamp is not None:
        timestamp = timestamp.replace(tzinfo=None, microsecond=0)
    return (description, location, timestamp)


def add_tracking_event(shipment, status, location=None, description=None, timestamp=None):
    """Append a tracking event to a shipment."""
    status = getattr(status, 'value', status)
    event = TrackingEvent(
        status=status,
        location=location or WAREHOUSE_LOCATION,
        description=description or STATUS_DESCRIPTIONS.get(status, f"Status updated to {status}"),
        timestamp=timestamp or now(),
    )
    shipment.tracking_events.append(event)
    return event


def apply_status(shipment, status, at=None):
    """Move a shipment to ``status`` and update its dates and packages.

    Returns:
        bool: True when the status actually changed
    """
    status = ShipmentStatus(status)
    if shipment.status == status:
        return False

    at = at or now()
    shipment.status = status
    if status == ShipmentStatus.IN_TRANSIT and not shipment.shipped_date:
        shipment.shipped_date = at
    elif status == ShipmentStatus.DELIVERED:
        shipment.actual_delivery = at
        for package in shipment.packages:
            package.status = PackageStatus.DELIVERED
    elif status == ShipmentStatus.CANCELLED:
        for package in list(shipment.packages):
            package.status = PackageStatus.RECEIVED
            package.shipment_id = None

    logger.info(f"Shipment moved to {status.value}", extra=log_fields(shipment_id=shipment.id))
    return True


def notify_status(shipment, status, message=None):
    """Tell the customer about a processing, in-transit or delivered shipment.

    Returns:
        Notification or None when the status is not customer-facing
    """
    status = ShipmentStatus(status)
    number = shipment.tracking_number
    if status == ShipmentStatus.PROCESSING:
        title = 'Shipment Processing'
        body = f"Your shipment {number} is being prepared."
    elif status == ShipmentStatus.IN_TRANSIT:
        title = 'Shipment In Transit'
        body = f"Your shipment {number} is on its way to Morocco!"
    elif status == ShipmentStatus.DELIVERED:
        title = 'Shipment Delivered'
        body = f"Your shipment {number} has been delivered!"
    else:
        return None

    priority = NotificationPriority.HIGH if status == ShipmentStatus.DELIVERED else NotificationPriority.NORMAL
    return create_notification(
        shipment.user_id, NotificationType.SHIPMENT_UPDATE, title, message or body,
        related=shipment, priority=priority,
    )
