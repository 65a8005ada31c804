"""Customer notifications and billing records.

Both helpers only add rows to the current session; the calling endpoint owns
the commit so the notification lands atomically with the change it reports.
"""

import logging
from ..models import db, Notification, Transaction
from shared.enums import (
    NotificationType, NotificationPriority, TransactionType, TransactionStatus, Currency
)


logger = logging.getLogger(__name__)

RELATED_ROUTES = {
    'Package': '/packages',
    'Consolidation': '/consolidations',
    'PhotoRequest': '/photo-requests',
    'Shipment': '/shipments',
}


def create_notification(user_id, notification_type, title, message, related=None,
                        priority=NotificationPriority.NORMAL):
    """Queue a notification for a customer.

    Args:
        user_id: Recipient
        notification_type: NotificationType (or its value)
        title: Short headline
        message: Body text
        related: Model instance the notification is about (optional)
        priority: NotificationPriority

    Returns:
        Notification: The pending row
    """
    related_model = None
    related_id = None
    action_url = None
    if related is not None:
        related_model = related.__class__.__name__
        related_id = related.id
        base = RELATED_ROUTES.get(related_model)
        if base:
            action_url = f"{base}/{related.id}"

    notification = Notification(
        user_id=user_id,
        type=NotificationType(notification_type),
        title=title,
        message=message,
        related_id=related_id,
        related_model=related_model,
        priority=NotificationPriority(priority),
        action_url=action_url,
    )
    db.session.add(notification)
    logger.debug(f"Queued {notification.type.value} notification for user {user_id}")
    return notification


def record_transaction(user_id, transaction_type, amount, related, description='',
                       status=TransactionStatus.PENDING, payment_method=None,
                       currency=Currency.MAD):
    """Queue a billing record tied to a consolidation, shipment or photo request."""
    transaction = Transaction(
        user_id=user_id,
        type=TransactionType(transaction_type),
        amount=amount,
        currency=Currency(currency),
        related_id=related.id,
        related_model=related.__class__.__name__,
        status=TransactionStatus(status),
        payment_method=payment_method,
        description=description,
    )
    db.session.add(transaction)
    logger.debug(f"Queued {transaction.type.value} transaction of {amount} for user {user_id}")
    return transaction


def find_transaction(related):
    """Latest billing record for a related object, or None."""
    return (Transaction.query
            .filter_by(related_model=related.__class__.__name__, related_id=related.id)
            .order_by(Transaction.id.desc())
            .first())
