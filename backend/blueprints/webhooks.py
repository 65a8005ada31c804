"""Carrier webhooks. These endpoints are public; DHL posts tracking updates here."""
from flask import Blueprint
import logging
from pydantic import ValidationError as PydanticValidationError
from ..logging_config import log_fields
from ..models import db, Shipment
from ..serializers import serialize_shipment
from ..services.dhl_service import map_status
from ..services.notification_service import create_notification
from ..services.shipment_service import add_tracking_event, apply_status, parse_carrier_time
from ..utils import api_success, not_found, handle_api_exception, validation_error_response, parse_body
from shared.enums import ShipmentStatus, NotificationType, NotificationPriority
from shared.schemas import DHLTrackingWebhook
from shared.validation import ValidationError

bp = Blueprint('webhooks', __name__, url_prefix='/api')
logger = logging.getLogger(__name__)


@bp.route('/webhooks/dhl/tracking', methods=['POST'])
def dhl_tracking():
    """Record a DHL checkpoint against the matching shipment and notify its owner."""
    try:
        data = parse_body(DHLTrackingWebhook)
    except (ValidationError, PydanticValidationError) as e:
        return validation_error_response(e)

    logger.info(f"Received DHL webhook: {data.status}", extra=log_fields(tracking_number=data.tracking_number))
    shipment = Shipment.query.filter_by(tracking_number=data.tracking_number).first()
    if shipment is None:
        logger.warning("Shipment not found for DHL webhook", extra=log_fields(tracking_number=data.tracking_number))
        return not_found('Shipment not found')

    status = ShipmentStatus(map_status(data.status))
    timestamp = parse_carrier_time(data.timestamp)
    try:
        add_tracking_event(
            shipment, status,
            location=data.location or 'Unknown',
            description=data.description or f"Status updated to {data.status}",
            timestamp=timestamp,
        )
        apply_status(shipment, status, at=timestamp)
        if data.estimated_delivery:
            shipment.estimated_delivery = data.estimated_delivery

        title = 'Shipment Update'
        message = data.description or 'Your shipment status has been updated'
        if status == ShipmentStatus.IN_TRANSIT:
            title = 'Shipment In Transit'
            message = f"Your shipment {data.tracking_number} is now on its way!"
        elif status == ShipmentStatus.DELIVERED:
            title = 'Shipment Delivered'
            message = f"Your shipment {data.tracking_number} has been delivered!"

        create_notification(
            shipment.user_id, NotificationType.SHIPMENT_UPDATE, title, message,
            related=shipment,
            priority=NotificationPriority.HIGH if status == ShipmentStatus.DELIVERED else NotificationPriority.NORMAL,
        )
        db.session.commit()

        logger.info(f"Shipment updated from DHL webhook to {status.value}",
                    extra=log_fields(shipment_id=shipment.id, tracking_number=shipment.tracking_number))
        return api_success(
            {'received': True, 'shipment': serialize_shipment(shipment)},
            'Webhook processed successfully'
        )
    except Exception as e:
        db.session.rollback()
        return handle_api_exception(e, 'process DHL webhook')
