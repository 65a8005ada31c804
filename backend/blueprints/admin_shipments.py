"""Admin shipment management, including DHL labels and rate quotes."""
from datetime import timedelta
from flask import Blueprint, request
import logging
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func, or_, cast, String
from ..logging_config import log_fields
from ..models import db, now, Shipment, SHIPMENT_TRANSIT_DAYS
from ..base.crud_base import CRUDBase
from ..serializers import serialize_shipment, serialize_owner
from ..services.dhl_service import get_dhl_service, DHLServiceError, DHLNotConfiguredError
from ..services.notification_service import create_notification
from ..services.shipment_service import (
    add_tracking_event, apply_status, notify_status, parse_carrier_time, checkpoint_key
)
from ..utils import (
    api_success, api_error, handle_api_exception, validation_error_response, parse_body
)
from .auth import admin_required, authenticated_required
from shared.enums import ShipmentStatus, Carrier, NotificationType
from shared.schemas import (
    ShipmentAdminUpdate, StatusUpdate, BulkStatusUpdate, TrackingEventIn, RateRequest
)
from shared.validation import ValidationError
from shared import pricing

bp = Blueprint('admin_shipments', __name__, url_prefix='/api/admin')
logger = logging.getLogger(__name__)

LABEL_NOTE_PREFIX = 'DHL Label:'
REVENUE_STATUSES = (ShipmentStatus.IN_TRANSIT, ShipmentStatus.DELIVERED)


class AdminShipmentCRUD(CRUDBase):
    """Back-office shipment operations across all customers."""

    status_enum = ShipmentStatus

    def __init__(self):
        super().__init__(Shipment, logger_name='admin_shipments')

    def serialize(self, shipment, detail=False):
        result = serialize_shipment(shipment, include_packages=True)
        result['user'] = serialize_owner(shipment.user)
        return result

    def apply_update(self, shipment, data):
        if data.carrier is not None:
            shipment.carrier = data.carrier
        if data.service_level is not None:
            shipment.service_level = data.service_level
        if data.estimated_delivery is not None:
            shipment.estimated_delivery = data.estimated_delivery
        if data.weight is not None:
            shipment.total_weight = data.weight
        if data.dimensions is not None:
            cm = data.dimensions.cm()
            shipment.length = cm['length']
            shipment.width = cm['width']
            shipment.height = cm['height']
        if data.cost is not None:
            shipment.cost_shipping = data.cost.shipping
            shipment.cost_insurance = data.cost.insurance
            shipment.cost_total = data.cost.shipping + data.cost.insurance
        if data.notes is not None:
            shipment.notes = data.notes


crud = AdminShipmentCRUD()


def tariff_rates(weight, dimensions):
    """Rates from the internal tariff, one per carrier, cheapest first."""
    rates = []
    for carrier in Carrier:
        rates.append({
            'product_code': carrier.value,
            'product_name': f"{carrier.value} International",
            'total_price': pricing.shipping_cost(
                weight, dimensions['length'], dimensions['width'], dimensions['height'], carrier
            ),
            'currency': pricing.CURRENCY,
            'delivery_time': SHIPMENT_TRANSIT_DAYS,
            'service_level': 'express',
        })
    return sorted(rates, key=lambda rate: rate['total_price'])


@bp.route('/shipments', methods=['GET'])
@admin_required
def get_shipments():
    query = Shipment.query
    user_id = request.args.get('user_id', type=int)
    if user_id:
        query = query.filter(Shipment.user_id == user_id)
    search = (request.args.get('search') or '').strip()
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            Shipment.tracking_number.ilike(pattern),
            cast(Shipment.carrier, String).ilike(pattern),
        ))
    return crud.get_list(query)


@bp.route('/shipments/statistics', methods=['GET'])
@admin_required
def get_statistics():
    carriers = (db.session.query(Shipment.carrier, func.count(Shipment.id))
                .group_by(Shipment.carrier)
                .order_by(func.count(Shipment.id).desc())
                .all())
    delivered = Shipment.query.filter(
        Shipment.status == ShipmentStatus.DELIVERED,
        Shipment.actual_delivery.isnot(None),
    ).all()
    today = now().replace(hour=0, minute=0, second=0, microsecond=0, tzinfo=None)
    timed = [s for s in delivered if s.shipped_date]
    avg_days = 0
    if timed:
        total_seconds = sum((s.actual_delivery - s.shipped_date).total_seconds() for s in timed)
        avg_days = round(total_seconds / len(timed) / timedelta(days=1).total_seconds())
    revenue = (db.session.query(func.coalesce(func.sum(Shipment.cost_total), 0))
               .filter(Shipment.status.in_(REVENUE_STATUSES))
               .scalar())

    return api_success({
        'statistics': {
            'total': Shipment.query.count(),
            'by_status': crud.status_breakdown(),
            'by_carrier': [{'carrier': getattr(c, 'value', c), 'count': n} for c, n in carriers],
            'delivered_today': sum(1 for s in delivered if s.actual_delivery >= today),
            'avg_delivery_days': avg_days,
            'total_revenue': float(revenue or 0),
        }
    })


@bp.route('/shipments/bulk-update', methods=['POST'])
@admin_required
def bulk_update():
    try:
        data = parse_body(BulkStatusUpdate)
    except (ValidationError, PydanticValidationError) as e:
        return validation_error_response(e)

    if data.status not in [s.value for s in ShipmentStatus]:
        return api_error(f"Invalid status: {data.status}", 400)
    status = ShipmentStatus(data.status)

    try:
        updated = 0
        for shipment in Shipment.query.filter(Shipment.id.in_(data.ids)).all():
            if apply_status(shipment, status):
                add_tracking_event(shipment, status)
                notify_status(shipment, status)
                updated += 1
            if data.notes:
                shipment.notes = data.notes
        db.session.commit()
        logger.info(f"Bulk updated {updated} shipments to {status.value}", extra=log_fields(shipment_ids=data.ids))
        return api_success({'updated': updated}, f"{updated} shipment(s) updated successfully")
    except Exception as e:
        db.session.rollback()
        return handle_api_exception(e, 'update shipments')


@bp.route('/shipments/get-rates', methods=['POST'])
@authenticated_required
def get_rates():
    """Quote a parcel with DHL, or with the internal tariff when DHL is not set up."""
    try:
        data = parse_body(RateRequest)
    except (ValidationError, PydanticValidationError) as e:
        return validation_error_response(e)

    dimensions = data.dimensions.cm()
    dhl = get_dhl_service()
    if not dhl.is_configured():
        return api_success({'rates': tariff_rates(data.weight, dimensions), 'source': 'tariff'})

    try:
        rates = dhl.get_rates(data.weight, dimensions, data.origin_country, data.destination_country)
        return api_success({'rates': rates, 'source': 'dhl'})
    except DHLServiceError as e:
        logger.error(f"DHL rate request failed: {e}")
        return api_error(f"Failed to get DHL rates: {e}", 502, 'error')


@bp.route('/shipments/<int:shipment_id>', methods=['GET'])
@admin_required
def get_shipment(shipment_id):
    return crud.get_detail(shipment_id)


@bp.route('/shipments/<int:shipment_id>', methods=['PUT'])
@admin_required
def update_shipment(shipment_id):
    return crud.update(shipment_id, ShipmentAdminUpdate)


@bp.route('/shipments/<int:shipment_id>/status', methods=['PUT'])
@admin_required
def update_status(shipment_id):
    shipment, error = crud.fetch(shipment_id)
    if error:
        return error

    try:
        data = parse_body(StatusUpdate)
    except (ValidationError, PydanticValidationError) as e:
        return validation_error_response(e)

    if data.status not in [s.value for s in ShipmentStatus]:
        return api_error(f"Invalid status: {data.status}", 400)
    status = ShipmentStatus(data.status)

    try:
        if apply_status(shipment, status):
            add_tracking_event(shipment, status, description=data.notes or None)
            notify_status(shipment, status)
        db.session.commit()
        return api_success({'shipment': crud.serialize(shipment)}, 'Status updated successfully')
    except Exception as e:
        db.session.rollback()
        return handle_api_exception(e, 'update shipment status')


@bp.route('/shipments/<int:shipment_id>/tracking', methods=['POST'])
@admin_required
def add_tracking(shipment_id):
    shipment, error = crud.fetch(shipment_id)
    if error:
        return error

    try:
        data = parse_body(TrackingEventIn)
    except (ValidationError, PydanticValidationError) as e:
        return validation_error_response(e)

    try:
        add_tracking_event(shipment, data.status, location=data.location, description=data.description)
        if data.status in [s.value for s in ShipmentStatus]:
            apply_status(shipment, data.status)
        create_notification(
            shipment.user_id, NotificationType.SHIPMENT_UPDATE,
            'Tracking Update', f"{data.description} - {data.location}",
            related=shipment,
        )
        db.session.commit()
        return api_success({'shipment': crud.serialize(shipment)}, 'Tracking event added successfully')
    except Exception as e:
        db.session.rollback()
        return handle_api_exception(e, 'add tracking event')


@bp.route('/shipments/<int:shipment_id>/create-label', methods=['POST'])
@admin_required
def create_label(shipment_id):
    """Book the shipment with DHL and store the waybill number and label."""
    shipment, error = crud.fetch(shipment_id)
    if error:
        return error
    if shipment.status in (ShipmentStatus.CANCELLED, ShipmentStatus.DELIVERED):
        return api_error(f"Cannot create a label for a {shipment.status.value} shipment", 400)

    dhl = get_dhl_service()
    try:
        result = dhl.create_shipment(shipment)
    except DHLNotConfiguredError as e:
        return api_error(str(e), 503)
    except DHLServiceError as e:
        logger.error(f"DHL label creation failed: {e}", extra=log_fields(shipment_id=shipment_id))
        return api_error(f"Failed to create DHL shipment: {e}", 502, 'error')

    try:
        shipment.carrier = Carrier.DHL
        shipment.tracking_number = result['tracking_number']
        shipment.label_url = result['label_url']
        if result['label_url']:
            label_note = f"{LABEL_NOTE_PREFIX} {result['label_url']}"
            shipment.notes = f"{shipment.notes}\n{label_note}" if shipment.notes else label_note
        else:
            logger.warning("DHL returned no label document", extra=log_fields(shipment_id=shipment_id))
        add_tracking_event(
            shipment, ShipmentStatus.PROCESSING,
            description=f"DHL label created - AWB {result['tracking_number']}",
        )
        if shipment.status == ShipmentStatus.PENDING:
            apply_status(shipment, ShipmentStatus.PROCESSING)
            notify_status(shipment, ShipmentStatus.PROCESSING)
        db.session.commit()

        logger.info("DHL label stored", extra=log_fields(
            shipment_id=shipment_id, tracking_number=result['tracking_number']))
        return api_success({
            'shipment': crud.serialize(shipment),
            'dhl': {
                'tracking_number': result['tracking_number'],
                'tracking_url': result['tracking_url'],
                'label_url': result['label_url'],
            },
        }, 'DHL label created successfully')
    except Exception as e:
        db.session.rollback()
        return handle_api_exception(e, 'save DHL label')


@bp.route('/shipments/<int:shipment_id>/sync-tracking', methods=['POST'])
@admin_required
def sync_tracking(shipment_id):
    """Pull DHL checkpoints and bring the shipment status up to date."""
    shipment, error = crud.fetch(shipment_id)
    if error:
        return error

    dhl = get_dhl_service()
    try:
        tracking = dhl.track_shipment(shipment.tracking_number)
    except DHLNotConfiguredError as e:
        return api_error(str(e), 503)
    except DHLServiceError as e:
        return api_error(f"Failed to fetch DHL tracking: {e}", e.status_code or 502, 'error')

    try:
        known = {checkpoint_key(e.description, e.location, e.timestamp) for e in shipment.tracking_events}
        # Undated checkpoints can only be matched on what and where.
        # The status takes the time of its first checkpoint.
        seen_places = {(e.description, e.location) for e in shipment.tracking_events}
        status = ShipmentStatus(tracking['status'])
        status_time = None
        added = 0
        for event in tracking['events']:
            timestamp = parse_carrier_time(event.get('timestamp'))
            place = (event['description'], event['location'])
            key = checkpoint_key(*place, timestamp)
            if timestamp is not None and event['status'] == status.value:
                status_time = min(status_time or timestamp, timestamp)
            if key in known or (timestamp is None and place in seen_places):
                continue
            add_tracking_event(shipment, event['status'], location=event['location'],
                               description=event['description'], timestamp=timestamp)
            known.add(key)
            seen_places.add(place)
            added += 1
        if apply_status(shipment, status, at=status_time):
            notify_status(shipment, status)
        db.session.commit()
        logger.info(f"Synchronised DHL tracking, {added} new checkpoints", extra=log_fields(
            shipment_id=shipment_id, tracking_number=shipment.tracking_number, status=status.value))
        return api_success({'shipment': crud.serialize(shipment), 'new_events': added},
                           'Tracking synchronised')
    except Exception as e:
        db.session.rollback()
        return handle_api_exception(e, 'synchronise tracking')
