"""Shipments blueprint: customers sending packages from the US warehouse to Morocco."""
from flask import Blueprint, g
import logging
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func
from ..logging_config import log_fields
from ..models import db, Package, Shipment, CustomsItem
from ..base.crud_base import CRUDBase
from ..serializers import serialize_shipment
from ..services.notification_service import create_notification, record_transaction, find_transaction
from ..services.shipment_service import add_tracking_event, apply_status
from ..utils import (
    api_success, api_error, not_found, forbidden, handle_api_exception,
    validation_error_response, parse_body
)
from .auth import login_required
from shared.enums import (
    ShipmentStatus, PackageStatus, NotificationType, TransactionType, TransactionStatus,
    PaymentMethod
)
from shared.schemas import ShipmentCreate, StatusUpdate
from shared.validation import ValidationError
from shared.utils import generate_tracking_number
from shared import pricing

bp = Blueprint('shipments', __name__, url_prefix='/api')
logger = logging.getLogger(__name__)

SHIPPABLE_STATUSES = (PackageStatus.RECEIVED, PackageStatus.CONSOLIDATED)


class ShipmentCRUD(CRUDBase):
    """Customer-scoped shipment operations."""

    status_enum = ShipmentStatus

    def __init__(self):
        super().__init__(Shipment, logger_name='shipments')

    def serialize(self, shipment, detail=False):
        return serialize_shipment(shipment, include_packages=detail)


crud = ShipmentCRUD()


@bp.route('/shipments', methods=['GET'])
@login_required
def get_shipments():
    return crud.get_list(user=g.user)


@bp.route('/shipments/stats', methods=['GET'])
@login_required
def get_shipment_stats():
    query = crud.base_query(g.user)
    total_spent = (db.session.query(func.coalesce(func.sum(Shipment.cost_total), 0))
                   .filter(Shipment.user_id == g.user.id)
                   .scalar())
    return api_success({
        'stats': {
            'total': query.count(),
            'in_transit': query.filter(Shipment.status == ShipmentStatus.IN_TRANSIT).count(),
            'delivered': query.filter(Shipment.status == ShipmentStatus.DELIVERED).count(),
            'total_spent': float(total_spent or 0),
        }
    })


@bp.route('/shipments/<int:shipment_id>', methods=['GET'])
@login_required
def get_shipment(shipment_id):
    return crud.get_detail(shipment_id, g.user)


@bp.route('/shipments', methods=['POST'])
@login_required
def create_shipment():
    """Create a shipment for received or consolidated packages."""
    try:
        data = parse_body(ShipmentCreate)
    except (ValidationError, PydanticValidationError) as e:
        return validation_error_response(e)

    package_ids = list(dict.fromkeys(data.package_ids))
    packages = Package.query.filter(Package.id.in_(package_ids)).all()
    if len(packages) != len(package_ids):
        return not_found('One or more packages not found')
    if any(p.user_id != g.user.id for p in packages):
        return forbidden('Access denied to one or more packages')
    if any(p.status not in SHIPPABLE_STATUSES for p in packages):
        return api_error('Some packages are not available for shipping', 400)

    parcel = pricing.combined_parcel(packages)
    coverage = data.insurance.coverage if data.insurance else None
    try:
        shipping = pricing.shipping_cost(
            parcel['weight'], parcel['length'], parcel['width'], parcel['height'], data.carrier
        )
    except ValueError as e:
        return api_error(str(e), 400)
    insurance = pricing.insurance_cost(coverage)

    try:
        destination = data.destination
        shipment = Shipment(
            user_id=g.user.id,
            carrier=data.carrier,
            service_level=data.service_level,
            tracking_number=generate_tracking_number(data.carrier),
            status=ShipmentStatus.PENDING,
            dest_full_name=destination.full_name,
            dest_street=destination.street,
            dest_city=destination.city,
            dest_postal_code=destination.postal_code,
            dest_country=destination.country,
            dest_phone=destination.phone,
            total_weight=parcel['weight'],
            length=parcel['length'],
            width=parcel['width'],
            height=parcel['height'],
            cost_shipping=shipping,
            cost_insurance=insurance,
            cost_total=shipping + insurance,
            insurance_coverage=coverage,
        )
        for item in data.customs_info:
            shipment.customs_items.append(CustomsItem(**item.model_dump()))
        add_tracking_event(shipment, ShipmentStatus.PENDING)
        db.session.add(shipment)
        db.session.flush()

        for package in packages:
            package.shipment_id = shipment.id
            package.status = PackageStatus.SHIPPED

        record_transaction(
            g.user.id, TransactionType.SHIPPING, shipment.cost_total, shipment,
            description=f"Shipping via {data.carrier} - {shipment.tracking_number}",
            payment_method=PaymentMethod.CARD,
        )
        create_notification(
            g.user.id, NotificationType.SHIPMENT_UPDATE,
            'Shipment Created',
            'Your shipment has been created and will be processed shortly.',
            related=shipment,
        )
        db.session.commit()

        logger.info(f"Created shipment with {len(packages)} packages", extra=log_fields(
            shipment_id=shipment.id, tracking_number=shipment.tracking_number))
        return api_success(
            {'shipment': serialize_shipment(shipment, include_packages=True)},
            'Shipment created successfully', 201
        )
    except Exception as e:
        db.session.rollback()
        return handle_api_exception(e, 'create shipment')


@bp.route('/shipments/<int:shipment_id>/status', methods=['PUT'])
@login_required
def update_shipment_status(shipment_id):
    """Customers may only cancel a shipment that has not been processed yet."""
    shipment, error = crud.fetch(shipment_id, g.user)
    if error:
        return error

    try:
        data = parse_body(StatusUpdate)
    except (ValidationError, PydanticValidationError) as e:
        return validation_error_response(e)

    if data.status != ShipmentStatus.CANCELLED.value:
        return forbidden('Customers can only cancel shipments')
    if shipment.status != ShipmentStatus.PENDING:
        return api_error('Only pending shipments can be cancelled', 400)

    try:
        apply_status(shipment, ShipmentStatus.CANCELLED)
        add_tracking_event(shipment, ShipmentStatus.CANCELLED, description=data.notes or None)
        transaction = find_transaction(shipment)
        if transaction and transaction.status == TransactionStatus.PENDING:
            transaction.status = TransactionStatus.REFUNDED
        db.session.commit()

        logger.info("Shipment cancelled by customer", extra=log_fields(shipment_id=shipment_id))
        return api_success(
            {'shipment': serialize_shipment(shipment)},
            'Shipment status updated successfully'
        )
    except Exception as e:
        db.session.rollback()
        return handle_api_exception(e, 'update shipment status')
