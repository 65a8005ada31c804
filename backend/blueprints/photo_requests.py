"""Photo requests blueprint: customers asking for extra photos or package details."""
from flask import Blueprint, g
import logging
from pydantic import ValidationError as PydanticValidationError
from ..models import db, Package, PhotoRequest
from ..base.crud_base import CRUDBase
from ..serializers import serialize_photo_request
from ..services.notification_service import create_notification, record_transaction, find_transaction
from ..utils import (
    api_success, api_error, not_found, forbidden, handle_api_exception,
    validation_error_response, parse_body
)
from .auth import login_required
from shared.enums import (
    PhotoRequestStatus, PaymentStatus, PaymentMethod, NotificationType, TransactionType,
    TransactionStatus
)
from shared.schemas import PhotoRequestCreate, PhotoRequestUpdate, ConfirmPayment
from shared.validation import ValidationError
from shared import pricing

bp = Blueprint('photo_requests', __name__, url_prefix='/api')
logger = logging.getLogger(__name__)


def apply_cost(photo_request):
    """Recompute the charges from request type and photo count."""
    cost = pricing.photo_request_cost(photo_request.request_type, photo_request.additional_photos)
    photo_request.cost_photos = cost['photos']
    photo_request.cost_information = cost['information']
    photo_request.cost_total = cost['total']
    return cost


class PhotoRequestCRUD(CRUDBase):
    """Customer-scoped photo request operations."""

    status_enum = PhotoRequestStatus

    def __init__(self):
        super().__init__(PhotoRequest, logger_name='photo_requests')

    def serialize(self, photo_request, detail=False):
        return serialize_photo_request(photo_request)

    def apply_update(self, photo_request, data):
        super().apply_update(photo_request, data)
        cost = apply_cost(photo_request)
        transaction = find_transaction(photo_request)
        if transaction and transaction.status == TransactionStatus.PENDING:
            transaction.amount = cost['total']


crud = PhotoRequestCRUD()


def only_pending(photo_request):
    if photo_request.status != PhotoRequestStatus.PENDING:
        return 'Only pending photo requests can be modified'
    return None


@bp.route('/photo-requests', methods=['GET'])
@login_required
def get_photo_requests():
    return crud.get_list(user=g.user)


@bp.route('/photo-requests/<int:request_id>', methods=['GET'])
@login_required
def get_photo_request(request_id):
    return crud.get_detail(request_id, g.user)


@bp.route('/photo-requests', methods=['POST'])
@login_required
def create_photo_request():
    """Create a photo/information request for one of the caller's packages."""
    try:
        data = parse_body(PhotoRequestCreate)
    except (ValidationError, PydanticValidationError) as e:
        return validation_error_response(e)

    package = db.session.get(Package, data.package_id)
    if package is None:
        return not_found('Package not found')
    if package.user_id != g.user.id:
        return forbidden('Access denied to package')

    try:
        photo_request = PhotoRequest(
            user_id=g.user.id,
            package_id=package.id,
            request_type=data.request_type,
            additional_photos=data.additional_photos,
            specific_requests=data.specific_requests,
            custom_instructions=data.custom_instructions,
        )
        cost = apply_cost(photo_request)
        db.session.add(photo_request)
        db.session.flush()

        label = package.description or package.tracking_number
        record_transaction(
            g.user.id, TransactionType.PHOTO_REQUEST, cost['total'], photo_request,
            description=f"Photo request for package {label}",
            payment_method=PaymentMethod.CARD,
        )
        create_notification(
            g.user.id, NotificationType.PHOTO_REQUEST_COMPLETE,
            'Photo Request Received',
            f"Your photo request for {label} has been received and will be processed shortly.",
            related=photo_request,
        )
        db.session.commit()

        logger.info(f"Created photo request {photo_request.id} for package {package.id}")
        return api_success(
            {'photo_request': serialize_photo_request(photo_request)},
            'Photo request created successfully', 201
        )
    except Exception as e:
        db.session.rollback()
        return handle_api_exception(e, 'create photo request')


@bp.route('/photo-requests/<int:request_id>', methods=['PUT'])
@login_required
def update_photo_request(request_id):
    return crud.update(request_id, PhotoRequestUpdate, g.user, guard=only_pending)


@bp.route('/photo-requests/<int:request_id>/confirm-payment', methods=['POST'])
@login_required
def confirm_payment(request_id):
    """Mark a photo request as paid and complete its transaction."""
    photo_request, error = crud.fetch(request_id, g.user)
    if error:
        return error

    try:
        data = parse_body(ConfirmPayment)
    except (ValidationError, PydanticValidationError) as e:
        return validation_error_response(e)

    if photo_request.payment_status == PaymentStatus.PAID:
        return api_error('Photo request is already paid', 400)
    if photo_request.status == PhotoRequestStatus.CANCELLED:
        return api_error('Cannot pay for a cancelled photo request', 400)

    try:
        photo_request.payment_status = PaymentStatus.PAID
        transaction = find_transaction(photo_request)
        if transaction is None:
            transaction = record_transaction(
                g.user.id, TransactionType.PHOTO_REQUEST, photo_request.cost_total, photo_request,
                description=f"Photo request {photo_request.id}",
            )
        transaction.status = TransactionStatus.COMPLETED
        transaction.payment_method = PaymentMethod(data.payment_method)

        create_notification(
            g.user.id, NotificationType.PAYMENT_RECEIVED,
            'Payment Received',
            f"We received your payment of {pricing.format_mad(photo_request.cost_total)} for photo request #{photo_request.id}.",
            related=photo_request,
        )
        db.session.commit()

        logger.info(f"Payment confirmed for photo request {request_id} via {data.payment_method}")
        return api_success(
            {'photo_request': serialize_photo_request(photo_request)},
            'Payment confirmed successfully'
        )
    except Exception as e:
        db.session.rollback()
        return handle_api_exception(e, 'confirm payment')
