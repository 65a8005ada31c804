"""Consolidations blueprint: customers merging received packages into one parcel."""
from flask import Blueprint, g
import logging
from pydantic import ValidationError as PydanticValidationError
from ..logging_config import log_fields
from ..models import db, Consolidation, Package
from ..base.crud_base import CRUDBase
from ..serializers import serialize_consolidation
from ..services.notification_service import create_notification, record_transaction, find_transaction
from ..utils import (
    api_success, api_error, not_found, forbidden, handle_api_exception,
    validation_error_response, parse_body
)
from .auth import login_required
from shared.enums import (
    ConsolidationStatus, PackageStatus, NotificationType, TransactionType, TransactionStatus,
    PaymentMethod
)
from shared.schemas import ConsolidationCreate, ConsolidationUpdate
from shared.validation import ValidationError
from shared import pricing

bp = Blueprint('consolidations', __name__, url_prefix='/api')
logger = logging.getLogger(__name__)

MIN_PACKAGES = 2


class ConsolidationCRUD(CRUDBase):
    """Customer-scoped consolidation operations."""

    status_enum = ConsolidationStatus

    def __init__(self):
        super().__init__(Consolidation, logger_name='consolidations')

    def serialize(self, consolidation, detail=False):
        return serialize_consolidation(consolidation, include_packages=detail)

    def apply_update(self, consolidation, data):
        if data.preferences is not None:
            consolidation.remove_packaging = data.preferences.remove_packaging
            consolidation.add_protection = data.preferences.add_protection
            consolidation.request_unpacked_photos = data.preferences.request_unpacked_photos
            cost = pricing.consolidation_cost(
                len(consolidation.packages),
                add_protection=consolidation.add_protection,
                request_unpacked_photos=consolidation.request_unpacked_photos,
            )
            set_cost(consolidation, cost)
            transaction = find_transaction(consolidation)
            if transaction and transaction.status == TransactionStatus.PENDING:
                transaction.amount = cost['total']
        if data.special_instructions is not None:
            consolidation.special_instructions = data.special_instructions


crud = ConsolidationCRUD()


def set_cost(consolidation, cost):
    consolidation.cost_base = cost['base']
    consolidation.cost_protection = cost['protection']
    consolidation.cost_photos = cost['photos']
    consolidation.cost_total = cost['total']


def only_pending(consolidation):
    if consolidation.status != ConsolidationStatus.PENDING:
        return 'Only pending consolidations can be modified'
    return None


@bp.route('/consolidations', methods=['GET'])
@login_required
def get_consolidations():
    return crud.get_list(user=g.user)


@bp.route('/consolidations/<int:consolidation_id>', methods=['GET'])
@login_required
def get_consolidation(consolidation_id):
    return crud.get_detail(consolidation_id, g.user)


@bp.route('/consolidations', methods=['POST'])
@login_required
def create_consolidation():
    """Create a consolidation request from two or more received packages."""
    try:
        data = parse_body(ConsolidationCreate)
    except (ValidationError, PydanticValidationError) as e:
        return validation_error_response(e)

    package_ids = list(dict.fromkeys(data.package_ids))
    if len(package_ids) < MIN_PACKAGES:
        return api_error('At least 2 packages required for consolidation', 400)

    packages = Package.query.filter(Package.id.in_(package_ids)).all()
    if len(packages) != len(package_ids):
        return not_found('One or more packages not found')
    if any(p.user_id != g.user.id for p in packages):
        return forbidden('Access denied to one or more packages')
    if any(p.status != PackageStatus.RECEIVED for p in packages):
        return api_error('Some packages are not available for consolidation', 400)

    prefs = data.preferences
    cost = pricing.consolidation_cost(
        len(packages),
        add_protection=prefs.add_protection,
        request_unpacked_photos=prefs.request_unpacked_photos,
    )

    try:
        consolidation = Consolidation(
            user_id=g.user.id,
            remove_packaging=prefs.remove_packaging,
            add_protection=prefs.add_protection,
            request_unpacked_photos=prefs.request_unpacked_photos,
            special_instructions=data.special_instructions,
            before_total_weight=round(sum(p.weight_value for p in packages), 3),
            before_total_volume=round(sum(p.volume for p in packages), 2),
        )
        set_cost(consolidation, cost)
        db.session.add(consolidation)
        db.session.flush()

        for package in packages:
            package.consolidation_id = consolidation.id
            package.status = PackageStatus.CONSOLIDATED

        record_transaction(
            g.user.id, TransactionType.CONSOLIDATION, cost['total'], consolidation,
            description=f"Consolidation of {len(packages)} packages",
            payment_method=PaymentMethod.CARD,
        )
        create_notification(
            g.user.id, NotificationType.CONSOLIDATION_COMPLETE,
            'Consolidation Request Received',
            f"Your consolidation request for {len(packages)} packages has been received "
            f"and will be processed within 2-4 business days.",
            related=consolidation,
        )
        db.session.commit()

        logger.info(f"Created consolidation of {len(packages)} packages", extra=log_fields(
            consolidation_id=consolidation.id, package_ids=package_ids))
        return api_success(
            {'consolidation': serialize_consolidation(consolidation, include_packages=True)},
            'Consolidation request created successfully', 201
        )
    except Exception as e:
        db.session.rollback()
        return handle_api_exception(e, 'create consolidation')


@bp.route('/consolidations/<int:consolidation_id>', methods=['PUT'])
@login_required
def update_consolidation(consolidation_id):
    return crud.update(consolidation_id, ConsolidationUpdate, g.user, guard=only_pending)


@bp.route('/consolidations/<int:consolidation_id>', methods=['DELETE'])
@login_required
def cancel_consolidation(consolidation_id):
    """Cancel a pending consolidation and return its packages to storage."""
    consolidation, error = crud.fetch(consolidation_id, g.user)
    if error:
        return error
    if consolidation.status != ConsolidationStatus.PENDING:
        return api_error('Only pending consolidations can be cancelled', 400)

    try:
        for package in list(consolidation.packages):
            package.status = PackageStatus.RECEIVED
            package.consolidation_id = None
        consolidation.status = ConsolidationStatus.CANCELLED
        transaction = find_transaction(consolidation)
        if transaction and transaction.status == TransactionStatus.PENDING:
            transaction.status = TransactionStatus.FAILED
        db.session.commit()

        logger.info("Cancelled consolidation", extra=log_fields(consolidation_id=consolidation_id))
        return api_success(
            {'consolidation': serialize_consolidation(consolidation)},
            'Consolidation cancelled successfully'
        )
    except Exception as e:
        db.session.rollback()
        return handle_api_exception(e, 'cancel consolidation')
