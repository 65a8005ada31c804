"""Admin consolidation processing."""
from datetime import timedelta
from flask import Blueprint
import logging
from pydantic import ValidationError as PydanticValidationError
from ..logging_config import log_fields
from ..models import db, now, Consolidation, ConsolidationPhoto, Package, PackagePhoto
from ..base.crud_base import CRUDBase
from ..serializers import serialize_consolidation, serialize_owner
from ..services.notification_service import create_notification, find_transaction
from ..utils import (
    api_success, api_error, handle_api_exception, validation_error_response, parse_body
)
from .auth import admin_required
from shared.enums import (
    ConsolidationStatus, ConsolidationPhotoType, PackagePhotoType, PackageStatus,
    NotificationType, NotificationPriority, TransactionStatus, WeightUnit, DimensionUnit, Currency
)
from shared.schemas import StatusUpdate, ConsolidationPhotosUpload, ConsolidationComplete
from shared.validation import ValidationError
from shared.utils import consolidated_tracking_number

bp = Blueprint('admin_consolidations', __name__, url_prefix='/api/admin')
logger = logging.getLogger(__name__)

STATUS_MESSAGES = {
    ConsolidationStatus.PROCESSING: ('Consolidation In Progress',
                                     'Your consolidation request is now being processed.'),
    ConsolidationStatus.COMPLETED: ('Consolidation Complete',
                                    'Your packages have been consolidated and are ready to ship!'),
    ConsolidationStatus.CANCELLED: ('Consolidation Cancelled',
                                    'Your consolidation request has been cancelled.'),
}


class AdminConsolidationCRUD(CRUDBase):
    """Back-office consolidation operations across all customers."""

    status_enum = ConsolidationStatus

    def __init__(self):
        super().__init__(Consolidation, logger_name='admin_consolidations')

    def serialize(self, consolidation, detail=False):
        result = serialize_consolidation(consolidation, include_packages=True)
        result['user'] = serialize_owner(consolidation.user)
        return result


crud = AdminConsolidationCRUD()


@bp.route('/consolidations', methods=['GET'])
@admin_required
def get_consolidations():
    return crud.get_list(crud.customer_filter(Consolidation.query))


@bp.route('/consolidations/statistics', methods=['GET'])
@admin_required
def get_statistics():
    completed = Consolidation.query.filter(
        Consolidation.status == ConsolidationStatus.COMPLETED,
        Consolidation.actual_completion.isnot(None),
    ).all()
    avg_days = 0
    if completed:
        total_seconds = sum((c.actual_completion - c.created_at).total_seconds() for c in completed)
        avg_days = round(total_seconds / len(completed) / timedelta(days=1).total_seconds())

    today = now().replace(hour=0, minute=0, second=0, microsecond=0, tzinfo=None)
    completed_today = sum(1 for c in completed if c.actual_completion >= today)

    return api_success({
        'statistics': {
            'total': Consolidation.query.count(),
            'by_status': crud.status_breakdown(),
            'avg_processing_days': avg_days,
            'completed_today': completed_today,
        }
    })


@bp.route('/consolidations/<int:consolidation_id>', methods=['GET'])
@admin_required
def get_consolidation(consolidation_id):
    return crud.get_detail(consolidation_id)


@bp.route('/consolidations/<int:consolidation_id>/status', methods=['PUT'])
@admin_required
def update_status(consolidation_id):
    consolidation, error = crud.fetch(consolidation_id)
    if error:
        return error

    try:
        data = parse_body(StatusUpdate)
    except (ValidationError, PydanticValidationError) as e:
        return validation_error_response(e)

    if data.status not in [s.value for s in ConsolidationStatus]:
        return api_error(f"Invalid status: {data.status}", 400)
    status = ConsolidationStatus(data.status)

    try:
        consolidation.status = status
        if data.notes:
            consolidation.notes = data.notes
        if status == ConsolidationStatus.COMPLETED and not consolidation.actual_completion:
            consolidation.actual_completion = now()
        elif status == ConsolidationStatus.CANCELLED:
            for package in list(consolidation.packages):
                package.status = PackageStatus.RECEIVED
                package.consolidation_id = None
            transaction = find_transaction(consolidation)
            if transaction and transaction.status == TransactionStatus.PENDING:
                transaction.status = TransactionStatus.FAILED

        if status in STATUS_MESSAGES:
            title, message = STATUS_MESSAGES[status]
            create_notification(
                consolidation.user_id, NotificationType.CONSOLIDATION_COMPLETE, title, message,
                related=consolidation,
                priority=NotificationPriority.HIGH if status == ConsolidationStatus.COMPLETED
                else NotificationPriority.NORMAL,
            )
        db.session.commit()

        logger.info(f"Consolidation {consolidation_id} status set to {status.value}")
        return api_success({'consolidation': crud.serialize(consolidation)}, 'Status updated successfully')
    except Exception as e:
        db.session.rollback()
        return handle_api_exception(e, 'update consolidation status')


@bp.route('/consolidations/<int:consolidation_id>/photos', methods=['POST'])
@admin_required
def upload_photos(consolidation_id):
    consolidation, error = crud.fetch(consolidation_id)
    if error:
        return error

    try:
        data = parse_body(ConsolidationPhotosUpload)
    except (ValidationError, PydanticValidationError) as e:
        return validation_error_response(e)

    try:
        for photo in data.photos:
            consolidation.photos.append(ConsolidationPhoto(url=photo.url, photo_type=photo.type))
        create_notification(
            consolidation.user_id, NotificationType.CONSOLIDATION_COMPLETE,
            'Consolidation Photos Available',
            'Photos of your consolidation are now available.',
            related=consolidation,
        )
        db.session.commit()
        logger.info(f"Added {len(data.photos)} photos to consolidation {consolidation_id}")
        return api_success({'consolidation': crud.serialize(consolidation)}, 'Photos uploaded successfully')
    except Exception as e:
        db.session.rollback()
        return handle_api_exception(e, 'upload photos')


@bp.route('/consolidations/<int:consolidation_id>/complete', methods=['POST'])
@admin_required
def complete(consolidation_id):
    """Record final measurements and create the single consolidated package."""
    consolidation, error = crud.fetch(consolidation_id)
    if error:
        return error
    if consolidation.status == ConsolidationStatus.COMPLETED:
        return api_error('Consolidation already completed', 400)
    if consolidation.status == ConsolidationStatus.CANCELLED:
        return api_error('Cannot complete a cancelled consolidation', 400)

    try:
        data = parse_body(ConsolidationComplete)
    except (ValidationError, PydanticValidationError) as e:
        return validation_error_response(e)

    originals = list(consolidation.packages)
    dimensions = data.dimensions.cm()
    try:
        consolidation.status = ConsolidationStatus.COMPLETED
        consolidation.actual_completion = now()
        consolidation.after_weight = data.weight
        consolidation.after_length = dimensions['length']
        consolidation.after_width = dimensions['width']
        consolidation.after_height = dimensions['height']
        if data.notes:
            consolidation.notes = data.notes

        result = Package(
            user_id=consolidation.user_id,
            tracking_number=consolidated_tracking_number(),
            retailer='Consolidated',
            description=f"Consolidated package ({len(originals)} items)",
            status=PackageStatus.RECEIVED,
            weight_value=data.weight,
            weight_unit=WeightUnit.KG,
            length=dimensions['length'],
            width=dimensions['width'],
            height=dimensions['height'],
            dimension_unit=DimensionUnit.CM,
            storage_days=0,
            estimated_value=sum(p.estimated_value or 0 for p in originals),
            value_currency=Currency.USD,
            notes=f"Consolidated from {len(originals)} packages",
            is_consolidated_result=True,
            original_package_ids=[p.id for p in originals],
        )
        for photo in consolidation.photos:
            if photo.photo_type == ConsolidationPhotoType.AFTER:
                result.photos.append(PackagePhoto(url=photo.url, photo_type=PackagePhotoType.BASIC))
        db.session.add(result)
        db.session.flush()
        consolidation.resulting_package_id = result.id

        transaction = find_transaction(consolidation)
        if transaction and transaction.status in (TransactionStatus.PENDING, TransactionStatus.PROCESSING):
            transaction.status = TransactionStatus.COMPLETED

        create_notification(
            consolidation.user_id, NotificationType.CONSOLIDATION_COMPLETE,
            'Consolidation Complete!',
            f"Your {len(originals)} packages have been consolidated and are ready to ship.",
            related=consolidation,
            priority=NotificationPriority.HIGH,
        )
        db.session.commit()

        logger.info("Completed consolidation", extra=log_fields(consolidation_id=consolidation_id, package_id=result.id))
        return api_success({'consolidation': crud.serialize(consolidation)},
                           'Consolidation completed successfully')
    except Exception as e:
        db.session.rollback()
        return handle_api_exception(e, 'complete consolidation')
