"""Admin fulfilment of customer photo and information requests."""
from flask import Blueprint
import logging
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func
from ..models import db, now, PhotoRequest, PhotoRequestPhoto
from ..base.crud_base import CRUDBase
from ..serializers import serialize_photo_request, serialize_owner
from ..services.notification_service import create_notification
from ..utils import (
    api_success, api_error, handle_api_exception, validation_error_response, parse_body
)
from .auth import admin_required
from shared.enums import PhotoRequestStatus, NotificationType, NotificationPriority
from shared.schemas import StatusUpdate, PhotoRequestPhotosUpload, InformationReport
from shared.validation import ValidationError

bp = Blueprint('admin_photo_requests', __name__, url_prefix='/api/admin')
logger = logging.getLogger(__name__)

STATUS_MESSAGES = {
    PhotoRequestStatus.PROCESSING: ('Photo Request Being Processed',
                                    'Your photo request is now being processed by our team.'),
    PhotoRequestStatus.COMPLETED: ('Photos Ready!',
                                   'Your requested photos are now available in your profile.'),
    PhotoRequestStatus.CANCELLED: ('Photo Request Cancelled',
                                   'Your photo request has been cancelled.'),
}


class AdminPhotoRequestCRUD(CRUDBase):

    status_enum = PhotoRequestStatus

    def __init__(self):
        super().__init__(PhotoRequest, logger_name='admin_photo_requests')

    def serialize(self, photo_request, detail=False):
        result = serialize_photo_request(photo_request)
        result['user'] = serialize_owner(photo_request.user)
        return result


crud = AdminPhotoRequestCRUD()


def notify(photo_request, title, message, priority=NotificationPriority.NORMAL):
    return create_notification(
        photo_request.user_id, NotificationType.PHOTO_REQUEST_COMPLETE, title, message,
        related=photo_request, priority=priority,
    )


@bp.route('/photo-requests', methods=['GET'])
@admin_required
def get_photo_requests():
    return crud.get_list(crud.customer_filter(PhotoRequest.query))


@bp.route('/photo-requests/statistics', methods=['GET'])
@admin_required
def get_statistics():
    avg_photos = db.session.query(func.avg(PhotoRequest.additional_photos)).scalar()
    revenue, completed = (db.session.query(func.coalesce(func.sum(PhotoRequest.cost_total), 0),
                                           func.count(PhotoRequest.id))
                          .filter(PhotoRequest.status == PhotoRequestStatus.COMPLETED)
                          .one())
    return api_success({
        'statistics': {
            'total': PhotoRequest.query.count(),
            'by_status': crud.status_breakdown(),
            'avg_photos_requested': round(avg_photos or 0),
            'revenue': {'total': float(revenue or 0), 'completed_requests': completed},
        }
    })


@bp.route('/photo-requests/<int:request_id>', methods=['GET'])
@admin_required
def get_photo_request(request_id):
    return crud.get_detail(request_id)


@bp.route('/photo-requests/<int:request_id>/status', methods=['PUT'])
@admin_required
def update_status(request_id):
    try:
        data = parse_body(StatusUpdate)
    except (ValidationError, PydanticValidationError) as e:
        return validation_error_response(e)

    if data.status not in [s.value for s in PhotoRequestStatus]:
        return api_error('Invalid status', 400)

    photo_request, error = crud.fetch(request_id)
    if error:
        return error

    status = PhotoRequestStatus(data.status)
    old_status = photo_request.status
    try:
        photo_request.status = status
        if data.notes:
            photo_request.notes = data.notes
        if status == PhotoRequestStatus.COMPLETED:
            photo_request.completed_at = now()

        if status != old_status and status in STATUS_MESSAGES:
            title, message = STATUS_MESSAGES[status]
            notify(photo_request, title, message,
                   NotificationPriority.HIGH if status == PhotoRequestStatus.COMPLETED
                   else NotificationPriority.NORMAL)
        db.session.commit()

        logger.info(f"Photo request {request_id} status updated: {getattr(old_status, 'value', old_status)} -> {status.value}")
        return api_success({'photo_request': crud.serialize(photo_request)}, 'Status updated successfully')
    except Exception as e:
        db.session.rollback()
        return handle_api_exception(e, 'update photo request status')


@bp.route('/photo-requests/<int:request_id>/photos', methods=['POST'])
@admin_required
def upload_photos(request_id):
    photo_request, error = crud.fetch(request_id)
    if error:
        return error

    try:
        data = parse_body(PhotoRequestPhotosUpload)
    except (ValidationError, PydanticValidationError) as e:
        return validation_error_response(e)

    try:
        for photo in data.photos:
            photo_request.photos.append(PhotoRequestPhoto(url=photo.url, description=photo.description))
        notify(photo_request, 'New Photos Added',
               f"{len(data.photos)} new photo(s) have been added to your request.")
        db.session.commit()
        logger.info(f"Added {len(data.photos)} photos to photo request {request_id}")
        return api_success({'photo_request': crud.serialize(photo_request)}, 'Photos uploaded successfully')
    except Exception as e:
        db.session.rollback()
        return handle_api_exception(e, 'upload photos')


@bp.route('/photo-requests/<int:request_id>/report', methods=['POST'])
@admin_required
def submit_report(request_id):
    """Attach the written inspection report and complete the request."""
    photo_request, error = crud.fetch(request_id)
    if error:
        return error

    try:
        data = parse_body(InformationReport)
    except (ValidationError, PydanticValidationError) as e:
        return validation_error_response(e)

    try:
        photo_request.information_report = data.information_report
        photo_request.status = PhotoRequestStatus.COMPLETED
        photo_request.completed_at = now()
        notify(photo_request, 'Package Information Report Ready',
               'Your package inspection report is now available.', NotificationPriority.HIGH)
        db.session.commit()
        logger.info(f"Information report added to photo request {request_id}")
        return api_success({'photo_request': crud.serialize(photo_request)}, 'Report added successfully')
    except Exception as e:
        db.session.rollback()
        return handle_api_exception(e, 'add information report')
