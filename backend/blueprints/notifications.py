"""Notifications blueprint for Flask API."""
from flask import Blueprint, request, g
import logging
from ..models import db, now, Notification
from ..base.crud_base import CRUDBase
from ..serializers import serialize_notification
from ..utils import api_success, handle_api_exception, paginate
from .auth import login_required

bp = Blueprint('notifications', __name__, url_prefix='/api')
logger = logging.getLogger(__name__)

TRUE_VALUES = ('1', 'true', 'yes')


class NotificationCRUD(CRUDBase):

    def __init__(self):
        super().__init__(Notification, logger_name='notifications')

    def serialize(self, notification, detail=False):
        return serialize_notification(notification)


crud = NotificationCRUD()


@bp.route('/notifications', methods=['GET'])
@login_required
def get_notifications():
    query = crud.base_query(g.user)
    if request.args.get('unread_only', '').lower() in TRUE_VALUES:
        query = query.filter(Notification.is_read.is_(False))
    notification_type = request.args.get('type')
    if notification_type:
        query = query.filter(Notification.type == notification_type)
    query = query.order_by(Notification.created_at.desc(), Notification.id.desc())
    return paginate(query, serialize_notification, 'notifications')


@bp.route('/notifications/stats', methods=['GET'])
@login_required
def get_notification_stats():
    query = crud.base_query(g.user)
    return api_success({
        'stats': {
            'total': query.count(),
            'unread': query.filter(Notification.is_read.is_(False)).count(),
        }
    })


@bp.route('/notifications/read-all', methods=['PUT'])
@login_required
def mark_all_read():
    try:
        updated = (crud.base_query(g.user)
                   .filter(Notification.is_read.is_(False))
                   .update({'is_read': True, 'read_at': now()}, synchronize_session=False))
        db.session.commit()
        logger.info(f"Marked {updated} notifications read for user {g.user.id}")
        return api_success({'updated': updated}, 'All notifications marked as read')
    except Exception as e:
        db.session.rollback()
        return handle_api_exception(e, 'mark notifications as read')


@bp.route('/notifications/<int:notification_id>', methods=['GET'])
@login_required
def get_notification(notification_id):
    return crud.get_detail(notification_id, g.user)


@bp.route('/notifications/<int:notification_id>/read', methods=['PUT'])
@login_required
def mark_read(notification_id):
    notification, error = crud.fetch(notification_id, g.user)
    if error:
        return error
    try:
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = now()
            db.session.commit()
        return api_success({'notification': serialize_notification(notification)},
                           'Notification marked as read')
    except Exception as e:
        db.session.rollback()
        return handle_api_exception(e, 'mark notification as read')


@bp.route('/notifications/<int:notification_id>', methods=['DELETE'])
@login_required
def delete_notification(notification_id):
    return crud.delete(notification_id, g.user)
