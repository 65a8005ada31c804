"""Admin customer account management."""
from flask import Blueprint, request
import logging
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func, or_
from ..models import db, User, Package, Shipment, Transaction
from ..base.crud_base import CRUDBase
from ..serializers import serialize_user, serialize_package, serialize_shipment, serialize_transaction
from ..utils import (
    api_success, handle_api_exception, validation_error_response, parse_body
)
from .auth import admin_required
from shared.enums import TransactionStatus
from shared.schemas import UserStatusUpdate
from shared.validation import ValidationError

bp = Blueprint('admin_users', __name__, url_prefix='/api/admin')
logger = logging.getLogger(__name__)

RECENT_ITEMS = 10


def count_by(model, column, user_id):
    rows = (db.session.query(column, func.count(model.id))
            .filter(model.user_id == user_id)
            .group_by(column)
            .all())
    return {getattr(key, 'value', key): count for key, count in rows}


class AdminUserCRUD(CRUDBase):

    def __init__(self):
        super().__init__(User, logger_name='admin_users')

    def serialize(self, user, detail=False):
        result = serialize_user(user)
        result['stats'] = {
            'packages': Package.query.filter_by(user_id=user.id).count(),
            'shipments': Shipment.query.filter_by(user_id=user.id).count(),
        }
        return result


crud = AdminUserCRUD()


@bp.route('/users', methods=['GET'])
@admin_required
def get_users():
    query = User.query
    search = (request.args.get('search') or '').strip()
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            User.name.ilike(pattern),
            User.email.ilike(pattern),
            User.suite_number.ilike(pattern),
            User.phone.ilike(pattern),
        ))
    return crud.get_list(query)


@bp.route('/users/<int:user_id>', methods=['GET'])
@admin_required
def get_user(user_id):
    """Customer profile with recent activity and per-status counts."""
    user, error = crud.fetch(user_id)
    if error:
        return error

    packages = (Package.query.filter_by(user_id=user.id)
                .order_by(Package.created_at.desc()).limit(RECENT_ITEMS).all())
    shipments = (Shipment.query.filter_by(user_id=user.id)
                 .order_by(Shipment.created_at.desc()).limit(RECENT_ITEMS).all())
    transactions = (Transaction.query.filter_by(user_id=user.id)
                    .order_by(Transaction.created_at.desc()).limit(RECENT_ITEMS).all())
    spent = (db.session.query(Transaction.type, func.sum(Transaction.amount), func.count(Transaction.id))
             .filter(Transaction.user_id == user.id, Transaction.status == TransactionStatus.COMPLETED)
             .group_by(Transaction.type)
             .all())

    return api_success({
        'user': crud.serialize(user),
        'packages': [serialize_package(p, include_photos=False) for p in packages],
        'shipments': [serialize_shipment(s) for s in shipments],
        'transactions': [serialize_transaction(t) for t in transactions],
        'statistics': {
            'packages': count_by(Package, Package.status, user.id),
            'shipments': count_by(Shipment, Shipment.status, user.id),
            'financial': {
                getattr(kind, 'value', kind): {'total': float(total or 0), 'count': count}
                for kind, total, count in spent
            },
        },
    })


@bp.route('/users/<int:user_id>/status', methods=['PUT'])
@admin_required
def update_user_status(user_id):
    """Enable or disable a customer account."""
    user, error = crud.fetch(user_id)
    if error:
        return error

    try:
        data = parse_body(UserStatusUpdate)
    except (ValidationError, PydanticValidationError) as e:
        return validation_error_response(e)

    try:
        user.is_active = data.is_active
        db.session.commit()
        state = 'activated' if data.is_active else 'deactivated'
        logger.info(f"User {user_id} {state}")
        return api_success({'user': serialize_user(user)}, f"User {state} successfully")
    except Exception as e:
        db.session.rollback()
        return handle_api_exception(e, 'update user status')
