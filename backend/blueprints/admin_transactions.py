"""Admin view of customer billing records."""
from flask import Blueprint, request
import logging
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func
from ..models import db, Transaction
from ..base.crud_base import CRUDBase
from ..serializers import serialize_transaction, serialize_owner
from ..services.notification_service import create_notification
from ..utils import api_success, api_error, handle_api_exception, validation_error_response, parse_body
from .auth import admin_required
from shared.enums import TransactionStatus, TransactionType, NotificationType, NotificationPriority
from shared.schemas import TransactionStatusUpdate
from shared.validation import ValidationError

bp = Blueprint('admin_transactions', __name__, url_prefix='/api/admin')
logger = logging.getLogger(__name__)

STATUS_MESSAGES = {
    TransactionStatus.COMPLETED: ('Payment Completed',
                                  'Your payment has been processed successfully.'),
    TransactionStatus.FAILED: ('Payment Failed',
                               'Your payment could not be processed. Please contact support.'),
    TransactionStatus.PROCESSING: ('Payment Processing',
                                   'Your payment is being processed.'),
}


class AdminTransactionCRUD(CRUDBase):

    status_enum = TransactionStatus

    def __init__(self):
        super().__init__(Transaction, logger_name='admin_transactions')

    def serialize(self, transaction, detail=False):
        result = serialize_transaction(transaction)
        result['user'] = serialize_owner(transaction.user)
        return result


crud = AdminTransactionCRUD()


@bp.route('/transactions', methods=['GET'])
@admin_required
def get_transactions():
    query = Transaction.query
    transaction_type = request.args.get('type')
    if transaction_type:
        if transaction_type not in [t.value for t in TransactionType]:
            return api_error(f"Invalid type: {transaction_type}", 400)
        query = query.filter(Transaction.type == transaction_type)
    user_id = request.args.get('user_id', type=int)
    if user_id:
        query = query.filter(Transaction.user_id == user_id)
    return crud.get_list(query)


@bp.route('/transactions/statistics', methods=['GET'])
@admin_required
def get_statistics():
    revenue = (db.session.query(func.coalesce(func.sum(Transaction.amount), 0))
               .filter(Transaction.status == TransactionStatus.COMPLETED)
               .scalar())
    by_type = (db.session.query(Transaction.type, func.sum(Transaction.amount), func.count(Transaction.id))
               .filter(Transaction.status == TransactionStatus.COMPLETED)
               .group_by(Transaction.type)
               .all())
    return api_success({
        'statistics': {
            'total_revenue': float(revenue or 0),
            'by_type': {
                getattr(kind, 'value', kind): {'total': float(total or 0), 'count': count}
                for kind, total, count in by_type
            },
            'by_status': crud.status_breakdown(),
        }
    })


@bp.route('/transactions/<int:transaction_id>', methods=['GET'])
@admin_required
def get_transaction(transaction_id):
    return crud.get_detail(transaction_id)


@bp.route('/transactions/<int:transaction_id>/status', methods=['PUT'])
@admin_required
def update_status(transaction_id):
    transaction, error = crud.fetch(transaction_id)
    if error:
        return error

    try:
        data = parse_body(TransactionStatusUpdate)
    except (ValidationError, PydanticValidationError) as e:
        return validation_error_response(e)

    status = TransactionStatus(data.status)
    old_status = transaction.status
    try:
        transaction.status = status
        if status != old_status and status in STATUS_MESSAGES:
            title, message = STATUS_MESSAGES[status]
            create_notification(
                transaction.user_id, NotificationType.PAYMENT_RECEIVED, title, message,
                related=transaction,
                priority=NotificationPriority.HIGH if status == TransactionStatus.FAILED
                else NotificationPriority.NORMAL,
            )
        db.session.commit()

        logger.info(f"Transaction {transaction_id} status updated: "
                    f"{getattr(old_status, 'value', old_status)} -> {status.value}")
        return api_success({'transaction': crud.serialize(transaction)}, 'Status updated successfully')
    except Exception as e:
        db.session.rollback()
        return handle_api_exception(e, 'update transaction status')
