"""Admin dashboard counters."""
from flask import Blueprint
import logging
from sqlalchemy import func
from ..models import db, now, User, Package, Shipment, Consolidation, Transaction
from ..utils import api_success, handle_api_exception
from .auth import admin_required
from shared.enums import PackageStatus, ShipmentStatus, ConsolidationStatus, TransactionStatus
from shared import pricing

bp = Blueprint('admin_dashboard', __name__, url_prefix='/api/admin')
logger = logging.getLogger(__name__)

ACTIVE_SHIPMENT_STATUSES = (ShipmentStatus.PENDING, ShipmentStatus.PROCESSING, ShipmentStatus.IN_TRANSIT)


def revenue_since(start):
    total = (db.session.query(func.coalesce(func.sum(Transaction.amount), 0))
             .filter(Transaction.status == TransactionStatus.COMPLETED,
                     Transaction.created_at >= start)
             .scalar())
    return float(total or 0)


@bp.route('/dashboard/stats', methods=['GET'])
@admin_required
def get_stats():
    try:
        today = now().replace(hour=0, minute=0, second=0, microsecond=0, tzinfo=None)
        month_start = today.replace(day=1)

        return api_success({
            'stats': {
                'users': {
                    'total': User.query.count(),
                    'new_today': User.query.filter(User.created_at >= today).count(),
                },
                'packages': {
                    'total': Package.query.count(),
                    'in_storage': Package.query.filter(Package.status == PackageStatus.RECEIVED).count(),
                    'today': Package.query.filter(Package.created_at >= today).count(),
                },
                'shipments': {
                    'active': Shipment.query.filter(Shipment.status.in_(ACTIVE_SHIPMENT_STATUSES)).count(),
                    'today': Shipment.query.filter(Shipment.created_at >= today).count(),
                },
                'consolidations': {
                    'pending': Consolidation.query.filter(
                        Consolidation.status == ConsolidationStatus.PENDING).count(),
                },
                'revenue': {
                    'today': revenue_since(today),
                    'month': revenue_since(month_start),
                },
                'storage_warnings': Package.query.filter(
                    Package.status == PackageStatus.RECEIVED,
                    Package.storage_days >= pricing.STORAGE_WARNING_THRESHOLD,
                ).count(),
            }
        })
    except Exception as e:
        return handle_api_exception(e, 'load dashboard statistics')
