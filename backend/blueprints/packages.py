"""Packages blueprint: a customer's own parcels at the US warehouse."""
import logging
import time
from datetime import timedelta
from flask import Blueprint, request, g
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import or_
from ..logging_config import log_fields
from ..models import db, now, Package, Transaction
from ..base.crud_base import CRUDBase
from ..serializers import serialize_package
from ..services.notification_service import create_notification, record_transaction
from ..utils import (
    api_success, api_error, not_found, forbidden, handle_api_exception,
    validation_error_response, parse_body
)
from .auth import login_required
from shared.enums import (
    PackageStatus, TransactionType, TransactionStatus, NotificationType, PaymentMethod
)
from shared.schemas import PackageUpdate, RepackCreate
from shared.utils import to_cm
from shared.validation import ValidationError
from shared import pricing

bp = Blueprint('packages', __name__, url_prefix='/api')
logger = logging.getLogger(__name__)


class PackageCRUD(CRUDBase):
    """Customer-scoped package operations."""

    status_enum = PackageStatus

    def __init__(self):
        super().__init__(Package, logger_name='packages')

    def serialize(self, package, detail=False):
        return serialize_package(package, include_photos=True)


crud = PackageCRUD()


def apply_package_search(query):
    """Match ``search`` against tracking number, retailer and description."""
    search = (request.args.get('search') or '').strip()
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            Package.tracking_number.ilike(pattern),
            Package.retailer.ilike(pattern),
            Package.description.ilike(pattern),
        ))
    return query


@bp.route('/packages', methods=['GET'])
@login_required
def get_packages():
    return crud.get_list(apply_package_search(crud.base_query(g.user)))


@bp.route('/packages/stats', methods=['GET'])
@login_required
def get_package_stats():
    """Counts by state and average storage time for the dashboard."""
    packages = crud.base_query(g.user).all()
    in_storage = [p for p in packages if p.status == PackageStatus.RECEIVED]
    avg_days = 0
    if in_storage:
        avg_days = round(sum(p.storage_days or 0 for p in in_storage) / len(in_storage))

    return api_success({
        'stats': {
            'total': len(packages),
            'in_storage': len(in_storage),
            'consolidated': sum(1 for p in packages if p.status == PackageStatus.CONSOLIDATED),
            'shipped': sum(1 for p in packages if p.status in (
                PackageStatus.SHIPPED, PackageStatus.IN_TRANSIT, PackageStatus.DELIVERED)),
            'avg_storage_days': avg_days,
            'storage_days_left': pricing.storage_days_left(avg_days),
        }
    })



def repack_request_id():
    return f"RPK-{int(time.time() * 1000) % 1000000:06d}"


def pending_repack(package):
    return (Transaction.query
            .filter_by(related_model='Package', related_id=package.id,
                       type=TransactionType.REPACK, status=TransactionStatus.PENDING)
            .first())


def repack_note(request_id, options):
    """One-line work order appended to the package notes for the warehouse team."""
    steps = []
    if options.remove_retail_box:
        steps.append('remove retail box')
    if options.add_protection:
        steps.append('add protection')
    if options.minimize_size:
        steps.append('minimize size')
    note = f"Repack {request_id}: {', '.join(steps) or 'repack as is'}"
    if options.special_instructions:
        note += f" - {options.special_instructions}"
    return note


@bp.route('/packages/repack', methods=['POST'])
@login_required
def request_repack():
    """Ask the warehouse to repack stored packages into smaller boxes.

    Each package is billed ``pricing.REPACK_FEE_PER_PACKAGE`` through its own
    pending transaction; savings are estimates from the package dimensions.
    """
    try:
        data = parse_body(RepackCreate)
    except (ValidationError, PydanticValidationError) as e:
        return validation_error_response(e)

    options_by_id = {item.package_id: item for item in data.packages}
    packages = Package.query.filter(Package.id.in_(list(options_by_id))).all()
    if len(packages) != len(options_by_id):
        return not_found('One or more packages not found')
    if any(p.user_id != g.user.id for p in packages):
        return forbidden('Access denied to one or more packages')
    if any(p.status != PackageStatus.RECEIVED for p in packages):
        return api_error('Only packages in storage can be repacked', 400)
    for package in packages:
        if pending_repack(package):
            return api_error(f"Package {package.tracking_number} already has a repack request pending", 400)

    request_id = repack_request_id()
    fee = pricing.REPACK_FEE_PER_PACKAGE
    try:
        items = []
        for package in packages:
            options = options_by_id[package.id]
            dims = {
                'length': to_cm(package.length, package.dimension_unit),
                'width': to_cm(package.width, package.dimension_unit),
                'height': to_cm(package.height, package.dimension_unit),
            }
            note = repack_note(request_id, options)
            package.notes = f"{package.notes}\n{note}" if package.notes else note
            record_transaction(
                g.user.id, TransactionType.REPACK, fee, package,
                description=f"Repack {request_id} for package {package.tracking_number}",
                payment_method=PaymentMethod.CARD,
            )
            items.append({
                'package_id': package.id,
                'tracking_number': package.tracking_number,
                'options': options.model_dump(exclude={'package_id'}),
                'current_dimensions': dims,
                'estimated_dimensions': pricing.repacked_dimensions(**dims),
                'estimated_savings': pricing.repack_savings(**dims, fee=fee),
            })

        create_notification(
            g.user.id, NotificationType.REPACK_REQUEST,
            'Repack Request Received',
            f"Your repack request {request_id} for {len(packages)} package(s) has been received "
            f"and will be completed within 1-2 business days.",
            related=packages[0] if len(packages) == 1 else None,
        )
        db.session.commit()

        logger.info(f"Repack requested for {len(packages)} packages", extra=log_fields(
            request_id=request_id, package_ids=[p.id for p in packages]))
        return api_success({
            'repack': {
                'request_id': request_id,
                'packages': items,
                'cost': {
                    'per_package': fee,
                    'total': pricing.repack_fee(len(packages)),
                    'currency': pricing.CURRENCY,
                },
                'estimated_savings': sum(item['estimated_savings'] for item in items),
                'estimated_completion': (now() + timedelta(days=pricing.REPACK_TURNAROUND_DAYS)).isoformat(),
            }
        }, 'Repack request created successfully', 201)
    except Exception as e:
        db.session.rollback()
        return handle_api_exception(e, 'request repack')


@bp.route('/packages/<int:package_id>', methods=['GET'])
@login_required
def get_package(package_id):
    return crud.get_detail(package_id, g.user)


@bp.route('/packages/<int:package_id>', methods=['PUT'])
@login_required
def update_package(package_id):
    return crud.update(package_id, PackageUpdate, g.user)


@bp.route('/packages/<int:package_id>', methods=['DELETE'])
@login_required
def delete_package(package_id):
    def only_received(package):
        if package.status != PackageStatus.RECEIVED:
            return 'Only packages in storage can be deleted'
        return None

    return crud.delete(package_id, g.user, guard=only_received)
