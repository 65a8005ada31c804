"""Admin package management: registering arrivals at the US warehouse."""
from flask import Blueprint, request
import logging
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func
from ..logging_config import log_fields
from ..models import db, Package, PackagePhoto, User
from ..base.crud_base import CRUDBase
from ..serializers import serialize_package, serialize_owner
from ..services.notification_service import create_notification
from ..utils import (
    api_success, api_error, not_found, handle_api_exception, validation_error_response, parse_body
)
from .auth import admin_required
from .packages import apply_package_search
from shared.enums import PackageStatus, WeightUnit, DimensionUnit, Currency, NotificationType
from shared.schemas import PackageRegister, AdminPackageUpdate, PackagePhotosUpload, BulkStatusUpdate
from shared.validation import ValidationError
from shared import pricing

bp = Blueprint('admin_packages', __name__, url_prefix='/api/admin')
logger = logging.getLogger(__name__)

TOP_RETAILERS = 10


def set_measurements(package, weight=None, dimensions=None, estimated_value=None):
    """Store weight in kg, dimensions in cm and the declared value."""
    if weight is not None:
        package.weight_value = weight.kg()
        package.weight_unit = WeightUnit.KG
    if dimensions is not None:
        cm = dimensions.cm()
        package.length = cm['length']
        package.width = cm['width']
        package.height = cm['height']
        package.dimension_unit = DimensionUnit.CM
    if estimated_value is not None:
        package.estimated_value = estimated_value.amount
        package.value_currency = Currency(estimated_value.currency)


class AdminPackageCRUD(CRUDBase):
    """Back-office package operations across all customers."""

    status_enum = PackageStatus

    def __init__(self):
        super().__init__(Package, logger_name='admin_packages')

    def serialize(self, package, detail=False):
        result = serialize_package(package, include_photos=True)
        result['user'] = serialize_owner(package.user)
        return result

    def apply_update(self, package, data):
        set_measurements(package, data.weight, data.dimensions, data.estimated_value)
        for field in ('status', 'retailer', 'description', 'notes'):
            value = getattr(data, field)
            if value is not None:
                setattr(package, field, value)


crud = AdminPackageCRUD()


@bp.route('/packages', methods=['GET'])
@admin_required
def get_packages():
    query = apply_package_search(Package.query)
    user_id = request.args.get('user_id', type=int)
    if user_id:
        query = query.filter(Package.user_id == user_id)
    if request.args.get('storage_warning', '').lower() == 'true':
        query = query.filter(
            Package.status == PackageStatus.RECEIVED,
            Package.storage_days >= pricing.STORAGE_WARNING_THRESHOLD,
        )
    return crud.get_list(query)


@bp.route('/packages/statistics', methods=['GET'])
@admin_required
def get_statistics():
    retailers = (db.session.query(Package.retailer, func.count(Package.id))
                 .group_by(Package.retailer)
                 .order_by(func.count(Package.id).desc())
                 .limit(TOP_RETAILERS)
                 .all())
    avg_days = (db.session.query(func.avg(Package.storage_days))
                .filter(Package.status == PackageStatus.RECEIVED)
                .scalar())
    warnings = Package.query.filter(
        Package.status == PackageStatus.RECEIVED,
        Package.storage_days >= pricing.STORAGE_WARNING_THRESHOLD,
    ).count()

    return api_success({
        'statistics': {
            'total': Package.query.count(),
            'by_status': crud.status_breakdown(),
            'top_retailers': [{'name': name, 'count': count} for name, count in retailers],
            'avg_storage_days': round(avg_days or 0),
            'storage_warnings': warnings,
        }
    })


@bp.route('/packages/register', methods=['POST'])
@admin_required
def register_package():
    """Register a package that arrived for a customer's suite."""
    try:
        data = parse_body(PackageRegister)
    except (ValidationError, PydanticValidationError) as e:
        return validation_error_response(e)

    user = User.query.filter_by(suite_number=data.suite_number).first()
    if user is None:
        return not_found('User not found with this suite number')
    if Package.query.filter_by(tracking_number=data.tracking_number).first():
        return api_error('Package with this tracking number already exists', 400)

    try:
        package = Package(
            user_id=user.id,
            tracking_number=data.tracking_number,
            retailer=data.retailer,
            status=PackageStatus.RECEIVED,
            description=data.description,
            notes=data.notes,
            storage_days=0,
        )
        set_measurements(package, data.weight, data.dimensions, data.estimated_value)
        for photo in data.photos:
            package.photos.append(PackagePhoto(url=photo.url, photo_type=photo.type))
        db.session.add(package)
        db.session.flush()

        create_notification(
            user.id, NotificationType.PACKAGE_RECEIVED,
            'New Package Received',
            f"Your package from {data.retailer} ({data.tracking_number}) has been received at our warehouse.",
            related=package,
        )
        db.session.commit()

        logger.info("Registered package", extra=log_fields(
            package_id=package.id, tracking_number=package.tracking_number, suite_number=user.suite_number))
        return api_success({'package': crud.serialize(package)}, 'Package registered successfully', 201)
    except Exception as e:
        db.session.rollback()
        return handle_api_exception(e, 'register package')


@bp.route('/packages/bulk-update', methods=['POST'])
@admin_required
def bulk_update():
    try:
        data = parse_body(BulkStatusUpdate)
    except (ValidationError, PydanticValidationError) as e:
        return validation_error_response(e)

    if data.status not in [s.value for s in PackageStatus]:
        return api_error(f"Invalid status: {data.status}", 400)

    try:
        values = {'status': PackageStatus(data.status)}
        if data.notes:
            values['notes'] = data.notes
        updated = (Package.query
                   .filter(Package.id.in_(data.ids))
                   .update(values, synchronize_session=False))
        db.session.commit()
        logger.info(f"Bulk updated {updated} packages to {data.status}")
        return api_success({'updated': updated}, f"{updated} package(s) updated successfully")
    except Exception as e:
        db.session.rollback()
        return handle_api_exception(e, 'update packages')


@bp.route('/packages/<int:package_id>', methods=['GET'])
@admin_required
def get_package(package_id):
    return crud.get_detail(package_id)


@bp.route('/packages/<int:package_id>', methods=['PUT'])
@admin_required
def update_package(package_id):
    return crud.update(package_id, AdminPackageUpdate)


@bp.route('/packages/<int:package_id>/photos', methods=['POST'])
@admin_required
def upload_photos(package_id):
    package, error = crud.fetch(package_id)
    if error:
        return error

    try:
        data = parse_body(PackagePhotosUpload)
    except (ValidationError, PydanticValidationError) as e:
        return validation_error_response(e)

    try:
        for photo in data.photos:
            package.photos.append(PackagePhoto(url=photo.url, photo_type=photo.type))
        create_notification(
            package.user_id, NotificationType.PACKAGE_RECEIVED,
            'Package Photos Available',
            f"Photos of your package {package.tracking_number} are now available.",
            related=package,
        )
        db.session.commit()
        logger.info(f"Added {len(data.photos)} photos to package {package_id}")
        return api_success({'package': crud.serialize(package)}, 'Photos uploaded successfully')
    except Exception as e:
        db.session.rollback()
        return handle_api_exception(e, 'upload photos')
