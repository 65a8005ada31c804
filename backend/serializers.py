"""JSON serialization of database rows for API responses."""
from .utils import iso, enum_value
from shared import pricing


def serialize_user(user):
    return {
        'id': user.id,
        'name': user.name,
        'email': user.email,
        'suite_number': user.suite_number,
        'phone': user.phone,
        'address': {
            'street': user.street,
            'city': user.city,
            'postal_code': user.postal_code,
            'country': user.country,
        },
        'is_active': user.is_active,
        'created_at': iso(user.created_at),
    }


def serialize_admin(admin):
    return {
        'id': admin.id,
        'name': admin.name,
        'email': admin.email,
        'role': enum_value(admin.role),
        'is_active': admin.is_active,
        'last_login': iso(admin.last_login),
    }


def serialize_package(package, include_photos=True):
    """Serialize a package, nesting weight/dimension/value blocks."""
    result = {
        'id': package.id,
        'user_id': package.user_id,
        'tracking_number': package.tracking_number,
        'retailer': package.retailer,
        'status': enum_value(package.status),
        'received_date': iso(package.received_date),
        'weight': {'value': package.weight_value, 'unit': enum_value(package.weight_unit)},
        'dimensions': {
            'length': package.length,
            'width': package.width,
            'height': package.height,
            'unit': enum_value(package.dimension_unit),
        },
        'storage_days': package.storage_days or 0,
        'storage_days_left': pricing.storage_days_left(package.storage_days or 0),
        'estimated_value': {
            'amount': package.estimated_value or 0,
            'currency': enum_value(package.value_currency),
        },
        'description': package.description,
        'notes': package.notes,
        'consolidation_id': package.consolidation_id,
        'shipment_id': package.shipment_id,
        'is_consolidated_result': bool(package.is_consolidated_result),
        'original_package_ids': package.original_package_ids or [],
        'created_at': iso(package.created_at),
    }
    if include_photos:
        result['photos'] = [
            {'id': p.id, 'url': p.url, 'type': enum_value(p.photo_type), 'uploaded_at': iso(p.uploaded_at)}
            for p in package.photos
        ]
    return result


def serialize_consolidation(consolidation, include_packages=False):
    result = {
        'id': consolidation.id,
        'user_id': consolidation.user_id,
        'status': enum_value(consolidation.status),
        'package_ids': [p.id for p in consolidation.packages],
        'preferences': {
            'remove_packaging': consolidation.remove_packaging,
            'add_protection': consolidation.add_protection,
            'request_unpacked_photos': consolidation.request_unpacked_photos,
        },
        'special_instructions': consolidation.special_instructions,
        'estimated_completion': iso(consolidation.estimated_completion),
        'actual_completion': iso(consolidation.actual_completion),
        'resulting_package_id': consolidation.resulting_package_id,
        'cost': {
            'base': consolidation.cost_base,
            'protection': consolidation.cost_protection,
            'photos': consolidation.cost_photos,
            'total': consolidation.cost_total,
            'currency': enum_value(consolidation.currency),
        },
        'before_consolidation': {
            'total_weight': consolidation.before_total_weight,
            'total_volume': consolidation.before_total_volume,
        },
        'after_consolidation': None,
        'photos': [
            {'id': p.id, 'url': p.url, 'type': enum_value(p.photo_type), 'uploaded_at': iso(p.uploaded_at)}
            for p in consolidation.photos
        ],
        'notes': consolidation.notes,
        'created_at': iso(consolidation.created_at),
    }
    if consolidation.after_weight is not None:
        result['after_consolidation'] = {
            'weight': consolidation.after_weight,
            'dimensions': {
                'length': consolidation.after_length,
                'width': consolidation.after_width,
                'height': consolidation.after_height,
            },
        }
    if include_packages:
        result['packages'] = [serialize_package(p, include_photos=False) for p in consolidation.packages]
    return result


def serialize_photo_request(photo_request):
    return {
        'id': photo_request.id,
        'user_id': photo_request.user_id,
        'package_id': photo_request.package_id,
        'package_tracking_number': photo_request.package.tracking_number if photo_request.package else None,
        'request_type': enum_value(photo_request.request_type),
        'status': enum_value(photo_request.status),
        'additional_photos': photo_request.additional_photos,
        'specific_requests': photo_request.specific_requests or [],
        'custom_instructions': photo_request.custom_instructions,
        'cost': {
            'photos': photo_request.cost_photos,
            'information': photo_request.cost_information,
            'total': photo_request.cost_total,
            'currency': enum_value(photo_request.currency),
        },
        'payment_status': enum_value(photo_request.payment_status),
        'completed_at': iso(photo_request.completed_at),
        'photos': [
            {'id': p.id, 'url': p.url, 'description': p.description, 'uploaded_at': iso(p.uploaded_at)}
            for p in photo_request.photos
        ],
        'information_report': photo_request.information_report,
        'notes': photo_request.notes,
        'created_at': iso(photo_request.created_at),
    }


def serialize_tracking_event(event):
    return {
        'status': event.status,
        'location': event.location,
        'description': event.description,
        'timestamp': iso(event.timestamp),
    }


def serialize_shipment(shipment, include_packages=False):
    result = {
        'id': shipment.id,
        'user_id': shipment.user_id,
        'package_ids': [p.id for p in shipment.packages],
        'carrier': enum_value(shipment.carrier),
        'service_level': shipment.service_level,
        'tracking_number': shipment.tracking_number,
        'status': enum_value(shipment.status),
        'shipped_date': iso(shipment.shipped_date),
        'estimated_delivery': iso(shipment.estimated_delivery),
        'actual_delivery': iso(shipment.actual_delivery),
        'destination': {
            'full_name': shipment.dest_full_name,
            'street': shipment.dest_street,
            'city': shipment.dest_city,
            'postal_code': shipment.dest_postal_code,
            'country': shipment.dest_country,
            'phone': shipment.dest_phone,
        },
        'weight': {'total': shipment.total_weight, 'unit': enum_value(shipment.weight_unit)},
        'dimensions': {'length': shipment.length, 'width': shipment.width, 'height': shipment.height},
        'cost': {
            'shipping': shipment.cost_shipping,
            'insurance': shipment.cost_insurance,
            'total': shipment.cost_total,
            'currency': enum_value(shipment.currency),
        },
        'insurance': (
            {'coverage': shipment.insurance_coverage, 'cost': shipment.cost_insurance}
            if shipment.insurance_coverage else None
        ),
        'customs_info': [
            {
                'description': item.description,
                'quantity': item.quantity,
                'value': item.value,
                'hs_code': item.hs_code,
                'country_of_origin': item.country_of_origin,
            }
            for item in shipment.customs_items
        ],
        'tracking_events': [serialize_tracking_event(e) for e in shipment.tracking_events],
        'label_url': shipment.label_url,
        'notes': shipment.notes,
        'created_at': iso(shipment.created_at),
    }
    if include_packages:
        result['packages'] = [serialize_package(p, include_photos=False) for p in shipment.packages]
    return result


def serialize_notification(notification):
    return {
        'id': notification.id,
        'type': enum_value(notification.type),
        'title': notification.title,
        'message': notification.message,
        'related_id': notification.related_id,
        'related_model': notification.related_model,
        'priority': enum_value(notification.priority),
        'action_url': notification.action_url,
        'is_read': notification.is_read,
        'read_at': iso(notification.read_at),
        'created_at': iso(notification.created_at),
    }


def serialize_transaction(transaction):
    return {
        'id': transaction.id,
        'user_id': transaction.user_id,
        'type': enum_value(transaction.type),
        'related_id': transaction.related_id,
        'related_model': transaction.related_model,
        'status': enum_value(transaction.status),
        'amount': {'value': transaction.amount, 'currency': enum_value(transaction.currency)},
        'payment_method': enum_value(transaction.payment_method),
        'description': transaction.description,
        'created_at': iso(transaction.created_at),
    }


def serialize_owner(user):
    """Compact customer block embedded in back-office listings."""
    if user is None:
        return None
    return {
        'id': user.id,
        'name': user.name,
        'email': user.email,
        'suite_number': user.suite_number,
    }
