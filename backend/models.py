from flask_sqlalchemy import SQLAlchemy
import logging
from shared.models import (
    Base, User, Admin, Package, PackagePhoto, Consolidation, ConsolidationPhoto,
    PhotoRequest, PhotoRequestPhoto, Shipment, CustomsItem, TrackingEvent,
    Notification, Transaction, AppConfig, now, SHIPMENT_TRANSIT_DAYS
)

logger = logging.getLogger(__name__)
db = SQLAlchemy(model_class=Base)

__all__ = [
    'db', 'User', 'Admin', 'Package', 'PackagePhoto', 'Consolidation', 'ConsolidationPhoto',
    'PhotoRequest', 'PhotoRequestPhoto', 'Shipment', 'CustomsItem', 'TrackingEvent',
    'Notification', 'Transaction', 'AppConfig', 'now', 'get_or_none', 'SHIPMENT_TRANSIT_DAYS',
]


def get_or_none(model, resource_id):
    """Fetch a row by primary key, logging misses at debug level."""
    resource = db.session.get(model, resource_id)
    if resource is None:
        logger.debug(f"{model.__name__} {resource_id} not found")
    return resource
