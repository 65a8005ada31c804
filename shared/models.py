from datetime import datetime, timedelta
from sqlalchemy import Column, Integer, String, Float, Boolean, Text, DateTime, ForeignKey, Index, Enum, CheckConstraint, JSON
from sqlalchemy.orm import relationship, declarative_base
from shared.enums import (
    PackageStatus, ConsolidationStatus, PhotoRequestStatus, ShipmentStatus, Carrier,
    RequestType, PaymentStatus, PackagePhotoType, ConsolidationPhotoType, WeightUnit,
    DimensionUnit, Currency, NotificationType, NotificationPriority, TransactionType,
    TransactionStatus, PaymentMethod, AdminRole
)
from shared import pricing

Base = declarative_base()

# Global timezone configuration - Morocco (customers and back office)
# Africa/Casablanca moves by an hour around Ramadan
from zoneinfo import ZoneInfo
APP_TIMEZONE = ZoneInfo('Africa/Casablanca')

CONSOLIDATION_TURNAROUND_DAYS = 3
SHIPMENT_TRANSIT_DAYS = 5


def enum_type(enum_cls):
    """Store enum values (not member names) so plain strings filter correctly."""
    return Enum(enum_cls, values_callable=lambda members: [m.value for m in members],
                native_enum=False, validate_strings=True)


def now():
    """Return current datetime in application timezone (timezone-aware).

    Note: When stored in SQLite, timezone info is stripped (SQLite limitation).
    All stored datetimes should be treated as Morocco time, even though they're stored naive.
    """
    return datetime.now(APP_TIMEZONE)


def _consolidation_eta():
    return now() + timedelta(days=CONSOLIDATION_TURNAROUND_DAYS)


def _shipment_eta():
    return now() + timedelta(days=SHIPMENT_TRANSIT_DAYS)


class TimestampMixin:
    """Mixin providing created/updated timestamps."""

    created_at = Column(DateTime, default=now)
    updated_at = Column(DateTime, default=now, onupdate=now)


class User(Base, TimestampMixin):
    __tablename__ = 'users'
    id = Column(Integer, primary_key=True, nullable=False)
    name = Column(String(120), nullable=False, server_default="")
    email = Column(String(120), unique=True, nullable=False, server_default="")
    password_hash = Column(String(256), nullable=False, server_default="")
    suite_number = Column(String(10), unique=True, nullable=False, index=True)
    phone = Column(String(30), server_default="")
    street = Column(String(200), server_default="")
    city = Column(String(100), server_default="")
    postal_code = Column(String(20), server_default="")
    country = Column(String(60), server_default="Morocco", default="Morocco")
    is_active = Column(Boolean, default=True, server_default='1')
    packages = relationship('Package', backref='user', lazy='select')


class Admin(Base, TimestampMixin):
    __tablename__ = 'admins'
    id = Column(Integer, primary_key=True, nullable=False)
    name = Column(String(120), nullable=False, server_default="")
    email = Column(String(120), unique=True, nullable=False, server_default="")
    password_hash = Column(String(256), nullable=False, server_default="")
    role = Column(enum_type(AdminRole), default=AdminRole.ADMIN, nullable=False)
    is_active = Column(Boolean, default=True, server_default='1')
    last_login = Column(DateTime)


class Package(Base, TimestampMixin):
    __tablename__ = 'packages'
    id = Column(Integer, primary_key=True, nullable=False)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    tracking_number = Column(String(100), unique=True, nullable=False)
    retailer = Column(String(120), nullable=False, server_default="")
    status = Column(enum_type(PackageStatus), default=PackageStatus.RECEIVED, nullable=False, index=True)
    received_date = Column(DateTime, default=now)
    weight_value = Column(Float, nullable=False, server_default="0.0")
    weight_unit = Column(enum_type(WeightUnit), default=WeightUnit.KG, nullable=False)
    length = Column(Float, nullable=False, server_default="0.0")
    width = Column(Float, nullable=False, server_default="0.0")
    height = Column(Float, nullable=False, server_default="0.0")
    dimension_unit = Column(enum_type(DimensionUnit), default=DimensionUnit.CM, nullable=False)
    storage_days = Column(Integer, default=0, server_default="0")
    estimated_value = Column(Float, server_default="0.0")
    value_currency = Column(enum_type(Currency), default=Currency.USD, nullable=False)
    description = Column(Text, server_default="")
    notes = Column(Text, server_default="")
    consolidation_id = Column(Integer, ForeignKey('consolidations.id', ondelete='SET NULL'), index=True)
    shipment_id = Column(Integer, ForeignKey('shipments.id', ondelete='SET NULL'), index=True)
    is_consolidated_result = Column(Boolean, default=False, server_default='0')
    original_package_ids = Column(JSON, default=list)
    photos = relationship('PackagePhoto', backref='package', cascade='all, delete-orphan', lazy='select')

    __table_args__ = (
        CheckConstraint('weight_value >= 0', name='chk_package_weight_positive'),
        CheckConstraint('length >= 0 AND width >= 0 AND height >= 0', name='chk_package_dimensions_positive'),
    )

    @property
    def volume(self):
        return self.length * self.width * self.height

    def update_storage_days(self, at=None):
        """Recompute whole days spent in storage since arrival."""
        self.storage_days = pricing.storage_days(self.received_date, at or now())
        return self.storage_days

Index('idx_package_user_status', Package.user_id, Package.status)


class PackagePhoto(Base):
    __tablename__ = 'package_photos'
    id = Column(Integer, primary_key=True, nullable=False)
    package_id = Column(Integer, ForeignKey('packages.id', ondelete='CASCADE'), nullable=False, index=True)
    url = Column(String(1000), nullable=False)
    photo_type = Column(enum_type(PackagePhotoType), default=PackagePhotoType.BASIC, nullable=False)
    uploaded_at = Column(DateTime, default=now)


class Consolidation(Base, TimestampMixin):
    __tablename__ = 'consolidations'
    id = Column(Integer, primary_key=True, nullable=False)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    status = Column(enum_type(ConsolidationStatus), default=ConsolidationStatus.PENDING, nullable=False, index=True)
    remove_packaging = Column(Boolean, default=True, server_default='1')
    add_protection = Column(Boolean, default=False, server_default='0')
    request_unpacked_photos = Column(Boolean, default=False, server_default='0')
    special_instructions = Column(Text, server_default="")
    estimated_completion = Column(DateTime, default=_consolidation_eta)
    actual_completion = Column(DateTime)
    # Plain id rather than a FK: packages already reference consolidations
    resulting_package_id = Column(Integer)
    cost_base = Column(Float, default=0.0, server_default="0.0")
    cost_protection = Column(Float, default=0.0, server_default="0.0")
    cost_photos = Column(Float, default=0.0, server_default="0.0")
    cost_total = Column(Float, default=0.0, server_default="0.0")
    currency = Column(enum_type(Currency), default=Currency.MAD, nullable=False)
    before_total_weight = Column(Float, default=0.0)
    before_total_volume = Column(Float, default=0.0)
    after_weight = Column(Float)
    after_length = Column(Float)
    after_width = Column(Float)
    after_height = Column(Float)
    notes = Column(Text, server_default="")
    user = relationship('User', backref='consolidations')
    packages = relationship('Package', backref='consolidation', lazy='select')
    photos = relationship('ConsolidationPhoto', backref='consolidation', cascade='all, delete-orphan', lazy='select')


class ConsolidationPhoto(Base):
    __tablename__ = 'consolidation_photos'
    id = Column(Integer, primary_key=True, nullable=False)
    consolidation_id = Column(Integer, ForeignKey('consolidations.id', ondelete='CASCADE'), nullable=False, index=True)
    url = Column(String(1000), nullable=False)
    photo_type = Column(enum_type(ConsolidationPhotoType), default=ConsolidationPhotoType.AFTER, nullable=False)
    uploaded_at = Column(DateTime, default=now)


class PhotoRequest(Base, TimestampMixin):
    __tablename__ = 'photo_requests'
    id = Column(Integer, primary_key=True, nullable=False)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    package_id = Column(Integer, ForeignKey('packages.id', ondelete='CASCADE'), nullable=False, index=True)
    request_type = Column(enum_type(RequestType), default=RequestType.PHOTOS, nullable=False)
    status = Column(enum_type(PhotoRequestStatus), default=PhotoRequestStatus.PENDING, nullable=False, index=True)
    additional_photos = Column(Integer, default=0, server_default="0")
    specific_requests = Column(JSON, default=list)
    custom_instructions = Column(Text, server_default="")
    cost_photos = Column(Float, default=0.0, server_default="0.0")
    cost_information = Column(Float, default=0.0, server_default="0.0")
    cost_total = Column(Float, default=0.0, server_default="0.0")
    currency = Column(enum_type(Currency), default=Currency.MAD, nullable=False)
    payment_status = Column(enum_type(PaymentStatus), default=PaymentStatus.UNPAID, nullable=False)
    completed_at = Column(DateTime)
    information_report = Column(Text, server_default="")
    notes = Column(Text, server_default="")
    user = relationship('User', backref='photo_requests')
    package = relationship('Package', backref='photo_requests')
    photos = relationship('PhotoRequestPhoto', backref='photo_request', cascade='all, delete-orphan', lazy='select')

    __table_args__ = (
        CheckConstraint('additional_photos >= 0', name='chk_photo_request_count'),
    )


class PhotoRequestPhoto(Base):
    __tablename__ = 'photo_request_photos'
    id = Column(Integer, primary_key=True, nullable=False)
    photo_request_id = Column(Integer, ForeignKey('photo_requests.id', ondelete='CASCADE'), nullable=False, index=True)
    url = Column(String(1000), nullable=False)
    description = Column(Text, server_default="")
    uploaded_at = Column(DateTime, default=now)


class Shipment(Base, TimestampMixin):
    __tablename__ = 'shipments'
    id = Column(Integer, primary_key=True, nullable=False)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    carrier = Column(enum_type(Carrier), default=Carrier.DHL, nullable=False)
    service_level = Column(String(50), nullable=False, server_default="express")
    tracking_number = Column(String(100), unique=True, nullable=False)
    status = Column(enum_type(ShipmentStatus), default=ShipmentStatus.PENDING, nullable=False, index=True)
    shipped_date = Column(DateTime)
    estimated_delivery = Column(DateTime, default=_shipment_eta)
    actual_delivery = Column(DateTime)
    dest_full_name = Column(String(120), nullable=False, server_default="")
    dest_street = Column(String(200), nullable=False, server_default="")
    dest_city = Column(String(100), nullable=False, server_default="")
    dest_postal_code = Column(String(20), nullable=False, server_default="")
    dest_country = Column(String(60), nullable=False, server_default="Morocco")
    dest_phone = Column(String(30), nullable=False, server_default="")
    total_weight = Column(Float, default=0.0)
    weight_unit = Column(enum_type(WeightUnit), default=WeightUnit.KG, nullable=False)
    length = Column(Float, default=0.0)
    width = Column(Float, default=0.0)
    height = Column(Float, default=0.0)
    cost_shipping = Column(Float, default=0.0)
    cost_insurance = Column(Float, default=0.0)
    cost_total = Column(Float, default=0.0)
    currency = Column(enum_type(Currency), default=Currency.MAD, nullable=False)
    insurance_coverage = Column(Float)
    label_url = Column(Text)
    notes = Column(Text, server_default="")
    user = relationship('User', backref='shipments')
    packages = relationship('Package', backref='shipment', lazy='select')
    customs_items = relationship('CustomsItem', backref='shipment', cascade='all, delete-orphan', lazy='select')
    tracking_events = relationship('TrackingEvent', backref='shipment', cascade='all, delete-orphan',
                                   lazy='select', order_by='TrackingEvent.timestamp')


class CustomsItem(Base):
    __tablename__ = 'customs_items'
    id = Column(Integer, primary_key=True, nullable=False)
    shipment_id = Column(Integer, ForeignKey('shipments.id', ondelete='CASCADE'), nullable=False, index=True)
    description = Column(String(300), nullable=False)
    quantity = Column(Integer, default=1, nullable=False)
    value = Column(Float, default=0.0, nullable=False)
    hs_code = Column(String(20), server_default="")
    country_of_origin = Column(String(60), server_default="US")

    __table_args__ = (
        CheckConstraint('quantity >= 1', name='chk_customs_quantity'),
        CheckConstraint('value >= 0', name='chk_customs_value'),
    )


class TrackingEvent(Base):
    __tablename__ = 'tracking_events'
    id = Column(Integer, primary_key=True, nullable=False)
    shipment_id = Column(Integer, ForeignKey('shipments.id', ondelete='CASCADE'), nullable=False, index=True)
    status = Column(String(30), nullable=False)
    location = Column(String(200), server_default="")
    description = Column(Text, server_default="")
    timestamp = Column(DateTime, default=now)


class Notification(Base):
    __tablename__ = 'notifications'
    id = Column(Integer, primary_key=True, nullable=False)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    type = Column(enum_type(NotificationType), nullable=False)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    related_id = Column(Integer)
    related_model = Column(String(50))
    priority = Column(enum_type(NotificationPriority), default=NotificationPriority.NORMAL, nullable=False)
    action_url = Column(String(300))
    is_read = Column(Boolean, default=False, server_default='0', index=True)
    read_at = Column(DateTime)
    created_at = Column(DateTime, default=now, index=True)

Index('idx_notification_user_read', Notification.user_id, Notification.is_read)


class Transaction(Base, TimestampMixin):
    __tablename__ = 'transactions'
    id = Column(Integer, primary_key=True, nullable=False)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    type = Column(enum_type(TransactionType), nullable=False)
    related_id = Column(Integer)
    related_model = Column(String(50))
    status = Column(enum_type(TransactionStatus), default=TransactionStatus.PENDING, nullable=False, index=True)
    amount = Column(Float, nullable=False, default=0.0)
    currency = Column(enum_type(Currency), default=Currency.MAD, nullable=False)
    payment_method = Column(enum_type(PaymentMethod))
    description = Column(Text, server_default="")
    user = relationship('User', backref='transactions')

    __table_args__ = (
        CheckConstraint('amount >= 0', name='chk_transaction_amount'),
    )

Index('idx_transaction_related', Transaction.related_model, Transaction.related_id)


class AppConfig(Base):
    __tablename__ = 'app_config'
    id = Column(Integer, primary_key=True, nullable=False)
    key = Column(String(100), unique=True, nullable=False, server_default="")
    value = Column(Text, server_default="")
    description = Column(String(300), server_default="")
    category = Column(String(50), server_default="")
    updated_at = Column(DateTime, default=now, onupdate=now)
