import enum


class PackageStatus(str, enum.Enum):
    """Lifecycle of a package held at the US warehouse.

    A package is ``received`` on arrival, becomes ``consolidated`` once it is
    merged into a consolidation, and ``shipped`` once it leaves on a shipment.
    """
    RECEIVED = "received"
    CONSOLIDATED = "consolidated"
    SHIPPED = "shipped"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"


class ConsolidationStatus(str, enum.Enum):
    """Consolidation request lifecycle."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PhotoRequestStatus(str, enum.Enum):
    """Photo/information request lifecycle."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ShipmentStatus(str, enum.Enum):
    """Outbound shipment lifecycle."""
    PENDING = "pending"
    PROCESSING = "processing"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class Carrier(str, enum.Enum):
    """Supported outbound carriers."""
    DHL = "DHL"
    FEDEX = "FedEx"
    ARAMEX = "Aramex"
    UPS = "UPS"


class RequestType(str, enum.Enum):
    """What a customer asks for in a photo request."""
    PHOTOS = "photos"
    INFORMATION = "information"
    BOTH = "both"


class PaymentStatus(str, enum.Enum):
    UNPAID = "unpaid"
    PAID = "paid"


class PackagePhotoType(str, enum.Enum):
    """Photo categories attached to a package."""
    BASIC = "basic"
    UNPACKED = "unpacked"
    DETAILED = "detailed"
    DAMAGE = "damage"


class ConsolidationPhotoType(str, enum.Enum):
    """Photo categories taken while consolidating."""
    BEFORE = "before"
    UNPACKED = "unpacked"
    AFTER = "after"


class WeightUnit(str, enum.Enum):
    KG = "kg"
    LB = "lb"


class DimensionUnit(str, enum.Enum):
    CM = "cm"
    IN = "in"


class Currency(str, enum.Enum):
    USD = "USD"
    MAD = "MAD"


class NotificationType(str, enum.Enum):
    """Notification categories pushed to customers.

    Used in Notification model and by the notification service.
    """
    PACKAGE_RECEIVED = "package_received"
    SHIPMENT_UPDATE = "shipment_update"
    CONSOLIDATION_COMPLETE = "consolidation_complete"
    PHOTO_REQUEST_COMPLETE = "photo_request_complete"
    PAYMENT_RECEIVED = "payment_received"
    STORAGE_WARNING = "storage_warning"
    REPACK_REQUEST = "repack_request"


class NotificationPriority(str, enum.Enum):
    NORMAL = "normal"
    HIGH = "high"


class TransactionType(str, enum.Enum):
    """Billable activity categories."""
    CONSOLIDATION = "consolidation"
    SHIPPING = "shipping"
    PHOTO_REQUEST = "photo_request"
    INSURANCE = "insurance"
    STORAGE = "storage"
    REPACK = "repack"


class TransactionStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentMethod(str, enum.Enum):
    CARD = "card"
    PAYPAL = "paypal"
    BANK_TRANSFER = "bank_transfer"
    CASH = "cash"


class AdminRole(str, enum.Enum):
    """Back-office roles for access control.

    Used in Admin model to define permissions.
    """
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
