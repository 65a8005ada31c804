"""Pydantic schemas for request validation."""
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field, field_validator, ConfigDict, AliasChoices
from shared.enums import (
    Carrier, RequestType, PaymentMethod, PackageStatus, WeightUnit, DimensionUnit,
    Currency, PackagePhotoType, ConsolidationPhotoType, TransactionStatus, AdminRole
)
from shared.validation import Validator
from shared.utils import to_kg, to_cm

MAX_REQUESTED_PHOTOS = 10


def sanitize_html(text: Optional[str]) -> str:
    if text:
        return Validator.sanitize_html(text)
    return text or ""


class RequestSchema(BaseModel):
    """Base for inbound payloads: strips strings and stores enum values."""
    model_config = ConfigDict(use_enum_values=True, str_strip_whitespace=True)


# Auth Schemas
class RegisterRequest(RequestSchema):
    name: str = Field(..., min_length=2, max_length=120)
    email: str
    password: str = Field(..., min_length=6, max_length=128)
    phone: str
    city: str = Field(..., min_length=1, max_length=100)
    street: Optional[str] = Field(default="", max_length=200)
    postal_code: Optional[str] = Field(default="", max_length=20)

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        return Validator.validate_email(v)

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, v):
        return Validator.validate_phone(v)


class LoginRequest(RequestSchema):
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=1)

    @field_validator('email')
    @classmethod
    def normalise_email(cls, v):
        return v.lower()


class ProfileUpdate(RequestSchema):
    name: Optional[str] = Field(None, min_length=2, max_length=120)
    phone: Optional[str] = None
    street: Optional[str] = Field(None, max_length=200)
    city: Optional[str] = Field(None, max_length=100)
    postal_code: Optional[str] = Field(None, max_length=20)

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, v):
        if v is not None:
            return Validator.validate_phone(v)
        return v


class AdminCreate(RequestSchema):
    name: str = Field(..., min_length=2, max_length=120)
    email: str
    password: str = Field(..., min_length=8)
    role: AdminRole = AdminRole.ADMIN

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        return Validator.validate_email(v)


# Measurement Schemas
class WeightIn(RequestSchema):
    value: float = Field(..., gt=0)
    unit: WeightUnit = WeightUnit.KG

    def kg(self) -> float:
        return round(to_kg(self.value, self.unit), 3)


class DimensionsIn(RequestSchema):
    length: float = Field(..., gt=0)
    width: float = Field(..., gt=0)
    height: float = Field(..., gt=0)
    unit: DimensionUnit = DimensionUnit.CM

    def cm(self) -> dict:
        return {
            'length': round(to_cm(self.length, self.unit), 2),
            'width': round(to_cm(self.width, self.unit), 2),
            'height': round(to_cm(self.height, self.unit), 2),
        }


class MoneyIn(RequestSchema):
    amount: float = Field(..., ge=0)
    currency: Currency = Currency.USD


# Photo Schemas
class PackagePhotoIn(RequestSchema):
    url: str
    type: PackagePhotoType = PackagePhotoType.BASIC

    @field_validator('url')
    @classmethod
    def validate_url(cls, v):
        return Validator.validate_url(v)


class ConsolidationPhotoIn(RequestSchema):
    url: str
    type: ConsolidationPhotoType = ConsolidationPhotoType.AFTER

    @field_validator('url')
    @classmethod
    def validate_url(cls, v):
        return Validator.validate_url(v)


class DescribedPhotoIn(RequestSchema):
    url: str
    description: Optional[str] = ""

    @field_validator('url')
    @classmethod
    def validate_url(cls, v):
        return Validator.validate_url(v)

    @field_validator('description')
    @classmethod
    def sanitize_description(cls, v):
        return sanitize_html(v)


class PackagePhotosUpload(RequestSchema):
    photos: List[PackagePhotoIn] = Field(..., min_length=1)


class ConsolidationPhotosUpload(RequestSchema):
    photos: List[ConsolidationPhotoIn] = Field(..., min_length=1)


class PhotoRequestPhotosUpload(RequestSchema):
    photos: List[DescribedPhotoIn] = Field(..., min_length=1)


# Package Schemas
class PackageRegister(RequestSchema):
    suite_number: str
    tracking_number: str = Field(..., min_length=3, max_length=100)
    retailer: str = Field(..., min_length=1, max_length=120)
    weight: WeightIn
    dimensions: DimensionsIn
    estimated_value: Optional[MoneyIn] = None
    description: Optional[str] = Field(default="", max_length=1000)
    notes: Optional[str] = Field(default="", max_length=2000)
    photos: List[PackagePhotoIn] = Field(default_factory=list)

    @field_validator('suite_number')
    @classmethod
    def validate_suite(cls, v):
        return Validator.validate_suite_number(v)

    @field_validator('description', 'notes')
    @classmethod
    def sanitize_text_fields(cls, v):
        return sanitize_html(v)


class PackageUpdate(RequestSchema):
    """Fields a customer may edit on their own package."""
    description: Optional[str] = Field(None, max_length=1000)
    notes: Optional[str] = Field(None, max_length=2000)

    @field_validator('description', 'notes')
    @classmethod
    def sanitize_text_fields(cls, v):
        if v is not None:
            return sanitize_html(v)
        return v


class AdminPackageUpdate(PackageUpdate):
    status: Optional[PackageStatus] = None
    retailer: Optional[str] = Field(None, min_length=1, max_length=120)
    weight: Optional[WeightIn] = None
    dimensions: Optional[DimensionsIn] = None
    estimated_value: Optional[MoneyIn] = None


class RepackOptions(RequestSchema):
    package_id: int
    remove_retail_box: bool = True
    add_protection: bool = False
    minimize_size: bool = True
    special_instructions: Optional[str] = Field(default="", max_length=500)

    @field_validator('special_instructions')
    @classmethod
    def sanitize_instructions(cls, v):
        return sanitize_html(v)


class RepackCreate(RequestSchema):
    packages: List[RepackOptions] = Field(..., min_length=1)


class BulkStatusUpdate(RequestSchema):
    ids: List[int] = Field(..., min_length=1,
                           validation_alias=AliasChoices('ids', 'package_ids', 'shipment_ids'))
    status: str
    notes: Optional[str] = None

    @field_validator('notes')
    @classmethod
    def sanitize_notes(cls, v):
        if v is not None:
            return sanitize_html(v)
        return v


class StatusUpdate(RequestSchema):
    status: str
    notes: Optional[str] = None

    @field_validator('notes')
    @classmethod
    def sanitize_notes(cls, v):
        if v is not None:
            return sanitize_html(v)
        return v


# Consolidation Schemas
class ConsolidationPreferences(RequestSchema):
    remove_packaging: bool = True
    add_protection: bool = False
    request_unpacked_photos: bool = False


class ConsolidationCreate(RequestSchema):
    package_ids: List[int]
    preferences: ConsolidationPreferences = Field(default_factory=ConsolidationPreferences)
    special_instructions: Optional[str] = Field(default="", max_length=1000)

    @field_validator('special_instructions')
    @classmethod
    def sanitize_instructions(cls, v):
        return sanitize_html(v)


class ConsolidationUpdate(RequestSchema):
    preferences: Optional[ConsolidationPreferences] = None
    special_instructions: Optional[str] = Field(None, max_length=1000)

    @field_validator('special_instructions')
    @classmethod
    def sanitize_instructions(cls, v):
        if v is not None:
            return sanitize_html(v)
        return v


class ConsolidationComplete(RequestSchema):
    weight: float = Field(..., gt=0)
    dimensions: DimensionsIn
    notes: Optional[str] = Field(default="", max_length=2000)

    @field_validator('notes')
    @classmethod
    def sanitize_notes(cls, v):
        return sanitize_html(v)


# Photo Request Schemas
class PhotoRequestCreate(RequestSchema):
    package_id: int
    request_type: RequestType = RequestType.PHOTOS
    additional_photos: int = Field(default=0, ge=0, le=MAX_REQUESTED_PHOTOS)
    specific_requests: List[str] = Field(default_factory=list)
    custom_instructions: Optional[str] = Field(default="", max_length=2000)

    @field_validator('specific_requests')
    @classmethod
    def clean_requests(cls, v):
        return [sanitize_html(item.strip()) for item in v if item and item.strip()]

    @field_validator('custom_instructions')
    @classmethod
    def sanitize_instructions(cls, v):
        return sanitize_html(v)


class PhotoRequestUpdate(RequestSchema):
    request_type: Optional[RequestType] = None
    additional_photos: Optional[int] = Field(None, ge=0, le=MAX_REQUESTED_PHOTOS)
    specific_requests: Optional[List[str]] = None
    custom_instructions: Optional[str] = Field(None, max_length=2000)

    @field_validator('custom_instructions')
    @classmethod
    def sanitize_instructions(cls, v):
        if v is not None:
            return sanitize_html(v)
        return v


class ConfirmPayment(RequestSchema):
    payment_method: PaymentMethod = PaymentMethod.CARD


class InformationReport(RequestSchema):
    information_report: str = Field(..., min_length=1, max_length=5000)

    @field_validator('information_report')
    @classmethod
    def sanitize_report(cls, v):
        return sanitize_html(v)


# Shipment Schemas
class Destination(RequestSchema):
    full_name: str = Field(..., min_length=1, max_length=120)
    street: str = Field(..., min_length=1, max_length=200)
    city: str = Field(..., min_length=1, max_length=100)
    postal_code: str = Field(..., min_length=1, max_length=20)
    country: str = Field(default="Morocco", max_length=60)
    phone: str

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, v):
        return Validator.validate_phone(v)


class CustomsItemIn(RequestSchema):
    description: str = Field(..., min_length=1, max_length=300)
    quantity: int = Field(default=1, ge=1)
    value: float = Field(default=0.0, ge=0)
    hs_code: Optional[str] = ""
    country_of_origin: str = Field(default="US", max_length=60)

    @field_validator('hs_code')
    @classmethod
    def validate_hs_code(cls, v):
        return Validator.validate_hs_code(v)


class InsuranceIn(RequestSchema):
    coverage: float = Field(..., gt=0)


class ShipmentCreate(RequestSchema):
    package_ids: List[int] = Field(..., min_length=1)
    destination: Destination
    carrier: Carrier = Carrier.DHL
    service_level: str = Field(default="express", max_length=50)
    insurance: Optional[InsuranceIn] = None
    customs_info: List[CustomsItemIn] = Field(..., min_length=1)


class ShipmentCostIn(RequestSchema):
    shipping: float = Field(..., ge=0)
    insurance: float = Field(default=0.0, ge=0)


class ShipmentAdminUpdate(RequestSchema):
    carrier: Optional[Carrier] = None
    service_level: Optional[str] = Field(None, max_length=50)
    estimated_delivery: Optional[datetime] = None
    weight: Optional[float] = Field(None, gt=0)
    dimensions: Optional[DimensionsIn] = None
    cost: Optional[ShipmentCostIn] = None
    notes: Optional[str] = Field(None, max_length=4000)

    @field_validator('notes')
    @classmethod
    def sanitize_notes(cls, v):
        if v is not None:
            return sanitize_html(v)
        return v


class TrackingEventIn(RequestSchema):
    status: str = Field(..., min_length=1, max_length=30)
    location: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=1000)


class RateRequest(RequestSchema):
    weight: float = Field(..., gt=0)
    dimensions: DimensionsIn
    origin_country: str = Field(default="US", min_length=2, max_length=2)
    destination_country: str = Field(default="MA", min_length=2, max_length=2)


class DHLTrackingWebhook(RequestSchema):
    tracking_number: str = Field(..., min_length=1)
    status: str = Field(..., min_length=1)
    location: Optional[str] = None
    timestamp: Optional[datetime] = None
    description: Optional[str] = None
    estimated_delivery: Optional[datetime] = None


# Back-office Schemas
class UserStatusUpdate(RequestSchema):
    is_active: bool


class TransactionStatusUpdate(RequestSchema):
    status: TransactionStatus
