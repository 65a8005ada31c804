"""Pricing arithmetic for consolidations, repacking, photo requests, shipping and storage.

Two tariffs live here:

- the *charge* tariff applied by the API when a record is created and
  persisted (``consolidation_cost``, ``photo_request_cost``, ``shipping_cost``,
  ``insurance_cost``, ``repack_fee``),
- the *quote* tariff shown by the client calculators before anything is
  submitted (``consolidation_fee_quote``, ``photo_package_quote``,
  ``consolidation_savings``, ``repack_savings``).

All amounts are in MAD unless a function says otherwise.
"""
import math
from datetime import datetime
from typing import Iterable, Optional

# Charge tariff (API side)
CONSOLIDATION_FEE_PER_PACKAGE = 25
CONSOLIDATION_MAX_BASE_FEE = 100
CONSOLIDATION_PROTECTION_FEE = 30
CONSOLIDATION_UNPACKED_PHOTOS_FEE = 20

PHOTO_REQUEST_PER_PHOTO = 20
PHOTO_REQUEST_INFORMATION_FEE = 10

SHIPPING_RATE_PER_KG = 50
CARRIER_MULTIPLIERS = {
    'DHL': 1.2,
    'FedEx': 1.15,
    'Aramex': 1.0,
    'UPS': 1.18,
}

# Quote tariff (client calculators)
QUOTE_FEE_PER_PACKAGE = 50
QUOTE_MAX_FEE = 250
QUOTE_UNPACKED_PHOTOS_FEE = 20
QUOTE_EXTRA_PROTECTION_FEE = 25

QUOTE_FIRST_PHOTO = 40
QUOTE_ADDITIONAL_PHOTO = 10
QUOTE_INFORMATION_REQUEST = 10
QUOTE_MAX_PHOTOS = 10

SEPARATE_SHIPPING_ESTIMATE = 350
CONSOLIDATED_SHIPPING_ESTIMATE = 450

REPACK_FEE_PER_PACKAGE = 50
REPACK_LENGTH_FACTOR = 0.7
REPACK_WIDTH_FACTOR = 0.7
REPACK_HEIGHT_FACTOR = 0.6
# Rough shipping price of one kg of dimensional weight
REPACK_SAVINGS_PER_KG = 100
REPACK_TURNAROUND_DAYS = 2

# Shared constants
INSURANCE_FREE_COVERAGE_USD = 100
INSURANCE_COST_PER_100_USD = 5

STORAGE_FREE_DAYS = 45
STORAGE_WARNING_THRESHOLD = 40

DIMENSIONAL_WEIGHT_DIVISOR = 5000

MAD_TO_USD = 0.1
USD_TO_MAD = 10

CURRENCY = 'MAD'


def consolidation_cost(package_count: int, add_protection: bool = False,
                       request_unpacked_photos: bool = False) -> dict:
    """Charge breakdown persisted on a consolidation."""
    base = min(package_count * CONSOLIDATION_FEE_PER_PACKAGE, CONSOLIDATION_MAX_BASE_FEE)
    protection = CONSOLIDATION_PROTECTION_FEE if add_protection else 0
    photos = CONSOLIDATION_UNPACKED_PHOTOS_FEE if request_unpacked_photos else 0
    return {
        'base': base,
        'protection': protection,
        'photos': photos,
        'total': base + protection + photos,
        'currency': CURRENCY,
    }


def photo_request_cost(request_type: str, additional_photos: int = 0) -> dict:
    """Charge breakdown persisted on a photo request.

    Photos are billed per photo for ``photos`` and ``both`` requests; the
    information report is a flat fee for ``information`` and ``both``.
    """
    request_type = getattr(request_type, 'value', request_type)
    photos = 0
    information = 0
    if request_type in ('photos', 'both'):
        photos = max(0, int(additional_photos or 0)) * PHOTO_REQUEST_PER_PHOTO
    if request_type in ('information', 'both'):
        information = PHOTO_REQUEST_INFORMATION_FEE
    return {
        'photos': photos,
        'information': information,
        'total': photos + information,
        'currency': CURRENCY,
    }


def dimensional_weight(length: float, width: float, height: float) -> float:
    """Volumetric weight in kg for dimensions in cm."""
    return (length * width * height) / DIMENSIONAL_WEIGHT_DIVISOR


def chargeable_weight(weight: float, length: float, width: float, height: float) -> float:
    return max(weight, dimensional_weight(length, width, height))


def shipping_cost(weight: float, length: float, width: float, height: float, carrier: str = 'DHL') -> int:
    """Tariff shipping price in MAD.

    Raises:
        ValueError: If the carrier is not known
    """
    carrier = getattr(carrier, 'value', carrier)
    if carrier not in CARRIER_MULTIPLIERS:
        raise ValueError(f"Unknown carrier: {carrier}")
    billable = chargeable_weight(weight, length, width, height)
    return round(billable * SHIPPING_RATE_PER_KG * CARRIER_MULTIPLIERS[carrier])


def insurance_cost(coverage_usd: Optional[float]) -> int:
    """Insurance premium in MAD: 5 MAD per started 100 USD above the free 100 USD."""
    if not coverage_usd or coverage_usd <= INSURANCE_FREE_COVERAGE_USD:
        return 0
    blocks = math.ceil((coverage_usd - INSURANCE_FREE_COVERAGE_USD) / 100)
    return blocks * INSURANCE_COST_PER_100_USD


def combined_parcel(packages: Iterable) -> dict:
    """Stack packages into one outbound parcel.

    Weights and heights add up; length and width take the largest package.
    Accepts objects with ``weight_value/length/width/height`` attributes or
    dicts with ``weight/length/width/height`` keys.
    """
    totals = {'weight': 0.0, 'length': 0.0, 'width': 0.0, 'height': 0.0}
    for pkg in packages:
        if isinstance(pkg, dict):
            weight = pkg.get('weight', pkg.get('weight_value', 0))
            length, width, height = pkg.get('length', 0), pkg.get('width', 0), pkg.get('height', 0)
        else:
            weight, length, width, height = pkg.weight_value, pkg.length, pkg.width, pkg.height
        totals['weight'] += weight or 0
        totals['length'] = max(totals['length'], length or 0)
        totals['width'] = max(totals['width'], width or 0)
        totals['height'] += height or 0
    return totals


def consolidation_fee_quote(package_count: int, request_unpacked_photos: bool = False,
                            add_protection: bool = False) -> int:
    """Fee shown in the consolidation wizard."""
    fee = min(package_count * QUOTE_FEE_PER_PACKAGE, QUOTE_MAX_FEE)
    if request_unpacked_photos:
        fee += QUOTE_UNPACKED_PHOTOS_FEE
    if add_protection:
        fee += QUOTE_EXTRA_PROTECTION_FEE
    return fee


def consolidation_savings(package_count: int, consolidation_fee: Optional[int] = None,
                          per_package_shipping: int = SEPARATE_SHIPPING_ESTIMATE) -> int:
    """Rough MAD saved by shipping packages together instead of one by one."""
    if package_count < 2:
        return 0
    if consolidation_fee is None:
        consolidation_fee = consolidation_fee_quote(package_count)
    separate = package_count * per_package_shipping
    return max(0, separate - (CONSOLIDATED_SHIPPING_ESTIMATE + consolidation_fee))


def estimate_consolidated_dimensions(total_volume: float) -> dict:
    """Guess the box a set of packages will fit in after repacking."""
    if total_volume <= 0:
        return {'length': 0, 'width': 0, 'height': 0}
    length = math.ceil(total_volume ** (1 / 3) * 1.5)
    return {
        'length': length,
        'width': math.ceil(length * 0.8),
        'height': math.ceil(length * 0.6),
    }


def repack_fee(package_count: int) -> int:
    """Flat repacking charge, the same for every package whatever the options."""
    return max(0, package_count) * REPACK_FEE_PER_PACKAGE


def repacked_dimensions(length: float, width: float, height: float) -> dict:
    """Expected box in whole cm once the retail packaging is gone."""
    # round first so 40 * 0.7 stays 28 instead of creeping up to 29
    def shrink(value, factor):
        return math.ceil(round((value or 0) * factor, 6))

    return {
        'length': shrink(length, REPACK_LENGTH_FACTOR),
        'width': shrink(width, REPACK_WIDTH_FACTOR),
        'height': shrink(height, REPACK_HEIGHT_FACTOR),
    }


def repack_savings(length: float, width: float, height: float,
                   fee: int = REPACK_FEE_PER_PACKAGE) -> int:
    """MAD a customer is expected to save by repacking one package, fee included.

    Dimensional weights are compared to the nearest 0.1 kg, the precision the
    calculator shows.
    """
    before = round(dimensional_weight(length, width, height), 1)
    box = repacked_dimensions(length, width, height)
    after = round(dimensional_weight(box['length'], box['width'], box['height']), 1)
    return max(0, round((before - after) * REPACK_SAVINGS_PER_KG - fee))


def photo_package_quote(photo_count: int, include_information: bool = False) -> int:
    """Marketing quote: first photo, then a lower rate for each extra one."""
    photo_count = max(0, min(photo_count, QUOTE_MAX_PHOTOS))
    cost = 0
    if photo_count > 0:
        cost = QUOTE_FIRST_PHOTO + (photo_count - 1) * QUOTE_ADDITIONAL_PHOTO
    if include_information:
        cost += QUOTE_INFORMATION_REQUEST
    return cost


def mad_to_usd(amount: float) -> float:
    return amount * MAD_TO_USD


def usd_to_mad(amount: float) -> float:
    return amount * USD_TO_MAD


def format_mad(amount: float) -> str:
    return f"{amount:.0f} MAD"


def format_usd(amount: float) -> str:
    return f"${amount:.2f}"


def storage_days(received: Optional[datetime], at: datetime) -> int:
    """Whole days between arrival and ``at``, never negative.

    Naive datetimes (as read back from SQLite) are taken to be in the same
    timezone as ``at``.
    """
    if received is None:
        return 0
    if received.tzinfo is None and at.tzinfo is not None:
        received = received.replace(tzinfo=at.tzinfo)
    elif received.tzinfo is not None and at.tzinfo is None:
        at = at.replace(tzinfo=received.tzinfo)
    return max(0, math.floor((at - received).total_seconds() / 86400))


def storage_days_left(days: int) -> int:
    return max(0, STORAGE_FREE_DAYS - days)


def is_storage_warning(days: int) -> bool:
    """True once a package is close to the end of its free storage."""
    return days >= STORAGE_WARNING_THRESHOLD
