"""Shared utility functions for the Fast Shipper application.

This module contains helpers used by both the backend API and the client:
identifier generation, unit conversions and image preparation for uploads.
"""

import io
import logging
import secrets
import string
import time
from functools import wraps
from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

SUITE_PREFIX = 'MA'
SUITE_MIN = 1000
SUITE_MAX = 9999

TRACKING_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits
TRACKING_SUFFIX_LENGTH = 6

LB_PER_KG = 2.20462
CM_PER_INCH = 2.54


class CorruptedImageError(Exception):
    """Raised when image data is corrupted and cannot be processed."""
    pass


def handle_image_errors(func):
    """Decorator to turn Pillow failures into CorruptedImageError with logging."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except UnidentifiedImageError as e:
            logger.error(f"Corrupted or unsupported image format: {e}", exc_info=True)
            raise CorruptedImageError(f"Corrupted or unsupported image format: {e}") from e
        except (OSError, ValueError) as e:
            logger.error(f"Error processing image: {e}", exc_info=True)
            raise CorruptedImageError(f"Error processing image: {e}") from e

    return wrapper


def generate_suite_number():
    """Return a random ``MA-XXXX`` suite identifier (uniqueness is checked by the caller)."""
    return f"{SUITE_PREFIX}-{secrets.randbelow(SUITE_MAX - SUITE_MIN + 1) + SUITE_MIN}"


def _epoch_ms():
    return int(time.time() * 1000)


def generate_tracking_number(carrier):
    """Build an internal tracking number: carrier code, epoch millis and a random suffix."""
    carrier = getattr(carrier, 'value', carrier)
    suffix = ''.join(secrets.choice(TRACKING_SUFFIX_ALPHABET) for _ in range(TRACKING_SUFFIX_LENGTH))
    return f"{carrier.upper()}{_epoch_ms()}{suffix}"


def consolidated_tracking_number():
    """Tracking number for the package produced by a completed consolidation."""
    return f"CONS-{_epoch_ms()}"


def to_kg(value, unit='kg'):
    unit = getattr(unit, 'value', unit)
    return value / LB_PER_KG if unit == 'lb' else value


def to_cm(value, unit='cm'):
    unit = getattr(unit, 'value', unit)
    return value * CM_PER_INCH if unit == 'in' else value


def _scaled_size(original_width, original_height, max_size):
    """Fit (width, height) inside a max_size square keeping the aspect ratio."""
    if original_width <= max_size and original_height <= max_size:
        return (original_width, original_height)

    ratio = min(max_size / original_width, max_size / original_height)
    return (int(original_width * ratio), int(original_height * ratio))


@handle_image_errors
def prepare_image(image_data, max_size=2048, quality=85):
    """Downscale an image for upload.

    PNG and WEBP keep their format to preserve transparency, everything else
    is re-encoded as JPEG.

    Args:
        image_data (bytes): Raw image bytes
        max_size (int): Maximum width/height in pixels
        quality (int): Encoder quality for lossy formats

    Returns:
        tuple: (bytes, mime_type)

    Raises:
        CorruptedImageError: When the data is not a readable image
    """
    img = Image.open(io.BytesIO(image_data))
    img.load()
    original_format = img.format
    save_format = original_format if original_format in ('PNG', 'WEBP') else 'JPEG'

    new_size = _scaled_size(img.width, img.height, max_size)
    if new_size != (img.width, img.height):
        img = img.resize(new_size, Image.Resampling.LANCZOS)

    if save_format == 'JPEG' and img.mode in ('RGBA', 'P', 'LA'):
        img = img.convert('RGB')

    buffer = io.BytesIO()
    img.save(buffer, format=save_format, quality=quality)
    return buffer.getvalue(), f"image/{save_format.lower()}"
