"""Image service: prepares photos and uploads them to Cloudinary."""
import logging
import os
import requests
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
)

from shared.utils import prepare_image

logger = logging.getLogger(__name__)

CLOUDINARY_UPLOAD_URL = 'https://api.cloudinary.com/v1_1/{cloud_name}/image/upload'


class ImageUploadError(Exception):
    """Raised when Cloudinary rejects an upload or is not configured."""
    pass


class ImageService:
    """Unsigned Cloudinary uploads for package, consolidation and request photos."""

    def __init__(self, cloud_name, upload_preset, folder='', max_size=2048, quality=85, timeout=60):
        self.cloud_name = cloud_name
        self.upload_preset = upload_preset
        self.folder = folder
        self.max_size = max_size
        self.quality = quality
        self.timeout = timeout
        self.logger = logging.getLogger(self.__class__.__name__)

    @classmethod
    def from_config(cls, config):
        return cls(
            cloud_name=config.cloudinary_cloud_name,
            upload_preset=config.cloudinary_upload_preset,
            folder=config.cloudinary_folder,
            max_size=config.image_max_size,
            quality=config.image_quality,
        )

    def is_configured(self):
        return bool(self.cloud_name and self.upload_preset)

    @property
    def upload_url(self):
        return CLOUDINARY_UPLOAD_URL.format(cloud_name=self.cloud_name)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type((requests.exceptions.ConnectionError, requests.exceptions.Timeout)),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    def _post(self, filename, payload, mime_type):
        data = {'upload_preset': self.upload_preset}
        if self.folder:
            data['folder'] = self.folder
        return requests.post(
            self.upload_url,
            data=data,
            files={'file': (filename, payload, mime_type)},
            timeout=self.timeout,
        )

    def upload_bytes(self, image_data, filename='photo.jpg'):
        """Downscale and upload image bytes, returning the hosted ``secure_url``.

        Raises:
            CorruptedImageError: The data is not a readable image
            ImageUploadError: Cloudinary is not configured or refused the file
        """
        if not self.is_configured():
            raise ImageUploadError('Cloudinary is not configured')

        payload, mime_type = prepare_image(image_data, max_size=self.max_size, quality=self.quality)
        response = self._post(filename, payload, mime_type)
        if response.status_code >= 400:
            try:
                detail = response.json().get('error', {}).get('message')
            except ValueError:
                detail = None
            raise ImageUploadError(detail or f"Upload failed with status {response.status_code}")

        url = response.json()['secure_url']
        self.logger.info(f"Uploaded {filename} ({len(payload)} bytes) to {url}")
        return url

    def upload_file(self, path):
        with open(path, 'rb') as f:
            image_data = f.read()
        return self.upload_bytes(image_data, filename=os.path.basename(path))

    def upload_many(self, paths):
        return [self.upload_file(path) for path in paths]
