"""Configuration Manager for the Fast Shipper client."""
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigManager(BaseSettings):
    """Manages client configuration settings using Pydantic BaseSettings."""

    model_config = SettingsConfigDict(env_prefix='SHIPPER_', case_sensitive=False)

    # API settings
    api_base_url: str = 'http://localhost:1337/api'
    api_timeout: float = 30.0  # seconds
    api_max_retries: int = 3
    api_retry_delay: float = 1.0  # seconds, doubled on each retry

    # Cloudinary settings (unsigned uploads)
    cloudinary_cloud_name: str = ''
    cloudinary_upload_preset: str = 'fast-shipper-preset'
    cloudinary_folder: str = 'fast-shipper'

    # Image processing settings
    image_max_size: int = 2048  # Maximum width/height in pixels
    image_quality: int = 85  # JPEG quality (1-100)

    def get(self, key, default=None):
        """Get a configuration value."""
        return getattr(self, key, default)

    def set(self, key, value):
        """Set a configuration value."""
        setattr(self, key, value)

    def get_all(self):
        """Get all configuration values as dictionary."""
        return self.model_dump()
