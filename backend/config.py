"""Default configuration and warehouse constants for the backend."""
import os

DEFAULT_DATABASE_URI = 'sqlite:///fast_shipper.db'
DEFAULT_DHL_API_URL = 'https://express.api.dhl.com/mydhlapi/test'

# Address customers give to US retailers; the suite number identifies the customer
WAREHOUSE_US_ADDRESS = {
    'street': '123 Warehouse Drive',
    'city': 'Wilmington, DE 19801',
    'country': 'United States',
    'phone': '+1 (555) 123-4567',
}

# Shipper block sent to DHL when issuing labels
DHL_SHIPPER = {
    'postal_code': '10001',
    'city': 'New York',
    'country_code': 'US',
    'address_line1': '123 Warehouse St',
    'email': 'warehouse@fastshipper.com',
    'phone': '+1234567890',
    'company_name': 'Fast Shipper Inc',
    'full_name': 'Fast Shipper Warehouse',
}

DHL_RATE_RECEIVER = {
    'postal_code': '20000',
    'city': 'Casablanca',
}

WAREHOUSE_LOCATION = 'Warehouse - USA'


def env_config():
    """Settings read from the environment, applied before instance config."""
    return {
        'SQLALCHEMY_DATABASE_URI': os.getenv('DATABASE_URL', DEFAULT_DATABASE_URI),
        'DHL_API_KEY': os.getenv('DHL_API_KEY', ''),
        'DHL_API_SECRET': os.getenv('DHL_API_SECRET', ''),
        'DHL_ACCOUNT_NUMBER': os.getenv('DHL_ACCOUNT_NUMBER', ''),
        'DHL_API_URL': os.getenv('DHL_API_URL', DEFAULT_DHL_API_URL),
        'DHL_TIMEOUT': float(os.getenv('DHL_TIMEOUT', '30')),
        'LOG_LEVEL': os.getenv('LOG_LEVEL', 'INFO'),
        'LOG_DIR': os.getenv('LOG_DIR', ''),
    }


def us_address_for(user):
    """The warehouse address a customer should use at checkout."""
    return {
        'name': user.name,
        'suite': f"Suite {user.suite_number}",
        **WAREHOUSE_US_ADDRESS,
    }
