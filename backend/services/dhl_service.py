"""DHL Express (MyDHL API) client for rates, labels and tracking."""

import logging
from datetime import datetime, timezone
import requests
from requests.auth import HTTPBasicAuth
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
    after_log
)
from ..config import DHL_SHIPPER, DHL_RATE_RECEIVER, DEFAULT_DHL_API_URL


logger = logging.getLogger(__name__)

TRACKING_URL = 'https://www.dhl.com/en/express/tracking.html?AWB={}'

PRODUCT_CODES = {
    'express': 'P',
    'standard': 'Y',
    'priority': 'D',
}

SERVICE_NAMES = {
    'P': 'Express Worldwide',
    'Y': 'Economy Select',
    'D': 'Express 12:00',
    'T': 'Express 9:00',
    'N': 'Domestic Express',
}

# DHL checkpoint codes -> shipment status
STATUS_CODES = {
    'PU': 'pending',
    'PL': 'processing',
    'RCS': 'in_transit',
    'WC': 'in_transit',
    'OFD': 'in_transit',
    'OK': 'delivered',
    'DF': 'delivered',
    'DD': 'delivered',
}

DEFAULT_HS_CODE = '9999.99.99'


class DHLServiceError(Exception):
    """Raised when the DHL API rejects a call or cannot be reached."""

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.status_code = status_code


class DHLNotConfiguredError(DHLServiceError):
    """Raised when credentials are missing."""


class _TransientDHLError(DHLServiceError):
    """5xx/429 from DHL, safe to retry for idempotent calls."""


def map_status(code):
    """Translate a DHL status code into an internal shipment status."""
    return STATUS_CODES.get((code or '').upper(), 'in_transit')


def product_code(service_level):
    return PRODUCT_CODES.get((service_level or '').lower(), 'P')


def service_name(code):
    return SERVICE_NAMES.get(code, 'Express')


def tracking_url(tracking_number):
    return TRACKING_URL.format(tracking_number)


class DHLService:
    """Thin client over the MyDHL REST API using HTTP basic auth."""

    def __init__(self, api_key='', api_secret='', account_number='', base_url=DEFAULT_DHL_API_URL,
                 timeout=30.0, session=None):
        self.api_key = api_key
        self.api_secret = api_secret
        self.account_number = account_number
        self.base_url = (base_url or DEFAULT_DHL_API_URL).rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        self.logger = logging.getLogger(self.__class__.__name__)

        if self.is_configured():
            self.logger.info("DHL service configured")
        else:
            self.logger.warning("DHL service not configured - missing credentials")

    @classmethod
    def from_config(cls, config):
        """Build a client from a Flask config mapping."""
        return cls(
            api_key=config.get('DHL_API_KEY', ''),
            api_secret=config.get('DHL_API_SECRET', ''),
            account_number=config.get('DHL_ACCOUNT_NUMBER', ''),
            base_url=config.get('DHL_API_URL', DEFAULT_DHL_API_URL),
            timeout=config.get('DHL_TIMEOUT', 30.0),
        )

    def is_configured(self):
        return bool(self.api_key and self.api_secret and self.account_number)

    def _require_configured(self):
        if not self.is_configured():
            raise DHLNotConfiguredError('DHL service is not configured')

    def _send(self, method, path, **kwargs):
        """Issue a request and return the decoded JSON body.

        Raises:
            DHLServiceError: On connection failures or non-2xx responses
        """
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(
                method, url,
                auth=HTTPBasicAuth(self.api_key, self.api_secret),
                headers={'Content-Type': 'application/json', 'Accept': 'application/json'},
                timeout=self.timeout,
                **kwargs
            )
        except (requests.ConnectionError, requests.Timeout) as e:
            raise _TransientDHLError(f"DHL API unreachable: {e}") from e

        if response.status_code >= 500 or response.status_code == 429:
            raise _TransientDHLError(self._error_message(response), response.status_code)
        if response.status_code >= 400:
            raise DHLServiceError(self._error_message(response), response.status_code)
        return response.json()

    @staticmethod
    def _error_message(response):
        try:
            body = response.json()
        except ValueError:
            return f"DHL API error {response.status_code}"
        return body.get('detail') or body.get('message') or body.get('title') or f"DHL API error {response.status_code}"

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(_TransientDHLError),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        after=after_log(logger, logging.DEBUG),
        reraise=True
    )
    def _get(self, path, params=None):
        return self._send('GET', path, params=params)

    def _post(self, path, payload):
        # Not retried: creating a shipment twice would issue two labels
        return self._send('POST', path, json=payload)

    def get_rates(self, weight, dimensions, origin_country='US', destination_country='MA',
                  declared_value=100):
        """Quote DHL products for a single parcel.

        Args:
            weight (float): kg
            dimensions (dict): length/width/height in cm
            origin_country (str): ISO country code of the shipper
            destination_country (str): ISO country code of the receiver
            declared_value (float): USD customs value

        Returns:
            list[dict]: One entry per product with price, currency and transit days
        """
        self._require_configured()
        payload = {
            'customerDetails': {
                'shipperDetails': {
                    'postalCode': DHL_SHIPPER['postal_code'],
                    'cityName': DHL_SHIPPER['city'],
                    'countryCode': origin_country,
                },
                'receiverDetails': {
                    'postalCode': DHL_RATE_RECEIVER['postal_code'],
                    'cityName': DHL_RATE_RECEIVER['city'],
                    'countryCode': destination_country,
                },
            },
            'accounts': [{'typeCode': 'shipper', 'number': self.account_number}],
            'productCode': 'P',
            'localProductCode': 'P',
            'valueAddedServices': [{'serviceCode': 'II'}],
            'payerCountryCode': origin_country,
            'plannedShippingDateAndTime': datetime.now(timezone.utc).isoformat(),
            'unitOfMeasurement': 'metric',
            'isCustomsDeclarable': True,
            'monetaryAmount': [{'typeCode': 'declaredValue', 'value': declared_value, 'currency': 'USD'}],
            'packages': [{
                'weight': weight,
                'dimensions': {
                    'length': dimensions['length'],
                    'width': dimensions['width'],
                    'height': dimensions['height'],
                },
            }],
        }
        data = self._post('/rates', payload)
        rates = []
        for product in data.get('products', []):
            prices = product.get('totalPrice') or [{}]
            code = product.get('productCode')
            rates.append({
                'product_code': code,
                'product_name': product.get('productName') or service_name(code),
                'total_price': prices[0].get('price'),
                'currency': prices[0].get('priceCurrency'),
                'delivery_time': (product.get('deliveryCapabilities') or {}).get('totalTransitDays'),
                'service_level': service_name(code),
            })
        self.logger.info(f"DHL returned {len(rates)} rates for {weight} kg")
        return rates

    def build_shipment_payload(self, shipment, include_label=True):
        """MyDHL shipment request body for a persisted Shipment."""
        code = product_code(shipment.service_level)
        items = list(shipment.customs_items)
        per_item_weight = round(shipment.total_weight / len(items), 3) if items else shipment.total_weight
        return {
            'plannedShippingDateAndTime': datetime.now(timezone.utc).isoformat(),
            'pickup': {'isRequested': False},
            'productCode': code,
            'localProductCode': code,
            'accounts': [{'typeCode': 'shipper', 'number': self.account_number}],
            'customerDetails': {
                'shipperDetails': {
                    'postalAddress': {
                        'postalCode': DHL_SHIPPER['postal_code'],
                        'cityName': DHL_SHIPPER['city'],
                        'countryCode': DHL_SHIPPER['country_code'],
                        'addressLine1': DHL_SHIPPER['address_line1'],
                    },
                    'contactInformation': {
                        'email': DHL_SHIPPER['email'],
                        'phone': DHL_SHIPPER['phone'],
                        'companyName': DHL_SHIPPER['company_name'],
                        'fullName': DHL_SHIPPER['full_name'],
                    },
                },
                'receiverDetails': {
                    'postalAddress': {
                        'postalCode': shipment.dest_postal_code,
                        'cityName': shipment.dest_city,
                        'countryCode': 'MA',
                        'addressLine1': shipment.dest_street,
                    },
                    'contactInformation': {
                        'email': shipment.user.email if shipment.user else '',
                        'phone': shipment.dest_phone,
                        'companyName': '',
                        'fullName': shipment.dest_full_name,
                    },
                },
            },
            'content': {
                'packages': [{
                    'weight': shipment.total_weight,
                    'dimensions': {
                        'length': shipment.length,
                        'width': shipment.width,
                        'height': shipment.height,
                    },
                    'customerReferences': [{'value': str(shipment.id), 'typeCode': 'CU'}],
                }],
                'isCustomsDeclarable': True,
                'declaredValue': shipment.insurance_coverage or 100,
                'declaredValueCurrency': 'USD',
                'exportDeclaration': {
                    'lineItems': [
                        {
                            'number': index,
                            'description': item.description,
                            'price': item.value,
                            'quantity': {'value': item.quantity, 'unitOfMeasurement': 'PCS'},
                            'commodityCodes': [{'typeCode': 'outbound', 'value': item.hs_code or DEFAULT_HS_CODE}],
                            'exportReasonType': 'permanent',
                            'manufacturerCountry': item.country_of_origin,
                            'weight': {'netValue': per_item_weight, 'grossValue': per_item_weight},
                        }
                        for index, item in enumerate(items, start=1)
                    ],
                    'invoice': {
                        'number': f"INV-{shipment.id}",
                        'date': datetime.now(timezone.utc).date().isoformat(),
                    },
                },
                'description': 'Personal Items',
                'incoterm': 'DAP',
            },
            'outputImageProperties': {
                'imageOptions': [
                    {'typeCode': 'label', 'templateName': 'ECOM26_84_001', 'isRequested': include_label},
                    {'typeCode': 'waybillDoc', 'templateName': 'ARCH_8X4', 'isRequested': True},
                ],
            },
        }

    def create_shipment(self, shipment, include_label=True):
        """Book the shipment with DHL and fetch its label.

        Returns:
            dict: tracking_number, tracking_url, label_url, waybill_url, estimated_delivery
        """
        self._require_configured()
        data = self._post('/shipments', self.build_shipment_payload(shipment, include_label))

        documents = data.get('documents') or []
        packages = data.get('packages') or []
        if packages and packages[0].get('documents'):
            documents = packages[0]['documents']

        def _document(type_code):
            for doc in documents:
                if doc.get('typeCode') == type_code:
                    content = doc.get('url') or doc.get('content')
                    if content and not content.startswith('http'):
                        return f"data:application/pdf;base64,{content}"
                    return content
            return None

        number = data.get('shipmentTrackingNumber')
        if not number:
            raise DHLServiceError('DHL response did not include a tracking number')

        self.logger.info(f"DHL shipment created for shipment {shipment.id}: {number}")
        return {
            'tracking_number': number,
            'tracking_url': tracking_url(number),
            'label_url': _document('label'),
            'waybill_url': _document('waybillDoc'),
            'estimated_delivery': (data.get('estimatedDeliveryDate') or {}).get('deliveryDateTime'),
        }

    def track_shipment(self, tracking_number):
        """Fetch DHL checkpoints for a tracking number."""
        self._require_configured()
        data = self._get('/track/shipments', params={'trackingNumber': tracking_number})
        shipments = data.get('shipments') or []
        if not shipments:
            raise DHLServiceError(f"No DHL tracking data for {tracking_number}", 404)
        shipment = shipments[0]

        events = []
        for event in shipment.get('events', []):
            address = (event.get('location') or {}).get('address') or {}
            events.append({
                'status': map_status(event.get('statusCode')),
                'location': f"{address.get('addressLocality', '')}, {address.get('countryCode', '')}",
                'description': event.get('description', ''),
                'timestamp': event.get('timestamp'),
            })

        return {
            'tracking_number': shipment.get('id', tracking_number),
            'status': map_status((shipment.get('status') or {}).get('statusCode')),
            'events': events,
            'estimated_delivery': shipment.get('estimatedDeliveryDate'),
        }


def get_dhl_service():
    """The DHL client bound to the current Flask app, created on first use."""
    from flask import current_app
    service = current_app.extensions.get('dhl')
    if service is None:
        service = DHLService.from_config(current_app.config)
        current_app.extensions['dhl'] = service
    return service
