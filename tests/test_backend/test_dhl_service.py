"""Tests for the MyDHL API client."""
import pytest
from types import SimpleNamespace
from unittest.mock import Mock, patch
import requests
from backend.services.dhl_service import (
    DHLService, DHLServiceError, DHLNotConfiguredError, map_status, product_code, tracking_url
)


def response(status_code=200, body=None):
    resp = Mock()
    resp.status_code = status_code
    resp.json.return_value = body if body is not None else {}
    return resp


@pytest.fixture
def session():
    return Mock()


@pytest.fixture
def dhl(session):
    return DHLService(api_key='key', api_secret='secret', account_number='123456789',
                      base_url='https://dhl.test/api/', session=session)


def parcel():
    items = [SimpleNamespace(description='Shoes', value=80, quantity=2, hs_code='', country_of_origin='US')]
    return SimpleNamespace(
        id=7, service_level='standard', total_weight=4.0, length=30, width=20, height=10,
        customs_items=items, dest_postal_code='20000', dest_city='Casablanca', dest_street='5 Bd Anfa',
        dest_phone='+212600000000', dest_full_name='Amina Customer', insurance_coverage=None,
        user=SimpleNamespace(email='amina@example.com'),
    )


def test_status_and_product_mapping():
    assert map_status('ok') == 'delivered'
    assert map_status('PL') == 'processing'
    assert map_status('mystery') == 'in_transit'
    assert map_status(None) == 'in_transit'
    assert product_code('Standard') == 'Y'
    assert product_code(None) == 'P'
    assert tracking_url('123').endswith('AWB=123')


def test_not_configured_raises():
    dhl = DHLService.from_config({'DHL_API_KEY': '', 'DHL_API_SECRET': '', 'DHL_ACCOUNT_NUMBER': ''})
    assert not dhl.is_configured()
    with pytest.raises(DHLNotConfiguredError):
        dhl.get_rates(2, {'length': 10, 'width': 10, 'height': 10})


def test_get_rates_parses_products(dhl, session):
    session.request.return_value = response(body={'products': [{
        'productCode': 'P',
        'productName': 'EXPRESS WORLDWIDE',
        'totalPrice': [{'price': 88.4, 'priceCurrency': 'USD'}],
        'deliveryCapabilities': {'totalTransitDays': 3},
    }]})

    rates = dhl.get_rates(2.5, {'length': 30, 'width': 20, 'height': 10})

    assert rates == [{
        'product_code': 'P', 'product_name': 'EXPRESS WORLDWIDE', 'total_price': 88.4,
        'currency': 'USD', 'delivery_time': 3, 'service_level': 'Express Worldwide',
    }]
    method, url = session.request.call_args[0]
    assert (method, url) == ('POST', 'https://dhl.test/api/rates')
    payload = session.request.call_args[1]['json']
    assert payload['packages'][0]['weight'] == 2.5
    assert payload['accounts'][0]['number'] == '123456789'


def test_client_errors_are_not_retried(dhl, session):
    session.request.return_value = response(400, {'detail': 'Invalid postal code'})
    with pytest.raises(DHLServiceError) as exc:
        dhl.get_rates(2, {'length': 10, 'width': 10, 'height': 10})
    assert str(exc.value) == 'Invalid postal code'
    assert exc.value.status_code == 400
    assert session.request.call_count == 1


def test_create_shipment_builds_label(dhl, session):
    session.request.return_value = response(body={
        'shipmentTrackingNumber': '9876543210',
        'documents': [{'typeCode': 'label', 'content': 'JVBERi0='}],
    })

    result = dhl.create_shipment(parcel())

    assert result['tracking_number'] == '9876543210'
    assert result['label_url'] == 'data:application/pdf;base64,JVBERi0='
    assert result['waybill_url'] is None
    payload = session.request.call_args[1]['json']
    assert payload['productCode'] == 'Y'
    line = payload['content']['exportDeclaration']['lineItems'][0]
    assert line['commodityCodes'][0]['value'] == '9999.99.99'
    assert line['weight']['netValue'] == 4.0


def test_create_shipment_requires_tracking_number(dhl, session):
    session.request.return_value = response(body={'documents': []})
    with pytest.raises(DHLServiceError):
        dhl.create_shipment(parcel())


def test_track_shipment_maps_events(dhl, session):
    session.request.return_value = response(body={'shipments': [{
        'id': '9876543210',
        'status': {'statusCode': 'transit'},
        'events': [{
            'statusCode': 'WC',
            'description': 'With delivery courier',
            'timestamp': '2026-03-02T10:30:00',
            'location': {'address': {'addressLocality': 'Casablanca', 'countryCode': 'MA'}},
        }],
    }]})

    tracking = dhl.track_shipment('9876543210')

    assert tracking['status'] == 'in_transit'
    assert tracking['events'] == [{
        'status': 'in_transit', 'location': 'Casablanca, MA',
        'description': 'With delivery courier', 'timestamp': '2026-03-02T10:30:00',
    }]
    assert session.request.call_args[1]['params'] == {'trackingNumber': '9876543210'}


def test_tracking_retries_server_errors(dhl, session):
    session.request.side_effect = [
        requests.ConnectionError('reset'),
        response(503, {'title': 'Service Unavailable'}),
        response(body={'shipments': []}),
    ]
    with patch.object(DHLService._get.retry, 'sleep'):
        with pytest.raises(DHLServiceError) as exc:
            dhl.track_shipment('000')
    assert exc.value.status_code == 404
    assert session.request.call_count == 3
