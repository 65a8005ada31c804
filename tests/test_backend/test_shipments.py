"""Tests for customer shipments and the admin shipment desk."""
import json
from datetime import datetime
from unittest.mock import Mock
from backend.models import db, Package, Shipment, Transaction, Notification
from backend.services.dhl_service import DHLServiceError
from shared.enums import PackageStatus, ShipmentStatus, TransactionStatus
from tests.conftest import make_package


DESTINATION = {
    'full_name': 'Amina Customer',
    'street': '5 Boulevard Anfa',
    'city': 'Casablanca',
    'postal_code': '20000',
    'phone': '+212 600 000 000',
}

CUSTOMS = [{'description': 'Shoes', 'quantity': 2, 'value': 80, 'hs_code': '6403.99'}]


def create(client, headers, package_ids, **fields):
    payload = {
        'package_ids': package_ids,
        'destination': DESTINATION,
        'carrier': 'DHL',
        'customs_info': CUSTOMS,
    }
    payload.update(fields)
    return client.post('/api/shipments', headers=headers, json=payload)


def created_id(response):
    return json.loads(response.data)['data']['shipment']['id']


def test_create_shipment_prices_combined_parcel(client, app, customer, received_packages):
    response = create(client, customer['headers'], received_packages, insurance={'coverage': 500})
    assert response.status_code == 201
    body = json.loads(response.data)
    assert body['message'] == 'Shipment created successfully'

    shipment = body['data']['shipment']
    assert shipment['status'] == 'pending'
    assert shipment['tracking_number'].startswith('DHL')
    assert shipment['weight'] == {'total': 9.0, 'unit': 'kg'}
    assert shipment['dimensions'] == {'length': 30, 'width': 20, 'height': 30}
    assert shipment['cost'] == {'shipping': 540, 'insurance': 20, 'total': 560, 'currency': 'MAD'}
    assert shipment['insurance'] == {'coverage': 500, 'cost': 20}
    assert shipment['customs_info'][0]['hs_code'] == '6403.99'
    assert [e['status'] for e in shipment['tracking_events']] == ['pending']
    assert shipment['destination']['phone'] == '+212 600 000 000'

    with app.app_context():
        for package_id in received_packages:
            package = db.session.get(Package, package_id)
            assert package.status == PackageStatus.SHIPPED
            assert package.shipment_id == shipment['id']
        assert Transaction.query.one().amount == 560
        assert Notification.query.filter_by(title='Shipment Created').count() == 1


def test_create_requires_customs_and_valid_phone(client, customer, received_packages):
    response = create(client, customer['headers'], received_packages, customs_info=[])
    assert response.status_code == 400

    destination = dict(DESTINATION, phone='call me')
    response = create(client, customer['headers'], received_packages, destination=destination)
    assert response.status_code == 400
    errors = json.loads(response.data)['errors']
    assert errors[0]['field'] == 'destination.phone'


def test_create_rejects_unavailable_packages(client, app, customer, other_customer):
    delivered = make_package(app, customer['id'], tracking='DONE', status=PackageStatus.DELIVERED)
    response = create(client, customer['headers'], [delivered])
    assert response.status_code == 400
    assert json.loads(response.data)['error'] == 'Some packages are not available for shipping'

    foreign = make_package(app, other_customer['id'], tracking='FOREIGN')
    response = create(client, customer['headers'], [foreign])
    assert response.status_code == 403


def test_consolidated_packages_can_ship(client, app, customer):
    package_id = make_package(app, customer['id'], tracking='CONS-1', status=PackageStatus.CONSOLIDATED)
    response = create(client, customer['headers'], [package_id], carrier='Aramex')
    assert response.status_code == 201
    assert json.loads(response.data)['data']['shipment']['cost']['shipping'] == 100


def test_customer_can_only_cancel_pending(client, app, customer, received_packages):
    shipment_id = created_id(create(client, customer['headers'], received_packages))

    response = client.put(f'/api/shipments/{shipment_id}/status', headers=customer['headers'],
                          json={'status': 'delivered'})
    assert response.status_code == 403
    assert json.loads(response.data)['error'] == 'Customers can only cancel shipments'

    response = client.put(f'/api/shipments/{shipment_id}/status', headers=customer['headers'],
                          json={'status': 'cancelled'})
    assert response.status_code == 200

    with app.app_context():
        shipment = db.session.get(Shipment, shipment_id)
        assert shipment.status == ShipmentStatus.CANCELLED
        assert shipment.tracking_events[-1].status == 'cancelled'
        for package_id in received_packages:
            package = db.session.get(Package, package_id)
            assert package.status == PackageStatus.RECEIVED
            assert package.shipment_id is None
        assert Transaction.query.one().status == TransactionStatus.REFUNDED

    response = client.put(f'/api/shipments/{shipment_id}/status', headers=customer['headers'],
                          json={'status': 'cancelled'})
    assert response.status_code == 400


def test_shipment_stats(client, customer, received_packages):
    create(client, customer['headers'], received_packages[:1])
    response = client.get('/api/shipments/stats', headers=customer['headers'])
    assert response.status_code == 200
    stats = json.loads(response.data)['data']['stats']
    assert stats['total'] == 1


def test_admin_status_walk_delivers_packages(client, app, admin, customer, received_packages):
    shipment_id = created_id(create(client, customer['headers'], received_packages))

    for status in ('processing', 'in_transit', 'delivered'):
        response = client.put(f'/api/admin/shipments/{shipment_id}/status', headers=admin['headers'],
                              json={'status': status})
        assert response.status_code == 200

    shipment = json.loads(response.data)['data']['shipment']
    assert shipment['status'] == 'delivered'
    assert shipment['shipped_date'] is not None
    assert shipment['actual_delivery'] is not None
    assert [e['status'] for e in shipment['tracking_events']] == [
        'pending', 'processing', 'in_transit', 'delivered'
    ]
    assert shipment['tracking_events'][2]['description'] == 'Shipment is in transit to Morocco'

    with app.app_context():
        for package_id in received_packages:
            assert db.session.get(Package, package_id).status == PackageStatus.DELIVERED
        titles = {n.title for n in Notification.query.all()}
    assert {'Shipment Processing', 'Shipment In Transit', 'Shipment Delivered'} <= titles

    response = client.get('/api/admin/shipments/statistics', headers=admin['headers'])
    stats = json.loads(response.data)['data']['statistics']
    assert stats['by_status'] == {'delivered': 1}
    assert stats['delivered_today'] == 1
    assert stats['by_carrier'] == [{'carrier': 'DHL', 'count': 1}]


def test_admin_repeated_status_adds_no_event(client, admin, customer, received_packages):
    shipment_id = created_id(create(client, customer['headers'], received_packages))
    for _ in range(2):
        response = client.put(f'/api/admin/shipments/{shipment_id}/status', headers=admin['headers'],
                              json={'status': 'processing'})
    events = json.loads(response.data)['data']['shipment']['tracking_events']
    assert [e['status'] for e in events] == ['pending', 'processing']


def test_admin_tracking_event_and_bulk_update(client, app, admin, customer, received_packages):
    first = created_id(create(client, customer['headers'], received_packages[:1]))
    second = created_id(create(client, customer['headers'], received_packages[1:]))

    response = client.post(f'/api/admin/shipments/{first}/tracking', headers=admin['headers'],
                           json={'status': 'in_transit', 'location': 'JFK, US', 'description': 'Departed facility'})
    assert response.status_code == 200
    shipment = json.loads(response.data)['data']['shipment']
    assert shipment['status'] == 'in_transit'
    assert shipment['tracking_events'][-1]['location'] == 'JFK, US'

    response = client.post('/api/admin/shipments/bulk-update', headers=admin['headers'],
                           json={'shipment_ids': [first, second], 'status': 'in_transit'})
    assert json.loads(response.data)['data']['updated'] == 1


def test_admin_updates_shipment_details(client, admin, customer, received_packages):
    shipment_id = created_id(create(client, customer['headers'], received_packages))
    response = client.put(f'/api/admin/shipments/{shipment_id}', headers=admin['headers'],
                          json={'weight': 8.2, 'cost': {'shipping': 500, 'insurance': 0}, 'notes': 'Repacked'})
    assert response.status_code == 200
    shipment = json.loads(response.data)['data']['shipment']
    assert shipment['weight']['total'] == 8.2
    assert shipment['cost']['total'] == 500
    assert shipment['notes'] == 'Repacked'


def test_rates_fall_back_to_tariff(client, customer):
    response = client.post('/api/admin/shipments/get-rates', headers=customer['headers'],
                           json={'weight': 2, 'dimensions': {'length': 10, 'width': 10, 'height': 10}})
    assert response.status_code == 200
    data = json.loads(response.data)['data']
    assert data['source'] == 'tariff'
    prices = [rate['total_price'] for rate in data['rates']]
    assert prices == sorted(prices)
    assert data['rates'][0] == {
        'product_code': 'Aramex', 'product_name': 'Aramex International', 'total_price': 100,
        'currency': 'MAD', 'delivery_time': 5, 'service_level': 'express',
    }


def test_rates_use_dhl_when_configured(client, app, admin):
    dhl = Mock()
    dhl.is_configured.return_value = True
    dhl.get_rates.return_value = [{'product_code': 'P', 'total_price': 420.5, 'currency': 'USD'}]
    app.extensions['dhl'] = dhl

    response = client.post('/api/admin/shipments/get-rates', headers=admin['headers'],
                           json={'weight': 2, 'dimensions': {'length': 10, 'width': 10, 'height': 10}})
    data = json.loads(response.data)['data']
    assert data['source'] == 'dhl'
    assert data['rates'][0]['total_price'] == 420.5
    dhl.get_rates.assert_called_once_with(2.0, {'length': 10, 'width': 10, 'height': 10}, 'US', 'MA')

    dhl.get_rates.side_effect = DHLServiceError('bad account')
    response = client.post('/api/admin/shipments/get-rates', headers=admin['headers'],
                           json={'weight': 2, 'dimensions': {'length': 10, 'width': 10, 'height': 10}})
    assert response.status_code == 502


def test_create_label_without_dhl_credentials(client, admin, customer, received_packages):
    shipment_id = created_id(create(client, customer['headers'], received_packages))
    response = client.post(f'/api/admin/shipments/{shipment_id}/create-label', headers=admin['headers'])
    assert response.status_code == 503
    assert json.loads(response.data)['error'] == 'DHL service is not configured'


def test_create_label_stores_waybill(client, app, admin, customer, received_packages):
    shipment_id = created_id(create(client, customer['headers'], received_packages))
    dhl = Mock()
    dhl.create_shipment.return_value = {
        'tracking_number': '1234567890',
        'tracking_url': 'https://www.dhl.com/en/express/tracking.html?AWB=1234567890',
        'label_url': 'https://labels.example.com/1234567890.pdf',
        'waybill_url': None,
        'estimated_delivery': None,
    }
    app.extensions['dhl'] = dhl

    response = client.post(f'/api/admin/shipments/{shipment_id}/create-label', headers=admin['headers'])
    assert response.status_code == 200
    data = json.loads(response.data)['data']
    assert data['dhl']['tracking_number'] == '1234567890'
    shipment = data['shipment']
    assert shipment['tracking_number'] == '1234567890'
    assert shipment['status'] == 'processing'
    assert shipment['label_url'] == 'https://labels.example.com/1234567890.pdf'
    assert shipment['notes'].endswith('DHL Label: https://labels.example.com/1234567890.pdf')


def test_sync_tracking_adds_new_events(client, app, admin, customer, received_packages):
    shipment_id = created_id(create(client, customer['headers'], received_packages))
    dhl = Mock()
    dhl.track_shipment.return_value = {
        'tracking_number': 'X',
        'status': 'in_transit',
        'events': [
            {'status': 'in_transit', 'location': 'Cincinnati, US', 'description': 'Processed', 'timestamp': None},
            {'status': 'in_transit', 'location': 'Leipzig, DE', 'description': 'Departed', 'timestamp': None},
        ],
        'estimated_delivery': None,
    }
    app.extensions['dhl'] = dhl

    for _ in range(2):
        response = client.post(f'/api/admin/shipments/{shipment_id}/sync-tracking', headers=admin['headers'])
        assert response.status_code == 200

    with app.app_context():
        shipment = db.session.get(Shipment, shipment_id)
        assert shipment.status == ShipmentStatus.IN_TRANSIT
        assert len(shipment.tracking_events) == 3


def test_create_label_without_document_leaves_notes_alone(client, app, admin, customer, received_packages):
    shipment_id = created_id(create(client, customer['headers'], received_packages))
    client.put(f'/api/admin/shipments/{shipment_id}', headers=admin['headers'], json={'notes': 'Fragile'})
    dhl = Mock()
    dhl.create_shipment.return_value = {
        'tracking_number': '5550001112',
        'tracking_url': 'https://www.dhl.com/en/express/tracking.html?AWB=5550001112',
        'label_url': None,
        'waybill_url': None,
        'estimated_delivery': None,
    }
    app.extensions['dhl'] = dhl

    response = client.post(f'/api/admin/shipments/{shipment_id}/create-label', headers=admin['headers'])
    assert response.status_code == 200
    shipment = json.loads(response.data)['data']['shipment']
    assert shipment['tracking_number'] == '5550001112'
    assert shipment['label_url'] is None
    assert shipment['notes'] == 'Fragile'


def dhl_tracking(status, *events):
    return {'tracking_number': 'X', 'status': status, 'events': list(events), 'estimated_delivery': None}


def test_sync_tracking_keeps_checkpoint_times(client, app, admin, customer, received_packages):
    shipment_id = created_id(create(client, customer['headers'], received_packages))
    dhl = Mock()
    dhl.track_shipment.return_value = dhl_tracking(
        'in_transit',
        {'status': 'in_transit', 'location': 'Leipzig, DE', 'description': 'Arrived at hub',
         'timestamp': '2024-01-02T10:00:00'},
        {'status': 'in_transit', 'location': 'Casablanca, MA', 'description': 'Customs clearance',
         'timestamp': '2024-01-05T08:00:00'},
    )
    app.extensions['dhl'] = dhl

    response = client.post(f'/api/admin/shipments/{shipment_id}/sync-tracking', headers=admin['headers'])
    assert response.status_code == 200
    assert json.loads(response.data)['data']['new_events'] == 2

    with app.app_context():
        shipment = db.session.get(Shipment, shipment_id)
        by_place = {event.location: event.timestamp for event in shipment.tracking_events}
        assert by_place['Leipzig, DE'] == datetime(2024, 1, 2, 10, 0)
        assert by_place['Casablanca, MA'] == datetime(2024, 1, 5, 8, 0)
        assert shipment.shipped_date == datetime(2024, 1, 2, 10, 0)
        # ordered by checkpoint time, so the carrier history precedes the creation event
        assert shipment.tracking_events[0].location == 'Leipzig, DE'


def test_sync_tracking_converts_utc_checkpoints(client, app, admin, customer, received_packages):
    shipment_id = created_id(create(client, customer['headers'], received_packages))
    dhl = Mock()
    dhl.track_shipment.return_value = dhl_tracking(
        'delivered',
        {'status': 'delivered', 'location': 'Casablanca, MA', 'description': 'Delivered',
         'timestamp': '2024-03-01T14:30:00Z'},
    )
    app.extensions['dhl'] = dhl

    response = client.post(f'/api/admin/shipments/{shipment_id}/sync-tracking', headers=admin['headers'])
    assert response.status_code == 200

    with app.app_context():
        shipment = db.session.get(Shipment, shipment_id)
        assert shipment.status == ShipmentStatus.DELIVERED
        # Morocco is UTC+1 outside Ramadan
        assert shipment.actual_delivery == datetime(2024, 3, 1, 15, 30)


def test_sync_tracking_records_repeated_checkpoints(client, app, admin, customer, received_packages):
    shipment_id = created_id(create(client, customer['headers'], received_packages))
    first_pass = {'status': 'in_transit', 'location': 'Leipzig, DE', 'description': 'Processed at hub',
                  'timestamp': '2024-01-02T10:00:00'}
    second_pass = dict(first_pass, timestamp='2024-01-04T18:15:00')
    dhl = Mock()
    app.extensions['dhl'] = dhl

    dhl.track_shipment.return_value = dhl_tracking('in_transit', first_pass)
    response = client.post(f'/api/admin/shipments/{shipment_id}/sync-tracking', headers=admin['headers'])
    assert json.loads(response.data)['data']['new_events'] == 1

    # the parcel came back through the same hub; the first checkpoint is reported again
    dhl.track_shipment.return_value = dhl_tracking('in_transit', first_pass, second_pass)
    response = client.post(f'/api/admin/shipments/{shipment_id}/sync-tracking', headers=admin['headers'])
    assert response.status_code == 200
    assert json.loads(response.data)['data']['new_events'] == 1

    with app.app_context():
        shipment = db.session.get(Shipment, shipment_id)
        hub_times = sorted(e.timestamp for e in shipment.tracking_events if e.location == 'Leipzig, DE')
        assert hub_times == [datetime(2024, 1, 2, 10, 0), datetime(2024, 1, 4, 18, 15)]
