"""Tests for photo/information requests."""
import json
from backend.models import PhotoRequest, Transaction, Notification
from shared.enums import PhotoRequestStatus, TransactionStatus, PaymentMethod
from tests.conftest import make_package


def create(client, headers, package_id, **fields):
    payload = {'package_id': package_id, 'request_type': 'both', 'additional_photos': 3,
               'specific_requests': ['  check the label  ', '', 'open the box']}
    payload.update(fields)
    return client.post('/api/photo-requests', headers=headers, json=payload)


def test_create_photo_request_prices_both(client, app, customer, received_packages):
    response = create(client, customer['headers'], received_packages[0])
    assert response.status_code == 201
    photo_request = json.loads(response.data)['data']['photo_request']
    assert photo_request['status'] == 'pending'
    assert photo_request['payment_status'] == 'unpaid'
    assert photo_request['specific_requests'] == ['check the label', 'open the box']
    assert photo_request['package_tracking_number'] == 'TRK0001'
    assert photo_request['cost'] == {'photos': 60, 'information': 10, 'total': 70, 'currency': 'MAD'}

    with app.app_context():
        transaction = Transaction.query.one()
        assert transaction.amount == 70
        assert transaction.related_model == 'PhotoRequest'
        assert Notification.query.filter_by(title='Photo Request Received').count() == 1


def test_information_only_is_flat_fee(client, customer, received_packages):
    response = create(client, customer['headers'], received_packages[0],
                      request_type='information', additional_photos=5)
    cost = json.loads(response.data)['data']['photo_request']['cost']
    assert cost['total'] == 10
    assert cost['photos'] == 0


def test_photo_count_is_bounded(client, customer, received_packages):
    response = create(client, customer['headers'], received_packages[0], additional_photos=11)
    assert response.status_code == 400


def test_cannot_request_photos_of_other_customers_package(client, app, customer, other_customer):
    package_id = make_package(app, other_customer['id'], tracking='NOT-MINE')
    response = create(client, customer['headers'], package_id)
    assert response.status_code == 403
    assert json.loads(response.data)['error'] == 'Access denied to package'

    response = create(client, customer['headers'], 9999)
    assert response.status_code == 404


def test_update_reprices_pending_request(client, app, customer, received_packages):
    request_id = json.loads(create(client, customer['headers'], received_packages[0]).data)['data']['photo_request']['id']
    response = client.put(f'/api/photo-requests/{request_id}', headers=customer['headers'],
                          json={'request_type': 'photos', 'additional_photos': 1})
    assert response.status_code == 200
    assert json.loads(response.data)['data']['photo_request']['cost']['total'] == 20
    with app.app_context():
        assert Transaction.query.one().amount == 20


def test_confirm_payment(client, app, customer, received_packages):
    request_id = json.loads(create(client, customer['headers'], received_packages[0]).data)['data']['photo_request']['id']
    response = client.post(f'/api/photo-requests/{request_id}/confirm-payment', headers=customer['headers'],
                           json={'payment_method': 'paypal'})
    assert response.status_code == 200
    assert json.loads(response.data)['data']['photo_request']['payment_status'] == 'paid'

    with app.app_context():
        transaction = Transaction.query.one()
        assert transaction.status == TransactionStatus.COMPLETED
        assert transaction.payment_method == PaymentMethod.PAYPAL
        assert Notification.query.filter_by(title='Payment Received').count() == 1

    response = client.post(f'/api/photo-requests/{request_id}/confirm-payment', headers=customer['headers'],
                           json={})
    assert response.status_code == 400
    assert json.loads(response.data)['error'] == 'Photo request is already paid'


def test_admin_fulfils_request(client, app, admin, customer, received_packages):
    request_id = json.loads(create(client, customer['headers'], received_packages[0]).data)['data']['photo_request']['id']

    response = client.put(f'/api/admin/photo-requests/{request_id}/status', headers=admin['headers'],
                          json={'status': 'processing'})
    assert response.status_code == 200

    response = client.post(f'/api/admin/photo-requests/{request_id}/photos', headers=admin['headers'],
                           json={'photos': [{'url': 'https://res.cloudinary.com/demo/label.jpg',
                                             'description': 'Shipping label'}]})
    assert response.status_code == 200
    assert len(json.loads(response.data)['data']['photo_request']['photos']) == 1

    response = client.post(f'/api/admin/photo-requests/{request_id}/report', headers=admin['headers'],
                           json={'information_report': 'Box intact, contents match the invoice.'})
    assert response.status_code == 200
    photo_request = json.loads(response.data)['data']['photo_request']
    assert photo_request['status'] == 'completed'
    assert photo_request['completed_at'] is not None

    with app.app_context():
        assert PhotoRequest.query.one().status == PhotoRequestStatus.COMPLETED
        titles = [n.title for n in Notification.query.order_by(Notification.id).all()]
    assert titles[-3:] == ['Photo Request Being Processed', 'New Photos Added', 'Package Information Report Ready']


def test_admin_status_validation_and_statistics(client, admin, customer, received_packages):
    request_id = json.loads(create(client, customer['headers'], received_packages[0]).data)['data']['photo_request']['id']
    response = client.put(f'/api/admin/photo-requests/{request_id}/status', headers=admin['headers'],
                          json={'status': 'lost'})
    assert response.status_code == 400
    assert json.loads(response.data)['error'] == 'Invalid status'

    client.put(f'/api/admin/photo-requests/{request_id}/status', headers=admin['headers'],
               json={'status': 'completed'})
    response = client.get('/api/admin/photo-requests/statistics', headers=admin['headers'])
    stats = json.loads(response.data)['data']['statistics']
    assert stats['total'] == 1
    assert stats['by_status'] == {'completed': 1}
    assert stats['avg_photos_requested'] == 3
    assert stats['revenue'] == {'total': 70.0, 'completed_requests': 1}
