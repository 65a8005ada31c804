"""Tests for repack requests on stored packages."""
import json
from backend.models import db, Package, Transaction, Notification
from shared.enums import PackageStatus, TransactionType, TransactionStatus, NotificationType
from tests.conftest import make_package


def repack(client, headers, *items):
    return client.post('/api/packages/repack', headers=headers, json={'packages': list(items)})


def test_repack_bills_each_package(client, app, customer):
    bulky = make_package(app, customer['id'], tracking='BULKY-1', length=50, width=40, height=30)
    small = make_package(app, customer['id'], tracking='SMALL-1')

    response = repack(
        client, customer['headers'],
        {'package_id': bulky, 'add_protection': True, 'special_instructions': 'Keep the manual'},
        {'package_id': small},
    )
    assert response.status_code == 201
    body = json.loads(response.data)
    assert body['message'] == 'Repack request created successfully'

    data = body['data']['repack']
    assert data['request_id'].startswith('RPK-')
    assert len(data['request_id']) == 10
    assert data['cost'] == {'per_package': 50, 'total': 100, 'currency': 'MAD'}

    items = {item['package_id']: item for item in data['packages']}
    assert items[bulky]['estimated_dimensions'] == {'length': 35, 'width': 28, 'height': 18}
    assert items[bulky]['estimated_savings'] == 800
    assert items[bulky]['options'] == {
        'remove_retail_box': True, 'add_protection': True, 'minimize_size': True,
        'special_instructions': 'Keep the manual',
    }
    assert items[small]['estimated_savings'] == 30
    assert data['estimated_savings'] == 830

    with app.app_context():
        transactions = Transaction.query.order_by(Transaction.related_id).all()
        assert [t.type for t in transactions] == [TransactionType.REPACK] * 2
        assert all(t.amount == 50 and t.status == TransactionStatus.PENDING for t in transactions)
        assert {t.related_id for t in transactions} == {bulky, small}

        package = db.session.get(Package, bulky)
        assert package.status == PackageStatus.RECEIVED
        assert package.notes.endswith(
            f"Repack {data['request_id']}: remove retail box, add protection, minimize size - Keep the manual"
        )

        notification = Notification.query.one()
        assert notification.type == NotificationType.REPACK_REQUEST
        assert data['request_id'] in notification.message


def test_single_package_notification_links_to_package(client, app, customer, received_packages):
    response = repack(client, customer['headers'], {'package_id': received_packages[0], 'minimize_size': False})
    assert response.status_code == 201

    with app.app_context():
        notification = Notification.query.one()
        assert notification.action_url == f"/packages/{received_packages[0]}"
        assert db.session.get(Package, received_packages[0]).notes.endswith(': remove retail box')


def test_repack_requires_a_package(client, customer):
    response = client.post('/api/packages/repack', headers=customer['headers'], json={'packages': []})
    assert response.status_code == 400


def test_repack_rejects_missing_foreign_and_unavailable_packages(client, app, customer, other_customer,
                                                                received_packages):
    response = repack(client, customer['headers'], {'package_id': 9999})
    assert response.status_code == 404

    response = repack(client, other_customer['headers'], {'package_id': received_packages[0]})
    assert response.status_code == 403

    shipped = make_package(app, customer['id'], tracking='GONE-1', status=PackageStatus.SHIPPED)
    response = repack(client, customer['headers'], {'package_id': shipped})
    assert response.status_code == 400
    assert json.loads(response.data)['error'] == 'Only packages in storage can be repacked'

    with app.app_context():
        assert Transaction.query.count() == 0


def test_repack_twice_is_refused_while_pending(client, app, customer, received_packages):
    assert repack(client, customer['headers'], {'package_id': received_packages[0]}).status_code == 201

    response = repack(client, customer['headers'], {'package_id': received_packages[0]})
    assert response.status_code == 400
    assert json.loads(response.data)['error'] == 'Package TRK0001 already has a repack request pending'


def test_repack_requires_login(client, received_packages):
    response = repack(client, {}, {'package_id': received_packages[0]})
    assert response.status_code == 401
