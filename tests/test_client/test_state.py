"""Tests for the dashboard stores."""
import pytest
from unittest.mock import Mock

from src.shipper_app.services.api_service import ApiError
from src.shipper_app.state import (
    PackageStore,
    ShipmentStore,
    NotificationStore,
    DashboardStore,
    SessionState,
)


def routed_api(routes):
    """Mock API whose ``get`` answers by endpoint."""
    api = Mock()
    api.get.side_effect = lambda endpoint, params=None: routes[endpoint]
    return api


def test_package_store_fetch_and_helpers():
    api = routed_api({'/packages': {
        'packages': [{'id': 1, 'status': 'received'}, {'id': 2, 'status': 'shipped'}],
        'pagination': {'page': 1, 'limit': 20, 'total': 2, 'pages': 1},
    }})
    store = PackageStore(api=api)

    store.fetch(status='received')

    assert api.get.call_args.kwargs['params'] == {'page': 1, 'limit': 20, 'status': 'received'}
    assert store.pagination['total'] == 2
    assert [p['id'] for p in store.received()] == [1]
    assert store.by_id(2)['status'] == 'shipped'
    assert store.by_id(99) is None
    assert not store.loading


def test_read_failure_is_recorded():
    api = Mock()
    api.get.side_effect = ApiError(0, 'Network error. Please check your internet connection.')
    store = PackageStore(api=api)

    assert store.fetch() == []
    assert store.error == 'Network error. Please check your internet connection.'
    assert not store.loading


def test_mutation_failure_is_reraised():
    api = Mock()
    api.post.side_effect = ApiError(400, 'Please add at least one customs item')
    store = ShipmentStore(api=api)

    with pytest.raises(ApiError):
        store.create({'package_ids': [1]})
    assert store.error == 'Please add at least one customs item'
    api.get.assert_not_called()


def test_shipment_create_refetches():
    api = routed_api({'/shipments': {'shipments': [{'id': 5}], 'pagination': {}}})
    api.post.return_value = {'shipment': {'id': 5}}
    store = ShipmentStore(api=api)

    assert store.create({'package_ids': [1]}) == {'id': 5}
    assert store.shipments == [{'id': 5}]


def test_notification_store_tracks_unread():
    api = routed_api({
        '/notifications': {'notifications': [{'id': 1, 'is_read': False}]},
        '/notifications/stats': {'stats': {'total': 3, 'unread': 1}},
    })
    api.put.return_value = {'updated': 1}
    store = NotificationStore(api=api)

    store.fetch(unread_only=True)
    assert store.unread_count() == 1
    assert api.get.call_args_list[0].kwargs['params']['unread_only'] == 'true'

    assert store.mark_all_read() == 1
    api.put.assert_called_once_with('/notifications/read-all')


def test_dashboard_loads_everything():
    api = routed_api({
        '/packages': {'packages': [{'id': 1}], 'pagination': {}},
        '/packages/stats': {'stats': {'total': 1}},
        '/shipments': {'shipments': [], 'pagination': {}},
        '/shipments/stats': {'stats': {'total': 0}},
    })
    dashboard = DashboardStore(api=api)

    result = dashboard.load()

    assert result['packages'] == [{'id': 1}]
    assert result['package_stats'] == {'total': 1}
    assert result['shipment_stats'] == {'total': 0}
    assert dashboard.error is None


def test_session_state_from_auth():
    auth = Mock(user={'id': 1, 'suite_number': 'MA-1234'}, role='user',
                us_address={'suite': 'Suite MA-1234', 'street': '123 Warehouse Drive'})
    session = SessionState.from_auth(auth)
    assert session.suite_number == 'MA-1234'
    assert session.us_address['suite'] == 'Suite MA-1234'
    session.reset()
    assert session.user is None
    assert session.suite_number is None
