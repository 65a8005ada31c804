"""Tests for the client HTTP layer."""
import pytest
import requests
from unittest.mock import Mock, patch

from src.shipper_app.services.api_service import APIService, ApiError, NETWORK_ERROR_MESSAGE


def fake_response(status_code, body):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = body
    return response


@pytest.fixture
def api():
    return APIService('http://localhost:1337/api/', max_retries=3, retry_delay=0.5)


def test_base_url_trailing_slash_is_stripped(api):
    assert api.base_url == 'http://localhost:1337/api'


@patch('src.shipper_app.services.api_service.requests.request')
def test_get_unwraps_envelope(mock_request, api):
    mock_request.return_value = fake_response(200, {
        'success': True, 'message': 'Loaded', 'data': {'packages': [{'id': 1}]}
    })

    data = api.get('/packages', params={'page': 1})

    assert data == {'packages': [{'id': 1}]}
    assert api.last_message == 'Loaded'
    mock_request.assert_called_once_with('GET', 'http://localhost:1337/api/packages',
                                         params={'page': 1}, timeout=30.0)


@patch('src.shipper_app.services.api_service.requests.request')
def test_error_envelope_raises_api_error(mock_request, api):
    mock_request.return_value = fake_response(400, {'success': False, 'error': 'Package not found'})

    with pytest.raises(ApiError) as exc_info:
        api.post('/consolidations', json={})

    assert exc_info.value.status == 400
    assert exc_info.value.message == 'Package not found'
    assert exc_info.value.data == {'success': False, 'error': 'Package not found'}


@patch('src.shipper_app.services.api_service.requests.request')
def test_non_json_error_uses_status(mock_request, api):
    response = Mock(status_code=404)
    response.json.side_effect = ValueError('no json')
    mock_request.return_value = response

    with pytest.raises(ApiError) as exc_info:
        api.get('/nowhere')
    assert exc_info.value.message == 'Request failed with status 404'


@patch('src.shipper_app.services.api_service.time.sleep')
@patch('src.shipper_app.services.api_service.requests.request')
def test_network_failure_becomes_status_zero(mock_request, mock_sleep, api):
    mock_request.side_effect = requests.exceptions.ConnectionError('refused')

    with pytest.raises(ApiError) as exc_info:
        api.get('/packages')

    assert exc_info.value.status == 0
    assert exc_info.value.message == NETWORK_ERROR_MESSAGE
    assert mock_request.call_count == 3
    assert [c.args[0] for c in mock_sleep.call_args_list] == [0.5, 1.0]


@patch('src.shipper_app.services.api_service.time.sleep')
@patch('src.shipper_app.services.api_service.requests.request')
def test_server_errors_are_retried(mock_request, mock_sleep, api):
    mock_request.side_effect = [
        fake_response(503, {'success': False, 'error': 'Unavailable'}),
        fake_response(200, {'success': True, 'data': {'ok': True}}),
    ]

    assert api.get('/health') == {'ok': True}
    assert mock_request.call_count == 2
    mock_sleep.assert_called_once_with(0.5)


@patch('src.shipper_app.services.api_service.time.sleep')
@patch('src.shipper_app.services.api_service.requests.request')
def test_client_errors_are_not_retried(mock_request, mock_sleep, api):
    mock_request.return_value = fake_response(403, {'success': False, 'error': 'Access denied'})

    with pytest.raises(ApiError):
        api.get('/packages/3')
    assert mock_request.call_count == 1
    mock_sleep.assert_not_called()


@patch('src.shipper_app.services.api_service.requests.request')
def test_auth_headers_merged_and_cleared_on_401(mock_request):
    auth = Mock()
    auth.get_headers.return_value = {'Authorization': 'Bearer abc'}
    api = APIService('http://localhost:1337/api', auth_service=auth)
    mock_request.return_value = fake_response(401, {'success': False, 'error': 'Invalid or expired token'})

    with pytest.raises(ApiError) as exc_info:
        api.get('/auth/me', headers={'X-Trace': '1'})

    assert exc_info.value.status == 401
    sent_headers = mock_request.call_args.kwargs['headers']
    assert sent_headers == {'X-Trace': '1', 'Authorization': 'Bearer abc'}
    auth.clear.assert_called_once()


def test_from_config_reads_settings():
    config = Mock(api_base_url='https://api.fastshipper.ma/api', api_timeout=10.0,
                  api_max_retries=5, api_retry_delay=2.0)
    api = APIService.from_config(config)
    assert api.base_url == 'https://api.fastshipper.ma/api'
    assert api.timeout == 10.0
    assert api.max_retries == 5
    assert api.retry_delay == 2.0
