"""API service for HTTP client abstraction."""
import requests
import time
import logging

NETWORK_ERROR_MESSAGE = 'Network error. Please check your internet connection.'
RETRYABLE_CLIENT_STATUSES = (408, 429)


class ApiError(Exception):
    """Failed API call.

    ``status`` is the HTTP status code, or 0 when the server could not be reached.
    """

    def __init__(self, status, message, data=None):
        super().__init__(message)
        self.status = status
        self.message = message
        self.data = data

    def __repr__(self):
        return f"ApiError(status={self.status}, message={self.message!r})"


class APIService:
    """HTTP client for the backend API with envelope unwrapping and retry logic.

    ``get``/``post``/``put``/``delete`` return the ``data`` member of the
    ``{success, message, data}`` envelope and raise ApiError otherwise.
    """

    def __init__(self, base_url='http://localhost:1337/api', timeout=30.0, max_retries=3,
                 retry_delay=1.0, auth_service=None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay
        self.auth_service = auth_service
        self.last_message = None
        self.logger = logging.getLogger(self.__class__.__name__)

    @classmethod
    def from_config(cls, config, auth_service=None):
        return cls(
            base_url=config.api_base_url,
            timeout=config.api_timeout,
            max_retries=config.api_max_retries,
            retry_delay=config.api_retry_delay,
            auth_service=auth_service,
        )

    def _get_auth_headers(self):
        if self.auth_service:
            return self.auth_service.get_headers()
        return {}

    def _merge_headers(self, kwargs):
        """Merge auth headers with any provided headers in kwargs."""
        auth_headers = self._get_auth_headers()
        if auth_headers:
            existing_headers = kwargs.get('headers') or {}
            kwargs['headers'] = {**existing_headers, **auth_headers}
        return kwargs

    def _should_retry(self, response):
        if response.status_code >= 500:
            return True
        return response.status_code in RETRYABLE_CLIENT_STATUSES

    def _make_request(self, method, url, **kwargs):
        """Send a request, retrying connection errors, 5xx, 408 and 429 with backoff."""
        kwargs = self._merge_headers(kwargs)
        kwargs.setdefault('timeout', self.timeout)

        for attempt in range(self.max_retries):
            last_attempt = attempt == self.max_retries - 1
            try:
                response = requests.request(method, url, **kwargs)
            except requests.exceptions.RequestException as e:
                if last_attempt:
                    self.logger.error(f"Request failed after {self.max_retries} attempts: {method} {url}: {e}")
                    raise
                self.logger.warning(f"Request exception (attempt {attempt + 1}/{self.max_retries}): {e}")
            else:
                if last_attempt or not self._should_retry(response):
                    return response
                self.logger.warning(
                    f"Request failed (attempt {attempt + 1}/{self.max_retries}): {response.status_code}"
                )
            time.sleep(self.retry_delay * (2 ** attempt))

    def _unwrap(self, response):
        try:
            body = response.json()
        except ValueError:
            body = None
        envelope = body if isinstance(body, dict) else {}

        if response.status_code == 401 and self.auth_service:
            self.logger.info("Session rejected by the server, clearing stored token")
            self.auth_service.clear()

        if response.status_code >= 400 or envelope.get('success') is False:
            message = (envelope.get('error') or envelope.get('message')
                       or f"Request failed with status {response.status_code}")
            raise ApiError(response.status_code, message, body)

        self.last_message = envelope.get('message')
        if 'data' in envelope:
            return envelope['data']
        return body

    def request(self, method, endpoint, **kwargs):
        url = f"{self.base_url}{endpoint}"
        try:
            response = self._make_request(method, url, **kwargs)
        except requests.exceptions.RequestException as e:
            raise ApiError(0, NETWORK_ERROR_MESSAGE) from e
        return self._unwrap(response)

    def get(self, endpoint, params=None, **kwargs):
        return self.request('GET', endpoint, params=params, **kwargs)

    def post(self, endpoint, json=None, **kwargs):
        return self.request('POST', endpoint, json=json, **kwargs)

    def put(self, endpoint, json=None, **kwargs):
        return self.request('PUT', endpoint, json=json, **kwargs)

    def delete(self, endpoint, **kwargs):
        return self.request('DELETE', endpoint, **kwargs)
