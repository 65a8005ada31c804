import json
import logging
from pathlib import Path
from appdirs import user_data_dir
from .api_service import APIService, ApiError

ROLE_USER = 'user'
ROLE_ADMIN = 'admin'


class AuthService:
    """Holds the bearer token for a customer or admin session and persists it between runs."""

    def __init__(self, api_base_url, data_dir=None, timeout=30.0, max_retries=3, retry_delay=1.0):
        self.token = None
        self.user = None
        self.role = None
        # Warehouse address customers give to US retailers; None for admins
        self.us_address = None
        self.logger = logging.getLogger(self.__class__.__name__)
        self.data_dir = Path(data_dir) if data_dir else Path(user_data_dir("fast_shipper", "fastshipper"))
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.token_file = self.data_dir / "auth_token.json"
        self.api = APIService(api_base_url, timeout=timeout, max_retries=max_retries,
                              retry_delay=retry_delay, auth_service=self)
        self._load_token()

    @classmethod
    def from_config(cls, config, data_dir=None):
        return cls(config.api_base_url, data_dir=data_dir, timeout=config.api_timeout,
                   max_retries=config.api_max_retries, retry_delay=config.api_retry_delay)

    def _load_token(self):
        if not self.token_file.exists():
            return
        try:
            with open(self.token_file, 'r') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            self.logger.warning(f"Ignoring unreadable token file {self.token_file}: {e}")
            return
        self.token = data.get('token')
        self.user = data.get('user')
        self.role = data.get('role', ROLE_USER)
        self.us_address = data.get('us_address')

    def _save_token(self):
        with open(self.token_file, 'w') as f:
            json.dump({'token': self.token, 'user': self.user, 'role': self.role,
                       'us_address': self.us_address}, f)

    def _start_session(self, token, principal, role, us_address=None):
        self.token = token
        self.user = principal
        self.role = role
        self.us_address = us_address
        self._save_token()

    def login(self, email, password):
        """Customer login. Returns (True, None) or (False, error message)."""
        try:
            data = self.api.post('/auth/login', json={'email': email, 'password': password})
        except ApiError as e:
            return False, e.message
        self._start_session(data['token'], data['user'], ROLE_USER, data.get('us_address'))
        self.logger.info(f"Logged in as {email}")
        return True, None

    def register(self, name, email, password, phone, city, street='', postal_code=''):
        """Create a customer account and start a session for it."""
        try:
            data = self.api.post('/auth/register', json={
                'name': name,
                'email': email,
                'password': password,
                'phone': phone,
                'city': city,
                'street': street,
                'postal_code': postal_code,
            })
        except ApiError as e:
            return False, e.message
        self._start_session(data['token'], data['user'], ROLE_USER, data.get('us_address'))
        return True, None

    def admin_login(self, email, password):
        try:
            data = self.api.post('/admin/auth/login', json={'email': email, 'password': password})
        except ApiError as e:
            return False, e.message
        self._start_session(data['token'], data['admin'], ROLE_ADMIN)
        self.logger.info(f"Logged in as admin {email}")
        return True, None

    def logout(self):
        """End the session on the server (best effort) and forget the token."""
        if self.token:
            endpoint = '/admin/auth/logout' if self.is_admin() else '/auth/logout'
            try:
                self.api.post(endpoint)
            except ApiError as e:
                self.logger.warning(f"Server logout failed: {e.message}")
        self.clear()

    def me(self):
        """Refresh the stored profile from the server."""
        if self.is_admin():
            self.user = self.api.get('/admin/auth/me')['admin']
        else:
            data = self.api.get('/auth/me')
            self.user = data['user']
            self.us_address = data.get('us_address')
        self._save_token()
        return self.user

    def clear(self):
        self.token = None
        self.user = None
        self.role = None
        self.us_address = None
        if self.token_file.exists():
            self.token_file.unlink()

    def get_headers(self):
        if self.token:
            return {'Authorization': f'Bearer {self.token}'}
        return {}

    def is_authenticated(self):
        return self.token is not None

    def is_admin(self):
        return self.is_authenticated() and self.role == ROLE_ADMIN
