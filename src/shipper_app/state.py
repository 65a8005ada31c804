"""Client-side state for the customer dashboard.

Stores wrap the API for one resource and keep the last fetched result
together with ``loading`` and ``error`` flags. Reads record failures in
``error``; mutations record them and re-raise so the caller can react.
Every successful mutation re-fetches the affected list.
"""
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any
import logging

from .services.api_service import ApiError

logger = logging.getLogger(__name__)


@dataclass
class BaseStore:
    api: Any = None
    loading: bool = False
    error: Optional[str] = None

    @contextmanager
    def _busy(self, reraise=False):
        self.loading = True
        self.error = None
        try:
            yield
        except ApiError as e:
            self.error = e.message
            logger.warning(f"{self.__class__.__name__} request failed: {e.message}")
            if reraise:
                raise
        finally:
            self.loading = False


@dataclass
class PackageStore(BaseStore):
    packages: List[dict] = field(default_factory=list)
    pagination: Dict[str, int] = field(default_factory=dict)
    stats: Dict[str, Any] = field(default_factory=dict)

    def fetch(self, status=None, search=None, page=1, limit=20):
        params = {'page': page, 'limit': limit}
        if status:
            params['status'] = status
        if search:
            params['search'] = search
        with self._busy():
            data = self.api.get('/packages', params=params)
            self.packages = data['packages']
            self.pagination = data.get('pagination', {})
        return self.packages

    def fetch_stats(self):
        with self._busy():
            self.stats = self.api.get('/packages/stats')['stats']
        return self.stats

    def received(self):
        """Packages waiting in the warehouse, i.e. eligible for consolidation or shipping."""
        return [p for p in self.packages if p.get('status') == 'received']

    def by_id(self, package_id):
        return next((p for p in self.packages if p.get('id') == package_id), None)


@dataclass
class ShipmentStore(BaseStore):
    shipments: List[dict] = field(default_factory=list)
    pagination: Dict[str, int] = field(default_factory=dict)
    stats: Dict[str, Any] = field(default_factory=dict)

    def fetch(self, status=None, page=1, limit=20):
        params = {'page': page, 'limit': limit}
        if status:
            params['status'] = status
        with self._busy():
            data = self.api.get('/shipments', params=params)
            self.shipments = data['shipments']
            self.pagination = data.get('pagination', {})
        return self.shipments

    def fetch_stats(self):
        with self._busy():
            self.stats = self.api.get('/shipments/stats')['stats']
        return self.stats

    def create(self, payload):
        with self._busy(reraise=True):
            shipment = self.api.post('/shipments', json=payload)['shipment']
        self.fetch()
        return shipment


@dataclass
class NotificationStore(BaseStore):
    notifications: List[dict] = field(default_factory=list)
    unread: int = 0

    def fetch(self, unread_only=False, page=1, limit=20):
        params = {'page': page, 'limit': limit}
        if unread_only:
            params['unread_only'] = 'true'
        with self._busy():
            data = self.api.get('/notifications', params=params)
            self.notifications = data['notifications']
            self.unread = self.api.get('/notifications/stats')['stats']['unread']
        return self.notifications

    def mark_read(self, notification_id):
        with self._busy(reraise=True):
            self.api.put(f'/notifications/{notification_id}/read')
        self.fetch()

    def mark_all_read(self):
        with self._busy(reraise=True):
            updated = self.api.put('/notifications/read-all')['updated']
        self.fetch()
        return updated

    def unread_count(self):
        return self.unread


@dataclass
class DashboardStore(BaseStore):
    """Everything the customer dashboard shows, loaded in one go."""
    packages: PackageStore = None
    shipments: ShipmentStore = None

    def __post_init__(self):
        if self.packages is None:
            self.packages = PackageStore(api=self.api)
        if self.shipments is None:
            self.shipments = ShipmentStore(api=self.api)

    def load(self):
        self.loading = True
        self.error = None
        try:
            self.packages.fetch()
            self.packages.fetch_stats()
            self.shipments.fetch()
            self.shipments.fetch_stats()
        finally:
            self.loading = False
        self.error = self.packages.error or self.shipments.error
        return {
            'packages': self.packages.packages,
            'shipments': self.shipments.shipments,
            'package_stats': self.packages.stats,
            'shipment_stats': self.shipments.stats,
        }


@dataclass
class SessionState:
    """Who is signed in and the warehouse address they ship to."""
    user: Optional[dict] = None
    role: Optional[str] = None
    us_address: Optional[dict] = None

    @classmethod
    def from_auth(cls, auth_service):
        return cls(user=auth_service.user, role=auth_service.role,
                   us_address=auth_service.us_address)

    @property
    def suite_number(self):
        return (self.user or {}).get('suite_number')

    def reset(self):
        self.user = None
        self.role = None
        self.us_address = None
