"""Admin shipment handlers, including DHL label creation."""
import logging
import re

LABEL_NOTE_PATTERN = re.compile(r'DHL Label:\s*(\S+)')


def label_url_from_notes(notes):
    """Pull the label URL out of shipment notes (``DHL Label: <url>``), or None."""
    if not notes:
        return None
    matches = LABEL_NOTE_PATTERN.findall(notes)
    return matches[-1] if matches else None


class AdminShipmentHandler:
    """Drives the back-office shipment list and detail pages."""

    def __init__(self, api):
        self.api = api
        self.shipments = []
        self.logger = logging.getLogger(self.__class__.__name__)

    def load(self, status=None, search=None, user_id=None, page=1):
        params = {'page': page}
        if status:
            params['status'] = status
        if search:
            params['search'] = search
        if user_id:
            params['user_id'] = user_id
        self.shipments = self.api.get('/admin/shipments', params=params)['shipments']
        return self.shipments

    def load_statistics(self):
        return self.api.get('/admin/shipments/statistics')['statistics']

    def get(self, shipment_id):
        return self.api.get(f'/admin/shipments/{shipment_id}')['shipment']

    def update_status(self, shipment_id, status, notes=None):
        payload = {'status': status}
        if notes:
            payload['notes'] = notes
        return self.api.put(f'/admin/shipments/{shipment_id}/status', json=payload)['shipment']

    def add_tracking(self, shipment_id, status, location, description):
        return self.api.post(f'/admin/shipments/{shipment_id}/tracking', json={
            'status': status,
            'location': location,
            'description': description,
        })['shipment']

    def create_label(self, shipment_id):
        """Book the shipment with DHL; returns ``{shipment, dhl}``."""
        result = self.api.post(f'/admin/shipments/{shipment_id}/create-label')
        self.logger.info(f"DHL label created for shipment {shipment_id}: {result['dhl']['tracking_number']}")
        return result

    def sync_tracking(self, shipment_id):
        return self.api.post(f'/admin/shipments/{shipment_id}/sync-tracking')

    def label_url(self, shipment):
        return shipment.get('label_url') or label_url_from_notes(shipment.get('notes'))
