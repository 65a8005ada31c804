"""Admin consolidation queue handlers."""
import logging


class AdminConsolidationHandler:
    """Drives the back-office consolidation page."""

    def __init__(self, api, image_service=None):
        self.api = api
        self.image_service = image_service
        self.consolidations = []
        self.statistics = {}
        self.logger = logging.getLogger(self.__class__.__name__)

    def load(self, status=None, search=None, page=1):
        params = {'page': page}
        if status:
            params['status'] = status
        if search:
            params['search'] = search
        self.consolidations = self.api.get('/admin/consolidations', params=params)['consolidations']
        return self.consolidations

    def load_statistics(self):
        self.statistics = self.api.get('/admin/consolidations/statistics')['statistics']
        return self.statistics

    def filter(self, status):
        """Filter the loaded list locally, without another round trip."""
        if not status or status == 'all':
            return list(self.consolidations)
        return [c for c in self.consolidations if c.get('status') == status]

    def get(self, consolidation_id):
        return self.api.get(f'/admin/consolidations/{consolidation_id}')['consolidation']

    def update_status(self, consolidation_id, status, notes=None):
        payload = {'status': status}
        if notes:
            payload['notes'] = notes
        consolidation = self.api.put(f'/admin/consolidations/{consolidation_id}/status',
                                     json=payload)['consolidation']
        self.logger.info(f"Consolidation {consolidation_id} set to {status}")
        return consolidation

    def upload_photos(self, consolidation_id, urls=None, paths=None, photo_type='after'):
        """Attach photos by URL, uploading local files through the image service first."""
        urls = list(urls or [])
        if paths:
            if self.image_service is None:
                raise ValueError('An image service is required to upload local files')
            urls.extend(self.image_service.upload_many(paths))
        if not urls:
            raise ValueError('Please select at least one photo')
        return self.api.post(
            f'/admin/consolidations/{consolidation_id}/photos',
            json={'photos': [{'url': url, 'type': photo_type} for url in urls]},
        )['consolidation']

    def complete(self, consolidation_id, weight, length, width, height, unit='cm', notes=''):
        consolidation = self.api.post(f'/admin/consolidations/{consolidation_id}/complete', json={
            'weight': weight,
            'dimensions': {'length': length, 'width': width, 'height': height, 'unit': unit},
            'notes': notes,
        })['consolidation']
        self.logger.info(f"Completed consolidation {consolidation_id}")
        return consolidation
