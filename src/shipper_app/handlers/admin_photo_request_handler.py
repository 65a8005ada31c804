"""Admin photo request handlers."""
import logging


class AdminPhotoRequestHandler:
    """Drives the back-office photo request page."""

    def __init__(self, api, image_service=None):
        self.api = api
        self.image_service = image_service
        self.photo_requests = []
        self.logger = logging.getLogger(self.__class__.__name__)

    def load(self, status=None, search=None, page=1):
        params = {'page': page}
        if status:
            params['status'] = status
        if search:
            params['search'] = search
        self.photo_requests = self.api.get('/admin/photo-requests', params=params)['photo_requests']
        return self.photo_requests

    def load_statistics(self):
        return self.api.get('/admin/photo-requests/statistics')['statistics']

    def update_status(self, request_id, status, notes=None):
        payload = {'status': status}
        if notes:
            payload['notes'] = notes
        return self.api.put(f'/admin/photo-requests/{request_id}/status', json=payload)['photo_request']

    def upload_photos(self, request_id, photos=None, paths=None):
        """Attach photos given as ``{'url', 'description'}`` dicts and/or local files."""
        photos = list(photos or [])
        if paths:
            if self.image_service is None:
                raise ValueError('An image service is required to upload local files')
            photos.extend({'url': url, 'description': ''} for url in self.image_service.upload_many(paths))
        if not photos:
            raise ValueError('Please select at least one photo')
        photo_request = self.api.post(f'/admin/photo-requests/{request_id}/photos',
                                      json={'photos': photos})['photo_request']
        self.logger.info(f"Added {len(photos)} photos to photo request {request_id}")
        return photo_request

    def submit_report(self, request_id, report):
        if not report or not report.strip():
            raise ValueError('Please write the information report')
        return self.api.post(f'/admin/photo-requests/{request_id}/report',
                             json={'information_report': report})['photo_request']
