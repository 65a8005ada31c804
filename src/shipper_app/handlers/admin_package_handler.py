"""Admin package registration handlers."""
import logging


class AdminPackageHandler:
    """Registers arrivals at the warehouse and updates packages in bulk."""

    def __init__(self, api, image_service=None):
        self.api = api
        self.image_service = image_service
        self.logger = logging.getLogger(self.__class__.__name__)

    def load(self, status=None, search=None, storage_warning=False, page=1):
        params = {'page': page}
        if status:
            params['status'] = status
        if search:
            params['search'] = search
        if storage_warning:
            params['storage_warning'] = 'true'
        return self.api.get('/admin/packages', params=params)['packages']

    def register(self, suite_number, tracking_number, retailer, weight, dimensions,
                 weight_unit='kg', estimated_value=None, description='', notes='', photo_paths=None):
        """Register a package against a customer's suite number.

        ``dimensions`` is ``{'length', 'width', 'height'}`` with an optional ``unit``.
        """
        if not suite_number or not suite_number.strip():
            raise ValueError('Please enter a suite number')
        photos = []
        if photo_paths:
            if self.image_service is None:
                raise ValueError('An image service is required to upload local files')
            photos = [{'url': url, 'type': 'basic'} for url in self.image_service.upload_many(photo_paths)]

        payload = {
            'suite_number': suite_number.strip().upper(),
            'tracking_number': tracking_number,
            'retailer': retailer,
            'weight': {'value': weight, 'unit': weight_unit},
            'dimensions': {'unit': 'cm', **dimensions},
            'description': description,
            'notes': notes,
            'photos': photos,
        }
        if estimated_value is not None:
            payload['estimated_value'] = {'amount': estimated_value, 'currency': 'USD'}
        package = self.api.post('/admin/packages/register', json=payload)['package']
        self.logger.info(f"Registered {tracking_number} for suite {payload['suite_number']}")
        return package

    def bulk_update(self, package_ids, status, notes=None):
        payload = {'package_ids': list(package_ids), 'status': status}
        if notes:
            payload['notes'] = notes
        return self.api.post('/admin/packages/bulk-update', json=payload)['updated']
