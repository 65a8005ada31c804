"""Photo / information request wizard with payment."""
from shared import pricing
from .base import Workflow, WorkflowError

PHOTO_OPTIONS = {
    'angles': 'Different Angles',
    'opened': 'Package Opened',
    'closeup': 'Close-up Details',
    'label': 'Shipping Label',
    'damage': 'Damage Check',
    'dimensions': 'With Ruler',
}

INFORMATION_OPTIONS = {
    'condition': 'Package Condition',
    'contents': 'Contents Check',
    'brand': 'Brand Verification',
    'quantity': 'Quantity Count',
    'accessories': 'Accessories Check',
    'working': 'Working Condition',
}

MAX_PHOTOS = 10


class PhotoRequestWorkflow(Workflow):
    STEPS = ('select_package', 'specify', 'review', 'payment', 'confirmation')
    LOCKED_STEPS = ('payment', 'confirmation')

    def __init__(self, api, packages):
        super().__init__(api)
        self.packages = packages
        self.package_id = None
        self.specific_requests = []
        self.custom_instructions = ''
        self.additional_photos = 1
        # Used when only custom instructions are given
        self.default_request_type = 'photos'
        self.photo_request = None
        self.paid = False

    def available_packages(self):
        return [p for p in self.packages if p.get('status') == 'received']

    def toggle_request(self, option):
        if option not in PHOTO_OPTIONS and option not in INFORMATION_OPTIONS:
            raise ValueError(f"Unknown request option: {option}")
        if option in self.specific_requests:
            self.specific_requests.remove(option)
        else:
            self.specific_requests.append(option)

    def set_photo_count(self, count):
        self.additional_photos = max(1, min(int(count), MAX_PHOTOS))

    @property
    def request_type(self):
        wants_photos = any(r in PHOTO_OPTIONS for r in self.specific_requests)
        wants_info = any(r in INFORMATION_OPTIONS for r in self.specific_requests)
        if wants_photos and wants_info:
            return 'both'
        if wants_info:
            return 'information'
        if wants_photos:
            return 'photos'
        return self.default_request_type

    def validate_step(self, step):
        if step == 'select_package' and self.package_id is None:
            return 'Please select a package'
        if step == 'specify' and not self.specific_requests and not self.custom_instructions.strip():
            return 'Please choose what you would like us to check'
        if step == 'review' and self.photo_request is None:
            return 'Please submit your request'
        if step == 'payment' and not self.paid:
            return 'Please confirm payment to continue'
        return None

    def summary(self):
        request_type = self.request_type
        cost = pricing.photo_request_cost(
            request_type, self.additional_photos if request_type in ('photos', 'both') else 0
        )
        return {'request_type': request_type, **cost}

    def payload(self):
        request_type = self.request_type
        return {
            'package_id': self.package_id,
            'request_type': request_type,
            'additional_photos': self.additional_photos if request_type in ('photos', 'both') else 0,
            'specific_requests': list(self.specific_requests),
            'custom_instructions': self.custom_instructions,
        }

    def create_request(self):
        if self.current_step != 'review':
            raise WorkflowError('Please review your request before submitting')
        self.photo_request = self.api.post('/photo-requests', json=self.payload())['photo_request']
        self.logger.info(f"Created photo request {self.photo_request['id']}")
        self.go_to('payment')
        return self.photo_request

    def confirm_payment(self, payment_method='card'):
        if self.photo_request is None:
            raise WorkflowError('Please submit your request')
        self.photo_request = self.api.post(
            f"/photo-requests/{self.photo_request['id']}/confirm-payment",
            json={'payment_method': payment_method},
        )['photo_request']
        self.paid = True
        self.go_to('confirmation')
        return self.photo_request

    def submit(self):
        """Create the request (once) and pay for it by card."""
        self.submitting = True
        try:
            if self.photo_request is None:
                self.create_request()
            return self.confirm_payment('card')
        finally:
            self.submitting = False
