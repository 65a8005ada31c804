"""Consolidation wizard: pick packages, set preferences, review, submit."""
from shared import pricing
from .base import Workflow, WorkflowError, package_measurements

MIN_PACKAGES = 2


class ConsolidationWorkflow(Workflow):
    STEPS = ('select', 'preferences', 'review', 'confirmation')
    LOCKED_STEPS = ('confirmation',)

    def __init__(self, api, packages):
        super().__init__(api)
        self.packages = packages
        self.selected_ids = []
        self.remove_packaging = True
        self.add_protection = False
        self.request_unpacked_photos = False
        self.special_instructions = ''
        self.consolidation = None

    def available_packages(self):
        return [p for p in self.packages if p.get('status') == 'received']

    def toggle(self, package_id):
        if package_id in self.selected_ids:
            self.selected_ids.remove(package_id)
        else:
            self.selected_ids.append(package_id)

    def selected_packages(self):
        return [p for p in self.packages if p.get('id') in self.selected_ids]

    def validate_step(self, step):
        if step == 'select':
            selected = self.selected_packages()
            if len(selected) < MIN_PACKAGES:
                return 'Please select at least 2 packages to consolidate'
            if any(p.get('status') != 'received' for p in selected):
                return 'Only packages in storage can be consolidated'
        if step == 'review' and self.consolidation is None:
            return 'Please submit your consolidation request'
        return None

    def summary(self):
        """Weight, estimated box, fee and savings for the current selection."""
        measured = [package_measurements(p) for p in self.selected_packages()]
        total_weight = round(sum(m['weight'] for m in measured), 2)
        total_volume = sum(m['length'] * m['width'] * m['height'] for m in measured)
        count = len(measured)
        fee = pricing.consolidation_fee_quote(count, self.request_unpacked_photos, self.add_protection)
        return {
            'package_count': count,
            'total_weight': total_weight,
            'estimated_dimensions': pricing.estimate_consolidated_dimensions(total_volume),
            'fee': fee,
            'savings': pricing.consolidation_savings(count, fee),
            'currency': pricing.CURRENCY,
        }

    def payload(self):
        return {
            'package_ids': list(self.selected_ids),
            'preferences': {
                'remove_packaging': self.remove_packaging,
                'add_protection': self.add_protection,
                'request_unpacked_photos': self.request_unpacked_photos,
            },
            'special_instructions': self.special_instructions,
        }

    def submit(self):
        """Create the consolidation and move to the confirmation step."""
        if self.current_step != 'review':
            raise WorkflowError('Please review your consolidation before submitting')
        self.submitting = True
        try:
            self.consolidation = self.api.post('/consolidations', json=self.payload())['consolidation']
        finally:
            self.submitting = False
        self.logger.info(f"Created consolidation {self.consolidation['id']}")
        self.go_to('confirmation')
        return self.consolidation
