"""Repack wizard: pick stored packages, choose how to repack each, review, submit."""
from shared import pricing
from .base import Workflow, WorkflowError, package_measurements

DEFAULT_OPTIONS = {
    'remove_retail_box': True,
    'add_protection': False,
    'minimize_size': True,
    'special_instructions': '',
}


class RepackWorkflow(Workflow):
    STEPS = ('select', 'options', 'review', 'confirmation')
    LOCKED_STEPS = ('confirmation',)

    def __init__(self, api, packages):
        super().__init__(api)
        self.packages = packages
        self.selected_ids = []
        self.options = {}
        self.repack = None

    def available_packages(self):
        return [p for p in self.packages if p.get('status') == 'received']

    def toggle(self, package_id):
        if package_id in self.selected_ids:
            self.selected_ids.remove(package_id)
        else:
            self.selected_ids.append(package_id)
            self.options.setdefault(package_id, dict(DEFAULT_OPTIONS))

    def set_option(self, package_id, name, value):
        if name not in DEFAULT_OPTIONS:
            raise KeyError(name)
        if package_id not in self.selected_ids:
            raise WorkflowError('Select the package before choosing how to repack it')
        self.options[package_id][name] = value

    def selected_packages(self):
        return [p for p in self.packages if p.get('id') in self.selected_ids]

    def validate_step(self, step):
        if step == 'select':
            selected = self.selected_packages()
            if not selected:
                return 'Please select at least one package to repack'
            if any(p.get('status') != 'received' for p in selected):
                return 'Only packages in storage can be repacked'
        if step == 'review' and self.repack is None:
            return 'Please submit your repack request'
        return None

    def package_estimate(self, package):
        """Current and expected box, dimensional weights and savings for one package."""
        measured = package_measurements(package)
        dims = {key: measured[key] for key in ('length', 'width', 'height')}
        new_dims = pricing.repacked_dimensions(**dims)
        return {
            'package_id': package['id'],
            'current_dimensions': dims,
            'estimated_dimensions': new_dims,
            'current_dim_weight': round(pricing.dimensional_weight(**dims), 1),
            'estimated_dim_weight': round(pricing.dimensional_weight(**new_dims), 1),
            'savings': pricing.repack_savings(**dims),
        }

    def summary(self):
        estimates = [self.package_estimate(p) for p in self.selected_packages()]
        return {
            'package_count': len(estimates),
            'packages': estimates,
            'total_cost': pricing.repack_fee(len(estimates)),
            'total_savings': sum(e['savings'] for e in estimates),
            'currency': pricing.CURRENCY,
        }

    def payload(self):
        return {'packages': [
            {'package_id': package_id, **self.options.get(package_id, DEFAULT_OPTIONS)}
            for package_id in self.selected_ids
        ]}

    def submit(self):
        """Send the repack request and move to the confirmation step."""
        if self.current_step != 'review':
            raise WorkflowError('Please review your repack request before submitting')
        self.submitting = True
        try:
            self.repack = self.api.post('/packages/repack', json=self.payload())['repack']
        finally:
            self.submitting = False
        self.logger.info(f"Created repack request {self.repack['request_id']}")
        self.go_to('confirmation')
        return self.repack
