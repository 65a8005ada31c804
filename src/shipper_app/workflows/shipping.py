"""Shipping wizard: packages, destination, carrier rate, insurance, customs, payment."""
from shared import pricing
from shared.validation import Validator
from .base import Workflow, WorkflowError, package_measurements

ADDRESS_FIELDS = ('full_name', 'street', 'city', 'postal_code', 'phone')


class ShippingWorkflow(Workflow):
    STEPS = ('packages', 'address', 'carrier', 'insurance', 'customs', 'review', 'payment')

    def __init__(self, api, packages, user=None):
        super().__init__(api)
        self.packages = packages
        self.selected_ids = []
        user = user or {}
        self.destination = {
            'full_name': user.get('name', ''),
            'street': user.get('street', ''),
            'city': user.get('city', ''),
            'postal_code': user.get('postal_code', ''),
            'country': 'Morocco',
            'phone': user.get('phone', ''),
        }
        self.rates = []
        self.selected_rate = None
        self.carrier = 'DHL'
        self.service_level = 'express'
        self.insurance_enabled = False
        self.insurance_coverage = 0
        self.customs_items = []
        self.shipment = None

    def shippable_packages(self):
        return [p for p in self.packages if p.get('status') in ('received', 'consolidated')]

    def toggle(self, package_id):
        if package_id in self.selected_ids:
            self.selected_ids.remove(package_id)
        else:
            self.selected_ids.append(package_id)

    def selected_packages(self):
        return [p for p in self.packages if p.get('id') in self.selected_ids]

    def add_customs_item(self, description='', quantity=1, value=0, hs_code='', country_of_origin='US'):
        self.customs_items.append({
            'description': description,
            'quantity': quantity,
            'value': value,
            'hs_code': hs_code,
            'country_of_origin': country_of_origin,
        })

    def remove_customs_item(self, index):
        del self.customs_items[index]

    def select_rate(self, rate):
        self.selected_rate = rate
        self.service_level = rate.get('service_level', self.service_level)
        if rate.get('product_code') in pricing.CARRIER_MULTIPLIERS:
            self.carrier = rate['product_code']

    def validate_step(self, step):
        if step == 'packages' and not self.selected_ids:
            return 'Please select at least one package'
        if step == 'address' and Validator.missing_fields(self.destination, ADDRESS_FIELDS):
            return 'Please fill in all address fields'
        if step == 'carrier' and self.selected_rate is None:
            return 'Please select a shipping option'
        if step == 'customs' and not self.customs_items:
            return 'Please add at least one customs item'
        return None

    def on_enter(self, step):
        if step == 'carrier':
            self.load_rates()

    def rate_request(self):
        """Total weight and the largest side in each direction."""
        measured = [package_measurements(p) for p in self.selected_packages()]
        return {
            'weight': round(sum(m['weight'] for m in measured), 2),
            'dimensions': {
                'length': max((m['length'] for m in measured), default=0),
                'width': max((m['width'] for m in measured), default=0),
                'height': max((m['height'] for m in measured), default=0),
            },
        }

    def load_rates(self):
        """Fetch carrier rates and pre-select the first one."""
        self.rates = self.api.post('/admin/shipments/get-rates', json=self.rate_request())['rates']
        if self.rates:
            self.select_rate(self.rates[0])
        return self.rates

    def summary(self):
        shipping = self.selected_rate.get('total_price', 0) if self.selected_rate else 0
        insurance = pricing.insurance_cost(self.insurance_coverage) if self.insurance_enabled else 0
        return {
            'package_count': len(self.selected_ids),
            'total_weight': self.rate_request()['weight'],
            'shipping': shipping,
            'insurance': insurance,
            'total': shipping + insurance,
            'currency': pricing.CURRENCY,
        }

    def payload(self):
        payload = {
            'package_ids': list(self.selected_ids),
            'destination': dict(self.destination),
            'carrier': self.carrier,
            'service_level': self.service_level,
            'customs_info': list(self.customs_items),
        }
        if self.insurance_enabled:
            payload['insurance'] = {'coverage': self.insurance_coverage}
        return payload

    def submit(self):
        if self.current_step != 'payment':
            raise WorkflowError('Please complete all steps before paying')
        self.submitting = True
        try:
            self.shipment = self.api.post('/shipments', json=self.payload())['shipment']
        finally:
            self.submitting = False
        self.logger.info(f"Created shipment {self.shipment['tracking_number']}")
        return self.shipment
