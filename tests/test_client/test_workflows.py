"""Tests for the customer wizards."""
import pytest
from unittest.mock import Mock

from src.shipper_app.workflows.base import WorkflowError, package_measurements
from src.shipper_app.workflows.consolidation import ConsolidationWorkflow
from src.shipper_app.workflows.photo_request import PhotoRequestWorkflow
from src.shipper_app.workflows.repack import RepackWorkflow
from src.shipper_app.workflows.shipping import ShippingWorkflow


def package(package_id, status='received', weight=2, unit='kg'):
    return {
        'id': package_id,
        'tracking_number': f'TRK{package_id}',
        'status': status,
        'weight': {'value': weight, 'unit': unit},
        'dimensions': {'length': 30, 'width': 20, 'height': 10, 'unit': 'cm'},
    }


@pytest.fixture
def api():
    return Mock()


def test_package_measurements_converts_units():
    measured = package_measurements({
        'weight': {'value': 2.2046, 'unit': 'lb'},
        'dimensions': {'length': 10, 'width': 5, 'height': 1, 'unit': 'in'},
    })
    assert measured['weight'] == pytest.approx(1.0, abs=1e-3)
    assert measured['length'] == pytest.approx(25.4)
    assert measured['height'] == pytest.approx(2.54)

    assert package_measurements({}) == {'weight': 0, 'length': 0, 'width': 0, 'height': 0}


class TestConsolidationWorkflow:
    def test_requires_two_received_packages(self, api):
        workflow = ConsolidationWorkflow(api, [package(1), package(2), package(3, status='shipped')])
        assert [p['id'] for p in workflow.available_packages()] == [1, 2]

        workflow.toggle(1)
        with pytest.raises(WorkflowError, match='Please select at least 2 packages to consolidate'):
            workflow.next()

        workflow.toggle(3)
        with pytest.raises(WorkflowError, match='Only packages in storage can be consolidated'):
            workflow.next()

        workflow.toggle(3)
        workflow.toggle(2)
        assert workflow.next() == 'preferences'

    def test_summary_uses_quote_tariff(self, api):
        workflow = ConsolidationWorkflow(api, [package(1), package(2), package(3)])
        for package_id in (1, 2, 3):
            workflow.toggle(package_id)

        summary = workflow.summary()
        assert summary['package_count'] == 3
        assert summary['total_weight'] == 6
        assert summary['fee'] == 150
        assert summary['savings'] == 450
        assert summary['estimated_dimensions']['length'] == 40
        assert summary['currency'] == 'MAD'

        workflow.request_unpacked_photos = True
        workflow.add_protection = True
        assert workflow.summary()['fee'] == 195

    def test_submit_posts_and_locks_confirmation(self, api):
        api.post.return_value = {'consolidation': {'id': 7, 'status': 'pending'}}
        workflow = ConsolidationWorkflow(api, [package(1), package(2)])
        workflow.toggle(1)
        workflow.toggle(2)

        with pytest.raises(WorkflowError):
            workflow.submit()

        workflow.next()
        workflow.next()
        assert workflow.current_step == 'review'
        consolidation = workflow.submit()

        assert consolidation['id'] == 7
        assert workflow.current_step == 'confirmation'
        assert not workflow.can_go_back()
        assert not workflow.submitting
        api.post.assert_called_once_with('/consolidations', json={
            'package_ids': [1, 2],
            'preferences': {'remove_packaging': True, 'add_protection': False,
                            'request_unpacked_photos': False},
            'special_instructions': '',
        })


class TestShippingWorkflow:
    def make(self, api, user=None):
        packages = [package(1), package(2, status='consolidated', weight=3), package(3, status='delivered')]
        return ShippingWorkflow(api, packages, user=user)

    def test_steps_validate_in_order(self, api):
        api.post.return_value = {'rates': [
            {'product_code': 'Aramex', 'service_level': 'standard', 'total_price': 100},
            {'product_code': 'DHL', 'service_level': 'express', 'total_price': 120},
        ]}
        workflow = self.make(api)
        assert [p['id'] for p in workflow.shippable_packages()] == [1, 2]

        with pytest.raises(WorkflowError, match='Please select at least one package'):
            workflow.next()
        workflow.toggle(1)
        workflow.toggle(2)
        workflow.next()

        with pytest.raises(WorkflowError, match='Please fill in all address fields'):
            workflow.next()
        workflow.destination.update({'full_name': 'Amina', 'street': '12 Rue Atlas', 'city': 'Casablanca',
                                     'postal_code': '20000', 'phone': '+212600000000'})
        assert workflow.next() == 'carrier'

        api.post.assert_called_once_with('/admin/shipments/get-rates', json={
            'weight': 5, 'dimensions': {'length': 30, 'width': 20, 'height': 10},
        })
        assert workflow.carrier == 'Aramex'
        assert workflow.service_level == 'standard'

        workflow.next()
        workflow.next()
        with pytest.raises(WorkflowError, match='Please add at least one customs item'):
            workflow.next()

    def test_prefills_destination_from_profile(self, api):
        workflow = self.make(api, user={'name': 'Amina', 'city': 'Fes', 'phone': '+212611111111'})
        assert workflow.destination['full_name'] == 'Amina'
        assert workflow.destination['country'] == 'Morocco'
        assert workflow.destination['street'] == ''

    def test_summary_and_payload_with_insurance(self, api):
        workflow = self.make(api)
        workflow.toggle(1)
        workflow.select_rate({'product_code': 'DHL', 'service_level': 'express', 'total_price': 120})
        workflow.insurance_enabled = True
        workflow.insurance_coverage = 250
        workflow.add_customs_item('Shoes', quantity=1, value=80, hs_code='6403.99')

        summary = workflow.summary()
        assert summary['shipping'] == 120
        assert summary['insurance'] == 10
        assert summary['total'] == 130

        payload = workflow.payload()
        assert payload['package_ids'] == [1]
        assert payload['carrier'] == 'DHL'
        assert payload['insurance'] == {'coverage': 250}
        assert payload['customs_info'][0]['country_of_origin'] == 'US'

        workflow.remove_customs_item(0)
        assert workflow.customs_items == []

    def test_submit_only_from_payment(self, api):
        api.post.return_value = {'shipment': {'id': 1, 'tracking_number': 'DHL123'}}
        workflow = self.make(api)
        with pytest.raises(WorkflowError, match='Please complete all steps before paying'):
            workflow.submit()

        workflow.go_to('payment')
        assert workflow.submit()['tracking_number'] == 'DHL123'
        assert api.post.call_args.args[0] == '/shipments'


class TestPhotoRequestWorkflow:
    def test_request_type_follows_options(self, api):
        workflow = PhotoRequestWorkflow(api, [package(1)])
        assert workflow.request_type == 'photos'
        workflow.toggle_request('contents')
        assert workflow.request_type == 'information'
        workflow.toggle_request('label')
        assert workflow.request_type == 'both'
        workflow.toggle_request('contents')
        assert workflow.request_type == 'photos'

        with pytest.raises(ValueError):
            workflow.toggle_request('x-ray')

    def test_photo_count_is_clamped(self, api):
        workflow = PhotoRequestWorkflow(api, [package(1)])
        workflow.set_photo_count(25)
        assert workflow.additional_photos == 10
        workflow.set_photo_count(0)
        assert workflow.additional_photos == 1

    def test_summary_prices_per_photo(self, api):
        workflow = PhotoRequestWorkflow(api, [package(1)])
        workflow.toggle_request('angles')
        workflow.toggle_request('condition')
        workflow.set_photo_count(3)
        assert workflow.summary() == {'request_type': 'both', 'photos': 60, 'information': 10,
                                      'total': 70, 'currency': 'MAD'}

        workflow.toggle_request('angles')
        assert workflow.summary()['total'] == 10
        assert workflow.payload()['additional_photos'] == 0

    def test_specify_step_needs_something_to_check(self, api):
        workflow = PhotoRequestWorkflow(api, [package(1)])
        with pytest.raises(WorkflowError, match='Please select a package'):
            workflow.next()
        workflow.package_id = 1
        workflow.next()
        workflow.custom_instructions = '   '
        with pytest.raises(WorkflowError, match='Please choose what you would like us to check'):
            workflow.next()
        workflow.custom_instructions = 'Is the seal intact?'
        assert workflow.next() == 'review'

    def test_submit_creates_and_pays(self, api):
        api.post.side_effect = [
            {'photo_request': {'id': 5, 'payment_status': 'unpaid'}},
            {'photo_request': {'id': 5, 'payment_status': 'paid'}},
        ]
        workflow = PhotoRequestWorkflow(api, [package(1)])
        workflow.package_id = 1
        workflow.toggle_request('label')
        workflow.go_to('review')

        photo_request = workflow.submit()

        assert photo_request['payment_status'] == 'paid'
        assert workflow.paid
        assert workflow.current_step == 'confirmation'
        with pytest.raises(WorkflowError, match='You cannot go back from this step'):
            workflow.back()
        assert api.post.call_args_list[1].args[0] == '/photo-requests/5/confirm-payment'
        assert api.post.call_args_list[1].kwargs['json'] == {'payment_method': 'card'}


def bulky(package_id):
    item = package(package_id)
    item['dimensions'] = {'length': 50, 'width': 40, 'height': 30, 'unit': 'cm'}
    return item


class TestRepackWorkflow:
    def test_one_stored_package_is_enough(self, api):
        workflow = RepackWorkflow(api, [package(1), package(2, status='consolidated')])
        assert [p['id'] for p in workflow.available_packages()] == [1]

        with pytest.raises(WorkflowError, match='Please select at least one package to repack'):
            workflow.next()

        workflow.toggle(2)
        with pytest.raises(WorkflowError, match='Only packages in storage can be repacked'):
            workflow.next()

        workflow.toggle(2)
        workflow.toggle(1)
        assert workflow.next() == 'options'
        assert workflow.next() == 'review'

    def test_selected_packages_start_with_default_options(self, api):
        workflow = RepackWorkflow(api, [package(1)])
        workflow.toggle(1)
        assert workflow.options[1] == {
            'remove_retail_box': True, 'add_protection': False,
            'minimize_size': True, 'special_instructions': '',
        }

        workflow.set_option(1, 'add_protection', True)
        workflow.toggle(1)
        workflow.toggle(1)
        # choices survive deselecting and selecting again
        assert workflow.options[1]['add_protection'] is True

        with pytest.raises(KeyError):
            workflow.set_option(1, 'gift_wrap', True)
        with pytest.raises(WorkflowError):
            workflow.set_option(9, 'add_protection', True)

    def test_summary_estimates_each_package(self, api):
        workflow = RepackWorkflow(api, [bulky(1), package(2)])
        workflow.toggle(1)
        workflow.toggle(2)

        summary = workflow.summary()
        assert summary['package_count'] == 2
        assert summary['total_cost'] == 100
        assert summary['total_savings'] == 830
        first = summary['packages'][0]
        assert first['estimated_dimensions'] == {'length': 35, 'width': 28, 'height': 18}
        assert first['current_dim_weight'] == 12.0
        assert first['estimated_dim_weight'] == 3.5
        assert first['savings'] == 800

    def test_submit_posts_options_and_locks_confirmation(self, api):
        api.post.return_value = {'repack': {'request_id': 'RPK-123456', 'packages': []}}
        workflow = RepackWorkflow(api, [package(1)])
        workflow.toggle(1)
        workflow.set_option(1, 'special_instructions', 'Keep the manual')

        with pytest.raises(WorkflowError):
            workflow.submit()

        workflow.go_to('review')
        with pytest.raises(WorkflowError, match='Please submit your repack request'):
            workflow.next()

        repack = workflow.submit()
        assert repack['request_id'] == 'RPK-123456'
        api.post.assert_called_once_with('/packages/repack', json={'packages': [{
            'package_id': 1, 'remove_retail_box': True, 'add_protection': False,
            'minimize_size': True, 'special_instructions': 'Keep the manual',
        }]})
        assert workflow.current_step == 'confirmation'
        assert not workflow.can_go_back()
