"""Tests for request schemas."""
import pytest
from pydantic import ValidationError
from shared.schemas import (
    RegisterRequest, WeightIn, DimensionsIn, PackageRegister, BulkStatusUpdate, PhotoRequestCreate,
    ShipmentCreate, ConsolidationCreate, CustomsItemIn, TransactionStatusUpdate
)


def test_register_request_normalises_fields():
    data = RegisterRequest(name='  Salma  ', email='Salma@Example.com', password='secret1',
                           phone='+212 600 000 000', city='Rabat')
    assert data.name == 'Salma'
    assert data.email == 'salma@example.com'
    assert data.street == ''


def test_register_request_collects_errors():
    with pytest.raises(ValidationError) as exc:
        RegisterRequest(name='S', email='nope', password='123', phone='x', city='')
    fields = {err['loc'][0] for err in exc.value.errors()}
    assert fields == {'name', 'email', 'password', 'phone', 'city'}


def test_measurements_convert_to_metric():
    assert WeightIn(value=22.0462, unit='lb').kg() == 10.0
    assert WeightIn(value=3).kg() == 3
    assert DimensionsIn(length=10, width=5, height=1, unit='in').cm() == {
        'length': 25.4, 'width': 12.7, 'height': 2.54
    }
    with pytest.raises(ValidationError):
        WeightIn(value=0)


def test_package_register_uppercases_suite_and_sanitizes():
    data = PackageRegister(
        suite_number='ma-4321', tracking_number='TRK123', retailer='Nike',
        weight={'value': 1}, dimensions={'length': 1, 'width': 1, 'height': 1},
        notes='<script>x</script>Handle with care',
    )
    assert data.suite_number == 'MA-4321'
    assert '<script>' not in data.notes
    assert data.photos == []


def test_bulk_update_accepts_id_aliases():
    assert BulkStatusUpdate(package_ids=[1, 2], status='received').ids == [1, 2]
    assert BulkStatusUpdate(shipment_ids=[3], status='delivered').ids == [3]
    with pytest.raises(ValidationError):
        BulkStatusUpdate(ids=[], status='received')


def test_photo_request_create_bounds_and_enum_values():
    data = PhotoRequestCreate(package_id=1, request_type='both', additional_photos=10)
    assert data.request_type == 'both'
    with pytest.raises(ValidationError):
        PhotoRequestCreate(package_id=1, additional_photos=11)
    with pytest.raises(ValidationError):
        PhotoRequestCreate(package_id=1, request_type='video')


def test_consolidation_create_defaults():
    data = ConsolidationCreate(package_ids=[1, 2])
    assert data.preferences.remove_packaging is True
    assert data.preferences.add_protection is False
    assert data.special_instructions == ''


def test_shipment_create_requires_customs():
    destination = {'full_name': 'A', 'street': 'B', 'city': 'C', 'postal_code': '1', 'phone': '+212600000000'}
    with pytest.raises(ValidationError):
        ShipmentCreate(package_ids=[1], destination=destination, customs_info=[])
    data = ShipmentCreate(package_ids=[1], destination=destination, carrier='FedEx',
                          customs_info=[{'description': 'Toy'}])
    assert data.carrier == 'FedEx'
    assert data.destination.country == 'Morocco'
    assert data.customs_info[0].quantity == 1
    assert data.insurance is None


def test_customs_item_validates_hs_code():
    assert CustomsItemIn(description='Shoes', hs_code=' 6403.99 ').hs_code == '6403.99'
    with pytest.raises(ValidationError):
        CustomsItemIn(description='Shoes', hs_code='abc')


def test_transaction_status_update_is_enum_checked():
    assert TransactionStatusUpdate(status='refunded').status == 'refunded'
    with pytest.raises(ValidationError):
        TransactionStatusUpdate(status='stolen')
