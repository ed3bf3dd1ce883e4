"""
Pytest fixtures for CFS Flow tests.
"""

import pytest
from django.contrib.auth import get_user_model
from django.contrib.auth.models import Permission

from cfsflow import cfs
from cfsflow.adapters import reset_backend
from cfsflow.adapters.local import LocalBackend
from cfsflow.models import CargoPackage, Location, PackingList, PackingListLine, PositionStatus
from cfsflow.services import DEFAULT_FLOWS


User = get_user_model()


@pytest.fixture(autouse=True)
def _reset_backend():
    reset_backend()
    yield
    reset_backend()


@pytest.fixture
def user(db):
    """Create a test user without any permission."""
    return User.objects.create_user(
        username='operator',
        password='testpass123'
    )


@pytest.fixture
def clerk(db):
    """User holding every package transaction permission."""
    clerk = User.objects.create_user(username='clerk', password='testpass123')
    clerk.user_permissions.add(*Permission.objects.filter(
        content_type__app_label='cfsflow',
        codename__in=[
            'add_packagetransaction',
            'change_packagetransaction',
            'handle_packagetransaction',
            'complete_packagetransaction',
            'delete_packagetransaction',
        ],
    ))
    return User.objects.get(pk=clerk.pk)


@pytest.fixture
def destuff_flow(db):
    """destuffWarehouse: create → inspect → store."""
    return cfs.save_flow('destuffWarehouse', **DEFAULT_FLOWS['destuffWarehouse'])


@pytest.fixture
def delivery_flow(db):
    """warehouseDelivery: inspect → handover."""
    return cfs.save_flow('warehouseDelivery', **DEFAULT_FLOWS['warehouseDelivery'])


@pytest.fixture
def stuffing_flow(db):
    """stuffingWarehouse: select → stuffing."""
    return cfs.save_flow(
        'stuffingWarehouse',
        direction='export',
        steps=[
            {'code': 'select', 'fromStatus': 'STORED', 'toStatus': 'HANDOVER'},
            {'code': 'stuffing', 'fromStatus': 'HANDOVER', 'toStatus': 'STUFFED'},
        ],
    )


@pytest.fixture
def packing_list(db):
    return PackingList.objects.create(
        number='PL-0001',
        hbl_code='HBL-778',
        container_number='MSCU1234567',
        forwarder_name='Blue Anchor Logistics',
    )


@pytest.fixture
def line(packing_list):
    return PackingListLine.objects.create(
        packing_list=packing_list,
        line_no=1,
        commodity_description='Ceramic tiles',
        unit_of_measure='CTN',
        package_type_code='CT',
        number_of_packages=5,
    )


@pytest.fixture
def second_line(packing_list):
    return PackingListLine.objects.create(
        packing_list=packing_list,
        line_no=2,
        commodity_description='Glassware',
        unit_of_measure='PLT',
        package_type_code='PL',
        number_of_packages=2,
    )


@pytest.fixture
def location(db):
    return Location.objects.create(code='LOC-1', name='Rack 1', zone='A')


@pytest.fixture
def transaction(destuff_flow, packing_list, line):
    """Fresh destuffWarehouse transaction."""
    return cfs.create_transaction(packing_list, 'destuffWarehouse')


@pytest.fixture
def stored_packages(packing_list, line):
    """Three packages of the packing list sitting in the warehouse."""
    return [
        CargoPackage.objects.create(
            packing_list=packing_list, line=line, package_no=f'S-{n}',
            position_status=PositionStatus.STORED,
        )
        for n in range(1, 4)
    ]


@pytest.fixture
def backend(db):
    return LocalBackend()
