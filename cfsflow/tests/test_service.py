"""
Tests for the cfs service API.
"""

import pytest
from django.db.models import ProtectedError

from cfsflow import cfs
from cfsflow.exceptions import FlowError, TransactionError
from cfsflow.models import (
    CargoPackage,
    PackageMovement,
    PackageTransaction,
    PackingList,
    PositionStatus,
    TransactionStatus,
)
from cfsflow.protocols.transactions import (
    CreateStep,
    InspectStep,
    SelectStep,
    StoreStep,
    StuffingStep,
    parse_package_ids,
)


pytestmark = pytest.mark.django_db


def _receive(txn, line, count):
    cfs.handle_step(txn, CreateStep(line_id=line.pk, package_count=count))
    return list(txn.packages.order_by('package_no'))


class TestCreateTransaction:
    """Tests for cfs.create_transaction()."""

    def test_create_in_progress(self, destuff_flow, packing_list, user):
        txn = cfs.create_transaction(packing_list, 'destuffWarehouse', user=user)

        assert txn.status == TransactionStatus.IN_PROGRESS
        assert txn.business_process_flow == 'destuffWarehouse'
        assert txn.created_by == user
        assert txn.code == f"PT-{txn.pk:06d}"
        assert txn.packages.count() == 0

    def test_create_by_packing_list_pk(self, destuff_flow, packing_list):
        txn = cfs.create_transaction(packing_list.pk, 'destuffWarehouse')

        assert txn.packing_list == packing_list

    def test_second_in_progress_rejected(self, transaction, packing_list):
        with pytest.raises(TransactionError) as exc:
            cfs.create_transaction(packing_list, 'destuffWarehouse')

        assert exc.value.code == 'TRANSACTION_IN_PROGRESS'
        assert exc.value.data['transaction_id'] == transaction.pk

    def test_create_after_done_allowed(self, transaction, packing_list, line, location):
        packages = _receive(transaction, line, 1)
        cfs.handle_step(transaction, InspectStep(package_ids=(packages[0].pk,)))
        cfs.handle_step(transaction, StoreStep(package_ids=(packages[0].pk,), location_id=location.pk))
        cfs.complete(transaction)

        txn = cfs.create_transaction(packing_list, 'destuffWarehouse')

        assert txn.pk != transaction.pk

    def test_unknown_flow(self, packing_list):
        with pytest.raises(FlowError) as exc:
            cfs.create_transaction(packing_list, 'nope')

        assert exc.value.code == 'FLOW_NOT_FOUND'

    def test_unknown_packing_list(self, destuff_flow):
        with pytest.raises(TransactionError) as exc:
            cfs.create_transaction(999999, 'destuffWarehouse')

        assert exc.value.code == 'PACKING_LIST_NOT_FOUND'

    def test_attach_existing_packages(self, delivery_flow, packing_list, line):
        package = CargoPackage.objects.create(
            packing_list=packing_list, line=line, package_no='P-1',
            position_status=PositionStatus.STORED,
        )

        txn = cfs.create_transaction(packing_list, 'warehouseDelivery', package_ids=[str(package.pk)])

        assert list(txn.packages.all()) == [package]

    def test_attach_foreign_package_rejected(self, delivery_flow, packing_list):
        with pytest.raises(TransactionError) as exc:
            cfs.create_transaction(packing_list, 'warehouseDelivery', package_ids=[424242])

        assert exc.value.code == 'PACKAGE_NOT_FOUND'
        assert not PackageTransaction.objects.exists()


    def test_package_ids_must_be_a_list(self, delivery_flow, packing_list, line):
        package = CargoPackage.objects.create(
            packing_list=packing_list, line=line, package_no='P-1',
            position_status=PositionStatus.STORED,
        )

        with pytest.raises(TransactionError) as exc:
            cfs.create_transaction(packing_list, 'warehouseDelivery', package_ids=str(package.pk))

        assert exc.value.code == 'REQUEST_FAILED'
        assert not PackageTransaction.objects.exists()


class TestParsePackageIds:
    def test_list_of_ints_and_digit_strings(self):
        assert parse_package_ids([3, '4']) == (3, 4)
        assert parse_package_ids(None) == ()

    @pytest.mark.parametrize('value', ['12', 12, {'id': 1}, [1, 'x'], [True], [None]])
    def test_rejects_non_lists(self, value):
        with pytest.raises(TransactionError) as exc:
            parse_package_ids(value)

        assert exc.value.code == 'REQUEST_FAILED'


class TestListTransactions:
    """Tests for cfs.list_transactions()."""

    def test_newest_first(self, destuff_flow, delivery_flow, packing_list):
        first = cfs.create_transaction(packing_list, 'destuffWarehouse')
        cfs.delete(first)
        second = cfs.create_transaction(packing_list, 'warehouseDelivery')

        assert list(cfs.list_transactions(packing_list)) == [second]

    def test_filters(self, transaction, packing_list):
        assert list(cfs.list_transactions(status='DONE')) == []
        assert list(cfs.list_transactions(flow_name='destuffWarehouse')) == [transaction]
        assert list(cfs.list_transactions(packing_list.pk, status='IN_PROGRESS')) == [transaction]


class TestCreateStep:
    """Tests for the create step."""

    def test_creates_packages_at_to_status(self, transaction, line):
        step, movements = cfs.handle_step(transaction, CreateStep(line_id=line.pk, package_count=3))

        assert step == 'create'
        assert len(movements) == 3
        assert transaction.packages.count() == 3
        assert set(transaction.packages.values_list('position_status', flat=True)) == {'CHECK_IN'}

    def test_package_numbers_are_sequential(self, transaction, line):
        packages = _receive(transaction, line, 2)

        assert [p.package_no for p in packages] == ['PL-0001-001-0001', 'PL-0001-001-0002']

    def test_movement_ledger(self, transaction, line, user):
        cfs.handle_step(transaction, CreateStep(line_id=line.pk), user=user)

        movement = PackageMovement.objects.get()
        assert movement.from_status == 'UNKNOWN'
        assert movement.to_status == 'CHECK_IN'
        assert movement.step == 'create'
        assert movement.package_transaction == transaction
        assert movement.user == user

    def test_wire_payload(self, transaction, line):
        step, movements = cfs.handle_step(
            transaction.pk, {'step': 'create', 'lineId': line.pk, 'packageCount': 2}
        )

        assert step == 'create'
        assert len(movements) == 2

    def test_zero_count_rejected(self, transaction, line):
        with pytest.raises(TransactionError) as exc:
            cfs.handle_step(transaction, {'step': 'create', 'lineId': line.pk, 'packageCount': 0})

        assert exc.value.code == 'INVALID_QUANTITY'

    def test_line_from_other_packing_list(self, transaction, db):
        from cfsflow.models import PackingList, PackingListLine

        other = PackingList.objects.create(number='PL-OTHER')
        other_line = PackingListLine.objects.create(packing_list=other, line_no=1)

        with pytest.raises(TransactionError) as exc:
            cfs.handle_step(transaction, CreateStep(line_id=other_line.pk))

        assert exc.value.code == 'LINE_NOT_FOUND'
        assert transaction.packages.count() == 0


class TestSelectionSteps:
    """Tests for inspect, store and handover steps."""

    def test_inspect_records_statuses(self, transaction, line):
        packages = _receive(transaction, line, 2)

        cfs.handle_step(transaction, InspectStep(
            package_ids=tuple(p.pk for p in packages),
            condition_status='PACKAGE_DAMAGED',
            regulatory_status='ON_HOLD',
        ))

        for package in packages:
            package.refresh_from_db()
            assert package.position_status == 'HANDOVER'
            assert package.condition_status == 'PACKAGE_DAMAGED'
            assert package.regulatory_status == 'ON_HOLD'

    def test_inspect_invalid_condition(self, transaction, line):
        packages = _receive(transaction, line, 1)

        with pytest.raises(TransactionError) as exc:
            cfs.handle_step(transaction, InspectStep(package_ids=(packages[0].pk,), condition_status='WET'))

        assert exc.value.code == 'INVALID_STATUS'

    def test_wrong_source_status_rejected(self, transaction, line, location):
        packages = _receive(transaction, line, 1)

        with pytest.raises(TransactionError) as exc:
            cfs.handle_step(transaction, StoreStep(package_ids=(packages[0].pk,), location_id=location.pk))

        assert exc.value.code == 'INVALID_STATUS'
        assert exc.value.data['expected'] == 'HANDOVER'
        packages[0].refresh_from_db()
        assert packages[0].position_status == 'CHECK_IN'

    def test_store_sets_location(self, transaction, line, location):
        packages = _receive(transaction, line, 1)
        cfs.handle_step(transaction, InspectStep(package_ids=(packages[0].pk,)))

        cfs.handle_step(transaction, {
            'step': 'store',
            'packageIds': [packages[0].pk],
            'toLocationId': [location.pk],
        })

        packages[0].refresh_from_db()
        assert packages[0].position_status == 'STORED'
        assert packages[0].location == location

    def test_store_unknown_location(self, transaction, line):
        packages = _receive(transaction, line, 1)
        cfs.handle_step(transaction, InspectStep(package_ids=(packages[0].pk,)))

        with pytest.raises(TransactionError) as exc:
            cfs.handle_step(transaction, StoreStep(package_ids=(packages[0].pk,), location_id=999))

        assert exc.value.code == 'LOCATION_NOT_FOUND'

    def test_package_outside_transaction(self, transaction, packing_list, line):
        stray = CargoPackage.objects.create(packing_list=packing_list, line=line, package_no='STRAY-1',
                                            position_status='CHECK_IN')

        with pytest.raises(TransactionError) as exc:
            cfs.handle_step(transaction, InspectStep(package_ids=(stray.pk,)))

        assert exc.value.code == 'PACKAGE_NOT_IN_TRANSACTION'

    def test_empty_selection(self, transaction):
        with pytest.raises(TransactionError) as exc:
            cfs.handle_step(transaction, {'step': 'inspect', 'packageIds': []})

        assert exc.value.code == 'NO_PACKAGES'

    def test_step_not_in_flow(self, transaction, line):
        packages = _receive(transaction, line, 1)

        with pytest.raises(FlowError) as exc:
            cfs.handle_step(transaction, {'step': 'handover', 'packageIds': [packages[0].pk]})

        assert exc.value.code == 'STEP_NOT_IN_FLOW'

    def test_unsupported_step(self, transaction):
        with pytest.raises(TransactionError) as exc:
            cfs.handle_step(transaction, {'step': 'teleport'})

        assert exc.value.code == 'UNSUPPORTED_STEP'

    def test_handover_in_delivery_flow(self, delivery_flow, packing_list, line):
        package = CargoPackage.objects.create(
            packing_list=packing_list, line=line, package_no='D-1',
            position_status=PositionStatus.STORED,
        )
        txn = cfs.create_transaction(packing_list, 'warehouseDelivery', package_ids=[package.pk])

        cfs.handle_step(txn, {'step': 'inspect', 'packageIds': [package.pk]})
        cfs.handle_step(txn, {'step': 'handover', 'packageIds': [package.pk]})

        package.refresh_from_db()
        assert package.position_status == 'CHECKOUT'


class TestComplete:
    """Tests for cfs.complete()."""

    def test_empty_not_completable(self, transaction):
        with pytest.raises(TransactionError) as exc:
            cfs.complete(transaction)

        assert exc.value.code == 'NOT_COMPLETABLE'
        assert exc.value.data['total'] == 0

    def test_partial_not_completable(self, transaction, line, location):
        packages = _receive(transaction, line, 2)
        cfs.handle_step(transaction, InspectStep(package_ids=(packages[0].pk,)))
        cfs.handle_step(transaction, StoreStep(package_ids=(packages[0].pk,), location_id=location.pk))

        with pytest.raises(TransactionError) as exc:
            cfs.complete(transaction)

        assert exc.value.code == 'NOT_COMPLETABLE'
        assert exc.value.data['pending'] == 1

    def test_complete_marks_done(self, transaction, line, location):
        packages = _receive(transaction, line, 1)
        cfs.handle_step(transaction, InspectStep(package_ids=(packages[0].pk,)))
        cfs.handle_step(transaction, StoreStep(package_ids=(packages[0].pk,), location_id=location.pk))

        done = cfs.complete(transaction)

        assert done.status == TransactionStatus.DONE
        assert done.completed_at is not None

    def test_done_is_read_only(self, transaction, line, location):
        packages = _receive(transaction, line, 1)
        cfs.handle_step(transaction, InspectStep(package_ids=(packages[0].pk,)))
        cfs.handle_step(transaction, StoreStep(package_ids=(packages[0].pk,), location_id=location.pk))
        cfs.complete(transaction)

        with pytest.raises(TransactionError) as exc:
            cfs.handle_step(transaction, CreateStep(line_id=line.pk))
        assert exc.value.code == 'TRANSACTION_DONE'

        with pytest.raises(TransactionError) as exc:
            cfs.complete(transaction)
        assert exc.value.code == 'TRANSACTION_DONE'

        with pytest.raises(TransactionError) as exc:
            cfs.delete(transaction)
        assert exc.value.code == 'TRANSACTION_DONE'


class TestDelete:
    """Tests for cfs.delete()."""

    def test_delete_empty(self, transaction):
        cfs.delete(transaction.pk)

        assert not PackageTransaction.objects.filter(pk=transaction.pk).exists()

    def test_delete_with_packages_rejected(self, transaction, line):
        _receive(transaction, line, 1)

        with pytest.raises(TransactionError) as exc:
            cfs.delete(transaction)

        assert exc.value.code == 'NOT_DELETABLE'

    def test_delete_unknown(self, db):
        with pytest.raises(TransactionError) as exc:
            cfs.delete(123456)

        assert exc.value.code == 'TRANSACTION_NOT_FOUND'


class TestPackageMovement:
    """Tests for the immutable movement ledger."""

    def test_cannot_update(self, transaction, line):
        _receive(transaction, line, 1)
        movement = PackageMovement.objects.get()

        with pytest.raises(ValueError):
            movement.save()

    def test_cannot_delete(self, transaction, line):
        _receive(transaction, line, 1)

        with pytest.raises(ValueError):
            PackageMovement.objects.get().delete()

    def test_package_protected(self, transaction, line):
        packages = _receive(transaction, line, 1)

        with pytest.raises(ProtectedError):
            CargoPackage.objects.filter(pk=packages[0].pk).delete()


class TestSelectAndStuffing:
    """Export flow: pick stored packages, then stuff them."""

    def test_select_attaches_and_advances(self, stuffing_flow, packing_list, stored_packages, user):
        txn = cfs.create_transaction(packing_list, 'stuffingWarehouse')
        first, second, third = stored_packages

        step, movements = cfs.handle_step(txn, SelectStep(package_ids=(second.pk, first.pk)), user=user)

        assert step == 'select'
        assert [m.package_id for m in movements] == [second.pk, first.pk]
        assert set(txn.packages.values_list('pk', flat=True)) == {first.pk, second.pk}
        first.refresh_from_db()
        third.refresh_from_db()
        assert first.position_status == PositionStatus.HANDOVER
        assert third.position_status == PositionStatus.STORED

    def test_select_rejects_package_not_stored(self, stuffing_flow, packing_list, line):
        package = CargoPackage.objects.create(
            packing_list=packing_list, line=line, package_no='S-9',
            position_status=PositionStatus.CHECK_IN,
        )
        txn = cfs.create_transaction(packing_list, 'stuffingWarehouse')

        with pytest.raises(TransactionError) as exc:
            cfs.handle_step(txn, {'step': 'select', 'packageIds': [package.pk]})

        assert exc.value.code == 'INVALID_STATUS'
        assert not txn.packages.exists()

    def test_select_rejects_foreign_package(self, stuffing_flow, packing_list):
        txn = cfs.create_transaction(packing_list, 'stuffingWarehouse')

        with pytest.raises(TransactionError) as exc:
            cfs.handle_step(txn, SelectStep(package_ids=(424242,)))

        assert exc.value.code == 'PACKAGE_NOT_FOUND'

    def test_package_held_by_other_transaction(self, stuffing_flow, delivery_flow,
                                               packing_list, stored_packages):
        other_list = PackingList.objects.create(number='PL-0002')
        held = stored_packages[0]
        delivery = cfs.create_transaction(packing_list, 'warehouseDelivery', package_ids=[held.pk])
        # One open transaction per packing list: park the delivery elsewhere.
        PackageTransaction.objects.filter(pk=delivery.pk).update(packing_list=other_list)
        txn = cfs.create_transaction(packing_list, 'stuffingWarehouse')

        with pytest.raises(TransactionError) as exc:
            cfs.handle_step(txn, SelectStep(package_ids=(held.pk,)))

        assert exc.value.code == 'PACKAGE_IN_OTHER_TRANSACTION'
        assert exc.value.data['package_ids'] == [held.pk]

    def test_stuffing_reaches_terminal_status(self, stuffing_flow, packing_list, stored_packages):
        txn = cfs.create_transaction(packing_list, 'stuffingWarehouse')
        ids = tuple(p.pk for p in stored_packages)
        cfs.handle_step(txn, SelectStep(package_ids=ids))

        for pk in ids:
            cfs.handle_step(txn, StuffingStep(package_ids=(pk,)))

        assert set(txn.packages.values_list('position_status', flat=True)) == {PositionStatus.STUFFED}
        assert cfs.complete(txn).status == TransactionStatus.DONE

    def test_stuffing_requires_selected_packages(self, stuffing_flow, packing_list, stored_packages):
        txn = cfs.create_transaction(packing_list, 'stuffingWarehouse')

        with pytest.raises(TransactionError) as exc:
            cfs.handle_step(txn, {'step': 'stuffing', 'packageIds': [stored_packages[0].pk]})

        assert exc.value.code == 'PACKAGE_NOT_IN_TRANSACTION'


class TestUpdateTransaction:
    """Tests for cfs.update_transaction()."""

    def test_routes_packages_through_select(self, stuffing_flow, packing_list, stored_packages, user):
        txn = cfs.create_transaction(packing_list, 'stuffingWarehouse')

        updated = cfs.update_transaction(txn, package_ids=[stored_packages[0].pk], user=user)

        assert list(updated.packages.all()) == [stored_packages[0]]
        stored_packages[0].refresh_from_db()
        assert stored_packages[0].position_status == PositionStatus.HANDOVER
        assert PackageMovement.objects.get(package=stored_packages[0]).step == 'select'

    def test_attaches_as_is_without_select_step(self, delivery_flow, packing_list, stored_packages):
        txn = cfs.create_transaction(packing_list, 'warehouseDelivery')

        cfs.update_transaction(txn, package_ids=[p.pk for p in stored_packages])

        assert txn.packages.count() == 3
        assert set(txn.packages.values_list('position_status', flat=True)) == {PositionStatus.STORED}
        assert not PackageMovement.objects.exists()

    def test_updates_party_only(self, stuffing_flow, packing_list):
        txn = cfs.create_transaction(packing_list, 'stuffingWarehouse', party_name='Old')

        updated = cfs.update_transaction(txn, party_name='Harbor Freight', party_type='CONSIGNEE')

        updated.refresh_from_db()
        assert updated.party_name == 'Harbor Freight'
        assert updated.party_type == 'CONSIGNEE'
        assert not updated.packages.exists()

    def test_done_transaction_rejected(self, stuffing_flow, packing_list, stored_packages):
        txn = cfs.create_transaction(packing_list, 'stuffingWarehouse')
        cfs.handle_step(txn, SelectStep(package_ids=(stored_packages[0].pk,)))
        cfs.handle_step(txn, StuffingStep(package_ids=(stored_packages[0].pk,)))
        cfs.complete(txn)

        with pytest.raises(TransactionError) as exc:
            cfs.update_transaction(txn, package_ids=[stored_packages[1].pk])

        assert exc.value.code == 'TRANSACTION_DONE'

    def test_non_list_package_ids_rejected(self, stuffing_flow, packing_list, stored_packages):
        txn = cfs.create_transaction(packing_list, 'stuffingWarehouse')

        with pytest.raises(TransactionError) as exc:
            cfs.update_transaction(txn, package_ids=stored_packages[0].pk)

        assert exc.value.code == 'REQUEST_FAILED'
        assert not txn.packages.exists()
