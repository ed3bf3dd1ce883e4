"""
Tests for the console: session state, editors and sequential batches.
"""

import pytest
from django.test import override_settings

from cfsflow import cfs
from cfsflow.adapters.local import LocalBackend
from cfsflow.console import (
    CreateStepEditor,
    HandoverStepEditor,
    InspectStepEditor,
    NotImplementedStepEditor,
    SelectAllState,
    SelectStepEditor,
    SessionState,
    StoreStepEditor,
    StuffingStepEditor,
    TransactionClient,
    TransactionSession,
    permission_predicate,
)
from cfsflow.exceptions import TransactionError
from cfsflow.models import CargoPackage, PackageTransaction
from cfsflow.protocols.transactions import CreateStep, InspectStep, StoreStep


pytestmark = pytest.mark.django_db


class FlakyBackend(LocalBackend):
    """LocalBackend whose N-th handle_step call fails; counts reads."""

    def __init__(self, fail_on=None, **kwargs):
        super().__init__(**kwargs)
        self.fail_on = fail_on
        self.step_calls = 0
        self.detail_reads = 0

    def handle_step(self, transaction_id, command):
        self.step_calls += 1
        if self.step_calls == self.fail_on:
            raise TransactionError('REQUEST_FAILED', 'Gateway timeout')
        return super().handle_step(transaction_id, command)

    def get_transaction(self, transaction_id):
        self.detail_reads += 1
        return super().get_transaction(transaction_id)


@pytest.fixture
def open_session(destuff_flow, packing_list, line, location):
    def factory(backend=None, can=None, flow_name='destuffWarehouse'):
        return TransactionSession(
            packing_list.pk, flow_name, backend=backend or LocalBackend(), can=can,
        ).open()
    return factory


def _at_handover(txn, line, count):
    """Server-side shortcut: `count` packages waiting for the store step."""
    cfs.handle_step(txn, CreateStep(line_id=line.pk, package_count=count))
    ids = tuple(txn.packages.order_by('package_no').values_list('pk', flat=True))
    cfs.handle_step(txn, InspectStep(package_ids=ids))
    return list(ids)


class TestSessionLoading:
    """Tests for TransactionSession.open()/refresh()."""

    def test_no_transaction(self, open_session):
        session = open_session()

        assert session.state == SessionState.NO_TRANSACTION
        assert [s.code for s in session.steps] == ['create', 'inspect', 'store']
        assert session.step_index == 0
        assert session.can_create_transaction
        assert not session.can_complete
        assert not session.can_delete
        assert isinstance(session.editor(), CreateStepEditor)

    def test_unknown_flow_blocks(self, open_session):
        session = open_session(flow_name='missing')

        assert session.blocked
        assert session.flow_error.code == 'FLOW_NOT_FOUND'
        assert session.notifier.last.code == 'FLOW_NOT_FOUND'
        assert session.steps == ()
        assert session.editor() is None
        assert not session.can_create_transaction

    def test_empty_flow_is_not_blocked(self, open_session):
        cfs.save_flow('emptyFlow', [])

        session = open_session(flow_name='emptyFlow')

        assert not session.blocked
        assert session.has_no_steps
        assert session.step_index == 0
        assert session.editor() is None

    def test_refresh_after_noop_is_idempotent(self, open_session, transaction, line):
        cfs.handle_step(transaction, CreateStep(line_id=line.pk, package_count=2))
        session = open_session()

        before = session.counts()
        session.client.invalidate()
        session.refresh()

        assert session.counts() == before == {'create': 2, 'inspect': 0, 'store': 0}

    def test_reopen_reads_server_state(self, open_session, transaction):
        session = open_session()
        assert session.state == SessionState.ACTIVE

        cfs.delete(transaction)
        session.open()

        assert session.transaction is None
        assert session.state == SessionState.NO_TRANSACTION


class TestActivePrecedence:
    """At most one transaction is shown; in-progress wins."""

    def test_in_progress_wins_over_latest_done(self, open_session, packing_list, line, location):
        done = cfs.create_transaction(packing_list, 'destuffWarehouse')
        ids = _at_handover(done, line, 1)
        cfs.handle_step(done, StoreStep(package_ids=tuple(ids), location_id=location.pk))
        cfs.complete(done)
        current = cfs.create_transaction(packing_list, 'destuffWarehouse')

        session = open_session()

        assert session.transaction.id == current.pk
        assert session.state == SessionState.ACTIVE

    def test_latest_done_shown_read_only(self, open_session, packing_list, line, location):
        done = cfs.create_transaction(packing_list, 'destuffWarehouse')
        ids = _at_handover(done, line, 1)
        cfs.handle_step(done, StoreStep(package_ids=tuple(ids), location_id=location.pk))
        cfs.complete(done)

        session = open_session()

        assert session.transaction.id == done.pk
        assert session.state == SessionState.DONE
        assert session.read_only
        assert session.editor().read_only
        assert session.can_create_transaction

    def test_just_created_shown(self, open_session):
        session = open_session()

        created = session.create_transaction(party_name='ACME')

        assert created is not None
        assert session.transaction.id == created.id
        assert session.state == SessionState.ACTIVE
        assert session.notifier.last.message == 'Transaction created'


class TestSessionActions:
    """Tests for create/complete/delete from the session."""

    def test_create_refused_while_in_progress(self, open_session, transaction):
        session = open_session()

        assert session.create_transaction() is None
        assert session.notifier.last.code == 'TRANSACTION_IN_PROGRESS'
        assert PackageTransaction.objects.count() == 1

    def test_server_rejection_is_notified(self, open_session, packing_list):
        session = open_session()
        cfs.create_transaction(packing_list, 'destuffWarehouse')

        assert session.create_transaction() is None
        assert session.notifier.last.code == 'TRANSACTION_IN_PROGRESS'
        # refetched after the failed attempt
        assert session.transaction is not None
        assert session.state == SessionState.ACTIVE

    def test_delete_empty(self, open_session, transaction):
        session = open_session()

        assert session.can_delete
        assert session.delete()
        assert session.state == SessionState.NO_TRANSACTION
        assert not PackageTransaction.objects.exists()

    def test_delete_disabled_with_packages(self, open_session, transaction, line):
        cfs.handle_step(transaction, CreateStep(line_id=line.pk))
        session = open_session()

        assert not session.can_delete
        assert not session.delete()
        assert PackageTransaction.objects.filter(pk=transaction.pk).exists()

    def test_complete_gated_on_every_package(self, open_session, transaction, line, location):
        ids = _at_handover(transaction, line, 5)
        cfs.handle_step(transaction, StoreStep(package_ids=tuple(ids[:4]), location_id=location.pk))
        CargoPackage.objects.filter(pk=ids[4]).update(position_status='CHECK_IN')

        session = open_session()

        assert session.total == 5
        assert session.counts()['store'] == 4
        assert not session.can_complete
        assert not session.complete()
        assert session.state == SessionState.ACTIVE

    def test_complete(self, open_session, transaction, line, location):
        ids = _at_handover(transaction, line, 2)
        cfs.handle_step(transaction, StoreStep(package_ids=tuple(ids), location_id=location.pk))
        session = open_session()

        assert session.state == SessionState.COMPLETABLE
        assert session.complete()
        assert session.state == SessionState.DONE
        assert not session.can_delete

    def test_permission_denied(self, open_session, user):
        session = open_session(can=permission_predicate(user))

        assert not session.can_create_transaction
        assert session.create_transaction() is None
        assert session.notifier.last.code == 'PERMISSION_DENIED'
        assert not PackageTransaction.objects.exists()

    def test_clerk_permissions(self, open_session, clerk):
        session = open_session(can=permission_predicate(clerk))

        assert session.create_transaction() is not None


class TestStepSelection:
    """step_index always stays within the resolved step list."""

    def test_select_step_bounds(self, open_session):
        session = open_session()

        assert session.select_step(2)
        assert session.step_index == 2
        assert not session.select_step(3)
        assert not session.select_step(-1)
        assert session.step_index == 2
        assert isinstance(session.editor(), StoreStepEditor)

    def test_select_by_code(self, open_session):
        session = open_session()

        assert session.select_step_code('inspect')
        assert session.step_index == 1
        assert not session.select_step_code('weigh')

    def test_switching_steps_mutates_nothing(self, open_session, transaction):
        session = open_session()
        reads = PackageTransaction.objects.get(pk=transaction.pk).updated_at

        for index in range(len(session.steps)):
            session.select_step(index)
            session.editor()

        assert PackageTransaction.objects.get(pk=transaction.pk).updated_at == reads

    def test_index_reset_on_new_transaction(self, open_session):
        session = open_session()
        session.select_step(2)

        session.create_transaction()

        assert session.step_index == 0

    def test_index_clamped_when_flow_shrinks(self, open_session):
        session = open_session()
        session.select_step(2)
        cfs.save_flow('destuffWarehouse', [
            {'code': 'create', 'fromStatus': 'UNKNOWN', 'toStatus': 'CHECK_IN'},
        ])

        session.resolver.invalidate()
        session.load_flow()

        assert session.step_index == 0

    def test_unknown_code_gets_placeholder(self, open_session):
        cfs.save_flow('weighFlow', [
            {'code': 'weigh', 'fromStatus': 'CHECK_IN', 'toStatus': 'HANDOVER'},
        ])

        session = open_session(flow_name='weighFlow')
        editor = session.editor()

        assert isinstance(editor, NotImplementedStepEditor)
        assert not editor.implemented
        assert 'weigh' in editor.message


class TestCreateEditor:
    """Sequential single-package receive."""

    def test_receive(self, open_session, line):
        session = open_session()
        session.create_transaction()

        result = session.editor().receive(line.pk, 3)

        assert result.ok
        assert result.succeeded == 3
        assert session.counts()['create'] == 3
        assert session.editor().received_count(line.pk) == 3
        assert session.notifier.last.message == 'Received 3 packages.'

    def test_receive_from_text_input(self, open_session, line):
        session = open_session()
        session.create_transaction()

        result = session.editor().receive(line.pk, '2')

        assert result.succeeded == 2

    def test_partial_failure_reports_k_minus_one(self, open_session, line):
        backend = FlakyBackend(fail_on=3)
        session = open_session(backend=backend)
        session.create_transaction()

        result = session.editor().receive(line.pk, 5)

        assert result.requested == 5
        assert result.succeeded == 2
        assert result.failed.key == 3
        assert result.failed.error.code == 'REQUEST_FAILED'
        assert result.skipped == 2
        assert backend.step_calls == 3
        assert CargoPackage.objects.count() == 2
        assert session.total == 2
        messages = [n.message for n in session.notifier.items]
        assert 'Gateway timeout' in messages
        assert 'Received 2 packages.' in messages

    def test_failure_on_first_call(self, open_session, line):
        session = open_session(backend=FlakyBackend(fail_on=1))
        session.create_transaction()

        result = session.editor().receive(line.pk, 4)

        assert result.succeeded == 0
        assert CargoPackage.objects.count() == 0
        assert session.notifier.last.level == 'error'

    @pytest.mark.parametrize('quantity', [0, -2, '', 'abc', '1.5'])
    def test_invalid_quantity(self, open_session, line, quantity):
        backend = FlakyBackend()
        session = open_session(backend=backend)
        session.create_transaction()

        result = session.editor().receive(line.pk, quantity)

        assert result.succeeded == 0
        assert backend.step_calls == 0
        assert session.notifier.last.message == 'Enter a valid received package count (minimum 1).'

    def test_lines(self, open_session, line, second_line):
        session = open_session()
        session.create_transaction()
        editor = session.editor()

        assert [l.line_no for l in editor.lines()] == [1, 2]
        assert editor.total_expected() == 7

    def test_refetches_after_every_attempt(self, open_session, line):
        backend = FlakyBackend(fail_on=1)
        session = open_session(backend=backend)
        session.create_transaction()
        reads = backend.detail_reads

        session.editor().receive(line.pk, 1)

        assert backend.detail_reads == reads + 1


class TestSelectionEditor:
    """Checkbox selection for inspect."""

    @pytest.fixture
    def inspect_editor(self, open_session, line):
        session = open_session()
        session.create_transaction()
        session.editor().receive(line.pk, 3)
        session.select_step_code('inspect')
        return session.editor()

    def test_queue_is_from_status(self, inspect_editor):
        assert isinstance(inspect_editor, InspectStepEditor)
        assert len(inspect_editor.queue()) == 3

    def test_tri_state(self, inspect_editor):
        first = inspect_editor.queue()[0].id

        assert inspect_editor.select_all_state == SelectAllState.UNCHECKED
        inspect_editor.toggle(first)
        assert inspect_editor.select_all_state == SelectAllState.INDETERMINATE
        inspect_editor.toggle_all()
        assert inspect_editor.select_all_state == SelectAllState.CHECKED
        inspect_editor.toggle_all()
        assert inspect_editor.select_all_state == SelectAllState.UNCHECKED

    def test_toggle_ignores_unknown_package(self, inspect_editor):
        assert not inspect_editor.toggle(987654)
        assert inspect_editor.selected == []

    def test_submit_selected(self, inspect_editor):
        session = inspect_editor.session
        chosen = [p.id for p in inspect_editor.queue()[:2]]
        for pk in chosen:
            inspect_editor.toggle(pk)

        assert inspect_editor.submit()
        assert session.counts() == {'create': 1, 'inspect': 2, 'store': 0}
        assert inspect_editor.selected == []
        assert session.notifier.last.message == 'Inspected 2 packages.'

    def test_submit_nothing_selected(self, inspect_editor):
        assert not inspect_editor.submit()
        assert inspect_editor.session.notifier.last.code == 'NO_PACKAGES'

    def test_inspect_one(self, inspect_editor):
        package = inspect_editor.queue()[0]

        assert inspect_editor.inspect_one(package.id, 'CARGO_DAMAGED', 'PASSED')

        stored = CargoPackage.objects.get(pk=package.id)
        assert stored.condition_status == 'CARGO_DAMAGED'
        assert stored.regulatory_status == 'PASSED'

    def test_selection_pruned_after_refresh(self, inspect_editor):
        inspect_editor.toggle_all()
        first = inspect_editor.queue()[0].id
        cfs.handle_step(inspect_editor.transaction.id, InspectStep(package_ids=(first,)))

        inspect_editor.session.client.invalidate()
        inspect_editor.session.refresh()

        assert first not in inspect_editor.selected
        assert inspect_editor.select_all_state == SelectAllState.CHECKED


class TestHandoverEditor:
    """warehouseDelivery: inspect stored packages, then hand them over."""

    def test_delivery_flow(self, open_session, delivery_flow, packing_list, line):
        stored = [
            CargoPackage.objects.create(
                packing_list=packing_list, line=line, package_no=f'P-{n}', position_status='STORED',
            ).pk
            for n in (1, 2)
        ]
        session = open_session(flow_name='warehouseDelivery')
        session.create_transaction(party_name='Consignee Co', party_type='CONSIGNEE', package_ids=stored)

        inspect = session.editor()
        inspect.toggle_all()
        assert inspect.submit()

        session.select_step_code('handover')
        handover = session.editor()
        assert isinstance(handover, HandoverStepEditor)
        handover.toggle_all()
        assert handover.submit()

        assert session.counts() == {'inspect': 0, 'handover': 2}
        assert session.notifier.last.message == 'Handed over 2 packages.'
        assert session.state == SessionState.COMPLETABLE


class TestSelectEditor:
    """stuffingWarehouse: pick stored packages into the transaction, then stuff them."""

    @pytest.fixture
    def stuffing_session(self, open_session, stuffing_flow, stored_packages):
        return open_session(flow_name='stuffingWarehouse')

    def test_queue_lists_packing_list_packages(self, stuffing_session, stored_packages):
        stuffing_session.create_transaction()
        editor = stuffing_session.editor()

        assert isinstance(editor, SelectStepEditor)
        assert [p.id for p in editor.queue()] == [p.pk for p in stored_packages]
        assert not editor.read_only

    def test_pick_then_stuff(self, stuffing_session, stored_packages):
        stuffing_session.create_transaction()
        select = stuffing_session.editor()
        select.toggle(stored_packages[0].pk)
        select.toggle(stored_packages[1].pk)

        assert select.submit()
        assert stuffing_session.notifier.last.message == 'Packages picked successfully.'
        assert stuffing_session.counts() == {'select': 2, 'stuffing': 0}
        assert [p.id for p in select.queue()] == [stored_packages[2].pk]

        stuffing_session.select_step_code('stuffing')
        stuffing = stuffing_session.editor()
        assert isinstance(stuffing, StuffingStepEditor)
        assert stuffing.stuff_one(stored_packages[0].pk)
        assert stuffing_session.notifier.last.message == 'Stuffed 1 package.'
        stuffing.toggle_all()
        assert stuffing.submit()

        assert stuffing_session.counts() == {'select': 0, 'stuffing': 2}
        assert stuffing_session.state == SessionState.COMPLETABLE
        assert stuffing_session.complete()

    def test_transaction_required(self, stuffing_session, stored_packages):
        select = stuffing_session.editor()
        select.toggle(stored_packages[0].pk)

        assert not select.submit()
        assert stuffing_session.notifier.last.message == 'Transaction is required to pick packages.'
        assert not PackageTransaction.objects.exists()

    def test_change_permission_required(self, open_session, stuffing_flow, stored_packages):
        session = open_session(
            flow_name='stuffingWarehouse',
            can=lambda key: key != 'cfsflow.change_packagetransaction',
        )
        session.create_transaction()
        select = session.editor()
        select.toggle(stored_packages[0].pk)

        assert select.read_only
        assert not select.submit()
        assert session.notifier.last.code == 'PERMISSION_DENIED'
        assert session.total == 0

    def test_server_rejection_is_notified(self, stuffing_session, stored_packages):
        stuffing_session.create_transaction()
        select = stuffing_session.editor()
        select.toggle(stored_packages[0].pk)
        CargoPackage.objects.filter(pk=stored_packages[0].pk).update(position_status='CHECKOUT')

        assert not select.submit()
        assert stuffing_session.notifier.last.code == 'INVALID_STATUS'
        assert stuffing_session.total == 0
        assert [p.id for p in select.queue()] == [p.pk for p in stored_packages[1:]]


class TestStoreEditor:
    """Batch put-away with stale-selection re-check."""

    @pytest.fixture
    def store_editor(self, open_session, transaction, line):
        _at_handover(transaction, line, 4)
        session = open_session()
        session.select_step_code('store')
        return session.editor()

    def test_validate_quantity(self, store_editor):
        assert store_editor.validate_quantity(0) == 'Enter a quantity of at least 1 package.'
        assert store_editor.validate_quantity('x') == 'Enter a quantity of at least 1 package.'
        assert store_editor.validate_quantity(5) == 'Only 4 package(s) currently available in To Store.'
        assert store_editor.validate_quantity(4) is None

    @override_settings(CFSFLOW={'MAX_BATCH_STORE_PACKAGES': 2})
    def test_validate_quantity_max(self, store_editor):
        assert store_editor.validate_quantity(3) == 'Maximum 2 packages per store request.'

    def test_validate_quantity_empty_queue(self, open_session, transaction):
        session = open_session()
        session.select_step_code('store')

        assert session.editor().validate_quantity(1) == 'No packages available in To Store.'

    def test_default_cap_is_300(self, store_editor):
        assert store_editor.max_batch == 300

    def test_prepare_takes_first_queued(self, store_editor):
        queue = store_editor.queue()

        batch = store_editor.prepare(2)

        assert batch == [queue[0].id, queue[1].id]

    def test_store_batch(self, store_editor, location):
        session = store_editor.session
        store_editor.prepare(3)

        result = store_editor.store(location.pk)

        assert result.ok
        assert result.succeeded == 3
        assert session.counts()['store'] == 3
        assert CargoPackage.objects.filter(location=location).count() == 3
        assert session.notifier.last.message == 'Stored 3 packages at LOC-1.'
        assert store_editor.batch == []

    def test_store_selection(self, store_editor, location):
        chosen = store_editor.queue()[-1].id
        store_editor.toggle(chosen)

        assert store_editor.submit(location.pk)
        assert CargoPackage.objects.get(pk=chosen).position_status == 'STORED'

    def test_stale_selection_submits_nothing(self, store_editor, location):
        batch = store_editor.prepare(2)
        cfs.handle_step(store_editor.transaction.id, StoreStep(package_ids=(batch[0],), location_id=location.pk))

        result = store_editor.store(location.pk)

        assert result.outcomes == []
        assert store_editor.session.notifier.last.code == 'STALE_SELECTION'
        assert store_editor.session.notifier.last.message == 'Some selected packages are no longer eligible'
        assert CargoPackage.objects.get(pk=batch[1]).position_status == 'HANDOVER'

    def test_nothing_left_eligible(self, store_editor, location):
        batch = store_editor.prepare(1)
        cfs.handle_step(store_editor.transaction.id, StoreStep(package_ids=tuple(batch), location_id=location.pk))

        result = store_editor.store(location.pk)

        assert result.succeeded == 0
        assert store_editor.session.notifier.last.message == 'No selected packages are currently eligible to store.'

    def test_location_required(self, store_editor):
        store_editor.prepare(1)

        result = store_editor.store(None)

        assert result.succeeded == 0
        assert store_editor.session.notifier.last.message == 'Select a location to continue.'

    def test_unknown_location(self, store_editor):
        store_editor.prepare(1)

        result = store_editor.store(424242)

        assert result.succeeded == 0
        assert store_editor.session.notifier.last.code == 'LOCATION_NOT_FOUND'

    def test_partial_failure(self, open_session, transaction, line, location):
        _at_handover(transaction, line, 4)
        backend = FlakyBackend(fail_on=3)
        session = open_session(backend=backend)
        session.select_step_code('store')
        editor = session.editor()
        batch = editor.prepare(4)

        result = editor.store(location.pk)

        assert result.succeeded == 2
        assert result.failed.key == batch[2]
        assert result.skipped == 1
        assert CargoPackage.objects.filter(position_status='STORED').count() == 2
        assert session.counts()['store'] == 2


class TestTransactionClient:
    """Cache invalidation on every mutation attempt."""

    def test_reads_are_cached(self, transaction, packing_list):
        backend = FlakyBackend()
        client = TransactionClient(backend)

        client.get(transaction.pk)
        client.get(transaction.pk)

        assert backend.detail_reads == 1

    def test_failed_mutation_invalidates(self, transaction, packing_list, line):
        backend = FlakyBackend(fail_on=1)
        client = TransactionClient(backend)
        client.get(transaction.pk)

        with pytest.raises(TransactionError):
            client.handle_step(transaction.pk, CreateStep(line_id=line.pk), packing_list_id=packing_list.pk)
        client.get(transaction.pk)

        assert backend.detail_reads == 2

    def test_update_invalidates_package_lists(self, stuffing_flow, packing_list, stored_packages):
        txn = cfs.create_transaction(packing_list, 'stuffingWarehouse')
        client = TransactionClient(LocalBackend())
        assert len(client.packages(packing_list.pk, 'STORED')) == 3

        client.update(txn.pk, package_ids=[stored_packages[0].pk], packing_list_id=packing_list.pk)

        assert len(client.packages(packing_list.pk, 'STORED')) == 2
        assert len(client.get(txn.pk).packages) == 1

    def test_successful_mutation_invalidates_list(self, transaction, packing_list, line):
        client = TransactionClient(LocalBackend())
        assert client.list_for_packing_list(packing_list.pk)[0].packages == ()

        client.handle_step(transaction.pk, CreateStep(line_id=line.pk), packing_list_id=packing_list.pk)

        assert len(client.list_for_packing_list(packing_list.pk)[0].packages) == 1
