"""
Step editors — one per step kind.

Each editor works on the session's active transaction and its step's
fromStatus/toStatus pair. Mutations go through TransactionClient, and
every attempt is followed by session.refresh().

    create     CreateStepEditor      per-line quantity, N sequential single calls
    inspect    InspectStepEditor     checkbox selection, one bulk call
    handover   HandoverStepEditor    checkbox selection, one bulk call
    select     SelectStepEditor      pick packing-list packages into the transaction
    stuffing   StuffingStepEditor    checkbox selection or one package at a time
    store      StoreStepEditor       batch + location, one call per package
    (other)    NotImplementedStepEditor
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.db import models

from cfsflow.conf import cfsflow_settings
from cfsflow.console.permissions import CHANGE_TRANSACTION, HANDLE_STEP
from cfsflow.console.results import BatchResult
from cfsflow.exceptions import CfsError, StaleSelectionError, TransactionError
from cfsflow.protocols.transactions import (
    CreateStep,
    FlowStep,
    HandoverStep,
    InspectStep,
    LineInfo,
    LocationInfo,
    PackageRef,
    StepCommand,
    StoreStep,
    StuffingStep,
)

if TYPE_CHECKING:
    from cfsflow.console.session import TransactionSession

logger = logging.getLogger(__name__)


class SelectAllState(models.TextChoices):
    CHECKED = 'checked', 'Checked'
    UNCHECKED = 'unchecked', 'Unchecked'
    INDETERMINATE = 'indeterminate', 'Indeterminate'


def _plural(count: int) -> str:
    return f"{count} package{'' if count == 1 else 's'}"


class StepEditor:
    """Base editor bound to one flow step of a session."""

    implemented = True

    def __init__(self, session: TransactionSession, step: FlowStep):
        self.session = session
        self.step = step

    @property
    def notifier(self):
        return self.session.notifier

    @property
    def transaction(self):
        return self.session.transaction

    @property
    def read_only(self) -> bool:
        return self.transaction is None or self.session.read_only or not self.session.can(HANDLE_STEP)

    def queue(self) -> list[PackageRef]:
        """Packages waiting at this step's fromStatus, by line then package number."""
        return sorted(
            (p for p in self.session.packages if p.position_status == self.step.from_status),
            key=lambda p: (p.line_no or 0, p.package_no),
        )

    def done(self) -> list[PackageRef]:
        return [p for p in self.session.packages if p.position_status == self.step.to_status]

    def _check_writable(self) -> bool:
        if self.transaction is None:
            self.notifier.error('Create a transaction first.', 'TRANSACTION_NOT_FOUND')
            return False
        if self.session.read_only:
            error = TransactionError('TRANSACTION_DONE')
            self.notifier.error(error.message, error.code)
            return False
        if not self.session.can(HANDLE_STEP):
            error = TransactionError('PERMISSION_DENIED')
            self.notifier.error(error.message, error.code)
            return False
        return True

    def _call(self, command: StepCommand):
        return self.session.client.handle_step(
            self.transaction.id, command, packing_list_id=self.session.packing_list_id
        )


# ══════════════════════════════════════════════════════════════
# CREATE
# ══════════════════════════════════════════════════════════════


class CreateStepEditor(StepEditor):
    """Receive packages line by line."""

    INVALID_QUANTITY_MESSAGE = 'Enter a valid received package count (minimum 1).'

    def lines(self) -> list[LineInfo]:
        try:
            return self.session.client.lines(self.session.packing_list_id)
        except CfsError as e:
            self.notifier.error(e.message, e.code)
            return []

    def received_count(self, line_id: int) -> int:
        return sum(
            1 for p in self.session.packages
            if p.line_id == line_id and p.position_status != self.step.from_status
        )

    def total_expected(self) -> int:
        return sum(line.number_of_packages for line in self.lines())

    def total_received(self) -> int:
        return sum(self.received_count(line.id) for line in self.lines())

    @staticmethod
    def parse_quantity(value) -> int | None:
        if isinstance(value, bool):
            return None
        if isinstance(value, int):
            return value
        text = str(value or '').strip()
        return int(text) if text.isdigit() else None

    def receive(self, line_id: int, quantity=1) -> BatchResult:
        """
        Issue `quantity` sequential single-package create calls.

        Stops at the first failure: a failure at call K leaves K-1
        packages created and reports K-1.
        """
        count = self.parse_quantity(quantity)
        result = BatchResult(requested=max(count or 0, 0))

        if count is None or count < 1:
            self.notifier.error(self.INVALID_QUANTITY_MESSAGE, 'INVALID_QUANTITY')
            return result
        if not self._check_writable():
            return result

        for index in range(1, count + 1):
            try:
                self._call(CreateStep(line_id=line_id, package_count=1))
            except CfsError as e:
                result.record(index, e)
                self.notifier.error(e.message, e.code)
                break
            result.record(index)

        if result.succeeded:
            self.notifier.success(f"Received {_plural(result.succeeded)}.")
        logger.info("console.receive", extra={
            "transaction_id": self.transaction.id,
            "line_id": line_id,
            "requested": count,
            "succeeded": result.succeeded,
        })
        self.session.refresh()
        return result


# ══════════════════════════════════════════════════════════════
# SELECTION (inspect / handover / stuffing)
# ══════════════════════════════════════════════════════════════


class SelectionStepEditor(StepEditor):
    """Checkbox selection over the queue, submitted as one bulk call."""

    success_message = 'Updated {packages}.'

    def __init__(self, session, step):
        super().__init__(session, step)
        self._selected: list[int] = []

    @property
    def selected(self) -> list[int]:
        """Selected ids still in the queue, in selection order."""
        queued = {p.id for p in self.queue()}
        self._selected = [pk for pk in self._selected if pk in queued]
        return list(self._selected)

    def is_selected(self, package_id: int) -> bool:
        return package_id in self.selected

    def toggle(self, package_id: int) -> bool:
        """Flip one checkbox. Returns the new checked state."""
        if package_id in self._selected:
            self._selected.remove(package_id)
            return False
        if package_id not in {p.id for p in self.queue()}:
            return False
        self._selected.append(package_id)
        return True

    @property
    def select_all_state(self) -> str:
        queued = self.queue()
        selected = self.selected
        if not queued or not selected:
            return SelectAllState.UNCHECKED
        if len(selected) == len(queued):
            return SelectAllState.CHECKED
        return SelectAllState.INDETERMINATE

    def toggle_all(self) -> str:
        """Select everything, or clear when everything is already selected."""
        if self.select_all_state == SelectAllState.CHECKED:
            self._selected = []
        else:
            self._selected = [p.id for p in self.queue()]
        return self.select_all_state

    def clear(self) -> None:
        self._selected = []

    def command(self, package_ids: tuple[int, ...]) -> StepCommand:
        raise NotImplementedError

    def submit(self) -> bool:
        """Advance the selected packages with one bulk call."""
        package_ids = tuple(self.selected)
        if not package_ids:
            error = TransactionError('NO_PACKAGES')
            self.notifier.error(error.message, error.code)
            return False
        return self._submit(self.command(package_ids))

    def _submit(self, command: StepCommand) -> bool:
        if not self._check_writable():
            return False
        try:
            result = self._call(command)
        except CfsError as e:
            self.notifier.error(e.message, e.code)
            self.session.refresh()
            return False

        self.clear()
        self.notifier.success(self.success_message.format(packages=_plural(len(result.packages))))
        self.session.refresh()
        return True


class InspectStepEditor(SelectionStepEditor):
    """Condition check; bulk or single-package with explicit statuses."""

    success_message = 'Inspected {packages}.'

    def __init__(self, session, step):
        super().__init__(session, step)
        self.condition_status = 'NORMAL'
        self.regulatory_status = 'UNINSPECTED'

    def command(self, package_ids):
        return InspectStep(
            package_ids=package_ids,
            condition_status=self.condition_status,
            regulatory_status=self.regulatory_status,
        )

    def inspect_one(self, package_id: int, condition_status: str = 'NORMAL',
                    regulatory_status: str = 'UNINSPECTED') -> bool:
        return self._submit(InspectStep(
            package_ids=(package_id,),
            condition_status=condition_status,
            regulatory_status=regulatory_status,
        ))


class HandoverStepEditor(SelectionStepEditor):
    success_message = 'Handed over {packages}.'

    def command(self, package_ids):
        return HandoverStep(package_ids=package_ids)


class StuffingStepEditor(SelectionStepEditor):
    success_message = 'Stuffed {packages}.'

    def command(self, package_ids):
        return StuffingStep(package_ids=package_ids)

    def stuff_one(self, package_id: int) -> bool:
        return self._submit(StuffingStep(package_ids=(package_id,)))


# ══════════════════════════════════════════════════════════════
# SELECT
# ══════════════════════════════════════════════════════════════


class SelectStepEditor(SelectionStepEditor):
    """
    Pick packages of the packing list into the transaction.

    The queue is read from the packing list rather than the transaction:
    packages at fromStatus that the transaction does not hold yet.
    Submitting updates the transaction with the picked ids; the server
    advances them through the step.
    """

    success_message = 'Packages picked successfully.'

    @property
    def read_only(self) -> bool:
        return (
            self.transaction is None
            or self.session.read_only
            or not self.session.can(CHANGE_TRANSACTION)
        )

    def queue(self) -> list[PackageRef]:
        held = {p.id for p in self.session.packages}
        try:
            available = self.session.client.packages(self.session.packing_list_id, self.step.from_status)
        except CfsError as e:
            self.notifier.error(e.message, e.code)
            return []
        return sorted(
            (p for p in available if p.id not in held),
            key=lambda p: (p.line_no or 0, p.package_no),
        )

    def submit(self) -> bool:
        if self.transaction is None:
            self.notifier.error('Transaction is required to pick packages.', 'TRANSACTION_NOT_FOUND')
            return False
        package_ids = self.selected
        if not package_ids:
            error = TransactionError('NO_PACKAGES')
            self.notifier.error(error.message, error.code)
            return False
        if self.session.read_only:
            error = TransactionError('TRANSACTION_DONE')
            self.notifier.error(error.message, error.code)
            return False
        if not self.session.can(CHANGE_TRANSACTION):
            error = TransactionError('PERMISSION_DENIED')
            self.notifier.error(error.message, error.code)
            return False

        try:
            self.session.client.update(
                self.transaction.id,
                package_ids=package_ids,
                packing_list_id=self.session.packing_list_id,
            )
        except CfsError as e:
            self.notifier.error(e.message or 'Failed to pick packages', e.code)
            self.session.refresh()
            return False

        logger.info("console.select", extra={
            "transaction_id": self.transaction.id,
            "packages": len(package_ids),
        })
        self.clear()
        self.notifier.success(self.success_message)
        self.session.refresh()
        return True


# ══════════════════════════════════════════════════════════════
# STORE
# ══════════════════════════════════════════════════════════════


class StoreStepEditor(SelectionStepEditor):
    """
    Batch put-away: prepare a batch, pick one location, store.

    The batch is re-validated against a fresh transaction fetch right
    before submission; packages that left fromStatus abort the whole
    batch with a stale-selection error.
    """

    def __init__(self, session, step):
        super().__init__(session, step)
        self.batch: list[int] = []
        self.location: LocationInfo | None = None

    @property
    def max_batch(self) -> int:
        return cfsflow_settings.MAX_BATCH_STORE_PACKAGES

    def validate_quantity(self, quantity) -> str | None:
        """Message explaining why a batch quantity is unusable, or None."""
        eligible = len(self.queue())
        if eligible == 0:
            return 'No packages available in To Store.'
        count = CreateStepEditor.parse_quantity(quantity)
        if count is None or count < 1:
            return 'Enter a quantity of at least 1 package.'
        if count > self.max_batch:
            return f'Maximum {self.max_batch} packages per store request.'
        if count > eligible:
            return f'Only {eligible} package(s) currently available in To Store.'
        return None

    def prepare(self, quantity=None) -> list[int]:
        """
        Fix the batch: the first `quantity` queued packages, or the
        current checkbox selection when no quantity is given.
        """
        self.batch = []
        if not self._check_writable():
            return []

        if quantity is None:
            selected = self.selected
            if not selected:
                error = TransactionError('NO_PACKAGES')
                self.notifier.error(error.message, error.code)
                return []
            if len(selected) > self.max_batch:
                self.notifier.error(f'Maximum {self.max_batch} packages per store request.', 'INVALID_QUANTITY')
                return []
            self.batch = selected
            return list(self.batch)

        message = self.validate_quantity(quantity)
        if message:
            self.notifier.error(message, 'INVALID_QUANTITY')
            return []
        self.batch = [p.id for p in self.queue()[:CreateStepEditor.parse_quantity(quantity)]]
        return list(self.batch)

    def cancel(self) -> None:
        self.batch = []

    def store(self, location_id: int | None) -> BatchResult:
        """
        Store the prepared batch at one location, one call per package.

        Stops at the first failure; a failure at call K leaves K-1
        packages stored.
        """
        batch = list(self.batch)
        result = BatchResult(requested=len(batch))

        if not self._check_writable():
            return result
        if location_id in (None, ''):
            self.notifier.error('Select a location to continue.', 'LOCATION_NOT_FOUND')
            return result
        if not batch:
            self.notifier.error('No selected packages are currently eligible to store.', 'NO_PACKAGES')
            return result

        self.session.client.invalidate(self.session.packing_list_id, self.transaction.id)
        self.session.refresh()
        if self.transaction is None or self.session.read_only:
            self.notifier.error('No selected packages are currently eligible to store.', 'NO_PACKAGES')
            self.cancel()
            return result

        queued = {p.id for p in self.queue()}
        eligible = [pk for pk in batch if pk in queued]
        if not eligible:
            self.notifier.error('No selected packages are currently eligible to store.', 'NO_PACKAGES')
            self.cancel()
            return result
        if len(eligible) != len(batch):
            error = StaleSelectionError(
                'STALE_SELECTION',
                package_ids=[pk for pk in batch if pk not in queued],
            )
            self.notifier.error(error.message, error.code)
            self.cancel()
            return result

        try:
            self.location = self.session.client.location(location_id)
        except CfsError as e:
            self.notifier.error(e.message, e.code)
            return result

        for package_id in batch:
            try:
                self._call(StoreStep(package_ids=(package_id,), location_id=self.location.id))
            except CfsError as e:
                result.record(package_id, e)
                self.notifier.error(e.message, e.code)
                break
            result.record(package_id)

        if result.succeeded:
            self.notifier.success(f"Stored {_plural(result.succeeded)} at {self.location.code}.")
        logger.info("console.store", extra={
            "transaction_id": self.transaction.id,
            "location": self.location.code,
            "requested": result.requested,
            "succeeded": result.succeeded,
        })
        self.batch = []
        self.clear()
        self.session.refresh()
        return result

    def submit(self, location_id=None) -> bool:
        """Store the checkbox selection at one location."""
        if not self.prepare():
            return False
        result = self.store(location_id)
        return result.requested > 0 and result.ok


# ══════════════════════════════════════════════════════════════
# PLACEHOLDER
# ══════════════════════════════════════════════════════════════


class NotImplementedStepEditor(StepEditor):
    """Shown for step codes without an editor; never mutates anything."""

    implemented = False

    @property
    def message(self) -> str:
        return f'Step "{self.step.code}" is not implemented yet.'


EDITORS: dict[str, type[StepEditor]] = {
    'create': CreateStepEditor,
    'inspect': InspectStepEditor,
    'handover': HandoverStepEditor,
    'store': StoreStepEditor,
    'select': SelectStepEditor,
    'stuffing': StuffingStepEditor,
}
