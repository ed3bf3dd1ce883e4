"""
Transaction Session — the step executor for one packing list and flow.

Client-observed state machine:

    NO_TRANSACTION ──create──▶ ACTIVE ──advance-step──▶ ACTIVE
                                 │                         │
                                 │ delete (empty)          │ all packages terminal
                                 ▼                         ▼
                          NO_TRANSACTION              COMPLETABLE ──complete──▶ DONE

DONE is read-only. Every action catches CfsError at the boundary,
pushes a notification and re-queries the server; nothing is re-raised.

Usage:
    session = TransactionSession(packing_list.pk, 'destuffWarehouse',
                                 can=permission_predicate(request.user))
    session.open()
    session.create_transaction()
    session.editor().receive(line_id, 3)
"""

from __future__ import annotations

import logging
from collections import Counter

from django.db import models

from cfsflow.console.client import TransactionClient
from cfsflow.console.editors import EDITORS, NotImplementedStepEditor, StepEditor
from cfsflow.console.notifications import Notifier
from cfsflow.console.permissions import (
    ADD_TRANSACTION,
    COMPLETE_TRANSACTION,
    DELETE_TRANSACTION,
    Can,
    allow_all,
)
from cfsflow.console.resolver import FlowResolver
from cfsflow.exceptions import CfsError, FlowError, TransactionError
from cfsflow.protocols.transactions import (
    FlowDefinition,
    FlowStep,
    PackageRef,
    TransactionBackend,
    TransactionInfo,
)

logger = logging.getLogger(__name__)


class SessionState(models.TextChoices):
    NO_TRANSACTION = 'NO_TRANSACTION', 'No transaction'
    ACTIVE = 'ACTIVE', 'Active'
    COMPLETABLE = 'COMPLETABLE', 'Completable'
    DONE = 'DONE', 'Done'


class TransactionSession:
    """Active transaction, resolved flow and selected step for a packing list."""

    def __init__(self, packing_list_id: int, flow_name: str,
                 backend: TransactionBackend | None = None,
                 can: Can | None = None,
                 notifier: Notifier | None = None,
                 resolver: FlowResolver | None = None):
        if backend is None:
            from cfsflow.adapters import get_backend
            backend = get_backend()
        self.packing_list_id = packing_list_id
        self.flow_name = flow_name
        self.backend = backend
        self.client = TransactionClient(backend)
        self.resolver = resolver or FlowResolver(backend)
        self.can = can or allow_all
        self.notifier = notifier or Notifier()

        self.flow: FlowDefinition | None = None
        self.flow_error: FlowError | None = None
        self.transaction: TransactionInfo | None = None
        self._created: TransactionInfo | None = None
        self._step_index = 0
        self._editors: dict[tuple[int, str], StepEditor] = {}

    # ══════════════════════════════════════════════════════════════
    # LOADING
    # ══════════════════════════════════════════════════════════════

    def open(self) -> TransactionSession:
        """Resolve the flow and load the active transaction from the server."""
        self._step_index = 0
        self._created = None
        self.client.invalidate()
        self.load_flow()
        self.refresh()
        return self

    def load_flow(self) -> FlowDefinition | None:
        try:
            self.flow = self.resolver.resolve(self.flow_name)
            self.flow_error = None
        except FlowError as e:
            self.flow = None
            self.flow_error = e
            self.notifier.error(e.message, e.code)
        self._clamp_step_index()
        return self.flow

    def refresh(self) -> TransactionInfo | None:
        """
        Reload the active transaction and its packages through the client cache.

        Every mutation made through the client invalidates the entries it
        touches, so reads after a mutation go to the server. Changes made
        elsewhere only show up after open() or client.invalidate().
        """
        previous = self.transaction.id if self.transaction else None

        try:
            transactions = self.client.list_for_packing_list(self.packing_list_id)
            active = self._pick_active(transactions)
            self.transaction = self.client.get(active.id) if active else None
        except CfsError as e:
            self.notifier.error(e.message, e.code)
            return self.transaction

        current = self.transaction.id if self.transaction else None
        if current != previous:
            self._step_index = 0
            self._editors.clear()
        self._clamp_step_index()
        return self.transaction

    def _pick_active(self, transactions: list[TransactionInfo]) -> TransactionInfo | None:
        """In-progress beats just-created beats latest done."""
        in_progress = next((t for t in transactions if t.is_in_progress), None)
        if in_progress is not None:
            self._created = None
            return in_progress
        if self._created is not None:
            return self._created
        latest = transactions[0] if transactions else None
        return latest if latest is not None and latest.is_done else None

    # ══════════════════════════════════════════════════════════════
    # STEPS
    # ══════════════════════════════════════════════════════════════

    @property
    def blocked(self) -> bool:
        """Flow lookup failed; nothing can be shown but the error."""
        return self.flow_error is not None

    @property
    def steps(self) -> tuple[FlowStep, ...]:
        return self.flow.steps if self.flow else ()

    @property
    def has_no_steps(self) -> bool:
        """Flow resolved but declares no steps (valid, distinct from a failed lookup)."""
        return self.flow is not None and not self.flow.steps

    @property
    def step_index(self) -> int:
        return self._step_index

    @property
    def active_step(self) -> FlowStep | None:
        return self.steps[self._step_index] if self.steps else None

    def select_step(self, index: int) -> bool:
        """Switch the visible step. Out-of-range indexes are ignored."""
        if not 0 <= index < len(self.steps):
            return False
        self._step_index = index
        return True

    def select_step_code(self, code: str) -> bool:
        for index, step in enumerate(self.steps):
            if step.code == code:
                return self.select_step(index)
        return False

    def _clamp_step_index(self) -> None:
        if not self.steps:
            self._step_index = 0
        else:
            self._step_index = min(max(self._step_index, 0), len(self.steps) - 1)

    def editor(self) -> StepEditor | None:
        """Editor for the active step; unknown codes get the placeholder."""
        step = self.active_step
        if step is None:
            return None
        key = (self._step_index, step.code)
        if key not in self._editors:
            editor_class = EDITORS.get(step.code, NotImplementedStepEditor)
            self._editors[key] = editor_class(self, step)
        return self._editors[key]

    # ══════════════════════════════════════════════════════════════
    # DERIVED STATE
    # ══════════════════════════════════════════════════════════════

    @property
    def packages(self) -> tuple[PackageRef, ...]:
        return self.transaction.packages if self.transaction else ()

    @property
    def total(self) -> int:
        return len(self.packages)

    def counts(self) -> dict[str, int]:
        """Packages sitting at each step's toStatus, keyed by step code."""
        by_status = Counter(p.position_status for p in self.packages)
        return {step.code: by_status.get(step.to_status, 0) for step in self.steps}

    @property
    def terminal_status(self) -> str | None:
        return self.flow.terminal_status if self.flow else None

    @property
    def is_done(self) -> bool:
        return self.transaction is not None and self.transaction.is_done

    @property
    def read_only(self) -> bool:
        return self.is_done

    @property
    def can_complete(self) -> bool:
        if self.transaction is None or self.is_done or not self.can(COMPLETE_TRANSACTION):
            return False
        terminal = self.terminal_status
        return (
            self.total > 0
            and terminal is not None
            and all(p.position_status == terminal for p in self.packages)
        )

    @property
    def can_delete(self) -> bool:
        return (
            self.transaction is not None
            and not self.is_done
            and self.total == 0
            and self.can(DELETE_TRANSACTION)
        )

    @property
    def can_create_transaction(self) -> bool:
        in_progress = self.transaction is not None and self.transaction.is_in_progress
        return not in_progress and not self.blocked and self.can(ADD_TRANSACTION)

    @property
    def state(self) -> str:
        if self.transaction is None:
            return SessionState.NO_TRANSACTION
        if self.is_done:
            return SessionState.DONE
        terminal = self.terminal_status
        if self.total and terminal and all(p.position_status == terminal for p in self.packages):
            return SessionState.COMPLETABLE
        return SessionState.ACTIVE

    # ══════════════════════════════════════════════════════════════
    # ACTIONS
    # ══════════════════════════════════════════════════════════════

    def create_transaction(self, party_name: str = '', party_type: str = '',
                           package_ids: list[int] | None = None) -> TransactionInfo | None:
        """NO_TRANSACTION → ACTIVE."""
        if not self.can(ADD_TRANSACTION):
            return self._denied()
        if self.transaction is not None and self.transaction.is_in_progress:
            self.notifier.error(
                TransactionError._default_messages['TRANSACTION_IN_PROGRESS'],
                'TRANSACTION_IN_PROGRESS',
            )
            return None

        try:
            created = self.client.create(
                self.packing_list_id,
                self.flow_name,
                package_ids=package_ids,
                party_name=party_name,
                party_type=party_type,
            )
        except CfsError as e:
            self.notifier.error(e.message, e.code)
            self.refresh()
            return None

        self._created = created
        self.notifier.success('Transaction created')
        self.refresh()
        return created

    def complete(self) -> bool:
        """COMPLETABLE → DONE."""
        if not self.can_complete:
            if not self.can(COMPLETE_TRANSACTION):
                self._denied()
            return False

        try:
            self.client.complete(self.transaction.id, packing_list_id=self.packing_list_id)
        except CfsError as e:
            self.notifier.error(e.message, e.code)
            self.refresh()
            return False

        self.notifier.success('Transaction completed.')
        self.refresh()
        return True

    def delete(self) -> bool:
        """ACTIVE (empty) → NO_TRANSACTION."""
        if not self.can_delete:
            if self.transaction is not None and not self.can(DELETE_TRANSACTION):
                self._denied()
            return False

        transaction_id = self.transaction.id
        try:
            self.client.delete(transaction_id, packing_list_id=self.packing_list_id)
        except CfsError as e:
            self.notifier.error(e.message, e.code)
            self.refresh()
            return False

        if self._created is not None and self._created.id == transaction_id:
            self._created = None
        self.notifier.success('Transaction deleted.')
        self.refresh()
        return True

    def _denied(self) -> None:
        error = TransactionError('PERMISSION_DENIED')
        self.notifier.error(error.message, error.code)
        return None
