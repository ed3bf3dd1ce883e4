"""
Step execution — the single handle-step entry point.

The step code is interpreted against the transaction's flow: the flow
step supplies from_status/to_status, the command supplies the payload.

All methods use transaction.atomic() with the transaction row locked.
"""

import logging

from django.db import transaction

from cfsflow.exceptions import FlowError, TransactionError
from cfsflow.models import (
    CargoPackage,
    ConditionStatus,
    PackageMovement,
    PackageTransaction,
    PackingListLine,
    RegulatoryStatus,
    TransactionStatus,
)
from cfsflow.protocols.transactions import (
    CreateStep,
    HandoverStep,
    InspectStep,
    SelectStep,
    StoreStep,
    StuffingStep,
    step_from_payload,
)
from cfsflow.services.queries import TransactionQueries

logger = logging.getLogger('cfsflow')


def _next_package_no(line: PackingListLine) -> str:
    """Sequential package number within a line: <PL>-<LINE>-<SEQ>."""
    seq = CargoPackage.objects.filter(line=line).count() + 1
    prefix = f"{line.packing_list.number}-{line.line_no:03d}"
    package_no = f"{prefix}-{seq:04d}"
    while CargoPackage.objects.filter(package_no=package_no).exists():
        seq += 1
        package_no = f"{prefix}-{seq:04d}"
    return package_no


class StepHandlers:
    """Step execution methods."""

    @classmethod
    def handle_step(cls, txn, command, user=None) -> tuple[str, list[PackageMovement]]:
        """
        Execute one step of the transaction's flow.

        Args:
            txn: PackageTransaction or pk
            command: a StepCommand (CreateStep, InspectStep, StoreStep, HandoverStep,
                     SelectStep, StuffingStep)
                     or a wire payload dict ({"step": ..., ...})
            user: acting user (recorded on movements)

        Returns:
            (step code, movements created in request order)

        Raises:
            TransactionError('TRANSACTION_DONE'): transaction already completed
            FlowError('STEP_NOT_IN_FLOW'): code not declared by the flow
            TransactionError('INVALID_STATUS'): a package is not at the step's from_status
            TransactionError('PACKAGE_NOT_IN_TRANSACTION')
        """
        if isinstance(command, dict):
            command = step_from_payload(command)

        pk = TransactionQueries.get_transaction(txn).pk

        with transaction.atomic():
            locked = PackageTransaction.objects.select_for_update().select_related(
                'flow', 'packing_list'
            ).get(pk=pk)

            if locked.status == TransactionStatus.DONE:
                raise TransactionError('TRANSACTION_DONE', transaction_id=pk)

            step = locked.flow.as_definition().step(command.code)
            if step is None:
                raise FlowError('STEP_NOT_IN_FLOW', flow=locked.flow.name, step=command.code)

            handler = {
                CreateStep: cls._handle_create,
                InspectStep: cls._handle_inspect,
                StoreStep: cls._handle_store,
                HandoverStep: cls._handle_handover,
                SelectStep: cls._handle_select,
                StuffingStep: cls._handle_stuffing,
            }[type(command)]
            movements = handler(locked, step, command, user)

        logger.info(
            "transaction.step",
            extra={
                "transaction_id": pk,
                "step": command.code,
                "packages": len(movements),
                "to_status": step.to_status,
            },
        )
        return command.code, movements

    # ══════════════════════════════════════════════════════════════
    # STEP KINDS
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def _handle_create(cls, txn, step, command: CreateStep, user):
        """Receive new packages on a line of the transaction's packing list."""
        if command.package_count < 1:
            raise TransactionError('INVALID_QUANTITY', requested=command.package_count)

        try:
            line = PackingListLine.objects.select_related('packing_list').get(
                pk=command.line_id, packing_list=txn.packing_list
            )
        except (PackingListLine.DoesNotExist, ValueError, TypeError):
            raise TransactionError('LINE_NOT_FOUND', line_id=command.line_id)

        movements = []
        for _ in range(command.package_count):
            package = CargoPackage.objects.create(
                packing_list=txn.packing_list,
                line=line,
                package_no=_next_package_no(line),
                position_status=step.from_status,
            )
            txn.packages.add(package)
            movements.append(PackageMovement.objects.create(
                package=package,
                package_transaction=txn,
                step=step.code,
                from_status=step.from_status,
                to_status=step.to_status,
                user=user,
            ))
        return movements

    @classmethod
    def _handle_inspect(cls, txn, step, command: InspectStep, user):
        """Record inspection results and advance."""
        if command.condition_status not in ConditionStatus.values:
            raise TransactionError('INVALID_STATUS', field='conditionStatus', value=command.condition_status)
        if command.regulatory_status not in RegulatoryStatus.values:
            raise TransactionError('INVALID_STATUS', field='regulatoryStatus', value=command.regulatory_status)

        packages = cls._eligible_packages(txn, step, command.package_ids)
        CargoPackage.objects.filter(pk__in=[p.pk for p in packages]).update(
            condition_status=command.condition_status,
            regulatory_status=command.regulatory_status,
        )
        for package in packages:
            package.condition_status = command.condition_status
            package.regulatory_status = command.regulatory_status
        return cls._advance(txn, step, packages, user)

    @classmethod
    def _handle_store(cls, txn, step, command: StoreStep, user):
        """Put packages away at a location and advance."""
        location = TransactionQueries.get_location(command.location_id)
        packages = cls._eligible_packages(txn, step, command.package_ids)
        return cls._advance(txn, step, packages, user, location=location)

    @classmethod
    def _handle_handover(cls, txn, step, command: HandoverStep, user):
        """Hand packages over and advance."""
        packages = cls._eligible_packages(txn, step, command.package_ids)
        return cls._advance(txn, step, packages, user)

    @classmethod
    def _handle_select(cls, txn, step, command: SelectStep, user):
        """Pick packages of the packing list into the transaction."""
        return cls._pick_packages(txn, step, command.package_ids, user)

    @classmethod
    def _handle_stuffing(cls, txn, step, command: StuffingStep, user):
        """Load packages into the container and advance."""
        packages = cls._eligible_packages(txn, step, command.package_ids)
        return cls._advance(txn, step, packages, user)

    @classmethod
    def _pick_packages(cls, txn, step, package_ids, user) -> list[PackageMovement]:
        """
        Attach packing-list packages sitting at step.from_status and advance them.

        Packages already in this transaction are rejected like any other
        package not at from_status; packages held by another in-progress
        transaction are refused.
        """
        if not package_ids:
            raise TransactionError('NO_PACKAGES')

        ordered_ids = list(dict.fromkeys(package_ids))
        found = {
            p.pk: p
            for p in CargoPackage.objects.select_for_update().filter(
                pk__in=ordered_ids, packing_list=txn.packing_list
            )
        }

        missing = [pk for pk in ordered_ids if pk not in found]
        if missing:
            raise TransactionError('PACKAGE_NOT_FOUND', package_ids=missing)

        wrong = [pk for pk in ordered_ids if found[pk].position_status != step.from_status]
        if wrong:
            raise TransactionError('INVALID_STATUS', package_ids=wrong, expected=step.from_status)

        in_other = set(
            PackageTransaction.packages.through.objects.filter(
                cargopackage_id__in=ordered_ids,
                packagetransaction__status=TransactionStatus.IN_PROGRESS,
            ).exclude(packagetransaction=txn).values_list('cargopackage_id', flat=True)
        )
        held = [pk for pk in ordered_ids if pk in in_other]
        if held:
            raise TransactionError('PACKAGE_IN_OTHER_TRANSACTION', package_ids=held)

        packages = [found[pk] for pk in ordered_ids]
        txn.packages.add(*packages)
        return cls._advance(txn, step, packages, user)

    # ══════════════════════════════════════════════════════════════
    # INTERNALS
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def _eligible_packages(cls, txn, step, package_ids) -> list[CargoPackage]:
        """Lock the requested packages and check they sit at step.from_status."""
        if not package_ids:
            raise TransactionError('NO_PACKAGES')

        try:
            ordered_ids = list(dict.fromkeys(int(pk) for pk in package_ids))
        except (TypeError, ValueError):
            raise TransactionError('PACKAGE_NOT_IN_TRANSACTION', package_ids=list(package_ids))
        found = {
            p.pk: p
            for p in CargoPackage.objects.select_for_update().filter(
                pk__in=ordered_ids, transactions=txn
            )
        }

        missing = [pk for pk in ordered_ids if pk not in found]
        if missing:
            raise TransactionError('PACKAGE_NOT_IN_TRANSACTION', package_ids=missing)

        wrong = [pk for pk in ordered_ids if found[pk].position_status != step.from_status]
        if wrong:
            raise TransactionError(
                'INVALID_STATUS',
                package_ids=wrong,
                expected=step.from_status,
            )

        return [found[pk] for pk in ordered_ids]

    @classmethod
    def _advance(cls, txn, step, packages, user, location=None) -> list[PackageMovement]:
        return [
            PackageMovement.objects.create(
                package=package,
                package_transaction=txn,
                step=step.code,
                from_status=step.from_status,
                to_status=step.to_status,
                location=location,
                user=user,
            )
            for package in packages
        ]
