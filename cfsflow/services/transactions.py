"""
Transaction lifecycle — create, update, complete, delete.

All methods use transaction.atomic() with appropriate locking.
"""

import logging

from django.db import transaction
from django.utils import timezone

from cfsflow.exceptions import TransactionError
from cfsflow.models import CargoPackage, PackageTransaction, PackingList, TransactionStatus
from cfsflow.protocols.transactions import parse_package_ids
from cfsflow.services.flows import FlowQueries
from cfsflow.services.queries import TransactionQueries
from cfsflow.services.steps import StepHandlers

logger = logging.getLogger('cfsflow')


class TransactionOps:
    """State-changing transaction lifecycle methods."""

    @classmethod
    def create_transaction(cls, packing_list, flow_name: str, package_ids=None,
                           party_name: str = '', party_type: str = '',
                           user=None) -> PackageTransaction:
        """
        Open a transaction for a packing list.

        package_ids attaches existing packages of the packing list up
        front (delivery flows start from stored cargo).

        Raises:
            TransactionError('TRANSACTION_IN_PROGRESS'): one is already open
            TransactionError('PACKAGE_NOT_FOUND'): package_ids outside the packing list
            TransactionError('REQUEST_FAILED'): package_ids is not a list of ids
            FlowError('FLOW_NOT_FOUND')

        Concurrency:
            - Runs under transaction.atomic()
            - Uses select_for_update() on the PackingList
        """
        flow = FlowQueries.get_flow(flow_name)
        packing_list = TransactionQueries.get_packing_list(packing_list)

        with transaction.atomic():
            PackingList.objects.select_for_update().get(pk=packing_list.pk)

            existing = PackageTransaction.objects.for_packing_list(packing_list).in_progress().first()
            if existing is not None:
                raise TransactionError(
                    'TRANSACTION_IN_PROGRESS',
                    transaction_id=existing.pk,
                    packing_list_id=packing_list.pk,
                )

            packages = []
            wanted = set(parse_package_ids(package_ids))
            if wanted:
                packages = list(CargoPackage.objects.filter(pk__in=wanted, packing_list=packing_list))
                missing = wanted - {p.pk for p in packages}
                if missing:
                    raise TransactionError('PACKAGE_NOT_FOUND', package_ids=sorted(missing))

            txn = PackageTransaction.objects.create(
                packing_list=packing_list,
                flow=flow,
                party_name=party_name,
                party_type=party_type,
                created_by=user,
            )
            if packages:
                txn.packages.add(*packages)

        logger.info(
            "transaction.create",
            extra={
                "transaction_id": txn.pk,
                "packing_list_id": packing_list.pk,
                "flow": flow.name,
                "packages": len(packages),
            },
        )
        return txn

    @classmethod
    def update_transaction(cls, txn, package_ids=None, party_name: str | None = None,
                           party_type: str | None = None, user=None) -> PackageTransaction:
        """
        Add packages to an in-progress transaction and/or change its party.

        When the flow declares a 'select' step, the packages go through it:
        they must sit at its from_status and are advanced to its to_status.
        Otherwise they are attached as they are. Either way a package held
        by another in-progress transaction is refused.

        None leaves a field unchanged.

        Raises:
            TransactionError('TRANSACTION_DONE')
            TransactionError('PACKAGE_NOT_FOUND'): package_ids outside the packing list
            TransactionError('PACKAGE_IN_OTHER_TRANSACTION')
            TransactionError('INVALID_STATUS'): a package is not at the select step's from_status
            TransactionError('REQUEST_FAILED'): package_ids is not a list of ids
        """
        wanted = list(dict.fromkeys(parse_package_ids(package_ids)))
        pk = TransactionQueries.get_transaction(txn).pk

        with transaction.atomic():
            locked = PackageTransaction.objects.select_for_update().select_related(
                'flow', 'packing_list'
            ).get(pk=pk)

            if locked.status == TransactionStatus.DONE:
                raise TransactionError('TRANSACTION_DONE', transaction_id=pk)

            fields = []
            if party_name is not None:
                locked.party_name = party_name
                fields.append('party_name')
            if party_type is not None:
                locked.party_type = party_type
                fields.append('party_type')
            if fields:
                locked.save(update_fields=fields + ['updated_at'])

            moved = 0
            if wanted:
                select = locked.flow.as_definition().step('select')
                if select is not None:
                    moved = len(StepHandlers._pick_packages(locked, select, wanted, user))
                else:
                    cls._attach(locked, wanted)

        logger.info(
            "transaction.update",
            extra={
                "transaction_id": pk,
                "packages": len(wanted),
                "moved": moved,
                "party": fields,
            },
        )
        return locked

    @classmethod
    def _attach(cls, txn, package_ids) -> None:
        packages = {
            p.pk: p
            for p in CargoPackage.objects.select_for_update().filter(
                pk__in=package_ids, packing_list=txn.packing_list
            )
        }
        missing = [pk for pk in package_ids if pk not in packages]
        if missing:
            raise TransactionError('PACKAGE_NOT_FOUND', package_ids=missing)

        held = sorted(set(
            PackageTransaction.packages.through.objects.filter(
                cargopackage_id__in=package_ids,
                packagetransaction__status=TransactionStatus.IN_PROGRESS,
            ).exclude(packagetransaction=txn).values_list('cargopackage_id', flat=True)
        ))
        if held:
            raise TransactionError('PACKAGE_IN_OTHER_TRANSACTION', package_ids=held)

        txn.packages.add(*[packages[pk] for pk in package_ids])

    @classmethod
    def complete(cls, txn, user=None) -> PackageTransaction:
        """
        Close a transaction once every package reached the flow's terminal status.

        Transition: IN_PROGRESS → DONE

        Raises:
            TransactionError('TRANSACTION_DONE'): already completed
            TransactionError('NOT_COMPLETABLE'): no packages, or some not terminal
        """
        pk = TransactionQueries.get_transaction(txn).pk

        with transaction.atomic():
            locked = PackageTransaction.objects.select_for_update().select_related('flow').get(pk=pk)

            if locked.status == TransactionStatus.DONE:
                raise TransactionError('TRANSACTION_DONE', transaction_id=pk)

            terminal = locked.flow.as_definition().terminal_status
            total = locked.packages.count()
            pending = locked.packages.exclude(position_status=terminal).count() if terminal else total

            if total == 0 or pending:
                raise TransactionError(
                    'NOT_COMPLETABLE',
                    transaction_id=pk,
                    total=total,
                    pending=pending,
                    terminal_status=terminal,
                )

            locked.status = TransactionStatus.DONE
            locked.completed_at = timezone.now()
            locked.save(update_fields=['status', 'completed_at', 'updated_at'])

        logger.info(
            "transaction.complete",
            extra={"transaction_id": pk, "packages": total, "user": str(user) if user else None},
        )
        return locked

    @classmethod
    def delete(cls, txn, user=None) -> None:
        """
        Delete a transaction that never received packages.

        Raises:
            TransactionError('TRANSACTION_DONE'): completed transactions are kept
            TransactionError('NOT_DELETABLE'): packages were already added
        """
        pk = TransactionQueries.get_transaction(txn).pk

        with transaction.atomic():
            locked = PackageTransaction.objects.select_for_update().get(pk=pk)

            if locked.status == TransactionStatus.DONE:
                raise TransactionError('TRANSACTION_DONE', transaction_id=pk)

            count = locked.packages.count()
            if count:
                raise TransactionError('NOT_DELETABLE', transaction_id=pk, packages=count)

            locked.delete()

        logger.info(
            "transaction.delete",
            extra={"transaction_id": pk, "user": str(user) if user else None},
        )
