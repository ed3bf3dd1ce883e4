"""
Transaction queries — read-only operations.

All methods are classmethods and use no locking.
"""

from cfsflow.exceptions import TransactionError
from cfsflow.models import (
    CargoPackage,
    Location,
    PackageTransaction,
    PackingList,
    PackingListLine,
)


class TransactionQueries:
    """Read-only transaction and reference-data queries."""

    @classmethod
    def get_packing_list(cls, packing_list) -> PackingList:
        """Accept a PackingList or its pk."""
        if isinstance(packing_list, PackingList):
            return packing_list
        try:
            return PackingList.objects.get(pk=packing_list)
        except (PackingList.DoesNotExist, ValueError, TypeError):
            raise TransactionError('PACKING_LIST_NOT_FOUND', packing_list_id=packing_list)

    @classmethod
    def get_transaction(cls, txn) -> PackageTransaction:
        """
        Accept a PackageTransaction or its pk.

        Raises:
            TransactionError('TRANSACTION_NOT_FOUND')
        """
        pk = txn.pk if isinstance(txn, PackageTransaction) else txn
        try:
            return PackageTransaction.objects.select_related('flow', 'packing_list').get(pk=pk)
        except (PackageTransaction.DoesNotExist, ValueError, TypeError):
            raise TransactionError('TRANSACTION_NOT_FOUND', transaction_id=pk)

    @classmethod
    def list_transactions(cls, packing_list=None, status: str | None = None,
                          flow_name: str | None = None):
        """Transactions newest first, optionally filtered."""
        qs = PackageTransaction.objects.select_related('flow')

        if packing_list is not None:
            qs = qs.filter(packing_list=cls.get_packing_list(packing_list))

        if status:
            qs = qs.filter(status=status)

        if flow_name:
            qs = qs.filter(flow__name=flow_name)

        return qs.order_by('-created_at', '-pk')

    @classmethod
    def list_lines(cls, packing_list):
        """Lines of a packing list ordered by line number."""
        return PackingListLine.objects.filter(
            packing_list=cls.get_packing_list(packing_list)
        ).order_by('line_no')

    @classmethod
    def list_packages(cls, packing_list=None, status: str | None = None):
        """Cargo packages, optionally by packing list and position status."""
        qs = CargoPackage.objects.select_related('line')

        if packing_list is not None:
            qs = qs.for_packing_list(cls.get_packing_list(packing_list))

        if status:
            qs = qs.at(status)

        return qs.order_by('line__line_no', 'package_no')

    @classmethod
    def get_location(cls, location_id) -> Location:
        """
        Active storage location.

        Raises:
            TransactionError('LOCATION_NOT_FOUND')
        """
        try:
            return Location.objects.get(pk=location_id, is_active=True)
        except (Location.DoesNotExist, ValueError, TypeError):
            raise TransactionError('LOCATION_NOT_FOUND', location_id=location_id)
