"""
Package Transaction Client.

Thin cache over a TransactionBackend. Reads are cached by packing list
id and by transaction id; every mutation attempt, successful or not,
invalidates the affected entries so the next read goes to the server.
There is no optimistic local merge.
"""

from __future__ import annotations

import logging

from cfsflow.protocols.transactions import (
    LineInfo,
    LocationInfo,
    PackageRef,
    StepCommand,
    StepResult,
    TransactionBackend,
    TransactionInfo,
)

logger = logging.getLogger(__name__)


class TransactionClient:
    """
    Example:
        client = TransactionClient(get_backend())
        txn = client.create(packing_list_id, 'destuffWarehouse')
        client.handle_step(txn.id, CreateStep(line_id=7, package_count=1))
        client.get(txn.id)  # refetched, the step invalidated the entry
    """

    def __init__(self, backend: TransactionBackend):
        self.backend = backend
        self._by_packing_list: dict[int, list[TransactionInfo]] = {}
        self._by_id: dict[int, TransactionInfo] = {}
        self._lines: dict[int, list[LineInfo]] = {}
        self._locations: dict[int, LocationInfo] = {}
        self._packages: dict[tuple[int, str | None], list[PackageRef]] = {}

    # ══════════════════════════════════════════════════════════════
    # READS
    # ══════════════════════════════════════════════════════════════

    def list_for_packing_list(self, packing_list_id: int) -> list[TransactionInfo]:
        """Transactions of a packing list, newest first."""
        if packing_list_id not in self._by_packing_list:
            self._by_packing_list[packing_list_id] = list(
                self.backend.list_transactions(packing_list_id)
            )
        return self._by_packing_list[packing_list_id]

    def get(self, transaction_id: int) -> TransactionInfo:
        """Transaction detail with nested packages."""
        if transaction_id not in self._by_id:
            self._by_id[transaction_id] = self.backend.get_transaction(transaction_id)
        return self._by_id[transaction_id]

    def lines(self, packing_list_id: int) -> list[LineInfo]:
        if packing_list_id not in self._lines:
            self._lines[packing_list_id] = list(self.backend.list_lines(packing_list_id))
        return self._lines[packing_list_id]

    def packages(self, packing_list_id: int, status: str | None = None) -> list[PackageRef]:
        """Packages of a packing list, optionally at one position status."""
        key = (packing_list_id, status)
        if key not in self._packages:
            self._packages[key] = list(self.backend.list_packages(packing_list_id, status=status))
        return self._packages[key]

    def location(self, location_id: int) -> LocationInfo:
        if location_id not in self._locations:
            self._locations[location_id] = self.backend.get_location(location_id)
        return self._locations[location_id]

    # ══════════════════════════════════════════════════════════════
    # MUTATIONS
    # ══════════════════════════════════════════════════════════════

    def create(self, packing_list_id: int, flow_name: str, package_ids: list[int] | None = None,
               party_name: str = '', party_type: str = '') -> TransactionInfo:
        try:
            return self.backend.create_transaction(
                packing_list_id,
                flow_name,
                package_ids=package_ids,
                party_name=party_name,
                party_type=party_type,
            )
        finally:
            self.invalidate(packing_list_id=packing_list_id)

    def update(self, transaction_id: int, package_ids: list[int] | None = None,
               packing_list_id: int | None = None, party_name: str | None = None,
               party_type: str | None = None) -> TransactionInfo:
        try:
            return self.backend.update_transaction(
                transaction_id,
                package_ids=package_ids,
                party_name=party_name,
                party_type=party_type,
            )
        finally:
            self.invalidate(packing_list_id=packing_list_id, transaction_id=transaction_id)

    def handle_step(self, transaction_id: int, command: StepCommand,
                    packing_list_id: int | None = None) -> StepResult:
        try:
            return self.backend.handle_step(transaction_id, command)
        finally:
            self.invalidate(packing_list_id=packing_list_id, transaction_id=transaction_id)

    def complete(self, transaction_id: int, packing_list_id: int | None = None) -> TransactionInfo:
        try:
            return self.backend.complete_transaction(transaction_id)
        finally:
            self.invalidate(packing_list_id=packing_list_id, transaction_id=transaction_id)

    def delete(self, transaction_id: int, packing_list_id: int | None = None) -> None:
        try:
            self.backend.delete_transaction(transaction_id)
        finally:
            self.invalidate(packing_list_id=packing_list_id, transaction_id=transaction_id)

    # ══════════════════════════════════════════════════════════════
    # CACHE
    # ══════════════════════════════════════════════════════════════

    def invalidate(self, packing_list_id: int | None = None, transaction_id: int | None = None) -> None:
        """Mark entries stale. With no arguments, drops every transaction and package entry."""
        if packing_list_id is None and transaction_id is None:
            self._by_packing_list.clear()
            self._by_id.clear()
            self._packages.clear()
            return
        if packing_list_id is not None:
            self._by_packing_list.pop(packing_list_id, None)
            for key in [k for k in self._packages if k[0] == packing_list_id]:
                del self._packages[key]
        else:
            # Unknown owner: any packing list may embed this transaction.
            self._by_packing_list.clear()
            self._packages.clear()
        if transaction_id is not None:
            self._by_id.pop(transaction_id, None)
        logger.debug("cache.invalidate", extra={
            "packing_list_id": packing_list_id,
            "transaction_id": transaction_id,
        })
