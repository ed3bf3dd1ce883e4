"""
Local Backend — TransactionBackend calling the `cfs` service in-process.

Vocabulary mapping:
    TransactionBackend          →  cfs
    ─────────────────────────────────────────────
    get_flow()                  →  cfs.get_flow()
    list_transactions()         →  cfs.list_transactions()
    create_transaction()        →  cfs.create_transaction()
    update_transaction()        →  cfs.update_transaction()
    handle_step()               →  cfs.handle_step()
    complete_transaction()      →  cfs.complete()
    delete_transaction()        →  cfs.delete()
    list_packages()             →  cfs.list_packages()

Models go through cfsflow.serializers so the console sees exactly the
shape the HTTP backend would return.
"""

from __future__ import annotations

import logging

from cfsflow import serializers
from cfsflow.protocols.transactions import (
    FlowDefinition,
    LineInfo,
    LocationInfo,
    PackageRef,
    StepCommand,
    StepResult,
    TransactionInfo,
)
from cfsflow.service import Cfs

logger = logging.getLogger(__name__)


class LocalBackend:
    """
    TransactionBackend for consoles running inside the Django process.

    Example:
        backend = LocalBackend(user=request.user)
        flow = backend.get_flow('destuffWarehouse')
    """

    def __init__(self, user=None):
        self.user = user

    def get_flow(self, flow_name: str) -> FlowDefinition:
        flow = Cfs.get_flow(flow_name)
        return FlowDefinition.from_dict(serializers.flow_to_dict(flow))

    def list_transactions(self, packing_list_id: int) -> list[TransactionInfo]:
        return [
            TransactionInfo.from_dict(serializers.transaction_to_dict(txn))
            for txn in Cfs.list_transactions(packing_list_id).prefetch_related('packages')
        ]

    def create_transaction(self, packing_list_id: int, flow_name: str,
                           package_ids: list[int] | None = None,
                           party_name: str = '', party_type: str = '') -> TransactionInfo:
        txn = Cfs.create_transaction(
            packing_list_id,
            flow_name,
            package_ids=package_ids,
            party_name=party_name,
            party_type=party_type,
            user=self.user,
        )
        return TransactionInfo.from_dict(serializers.transaction_to_dict(txn))

    def get_transaction(self, transaction_id: int) -> TransactionInfo:
        txn = Cfs.get_transaction(transaction_id)
        return TransactionInfo.from_dict(serializers.transaction_to_dict(txn))

    def update_transaction(self, transaction_id: int, package_ids: list[int] | None = None,
                           party_name: str | None = None,
                           party_type: str | None = None) -> TransactionInfo:
        Cfs.update_transaction(
            transaction_id,
            package_ids=package_ids,
            party_name=party_name,
            party_type=party_type,
            user=self.user,
        )
        return self.get_transaction(transaction_id)

    def handle_step(self, transaction_id: int, command: StepCommand) -> StepResult:
        step, movements = Cfs.handle_step(transaction_id, command, user=self.user)
        return StepResult.from_dict(serializers.step_result_to_dict(step, movements))

    def complete_transaction(self, transaction_id: int) -> TransactionInfo:
        txn = Cfs.complete(transaction_id, user=self.user)
        return TransactionInfo.from_dict(serializers.transaction_to_dict(txn))

    def delete_transaction(self, transaction_id: int) -> None:
        Cfs.delete(transaction_id, user=self.user)

    def list_lines(self, packing_list_id: int) -> list[LineInfo]:
        return [
            LineInfo.from_dict(serializers.line_to_dict(line))
            for line in Cfs.list_lines(packing_list_id)
        ]

    def list_packages(self, packing_list_id: int, status: str | None = None) -> list[PackageRef]:
        return [
            PackageRef.from_dict(serializers.package_to_dict(package))
            for package in Cfs.list_packages(packing_list_id, status=status)
        ]

    def get_location(self, location_id: int) -> LocationInfo:
        return LocationInfo.from_dict(serializers.location_to_dict(Cfs.get_location(location_id)))
