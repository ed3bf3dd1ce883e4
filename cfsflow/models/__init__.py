"""
CFS Flow Models.

Core models for the cargo package workflow:
- BusinessFlow / FlowStep: named, ordered step configuration
- PackingList / PackingListLine / Location: reference data
- CargoPackage: a package and its position status
- PackageMovement: immutable ledger of status transitions
- PackageTransaction: packages moving together through a flow
"""

from cfsflow.models.enums import (
    ConditionStatus,
    FlowDirection,
    PositionStatus,
    RegulatoryStatus,
    StepCode,
    TransactionStatus,
)
from cfsflow.models.flow import BusinessFlow, FlowStep
from cfsflow.models.package import CargoPackage, PackageMovement
from cfsflow.models.packing_list import Location, PackingList, PackingListLine
from cfsflow.models.transaction import PackageTransaction

__all__ = [
    'ConditionStatus',
    'FlowDirection',
    'PositionStatus',
    'RegulatoryStatus',
    'StepCode',
    'TransactionStatus',
    'BusinessFlow',
    'FlowStep',
    'PackingList',
    'PackingListLine',
    'Location',
    'CargoPackage',
    'PackageMovement',
    'PackageTransaction',
]
