"""
CFS Flow console — UI-agnostic step executor.

Drives a package transaction through its flow against any
TransactionBackend (in-process or HTTP):

    from cfsflow.console import TransactionSession, permission_predicate

    session = TransactionSession(packing_list_id, 'destuffWarehouse',
                                 can=permission_predicate(user)).open()
"""

from cfsflow.console.client import TransactionClient
from cfsflow.console.editors import (
    CreateStepEditor,
    HandoverStepEditor,
    InspectStepEditor,
    NotImplementedStepEditor,
    SelectAllState,
    SelectStepEditor,
    StepEditor,
    StoreStepEditor,
    StuffingStepEditor,
)
from cfsflow.console.notifications import Notification, Notifier
from cfsflow.console.permissions import permission_predicate
from cfsflow.console.resolver import FlowResolver
from cfsflow.console.results import BatchResult, ItemOutcome
from cfsflow.console.session import SessionState, TransactionSession

__all__ = [
    'BatchResult',
    'CreateStepEditor',
    'FlowResolver',
    'HandoverStepEditor',
    'InspectStepEditor',
    'ItemOutcome',
    'NotImplementedStepEditor',
    'Notification',
    'Notifier',
    'SelectAllState',
    'SelectStepEditor',
    'SessionState',
    'StepEditor',
    'StoreStepEditor',
    'StuffingStepEditor',
    'TransactionClient',
    'TransactionSession',
    'permission_predicate',
]
