"""
CFS Flow services — modular organization of workflow operations.

Re-exports all public classes:
    from cfsflow.services import FlowQueries, TransactionQueries, TransactionOps, StepHandlers
"""

from cfsflow.services.flows import DEFAULT_FLOWS, FlowQueries
from cfsflow.services.queries import TransactionQueries
from cfsflow.services.steps import StepHandlers
from cfsflow.services.transactions import TransactionOps

__all__ = [
    'DEFAULT_FLOWS',
    'FlowQueries',
    'TransactionQueries',
    'TransactionOps',
    'StepHandlers',
]
