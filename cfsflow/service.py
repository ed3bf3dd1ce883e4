"""
CFS Service — The single public interface for the package workflow.

Usage:
    from cfsflow import cfs, CfsError

    txn = cfs.create_transaction(packing_list, 'destuffWarehouse')
    cfs.handle_step(txn, CreateStep(line_id=line.pk, package_count=3))
    cfs.handle_step(txn, {'step': 'inspect', 'packageIds': [...]})
    cfs.complete(txn)
"""

from cfsflow.services import FlowQueries, StepHandlers, TransactionOps, TransactionQueries


class Cfs(FlowQueries, TransactionQueries, TransactionOps, StepHandlers):
    """
    Single interface for all workflow operations.

    Queries: get_flow, flow_definition, get_transaction, list_transactions,
             list_lines, list_packages, get_location
    Lifecycle: create_transaction, update_transaction, complete, delete
    Steps: handle_step
    Configuration: save_flow

    IMPORTANT: All state-changing methods use atomic transactions
    with row locks. See each method's docstring.
    """
