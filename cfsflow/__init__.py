"""
Django CFS Flow — cargo package transactions for container freight stations.

Usage:
    from cfsflow import cfs, CfsError

    txn = cfs.create_transaction(packing_list, 'destuffWarehouse')
    cfs.handle_step(txn, {'step': 'create', 'lineId': line.pk, 'packageCount': 3})
    cfs.complete(txn)

Console side (UI-agnostic step executor):
    from cfsflow.console import TransactionSession

    session = TransactionSession(packing_list.pk, 'destuffWarehouse')
    session.open()
    session.editor().receive(line.pk, 3)
"""


def __getattr__(name):
    """Lazy import to avoid circular imports during app loading."""
    if name == 'cfs':
        from cfsflow.service import Cfs
        return Cfs
    elif name == 'CfsError':
        from cfsflow.exceptions import CfsError
        return CfsError
    elif name == 'FlowError':
        from cfsflow.exceptions import FlowError
        return FlowError
    elif name == 'TransactionError':
        from cfsflow.exceptions import TransactionError
        return TransactionError
    elif name == 'StaleSelectionError':
        from cfsflow.exceptions import StaleSelectionError
        return StaleSelectionError
    elif name == 'BusinessFlow':
        from cfsflow.models.flow import BusinessFlow
        return BusinessFlow
    elif name == 'PackageTransaction':
        from cfsflow.models.transaction import PackageTransaction
        return PackageTransaction
    elif name == 'CargoPackage':
        from cfsflow.models.package import CargoPackage
        return CargoPackage
    elif name == 'PositionStatus':
        from cfsflow.models.enums import PositionStatus
        return PositionStatus
    elif name == 'TransactionStatus':
        from cfsflow.models.enums import TransactionStatus
        return TransactionStatus
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    'cfs',
    'CfsError',
    'FlowError',
    'TransactionError',
    'StaleSelectionError',
    'BusinessFlow',
    'PackageTransaction',
    'CargoPackage',
    'PositionStatus',
    'TransactionStatus',
]

__version__ = '0.1.0'
