"""
Exceptions for CFS Flow.

All errors are CfsError with a structured code for programmatic handling.
"""

from typing import Any


class CfsError(Exception):
    """
    Structured exception for CFS workflow operations.

    Usage:
        try:
            cfs.complete(transaction)
        except CfsError as e:
            if e.code == 'NOT_COMPLETABLE':
                print(f"{e.data['pending']} package(s) still pending")

    Attributes:
        code: Error code for programmatic handling
        message: Human-readable message
        data: Additional context data
    """

    _default_messages: dict[str, str] = {}

    def __init__(self, code: str, message: str | None = None, **data):
        self.code = code
        self.message = message or self._default_messages.get(code, code)
        self.data = data
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.code!r}, {self.message!r})"

    def as_dict(self) -> dict[str, Any]:
        """Serialize to dict (useful for APIs)."""
        return {
            'code': self.code,
            'message': self.message,
            'data': {
                k: v if isinstance(v, (str, int, float, bool, list, type(None))) else str(v)
                for k, v in self.data.items()
            }
        }


class FlowError(CfsError):
    """Flow configuration errors: unknown flow, broken step chain."""

    _default_messages = {
        'FLOW_NOT_FOUND': 'Business flow not found',
        'FLOW_FETCH_FAILED': 'Failed to fetch business flow configuration',
        'FLOW_CHAIN_BROKEN': 'Flow steps do not chain (toStatus must equal next fromStatus)',
        'DUPLICATE_STEP': 'Flow declares the same step code twice',
        'STEP_NOT_IN_FLOW': 'Step is not part of the transaction flow',
    }


class TransactionError(CfsError):
    """Errors raised by package transaction mutations."""

    _default_messages = {
        'TRANSACTION_NOT_FOUND': 'Package transaction not found',
        'TRANSACTION_IN_PROGRESS': 'An in-progress transaction already exists for this packing list',
        'TRANSACTION_DONE': 'Transaction is already completed',
        'NOT_COMPLETABLE': 'Not every package reached the final status of the flow',
        'NOT_DELETABLE': 'Delete is only allowed before any packages are added',
        'INVALID_STATUS': 'Package is not in the expected status for this step',
        'PACKAGE_NOT_IN_TRANSACTION': 'Package does not belong to this transaction',
        'PACKAGE_NOT_FOUND': 'Cargo package not found',
        'PACKAGE_IN_OTHER_TRANSACTION': 'Package already belongs to another in-progress transaction',
        'PACKING_LIST_NOT_FOUND': 'Packing list not found',
        'LINE_NOT_FOUND': 'Packing list line not found',
        'LOCATION_NOT_FOUND': 'Location not found',
        'INVALID_QUANTITY': 'Quantity must be a positive integer',
        'NO_PACKAGES': 'Select at least one package',
        'UNSUPPORTED_STEP': 'Step is not supported',
        'PERMISSION_DENIED': 'You do not have permission to perform this action',
        'REQUEST_FAILED': 'Request failed',
    }


class StaleSelectionError(CfsError):
    """Selected packages left the expected source status before submission."""

    _default_messages = {
        'STALE_SELECTION': 'Some selected packages are no longer eligible',
    }
