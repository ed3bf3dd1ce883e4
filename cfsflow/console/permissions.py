"""
Authorization predicate for console mutations.

Read-only mode is enforced by refusing mutations on the console side;
the JSON views check the same permission keys server-side.
"""

from typing import Callable

ADD_TRANSACTION = 'cfsflow.add_packagetransaction'
CHANGE_TRANSACTION = 'cfsflow.change_packagetransaction'
HANDLE_STEP = 'cfsflow.handle_packagetransaction'
COMPLETE_TRANSACTION = 'cfsflow.complete_packagetransaction'
DELETE_TRANSACTION = 'cfsflow.delete_packagetransaction'

Can = Callable[[str], bool]


def allow_all(permission_key: str) -> bool:
    return True


def permission_predicate(user) -> Can:
    """Bind `can(permission_key)` to a Django user's has_perm."""
    if user is None:
        return allow_all

    def can(permission_key: str) -> bool:
        return bool(user.has_perm(permission_key))

    return can
