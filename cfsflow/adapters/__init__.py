"""
CFS Flow Adapters.

TransactionBackend implementations (in-process and HTTP) and the
settings-driven loader.
"""

from cfsflow.adapters.http import HttpBackend
from cfsflow.adapters.loader import get_backend, reset_backend
from cfsflow.adapters.local import LocalBackend

__all__ = [
    "HttpBackend",
    "LocalBackend",
    "get_backend",
    "reset_backend",
]
