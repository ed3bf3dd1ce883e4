"""
Backend loader — resolves the configured TransactionBackend.

Usage:
    from cfsflow.adapters import get_backend

    backend = get_backend()
    flow = backend.get_flow("destuffWarehouse")

Settings:
    CFSFLOW = {
        "BACKEND": "cfsflow.adapters.http.HttpBackend",
    }

Defaults to the in-process LocalBackend.
"""

from __future__ import annotations

import logging
import threading

from django.core.exceptions import ImproperlyConfigured
from django.utils.module_loading import import_string

from cfsflow.conf import cfsflow_settings
from cfsflow.protocols.transactions import TransactionBackend

logger = logging.getLogger(__name__)


# Cached backend instance
_lock = threading.Lock()
_backend: TransactionBackend | None = None


def get_backend() -> TransactionBackend:
    """
    Return the configured transaction backend.

    Raises:
        ImproperlyConfigured: If BACKEND is empty, cannot be imported, or
            does not implement TransactionBackend
    """
    global _backend

    if _backend is None:
        with _lock:
            if _backend is None:  # double-checked
                backend_path = cfsflow_settings.BACKEND

                if not backend_path:
                    raise ImproperlyConfigured(
                        "CFSFLOW['BACKEND'] must be configured. "
                        "Example: 'cfsflow.adapters.http.HttpBackend'"
                    )

                try:
                    backend_class = import_string(backend_path)
                except ImportError as e:
                    raise ImproperlyConfigured(
                        f"Failed to import transaction backend '{backend_path}': {e}"
                    ) from e

                backend = backend_class()
                if not isinstance(backend, TransactionBackend):
                    raise ImproperlyConfigured(
                        f"'{backend_path}' does not implement TransactionBackend"
                    )
                _backend = backend
                logger.debug("Loaded transaction backend: %s", backend_path)

    return _backend


def reset_backend() -> None:
    """Reset the cached backend. Useful for testing."""
    global _backend
    _backend = None
