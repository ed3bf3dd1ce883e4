"""
CFS Flow configuration.

Usage in settings.py:
    CFSFLOW = {
        "BACKEND": "cfsflow.adapters.http.HttpBackend",
        "API_BASE_URL": "https://forwarder.example.com/api",
        "API_TOKEN": "...",
        "MAX_BATCH_STORE_PACKAGES": 300,
        "FLOWS": {
            "stuffingWarehouse": {
                "direction": "export",
                "steps": [
                    {"code": "select", "fromStatus": "STORED", "toStatus": "HANDOVER"},
                    {"code": "stuffing", "fromStatus": "HANDOVER", "toStatus": "STUFFED"},
                ],
            },
        },
    }
"""

from dataclasses import dataclass, field
from typing import Any

from django.conf import settings


@dataclass
class CfsflowSettings:
    """CFS Flow configuration settings."""

    # Console backend (dotted path)
    BACKEND: str = "cfsflow.adapters.local.LocalBackend"

    # HTTP backend
    API_BASE_URL: str = ""
    API_TOKEN: str = ""
    API_TIMEOUT: int = 10

    # Store step: maximum packages per batch request
    MAX_BATCH_STORE_PACKAGES: int = 300

    # Reject flows whose steps do not chain (toStatus[i] == fromStatus[i+1])
    VALIDATE_FLOW_CHAINING: bool = True

    # Extra flow definitions loaded by `manage.py load_flows`
    FLOWS: dict[str, Any] = field(default_factory=dict)


def get_cfsflow_settings() -> CfsflowSettings:
    """Load settings from Django settings."""
    user_settings: dict[str, Any] = getattr(settings, "CFSFLOW", {})
    return CfsflowSettings(**{
        k: v for k, v in user_settings.items()
        if k in CfsflowSettings.__dataclass_fields__
    })


class _LazySettings:
    """Lazy proxy that re-reads settings on every attribute access."""

    def __getattr__(self, name):
        return getattr(get_cfsflow_settings(), name)


cfsflow_settings = _LazySettings()
