"""
Flow Configuration Resolver.

Resolves a flow name into its ordered step list, cached by name.
"""

from __future__ import annotations

import logging

from cfsflow.conf import cfsflow_settings
from cfsflow.exceptions import CfsError, FlowError
from cfsflow.protocols.transactions import FlowDefinition, TransactionBackend

logger = logging.getLogger(__name__)


class FlowResolver:
    """
    Name → FlowDefinition with a per-name cache.

    A flow with zero steps is a valid result; only lookup failures
    raise. Failures are not cached, so the next resolve() retries.
    """

    def __init__(self, backend: TransactionBackend):
        self.backend = backend
        self._cache: dict[str, FlowDefinition] = {}

    def resolve(self, flow_name: str) -> FlowDefinition:
        """
        Raises:
            FlowError('FLOW_NOT_FOUND'): unknown flow
            FlowError('FLOW_FETCH_FAILED'): transport or payload failure
            FlowError('FLOW_CHAIN_BROKEN' | 'DUPLICATE_STEP'): misconfigured flow
        """
        if flow_name in self._cache:
            return self._cache[flow_name]

        try:
            flow = self.backend.get_flow(flow_name)
        except FlowError:
            raise
        except CfsError as e:
            raise FlowError('FLOW_FETCH_FAILED', e.message, flow=flow_name) from e

        if cfsflow_settings.VALIDATE_FLOW_CHAINING:
            flow.validate()

        self._cache[flow_name] = flow
        logger.debug("flow.resolved", extra={"flow": flow_name, "steps": len(flow.steps)})
        return flow

    def invalidate(self, flow_name: str | None = None) -> None:
        """Drop one cached flow, or all of them."""
        if flow_name is None:
            self._cache.clear()
        else:
            self._cache.pop(flow_name, None)
