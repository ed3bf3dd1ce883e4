"""
Flow configuration — lookup and upsert of business flows.
"""

import logging

from django.db import transaction

from cfsflow.exceptions import FlowError
from cfsflow.models.flow import BusinessFlow
from cfsflow.protocols.transactions import FlowDefinition, FlowStep, validate_chain

logger = logging.getLogger('cfsflow')


# Built-in flows, also seeded by migration 0002
DEFAULT_FLOWS = {
    'destuffWarehouse': {
        'direction': 'export',
        'steps': [
            {'code': 'create', 'fromStatus': 'UNKNOWN', 'toStatus': 'CHECK_IN'},
            {'code': 'inspect', 'fromStatus': 'CHECK_IN', 'toStatus': 'HANDOVER'},
            {'code': 'store', 'fromStatus': 'HANDOVER', 'toStatus': 'STORED'},
        ],
    },
    'warehouseDelivery': {
        'direction': 'import',
        'steps': [
            {'code': 'inspect', 'fromStatus': 'STORED', 'toStatus': 'CHECK_IN'},
            {'code': 'handover', 'fromStatus': 'CHECK_IN', 'toStatus': 'CHECKOUT'},
        ],
    },
}


class FlowQueries:
    """Flow lookup and configuration methods."""

    @classmethod
    def get_flow(cls, name: str) -> BusinessFlow:
        """
        Active flow by name.

        Raises:
            FlowError('FLOW_NOT_FOUND'): unknown or inactive flow
        """
        try:
            return BusinessFlow.objects.active().prefetch_related('steps').get(name=name)
        except BusinessFlow.DoesNotExist:
            raise FlowError('FLOW_NOT_FOUND', f'Business flow "{name}" not found', flow=name)

    @classmethod
    def flow_definition(cls, name: str) -> FlowDefinition:
        """Pure FlowDefinition for the named flow."""
        return cls.get_flow(name).as_definition()

    @classmethod
    def save_flow(cls, name: str, steps: list[dict], direction: str = 'import',
                  description: str = '') -> BusinessFlow:
        """
        Create or replace a flow and its steps.

        Steps use the wire shape: {"code", "fromStatus", "toStatus"}.

        Raises:
            FlowError('FLOW_CHAIN_BROKEN'): steps do not chain
            FlowError('DUPLICATE_STEP'): same code twice
        """
        parsed = [FlowStep.from_dict(s) for s in steps]
        validate_chain(name, parsed)

        with transaction.atomic():
            flow, created = BusinessFlow.objects.update_or_create(
                name=name,
                defaults={'direction': direction, 'description': description, 'is_active': True},
            )
            flow.steps.all().delete()
            for position, step in enumerate(parsed):
                flow.steps.create(
                    position=position,
                    code=step.code,
                    from_status=step.from_status,
                    to_status=step.to_status,
                )

        logger.info(
            "flow.save",
            extra={"flow": name, "steps": len(parsed), "is_new": created},
        )
        return flow
