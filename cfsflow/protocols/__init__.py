"""
CFS Flow Protocols.

Defines the interface between the console and the server.
"""

from cfsflow.protocols.transactions import (
    CreateStep,
    FlowDefinition,
    FlowStep,
    HandoverStep,
    InspectStep,
    LineInfo,
    LocationInfo,
    PackageMovementInfo,
    PackageRef,
    SelectStep,
    StepCommand,
    StepResult,
    StoreStep,
    StuffingStep,
    TransactionBackend,
    TransactionInfo,
    parse_package_ids,
    step_from_payload,
    validate_chain,
)

__all__ = [
    "CreateStep",
    "FlowDefinition",
    "FlowStep",
    "HandoverStep",
    "InspectStep",
    "LineInfo",
    "LocationInfo",
    "PackageMovementInfo",
    "PackageRef",
    "SelectStep",
    "StepCommand",
    "StepResult",
    "StoreStep",
    "StuffingStep",
    "TransactionBackend",
    "TransactionInfo",
    "parse_package_ids",
    "step_from_payload",
    "validate_chain",
]
