"""
Package Transaction Protocol — Interface between the console and the server.

The console (resolver, transaction client, step editors) only ever talks to
a TransactionBackend. Two implementations ship with cfsflow:

    cfsflow.adapters.local.LocalBackend   in-process, calls the `cfs` service
    cfsflow.adapters.http.HttpBackend     JSON REST over `requests`

Both exchange the same camelCase wire shape, parsed here into frozen
dataclasses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Protocol, Union, runtime_checkable

from cfsflow.exceptions import FlowError, TransactionError


# ══════════════════════════════════════════════════════════════
# FLOW CONFIGURATION
# ══════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class FlowStep:
    """One transition definition within a flow."""

    code: str
    from_status: str
    to_status: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FlowStep:
        return cls(
            code=str(data['code']),
            from_status=str(data['fromStatus']),
            to_status=str(data['toStatus']),
        )


@dataclass(frozen=True)
class FlowDefinition:
    """Named, ordered list of steps. Order is the only sequencing."""

    name: str
    steps: tuple[FlowStep, ...] = ()
    direction: str = ''

    @classmethod
    def from_dict(cls, data: dict[str, Any], name: str = '') -> FlowDefinition:
        return cls(
            name=str(data.get('name') or name),
            steps=tuple(FlowStep.from_dict(s) for s in data.get('steps') or []),
            direction=str(data.get('direction') or ''),
        )

    @property
    def terminal_status(self) -> str | None:
        """toStatus of the final step (None for a flow without steps)."""
        return self.steps[-1].to_status if self.steps else None

    def step(self, code: str) -> FlowStep | None:
        """First step declared with this code."""
        return next((s for s in self.steps if s.code == code), None)

    def validate(self) -> FlowDefinition:
        """Fail fast on broken chaining or duplicate codes. Returns self."""
        validate_chain(self.name, self.steps)
        return self


def validate_chain(flow_name: str, steps: Iterable[FlowStep]) -> None:
    """
    Check that consecutive steps chain and that step codes are unique.

    Raises:
        FlowError('DUPLICATE_STEP'): same code declared twice
        FlowError('FLOW_CHAIN_BROKEN'): toStatus[i] != fromStatus[i+1]
    """
    steps = list(steps)
    seen: set[str] = set()
    for step in steps:
        if step.code in seen:
            raise FlowError('DUPLICATE_STEP', flow=flow_name, step=step.code)
        seen.add(step.code)

    for index, (current, following) in enumerate(zip(steps, steps[1:])):
        if current.to_status != following.from_status:
            raise FlowError(
                'FLOW_CHAIN_BROKEN',
                flow=flow_name,
                index=index,
                to_status=current.to_status,
                next_from_status=following.from_status,
            )


# ══════════════════════════════════════════════════════════════
# TRANSACTIONS
# ══════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class PackageRef:
    """A cargo package's identity plus its current position status."""

    id: int
    package_no: str
    position_status: str
    line_id: int | None = None
    line_no: int | None = None
    location_id: int | None = None
    condition_status: str | None = None
    regulatory_status: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PackageRef:
        return cls(
            id=data['id'],
            package_no=data.get('packageNo') or '',
            position_status=data.get('positionStatus') or 'UNKNOWN',
            line_id=data.get('lineId'),
            line_no=data.get('lineNo'),
            location_id=data.get('locationId'),
            condition_status=data.get('conditionStatus'),
            regulatory_status=data.get('regulatoryStatus'),
        )


@dataclass(frozen=True)
class TransactionInfo:
    """Server-owned package transaction, as seen by the console."""

    id: int
    packing_list_id: int
    business_process_flow: str
    status: str
    code: str = ''
    party_name: str = ''
    party_type: str = ''
    packages: tuple[PackageRef, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TransactionInfo:
        return cls(
            id=data['id'],
            packing_list_id=data['packingListId'],
            business_process_flow=data['businessProcessFlow'],
            status=data['status'],
            code=data.get('code') or '',
            party_name=data.get('partyName') or '',
            party_type=data.get('partyType') or '',
            packages=tuple(PackageRef.from_dict(p) for p in data.get('packages') or []),
        )

    @property
    def is_done(self) -> bool:
        return self.status == 'DONE'

    @property
    def is_in_progress(self) -> bool:
        return self.status == 'IN_PROGRESS'


@dataclass(frozen=True)
class PackageMovementInfo:
    """Per-package result of a step invocation."""

    package_id: int
    position_status: str
    movement_at: str = ''
    condition_status: str | None = None
    regulatory_status: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PackageMovementInfo:
        return cls(
            package_id=data['packageId'],
            position_status=data['positionStatus'],
            movement_at=data.get('movementAt') or '',
            condition_status=data.get('conditionStatus'),
            regulatory_status=data.get('regulatoryStatus'),
        )


@dataclass(frozen=True)
class StepResult:
    """Response of handle_step."""

    step: str
    packages: tuple[PackageMovementInfo, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StepResult:
        return cls(
            step=data['step'],
            packages=tuple(PackageMovementInfo.from_dict(p) for p in data.get('packages') or []),
        )


@dataclass(frozen=True)
class LineInfo:
    """Packing list line enumerated by the create step."""

    id: int
    line_no: int
    commodity_description: str = ''
    unit_of_measure: str = ''
    package_type_code: str = ''
    number_of_packages: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LineInfo:
        return cls(
            id=data['id'],
            line_no=data.get('lineNo') or 0,
            commodity_description=data.get('commodityDescription') or '',
            unit_of_measure=data.get('unitOfMeasure') or '',
            package_type_code=data.get('packageTypeCode') or '',
            number_of_packages=data.get('numberOfPackages') or 0,
        )


@dataclass(frozen=True)
class LocationInfo:
    """Storage location resolved for the store step."""

    id: int
    code: str
    name: str = ''
    zone: str = ''

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LocationInfo:
        return cls(
            id=data['id'],
            code=data['code'],
            name=data.get('name') or '',
            zone=data.get('zone') or '',
        )


# ══════════════════════════════════════════════════════════════
# STEP COMMANDS
# ══════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class CreateStep:
    """Receive `package_count` new packages on a packing list line."""

    line_id: int
    package_count: int = 1
    code: str = field(default='create', init=False)

    def as_payload(self) -> dict[str, Any]:
        return {'step': self.code, 'lineId': self.line_id, 'packageCount': self.package_count}


@dataclass(frozen=True)
class InspectStep:
    """Record condition/customs status and advance the packages."""

    package_ids: tuple[int, ...]
    condition_status: str = 'NORMAL'
    regulatory_status: str = 'UNINSPECTED'
    code: str = field(default='inspect', init=False)

    def as_payload(self) -> dict[str, Any]:
        return {
            'step': self.code,
            'packageIds': list(self.package_ids),
            'conditionStatus': self.condition_status,
            'regulatoryStatus': self.regulatory_status,
        }


@dataclass(frozen=True)
class StoreStep:
    """Put the packages away at one location."""

    package_ids: tuple[int, ...]
    location_id: int
    code: str = field(default='store', init=False)

    def as_payload(self) -> dict[str, Any]:
        return {
            'step': self.code,
            'packageIds': list(self.package_ids),
            'toLocationId': [self.location_id],
        }


@dataclass(frozen=True)
class HandoverStep:
    """Hand the packages over to the receiving party."""

    package_ids: tuple[int, ...]
    code: str = field(default='handover', init=False)

    def as_payload(self) -> dict[str, Any]:
        return {'step': self.code, 'packageIds': list(self.package_ids)}


@dataclass(frozen=True)
class SelectStep:
    """Pick packages of the packing list into the transaction and advance them."""

    package_ids: tuple[int, ...]
    code: str = field(default='select', init=False)

    def as_payload(self) -> dict[str, Any]:
        return {'step': self.code, 'packageIds': list(self.package_ids)}


@dataclass(frozen=True)
class StuffingStep:
    """Load the packages into the export container."""

    package_ids: tuple[int, ...]
    code: str = field(default='stuffing', init=False)

    def as_payload(self) -> dict[str, Any]:
        return {'step': self.code, 'packageIds': list(self.package_ids)}


StepCommand = Union[CreateStep, InspectStep, StoreStep, HandoverStep, SelectStep, StuffingStep]


def parse_package_ids(value) -> tuple[int, ...]:
    """
    Normalize a `packageIds` value to a tuple of ints.

    Accepts a list or tuple of ints or digit strings; None gives ().
    Anything else (a bare string, number or object) is rejected rather
    than iterated.

    Raises:
        TransactionError('REQUEST_FAILED'): not a list of package ids
    """
    if value is None:
        return ()
    if not isinstance(value, (list, tuple)):
        raise TransactionError(
            'REQUEST_FAILED', 'packageIds must be a list of package ids', package_ids=value,
        )

    ids = []
    for item in value:
        if isinstance(item, int) and not isinstance(item, bool):
            ids.append(item)
        elif isinstance(item, str) and item.strip().isdigit():
            ids.append(int(item))
        else:
            raise TransactionError(
                'REQUEST_FAILED', 'packageIds must be a list of package ids', package_ids=list(value),
            )
    return tuple(ids)


def step_from_payload(payload: dict[str, Any]) -> StepCommand:
    """
    Parse a handle-step request body into a step command.

    Raises:
        TransactionError('UNSUPPORTED_STEP'): unknown step code
        TransactionError('INVALID_QUANTITY'): bad packageCount
        TransactionError('LOCATION_NOT_FOUND'): store without location
        TransactionError('REQUEST_FAILED'): packageIds is not a list of ids
    """
    code = payload.get('step')
    package_ids = parse_package_ids(payload.get('packageIds'))

    if code == 'create':
        if payload.get('lineId') in (None, ''):
            raise TransactionError('LINE_NOT_FOUND', line_id=None)
        count = payload.get('packageCount', 1)
        if not isinstance(count, int) or isinstance(count, bool) or count < 1:
            raise TransactionError('INVALID_QUANTITY', requested=count)
        return CreateStep(line_id=payload['lineId'], package_count=count)

    if code == 'inspect':
        return InspectStep(
            package_ids=package_ids,
            condition_status=payload.get('conditionStatus') or 'NORMAL',
            regulatory_status=payload.get('regulatoryStatus') or 'UNINSPECTED',
        )

    if code == 'store':
        locations = payload.get('toLocationId') or []
        if isinstance(locations, (str, int)):
            locations = [locations]
        if not locations:
            raise TransactionError('LOCATION_NOT_FOUND', location_id=None)
        return StoreStep(package_ids=package_ids, location_id=locations[0])

    if code == 'handover':
        return HandoverStep(package_ids=package_ids)

    if code == 'select':
        return SelectStep(package_ids=package_ids)

    if code == 'stuffing':
        return StuffingStep(package_ids=package_ids)

    raise TransactionError('UNSUPPORTED_STEP', step=code)


# ══════════════════════════════════════════════════════════════
# BACKEND
# ══════════════════════════════════════════════════════════════


@runtime_checkable
class TransactionBackend(Protocol):
    """
    Protocol for the server side of the workflow.

    Every method raises a CfsError subclass on failure; transport
    errors are converted by the adapter.
    """

    def get_flow(self, flow_name: str) -> FlowDefinition:
        """
        Fetch a flow configuration by name.

        Raises:
            FlowError('FLOW_NOT_FOUND'): unknown flow
            FlowError('FLOW_FETCH_FAILED'): any other failure
        """
        ...

    def list_transactions(self, packing_list_id: int) -> list[TransactionInfo]:
        """Transactions of a packing list, newest first."""
        ...

    def create_transaction(
        self,
        packing_list_id: int,
        flow_name: str,
        package_ids: list[int] | None = None,
        party_name: str = '',
        party_type: str = '',
    ) -> TransactionInfo:
        """Create a transaction (server rejects if one is in progress)."""
        ...

    def get_transaction(self, transaction_id: int) -> TransactionInfo:
        """Transaction detail with nested packages."""
        ...

    def update_transaction(
        self,
        transaction_id: int,
        package_ids: list[int] | None = None,
        party_name: str | None = None,
        party_type: str | None = None,
    ) -> TransactionInfo:
        """Add packages to an in-progress transaction and/or change its party."""
        ...

    def handle_step(self, transaction_id: int, command: StepCommand) -> StepResult:
        """Single mutation entry point for every step kind."""
        ...

    def complete_transaction(self, transaction_id: int) -> TransactionInfo:
        """Mark the transaction DONE."""
        ...

    def delete_transaction(self, transaction_id: int) -> None:
        """Delete an empty transaction."""
        ...

    def list_lines(self, packing_list_id: int) -> list[LineInfo]:
        """Lines of a packing list."""
        ...

    def list_packages(self, packing_list_id: int, status: str | None = None) -> list[PackageRef]:
        """Cargo packages of a packing list, optionally at one position status."""
        ...

    def get_location(self, location_id: int) -> LocationInfo:
        """Resolve a storage location."""
        ...
