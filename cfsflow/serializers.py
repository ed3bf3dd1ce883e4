"""
Wire representation (camelCase JSON) of CFS Flow models.

Used by the JSON views and by the local adapter, so both backends hand
the console the same shape.
"""

from typing import Any

from cfsflow.models import (
    BusinessFlow,
    CargoPackage,
    Location,
    PackageMovement,
    PackageTransaction,
    PackingListLine,
)


def flow_to_dict(flow: BusinessFlow) -> dict[str, Any]:
    return {
        'name': flow.name,
        'direction': flow.direction,
        'steps': [
            {'code': s.code, 'fromStatus': s.from_status, 'toStatus': s.to_status}
            for s in flow.ordered_steps()
        ],
    }


def package_to_dict(package: CargoPackage) -> dict[str, Any]:
    return {
        'id': package.pk,
        'packageNo': package.package_no,
        'positionStatus': package.position_status,
        'packingListId': package.packing_list_id,
        'lineId': package.line_id,
        'lineNo': package.line.line_no if package.line_id else None,
        'locationId': package.location_id,
        'conditionStatus': package.condition_status,
        'regulatoryStatus': package.regulatory_status,
    }


def transaction_to_dict(txn: PackageTransaction, include_packages: bool = True) -> dict[str, Any]:
    data = {
        'id': txn.pk,
        'code': txn.code,
        'packingListId': txn.packing_list_id,
        'businessProcessFlow': txn.flow.name,
        'status': txn.status,
        'partyName': txn.party_name,
        'partyType': txn.party_type,
        'createdAt': txn.created_at.isoformat() if txn.created_at else None,
        'updatedAt': txn.updated_at.isoformat() if txn.updated_at else None,
        'completedAt': txn.completed_at.isoformat() if txn.completed_at else None,
    }
    if include_packages:
        packages = txn.packages.select_related('line').order_by('line__line_no', 'package_no')
        data['packages'] = [package_to_dict(p) for p in packages]
    return data


def movement_to_dict(movement: PackageMovement) -> dict[str, Any]:
    package = movement.package
    return {
        'packageId': movement.package_id,
        'positionStatus': movement.to_status,
        'movementAt': movement.timestamp.isoformat(),
        'conditionStatus': package.condition_status,
        'regulatoryStatus': package.regulatory_status,
    }


def step_result_to_dict(step: str, movements: list[PackageMovement]) -> dict[str, Any]:
    return {'step': step, 'packages': [movement_to_dict(m) for m in movements]}


def line_to_dict(line: PackingListLine) -> dict[str, Any]:
    return {
        'id': line.pk,
        'lineNo': line.line_no,
        'commodityDescription': line.commodity_description,
        'unitOfMeasure': line.unit_of_measure,
        'packageTypeCode': line.package_type_code,
        'numberOfPackages': line.number_of_packages,
    }


def location_to_dict(location: Location) -> dict[str, Any]:
    return {
        'id': location.pk,
        'code': location.code,
        'name': location.name,
        'zone': location.zone,
    }
