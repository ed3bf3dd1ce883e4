"""
JSON API for package transactions.

Responses wrap the payload in {"data": ...}. Lists are paginated with
`page` / `itemsPerPage` and return {"data": {"results": [...], "total": n}}.
Errors return CfsError.as_dict() with a matching HTTP status.
"""

import json
import logging
from functools import wraps

from django.http import HttpResponse, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from cfsflow import serializers
from cfsflow.console.permissions import (
    ADD_TRANSACTION,
    CHANGE_TRANSACTION,
    COMPLETE_TRANSACTION,
    DELETE_TRANSACTION,
    HANDLE_STEP,
)
from cfsflow.exceptions import CfsError, TransactionError
from cfsflow.service import Cfs

logger = logging.getLogger('cfsflow')

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 1000


def error_status(error: CfsError) -> int:
    """HTTP status for a CfsError code."""
    if error.code == 'PERMISSION_DENIED':
        return 403
    if error.code.endswith('_NOT_FOUND'):
        return 404
    if error.code == 'TRANSACTION_IN_PROGRESS':
        return 409
    return 400


def api_view(*methods):
    """csrf-exempt JSON endpoint that turns CfsError into an error response."""
    def decorator(view):
        @csrf_exempt
        @require_http_methods(list(methods))
        @wraps(view)
        def wrapper(request, *args, **kwargs):
            try:
                if not request.user.is_authenticated:
                    raise TransactionError('PERMISSION_DENIED', 'Authentication required')
                return view(request, *args, **kwargs)
            except CfsError as e:
                status = error_status(e)
                logger.info(
                    "api.error",
                    extra={"path": request.path, "code": e.code, "status": status},
                )
                return JsonResponse(e.as_dict(), status=status)
        return wrapper
    return decorator


def _require(request, perm: str) -> None:
    if not request.user.has_perm(perm):
        raise TransactionError('PERMISSION_DENIED', permission=perm)


def _body(request) -> dict:
    if not request.body:
        return {}
    try:
        payload = json.loads(request.body)
    except ValueError:
        raise TransactionError('REQUEST_FAILED', 'Malformed JSON body')
    if not isinstance(payload, dict):
        raise TransactionError('REQUEST_FAILED', 'JSON body must be an object')
    return payload


def _paginate(request, queryset, to_dict):
    try:
        page = max(int(request.GET.get('page', 1)), 1)
        size = int(request.GET.get('itemsPerPage', DEFAULT_PAGE_SIZE))
    except ValueError:
        raise TransactionError('REQUEST_FAILED', 'page and itemsPerPage must be integers')
    size = min(max(size, 1), MAX_PAGE_SIZE)

    total = queryset.count()
    offset = (page - 1) * size
    results = [to_dict(obj) for obj in queryset[offset:offset + size]]
    return JsonResponse({'data': {'results': results, 'total': total}})


# ══════════════════════════════════════════════════════════════
# FLOWS
# ══════════════════════════════════════════════════════════════


@api_view('GET')
def flow_detail(request, name):
    return JsonResponse({'data': serializers.flow_to_dict(Cfs.get_flow(name))})


# ══════════════════════════════════════════════════════════════
# TRANSACTIONS
# ══════════════════════════════════════════════════════════════


@api_view('GET', 'POST')
def transaction_list(request):
    if request.method == 'POST':
        _require(request, ADD_TRANSACTION)
        payload = _body(request)
        txn = Cfs.create_transaction(
            payload.get('packingListId'),
            payload.get('businessProcessFlow') or '',
            package_ids=payload.get('packageIds'),
            party_name=payload.get('partyName') or '',
            party_type=payload.get('partyType') or '',
            user=request.user,
        )
        return JsonResponse({'data': serializers.transaction_to_dict(txn)}, status=201)

    qs = Cfs.list_transactions(
        packing_list=request.GET.get('packingListId') or None,
        status=request.GET.get('status') or None,
        flow_name=request.GET.get('businessProcessFlow') or None,
    ).prefetch_related('packages')
    return _paginate(request, qs, serializers.transaction_to_dict)


@api_view('GET', 'PATCH', 'DELETE')
def transaction_detail(request, pk):
    if request.method == 'PATCH':
        _require(request, CHANGE_TRANSACTION)
        payload = _body(request)
        Cfs.update_transaction(
            pk,
            package_ids=payload.get('packageIds'),
            party_name=payload.get('partyName'),
            party_type=payload.get('partyType'),
            user=request.user,
        )
        return JsonResponse({'data': serializers.transaction_to_dict(Cfs.get_transaction(pk))})

    if request.method == 'DELETE':
        _require(request, DELETE_TRANSACTION)
        Cfs.delete(pk, user=request.user)
        return HttpResponse(status=204)

    return JsonResponse({'data': serializers.transaction_to_dict(Cfs.get_transaction(pk))})


@api_view('PATCH')
def transaction_complete(request, pk):
    _require(request, COMPLETE_TRANSACTION)
    txn = Cfs.complete(pk, user=request.user)
    return JsonResponse({'data': serializers.transaction_to_dict(txn)})


@api_view('POST')
def transaction_handle_step(request, pk):
    _require(request, HANDLE_STEP)
    step, movements = Cfs.handle_step(pk, _body(request), user=request.user)
    return JsonResponse({'data': serializers.step_result_to_dict(step, movements)})


# ══════════════════════════════════════════════════════════════
# REFERENCE DATA
# ══════════════════════════════════════════════════════════════


@api_view('GET')
def packing_list_lines(request, pk):
    lines = [serializers.line_to_dict(line) for line in Cfs.list_lines(pk)]
    return JsonResponse({'data': {'results': lines, 'total': len(lines)}})


@api_view('GET')
def package_list(request):
    qs = Cfs.list_packages(
        packing_list=request.GET.get('packingListId') or None,
        status=request.GET.get('status') or None,
    )
    return _paginate(request, qs, serializers.package_to_dict)


@api_view('GET')
def location_detail(request, pk):
    return JsonResponse({'data': serializers.location_to_dict(Cfs.get_location(pk))})
