"""
HTTP Backend — TransactionBackend over the CFS JSON REST API.

Endpoints (relative to API_BASE_URL):
    GET    /v1/package-transactions/flows/<name>
    GET    /v1/package-transactions?packingListId=<id>
    POST   /v1/package-transactions
    GET    /v1/package-transactions/<id>
    PATCH  /v1/package-transactions/<id>
    DELETE /v1/package-transactions/<id>
    PATCH  /v1/package-transactions/<id>/complete
    POST   /v1/package-transactions/<id>/handle-step
    GET    /v1/packing-lists/<id>/lines
    GET    /v1/cargo-packages?packingListId=<id>&status=<status>
    GET    /v1/locations/<id>

Successful responses wrap the payload in {"data": ...}; errors carry
{"code", "message", "data"}. Every failure is raised as a CfsError.
"""

from __future__ import annotations

import logging
from typing import Any

import requests

from cfsflow.conf import cfsflow_settings
from cfsflow.exceptions import CfsError, FlowError, TransactionError
from cfsflow.protocols.transactions import (
    FlowDefinition,
    LineInfo,
    LocationInfo,
    PackageRef,
    StepCommand,
    StepResult,
    TransactionInfo,
)

logger = logging.getLogger(__name__)


def error_message(payload: Any, default: str) -> str:
    """Best human-readable message from an error body (dict or plain string)."""
    if isinstance(payload, str) and payload.strip():
        return payload.strip()
    if isinstance(payload, dict):
        for key in ('message', 'error', 'detail'):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return default


class HttpBackend:
    """
    TransactionBackend talking to a remote CFS server.

    Example:
        backend = HttpBackend("https://cfs.example.com/api", token="...")
        flow = backend.get_flow("destuffWarehouse")
    """

    def __init__(self, base_url: str | None = None, token: str | None = None,
                 timeout: int | None = None, session: requests.Session | None = None):
        self.base_url = (base_url if base_url is not None else cfsflow_settings.API_BASE_URL).rstrip('/')
        self.token = token if token is not None else cfsflow_settings.API_TOKEN
        self.timeout = timeout if timeout is not None else cfsflow_settings.API_TIMEOUT
        self.session = session or requests.Session()

    # ══════════════════════════════════════════════════════════════
    # TRANSPORT
    # ══════════════════════════════════════════════════════════════

    def _headers(self) -> dict[str, str]:
        headers = {'Accept': 'application/json'}
        if self.token:
            headers['Authorization'] = f'Bearer {self.token}'
        return headers

    def _request(self, method: str, path: str, params: dict | None = None,
                 json: dict | None = None) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(
                method,
                url,
                params=params,
                json=json,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.warning("http.request_failed", extra={"method": method, "url": url, "error": str(e)})
            raise TransactionError('REQUEST_FAILED', str(e) or None, url=url) from e

        logger.debug("http.response", extra={"method": method, "url": url, "status": response.status_code})
        return response

    @staticmethod
    def _body(response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return response.text

    def _raise_for_error(self, response: requests.Response) -> None:
        """Convert an error response into TransactionError."""
        if response.ok:
            return
        body = self._body(response)
        code = body.get('code') if isinstance(body, dict) else None
        data = body.get('data') if isinstance(body, dict) and isinstance(body.get('data'), dict) else {}
        if not code:
            code = 'TRANSACTION_NOT_FOUND' if response.status_code == 404 else 'REQUEST_FAILED'
        message = error_message(body, TransactionError._default_messages.get(code, 'Request failed'))
        context = {k: v for k, v in data.items() if k not in ('code', 'message')}
        context['status'] = response.status_code
        raise TransactionError(code, message, **context)

    def _data(self, response: requests.Response) -> Any:
        self._raise_for_error(response)
        body = self._body(response)
        if isinstance(body, dict) and 'data' in body:
            return body['data']
        return body

    @staticmethod
    def _results(data: Any) -> list:
        if isinstance(data, dict):
            return data.get('results') or []
        return data or []

    # ══════════════════════════════════════════════════════════════
    # FLOWS
    # ══════════════════════════════════════════════════════════════

    def get_flow(self, flow_name: str) -> FlowDefinition:
        try:
            response = self._request('GET', f'/v1/package-transactions/flows/{flow_name}')
        except CfsError as e:
            raise FlowError('FLOW_FETCH_FAILED', e.message, flow=flow_name) from e

        if response.status_code == 404:
            raise FlowError(
                'FLOW_NOT_FOUND',
                error_message(self._body(response), f'Business flow "{flow_name}" not found'),
                flow=flow_name,
            )
        if not response.ok:
            raise FlowError(
                'FLOW_FETCH_FAILED',
                error_message(self._body(response), FlowError._default_messages['FLOW_FETCH_FAILED']),
                flow=flow_name,
                status=response.status_code,
            )

        body = self._body(response)
        data = body.get('data') if isinstance(body, dict) and 'data' in body else body
        if not isinstance(data, dict):
            raise FlowError('FLOW_FETCH_FAILED', flow=flow_name)
        try:
            return FlowDefinition.from_dict(data, name=flow_name)
        except (KeyError, TypeError) as e:
            raise FlowError('FLOW_FETCH_FAILED', f'Malformed flow configuration: {e}', flow=flow_name) from e

    # ══════════════════════════════════════════════════════════════
    # TRANSACTIONS
    # ══════════════════════════════════════════════════════════════

    def list_transactions(self, packing_list_id: int) -> list[TransactionInfo]:
        data = self._data(self._request(
            'GET', '/v1/package-transactions', params={'packingListId': packing_list_id}
        ))
        return [TransactionInfo.from_dict(item) for item in self._results(data)]

    def create_transaction(self, packing_list_id: int, flow_name: str,
                           package_ids: list[int] | None = None,
                           party_name: str = '', party_type: str = '') -> TransactionInfo:
        payload = {
            'packingListId': packing_list_id,
            'businessProcessFlow': flow_name,
            'partyName': party_name,
            'partyType': party_type,
        }
        if package_ids:
            payload['packageIds'] = list(package_ids)
        data = self._data(self._request('POST', '/v1/package-transactions', json=payload))
        return TransactionInfo.from_dict(data)

    def get_transaction(self, transaction_id: int) -> TransactionInfo:
        data = self._data(self._request('GET', f'/v1/package-transactions/{transaction_id}'))
        return TransactionInfo.from_dict(data)

    def update_transaction(self, transaction_id: int, package_ids: list[int] | None = None,
                           party_name: str | None = None,
                           party_type: str | None = None) -> TransactionInfo:
        payload = {}
        if package_ids is not None:
            payload['packageIds'] = list(package_ids)
        if party_name is not None:
            payload['partyName'] = party_name
        if party_type is not None:
            payload['partyType'] = party_type
        data = self._data(self._request('PATCH', f'/v1/package-transactions/{transaction_id}', json=payload))
        return TransactionInfo.from_dict(data)

    def handle_step(self, transaction_id: int, command: StepCommand) -> StepResult:
        data = self._data(self._request(
            'POST',
            f'/v1/package-transactions/{transaction_id}/handle-step',
            json=command.as_payload(),
        ))
        return StepResult.from_dict(data)

    def complete_transaction(self, transaction_id: int) -> TransactionInfo:
        data = self._data(self._request('PATCH', f'/v1/package-transactions/{transaction_id}/complete'))
        return TransactionInfo.from_dict(data)

    def delete_transaction(self, transaction_id: int) -> None:
        self._raise_for_error(self._request('DELETE', f'/v1/package-transactions/{transaction_id}'))

    # ══════════════════════════════════════════════════════════════
    # REFERENCE DATA
    # ══════════════════════════════════════════════════════════════

    def list_lines(self, packing_list_id: int) -> list[LineInfo]:
        data = self._data(self._request('GET', f'/v1/packing-lists/{packing_list_id}/lines'))
        return [LineInfo.from_dict(item) for item in self._results(data)]

    def list_packages(self, packing_list_id: int, status: str | None = None) -> list[PackageRef]:
        params = {'packingListId': packing_list_id, 'itemsPerPage': 1000}
        if status:
            params['status'] = status
        data = self._data(self._request('GET', '/v1/cargo-packages', params=params))
        return [PackageRef.from_dict(item) for item in self._results(data)]

    def get_location(self, location_id: int) -> LocationInfo:
        data = self._data(self._request('GET', f'/v1/locations/{location_id}'))
        return LocationInfo.from_dict(data)
