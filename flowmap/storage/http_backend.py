"""
HTTP Storage Backend for Flowmap.

Talks to the /api/v1 routes. Every response uses the envelope

    {"data": <payload> | null, "error": {"code": str, "message": str} | null}

and a non-null error is turned into a MutationError carrying the server's
code as its kind. Responses that are not JSON are classified by status code.
"""

import logging
from typing import Dict, Any, List, Optional

import requests

from flowmap import errors
from flowmap.errors import MutationError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:3000/api/v1"
DEFAULT_TIMEOUT = 10.0

# Failure kind when the server gives us nothing better, per HTTP method
_FALLBACK_KINDS = {
    'GET': errors.QUERY_FAILED,
    'POST': errors.CREATE_FAILED,
    'PATCH': errors.UPDATE_FAILED,
    'DELETE': errors.DELETE_FAILED,
}


class HttpBackend:
    """Backend that persists through the JSON API with a shared requests.Session."""

    def __init__(self, base_url: str = DEFAULT_BASE_URL, timeout: float = DEFAULT_TIMEOUT,
                 session: Optional[requests.Session] = None, access_token: Optional[str] = None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update({'Content-Type': 'application/json'})
        if access_token:
            self._session.headers['Authorization'] = f"Bearer {access_token}"

    @property
    def backend_type(self) -> str:
        return "http"

    # --- CanvasBackend ---

    def create(self, resource: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._request('POST', f"/{resource}", operation=f"create {resource}", json=payload)

    def update(self, resource: str, entity_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        return self._request('PATCH', f"/{resource}/{entity_id}", operation=f"update {resource}", json=fields)

    def delete(self, resource: str, entity_id: str) -> bool:
        self._request('DELETE', f"/{resource}/{entity_id}", operation=f"delete {resource}")
        return True

    def list(self, resource: str, workspace_id: str, tab_id: Optional[str] = None) -> List[Dict[str, Any]]:
        if resource == 'tabs':
            # Tabs come embedded in the workspace record
            workspace = self._request('GET', f"/workspaces/{workspace_id}", operation="list tabs")
            tabs = list(workspace.get('tabs') or [])
            tabs.sort(key=lambda t: t.get('position') or 0)
            return tabs

        params = {'workspace_id': workspace_id}
        if tab_id:
            params['tab_id'] = tab_id
        data = self._request('GET', f"/{resource}", operation=f"list {resource}", params=params)
        return list(data or [])

    # --- Internals ---

    def _request(self, method: str, path: str, operation: str, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        logger.debug(f"{method} {url}")

        try:
            response = self._session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error(f"{operation} failed: {e}")
            raise MutationError(errors.REQUEST_FAILED, f"Request failed: {e}", operation=operation) from e

        envelope = self._parse_envelope(response, method, operation)

        error = envelope.get('error')
        if error:
            kind = error.get('code') or errors.STATUS_KINDS.get(response.status_code, _FALLBACK_KINDS[method])
            message = error.get('message') or f"{operation} failed"
            logger.warning(f"{operation} rejected ({response.status_code} {kind}): {message}")
            raise MutationError(kind, message, operation=operation, status=response.status_code)

        data = envelope.get('data')
        if data is None:
            raise MutationError(
                _FALLBACK_KINDS[method],
                "API returned null data without an error",
                operation=operation,
                status=response.status_code,
            )
        return data

    def _parse_envelope(self, response: requests.Response, method: str, operation: str) -> Dict[str, Any]:
        content_type = response.headers.get('content-type', '')
        if 'application/json' not in content_type:
            kind = errors.STATUS_KINDS.get(response.status_code, _FALLBACK_KINDS[method])
            if not response.ok:
                message = f"Request failed: {response.status_code} {response.reason}"
            else:
                message = f"Unexpected response type: {content_type or 'empty'}"
            logger.error(f"{operation}: {message}")
            raise MutationError(kind, message, operation=operation, status=response.status_code)

        try:
            envelope = response.json()
        except ValueError as e:
            logger.error(f"{operation}: invalid JSON body: {e}")
            raise MutationError(_FALLBACK_KINDS[method], "Invalid JSON in response",
                                operation=operation, status=response.status_code) from e

        if not isinstance(envelope, dict):
            raise MutationError(_FALLBACK_KINDS[method], "Malformed response envelope",
                                operation=operation, status=response.status_code)
        return envelope
