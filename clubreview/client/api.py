"""HTTP client for the admin review API."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import requests

from clubreview.errors import NetworkError

CSRF_HEADER = 'X-CSRF-Token'


@dataclass
class ApiResponse:
    success: bool
    status_code: int
    data: Any = None
    error: str | None = None
    code: str | None = None
    message: str | None = None
    retry_after: int | None = None
    details: dict | None = None
    payload: dict | None = None


class AdminApiClient:
    """Thin wrapper over the admin endpoints.

    Every call returns an ``ApiResponse``; transport failures (connection
    errors, timeouts) raise ``NetworkError`` instead. Mutating calls send the
    CSRF token, fetching one first when the client has none.
    """

    def __init__(self, base_url: str, token: str, timeout: float = 10, session: requests.Session | None = None):
        self.base_url = base_url.rstrip('/')
        self.token = token
        self.timeout = timeout
        self.session = session or requests.Session()
        self.csrf_token: str | None = None

    def _request(self, method: str, path: str, **kwargs) -> ApiResponse:
        headers = kwargs.pop('headers', {})
        headers['Authorization'] = f'Bearer {self.token}'
        headers.setdefault('Accept', 'application/json')
        try:
            response = self.session.request(
                method,
                f'{self.base_url}{path}',
                headers=headers,
                timeout=self.timeout,
                **kwargs,
            )
        except requests.RequestException as e:
            raise NetworkError(f"Could not reach the review service: {e}")

        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {'data': payload}

        success = payload.get('success', response.ok)
        return ApiResponse(
            success=bool(success) and response.ok,
            status_code=response.status_code,
            data=payload.get('data'),
            error=payload.get('error'),
            code=payload.get('code'),
            message=payload.get('message'),
            retry_after=payload.get('retry_after'),
            details=payload.get('details'),
            payload=payload,
        )

    def _command(self, path: str, body: dict[str, Any]) -> ApiResponse:
        if not self.csrf_token:
            self.refresh_csrf_token()
        response = self._request('POST', path, json=body, headers={CSRF_HEADER: self.csrf_token or ''})
        if response.code == 'security_token_missing':
            # Token expired server-side; fetch a fresh one and retry once
            self.refresh_csrf_token()
            response = self._request('POST', path, json=body, headers={CSRF_HEADER: self.csrf_token or ''})
        return response

    def refresh_csrf_token(self) -> ApiResponse:
        response = self._request('GET', '/api/admin/csrf-token')
        if response.success and isinstance(response.data, dict):
            self.csrf_token = response.data.get('csrf_token')
        return response

    def list_applications(self, **filters) -> ApiResponse:
        params = {k: v for k, v in filters.items() if v is not None}
        if isinstance(params.get('search_fields'), (list, tuple)):
            params['search_fields'] = ','.join(params['search_fields'])
        response = self._request('GET', '/api/admin/club-applications', params=params)
        if response.success:
            # Keep the paging fields alongside the rows
            response.data = {k: v for k, v in response.payload.items() if k != 'success'}
        return response

    def get_application(self, club_id: str) -> ApiResponse:
        return self._request('GET', f'/api/admin/club-applications/{club_id}')

    def get_history(self, club_id: str) -> ApiResponse:
        return self._request('GET', f'/api/admin/club-applications/{club_id}/history')

    def get_stats(self) -> ApiResponse:
        return self._request('GET', '/api/admin/club-applications/stats')

    def approve(self, club_id: str, notes: str | None = None) -> ApiResponse:
        body: dict[str, Any] = {'club_id': club_id}
        if notes:
            body['notes'] = notes
        return self._command('/api/admin/club-applications/approve', body)

    def reject(self, club_id: str, reason: str) -> ApiResponse:
        return self._command('/api/admin/club-applications/reject', {'club_id': club_id, 'reason': reason})

    def bulk_approve(self, club_ids: list[str], notes: str | None = None) -> ApiResponse:
        body: dict[str, Any] = {'club_ids': list(club_ids)}
        if notes:
            body['notes'] = notes
        return self._command('/api/admin/club-applications/bulk-approve', body)


__all__ = ['AdminApiClient', 'ApiResponse']
