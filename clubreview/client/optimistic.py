"""Optimistic review mutations over ``QueryCache``.

A mutation snapshots the cache entries it will touch, applies the expected
result immediately, then calls the server. Success invalidates the affected
queries so they refetch; any failure restores the snapshot exactly.

Two mutations on the same application are not coalesced. Each holds its own
snapshot, so when both fail the one that rolls back last wins.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable

from clubreview.client.api import AdminApiClient, ApiResponse
from clubreview.client.cache import ClubApprovalKeys, Key, QueryCache
from clubreview.errors import NetworkError

logger = logging.getLogger(__name__)

_ABSENT = object()

NETWORK_MESSAGE = "Network error. Please check your connection and try again."


@dataclass
class MutationOutcome:
    success: bool
    message: str
    retryable: bool = False
    code: str | None = None
    data: Any = None
    outcome: str | None = None


class CacheSnapshot:
    """Deep copies of a set of cache entries, restorable as a unit."""

    def __init__(self, cache: QueryCache, keys: list[Key]):
        self.cache = cache
        self.values = {key: copy.deepcopy(cache.get(key)) if cache.has(key) else _ABSENT for key in keys}

    def restore(self) -> None:
        for key, value in self.values.items():
            if value is _ABSENT:
                self.cache.delete(key)
            else:
                self.cache.set(key, value)


class OptimisticMutation:
    """Snapshot, speculative apply and reconcile for one server call."""

    def __init__(self, cache: QueryCache, updates: dict[Key, Callable[[Any], Any]], invalidate: list[Key]):
        self.cache = cache
        self.updates = updates
        self.invalidate_keys = invalidate
        self.snapshot: CacheSnapshot | None = None

    def apply(self) -> None:
        self.snapshot = CacheSnapshot(self.cache, list(self.updates))
        for key, update in self.updates.items():
            if self.cache.has(key):
                self.cache.set(key, update(copy.deepcopy(self.cache.get(key))))

    def rollback(self) -> None:
        if self.snapshot is not None:
            self.snapshot.restore()

    def commit(self) -> None:
        for key in self.invalidate_keys:
            try:
                self.cache.invalidate(key)
            except NetworkError as e:
                logger.warning(f"Refetch of {key} failed after mutation: {e}")


def describe_failure(response: ApiResponse, action: str) -> tuple[str, bool]:
    """User-facing message and retryability for a failed response."""
    code = response.code
    if code in ('authentication_required', 'authentication_error', 'session_expired'):
        return "Your session has expired. Please sign in again.", False
    if code == 'authorization_error':
        return "You do not have permission to perform this action.", False
    if code == 'security_token_missing':
        return "Security token missing or expired. Please refresh and try again.", True
    if code == 'rate_limit_exceeded':
        wait = response.retry_after or 60
        return f"Too many requests. Please wait {wait} seconds and try again.", True
    if code == 'validation_error':
        return response.error or "Invalid request.", False
    if code == 'conflicting_review':
        return "This application has already been reviewed.", False
    if code == 'not_found':
        return "Application not found.", False
    if code == 'transient_store_error' or response.status_code >= 500:
        return "The service is temporarily unavailable. Please try again.", True
    return f"Failed to {action} application: {response.error or 'unknown error'}", False


def _reviewed(status: str, notes: str | None, now: str) -> Callable[[Any], Any]:
    def update(detail):
        if not isinstance(detail, dict):
            return detail
        club = detail.get('club') if isinstance(detail.get('club'), dict) else detail
        club['status'] = status
        club['reviewed_at'] = now
        if notes is not None:
            club['admin_notes'] = notes
        return detail
    return update


def _counted(status: str) -> Callable[[Any], Any]:
    def update(stats):
        if not isinstance(stats, dict):
            return stats
        stats['pending'] = max(0, stats.get('pending', 0) - 1)
        stats[status] = stats.get(status, 0) + 1
        return stats
    return update


class ReviewMutations:
    """Approve/reject/bulk-approve with optimistic cache updates."""

    def __init__(self, api: AdminApiClient, cache: QueryCache, clock: Callable[[], datetime] | None = None):
        self.api = api
        self.cache = cache
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def _related(self, club_id: str) -> list[Key]:
        return [
            ClubApprovalKeys.applications(),
            ClubApprovalKeys.detail(club_id),
            ClubApprovalKeys.history(club_id),
            ClubApprovalKeys.stats(),
        ]

    def _run(self, club_id: str, status: str, notes: str | None, action: str, call: Callable[[], ApiResponse]):
        now = self.clock().isoformat()
        mutation = OptimisticMutation(
            self.cache,
            updates={
                ClubApprovalKeys.detail(club_id): _reviewed(status, notes, now),
                ClubApprovalKeys.stats(): _counted(status),
            },
            invalidate=self._related(club_id),
        )
        mutation.apply()
        try:
            response = call()
        except NetworkError as e:
            mutation.rollback()
            logger.warning(f"{action} of {club_id} failed: {e}")
            return MutationOutcome(False, NETWORK_MESSAGE, retryable=True, code=NetworkError.code)
        except Exception:
            mutation.rollback()
            raise

        if not response.success:
            mutation.rollback()
            message, retryable = describe_failure(response, action)
            return MutationOutcome(False, message, retryable=retryable, code=response.code, data=response.data)

        mutation.commit()
        return MutationOutcome(
            True,
            response.message or f"Application {status} successfully",
            data=response.data,
        )

    def approve(self, club_id: str, notes: str | None = None) -> MutationOutcome:
        return self._run(club_id, 'approved', notes, 'approve', lambda: self.api.approve(club_id, notes))

    def reject(self, club_id: str, reason: str) -> MutationOutcome:
        return self._run(club_id, 'rejected', reason, 'reject', lambda: self.api.reject(club_id, reason))

    def bulk_approve(self, club_ids: list[str], notes: str | None = None) -> MutationOutcome:
        """No speculative apply; the cache is refreshed once the server answers."""
        try:
            response = self.api.bulk_approve(club_ids, notes)
        except NetworkError as e:
            logger.warning(f"Bulk approve failed: {e}")
            return MutationOutcome(False, NETWORK_MESSAGE, retryable=True, code=NetworkError.code)

        result = response.data if isinstance(response.data, dict) else {}
        if 'outcome' not in result:
            # Rejected before processing (validation, auth, rate limit)
            message, retryable = describe_failure(response, 'bulk approve')
            return MutationOutcome(False, message, retryable=retryable, code=response.code, outcome='failure')

        OptimisticMutation(self.cache, {}, invalidate=[ClubApprovalKeys.root]).commit()

        succeeded = result.get('success_count', 0)
        failed = result.get('failure_count', 0)
        outcome = result['outcome']
        if outcome == 'success':
            message = f"Successfully approved {succeeded} applications"
        elif outcome == 'partial':
            message = f"Approved {succeeded} of {succeeded + failed} applications. {failed} failed."
        else:
            message = f"Failed to approve {failed} applications"
        return MutationOutcome(outcome != 'failure', message, code=response.code, data=result, outcome=outcome)


__all__ = [
    'CacheSnapshot',
    'MutationOutcome',
    'OptimisticMutation',
    'ReviewMutations',
    'describe_failure',
]
