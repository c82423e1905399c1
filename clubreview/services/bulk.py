"""Bulk approval: one request, many independent approvals."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from clubreview.errors import ClubReviewError, ValidationError
from clubreview.extensions import db
from clubreview.models import AuditAction
from clubreview.services import audit
from clubreview.services.applications import parse_application_id
from clubreview.services.approval import ApprovalEngine, approval_engine, clean_notes


@dataclass
class BulkResult:
    successful: list[str] = field(default_factory=list)
    failed: list[dict[str, str]] = field(default_factory=list)

    @property
    def requested(self) -> int:
        return len(self.successful) + len(self.failed)

    @property
    def outcome(self) -> str:
        if not self.failed:
            return 'success'
        if self.successful:
            return 'partial'
        return 'failure'

    @property
    def message(self) -> str:
        if self.outcome == 'success':
            return f"Successfully approved {len(self.successful)} applications"
        if self.outcome == 'partial':
            return (
                f"Approved {len(self.successful)} of {self.requested} applications. "
                f"{len(self.failed)} failed."
            )
        return f"Failed to approve {len(self.failed)} applications"

    def to_dict(self) -> dict[str, Any]:
        return {
            'successful': list(self.successful),
            'failed': [dict(item) for item in self.failed],
            'outcome': self.outcome,
            'total_requested': self.requested,
            'success_count': len(self.successful),
            'failure_count': len(self.failed),
        }


def validate_batch(club_ids: Any) -> list[str]:
    """Check the batch as a whole; nothing is processed if this raises."""
    if not isinstance(club_ids, (list, tuple)):
        raise ValidationError("club_ids must be a list of application ids")
    if not club_ids:
        raise ValidationError("At least one application id is required")

    limit = current_app.config.get('BULK_APPROVE_MAX_ITEMS', 50)
    if len(club_ids) > limit:
        raise ValidationError(f"Cannot approve more than {limit} applications at once")

    parsed = []
    malformed = []
    for value in club_ids:
        try:
            parsed.append(parse_application_id(value))
        except ValidationError:
            malformed.append(str(value))
    if malformed:
        raise ValidationError("Invalid application ids in batch", {'invalid_ids': malformed})
    return parsed


def bulk_approve(
    club_ids: list[str],
    admin_id: str,
    notes: str | None = None,
    engine: ApprovalEngine | None = None,
) -> BulkResult:
    """Approve each id in order, isolating per-item failures.

    Earlier successes are never rolled back when a later item fails. Start and
    complete markers bracket the batch in the audit log.
    """
    engine = engine or approval_engine
    ids = validate_batch(club_ids)
    notes = clean_notes(notes)
    engine.require_admin(admin_id)

    _marker(admin_id, AuditAction.BULK_APPROVE_START, audit.BulkApproveStartDetails(
        club_ids=ids,
        requested=len(ids),
        notes=notes,
    ), notes)

    result = BulkResult()
    for club_id in ids:
        try:
            engine.approve(club_id, admin_id, notes)
        except ClubReviewError as e:
            result.failed.append({'id': club_id, 'error': e.message})
        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.error(f"Bulk approve of {club_id} failed: {e}")
            result.failed.append({'id': club_id, 'error': 'Database error'})
        else:
            result.successful.append(club_id)

    _marker(admin_id, AuditAction.BULK_APPROVE_COMPLETE, audit.BulkApproveCompleteDetails(
        club_ids=ids,
        successful=list(result.successful),
        failed=[dict(item) for item in result.failed],
        outcome=result.outcome,
    ), notes)

    current_app.logger.info(
        f"Bulk approve by admin {admin_id}: {len(result.successful)} succeeded, "
        f"{len(result.failed)} failed ({result.outcome})"
    )
    return result


def _marker(admin_id: str, action: AuditAction, details, notes: str | None) -> None:
    try:
        audit.record_bulk_marker(admin_id, action, details, notes)
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to write {action.value} marker: {e}")


__all__ = ['BulkResult', 'bulk_approve', 'validate_batch']
