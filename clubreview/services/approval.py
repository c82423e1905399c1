"""Approve/reject state machine for club applications.

``pending -> approved`` and ``pending -> rejected`` are the only transitions.
Each decision is applied in a fixed order: status write, audit entry,
notification. Only the status write can fail the call; audit and notification
failures are logged and left for follow-up.
"""

from __future__ import annotations

from flask import current_app

from clubreview.errors import AuthorizationError, ValidationError
from clubreview.extensions import db
from clubreview.models import AdminUser, ApplicationStatus, AuditAction, ClubApplication
from clubreview.services import audit
from clubreview.services.applications import ApplicationRepository, application_repository, parse_application_id
from clubreview.services.notifications import ClubNotificationService, notification_service


def clean_notes(notes: str | None) -> str | None:
    """Trim optional approval notes; blank notes become None."""
    if notes is None:
        return None
    if not isinstance(notes, str):
        raise ValidationError("notes must be a string")
    notes = notes.strip()
    limit = current_app.config.get('ADMIN_NOTES_MAX_LENGTH', 1000)
    if len(notes) > limit:
        raise ValidationError(f"Notes must be {limit} characters or less")
    return notes or None


def clean_reason(reason: str | None) -> str:
    """Trim a rejection reason, which is mandatory."""
    if reason is not None and not isinstance(reason, str):
        raise ValidationError("Rejection reason must be a string")
    reason = (reason or '').strip()
    if not reason:
        raise ValidationError("Rejection reason is required")
    limit = current_app.config.get('REJECTION_REASON_MAX_LENGTH', 1000)
    if len(reason) > limit:
        raise ValidationError(f"Rejection reason must be {limit} characters or less")
    return reason


class ApprovalEngine:
    def __init__(
        self,
        repository: ApplicationRepository | None = None,
        notifier: ClubNotificationService | None = None,
    ):
        self.repository = repository or application_repository
        self.notifier = notifier or notification_service

    def require_admin(self, admin_id: str) -> AdminUser:
        """Re-check admin rights against the store at write time."""
        admin = db.session.get(AdminUser, admin_id) if admin_id else None
        if admin is None or not admin.is_admin or not admin.is_active:
            raise AuthorizationError("Admin privileges are required for this action")
        return admin

    def approve(self, club_id: str, admin_id: str, notes: str | None = None) -> ClubApplication:
        club_id = parse_application_id(club_id)
        notes = clean_notes(notes)
        self.require_admin(admin_id)

        application = self.repository.update_status(club_id, ApplicationStatus.APPROVED, notes, admin_id)
        current_app.logger.info(f"Application {club_id} approved by admin {admin_id}")

        self._record(application, admin_id, AuditAction.APPROVED, notes)
        try:
            self.notifier.send_approval_notification(application)
        except Exception as e:
            current_app.logger.error(f"Approval notification for {club_id} failed: {e}")
        return application

    def reject(self, club_id: str, admin_id: str, reason: str | None) -> ClubApplication:
        club_id = parse_application_id(club_id)
        reason = clean_reason(reason)
        self.require_admin(admin_id)

        application = self.repository.update_status(club_id, ApplicationStatus.REJECTED, reason, admin_id)
        current_app.logger.info(f"Application {club_id} rejected by admin {admin_id}")

        self._record(application, admin_id, AuditAction.REJECTED, reason)
        try:
            self.notifier.send_rejection_notification(application, reason)
        except Exception as e:
            current_app.logger.error(f"Rejection notification for {club_id} failed: {e}")
        return application

    def _record(self, application: ClubApplication, admin_id: str, action: AuditAction, notes: str | None) -> None:
        # Status write is already committed and stays committed
        try:
            audit.record_transition(application, admin_id, action, notes)
        except Exception as e:
            db.session.rollback()
            current_app.logger.error(
                f"Failed to write {action.value} audit entry for application {application.id}: {e}"
            )


# Global engine instance
approval_engine = ApprovalEngine()


__all__ = ['ApprovalEngine', 'approval_engine', 'clean_notes', 'clean_reason']
