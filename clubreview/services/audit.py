"""Audit trail for review decisions and the admin security log."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from flask import current_app, has_request_context, request
from sqlalchemy import func, select

from clubreview.extensions import db
from clubreview.models import AdminActionLog, AdminUser, AuditAction, AuditEntry

if TYPE_CHECKING:
    from clubreview.models import ClubApplication


@dataclass
class ApprovedDetails:
    notes: str | None = None


@dataclass
class RejectedDetails:
    reason: str = ""


@dataclass
class BulkApproveStartDetails:
    club_ids: list[str] = field(default_factory=list)
    requested: int = 0
    notes: str | None = None


@dataclass
class BulkApproveCompleteDetails:
    club_ids: list[str] = field(default_factory=list)
    successful: list[str] = field(default_factory=list)
    failed: list[dict[str, str]] = field(default_factory=list)
    outcome: str = "success"


_DETAILS_BY_ACTION = {
    AuditAction.APPROVED: ApprovedDetails,
    AuditAction.REJECTED: RejectedDetails,
    AuditAction.BULK_APPROVE_START: BulkApproveStartDetails,
    AuditAction.BULK_APPROVE_COMPLETE: BulkApproveCompleteDetails,
}


def details_for(action: AuditAction, payload: dict[str, Any] | None):
    """Parse a stored details payload back into the variant for ``action``."""
    details_cls = _DETAILS_BY_ACTION[action]
    known = details_cls.__dataclass_fields__
    return details_cls(**{k: v for k, v in (payload or {}).items() if k in known})


def _append(club_id: str | None, admin_id: str, action: AuditAction, notes: str | None, details) -> AuditEntry:
    expected = _DETAILS_BY_ACTION[action]
    if not isinstance(details, expected):
        raise TypeError(f"{action.value} entries take {expected.__name__}, got {type(details).__name__}")

    sequence = None
    if club_id is not None:
        last = db.session.scalar(select(func.max(AuditEntry.sequence)).where(AuditEntry.club_id == club_id))
        sequence = (last or 0) + 1

    entry = AuditEntry(
        club_id=club_id,
        admin_id=admin_id,
        action=action,
        sequence=sequence,
        notes=notes,
        details=asdict(details),
    )
    db.session.add(entry)
    db.session.commit()
    return entry


def record_transition(application: ClubApplication, admin_id: str, action: AuditAction, notes: str | None) -> AuditEntry:
    """Append the entry for a single approve/reject decision."""
    if action == AuditAction.APPROVED:
        details = ApprovedDetails(notes=notes)
    elif action == AuditAction.REJECTED:
        details = RejectedDetails(reason=notes or "")
    else:
        raise ValueError(f"{action.value} is not a transition action")
    return _append(application.id, admin_id, action, notes, details)


def record_bulk_marker(admin_id: str, action: AuditAction, details, notes: str | None = None) -> AuditEntry:
    """Append a bulk start/complete marker (not tied to one application)."""
    return _append(None, admin_id, action, notes, details)


def application_history(club_id: str) -> list[tuple[AuditEntry, AdminUser | None]]:
    """Decision history for one application, newest first."""
    stmt = (
        select(AuditEntry, AdminUser)
        .outerjoin(AdminUser, AuditEntry.admin_id == AdminUser.id)
        .where(AuditEntry.club_id == club_id)
        .order_by(AuditEntry.sequence.desc())
    )
    return [(entry, admin) for entry, admin in db.session.execute(stmt).all()]


def latest_entry(club_id: str) -> AuditEntry | None:
    stmt = (
        select(AuditEntry)
        .where(AuditEntry.club_id == club_id)
        .order_by(AuditEntry.sequence.desc())
        .limit(1)
    )
    return db.session.scalars(stmt).first()


def log_admin_action(
    admin: AdminUser,
    action: str,
    target_type: str,
    target_id: str | None = None,
    metadata: dict[str, Any] | None = None
) -> None:
    """
    Log an administrative action to the security trail.

    Args:
        admin: Admin who performed the action
        action: Action performed (e.g., "approve", "bulk_approve")
        target_type: Kind of record acted on
        target_id: ID of the record, when there is exactly one
        metadata: Request parameters to keep with the entry
    """
    try:
        ip_address = None
        user_agent = None
        if has_request_context():
            ip_address = request.remote_addr
            user_agent = (request.headers.get('User-Agent') or '')[:512] or None

        log_entry = AdminActionLog(
            admin_id=admin.id,
            action=action,
            target_type=target_type,
            target_id=target_id,
            meta=metadata or {},
            ip_address=ip_address,
            user_agent=user_agent,
        )
        db.session.add(log_entry)
        db.session.commit()

    except Exception as e:
        # Don't fail the request if audit logging fails
        db.session.rollback()
        current_app.logger.error(f"Failed to log admin action: {e}")


def admin_activity_log(
    admin_id: str | None = None,
    action: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    limit: int = 50,
    offset: int = 0,
    target_type: str | None = None,
) -> tuple[list[tuple[AdminActionLog, AdminUser | None]], int]:
    """Security trail rows matching the filters, newest first, with the total count."""
    stmt = select(AdminActionLog, AdminUser).outerjoin(AdminUser, AdminActionLog.admin_id == AdminUser.id)
    if admin_id:
        stmt = stmt.where(AdminActionLog.admin_id == admin_id)
    if action:
        stmt = stmt.where(AdminActionLog.action == action)
    if target_type:
        stmt = stmt.where(AdminActionLog.target_type == target_type)
    if date_from:
        stmt = stmt.where(AdminActionLog.created_at >= date_from)
    if date_to:
        stmt = stmt.where(AdminActionLog.created_at < date_to)

    total = db.session.scalar(select(func.count()).select_from(stmt.subquery())) or 0
    rows = db.session.execute(
        stmt.order_by(AdminActionLog.created_at.desc(), AdminActionLog.id.desc()).limit(limit).offset(offset)
    ).all()
    return [(log, admin) for log, admin in rows], total


def audit_summary(
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    recent_limit: int = 10,
) -> dict[str, Any]:
    """Totals over the security trail: by action, by admin, and the latest rows."""
    conditions = []
    if date_from:
        conditions.append(AdminActionLog.created_at >= date_from)
    if date_to:
        conditions.append(AdminActionLog.created_at < date_to)

    total = db.session.scalar(select(func.count(AdminActionLog.id)).where(*conditions)) or 0
    unique_admins = db.session.scalar(
        select(func.count(func.distinct(AdminActionLog.admin_id))).where(*conditions)
    ) or 0

    action_count = func.count(AdminActionLog.id)
    by_action = db.session.execute(
        select(AdminActionLog.action, action_count)
        .where(*conditions)
        .group_by(AdminActionLog.action)
        .order_by(action_count.desc(), AdminActionLog.action.asc())
    ).all()
    by_admin = db.session.execute(
        select(AdminActionLog.admin_id, AdminUser.email, action_count)
        .outerjoin(AdminUser, AdminActionLog.admin_id == AdminUser.id)
        .where(*conditions)
        .group_by(AdminActionLog.admin_id, AdminUser.email)
        .order_by(action_count.desc(), AdminUser.email.asc())
    ).all()
    recent, _ = admin_activity_log(date_from=date_from, date_to=date_to, limit=recent_limit)

    return {
        'total_actions': total,
        'unique_admins': unique_admins,
        'actions_by_type': [{'action': action, 'count': count} for action, count in by_action],
        'actions_by_admin': [
            {'admin_id': admin_id, 'admin_email': email, 'count': count}
            for admin_id, email, count in by_admin
        ],
        'recent_activity': recent,
    }


@db.event.listens_for(db.session, "before_flush")
def _guard_append_only(session, flush_context, instances) -> None:
    """Audit entries and the security trail are insert-only."""

    for obj in session.dirty:
        if isinstance(obj, (AuditEntry, AdminActionLog)) and session.is_modified(obj):
            raise PermissionError(f"{type(obj).__name__} rows cannot be modified")

    for obj in session.deleted:
        if isinstance(obj, (AuditEntry, AdminActionLog)):
            raise PermissionError(f"{type(obj).__name__} rows cannot be deleted")


__all__ = [
    "ApprovedDetails",
    "RejectedDetails",
    "BulkApproveStartDetails",
    "BulkApproveCompleteDetails",
    "details_for",
    "record_transition",
    "record_bulk_marker",
    "application_history",
    "latest_entry",
    "log_admin_action",
    "admin_activity_log",
    "audit_summary",
]
