"""Reporting over applications: review statistics and exports."""

from __future__ import annotations

import csv
import io
import json
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, select

from clubreview.extensions import db
from clubreview.models import AdminUser, ApplicationStatus, AuditAction, AuditEntry, ClubApplication

EXPORT_COLUMNS = [
    'id',
    'name',
    'contact_email',
    'contact_name',
    'contact_phone',
    'location',
    'status',
    'verified',
    'admin_notes',
    'reviewed_by_id',
    'reviewed_at',
    'created_at',
]


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _application_conditions(date_from, date_to, admin_id) -> list:
    conditions = []
    if date_from:
        conditions.append(ClubApplication.created_at >= date_from)
    if date_to:
        conditions.append(ClubApplication.created_at < date_to)
    if admin_id:
        conditions.append(ClubApplication.reviewed_by_id == admin_id)
    return conditions


def application_statistics(
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    admin_id: str | None = None,
) -> dict[str, Any]:
    """Approval rate, processing time and breakdowns for a creation-date range.

    With ``admin_id`` only applications that admin decided are counted.
    """
    conditions = _application_conditions(date_from, date_to, admin_id)
    stmt = select(ClubApplication).where(*conditions)
    applications = db.session.scalars(stmt).all()

    counts = {status.value: 0 for status in ApplicationStatus}
    by_location: dict[str, int] = {}
    processing_hours = []
    for application in applications:
        counts[application.status.value] += 1
        by_location[application.location] = by_location.get(application.location, 0) + 1
        if application.reviewed_at and application.created_at:
            delta = _naive_utc(application.reviewed_at) - _naive_utc(application.created_at)
            processing_hours.append(max(delta.total_seconds(), 0) / 3600)

    decided = counts['approved'] + counts['rejected']
    approval_rate = round(counts['approved'] / decided * 100, 1) if decided else 0.0
    average_hours = round(sum(processing_hours) / len(processing_hours), 2) if processing_hours else None

    reasons_stmt = select(ClubApplication.admin_notes, func.count(ClubApplication.id)).where(
        ClubApplication.status == ApplicationStatus.REJECTED,
        ClubApplication.admin_notes.is_not(None),
        *conditions,
    )
    reasons_stmt = (
        reasons_stmt.group_by(ClubApplication.admin_notes)
        .order_by(func.count(ClubApplication.id).desc(), ClubApplication.admin_notes.asc())
        .limit(5)
    )

    return {
        'total': len(applications),
        'pending': counts['pending'],
        'approved': counts['approved'],
        'rejected': counts['rejected'],
        'approval_rate': approval_rate,
        'average_processing_hours': average_hours,
        'by_location': [
            {'location': location, 'count': count}
            for location, count in sorted(by_location.items(), key=lambda item: (-item[1], item[0]))
        ],
        'top_rejection_reasons': [
            {'reason': reason, 'count': count}
            for reason, count in db.session.execute(reasons_stmt).all()
        ],
    }


def admin_performance(
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    admin_id: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[dict[str, Any]]:
    """Per-admin decision counts and turnaround, busiest admins first.

    Counts come from the decision history, so bulk approvals appear both as
    individual approvals and as one bulk operation.
    """
    stmt = (
        select(AuditEntry, ClubApplication.created_at)
        .outerjoin(ClubApplication, AuditEntry.club_id == ClubApplication.id)
        .where(AuditEntry.admin_id.is_not(None))
    )
    if date_from:
        stmt = stmt.where(AuditEntry.created_at >= date_from)
    if date_to:
        stmt = stmt.where(AuditEntry.created_at < date_to)
    if admin_id:
        stmt = stmt.where(AuditEntry.admin_id == admin_id)

    metrics: dict[str, dict[str, Any]] = {}
    for entry, submitted_at in db.session.execute(stmt).all():
        decided_at = _naive_utc(entry.created_at)
        row = metrics.setdefault(entry.admin_id, {
            'approvals': 0, 'rejections': 0, 'bulk_operations': 0,
            'hours': [], 'last': decided_at, 'months': {},
        })
        row['last'] = max(row['last'], decided_at)

        if entry.action == AuditAction.APPROVED:
            key = 'approvals'
        elif entry.action == AuditAction.REJECTED:
            key = 'rejections'
        elif entry.action == AuditAction.BULK_APPROVE_START:
            key = 'bulk_operations'
        else:
            continue
        row[key] += 1

        month = decided_at.strftime('%Y-%m')
        bucket = row['months'].setdefault(
            month, {'month': month, 'approvals': 0, 'rejections': 0, 'bulk_operations': 0}
        )
        bucket[key] += 1
        if key != 'bulk_operations' and submitted_at is not None:
            delta = decided_at - _naive_utc(submitted_at)
            row['hours'].append(max(delta.total_seconds(), 0) / 3600)

    admins = {}
    if metrics:
        admins = {a.id: a for a in db.session.scalars(select(AdminUser).where(AdminUser.id.in_(list(metrics))))}

    report = []
    for reviewer_id, row in metrics.items():
        admin = admins.get(reviewer_id)
        hours = row['hours']
        report.append({
            'admin_id': reviewer_id,
            'admin_email': admin.email if admin else None,
            'admin_name': admin.display_name if admin else None,
            'total_actions': row['approvals'] + row['rejections'] + row['bulk_operations'],
            'approvals_count': row['approvals'],
            'rejections_count': row['rejections'],
            'bulk_operations_count': row['bulk_operations'],
            'average_processing_hours': round(sum(hours) / len(hours), 2) if hours else None,
            'last_activity': row['last'].replace(tzinfo=timezone.utc).isoformat(),
            'activity_by_month': [row['months'][m] for m in sorted(row['months'])],
        })
    report.sort(key=lambda item: (-item['total_actions'], item['admin_email'] or ''))
    return report[offset:offset + limit]


def _export_row(application: ClubApplication) -> dict[str, Any]:
    row = {}
    for column in EXPORT_COLUMNS:
        value = getattr(application, column)
        if isinstance(value, ApplicationStatus):
            value = value.value
        elif isinstance(value, datetime):
            value = value.isoformat()
        row[column] = value
    return row


def export_applications(fmt: str = 'csv', status: str | None = None) -> str:
    """Serialize applications (optionally one status) to CSV or JSON text."""
    stmt = select(ClubApplication).order_by(ClubApplication.created_at.asc(), ClubApplication.id.asc())
    if status and status != 'all':
        stmt = stmt.where(ClubApplication.status == ApplicationStatus(status))
    rows = [_export_row(application) for application in db.session.scalars(stmt).all()]

    if fmt == 'json':
        return json.dumps(rows, indent=2)
    if fmt != 'csv':
        raise ValueError(f"Unsupported export format: {fmt}")

    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=EXPORT_COLUMNS)
    writer.writeheader()
    writer.writerows(rows)
    return buffer.getvalue()


__all__ = ['admin_performance', 'application_statistics', 'export_applications', 'EXPORT_COLUMNS']
