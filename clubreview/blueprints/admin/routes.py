"""Admin JSON API for reviewing club applications."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from flask import Blueprint, current_app, g, jsonify, request
from flask_wtf.csrf import generate_csrf

from clubreview.errors import ValidationError
from clubreview.extensions import admin_guard
from clubreview.models import AdminActionLog, AdminUser, AuditEntry, ClubApplication
from clubreview.services import audit, reporting
from clubreview.services.applications import ApplicationFilters, parse_date_bound, application_repository
from clubreview.services.approval import approval_engine
from clubreview.services.bulk import bulk_approve
from clubreview.services.notifications import notification_service

admin_api_bp = Blueprint('admin_api', __name__, url_prefix='/api/admin')


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def serialize_application(application: ClubApplication) -> dict[str, Any]:
    return {
        'id': application.id,
        'name': application.name,
        'contact_email': application.contact_email,
        'contact_name': application.contact_name,
        'contact_phone': application.contact_phone,
        'location': application.location,
        'description': application.description,
        'website_url': application.website_url,
        'logo_url': application.logo_url,
        'sport_types': application.sport_types or [],
        'verified': application.verified,
        'status': application.status.value,
        'admin_notes': application.admin_notes,
        'reviewed_by': application.reviewed_by_id,
        'reviewed_at': _iso(application.reviewed_at),
        'created_at': _iso(application.created_at),
        'updated_at': _iso(application.updated_at),
    }


def serialize_admin(admin: AdminUser | None) -> dict[str, Any] | None:
    if admin is None:
        return None
    return {'id': admin.id, 'email': admin.email, 'name': admin.display_name}


def serialize_history_entry(entry: AuditEntry, admin: AdminUser | None) -> dict[str, Any]:
    return {
        'id': entry.id,
        'club_id': entry.club_id,
        'admin_id': entry.admin_id,
        'admin_email': admin.email if admin else None,
        'action': entry.action.value,
        'notes': entry.notes,
        'details': entry.details or {},
        'created_at': _iso(entry.created_at),
    }


def serialize_action_log(log: AdminActionLog, admin: AdminUser | None) -> dict[str, Any]:
    return {
        'id': log.id,
        'admin_id': log.admin_id,
        'admin_email': admin.email if admin else None,
        'action': log.action,
        'target_type': log.target_type,
        'target_id': log.target_id,
        'meta': log.meta or {},
        'ip_address': log.ip_address,
        'user_agent': log.user_agent,
        'created_at': _iso(log.created_at),
    }


def _json_payload() -> dict[str, Any]:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


def _date_arg(name: str, end_of_range: bool = False) -> datetime | None:
    value = request.args.get(name)
    return parse_date_bound(value, name, end_of_range) if value else None


def _paging_args(default_limit: int = 50, max_limit: int = 200) -> tuple[int, int]:
    try:
        limit = min(int(request.args.get('limit', default_limit)), max_limit)
        offset = max(int(request.args.get('offset', 0)), 0)
    except ValueError:
        raise ValidationError("limit and offset must be integers")
    if limit < 1:
        raise ValidationError("limit must be positive")
    return limit, offset


@admin_api_bp.route('/csrf-token', methods=['GET'])
@admin_guard.admin_action('view', require_csrf=False)
def csrf_token():
    """Issue a CSRF token bound to the caller's session cookie."""
    return jsonify({
        'success': True,
        'data': {
            'csrf_token': generate_csrf(),
            'expires_in': current_app.config.get('WTF_CSRF_TIME_LIMIT'),
        },
    })


@admin_api_bp.route('/club-applications', methods=['GET'])
@admin_guard.admin_action('view', require_csrf=False)
def list_applications():
    filters = ApplicationFilters.from_args(request.args)
    page = application_repository.list(filters)
    return jsonify({'success': True, **page.to_dict(serialize_application)})


@admin_api_bp.route('/club-applications/stats', methods=['GET'])
@admin_guard.admin_action('view', require_csrf=False)
def application_stats():
    return jsonify({'success': True, 'data': application_repository.stats()})


@admin_api_bp.route('/club-applications/<club_id>', methods=['GET'])
@admin_guard.admin_action('view', require_csrf=False)
def get_application(club_id: str):
    review = application_repository.get_review(club_id)
    return jsonify({
        'success': True,
        'data': {
            'club': serialize_application(review.application),
            'history': [serialize_history_entry(entry, admin) for entry, admin in review.history],
            'admin_user': serialize_admin(review.reviewer),
        },
    })


@admin_api_bp.route('/club-applications/<club_id>/history', methods=['GET'])
@admin_guard.admin_action('view', require_csrf=False)
def application_history(club_id: str):
    application = application_repository.get(club_id)
    history = audit.application_history(application.id)
    return jsonify({
        'success': True,
        'data': [serialize_history_entry(entry, admin) for entry, admin in history],
    })


@admin_api_bp.route('/club-applications/approve', methods=['POST'])
@admin_guard.admin_action('approve')
def approve_application():
    payload = _json_payload()
    if not payload.get('club_id'):
        raise ValidationError("club_id is required")
    application = approval_engine.approve(payload['club_id'], g.admin.id, payload.get('notes'))
    return jsonify({
        'success': True,
        'data': serialize_application(application),
        'message': 'Application approved successfully',
    })


@admin_api_bp.route('/club-applications/reject', methods=['POST'])
@admin_guard.admin_action('reject')
def reject_application():
    payload = _json_payload()
    if not payload.get('club_id'):
        raise ValidationError("club_id is required")
    application = approval_engine.reject(payload['club_id'], g.admin.id, payload.get('reason'))
    return jsonify({
        'success': True,
        'data': serialize_application(application),
        'message': 'Application rejected successfully',
    })


@admin_api_bp.route('/club-applications/bulk-approve', methods=['POST'])
@admin_guard.admin_action('bulk_approve')
def bulk_approve_applications():
    payload = _json_payload()
    result = bulk_approve(payload.get('club_ids'), g.admin.id, payload.get('notes'))
    body = {
        'success': result.outcome != 'failure',
        'data': result.to_dict(),
        'message': result.message,
    }
    if result.outcome == 'failure':
        body['error'] = result.message
        body['code'] = 'bulk_approve_failed'
    return jsonify(body)


@admin_api_bp.route('/reports/statistics', methods=['GET'])
@admin_guard.admin_action('view', require_csrf=False)
def report_statistics():
    stats = reporting.application_statistics(
        date_from=_date_arg('date_from'),
        date_to=_date_arg('date_to', end_of_range=True),
        admin_id=request.args.get('admin_id') or None,
    )
    return jsonify({'success': True, 'data': stats})


@admin_api_bp.route('/reports/admin-performance', methods=['GET'])
@admin_guard.admin_action('view', require_csrf=False)
def admin_performance_report():
    limit, offset = _paging_args()
    metrics = reporting.admin_performance(
        date_from=_date_arg('date_from'),
        date_to=_date_arg('date_to', end_of_range=True),
        admin_id=request.args.get('admin_id') or None,
        limit=limit,
        offset=offset,
    )
    return jsonify({'success': True, 'data': metrics, 'limit': limit, 'offset': offset})


@admin_api_bp.route('/audit/activity-log', methods=['GET'])
@admin_guard.admin_action('view', require_csrf=False)
def activity_log():
    limit, offset = _paging_args()
    rows, total = audit.admin_activity_log(
        admin_id=request.args.get('admin_id') or None,
        action=request.args.get('action') or None,
        target_type=request.args.get('target_type') or None,
        date_from=_date_arg('date_from'),
        date_to=_date_arg('date_to', end_of_range=True),
        limit=limit,
        offset=offset,
    )
    return jsonify({
        'success': True,
        'data': [serialize_action_log(log, admin) for log, admin in rows],
        'count': total,
        'limit': limit,
        'offset': offset,
    })


@admin_api_bp.route('/audit/summary', methods=['GET'])
@admin_guard.admin_action('view', require_csrf=False)
def audit_summary():
    summary = audit.audit_summary(
        date_from=_date_arg('date_from'),
        date_to=_date_arg('date_to', end_of_range=True),
    )
    summary['recent_activity'] = [serialize_action_log(log, admin) for log, admin in summary['recent_activity']]
    return jsonify({'success': True, 'data': summary})


@admin_api_bp.route('/notifications/stats', methods=['GET'])
@admin_guard.admin_action('view', require_csrf=False)
def notification_stats():
    return jsonify({'success': True, 'data': notification_service.get_stats(since=_date_arg('since'))})


@admin_api_bp.route('/notifications/retry', methods=['POST'])
@admin_guard.admin_action('retry_notifications', target_type='notification_delivery')
def retry_notifications():
    return jsonify({'success': True, 'data': notification_service.retry_failed_notifications()})
