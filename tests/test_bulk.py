from uuid import uuid4

import pytest

from clubreview.errors import AuthorizationError, ValidationError
from clubreview.extensions import db
from clubreview.models import ApplicationStatus, AuditAction, AuditEntry, ClubApplication
from clubreview.services.bulk import BulkResult, bulk_approve, validate_batch


def _markers(action):
    return db.session.scalars(db.select(AuditEntry).where(AuditEntry.action == action)).all()


class TestBulkApprove:

    def test_all_succeed(self, app, admin, pending_ids):
        with app.app_context():
            result = bulk_approve(pending_ids, admin['id'], 'Season opening batch')
            assert result.outcome == 'success'
            assert result.successful == pending_ids
            assert result.message == 'Successfully approved 3 applications'
            for club_id in pending_ids:
                application = db.session.get(ClubApplication, club_id)
                assert application.status == ApplicationStatus.APPROVED
                assert application.admin_notes == 'Season opening batch'

    def test_partial_when_one_already_decided(self, app, admin, pending_ids):
        with app.app_context():
            bulk_approve([pending_ids[1]], admin['id'])
            result = bulk_approve(pending_ids, admin['id'])
            assert result.outcome == 'partial'
            assert result.successful == [pending_ids[0], pending_ids[2]]
            assert [item['id'] for item in result.failed] == [pending_ids[1]]
            assert result.message == 'Approved 2 of 3 applications. 1 failed.'

    def test_unknown_id_is_item_failure(self, app, admin, pending_ids):
        missing = str(uuid4())
        with app.app_context():
            result = bulk_approve([pending_ids[0], missing], admin['id'])
            assert result.outcome == 'partial'
            assert result.failed == [{'id': missing, 'error': 'Application not found'}]
            assert db.session.get(ClubApplication, pending_ids[0]).status == ApplicationStatus.APPROVED

    def test_all_fail(self, app, admin):
        with app.app_context():
            result = bulk_approve([str(uuid4()), str(uuid4())], admin['id'])
            assert result.outcome == 'failure'
            assert result.successful == []
            assert result.message == 'Failed to approve 2 applications'

    def test_markers_bracket_the_batch(self, app, admin, pending_ids):
        with app.app_context():
            bulk_approve([pending_ids[0]], admin['id'])
            result = bulk_approve(pending_ids, admin['id'], 'Second pass')

            starts = _markers(AuditAction.BULK_APPROVE_START)
            completes = _markers(AuditAction.BULK_APPROVE_COMPLETE)
            assert len(starts) == len(completes) == 2

            latest_start = max(starts, key=lambda e: e.created_at)
            assert latest_start.club_id is None
            assert latest_start.details['club_ids'] == pending_ids
            assert latest_start.details['requested'] == 3
            assert latest_start.notes == 'Second pass'

            latest_complete = max(completes, key=lambda e: e.created_at)
            assert latest_complete.details['outcome'] == 'partial'
            assert latest_complete.details['successful'] == result.successful
            assert latest_complete.details['failed'] == result.failed

    def test_per_item_audit_entries(self, app, admin, pending_ids):
        with app.app_context():
            bulk_approve(pending_ids, admin['id'])
            approved = _markers(AuditAction.APPROVED)
            assert sorted(e.club_id for e in approved) == sorted(pending_ids)

    def test_non_admin_rejected_before_markers(self, app, non_admin, pending_ids):
        with app.app_context():
            with pytest.raises(AuthorizationError):
                bulk_approve(pending_ids, non_admin['id'])
            assert _markers(AuditAction.BULK_APPROVE_START) == []


class TestBatchValidation:

    def test_over_limit_processes_nothing(self, app, admin, pending_ids):
        ids = pending_ids + [str(uuid4()) for _ in range(48)]
        with app.app_context():
            with pytest.raises(ValidationError, match='Cannot approve more than 50 applications at once'):
                bulk_approve(ids, admin['id'])
            assert _markers(AuditAction.BULK_APPROVE_START) == []
            assert db.session.get(ClubApplication, pending_ids[0]).status == ApplicationStatus.PENDING

    def test_exactly_fifty_accepted(self, app):
        ids = [str(uuid4()) for _ in range(50)]
        with app.app_context():
            assert validate_batch(ids) == ids

    @pytest.mark.parametrize('club_ids', [None, [], 'abc', {'id': 1}])
    def test_shape_rejected(self, app, club_ids):
        with app.app_context():
            with pytest.raises(ValidationError):
                validate_batch(club_ids)

    def test_malformed_ids_reject_batch(self, app, admin, pending_ids):
        with app.app_context():
            with pytest.raises(ValidationError) as excinfo:
                bulk_approve([pending_ids[0], 'club-7'], admin['id'])
            assert excinfo.value.details == {'invalid_ids': ['club-7']}
            assert db.session.get(ClubApplication, pending_ids[0]).status == ApplicationStatus.PENDING


class TestBulkResult:

    def test_to_dict(self):
        result = BulkResult(successful=['a'], failed=[{'id': 'b', 'error': 'Application not found'}])
        assert result.to_dict() == {
            'successful': ['a'],
            'failed': [{'id': 'b', 'error': 'Application not found'}],
            'outcome': 'partial',
            'total_requested': 2,
            'success_count': 1,
            'failure_count': 1,
        }
