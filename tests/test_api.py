from datetime import datetime, timezone
from uuid import uuid4

from clubreview.extensions import db
from clubreview.models import ApplicationStatus, ClubApplication
from clubreview.services.approval import approval_engine

BASE = '/api/admin/club-applications'


def _status(app, club_id):
    with app.app_context():
        return db.session.get(ClubApplication, club_id).status


class TestListEndpoint:

    def test_envelope(self, client, auth_headers, pending_ids):
        response = client.get(f'{BASE}?limit=2&sort_order=asc', headers=auth_headers)
        assert response.status_code == 200
        body = response.get_json()
        assert body['success'] is True
        assert body['count'] == 3
        assert body['page'] == 1
        assert body['limit'] == 2
        assert body['total_pages'] == 2
        assert [row['id'] for row in body['data']] == pending_ids[:2]
        assert body['data'][0]['status'] == 'pending'
        assert body['data'][0]['reviewed_by'] is None

    def test_filters(self, client, auth_headers, pending_ids):
        response = client.get(f'{BASE}?search=basketball&search_fields=name', headers=auth_headers)
        assert [row['id'] for row in response.get_json()['data']] == [pending_ids[1]]

    def test_invalid_filter(self, client, auth_headers):
        response = client.get(f'{BASE}?status=archived', headers=auth_headers)
        assert response.status_code == 400
        assert response.get_json()['code'] == 'validation_error'


class TestDetailEndpoints:

    def test_pending_detail(self, client, auth_headers, pending_ids):
        response = client.get(f'{BASE}/{pending_ids[0]}', headers=auth_headers)
        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['club']['name'] == 'Alpha Athletics'
        assert data['history'] == []
        assert data['admin_user'] is None

    def test_decided_detail(self, client, admin, csrf_headers, pending_ids):
        client.post(f'{BASE}/reject', json={'club_id': pending_ids[0], 'reason': 'Missing roster'},
                    headers=csrf_headers)
        data = client.get(f'{BASE}/{pending_ids[0]}', headers=csrf_headers).get_json()['data']
        assert data['club']['status'] == 'rejected'
        assert data['club']['admin_notes'] == 'Missing roster'
        assert data['admin_user'] == {'id': admin['id'], 'email': admin['email'], 'name': 'Reviewer'}
        assert len(data['history']) == 1
        assert data['history'][0]['action'] == 'rejected'
        assert data['history'][0]['admin_email'] == admin['email']

    def test_history(self, app, client, csrf_headers, pending_ids):
        app.config['REVIEW_ALLOW_REDECISION'] = True
        client.post(f'{BASE}/approve', json={'club_id': pending_ids[0]}, headers=csrf_headers)
        client.post(f'{BASE}/reject', json={'club_id': pending_ids[0], 'reason': 'Duplicate'},
                    headers=csrf_headers)
        history = client.get(f'{BASE}/{pending_ids[0]}/history', headers=csrf_headers).get_json()['data']
        assert [entry['action'] for entry in history] == ['rejected', 'approved']
        assert history[0]['details'] == {'reason': 'Duplicate'}

    def test_not_found(self, client, auth_headers):
        response = client.get(f'{BASE}/{uuid4()}', headers=auth_headers)
        assert response.status_code == 404
        assert response.get_json()['code'] == 'not_found'

    def test_malformed_id(self, client, auth_headers):
        response = client.get(f'{BASE}/club-1', headers=auth_headers)
        assert response.status_code == 400

    def test_stats(self, client, csrf_headers, pending_ids):
        client.post(f'{BASE}/approve', json={'club_id': pending_ids[0]}, headers=csrf_headers)
        body = client.get(f'{BASE}/stats', headers=csrf_headers).get_json()
        assert body['data'] == {'pending': 2, 'approved': 1, 'rejected': 0, 'total': 3}


class TestDecisionEndpoints:

    def test_approve(self, app, client, admin, csrf_headers, pending_ids):
        response = client.post(f'{BASE}/approve', json={'club_id': pending_ids[0], 'notes': 'Great fit'},
                               headers=csrf_headers)
        assert response.status_code == 200
        body = response.get_json()
        assert body['success'] is True
        assert body['message'] == 'Application approved successfully'
        assert body['data']['status'] == 'approved'
        assert body['data']['verified'] is True
        assert body['data']['reviewed_by'] == admin['id']
        assert body['data']['reviewed_at'] is not None

    def test_second_decision_is_business_failure(self, app, client, csrf_headers, pending_ids):
        client.post(f'{BASE}/approve', json={'club_id': pending_ids[0]}, headers=csrf_headers)
        response = client.post(f'{BASE}/reject', json={'club_id': pending_ids[0], 'reason': 'Late'},
                               headers=csrf_headers)
        assert response.status_code == 200
        body = response.get_json()
        assert body['success'] is False
        assert body['code'] == 'conflicting_review'
        assert body['details']['current_status'] == 'approved'
        assert _status(app, pending_ids[0]) == ApplicationStatus.APPROVED

    def test_reject_requires_reason(self, app, client, csrf_headers, pending_ids):
        response = client.post(f'{BASE}/reject', json={'club_id': pending_ids[0], 'reason': '  '},
                               headers=csrf_headers)
        assert response.status_code == 400
        assert response.get_json()['error'] == 'Rejection reason is required'
        assert _status(app, pending_ids[0]) == ApplicationStatus.PENDING

    def test_missing_club_id(self, client, csrf_headers):
        response = client.post(f'{BASE}/approve', json={}, headers=csrf_headers)
        assert response.status_code == 400

    def test_approve_unknown(self, client, csrf_headers):
        response = client.post(f'{BASE}/approve', json={'club_id': str(uuid4())}, headers=csrf_headers)
        assert response.status_code == 404

    def test_method_not_allowed(self, client, auth_headers):
        response = client.get(f'{BASE}/approve', headers=auth_headers)
        assert response.status_code in (400, 405)
        assert response.get_json()['success'] is False


class TestBulkEndpoint:

    def test_partial(self, client, csrf_headers, pending_ids):
        client.post(f'{BASE}/approve', json={'club_id': pending_ids[2]}, headers=csrf_headers)
        response = client.post(f'{BASE}/bulk-approve', json={'club_ids': pending_ids}, headers=csrf_headers)
        assert response.status_code == 200
        body = response.get_json()
        assert body['success'] is True
        assert body['data']['outcome'] == 'partial'
        assert body['data']['success_count'] == 2
        assert body['data']['failure_count'] == 1
        assert body['message'] == 'Approved 2 of 3 applications. 1 failed.'

    def test_failure(self, client, csrf_headers):
        response = client.post(f'{BASE}/bulk-approve', json={'club_ids': [str(uuid4())]}, headers=csrf_headers)
        body = response.get_json()
        assert body['success'] is False
        assert body['code'] == 'bulk_approve_failed'
        assert body['data']['outcome'] == 'failure'

    def test_too_many(self, app, client, csrf_headers, pending_ids):
        ids = pending_ids + [str(uuid4()) for _ in range(48)]
        response = client.post(f'{BASE}/bulk-approve', json={'club_ids': ids}, headers=csrf_headers)
        assert response.status_code == 400
        assert response.get_json()['error'] == 'Cannot approve more than 50 applications at once'
        assert _status(app, pending_ids[0]) == ApplicationStatus.PENDING


class TestReportingEndpoints:

    def test_statistics(self, app, client, csrf_headers, pending_ids):
        client.post(f'{BASE}/approve', json={'club_id': pending_ids[0]}, headers=csrf_headers)
        client.post(f'{BASE}/reject', json={'club_id': pending_ids[1], 'reason': 'Outside service area'},
                    headers=csrf_headers)
        data = client.get('/api/admin/reports/statistics', headers=csrf_headers).get_json()['data']
        assert data['total'] == 3
        assert data['approval_rate'] == 50.0
        assert data['by_location'][0] == {'location': 'Portland, OR', 'count': 2}
        assert data['top_rejection_reasons'] == [{'reason': 'Outside service area', 'count': 1}]
        assert data['average_processing_hours'] > 0

    def test_statistics_date_range(self, client, auth_headers, pending_ids):
        response = client.get('/api/admin/reports/statistics?date_from=2024-03-02&date_to=2024-03-02',
                              headers=auth_headers)
        assert response.get_json()['data']['total'] == 1

    def test_activity_log(self, client, admin, csrf_headers, pending_ids):
        client.post(f'{BASE}/approve', json={'club_id': pending_ids[0]}, headers=csrf_headers)
        client.post(f'{BASE}/bulk-approve', json={'club_ids': pending_ids[1:]}, headers=csrf_headers)

        body = client.get('/api/admin/audit/activity-log', headers=csrf_headers).get_json()
        assert body['count'] == 2
        assert [row['action'] for row in body['data']] == ['bulk_approve', 'approve']
        assert body['data'][0]['admin_email'] == admin['email']

        filtered = client.get('/api/admin/audit/activity-log?action=approve', headers=csrf_headers).get_json()
        assert filtered['count'] == 1

    def test_activity_log_target_type(self, client, csrf_headers, pending_ids):
        client.post(f'{BASE}/approve', json={'club_id': pending_ids[0]}, headers=csrf_headers)
        client.post('/api/admin/notifications/retry', headers=csrf_headers)

        body = client.get('/api/admin/audit/activity-log?target_type=notification_delivery',
                          headers=csrf_headers).get_json()
        assert body['count'] == 1
        assert body['data'][0]['action'] == 'retry_notifications'

    def test_statistics_for_one_admin(self, app, client, csrf_headers, second_admin, pending_ids):
        client.post(f'{BASE}/approve', json={'club_id': pending_ids[0]}, headers=csrf_headers)
        with app.app_context():
            approval_engine.reject(pending_ids[1], second_admin['id'], 'Duplicate')

        data = client.get(f"/api/admin/reports/statistics?admin_id={second_admin['id']}",
                          headers=csrf_headers).get_json()['data']
        assert data['total'] == 1
        assert data['rejected'] == 1
        assert data['approval_rate'] == 0.0

    def test_admin_performance(self, app, client, admin, csrf_headers, second_admin, pending_ids):
        client.post(f'{BASE}/approve', json={'club_id': pending_ids[0]}, headers=csrf_headers)
        client.post(f'{BASE}/bulk-approve', json={'club_ids': [pending_ids[1]]}, headers=csrf_headers)
        with app.app_context():
            approval_engine.reject(pending_ids[2], second_admin['id'], 'Duplicate')

        body = client.get('/api/admin/reports/admin-performance', headers=csrf_headers).get_json()
        first, second = body['data']
        assert first['admin_email'] == admin['email']
        assert first['approvals_count'] == 2
        assert first['bulk_operations_count'] == 1
        assert first['total_actions'] == 3
        assert first['average_processing_hours'] > 0
        assert second['admin_id'] == second_admin['id']
        assert second['rejections_count'] == 1

        only = client.get(f"/api/admin/reports/admin-performance?admin_id={second_admin['id']}",
                          headers=csrf_headers).get_json()['data']
        assert [row['admin_id'] for row in only] == [second_admin['id']]

    def test_audit_summary(self, client, admin, csrf_headers, pending_ids):
        client.post(f'{BASE}/approve', json={'club_id': pending_ids[0]}, headers=csrf_headers)
        client.post(f'{BASE}/approve', json={'club_id': pending_ids[1]}, headers=csrf_headers)
        client.post(f'{BASE}/reject', json={'club_id': pending_ids[2], 'reason': 'Spam'}, headers=csrf_headers)

        data = client.get('/api/admin/audit/summary', headers=csrf_headers).get_json()['data']
        assert data['total_actions'] == 3
        assert data['unique_admins'] == 1
        assert data['actions_by_type'] == [{'action': 'approve', 'count': 2}, {'action': 'reject', 'count': 1}]
        assert data['actions_by_admin'] == [{'admin_id': admin['id'], 'admin_email': admin['email'], 'count': 3}]
        assert [row['action'] for row in data['recent_activity']][0] == 'reject'

    def test_notification_endpoints(self, client, csrf_headers, pending_ids):
        client.post(f'{BASE}/approve', json={'club_id': pending_ids[0]}, headers=csrf_headers)
        stats = client.get('/api/admin/notifications/stats', headers=csrf_headers).get_json()['data']
        assert stats['total'] == 1
        assert stats['sent'] == 1

        retried = client.post('/api/admin/notifications/retry', headers=csrf_headers).get_json()
        assert retried['data'] == {'retried_count': 0, 'errors': []}


class TestPublicSubmission:

    URL = '/api/club-applications'

    def _payload(self, **overrides):
        payload = {
            'name': 'Harbor City FC',
            'contact_email': 'info@harborcityfc.org',
            'contact_name': 'Morgan Lee',
            'location': 'Seattle, WA',
            'description': 'Community soccer for adults',
            'website_url': 'https://harborcityfc.org',
            'sport_types': ['soccer'],
        }
        payload.update(overrides)
        return payload

    def test_submit(self, app, client):
        response = client.post(self.URL, json=self._payload())
        assert response.status_code == 201
        data = response.get_json()['data']
        assert data['status'] == 'pending'
        assert data['sport_types'] == ['soccer']
        with app.app_context():
            application = db.session.get(ClubApplication, data['id'])
            assert application.contact_email == 'info@harborcityfc.org'

    def test_submit_does_not_need_auth_or_csrf(self, client):
        assert client.post(self.URL, json=self._payload()).status_code == 201

    def test_duplicate_email(self, client):
        client.post(self.URL, json=self._payload())
        response = client.post(self.URL, json=self._payload(name='Harbor City FC Reserves'))
        assert response.status_code == 400

    def test_field_errors(self, client):
        response = client.post(self.URL, json=self._payload(name='H', contact_email='not-an-email',
                                                             sport_types='soccer'))
        assert response.status_code == 400
        fields = response.get_json()['details']['fields']
        assert set(fields) == {'name', 'contact_email', 'sport_types'}

    def test_non_string_values_are_field_errors(self, client):
        response = client.post(self.URL, json={
            'name': 123,
            'contact_email': 'a@b.org',
            'location': ['Seattle'],
            'description': {'text': 'Soccer'},
        })
        assert response.status_code == 400
        body = response.get_json()
        assert body['code'] == 'validation_error'
        fields = body['details']['fields']
        assert fields['name'] == ['Club Name must be a string']
        assert fields['location'] == ['Location must be a string']
        assert set(fields) == {'name', 'location', 'description'}

    def test_non_json_body(self, client):
        response = client.post(self.URL, data='name=Harbor', content_type='application/x-www-form-urlencoded')
        assert response.status_code == 400

    def test_submitted_application_is_reviewable(self, client, csrf_headers):
        club_id = client.post(self.URL, json=self._payload()).get_json()['data']['id']
        response = client.post(f'{BASE}/approve', json={'club_id': club_id}, headers=csrf_headers)
        assert response.get_json()['data']['status'] == 'approved'


def test_pending_rows_listed_with_explicit_created_at(app, client, auth_headers, make_application):
    with app.app_context():
        make_application(name='Old Club', created_at=datetime(2023, 1, 1, tzinfo=timezone.utc))
    body = client.get(f'{BASE}?date_to=2023-12-31', headers=auth_headers).get_json()
    assert [row['name'] for row in body['data']] == ['Old Club']
