import os
from datetime import datetime, timedelta, timezone
from uuid import uuid4

os.environ.setdefault('CLUBREVIEW_SKIP_BOOTSTRAP', '1')

import pytest

from clubreview import create_app
from clubreview.config import Config
from clubreview.extensions import db
from clubreview.models import AdminUser, ApplicationStatus, ClubApplication


class ReviewTestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret-key'
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SESSION_COOKIE_SECURE = False
    SECURITY_STORAGE_URI = 'memory://'
    RATELIMIT_ENABLED = False
    EMAIL_ENABLED = False
    NOTIFICATIONS_ASYNC = False
    REVIEW_ALLOW_REDECISION = False
    ADMIN_RATE_LIMITS = {
        'approve': '5/minute',
        'reject': '5/minute',
        'bulk_approve': '2/minute',
        'view': '100/minute',
    }


@pytest.fixture
def app_config():
    return ReviewTestConfig


@pytest.fixture
def app(app_config):
    """Create and configure a test application instance."""
    app = create_app(app_config)

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """Create a test client for the app."""
    return app.test_client()


def _create_admin(email, is_admin=True):
    admin = AdminUser(email=email, display_name=email.split('@')[0].title(), is_admin=is_admin)
    token = admin.issue_api_token()
    db.session.add(admin)
    db.session.commit()
    return {'id': admin.id, 'email': admin.email, 'token': token}


@pytest.fixture
def admin(app):
    """Create an admin with a fresh API token."""
    with app.app_context():
        return _create_admin('reviewer@example.com')


@pytest.fixture
def second_admin(app):
    with app.app_context():
        return _create_admin('second.reviewer@example.com')


@pytest.fixture
def non_admin(app):
    """An account that can authenticate but has no review rights."""
    with app.app_context():
        return _create_admin('viewer@example.com', is_admin=False)


@pytest.fixture
def auth_headers(admin):
    return {'Authorization': f"Bearer {admin['token']}"}


@pytest.fixture
def csrf_headers(client, auth_headers):
    """Auth headers plus a CSRF token bound to the client's session cookie."""
    response = client.get('/api/admin/csrf-token', headers=auth_headers)
    assert response.status_code == 200
    token = response.get_json()['data']['csrf_token']
    return {**auth_headers, 'X-CSRF-Token': token}


@pytest.fixture
def make_application(app):
    """Factory creating applications; must be called inside an app context."""

    def _make(name='Riverside Rowing Club', location='Portland, OR', **overrides):
        overrides.setdefault('contact_email', f'{uuid4().hex[:10]}@clubs.org')
        overrides.setdefault('status', ApplicationStatus.PENDING)
        application = ClubApplication(name=name, location=location, **overrides)
        db.session.add(application)
        db.session.commit()
        return application

    return _make


@pytest.fixture
def pending_ids(app, make_application):
    """Three pending applications created a day apart, oldest first."""
    base = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
    specs = [
        ('Alpha Athletics', 'Portland, OR', 'Youth track and field club'),
        ('Bravo Basketball', 'Seattle, WA', 'Adult recreational league'),
        ('Charlie Cricket', 'Portland, OR', 'Weekend cricket for all ages'),
    ]
    with app.app_context():
        ids = []
        for offset, (name, location, description) in enumerate(specs):
            application = make_application(
                name=name,
                location=location,
                description=description,
                created_at=base + timedelta(days=offset),
            )
            ids.append(application.id)
        return ids
