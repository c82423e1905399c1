"""Admin action guard.

Every admin request passes ``AdminActionGuard.check`` before touching the
review services. The checks run in a fixed order and stop at the first
failure:

1. an authenticated admin identity
2. a fresh session (idle time under ``SESSION_TIMEOUT_SECONDS``)
3. the per-admin rate limit for the action kind
4. a valid CSRF token (mutating actions only)

Allowed mutating actions are written to the security trail before the view
runs.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from functools import wraps
from typing import Any

from flask import current_app, g, request
from flask_login import current_user
from flask_wtf.csrf import validate_csrf
from wtforms import ValidationError as CSRFValidationError

from clubreview.errors import (
    AuthenticationError,
    AuthenticationRequired,
    AuthorizationError,
    RateLimitExceeded,
    SecurityTokenMissing,
    SessionExpired,
)
from clubreview.security.rate_limit import AdminRateLimiter
from clubreview.security.sessions import SessionStore, session_store_from_uri

CSRF_HEADER = 'X-CSRF-Token'


@dataclass
class GuardState:
    sessions: SessionStore
    limiter: AdminRateLimiter
    session_timeout: int


class AdminActionGuard:
    state_key = 'admin_guard'

    def __init__(self, app=None, clock=time.time):
        self.clock = clock
        if app is not None:
            self.init_app(app)

    def init_app(self, app) -> None:
        uri = app.config.get('SECURITY_STORAGE_URI', 'memory://')
        app.extensions[self.state_key] = GuardState(
            sessions=session_store_from_uri(uri),
            limiter=AdminRateLimiter(uri, app.config.get('ADMIN_RATE_LIMITS', {})),
            session_timeout=int(app.config.get('SESSION_TIMEOUT_SECONDS', 1800)),
        )

    @property
    def state(self) -> GuardState:
        return current_app.extensions[self.state_key]

    def _session_key(self, admin) -> str:
        return g.get('admin_session_key') or f"admin:{admin.id}"

    def check(
        self,
        action: str,
        csrf_token: str | None = None,
        require_csrf: bool = True,
        target_id: str | None = None,
        parameters: dict[str, Any] | None = None,
        target_type: str = 'club_application',
    ):
        """Run the checks for ``action`` and return the acting admin."""
        state = self.state

        if not current_user.is_authenticated:
            if g.get('admin_credential_presented'):
                raise AuthenticationError("Invalid or revoked credentials")
            raise AuthenticationRequired("Authentication required")
        admin = current_user._get_current_object()
        if not getattr(admin, 'is_admin', False) or not admin.is_active:
            raise AuthorizationError("Admin privileges are required for this action")

        session_key = self._session_key(admin)
        if state.sessions.is_invalidated(session_key):
            raise SessionExpired("Session has expired. Please sign in again.")
        now = self.clock()
        last_activity = state.sessions.last_activity(session_key)
        if last_activity is not None and now - last_activity > state.session_timeout:
            state.sessions.invalidate(session_key)
            current_app.logger.warning(f"Session for admin {admin.id} expired after inactivity")
            raise SessionExpired("Session has expired. Please sign in again.")
        state.sessions.touch(session_key, now)

        if not state.limiter.hit(admin.id, action):
            retry_after = state.limiter.retry_after(admin.id, action)
            raise RateLimitExceeded(
                f"Rate limit exceeded for {action}. Try again in {retry_after} seconds.",
                retry_after=retry_after,
            )

        if require_csrf:
            if not csrf_token:
                raise SecurityTokenMissing("Security token missing")
            try:
                validate_csrf(csrf_token)
            except CSRFValidationError:
                raise SecurityTokenMissing("Security token invalid or expired")

            from clubreview.services.audit import log_admin_action
            log_admin_action(admin, action, target_type, target_id, parameters)

        g.admin = admin
        return admin

    def admin_action(self, action: str, require_csrf: bool = True, target_type: str = 'club_application'):
        """Decorator running the guard before a view."""

        def decorator(f):
            @wraps(f)
            def decorated_function(*args, **kwargs):
                payload = request.get_json(silent=True) if request.method != 'GET' else None
                payload = payload if isinstance(payload, dict) else {}
                token = request.headers.get(CSRF_HEADER) or payload.get('csrf_token')
                target_id = kwargs.get('club_id') or payload.get('club_id')
                parameters = {k: v for k, v in payload.items() if k != 'csrf_token'}
                self.check(
                    action,
                    csrf_token=token,
                    require_csrf=require_csrf,
                    target_id=str(target_id)[:36] if target_id else None,
                    parameters=parameters,
                    target_type=target_type,
                )
                return f(*args, **kwargs)
            return decorated_function
        return decorator


__all__ = ['AdminActionGuard', 'GuardState', 'CSRF_HEADER']
