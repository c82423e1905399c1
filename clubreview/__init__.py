"""Application factory for the club application review service."""

from __future__ import annotations

import os

from flask import Flask, g
from sqlalchemy.exc import SQLAlchemyError

from clubreview.blueprints.admin import admin_api_bp
from clubreview.blueprints.public import public_api_bp
from clubreview.config import Config
from clubreview.errors import register_error_handlers
from clubreview.extensions import (
    admin_guard,
    csrf,
    db,
    limiter,
    login_manager,
    migrate,
)
from clubreview.models import AdminUser, hash_api_token
from clubreview.security.config import (
    configure_security_headers,
    configure_secure_session,
    validate_input_length,
)
from clubreview.services.db import ensure_core_tables


def create_app(config_class=Config):
    """Create Flask application."""
    app = Flask(__name__, template_folder="templates")
    app.config.from_object(config_class)

    # Configure security before extensions read the session/CSRF settings
    configure_secure_session(app)

    # Initialize Flask extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    csrf.init_app(app)
    limiter.init_app(app)
    admin_guard.init_app(app)

    configure_security_headers(app)
    validate_input_length(app)

    @login_manager.user_loader
    def load_user(user_id: str):
        return db.session.get(AdminUser, user_id)

    @login_manager.request_loader
    def load_user_from_request(request):
        header = request.headers.get('Authorization', '')
        if not header.startswith('Bearer '):
            return None
        token = header[len('Bearer '):].strip()
        if not token:
            return None
        g.admin_credential_presented = True
        token_hash = hash_api_token(token)
        admin = db.session.query(AdminUser).filter_by(api_token_hash=token_hash).first()
        if admin is None or not admin.is_active:
            return None
        g.admin_session_key = token_hash
        return admin

    # Ensure models are registered for migrations
    import clubreview.models  # noqa: F401

    # Register blueprints; the admin guard validates CSRF tokens itself
    app.register_blueprint(admin_api_bp)
    app.register_blueprint(public_api_bp)
    csrf.exempt(admin_api_bp)
    csrf.exempt(public_api_bp)
    # Admin traffic is limited per admin by the guard, not per IP
    limiter.exempt(admin_api_bp)

    register_error_handlers(app)

    # Safety net for development environments without migrations
    if os.getenv('CLUBREVIEW_SKIP_BOOTSTRAP', '0') != '1':
        try:
            with app.app_context():
                ensure_core_tables()
        except SQLAlchemyError as e:
            app.logger.warning(f"Skipping table bootstrap: {e}")

    # Register CLI commands
    from clubreview.commands import register_commands
    register_commands(app)

    return app
