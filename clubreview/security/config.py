"""Response hardening and request limits for the review API."""

from flask import abort, current_app, request

MAX_PAYLOAD_BYTES = 1024 * 1024

# Applied to every response; the API only serves JSON
API_RESPONSE_HEADERS = {
    'X-Content-Type-Options': 'nosniff',
    'X-Frame-Options': 'DENY',
    'Referrer-Policy': 'no-referrer',
    'Content-Security-Policy': "default-src 'none'; frame-ancestors 'none'",
}


def configure_security_headers(app):
    """Stamp hardening headers on every response."""

    @app.after_request
    def harden_response(response):
        for name, value in API_RESPONSE_HEADERS.items():
            response.headers.setdefault(name, value)

        # Admin responses are never cached
        if request.path.startswith('/api/admin'):
            response.headers['Cache-Control'] = 'no-store'

        if request.is_secure:
            response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
        return response

    return app


def configure_secure_session(app):
    """Derive cookie and CSRF settings from the review configuration.

    The Flask session only holds the CSRF secret; admin identity travels
    as a bearer token, so the cookie lifetime follows the admin inactivity
    timeout.
    """
    secure = bool(app.config.get('SESSION_COOKIE_SECURE'))
    app.config.update(
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SAMESITE='Lax',
        PERMANENT_SESSION_LIFETIME=app.config.get('SESSION_TIMEOUT_SECONDS', 1800),
        WTF_CSRF_TIME_LIMIT=app.config.get('WTF_CSRF_TIME_LIMIT') or 3600,
        WTF_CSRF_SSL_STRICT=secure,
    )
    return app


def validate_input_length(app):
    """Reject request bodies larger than ``MAX_PAYLOAD_BYTES`` with 413."""
    limit = app.config.get('MAX_PAYLOAD_BYTES', MAX_PAYLOAD_BYTES)

    @app.before_request
    def reject_oversized_body():
        if request.content_length and request.content_length > limit:
            abort(413)

    return app


def public_rate_limit():
    """Per-IP limit for anonymous application submissions."""
    return current_app.config.get('PUBLIC_SUBMISSION_RATE_LIMIT', '10 per minute')


__all__ = [
    'MAX_PAYLOAD_BYTES',
    'configure_security_headers',
    'configure_secure_session',
    'validate_input_length',
    'public_rate_limit',
]
