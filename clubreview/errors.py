"""Error taxonomy for the review service and its JSON error envelope.

Every failure a caller can act on is a ``ClubReviewError`` subclass carrying a
stable ``code``, the HTTP status it maps to and whether retrying the same call
can succeed. Request handlers never build error responses by hand; they raise
and ``register_error_handlers`` renders ``{"success": false, "error", "code"}``.
"""

from __future__ import annotations

from typing import Any

from flask import current_app, jsonify
from werkzeug.exceptions import HTTPException


class ClubReviewError(Exception):
    """Base class for all review-service errors."""

    code = "error"
    http_status = 400
    retryable = False

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_response(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "success": False,
            "error": self.message,
            "code": self.code,
            "retryable": self.retryable,
        }
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(ClubReviewError):
    code = "validation_error"
    http_status = 400


class AuthenticationRequired(ClubReviewError):
    code = "authentication_required"
    http_status = 401


class AuthenticationError(ClubReviewError):
    """Credential was presented but could not be resolved."""

    code = "authentication_error"
    http_status = 401


class SessionExpired(ClubReviewError):
    code = "session_expired"
    http_status = 401


class AuthorizationError(ClubReviewError):
    code = "authorization_error"
    http_status = 403


class SecurityTokenMissing(ClubReviewError):
    code = "security_token_missing"
    http_status = 403


class RateLimitExceeded(ClubReviewError):
    code = "rate_limit_exceeded"
    http_status = 429
    retryable = True

    def __init__(self, message: str, retry_after: int = 60, details: dict[str, Any] | None = None):
        super().__init__(message, details)
        self.retry_after = retry_after

    def to_response(self) -> dict[str, Any]:
        payload = super().to_response()
        payload["retry_after"] = self.retry_after
        return payload


class NotFoundError(ClubReviewError):
    code = "not_found"
    http_status = 404


class ConflictingReview(ClubReviewError):
    """The application was already decided; reported as a business failure."""

    code = "conflicting_review"
    http_status = 200


class TransientStoreError(ClubReviewError):
    code = "transient_store_error"
    http_status = 503
    retryable = True


class NetworkError(ClubReviewError):
    """Transport failure seen by API clients; never raised server-side."""

    code = "network_error"
    http_status = 0
    retryable = True


class NotificationDeliveryError(ClubReviewError):
    """Raised by email transports; absorbed by the notification service."""

    code = "notification_delivery_error"
    http_status = 502
    retryable = True


_HTTP_CODES = {
    400: "bad_request",
    401: "authentication_required",
    403: "authorization_error",
    404: "not_found",
    405: "method_not_allowed",
    413: "payload_too_large",
    429: "rate_limit_exceeded",
}


def register_error_handlers(app) -> None:
    """Render review errors and HTTP errors in the JSON envelope."""

    @app.errorhandler(ClubReviewError)
    def handle_review_error(error: ClubReviewError):
        if error.http_status >= 500:
            current_app.logger.error(f"{error.code}: {error.message}")
        elif error.http_status in (401, 403, 429):
            current_app.logger.warning(f"Admin action refused ({error.code}): {error.message}")
        response = jsonify(error.to_response())
        response.status_code = error.http_status
        if isinstance(error, RateLimitExceeded):
            response.headers["Retry-After"] = str(error.retry_after)
        return response

    @app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException):
        response = jsonify({
            "success": False,
            "error": error.description,
            "code": _HTTP_CODES.get(error.code, "http_error"),
        })
        response.status_code = error.code or 500
        return response

    @app.errorhandler(500)
    def internal_error(error):
        current_app.logger.error(f"Unhandled error: {error}")
        response = jsonify({"success": False, "error": "Internal server error", "code": "internal_error"})
        response.status_code = 500
        return response


__all__ = [
    "ClubReviewError",
    "ValidationError",
    "AuthenticationRequired",
    "AuthenticationError",
    "SessionExpired",
    "AuthorizationError",
    "SecurityTokenMissing",
    "RateLimitExceeded",
    "NotFoundError",
    "ConflictingReview",
    "TransientStoreError",
    "NetworkError",
    "NotificationDeliveryError",
    "register_error_handlers",
]
