import os
from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str = 'false') -> bool:
    return os.getenv(name, default).lower() in ('1', 'true', 'yes')


class Config:
    # Provide a safe development fallback to avoid 500s when SECRET_KEY is missing.
    SECRET_KEY = os.getenv('SECRET_KEY') or 'dev-secret-key-change-me'
    DATABASE_URL = os.getenv('DATABASE_URL')
    SQLALCHEMY_DATABASE_URI = DATABASE_URL or 'sqlite:///clubreview.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SESSION_COOKIE_SECURE = _flag('SESSION_COOKIE_SECURE', 'true')
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'
    WTF_CSRF_TIME_LIMIT = int(os.getenv('WTF_CSRF_TIME_LIMIT', 3600))

    # Admin sessions expire after this much inactivity
    SESSION_TIMEOUT_SECONDS = int(os.getenv('SESSION_TIMEOUT_SECONDS', 1800))

    # Per-admin limits by action kind; unknown kinds fall back to "view"
    ADMIN_RATE_LIMITS = {
        'approve': os.getenv('RATE_LIMIT_APPROVE', '50/minute'),
        'reject': os.getenv('RATE_LIMIT_REJECT', '30/minute'),
        'bulk_approve': os.getenv('RATE_LIMIT_BULK_APPROVE', '5/minute'),
        'view': os.getenv('RATE_LIMIT_VIEW', '200/minute'),
    }
    # memory:// is per-process; use redis://host:6379/2 when running several instances
    SECURITY_STORAGE_URI = os.getenv('SECURITY_STORAGE_URI', 'memory://')
    RATELIMIT_STORAGE_URI = os.getenv('RATELIMIT_STORAGE_URI', 'memory://')
    PUBLIC_SUBMISSION_RATE_LIMIT = os.getenv('PUBLIC_SUBMISSION_RATE_LIMIT', '10 per minute')
    MAX_PAYLOAD_BYTES = 1024 * 1024

    # Review workflow
    BULK_APPROVE_MAX_ITEMS = int(os.getenv('BULK_APPROVE_MAX_ITEMS', 50))
    REJECTION_REASON_MAX_LENGTH = 1000
    ADMIN_NOTES_MAX_LENGTH = 1000
    APPLICATIONS_MAX_PAGE_SIZE = 100
    # Decided applications are final unless this is enabled
    REVIEW_ALLOW_REDECISION = _flag('REVIEW_ALLOW_REDECISION')

    # Email
    EMAIL_ENABLED = _flag('EMAIL_ENABLED')
    SMTP_HOST = os.getenv('SMTP_HOST')
    SMTP_PORT = int(os.getenv('SMTP_PORT', 587))
    SMTP_USERNAME = os.getenv('SMTP_USERNAME')
    SMTP_PASSWORD = os.getenv('SMTP_PASSWORD')
    SMTP_USE_TLS = _flag('SMTP_USE_TLS', 'true')
    FROM_EMAIL = os.getenv('FROM_EMAIL', 'noreply@example.com')
    FROM_NAME = os.getenv('FROM_NAME', 'Club Review')
    SUPPORT_EMAIL = os.getenv('SUPPORT_EMAIL', 'support@example.com')
    LOGIN_URL = os.getenv('LOGIN_URL', 'http://localhost:5000/login')
    PLATFORM_NAME = os.getenv('PLATFORM_NAME', 'Club Review')

    # Notifications
    NOTIFICATIONS_ASYNC = _flag('NOTIFICATIONS_ASYNC')
    NOTIFICATION_TIMEOUT_SECONDS = int(os.getenv('NOTIFICATION_TIMEOUT_SECONDS', 10))
    NOTIFICATION_MAX_RETRIES = 3
    NOTIFICATION_RETRY_WINDOW_HOURS = 24
    NOTIFICATION_RETRY_BATCH = 10
    REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')
