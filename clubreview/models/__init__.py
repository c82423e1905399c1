from .models import (
    AdminActionLog,
    AdminUser,
    ApplicationStatus,
    AuditAction,
    AuditEntry,
    ClubApplication,
    DeliveryStatus,
    JSONType,
    NotificationDelivery,
    NotificationKind,
    hash_api_token,
    utcnow,
)

__all__ = [
    "AdminActionLog",
    "AdminUser",
    "ApplicationStatus",
    "AuditAction",
    "AuditEntry",
    "ClubApplication",
    "DeliveryStatus",
    "JSONType",
    "NotificationDelivery",
    "NotificationKind",
    "hash_api_token",
    "utcnow",
]
