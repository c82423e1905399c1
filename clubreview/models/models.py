from __future__ import annotations

import hashlib
import secrets
import uuid
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum as SqlEnum,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from clubreview.extensions import db

JSONType = JSON().with_variant(JSONB, 'postgresql')


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def hash_api_token(token: str) -> str:
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


class IdentifiedBase(db.Model):
    """Abstract base for append-only rows: id and creation time only."""

    __abstract__ = True

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
        index=True,
    )


class TimestampedBase(IdentifiedBase):
    """Abstract base providing id/created/updated columns."""

    __abstract__ = True

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False,
    )


class ApplicationStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class AuditAction(Enum):
    APPROVED = "approved"
    REJECTED = "rejected"
    BULK_APPROVE_START = "bulk_approve_start"
    BULK_APPROVE_COMPLETE = "bulk_approve_complete"


class NotificationKind(Enum):
    APPROVAL = "approval"
    REJECTION = "rejection"


class DeliveryStatus(Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"
    RETRY = "retry"


class AdminUser(TimestampedBase):
    __tablename__ = "admin_user"

    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    display_name: Mapped[str | None] = mapped_column(String(255))
    is_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    active: Mapped[bool] = mapped_column('is_active', Boolean, nullable=False, default=True)
    api_token_hash: Mapped[str | None] = mapped_column(String(64), unique=True, index=True)
    api_token_issued_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    def issue_api_token(self) -> str:
        """Rotate the bearer credential and return the plaintext once."""
        token = secrets.token_urlsafe(32)
        self.api_token_hash = hash_api_token(token)
        self.api_token_issued_at = utcnow()
        return token

    def revoke_api_token(self) -> None:
        self.api_token_hash = None
        self.api_token_issued_at = None

    @property
    def is_authenticated(self) -> bool:
        return True

    @property
    def is_active(self) -> bool:  # Flask-Login compatibility
        return bool(self.active)

    @property
    def is_anonymous(self) -> bool:
        return False

    def get_id(self) -> str:
        return self.id


class ClubApplication(TimestampedBase):
    __tablename__ = "club_application"
    __table_args__ = (
        Index("ix_club_application_status_created", "status", "created_at"),
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    contact_email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    contact_name: Mapped[str | None] = mapped_column(String(255))
    contact_phone: Mapped[str | None] = mapped_column(String(32))
    location: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    website_url: Mapped[str | None] = mapped_column(String(512))
    logo_url: Mapped[str | None] = mapped_column(String(512))
    sport_types: Mapped[list | None] = mapped_column(JSONType, default=list)

    verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    status: Mapped[ApplicationStatus] = mapped_column(
        SqlEnum(ApplicationStatus, name="application_status", native_enum=False),
        nullable=False,
        default=ApplicationStatus.PENDING,
        index=True,
    )
    # Rejection reason or approval note
    admin_notes: Mapped[str | None] = mapped_column(Text)
    reviewed_by_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("admin_user.id", ondelete="SET NULL"),
    )
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    reviewed_by: Mapped[AdminUser | None] = relationship()

    @property
    def is_pending(self) -> bool:
        return self.status == ApplicationStatus.PENDING


class AuditEntry(IdentifiedBase):
    """Append-only record of a review decision or bulk marker."""

    __tablename__ = "club_application_history"
    __table_args__ = (
        Index("ix_history_club_created", "club_id", "created_at"),
        Index("ux_history_club_sequence", "club_id", "sequence", unique=True),
    )

    # Null for bulk start/complete markers
    club_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("club_application.id"),
    )
    admin_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("admin_user.id", ondelete="SET NULL"),
        index=True,
    )
    action: Mapped[AuditAction] = mapped_column(
        SqlEnum(AuditAction, name="audit_action", native_enum=False),
        nullable=False,
    )
    # Position within the application's history, starting at 1; null for markers
    sequence: Mapped[int | None] = mapped_column(Integer)
    notes: Mapped[str | None] = mapped_column(Text)
    details: Mapped[dict | None] = mapped_column(JSONType, default=dict)

    admin: Mapped[AdminUser | None] = relationship()


class AdminActionLog(IdentifiedBase):
    """Security trail: who did what, to which record, from where."""

    __tablename__ = "admin_action_log"

    admin_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("admin_user.id", ondelete="SET NULL"),
        index=True,
    )
    action: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    target_type: Mapped[str] = mapped_column(String(128), nullable=False)
    target_id: Mapped[str | None] = mapped_column(String(36))
    meta: Mapped[dict | None] = mapped_column(JSONType, default=dict)
    ip_address: Mapped[str | None] = mapped_column(String(45))  # IPv6 max length
    user_agent: Mapped[str | None] = mapped_column(String(512))

    admin: Mapped[AdminUser | None] = relationship()


class NotificationDelivery(TimestampedBase):
    __tablename__ = "notification_delivery"
    __table_args__ = (
        Index("ix_delivery_status_created", "status", "created_at"),
    )

    application_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("club_application.id", ondelete="SET NULL"),
        index=True,
    )
    kind: Mapped[NotificationKind] = mapped_column(
        SqlEnum(NotificationKind, name="notification_kind", native_enum=False),
        nullable=False,
    )
    to_email: Mapped[str] = mapped_column(String(255), nullable=False)
    subject: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[DeliveryStatus] = mapped_column(
        SqlEnum(DeliveryStatus, name="delivery_status", native_enum=False),
        nullable=False,
        default=DeliveryStatus.PENDING,
    )
    error_message: Mapped[str | None] = mapped_column(Text)
    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_retries: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    message_id: Mapped[str | None] = mapped_column(String(255))
    context: Mapped[dict | None] = mapped_column(JSONType, default=dict)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    application: Mapped[ClubApplication | None] = relationship()
