"""Notification delivery for review decisions.

Every notification is recorded as a ``NotificationDelivery`` row before it is
sent, so failed sends can be listed and retried later. Callers always get a
``NotificationResult`` back; nothing in this module raises to the caller.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from flask import current_app, render_template
from sqlalchemy import func, select

from clubreview.extensions import db
from clubreview.models import (
    ClubApplication,
    DeliveryStatus,
    NotificationDelivery,
    NotificationKind,
    utcnow,
)
from clubreview.services.emailer import EmailTransport

TEMPLATES = {
    NotificationKind.APPROVAL: 'email/club_approved',
    NotificationKind.REJECTION: 'email/club_rejected',
}


@dataclass
class NotificationResult:
    success: bool
    delivery_id: str | None = None
    message_id: str | None = None
    queued: bool = False
    error: str | None = None


class ClubNotificationService:
    """Sends approval and rejection emails to club contacts."""

    def __init__(self, transport: EmailTransport | None = None):
        self.transport = transport or EmailTransport()

    def send_approval_notification(self, application: ClubApplication) -> NotificationResult:
        subject = f"Your club application for {application.name} has been approved"
        return self._dispatch(application, NotificationKind.APPROVAL, subject, {})

    def send_rejection_notification(self, application: ClubApplication, reason: str) -> NotificationResult:
        subject = f"Update on your club application for {application.name}"
        return self._dispatch(application, NotificationKind.REJECTION, subject, {'reason': reason})

    def _dispatch(
        self,
        application: ClubApplication,
        kind: NotificationKind,
        subject: str,
        context: dict[str, Any],
    ) -> NotificationResult:
        try:
            delivery = NotificationDelivery(
                application_id=application.id,
                kind=kind,
                to_email=application.contact_email,
                subject=subject,
                status=DeliveryStatus.PENDING,
                max_retries=current_app.config.get('NOTIFICATION_MAX_RETRIES', 3),
                context=context,
            )
            db.session.add(delivery)
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to record {kind.value} notification for {application.id}: {e}")
            return NotificationResult(success=False, error=str(e))

        if current_app.config.get('NOTIFICATIONS_ASYNC'):
            try:
                from clubreview.services.queue import queue_service
                queue_service.enqueue_delivery(delivery.id)
                return NotificationResult(success=True, delivery_id=delivery.id, queued=True)
            except Exception as e:
                current_app.logger.error(f"Failed to queue notification {delivery.id}, sending inline: {e}")

        return self.deliver(delivery)

    def _render(self, delivery: NotificationDelivery) -> tuple[str, str]:
        application = delivery.application
        config = current_app.config
        context = {
            'application': application,
            'club_name': application.name if application else '',
            'contact_name': (application.contact_name if application else None) or 'there',
            'reason': (delivery.context or {}).get('reason'),
            'login_url': config.get('LOGIN_URL'),
            'support_email': config.get('SUPPORT_EMAIL'),
            'platform_name': config.get('PLATFORM_NAME'),
        }
        template = TEMPLATES[delivery.kind]
        return (
            render_template(f"{template}.html", **context),
            render_template(f"{template}.txt", **context),
        )

    def deliver(self, delivery: NotificationDelivery) -> NotificationResult:
        """Render and send a recorded delivery, updating its status."""
        try:
            delivery_id, to_email = delivery.id, delivery.to_email
        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Could not load notification for delivery: {e}")
            return NotificationResult(success=False, error=str(e))

        try:
            html_body, text_body = self._render(delivery)
            message_id = self.transport.send(to_email, delivery.subject, html_body, text_body)
        except Exception as e:
            current_app.logger.error(f"Notification {delivery_id} to {to_email} failed: {e}")
            delivery.status = DeliveryStatus.FAILED
            delivery.error_message = str(e)[:2000]
            self._save_outcome(delivery_id)
            return NotificationResult(success=False, delivery_id=delivery_id, error=str(e))

        delivery.status = DeliveryStatus.SENT
        delivery.message_id = message_id
        delivery.sent_at = utcnow()
        delivery.error_message = None
        self._save_outcome(delivery_id)
        return NotificationResult(success=True, delivery_id=delivery_id, message_id=message_id)

    def _save_outcome(self, delivery_id: str) -> bool:
        try:
            db.session.commit()
            return True
        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to record outcome of notification {delivery_id}: {e}")
            return False

    def deliver_by_id(self, delivery_id: str) -> NotificationResult:
        delivery = db.session.get(NotificationDelivery, delivery_id)
        if delivery is None:
            return NotificationResult(success=False, delivery_id=delivery_id, error="Delivery not found")
        return self.deliver(delivery)

    def retry_failed_notifications(self) -> dict[str, Any]:
        """Resend recent failed deliveries that still have retries left."""
        config = current_app.config
        cutoff = utcnow() - timedelta(hours=config.get('NOTIFICATION_RETRY_WINDOW_HOURS', 24))
        stmt = (
            select(NotificationDelivery)
            .where(
                NotificationDelivery.status == DeliveryStatus.FAILED,
                NotificationDelivery.retry_count < NotificationDelivery.max_retries,
                NotificationDelivery.created_at >= cutoff,
            )
            .order_by(NotificationDelivery.created_at.asc())
            .limit(config.get('NOTIFICATION_RETRY_BATCH', 10))
        )
        retried = 0
        errors: list[str] = []
        try:
            candidate_ids = [delivery.id for delivery in db.session.scalars(stmt).all()]
        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Could not load failed notifications for retry: {e}")
            return {'retried_count': 0, 'errors': [str(e)]}

        for delivery_id in candidate_ids:
            try:
                delivery = db.session.get(NotificationDelivery, delivery_id)
                delivery.status = DeliveryStatus.RETRY
                delivery.retry_count += 1
                db.session.commit()
            except Exception as e:
                db.session.rollback()
                current_app.logger.error(f"Could not mark notification {delivery_id} for retry: {e}")
                errors.append(f"{delivery_id}: {e}")
                continue

            result = self.deliver(delivery)
            retried += 1
            if not result.success:
                errors.append(f"{delivery_id}: {result.error}")

        if retried:
            current_app.logger.info(f"Retried {retried} notifications, {len(errors)} still failing")
        return {'retried_count': retried, 'errors': errors}

    def get_stats(self, since: datetime | None = None) -> dict[str, int]:
        stmt = select(NotificationDelivery.status, func.count(NotificationDelivery.id)).group_by(
            NotificationDelivery.status
        )
        if since is not None:
            stmt = stmt.where(NotificationDelivery.created_at >= since)
        counts = {status: count for status, count in db.session.execute(stmt).all()}
        return {
            'total': sum(counts.values()),
            'sent': counts.get(DeliveryStatus.SENT, 0),
            'failed': counts.get(DeliveryStatus.FAILED, 0),
            'pending': counts.get(DeliveryStatus.PENDING, 0),
            'retrying': counts.get(DeliveryStatus.RETRY, 0),
        }


# Global notification service instance
notification_service = ClubNotificationService()


__all__ = ['ClubNotificationService', 'NotificationResult', 'notification_service']
