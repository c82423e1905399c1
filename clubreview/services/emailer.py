"""SMTP transport for review notifications."""

from __future__ import annotations

import smtplib
import uuid
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, make_msgid

from flask import current_app

from clubreview.errors import NotificationDeliveryError


class EmailTransport:
    """Send one rendered message and return its Message-ID.

    When ``EMAIL_ENABLED`` is off the message is written to the application
    log instead of being sent, so development setups need no SMTP server.
    """

    def send(self, to_email: str, subject: str, html_body: str, text_body: str) -> str:
        config = current_app.config

        if not config.get('EMAIL_ENABLED'):
            # Development mode - log email instead of sending
            current_app.logger.info(f"""
        ========== EMAIL (Development Mode) ==========
        To: {to_email}
        Subject: {subject}

        {text_body}
        ==============================================
        """)
            return f"<dev-{uuid.uuid4()}@clubreview.local>"

        smtp_host = config.get('SMTP_HOST')
        smtp_user = config.get('SMTP_USERNAME')
        smtp_password = config.get('SMTP_PASSWORD')
        if not all([smtp_host, smtp_user, smtp_password]):
            raise NotificationDeliveryError("SMTP configuration incomplete. Check environment variables.")

        from_email = config.get('FROM_EMAIL') or smtp_user
        message_id = make_msgid(domain=from_email.split('@')[-1])

        msg = MIMEMultipart('alternative')
        msg['Subject'] = subject
        msg['From'] = formataddr((config.get('FROM_NAME', ''), from_email))
        msg['To'] = to_email
        msg['Message-ID'] = message_id
        msg.attach(MIMEText(text_body, 'plain'))
        msg.attach(MIMEText(html_body, 'html'))

        try:
            with smtplib.SMTP(
                smtp_host,
                config.get('SMTP_PORT', 587),
                timeout=config.get('NOTIFICATION_TIMEOUT_SECONDS', 10),
            ) as server:
                if config.get('SMTP_USE_TLS', True):
                    server.starttls()
                server.login(smtp_user, smtp_password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise NotificationDeliveryError(f"SMTP delivery to {to_email} failed: {e}")

        current_app.logger.info(f"Email sent successfully to {to_email}")
        return message_id


__all__ = ['EmailTransport']
