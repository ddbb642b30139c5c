"""
Email service: sends email via SMTP or logs to console.

Uses EMAIL_BACKEND config to choose transport:
  - "log" (default): writes the message to the log
  - "smtp": sends via SMTP using MAIL_* settings, off-thread when RQ is up
"""

from __future__ import annotations

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from flask import current_app

logger = logging.getLogger(__name__)


class EmailService:
    @staticmethod
    def send(to: str, subject: str, body_html: str, body_text: str = "") -> bool:
        """Send (or enqueue) one message. Returns False if it could not be sent."""
        if not to:
            logger.warning("EMAIL dropped (no recipient) subject=%s", subject)
            return False

        backend = current_app.config.get("EMAIL_BACKEND", "log")
        if backend == "log":
            logger.info("EMAIL [to=%s] subject=%s\n%s", to, subject, body_text or body_html)
            return True

        # Plain dict so the job can run without an app context
        config = {
            "mail_from": current_app.config.get("MAIL_FROM", "noreply@example.com"),
            "mail_server": current_app.config.get("MAIL_SERVER", "localhost"),
            "mail_port": current_app.config.get("MAIL_PORT", 587),
            "mail_username": current_app.config.get("MAIL_USERNAME", ""),
            "mail_password": current_app.config.get("MAIL_PASSWORD", ""),
        }

        from tasks import enqueue, is_async_available

        result = enqueue(EmailService._do_send, to, subject, body_html, body_text, config)
        return True if is_async_available() else bool(result)

    @staticmethod
    def _do_send(to: str, subject: str, body_html: str, body_text: str, config: dict) -> bool:
        """Actual SMTP send. No Flask context required."""
        try:
            msg = MIMEMultipart("alternative")
            msg["Subject"] = subject
            msg["From"] = config.get("mail_from", "noreply@example.com")
            msg["To"] = to
            if body_text:
                msg.attach(MIMEText(body_text, "plain"))
            msg.attach(MIMEText(body_html, "html"))

            username = config.get("mail_username", "")
            password = config.get("mail_password", "")
            with smtplib.SMTP(config.get("mail_server", "localhost"), config.get("mail_port", 587)) as smtp:
                smtp.starttls()
                if username and password:
                    smtp.login(username, password)
                smtp.send_message(msg)
            return True
        except (smtplib.SMTPException, OSError) as e:
            logger.error("SMTP send failed: %s", e)
            return False
