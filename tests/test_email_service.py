"""Tests for email_service.py: log backend and SMTP path."""

from __future__ import annotations

import smtplib
from unittest.mock import MagicMock, patch


class TestSend:
    def test_log_backend(self, app):
        from email_service import EmailService
        with app.app_context():
            assert EmailService.send("a@example.com", "Hi", "<p>Hi</p>") is True

    def test_empty_recipient(self, app):
        from email_service import EmailService
        with app.app_context():
            assert EmailService.send("", "Hi", "<p>Hi</p>") is False

    def test_smtp_backend_runs_inline_without_queue(self, app):
        from email_service import EmailService
        app.config.update(EMAIL_BACKEND="smtp", MAIL_SERVER="mail.example.com", MAIL_PORT=2525)
        with app.app_context(), patch.object(EmailService, "_do_send", return_value=True) as do_send:
            assert EmailService.send("a@example.com", "Hi", "<p>Hi</p>", "Hi") is True
        config = do_send.call_args.args[4]
        assert config["mail_server"] == "mail.example.com"
        assert config["mail_port"] == 2525


class TestDoSend:
    def test_smtp_success(self):
        from email_service import EmailService
        smtp = MagicMock()
        with patch("email_service.smtplib.SMTP") as smtp_cls:
            smtp_cls.return_value.__enter__.return_value = smtp
            ok = EmailService._do_send("a@example.com", "S", "<p>b</p>", "b", {
                "mail_server": "mail.example.com",
                "mail_port": 587,
                "mail_username": "u",
                "mail_password": "p",
            })
        assert ok is True
        smtp.starttls.assert_called_once()
        smtp.login.assert_called_once_with("u", "p")
        smtp.send_message.assert_called_once()

    def test_smtp_failure_returns_false(self):
        from email_service import EmailService
        with patch("email_service.smtplib.SMTP", side_effect=smtplib.SMTPConnectError(421, "busy")):
            assert EmailService._do_send("a@example.com", "S", "<p>b</p>", "", {}) is False
