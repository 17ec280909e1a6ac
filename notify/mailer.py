"""
notify/mailer.py -- SMTP delivery of welcome and password-reset emails.

When SMTP credentials are not configured (local development), messages are
written to the log instead of sent, including the reset URL, so the reset
flow can be exercised without a mail server. Never configure production
without SMTP_USER / SMTP_PASSWORD: the dev fallback logs live reset tokens.

Methods raise on delivery failure. They are meant to run on
NotificationDispatcher, which logs the failure and keeps it away from the
request that triggered the email.

Layer rule: no imports from api/ or auth/.
"""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from urllib.parse import quote

logger = logging.getLogger("socialapp.notify")

APP_NAME = "Social App"

_RESET_BODY = """\
Hello,

You have requested to reset your password. Please click the link below to reset your password:

{reset_url}

This link will expire in 1 hour.

If you did not request this password reset, please ignore this email.

Best regards,
{app_name} Team
"""

_WELCOME_BODY = """\
Hello {username},

Welcome to {app_name}! We're excited to have you join our community of foreigners connecting through shared interests.

Explore our interest groups:
- Coworking: Connect with professionals and digital nomads
- Photography: Share and discuss your photography
- Food: Discover local cuisine and restaurants
- Languages: Practice and learn new languages

Get started by completing your profile and joining your first interest group!

Best regards,
{app_name} Team
"""


class EmailSender:
    """Builds and delivers transactional emails.

    Usage:
        sender = EmailSender(smtp_host="smtp.example.com", smtp_user="u", smtp_password="p")
        sender.send_password_reset("a@x.com", token)
    """

    def __init__(
        self,
        smtp_host: str,
        smtp_port: int = 587,
        smtp_user: str = "",
        smtp_password: str = "",
        frontend_url: str = "http://localhost:3000",
        timeout: float = 10.0,
    ) -> None:
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self._smtp_password = smtp_password
        self.frontend_url = frontend_url.rstrip("/")
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.smtp_user and self._smtp_password)

    def reset_url(self, token: str) -> str:
        return f"{self.frontend_url}/reset-password?token={quote(token)}"

    def send_password_reset(self, email: str, token: str) -> None:
        reset_url = self.reset_url(token)
        if not self.configured:
            logger.info("SMTP not configured; password reset for %s: %s", email, reset_url)
            return
        body = _RESET_BODY.format(reset_url=reset_url, app_name=APP_NAME)
        self._send(email, "Password Reset Request", body)

    def send_welcome(self, email: str, username: str) -> None:
        if not self.configured:
            logger.info("SMTP not configured; welcome email for %s (%s) not sent", email, username)
            return
        body = _WELCOME_BODY.format(username=username, app_name=APP_NAME)
        self._send(email, f"Welcome to {APP_NAME}!", body)

    def _send(self, to_address: str, subject: str, body: str) -> None:
        message = EmailMessage()
        message["From"] = self.smtp_user
        message["To"] = to_address
        message["Subject"] = subject
        message.set_content(body)

        with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.timeout) as server:
            server.starttls()
            server.login(self.smtp_user, self._smtp_password)
            server.send_message(message)
        logger.info("Sent '%s' email to %s", subject, to_address)
