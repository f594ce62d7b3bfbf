"""Outbound email delivery over SMTP."""

from __future__ import annotations

import html
import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from internship_auth.config import settings
from internship_auth.models.user import User

logger = logging.getLogger(__name__)


def redact_email(email: str) -> str:
    """Redact an email address for logging."""
    if not email or "@" not in email:
        return "redacted"
    local, domain = email.split("@", 1)
    return f"{local[:2]}***@{domain}"


class EmailService:
    """Transactional email sender.

    send() reports failure through its return value instead of raising, so
    callers can tell "sent" from "not sent" and decide what to undo. With no
    SMTP_HOST configured (development) messages are logged and count as sent.
    """

    @property
    def is_configured(self) -> bool:
        return bool(settings.SMTP_HOST and self.from_address)

    @property
    def from_address(self) -> str:
        return settings.EMAIL_FROM or settings.SMTP_USER

    def send(self, to: str, subject: str, html_body: str, text_body: Optional[str] = None) -> bool:
        """
        Send an email via SMTP

        Returns:
            bool: True if the message was handed to the SMTP server
        """
        if not self.is_configured:
            logger.info(
                "Email dev mode, not sending: to=%s subject=%s", redact_email(to), subject
            )
            return True

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"{settings.EMAIL_FROM_NAME} <{self.from_address}>"
        msg["To"] = to
        if text_body:
            msg.attach(MIMEText(text_body, "plain"))
        msg.attach(MIMEText(html_body, "html"))

        try:
            context = ssl.create_default_context()
            if settings.SMTP_USE_TLS:
                with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=settings.SMTP_TIMEOUT_SECONDS) as server:
                    server.starttls(context=context)
                    if settings.SMTP_USER and settings.SMTP_PASSWORD:
                        server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
                    server.sendmail(self.from_address, [to], msg.as_string())
            else:
                with smtplib.SMTP_SSL(
                    settings.SMTP_HOST, settings.SMTP_PORT, context=context, timeout=settings.SMTP_TIMEOUT_SECONDS
                ) as server:
                    if settings.SMTP_USER and settings.SMTP_PASSWORD:
                        server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
                    server.sendmail(self.from_address, [to], msg.as_string())
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Email delivery failed: to=%s subject=%s error=%s", redact_email(to), subject, exc)
            return False

        logger.info("Email sent: to=%s subject=%s", redact_email(to), subject)
        return True

    def send_password_reset_email(self, user: User, reset_token: str) -> bool:
        reset_url = f"{settings.FRONTEND_URL.rstrip('/')}/reset-password?token={reset_token}"
        name = html.escape(user.name or "")
        minutes = settings.PASSWORD_RESET_EXPIRE_MINUTES
        html_body = f"""
            <h2>Password Reset Request</h2>
            <p>Hello {name},</p>
            <p>You requested to reset your password. Use the link below to choose a new one:</p>
            <p><a href="{reset_url}">Reset Password</a></p>
            <p>This link will expire in {minutes} minutes.</p>
            <p>If you didn't request this, please ignore this email.</p>
        """
        text_body = (
            f"Hello {user.name},\n\n"
            f"Reset your password here: {reset_url}\n"
            f"This link will expire in {minutes} minutes.\n"
            "If you didn't request this, please ignore this email.\n"
        )
        return self.send(user.email, "Password Reset Request", html_body, text_body)

    def send_welcome_email(self, user: User) -> bool:
        name = html.escape(user.name or "")
        html_body = f"""
            <h2>Welcome to {html.escape(settings.EMAIL_FROM_NAME)}</h2>
            <p>Hello {name},</p>
            <p>Your {html.escape(user.role)} account has been created. Sign in at
            <a href="{settings.FRONTEND_URL}">{settings.FRONTEND_URL}</a>.</p>
        """
        text_body = f"Hello {user.name},\n\nYour {user.role} account has been created.\n"
        return self.send(user.email, f"Welcome to {settings.EMAIL_FROM_NAME}", html_body, text_body)


email_service = EmailService()
