"""
==============================================================================
Email Service Module
==============================================================================

Transactional email over SMTP.

Emails are a side effect of account flows, never a precondition: when SMTP
credentials are missing the service logs and skips, and a failed delivery
is logged without failing the request that triggered it.

Messages:
--------
- Verification:      "Verify Your Email - TRIO"
- Password reset:    "Reset Your Password - TRIO"
- Welcome:           "Welcome to TRIO!"
- Password changed:  "Your Password Has Been Changed - TRIO"

==============================================================================
"""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from email.utils import formataddr
from functools import lru_cache
from html import escape
from typing import Optional

from storefront.config import Settings, get_settings


logger = logging.getLogger(__name__)


class EmailService:
    """
    SMTP email sender with the storefront's message templates.

    Example:
        >>> email = EmailService(get_settings())
        >>> email.send_verification_email("jane@example.com", "Jane", token)
        True
    """

    SMTP_TIMEOUT = 10

    SUBJECT_VERIFICATION = "Verify Your Email - TRIO"
    SUBJECT_PASSWORD_RESET = "Reset Your Password - TRIO"
    SUBJECT_WELCOME = "Welcome to TRIO!"
    SUBJECT_PASSWORD_CHANGED = "Your Password Has Been Changed - TRIO"

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

        if not settings.smtp_configured:
            logger.warning("⚠️ Email service not configured - SMTP credentials missing")

    @property
    def configured(self) -> bool:
        return self._settings.smtp_configured

    # =========================================================================
    # TRANSPORT
    # =========================================================================

    def _send(self, to: str, subject: str, text: str, html: str) -> bool:
        """
        Deliver one message.

        Returns:
            True if the SMTP server accepted the message
        """
        if not self.configured:
            logger.warning(f"Email not sent to {to} - Email service not configured")
            return False

        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = formataddr(
            (self._settings.email_from_name, self._settings.email_from_address)
        )
        message["To"] = to
        message.set_content(text)
        message.add_alternative(html, subtype="html")

        try:
            with smtplib.SMTP(
                self._settings.smtp_host,
                self._settings.smtp_port,
                timeout=self.SMTP_TIMEOUT
            ) as smtp:
                if self._settings.smtp_use_tls:
                    smtp.starttls()
                smtp.login(self._settings.smtp_user, self._settings.smtp_password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {to}: {e}")
            return False

        logger.info(f"✅ Email sent to {to}: {subject}")
        return True

    @staticmethod
    def _wrap_html(title: str, body: str) -> str:
        return (
            "<div style=\"font-family:Arial,sans-serif;max-width:600px;margin:0 auto\">"
            f"<h2>{escape(title)}</h2>{body}"
            "<p style=\"color:#888;font-size:12px\">TRIO - Cafe, Flowers &amp; Books</p>"
            "</div>"
        )

    # =========================================================================
    # MESSAGES
    # =========================================================================

    def send_verification_email(self, to: str, name: str, token: str) -> bool:
        url = f"{self._settings.frontend_url}/verify-email?token={token}"
        text = (
            f"Hi {name},\n\n"
            f"Please verify your email address by opening this link:\n{url}\n\n"
            f"The link expires in {self._settings.email_verification_expire_hours} hours."
        )
        html = self._wrap_html(
            "Verify your email",
            f"<p>Hi {escape(name)},</p>"
            f"<p><a href=\"{escape(url)}\">Verify my email</a></p>"
            f"<p>The link expires in {self._settings.email_verification_expire_hours} hours.</p>"
        )
        return self._send(to, self.SUBJECT_VERIFICATION, text, html)

    def send_password_reset_email(self, to: str, name: str, token: str) -> bool:
        url = f"{self._settings.frontend_url}/reset-password?token={token}"
        minutes = self._settings.password_reset_expire_minutes
        text = (
            f"Hi {name},\n\n"
            f"Reset your password with this link:\n{url}\n\n"
            f"The link expires in {minutes} minutes. "
            "If you didn't request this, you can ignore this email."
        )
        html = self._wrap_html(
            "Reset your password",
            f"<p>Hi {escape(name)},</p>"
            f"<p><a href=\"{escape(url)}\">Choose a new password</a></p>"
            f"<p>The link expires in {minutes} minutes. "
            "If you didn't request this, you can ignore this email.</p>"
        )
        return self._send(to, self.SUBJECT_PASSWORD_RESET, text, html)

    def send_welcome_email(
        self,
        to: str,
        name: str,
        guest_orders_linked: Optional[int] = None
    ) -> bool:
        linked = ""
        if guest_orders_linked:
            linked = (
                f"We've linked {guest_orders_linked} previous order(s) to your account."
            )
        text = f"Hi {name},\n\nWelcome to TRIO! Your account is ready.\n{linked}"
        html = self._wrap_html(
            "Welcome to TRIO!",
            f"<p>Hi {escape(name)},</p><p>Your account is ready.</p>"
            + (f"<p>{escape(linked)}</p>" if linked else "")
        )
        return self._send(to, self.SUBJECT_WELCOME, text, html)

    def send_password_changed_email(self, to: str, name: str) -> bool:
        text = (
            f"Hi {name},\n\nYour password was just changed. "
            "If this wasn't you, reset your password immediately and contact support."
        )
        html = self._wrap_html(
            "Password changed",
            f"<p>Hi {escape(name)},</p>"
            "<p>Your password was just changed. If this wasn't you, reset your "
            "password immediately and contact support.</p>"
        )
        return self._send(to, self.SUBJECT_PASSWORD_CHANGED, text, html)


@lru_cache(maxsize=1)
def get_email_service() -> EmailService:
    """Get the global EmailService."""
    return EmailService(get_settings())
