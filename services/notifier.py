"""
Email notifications for the account flows.

The notifier is always injected; NullNotifier stands in when no mail server
is configured.
"""
from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage

logger = logging.getLogger(__name__)


def mask_email(email: str | None) -> str:
    if not email or "@" not in email:
        return "unknown"
    name, domain = email.split("@", 1)
    if len(name) <= 2:
        return f"{name[:1]}*@{domain}"
    return f"{name[:2]}***@{domain}"


class Notifier:
    """Interface of the notification collaborator."""

    def send_verification_email(self, to: str, token: str, first_name: str) -> None:
        raise NotImplementedError

    def send_password_reset_email(self, to: str, token: str, first_name: str) -> None:
        raise NotImplementedError

    def send_password_changed_email(self, to: str, first_name: str) -> None:
        raise NotImplementedError


class NullNotifier(Notifier):
    def send_verification_email(self, to, token, first_name):
        logger.debug("verification email skipped for %s", mask_email(to))

    def send_password_reset_email(self, to, token, first_name):
        logger.debug("password reset email skipped for %s", mask_email(to))

    def send_password_changed_email(self, to, first_name):
        logger.debug("password changed email skipped for %s", mask_email(to))


class SmtpNotifier(Notifier):
    def __init__(
        self,
        host: str,
        port: int = 587,
        username: str | None = None,
        password: str | None = None,
        use_tls: bool = True,
        sender: str = "noreply@stellaraid.com",
        frontend_url: str = "http://localhost:3000",
        app_name: str = "StellarAid",
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.sender = sender
        self.frontend_url = frontend_url.rstrip("/")
        self.app_name = app_name

    def _send(self, to: str, subject: str, body: str) -> None:
        msg = EmailMessage()
        msg["From"] = self.sender
        msg["To"] = to
        msg["Subject"] = f"[{self.app_name}] {subject}"
        msg.set_content(body)

        with smtplib.SMTP(self.host, self.port, timeout=10) as smtp:
            if self.use_tls:
                smtp.starttls()
            if self.username:
                smtp.login(self.username, self.password or "")
            smtp.send_message(msg)
        logger.info("email '%s' sent to %s", subject, mask_email(to))

    def send_verification_email(self, to, token, first_name):
        link = f"{self.frontend_url}/verify-email?token={token}"
        self._send(
            to,
            "Verify your email",
            f"Hi {first_name},\n\nConfirm your email address by opening:\n{link}\n\n"
            "The link expires in 24 hours.",
        )

    def send_password_reset_email(self, to, token, first_name):
        link = f"{self.frontend_url}/reset-password?token={token}"
        self._send(
            to,
            "Reset your password",
            f"Hi {first_name},\n\nReset your password here:\n{link}\n\n"
            "The link expires in 1 hour. Ignore this email if you did not ask for it.",
        )

    def send_password_changed_email(self, to, first_name):
        self._send(
            to,
            "Your password was changed",
            f"Hi {first_name},\n\nYour password was just changed and every active session was signed out.",
        )


def build_notifier(config) -> Notifier:
    """SmtpNotifier when MAIL_HOST is configured, NullNotifier otherwise."""
    host = config.get("MAIL_HOST")
    if not host:
        return NullNotifier()
    return SmtpNotifier(
        host=host,
        port=int(config.get("MAIL_PORT", 587)),
        username=config.get("MAIL_USERNAME"),
        password=config.get("MAIL_PASSWORD"),
        use_tls=bool(config.get("MAIL_USE_TLS", True)),
        sender=config.get("MAIL_FROM", "noreply@stellaraid.com"),
        frontend_url=config.get("FRONTEND_URL", "http://localhost:3000"),
        app_name=config.get("APP_NAME", "StellarAid"),
    )
