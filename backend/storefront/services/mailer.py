"""Outbound email for password-reset links (SMTP with STARTTLS)."""

import logging
import smtplib
from html import escape
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from urllib.parse import urlencode

from starlette.concurrency import run_in_threadpool

from storefront.config import settings

logger = logging.getLogger(__name__)


def build_reset_url(raw_token: str, email: str) -> str:
    query = urlencode({"token": raw_token, "email": email})
    return f"{settings.public_base_url.rstrip('/')}/reset-password?{query}"


class Mailer:
    def __init__(self):
        self.host = settings.mail_host
        self.port = settings.mail_port
        self.username = settings.mail_username
        self.password = settings.mail_password
        self.from_addr = settings.mail_from

    @property
    def enabled(self) -> bool:
        return bool(self.host)

    def _send(self, msg: MIMEMultipart) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=10) as server:
            server.starttls()
            if self.username:
                server.login(self.username, self.password)
            server.send_message(msg)

    async def send_password_reset(self, to_email: str, name: str, raw_token: str) -> bool:
        if not self.enabled:
            logger.warning("MAIL_HOST not configured; password reset email for %s not sent", to_email)
            return False

        reset_url = build_reset_url(raw_token, to_email)
        msg = MIMEMultipart("alternative")
        msg["Subject"] = "Reset your password"
        msg["From"] = self.from_addr
        msg["To"] = to_email
        msg.attach(MIMEText(
            f"Hi {name},\n\n"
            f"Use the link below to choose a new password. It expires in one hour "
            f"and can only be used once.\n\n{reset_url}\n\n"
            f"If you did not ask for this, you can ignore this email.\n",
            "plain",
        ))
        msg.attach(MIMEText(
            f"<p>Hi {escape(name)},</p>"
            f"<p>Use the link below to choose a new password. It expires in one hour "
            f"and can only be used once.</p>"
            f'<p><a href="{escape(reset_url)}">Reset password</a></p>'
            f"<p>If you did not ask for this, you can ignore this email.</p>",
            "html",
        ))

        try:
            await run_in_threadpool(self._send, msg)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Failed to send password reset email to %s: %s", to_email, exc)
            return False

        logger.info("Password reset email sent to %s", to_email)
        return True
