"""
Optima AI - Email Service
=========================
SMTP delivery of password reset links.
"""

import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from starlette.concurrency import run_in_threadpool

from config import Settings, get_settings
from exceptions import EmailDeliveryError
from logging_config import get_logger
import metrics as app_metrics

logger = get_logger(__name__)

PASSWORD_RESET_SUBJECT = "Reset Your Password"

PASSWORD_RESET_TEXT = "Click the link to reset your password: {reset_link}"

PASSWORD_RESET_HTML = '<p>Click the link to reset your password: <a href="{reset_link}">{reset_link}</a></p>'


class EmailService:
    """
    Sends mail through the configured SMTP relay.

    ``smtp_secure`` selects implicit TLS (port 465); otherwise STARTTLS is
    attempted when the server offers it.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def build_reset_link(self, token: str) -> str:
        return f"{self.settings.base_url}/reset-password?token={token}"

    def _create_message(
        self,
        to_email: str,
        subject: str,
        text_body: str,
        html_body: Optional[str] = None,
    ) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.settings.smtp_from
        msg["To"] = to_email

        msg.attach(MIMEText(text_body, "plain"))
        if html_body:
            msg.attach(MIMEText(html_body, "html"))

        return msg

    def _send(self, message: MIMEMultipart) -> None:
        settings = self.settings
        context = ssl.create_default_context()

        if settings.smtp_secure:
            with smtplib.SMTP_SSL(settings.smtp_host, settings.smtp_port, context=context) as server:
                if settings.email_user:
                    server.login(settings.email_user, settings.email_pass or "")
                server.send_message(message)
        else:
            with smtplib.SMTP(settings.smtp_host, settings.smtp_port) as server:
                server.ehlo()
                if server.has_extn("starttls"):
                    server.starttls(context=context)
                    server.ehlo()
                if settings.email_user:
                    server.login(settings.email_user, settings.email_pass or "")
                server.send_message(message)

    async def send_reset_password_email(self, to_email: str, token: str) -> None:
        """
        Email a reset link carrying ``token``.

        Raises:
            EmailDeliveryError: SMTP connection, auth or send failure
        """
        reset_link = self.build_reset_link(token)

        if not self.settings.smtp_enabled:
            logger.warning("SMTP disabled, password reset email not sent")
            return

        message = self._create_message(
            to_email=to_email,
            subject=PASSWORD_RESET_SUBJECT,
            text_body=PASSWORD_RESET_TEXT.format(reset_link=reset_link),
            html_body=PASSWORD_RESET_HTML.format(reset_link=reset_link),
        )

        try:
            await run_in_threadpool(self._send, message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Failed to send password reset email", error=str(e))
            raise EmailDeliveryError(original_error=e) from e

        app_metrics.password_reset_emails_total.inc()
        logger.info("Password reset email sent")
