"""
Email delivery of one-time codes.
"""

import asyncio
import logging
import smtplib
import ssl
from email.mime.text import MIMEText
from typing import Protocol

from auth_backend.auth.otp import redact_email
from auth_backend.config import Settings

logger = logging.getLogger(__name__)

OTP_SUBJECT = "Your Login OTP Code"


class NotificationError(Exception):
    """Raised when a code could not be delivered."""


class NotificationSender(Protocol):
    async def send_otp(self, email: str, code: str, ttl_minutes: int) -> None: ...


def render_otp_body(code: str, ttl_minutes: int) -> str:
    return (
        f"Your OTP code is: {code}\n\n"
        f"This code will expire in {ttl_minutes} minutes.\n\n"
        "If you didn't request this code, please ignore this email."
    )


class SmtpEmailSender:
    """
    Sends codes over SMTP.

    The blocking smtplib call runs in a worker thread and is bounded by
    ``timeout`` seconds. Failures are raised, never retried here.
    """

    def __init__(
        self,
        *,
        host: str,
        port: int = 587,
        user: str = "",
        password: str = "",
        from_email: str = "",
        use_ssl: bool = False,
        timeout: float = 10.0,
    ) -> None:
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.from_email = from_email or user
        self.use_ssl = use_ssl
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "SmtpEmailSender":
        return cls(
            host=settings.smtp_host,
            port=settings.smtp_port,
            user=settings.smtp_user,
            password=settings.smtp_pass,
            from_email=settings.smtp_from,
            use_ssl=settings.smtp_secure,
            timeout=settings.smtp_timeout_seconds,
        )

    def _deliver(self, message: MIMEText, to_email: str) -> None:
        context = ssl.create_default_context()
        if self.use_ssl:
            with smtplib.SMTP_SSL(self.host, self.port, context=context, timeout=self.timeout) as server:
                if self.user and self.password:
                    server.login(self.user, self.password)
                server.sendmail(self.from_email, to_email, message.as_string())
        else:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                server.starttls(context=context)
                if self.user and self.password:
                    server.login(self.user, self.password)
                server.sendmail(self.from_email, to_email, message.as_string())

    async def send_otp(self, email: str, code: str, ttl_minutes: int) -> None:
        message = MIMEText(render_otp_body(code, ttl_minutes), "plain")
        message["Subject"] = OTP_SUBJECT
        message["From"] = self.from_email
        message["To"] = email

        try:
            await asyncio.wait_for(
                asyncio.to_thread(self._deliver, message, email),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as exc:
            logger.error(f"SMTP delivery to {redact_email(email)} timed out after {self.timeout}s")
            raise NotificationError("email delivery timed out") from exc
        except (smtplib.SMTPException, OSError) as exc:
            logger.error(f"SMTP delivery to {redact_email(email)} failed: {exc}")
            raise NotificationError(str(exc)) from exc

        logger.info(f"OTP email sent to {redact_email(email)}")


class LogEmailSender:
    """Development sender: writes the code to the log instead of sending it."""

    async def send_otp(self, email: str, code: str, ttl_minutes: int) -> None:
        logger.warning(
            f"SMTP not configured; OTP for {redact_email(email)} is {code} "
            f"(valid {ttl_minutes} minutes)"
        )
