"""
Notification senders for Auth Backend.
"""

from typing import Annotated

from fastapi import Depends

from auth_backend.config import Settings, get_settings
from auth_backend.notifications.email import (
    LogEmailSender,
    NotificationError,
    NotificationSender,
    SmtpEmailSender,
)


def get_notification_sender(
    settings: Annotated[Settings, Depends(get_settings)],
) -> NotificationSender:
    """
    Dependency returning the sender for OTP codes.
    Falls back to logging the code when SMTP is not configured.
    """
    if settings.smtp_configured:
        return SmtpEmailSender.from_settings(settings)
    return LogEmailSender()


__all__ = [
    "LogEmailSender",
    "NotificationError",
    "NotificationSender",
    "SmtpEmailSender",
    "get_notification_sender",
]
