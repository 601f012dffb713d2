import logging

from django.conf import settings
from django.core.mail import send_mail

from .retry import retry_with_backoff

logger = logging.getLogger(__name__)


def send_email(subject: str, message: str, recipients: list) -> int:
    """Send a plain-text email, retrying transient SMTP failures"""
    return retry_with_backoff(
        lambda: send_mail(
            subject,
            message,
            settings.DEFAULT_FROM_EMAIL,
            recipients,
            fail_silently=False,
        ),
        max_attempts=3,
    )


def send_reset_code_email(user, reset_code: str, expires_minutes: int) -> int:
    name = user.get_full_name() or user.username
    message = (
        f"Hello {name},\n\n"
        f"Your password reset code for {settings.UNIVERSITY_NAME} is: {reset_code}\n\n"
        f"This code expires in {expires_minutes} minutes. "
        "If you did not request a password reset, you can ignore this email.\n"
    )
    logger.info("Sending password reset code to user %s", user.pk)
    return send_email("Password reset code", message, [user.email])
