import logging

from django.conf import settings
from django.core.mail import send_mail

logger = logging.getLogger(__name__)

AUTOMATED_FOOTER = "This is an automated notification from Caskr."


def send_email(recipient, subject, body):
    """Send a plain-text email; delivery failures are logged, never raised"""
    if not recipient:
        return False
    try:
        send_mail(subject, body, settings.DEFAULT_FROM_EMAIL, [recipient], fail_silently=False)
        return True
    except Exception as e:
        logger.warning(f"Failed to send email '{subject}' to {recipient}: {str(e)}")
        return False


def send_bulk_email(recipients, subject, body):
    sent = 0
    for recipient in dict.fromkeys(r for r in recipients if r):
        if send_email(recipient, subject, body):
            sent += 1
    return sent
