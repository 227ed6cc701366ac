"""Email channel built on ``django.core.mail``."""

import logging
from typing import Optional

from django.conf import settings
from django.core.mail import EmailMultiAlternatives

from .domain import Message, Recipient

logger = logging.getLogger(__name__)


class EmailChannel:
    """Sends the rendered message as a multipart (text + html) email.

    Args:
        from_email: Sender address. Defaults to ``DEFAULT_FROM_EMAIL``.
        connection: Optional mail backend connection; the configured
            ``EMAIL_BACKEND`` is used when omitted.
    """

    def __init__(self, from_email: Optional[str] = None, connection=None):
        self.from_email = from_email or settings.DEFAULT_FROM_EMAIL
        self.connection = connection

    def send(self, recipient: Recipient, message: Message) -> dict:
        if not recipient.email:
            raise ValueError("Recipient has no email address")

        mail = EmailMultiAlternatives(
            subject=message.subject,
            body=message.text,
            from_email=self.from_email,
            to=[recipient.email],
            connection=self.connection,
        )
        if message.html:
            mail.attach_alternative(message.html, "text/html")
        sent = mail.send()
        logger.info("email sent", extra={"user_id": recipient.id, "subject": message.subject})
        return {"status": "sent", "recipients": sent}
