"""Factory for a ``NotificationDispatcher`` wired from settings.

Channels are built per call so settings overrides (tests) are honoured.
Circuit breakers are module-level in ``http_adapters`` and shared.
"""

from django.conf import settings

from .channels import EmailChannel
from .dispatcher import NotificationDispatcher
from .domain import Channel
from .http_adapters import sms_channel, whatsapp_channel
from .log_store import NotificationLogStore


def channel_flags() -> dict:
    return {
        Channel.EMAIL: bool(getattr(settings, "NOTIFY_EMAIL_ENABLED", False)),
        Channel.SMS: bool(getattr(settings, "NOTIFY_SMS_ENABLED", False)),
        Channel.WHATSAPP: bool(getattr(settings, "NOTIFY_WHATSAPP_ENABLED", False)),
    }


def get_dispatcher() -> NotificationDispatcher:
    return NotificationDispatcher(
        channels={
            Channel.EMAIL: EmailChannel(),
            Channel.SMS: sms_channel(),
            Channel.WHATSAPP: whatsapp_channel(),
        },
        log_store=NotificationLogStore(),
        enabled=channel_flags(),
    )
