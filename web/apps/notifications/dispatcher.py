"""Fan a notification out over every enabled channel.

Each channel is attempted independently: one channel's exception is
recorded as its outcome and never stops the others. Whatever happens, one
``NotificationRecord`` is written per dispatch.
"""

import logging
from typing import Callable, Dict, Mapping, Optional

from .domain import (
    PHONE_CHANNELS,
    Channel,
    ChannelPort,
    Message,
    NotificationKind,
    OrderSnapshot,
    Recipient,
)
from .log_store import NotificationLogStore
from .messages import render_message

logger = logging.getLogger(__name__)

Renderer = Callable[..., Message]

WELCOME_REFERENCE = "welcome"
TEST_REFERENCE = "test"


class NotificationDispatcher:
    """Delivers one logical notification across channels.

    Args:
        channels: Channel implementations keyed by ``Channel``. A channel
            with no implementation is treated as disabled.
        log_store: Where the aggregate outcome is recorded.
        enabled: Per-channel enable flags, read from settings by the caller.
        renderer: Builds the ``Message`` for a kind and channel.
    """

    def __init__(
        self,
        channels: Mapping[Channel, ChannelPort],
        log_store: NotificationLogStore,
        enabled: Mapping[Channel, bool],
        renderer: Renderer = render_message,
    ):
        self.channels = dict(channels)
        self.log_store = log_store
        self.enabled = dict(enabled)
        self.renderer = renderer

    def _attempt(self, channel: Channel, kind, recipient, order, status, only) -> Optional[dict]:
        if only is not None and channel is not only:
            return None
        if not self.enabled.get(channel) or channel not in self.channels:
            return None
        if channel in PHONE_CHANNELS and not recipient.phone:
            return None
        try:
            message = self.renderer(kind, channel, recipient, order=order, status=status)
            return self.channels[channel].send(recipient, message)
        except Exception as e:
            logger.warning(
                "notification channel failed",
                extra={"channel": channel.value, "kind": kind.value, "user_id": recipient.id, "error": str(e)},
            )
            return {"status": "failed", "error": str(e)}

    def dispatch(
        self,
        kind: NotificationKind,
        recipient: Recipient,
        order: Optional[OrderSnapshot] = None,
        status: Optional[str] = None,
        only: Optional[Channel] = None,
    ) -> Dict[str, Optional[dict]]:
        """Attempt every channel, or just ``only``, and record the aggregate.

        Returns:
            ``{"email": outcome|None, "sms": outcome|None, "whatsapp": outcome|None}``;
            ``None`` marks a skipped channel.
        """
        result: Dict[str, Optional[dict]] = {
            channel.value: self._attempt(channel, kind, recipient, order, status, only) for channel in Channel
        }

        blob = dict(result)
        if kind is NotificationKind.ORDER_STATUS_UPDATE:
            blob["status"] = status
        if order is not None:
            reference = order.order_number
        else:
            reference = TEST_REFERENCE if kind is NotificationKind.TEST else WELCOME_REFERENCE
        self.log_store.record(recipient.tenant_id, recipient.id, kind.value, reference, blob)

        logger.info(
            "notification dispatched",
            extra={
                "tenant_id": recipient.tenant_id,
                "kind": kind.value,
                "reference": reference,
                "outcomes": {k: (v or {}).get("status", "skipped") for k, v in result.items()},
            },
        )
        return result

    def send_welcome(self, recipient: Recipient):
        return self.dispatch(NotificationKind.WELCOME, recipient)

    def send_order_confirmation(self, recipient: Recipient, order: OrderSnapshot):
        return self.dispatch(NotificationKind.ORDER_CONFIRMATION, recipient, order=order)

    def send_status_update(self, recipient: Recipient, order: OrderSnapshot, status: str):
        return self.dispatch(NotificationKind.ORDER_STATUS_UPDATE, recipient, order=order, status=status)

    def send_test(self, recipient: Recipient, channel: Channel):
        return self.dispatch(NotificationKind.TEST, recipient, only=channel)
