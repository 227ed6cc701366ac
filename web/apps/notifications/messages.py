"""Render notification messages from Django templates.

Templates live in ``templates/notifications/`` and are named
``<kind>_<channel>.<ext>``: ``.html`` for email (the plain-text part is
derived from it), ``.txt`` for sms and whatsapp.
"""

from typing import Optional

from django.conf import settings
from django.template.loader import render_to_string
from django.utils.html import strip_tags

from .domain import Channel, Message, NotificationKind, OrderSnapshot, Recipient

STATUS_MESSAGES = {
    "processing": "Your order is being processed",
    "in-transit": "Your order is out for delivery",
    "delivered": "Your order has been delivered",
    "cancelled": "Your order has been cancelled",
}

STATUS_ICONS = {
    "processing": "⏳",
    "in-transit": "\U0001f69a",
    "delivered": "✅",
    "cancelled": "❌",
}

_TEMPLATE_NAMES = {
    NotificationKind.WELCOME: "welcome",
    NotificationKind.ORDER_CONFIRMATION: "order_confirmation",
    NotificationKind.ORDER_STATUS_UPDATE: "status_update",
    NotificationKind.TEST: "test",
}
ORDERLESS_KINDS = frozenset({NotificationKind.WELCOME, NotificationKind.TEST})


def _subject(kind: NotificationKind, store: str, order: Optional[OrderSnapshot]) -> str:
    if kind is NotificationKind.WELCOME:
        return f"Welcome to {store}!"
    if kind is NotificationKind.TEST:
        return f"Test notification from {store}"
    if kind is NotificationKind.ORDER_CONFIRMATION:
        return f"Order Confirmed - {order.order_number}"
    return f"Order Update - {order.order_number}"


def build_context(recipient: Recipient, order: Optional[OrderSnapshot] = None, status: Optional[str] = None) -> dict:
    frontend = getattr(settings, "FRONTEND_URL", "").rstrip("/")
    return {
        "user": recipient,
        "order": order,
        "status": status,
        "status_label": (status or "").upper(),
        "status_message": STATUS_MESSAGES.get(status or "", f"Your order status is now {status}"),
        "status_icon": STATUS_ICONS.get(status or "", ""),
        "store_name": getattr(settings, "STOREFRONT_NAME", "Storefront"),
        "currency": getattr(settings, "STOREFRONT_CURRENCY_SYMBOL", ""),
        "frontend_url": frontend,
        "tracking_url": f"{frontend}/orders/{order.id}" if order else frontend,
    }


def render_message(
    kind: NotificationKind,
    channel: Channel,
    recipient: Recipient,
    order: Optional[OrderSnapshot] = None,
    status: Optional[str] = None,
) -> Message:
    """Render the message for one kind on one channel.

    Raises:
        ValueError: An order kind was rendered without an order.
    """
    if kind not in ORDERLESS_KINDS and order is None:
        raise ValueError(f"{kind.value} needs an order")

    context = build_context(recipient, order, status)
    base = f"notifications/{_TEMPLATE_NAMES[kind]}_{channel.value}"
    subject = _subject(kind, context["store_name"], order)

    if channel is Channel.EMAIL:
        html = render_to_string(f"{base}.html", context)
        return Message(subject=subject, text=strip_tags(html).strip(), html=html)
    return Message(subject=subject, text=render_to_string(f"{base}.txt", context).strip())
