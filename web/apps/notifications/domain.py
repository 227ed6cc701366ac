"""Notification DTOs and the channel port.

The dispatcher works on plain snapshots (``Recipient``, ``OrderSnapshot``)
rather than ORM rows so it can run on a worker thread after the request
that triggered it has finished.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, Protocol, Tuple
from uuid import UUID


class Channel(str, Enum):
    EMAIL = "email"
    SMS = "sms"
    WHATSAPP = "whatsapp"


PHONE_CHANNELS = frozenset({Channel.SMS, Channel.WHATSAPP})


class NotificationKind(str, Enum):
    """Record types written to the notification log."""

    WELCOME = "WELCOME"
    ORDER_CONFIRMATION = "ORDER_CONFIRMATION"
    ORDER_STATUS_UPDATE = "ORDER_STATUS_UPDATE"
    TEST = "TEST"


@dataclass(frozen=True)
class Recipient:
    id: int
    tenant_id: int
    name: str
    email: str
    phone: str = ""


@dataclass(frozen=True)
class OrderLineSnapshot:
    product_name: str
    quantity: int
    subtotal: Decimal


@dataclass(frozen=True)
class OrderSnapshot:
    id: UUID
    order_number: str
    status: str
    total_amount: Decimal
    delivery_charge: Decimal
    delivery_address: str
    created_at: datetime
    items: Tuple[OrderLineSnapshot, ...] = ()


@dataclass(frozen=True)
class Message:
    """A rendered message. ``html`` is only used by the email channel."""

    subject: str
    text: str
    html: Optional[str] = None


class ChannelPort(Protocol):
    """A delivery channel.

    ``send`` returns a JSON-serializable outcome (``{"status": "sent", ...}``)
    or raises on failure; the dispatcher records either.
    """

    def send(self, recipient: Recipient, message: Message) -> dict:
        raise NotImplementedError()
