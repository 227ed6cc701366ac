"""Service provider helpers wiring the order services with their ports.

Views call ``get_order_service()`` / ``get_status_service()`` and never
build adapters themselves, so tests can swap an implementation by
monkeypatching one factory.
"""

from django.conf import settings

from .domain import OrderService
from .lifecycle import OrderStatusService
from .repository import (
    DjangoCatalog,
    DjangoInventory,
    DjangoOrderStateStore,
    DjangoOrderWriter,
    DjangoTransaction,
)


def get_notifier():
    """Return the post-commit notifier for order events."""
    from apps.notifications.services import OrderNotifier

    return OrderNotifier()


def get_order_service() -> OrderService:
    """Return an ``OrderService`` backed by the Django ORM."""
    return OrderService(
        catalog=DjangoCatalog(),
        inventory=DjangoInventory(),
        writer=DjangoOrderWriter(),
        transaction=DjangoTransaction(),
        notifier=get_notifier(),
        delivery_charge=getattr(settings, "ORDERS_DELIVERY_CHARGE", 0),
    )


def get_status_service() -> OrderStatusService:
    return OrderStatusService(
        orders=DjangoOrderStateStore(),
        transaction=DjangoTransaction(),
        notifier=get_notifier(),
    )
