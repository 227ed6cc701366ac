"""Glue between the order core and the notification dispatcher.

``OrderNotifier`` implements the order core's notifier port. It registers
an ``on_commit`` callback, so nothing is sent for a rolled back order.
The callback snapshots the order and its customer in the request thread
and hands the dispatch to the notification executor; the request never
waits for it.
"""

import logging
from typing import Optional
from uuid import UUID

from django.db import transaction

from apps.accounts.models import StoreUser
from apps.orders.models import OrderModel
from apps.orders.repository import OrderRepository

from .domain import OrderLineSnapshot, OrderSnapshot, Recipient
from .executor import get_executor
from .providers import get_dispatcher

logger = logging.getLogger(__name__)


def recipient_from_user(user: StoreUser) -> Recipient:
    return Recipient(
        id=user.id,
        tenant_id=user.tenant_id,
        name=user.name,
        email=user.email,
        phone=user.phone or "",
    )


def order_snapshot(order: OrderModel) -> OrderSnapshot:
    return OrderSnapshot(
        id=order.id,
        order_number=order.order_number,
        status=order.status,
        total_amount=order.total_amount,
        delivery_charge=order.delivery_charge,
        delivery_address=order.delivery_address,
        created_at=order.created_at,
        items=tuple(
            OrderLineSnapshot(product_name=line.product_name, quantity=line.quantity, subtotal=line.subtotal)
            for line in order.lines.all()
        ),
    )


class OrderNotifier:
    """Schedules order confirmation and status update notifications.

    Args:
        repository: Used to reload the committed order.
        executor: Optional executor override; the configured one otherwise.
    """

    def __init__(self, repository: Optional[OrderRepository] = None, executor=None):
        self.repository = repository or OrderRepository()
        self.executor = executor

    def order_placed(self, tenant_id: int, order_id: UUID) -> None:
        transaction.on_commit(lambda: self._submit(tenant_id, order_id, None), robust=True)

    def status_changed(self, tenant_id: int, order_id: UUID, status) -> None:
        value = getattr(status, "value", status)
        transaction.on_commit(lambda: self._submit(tenant_id, order_id, value), robust=True)

    def _submit(self, tenant_id: int, order_id: UUID, status: Optional[str]) -> None:
        order = self.repository.load(tenant_id, order_id)
        if order is None:
            logger.warning("order vanished before notification", extra={"order_id": str(order_id)})
            return

        recipient = recipient_from_user(order.customer)
        snapshot = order_snapshot(order)
        dispatcher = get_dispatcher()
        executor = self.executor or get_executor()
        if status is None:
            executor.submit(dispatcher.send_order_confirmation, recipient, snapshot)
        else:
            executor.submit(dispatcher.send_status_update, recipient, snapshot, status)
