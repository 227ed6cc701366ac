"""Django ORM implementations of the order ports.

Stock reservation uses an atomic conditional decrement::

    UPDATE products SET stock = stock - :qty
     WHERE id = :id AND tenant_id = :tenant AND is_active AND stock >= :qty

The database takes the row lock for the UPDATE and re-checks the predicate
against the latest committed row, so two concurrent orders for the last unit
cannot both succeed. An UPDATE that matches no row means the stock is gone:
``InsufficientStock`` is raised and the caller's ``transaction.atomic`` block
rolls back every decrement made so far. Products are updated in ascending id
order so concurrent multi-line orders lock rows in the same order.

Status transitions lock the order row with ``SELECT ... FOR UPDATE``.
"""

import logging
import time
from typing import Callable, Dict, Optional, Sequence
from uuid import UUID

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import Count, F, Q, Sum
from django.utils import timezone

from apps.catalog.models import Product
from gateway.identity import Actor, Role

from .domain import (
    OrderLine,
    OrderStatus,
    PlacedOrder,
    PlaceOrderCommand,
    ProductSnapshot,
    ValidatedOrder,
)
from .errors import InsufficientStock, InternalError, NotFoundError
from .lifecycle import OPEN_STATUSES, OrderState
from .models import OrderLineModel, OrderModel

logger = logging.getLogger(__name__)


class DjangoTransaction:
    """``TransactionPort`` backed by ``django.db.transaction.atomic``."""

    def atomic(self):
        return transaction.atomic()


class DjangoCatalog:
    def get_products(self, tenant_id: int, product_ids: Sequence[int]) -> Dict[int, ProductSnapshot]:
        rows = (
            Product.objects.filter(tenant_id=tenant_id, is_active=True, pk__in=list(product_ids))
            .values("id", "name", "price", "stock")
        )
        return {r["id"]: ProductSnapshot(**r) for r in rows}


class DjangoInventory:
    """Reserves stock with conditional decrements; see the module docstring."""

    def reserve(self, tenant_id: int, lines: Sequence[OrderLine]) -> None:
        if transaction.get_autocommit():
            raise RuntimeError("Stock reservation must run inside a transaction")

        demand: Dict[int, int] = {}
        names: Dict[int, str] = {}
        for line in lines:
            demand[line.product_id] = demand.get(line.product_id, 0) + line.quantity
            names[line.product_id] = line.product_name

        now = timezone.now()
        for product_id in sorted(demand):
            qty = demand[product_id]
            updated = Product.objects.filter(
                pk=product_id, tenant_id=tenant_id, is_active=True, stock__gte=qty
            ).update(stock=F("stock") - qty, updated_at=now)
            if updated != 1:
                available = (
                    Product.objects.filter(pk=product_id, tenant_id=tenant_id)
                    .values_list("stock", flat=True)
                    .first()
                )
                logger.info(
                    "stock reservation lost",
                    extra={"tenant_id": tenant_id, "product_id": product_id, "requested": qty},
                )
                raise InsufficientStock(product_id, names[product_id], available or 0)


def timestamp_order_number(prefix: str, attempt: int) -> str:
    """``<prefix><epoch millis>``, suffixed with ``-<attempt>`` on retries.

    The format is for humans; uniqueness per tenant is enforced by the
    ``uniq_order_number_per_tenant`` constraint and collision retries in
    ``DjangoOrderWriter``.
    """
    number = f"{prefix}{int(time.time() * 1000)}"
    return number if attempt == 0 else f"{number}-{attempt}"


class DjangoOrderWriter:
    """Persists the order header and its lines.

    Args:
        prefix: Order number prefix. Defaults to ``ORDERS_NUMBER_PREFIX``.
        max_attempts: Order number allocation attempts before giving up.
        number_factory: ``(prefix, attempt) -> str`` generator.
    """

    def __init__(
        self,
        prefix: Optional[str] = None,
        max_attempts: Optional[int] = None,
        number_factory: Callable[[str, int], str] = timestamp_order_number,
    ):
        self.prefix = prefix if prefix is not None else getattr(settings, "ORDERS_NUMBER_PREFIX", "ORD")
        self.max_attempts = max_attempts or getattr(settings, "ORDERS_NUMBER_MAX_ATTEMPTS", 5)
        self.number_factory = number_factory

    def write(self, command: PlaceOrderCommand, validated: ValidatedOrder) -> PlacedOrder:
        order = self._create_header(command, validated)
        OrderLineModel.objects.bulk_create(
            [
                OrderLineModel(
                    order=order,
                    product_id=line.product_id,
                    product_name=line.product_name,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    subtotal=line.subtotal,
                )
                for line in validated.lines
            ]
        )
        return PlacedOrder(order_id=order.id, order_number=order.order_number, total_amount=order.total_amount)

    def _create_header(self, command: PlaceOrderCommand, validated: ValidatedOrder) -> OrderModel:
        for attempt in range(self.max_attempts):
            number = self.number_factory(self.prefix, attempt)
            try:
                # Savepoint: a duplicate number only rolls back this insert.
                with transaction.atomic():
                    return OrderModel.objects.create(
                        tenant_id=command.tenant_id,
                        customer_id=command.customer_id,
                        order_number=number,
                        status=OrderStatus.PENDING.value,
                        payment_status=command.payment_status.value,
                        payment_method=command.payment_method,
                        payment_id=command.payment_id or "",
                        gateway_order_id=command.gateway_order_id or "",
                        total_amount=validated.total_amount,
                        delivery_charge=validated.delivery_charge,
                        delivery_address=command.delivery_address.strip(),
                        notes=command.notes or "",
                    )
            except IntegrityError:
                taken = OrderModel.objects.filter(tenant_id=command.tenant_id, order_number=number).exists()
                if not taken:
                    raise
                logger.warning("order number collision", extra={"order_number": number, "attempt": attempt})
        raise InternalError("Could not allocate a unique order number")


class DjangoOrderStateStore:
    """``OrderStatePort`` over ``OrderModel`` with row locks."""

    FIELDS = ("id", "tenant_id", "customer_id", "status", "delivery_agent_id", "delivered_at")

    def lock(self, tenant_id: int, order_id: UUID) -> Optional[OrderState]:
        row = (
            OrderModel.objects.select_for_update()
            .filter(tenant_id=tenant_id, pk=order_id)
            .values(*self.FIELDS)
            .first()
        )
        if row is None:
            return None
        row["status"] = OrderStatus(row["status"])
        return OrderState(**row)

    def save(self, state: OrderState) -> None:
        OrderModel.objects.filter(pk=state.id, tenant_id=state.tenant_id).update(
            status=state.status.value,
            delivery_agent_id=state.delivery_agent_id,
            delivered_at=state.delivered_at,
            updated_at=timezone.now(),
        )


class OrderRepository:
    """Tenant- and role-scoped reads of orders."""

    def _base(self, tenant_id: int):
        return (
            OrderModel.objects.filter(tenant_id=tenant_id)
            .select_related("customer", "delivery_agent")
            .prefetch_related("lines")
        )

    def visible_to(self, actor: Actor):
        """Orders the actor may see.

        Customers see their own orders, delivery agents the orders bound to
        them plus open (pending/processing) ones, staff and admins all of
        the tenant's orders.
        """
        qs = self._base(actor.tenant_id)
        if actor.role is Role.CUSTOMER:
            qs = qs.filter(customer_id=actor.user_id)
        elif actor.role is Role.DELIVERY:
            qs = qs.filter(Q(delivery_agent_id=actor.user_id) | Q(status__in=[s.value for s in OPEN_STATUSES]))
        elif not actor.is_privileged:
            qs = qs.none()
        return qs

    def get(self, actor: Actor, order_id: UUID) -> OrderModel:
        order = self.visible_to(actor).filter(pk=order_id).first()
        if order is None:
            raise NotFoundError("Order not found")
        return order

    def list(self, actor: Actor, status: Optional[str] = None):
        qs = self.visible_to(actor)
        if status:
            qs = qs.filter(status=status)
        return qs.order_by("-created_at")

    def load(self, tenant_id: int, order_id: UUID) -> Optional[OrderModel]:
        return self._base(tenant_id).filter(pk=order_id).first()

    def find_by_number(self, tenant_id: int, order_number: str) -> Optional[OrderModel]:
        return self._base(tenant_id).filter(order_number=order_number).first()

    def stats(self, tenant_id: int) -> dict:
        by_status = {
            f"{s.value.replace('-', '_')}_orders": Count("id", filter=Q(status=s.value)) for s in OrderStatus
        }
        agg = OrderModel.objects.filter(tenant_id=tenant_id).aggregate(
            total_orders=Count("id"),
            total_revenue=Sum("total_amount", filter=Q(payment_status=OrderModel.PaymentStatus.PAID)),
            **by_status,
        )
        if agg["total_revenue"] is None:
            agg["total_revenue"] = 0
        return agg
