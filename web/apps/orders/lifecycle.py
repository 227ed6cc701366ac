"""Order status lifecycle.

    pending -> processing -> in-transit -> delivered
    pending | processing -> cancelled

Who may move an order where:

- customers: only their own order, only ``pending -> cancelled``;
- delivery agents: ``pending | processing -> in-transit`` (which binds them
  to the order as its delivery agent) and ``in-transit -> delivered`` on orders
  bound to them;
- staff and admins: any forward status, and ``cancelled`` while the order
  is still pending or processing.

Reaching ``delivered`` stamps ``delivered_at``. A successful transition is
followed by a post-commit status notification; notification problems never
undo the transition.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Callable, FrozenSet, Optional, Protocol
from uuid import UUID

from gateway.identity import Actor, Role

from .domain import NullNotifier, OrderNotifierPort, OrderStatus, TransactionPort
from .errors import Forbidden, InvalidStatus, NotFoundError

logger = logging.getLogger(__name__)

FORWARD_SEQUENCE = (
    OrderStatus.PENDING,
    OrderStatus.PROCESSING,
    OrderStatus.IN_TRANSIT,
    OrderStatus.DELIVERED,
)
CANCELLABLE_FROM = frozenset({OrderStatus.PENDING, OrderStatus.PROCESSING})
OPEN_STATUSES = CANCELLABLE_FROM

_DELIVERY_MOVES = {
    OrderStatus.PENDING: frozenset({OrderStatus.IN_TRANSIT}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.IN_TRANSIT}),
    OrderStatus.IN_TRANSIT: frozenset({OrderStatus.DELIVERED}),
}
_CUSTOMER_MOVES = {
    OrderStatus.PENDING: frozenset({OrderStatus.CANCELLED}),
}


def parse_status(value) -> OrderStatus:
    """Return the ``OrderStatus`` named by ``value``.

    Raises:
        InvalidStatus: ``value`` is not a known status.
    """
    try:
        return OrderStatus(value)
    except ValueError:
        raise InvalidStatus(f"Invalid status: {value!r}") from None


def allowed_targets(role: Role, current: OrderStatus) -> FrozenSet[OrderStatus]:
    """Statuses ``role`` may move an order to from ``current``."""
    if role in (Role.STAFF, Role.ADMIN):
        if current not in FORWARD_SEQUENCE:
            return frozenset()
        targets = set(FORWARD_SEQUENCE[FORWARD_SEQUENCE.index(current) + 1:])
        if current in CANCELLABLE_FROM:
            targets.add(OrderStatus.CANCELLED)
        return frozenset(targets)
    if role is Role.DELIVERY:
        return _DELIVERY_MOVES.get(current, frozenset())
    if role is Role.CUSTOMER:
        return _CUSTOMER_MOVES.get(current, frozenset())
    return frozenset()


@dataclass(frozen=True)
class OrderState:
    """The fields of an order the state machine reads and writes."""

    id: UUID
    tenant_id: int
    customer_id: int
    status: OrderStatus
    delivery_agent_id: Optional[int] = None
    delivered_at: Optional[datetime] = None


class OrderStatePort(Protocol):
    def lock(self, tenant_id: int, order_id: UUID) -> Optional[OrderState]:
        """Load the tenant's order and hold a row lock until the transaction ends."""
        raise NotImplementedError()

    def save(self, state: OrderState) -> None:
        """Write status, delivery agent and delivered timestamp."""
        raise NotImplementedError()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderStatusService:
    """Applies role-gated status transitions.

    Args:
        orders: Row-locking access to order state.
        transaction: Commit-or-rollback scope for the update.
        notifier: Post-commit hook that schedules the status notification.
        clock: Source of the delivered timestamp.
    """

    def __init__(
        self,
        orders: OrderStatePort,
        transaction: TransactionPort,
        notifier: Optional[OrderNotifierPort] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.orders = orders
        self.transaction = transaction
        self.notifier = notifier or NullNotifier()
        self.clock = clock

    def transition(self, actor: Actor, order_id: UUID, requested) -> OrderState:
        """Move an order to ``requested`` on behalf of ``actor``.

        Returns:
            The updated order state.

        Raises:
            InvalidStatus: Unknown status, or not reachable from the current
                status for a staff or delivery actor.
            Forbidden: A customer asking for anything but cancelling their
                own pending order.
            NotFoundError: The order does not exist in the actor's tenant,
                or a delivery agent is neither bound to it nor is it open.
        """
        target = parse_status(requested)
        if actor.role is Role.CUSTOMER and target is not OrderStatus.CANCELLED:
            raise Forbidden("Customers can only cancel orders")

        with self.transaction.atomic():
            state = self.orders.lock(actor.tenant_id, order_id)
            if state is None:
                raise NotFoundError("Order not found")
            self._check_scope(actor, state)

            if target not in allowed_targets(actor.role, state.status):
                if actor.role is Role.CUSTOMER:
                    raise Forbidden("Customers can only cancel pending orders")
                raise InvalidStatus(
                    f"Cannot move order from {state.status.value} to {target.value}",
                    current_status=state.status.value,
                )

            updated = replace(state, status=target)
            if actor.role is Role.DELIVERY and target is OrderStatus.IN_TRANSIT:
                updated = replace(updated, delivery_agent_id=actor.user_id)
            if target is OrderStatus.DELIVERED:
                updated = replace(updated, delivered_at=self.clock())
            self.orders.save(updated)

        logger.info(
            "order status changed",
            extra={
                "tenant_id": actor.tenant_id,
                "order_id": str(order_id),
                "from_status": state.status.value,
                "to_status": target.value,
                "actor_role": actor.role.value,
            },
        )

        try:
            self.notifier.status_changed(actor.tenant_id, order_id, target)
        except Exception:
            logger.warning("status notification hand-off failed", exc_info=True,
                           extra={"order_id": str(order_id)})
        return updated

    @staticmethod
    def _check_scope(actor: Actor, state: OrderState) -> None:
        if actor.role is Role.CUSTOMER and state.customer_id != actor.user_id:
            raise Forbidden("Order belongs to another customer")
        if actor.role is Role.DELIVERY:
            assigned = state.delivery_agent_id == actor.user_id
            if not assigned and state.status not in OPEN_STATUSES:
                raise NotFoundError("Order not found")
