"""In-process implementations of the orders domain ports.

These adapters keep catalog, orders and lines in plain dictionaries and
implement ``CatalogPort``, ``InventoryPort``, ``OrderWriterPort``,
``TransactionPort`` and ``OrderStatePort`` without a database. They are
used by the domain unit tests and for local experiments where a
deterministic, inspectable store is handy.
"""

import copy
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple

from .domain import (
    OrderLine,
    OrderStatus,
    PlacedOrder,
    PlaceOrderCommand,
    ProductSnapshot,
    ValidatedOrder,
)
from .errors import InsufficientStock
from .lifecycle import OrderState


@dataclass
class StoredProduct:
    id: int
    tenant_id: int
    name: str
    price: Decimal
    stock: int
    is_active: bool = True


@dataclass
class InMemoryStore:
    """Shared state for the in-memory adapters."""

    products: Dict[Tuple[int, int], StoredProduct] = field(default_factory=dict)
    orders: Dict[uuid.UUID, dict] = field(default_factory=dict)
    lines: List[dict] = field(default_factory=list)

    def add_product(self, tenant_id: int, product_id: int, name: str, price, stock: int, is_active=True):
        self.products[(tenant_id, product_id)] = StoredProduct(
            product_id, tenant_id, name, Decimal(str(price)), stock, is_active
        )

    def stock(self, tenant_id: int, product_id: int) -> int:
        return self.products[(tenant_id, product_id)].stock


class InMemoryTransaction:
    """Snapshot the store on entry and restore it if the block raises."""

    def __init__(self, store: InMemoryStore):
        self.store = store

    @contextmanager
    def atomic(self):
        snapshot = copy.deepcopy(self.store.__dict__)
        try:
            yield
        except BaseException:
            self.store.__dict__.clear()
            self.store.__dict__.update(snapshot)
            raise


class InMemoryCatalog:
    def __init__(self, store: InMemoryStore):
        self.store = store

    def get_products(self, tenant_id: int, product_ids: Sequence[int]) -> Dict[int, ProductSnapshot]:
        found = {}
        for pid in product_ids:
            p = self.store.products.get((tenant_id, pid))
            if p is not None and p.is_active:
                found[pid] = ProductSnapshot(id=p.id, name=p.name, price=p.price, stock=p.stock)
        return found


class InMemoryInventory:
    """Check-and-decrement per line; single-threaded, so each step is atomic."""

    def __init__(self, store: InMemoryStore):
        self.store = store

    def reserve(self, tenant_id: int, lines: Sequence[OrderLine]) -> None:
        for line in lines:
            p = self.store.products.get((tenant_id, line.product_id))
            if p is None or not p.is_active or p.stock < line.quantity:
                raise InsufficientStock(line.product_id, line.product_name, p.stock if p else 0)
            p.stock -= line.quantity


class InMemoryOrderWriter:
    def __init__(self, store: InMemoryStore, prefix: str = "ORD"):
        self.store = store
        self.prefix = prefix
        self._seq = 0

    def write(self, command: PlaceOrderCommand, validated: ValidatedOrder) -> PlacedOrder:
        self._seq += 1
        order_id = uuid.uuid4()
        number = f"{self.prefix}{self._seq:06d}"
        self.store.orders[order_id] = {
            "id": order_id,
            "tenant_id": command.tenant_id,
            "customer_id": command.customer_id,
            "order_number": number,
            "status": OrderStatus.PENDING,
            "payment_status": command.payment_status,
            "total_amount": validated.total_amount,
            "delivery_charge": validated.delivery_charge,
            "delivery_agent_id": None,
            "delivered_at": None,
        }
        for line in validated.lines:
            self.write_line(order_id, line)
        return PlacedOrder(order_id=order_id, order_number=number, total_amount=validated.total_amount)

    def write_line(self, order_id: uuid.UUID, line: OrderLine) -> None:
        self.store.lines.append({"order_id": order_id, **line.__dict__})


class InMemoryOrderStateStore:
    """``OrderStatePort`` over ``InMemoryStore.orders``; locking is a no-op."""

    def __init__(self, store: InMemoryStore):
        self.store = store

    def lock(self, tenant_id: int, order_id: uuid.UUID) -> Optional[OrderState]:
        row = self.store.orders.get(order_id)
        if row is None or row["tenant_id"] != tenant_id:
            return None
        return OrderState(
            id=row["id"],
            tenant_id=row["tenant_id"],
            customer_id=row["customer_id"],
            status=row["status"],
            delivery_agent_id=row["delivery_agent_id"],
            delivered_at=row["delivered_at"],
        )

    def save(self, state: OrderState) -> None:
        row = self.store.orders[state.id]
        row.update(
            status=state.status,
            delivery_agent_id=state.delivery_agent_id,
            delivered_at=state.delivered_at,
        )


class RecordingNotifier:
    """``OrderNotifierPort`` that records calls for assertions."""

    def __init__(self):
        self.placed: List[Tuple[int, uuid.UUID]] = []
        self.status_changes: List[Tuple[int, uuid.UUID, OrderStatus]] = []

    def order_placed(self, tenant_id, order_id):
        self.placed.append((tenant_id, order_id))

    def status_changed(self, tenant_id, order_id, status):
        self.status_changes.append((tenant_id, order_id, status))
