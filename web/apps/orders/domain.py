"""Domain models, ports and services for order placement.

This module contains the dataclasses used as DTOs for orders, protocol
definitions (ports) for the collaborators placement needs (catalog reads,
stock reservation, order persistence, transactions, post-commit
notification), the intake validator and the domain service that places an
order as a single atomic unit.

Nothing here touches the ORM. ``repository.py`` provides Django-backed
implementations of the ports and ``adapters.py`` in-memory ones.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import ContextManager, Dict, List, Optional, Protocol, Sequence
from uuid import UUID

from .errors import InsufficientStock, ProductUnavailable, ValidationError

logger = logging.getLogger(__name__)


# ---- Enums ----
class OrderStatus(str, Enum):
    """Order lifecycle statuses. See ``lifecycle.py`` for legal transitions."""

    PENDING = "pending"
    PROCESSING = "processing"
    IN_TRANSIT = "in-transit"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"


# ---- Entities / DTOs ----
@dataclass(frozen=True)
class OrderLineRequest:
    """A requested line item: which product and how many units."""

    product_id: int
    quantity: int


@dataclass(frozen=True)
class ProductSnapshot:
    """Catalog state of an active product as seen by the validator."""

    id: int
    name: str
    price: Decimal
    stock: int


@dataclass(frozen=True)
class OrderLine:
    """A validated line item.

    Name and unit price are snapshotted at order time; the stored line
    never follows later catalog edits.
    """

    product_id: int
    product_name: str
    quantity: int
    unit_price: Decimal
    subtotal: Decimal


@dataclass
class PlaceOrderCommand:
    """Everything needed to place an order.

    Attributes:
        tenant_id: Tenant of the requesting customer.
        customer_id: The ordering customer.
        lines: Requested line items, in request order.
        delivery_address: Non-empty delivery address.
        payment_method: Payment method identifier (e.g. ``cod``, ``online``).
        payment_id: Gateway payment id when the customer already paid.
        gateway_order_id: Payment gateway order reference, if any.
        notes: Free-form customer notes.
    """

    tenant_id: int
    customer_id: int
    lines: List[OrderLineRequest]
    delivery_address: str
    payment_method: str
    payment_id: Optional[str] = None
    gateway_order_id: Optional[str] = None
    notes: str = ""

    @property
    def payment_status(self) -> PaymentStatus:
        return PaymentStatus.PAID if self.payment_id else PaymentStatus.PENDING


@dataclass
class ValidatedOrder:
    """Output of the intake validator: normalized lines and money totals."""

    lines: List[OrderLine]
    items_total: Decimal
    delivery_charge: Decimal = Decimal("0")

    @property
    def total_amount(self) -> Decimal:
        return self.items_total + self.delivery_charge


@dataclass(frozen=True)
class PlacedOrder:
    """Caller-visible result of a successful placement."""

    order_id: UUID
    order_number: str
    total_amount: Decimal


# ---- Ports (DIP) ----
class CatalogPort(Protocol):
    """Read access to the tenant's catalog."""

    def get_products(self, tenant_id: int, product_ids: Sequence[int]) -> Dict[int, ProductSnapshot]:
        """Return the tenant's *active* products among ``product_ids``, keyed by id.

        Unknown, inactive or foreign-tenant ids are simply absent.
        """
        raise NotImplementedError()


class InventoryPort(Protocol):
    """Stock reservation.

    Implementations must make the check and the decrement a single atomic
    step against the store (locking read or conditional decrement); a plain
    read-then-write is not acceptable under concurrent orders.
    """

    def reserve(self, tenant_id: int, lines: Sequence[OrderLine]) -> None:
        """Decrement stock for every line.

        Raises:
            InsufficientStock: A line cannot be satisfied. The caller's
                transaction must be rolled back.
        """
        raise NotImplementedError()


class OrderWriterPort(Protocol):
    """Persists an order header and its lines."""

    def write(self, command: PlaceOrderCommand, validated: ValidatedOrder) -> PlacedOrder:
        raise NotImplementedError()


class TransactionPort(Protocol):
    """Commit-or-rollback scope.

    ``atomic()`` returns a context manager: a clean exit commits, an
    exception rolls back every mutation made inside it and propagates.
    """

    def atomic(self) -> ContextManager[None]:
        raise NotImplementedError()


class OrderNotifierPort(Protocol):
    """Post-commit, best-effort notification hooks.

    Implementations hand work off and return immediately; whatever they do
    must not affect the already committed order.
    """

    def order_placed(self, tenant_id: int, order_id: UUID) -> None:
        raise NotImplementedError()

    def status_changed(self, tenant_id: int, order_id: UUID, status: OrderStatus) -> None:
        raise NotImplementedError()


class NullNotifier:
    """Notifier that does nothing."""

    def order_placed(self, tenant_id, order_id):
        return None

    def status_changed(self, tenant_id, order_id, status):
        return None


# ---- Intake validation ----
def check_command(command: PlaceOrderCommand) -> None:
    """Reject malformed commands before any store access.

    Raises:
        ValidationError: With a message naming the first problem found.
    """
    if not command.lines:
        raise ValidationError("Order must contain at least one item", field="items")
    for line in command.lines:
        if line.quantity <= 0:
            raise ValidationError("Quantity must be greater than zero", field="items")
    if not (command.delivery_address or "").strip():
        raise ValidationError("Delivery address is required", field="delivery_address")
    if not (command.payment_method or "").strip():
        raise ValidationError("Payment method is required", field="payment_method")


class OrderIntakeValidator:
    """Checks requested lines against the catalog and prices them.

    Read-only: all mutation happens later in the reservation and writer
    steps, so a validation failure never touches persisted state.
    """

    def __init__(self, catalog: CatalogPort, delivery_charge: Decimal = Decimal("0")):
        self.catalog = catalog
        self.delivery_charge = delivery_charge

    def validate(self, command: PlaceOrderCommand) -> ValidatedOrder:
        """Validate every line and compute the order total.

        Quantities of repeated products are checked against stock in
        aggregate, so a cart that lists the same product twice cannot pass
        validation and then fail reservation.

        Raises:
            ProductUnavailable: A product is unknown, inactive or belongs
                to another tenant.
            InsufficientStock: Requested quantity exceeds current stock.
        """
        wanted_ids = list(OrderedDict.fromkeys(line.product_id for line in command.lines))
        products = self.catalog.get_products(command.tenant_id, wanted_ids)

        demand: Dict[int, int] = {}
        lines: List[OrderLine] = []
        items_total = Decimal("0")
        for req in command.lines:
            product = products.get(req.product_id)
            if product is None:
                raise ProductUnavailable(req.product_id)

            demand[product.id] = demand.get(product.id, 0) + req.quantity
            if product.stock < demand[product.id]:
                raise InsufficientStock(product.id, product.name, product.stock)

            subtotal = product.price * req.quantity
            items_total += subtotal
            lines.append(
                OrderLine(
                    product_id=product.id,
                    product_name=product.name,
                    quantity=req.quantity,
                    unit_price=product.price,
                    subtotal=subtotal,
                )
            )

        return ValidatedOrder(lines=lines, items_total=items_total, delivery_charge=self.delivery_charge)


# ---- Domain service ----
class OrderService:
    """Domain service responsible for placing orders.

    Validation, stock reservation and persistence run inside one
    transaction: any failure rolls back every mutation of the attempt and
    the caller gets a single error. The notifier is called only after the
    transaction has committed, and its failures are logged and dropped.
    """

    def __init__(
        self,
        catalog: CatalogPort,
        inventory: InventoryPort,
        writer: OrderWriterPort,
        transaction: TransactionPort,
        notifier: Optional[OrderNotifierPort] = None,
        delivery_charge: Decimal = Decimal("0"),
    ):
        self.validator = OrderIntakeValidator(catalog, delivery_charge)
        self.inventory = inventory
        self.writer = writer
        self.transaction = transaction
        self.notifier = notifier or NullNotifier()

    def place_order(self, command: PlaceOrderCommand) -> PlacedOrder:
        """Place an order: validate, reserve stock, persist, then notify.

        Args:
            command: The order request.

        Returns:
            PlacedOrder with the new order's id, number and total.

        Raises:
            ValidationError: Malformed command; nothing was attempted.
            ProductUnavailable: See ``OrderIntakeValidator.validate``.
            InsufficientStock: Raised by validation, or by the reservation
                when a concurrent order took the stock first.
        """
        check_command(command)

        with self.transaction.atomic():
            validated = self.validator.validate(command)
            self.inventory.reserve(command.tenant_id, validated.lines)
            placed = self.writer.write(command, validated)

        logger.info(
            "order placed",
            extra={
                "tenant_id": command.tenant_id,
                "order_number": placed.order_number,
                "total_amount": str(placed.total_amount),
                "lines": len(validated.lines),
            },
        )

        try:
            self.notifier.order_placed(command.tenant_id, placed.order_id)
        except Exception:
            logger.warning("order confirmation hand-off failed", exc_info=True,
                           extra={"order_number": placed.order_number})
        return placed
