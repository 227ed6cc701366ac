import uuid

from django.db import models

from apps.accounts.models import StoreUser
from apps.catalog.models import Product, Tenant


class OrderModel(models.Model):
    # UUID PK exposed by the API
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    tenant = models.ForeignKey(Tenant, on_delete=models.PROTECT, related_name="orders")
    order_number = models.CharField(max_length=40)
    customer = models.ForeignKey(StoreUser, on_delete=models.PROTECT, related_name="orders")
    delivery_agent = models.ForeignKey(
        StoreUser, on_delete=models.SET_NULL, null=True, blank=True, related_name="deliveries"
    )

    class Status(models.TextChoices):
        PENDING = "pending"
        PROCESSING = "processing"
        IN_TRANSIT = "in-transit"
        DELIVERED = "delivered"
        CANCELLED = "cancelled"

    class PaymentStatus(models.TextChoices):
        PENDING = "pending"
        PAID = "paid"

    status = models.CharField(max_length=16, choices=Status.choices, default=Status.PENDING)
    payment_status = models.CharField(max_length=16, choices=PaymentStatus.choices, default=PaymentStatus.PENDING)
    payment_method = models.CharField(max_length=32)
    payment_id = models.CharField(max_length=128, blank=True, default="")
    gateway_order_id = models.CharField(max_length=128, blank=True, default="")

    # total_amount = sum(line.subtotal) + delivery_charge, fixed at creation
    total_amount = models.DecimalField(max_digits=12, decimal_places=2)
    delivery_charge = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    delivery_address = models.TextField()
    notes = models.TextField(blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    delivered_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(fields=["tenant", "order_number"], name="uniq_order_number_per_tenant"),
        ]
        indexes = [models.Index(fields=["tenant", "status"], name="orders_tenant_status_idx")]


class OrderLineModel(models.Model):
    """Immutable line of an order; name and price are snapshots."""

    order = models.ForeignKey(OrderModel, on_delete=models.CASCADE, related_name="lines")
    product = models.ForeignKey(Product, on_delete=models.SET_NULL, null=True, related_name="+")
    product_name = models.CharField(max_length=200)
    quantity = models.PositiveIntegerField()
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    subtotal = models.DecimalField(max_digits=12, decimal_places=2)

    class Meta:
        db_table = "order_items"
        ordering = ["id"]


class IdempotencyKey(models.Model):
    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="+")
    key = models.CharField(max_length=128)
    request_hash = models.CharField(max_length=64)
    response_status = models.PositiveSmallIntegerField(default=0)
    response_body = models.JSONField(default=dict)
    order = models.ForeignKey(OrderModel, on_delete=models.SET_NULL, null=True, blank=True, related_name="+")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "idempotency_keys"
        constraints = [
            models.UniqueConstraint(fields=["tenant", "key"], name="uniq_idempotency_key_per_tenant"),
        ]
