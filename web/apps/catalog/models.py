"""Catalog entities read and mutated by the order core.

Catalog CRUD is owned elsewhere; these models only carry the fields order
placement needs. ``Product.stock`` is mutated exclusively by the stock
reservation in ``apps.orders.repository``.
"""

from django.db import models


class Tenant(models.Model):
    name = models.CharField(max_length=200)
    slug = models.SlugField(max_length=64, unique=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "tenants"

    def __str__(self):
        return self.name


class Product(models.Model):
    tenant = models.ForeignKey(Tenant, on_delete=models.PROTECT, related_name="products")
    name = models.CharField(max_length=200)
    price = models.DecimalField(max_digits=12, decimal_places=2)
    # PositiveIntegerField adds a CHECK (stock >= 0) at the database level.
    stock = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "products"
        indexes = [models.Index(fields=["tenant", "is_active"], name="products_tenant_active_idx")]

    def __str__(self):
        return self.name
