from django.db import models

from apps.catalog.models import Tenant
from gateway.identity import Role


class StoreUser(models.Model):
    """A tenant-scoped storefront user.

    Credentials live with the authentication gateway; this row holds the
    profile the order core and the notification channels need.
    """

    tenant = models.ForeignKey(Tenant, on_delete=models.PROTECT, related_name="users")
    name = models.CharField(max_length=200)
    email = models.EmailField()
    phone = models.CharField(max_length=32, blank=True, default="")
    address = models.TextField(blank=True, default="")
    role = models.CharField(
        max_length=16,
        choices=[(r.value, r.value) for r in Role],
        default=Role.CUSTOMER.value,
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "users"
        constraints = [
            models.UniqueConstraint(fields=["tenant", "email"], name="uniq_user_email_per_tenant"),
        ]

    def __str__(self):
        return f"{self.name} <{self.email}>"
