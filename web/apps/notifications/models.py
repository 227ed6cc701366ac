from django.db import models

from apps.accounts.models import StoreUser
from apps.catalog.models import Tenant


class NotificationRecord(models.Model):
    """One row per dispatch, whatever the channel outcomes. Append-only."""

    class Type(models.TextChoices):
        WELCOME = "WELCOME"
        ORDER_CONFIRMATION = "ORDER_CONFIRMATION"
        ORDER_STATUS_UPDATE = "ORDER_STATUS_UPDATE"
    TEST = "TEST"

    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="+")
    user = models.ForeignKey(StoreUser, on_delete=models.CASCADE, related_name="notifications")
    type = models.CharField(max_length=32, choices=Type.choices)
    reference = models.CharField(max_length=64)
    # {"email": outcome|null, "sms": outcome|null, "whatsapp": outcome|null, ...}
    result = models.JSONField(default=dict)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "notifications_log"
        ordering = ["-created_at", "-id"]
        indexes = [models.Index(fields=["tenant", "type"], name="notif_tenant_type_idx")]
