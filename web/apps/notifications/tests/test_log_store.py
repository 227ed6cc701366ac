import pytest

from apps.notifications.log_store import NotificationLogStore
from apps.notifications.models import NotificationRecord


@pytest.mark.django_db
def test_record_is_persisted(customer):
    blob = {"email": {"status": "sent", "recipients": 1}, "sms": None, "whatsapp": None}

    rec = NotificationLogStore().record(customer.tenant_id, customer.id, "WELCOME", "welcome", blob)

    assert rec is not None
    stored = NotificationRecord.objects.get(pk=rec.pk)
    assert (stored.type, stored.reference, stored.result) == ("WELCOME", "welcome", blob)
    assert stored.created_at is not None


@pytest.mark.django_db
def test_write_failure_is_swallowed(customer, monkeypatch, caplog):
    def broken_create(**kwargs):
        raise RuntimeError("disk full")

    monkeypatch.setattr(NotificationRecord.objects, "create", broken_create)

    assert NotificationLogStore().record(customer.tenant_id, customer.id, "WELCOME", "welcome", {}) is None
    assert "notification log write failed" in caplog.text

