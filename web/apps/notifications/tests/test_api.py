"""Notification admin endpoints."""

from datetime import timedelta

import pytest
from django.utils import timezone

from apps.notifications.models import NotificationRecord
from apps.orders.models import OrderModel


@pytest.fixture
def records(tenant, customer, other_customer):
    sent = {"email": {"status": "sent", "recipients": 1}, "sms": None, "whatsapp": None}
    return [
        NotificationRecord.objects.create(tenant=tenant, user=customer, type="WELCOME", reference="welcome", result=sent),
        NotificationRecord.objects.create(tenant=tenant, user=other_customer, type="WELCOME", reference="welcome", result=sent),
        NotificationRecord.objects.create(
            tenant=tenant, user=customer, type="ORDER_CONFIRMATION", reference="ORD1", result=sent
        ),
    ]


@pytest.mark.django_db
def test_staff_lists_logs_with_filters(client, staff, customer, records, auth_headers):
    r = client.get("/api/notifications/logs/", **auth_headers(staff))
    assert r.status_code == 200
    assert r.json()["count"] == 3

    r = client.get("/api/notifications/logs/", {"type": "WELCOME", "user_id": customer.id}, **auth_headers(staff))
    body = r.json()
    assert body["count"] == 1
    assert body["results"][0]["reference"] == "welcome"
    assert body["results"][0]["result"]["email"]["status"] == "sent"


@pytest.mark.django_db
def test_logs_are_tenant_scoped(client, records, other_tenant, make_user, auth_headers):
    outsider = make_user(other_tenant, "admin")
    assert client.get("/api/notifications/logs/", **auth_headers(outsider)).json()["count"] == 0
    assert client.get(f"/api/notifications/logs/{records[0].id}/", **auth_headers(outsider)).status_code == 404


@pytest.mark.django_db
def test_customers_cannot_browse_logs(client, customer, records, auth_headers):
    assert client.get("/api/notifications/logs/", **auth_headers(customer)).status_code == 403


@pytest.mark.django_db
def test_log_detail(client, staff, records, auth_headers):
    r = client.get(f"/api/notifications/logs/{records[2].id}/", **auth_headers(staff))
    assert r.status_code == 200
    assert r.json()["type"] == "ORDER_CONFIRMATION"


@pytest.mark.django_db
def test_resend_welcome_runs_inline_and_logs_again(client, settings, staff, records, auth_headers, mailoutbox):
    settings.NOTIFY_EMAIL_ENABLED = True

    r = client.post(f"/api/notifications/logs/{records[0].id}/resend/", **auth_headers(staff))

    assert r.status_code == 200
    assert r.json()["result"]["email"]["status"] == "sent"
    assert len(mailoutbox) == 1
    assert mailoutbox[0].to == ["asha@example.com"]
    assert NotificationRecord.objects.filter(type="WELCOME").count() == 3


@pytest.mark.django_db
def test_resend_order_confirmation_uses_order_number(client, settings, tenant, customer, staff, auth_headers, mailoutbox):
    settings.NOTIFY_EMAIL_ENABLED = True
    OrderModel.objects.create(
        tenant=tenant, customer=customer, order_number="ORD7", payment_method="cod",
        total_amount="100.00", delivery_address="12 MG Road",
    )
    rec = NotificationRecord.objects.create(
        tenant=tenant, user=customer, type="ORDER_CONFIRMATION", reference="ORD7", result={}
    )

    r = client.post(f"/api/notifications/logs/{rec.id}/resend/", **auth_headers(staff))

    assert r.status_code == 200
    assert mailoutbox[0].subject == "Order Confirmed - ORD7"


@pytest.mark.django_db
def test_resend_status_update_reuses_logged_status(client, settings, tenant, customer, staff, auth_headers, mailoutbox):
    settings.NOTIFY_EMAIL_ENABLED = True
    OrderModel.objects.create(
        tenant=tenant, customer=customer, order_number="ORD8", payment_method="cod",
        total_amount="100.00", delivery_address="12 MG Road", status="delivered",
    )
    rec = NotificationRecord.objects.create(
        tenant=tenant, user=customer, type="ORDER_STATUS_UPDATE", reference="ORD8",
        result={"email": None, "sms": None, "whatsapp": None, "status": "in-transit"},
    )

    client.post(f"/api/notifications/logs/{rec.id}/resend/", **auth_headers(staff))

    latest = NotificationRecord.objects.filter(type="ORDER_STATUS_UPDATE").order_by("-id").first()
    assert latest.result["status"] == "in-transit"
    assert "out for delivery" in mailoutbox[0].body


@pytest.mark.django_db
def test_resend_for_missing_order_is_not_found(client, tenant, customer, staff, auth_headers):
    rec = NotificationRecord.objects.create(
        tenant=tenant, user=customer, type="ORDER_CONFIRMATION", reference="ORD404", result={}
    )
    assert client.post(f"/api/notifications/logs/{rec.id}/resend/", **auth_headers(staff)).status_code == 404


@pytest.mark.django_db
def test_resend_unknown_type_cannot_be_resent(client, tenant, customer, staff, auth_headers):
    rec = NotificationRecord.objects.create(tenant=tenant, user=customer, type="PROMO", reference="x", result={})
    r = client.post(f"/api/notifications/logs/{rec.id}/resend/", **auth_headers(staff))
    assert r.status_code == 400
    assert r.json()["detail"] == "CANNOT_RESEND"


@pytest.mark.django_db
def test_settings_report_channels(client, settings, staff, auth_headers):
    settings.NOTIFY_SMS_ENABLED = True
    settings.TWILIO_PHONE_NUMBER = "+15550001111"

    body = client.get("/api/notifications/settings/", **auth_headers(staff)).json()

    assert body["email"]["enabled"] is False
    assert body["sms"] == {"enabled": True, "sender": "+15550001111", "configured": False}


@pytest.mark.django_db
def test_user_reads_own_notifications_only(client, customer, other_customer, records, auth_headers):
    r = client.get(f"/api/notifications/users/{customer.id}/", **auth_headers(customer))
    assert r.status_code == 200
    assert r.json()["count"] == 2

    r = client.get(f"/api/notifications/users/{other_customer.id}/", **auth_headers(customer))
    assert r.status_code == 403


@pytest.mark.django_db
def test_staff_reads_any_users_notifications(client, staff, other_customer, records, auth_headers):
    r = client.get(f"/api/notifications/users/{other_customer.id}/", **auth_headers(staff))
    assert r.json()["count"] == 1
    assert client.get("/api/notifications/users/999999/", **auth_headers(staff)).status_code == 404


@pytest.mark.django_db
def test_test_email_goes_out_on_email_only(client, settings, staff, customer, auth_headers, mailoutbox):
    settings.NOTIFY_EMAIL_ENABLED = True
    settings.NOTIFY_SMS_ENABLED = True
    settings.STOREFRONT_NAME = "FreshMart"
    customer.phone = "+919999999999"
    customer.save()

    r = client.post(
        "/api/notifications/test/", data={"type": "test_email", "user_id": customer.id},
        content_type="application/json", **auth_headers(staff),
    )

    assert r.status_code == 200
    body = r.json()
    assert body["result"]["email"] == {"status": "sent", "recipients": 1}
    assert body["result"]["sms"] is None
    assert body["details"] == {"email": "sent", "sms": "skipped", "whatsapp": "skipped"}
    assert mailoutbox[0].subject == "Test notification from FreshMart"

    record = NotificationRecord.objects.get()
    assert (record.type, record.reference, record.user_id) == ("TEST", "test", customer.id)


@pytest.mark.django_db
def test_test_sms_reports_unconfigured_twilio_as_failed(client, settings, staff, customer, auth_headers):
    settings.NOTIFY_SMS_ENABLED = True
    customer.phone = "+919999999999"
    customer.save()

    r = client.post(
        "/api/notifications/test/", data={"type": "test_sms", "user_id": customer.id},
        content_type="application/json", **auth_headers(staff),
    )

    assert r.status_code == 200
    assert r.json()["details"]["sms"] == "failed"
    assert r.json()["result"]["sms"]["status"] == "failed"


@pytest.mark.django_db
def test_test_endpoint_can_send_welcome(client, settings, staff, customer, auth_headers, mailoutbox):
    settings.NOTIFY_EMAIL_ENABLED = True

    r = client.post(
        "/api/notifications/test/", data={"type": "welcome", "user_id": customer.id},
        content_type="application/json", **auth_headers(staff),
    )

    assert r.status_code == 200
    assert len(mailoutbox) == 1
    assert NotificationRecord.objects.get().type == "WELCOME"


@pytest.mark.django_db
def test_test_endpoint_rejects_bad_requests(client, staff, customer, other_tenant, make_user, auth_headers):
    url = "/api/notifications/test/"

    r = client.post(url, data={"type": "promo", "user_id": customer.id}, content_type="application/json",
                    **auth_headers(staff))
    assert r.status_code == 400
    assert r.json()["detail"] == "VALIDATION_ERROR"

    outsider = make_user(other_tenant)
    r = client.post(url, data={"type": "test_email", "user_id": outsider.id}, content_type="application/json",
                    **auth_headers(staff))
    assert r.status_code == 404

    r = client.post(url, data={"type": "test_email", "user_id": customer.id}, content_type="application/json",
                    **auth_headers(customer))
    assert r.status_code == 403
    assert NotificationRecord.objects.count() == 0


@pytest.mark.django_db
def test_stats_count_types_recent_activity_and_top_recipients(client, tenant, staff, customer, records, auth_headers):
    old = NotificationRecord.objects.create(
        tenant=tenant, user=customer, type="WELCOME", reference="welcome", result={}
    )
    NotificationRecord.objects.filter(pk=old.pk).update(created_at=timezone.now() - timedelta(days=30))

    r = client.get("/api/notifications/stats/", **auth_headers(staff))

    assert r.status_code == 200
    body = r.json()
    assert body["total"] == 4
    assert body["by_type"] == [{"type": "WELCOME", "count": 3}, {"type": "ORDER_CONFIRMATION", "count": 1}]
    assert sum(day["count"] for day in body["recent_activity"]) == 3
    top = body["top_recipients"][0]
    assert (top["user_id"], top["email"], top["count"]) == (customer.id, "asha@example.com", 3)


@pytest.mark.django_db
def test_stats_are_tenant_scoped_and_privileged(client, customer, records, other_tenant, make_user, auth_headers):
    outsider = make_user(other_tenant, "staff")
    body = client.get("/api/notifications/stats/", **auth_headers(outsider)).json()
    assert body["total"] == 0
    assert body["by_type"] == []
    assert client.get("/api/notifications/stats/", **auth_headers(customer)).status_code == 403
