"""Order confirmation dispatch, end to end through the orders API."""

import pytest

from apps.notifications.models import NotificationRecord

CREATE_URL = "/api/orders/"


@pytest.fixture
def order_body(tenant, make_product):
    p = make_product(tenant, "Tomatoes", "100.00", stock=5)
    return {"items": [{"product_id": p.id, "quantity": 2}], "delivery_address": "12 MG Road", "payment_method": "cod"}


@pytest.mark.django_db
def test_confirmation_without_phone_only_emails(
    client, settings, customer, order_body, auth_headers, django_capture_on_commit_callbacks, mailoutbox
):
    """All channels on, user has no phone: email attempted, text and chat skipped, one record."""
    settings.NOTIFY_EMAIL_ENABLED = True
    settings.NOTIFY_SMS_ENABLED = True
    settings.NOTIFY_WHATSAPP_ENABLED = True

    with django_capture_on_commit_callbacks(execute=True):
        r = client.post(CREATE_URL, data=order_body, content_type="application/json", **auth_headers(customer))

    assert r.status_code == 201
    number = r.json()["order_number"]
    assert len(mailoutbox) == 1
    assert mailoutbox[0].subject == f"Order Confirmed - {number}"
    assert "Tomatoes" in mailoutbox[0].alternatives[0][0]

    record = NotificationRecord.objects.get()
    assert record.type == "ORDER_CONFIRMATION"
    assert record.reference == number
    assert record.user_id == customer.id
    assert record.result["sms"] is None
    assert record.result["whatsapp"] is None
    assert record.result["email"] == {"status": "sent", "recipients": 1}


@pytest.mark.django_db
def test_nothing_is_sent_for_a_failed_order(
    client, settings, customer, order_body, auth_headers, django_capture_on_commit_callbacks, mailoutbox
):
    settings.NOTIFY_EMAIL_ENABLED = True
    order_body["items"][0]["quantity"] = 50

    with django_capture_on_commit_callbacks(execute=True) as callbacks:
        r = client.post(CREATE_URL, data=order_body, content_type="application/json", **auth_headers(customer))

    assert r.status_code == 409
    assert callbacks == []
    assert mailoutbox == []
    assert NotificationRecord.objects.count() == 0


@pytest.mark.django_db
def test_response_does_not_wait_for_dispatch(client, settings, customer, order_body, auth_headers, django_capture_on_commit_callbacks):
    """Before the commit hooks run, the order exists and nothing was dispatched."""
    settings.NOTIFY_EMAIL_ENABLED = True

    with django_capture_on_commit_callbacks(execute=False) as callbacks:
        r = client.post(CREATE_URL, data=order_body, content_type="application/json", **auth_headers(customer))

    assert r.status_code == 201
    assert len(callbacks) == 1
    assert NotificationRecord.objects.count() == 0


@pytest.mark.django_db
def test_twilio_outage_is_recorded_but_order_stands(
    client, settings, monkeypatch, customer, order_body, auth_headers, django_capture_on_commit_callbacks
):
    import httpx

    settings.NOTIFY_SMS_ENABLED = True
    settings.TWILIO_ACCOUNT_SID = "AC123"
    settings.TWILIO_AUTH_TOKEN = "token"
    settings.TWILIO_PHONE_NUMBER = "+15550001111"
    customer.phone = "+919999999999"
    customer.save()

    def fake_post(self, url, data=None, headers=None, **kwargs):
        raise httpx.ConnectError("connection refused")

    monkeypatch.setattr(httpx.Client, "post", fake_post, raising=True)
    monkeypatch.setattr("time.sleep", lambda *a, **k: None, raising=True)

    with django_capture_on_commit_callbacks(execute=True):
        r = client.post(CREATE_URL, data=order_body, content_type="application/json", **auth_headers(customer))

    assert r.status_code == 201
    result = NotificationRecord.objects.get().result
    assert result["sms"]["status"] == "failed"
    assert "connection refused" in result["sms"]["error"]
    assert result["email"] is None
