import pytest

from gateway.identity import Actor, Role, parse_actor


@pytest.mark.parametrize(
    "raw, expected",
    [
        (("1", "2", "customer"), Actor(1, 2, Role.CUSTOMER)),
        (("1", "2", " Admin "), Actor(1, 2, Role.ADMIN)),
        (("1", "2", "root"), None),
        (("x", "2", "staff"), None),
        ((None, "2", "staff"), None),
        (("1", "", "staff"), None),
    ],
)
def test_parse_actor(raw, expected):
    assert parse_actor(*raw) == expected


@pytest.mark.django_db
def test_request_id_is_echoed(client):
    r = client.get("/health/", HTTP_X_REQUEST_ID="req-42")
    assert r.headers["X-Request-ID"] == "req-42"


@pytest.mark.django_db
def test_malformed_identity_is_unauthenticated(client):
    r = client.get("/api/orders/", HTTP_X_TENANT_ID="1", HTTP_X_USER_ID="abc", HTTP_X_USER_ROLE="customer")
    assert r.status_code == 401


@pytest.mark.django_db
def test_oversized_api_body_is_rejected(client, monkeypatch):
    monkeypatch.setattr("gateway.middleware.MAX_API_BYTES", 10)
    r = client.post("/api/orders/", data={"items": ["x" * 100]}, content_type="application/json")
    assert r.status_code == 413
    assert r.json() == {"detail": "PAYLOAD_TOO_LARGE"}
