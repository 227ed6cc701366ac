"""Read endpoints: detail, list and stats, with role scoping."""

from decimal import Decimal

import pytest

CREATE_URL = "/api/orders/"


@pytest.fixture
def place(client, tenant, make_product, auth_headers):
    product = make_product(tenant, "Tomatoes", "100.00", stock=100)

    def _place(user, qty=1, **extra):
        body = {
            "items": [{"product_id": product.id, "quantity": qty}],
            "delivery_address": "12 MG Road",
            "payment_method": "cod",
        }
        body.update(extra)
        r = client.post(CREATE_URL, data=body, content_type="application/json", **auth_headers(user))
        assert r.status_code == 201, r.content
        return r.json()["order_id"]

    return _place


@pytest.mark.django_db
def test_get_order_embeds_lines(client, customer, place, auth_headers):
    oid = place(customer, qty=2)
    r = client.get(f"/api/orders/{oid}/", **auth_headers(customer))

    assert r.status_code == 200
    body = r.json()
    assert body["id"] == oid
    assert body["status"] == "pending"
    assert body["customer_name"] == "Asha"
    assert Decimal(body["total_amount"]) == Decimal("200")
    assert body["items"] == [
        {"product_id": body["items"][0]["product_id"], "product_name": "Tomatoes", "quantity": 2,
         "unit_price": "100.00", "subtotal": "200.00"},
    ]


@pytest.mark.django_db
def test_customer_cannot_see_other_customers_order(client, customer, other_customer, place, auth_headers):
    oid = place(customer)
    r = client.get(f"/api/orders/{oid}/", **auth_headers(other_customer))
    assert r.status_code == 404
    assert r.json()["detail"] == "NOT_FOUND"


@pytest.mark.django_db
def test_other_tenant_cannot_see_order(client, customer, other_tenant, make_user, place, auth_headers):
    oid = place(customer)
    outsider = make_user(other_tenant, "admin")
    assert client.get(f"/api/orders/{oid}/", **auth_headers(outsider)).status_code == 404


@pytest.mark.django_db
def test_staff_sees_every_order(client, customer, other_customer, staff, place, auth_headers):
    place(customer)
    place(other_customer)
    r = client.get(CREATE_URL, **auth_headers(staff))
    assert r.status_code == 200
    assert r.json()["count"] == 2


@pytest.mark.django_db
def test_customer_lists_only_own_orders_newest_first(client, customer, other_customer, place, auth_headers):
    first = place(customer)
    second = place(customer)
    place(other_customer)

    r = client.get(CREATE_URL, **auth_headers(customer))
    body = r.json()
    assert body["count"] == 2
    assert [o["id"] for o in body["results"]] == [second, first]


@pytest.mark.django_db
def test_delivery_sees_open_and_assigned_orders(client, customer, staff, delivery, place, auth_headers):
    open_id = place(customer)
    done_id = place(customer)
    mine_id = place(customer)
    for oid, target in ((done_id, "delivered"), (mine_id, "processing")):
        client.patch(f"/api/orders/{oid}/status/", data={"status": target}, content_type="application/json", **auth_headers(staff))
    client.patch(f"/api/orders/{mine_id}/status/", data={"status": "in-transit"}, content_type="application/json", **auth_headers(delivery))

    r = client.get(CREATE_URL, **auth_headers(delivery))
    ids = {o["id"] for o in r.json()["results"]}
    assert ids == {open_id, mine_id}
    assert client.get(f"/api/orders/{done_id}/", **auth_headers(delivery)).status_code == 404


@pytest.mark.django_db
def test_list_filters_by_status_and_paginates(client, customer, staff, place, auth_headers):
    ids = [place(customer) for _ in range(3)]
    client.patch(f"/api/orders/{ids[0]}/status/", data={"status": "processing"}, content_type="application/json", **auth_headers(staff))

    r = client.get(CREATE_URL, {"status": "pending", "page_size": 1, "page": 2}, **auth_headers(staff))
    body = r.json()
    assert body["count"] == 2
    assert body["page"] == 2
    assert len(body["results"]) == 1

    assert client.get(CREATE_URL, {"status": "shipped"}, **auth_headers(staff)).status_code == 400
    assert client.get(CREATE_URL, {"page": "x"}, **auth_headers(staff)).status_code == 400


@pytest.mark.django_db
def test_stats_counts_statuses_and_paid_revenue(client, customer, staff, place, auth_headers):
    place(customer, qty=1)
    place(customer, qty=2, payment_method="online", payment_id="pay_1")

    r = client.get("/api/orders/stats/", **auth_headers(staff))
    assert r.status_code == 200
    body = r.json()
    assert body["total_orders"] == 2
    assert body["pending_orders"] == 2
    assert body["in_transit_orders"] == 0
    assert Decimal(body["total_revenue"]) == Decimal("200")


@pytest.mark.django_db
def test_stats_is_for_staff_only(client, customer, auth_headers):
    assert client.get("/api/orders/stats/", **auth_headers(customer)).status_code == 403
