from decimal import Decimal

import pytest
from django.db import transaction

from apps.orders.domain import OrderLine, PlaceOrderCommand, OrderLineRequest, ValidatedOrder
from apps.orders.errors import InternalError
from apps.orders.models import OrderModel
from apps.orders.repository import DjangoOrderWriter, timestamp_order_number


def test_timestamp_number_format():
    assert timestamp_order_number("ORD", 0).startswith("ORD")
    assert timestamp_order_number("ORD", 0)[3:].isdigit()
    assert timestamp_order_number("ORD", 2).endswith("-2")


@pytest.fixture
def order_input(tenant, customer, make_product):
    p = make_product(tenant, stock=5)
    cmd = PlaceOrderCommand(
        tenant_id=tenant.id,
        customer_id=customer.id,
        lines=[OrderLineRequest(p.id, 1)],
        delivery_address="12 MG Road",
        payment_method="cod",
    )
    validated = ValidatedOrder(
        lines=[OrderLine(p.id, p.name, 1, p.price, p.price)], items_total=p.price, delivery_charge=Decimal("0")
    )
    return cmd, validated


@pytest.mark.django_db
def test_colliding_number_is_retried(order_input):
    """Two orders generated in the same millisecond still get distinct numbers."""
    cmd, validated = order_input
    writer = DjangoOrderWriter(number_factory=lambda prefix, attempt: f"{prefix}1700000000000" + (f"-{attempt}" if attempt else ""))

    with transaction.atomic():
        first = writer.write(cmd, validated)
    with transaction.atomic():
        second = writer.write(cmd, validated)

    assert first.order_number == "ORD1700000000000"
    assert second.order_number == "ORD1700000000000-1"
    assert OrderModel.objects.count() == 2


@pytest.mark.django_db
def test_gives_up_after_max_attempts(order_input):
    cmd, validated = order_input
    writer = DjangoOrderWriter(max_attempts=3, number_factory=lambda prefix, attempt: "ORD-FIXED")

    with transaction.atomic():
        writer.write(cmd, validated)
    with pytest.raises(InternalError):
        with transaction.atomic():
            writer.write(cmd, validated)
    assert OrderModel.objects.count() == 1


@pytest.mark.django_db
def test_same_number_allowed_in_another_tenant(order_input, other_tenant, make_user):
    cmd, validated = order_input
    writer = DjangoOrderWriter(number_factory=lambda prefix, attempt: "ORD-SAME")
    with transaction.atomic():
        writer.write(cmd, validated)

    stranger = make_user(other_tenant)
    cmd.tenant_id, cmd.customer_id = other_tenant.id, stranger.id
    with transaction.atomic():
        placed = writer.write(cmd, validated)
    assert placed.order_number == "ORD-SAME"
