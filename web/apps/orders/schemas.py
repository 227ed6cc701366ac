"""Pydantic schemas for the orders API.

Request schemas validate the shape of incoming JSON; the domain still
re-checks its own rules (``check_command``). Read schemas render
``OrderModel`` rows.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError

PAYMENT_METHODS = {"cod", "online", "card", "upi"}


class OrderItemIn(BaseModel):
    """A requested line item.

    Attributes:
        product_id: Catalog product id in the caller's tenant.
        quantity: Positive integer indicating units requested.
    """

    product_id: int = Field(gt=0)
    quantity: int = Field(gt=0)


class CreateOrderDTO(BaseModel):
    """Schema for creating an order.

    Attributes:
        items: At least one line item.
        delivery_address: Non-blank delivery address.
        payment_method: One of ``PAYMENT_METHODS`` (normalized to lowercase).
        payment_id: Gateway payment id when already paid; marks the order paid.
        gateway_order_id: Payment gateway order reference.
        notes: Free-form notes for the store.
    """

    items: List[OrderItemIn] = Field(min_length=1)
    delivery_address: str = Field(min_length=1, max_length=1000)
    payment_method: str
    payment_id: Optional[str] = Field(default=None, max_length=128)
    gateway_order_id: Optional[str] = Field(default=None, max_length=128)
    notes: str = Field(default="", max_length=2000)

    @field_validator("delivery_address")
    @classmethod
    def validate_address(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Delivery address is required")
        return v.strip()

    @field_validator("payment_method")
    @classmethod
    def validate_payment_method(cls, v: str) -> str:
        v2 = v.strip().lower()
        if v2 not in PAYMENT_METHODS:
            raise ValueError("Unsupported payment method")
        return v2


class UpdateStatusDTO(BaseModel):
    status: str = Field(min_length=1)


class OrderLineReadDTO(BaseModel):
    product_id: Optional[int]
    product_name: str
    quantity: int
    unit_price: Decimal
    subtotal: Decimal


class OrderReadDTO(BaseModel):
    id: UUID
    order_number: str
    customer_id: int
    customer_name: str
    status: str
    payment_status: str
    payment_method: str
    payment_id: Optional[str] = None
    gateway_order_id: Optional[str] = None
    total_amount: Decimal
    delivery_charge: Decimal
    delivery_address: str
    notes: str = ""
    delivery_agent_id: Optional[int] = None
    delivery_agent_name: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    delivered_at: Optional[datetime] = None
    items: List[OrderLineReadDTO]


class PlacedOrderDTO(BaseModel):
    order_id: UUID
    order_number: str
    total_amount: Decimal


def order_to_dict(o) -> dict:
    """Render an ``OrderModel`` (with ``lines`` prefetched) as JSON-ready data."""
    return OrderReadDTO(
        id=o.id,
        order_number=o.order_number,
        customer_id=o.customer_id,
        customer_name=o.customer.name,
        status=o.status,
        payment_status=o.payment_status,
        payment_method=o.payment_method,
        payment_id=o.payment_id or None,
        gateway_order_id=o.gateway_order_id or None,
        total_amount=o.total_amount,
        delivery_charge=o.delivery_charge,
        delivery_address=o.delivery_address,
        notes=o.notes,
        delivery_agent_id=o.delivery_agent_id,
        delivery_agent_name=o.delivery_agent.name if o.delivery_agent_id else None,
        created_at=o.created_at,
        updated_at=o.updated_at,
        delivered_at=o.delivered_at,
        items=[
            OrderLineReadDTO(
                product_id=line.product_id,
                product_name=line.product_name,
                quantity=line.quantity,
                unit_price=line.unit_price,
                subtotal=line.subtotal,
            )
            for line in o.lines.all()
        ],
    ).model_dump(mode="json")


def parse(schema, data):
    """Validate ``data`` with ``schema``.

    Raises:
        ValidationError: With pydantic's error list under ``errors``.
    """
    try:
        return schema.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(errors=e.errors(include_url=False, include_context=False, include_input=False)) from None
