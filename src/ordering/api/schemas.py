"""Pydantic request/response schemas for the Ordering API.

These are external contracts, kept separate from the internal
``OrderRequest`` model, the protean order commands and the SQLAlchemy models.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class OrderLineSchema(BaseModel):
    product_id: int
    quantity: int = Field(ge=1)
    store_id: int | None = None


class OrderItemSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    store_id: int | None = None
    product_name: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    status: str


class StatusHistorySchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    status: str
    notes: str | None = None
    created_at: datetime


# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------
class CheckoutRequest(BaseModel):
    user_id: int
    user_address_id: int | None = None
    delivery_slot_id: int | None = None
    store_id: int | None = None
    items: list[OrderLineSchema] = Field(min_length=1)
    payment_method: str = Field(min_length=1, max_length=50)
    shipping_cost: Decimal = Field(default=Decimal("0.00"), ge=0)
    notes: str | None = None
    idempotency_key: str | None = Field(default=None, max_length=255)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "user_id": 42,
                    "user_address_id": 7,
                    "items": [{"product_id": 1, "quantity": 2, "store_id": 3}],
                    "payment_method": "card",
                    "shipping_cost": "4.99",
                    "idempotency_key": "checkout-42-0001",
                }
            ]
        }
    }


class CancelOrderRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)
    actor: str | None = Field(default=None, max_length=100)


class RefundOrderRequest(BaseModel):
    amount: Decimal | None = None
    reason: str | None = Field(default=None, max_length=500)


class UpdateStatusRequest(BaseModel):
    status: str
    notes: str | None = None
    actor: str | None = Field(default=None, max_length=100)


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_number: str
    user_id: int
    status: str
    payment_status: str
    payment_method: str
    subtotal: Decimal
    discount_total: Decimal
    tax: Decimal
    shipping_cost: Decimal
    total_amount: Decimal
    currency: str
    refunded_amount: Decimal | None = None
    notes: str | None = None
    idempotency_key: str
    created_at: datetime
    items: list[OrderItemSchema] = []


class OrderHistoryResponse(BaseModel):
    order_id: int
    history: list[StatusHistorySchema]


class TransitionsResponse(BaseModel):
    order_id: int
    current_status: str
    allowed_transitions: list[str]
    cancellable: bool
