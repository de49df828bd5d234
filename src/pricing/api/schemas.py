"""Pydantic request/response schemas for the Pricing API."""

from decimal import Decimal

from pydantic import BaseModel, Field


class QuoteLineSchema(BaseModel):
    product_id: int
    quantity: int = Field(ge=1)


class QuoteRequest(BaseModel):
    user_id: int | None = None
    store_id: int | None = None
    items: list[QuoteLineSchema] = []


class QuoteResponse(BaseModel):
    subtotal: Decimal
    discount: Decimal
    delivery_fee: Decimal
    tax: Decimal
    total: Decimal
    discount_breakdown: list[dict]
    applied_discounts: list[dict]
    available_discounts: list[dict]
    settings: dict
