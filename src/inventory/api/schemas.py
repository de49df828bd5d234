"""Pydantic request/response schemas for the Inventory API."""

from pydantic import BaseModel, Field


class AvailabilityLineSchema(BaseModel):
    product_id: int
    quantity: int = Field(ge=1)


class AvailabilityRequest(BaseModel):
    items: list[AvailabilityLineSchema] = Field(min_length=1)


class ShortageSchema(BaseModel):
    product_id: int
    product_name: str
    requested: int
    available: int


class AvailabilityResponse(BaseModel):
    available: bool
    shortages: list[ShortageSchema] = []


class StockLevelResponse(BaseModel):
    product_id: int
    stock_quantity: int
