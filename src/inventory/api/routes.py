"""FastAPI routes for the Inventory domain: advisory stock reads.

Nothing here reserves stock; only order creation decrements it.
"""

from fastapi import APIRouter, Depends

from inventory.api.schemas import AvailabilityRequest, AvailabilityResponse, ShortageSchema, StockLevelResponse
from shared.services import Services, get_services

inventory_router = APIRouter(prefix="/inventory", tags=["inventory"])


@inventory_router.post("/availability", response_model=AvailabilityResponse)
def check_availability(body: AvailabilityRequest, services: Services = Depends(get_services)) -> AvailabilityResponse:
    shortages = services.ledger.validate_lines([line.model_dump() for line in body.items])
    return AvailabilityResponse(
        available=not shortages,
        shortages=[ShortageSchema(**shortage) for shortage in shortages],
    )


@inventory_router.get("/{product_id}", response_model=StockLevelResponse)
def stock_level(product_id: int, services: Services = Depends(get_services)) -> StockLevelResponse:
    return StockLevelResponse(product_id=product_id, stock_quantity=services.ledger.stock_level(product_id))
