"""FastAPI routes for pricing quotes.

Quotes price lines from the product table, never from the request, so the
figures match what checkout will charge.
"""

from fastapi import APIRouter, Depends
from sqlalchemy import select

from catalogue.product.product import Product
from pricing.api.schemas import QuoteRequest, QuoteResponse
from pricing.cart import CartLine
from shared.exceptions import ProductNotFoundError
from shared.services import Services, get_services

pricing_router = APIRouter(prefix="/pricing", tags=["pricing"])


@pricing_router.post("/quote", response_model=QuoteResponse)
def quote(body: QuoteRequest, services: Services = Depends(get_services)) -> QuoteResponse:
    product_ids = [line.product_id for line in body.items]
    with services.session_factory() as session:
        products = {p.id: p for p in session.scalars(select(Product).where(Product.id.in_(product_ids)))}

    cart = []
    for line in body.items:
        product = products.get(line.product_id)
        if product is None:
            raise ProductNotFoundError(f"Product {line.product_id} not found", product_id=line.product_id)
        cart.append(
            CartLine(
                product_id=product.id,
                quantity=line.quantity,
                unit_price=product.price,
                name=product.name,
                store_id=product.store_id,
            )
        )

    engine = services.pricing_engine()
    result = engine.compute_totals(cart, user_id=body.user_id, store_id=body.store_id, allow_empty=True)
    return QuoteResponse(**result.as_dict(), settings=engine.config.as_public_dict())


@pricing_router.get("/settings")
def pricing_settings(services: Services = Depends(get_services)) -> dict:
    return services.pricing_engine().config.as_public_dict()
