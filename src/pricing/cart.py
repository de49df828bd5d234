"""Cart line parsing for the pricing engine.

Lines are validated as a whole before any arithmetic happens. A line may be
given flat (``{"product_id", "quantity", "unit_price"}``) or in the checkout
shape that nests the product (``{"quantity", "product": {"id", "price"}}``).
"""

from collections.abc import Sequence
from decimal import Decimal
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic import ValidationError as PydanticValidationError

from shared.exceptions import InvalidCartError


class CartLine(BaseModel):
    """One priced cart line; ``unit_price`` is the snapshot price."""

    model_config = ConfigDict(frozen=True)

    product_id: int
    quantity: Annotated[int, Field(strict=True, gt=0)]
    unit_price: Annotated[Decimal, Field(ge=0, allow_inf_nan=False)]
    name: str | None = None
    store_id: int | None = None

    @model_validator(mode="before")
    @classmethod
    def _flatten_product(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("product"), dict):
            product = data["product"]
            flat = {k: v for k, v in data.items() if k != "product"}
            flat.setdefault("product_id", product.get("id"))
            flat.setdefault("unit_price", product.get("price"))
            flat.setdefault("name", product.get("name"))
            flat.setdefault("store_id", product.get("store_id"))
            return flat
        return data

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


def parse_cart(cart_items: Any, allow_empty: bool = False) -> list[CartLine]:
    """Validate ``cart_items`` and return them as ``CartLine`` objects.

    Raises ``InvalidCartError`` listing every offending line.
    """
    if cart_items is None or isinstance(cart_items, (str, bytes, dict)) or not isinstance(cart_items, Sequence):
        raise InvalidCartError("Cart items must be a list of lines")

    if not cart_items and not allow_empty:
        raise InvalidCartError("Cart is empty")

    lines: list[CartLine] = []
    errors: list[str] = []
    for index, item in enumerate(cart_items):
        if isinstance(item, CartLine):
            lines.append(item)
            continue
        try:
            lines.append(CartLine.model_validate(item))
        except PydanticValidationError as exc:
            for error in exc.errors():
                location = ".".join(str(part) for part in error["loc"]) or "line"
                errors.append(f"line {index}: {location}: {error['msg']}")

    if errors:
        raise InvalidCartError("Cart contains invalid lines", errors=errors)
    return lines
