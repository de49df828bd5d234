"""Order creation: cart in, durable order out.

One transaction covers validation, stock decrements, pricing and the order
rows. Either all of it commits or none of it does; staff are notified only
after the commit.
"""

import secrets
import string
from decimal import Decimal
from typing import Annotated, Any
from uuid import uuid4

import structlog
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from catalogue.product.product import Product
from notifications.notification.notification import NotificationKind
from ordering.order.events import OrderCreated
from ordering.order.order import ItemStatus, Order, OrderItem, OrderStatus
from pricing.cart import CartLine
from pricing.engine import PricingEngine
from shared.audit import audit_on_commit, log_exception
from shared.exceptions import (
    InsufficientStockError,
    InvalidCartError,
    OrderCreationError,
    ProductNotFoundError,
    ProductUnavailableError,
    ValidationError,
)
from shared.money import ZERO, to_money

logger = structlog.get_logger(__name__)

_ORDER_NUMBER_ALPHABET = string.ascii_uppercase + string.digits


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------
class OrderLineInput(BaseModel):
    product_id: int
    quantity: Annotated[int, Field(strict=True, gt=0)]
    store_id: int | None = None


class OrderRequest(BaseModel):
    """Checkout request for a new order.

    Prices are never taken from the request: each line is priced from the
    product row at the moment its stock is decremented.
    """

    model_config = ConfigDict(extra="ignore")

    user_id: int
    user_address_id: int | None = None
    delivery_slot_id: int | None = None
    store_id: int | None = None
    items: Annotated[list[OrderLineInput], Field(min_length=1)]
    payment_method: Annotated[str, Field(min_length=1, max_length=50)]
    shipping_cost: Annotated[Decimal, Field(ge=0, allow_inf_nan=False)] = ZERO
    notes: str | None = None


def parse_order_request(cart_data: Any) -> OrderRequest:
    if isinstance(cart_data, OrderRequest):
        return cart_data
    try:
        return OrderRequest.model_validate(cart_data)
    except PydanticValidationError as e:
        errors = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
        raise InvalidCartError("Order request is invalid", errors=errors) from e


# ---------------------------------------------------------------------------
# Use case
# ---------------------------------------------------------------------------
class OrderCreationMixin:
    """``create_order`` for ``OrderLifecycleManager``."""

    def create_order(self, cart_data: Any, idempotency_key: str | None = None) -> Order:
        """Create an order from ``cart_data``.

        Replaying an ``idempotency_key`` returns the order it created, with no
        further stock or notification side effects, and without looking at
        ``cart_data`` again.

        Raises:
            InvalidCartError, ProductNotFoundError, ProductUnavailableError:
                the request is malformed or names a payment method that is
                not enabled; nothing was mutated.
            InsufficientStockError: a line cannot be fulfilled; nothing was
                mutated.
            OrderCreationError: any other failure, with the original error
                as ``__cause__``.
        """
        # A replayed key wins over whatever body came with it
        if idempotency_key:
            existing = self.repository.find_by_idempotency_key(idempotency_key)
            if existing is not None:
                logger.warning(
                    "Duplicate order creation prevented",
                    idempotency_key=idempotency_key,
                    existing_order_id=existing.id,
                )
                return existing

        command = parse_order_request(cart_data)
        idempotency_key = idempotency_key or str(uuid4())

        # Loaded before the transaction opens: the settings store uses its own session
        pricing_config = self.pricing_config()
        if not pricing_config.accepts_payment_method(command.payment_method):
            raise InvalidCartError(
                f"Payment method {command.payment_method} is not available",
                errors=[f"payment_method: {command.payment_method} is not enabled"],
                payment_method=command.payment_method,
            )

        try:
            order = self._create_in_transaction(command, idempotency_key, pricing_config)
        except (InsufficientStockError, ValidationError, OrderCreationError):
            raise
        except IntegrityError as e:
            # Lost an idempotency race: the competing request committed first
            existing = self.repository.find_by_idempotency_key(idempotency_key)
            if existing is not None:
                logger.warning(
                    "Concurrent duplicate order creation resolved",
                    idempotency_key=idempotency_key,
                    existing_order_id=existing.id,
                )
                return existing
            log_exception(e, context="order_creation", user_id=command.user_id)
            raise OrderCreationError("Failed to create order", user_id=command.user_id) from e
        except Exception as e:
            log_exception(e, context="order_creation", user_id=command.user_id)
            raise OrderCreationError("Failed to create order", user_id=command.user_id) from e

        self._after_order_created(order)
        return order

    def _create_in_transaction(self, command: OrderRequest, idempotency_key: str, pricing_config) -> Order:
        with self.session_factory.begin() as session:
            products = self._validate_lines(session, command)
            order_number = self._generate_order_number(session)

            cart: list[CartLine] = []
            for line in command.items:
                product = self.ledger.decrement(
                    line.product_id,
                    line.quantity,
                    session=session,
                    actor=f"user:{command.user_id}",
                    reference=order_number,
                )
                products[product.id] = product
                cart.append(
                    CartLine(
                        product_id=product.id,
                        quantity=line.quantity,
                        unit_price=product.price,
                        name=product.name,
                        store_id=line.store_id or product.store_id,
                    )
                )

            # Priced before the new order is added, so it is not its own "prior order"
            engine = PricingEngine(
                pricing_config,
                has_prior_orders=lambda user_id: self.repository.has_prior_orders(session, user_id),
            )
            totals = engine.compute_totals(
                cart,
                user_id=command.user_id,
                store_id=command.store_id,
                delivery_fee=command.shipping_cost,
            )

            order = Order(
                order_number=order_number,
                user_id=command.user_id,
                user_address_id=command.user_address_id,
                delivery_slot_id=command.delivery_slot_id,
                store_id=command.store_id,
                subtotal=totals.subtotal,
                discount_total=totals.discount,
                tax=totals.tax,
                shipping_cost=totals.delivery_fee,
                total_amount=totals.total,
                currency=pricing_config.currency,
                payment_method=command.payment_method,
                notes=command.notes,
                idempotency_key=idempotency_key,
            )
            order.items = [
                OrderItem(
                    product_id=line.product_id,
                    store_id=line.store_id,
                    product_name=line.name or products[line.product_id].name,
                    quantity=line.quantity,
                    unit_price=to_money(line.unit_price),
                    total_price=to_money(line.line_total),
                    status=ItemStatus.PENDING.value,
                )
                for line in cart
            ]
            order.record_status(OrderStatus.PENDING_PAYMENT, "Order placed, awaiting payment")
            session.add(order)
            session.flush()

            audit_on_commit(
                session,
                "order_created",
                "Order",
                order_id=order.id,
                order_number=order.order_number,
                user_id=order.user_id,
                total_amount=str(order.total_amount),
                discount_total=str(order.discount_total),
            )
        return order

    def _validate_lines(self, session: Session, command: OrderRequest) -> dict[int, Product]:
        """First-pass check of every line before anything is mutated."""
        requested: dict[int, int] = {}
        for line in command.items:
            requested[line.product_id] = requested.get(line.product_id, 0) + line.quantity

        products = {
            product.id: product
            for product in session.scalars(select(Product).where(Product.id.in_(list(requested))))
        }

        for product_id, quantity in requested.items():
            product = products.get(product_id)
            if product is None:
                raise ProductNotFoundError(f"Product {product_id} not found", product_id=product_id)
            if not product.is_active:
                raise ProductUnavailableError(
                    f"{product.name} is no longer available",
                    product_id=product_id,
                )
            if product.stock_quantity < quantity:
                raise InsufficientStockError(
                    f"Insufficient stock for {product.name}. "
                    f"Available: {product.stock_quantity}, Requested: {quantity}",
                    requested=quantity,
                    available=product.stock_quantity,
                    product_id=product_id,
                )
        return products

    def _generate_order_number(self, session: Session) -> str:
        prefix = self.settings.order_number_prefix
        length = self.settings.order_number_length
        for _ in range(self.settings.order_number_attempts):
            candidate = prefix + "".join(secrets.choice(_ORDER_NUMBER_ALPHABET) for _ in range(length))
            if not self.repository.number_exists(session, candidate):
                return candidate
        raise OrderCreationError("Could not generate a unique order number")

    def _after_order_created(self, order: Order) -> None:
        self.publisher.publish(
            OrderCreated,
            order_id=order.id,
            order_number=order.order_number,
            user_id=order.user_id,
            total_amount=str(order.total_amount),
            item_count=len(order.items),
            created_at=order.created_at,
        )
        self.notifier.send(
            NotificationKind.NEW_ORDER_STAFF,
            self.settings.staff_audience,
            {
                "order_id": order.id,
                "order_number": order.order_number,
                "item_count": sum(item.quantity for item in order.items),
                "total_amount": str(order.total_amount),
                "currency": order.currency,
                "payment_method": order.payment_method,
            },
        )
