"""FastAPI routes for the Ordering domain: checkout and order management.

Mutations are sent as commands through ``current_domain.process``; reads go
straight to the lifecycle services.
"""

from fastapi import APIRouter, Depends, Header
from protean.utils.globals import current_domain

from ordering.api.schemas import (
    CancelOrderRequest,
    CheckoutRequest,
    OrderHistoryResponse,
    OrderResponse,
    RefundOrderRequest,
    StatusHistorySchema,
    TransitionsResponse,
    UpdateStatusRequest,
)
from ordering.order.commands import CancelOrder, CapturePayment, CreateOrder, RefundOrder, UpdateOrderStatus
from shared.services import Services, get_services

order_router = APIRouter(prefix="/orders", tags=["orders"])


def _order_response(services: Services, order_id: int) -> OrderResponse:
    return OrderResponse.model_validate(services.orders.get_order(order_id))


@order_router.post("", status_code=201, response_model=OrderResponse)
def checkout(
    body: CheckoutRequest,
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key"),
    services: Services = Depends(get_services),
) -> OrderResponse:
    command = CreateOrder(
        cart=body.model_dump(mode="json", exclude={"idempotency_key"}),
        idempotency_key=idempotency_key or body.idempotency_key,
    )
    order_id = current_domain.process(command, asynchronous=False)
    return _order_response(services, order_id)


@order_router.get("/{order_id}", response_model=OrderResponse)
def get_order(order_id: int, services: Services = Depends(get_services)) -> OrderResponse:
    return _order_response(services, order_id)


@order_router.get("/{order_id}/history", response_model=OrderHistoryResponse)
def get_order_history(order_id: int, services: Services = Depends(get_services)) -> OrderHistoryResponse:
    history = services.orders.history(order_id)
    return OrderHistoryResponse(
        order_id=order_id,
        history=[StatusHistorySchema.model_validate(entry) for entry in history],
    )


@order_router.post("/{order_id}/capture", response_model=OrderResponse)
def capture_payment(order_id: int, services: Services = Depends(get_services)) -> OrderResponse:
    current_domain.process(CapturePayment(order_id=order_id), asynchronous=False)
    return _order_response(services, order_id)


@order_router.post("/{order_id}/cancel", response_model=OrderResponse)
def cancel_order(
    order_id: int,
    body: CancelOrderRequest | None = None,
    services: Services = Depends(get_services),
) -> OrderResponse:
    body = body or CancelOrderRequest()
    current_domain.process(CancelOrder(order_id=order_id, reason=body.reason, actor=body.actor), asynchronous=False)
    return _order_response(services, order_id)


@order_router.post("/{order_id}/refund", response_model=OrderResponse)
def refund_order(
    order_id: int,
    body: RefundOrderRequest | None = None,
    services: Services = Depends(get_services),
) -> OrderResponse:
    body = body or RefundOrderRequest()
    command = RefundOrder(
        order_id=order_id,
        amount=str(body.amount) if body.amount is not None else None,
        reason=body.reason,
    )
    current_domain.process(command, asynchronous=False)
    return _order_response(services, order_id)


@order_router.post("/{order_id}/status", response_model=OrderResponse)
def update_status(
    order_id: int,
    body: UpdateStatusRequest,
    services: Services = Depends(get_services),
) -> OrderResponse:
    command = UpdateOrderStatus(order_id=order_id, status=body.status, notes=body.notes, actor=body.actor)
    current_domain.process(command, asynchronous=False)
    return _order_response(services, order_id)


@order_router.get("/{order_id}/transitions", response_model=TransitionsResponse)
def get_transitions(order_id: int, services: Services = Depends(get_services)) -> TransitionsResponse:
    order = services.orders.get_order(order_id)
    return TransitionsResponse(
        order_id=order.id,
        current_status=order.status,
        allowed_transitions=services.status_machine.allowed_transitions(order.status),
        cancellable=order.is_cancellable,
    )
