"""Order commands and their handlers.

Every order mutation the API accepts is a command processed through
``current_domain.process``. The handlers delegate to the lifecycle services
installed with ``shared.services.set_services``; those open and commit the
SQLAlchemy transaction that holds the row locks, so the order's events reach
its journal only after the order rows have committed.
"""

from protean import handle
from protean.fields import Dict, Integer, String, Text

from ordering.domain import logger, ordering
from ordering.order.journal import OrderJournal
from shared.services import current_services


@ordering.command(part_of="OrderJournal")
class CreateOrder:
    cart = Dict(required=True)
    idempotency_key = String(max_length=255)


@ordering.command(part_of="OrderJournal")
class CapturePayment:
    order_id = Integer(required=True)


@ordering.command(part_of="OrderJournal")
class CancelOrder:
    order_id = Integer(required=True)
    reason = Text()
    actor = String(max_length=100)


@ordering.command(part_of="OrderJournal")
class RefundOrder:
    order_id = Integer(required=True)
    amount = String(max_length=20)  # serialized Decimal; the order total when absent
    reason = Text()


@ordering.command(part_of="OrderJournal")
class UpdateOrderStatus:
    order_id = Integer(required=True)
    status = String(required=True, max_length=50)
    notes = Text()
    actor = String(max_length=100)


@ordering.command_handler(part_of=OrderJournal)
class OrderLifecycleHandler:
    """Creation, payment, cancellation and refunds. Each returns the order id."""

    @handle(CreateOrder)
    def create_order(self, command: CreateOrder) -> int:
        order = current_services().orders.create_order(command.cart, idempotency_key=command.idempotency_key)
        logger.info("Order placed", order_id=order.id, order_number=order.order_number)
        return order.id

    @handle(CapturePayment)
    def capture_payment(self, command: CapturePayment) -> int:
        return current_services().orders.capture_payment(command.order_id).id

    @handle(CancelOrder)
    def cancel_order(self, command: CancelOrder) -> int:
        order = current_services().orders.cancel_order(command.order_id, reason=command.reason, actor=command.actor)
        return order.id

    @handle(RefundOrder)
    def refund_order(self, command: RefundOrder) -> int:
        order = current_services().orders.refund_order(command.order_id, amount=command.amount, reason=command.reason)
        return order.id


@ordering.command_handler(part_of=OrderJournal)
class OrderStatusHandler:
    @handle(UpdateOrderStatus)
    def update_status(self, command: UpdateOrderStatus) -> int:
        order = current_services().status_machine.update_status(
            command.order_id, command.status, notes=command.notes, actor=command.actor
        )
        return order.id
