"""Status transition machine for post-confirmation fulfillment.

A strict forward-only automaton::

    confirmed  → processing | shipped | delivered
    processing → shipped | delivered
    shipped    → delivered
    delivered  (terminal)

Cancellation and refunds are not part of this table; they are handled by
``OrderLifecycleManager`` with their own preconditions.
"""

from enum import Enum
from types import MappingProxyType

import structlog
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from notifications.notification.dispatch import Notifier
from notifications.notification.notification import NotificationKind, customer_audience
from ordering.order.events import EventPublisher, OrderStatusChanged
from ordering.order.order import Order, OrderStatus
from ordering.order.repository import OrderRepository
from shared.audit import audit
from shared.database import utcnow
from shared.exceptions import InvalidTransitionError, StaleOrderError, ValidationError

logger = structlog.get_logger(__name__)

_VALID_TRANSITIONS = MappingProxyType(
    {
        OrderStatus.CONFIRMED: (OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.DELIVERED),
        OrderStatus.PROCESSING: (OrderStatus.SHIPPED, OrderStatus.DELIVERED),
        OrderStatus.SHIPPED: (OrderStatus.DELIVERED,),
        OrderStatus.DELIVERED: (),  # Terminal
    }
)

_DEFAULT_NOTES = {
    OrderStatus.CONFIRMED: "Order confirmed after successful payment",
    OrderStatus.PROCESSING: "Order is being processed and prepared",
    OrderStatus.SHIPPED: "Order has been shipped",
    OrderStatus.DELIVERED: "Order has been delivered successfully",
}


def coerce_status(value) -> OrderStatus:
    if isinstance(value, OrderStatus):
        return value
    try:
        return OrderStatus(value)
    except ValueError:
        raise ValidationError(f"Unknown order status: {value!r}", status=value) from None


def default_note(status: OrderStatus, actor: str | None = None) -> str:
    note = _DEFAULT_NOTES.get(status, f"Status changed to {status.value}")
    return f"{note} (Updated by: {actor})" if actor else note


def allowed_transitions(status) -> list[str]:
    """Statuses reachable in one step from ``status`` (empty when none)."""
    return [s.value for s in _VALID_TRANSITIONS.get(coerce_status(status), ())]


def can_transition(current, new) -> bool:
    try:
        current, new = coerce_status(current), coerce_status(new)
    except ValidationError:
        return False
    return new in _VALID_TRANSITIONS.get(current, ())


def all_statuses() -> list[str]:
    """Every status the fulfillment machine knows about."""
    return [s.value for s in _VALID_TRANSITIONS]


def validate_transition(current: OrderStatus, new: OrderStatus) -> None:
    allowed = allowed_transitions(current)
    if current == new:
        raise InvalidTransitionError(
            f"Order is already in '{new.value}' status",
            current_status=current.value,
            attempted_status=new.value,
            allowed=allowed,
        )
    if new.value not in allowed:
        raise InvalidTransitionError(
            f"Invalid status transition from '{current.value}' to '{new.value}'. "
            f"Allowed transitions: {', '.join(allowed) or 'none'}",
            current_status=current.value,
            attempted_status=new.value,
            allowed=allowed,
        )


class OrderStatusMachine:
    """Applies forward fulfillment transitions to persisted orders."""

    allowed_transitions = staticmethod(allowed_transitions)
    can_transition = staticmethod(can_transition)
    all_statuses = staticmethod(all_statuses)

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        notifier: Notifier | None = None,
        publisher: EventPublisher | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.repository = OrderRepository(session_factory)
        self.notifier = notifier or Notifier()
        self.publisher = publisher or EventPublisher()

    def update_status(self, order, new_status, notes: str | None = None, actor: str | None = None) -> Order:
        """Move ``order`` (an ``Order`` or its id) to ``new_status``.

        Status and history row commit together. The domain event and the
        customer notification follow the commit and cannot fail the call.

        Raises:
            InvalidTransitionError: no-op or transition outside the table.
            OrderNotFoundError: unknown order.
            StaleOrderError: the order changed concurrently.
        """
        target = coerce_status(new_status)
        order_id = order.id if isinstance(order, Order) else order

        try:
            with self.session_factory.begin() as session:
                order = self.repository.load_for_update(session, order_id)
                previous = order.status_enum
                validate_transition(previous, target)

                entry = order.record_status(target, notes or default_note(target, actor))
                session.flush()
        except InvalidTransitionError as e:
            logger.warning(
                "Rejected order status transition",
                order_id=order_id,
                new_status=target.value,
                error=e.message,
            )
            raise
        except StaleDataError as e:
            raise StaleOrderError(
                f"Order {order_id} was modified by another process",
                order_id=order_id,
            ) from e

        logger.info(
            "Order status updated successfully",
            order_id=order.id,
            order_number=order.order_number,
            old_status=previous.value,
            new_status=target.value,
            updated_by=actor,
        )
        audit(
            "order_status_changed",
            "Order",
            order_id=order.id,
            old_status=previous.value,
            new_status=target.value,
            actor=actor,
        )

        self.publisher.publish(
            OrderStatusChanged,
            order_id=order.id,
            order_number=order.order_number,
            user_id=order.user_id,
            previous_status=previous.value,
            new_status=target.value,
            notes=entry.notes,
            actor=actor,
            changed_at=entry.created_at or utcnow(),
        )
        self.notifier.enqueue(
            NotificationKind.ORDER_STATUS_UPDATE,
            customer_audience(order.user_id),
            {
                "order_id": order.id,
                "order_number": order.order_number,
                "old_status": previous.value,
                "new_status": target.value,
                "notes": entry.notes,
            },
        )
        return order
