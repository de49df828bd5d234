"""Domain events for the Order lifecycle.

Events are immutable facts published after the state change they describe
has committed. ``EventPublisher.publish`` records each one on the order's
``OrderJournal`` (and so in the domain's event store) and then runs the
in-process subscribers; a failing subscriber is logged and never affects
the publisher or the other subscribers.

Money amounts are carried as serialized ``Decimal`` strings.
"""

from collections import defaultdict, deque
from collections.abc import Callable

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.fields import Boolean, DateTime, Integer, String, Text

from ordering.domain import ordering
from ordering.order.journal import OrderJournal
from shared.audit import log_exception

logger = structlog.get_logger(__name__)


@ordering.event(part_of="OrderJournal")
class OrderCreated:
    """A new order was placed and its stock decremented."""

    __version__ = 1

    order_id = Integer(required=True)
    order_number = String(required=True, max_length=50)
    user_id = Integer(required=True)
    total_amount = String(required=True)
    item_count = Integer(required=True)
    created_at = DateTime(required=True)


@ordering.event(part_of="OrderJournal")
class PaymentCaptured:
    """The order total was captured; the order is now confirmed."""

    __version__ = 1

    order_id = Integer(required=True)
    order_number = String(required=True, max_length=50)
    capture_ref = String(required=True, max_length=255)
    amount = String(required=True)
    captured_at = DateTime(required=True)


@ordering.event(part_of="OrderJournal")
class PaymentFailed:
    """The capture was declined; the order moved to payment_failed."""

    __version__ = 1

    order_id = Integer(required=True)
    order_number = String(required=True, max_length=50)
    reason = Text(required=True)
    failed_at = DateTime(required=True)


@ordering.event(part_of="OrderJournal")
class OrderStatusChanged:
    """A forward fulfillment transition was recorded."""

    __version__ = 1

    order_id = Integer(required=True)
    order_number = String(required=True, max_length=50)
    user_id = Integer(required=True)
    previous_status = String(required=True, max_length=50)
    new_status = String(required=True, max_length=50)
    notes = Text()
    actor = String(max_length=100)
    changed_at = DateTime(required=True)


@ordering.event(part_of="OrderJournal")
class OrderCancelled:
    """The order was cancelled and its stock restored."""

    __version__ = 1

    order_id = Integer(required=True)
    order_number = String(required=True, max_length=50)
    previous_status = String(required=True, max_length=50)
    reason = Text(required=True)
    refunded = Boolean(default=False)
    cancelled_at = DateTime(required=True)


@ordering.event(part_of="OrderJournal")
class OrderRefunded:
    """A refund was issued for the order's captured payment."""

    __version__ = 1

    order_id = Integer(required=True)
    order_number = String(required=True, max_length=50)
    amount = String(required=True)
    refund_ref = String(max_length=255)
    refunded_at = DateTime(required=True)


Handler = Callable[[object], None]


class EventPublisher:
    """Journals order events and fans them out to in-process subscribers."""

    def __init__(self, domain=None) -> None:
        self.domain = domain or ordering
        self._subscribers: dict[type, list[Handler]] = defaultdict(list)
        self.published: deque = deque(maxlen=256)

    def subscribe(self, event_type: type, handler: Handler) -> None:
        self._subscribers[event_type].append(handler)

    def publish(self, event_type: type, **attributes) -> None:
        """Build an ``event_type`` event from ``attributes`` and publish it."""
        with self.domain.domain_context():
            event = event_type(**attributes)
            self._journal(event)
        self.published.append(event)
        logger.info(
            "Domain event published",
            event_type=type(event).__name__,
            order_id=event.order_id,
            order_number=event.order_number,
        )
        for handler in self._subscribers.get(type(event), []):
            try:
                handler(event)
            except Exception as e:
                logger.error(
                    "Event subscriber failed",
                    event_type=type(event).__name__,
                    handler=getattr(handler, "__qualname__", repr(handler)),
                    error=str(e),
                )

    def _journal(self, event) -> None:
        # The order has already committed; a journal failure must not undo it
        try:
            repository = self.domain.repository_for(OrderJournal)
            try:
                journal = repository.get(event.order_number)
            except ObjectNotFoundError:
                journal = OrderJournal.open(event.order_number, event.order_id)
            journal.record(event)
            repository.add(journal)
        except Exception as e:
            log_exception(e, context="order_journal", order_number=event.order_number)
