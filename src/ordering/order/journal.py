"""OrderJournal aggregate: the event stream of one order.

The journal holds no order state of its own beyond what identifies the
order; it exists so order events are raised on an aggregate and stored in
the domain's event store under the order's number.
"""

from datetime import UTC, datetime

from protean.fields import DateTime, Identifier, Integer, String

from ordering.domain import ordering


@ordering.aggregate
class OrderJournal:
    order_number = Identifier(identifier=True, required=True)
    order_id = Integer(required=True)
    last_event = String(max_length=100)
    event_count = Integer(default=0)
    updated_at = DateTime()

    @classmethod
    def open(cls, order_number: str, order_id: int) -> "OrderJournal":
        return cls(order_number=order_number, order_id=order_id, event_count=0)

    def record(self, event) -> None:
        self.last_event = event.__class__.__name__
        self.event_count = (self.event_count or 0) + 1
        self.updated_at = datetime.now(UTC)
        self.raise_(event)
