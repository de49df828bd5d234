"""Ordering bounded context: order placement, payment and fulfillment status.

Order rows live in SQLAlchemy (``ordering.order.order``) where the stock and
status writes need row locks. The protean domain carries the order commands,
their handlers and the events each order emits.
"""

import structlog
from protean.domain import Domain

ordering = Domain(name="ordering")

logger = structlog.get_logger(__name__)
