"""Notification vocabulary shared by templates, dispatchers and callers.

A notification is a ``kind`` (what happened), an ``audience`` (who should
hear about it: a customer id or a staff group) and a ``payload`` of template
context. The ordering core never waits on delivery.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class NotificationKind(Enum):
    NEW_ORDER_STAFF = "NewOrderStaff"
    ORDER_STATUS_UPDATE = "OrderStatusUpdate"
    ORDER_CANCELLATION = "OrderCancellation"
    REFUND_NOTIFICATION = "RefundNotification"
    PAYMENT_FAILED = "PaymentFailed"


class NotificationChannel(Enum):
    EMAIL = "Email"
    SLACK = "Slack"


class RecipientType(Enum):
    CUSTOMER = "Customer"
    INTERNAL = "Internal"


def customer_audience(user_id: Any) -> str:
    return f"customer:{user_id}"


@dataclass(frozen=True)
class RenderedNotification:
    kind: str
    audience: str
    subject: str
    body: str
    channels: tuple[str, ...] = ()
    payload: dict = field(default_factory=dict)
