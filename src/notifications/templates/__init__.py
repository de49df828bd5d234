"""One template per ``NotificationKind``.

A template declares the channels it goes out on and turns a notification
payload into a subject and body.
"""

from notifications.notification.notification import NotificationKind
from notifications.templates.new_order_staff import NewOrderStaffTemplate
from notifications.templates.order_cancellation import OrderCancellationTemplate
from notifications.templates.order_status_update import OrderStatusUpdateTemplate
from notifications.templates.payment_failed import PaymentFailedTemplate
from notifications.templates.refund_notification import RefundNotificationTemplate

TEMPLATE_REGISTRY: dict[str, type] = {
    template.notification_type: template
    for template in (
        NewOrderStaffTemplate,
        OrderStatusUpdateTemplate,
        OrderCancellationTemplate,
        RefundNotificationTemplate,
        PaymentFailedTemplate,
    )
}


def get_template(kind: str):
    try:
        return TEMPLATE_REGISTRY[kind]
    except KeyError:
        raise ValueError(f"No template registered for notification type: {kind}") from None
