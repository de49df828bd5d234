"""Order cancellation template: sent when an order is cancelled."""

from notifications.notification.notification import NotificationChannel, NotificationKind


class OrderCancellationTemplate:
    notification_type = NotificationKind.ORDER_CANCELLATION.value
    default_channels = [NotificationChannel.EMAIL.value]

    @staticmethod
    def render(context: dict) -> dict:
        order_number = context.get("order_number", "N/A")
        reason = context.get("reason") or "User requested"
        body = f"Your order {order_number} has been cancelled.\n\nReason: {reason}\n\n"
        if context.get("refunded"):
            body += "Your payment has been refunded and should appear within 5-10 business days.\n\n"
        body += "If you have questions, please contact our support team."
        return {"subject": f"Order {order_number} Cancelled", "body": body}
