"""Order status update template: sent to the customer on each forward transition."""

from notifications.notification.notification import NotificationChannel, NotificationKind

_HEADLINES = {
    "processing": "We're preparing your order",
    "shipped": "Your order is on its way!",
    "delivered": "Your order has been delivered",
}


class OrderStatusUpdateTemplate:
    notification_type = NotificationKind.ORDER_STATUS_UPDATE.value
    default_channels = [NotificationChannel.EMAIL.value]

    @staticmethod
    def render(context: dict) -> dict:
        order_number = context.get("order_number", "N/A")
        new_status = context.get("new_status", "updated")
        headline = _HEADLINES.get(new_status, f"Your order is now {new_status}")
        body = f"{headline}.\n\nOrder: {order_number}\nStatus: {new_status}\n"
        if context.get("notes"):
            body += f"Notes: {context['notes']}\n"
        return {"subject": f"Order {order_number}: {headline}", "body": body}
