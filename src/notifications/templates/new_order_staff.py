"""New order template: tells fulfillment staff an order is waiting."""

from notifications.notification.notification import NotificationChannel, NotificationKind


class NewOrderStaffTemplate:
    notification_type = NotificationKind.NEW_ORDER_STAFF.value
    default_channels = [NotificationChannel.SLACK.value, NotificationChannel.EMAIL.value]

    @staticmethod
    def render(context: dict) -> dict:
        order_number = context.get("order_number", "N/A")
        item_count = context.get("item_count", 0)
        total = context.get("total_amount", "0.00")
        currency = context.get("currency", "USD")
        return {
            "subject": f"New Order {order_number}",
            "body": (
                f"Order {order_number} was placed with {item_count} item(s).\n\n"
                f"Total: {currency} {total}\n"
                f"Payment method: {context.get('payment_method', 'N/A')}\n\n"
                "Please start picking once payment is confirmed."
            ),
        }
