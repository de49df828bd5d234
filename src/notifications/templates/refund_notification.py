"""Refund notification: tells the customer money is on its way back."""

from notifications.notification.notification import NotificationChannel, NotificationKind


class RefundNotificationTemplate:
    notification_type = NotificationKind.REFUND_NOTIFICATION.value
    default_channels = [NotificationChannel.EMAIL.value]

    @staticmethod
    def render(context: dict) -> dict:
        order_number = context.get("order_number", "N/A")
        money = f"{context.get('currency', 'USD')} {context.get('amount', '0.00')}"
        return {
            "subject": f"Refund Processed - {money}",
            "body": (
                f"We've refunded {money} for PawPantry order {order_number}.\n\n"
                "Depending on your bank it can take up to 10 business days "
                "for the money to show on your statement."
            ),
        }
