"""Payment failed template: asks the customer to retry with another method."""

from notifications.notification.notification import NotificationChannel, NotificationKind


class PaymentFailedTemplate:
    notification_type = NotificationKind.PAYMENT_FAILED.value
    default_channels = [NotificationChannel.EMAIL.value]

    @staticmethod
    def render(context: dict) -> dict:
        order_number = context.get("order_number", "N/A")
        reason = context.get("reason", "The payment was declined")
        return {
            "subject": f"Payment failed for order {order_number}",
            "body": (
                f"We could not process the payment for order {order_number}.\n\n"
                f"Reason: {reason}\n\n"
                "Please update your payment method and try again."
            ),
        }
