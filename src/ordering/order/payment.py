"""Payment capture: the step that turns a placed order into a confirmed one."""

import structlog
from sqlalchemy.orm.exc import StaleDataError

from notifications.notification.notification import NotificationKind, customer_audience
from ordering.order.events import PaymentCaptured, PaymentFailed
from ordering.order.order import Order, OrderStatus, PaymentStatus
from ordering.order.status import default_note
from shared.audit import audit
from shared.database import utcnow
from shared.exceptions import InvalidOrderStateError, PaymentFailedError, StaleOrderError

logger = structlog.get_logger(__name__)

_CAPTURABLE_STATES = frozenset({OrderStatus.PENDING_PAYMENT, OrderStatus.PAYMENT_FAILED})


class PaymentCaptureMixin:
    """``capture_payment`` for ``OrderLifecycleManager``."""

    def capture_payment(self, order) -> Order:
        """Charge the order total and confirm the order.

        A declined capture is recorded (``payment_failed`` plus a history row)
        and then raised as ``PaymentFailedError``. A failed order can be
        captured again.
        """
        order_id = order.id if isinstance(order, Order) else order

        try:
            with self.session_factory.begin() as session:
                order = self.repository.load_for_update(session, order_id)
                if order.status_enum not in _CAPTURABLE_STATES:
                    raise InvalidOrderStateError(
                        f"Order cannot be paid in current status: {order.status}",
                        order_id=order.id,
                        current_status=order.status,
                    )

                try:
                    result = self.gateway.capture(
                        order.total_amount,
                        order.currency,
                        order.payment_method,
                        order.idempotency_key,
                    )
                    failure_reason = result.failure_reason
                except Exception as e:
                    logger.error("Payment gateway capture raised", order_id=order.id, error=str(e))
                    result, failure_reason = None, str(e)

                if result is not None and result.success:
                    order.payment_reference = result.capture_ref
                    order.payment_status = PaymentStatus.COMPLETED.value
                    order.record_status(OrderStatus.CONFIRMED, default_note(OrderStatus.CONFIRMED))
                else:
                    failure_reason = failure_reason or "Payment declined"
                    order.payment_status = PaymentStatus.FAILED.value
                    order.record_status(OrderStatus.PAYMENT_FAILED, f"Payment failed: {failure_reason}")
                session.flush()
        except StaleDataError as e:
            raise StaleOrderError(f"Order {order_id} was modified by another process", order_id=order_id) from e

        if order.status_enum is OrderStatus.PAYMENT_FAILED:
            self._after_payment_failed(order, failure_reason)
            raise PaymentFailedError(
                f"Payment failed: {failure_reason}",
                order_id=order.id,
                order_number=order.order_number,
                reason=failure_reason,
            )

        self._after_payment_captured(order)
        return order

    def _after_payment_captured(self, order: Order) -> None:
        audit(
            "payment_captured",
            "Order",
            order_id=order.id,
            order_number=order.order_number,
            amount=str(order.total_amount),
            capture_ref=order.payment_reference,
        )
        self.publisher.publish(
            PaymentCaptured,
            order_id=order.id,
            order_number=order.order_number,
            capture_ref=order.payment_reference,
            amount=str(order.total_amount),
            captured_at=utcnow(),
        )
        self.notifier.enqueue(
            NotificationKind.ORDER_STATUS_UPDATE,
            customer_audience(order.user_id),
            {
                "order_id": order.id,
                "order_number": order.order_number,
                "old_status": OrderStatus.PENDING_PAYMENT.value,
                "new_status": OrderStatus.CONFIRMED.value,
            },
        )

    def _after_payment_failed(self, order: Order, reason: str) -> None:
        audit("payment_failed", "Order", order_id=order.id, order_number=order.order_number, reason=reason)
        self.publisher.publish(
            PaymentFailed, order_id=order.id, order_number=order.order_number, reason=reason, failed_at=utcnow()
        )
        self.notifier.enqueue(
            NotificationKind.PAYMENT_FAILED,
            customer_audience(order.user_id),
            {"order_id": order.id, "order_number": order.order_number, "reason": reason},
        )
