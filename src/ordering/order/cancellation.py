"""Cancellation and refunds: administrative overrides of an order's state.

Both run in one transaction that reads the order under a row lock, so they
cannot interleave with a concurrent status transition. The payment
collaborator is called last, after every database change has been flushed;
if it fails the transaction rolls back and the error reaches the caller.
"""

from decimal import Decimal

import structlog
from sqlalchemy.orm.exc import StaleDataError

from notifications.notification.notification import NotificationKind, customer_audience
from ordering.order.events import OrderCancelled, OrderRefunded
from ordering.order.order import ItemStatus, Order, OrderStatus, PaymentStatus
from payments.gateway import RefundResult
from shared.audit import audit, log_exception
from shared.database import utcnow
from shared.exceptions import (
    InvalidOrderStateError,
    OrderCancellationError,
    RefundFailedError,
    RefundPreconditionError,
    ShopError,
    StaleOrderError,
    ValidationError,
)
from shared.money import ZERO, format_money, parse_decimal, to_money

logger = structlog.get_logger(__name__)

DEFAULT_CANCELLATION_REASON = "User requested"


class OrderCancellationMixin:
    """``cancel_order`` and ``refund_order`` for ``OrderLifecycleManager``."""

    # -------------------------------------------------------------------
    # Cancellation
    # -------------------------------------------------------------------
    def cancel_order(self, order, reason: str | None = None, actor: str | None = None) -> Order:
        """Cancel ``order`` (an ``Order`` or its id), restoring its stock.

        A completed capture is refunded in full as part of the same
        transaction.

        Raises:
            OrderCancellationError: the order is not cancellable, or an
                unexpected failure (original error as ``__cause__``).
            RefundFailedError: the compensating refund failed; the order is
                left as it was.
        """
        order_id = order.id if isinstance(order, Order) else order
        reason_text = reason or DEFAULT_CANCELLATION_REASON

        try:
            with self.session_factory.begin() as session:
                order = self.repository.load_for_update(session, order_id)
                if not order.is_cancellable:
                    raise OrderCancellationError(
                        f"Order cannot be cancelled in current status: {order.status}",
                        order_id=order.id,
                        current_status=order.status,
                    )
                previous_status = order.status

                for item in order.items:
                    self.ledger.restore(
                        item.product_id,
                        item.quantity,
                        session=session,
                        actor=actor or "system",
                        reference=order.order_number,
                    )
                    item.status = ItemStatus.CANCELLED.value

                order.append_note(f"Cancellation reason: {reason_text}")
                order.record_status(OrderStatus.CANCELLED, f"Order cancelled: {reason_text}")
                refund_due = order.has_completed_capture
                session.flush()

                if refund_due:
                    result = self._issue_refund(order, order.total_amount, f"Order cancelled: {reason_text}")
                    self._mark_refunded(order, result, order.total_amount)
                    session.flush()
        except (OrderCancellationError, RefundFailedError, ValidationError):
            raise
        except StaleDataError as e:
            raise StaleOrderError(f"Order {order_id} was modified by another process", order_id=order_id) from e
        except Exception as e:
            log_exception(e, context="order_cancellation", order_id=order_id)
            raise OrderCancellationError("Failed to cancel order", order_id=order_id) from e

        audit(
            "order_cancelled",
            "Order",
            order_id=order.id,
            order_number=order.order_number,
            previous_status=previous_status,
            reason=reason_text,
            refunded=refund_due,
            actor=actor,
        )
        self.publisher.publish(
            OrderCancelled,
            order_id=order.id,
            order_number=order.order_number,
            previous_status=previous_status,
            reason=reason_text,
            refunded=refund_due,
            cancelled_at=utcnow(),
        )
        self.notifier.enqueue(
            NotificationKind.ORDER_CANCELLATION,
            customer_audience(order.user_id),
            {
                "order_id": order.id,
                "order_number": order.order_number,
                "reason": reason_text,
                "refunded": refund_due,
            },
        )
        return order

    # -------------------------------------------------------------------
    # Refund
    # -------------------------------------------------------------------
    def refund_order(self, order, amount=None, reason: str | None = None) -> Order:
        """Refund ``amount`` (default: the order total) and mark the order refunded.

        Raises:
            RefundPreconditionError: the order has no payment capture.
            InvalidOrderStateError: the order was already refunded.
            ValidationError: ``amount`` is not in ``(0, total]``.
            RefundFailedError: the payment collaborator refused the refund.
        """
        order_id = order.id if isinstance(order, Order) else order

        try:
            with self.session_factory.begin() as session:
                order = self.repository.load_for_update(session, order_id)
                if order.status_enum is OrderStatus.REFUNDED or order.payment_status == PaymentStatus.REFUNDED.value:
                    raise InvalidOrderStateError(
                        "Order has already been refunded",
                        order_id=order.id,
                        current_status=order.status,
                    )
                if not order.payment_reference:
                    raise RefundPreconditionError(
                        "Order has no payment capture to refund",
                        order_id=order.id,
                    )

                refund_amount = self._refund_amount(order, amount)
                order.record_status(OrderStatus.REFUNDED, f"Refunded {format_money(refund_amount)}")
                session.flush()

                result = self._issue_refund(order, refund_amount, reason or "Requested by customer")
                self._mark_refunded(order, result, refund_amount)
                session.flush()
        except StaleDataError as e:
            raise StaleOrderError(f"Order {order_id} was modified by another process", order_id=order_id) from e

        audit(
            "order_refunded",
            "Order",
            order_id=order.id,
            order_number=order.order_number,
            amount=str(refund_amount),
            refund_ref=order.refund_reference,
        )
        self.publisher.publish(
            OrderRefunded,
            order_id=order.id,
            order_number=order.order_number,
            amount=str(refund_amount),
            refund_ref=order.refund_reference,
            refunded_at=utcnow(),
        )
        self.notifier.enqueue(
            NotificationKind.REFUND_NOTIFICATION,
            customer_audience(order.user_id),
            {
                "order_id": order.id,
                "order_number": order.order_number,
                "amount": str(refund_amount),
                "currency": order.currency,
            },
        )
        return order

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def _refund_amount(self, order: Order, amount) -> Decimal:
        if amount is None:
            return to_money(order.total_amount)

        parsed = parse_decimal(amount)
        if parsed is None:
            raise ValidationError("Refund amount must be a number", amount=amount)
        parsed = to_money(parsed)
        if parsed <= ZERO or parsed > order.total_amount:
            raise ValidationError(
                "Refund amount must be greater than zero and not exceed the order total",
                amount=parsed,
                total_amount=order.total_amount,
            )
        return parsed

    def _issue_refund(self, order: Order, amount: Decimal, reason: str) -> RefundResult:
        try:
            result = self.gateway.refund(order.payment_reference, amount, reason)
        except ShopError:
            raise
        except Exception as e:
            log_exception(e, context="refund", order_id=order.id)
            raise RefundFailedError(f"Refund failed: {e}", order_id=order.id, amount=amount) from e

        if not result.success:
            logger.error(
                "Refund rejected by payment gateway",
                order_id=order.id,
                amount=str(amount),
                reason=result.failure_reason,
            )
            raise RefundFailedError(
                f"Refund failed: {result.failure_reason}",
                order_id=order.id,
                amount=amount,
                reason=result.failure_reason,
            )
        return result

    def _mark_refunded(self, order: Order, result: RefundResult, amount: Decimal) -> None:
        order.payment_status = PaymentStatus.REFUNDED.value
        order.refund_reference = result.refund_ref
        order.refunded_amount = amount
        for item in order.items:
            if item.status != ItemStatus.CANCELLED.value:
                item.status = ItemStatus.REFUNDED.value
