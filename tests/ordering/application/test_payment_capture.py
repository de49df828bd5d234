"""Application tests for payment capture."""

import pytest
from ordering.order.events import PaymentCaptured, PaymentFailed
from ordering.order.order import OrderStatus, PaymentStatus
from shared.exceptions import InvalidOrderStateError, PaymentFailedError


class TestSuccessfulCapture:
    def test_confirms_order(self, manager, place_order):
        order, _ = place_order()
        captured = manager.capture_payment(order)

        assert captured.status == OrderStatus.CONFIRMED.value
        assert captured.payment_status == PaymentStatus.COMPLETED.value
        assert captured.payment_reference.startswith("fake_cap_")

    def test_charges_order_total_once(self, manager, gateway, place_order):
        order, _ = place_order(quantity=2, price="10.00")
        manager.capture_payment(order.id)

        [call] = gateway.calls_to("capture")
        assert call["amount"] == order.total_amount
        assert call["idempotency_key"] == order.idempotency_key
        assert call["payment_method"] == "card"

    def test_records_history(self, manager, place_order):
        order, _ = place_order()
        manager.capture_payment(order)

        history = manager.history(order.id)
        assert [h.status for h in history] == ["pending_payment", "confirmed"]
        assert history[-1].notes == "Order confirmed after successful payment"

    def test_publishes_event_and_notifies_customer(self, manager, place_order, publisher, dispatcher):
        order, _ = place_order(user_id=42)
        manager.capture_payment(order)

        assert any(isinstance(e, PaymentCaptured) and e.order_id == order.id for e in publisher.published)
        [message] = dispatcher.messages_of("OrderStatusUpdate")
        assert message["audience"] == "customer:42"
        assert message["payload"]["new_status"] == "confirmed"

    def test_bumps_version(self, manager, place_order):
        order, _ = place_order()
        assert manager.capture_payment(order).version == order.version + 1


class TestFailedCapture:
    def test_declined_capture_is_persisted_then_raised(self, manager, gateway, place_order):
        gateway.configure(should_succeed=False, failure_reason="Insufficient funds")
        order, _ = place_order()

        with pytest.raises(PaymentFailedError) as exc_info:
            manager.capture_payment(order)
        assert exc_info.value.context["reason"] == "Insufficient funds"

        stored = manager.get_order(order.id)
        assert stored.status == OrderStatus.PAYMENT_FAILED.value
        assert stored.payment_status == PaymentStatus.FAILED.value
        assert manager.history(order.id)[-1].notes == "Payment failed: Insufficient funds"

    def test_gateway_exception_counts_as_failure(self, manager, gateway, place_order, monkeypatch):
        order, _ = place_order()

        def unreachable(*args, **kwargs):
            raise ConnectionError("gateway timeout")

        monkeypatch.setattr(gateway, "capture", unreachable)
        with pytest.raises(PaymentFailedError):
            manager.capture_payment(order)
        assert manager.get_order(order.id).status == OrderStatus.PAYMENT_FAILED.value

    def test_failure_notifies_customer(self, manager, gateway, place_order, publisher, dispatcher):
        gateway.configure(should_succeed=False)
        order, _ = place_order()
        with pytest.raises(PaymentFailedError):
            manager.capture_payment(order)

        assert any(isinstance(e, PaymentFailed) for e in publisher.published)
        assert len(dispatcher.messages_of("PaymentFailed")) == 1

    def test_failure_keeps_stock_reserved(self, manager, gateway, place_order, stock_of):
        gateway.configure(should_succeed=False)
        order, product = place_order(quantity=3, stock=5)
        with pytest.raises(PaymentFailedError):
            manager.capture_payment(order)
        assert stock_of(product.id) == 2

    def test_failed_order_can_be_retried(self, manager, order_in):
        order, _ = order_in("payment_failed")
        retried = manager.capture_payment(order)
        assert retried.status == OrderStatus.CONFIRMED.value
        assert [h.status for h in manager.history(order.id)] == ["pending_payment", "payment_failed", "confirmed"]


class TestCaptureState:
    @pytest.mark.parametrize("status", ["confirmed", "processing", "shipped", "delivered", "cancelled", "refunded"])
    def test_rejects_orders_past_payment(self, manager, gateway, order_in, status):
        order, _ = order_in(status)
        captures = len(gateway.calls_to("capture"))

        with pytest.raises(InvalidOrderStateError):
            manager.capture_payment(order)
        assert len(gateway.calls_to("capture")) == captures
        assert manager.get_order(order.id).status == status
