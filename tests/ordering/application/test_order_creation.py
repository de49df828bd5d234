"""Application tests for order creation."""

from decimal import Decimal

import pytest
from inventory.movement import StockMovement
from ordering.order.creation import OrderRequest
from ordering.order.events import OrderCreated
from ordering.order.lifecycle import OrderLifecycleManager
from ordering.order.order import Order, OrderStatus, PaymentStatus
from pricing.config import PricingConfig
from pricing.discounts import FIRST_TIME_CUSTOMER
from shared.exceptions import (
    InsufficientStockError,
    InvalidCartError,
    OrderCreationError,
    ProductNotFoundError,
    ProductUnavailableError,
)
from sqlalchemy import func, select


def _cart(*lines, user_id=1, **extra):
    return {
        "user_id": user_id,
        "user_address_id": 10,
        "items": [{"product_id": product.id, "quantity": quantity} for product, quantity in lines],
        "payment_method": "card",
        **extra,
    }


def _order_count(session_factory):
    with session_factory() as session:
        return session.scalar(select(func.count()).select_from(Order))


class TestCreateOrder:
    def test_creates_pending_payment_order(self, manager, make_product):
        product = make_product(price="12.50", stock=5)
        order = manager.create_order(_cart((product, 2)))

        assert order.id is not None
        assert order.status == OrderStatus.PENDING_PAYMENT.value
        assert order.payment_status == PaymentStatus.PENDING.value
        assert order.version == 1

    def test_order_number_format(self, manager, make_product):
        order = manager.create_order(_cart((make_product(), 1)))
        assert order.order_number.startswith("ORD-")
        suffix = order.order_number[len("ORD-") :]
        assert len(suffix) == 10
        assert suffix == suffix.upper()

    def test_order_numbers_are_unique(self, manager, make_product):
        product = make_product(stock=20)
        numbers = {manager.create_order(_cart((product, 1))).order_number for _ in range(5)}
        assert len(numbers) == 5

    def test_items_snapshot_product_prices(self, manager, make_product):
        kibble = make_product(name="Kibble", price="20.00", stock=5)
        treats = make_product(name="Treats", price="3.25", stock=5)
        order = manager.create_order(_cart((kibble, 1), (treats, 4)))

        assert [(i.product_name, i.quantity, i.unit_price, i.total_price) for i in order.items] == [
            ("Kibble", 1, Decimal("20.00"), Decimal("20.00")),
            ("Treats", 4, Decimal("3.25"), Decimal("13.00")),
        ]

    def test_totals(self, manager, make_product):
        product = make_product(price="100.00", stock=5)
        order = manager.create_order(_cart((product, 1), shipping_cost="5.00"))

        assert order.subtotal == Decimal("100.00")
        assert order.discount_total == Decimal("0.00")
        assert order.tax == Decimal("8.50")
        assert order.shipping_cost == Decimal("5.00")
        assert order.total_amount == Decimal("113.50")

    def test_shipping_cost_defaults_to_zero(self, manager, make_product):
        order = manager.create_order(_cart((make_product(price="10.00"), 1)))
        assert order.shipping_cost == Decimal("0.00")

    def test_decrements_stock(self, manager, make_product, stock_of):
        product = make_product(stock=5)
        manager.create_order(_cart((product, 3)))
        assert stock_of(product.id) == 2

    def test_stock_movements_reference_order(self, manager, make_product, session_factory):
        order = manager.create_order(_cart((make_product(stock=5), 2), user_id=77))
        with session_factory() as session:
            movement = session.scalars(select(StockMovement)).one()
        assert movement.reference == order.order_number
        assert movement.actor == "user:77"

    def test_records_initial_history(self, manager, make_product):
        order = manager.create_order(_cart((make_product(), 1)))
        history = manager.history(order.id)
        assert [h.status for h in history] == [OrderStatus.PENDING_PAYMENT.value]

    def test_accepts_request_model(self, manager, make_product):
        product = make_product()
        command = OrderRequest(user_id=3, items=[{"product_id": product.id, "quantity": 1}], payment_method="paypal")
        assert manager.create_order(command).payment_method == "paypal"

    def test_publishes_event_and_notifies_staff(self, manager, make_product, publisher, dispatcher):
        order = manager.create_order(_cart((make_product(), 2)))

        [event] = [e for e in publisher.published if isinstance(e, OrderCreated)]
        assert event.order_number == order.order_number

        [message] = dispatcher.messages_of("NewOrderStaff")
        assert message["audience"] == "fulfillment-staff"
        assert message["payload"]["item_count"] == 2


class TestFirstTimeDiscount:
    @pytest.fixture()
    def discounted_manager(self, session_factory, gateway, notifier, publisher):
        config = PricingConfig(
            global_tax_rate="8.5",
            discount_rules={FIRST_TIME_CUSTOMER: {"enabled": True, "percentage": 10}},
        )
        return OrderLifecycleManager(
            session_factory, pricing=config, gateway=gateway, notifier=notifier, publisher=publisher
        )

    def test_first_order_is_discounted(self, discounted_manager, make_product):
        order = discounted_manager.create_order(_cart((make_product(price="100.00", stock=5), 1)))
        assert order.discount_total == Decimal("10.00")
        assert order.tax == Decimal("7.65")
        assert order.total_amount == Decimal("97.65")

    def test_second_order_is_not(self, discounted_manager, make_product):
        product = make_product(price="100.00", stock=5)
        discounted_manager.create_order(_cart((product, 1)))
        second = discounted_manager.create_order(_cart((product, 1)))
        assert second.discount_total == Decimal("0.00")

    def test_cancelled_orders_do_not_count(self, discounted_manager, make_product):
        product = make_product(price="100.00", stock=5)
        first = discounted_manager.create_order(_cart((product, 1)))
        discounted_manager.cancel_order(first)
        again = discounted_manager.create_order(_cart((product, 1)))
        assert again.discount_total == Decimal("10.00")


class TestIdempotency:
    def test_replay_returns_same_order(self, manager, make_product, stock_of, session_factory):
        product = make_product(stock=5)
        first = manager.create_order(_cart((product, 2)), idempotency_key="checkout-1")
        second = manager.create_order(_cart((product, 2)), idempotency_key="checkout-1")

        assert second.id == first.id
        assert stock_of(product.id) == 3
        assert _order_count(session_factory) == 1

    def test_replay_does_not_notify_again(self, manager, make_product, dispatcher):
        product = make_product(stock=5)
        manager.create_order(_cart((product, 1)), idempotency_key="checkout-2")
        manager.create_order(_cart((product, 1)), idempotency_key="checkout-2")
        assert len(dispatcher.messages_of("NewOrderStaff")) == 1

    def test_replay_ignores_changed_payload(self, manager, make_product):
        product = make_product(stock=5)
        first = manager.create_order(_cart((product, 1)), idempotency_key="checkout-3")
        replay = manager.create_order(_cart((product, 4)), idempotency_key="checkout-3")
        assert replay.items[0].quantity == first.items[0].quantity == 1

    def test_replay_with_malformed_body_returns_existing_order(self, manager, make_product):
        product = make_product(stock=5)
        first = manager.create_order(_cart((product, 1)), idempotency_key="checkout-4")
        replay = manager.create_order({"items": "garbled"}, idempotency_key="checkout-4")
        assert replay.id == first.id

    def test_malformed_body_with_fresh_key_is_rejected(self, manager):
        with pytest.raises(InvalidCartError):
            manager.create_order({"items": "garbled"}, idempotency_key="checkout-5")

    def test_key_generated_when_absent(self, manager, make_product):
        product = make_product(stock=5)
        first = manager.create_order(_cart((product, 1)))
        second = manager.create_order(_cart((product, 1)))
        assert first.idempotency_key and second.idempotency_key
        assert first.idempotency_key != second.idempotency_key


class TestCreationFailures:
    def test_insufficient_stock_propagates_verbatim(self, manager, make_product, stock_of, session_factory):
        product = make_product(stock=1)
        with pytest.raises(InsufficientStockError) as exc_info:
            manager.create_order(_cart((product, 2)))
        assert exc_info.value.requested == 2
        assert exc_info.value.available == 1
        assert stock_of(product.id) == 1
        assert _order_count(session_factory) == 0

    def test_no_partial_decrements(self, manager, make_product, stock_of, session_factory):
        plenty = make_product(stock=10)
        scarce = make_product(stock=1)
        with pytest.raises(InsufficientStockError):
            manager.create_order(_cart((plenty, 3), (scarce, 2)))
        assert stock_of(plenty.id) == 10
        assert stock_of(scarce.id) == 1
        assert _order_count(session_factory) == 0

    def test_duplicate_lines_are_checked_together(self, manager, make_product, stock_of):
        product = make_product(stock=3)
        with pytest.raises(InsufficientStockError) as exc_info:
            manager.create_order(_cart((product, 2), (product, 2)))
        assert exc_info.value.requested == 4
        assert stock_of(product.id) == 3

    def test_missing_product(self, manager):
        with pytest.raises(ProductNotFoundError):
            manager.create_order({"user_id": 1, "items": [{"product_id": 404, "quantity": 1}], "payment_method": "card"})

    def test_inactive_product(self, manager, make_product, stock_of):
        product = make_product(stock=5, is_active=False)
        with pytest.raises(ProductUnavailableError):
            manager.create_order(_cart((product, 1)))
        assert stock_of(product.id) == 5

    @pytest.mark.parametrize(
        "payload",
        [
            {"user_id": 1, "items": [], "payment_method": "card"},
            {"user_id": 1, "items": [{"product_id": 1, "quantity": 0}], "payment_method": "card"},
            {"user_id": 1, "items": [{"product_id": 1, "quantity": 1}]},
            {"items": [{"product_id": 1, "quantity": 1}], "payment_method": "card"},
            {"user_id": 1, "items": [{"product_id": 1, "quantity": 1}], "payment_method": "card", "shipping_cost": "-1"},
            "not a cart",
        ],
    )
    def test_malformed_requests(self, manager, payload):
        with pytest.raises(InvalidCartError):
            manager.create_order(payload)

    def test_unexpected_failures_are_wrapped(self, manager, make_product, stock_of, monkeypatch):
        product = make_product(stock=5)

        def explode(*args, **kwargs):
            raise RuntimeError("disk full")

        monkeypatch.setattr(manager.ledger, "decrement", explode)
        with pytest.raises(OrderCreationError) as exc_info:
            manager.create_order(_cart((product, 1)))
        assert exc_info.value.message == "Failed to create order"
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert stock_of(product.id) == 5

    def test_notification_failure_does_not_undo_order(self, manager, make_product, dispatcher, session_factory):
        dispatcher.configure(should_succeed=False)
        order = manager.create_order(_cart((make_product(), 1)))
        assert order.id is not None
        assert _order_count(session_factory) == 1
