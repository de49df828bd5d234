import pytest
from ordering.order.order import OrderStatus
from shared.exceptions import PaymentFailedError


def _cart_for(*lines, user_id=1, **extra):
    return {
        "user_id": user_id,
        "user_address_id": 10,
        "items": [{"product_id": product.id, "quantity": quantity} for product, quantity in lines],
        "payment_method": "card",
        **extra,
    }


@pytest.fixture()
def cart_for():
    """Build a checkout payload from ``(product, quantity)`` pairs."""
    return _cart_for


@pytest.fixture()
def place_order(manager, make_product):
    """Place a pending-payment order for ``quantity`` units of a fresh product."""

    def _place_order(quantity=1, price="25.00", stock=10, user_id=1):
        product = make_product(price=price, stock=stock)
        return manager.create_order(_cart_for((product, quantity), user_id=user_id)), product

    return _place_order


@pytest.fixture()
def order_in(manager, gateway, place_order, status_machine):
    """Build a persisted order in any reachable status."""

    def _order_in(status, quantity=1, stock=10):
        order, product = place_order(quantity=quantity, stock=stock)
        status = OrderStatus(status)
        if status is OrderStatus.PENDING_PAYMENT:
            return order, product
        if status is OrderStatus.PAYMENT_FAILED:
            gateway.configure(should_succeed=False)
            with pytest.raises(PaymentFailedError):
                manager.capture_payment(order)
            gateway.configure(should_succeed=True)
            return manager.get_order(order.id), product
        if status is OrderStatus.CANCELLED:
            return manager.cancel_order(order), product

        order = manager.capture_payment(order)
        if status is OrderStatus.REFUNDED:
            return manager.refund_order(order), product
        if status is not OrderStatus.CONFIRMED:
            order = status_machine.update_status(order, status)
        return order, product

    return _order_in
