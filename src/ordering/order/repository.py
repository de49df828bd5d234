"""Order repository: reads and locked loads of orders.

Writes happen through ``OrderLifecycleManager`` and ``OrderStatusMachine``;
both load the order with ``for_update`` inside their own transaction.
"""

from sqlalchemy import exists, select
from sqlalchemy.orm import Session, sessionmaker

from ordering.order.order import Order, OrderStatus, OrderStatusHistory
from shared.exceptions import OrderNotFoundError


class OrderRepository:
    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self.session_factory = session_factory

    def get(self, order_id: int) -> Order:
        with self.session_factory() as session:
            order = session.get(Order, order_id)
        if order is None:
            raise OrderNotFoundError(f"Order {order_id} not found", order_id=order_id)
        return order

    def get_by_number(self, order_number: str) -> Order:
        with self.session_factory() as session:
            order = session.scalars(select(Order).where(Order.order_number == order_number)).one_or_none()
        if order is None:
            raise OrderNotFoundError(f"Order {order_number} not found", order_number=order_number)
        return order

    def find_by_idempotency_key(self, idempotency_key: str, session: Session | None = None) -> Order | None:
        stmt = select(Order).where(Order.idempotency_key == idempotency_key)
        if session is not None:
            return session.scalars(stmt).one_or_none()
        with self.session_factory() as new_session:
            return new_session.scalars(stmt).one_or_none()

    def history(self, order_id: int) -> list[OrderStatusHistory]:
        with self.session_factory() as session:
            if session.get(Order, order_id) is None:
                raise OrderNotFoundError(f"Order {order_id} not found", order_id=order_id)
            return list(
                session.scalars(
                    select(OrderStatusHistory)
                    .where(OrderStatusHistory.order_id == order_id)
                    .order_by(OrderStatusHistory.id)
                )
            )

    def load_for_update(self, session: Session, order_id: int) -> Order:
        """Load ``order_id`` locked for the rest of ``session``'s transaction."""
        order = session.scalars(
            select(Order)
            .where(Order.id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).one_or_none()
        if order is None:
            raise OrderNotFoundError(f"Order {order_id} not found", order_id=order_id)
        return order

    def number_exists(self, session: Session, order_number: str) -> bool:
        return session.scalar(select(exists().where(Order.order_number == order_number)))

    def has_prior_orders(self, session: Session, user_id: int) -> bool:
        """True when ``user_id`` has any order that was not cancelled."""
        return session.scalar(
            select(
                exists().where(
                    Order.user_id == user_id,
                    Order.status != OrderStatus.CANCELLED.value,
                )
            )
        )
