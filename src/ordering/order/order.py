"""Order, OrderItem and OrderStatusHistory: the persisted order record.

An order moves along two independent paths:

    Fulfillment (OrderStatusMachine, ``ordering.order.status``):
        CONFIRMED → PROCESSING → SHIPPED → DELIVERED (skip-ahead allowed)

    Administrative overrides (OrderLifecycleManager):
        PENDING_PAYMENT → CONFIRMED | PAYMENT_FAILED    (payment capture)
        PENDING_PAYMENT | CONFIRMED | PROCESSING → CANCELLED
        any captured order → REFUNDED

Orders are never deleted. ``version`` is an optimistic-lock counter: a flush
that finds the row changed underneath raises ``StaleDataError``.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.database import Base, utcnow
from shared.money import ZERO


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING_PAYMENT = "pending_payment"
    PAYMENT_FAILED = "payment_failed"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentStatus(Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class ItemStatus(Enum):
    PENDING = "pending"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


# States from which cancellation is allowed
CANCELLABLE_STATES = frozenset({OrderStatus.PENDING_PAYMENT, OrderStatus.CONFIRMED, OrderStatus.PROCESSING})


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------
class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint("subtotal >= 0", name="ck_orders_subtotal_non_negative"),
        CheckConstraint("discount_total >= 0", name="ck_orders_discount_non_negative"),
        CheckConstraint("tax >= 0", name="ck_orders_tax_non_negative"),
        CheckConstraint("shipping_cost >= 0", name="ck_orders_shipping_non_negative"),
        CheckConstraint("total_amount >= 0", name="ck_orders_total_non_negative"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    order_number: Mapped[str] = mapped_column(String(32), unique=True)
    user_id: Mapped[int] = mapped_column(Integer, index=True)
    user_address_id: Mapped[int | None] = mapped_column(Integer)
    delivery_slot_id: Mapped[int | None] = mapped_column(Integer)
    store_id: Mapped[int | None] = mapped_column(ForeignKey("stores.id", ondelete="SET NULL"))

    subtotal: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=ZERO)
    discount_total: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=ZERO)
    tax: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=ZERO)
    shipping_cost: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=ZERO)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=ZERO)
    currency: Mapped[str] = mapped_column(String(3), default="USD")

    status: Mapped[str] = mapped_column(String(30), default=OrderStatus.PENDING_PAYMENT.value, index=True)
    payment_method: Mapped[str] = mapped_column(String(50))
    payment_status: Mapped[str] = mapped_column(String(30), default=PaymentStatus.PENDING.value)
    payment_reference: Mapped[str | None] = mapped_column(String(255))
    refund_reference: Mapped[str | None] = mapped_column(String(255))
    refunded_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    notes: Mapped[str | None] = mapped_column(Text)
    idempotency_key: Mapped[str] = mapped_column(String(255), unique=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    items: Mapped[list["OrderItem"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="OrderItem.id",
    )
    status_history: Mapped[list["OrderStatusHistory"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="OrderStatusHistory.id",
    )

    __mapper_args__ = {"version_id_col": version}

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    @property
    def status_enum(self) -> OrderStatus:
        return OrderStatus(self.status)

    @property
    def is_cancellable(self) -> bool:
        return self.status_enum in CANCELLABLE_STATES

    @property
    def has_completed_capture(self) -> bool:
        return bool(self.payment_reference) and self.payment_status == PaymentStatus.COMPLETED.value

    def record_status(self, status: OrderStatus, notes: str | None = None) -> "OrderStatusHistory":
        """Set ``status`` and append the matching history row."""
        self.status = status.value
        entry = OrderStatusHistory(status=status.value, notes=notes)
        self.status_history.append(entry)
        return entry

    def append_note(self, note: str) -> None:
        self.notes = f"{self.notes or ''}\n{note}"

    def __repr__(self) -> str:
        return f"<Order id={self.id} number={self.order_number!r} status={self.status}>"


class OrderItem(Base):
    __tablename__ = "order_items"
    __table_args__ = (CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    order_id: Mapped[int] = mapped_column(ForeignKey("orders.id"), index=True)
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id"))
    store_id: Mapped[int | None] = mapped_column(ForeignKey("stores.id", ondelete="SET NULL"))
    product_name: Mapped[str] = mapped_column(String(255))
    quantity: Mapped[int] = mapped_column(Integer)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    total_price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    status: Mapped[str] = mapped_column(String(30), default=ItemStatus.PENDING.value)

    order: Mapped[Order] = relationship(back_populates="items")


class OrderStatusHistory(Base):
    """Append-only log of status changes."""

    __tablename__ = "order_status_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    order_id: Mapped[int] = mapped_column(ForeignKey("orders.id"), index=True)
    status: Mapped[str] = mapped_column(String(30))
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    order: Mapped[Order] = relationship(back_populates="status_history")
