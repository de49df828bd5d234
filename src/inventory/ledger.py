"""Inventory ledger: the only writer of ``Product.stock_quantity``.

Mutations lock the product row (``SELECT ... FOR UPDATE``), re-read the stock
under the lock and then apply a guarded update
(``... WHERE stock_quantity >= :quantity``). The guard keeps the no-oversell
guarantee even on back-ends that ignore row locks.

Every method accepts an optional ``session``. When given, the work joins that
transaction (an order creation decrements all of its lines atomically);
otherwise the ledger runs its own transaction.
"""

from collections.abc import Iterable
from typing import Any

import structlog
from sqlalchemy import select, update
from sqlalchemy.orm import Session, sessionmaker

from catalogue.product.product import Product
from inventory.movement import MovementKind, StockMovement
from shared.audit import audit, audit_on_commit
from shared.database import transaction, utcnow
from shared.exceptions import InsufficientStockError, InvalidQuantityError, ProductNotFoundError

logger = structlog.get_logger(__name__)

_AUDIT_ACTIONS = {
    MovementKind.DECREMENT: "stock_decremented",
    MovementKind.RESTORE: "stock_restored",
}


def _check_quantity(quantity: Any) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidQuantityError("Quantity must be greater than zero", quantity=quantity)


class InventoryLedger:
    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self.session_factory = session_factory

    # -------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------
    def decrement(
        self,
        product_id: int,
        quantity: int,
        *,
        session: Session | None = None,
        actor: str | None = None,
        reference: str | None = None,
    ) -> Product:
        """Take ``quantity`` units of ``product_id`` out of stock.

        Raises:
            InvalidQuantityError: ``quantity`` is not a positive integer.
            ProductNotFoundError: no such product.
            InsufficientStockError: fewer than ``quantity`` units on hand.
        """
        _check_quantity(quantity)

        with transaction(self.session_factory, session) as txn:
            product = self._lock(txn, product_id)
            available = product.stock_quantity

            if available < quantity:
                audit(
                    "insufficient_stock",
                    "Product",
                    product_id=product_id,
                    product_name=product.name,
                    available=available,
                    requested=quantity,
                    actor=actor,
                    reference=reference,
                )
                raise InsufficientStockError(
                    f"Insufficient stock for {product.name}. Available: {available}, Requested: {quantity}",
                    requested=quantity,
                    available=available,
                    product_id=product_id,
                )

            result = txn.execute(
                update(Product)
                .where(Product.id == product_id, Product.stock_quantity >= quantity)
                .values(stock_quantity=Product.stock_quantity - quantity, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                txn.refresh(product)
                raise InsufficientStockError(
                    f"Insufficient stock for {product.name}. Available: {product.stock_quantity}, Requested: {quantity}",
                    requested=quantity,
                    available=product.stock_quantity,
                    product_id=product_id,
                )

            txn.refresh(product)
            self._record(txn, product, MovementKind.DECREMENT, quantity, available, actor, reference)
            return product

    def restore(
        self,
        product_id: int,
        quantity: int,
        *,
        session: Session | None = None,
        actor: str | None = None,
        reference: str | None = None,
    ) -> Product:
        """Put ``quantity`` units of ``product_id`` back into stock."""
        _check_quantity(quantity)

        with transaction(self.session_factory, session) as txn:
            product = self._lock(txn, product_id)
            before = product.stock_quantity

            txn.execute(
                update(Product)
                .where(Product.id == product_id)
                .values(stock_quantity=Product.stock_quantity + quantity, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            txn.refresh(product)
            self._record(txn, product, MovementKind.RESTORE, quantity, before, actor, reference)
            return product

    # -------------------------------------------------------------------
    # Advisory reads (no locks; never a reservation)
    # -------------------------------------------------------------------
    def check_available(self, product_id: int, quantity: int) -> bool:
        _check_quantity(quantity)
        with self.session_factory() as session:
            stock = session.scalar(select(Product.stock_quantity).where(Product.id == product_id))
        return stock is not None and stock >= quantity

    def stock_level(self, product_id: int) -> int:
        with self.session_factory() as session:
            stock = session.scalar(select(Product.stock_quantity).where(Product.id == product_id))
        if stock is None:
            raise ProductNotFoundError(f"Product {product_id} not found", product_id=product_id)
        return stock

    def validate_lines(self, lines: Iterable[Any]) -> list[dict]:
        """Return the under-stocked lines of a prospective order.

        ``lines`` holds mappings (or objects) with ``product_id`` and
        ``quantity``. Nothing is locked or mutated.
        """
        shortages = []
        with self.session_factory() as session:
            for line in lines:
                product_id = _field(line, "product_id")
                quantity = _field(line, "quantity")
                _check_quantity(quantity)

                product = session.get(Product, product_id)
                available = product.stock_quantity if product else 0
                if available < quantity:
                    shortages.append(
                        {
                            "product_id": product_id,
                            "product_name": product.name if product else "Unknown",
                            "requested": quantity,
                            "available": available,
                        }
                    )
        return shortages

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def _lock(self, session: Session, product_id: int) -> Product:
        # populate_existing: a product already in the identity map must be
        # re-read now that the lock is held
        product = session.scalars(
            select(Product)
            .where(Product.id == product_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).one_or_none()
        if product is None:
            raise ProductNotFoundError(f"Product {product_id} not found", product_id=product_id)
        return product

    def _record(self, session, product, kind, quantity, before, actor, reference):
        session.add(
            StockMovement(
                product_id=product.id,
                kind=kind.value,
                quantity=quantity,
                quantity_before=before,
                quantity_after=product.stock_quantity,
                actor=actor,
                reference=reference,
            )
        )
        audit_on_commit(
            session,
            _AUDIT_ACTIONS[kind],
            "Product",
            product_id=product.id,
            product_name=product.name,
            quantity=quantity,
            before=before,
            after=product.stock_quantity,
            actor=actor,
            reference=reference,
        )


def _field(line: Any, name: str) -> Any:
    if isinstance(line, dict):
        return line.get(name)
    return getattr(line, name, None)
