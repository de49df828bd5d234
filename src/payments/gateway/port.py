"""Payment gateway port (abstract interface).

The order lifecycle only ever captures an order total and refunds a previous
capture. Adapters translate these two calls to a concrete processor;
``FakeGateway`` is the in-process default.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class ChargeResult:
    """Result of a capture attempt."""

    success: bool
    capture_ref: str | None = None
    gateway_status: str | None = None
    failure_reason: str | None = None


@dataclass(frozen=True)
class RefundResult:
    """Result of a refund attempt."""

    success: bool
    refund_ref: str | None = None
    amount: Decimal | None = None
    gateway_status: str | None = None
    failure_reason: str | None = None


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    def capture(
        self,
        amount: Decimal,
        currency: str,
        payment_method: str,
        idempotency_key: str,
    ) -> ChargeResult:
        """Capture ``amount`` using ``payment_method``."""
        ...

    @abstractmethod
    def refund(
        self,
        capture_ref: str,
        amount: Decimal,
        reason: str,
    ) -> RefundResult:
        """Refund ``amount`` of a previous capture."""
        ...
