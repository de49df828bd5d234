"""Configurable fake payment gateway for development and testing.

Simulates a processor without any external calls. Captures and refunds can be
made to fail independently, and every call is recorded in ``calls`` so tests
can assert on what the lifecycle asked for.

Captures are idempotent per key, like real processors: repeating a key
returns the first result without charging again.
"""

from decimal import Decimal
from uuid import uuid4

from payments.gateway.port import ChargeResult, PaymentGateway, RefundResult


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.refunds_succeed: bool = True
        self.failure_reason: str = "Card declined"
        self.calls: list[dict] = []
        self._captures: dict[str, ChargeResult] = {}

    def configure(
        self,
        should_succeed: bool = True,
        failure_reason: str = "Card declined",
        refunds_succeed: bool | None = None,
    ) -> None:
        """Configure gateway behavior at runtime.

        ``refunds_succeed`` defaults to ``should_succeed``.
        """
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.refunds_succeed = should_succeed if refunds_succeed is None else refunds_succeed

    def capture(
        self,
        amount: Decimal,
        currency: str,
        payment_method: str,
        idempotency_key: str,
    ) -> ChargeResult:
        self.calls.append(
            {
                "method": "capture",
                "amount": amount,
                "currency": currency,
                "payment_method": payment_method,
                "idempotency_key": idempotency_key,
            }
        )

        if idempotency_key in self._captures:
            return self._captures[idempotency_key]

        if not self.should_succeed:
            return ChargeResult(success=False, gateway_status="failed", failure_reason=self.failure_reason)

        result = ChargeResult(
            success=True,
            capture_ref=f"fake_cap_{uuid4().hex[:12]}",
            gateway_status="succeeded",
        )
        self._captures[idempotency_key] = result
        return result

    def refund(self, capture_ref: str, amount: Decimal, reason: str) -> RefundResult:
        self.calls.append(
            {
                "method": "refund",
                "capture_ref": capture_ref,
                "amount": amount,
                "reason": reason,
            }
        )

        if not self.refunds_succeed:
            return RefundResult(success=False, gateway_status="failed", failure_reason=self.failure_reason)
        return RefundResult(
            success=True,
            refund_ref=f"fake_ref_{uuid4().hex[:12]}",
            amount=amount,
            gateway_status="succeeded",
        )

    def calls_to(self, method: str) -> list[dict]:
        return [call for call in self.calls if call["method"] == method]
