"""Process-wide payment gateway.

Capture and refund calls from the order lifecycle go through whatever gateway
is installed here. Until an adapter is installed with ``set_gateway`` the
in-process ``FakeGateway`` is used, which never talks to a processor.
"""

import structlog

from payments.gateway.fake_adapter import FakeGateway
from payments.gateway.port import ChargeResult, PaymentGateway, RefundResult

__all__ = ["ChargeResult", "FakeGateway", "PaymentGateway", "RefundResult", "get_gateway", "reset_gateway", "set_gateway"]

logger = structlog.get_logger(__name__)

_installed: PaymentGateway | None = None


def get_gateway() -> PaymentGateway:
    """The installed gateway, installing a ``FakeGateway`` on first use."""
    global _installed
    if _installed is None:
        _installed = FakeGateway()
    return _installed


def set_gateway(gateway: PaymentGateway) -> None:
    global _installed
    logger.info("Payment gateway installed", gateway=type(gateway).__name__)
    _installed = gateway


def reset_gateway() -> None:
    """Forget the installed gateway; the next ``get_gateway`` starts fresh."""
    global _installed
    _installed = None
