"""Pricing engine: authoritative cart totals.

``compute_totals`` is a pure function of the cart lines, the injected
``PricingConfig`` snapshot and the prior-orders check used by the
first-time-customer rule. It has no other side effects and may be called any
number of times per request.

Configured values are resolved through fail-soft fallback chains:

* delivery fee: store fee → global fee → cached default → ``DEFAULT_DELIVERY_FEE``
* tax rate:     global rate → cached default → ``DEFAULT_TAX_RATE``

Each rejected link is logged; pricing itself never fails because of bad
configuration.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

import structlog

from pricing.cart import CartLine, parse_cart
from pricing.config import PricingConfig
from pricing.discounts import AppliedDiscount, AvailableDiscount, DiscountCalculator, PriorOrdersCheck
from shared.money import ZERO, parse_decimal, percentage_of, to_money

logger = structlog.get_logger(__name__)

DEFAULT_DELIVERY_FEE = Decimal("4.99")
DEFAULT_TAX_RATE = Decimal("8.5")


@dataclass(frozen=True)
class PricingResult:
    subtotal: Decimal
    discount: Decimal
    delivery_fee: Decimal
    tax: Decimal
    total: Decimal
    breakdown: list[dict] = field(default_factory=list)
    applied_discounts: tuple[AppliedDiscount, ...] = ()
    available_discounts: tuple[AvailableDiscount, ...] = ()
    lines: tuple[CartLine, ...] = ()

    def as_dict(self) -> dict:
        return {
            "subtotal": self.subtotal,
            "discount": self.discount,
            "delivery_fee": self.delivery_fee,
            "tax": self.tax,
            "total": self.total,
            "discount_breakdown": self.breakdown,
            "applied_discounts": [
                {"type": d.type, "description": d.description, "amount": d.amount} for d in self.applied_discounts
            ],
            "available_discounts": [d.as_dict() for d in self.available_discounts],
        }


class PricingEngine:
    def __init__(self, config: PricingConfig, has_prior_orders: PriorOrdersCheck | None = None) -> None:
        self.config = config
        self.discounts = DiscountCalculator(config.discount_rules, has_prior_orders)

    def compute_totals(
        self,
        cart_items: Any,
        user_id: int | None = None,
        store_id: int | None = None,
        *,
        allow_empty: bool = False,
        delivery_fee: Decimal | None = None,
    ) -> PricingResult:
        """Price ``cart_items`` for ``user_id``.

        Args:
            cart_items: Sequence of cart lines (dicts or ``CartLine``).
            user_id: Customer, needed for the first-time-customer rule.
            store_id: Store whose delivery fee takes precedence.
            allow_empty: Accept an empty cart (all-zero totals).
            delivery_fee: Externally computed fee (e.g. carrier shipping cost)
                that replaces the configured fee chain.

        Raises:
            InvalidCartError: when any line is malformed.
        """
        lines = parse_cart(cart_items, allow_empty=allow_empty)
        subtotal = to_money(sum((line.line_total for line in lines), ZERO))

        discounts = self.discounts.evaluate(subtotal, user_id)
        discount = discounts.total_discount

        if not lines:
            return PricingResult(
                subtotal=ZERO,
                discount=ZERO,
                delivery_fee=ZERO,
                tax=ZERO,
                total=ZERO,
                available_discounts=discounts.available,
            )

        if delivery_fee is None:
            fee = self.resolve_delivery_fee(store_id)
        else:
            fee = to_money(delivery_fee)
        tax = percentage_of(subtotal - discount, self.resolve_tax_rate())
        total = subtotal - discount + fee + tax

        return PricingResult(
            subtotal=subtotal,
            discount=discount,
            delivery_fee=fee,
            tax=tax,
            total=total,
            breakdown=discounts.breakdown,
            applied_discounts=discounts.applied,
            available_discounts=discounts.available,
            lines=tuple(lines),
        )

    def available_discounts(self, subtotal: Decimal, user_id: int | None = None) -> list[dict]:
        """Discounts ``user_id`` qualifies for (or could unlock) at ``subtotal``."""
        result = self.discounts.evaluate(to_money(subtotal), user_id)
        return [discount.as_dict() for discount in result.available]

    # -------------------------------------------------------------------
    # Fallback chains
    # -------------------------------------------------------------------
    def resolve_delivery_fee(self, store_id: int | None = None) -> Decimal:
        candidates = []
        if store_id is not None and store_id in self.config.store_delivery_fees:
            candidates.append(("store", self.config.store_delivery_fees[store_id]))
        candidates.append(("global", self.config.global_delivery_fee))
        candidates.append(("default", self.config.default_delivery_fee))

        for source, raw in candidates:
            if raw is None:
                continue
            fee = parse_decimal(raw)
            if fee is None or fee < 0:
                logger.warning("Invalid delivery fee configured, falling back", source=source, store_id=store_id, value=str(raw))
                continue
            return to_money(fee)
        return DEFAULT_DELIVERY_FEE

    def resolve_tax_rate(self) -> Decimal:
        for source, raw in (("global", self.config.global_tax_rate), ("default", self.config.default_tax_rate)):
            if raw is None:
                continue
            rate = parse_decimal(raw)
            if rate is None or rate < 0 or rate > 100:
                logger.warning("Invalid tax rate configured, falling back", source=source, value=str(raw))
                continue
            return rate
        return DEFAULT_TAX_RATE
