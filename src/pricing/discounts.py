"""Rule-driven discount evaluation.

Rules come from the ``discount_rules`` setting, a mapping of rule name to
``{enabled, percentage, threshold, description}``. Evaluation is additive
across enabled rules and always runs in the registry's order
(first-time customer, then bulk order), so breakdowns are deterministic.
Unknown or disabled rules are skipped silently; rules whose parameters cannot
be parsed are logged and skipped.
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

import structlog

from shared.money import ZERO, format_money, parse_decimal, percentage_of, to_money

logger = structlog.get_logger(__name__)

FIRST_TIME_CUSTOMER = "first_time_customer"
BULK_ORDER = "bulk_order"

PriorOrdersCheck = Callable[[int], bool]


# ---------------------------------------------------------------------------
# Value objects
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class DiscountRule:
    name: str
    enabled: bool
    percentage: Decimal
    threshold: Decimal
    description: str

    @classmethod
    def parse(cls, name: str, raw: Any) -> "DiscountRule | None":
        """Build a rule from configuration, or ``None`` when it is unusable."""
        if not isinstance(raw, Mapping):
            logger.warning("Skipping malformed discount rule", rule=name)
            return None

        percentage = parse_decimal(raw.get("percentage", 0))
        if percentage is None or percentage < 0 or percentage > 100:
            logger.warning("Skipping discount rule with invalid percentage", rule=name, percentage=raw.get("percentage"))
            return None

        threshold = parse_decimal(raw.get("threshold", 0))
        if threshold is None or threshold < 0:
            logger.warning("Skipping discount rule with invalid threshold", rule=name, threshold=raw.get("threshold"))
            return None

        return cls(
            name=name,
            enabled=bool(raw.get("enabled", False)),
            percentage=percentage,
            threshold=threshold,
            description=str(raw.get("description") or name.replace("_", " ").capitalize()),
        )


@dataclass(frozen=True)
class AppliedDiscount:
    type: str
    description: str
    amount: Decimal

    def as_breakdown(self) -> dict:
        return {
            "description": self.description,
            "amount": self.amount,
            "formatted_amount": format_money(self.amount),
        }


@dataclass(frozen=True)
class AvailableDiscount:
    """A discount the customer qualifies for, or could unlock."""

    type: str
    description: str
    discount_amount: Decimal
    remaining_for_discount: Decimal | None = None

    def as_dict(self) -> dict:
        data = {
            "type": self.type,
            "description": self.description,
            "discount_amount": self.discount_amount,
            "formatted_discount": format_money(self.discount_amount),
        }
        if self.remaining_for_discount is not None:
            data["remaining_for_discount"] = self.remaining_for_discount
            data["formatted_remaining"] = format_money(self.remaining_for_discount)
        return data


@dataclass(frozen=True)
class DiscountOutcome:
    amount: Decimal
    remaining: Decimal | None = None


@dataclass(frozen=True)
class DiscountResult:
    total_discount: Decimal
    applied: tuple[AppliedDiscount, ...]
    available: tuple[AvailableDiscount, ...]

    @property
    def breakdown(self) -> list[dict]:
        return [discount.as_breakdown() for discount in self.applied]


# ---------------------------------------------------------------------------
# Rule evaluators
# ---------------------------------------------------------------------------
def _first_time_customer(rule: DiscountRule, subtotal: Decimal, user_id: int | None, has_prior_orders) -> DiscountOutcome | None:
    if user_id is None or has_prior_orders is None:
        return None
    if has_prior_orders(user_id):
        return None
    return DiscountOutcome(amount=percentage_of(subtotal, rule.percentage))


def _bulk_order(rule: DiscountRule, subtotal: Decimal, user_id: int | None, has_prior_orders) -> DiscountOutcome:  # noqa: ARG001
    if subtotal >= rule.threshold:
        return DiscountOutcome(amount=percentage_of(subtotal, rule.percentage))
    return DiscountOutcome(amount=ZERO, remaining=to_money(rule.threshold - subtotal))


# Insertion order is evaluation priority
DISCOUNT_EVALUATORS: dict[str, Callable[..., DiscountOutcome | None]] = {
    FIRST_TIME_CUSTOMER: _first_time_customer,
    BULK_ORDER: _bulk_order,
}


class DiscountCalculator:
    """Evaluates configured discount rules against a subtotal."""

    def __init__(self, rules: Mapping[str, Any], has_prior_orders: PriorOrdersCheck | None = None) -> None:
        self.rules = rules
        self.has_prior_orders = has_prior_orders

    def evaluate(self, subtotal: Decimal, user_id: int | None = None) -> DiscountResult:
        applied: list[AppliedDiscount] = []
        available: list[AvailableDiscount] = []
        prior_orders = _memoize(self.has_prior_orders)

        for name, evaluator in DISCOUNT_EVALUATORS.items():
            if name not in self.rules:
                continue
            rule = DiscountRule.parse(name, self.rules[name])
            if rule is None or not rule.enabled:
                continue

            outcome = evaluator(rule, subtotal, user_id, prior_orders)
            if outcome is None:
                continue

            available.append(
                AvailableDiscount(
                    type=name,
                    description=rule.description,
                    discount_amount=outcome.amount,
                    remaining_for_discount=outcome.remaining,
                )
            )
            if outcome.amount > 0:
                applied.append(AppliedDiscount(type=name, description=rule.description, amount=outcome.amount))

        total = sum((discount.amount for discount in applied), ZERO)
        # Additive percentages may not push the order below zero
        total = min(total, to_money(subtotal))
        return DiscountResult(total_discount=total, applied=tuple(applied), available=tuple(available))


def _memoize(check: PriorOrdersCheck | None) -> PriorOrdersCheck | None:
    if check is None:
        return None
    cache: dict[int, bool] = {}

    def cached(user_id: int) -> bool:
        if user_id not in cache:
            cache[user_id] = bool(check(user_id))
        return cache[user_id]

    return cached
