"""Tests for the pricing engine: totals, fee and tax fallback chains."""

from decimal import Decimal

import pytest
from pricing.config import PricingConfig
from pricing.discounts import BULK_ORDER, FIRST_TIME_CUSTOMER
from pricing.engine import DEFAULT_DELIVERY_FEE, DEFAULT_TAX_RATE, PricingEngine
from shared.exceptions import InvalidCartError


def _line(product_id=1, quantity=1, unit_price="10.00", **extra):
    return {"product_id": product_id, "quantity": quantity, "unit_price": unit_price, **extra}


def _engine(has_prior_orders=None, **config):
    config.setdefault("global_delivery_fee", "4.99")
    config.setdefault("global_tax_rate", "8.5")
    return PricingEngine(PricingConfig(**config), has_prior_orders=has_prior_orders)


class TestComputeTotals:
    def test_subtotal_is_sum_of_lines(self):
        result = _engine().compute_totals([_line(quantity=2, unit_price="3.25"), _line(2, 1, "10.00")])
        assert result.subtotal == Decimal("16.50")

    def test_total_identity(self):
        result = _engine().compute_totals([_line(quantity=3, unit_price="19.99")])
        assert result.total == result.subtotal - result.discount + result.delivery_fee + result.tax

    def test_tax_on_subtotal(self):
        result = _engine().compute_totals([_line(unit_price="100.00")])
        assert result.tax == Decimal("8.50")
        assert result.delivery_fee == Decimal("4.99")
        assert result.total == Decimal("113.49")

    def test_first_time_customer_scenario(self):
        # Subtotal 100, 10% first-time discount, tax on the discounted 90
        engine = _engine(
            has_prior_orders=lambda user_id: False,
            discount_rules={FIRST_TIME_CUSTOMER: {"enabled": True, "percentage": 10}},
        )
        result = engine.compute_totals([_line(unit_price="100.00")], user_id=5)
        assert result.discount == Decimal("10.00")
        assert result.tax == Decimal("7.65")
        assert result.total == Decimal("100.00") - Decimal("10.00") + Decimal("4.99") + Decimal("7.65")

    def test_tax_rounds_half_up(self):
        result = _engine(global_tax_rate="10").compute_totals([_line(unit_price="0.05")])
        assert result.tax == Decimal("0.01")

    def test_delivery_fee_override(self):
        result = _engine().compute_totals([_line()], delivery_fee=Decimal("12.30"))
        assert result.delivery_fee == Decimal("12.30")

    def test_malformed_cart_raises(self):
        with pytest.raises(InvalidCartError):
            _engine().compute_totals([_line(quantity=0)])

    def test_empty_cart_raises_by_default(self):
        with pytest.raises(InvalidCartError):
            _engine().compute_totals([])

    def test_empty_cart_allowed_gives_zero_totals(self):
        engine = _engine(discount_rules={BULK_ORDER: {"enabled": True, "percentage": 5, "threshold": 100}})
        result = engine.compute_totals([], allow_empty=True)
        assert result.total == Decimal("0.00")
        assert result.delivery_fee == Decimal("0.00")
        assert result.available_discounts[0].remaining_for_discount == Decimal("100.00")

    def test_as_dict_exposes_breakdown(self):
        engine = _engine(discount_rules={BULK_ORDER: {"enabled": True, "percentage": 5, "threshold": 10}})
        data = engine.compute_totals([_line(unit_price="20.00")]).as_dict()
        assert data["discount"] == Decimal("1.00")
        assert data["discount_breakdown"][0]["formatted_amount"] == "$1.00"
        assert data["applied_discounts"][0]["type"] == BULK_ORDER

    def test_pure_given_same_inputs(self):
        engine = _engine()
        lines = [_line(quantity=2, unit_price="7.77")]
        assert engine.compute_totals(lines) == engine.compute_totals(lines)


class TestDeliveryFeeChain:
    def test_store_fee_wins(self):
        engine = _engine(store_delivery_fees={3: Decimal("2.50")})
        assert engine.resolve_delivery_fee(3) == Decimal("2.50")

    def test_unknown_store_uses_global(self):
        engine = _engine(store_delivery_fees={3: Decimal("2.50")})
        assert engine.resolve_delivery_fee(4) == Decimal("4.99")

    def test_invalid_store_fee_falls_back_to_global(self):
        engine = _engine(store_delivery_fees={3: "-1"})
        assert engine.resolve_delivery_fee(3) == Decimal("4.99")

    def test_invalid_global_falls_back_to_default(self):
        engine = _engine(global_delivery_fee="free", default_delivery_fee=Decimal("3.00"))
        assert engine.resolve_delivery_fee() == Decimal("3.00")

    def test_everything_invalid_uses_constant(self):
        engine = _engine(global_delivery_fee="free", default_delivery_fee="nope")
        assert engine.resolve_delivery_fee() == DEFAULT_DELIVERY_FEE

    def test_zero_fee_is_valid(self):
        assert _engine(global_delivery_fee=0).resolve_delivery_fee() == Decimal("0.00")


class TestTaxRateChain:
    @pytest.mark.parametrize("raw", ["abc", -1, 101, None, True])
    def test_invalid_rate_uses_constant(self, raw):
        assert _engine(global_tax_rate=raw).resolve_tax_rate() == DEFAULT_TAX_RATE

    def test_invalid_rate_uses_cached_default_first(self):
        engine = _engine(global_tax_rate="abc", default_tax_rate=Decimal("7"))
        assert engine.resolve_tax_rate() == Decimal("7")

    def test_float_rate(self):
        assert _engine(global_tax_rate=8.25).resolve_tax_rate() == Decimal("8.25")
