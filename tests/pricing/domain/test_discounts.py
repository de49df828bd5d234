"""Tests for discount rule parsing and evaluation."""

from decimal import Decimal

from pricing.discounts import BULK_ORDER, FIRST_TIME_CUSTOMER, DiscountCalculator, DiscountRule

FIRST_TIME = {"enabled": True, "percentage": 10, "description": "10% off for first-time customers"}
BULK = {"enabled": True, "percentage": 5, "threshold": 100, "description": "5% off for orders over $100"}


def _no_prior_orders(user_id):
    return False


def _has_prior_orders(user_id):
    return True


class TestDiscountRuleParsing:
    def test_parse_valid_rule(self):
        rule = DiscountRule.parse(BULK_ORDER, BULK)
        assert rule.enabled is True
        assert rule.percentage == Decimal("5")
        assert rule.threshold == Decimal("100")

    def test_description_defaults_from_name(self):
        rule = DiscountRule.parse(BULK_ORDER, {"enabled": True, "percentage": 5})
        assert rule.description == "Bulk order"

    def test_non_mapping_rule_is_skipped(self):
        assert DiscountRule.parse(BULK_ORDER, "5%") is None

    def test_percentage_out_of_range_is_skipped(self):
        assert DiscountRule.parse(BULK_ORDER, {"enabled": True, "percentage": 150}) is None
        assert DiscountRule.parse(BULK_ORDER, {"enabled": True, "percentage": -1}) is None

    def test_unparsable_threshold_is_skipped(self):
        assert DiscountRule.parse(BULK_ORDER, {"enabled": True, "percentage": 5, "threshold": "lots"}) is None


class TestFirstTimeCustomer:
    def test_applies_without_prior_orders(self):
        calc = DiscountCalculator({FIRST_TIME_CUSTOMER: FIRST_TIME}, _no_prior_orders)
        result = calc.evaluate(Decimal("100.00"), user_id=1)
        assert result.total_discount == Decimal("10.00")
        assert result.applied[0].type == FIRST_TIME_CUSTOMER

    def test_skipped_for_returning_customer(self):
        calc = DiscountCalculator({FIRST_TIME_CUSTOMER: FIRST_TIME}, _has_prior_orders)
        result = calc.evaluate(Decimal("100.00"), user_id=1)
        assert result.total_discount == Decimal("0.00")
        assert result.applied == ()

    def test_skipped_for_anonymous_cart(self):
        calc = DiscountCalculator({FIRST_TIME_CUSTOMER: FIRST_TIME}, _no_prior_orders)
        assert calc.evaluate(Decimal("100.00"), user_id=None).total_discount == Decimal("0.00")

    def test_prior_orders_checked_once_per_evaluation(self):
        calls = []

        def check(user_id):
            calls.append(user_id)
            return False

        DiscountCalculator({FIRST_TIME_CUSTOMER: FIRST_TIME}, check).evaluate(Decimal("50.00"), user_id=9)
        assert calls == [9]


class TestBulkOrder:
    def test_applies_at_threshold(self):
        result = DiscountCalculator({BULK_ORDER: BULK}).evaluate(Decimal("100.00"))
        assert result.total_discount == Decimal("5.00")

    def test_below_threshold_reports_remaining(self):
        result = DiscountCalculator({BULK_ORDER: BULK}).evaluate(Decimal("80.00"))
        assert result.total_discount == Decimal("0.00")
        available = result.available[0].as_dict()
        assert available["remaining_for_discount"] == Decimal("20.00")
        assert available["formatted_remaining"] == "$20.00"


class TestCombinedRules:
    def test_discounts_are_additive_in_fixed_order(self):
        rules = {BULK_ORDER: BULK, FIRST_TIME_CUSTOMER: FIRST_TIME}
        result = DiscountCalculator(rules, _no_prior_orders).evaluate(Decimal("200.00"), user_id=1)
        assert [d.type for d in result.applied] == [FIRST_TIME_CUSTOMER, BULK_ORDER]
        assert result.total_discount == Decimal("30.00")
        assert [b["formatted_amount"] for b in result.breakdown] == ["$20.00", "$10.00"]

    def test_disabled_and_unknown_rules_are_ignored(self):
        rules = {
            FIRST_TIME_CUSTOMER: {**FIRST_TIME, "enabled": False},
            "loyalty_points": {"enabled": True, "percentage": 50},
        }
        result = DiscountCalculator(rules, _no_prior_orders).evaluate(Decimal("100.00"), user_id=1)
        assert result.total_discount == Decimal("0.00")
        assert result.available == ()

    def test_total_discount_never_exceeds_subtotal(self):
        rules = {
            FIRST_TIME_CUSTOMER: {"enabled": True, "percentage": 100},
            BULK_ORDER: {"enabled": True, "percentage": 100, "threshold": 0},
        }
        result = DiscountCalculator(rules, _no_prior_orders).evaluate(Decimal("40.00"), user_id=1)
        assert result.total_discount == Decimal("40.00")
