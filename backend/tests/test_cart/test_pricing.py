"""
Tests for checkout price calculation.
"""

from decimal import Decimal

import pytest

from shopcore.core.config import Settings
from shopcore.services.cart import (
    ShippingRule,
    calculate_totals,
    default_shipping_rule,
    shipping_rule_for,
)

STANDARD = ShippingRule(flat_rate=Decimal("10.00"), free_threshold=Decimal("100.00"))


class TestShippingRule:
    """Tests for flat rate shipping with a free threshold."""

    def test_below_threshold_pays_flat_rate(self):
        assert STANDARD.cost_for(Decimal("99.99")) == Decimal("10.00")

    def test_threshold_is_free(self):
        assert STANDARD.cost_for(Decimal("100.00")) == Decimal("0.00")

    def test_empty_cart_ships_free(self):
        assert STANDARD.cost_for(Decimal("0.00")) == Decimal("0.00")

    def test_rule_without_threshold_always_charges(self):
        rule = ShippingRule(flat_rate=Decimal("49.00"))
        assert rule.cost_for(Decimal("5000.00")) == Decimal("49.00")


class TestShippingRuleSelection:
    """Tests for picking the shipping rule from the payment method."""

    def test_cash_on_delivery_uses_courier_fee(self):
        rule = shipping_rule_for("cod", Settings(environment="test"))

        assert rule.flat_rate == Decimal("49.00")
        assert rule.free_threshold is None

    def test_online_payment_uses_standard_rule(self):
        settings = Settings(environment="test")
        assert shipping_rule_for("online", settings) == default_shipping_rule(settings)


class TestCalculateTotals:
    """Tests for calculate_totals."""

    def test_standard_order(self):
        totals = calculate_totals(
            Decimal("80.00"), tax_rate=Decimal("0.10"), shipping_rule=STANDARD
        )

        assert totals.subtotal == Decimal("80.00")
        assert totals.tax_amount == Decimal("8.00")
        assert totals.shipping_cost == Decimal("10.00")
        assert totals.discount_amount == Decimal("0.00")
        assert totals.total == Decimal("98.00")

    def test_free_shipping_order(self):
        totals = calculate_totals(
            Decimal("120.00"), tax_rate=Decimal("0.10"), shipping_rule=STANDARD
        )

        assert totals.shipping_cost == Decimal("0.00")
        assert totals.total == Decimal("132.00")

    def test_tax_is_rounded_half_up(self):
        totals = calculate_totals(
            Decimal("0.05"), tax_rate=Decimal("0.10"), shipping_rule=STANDARD
        )
        assert totals.tax_amount == Decimal("0.01")

    def test_tax_charged_before_discount(self):
        totals = calculate_totals(
            Decimal("80.00"),
            tax_rate=Decimal("0.10"),
            shipping_rule=STANDARD,
            discount_amount=Decimal("20.00"),
        )

        assert totals.tax_amount == Decimal("8.00")
        assert totals.total == Decimal("78.00")

    def test_discount_capped_at_subtotal(self):
        totals = calculate_totals(
            Decimal("30.00"),
            tax_rate=Decimal("0.10"),
            shipping_rule=STANDARD,
            discount_amount=Decimal("50.00"),
        )

        assert totals.discount_amount == Decimal("30.00")
        assert totals.total == Decimal("13.00")

    def test_empty_subtotal_totals_zero(self):
        totals = calculate_totals(
            Decimal("0"), tax_rate=Decimal("0.10"), shipping_rule=STANDARD
        )
        assert totals.total == Decimal("0.00")

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"subtotal": Decimal("-1")},
            {"tax_rate": Decimal("-0.01")},
            {"discount_amount": Decimal("-5")},
        ],
    )
    def test_negative_inputs_rejected(self, kwargs):
        arguments = {
            "subtotal": Decimal("10"),
            "tax_rate": Decimal("0.10"),
            "shipping_rule": STANDARD,
            **kwargs,
        }
        subtotal = arguments.pop("subtotal")

        with pytest.raises(ValueError):
            calculate_totals(subtotal, **arguments)

    def test_breakdown_serializes_as_strings(self):
        totals = calculate_totals(
            Decimal("80.00"), tax_rate=Decimal("0.10"), shipping_rule=STANDARD
        )
        assert totals.to_dict()["total"] == "98.00"
