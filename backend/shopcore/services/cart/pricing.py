"""
Checkout price calculation shared by the cart and the order assembler.

Tax is charged on the subtotal before discount; shipping is a flat rate
that drops to zero once the subtotal reaches the free shipping threshold.
Every amount is quantized to cents with ROUND_HALF_UP.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Union

from shopcore.core.config import Settings, get_settings

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

Amount = Union[Decimal, int, str]


def money(value: Amount) -> Decimal:
    """Quantize a value to cents."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class ShippingRule:
    """Flat shipping rate with an optional free shipping threshold."""

    flat_rate: Decimal
    free_threshold: Optional[Decimal] = None

    def cost_for(self, subtotal: Decimal) -> Decimal:
        # Nothing to ship
        if subtotal <= 0:
            return ZERO
        if self.free_threshold is not None and subtotal >= self.free_threshold:
            return ZERO
        return money(self.flat_rate)


@dataclass(frozen=True)
class PriceBreakdown:
    """Frozen monetary totals of a cart or order."""

    subtotal: Decimal
    tax_amount: Decimal
    shipping_cost: Decimal
    discount_amount: Decimal
    total: Decimal

    def to_dict(self) -> dict[str, str]:
        return {
            "subtotal": str(self.subtotal),
            "tax_amount": str(self.tax_amount),
            "shipping_cost": str(self.shipping_cost),
            "discount_amount": str(self.discount_amount),
            "total": str(self.total),
        }


def default_shipping_rule(settings: Optional[Settings] = None) -> ShippingRule:
    """Standard shipping: flat rate, free from the configured threshold."""
    settings = settings or get_settings()
    return ShippingRule(
        flat_rate=settings.default_shipping_cost,
        free_threshold=settings.free_shipping_threshold,
    )


def shipping_rule_for(
    payment_method: Optional[str],
    settings: Optional[Settings] = None,
) -> ShippingRule:
    """
    Shipping rule for a payment method.

    Cash on delivery orders pay a flat courier fee with no free threshold;
    every other method uses the standard rule.
    """
    settings = settings or get_settings()
    if payment_method == "cod":
        return ShippingRule(flat_rate=settings.cod_shipping_cost)
    return default_shipping_rule(settings)


def calculate_totals(
    subtotal: Amount,
    *,
    tax_rate: Amount,
    shipping_rule: ShippingRule,
    discount_amount: Amount = ZERO,
) -> PriceBreakdown:
    """
    Compute the totals of a checkout.

    Args:
        subtotal: Sum of line totals
        tax_rate: Tax rate as a fraction, e.g. 0.10
        shipping_rule: Shipping rule to apply
        discount_amount: Pre-computed discount, capped at the subtotal

    Returns:
        PriceBreakdown with every amount in cents

    Raises:
        ValueError: If subtotal, tax rate or discount is negative

    Example:
        >>> rule = ShippingRule(Decimal("10.00"), Decimal("100.00"))
        >>> calculate_totals(Decimal("50"), tax_rate=Decimal("0.10"), shipping_rule=rule).total
        Decimal('65.00')
    """
    subtotal = money(subtotal)
    tax_rate = Decimal(tax_rate)
    discount = money(discount_amount)

    if subtotal < 0:
        raise ValueError("Subtotal cannot be negative")
    if tax_rate < 0:
        raise ValueError("Tax rate cannot be negative")
    if discount < 0:
        raise ValueError("Discount cannot be negative")

    tax_amount = money(subtotal * tax_rate)
    shipping_cost = shipping_rule.cost_for(subtotal)
    discount = min(discount, subtotal)
    total = money(subtotal + tax_amount + shipping_cost - discount)

    return PriceBreakdown(
        subtotal=subtotal,
        tax_amount=tax_amount,
        shipping_cost=shipping_cost,
        discount_amount=discount,
        total=total,
    )
