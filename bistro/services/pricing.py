"""
Basket Pricing

One place that turns a subtotal into fee, tax and total, shared by the
cart (to show the customer a price) and the order controller (to freeze
the price on the order).

    deliveryFee = 0                       for pickup
                = 0                       for delivery when subtotal >= threshold
                = flat fee                otherwise
    tax         = round(subtotal * rate, 2)
    total       = subtotal + deliveryFee + tax
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from bistro.core.config import Settings, get_settings
from bistro.schemas import DeliveryMethod, quantize_money


@dataclass(frozen=True)
class PricingRules:
    """Configurable money rules (see ``Settings``)."""
    tax_rate: Decimal = Decimal("0.0825")
    delivery_fee: Decimal = Decimal("3.99")
    free_delivery_threshold: Decimal = Decimal("35.00")

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "PricingRules":
        settings = settings or get_settings()
        return cls(
            tax_rate=settings.tax_rate,
            delivery_fee=settings.delivery_fee,
            free_delivery_threshold=settings.free_delivery_threshold,
        )


@dataclass(frozen=True)
class PriceBreakdown:
    subtotal: Decimal
    delivery_fee: Decimal
    tax: Decimal
    total: Decimal

    def to_dict(self) -> dict[str, float]:
        return {
            "subtotal": float(self.subtotal),
            "deliveryFee": float(self.delivery_fee),
            "tax": float(self.tax),
            "total": float(self.total),
        }


def line_subtotal(lines: Iterable[tuple[Decimal, int]]) -> Decimal:
    """Sum of ``unit_price * quantity`` over ``(unit_price, quantity)`` pairs."""
    subtotal = sum(
        (Decimal(price) * quantity for price, quantity in lines),
        Decimal("0"),
    )
    return quantize_money(subtotal)


def delivery_fee_for(
    subtotal: Decimal,
    delivery_method: DeliveryMethod,
    rules: PricingRules,
) -> Decimal:
    if delivery_method == DeliveryMethod.PICKUP:
        return quantize_money(Decimal("0"))
    if subtotal >= rules.free_delivery_threshold:
        return quantize_money(Decimal("0"))
    return quantize_money(rules.delivery_fee)


def calculate_totals(
    subtotal: Decimal,
    delivery_method: DeliveryMethod,
    rules: Optional[PricingRules] = None,
) -> PriceBreakdown:
    """Price a basket whose subtotal is already known."""
    rules = rules or PricingRules.from_settings()
    subtotal = quantize_money(subtotal)
    fee = delivery_fee_for(subtotal, delivery_method, rules)
    tax = quantize_money(subtotal * rules.tax_rate)
    return PriceBreakdown(
        subtotal=subtotal,
        delivery_fee=fee,
        tax=tax,
        total=subtotal + fee + tax,
    )
