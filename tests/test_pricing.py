from decimal import Decimal

import pytest

from bistro.schemas import DeliveryMethod
from bistro.services.pricing import PricingRules, calculate_totals, line_subtotal

RULES = PricingRules()


class TestLineSubtotal:
    def test_sums_price_times_quantity(self):
        assert line_subtotal([(Decimal("10.00"), 2), (Decimal("2.50"), 3)]) == Decimal("27.50")

    def test_empty_basket_is_zero(self):
        assert line_subtotal([]) == Decimal("0.00")


class TestCalculateTotals:
    def test_delivery_below_threshold_pays_fee(self):
        breakdown = calculate_totals(Decimal("20.00"), DeliveryMethod.DELIVERY, RULES)

        assert breakdown.subtotal == Decimal("20.00")
        assert breakdown.delivery_fee == Decimal("3.99")
        assert breakdown.tax == Decimal("1.65")
        assert breakdown.total == Decimal("25.64")

    def test_pickup_never_pays_fee(self):
        breakdown = calculate_totals(Decimal("20.00"), DeliveryMethod.PICKUP, RULES)

        assert breakdown.delivery_fee == Decimal("0.00")
        assert breakdown.tax == Decimal("1.65")
        assert breakdown.total == Decimal("21.65")

    @pytest.mark.parametrize(
        "subtotal, fee",
        [
            (Decimal("34.99"), Decimal("3.99")),
            (Decimal("35.00"), Decimal("0.00")),
            (Decimal("80.00"), Decimal("0.00")),
        ],
    )
    def test_free_delivery_threshold_is_inclusive(self, subtotal, fee):
        assert calculate_totals(subtotal, DeliveryMethod.DELIVERY, RULES).delivery_fee == fee

    def test_tax_rounds_half_up(self):
        # 0.0825 * 10.10 = 0.83325 -> 0.83 ; 0.0825 * 10.30 = 0.84975 -> 0.85
        assert calculate_totals(Decimal("10.10"), DeliveryMethod.PICKUP, RULES).tax == Decimal("0.83")
        assert calculate_totals(Decimal("10.30"), DeliveryMethod.PICKUP, RULES).tax == Decimal("0.85")

    def test_total_is_sum_of_parts(self):
        breakdown = calculate_totals(Decimal("17.37"), DeliveryMethod.DELIVERY, RULES)
        assert breakdown.total == breakdown.subtotal + breakdown.delivery_fee + breakdown.tax

    def test_custom_rules(self):
        rules = PricingRules(
            tax_rate=Decimal("0.10"),
            delivery_fee=Decimal("5.00"),
            free_delivery_threshold=Decimal("50.00"),
        )
        breakdown = calculate_totals(Decimal("40.00"), DeliveryMethod.DELIVERY, rules)

        assert breakdown.delivery_fee == Decimal("5.00")
        assert breakdown.tax == Decimal("4.00")
        assert breakdown.total == Decimal("49.00")

    def test_rules_follow_settings(self, monkeypatch):
        from bistro.core.config import get_settings

        monkeypatch.setenv("TAX_RATE", "0.05")
        get_settings.cache_clear()

        assert PricingRules.from_settings().tax_rate == Decimal("0.05")

    def test_to_dict_uses_camel_case(self):
        breakdown = calculate_totals(Decimal("20.00"), DeliveryMethod.DELIVERY, RULES)
        assert breakdown.to_dict() == {
            "subtotal": 20.0,
            "deliveryFee": 3.99,
            "tax": 1.65,
            "total": 25.64,
        }
