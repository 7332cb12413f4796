"""Unit tests for the PricingEngine domain service."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from ordercore.domain.exceptions import ValidationError
from ordercore.domain.model.order import OrderItem
from ordercore.domain.model.store import (
    Discount,
    DiscountType,
    ShippingCalculation,
    ShippingMethod,
)
from ordercore.domain.model.value_objects import Money, Quantity
from ordercore.domain.service.pricing_engine import (
    PricingEngine,
    discount_amount,
    shipping_cost,
)
from tests.fakes import NOW, make_order, make_store


def _item(qty: int, price: str, weight: str = "0") -> OrderItem:
    return OrderItem(
        product_id="p-1",
        product_name="Widget",
        quantity=Quantity(qty),
        unit_price=Money.of(price),
        unit_weight=Decimal(weight),
    )


def _fixed(value: str, code: str = "FIX") -> Discount:
    return Discount(id=code, code=code, discount_type=DiscountType.FIXED, value=Decimal(value))


def _method(calc: ShippingCalculation, **kwargs) -> ShippingMethod:
    defaults = dict(id="m", name="Method", calculation_method=calc, base_cost=Money.of("10"))
    defaults.update(kwargs)
    return ShippingMethod(**defaults)


class TestPricePipeline:

    def test_reference_breakdown(self):
        store = make_store(tax_rate=Decimal("5"))
        breakdown = PricingEngine(store).price(
            [_item(2, "100")],
            [_fixed("20")],
            _method(ShippingCalculation.FIXED),
            "USD",
        )
        assert breakdown.subtotal == Money.of("200")
        assert breakdown.discount == Money.of("20")
        assert breakdown.tax == Money.of("9.00")
        assert breakdown.shipping == Money.of("10")
        assert breakdown.total == Money.of("199")
        assert breakdown.tax_lines[0].name == "Sales tax"

    def test_zero_tax_rate_creates_no_tax_line(self):
        breakdown = PricingEngine(make_store(tax_rate=Decimal("0"))).price(
            [_item(1, "50")], [], None, "USD"
        )
        assert breakdown.tax == Money.zero()
        assert breakdown.tax_lines == ()
        assert breakdown.total == Money.of("50")

    def test_discounts_are_capped_at_subtotal(self):
        breakdown = PricingEngine(make_store(tax_rate=Decimal("10"))).price(
            [_item(1, "30")], [_fixed("20", "A"), _fixed("25", "B")], None, "USD"
        )
        assert breakdown.discount == Money.of("30")
        assert [line.amount for line in breakdown.discount_lines] == [
            Money.of("20"),
            Money.of("10"),
        ]
        assert breakdown.tax == Money.zero()
        assert breakdown.total == Money.zero()

    def test_negative_tax_rate_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            PricingEngine(make_store(tax_rate=Decimal("-1"))).price(
                [_item(1, "10")], [], None, "USD"
            )
        assert "tax_rate" in exc_info.value.field_errors

    def test_negative_discount_value_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            PricingEngine(make_store()).price([_item(1, "10")], [_fixed("-5")], None, "USD")
        assert "discount_codes" in exc_info.value.field_errors


class TestDiscountAmount:

    def test_percentage(self):
        discount = Discount(
            id="d", code="TEN", discount_type=DiscountType.PERCENTAGE, value=Decimal("12.5")
        )
        # 12.5% of 99.99 = 12.49875 -> 12.50
        assert discount_amount(discount, Money.of("99.99")) == Money.of("12.50")

    def test_fixed_never_exceeds_subtotal(self):
        assert discount_amount(_fixed("50"), Money.of("30")) == Money.of("30")


class TestShippingCost:

    def test_fixed(self):
        cost = shipping_cost(_method(ShippingCalculation.FIXED), Money.of("500"), Decimal("9"))
        assert cost == Money.of("10")

    def test_weight_based(self):
        method = _method(ShippingCalculation.WEIGHT_BASED, weight_rate=Decimal("1.333"))
        # 10 + round(2.5 * 1.333 = 3.3325) = 13.33
        assert shipping_cost(method, Money.of("10"), Decimal("2.5")) == Money.of("13.33")

    def test_price_based_free_at_threshold(self):
        method = _method(
            ShippingCalculation.PRICE_BASED, free_shipping_threshold=Money.of("100")
        )
        assert shipping_cost(method, Money.of("100"), Decimal("0")) == Money.zero()
        assert shipping_cost(method, Money.of("99.99"), Decimal("0")) == Money.of("10")

    def test_unknown_method_costs_nothing(self):
        method = _method("carrier_pigeon")
        assert shipping_cost(method, Money.of("10"), Decimal("1")) == Money.zero()


class TestReprice:

    def test_reprice_stores_breakdown_and_drops_invalid_codes(self):
        order = make_order([("p-1", 2)], price="100.00")
        order.shipping_method_id = "std"
        PricingEngine(make_store()).reprice(order, ["SAVE20", "EXPIRED", "NOPE"], NOW)
        assert order.discount_codes == ["SAVE20"]
        assert order.total_amount == Money.of("199")
        assert order.totals_consistent

    def test_expired_discount_is_valid_before_its_end(self):
        at = datetime(2024, 12, 31, tzinfo=timezone.utc)
        order = make_order([("p-1", 1)], price="10.00")
        PricingEngine(make_store(tax_rate=Decimal("0"))).reprice(order, ["EXPIRED"], at)
        assert order.discount_amount == Money.of("5")
        assert order.total_amount == Money.of("5")
