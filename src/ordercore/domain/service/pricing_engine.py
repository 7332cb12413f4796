"""Domain service: Pricing Engine.

Turns an order's line items, its discount codes and the store's
configuration into a complete price breakdown:

    subtotal -> discount -> tax -> shipping -> total

The breakdown is computed in full before anything is written to the order,
so a bad input (negative rate, mismatched currency) fails without leaving
half-updated totals behind.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

import structlog

from ordercore.domain.exceptions import ValidationError
from ordercore.domain.model.order import Order, OrderDiscount, OrderItem, OrderTax
from ordercore.domain.model.store import (
    Discount,
    DiscountType,
    ShippingCalculation,
    ShippingMethod,
    StoreConfig,
)
from ordercore.domain.model.value_objects import Money, round_money

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PriceBreakdown:
    subtotal: Money
    discount: Money
    tax: Money
    shipping: Money
    total: Money
    discount_lines: tuple[OrderDiscount, ...] = ()
    tax_lines: tuple[OrderTax, ...] = ()


class PricingEngine:

    def __init__(self, store: StoreConfig) -> None:
        self._store = store

    def price(
        self,
        items: list[OrderItem],
        discounts: list[Discount],
        shipping_method: ShippingMethod | None,
        currency: str,
    ) -> PriceBreakdown:
        """Compute the full breakdown for ``items``.

        ``discounts`` must already be filtered to the valid ones; see
        ``resolve_discounts``.
        """
        self._validate_inputs(discounts, shipping_method)

        subtotal = Money.zero(currency)
        for item in items:
            subtotal = subtotal + item.total_price

        discount_lines = self._discount_lines(subtotal, discounts)
        discount = Money.zero(currency)
        for line in discount_lines:
            discount = discount + line.amount

        tax_lines = self._tax_lines(subtotal - discount)
        tax = Money.zero(currency)
        for line in tax_lines:
            tax = tax + line.amount

        shipping = self._shipping_cost(items, subtotal, shipping_method, currency)
        total = subtotal + tax + shipping - discount

        return PriceBreakdown(
            subtotal=subtotal,
            discount=discount,
            tax=tax,
            shipping=shipping,
            total=total,
            discount_lines=tuple(discount_lines),
            tax_lines=tuple(tax_lines),
        )

    def resolve_discounts(self, codes: list[str], at: datetime) -> list[Discount]:
        """Valid discounts for ``codes``; unusable codes are dropped."""
        valid, invalid = self._store.valid_discounts(_unique(codes), at)
        if invalid:
            logger.info(
                "Ignoring unusable discount codes", store_id=self._store.id, codes=invalid
            )
        return valid

    def reprice(self, order: Order, codes: list[str], at: datetime) -> PriceBreakdown:
        """Recompute and store the totals of ``order``."""
        breakdown = self.price(
            order.items,
            self.resolve_discounts(codes, at),
            self._store.find_shipping_method(order.shipping_method_id),
            order.currency,
        )
        order.apply_pricing(
            subtotal=breakdown.subtotal,
            discount=breakdown.discount,
            tax=breakdown.tax,
            shipping=breakdown.shipping,
            total=breakdown.total,
            discounts=list(breakdown.discount_lines),
            taxes=list(breakdown.tax_lines),
        )
        return breakdown

    # --- Pipeline steps -------------------------------------------------------

    def _discount_lines(
        self, subtotal: Money, discounts: list[Discount]
    ) -> list[OrderDiscount]:
        # The running total of discounts is capped at the subtotal.
        lines: list[OrderDiscount] = []
        remaining = subtotal
        for discount in discounts:
            amount = min(discount_amount(discount, subtotal), remaining)
            remaining = remaining - amount
            lines.append(
                OrderDiscount(discount_id=discount.id, code=discount.code, amount=amount)
            )
        return lines

    def _tax_lines(self, taxable: Money) -> list[OrderTax]:
        rate = self._store.tax_rate
        if rate == 0:
            return []
        return [OrderTax(name=self._store.tax_name, rate=rate, amount=taxable.percent(rate))]

    @staticmethod
    def _shipping_cost(
        items: list[OrderItem],
        subtotal: Money,
        method: ShippingMethod | None,
        currency: str,
    ) -> Money:
        if method is None:
            return Money.zero(currency)
        return shipping_cost(method, subtotal, sum((i.total_weight for i in items), Decimal("0")))

    def _validate_inputs(
        self, discounts: list[Discount], method: ShippingMethod | None
    ) -> None:
        errors: dict[str, list[str]] = {}
        if self._store.tax_rate < 0:
            errors.setdefault("tax_rate", []).append("Tax rate cannot be negative")
        for discount in discounts:
            if discount.value is None or discount.value < 0:
                errors.setdefault("discount_codes", []).append(
                    f"Discount {discount.code} has an invalid value"
                )
        if method is not None and method.weight_rate < 0:
            errors.setdefault("shipping_method_id", []).append(
                f"Shipping method {method.name} has a negative weight rate"
            )
        if errors:
            raise ValidationError(field_errors=errors)


def discount_amount(discount: Discount, subtotal: Money) -> Money:
    """Amount a single discount takes off ``subtotal``."""
    if discount.discount_type is DiscountType.PERCENTAGE:
        return subtotal.percent(discount.value)
    if discount.discount_type is DiscountType.FIXED:
        return min(Money(round_money(discount.value), subtotal.currency), subtotal)
    return Money.zero(subtotal.currency)


def shipping_cost(method: ShippingMethod, subtotal: Money, total_weight: Decimal) -> Money:
    """Cost of ``method`` for an order of ``subtotal`` weighing ``total_weight``."""
    currency = subtotal.currency
    calc = method.calculation_method
    if calc is ShippingCalculation.FIXED:
        return Money(round_money(method.base_cost.amount), currency)
    if calc is ShippingCalculation.WEIGHT_BASED:
        extra = round_money(total_weight * method.weight_rate)
        return Money(round_money(method.base_cost.amount) + extra, currency)
    if calc is ShippingCalculation.PRICE_BASED:
        threshold = method.free_shipping_threshold
        if threshold is not None and subtotal.amount >= threshold.amount:
            return Money.zero(currency)
        return Money(round_money(method.base_cost.amount), currency)
    return Money.zero(currency)


def _unique(codes: list[str]) -> list[str]:
    seen: list[str] = []
    for code in codes:
        if code not in seen:
            seen.append(code)
    return seen
