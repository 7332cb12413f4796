"""Store configuration consumed by pricing and order validation.

A store's settings are loaded once into a ``StoreConfig`` and handed to the
pricing engine explicitly.  Discounts, shipping methods and payment methods
have their own lifecycle; orders refer to them by id or code.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum

from ordercore.domain.model.value_objects import Money


class DiscountType(Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class ShippingCalculation(Enum):
    FIXED = "fixed"
    WEIGHT_BASED = "weight_based"
    PRICE_BASED = "price_based"


@dataclass(frozen=True)
class Discount:
    id: str
    code: str
    discount_type: DiscountType | str
    value: Decimal
    is_active: bool = True
    starts_at: datetime | None = None
    ends_at: datetime | None = None

    def is_valid(self, at: datetime) -> bool:
        """Active and inside its validity window (bounds inclusive)."""
        if not self.is_active:
            return False
        if self.starts_at is not None and at < self.starts_at:
            return False
        if self.ends_at is not None and at > self.ends_at:
            return False
        return True


@dataclass(frozen=True)
class ShippingMethod:
    id: str
    name: str
    calculation_method: ShippingCalculation | str
    base_cost: Money
    weight_rate: Decimal = Decimal("0")
    free_shipping_threshold: Money | None = None
    delivery_days: int = 3
    active: bool = True


@dataclass(frozen=True)
class PaymentMethod:
    id: str
    name: str
    active: bool = True


@dataclass(frozen=True)
class StoreConfig:
    """Typed per-store settings."""

    id: str
    name: str
    slug: str
    currency: str = "USD"
    tax_rate: Decimal = Decimal("0")
    tax_name: str = "Sales tax"
    minimum_order_amount: Decimal = Decimal("0")
    inventory_management: bool = True
    accepts_orders: bool = True
    discounts: tuple[Discount, ...] = field(default_factory=tuple)
    shipping_methods: tuple[ShippingMethod, ...] = field(default_factory=tuple)
    payment_methods: tuple[PaymentMethod, ...] = field(default_factory=tuple)

    @property
    def order_number_prefix(self) -> str:
        return self.slug.upper()[:3]

    def find_discount(self, code: str) -> Discount | None:
        for discount in self.discounts:
            if discount.code == code and discount.is_active:
                return discount
        return None

    def valid_discounts(
        self, codes: list[str], at: datetime
    ) -> tuple[list[Discount], list[str]]:
        """Split ``codes`` into usable discounts and rejected codes."""
        valid: list[Discount] = []
        invalid: list[str] = []
        for code in codes:
            discount = self.find_discount(code)
            if discount is not None and discount.is_valid(at):
                valid.append(discount)
            else:
                invalid.append(code)
        return valid, invalid

    def find_shipping_method(self, method_id: str | None) -> ShippingMethod | None:
        for method in self.shipping_methods:
            if method.id == method_id:
                return method
        return None

    def find_payment_method(self, method_id: str | None) -> PaymentMethod | None:
        for method in self.payment_methods:
            if method.id == method_id:
                return method
        return None
