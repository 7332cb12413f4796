"""Order aggregate — the core of the domain.

The Order is an aggregate root that owns its line items, discount and tax
lines, audit notes, payments, refunds and shipment records.  Store, user,
addresses and products are referenced by id only.

Status changes are driven by ``OrderStateMachine``; the aggregate only
knows how to record them.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum

from ordercore.domain.exceptions import ValidationError
from ordercore.domain.model.value_objects import (
    Money,
    Quantity,
    is_currency_code,
    round_money,
)


class OrderStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    FAILED = "failed"


class PaymentStatus(Enum):
    UNPAID = "unpaid"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    PARTIALLY_REFUNDED = "partially_refunded"
    REFUNDED = "refunded"
    FAILED = "failed"


class FulfillmentStatus(Enum):
    UNFULFILLED = "unfulfilled"
    PARTIALLY_FULFILLED = "partially_fulfilled"
    FULFILLED = "fulfilled"
    CANCELLED = "cancelled"


class NoteKind(Enum):
    GENERAL = "general"
    CREATION = "creation"
    ITEMS_UPDATE = "items_update"
    STATUS_CHANGE = "status_change"
    PAYMENT_CHANGE = "payment_change"
    FULFILLMENT_CHANGE = "fulfillment_change"
    CONFIRMATION = "confirmation"
    PROCESSING = "processing"
    PAYMENT = "payment"
    SHIPMENT = "shipment"
    DELIVERY = "delivery"
    COMPLETION = "completion"
    CANCELLATION = "cancellation"
    REFUND = "refund"
    FAILURE = "failure"


ESTIMATED_DELIVERY_DAYS = 3


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class OrderItem:
    """Captures the price and weight of a product at order time.

    Items are never edited in place; ``Order.replace_items`` swaps the
    whole set.
    """

    product_id: str
    product_name: str
    quantity: Quantity
    unit_price: Money  # locked at order-creation time
    unit_weight: Decimal = Decimal("0")

    @property
    def total_price(self) -> Money:
        return self.unit_price * self.quantity.value

    @property
    def total_weight(self) -> Decimal:
        return self.unit_weight * self.quantity.value


@dataclass(frozen=True)
class OrderDiscount:
    discount_id: str
    code: str
    amount: Money


@dataclass(frozen=True)
class OrderTax:
    name: str
    rate: Decimal
    amount: Money


@dataclass(frozen=True)
class OrderNote:
    """Immutable audit entry."""

    content: str
    actor_id: str | None
    kind: NoteKind
    created_at: datetime


@dataclass(frozen=True)
class Payment:
    amount: Money
    payment_method_id: str | None
    transaction_id: str | None
    created_at: datetime
    status: str = "successful"


@dataclass(frozen=True)
class Refund:
    amount: Money
    reason: str | None
    actor_id: str | None
    created_at: datetime
    status: str = "approved"


@dataclass(frozen=True)
class Shipment:
    tracking_number: str
    carrier: str
    quantity: int
    shipped_at: datetime


# ---------------------------------------------------------------------------
# Constants for business rules
# ---------------------------------------------------------------------------
MAX_LINE_ITEMS = 50


def _zero() -> Money:
    return Money.zero()


@dataclass
class Order:
    """Aggregate root for customer orders.

    Use the ``Order.create()`` factory for new orders — it enforces all
    business rules.  The ``__init__`` is intentionally simple so the
    repository can reconstitute persisted orders without re-validating.
    """

    id: int | None
    order_number: str
    store_id: str
    user_id: str
    items: list[OrderItem]
    currency: str = "USD"
    billing_address_id: str | None = None
    shipping_address_id: str | None = None
    payment_method_id: str | None = None
    shipping_method_id: str | None = None
    customer_notes: str = ""
    status: OrderStatus = OrderStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.UNPAID
    fulfillment_status: FulfillmentStatus = FulfillmentStatus.UNFULFILLED
    subtotal_amount: Money = field(default_factory=_zero)
    discount_amount: Money = field(default_factory=_zero)
    tax_amount: Money = field(default_factory=_zero)
    shipping_amount: Money = field(default_factory=_zero)
    total_amount: Money = field(default_factory=_zero)
    discounts: list[OrderDiscount] = field(default_factory=list)
    taxes: list[OrderTax] = field(default_factory=list)
    notes: list[OrderNote] = field(default_factory=list)
    payments: list[Payment] = field(default_factory=list)
    refunds: list[Refund] = field(default_factory=list)
    shipments: list[Shipment] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    version: int = 0

    # --- Factory (used for NEW orders only) -----------------------------------

    @staticmethod
    def create(
        *,
        order_number: str,
        store_id: str,
        user_id: str,
        items: list[OrderItem],
        currency: str,
        billing_address_id: str | None = None,
        shipping_address_id: str | None = None,
        payment_method_id: str | None = None,
        shipping_method_id: str | None = None,
        customer_notes: str = "",
        created_at: datetime | None = None,
    ) -> Order:
        """Create a new pending/unpaid/unfulfilled order."""
        if not order_number:
            raise ValidationError("Order number is required")
        if not is_currency_code(currency):
            raise ValidationError(f"Invalid currency code: {currency!r}")
        _check_items(items, currency)

        now = created_at or utcnow()
        zero = Money.zero(currency)
        return Order(
            id=None,
            order_number=order_number,
            store_id=store_id,
            user_id=user_id,
            items=list(items),
            currency=currency,
            billing_address_id=billing_address_id,
            shipping_address_id=shipping_address_id,
            payment_method_id=payment_method_id,
            shipping_method_id=shipping_method_id,
            customer_notes=customer_notes,
            subtotal_amount=zero,
            discount_amount=zero,
            tax_amount=zero,
            shipping_amount=zero,
            total_amount=zero,
            created_at=now,
            updated_at=now,
        )

    # --- Mutations ------------------------------------------------------------

    def replace_items(self, items: list[OrderItem]) -> None:
        if self.status is not OrderStatus.PENDING:
            raise ValidationError(
                f"Items can only be changed on pending orders, "
                f"current status is {self.status.value}"
            )
        _check_items(items, self.currency)
        self.items = list(items)

    def apply_pricing(
        self,
        *,
        subtotal: Money,
        discount: Money,
        tax: Money,
        shipping: Money,
        total: Money,
        discounts: list[OrderDiscount],
        taxes: list[OrderTax],
    ) -> None:
        """Store a freshly computed price breakdown."""
        for name, money in (
            ("subtotal", subtotal),
            ("discount", discount),
            ("tax", tax),
            ("shipping", shipping),
            ("total", total),
        ):
            if money.amount != round_money(money.amount):
                raise ValidationError(
                    f"{name.capitalize()} {money.amount} is not in whole cents"
                )
        if subtotal + tax + shipping != total + discount:
            raise ValidationError(
                f"Inconsistent totals: {subtotal} + {tax} + {shipping} - "
                f"{discount} != {total}"
            )
        self.subtotal_amount = subtotal
        self.discount_amount = discount
        self.tax_amount = tax
        self.shipping_amount = shipping
        self.total_amount = total
        self.discounts = list(discounts)
        self.taxes = list(taxes)

    def add_note(
        self,
        content: str,
        actor_id: str | None,
        kind: NoteKind = NoteKind.GENERAL,
        at: datetime | None = None,
    ) -> OrderNote:
        note = OrderNote(
            content=content, actor_id=actor_id, kind=kind, created_at=at or utcnow()
        )
        self.notes.append(note)
        return note

    def change_status(
        self, new_status: OrderStatus, actor_id: str | None, at: datetime
    ) -> None:
        old = self.status
        self.status = new_status
        self.add_note(
            f"Order status changed from {old.value} to {new_status.value}",
            actor_id,
            NoteKind.STATUS_CHANGE,
            at,
        )

    def change_payment_status(
        self, new_status: PaymentStatus, actor_id: str | None, at: datetime
    ) -> None:
        old = self.payment_status
        if old is new_status:
            return
        self.payment_status = new_status
        self.add_note(
            f"Payment status changed from {old.value} to {new_status.value}",
            actor_id,
            NoteKind.PAYMENT_CHANGE,
            at,
        )

    def change_fulfillment_status(
        self, new_status: FulfillmentStatus, actor_id: str | None, at: datetime
    ) -> None:
        old = self.fulfillment_status
        if old is new_status:
            return
        self.fulfillment_status = new_status
        self.add_note(
            f"Fulfillment status changed from {old.value} to {new_status.value}",
            actor_id,
            NoteKind.FULFILLMENT_CHANGE,
            at,
        )

    def add_payment(
        self,
        amount: Money,
        payment_method_id: str | None,
        transaction_id: str | None,
        at: datetime,
    ) -> Payment:
        payment = Payment(
            amount=amount,
            payment_method_id=payment_method_id,
            transaction_id=transaction_id,
            created_at=at,
        )
        self.payments.append(payment)
        return payment

    def add_refund(
        self, amount: Money, reason: str | None, actor_id: str | None, at: datetime
    ) -> Refund:
        refund = Refund(amount=amount, reason=reason, actor_id=actor_id, created_at=at)
        self.refunds.append(refund)
        return refund

    def add_shipment(
        self, tracking_number: str, carrier: str, at: datetime, quantity: int | None = None
    ) -> Shipment:
        if quantity is None:
            quantity = self.items_count - self.total_shipped
        shipment = Shipment(
            tracking_number=tracking_number,
            carrier=carrier,
            quantity=quantity,
            shipped_at=at,
        )
        self.shipments.append(shipment)
        return shipment

    # --- Computed properties --------------------------------------------------

    @property
    def items_count(self) -> int:
        return sum(item.quantity.value for item in self.items)

    @property
    def unique_items_count(self) -> int:
        return len(self.items)

    @property
    def total_weight(self) -> Decimal:
        return sum((item.total_weight for item in self.items), Decimal("0"))

    @property
    def total_paid(self) -> Money:
        return self._sum(p.amount for p in self.payments if p.status == "successful")

    @property
    def total_refunded(self) -> Money:
        return self._sum(r.amount for r in self.refunds if r.status == "approved")

    @property
    def outstanding_amount(self) -> Decimal:
        """May be negative when the order is overpaid."""
        return (
            self.total_amount.amount
            - self.total_paid.amount
            + self.total_refunded.amount
        )

    @property
    def refundable_amount(self) -> Money:
        paid = min(self.total_paid.amount, self.total_amount.amount)
        remaining = paid - self.total_refunded.amount
        return Money(max(remaining, Decimal("0")), self.currency)

    @property
    def total_shipped(self) -> int:
        return sum(s.quantity for s in self.shipments)

    @property
    def tracking_numbers(self) -> list[str]:
        return [s.tracking_number for s in self.shipments if s.tracking_number]

    @property
    def discount_codes(self) -> list[str]:
        return [d.code for d in self.discounts]

    @property
    def tax_breakdown(self) -> dict[str, Money]:
        breakdown: dict[str, Money] = {}
        for tax in self.taxes:
            breakdown[tax.name] = breakdown.get(tax.name, Money.zero(self.currency)) + tax.amount
        return breakdown

    @property
    def average_item_price(self) -> Money:
        if self.items_count == 0:
            return Money.zero(self.currency)
        return Money(
            self.subtotal_amount.amount / self.items_count, self.currency
        ).rounded()

    @property
    def estimated_delivery_date(self) -> datetime | None:
        if self.shipped_at is None:
            return None
        return self.shipped_at + timedelta(days=ESTIMATED_DELIVERY_DAYS)

    def days_since_created(self, at: datetime) -> float:
        return _days(at - self.created_at)

    def is_overdue(self, at: datetime) -> bool:
        """Shipped, still not delivered, and past the estimated delivery date."""
        estimate = self.estimated_delivery_date
        if estimate is None or self.status is not OrderStatus.SHIPPED:
            return False
        return at > estimate

    def overdue_days(self, at: datetime) -> float:
        if not self.is_overdue(at):
            return 0.0
        return _days(at - self.estimated_delivery_date)  # type: ignore[operator]

    @property
    def totals_consistent(self) -> bool:
        return (
            self.subtotal_amount.amount
            + self.tax_amount.amount
            + self.shipping_amount.amount
            - self.discount_amount.amount
            == self.total_amount.amount
        )

    def quantities_by_product(self) -> dict[str, int]:
        """Ordered quantity per product, merging repeated lines."""
        totals: dict[str, int] = defaultdict(int)
        for item in self.items:
            totals[item.product_id] += item.quantity.value
        return dict(totals)

    # --- Internal helpers -----------------------------------------------------

    def _sum(self, amounts) -> Money:
        result = Money.zero(self.currency)
        for amount in amounts:
            result = result + amount
        return result


def _check_items(items: list[OrderItem], currency: str) -> None:
    if not items:
        raise ValidationError("Order must contain at least one item")
    if len(items) > MAX_LINE_ITEMS:
        raise ValidationError(f"Maximum {MAX_LINE_ITEMS} items per order")
    for item in items:
        if item.unit_price.currency != currency:
            raise ValidationError(
                f"Item {item.product_name} is priced in {item.unit_price.currency}, "
                f"order currency is {currency}"
            )


def _days(delta: timedelta) -> float:
    return round(delta.total_seconds() / 86400, 2)
