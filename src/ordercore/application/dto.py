"""Data Transfer Objects — plain containers that cross layer boundaries.

Inputs describe what a caller asks for; outputs are string-typed snapshots
of an order (decimals as fixed-precision strings, enums as their values,
timestamps as ISO-8601) so they can be handed to any serializer as-is.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from ordercore.domain.exceptions import (
    DomainException,
    InsufficientInventoryError,
    PreconditionError,
    ResourceNotFoundError,
    ValidationError,
)
from ordercore.domain.model.order import Order
from ordercore.domain.model.value_objects import Money, round_money


# --- Inputs -------------------------------------------------------------------


@dataclass(frozen=True)
class OrderItemSpec:
    """What the customer asked for: a product and how many."""

    product_id: str
    quantity: int


@dataclass(frozen=True)
class CreateOrderCommand:
    store_id: str
    user_id: str
    billing_address_id: str | None
    shipping_address_id: str | None
    payment_method_id: str | None
    shipping_method_id: str | None
    currency: str
    items: list[OrderItemSpec]
    discount_codes: list[str] = field(default_factory=list)
    notes: str = ""


# --- Outputs ------------------------------------------------------------------


@dataclass(frozen=True)
class OrderItemDTO:
    product_id: str
    product_name: str
    quantity: int
    unit_price: str
    total_price: str


@dataclass(frozen=True)
class OrderNoteDTO:
    content: str
    actor_id: str | None
    kind: str
    created_at: str


@dataclass(frozen=True)
class OrderDTO:
    """A complete order snapshot."""

    id: int
    order_number: str
    store_id: str
    user_id: str
    status: str
    payment_status: str
    fulfillment_status: str
    currency: str
    subtotal_amount: str
    discount_amount: str
    tax_amount: str
    shipping_amount: str
    total_amount: str
    total_paid: str
    total_refunded: str
    items_count: int
    unique_items_count: int
    items: list[OrderItemDTO]
    discount_codes: list[str]
    tracking_numbers: list[str]
    notes: list[OrderNoteDTO]
    created_at: str
    updated_at: str
    shipped_at: str | None = None
    delivered_at: str | None = None
    completed_at: str | None = None
    cancelled_at: str | None = None
    estimated_delivery_date: str | None = None
    days_since_created: float = 0.0
    is_overdue: bool = False
    overdue_days: float = 0.0

    @staticmethod
    def from_order(order: Order, at: datetime | None = None) -> OrderDTO:
        """Snapshot ``order``; age and overdue fields are measured at ``at``."""
        return OrderDTO(
            id=order.id,  # type: ignore[arg-type]
            order_number=order.order_number,
            store_id=order.store_id,
            user_id=order.user_id,
            status=order.status.value,
            payment_status=order.payment_status.value,
            fulfillment_status=order.fulfillment_status.value,
            currency=order.currency,
            subtotal_amount=_amount(order.subtotal_amount),
            discount_amount=_amount(order.discount_amount),
            tax_amount=_amount(order.tax_amount),
            shipping_amount=_amount(order.shipping_amount),
            total_amount=_amount(order.total_amount),
            total_paid=_amount(order.total_paid),
            total_refunded=_amount(order.total_refunded),
            items_count=order.items_count,
            unique_items_count=order.unique_items_count,
            items=[
                OrderItemDTO(
                    product_id=item.product_id,
                    product_name=item.product_name,
                    quantity=item.quantity.value,
                    unit_price=_amount(item.unit_price),
                    total_price=_amount(item.total_price),
                )
                for item in order.items
            ],
            discount_codes=order.discount_codes,
            tracking_numbers=order.tracking_numbers,
            notes=[
                OrderNoteDTO(
                    content=note.content,
                    actor_id=note.actor_id,
                    kind=note.kind.value,
                    created_at=note.created_at.isoformat(),
                )
                for note in order.notes
            ],
            created_at=order.created_at.isoformat(),
            updated_at=order.updated_at.isoformat(),
            shipped_at=_iso(order.shipped_at),
            delivered_at=_iso(order.delivered_at),
            completed_at=_iso(order.completed_at),
            cancelled_at=_iso(order.cancelled_at),
            estimated_delivery_date=_iso(order.estimated_delivery_date),
            days_since_created=order.days_since_created(at) if at else 0.0,
            is_overdue=order.is_overdue(at) if at else False,
            overdue_days=order.overdue_days(at) if at else 0.0,
        )


@dataclass(frozen=True)
class ProcessingResult:
    """Outcome of one processing operation.

    Business-rule failures never raise past the service; they come back
    here with ``success=False`` and the messages to show.
    """

    success: bool
    order: OrderDTO | None = None
    errors: list[str] = field(default_factory=list)
    field_errors: dict[str, list[str]] = field(default_factory=dict)
    error_kind: str | None = None

    @staticmethod
    def ok(order: OrderDTO) -> ProcessingResult:
        return ProcessingResult(success=True, order=order)

    @staticmethod
    def failure(exc: DomainException) -> ProcessingResult:
        if isinstance(exc, ValidationError):
            return ProcessingResult(
                success=False,
                errors=exc.messages,
                field_errors=exc.field_errors,
                error_kind="validation",
            )
        return ProcessingResult(
            success=False, errors=[str(exc)], error_kind=_kind_of(exc)
        )


def _kind_of(exc: DomainException) -> str:
    if isinstance(exc, PreconditionError):
        return "precondition"
    if isinstance(exc, ResourceNotFoundError):
        return "not_found"
    if isinstance(exc, InsufficientInventoryError):
        return "insufficient_inventory"
    return "domain"


def _amount(money: Money) -> str:
    return str(round_money(money.amount))


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None
