"""Domain service: Order State Machine.

Every lifecycle transition is one row of ``TRANSITIONS``: a guard that says
whether the transition is allowed, the inventory effect the processing
service must carry out, and an ``apply`` step that moves the order's
status, payment status and fulfillment status and writes the audit note.

Guards return a human-readable reason when they fail and ``None`` when the
transition may proceed.  ``OrderStateMachine.apply`` re-checks the guard and
raises PreconditionError, so no caller can skip it.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Callable

from ordercore.domain.exceptions import PreconditionError
from ordercore.domain.model.order import (
    FulfillmentStatus,
    NoteKind,
    Order,
    OrderStatus,
    PaymentStatus,
)
from ordercore.domain.model.value_objects import Money


class Transition(Enum):
    CONFIRM = "confirm"
    START_PROCESSING = "start_processing"
    RECORD_PAYMENT = "record_payment"
    SHIP = "ship"
    DELIVER = "deliver"
    COMPLETE = "complete"
    CANCEL = "cancel"
    REFUND = "refund"
    FAIL = "fail"


class InventoryEffect(Enum):
    NONE = "none"
    RESERVE = "reserve"
    RELEASE = "release"
    CONSUME = "consume"


# Statuses in which the order holds an inventory reservation.
RESERVED_STATUSES = frozenset({OrderStatus.CONFIRMED, OrderStatus.PROCESSING})
SHIPPABLE_STATUSES = frozenset({OrderStatus.CONFIRMED, OrderStatus.PROCESSING})
REFUNDABLE_STATUSES = frozenset(
    {OrderStatus.SHIPPED, OrderStatus.DELIVERED, OrderStatus.COMPLETED}
)
REFUNDABLE_PAYMENT_STATUSES = frozenset(
    {PaymentStatus.PAID, PaymentStatus.PARTIALLY_PAID, PaymentStatus.PARTIALLY_REFUNDED}
)
PAYABLE_PAYMENT_STATUSES = frozenset({PaymentStatus.UNPAID, PaymentStatus.PARTIALLY_PAID})
CLOSED_STATUSES = frozenset(
    {OrderStatus.CANCELLED, OrderStatus.REFUNDED, OrderStatus.FAILED}
)


@dataclass(frozen=True)
class TransitionContext:
    """Arguments some transitions need besides the order itself."""

    actor_id: str | None
    at: datetime
    amount: Money | None = None
    reason: str | None = None
    tracking_number: str | None = None
    carrier: str | None = None
    payment_method_id: str | None = None
    transaction_id: str | None = None


Guard = Callable[[Order, TransitionContext], "str | None"]
Effect = Callable[[Order, TransitionContext], None]


@dataclass(frozen=True)
class TransitionRule:
    guard: Guard
    apply: Effect
    inventory: Callable[[Order], InventoryEffect]


# --- Guards -------------------------------------------------------------------


def _status_is(*allowed: OrderStatus, action: str) -> Guard:
    def guard(order: Order, ctx: TransitionContext) -> str | None:
        if order.status in allowed:
            return None
        expected = ", ".join(s.value for s in allowed)
        return (
            f"Cannot {action} order {order.order_number}: status is "
            f"{order.status.value}, expected {expected}"
        )

    return guard


def _can_ship(order: Order, ctx: TransitionContext) -> str | None:
    if order.status not in SHIPPABLE_STATUSES:
        return (
            f"Cannot ship order {order.order_number}: status is "
            f"{order.status.value}, expected confirmed or processing"
        )
    if order.payment_status is not PaymentStatus.PAID:
        return (
            f"Cannot ship unpaid order {order.order_number}: payment status is "
            f"{order.payment_status.value}"
        )
    if not ctx.tracking_number or not ctx.carrier:
        return "Tracking number and carrier are required to ship"
    return None


def _can_refund(order: Order, ctx: TransitionContext) -> str | None:
    if order.payment_status not in REFUNDABLE_PAYMENT_STATUSES:
        return (
            f"Cannot refund order {order.order_number}: payment status is "
            f"{order.payment_status.value}"
        )
    if order.status not in REFUNDABLE_STATUSES:
        return (
            f"Cannot refund order {order.order_number}: status is "
            f"{order.status.value}, expected shipped, delivered or completed"
        )
    amount = ctx.amount
    if amount is None or amount.amount <= 0:
        return "Refund amount must be greater than zero"
    if amount.amount > order.total_amount.amount:
        return f"Refund amount {amount} exceeds order total {order.total_amount}"
    if amount.amount > order.refundable_amount.amount:
        return (
            f"Refund amount {amount} exceeds the remaining refundable "
            f"{order.refundable_amount}"
        )
    return None


def _can_record_payment(order: Order, ctx: TransitionContext) -> str | None:
    if order.status in CLOSED_STATUSES:
        return (
            f"Cannot record payment for order {order.order_number}: status is "
            f"{order.status.value}"
        )
    if order.payment_status not in PAYABLE_PAYMENT_STATUSES:
        return (
            f"Cannot record payment for order {order.order_number}: payment "
            f"status is {order.payment_status.value}"
        )
    amount = ctx.amount
    if amount is None or amount.amount <= 0:
        return "Payment amount must be greater than zero"
    if amount.amount > order.outstanding_amount:
        return (
            f"Payment amount {amount} exceeds outstanding "
            f"{order.outstanding_amount:.2f} {order.currency}"
        )
    return None


# --- Effects ------------------------------------------------------------------


def _confirm(order: Order, ctx: TransitionContext) -> None:
    order.change_status(OrderStatus.CONFIRMED, ctx.actor_id, ctx.at)
    order.add_note("Order confirmed; inventory reserved", ctx.actor_id, NoteKind.CONFIRMATION, ctx.at)


def _start_processing(order: Order, ctx: TransitionContext) -> None:
    order.change_status(OrderStatus.PROCESSING, ctx.actor_id, ctx.at)
    order.add_note("Order processing started", ctx.actor_id, NoteKind.PROCESSING, ctx.at)


def _record_payment(order: Order, ctx: TransitionContext) -> None:
    order.add_payment(ctx.amount, ctx.payment_method_id, ctx.transaction_id, ctx.at)
    if order.outstanding_amount <= 0:
        order.change_payment_status(PaymentStatus.PAID, ctx.actor_id, ctx.at)
    else:
        order.change_payment_status(PaymentStatus.PARTIALLY_PAID, ctx.actor_id, ctx.at)
    order.add_note(f"Payment of {ctx.amount} received", ctx.actor_id, NoteKind.PAYMENT, ctx.at)


def _ship(order: Order, ctx: TransitionContext) -> None:
    order.add_shipment(ctx.tracking_number, ctx.carrier, ctx.at)
    order.shipped_at = ctx.at
    order.change_status(OrderStatus.SHIPPED, ctx.actor_id, ctx.at)
    order.change_fulfillment_status(FulfillmentStatus.FULFILLED, ctx.actor_id, ctx.at)
    order.add_note(
        f"Order shipped. Tracking number: {ctx.tracking_number}, carrier: {ctx.carrier}",
        ctx.actor_id,
        NoteKind.SHIPMENT,
        ctx.at,
    )


def _deliver(order: Order, ctx: TransitionContext) -> None:
    order.delivered_at = ctx.at
    order.change_status(OrderStatus.DELIVERED, ctx.actor_id, ctx.at)
    order.add_note("Order delivered", ctx.actor_id, NoteKind.DELIVERY, ctx.at)


def _complete(order: Order, ctx: TransitionContext) -> None:
    order.completed_at = ctx.at
    order.change_status(OrderStatus.COMPLETED, ctx.actor_id, ctx.at)
    order.add_note("Order completed", ctx.actor_id, NoteKind.COMPLETION, ctx.at)


def _cancel(order: Order, ctx: TransitionContext) -> None:
    order.cancelled_at = ctx.at
    order.change_status(OrderStatus.CANCELLED, ctx.actor_id, ctx.at)
    order.change_fulfillment_status(FulfillmentStatus.CANCELLED, ctx.actor_id, ctx.at)
    order.add_note(
        f"Order cancelled. Reason: {ctx.reason or 'none given'}",
        ctx.actor_id,
        NoteKind.CANCELLATION,
        ctx.at,
    )


def _refund(order: Order, ctx: TransitionContext) -> None:
    order.add_refund(ctx.amount, ctx.reason, ctx.actor_id, ctx.at)
    if order.total_refunded.amount >= order.total_amount.amount:
        order.change_payment_status(PaymentStatus.REFUNDED, ctx.actor_id, ctx.at)
        order.change_status(OrderStatus.REFUNDED, ctx.actor_id, ctx.at)
    else:
        order.change_payment_status(PaymentStatus.PARTIALLY_REFUNDED, ctx.actor_id, ctx.at)
    order.add_note(
        f"Refunded {ctx.amount}. Reason: {ctx.reason or 'none given'}",
        ctx.actor_id,
        NoteKind.REFUND,
        ctx.at,
    )


def _fail(order: Order, ctx: TransitionContext) -> None:
    order.change_status(OrderStatus.FAILED, ctx.actor_id, ctx.at)
    if order.total_paid.is_zero:
        order.change_payment_status(PaymentStatus.FAILED, ctx.actor_id, ctx.at)
    order.change_fulfillment_status(FulfillmentStatus.CANCELLED, ctx.actor_id, ctx.at)
    order.add_note(
        f"Order failed. Reason: {ctx.reason or 'none given'}",
        ctx.actor_id,
        NoteKind.FAILURE,
        ctx.at,
    )


# --- Inventory effects --------------------------------------------------------


def _none(order: Order) -> InventoryEffect:
    return InventoryEffect.NONE


def _release_if_reserved(order: Order) -> InventoryEffect:
    if order.status in RESERVED_STATUSES:
        return InventoryEffect.RELEASE
    return InventoryEffect.NONE


TRANSITIONS: dict[Transition, TransitionRule] = {
    Transition.CONFIRM: TransitionRule(
        guard=_status_is(OrderStatus.PENDING, action="confirm"),
        apply=_confirm,
        inventory=lambda order: InventoryEffect.RESERVE,
    ),
    Transition.START_PROCESSING: TransitionRule(
        guard=_status_is(OrderStatus.CONFIRMED, action="start processing"),
        apply=_start_processing,
        inventory=_none,
    ),
    Transition.RECORD_PAYMENT: TransitionRule(
        guard=_can_record_payment, apply=_record_payment, inventory=_none
    ),
    Transition.SHIP: TransitionRule(
        guard=_can_ship,
        apply=_ship,
        inventory=lambda order: InventoryEffect.CONSUME,
    ),
    Transition.DELIVER: TransitionRule(
        guard=_status_is(OrderStatus.SHIPPED, action="deliver"),
        apply=_deliver,
        inventory=_none,
    ),
    Transition.COMPLETE: TransitionRule(
        guard=_status_is(OrderStatus.DELIVERED, action="complete"),
        apply=_complete,
        inventory=_none,
    ),
    Transition.CANCEL: TransitionRule(
        guard=_status_is(
            OrderStatus.PENDING,
            OrderStatus.CONFIRMED,
            OrderStatus.PROCESSING,
            action="cancel",
        ),
        apply=_cancel,
        inventory=_release_if_reserved,
    ),
    Transition.REFUND: TransitionRule(guard=_can_refund, apply=_refund, inventory=_none),
    Transition.FAIL: TransitionRule(
        guard=_status_is(
            OrderStatus.PENDING,
            OrderStatus.CONFIRMED,
            OrderStatus.PROCESSING,
            action="fail",
        ),
        apply=_fail,
        inventory=_release_if_reserved,
    ),
}


class OrderStateMachine:
    """Single entry point for order status changes."""

    def __init__(self, rules: dict[Transition, TransitionRule] | None = None) -> None:
        self._rules = rules or TRANSITIONS

    def check(
        self, order: Order, transition: Transition, ctx: TransitionContext
    ) -> str | None:
        """Return why ``transition`` is not allowed, or None."""
        return self._rules[transition].guard(order, ctx)

    def can(self, order: Order, transition: Transition, ctx: TransitionContext) -> bool:
        return self.check(order, transition, ctx) is None

    def inventory_effect(self, order: Order, transition: Transition) -> InventoryEffect:
        """What must happen to stock; evaluate *before* ``apply``."""
        return self._rules[transition].inventory(order)

    def apply(
        self, order: Order, transition: Transition, ctx: TransitionContext
    ) -> None:
        reason = self.check(order, transition, ctx)
        if reason is not None:
            raise PreconditionError(reason)
        self._rules[transition].apply(order, ctx)
        order.updated_at = ctx.at

    def available_transitions(self, order: Order, at: datetime) -> list[Transition]:
        """Transitions whose status guards hold (amount-free checks)."""
        dry_run = TransitionContext(
            actor_id=None,
            at=at,
            amount=Money(Decimal("0.01"), order.currency),
            tracking_number="-",
            carrier="-",
        )
        return [t for t in Transition if self.can(order, t, dry_run)]
