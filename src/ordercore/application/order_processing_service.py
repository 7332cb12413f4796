"""Application service: Order Processing.

Runs every order lifecycle operation as one atomic workflow:

    lock -> validate -> price -> transition -> reserve/release -> commit -> notify

Locks are taken in a fixed order (store or order first, then products
sorted by id) and held until the unit of work has committed, so two
operations can never interleave their inventory arithmetic.  Business-rule
failures come back as a failed ``ProcessingResult``; PersistenceError and
anything unexpected propagate after the unit of work has rolled back.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable

import structlog

from ordercore.application.dto import (
    CreateOrderCommand,
    OrderDTO,
    OrderItemSpec,
    ProcessingResult,
)
from ordercore.application.locks import LockManager, order_key, product_keys, store_key
from ordercore.application.notifications import (
    ORDER_CANCELLED,
    ORDER_COMPLETED,
    ORDER_CONFIRMED,
    ORDER_CREATED,
    ORDER_DELIVERED,
    ORDER_FAILED,
    ORDER_PAYMENT_RECEIVED,
    ORDER_PROCESSING,
    ORDER_REFUNDED,
    ORDER_SHIPPED,
    ORDER_UPDATED,
    Notifier,
    NullNotifier,
)
from ordercore.application.order_form import OrderForm
from ordercore.application.unit_of_work import UnitOfWork, UnitOfWorkFactory
from ordercore.domain.exceptions import (
    DomainException,
    PreconditionError,
    ResourceNotFoundError,
    ValidationError,
)
from ordercore.domain.model.order import NoteKind, Order, OrderStatus, utcnow
from ordercore.domain.model.store import StoreConfig
from ordercore.domain.model.value_objects import Money, round_money, to_decimal
from ordercore.domain.service.inventory_ledger import InventoryLedger
from ordercore.domain.service.order_state_machine import (
    InventoryEffect,
    OrderStateMachine,
    Transition,
    TransitionContext,
)
from ordercore.domain.service.pricing_engine import PricingEngine

logger = structlog.get_logger(__name__)

_EVENTS = {
    Transition.CONFIRM: ORDER_CONFIRMED,
    Transition.START_PROCESSING: ORDER_PROCESSING,
    Transition.RECORD_PAYMENT: ORDER_PAYMENT_RECEIVED,
    Transition.SHIP: ORDER_SHIPPED,
    Transition.DELIVER: ORDER_DELIVERED,
    Transition.COMPLETE: ORDER_COMPLETED,
    Transition.CANCEL: ORDER_CANCELLED,
    Transition.REFUND: ORDER_REFUNDED,
    Transition.FAIL: ORDER_FAILED,
}


class OrderProcessingService:

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        notifier: Notifier | None = None,
        locks: LockManager | None = None,
        clock: Callable[[], datetime] = utcnow,
        state_machine: OrderStateMachine | None = None,
    ) -> None:
        self._uow_factory = uow_factory
        self._notifier = notifier or NullNotifier()
        self._locks = locks or LockManager()
        self._clock = clock
        self._machine = state_machine or OrderStateMachine()

    # --- Creation -------------------------------------------------------------

    def process(self, command: CreateOrderCommand) -> ProcessingResult:
        """Create an order: validate, price, number, finalize, notify.

        Stock is only checked here; it is reserved by ``confirm``.
        """
        log = logger.bind(
            operation="process", store_id=command.store_id, user_id=command.user_id
        )
        return self._create(command, log)

    def duplicate(self, order_id: int, actor_id: str | None) -> ProcessingResult:
        """Reorder: a new pending order with the same lines and quantities.

        The copy goes through the same validation, stock check and pricing
        as any new order, at today's catalog prices.  Discounts are not
        carried over.
        """
        log = logger.bind(operation="duplicate", order_id=order_id, actor_id=actor_id)
        try:
            with self._uow_factory() as uow:
                source = self._load(uow, order_id)
        except DomainException as exc:
            log.warning("Order duplication rejected", reason=str(exc))
            return ProcessingResult.failure(exc)

        command = CreateOrderCommand(
            store_id=source.store_id,
            user_id=source.user_id,
            billing_address_id=source.billing_address_id,
            shipping_address_id=source.shipping_address_id,
            payment_method_id=source.payment_method_id,
            shipping_method_id=source.shipping_method_id,
            currency=source.currency,
            items=[
                OrderItemSpec(item.product_id, item.quantity.value) for item in source.items
            ],
            notes=source.customer_notes,
        )
        return self._create(command, log, duplicated_from=source, actor_id=actor_id)

    def _create(
        self,
        command: CreateOrderCommand,
        log,
        duplicated_from: Order | None = None,
        actor_id: str | None = None,
    ) -> ProcessingResult:
        product_ids = sorted({spec.product_id for spec in command.items})
        try:
            with self._locks.hold(store_key(command.store_id), *product_keys(product_ids)):
                with self._uow_factory() as uow:
                    at = self._clock()
                    validated = OrderForm(uow, at).validate_create(command)
                    store = validated.store
                    order = Order.create(
                        order_number=self._next_order_number(uow, store, at),
                        store_id=store.id,
                        user_id=validated.user.id,
                        items=validated.items,
                        currency=command.currency,
                        billing_address_id=command.billing_address_id,
                        shipping_address_id=command.shipping_address_id,
                        payment_method_id=command.payment_method_id,
                        shipping_method_id=command.shipping_method_id,
                        customer_notes=command.notes,
                        created_at=at,
                    )
                    PricingEngine(store).reprice(
                        order, [d.code for d in validated.discounts], at
                    )
                    order.add_note(
                        f"Order {order.order_number} created",
                        command.user_id,
                        NoteKind.CREATION,
                        at,
                    )
                    if duplicated_from is not None:
                        order.add_note(
                            f"Duplicated from order {duplicated_from.order_number}",
                            actor_id,
                            NoteKind.GENERAL,
                            at,
                        )
                    uow.orders.save(order)
                    uow.commit()
        except DomainException as exc:
            log.warning("Order creation rejected", reason=str(exc))
            return ProcessingResult.failure(exc)

        dto = OrderDTO.from_order(order, at)
        log.info(
            "Order created",
            order_id=dto.id,
            order_number=dto.order_number,
            total=dto.total_amount,
        )
        self._publish(ORDER_CREATED, dto)
        return ProcessingResult.ok(dto)

    def update_items(
        self,
        order_id: int,
        actor_id: str | None,
        items: list[OrderItemSpec],
        discount_codes: list[str] | None = None,
    ) -> ProcessingResult:
        """Replace the whole item set of a pending order and reprice it."""
        log = logger.bind(operation="update_items", order_id=order_id, actor_id=actor_id)
        try:
            with self._locks.hold(order_key(order_id)):
                with self._uow_factory() as uow:
                    at = self._clock()
                    order = self._load(uow, order_id)
                    if order.status is not OrderStatus.PENDING:
                        raise PreconditionError(
                            f"Cannot update items of order {order.order_number}: "
                            f"status is {order.status.value}, expected pending"
                        )
                    codes = order.discount_codes if discount_codes is None else discount_codes
                    form = OrderForm(uow, at)
                    store = form.load_store(order.store_id)
                    new_items, discounts = form.validate_items(store, items, codes)
                    order.replace_items(new_items)
                    PricingEngine(store).reprice(order, [d.code for d in discounts], at)
                    order.add_note("Order items updated", actor_id, NoteKind.ITEMS_UPDATE, at)
                    order.updated_at = at
                    uow.orders.save(order)
                    uow.commit()
        except DomainException as exc:
            log.warning("Order update rejected", reason=str(exc))
            return ProcessingResult.failure(exc)

        dto = OrderDTO.from_order(order, at)
        log.info("Order items updated", order_number=dto.order_number, total=dto.total_amount)
        self._publish(ORDER_UPDATED, dto)
        return ProcessingResult.ok(dto)

    # --- Lifecycle transitions ------------------------------------------------

    def confirm(self, order_id: int, actor_id: str | None) -> ProcessingResult:
        """Reserve stock for every line and move pending -> confirmed."""
        return self._transition(order_id, Transition.CONFIRM, actor_id)

    def start_processing(self, order_id: int, actor_id: str | None) -> ProcessingResult:
        return self._transition(order_id, Transition.START_PROCESSING, actor_id)

    def record_payment(
        self,
        order_id: int,
        actor_id: str | None,
        amount: str | int | float,
        payment_method_id: str | None = None,
        transaction_id: str | None = None,
    ) -> ProcessingResult:
        return self._transition(
            order_id,
            Transition.RECORD_PAYMENT,
            actor_id,
            amount=amount,
            payment_method_id=payment_method_id,
            transaction_id=transaction_id,
        )

    def ship(
        self,
        order_id: int,
        actor_id: str | None,
        tracking_number: str,
        carrier: str,
    ) -> ProcessingResult:
        """Record the shipment and turn the reservation into shipped stock."""
        return self._transition(
            order_id,
            Transition.SHIP,
            actor_id,
            tracking_number=tracking_number,
            carrier=carrier,
        )

    def deliver(self, order_id: int, actor_id: str | None) -> ProcessingResult:
        return self._transition(order_id, Transition.DELIVER, actor_id)

    def complete(self, order_id: int, actor_id: str | None) -> ProcessingResult:
        return self._transition(order_id, Transition.COMPLETE, actor_id)

    def cancel(
        self, order_id: int, actor_id: str | None, reason: str | None = None
    ) -> ProcessingResult:
        """Cancel and release any stock the order still holds."""
        return self._transition(order_id, Transition.CANCEL, actor_id, reason=reason)

    def refund(
        self,
        order_id: int,
        actor_id: str | None,
        amount: str | int | float,
        reason: str | None = None,
    ) -> ProcessingResult:
        return self._transition(
            order_id, Transition.REFUND, actor_id, amount=amount, reason=reason
        )

    def fail(
        self, order_id: int, actor_id: str | None, reason: str | None = None
    ) -> ProcessingResult:
        return self._transition(order_id, Transition.FAIL, actor_id, reason=reason)

    # --- Queries --------------------------------------------------------------

    def get(self, order_id: int) -> ProcessingResult:
        try:
            with self._uow_factory() as uow:
                order = self._load(uow, order_id)
        except DomainException as exc:
            return ProcessingResult.failure(exc)
        return ProcessingResult.ok(OrderDTO.from_order(order, self._clock()))

    # --- Workflow -------------------------------------------------------------

    def _transition(
        self,
        order_id: int,
        transition: Transition,
        actor_id: str | None,
        amount: str | int | float | None = None,
        **details: str | None,
    ) -> ProcessingResult:
        log = logger.bind(
            operation=transition.value, order_id=order_id, actor_id=actor_id
        )
        try:
            with self._locks.hold(order_key(order_id)):
                product_ids = self._product_ids_of(order_id)
                with self._locks.hold(*product_keys(product_ids)):
                    with self._uow_factory() as uow:
                        order = self._load(uow, order_id)
                        ctx = TransitionContext(
                            actor_id=actor_id,
                            at=self._clock(),
                            amount=self._money(amount, order.currency),
                            **details,
                        )
                        effect = self._machine.inventory_effect(order, transition)
                        self._machine.apply(order, transition, ctx)
                        if effect is not InventoryEffect.NONE:
                            store = OrderForm(uow, ctx.at).load_store(order.store_id)
                            self._apply_inventory(uow, store, order, effect)
                        uow.orders.save(order)
                        uow.commit()
        except DomainException as exc:
            log.warning("Order operation rejected", reason=str(exc))
            return ProcessingResult.failure(exc)

        dto = OrderDTO.from_order(order, ctx.at)
        log.info(
            "Order operation applied",
            order_number=dto.order_number,
            status=dto.status,
            payment_status=dto.payment_status,
            fulfillment_status=dto.fulfillment_status,
        )
        self._publish(_EVENTS[transition], dto)
        return ProcessingResult.ok(dto)

    @staticmethod
    def _apply_inventory(
        uow: UnitOfWork, store: StoreConfig, order: Order, effect: InventoryEffect
    ) -> None:
        ledger = InventoryLedger(uow.inventory, uow.products, store.inventory_management)
        if effect is InventoryEffect.RESERVE:
            ledger.reserve_for_order(order)
        elif effect is InventoryEffect.RELEASE:
            ledger.release_for_order(order)
        elif effect is InventoryEffect.CONSUME:
            ledger.consume_for_order(order)

    # --- Internal helpers -----------------------------------------------------

    def _product_ids_of(self, order_id: int) -> list[str]:
        with self._uow_factory() as uow:
            order = self._load(uow, order_id)
        return sorted(order.quantities_by_product())

    @staticmethod
    def _load(uow: UnitOfWork, order_id: int) -> Order:
        order = uow.orders.get_by_id(order_id)
        if order is None:
            raise ResourceNotFoundError(f"Order #{order_id} not found")
        return order

    @staticmethod
    def _money(amount: str | int | float | None, currency: str) -> Money | None:
        if amount is None:
            return None
        value = to_decimal(amount, field="amount")
        if value != round_money(value):
            raise ValidationError(
                field_errors={"amount": [f"Amount {value} is not in whole cents"]}
            )
        return Money(value, currency)

    @staticmethod
    def _next_order_number(uow: UnitOfWork, store: StoreConfig, at: datetime) -> str:
        prefix = store.order_number_prefix
        day = at.date()
        counter = uow.orders.count_for_store_on(store.id, day) + 1
        while True:
            number = f"{prefix}{day:%Y%m%d}{counter:04d}"
            if uow.orders.get_by_number(store.id, number) is None:
                return number
            counter += 1

    def _publish(self, event_kind: str, order: OrderDTO) -> None:
        try:
            self._notifier.notify(event_kind, order)
        except Exception:
            logger.exception(
                "Notification failed",
                event_kind=event_kind,
                order_number=order.order_number,
            )
