"""Order form: validation of a create or update request.

Checks every input before anything is written and reports all problems at
once, keyed by field, the way a checkout form would.  A missing store or
user is reported as ResourceNotFoundError because nothing else can be
checked without them.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from ordercore.application.dto import CreateOrderCommand, OrderItemSpec
from ordercore.application.unit_of_work import UnitOfWork
from ordercore.domain.exceptions import ResourceNotFoundError, ValidationError
from ordercore.domain.model.customer import User
from ordercore.domain.model.order import MAX_LINE_ITEMS, OrderItem
from ordercore.domain.model.store import Discount, ShippingMethod, StoreConfig
from ordercore.domain.model.value_objects import Money, Quantity, is_currency_code
from ordercore.domain.service.inventory_ledger import InventoryLedger


@dataclass(frozen=True)
class ValidatedOrder:
    store: StoreConfig
    user: User
    items: list[OrderItem]
    discounts: list[Discount]
    shipping_method: ShippingMethod | None


class OrderForm:

    def __init__(self, uow: UnitOfWork, at: datetime) -> None:
        self._uow = uow
        self._at = at
        self._errors: dict[str, list[str]] = {}

    # --- Entry points ---------------------------------------------------------

    def validate_create(self, command: CreateOrderCommand) -> ValidatedOrder:
        store = self.load_store(command.store_id)
        user = self._uow.users.get_by_id(command.user_id)
        if user is None:
            raise ResourceNotFoundError(f"User not found: '{command.user_id}'")

        if not store.accepts_orders:
            self._add("store_id", f"Store {store.name} is not accepting orders")
        if not is_currency_code(command.currency):
            self._add("currency", "Currency must be a 3-letter code")
        elif command.currency != store.currency:
            self._add(
                "currency",
                f"Store {store.name} sells in {store.currency}, not {command.currency}",
            )

        if not user.owns_address(command.billing_address_id):
            self._add("billing_address_id", "Billing address does not exist")
        if not user.owns_address(command.shipping_address_id):
            self._add("shipping_address_id", "Shipping address does not exist")

        payment_method = store.find_payment_method(command.payment_method_id)
        if payment_method is None or not payment_method.active:
            self._add("payment_method_id", "Payment method does not exist")

        shipping_method = store.find_shipping_method(command.shipping_method_id)
        if shipping_method is None or not shipping_method.active:
            self._add("shipping_method_id", "Shipping method does not exist")

        items = self._build_items(store, command.items)
        discounts = self._check_discounts(store, command.discount_codes)
        self._check_minimum(store, items)
        self._raise_if_invalid()

        return ValidatedOrder(
            store=store,
            user=user,
            items=items,
            discounts=discounts,
            shipping_method=shipping_method,
        )

    def validate_items(
        self,
        store: StoreConfig,
        specs: list[OrderItemSpec],
        discount_codes: list[str],
    ) -> tuple[list[OrderItem], list[Discount]]:
        """Validate a full item-set replacement for an existing order."""
        items = self._build_items(store, specs)
        discounts = self._check_discounts(store, discount_codes)
        self._check_minimum(store, items)
        self._raise_if_invalid()
        return items, discounts

    def load_store(self, store_id: str) -> StoreConfig:
        store = self._uow.stores.get_by_id(store_id)
        if store is None:
            raise ResourceNotFoundError(f"Store not found: '{store_id}'")
        return store

    # --- Checks ---------------------------------------------------------------

    def _build_items(
        self, store: StoreConfig, specs: list[OrderItemSpec]
    ) -> list[OrderItem]:
        if not specs:
            self._add("items", "Order must contain at least one item")
            return []
        if len(specs) > MAX_LINE_ITEMS:
            self._add("items", f"Maximum {MAX_LINE_ITEMS} items per order")

        ledger = InventoryLedger(
            self._uow.inventory, self._uow.products, store.inventory_management
        )
        items: list[OrderItem] = []
        requested: dict[str, int] = {}
        for spec in specs:
            product = self._uow.products.get_by_id(spec.product_id)
            if product is None or product.store_id != store.id:
                self._add("items", f"Product '{spec.product_id}' does not exist")
                continue
            if not product.active:
                self._add("items", f"Product {product.name} is no longer available")
                continue
            try:
                quantity = Quantity(spec.quantity)
            except ValidationError as exc:
                self._add("items", f"{product.name}: {exc}")
                continue
            try:
                unit_price = Money(product.price.amount, store.currency).rounded()
            except ValidationError as exc:
                self._add("items", f"{product.name}: {exc}")
                continue

            if ledger.tracks(product):
                requested[product.id] = requested.get(product.id, 0) + quantity.value
                available = ledger.available_quantity(product.id)
                if requested[product.id] > available:
                    self._add(
                        "items",
                        f"Insufficient inventory for {product.name}. "
                        f"Available: {available}",
                    )

            items.append(
                OrderItem(
                    product_id=product.id,
                    product_name=product.name,
                    quantity=quantity,
                    unit_price=unit_price,  # <-- price snapshot
                    unit_weight=product.shipping_weight,
                )
            )
        return items

    def _check_discounts(self, store: StoreConfig, codes: list[str]) -> list[Discount]:
        valid, invalid = store.valid_discounts(list(dict.fromkeys(codes)), self._at)
        for code in invalid:
            self._add("discount_codes", f"Discount code {code} is invalid or expired")
        return valid

    def _check_minimum(self, store: StoreConfig, items: list[OrderItem]) -> None:
        minimum = store.minimum_order_amount
        if minimum <= 0 or not items:
            return
        subtotal = sum((item.total_price.amount for item in items), Decimal("0"))
        if subtotal < minimum:
            self._add(
                "base",
                f"Order subtotal {subtotal:.2f} is below the minimum order amount "
                f"{minimum:.2f} {store.currency}",
            )

    # --- Internal helpers -----------------------------------------------------

    def _add(self, field: str, message: str) -> None:
        self._errors.setdefault(field, []).append(message)

    def _raise_if_invalid(self) -> None:
        if self._errors:
            errors, self._errors = self._errors, {}
            raise ValidationError(field_errors=errors)
