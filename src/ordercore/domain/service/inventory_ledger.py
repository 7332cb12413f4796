"""Domain service: Inventory Ledger.

Reserves and releases stock for products that may be held in several
locations.  Locations are drawn from in ``position`` order.

Reservation is two-phase:
  Phase 1 — load every location of every product involved and check that
            the total available quantity covers the request.  Nothing is
            mutated if any product falls short.
  Phase 2 — walk the locations reserving ``min(available, remaining)``
            at each and persist.

Products that do not track inventory, or stores with inventory management
switched off, are skipped entirely.
"""

from __future__ import annotations

import structlog

from ordercore.domain.exceptions import (
    InsufficientInventoryError,
    ResourceNotFoundError,
    ValidationError,
)
from ordercore.domain.model.inventory import InventoryItem
from ordercore.domain.model.order import Order
from ordercore.domain.model.product import Product
from ordercore.domain.repository.inventory_repository import InventoryRepository
from ordercore.domain.repository.product_repository import ProductRepository

logger = structlog.get_logger(__name__)


class InventoryLedger:

    def __init__(
        self,
        inventory_repo: InventoryRepository,
        product_repo: ProductRepository,
        inventory_management: bool = True,
    ) -> None:
        self._inventory_repo = inventory_repo
        self._product_repo = product_repo
        self._enabled = inventory_management

    # --- Queries --------------------------------------------------------------

    def available_quantity(self, product_id: str) -> int:
        return sum(
            loc.available_quantity
            for loc in self._inventory_repo.list_for_product(product_id)
        )

    def tracks(self, product: Product) -> bool:
        return self._enabled and product.track_inventory

    # --- Single-product operations --------------------------------------------

    def reserve(self, product_id: str, quantity: int) -> None:
        self.reserve_quantities({product_id: quantity})

    def release(self, product_id: str, quantity: int) -> None:
        self.release_quantities({product_id: quantity})

    # --- Order-level operations -----------------------------------------------

    def reserve_for_order(self, order: Order) -> None:
        """Reserve every line of ``order`` or nothing at all."""
        self.reserve_quantities(order.quantities_by_product())

    def release_for_order(self, order: Order) -> None:
        self.release_quantities(order.quantities_by_product())

    def consume_for_order(self, order: Order) -> None:
        """Deduct the reserved stock of a shipped order."""
        for product, quantity in self._tracked(order.quantities_by_product()):
            remaining = quantity
            for loc in self._inventory_repo.list_for_product(product.id):
                if remaining == 0:
                    break
                if loc.reserved_quantity == 0:
                    continue
                remaining -= loc.consume(remaining)
                self._inventory_repo.save(loc)
            if remaining:
                logger.warning(
                    "Shipped more than was reserved",
                    product_id=product.id,
                    unreserved=remaining,
                )

    # --- Core algorithm -------------------------------------------------------

    def reserve_quantities(self, quantities: dict[str, int]) -> None:
        # Phase 1: load all locations and validate
        plan: list[tuple[list[InventoryItem], int]] = []
        for product, quantity in self._tracked(quantities):
            locations = self._inventory_repo.list_for_product(product.id)
            available = sum(loc.available_quantity for loc in locations)
            if quantity > available:
                raise InsufficientInventoryError(
                    product.id, product.name, quantity, available
                )
            plan.append((locations, quantity))

        # Phase 2: mutate and persist
        for locations, quantity in plan:
            remaining = quantity
            for loc in locations:
                if remaining == 0:
                    break
                take = min(loc.available_quantity, remaining)
                if take == 0:
                    continue
                loc.reserve(take)
                self._inventory_repo.save(loc)
                remaining -= take
                logger.debug(
                    "Reserved stock",
                    product_id=loc.product_id,
                    location=loc.location,
                    quantity=take,
                )

    def release_quantities(self, quantities: dict[str, int]) -> None:
        """Release reservations, floored at zero per location."""
        for product, quantity in self._tracked(quantities):
            remaining = quantity
            for loc in self._inventory_repo.list_for_product(product.id):
                if remaining == 0:
                    break
                if loc.reserved_quantity == 0:
                    continue
                released = loc.release(remaining)
                self._inventory_repo.save(loc)
                remaining -= released
                logger.debug(
                    "Released stock",
                    product_id=loc.product_id,
                    location=loc.location,
                    quantity=released,
                )
            if remaining:
                logger.warning(
                    "Released more than was reserved",
                    product_id=product.id,
                    unreserved=remaining,
                )

    # --- Internal helpers -----------------------------------------------------

    def _tracked(self, quantities: dict[str, int]) -> list[tuple[Product, int]]:
        result: list[tuple[Product, int]] = []
        for product_id, quantity in quantities.items():
            if quantity <= 0:
                raise ValidationError("Quantity must be positive")
            product = self._product_repo.get_by_id(product_id)
            if product is None:
                raise ResourceNotFoundError(f"Product not found: '{product_id}'")
            if self.tracks(product):
                result.append((product, quantity))
        return result
