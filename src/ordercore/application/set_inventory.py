"""Application service: Set Inventory use case."""

from __future__ import annotations

import structlog

from ordercore.application.locks import LockManager, product_keys
from ordercore.application.unit_of_work import UnitOfWorkFactory
from ordercore.domain.exceptions import ResourceNotFoundError, ValidationError
from ordercore.domain.model.inventory import DEFAULT_LOCATION, InventoryItem

logger = structlog.get_logger(__name__)


class SetInventoryHandler:

    def __init__(self, uow_factory: UnitOfWorkFactory, locks: LockManager) -> None:
        self._uow_factory = uow_factory
        self._locks = locks

    def handle(
        self, product_id: str, quantity: int, location: str = DEFAULT_LOCATION
    ) -> InventoryItem:
        """Set the physical stock of a product at one location.

        New locations are appended after the existing ones, so they are
        drawn from last when reserving.
        """
        if quantity < 0:
            raise ValidationError("Inventory quantity cannot be negative")

        with self._locks.hold(*product_keys([product_id])):
            with self._uow_factory() as uow:
                product = uow.products.get_by_id(product_id)
                if product is None:
                    raise ResourceNotFoundError(f"Product not found: '{product_id}'")

                locations = uow.inventory.list_for_product(product_id)
                item = next((loc for loc in locations if loc.location == location), None)
                if item is not None:
                    item.set_quantity(quantity)
                else:
                    position = max((loc.position for loc in locations), default=-1) + 1
                    item = InventoryItem(
                        product_id=product_id,
                        quantity=quantity,
                        location=location,
                        position=position,
                    )
                uow.inventory.save(item)
                uow.commit()

        logger.info(
            "Inventory set", product_id=product_id, location=location, quantity=quantity
        )
        return item
