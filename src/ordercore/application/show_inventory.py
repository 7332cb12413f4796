"""Application service: Show Inventory use case (query)."""

from __future__ import annotations

from dataclasses import dataclass

from ordercore.application.unit_of_work import UnitOfWorkFactory


@dataclass(frozen=True)
class InventoryLineDTO:
    product_id: str
    product_name: str
    location: str
    total: int
    reserved: int
    available: int


class ShowInventoryHandler:

    def __init__(self, uow_factory: UnitOfWorkFactory) -> None:
        self._uow_factory = uow_factory

    def handle(self, product_id: str | None = None) -> list[InventoryLineDTO]:
        with self._uow_factory() as uow:
            if product_id is not None:
                items = uow.inventory.list_for_product(product_id)
            else:
                items = sorted(
                    uow.inventory.list_all(), key=lambda i: (i.product_id, i.position)
                )
            names = {p.id: p.name for p in uow.products.list_all()}
        return [
            InventoryLineDTO(
                product_id=item.product_id,
                product_name=names.get(item.product_id, item.product_id),
                location=item.location,
                total=item.quantity,
                reserved=item.reserved_quantity,
                available=item.available_quantity,
            )
            for item in items
        ]
