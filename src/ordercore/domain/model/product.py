"""Product aggregate.

Products live independently of orders. Orders copy the price and weight of
a product when a line item is created, so later catalog edits never leak
into existing orders.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from ordercore.domain.exceptions import ValidationError
from ordercore.domain.model.value_objects import Money


class InventoryTracking(Enum):
    NONE = "none"
    SIMPLE = "simple"
    ADVANCED = "advanced"


@dataclass
class Product:
    """A product in a store's catalog."""

    id: str
    store_id: str
    name: str
    price: Money
    weight: Decimal = Decimal("0")
    inventory_tracking: InventoryTracking = InventoryTracking.SIMPLE
    active: bool = True

    def __post_init__(self) -> None:
        if self.weight < 0:
            raise ValidationError(f"Weight of {self.name} cannot be negative")

    @property
    def track_inventory(self) -> bool:
        return self.inventory_tracking is not InventoryTracking.NONE

    @property
    def shipping_weight(self) -> Decimal:
        return self.weight or Decimal("0")
