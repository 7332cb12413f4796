"""InventoryItem aggregate: stock and reservations per product-location.

A product may be stocked in several locations.  Each location has its own
InventoryItem; ``position`` fixes the order in which locations are drawn
from (creation order).
"""

from __future__ import annotations

from dataclasses import dataclass

from ordercore.domain.exceptions import ValidationError

DEFAULT_LOCATION = "default"


@dataclass
class InventoryItem:
    """Aggregate root for inventory tracking at one location.

    Invariants:
    - ``0 <= reserved_quantity <= quantity``
    - ``available_quantity`` is always >= 0
    """

    product_id: str
    quantity: int
    reserved_quantity: int = 0
    location: str = DEFAULT_LOCATION
    position: int = 0

    def __post_init__(self) -> None:
        if self.quantity < 0:
            raise ValidationError("Inventory quantity cannot be negative")
        if not 0 <= self.reserved_quantity <= self.quantity:
            raise ValidationError(
                f"Reserved quantity {self.reserved_quantity} must be between "
                f"0 and {self.quantity}"
            )

    @property
    def key(self) -> tuple[str, str]:
        return self.product_id, self.location

    @property
    def available_quantity(self) -> int:
        return self.quantity - self.reserved_quantity

    def reserve(self, quantity: int) -> None:
        """Reserve stock at this location.

        Raises ValidationError if the location cannot cover ``quantity``.
        """
        if quantity <= 0:
            raise ValidationError("Reservation quantity must be positive")
        if quantity > self.available_quantity:
            raise ValidationError(
                f"Cannot reserve {quantity} of product {self.product_id} at "
                f"{self.location} (have {self.available_quantity} available)"
            )
        self.reserved_quantity += quantity

    def release(self, quantity: int) -> int:
        """Release up to ``quantity`` reserved units, floored at zero.

        Returns how many units were actually released so the caller can
        carry the remainder to the next location.
        """
        if quantity <= 0:
            raise ValidationError("Release quantity must be positive")
        released = min(quantity, self.reserved_quantity)
        self.reserved_quantity -= released
        return released

    def consume(self, quantity: int) -> int:
        """Turn up to ``quantity`` reserved units into shipped stock.

        Both ``quantity`` and ``reserved_quantity`` decrease by the amount
        consumed, which is returned.
        """
        if quantity <= 0:
            raise ValidationError("Consume quantity must be positive")
        consumed = min(quantity, self.reserved_quantity)
        self.reserved_quantity -= consumed
        self.quantity -= consumed
        return consumed

    def set_quantity(self, quantity: int) -> None:
        """Set the physical stock level; cannot drop below what is reserved."""
        if quantity < self.reserved_quantity:
            raise ValidationError(
                f"Cannot set quantity to {quantity}: {self.reserved_quantity} "
                f"units are reserved at {self.location}"
            )
        self.quantity = quantity
