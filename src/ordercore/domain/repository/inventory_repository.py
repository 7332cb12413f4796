"""Abstract repository for InventoryItem aggregate."""

from __future__ import annotations

from abc import ABC, abstractmethod

from ordercore.domain.model.inventory import InventoryItem


class InventoryRepository(ABC):

    @abstractmethod
    def list_for_product(self, product_id: str) -> list[InventoryItem]:
        """Return a product's locations sorted by ``position``."""

    @abstractmethod
    def list_all(self) -> list[InventoryItem]:
        """Return every inventory record."""

    @abstractmethod
    def save(self, item: InventoryItem) -> None:
        """Persist a new or updated record, keyed by (product, location)."""
