"""Abstract repository for Order aggregate."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date

from ordercore.domain.model.order import Order


class OrderRepository(ABC):

    @abstractmethod
    def next_id(self) -> int:
        """Generate the next unique order ID."""

    @abstractmethod
    def get_by_id(self, order_id: int) -> Order | None:
        """Return an order by its ID, or None if not found."""

    @abstractmethod
    def get_by_number(self, store_id: str, order_number: str) -> Order | None:
        """Return the order with this store-scoped number, or None."""

    @abstractmethod
    def count_for_store_on(self, store_id: str, day: date) -> int:
        """How many orders the store received on ``day`` (UTC)."""

    @abstractmethod
    def save(self, order: Order) -> None:
        """Persist a new or updated order.

        Implementations compare ``order.version`` with the stored version
        and raise PersistenceError on mismatch; on success the version is
        incremented.
        """
