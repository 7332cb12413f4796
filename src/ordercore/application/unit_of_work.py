"""Unit of work: one atomic set of repository writes.

Repositories handed out by a unit of work stage their writes.  ``commit``
makes all of them durable together; leaving the ``with`` block without a
commit (normally because an exception escaped) discards everything.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable

from ordercore.domain.repository.inventory_repository import InventoryRepository
from ordercore.domain.repository.order_repository import OrderRepository
from ordercore.domain.repository.product_repository import ProductRepository
from ordercore.domain.repository.store_repository import StoreRepository, UserRepository


class UnitOfWork(ABC):

    orders: OrderRepository
    products: ProductRepository
    inventory: InventoryRepository
    stores: StoreRepository
    users: UserRepository

    def __enter__(self) -> UnitOfWork:
        self._begin()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        # Rolling back after a successful commit is a no-op.
        self.rollback()

    @abstractmethod
    def _begin(self) -> None:
        """Open fresh repositories for this unit of work."""

    @abstractmethod
    def commit(self) -> None:
        """Make every staged write durable, or raise PersistenceError."""

    @abstractmethod
    def rollback(self) -> None:
        """Discard staged writes."""


UnitOfWorkFactory = Callable[[], UnitOfWork]
