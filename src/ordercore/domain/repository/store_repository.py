"""Read-only lookups for store configuration and customers."""

from __future__ import annotations

from abc import ABC, abstractmethod

from ordercore.domain.model.customer import User
from ordercore.domain.model.store import StoreConfig


class StoreRepository(ABC):

    @abstractmethod
    def get_by_id(self, store_id: str) -> StoreConfig | None:
        """Return a store's configuration, or None if not found."""


class UserRepository(ABC):

    @abstractmethod
    def get_by_id(self, user_id: str) -> User | None:
        """Return a user, or None if not found."""
