"""JSON-file-backed implementation of ProductRepository."""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path

from ordercore.domain.model.product import InventoryTracking, Product
from ordercore.domain.model.value_objects import Money
from ordercore.domain.repository.product_repository import ProductRepository
from ordercore.infrastructure.persistence.json_file import JsonFile


class JsonProductRepository(ProductRepository):

    def __init__(self, file_path: Path) -> None:
        self._file = JsonFile(file_path)
        self._records: dict[str, dict] = {r["id"]: r for r in self._file.load()}

    def get_by_id(self, product_id: str) -> Product | None:
        raw = self._records.get(product_id)
        return self._to_domain(raw) if raw is not None else None

    def list_all(self) -> list[Product]:
        return [self._to_domain(raw) for raw in self._records.values()]

    @staticmethod
    def _to_domain(raw: dict) -> Product:
        return Product(
            id=raw["id"],
            store_id=raw["store_id"],
            name=raw["name"],
            price=Money(Decimal(str(raw["price"])), raw.get("currency", "USD")),
            weight=Decimal(str(raw.get("weight", "0"))),
            inventory_tracking=InventoryTracking(raw.get("inventory_tracking", "simple")),
            active=raw.get("active", True),
        )
