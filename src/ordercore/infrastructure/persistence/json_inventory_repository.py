"""JSON-file-backed implementation of InventoryRepository.

Records are keyed by ``(product_id, location)``.  The quantities each row
had when the file was loaded are remembered, and ``check`` refuses to
commit a row whose copy on disk has moved on since, so two processes
reserving the same stock cannot overwrite each other.
"""

from __future__ import annotations

from pathlib import Path

from ordercore.domain.exceptions import PersistenceError
from ordercore.domain.model.inventory import DEFAULT_LOCATION, InventoryItem
from ordercore.domain.repository.inventory_repository import InventoryRepository
from ordercore.infrastructure.persistence.json_file import JsonFile


def _key(raw: dict) -> tuple[str, str]:
    return raw["product_id"], raw.get("location", DEFAULT_LOCATION)


def _levels(raw: dict | None) -> tuple[int, int] | None:
    if raw is None:
        return None
    return raw["quantity"], raw.get("reserved_quantity", 0)


class JsonInventoryRepository(InventoryRepository):

    def __init__(self, file_path: Path) -> None:
        self._file = JsonFile(file_path)
        self._records: dict[tuple[str, str], dict] = {
            _key(r): r for r in self._file.load()
        }
        self._base = {key: _levels(raw) for key, raw in self._records.items()}
        self._dirty: set[tuple[str, str]] = set()

    # --- InventoryRepository interface ----------------------------------------

    def list_for_product(self, product_id: str) -> list[InventoryItem]:
        items = [
            self._to_domain(raw)
            for key, raw in self._records.items()
            if key[0] == product_id
        ]
        return sorted(items, key=lambda item: item.position)

    def list_all(self) -> list[InventoryItem]:
        return [self._to_domain(raw) for raw in self._records.values()]

    def save(self, item: InventoryItem) -> None:
        self._records[item.key] = self._to_raw(item)
        self._dirty.add(item.key)

    # --- Unit of work hooks ---------------------------------------------------

    def check(self) -> None:
        """Fail if a row staged here was changed on disk since loading."""
        if not self._dirty:
            return
        on_disk = {_key(r): _levels(r) for r in self._file.load()}
        for key in self._dirty:
            if on_disk.get(key) != self._base.get(key):
                product_id, location = key
                raise PersistenceError(
                    f"Inventory for '{product_id}' at {location} was modified "
                    "concurrently; reload and retry"
                )

    def discard(self) -> None:
        self._dirty.clear()

    def stage(self) -> tuple[Path, Path] | None:
        """Write the merged file as a staged copy; return ``(staged, target)``."""
        if not self._dirty:
            return None
        records = {_key(r): r for r in self._file.load()}
        for key in self._dirty:
            records[key] = self._records[key]
        return self._file.stage(list(records.values())), self._file.path

    def mark_committed(self) -> None:
        self._base.update({key: _levels(self._records[key]) for key in self._dirty})
        self._dirty.clear()

    # --- Serialization --------------------------------------------------------

    @staticmethod
    def _to_raw(item: InventoryItem) -> dict:
        return {
            "product_id": item.product_id,
            "location": item.location,
            "position": item.position,
            "quantity": item.quantity,
            "reserved_quantity": item.reserved_quantity,
        }

    @staticmethod
    def _to_domain(raw: dict) -> InventoryItem:
        return InventoryItem(
            product_id=raw["product_id"],
            quantity=raw["quantity"],
            reserved_quantity=raw.get("reserved_quantity", 0),
            location=raw.get("location", DEFAULT_LOCATION),
            position=raw.get("position", 0),
        )
