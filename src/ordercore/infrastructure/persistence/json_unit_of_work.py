"""Unit of work over the JSON data directory.

Each unit of work opens fresh repositories on the files in ``data_dir``.
``commit`` first lets every repository check for conflicting writes, then
stages every changed file and hands the staged set to the commit journal,
which moves them in place together.  All of this runs under a lock shared
by every unit of work on the same directory so commits never interleave.
A unit of work is used for a single ``with`` block; leaving it discards
whatever was not committed.
"""

from __future__ import annotations

import threading
from pathlib import Path

import structlog

from ordercore.application.unit_of_work import UnitOfWork
from ordercore.domain.exceptions import PersistenceError
from ordercore.infrastructure.persistence.commit_journal import CommitJournal
from ordercore.infrastructure.persistence.json_inventory_repository import (
    JsonInventoryRepository,
)
from ordercore.infrastructure.persistence.json_order_repository import JsonOrderRepository
from ordercore.infrastructure.persistence.json_product_repository import (
    JsonProductRepository,
)
from ordercore.infrastructure.persistence.json_store_repository import (
    JsonStoreRepository,
    JsonUserRepository,
)

logger = structlog.get_logger(__name__)

_commit_locks: dict[Path, threading.Lock] = {}
_commit_locks_guard = threading.Lock()


def _commit_lock(data_dir: Path) -> threading.Lock:
    key = data_dir.resolve()
    with _commit_locks_guard:
        return _commit_locks.setdefault(key, threading.Lock())


class JsonUnitOfWork(UnitOfWork):

    def __init__(self, data_dir: Path) -> None:
        self._data_dir = data_dir
        self._lock = _commit_lock(data_dir)
        self._journal = CommitJournal(data_dir)

    def _begin(self) -> None:
        with self._lock:
            self._journal.recover()
            self.orders = JsonOrderRepository(self._data_dir / "orders.json")
            self.products = JsonProductRepository(self._data_dir / "products.json")
            self.inventory = JsonInventoryRepository(self._data_dir / "inventory.json")
            self.stores = JsonStoreRepository(self._data_dir / "stores.json")
            self.users = JsonUserRepository(self._data_dir / "users.json")

    def commit(self) -> None:
        writable = (self.orders, self.inventory)
        with self._lock:
            for repo in writable:
                repo.check()
            staged: list[tuple[Path, Path]] = []
            try:
                for repo in writable:
                    pair = repo.stage()
                    if pair is not None:
                        staged.append(pair)
            except PersistenceError:
                for tmp, _ in staged:
                    tmp.unlink(missing_ok=True)
                raise
            if staged:
                self._journal.publish(staged)
            for repo in writable:
                repo.mark_committed()
        logger.debug(
            "Unit of work committed",
            data_dir=str(self._data_dir),
            files=[target.name for _, target in staged],
        )

    def rollback(self) -> None:
        for repo in (self.orders, self.inventory):
            repo.discard()
