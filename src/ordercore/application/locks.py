"""In-process locks that serialize work on the same order or product.

Keys are plain strings (``order:12``, ``product:7``, ``store:acme``).
``hold`` acquires several keys in sorted order, so two callers that need
overlapping keys can never deadlock each other.  Locks are re-entrant for
the owning thread.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterable, Iterator


def order_key(order_id: int) -> str:
    return f"order:{order_id}"


def product_keys(product_ids: Iterable[str]) -> list[str]:
    return [f"product:{pid}" for pid in product_ids]


def store_key(store_id: str) -> str:
    return f"store:{store_id}"


class LockManager:

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}

    def _lock_for(self, key: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, *keys: str) -> Iterator[None]:
        acquired: list[threading.RLock] = []
        try:
            for key in sorted(set(keys)):
                lock = self._lock_for(key)
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
