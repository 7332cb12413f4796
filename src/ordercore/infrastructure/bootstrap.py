"""Composition root — wires concrete implementations to domain interfaces.

This is the only place in the codebase that knows about *all* layers.
Every other module depends only on abstractions.
"""

from __future__ import annotations

from ordercore.application.locks import LockManager
from ordercore.application.order_processing_service import OrderProcessingService
from ordercore.application.set_inventory import SetInventoryHandler
from ordercore.application.show_inventory import ShowInventoryHandler
from ordercore.application.unit_of_work import UnitOfWorkFactory
from ordercore.infrastructure.outbox_notifier import OutboxNotifier
from ordercore.infrastructure.persistence.json_unit_of_work import JsonUnitOfWork
from ordercore.infrastructure.settings import Settings

# One lock table per process; every service built here shares it.
_LOCKS = LockManager()


def unit_of_work_factory(settings: Settings) -> UnitOfWorkFactory:
    return lambda: JsonUnitOfWork(settings.data_dir)


def order_processing_service(settings: Settings) -> OrderProcessingService:
    return OrderProcessingService(
        uow_factory=unit_of_work_factory(settings),
        notifier=OutboxNotifier(settings.outbox_path),
        locks=_LOCKS,
    )


def set_inventory_handler(settings: Settings) -> SetInventoryHandler:
    return SetInventoryHandler(unit_of_work_factory(settings), _LOCKS)


def show_inventory_handler(settings: Settings) -> ShowInventoryHandler:
    return ShowInventoryHandler(unit_of_work_factory(settings))
