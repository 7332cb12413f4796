"""Outbound notification port.

The processing service calls ``notify(event_kind, order)`` only after a
unit of work has committed.  Delivery is fire-and-forget from the service's
point of view.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from ordercore.application.dto import OrderDTO

ORDER_CREATED = "order.created"
ORDER_UPDATED = "order.updated"
ORDER_CONFIRMED = "order.confirmed"
ORDER_PROCESSING = "order.processing"
ORDER_PAYMENT_RECEIVED = "order.payment_received"
ORDER_SHIPPED = "order.shipped"
ORDER_DELIVERED = "order.delivered"
ORDER_COMPLETED = "order.completed"
ORDER_CANCELLED = "order.cancelled"
ORDER_REFUNDED = "order.refunded"
ORDER_FAILED = "order.failed"


class Notifier(ABC):

    @abstractmethod
    def notify(self, event_kind: str, order: OrderDTO) -> None:
        """Hand an order event to the outside world."""


class NullNotifier(Notifier):

    def notify(self, event_kind: str, order: OrderDTO) -> None:
        return None
