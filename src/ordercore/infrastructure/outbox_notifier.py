"""Notifier that appends order events to a JSON-lines outbox file.

A mailer or webhook sender can tail the outbox; the order core only
records that the event happened.
"""

from __future__ import annotations

import json
import threading
from datetime import datetime, timezone
from pathlib import Path

import structlog

from ordercore.application.dto import OrderDTO
from ordercore.application.notifications import Notifier

logger = structlog.get_logger(__name__)


class OutboxNotifier(Notifier):

    def __init__(self, file_path: Path) -> None:
        self._file_path = file_path
        self._lock = threading.Lock()

    def notify(self, event_kind: str, order: OrderDTO) -> None:
        event = {
            "event": event_kind,
            "order_id": order.id,
            "order_number": order.order_number,
            "store_id": order.store_id,
            "user_id": order.user_id,
            "status": order.status,
            "payment_status": order.payment_status,
            "fulfillment_status": order.fulfillment_status,
            "total_amount": order.total_amount,
            "currency": order.currency,
            "recorded_at": datetime.now(timezone.utc).isoformat(),
        }
        with self._lock:
            self._file_path.parent.mkdir(parents=True, exist_ok=True)
            with self._file_path.open("a", encoding="utf-8") as fh:
                fh.write(json.dumps(event) + "\n")
        logger.info("Order event queued", event_kind=event_kind, order_number=order.order_number)
