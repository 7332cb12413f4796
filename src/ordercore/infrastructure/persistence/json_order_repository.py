"""JSON-file-backed implementation of OrderRepository.

The file is read once when the repository is opened; saves are kept in
memory until ``stage`` writes them out for the commit journal.  Every
order carries a ``version``: a save must present the version it was loaded
with, and ``check`` re-reads the file to make sure nobody else wrote the
same order in the meantime.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from pathlib import Path

from ordercore.domain.exceptions import PersistenceError
from ordercore.domain.model.order import (
    FulfillmentStatus,
    NoteKind,
    Order,
    OrderDiscount,
    OrderItem,
    OrderNote,
    OrderStatus,
    OrderTax,
    Payment,
    PaymentStatus,
    Refund,
    Shipment,
)
from ordercore.domain.model.value_objects import Money, Quantity, round_money
from ordercore.domain.repository.order_repository import OrderRepository
from ordercore.infrastructure.persistence.json_file import JsonFile


class JsonOrderRepository(OrderRepository):

    def __init__(self, file_path: Path) -> None:
        self._file = JsonFile(file_path)
        self._records: dict[int, dict] = {r["id"]: r for r in self._file.load()}
        self._base_versions = {oid: r.get("version", 0) for oid, r in self._records.items()}
        self._dirty: set[int] = set()

    # --- OrderRepository interface --------------------------------------------

    def next_id(self) -> int:
        if not self._records:
            return 1
        return max(self._records) + 1

    def get_by_id(self, order_id: int) -> Order | None:
        raw = self._records.get(order_id)
        return self._to_domain(raw) if raw is not None else None

    def get_by_number(self, store_id: str, order_number: str) -> Order | None:
        for raw in self._records.values():
            if raw["store_id"] == store_id and raw["order_number"] == order_number:
                return self._to_domain(raw)
        return None

    def count_for_store_on(self, store_id: str, day: date) -> int:
        return sum(
            1
            for raw in self._records.values()
            if raw["store_id"] == store_id
            and _parse_dt(raw["created_at"]).astimezone(timezone.utc).date() == day
        )

    def save(self, order: Order) -> None:
        if order.id is None:
            order.id = self.next_id()
        else:
            stored = self._records.get(order.id)
            stored_version = stored.get("version", 0) if stored is not None else 0
            if stored is not None and stored_version != order.version:
                raise PersistenceError(
                    f"Order #{order.id} was modified concurrently "
                    f"(version {order.version}, stored {stored_version})"
                )
        order.version += 1
        self._records[order.id] = self._to_raw(order)
        self._dirty.add(order.id)

    # --- Unit of work hooks ---------------------------------------------------

    def check(self) -> None:
        """Fail if any order staged here was changed on disk since loading."""
        if not self._dirty:
            return
        on_disk = {r["id"]: r.get("version", 0) for r in self._file.load()}
        for order_id in self._dirty:
            if on_disk.get(order_id) != self._base_versions.get(order_id):
                raise PersistenceError(
                    f"Order #{order_id} was modified concurrently; reload and retry"
                )

    def discard(self) -> None:
        self._dirty.clear()

    def stage(self) -> tuple[Path, Path] | None:
        """Write the merged file as a staged copy; return ``(staged, target)``."""
        if not self._dirty:
            return None
        records = {r["id"]: r for r in self._file.load()}
        for order_id in self._dirty:
            records[order_id] = self._records[order_id]
        return self._file.stage([records[k] for k in sorted(records)]), self._file.path

    def mark_committed(self) -> None:
        self._base_versions.update(
            {oid: self._records[oid]["version"] for oid in self._dirty}
        )
        self._dirty.clear()

    # --- Serialization --------------------------------------------------------

    @staticmethod
    def _to_raw(order: Order) -> dict:
        return {
            "id": order.id,
            "version": order.version,
            "order_number": order.order_number,
            "store_id": order.store_id,
            "user_id": order.user_id,
            "currency": order.currency,
            "billing_address_id": order.billing_address_id,
            "shipping_address_id": order.shipping_address_id,
            "payment_method_id": order.payment_method_id,
            "shipping_method_id": order.shipping_method_id,
            "customer_notes": order.customer_notes,
            "status": order.status.value,
            "payment_status": order.payment_status.value,
            "fulfillment_status": order.fulfillment_status.value,
            "subtotal_amount": _amount(order.subtotal_amount),
            "discount_amount": _amount(order.discount_amount),
            "tax_amount": _amount(order.tax_amount),
            "shipping_amount": _amount(order.shipping_amount),
            "total_amount": _amount(order.total_amount),
            "items": [
                {
                    "product_id": item.product_id,
                    "product_name": item.product_name,
                    "quantity": item.quantity.value,
                    "unit_price": _amount(item.unit_price),
                    "unit_weight": str(item.unit_weight),
                }
                for item in order.items
            ],
            "discounts": [
                {"discount_id": d.discount_id, "code": d.code, "amount": _amount(d.amount)}
                for d in order.discounts
            ],
            "taxes": [
                {"name": t.name, "rate": str(t.rate), "amount": _amount(t.amount)}
                for t in order.taxes
            ],
            "notes": [
                {
                    "content": n.content,
                    "actor_id": n.actor_id,
                    "kind": n.kind.value,
                    "created_at": n.created_at.isoformat(),
                }
                for n in order.notes
            ],
            "payments": [
                {
                    "amount": _amount(p.amount),
                    "payment_method_id": p.payment_method_id,
                    "transaction_id": p.transaction_id,
                    "created_at": p.created_at.isoformat(),
                    "status": p.status,
                }
                for p in order.payments
            ],
            "refunds": [
                {
                    "amount": _amount(r.amount),
                    "reason": r.reason,
                    "actor_id": r.actor_id,
                    "created_at": r.created_at.isoformat(),
                    "status": r.status,
                }
                for r in order.refunds
            ],
            "shipments": [
                {
                    "tracking_number": s.tracking_number,
                    "carrier": s.carrier,
                    "quantity": s.quantity,
                    "shipped_at": s.shipped_at.isoformat(),
                }
                for s in order.shipments
            ],
            "created_at": order.created_at.isoformat(),
            "updated_at": order.updated_at.isoformat(),
            "shipped_at": _iso(order.shipped_at),
            "delivered_at": _iso(order.delivered_at),
            "completed_at": _iso(order.completed_at),
            "cancelled_at": _iso(order.cancelled_at),
        }

    @staticmethod
    def _to_domain(raw: dict) -> Order:
        currency = raw["currency"]

        def money(value: str) -> Money:
            return Money(Decimal(value), currency)

        return Order(
            id=raw["id"],
            version=raw.get("version", 0),
            order_number=raw["order_number"],
            store_id=raw["store_id"],
            user_id=raw["user_id"],
            currency=currency,
            billing_address_id=raw.get("billing_address_id"),
            shipping_address_id=raw.get("shipping_address_id"),
            payment_method_id=raw.get("payment_method_id"),
            shipping_method_id=raw.get("shipping_method_id"),
            customer_notes=raw.get("customer_notes", ""),
            status=OrderStatus(raw["status"]),
            payment_status=PaymentStatus(raw["payment_status"]),
            fulfillment_status=FulfillmentStatus(raw["fulfillment_status"]),
            subtotal_amount=money(raw["subtotal_amount"]),
            discount_amount=money(raw["discount_amount"]),
            tax_amount=money(raw["tax_amount"]),
            shipping_amount=money(raw["shipping_amount"]),
            total_amount=money(raw["total_amount"]),
            items=[
                OrderItem(
                    product_id=i["product_id"],
                    product_name=i["product_name"],
                    quantity=Quantity(i["quantity"]),
                    unit_price=money(i["unit_price"]),
                    unit_weight=Decimal(i.get("unit_weight", "0")),
                )
                for i in raw["items"]
            ],
            discounts=[
                OrderDiscount(
                    discount_id=d["discount_id"], code=d["code"], amount=money(d["amount"])
                )
                for d in raw.get("discounts", [])
            ],
            taxes=[
                OrderTax(name=t["name"], rate=Decimal(t["rate"]), amount=money(t["amount"]))
                for t in raw.get("taxes", [])
            ],
            notes=[
                OrderNote(
                    content=n["content"],
                    actor_id=n.get("actor_id"),
                    kind=NoteKind(n["kind"]),
                    created_at=_parse_dt(n["created_at"]),
                )
                for n in raw.get("notes", [])
            ],
            payments=[
                Payment(
                    amount=money(p["amount"]),
                    payment_method_id=p.get("payment_method_id"),
                    transaction_id=p.get("transaction_id"),
                    created_at=_parse_dt(p["created_at"]),
                    status=p.get("status", "successful"),
                )
                for p in raw.get("payments", [])
            ],
            refunds=[
                Refund(
                    amount=money(r["amount"]),
                    reason=r.get("reason"),
                    actor_id=r.get("actor_id"),
                    created_at=_parse_dt(r["created_at"]),
                    status=r.get("status", "approved"),
                )
                for r in raw.get("refunds", [])
            ],
            shipments=[
                Shipment(
                    tracking_number=s["tracking_number"],
                    carrier=s["carrier"],
                    quantity=s["quantity"],
                    shipped_at=_parse_dt(s["shipped_at"]),
                )
                for s in raw.get("shipments", [])
            ],
            created_at=_parse_dt(raw["created_at"]),
            updated_at=_parse_dt(raw.get("updated_at") or raw["created_at"]),
            shipped_at=_parse_optional(raw.get("shipped_at")),
            delivered_at=_parse_optional(raw.get("delivered_at")),
            completed_at=_parse_optional(raw.get("completed_at")),
            cancelled_at=_parse_optional(raw.get("cancelled_at")),
        )


def _amount(money: Money) -> str:
    return str(round_money(money.amount))


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_dt(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _parse_optional(value: str | None) -> datetime | None:
    return _parse_dt(value) if value else None
