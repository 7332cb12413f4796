"""Read-only JSON lookups for store configuration and users.

``stores.json`` holds one record per store including its discounts,
shipping methods and payment methods; ``users.json`` holds customers and
the ids of the addresses they own.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

from ordercore.domain.exceptions import PersistenceError, ValidationError
from ordercore.domain.model.customer import User
from ordercore.domain.model.store import (
    Discount,
    DiscountType,
    PaymentMethod,
    ShippingCalculation,
    ShippingMethod,
    StoreConfig,
)
from ordercore.domain.model.value_objects import Money
from ordercore.domain.repository.store_repository import StoreRepository, UserRepository
from ordercore.infrastructure.persistence.json_file import JsonFile


class JsonStoreRepository(StoreRepository):

    def __init__(self, file_path: Path) -> None:
        self._file = JsonFile(file_path)
        self._records: dict[str, dict] = {r["id"]: r for r in self._file.load()}

    def get_by_id(self, store_id: str) -> StoreConfig | None:
        raw = self._records.get(store_id)
        if raw is None:
            return None
        try:
            return self._to_domain(raw)
        except (KeyError, ValueError, ValidationError) as exc:
            raise PersistenceError(
                f"Invalid configuration for store '{store_id}': {exc}"
            ) from exc

    @staticmethod
    def _to_domain(raw: dict) -> StoreConfig:
        currency = raw.get("currency", "USD")
        return StoreConfig(
            id=raw["id"],
            name=raw["name"],
            slug=raw.get("slug", raw["id"]),
            currency=currency,
            tax_rate=Decimal(str(raw.get("tax_rate", "0"))),
            tax_name=raw.get("tax_name", "Sales tax"),
            minimum_order_amount=Decimal(str(raw.get("minimum_order_amount", "0"))),
            inventory_management=raw.get("inventory_management", True),
            accepts_orders=raw.get("accepts_orders", True),
            discounts=tuple(
                Discount(
                    id=d["id"],
                    code=d["code"],
                    discount_type=DiscountType(d["discount_type"]),
                    value=Decimal(str(d["value"])),
                    is_active=d.get("is_active", True),
                    starts_at=_parse_optional(d.get("starts_at")),
                    ends_at=_parse_optional(d.get("ends_at")),
                )
                for d in raw.get("discounts", [])
            ),
            shipping_methods=tuple(
                ShippingMethod(
                    id=m["id"],
                    name=m["name"],
                    calculation_method=ShippingCalculation(m["calculation_method"]),
                    base_cost=Money(Decimal(str(m.get("base_cost", "0"))), currency),
                    weight_rate=Decimal(str(m.get("weight_rate", "0"))),
                    free_shipping_threshold=(
                        Money(Decimal(str(m["free_shipping_threshold"])), currency)
                        if m.get("free_shipping_threshold") is not None
                        else None
                    ),
                    delivery_days=m.get("delivery_days", 3),
                    active=m.get("active", True),
                )
                for m in raw.get("shipping_methods", [])
            ),
            payment_methods=tuple(
                PaymentMethod(id=p["id"], name=p["name"], active=p.get("active", True))
                for p in raw.get("payment_methods", [])
            ),
        )


class JsonUserRepository(UserRepository):

    def __init__(self, file_path: Path) -> None:
        self._file = JsonFile(file_path)
        self._records: dict[str, dict] = {r["id"]: r for r in self._file.load()}

    def get_by_id(self, user_id: str) -> User | None:
        raw = self._records.get(user_id)
        if raw is None:
            return None
        return User(
            id=raw["id"],
            full_name=raw.get("full_name", ""),
            email=raw.get("email", ""),
            address_ids=frozenset(raw.get("address_ids", [])),
        )


def _parse_optional(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
