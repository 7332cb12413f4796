"""Tests for the JSON unit of work, repositories and outbox notifier."""

import json
from datetime import datetime, timezone

import pytest

from ordercore.application.order_processing_service import OrderProcessingService
from ordercore.domain.exceptions import PersistenceError
from ordercore.domain.model.order import OrderStatus
from ordercore.domain.model.store import ShippingCalculation
from ordercore.domain.model.value_objects import Money
from ordercore.infrastructure.outbox_notifier import OutboxNotifier
from ordercore.infrastructure.persistence.json_unit_of_work import JsonUnitOfWork
from tests.fakes import create_command, fixed_clock, write_json_fixtures


@pytest.fixture
def data_dir(tmp_path):
    write_json_fixtures(tmp_path)
    return tmp_path


def _service(data_dir, notifier=None):
    return OrderProcessingService(
        lambda: JsonUnitOfWork(data_dir), notifier=notifier, clock=fixed_clock
    )


def _read(data_dir, name):
    return json.loads((data_dir / name).read_text(encoding="utf-8"))


class TestReadOnlyRepositories:

    def test_store_config_is_typed(self, data_dir):
        with JsonUnitOfWork(data_dir) as uow:
            store = uow.stores.get_by_id("acme")
            user = uow.users.get_by_id("u-1")
        assert store.order_number_prefix == "ACM"
        assert store.shipping_methods[0].calculation_method is ShippingCalculation.FIXED
        assert store.shipping_methods[0].base_cost == Money.of("10")
        assert user.owns_address("addr-2")

    def test_invalid_store_config_is_a_persistence_error(self, data_dir):
        stores = _read(data_dir, "stores.json")
        stores[0]["shipping_methods"][0]["calculation_method"] = "teleport"
        (data_dir / "stores.json").write_text(json.dumps(stores), encoding="utf-8")
        with JsonUnitOfWork(data_dir) as uow:
            with pytest.raises(PersistenceError, match="acme"):
                uow.stores.get_by_id("acme")

    def test_corrupt_file_is_a_persistence_error(self, data_dir):
        (data_dir / "orders.json").write_text("{not json", encoding="utf-8")
        with pytest.raises(PersistenceError, match="orders.json"):
            with JsonUnitOfWork(data_dir):
                pass

    def test_missing_files_are_created_empty(self, tmp_path):
        with JsonUnitOfWork(tmp_path / "fresh") as uow:
            assert uow.orders.get_by_id(1) is None
        assert _read(tmp_path / "fresh", "orders.json") == []


class TestOrderPersistence:

    def test_lifecycle_round_trip(self, data_dir):
        service = _service(data_dir)
        dto = service.process(create_command(discount_codes=["SAVE20"])).order
        service.confirm(dto.id, "admin")
        service.record_payment(dto.id, "admin", "199", transaction_id="tx-9")
        service.ship(dto.id, "admin", "1Z999", "UPS")

        raw = _read(data_dir, "orders.json")[0]
        assert raw["order_number"] == "ACM202603140001"
        assert raw["status"] == "shipped"
        assert raw["payment_status"] == "paid"
        assert raw["total_amount"] == "199.00"
        assert raw["discounts"] == [{"discount_id": "d-1", "code": "SAVE20", "amount": "20.00"}]
        assert raw["created_at"] == "2026-03-14T12:00:00+00:00"
        assert raw["version"] == 4

        stock = {r["product_id"]: r for r in _read(data_dir, "inventory.json")}
        assert stock["p-1"]["quantity"] == 8
        assert stock["p-1"]["reserved_quantity"] == 0

        with JsonUnitOfWork(data_dir) as uow:
            order = uow.orders.get_by_id(dto.id)
        assert order.status is OrderStatus.SHIPPED
        assert order.payments[0].transaction_id == "tx-9"
        assert order.shipments[0].carrier == "UPS"
        assert order.shipped_at == datetime(2026, 3, 14, 12, 0, tzinfo=timezone.utc)
        assert order.totals_consistent

    def test_nothing_written_without_commit(self, data_dir):
        dto = _service(data_dir).process(create_command()).order
        before = (data_dir / "orders.json").read_text(encoding="utf-8")

        with JsonUnitOfWork(data_dir) as uow:
            order = uow.orders.get_by_id(dto.id)
            order.customer_notes = "never saved"
            uow.orders.save(order)

        assert (data_dir / "orders.json").read_text(encoding="utf-8") == before

    def test_concurrent_write_to_same_order_is_rejected(self, data_dir):
        dto = _service(data_dir).process(create_command()).order
        first, second = JsonUnitOfWork(data_dir), JsonUnitOfWork(data_dir)

        with first, second:
            a = first.orders.get_by_id(dto.id)
            b = second.orders.get_by_id(dto.id)
            a.customer_notes = "first"
            b.customer_notes = "second"
            first.orders.save(a)
            second.orders.save(b)
            first.commit()
            with pytest.raises(PersistenceError, match="modified concurrently"):
                second.commit()

        with JsonUnitOfWork(data_dir) as uow:
            assert uow.orders.get_by_id(dto.id).customer_notes == "first"

    def test_failed_commit_writes_no_file(self, data_dir):
        dto = _service(data_dir).process(create_command()).order
        inventory_before = (data_dir / "inventory.json").read_text(encoding="utf-8")
        rival = JsonUnitOfWork(data_dir)

        with rival:
            order = rival.orders.get_by_id(dto.id)
            _service(data_dir).cancel(dto.id, "admin")
            order.customer_notes = "stale"
            rival.orders.save(order)
            stock = rival.inventory.list_for_product("p-1")[0]
            stock.quantity = 99
            rival.inventory.save(stock)
            with pytest.raises(PersistenceError):
                rival.commit()

        assert (data_dir / "inventory.json").read_text(encoding="utf-8") == inventory_before

    def test_concurrent_reservations_on_same_stock_are_rejected(self, data_dir):
        first, second = JsonUnitOfWork(data_dir), JsonUnitOfWork(data_dir)

        with first, second:
            a = first.inventory.list_for_product("p-1")[0]
            b = second.inventory.list_for_product("p-1")[0]
            a.reserve(2)
            b.reserve(3)
            first.inventory.save(a)
            second.inventory.save(b)
            first.commit()
            with pytest.raises(PersistenceError, match="modified concurrently"):
                second.commit()

        with JsonUnitOfWork(data_dir) as uow:
            assert uow.inventory.list_for_product("p-1")[0].reserved_quantity == 2

    def test_sub_cent_prices_are_stored_in_whole_cents(self, data_dir):
        products = _read(data_dir, "products.json")
        products[0]["price"] = "10.005"
        (data_dir / "products.json").write_text(json.dumps(products), encoding="utf-8")
        stores = _read(data_dir, "stores.json")
        stores[0]["tax_rate"] = "0"
        stores[0]["shipping_methods"][0]["base_cost"] = "10.01"
        (data_dir / "stores.json").write_text(json.dumps(stores), encoding="utf-8")

        dto = _service(data_dir).process(create_command(items=[("p-1", 1)])).order

        raw = _read(data_dir, "orders.json")[0]
        assert raw["items"][0]["unit_price"] == "10.01"
        assert raw["subtotal_amount"] == "10.01"
        assert raw["shipping_amount"] == "10.01"
        assert raw["total_amount"] == "20.02"
        with JsonUnitOfWork(data_dir) as uow:
            assert uow.orders.get_by_id(dto.id).totals_consistent


class TestAtomicCommit:

    def test_failed_second_write_leaves_every_file_unchanged(self, data_dir):
        service = _service(data_dir)
        dto = service.process(create_command()).order
        inventory_before = (data_dir / "inventory.json").read_text(encoding="utf-8")
        # A directory in the way makes staging inventory.json fail.
        (data_dir / "inventory.json.tmp").mkdir()

        with pytest.raises(PersistenceError, match="inventory.json.tmp"):
            service.confirm(dto.id, "admin")

        assert _read(data_dir, "orders.json")[0]["status"] == "pending"
        assert (data_dir / "inventory.json").read_text(encoding="utf-8") == inventory_before
        assert not (data_dir / "orders.json.tmp").exists()
        assert not (data_dir / "commit.journal").exists()

    def test_commit_succeeds_once_the_obstacle_is_gone(self, data_dir):
        service = _service(data_dir)
        dto = service.process(create_command()).order
        (data_dir / "inventory.json.tmp").mkdir()
        with pytest.raises(PersistenceError):
            service.confirm(dto.id, "admin")
        (data_dir / "inventory.json.tmp").rmdir()

        result = service.confirm(dto.id, "admin")

        assert result.success
        assert _read(data_dir, "orders.json")[0]["status"] == "confirmed"
        assert _read(data_dir, "inventory.json")[0]["reserved_quantity"] == 2

    def test_interrupted_commit_is_rolled_forward_on_open(self, data_dir):
        inventory = _read(data_dir, "inventory.json")
        inventory[0]["reserved_quantity"] = 4
        (data_dir / "inventory.json.tmp").write_text(json.dumps(inventory), encoding="utf-8")
        (data_dir / "commit.journal").write_text(
            json.dumps([{"staged": "inventory.json.tmp", "target": "inventory.json"}]),
            encoding="utf-8",
        )

        with JsonUnitOfWork(data_dir) as uow:
            assert uow.inventory.list_for_product("p-1")[0].reserved_quantity == 4

        assert not (data_dir / "commit.journal").exists()
        assert not (data_dir / "inventory.json.tmp").exists()

    def test_unreadable_journal_is_a_persistence_error(self, data_dir):
        (data_dir / "commit.journal").write_text("{broken", encoding="utf-8")
        with pytest.raises(PersistenceError, match="commit.journal"):
            with JsonUnitOfWork(data_dir):
                pass


class TestOutboxNotifier:

    def test_events_are_appended_as_json_lines(self, data_dir):
        outbox = data_dir / "notifications.jsonl"
        service = _service(data_dir, notifier=OutboxNotifier(outbox))
        dto = service.process(create_command()).order
        service.cancel(dto.id, "admin")

        events = [json.loads(line) for line in outbox.read_text(encoding="utf-8").splitlines()]
        assert [e["event"] for e in events] == ["order.created", "order.cancelled"]
        assert events[1]["status"] == "cancelled"
        assert events[0]["total_amount"] == "220.00"
