"""Integration tests for order creation and item updates."""

from decimal import Decimal

from ordercore.application.dto import OrderItemSpec
from ordercore.application.order_processing_service import OrderProcessingService
from ordercore.domain.model.value_objects import Money
from tests.fakes import RecordingNotifier, create_command, fixed_clock, seeded_data


def _service(data, notifier=None):
    return OrderProcessingService(
        data.uow_factory(), notifier=notifier or RecordingNotifier(), clock=fixed_clock
    )


class TestProcessHappyPath:

    def test_creates_priced_pending_order(self):
        data = seeded_data()
        result = _service(data).process(create_command(discount_codes=["SAVE20"]))

        assert result.success, result.errors
        dto = result.order
        assert dto.order_number == "ACM202603140001"
        assert dto.status == "pending"
        assert dto.payment_status == "unpaid"
        assert dto.fulfillment_status == "unfulfilled"
        assert dto.subtotal_amount == "200.00"
        assert dto.discount_amount == "20.00"
        assert dto.tax_amount == "9.00"
        assert dto.shipping_amount == "10.00"
        assert dto.total_amount == "199.00"
        assert dto.discount_codes == ["SAVE20"]
        assert dto.notes[-1].kind == "creation"

    def test_creation_checks_stock_but_does_not_reserve(self):
        data = seeded_data()
        _service(data).process(create_command(items=[("p-1", 10)]))
        assert data.stock("p-1").reserved_quantity == 0
        assert data.stock("p-1").quantity == 10

    def test_order_numbers_count_up_per_store_and_day(self):
        data = seeded_data()
        service = _service(data)
        first = service.process(create_command()).order
        second = service.process(create_command()).order
        assert first.order_number == "ACM202603140001"
        assert second.order_number == "ACM202603140002"
        assert second.id == first.id + 1

    def test_price_is_snapshotted(self):
        data = seeded_data()
        service = _service(data)
        dto = service.process(create_command(items=[("p-2", 2)])).order
        data.products["p-2"].price = data.products["p-2"].price * 2
        assert service.get(dto.id).order.items[0].unit_price == "25.00"

    def test_weight_based_shipping(self):
        data = seeded_data(tax_rate=Decimal("0"))
        # 3 x 1.5kg at 2.00/kg on top of 5.00 base
        result = _service(data).process(
            create_command(items=[("p-1", 3)], shipping_method_id="ground")
        )
        assert result.order.shipping_amount == "14.00"
        assert result.order.total_amount == "314.00"

    def test_sub_cent_catalog_price_is_rounded_on_snapshot(self):
        data = seeded_data(tax_rate=Decimal("0"))
        data.products["p-2"].price = Money.of("10.005")
        dto = _service(data).process(create_command(items=[("p-2", 3)])).order
        assert dto.items[0].unit_price == "10.01"
        assert dto.subtotal_amount == "30.03"
        assert dto.total_amount == "40.03"

    def test_notifies_after_commit(self):
        data = seeded_data()
        notifier = RecordingNotifier()
        _service(data, notifier).process(create_command())
        assert notifier.kinds == ["order.created"]
        assert data.commits == 1


class TestProcessValidation:

    def test_unknown_user_is_not_found(self):
        data = seeded_data()
        result = _service(data).process(create_command(user_id="ghost"))
        assert not result.success
        assert result.error_kind == "not_found"
        assert "ghost" in result.errors[0]

    def test_collects_field_errors(self):
        data = seeded_data()
        result = _service(data).process(
            create_command(
                billing_address_id="not-mine",
                payment_method_id="cash",
                discount_codes=["EXPIRED"],
                currency="EUR",
            )
        )
        assert not result.success
        assert result.error_kind == "validation"
        assert set(result.field_errors) == {
            "billing_address_id",
            "payment_method_id",
            "discount_codes",
            "currency",
        }
        assert result.field_errors["discount_codes"] == [
            "Discount code EXPIRED is invalid or expired"
        ]
        assert data.orders == {}

    def test_insufficient_stock_is_reported_on_items(self):
        data = seeded_data()
        result = _service(data).process(create_command(items=[("p-1", 6), ("p-1", 5)]))
        assert result.field_errors["items"] == [
            "Insufficient inventory for Widget. Available: 10"
        ]

    def test_unknown_and_invalid_items(self):
        data = seeded_data()
        result = _service(data).process(create_command(items=[("p-404", 1), ("p-2", 0)]))
        assert result.field_errors["items"] == [
            "Product 'p-404' does not exist",
            "Gadget: Quantity must be positive",
        ]

    def test_minimum_order_amount(self):
        data = seeded_data(minimum_order_amount=Decimal("500"))
        result = _service(data).process(create_command())
        assert "base" in result.field_errors

    def test_store_not_accepting_orders(self):
        data = seeded_data(accepts_orders=False)
        result = _service(data).process(create_command())
        assert "store_id" in result.field_errors

    def test_failed_validation_sends_no_notification(self):
        data = seeded_data()
        notifier = RecordingNotifier()
        _service(data, notifier).process(create_command(items=[]))
        assert notifier.events == []


class TestUpdateItems:

    def test_replaces_items_and_reprices(self):
        data = seeded_data()
        service = _service(data)
        dto = service.process(create_command(discount_codes=["SAVE20"])).order

        result = service.update_items(dto.id, "u-1", [OrderItemSpec("p-2", 4)])

        assert result.success, result.errors
        updated = result.order
        assert [item.product_id for item in updated.items] == ["p-2"]
        assert updated.subtotal_amount == "100.00"
        assert updated.discount_codes == ["SAVE20"]
        # (100 - 20) * 5% = 4.00; + 10 shipping
        assert updated.total_amount == "94.00"
        assert updated.notes[-1].kind == "items_update"

    def test_update_can_drop_discounts(self):
        data = seeded_data()
        service = _service(data)
        dto = service.process(create_command(discount_codes=["SAVE20"])).order
        updated = service.update_items(dto.id, None, [OrderItemSpec("p-1", 1)], []).order
        assert updated.discount_codes == []
        assert updated.total_amount == "115.00"

    def test_only_pending_orders_can_be_updated(self):
        data = seeded_data()
        service = _service(data)
        dto = service.process(create_command()).order
        service.confirm(dto.id, "admin")

        result = service.update_items(dto.id, "u-1", [OrderItemSpec("p-2", 1)])

        assert result.error_kind == "precondition"
        assert service.get(dto.id).order.items[0].product_id == "p-1"

    def test_get_unknown_order(self):
        result = _service(seeded_data()).get(999)
        assert result.error_kind == "not_found"
        assert result.errors == ["Order #999 not found"]


class TestDuplicate:

    def test_copies_items_into_a_new_pending_order(self):
        data = seeded_data()
        notifier = RecordingNotifier()
        service = _service(data, notifier)
        source = service.process(
            create_command(items=[("p-1", 2), ("p-2", 3)], discount_codes=["SAVE20"], notes="gift")
        ).order
        service.confirm(source.id, "admin")

        result = service.duplicate(source.id, "u-1")

        assert result.success, result.errors
        reorder = result.order
        assert reorder.id != source.id
        assert reorder.order_number == "ACM202603140002"
        assert reorder.status == "pending"
        assert reorder.payment_status == "unpaid"
        assert [(i.product_id, i.quantity) for i in reorder.items] == [("p-1", 2), ("p-2", 3)]
        assert data.orders[reorder.id].customer_notes == "gift"
        assert reorder.discount_codes == []
        assert reorder.notes[-1].content == f"Duplicated from order {source.order_number}"
        assert notifier.kinds == ["order.created", "order.confirmed", "order.created"]

    def test_copy_is_priced_from_the_current_catalog(self):
        data = seeded_data()
        service = _service(data)
        source = service.process(create_command(items=[("p-2", 2)])).order
        data.products["p-2"].price = data.products["p-2"].price * 2

        reorder = service.duplicate(source.id, "u-1").order

        assert reorder.items[0].unit_price == "50.00"
        assert service.get(source.id).order.items[0].unit_price == "25.00"

    def test_copy_checks_stock(self):
        data = seeded_data()
        service = _service(data)
        source = service.process(create_command(items=[("p-1", 5)])).order
        data.stock("p-1").quantity = 4

        result = service.duplicate(source.id, "u-1")

        assert result.error_kind == "validation"
        assert result.field_errors["items"] == [
            "Insufficient inventory for Widget. Available: 4"
        ]
        assert len(data.orders) == 1

    def test_duplicate_unknown_order(self):
        result = _service(seeded_data()).duplicate(999, "u-1")
        assert result.error_kind == "not_found"
