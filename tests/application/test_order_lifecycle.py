"""Integration tests for order lifecycle transitions."""

from datetime import timedelta
from decimal import Decimal

import pytest

from ordercore.application.order_processing_service import OrderProcessingService
from tests.fakes import NOW, RecordingNotifier, create_command, fixed_clock, seeded_data


def _setup(**store_overrides):
    data = seeded_data(**store_overrides)
    notifier = RecordingNotifier()
    service = OrderProcessingService(data.uow_factory(), notifier=notifier, clock=fixed_clock)
    return data, service, notifier


def _create(service, **kwargs):
    result = service.process(create_command(**kwargs))
    assert result.success, result.errors
    return result.order


class TestConfirm:

    def test_confirm_reserves_inventory(self):
        data, service, _ = _setup()
        dto = _create(service, items=[("p-1", 3), ("p-2", 5)])

        result = service.confirm(dto.id, "admin")

        assert result.success
        assert result.order.status == "confirmed"
        assert data.stock("p-1").reserved_quantity == 3
        assert data.stock("p-2").reserved_quantity == 5

    def test_confirm_twice_does_not_reserve_twice(self):
        data, service, _ = _setup()
        dto = _create(service)
        service.confirm(dto.id, "admin")

        result = service.confirm(dto.id, "admin")

        assert result.error_kind == "precondition"
        assert "expected pending" in result.errors[0]
        assert data.stock("p-1").reserved_quantity == 2

    def test_stock_gone_since_creation_fails_whole_confirm(self):
        data, service, notifier = _setup()
        dto = _create(service, items=[("p-1", 2), ("p-2", 5)])
        data.stock("p-2").quantity = 3

        result = service.confirm(dto.id, "admin")

        assert result.error_kind == "insufficient_inventory"
        assert result.errors == ["Insufficient inventory for Gadget (need 5, have 3 available)"]
        assert data.stock("p-1").reserved_quantity == 0
        assert service.get(dto.id).order.status == "pending"
        assert notifier.kinds == ["order.created"]

    def test_confirm_unknown_order(self):
        _, service, _ = _setup()
        assert service.confirm(404, "admin").error_kind == "not_found"


class TestCancel:

    def test_cancel_confirmed_releases_reservation(self):
        data, service, notifier = _setup()
        dto = _create(service)
        service.confirm(dto.id, "admin")

        result = service.cancel(dto.id, "admin", reason="customer request")

        assert result.order.status == "cancelled"
        assert result.order.fulfillment_status == "cancelled"
        assert result.order.cancelled_at is not None
        assert data.stock("p-1").reserved_quantity == 0
        assert notifier.kinds[-1] == "order.cancelled"

    def test_second_cancel_fails_without_second_release(self):
        data, service, _ = _setup()
        data.stock("p-1").reserved_quantity = 3  # held by some other order
        dto = _create(service, items=[("p-1", 5)])
        service.confirm(dto.id, "admin")
        service.cancel(dto.id, "admin")
        assert data.stock("p-1").reserved_quantity == 3

        result = service.cancel(dto.id, "admin")

        assert not result.success
        assert result.error_kind == "precondition"
        assert result.errors[0].startswith("Cannot cancel order ACM202603140001")
        assert data.stock("p-1").reserved_quantity == 3

    def test_cancel_pending_touches_no_stock(self):
        data, service, _ = _setup()
        data.stock("p-1").reserved_quantity = 4
        dto = _create(service)
        assert service.cancel(dto.id, None).success
        assert data.stock("p-1").reserved_quantity == 4


class TestPaymentShipmentAndRefund:

    def test_ship_unpaid_order_fails_and_leaves_it_unchanged(self):
        data, service, _ = _setup()
        dto = _create(service)
        service.confirm(dto.id, "admin")
        before = service.get(dto.id).order

        result = service.ship(dto.id, "admin", "1Z999", "UPS")

        assert result.error_kind == "precondition"
        assert service.get(dto.id).order == before
        assert data.stock("p-1").reserved_quantity == 2

    def test_full_lifecycle(self):
        data, service, notifier = _setup()
        dto = _create(service)
        assert dto.total_amount == "220.00"

        service.confirm(dto.id, "admin")
        service.start_processing(dto.id, "admin")
        paid = service.record_payment(dto.id, "admin", "220.00", "card", "tx-1").order
        assert paid.payment_status == "paid"

        shipped = service.ship(dto.id, "admin", "1Z999", "UPS").order
        assert shipped.status == "shipped"
        assert shipped.fulfillment_status == "fulfilled"
        assert shipped.tracking_numbers == ["1Z999"]
        assert data.stock("p-1").quantity == 8
        assert data.stock("p-1").reserved_quantity == 0

        assert service.deliver(dto.id, "admin").order.status == "delivered"
        completed = service.complete(dto.id, "admin").order
        assert completed.status == "completed"
        assert completed.total_paid == completed.total_amount
        assert notifier.kinds == [
            "order.created",
            "order.confirmed",
            "order.processing",
            "order.payment_received",
            "order.shipped",
            "order.delivered",
            "order.completed",
        ]

    def test_partial_payment(self):
        _, service, _ = _setup()
        dto = _create(service)
        result = service.record_payment(dto.id, "admin", "100")
        assert result.order.payment_status == "partially_paid"
        assert result.order.total_paid == "100.00"

    def test_payment_amount_must_be_a_number(self):
        _, service, _ = _setup()
        dto = _create(service)
        result = service.record_payment(dto.id, "admin", "lots")
        assert result.error_kind == "validation"
        assert "amount" in result.field_errors

    def test_amounts_must_be_whole_cents(self):
        _, service, _ = _setup(tax_rate=Decimal("0"))
        dto = _create(service, items=[("p-1", 1)], shipping_method_id="saver")
        service.confirm(dto.id, "admin")

        payment = service.record_payment(dto.id, "admin", "0.005")
        assert payment.error_kind == "validation"
        assert payment.field_errors["amount"] == ["Amount 0.005 is not in whole cents"]

        service.record_payment(dto.id, "admin", "100")
        service.ship(dto.id, "admin", "1Z1", "DHL")
        refund = service.refund(dto.id, "admin", "0.005")
        assert refund.error_kind == "validation"
        assert "amount" in refund.field_errors
        assert service.get(dto.id).order.total_refunded == "0.00"

    def test_refund_fifty_twice(self):
        _, service, notifier = _setup(tax_rate=Decimal("0"))
        # 100.00 subtotal qualifies for free "saver" shipping -> total 100
        dto = _create(service, items=[("p-1", 1)], shipping_method_id="saver")
        assert dto.total_amount == "100.00"
        service.confirm(dto.id, "admin")
        service.record_payment(dto.id, "admin", "100")
        service.ship(dto.id, "admin", "1Z1", "DHL")

        first = service.refund(dto.id, "admin", "50", reason="damaged box")
        assert first.order.payment_status == "partially_refunded"
        assert first.order.status == "shipped"

        second = service.refund(dto.id, "admin", "50")
        assert second.order.payment_status == "refunded"
        assert second.order.status == "refunded"
        assert second.order.total_refunded == "100.00"

        third = service.refund(dto.id, "admin", "1")
        assert third.error_kind == "precondition"
        assert notifier.kinds.count("order.refunded") == 2

    def test_fail_releases_reservation(self):
        data, service, _ = _setup()
        dto = _create(service)
        service.confirm(dto.id, "admin")

        result = service.fail(dto.id, "system", reason="payment declined")

        assert result.order.status == "failed"
        assert result.order.payment_status == "failed"
        assert data.stock("p-1").reserved_quantity == 0

    @pytest.mark.parametrize("op", ["deliver", "complete", "start_processing"])
    def test_out_of_order_transitions_rejected(self, op):
        _, service, _ = _setup()
        dto = _create(service)
        result = getattr(service, op)(dto.id, "admin")
        assert result.error_kind == "precondition"


class TestOverdue:

    def test_shipped_order_becomes_overdue_after_estimated_delivery(self):
        data = seeded_data()
        now = [NOW]
        service = OrderProcessingService(data.uow_factory(), clock=lambda: now[0])
        dto = _create(service)
        service.confirm(dto.id, "admin")
        service.record_payment(dto.id, "admin", dto.total_amount)
        shipped = service.ship(dto.id, "admin", "1Z999", "UPS").order
        assert shipped.estimated_delivery_date == "2026-03-17T12:00:00+00:00"
        assert not shipped.is_overdue

        now[0] = NOW + timedelta(days=4, hours=12)
        late = service.get(dto.id).order
        assert late.is_overdue
        assert late.overdue_days == 1.5
        assert late.days_since_created == 4.5

        delivered = service.deliver(dto.id, "admin").order
        assert not delivered.is_overdue
        assert delivered.overdue_days == 0.0
