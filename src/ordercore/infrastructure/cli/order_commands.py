"""CLI commands for the Order aggregate."""

from __future__ import annotations

import click

from ordercore.application.dto import (
    CreateOrderCommand,
    OrderDTO,
    OrderItemSpec,
    ProcessingResult,
)
from ordercore.infrastructure.bootstrap import order_processing_service
from ordercore.infrastructure.settings import Settings

_id_option = click.option("--id", "order_id", required=True, type=int, help="Order ID.")
_actor_option = click.option("--actor", "actor_id", default=None, help="Who performs the action.")


def _parse_items(raw: str) -> list[OrderItemSpec]:
    """Parse 'p-1:3,p-2:5' into OrderItemSpec list."""
    specs: list[OrderItemSpec] = []
    for pair in raw.split(","):
        pair = pair.strip()
        if ":" not in pair:
            raise click.BadParameter(
                f"Invalid item format '{pair}'. Expected 'ProductId:Quantity'."
            )
        product_id, qty_str = pair.rsplit(":", 1)
        try:
            qty = int(qty_str)
        except ValueError:
            raise click.BadParameter(
                f"Invalid quantity '{qty_str}' for product '{product_id}'."
            )
        specs.append(OrderItemSpec(product_id=product_id.strip(), quantity=qty))
    return specs


def _unwrap(result: ProcessingResult) -> OrderDTO:
    """Return the order of a successful result or abort the command."""
    if result.success and result.order is not None:
        return result.order
    if result.field_errors:
        lines = [
            f"{field}: {message}"
            for field, messages in result.field_errors.items()
            for message in messages
        ]
    else:
        lines = result.errors
    raise click.ClickException("\n".join(lines))


def _display_order(dto: OrderDTO) -> None:
    """Shared formatting for displaying an order."""
    click.echo(f"Order #{dto.id} {dto.order_number}  (status={dto.status})")
    click.echo(f"Payment:     {dto.payment_status}")
    click.echo(f"Fulfillment: {dto.fulfillment_status}")
    click.echo(f"Created:     {dto.created_at}")
    if dto.is_overdue:
        click.echo(f"Overdue:     {dto.overdue_days} days past {dto.estimated_delivery_date}")
    if dto.tracking_numbers:
        click.echo(f"Tracking:    {', '.join(dto.tracking_numbers)}")
    click.echo()

    click.echo(f"  {'Product':<20} {'Qty':>5} {'Price':>10} {'Total':>10}")
    click.echo(f"  {'-'*47}")
    for item in dto.items:
        click.echo(
            f"  {item.product_name:<20} {item.quantity:>5} {item.unit_price:>10} {item.total_price:>10}"
        )
    click.echo(f"  {'-'*47}")
    click.echo(f"  {'Subtotal':<27} {dto.subtotal_amount:>20}")
    if dto.discount_codes:
        click.echo(f"  {'Discount (' + ', '.join(dto.discount_codes) + ')':<27} {'-' + dto.discount_amount:>20}")
    click.echo(f"  {'Tax':<27} {dto.tax_amount:>20}")
    click.echo(f"  {'Shipping':<27} {dto.shipping_amount:>20}")
    click.echo(f"  {'Order Total (' + dto.currency + ')':<27} {dto.total_amount:>20}")
    if dto.total_paid != "0.00" or dto.total_refunded != "0.00":
        click.echo(f"  {'Paid':<27} {dto.total_paid:>20}")
        click.echo(f"  {'Refunded':<27} {dto.total_refunded:>20}")


@click.command("create")
@click.option("--store", "store_id", required=True, help="Store ID.")
@click.option("--user", "user_id", required=True, help="Customer (user) ID.")
@click.option("--items", required=True, help="Items as 'ProductId:Qty,ProductId:Qty'.")
@click.option("--currency", default="USD", show_default=True)
@click.option("--billing-address", "billing_address_id", required=True)
@click.option("--shipping-address", "shipping_address_id", required=True)
@click.option("--payment-method", "payment_method_id", required=True)
@click.option("--shipping-method", "shipping_method_id", required=True)
@click.option("--discount", "discount_codes", multiple=True, help="Discount code (repeatable).")
@click.option("--notes", default="", help="Customer notes.")
@click.pass_obj
def order_create(
    settings: Settings,
    store_id: str,
    user_id: str,
    items: str,
    currency: str,
    billing_address_id: str,
    shipping_address_id: str,
    payment_method_id: str,
    shipping_method_id: str,
    discount_codes: tuple[str, ...],
    notes: str,
) -> None:
    """Create a new order (checks stock, does not reserve it)."""
    command = CreateOrderCommand(
        store_id=store_id,
        user_id=user_id,
        billing_address_id=billing_address_id,
        shipping_address_id=shipping_address_id,
        payment_method_id=payment_method_id,
        shipping_method_id=shipping_method_id,
        currency=currency,
        items=_parse_items(items),
        discount_codes=list(discount_codes),
        notes=notes,
    )
    dto = _unwrap(order_processing_service(settings).process(command))
    click.echo(f"Order #{dto.id} created  (number={dto.order_number})")
    _display_order(dto)


@click.command("show")
@_id_option
@click.pass_obj
def order_show(settings: Settings, order_id: int) -> None:
    """Show details of an existing order."""
    _display_order(_unwrap(order_processing_service(settings).get(order_id)))


@click.command("duplicate")
@_id_option
@_actor_option
@click.pass_obj
def order_duplicate(settings: Settings, order_id: int, actor_id: str | None) -> None:
    """Create a new pending order with the same items as an existing one."""
    dto = _unwrap(order_processing_service(settings).duplicate(order_id, actor_id))
    click.echo(f"Order #{dto.id} created  (number={dto.order_number})")
    _display_order(dto)


@click.command("update")
@_id_option
@click.option("--items", required=True, help="New item set as 'ProductId:Qty,...'.")
@click.option("--discount", "discount_codes", multiple=True, help="Replace discount codes.")
@_actor_option
@click.pass_obj
def order_update(
    settings: Settings,
    order_id: int,
    items: str,
    discount_codes: tuple[str, ...],
    actor_id: str | None,
) -> None:
    """Replace the items of a pending order and reprice it."""
    result = order_processing_service(settings).update_items(
        order_id,
        actor_id,
        _parse_items(items),
        list(discount_codes) if discount_codes else None,
    )
    _display_order(_unwrap(result))


@click.command("confirm")
@_id_option
@_actor_option
@click.pass_obj
def order_confirm(settings: Settings, order_id: int, actor_id: str | None) -> None:
    """Confirm a pending order (reserves inventory)."""
    dto = _unwrap(order_processing_service(settings).confirm(order_id, actor_id))
    click.echo(f"Order {dto.order_number} confirmed. Inventory reserved.")


@click.command("process")
@_id_option
@_actor_option
@click.pass_obj
def order_process(settings: Settings, order_id: int, actor_id: str | None) -> None:
    """Start processing a confirmed order."""
    dto = _unwrap(order_processing_service(settings).start_processing(order_id, actor_id))
    click.echo(f"Order {dto.order_number} is processing.")


@click.command("pay")
@_id_option
@click.option("--amount", required=True, help="Amount received.")
@click.option("--payment-method", "payment_method_id", default=None)
@click.option("--transaction", "transaction_id", default=None, help="Gateway transaction ID.")
@_actor_option
@click.pass_obj
def order_pay(
    settings: Settings,
    order_id: int,
    amount: str,
    payment_method_id: str | None,
    transaction_id: str | None,
    actor_id: str | None,
) -> None:
    """Record a payment against an order."""
    dto = _unwrap(
        order_processing_service(settings).record_payment(
            order_id, actor_id, amount, payment_method_id, transaction_id
        )
    )
    click.echo(
        f"Payment recorded for {dto.order_number}: paid {dto.total_paid} of "
        f"{dto.total_amount} {dto.currency} (payment={dto.payment_status})"
    )


@click.command("ship")
@_id_option
@click.option("--tracking", "tracking_number", required=True, help="Tracking number.")
@click.option("--carrier", required=True, help="Carrier name.")
@_actor_option
@click.pass_obj
def order_ship(
    settings: Settings,
    order_id: int,
    tracking_number: str,
    carrier: str,
    actor_id: str | None,
) -> None:
    """Ship a paid order (deducts reserved inventory)."""
    dto = _unwrap(
        order_processing_service(settings).ship(order_id, actor_id, tracking_number, carrier)
    )
    click.echo(f"Order {dto.order_number} shipped via {carrier} ({tracking_number}).")


@click.command("deliver")
@_id_option
@_actor_option
@click.pass_obj
def order_deliver(settings: Settings, order_id: int, actor_id: str | None) -> None:
    """Mark a shipped order as delivered."""
    dto = _unwrap(order_processing_service(settings).deliver(order_id, actor_id))
    click.echo(f"Order {dto.order_number} delivered.")


@click.command("complete")
@_id_option
@_actor_option
@click.pass_obj
def order_complete(settings: Settings, order_id: int, actor_id: str | None) -> None:
    """Complete a delivered order."""
    dto = _unwrap(order_processing_service(settings).complete(order_id, actor_id))
    click.echo(f"Order {dto.order_number} completed.")


@click.command("cancel")
@_id_option
@click.option("--reason", default=None)
@_actor_option
@click.pass_obj
def order_cancel(
    settings: Settings, order_id: int, reason: str | None, actor_id: str | None
) -> None:
    """Cancel an order (releases reserved inventory if confirmed)."""
    dto = _unwrap(order_processing_service(settings).cancel(order_id, actor_id, reason))
    click.echo(f"Order {dto.order_number} cancelled.")


@click.command("refund")
@_id_option
@click.option("--amount", required=True, help="Amount to refund.")
@click.option("--reason", default=None)
@_actor_option
@click.pass_obj
def order_refund(
    settings: Settings,
    order_id: int,
    amount: str,
    reason: str | None,
    actor_id: str | None,
) -> None:
    """Refund part or all of what was paid."""
    dto = _unwrap(
        order_processing_service(settings).refund(order_id, actor_id, amount, reason)
    )
    click.echo(
        f"Refunded {dto.total_refunded} {dto.currency} on {dto.order_number} "
        f"(payment={dto.payment_status}, status={dto.status})"
    )


@click.command("fail")
@_id_option
@click.option("--reason", default=None)
@_actor_option
@click.pass_obj
def order_fail(
    settings: Settings, order_id: int, reason: str | None, actor_id: str | None
) -> None:
    """Mark an order as failed (releases reserved inventory)."""
    dto = _unwrap(order_processing_service(settings).fail(order_id, actor_id, reason))
    click.echo(f"Order {dto.order_number} marked as failed.")
