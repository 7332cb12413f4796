"""CLI commands for inventory management."""

from __future__ import annotations

import click

from ordercore.domain.exceptions import DomainException
from ordercore.domain.model.inventory import DEFAULT_LOCATION
from ordercore.infrastructure.bootstrap import set_inventory_handler, show_inventory_handler
from ordercore.infrastructure.settings import Settings


@click.command("set")
@click.option("--product", "product_id", required=True, help="Product ID.")
@click.option("--quantity", required=True, type=int, help="Total quantity in stock.")
@click.option("--location", default=DEFAULT_LOCATION, show_default=True, help="Stock location.")
@click.pass_obj
def inventory_set(settings: Settings, product_id: str, quantity: int, location: str) -> None:
    """Set inventory level for a product at one location."""
    handler = set_inventory_handler(settings)

    try:
        item = handler.handle(product_id=product_id, quantity=quantity, location=location)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(
        f"Inventory for '{product_id}' at {item.location} set to {item.quantity} "
        f"({item.available_quantity} available)"
    )


@click.command("show")
@click.option("--product", "product_id", default=None, help="Only show this product.")
@click.pass_obj
def inventory_show(settings: Settings, product_id: str | None) -> None:
    """Show current inventory levels."""
    lines = show_inventory_handler(settings).handle(product_id)

    if not lines:
        click.echo("No inventory records found.")
        return

    click.echo(
        f"{'Product':<20} {'Location':<12} {'Total':>8} {'Reserved':>10} {'Available':>10}"
    )
    click.echo("-" * 64)
    for line in lines:
        click.echo(
            f"{line.product_name:<20} {line.location:<12} {line.total:>8} "
            f"{line.reserved:>10} {line.available:>10}"
        )
