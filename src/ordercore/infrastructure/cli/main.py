from pathlib import Path

import click

from ordercore.infrastructure.cli.inventory_commands import inventory_set, inventory_show
from ordercore.infrastructure.cli.order_commands import (
    order_cancel,
    order_complete,
    order_confirm,
    order_create,
    order_deliver,
    order_duplicate,
    order_fail,
    order_pay,
    order_process,
    order_refund,
    order_ship,
    order_show,
    order_update,
)
from ordercore.infrastructure.logging_config import configure_logging
from ordercore.infrastructure.settings import (
    DEFAULT_DATA_DIR,
    DEFAULT_LOG_LEVEL,
    LOG_LEVELS,
    Settings,
)


@click.group()
@click.option(
    "--data-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=DEFAULT_DATA_DIR,
    show_default=True,
    envvar="ORDERCORE_DATA_DIR",
    help="Directory holding the JSON data files.",
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default=DEFAULT_LOG_LEVEL,
    show_default=True,
    envvar="ORDERCORE_LOG_LEVEL",
)
@click.option(
    "--log-json/--no-log-json",
    default=False,
    envvar="ORDERCORE_LOG_JSON",
    help="Emit log lines as JSON.",
)
@click.pass_context
def cli(ctx: click.Context, data_dir: Path, log_level: str, log_json: bool) -> None:
    """ordercore — order processing for multi-store commerce"""
    settings = Settings(data_dir=data_dir, log_level=log_level.upper(), log_json=log_json)
    configure_logging(settings)
    ctx.obj = settings


@cli.group()
def order() -> None:
    """Manage orders."""


@cli.group()
def inventory() -> None:
    """Manage inventory."""


# Register subcommands
order.add_command(order_cancel)
order.add_command(order_complete)
order.add_command(order_confirm)
order.add_command(order_create)
order.add_command(order_deliver)
order.add_command(order_duplicate)
order.add_command(order_fail)
order.add_command(order_pay)
order.add_command(order_process)
order.add_command(order_refund)
order.add_command(order_ship)
order.add_command(order_show)
order.add_command(order_update)
inventory.add_command(inventory_set)
inventory.add_command(inventory_show)
