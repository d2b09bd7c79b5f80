from __future__ import annotations

from datetime import date, datetime

import click
import requests
from flask import Blueprint, current_app

from framel.modules.orders.rules import generate_order_id

cli_bp = Blueprint("cli", __name__, cli_group=None)


@cli_bp.cli.command("ping-api")
def ping_api() -> None:
    """Check that the remote Framel API answers its health endpoint."""
    base = current_app.config["API_URL"]
    root = base[: -len("/api")] if base.endswith("/api") else base
    try:
        response = requests.get(f"{root}/health", timeout=current_app.config["API_TIMEOUT"])
    except requests.RequestException as exc:
        raise click.ClickException(f"API unreachable at {root}: {exc}")
    if response.status_code != 200:
        raise click.ClickException(f"API unhealthy at {root}: HTTP {response.status_code}")
    print(f"API healthy at {root}")


@cli_bp.cli.command("order-id")
@click.argument("sequence", type=click.IntRange(min=0))
@click.option(
    "--date",
    "day",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    default=None,
    help="Order date as YYYY-MM-DD (default: today).",
)
def order_id(sequence: int, day: datetime | None) -> None:
    """Print the customer-facing order id for a date and daily sequence number.

    Support staff use this to match a customer's reference to an order.
    """
    when = day.date() if day else date.today()
    print(generate_order_id(when, sequence))
