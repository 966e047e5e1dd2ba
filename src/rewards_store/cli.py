from __future__ import annotations

import json
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Iterator, Optional
from uuid import UUID

import typer
from loguru import logger
from pydantic import ValidationError

from .client import RewardsClient
from .config import get_settings
from .errors import DomainError, RewardsOperationalError
from .logging_setup import configure_logging

app = typer.Typer(help="rewards-store operational CLI")


def username_arg() -> str:
    return typer.Argument(..., help="Customer username")


@contextmanager
def _client() -> Iterator[RewardsClient]:
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)
    client = RewardsClient.from_settings(settings)
    try:
        yield client
    except (RewardsOperationalError, DomainError, ValidationError) as e:
        cause = getattr(e, "cause", None)
        logger.error(f"{type(e).__name__}: {e}" + (f" (cause: {cause!r})" if cause else ""))
        raise typer.Exit(code=1)
    finally:
        client.close()


def _echo(data) -> None:
    typer.echo(json.dumps(data, indent=2, default=str))


@app.command("ping")
def ping():
    """Open a connection and print its DSQL session id."""
    with _client() as rc:
        _echo({"ok": True, "session_id": rc.health()})


@app.command("balance")
def balance(username: str = username_arg()):
    with _client() as rc:
        _echo({"balance": rc.balance(username)})


@app.command("cart")
def cart(username: str = username_arg()):
    with _client() as rc:
        for item in rc.cart_items(username):
            typer.echo(json.dumps(item.model_dump(mode="json")))


@app.command("catalog")
def catalog(
    sort_by: str = typer.Option("name", "--sort-by", help="name | usd_price | points_price | rating"),
    order: str = typer.Option("asc", "--order", help="asc | desc"),
    category: Optional[str] = typer.Option(None, "--category", help="Only items of this category"),
):
    with _client() as rc:
        for item in rc.catalog_items(sort_by=sort_by, sort_order=order, category=category):
            typer.echo(json.dumps(item.model_dump(mode="json")))


@app.command("cart-add")
def cart_add(
    username: str = username_arg(),
    item_id: UUID = typer.Argument(..., help="Catalog item id"),
    quantity: int = typer.Option(1, "--quantity", "-q", help="Units to add (negative removes)"),
):
    with _client() as rc:
        rc.add_cart_item(username, item_id, quantity)
        typer.echo("ok")


@app.command("cart-remove")
def cart_remove(
    username: str = username_arg(),
    item_id: Optional[UUID] = typer.Argument(None, help="Item to remove; omit to empty the cart"),
):
    with _client() as rc:
        rc.remove_cart_items(username, item_id)
        typer.echo("ok")


@app.command("checkout")
def checkout(username: str = username_arg()):
    with _client() as rc:
        tx_id = rc.checkout(username)
        if tx_id is None:
            _echo({"message": "Empty cart. Nothing to do."})
        else:
            _echo({"txId": str(tx_id)})


@app.command("transactions")
def transactions(
    username: str = username_arg(),
    days: int = typer.Option(30, "--days", help="Look back this many days"),
):
    end = datetime.now(timezone.utc)
    start = end - timedelta(days=days)
    with _client() as rc:
        for tx in rc.transactions(username, start, end):
            typer.echo(json.dumps(tx.model_dump(mode="json")))


if __name__ == "__main__":
    app()
