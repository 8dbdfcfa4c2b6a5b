from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Awaitable, Optional, TypeVar

import typer

from agrofacil.config import get_settings
from agrofacil.errors import ValidationError
from agrofacil.infrastructure.db_factory import build_dsn, init_remote_schema
from agrofacil.orchestrator import run_sync, store_session, watch_connectivity
from agrofacil.reporter import print_summary, render_text_report
from agrofacil.sync.collections import COLLECTIONS, RECONCILE_ORDER, get_collection
from agrofacil.utils.logging import configure_logging

app = typer.Typer(help="AgroFácil: offline-first products, sales and costs.")

T = TypeVar("T")


def _run(coro: Awaitable[T]) -> T:
    """Run a coroutine with logging configured; map validation errors to exit 2."""
    settings = get_settings()
    configure_logging(
        level=settings.log_level, json_logs=settings.log_json, app_env=settings.app_env
    )
    try:
        return asyncio.run(coro)  # type: ignore[arg-type]
    except ValidationError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=2) from exc


def _echo_record(record: Any) -> None:
    typer.echo(json.dumps(record.model_dump(mode="json"), indent=2))


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    remote = (
        f"{settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name}"
        if settings.remote_enabled
        else "disabled"
    )
    typer.echo(
        f"storage={settings.storage_dir} quota={settings.storage_quota_bytes}B | "
        f"remote={remote} timeout={settings.remote_timeout_seconds}s | "
        f"probe_interval={settings.connectivity_probe_interval}s"
    )


@app.command("init-remote")
def init_remote() -> None:
    """
    Create the remote product/sale/cost tables.
    """
    settings = get_settings()
    configure_logging(
        level=settings.log_level, json_logs=settings.log_json, app_env=settings.app_env
    )
    init_remote_schema(build_dsn(settings))
    typer.echo("Remote schema ready.")


@app.command("list")
def list_records(
    collection: str = typer.Argument(..., help=f"One of: {', '.join(COLLECTIONS)}."),
    pending: bool = typer.Option(False, "--pending", help="Only records not yet synced."),
) -> None:
    """
    Print a collection as JSON.
    """
    try:
        get_collection(collection)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    async def _list() -> list:
        async with store_session() as store:
            records = store.pending(collection) if pending else store.records(collection)
            return [r.model_dump(mode="json") for r in records]

    typer.echo(json.dumps(_run(_list()), indent=2))


@app.command("add-product")
def add_product(
    name: str = typer.Option(..., "--name", "-n", help="Product name."),
    price: str = typer.Option(..., "--price", "-p", help="Price, e.g. 10.50 or 10,50."),
) -> None:
    """Register a product."""

    async def _add() -> Any:
        async with store_session() as store:
            return await store.create_product(name, price)

    _echo_record(_run(_add()))


@app.command("edit-product")
def edit_product(
    product_id: int = typer.Argument(..., help="Product id."),
    name: Optional[str] = typer.Option(None, "--name", "-n"),
    price: Optional[str] = typer.Option(None, "--price", "-p"),
) -> None:
    """Change a product's name and/or price. Past sales keep their totals."""

    async def _edit() -> Any:
        async with store_session() as store:
            return await store.update_product(product_id, name=name, price=price)

    _echo_record(_run(_edit()))


def _delete(collection: str, record_id: int) -> None:
    async def _remove() -> bool:
        async with store_session() as store:
            return await store.delete(collection, record_id)

    if not _run(_remove()):
        typer.echo(f"No {collection} record with id {record_id}.", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Deleted {collection} record {record_id}.")


@app.command("delete-product")
def delete_product(product_id: int = typer.Argument(..., help="Product id.")) -> None:
    """Delete a product. Sales made from it are kept."""
    _delete("products", product_id)


@app.command("add-sale")
def add_sale(
    product_id: int = typer.Argument(..., help="Product id."),
    quantity: int = typer.Argument(1, help="Units sold."),
) -> None:
    """Record a sale at the product's current price."""

    async def _add() -> Any:
        async with store_session() as store:
            return await store.create_sale(product_id, quantity)

    _echo_record(_run(_add()))


@app.command("delete-sale")
def delete_sale(sale_id: int = typer.Argument(..., help="Sale id.")) -> None:
    """Delete a sale."""
    _delete("sales", sale_id)


@app.command("add-cost")
def add_cost(
    description: str = typer.Option(..., "--description", "-d"),
    amount: str = typer.Option(..., "--amount", "-a", help="Amount, e.g. 50.00 or 50,00."),
    category: str = typer.Option(..., "--category", "-c", help="supply, transport or other."),
) -> None:
    """Record a cost."""

    async def _add() -> Any:
        async with store_session() as store:
            return await store.create_cost(description, amount, category)

    _echo_record(_run(_add()))


@app.command("delete-cost")
def delete_cost(cost_id: int = typer.Argument(..., help="Cost id.")) -> None:
    """Delete a cost."""
    _delete("costs", cost_id)


@app.command()
def report(
    export: Optional[Path] = typer.Option(
        None,
        "--export",
        "-e",
        help="Also write the plain-text report to this path.",
    ),
) -> None:
    """
    Show total costs, total sales and profit/loss.
    """

    async def _collect() -> tuple:
        async with store_session() as store:
            pending = sum(len(store.pending(name)) for name in RECONCILE_ORDER)
            return store.sales, store.costs, pending

    sales, costs, pending = _run(_collect())
    print_summary(sales, costs, pending=pending)
    if export is not None:
        export.parent.mkdir(parents=True, exist_ok=True)
        export.write_text(render_text_report(sales, costs), encoding="utf-8")
        typer.echo(f"Report written to {export}")


@app.command()
def sync() -> None:
    """
    Push unsynced records and load the remote snapshot, if the backend is reachable.
    """
    outcome = _run(run_sync())
    if outcome is None:
        typer.echo("Backend unreachable; local data unchanged.")
        return
    typer.echo(json.dumps(outcome, indent=2))


@app.command()
def watch() -> None:
    """
    Keep probing the backend and reconcile on every reconnect (Ctrl+C to stop).
    """
    _run(watch_connectivity())


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
