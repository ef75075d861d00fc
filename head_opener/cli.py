"""Typer CLI entrypoint for opening a head."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import NoReturn, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .balance import collect_balances, format_ada
from .config import OpenerConfig, load_config
from .errors import HeadOpenerError
from .hydra import HeadNodeClient
from .ledger import LedgerClient
from .logging_utils import configure_logging
from .models import RunSummary
from .runner import open_head
from .status import poll_head_status

logger = logging.getLogger(__name__)

app = typer.Typer(help="Open a Hydra head and commit every participant's funds", no_args_is_help=True)
console = Console()


def _fail(exc: HeadOpenerError) -> NoReturn:
    logger.error(
        "Run aborted: %s",
        exc,
        extra={
            "event": "run_failed",
            "data": {"participant": exc.participant, "step": exc.step, "error": type(exc).__name__},
        },
    )
    console.print(Panel(escape(exc.describe()), title=type(exc).__name__, style="bold red"))
    raise typer.Exit(code=exc.exit_code)


def _load(ctx: typer.Context) -> OpenerConfig:
    options = ctx.obj or {}
    try:
        config = load_config(options.get("config"))
    except HeadOpenerError as exc:
        _fail(exc)
    configure_logging(options.get("log_file"), level=logging.DEBUG if options.get("verbose") else logging.INFO)
    return config


def _render_summary(summary: RunSummary) -> None:
    if summary.already_open:
        console.print(Panel("Head already open; nothing to do.", style="bold green"))
        return
    table = Table(title="Committed funds")
    table.add_column("Participant")
    table.add_column("UTxO")
    table.add_column("ADA", justify="right")
    table.add_column("Commit tx")
    for outcome in summary.commits:
        table.add_row(outcome.participant, outcome.output.ref, format_ada(outcome.output.lovelace), outcome.tx_id)
    console.print(table)
    console.print(Panel("Hydra head funds are committed.", style="bold green"))


@app.callback()
def main_options(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(None, "--config", help="YAML file overriding environment settings"),
    log_file: Optional[Path] = typer.Option(None, "--log-file", help="JSON lines audit log"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    ctx.obj = {"config": config, "log_file": str(log_file) if log_file else None, "verbose": verbose}


@app.command("open")
def open_command(ctx: typer.Context) -> None:
    """Initialise the head if needed and commit each participant's funds."""
    config = _load(ctx)
    try:
        summary = asyncio.run(open_head(config))
    except HeadOpenerError as exc:
        _fail(exc)
    _render_summary(summary)


@app.command()
def status(
    ctx: typer.Context,
    participant: Optional[str] = typer.Option(None, help="Participant label or id (default: controller)"),
) -> None:
    """Print the head status reported by a participant's node."""
    config = _load(ctx)
    try:
        target = config.participant(participant) if participant else config.controller
        client = HeadNodeClient(target.http_url, target.ws_url, timeout=config.http_timeout)

        async def read(_url: str):
            return await client.read_status(timeout=config.status_timeout)

        head_status = asyncio.run(poll_head_status(target.ws_url, config.status_retry, reader=read))
    except HeadOpenerError as exc:
        _fail(exc)
    label = escape(f"[{target.label}]")
    console.print(f"{label} head status: [bold]{escape(head_status.raw)}[/]")


@app.command()
def balance(ctx: typer.Context) -> None:
    """Report the ADA held at every participant address (read-only)."""
    config = _load(ctx)

    async def collect():
        async with LedgerClient(
            config.blockfrost_url or "", project_id=config.blockfrost_api_key, timeout=config.http_timeout
        ) as ledger:
            return await collect_balances(config, ledger)

    records = asyncio.run(collect())
    if not records:
        console.print(Panel(f"No addresses found in {config.keys_dir}", style="bold red"))
        raise typer.Exit(code=1)

    table = Table(title=f"Balances ({config.keys_dir})")
    table.add_column("Participant")
    table.add_column("Kind")
    table.add_column("Address")
    table.add_column("ADA", justify="right")
    for record in records:
        amount = f"[red]{escape(record.error)}[/]" if record.error else format_ada(record.lovelace)
        table.add_row(record.participant, record.kind, record.address, amount)
    console.print(table)
    if any(record.error or record.low for record in records):
        raise typer.Exit(code=1)


def main() -> None:
    app()


__all__ = ["app", "main"]
