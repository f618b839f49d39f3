"""
CLI application for Paper Ledger.

Provides commands for simulated trading against a local order ledger.
"""

from __future__ import annotations

from pathlib import Path  # noqa: TC003 - Required at runtime for Typer introspection
from typing import Annotated

import typer
from dotenv import find_dotenv, load_dotenv

from paper_ledger.cli.trade import buy, mark, reset, sell
from paper_ledger.cli.utils import console
from paper_ledger.cli.views import history, positions, summary

app = typer.Typer(
    name="paper-ledger",
    help="Paper Ledger CLI - Simulated prediction market trading with FIFO cost basis.",
    add_completion=False,
)

app.command("buy")(buy)
app.command("sell")(sell)
app.command("mark")(mark)
app.command("positions")(positions)
app.command("history")(history)
app.command("summary")(summary)
app.command("reset")(reset)


@app.callback()
def main(
    ledger_path: Annotated[
        Path | None,
        typer.Option(
            "--ledger",
            "-l",
            help="Path to the ledger JSON file. Defaults to PAPER_LEDGER_PATH or data/orders.json.",
            show_default=False,
        ),
    ] = None,
) -> None:
    """Paper Ledger CLI."""
    from paper_ledger.config import load_config_from_env, set_config

    load_dotenv(find_dotenv(usecwd=True))

    # Priority: CLI flag > PAPER_LEDGER_* env vars > defaults
    try:
        config = load_config_from_env()
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None

    if ledger_path is not None:
        config = config.model_copy(update={"ledger_path": ledger_path})
    set_config(config)


@app.command()
def version() -> None:
    """Show version information."""
    from paper_ledger import __version__

    console.print(f"paper-ledger v{__version__}")
