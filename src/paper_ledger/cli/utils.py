"""Shared utilities for CLI commands (console output, ledger access, market files)."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, NoReturn

import typer
from rich.console import Console

from paper_ledger.ledger import PaperLedger

if TYPE_CHECKING:
    from decimal import Decimal
    from pathlib import Path

    from paper_ledger.ledger import LedgerError

console = Console()


def open_ledger() -> PaperLedger:
    """Return a ledger backed by the configured JSON file."""
    return PaperLedger.from_config()


def exit_ledger_error(error: LedgerError) -> NoReturn:
    """Print a ledger failure and exit with status 1."""
    console.print(f"[red]Error:[/red] {error.message}")
    raise typer.Exit(1) from None


def format_signed_currency(amount: Decimal) -> str:
    """Format a dollar amount with sign and color markup."""
    value = f"${abs(amount):.2f}"
    if amount > 0:
        return f"[green]+{value}[/green]"
    if amount < 0:
        return f"[red]-{value}[/red]"
    return value


def echo_json(payload: Any) -> None:
    """Write ``payload`` as indented JSON on stdout (no rich markup or wrapping)."""
    typer.echo(json.dumps(payload, indent=2, default=str))


def load_markets_file(path: Path) -> list[dict[str, Any]]:
    """Load market records from a JSON file.

    Accepts a top-level list of market objects, or an object with a ``markets`` list.
    Exits with an error message if the file is missing, invalid JSON, or has an
    unexpected shape.
    """
    try:
        with path.open(encoding="utf-8") as f:
            raw = json.load(f)
    except FileNotFoundError:
        console.print(f"[red]Error:[/red] Markets file not found: {path}")
        raise typer.Exit(1) from None
    except json.JSONDecodeError:
        console.print(f"[red]Error:[/red] Markets file is not valid JSON: {path}")
        raise typer.Exit(1) from None

    if isinstance(raw, dict):
        raw = raw.get("markets")

    if not isinstance(raw, list) or not all(isinstance(item, dict) for item in raw):
        console.print(
            f"[red]Error:[/red] Markets file has an unexpected schema: {path} "
            "(expected a list of market objects or '{\"markets\": [...]}')"
        )
        raise typer.Exit(1) from None

    return raw
