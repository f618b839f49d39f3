"""Ledger mutation commands: buy, sell, mark and reset."""

from __future__ import annotations

from pathlib import Path  # noqa: TC003 - Required at runtime for Typer introspection
from typing import Annotated

import typer
from rich.table import Table

from paper_ledger.cli.utils import (
    console,
    echo_json,
    exit_ledger_error,
    format_signed_currency,
    load_markets_file,
    open_ledger,
)
from paper_ledger.ledger import LedgerError, OrderAction
from paper_ledger.ledger.models import format_shares


def buy(
    market_id: Annotated[str, typer.Argument(help="Market identifier.")],
    outcome: Annotated[str, typer.Argument(help="Outcome label to buy (e.g. Yes).")],
    shares: Annotated[float, typer.Option("--shares", "-s", help="Number of shares.")],
    price: Annotated[float, typer.Option("--price", "-p", help="Price per share (0-1).")],
    question: Annotated[
        str, typer.Option("--question", "-q", help="Market question stored with the order.")
    ] = "",
    output_json: Annotated[bool, typer.Option("--json", help="Output as JSON")] = False,
) -> None:
    """Buy shares of a market outcome with simulated cash."""
    ledger = open_ledger()
    try:
        result = ledger.place(market_id, question, outcome, OrderAction.BUY, shares, price)
    except LedgerError as e:
        exit_ledger_error(e)

    if output_json:
        echo_json(result.to_dict())
        return

    console.print(f"[green]✓[/green] {result.message}")
    console.print(f"[dim]Order ID: {result.order.id}[/dim]")
    console.print(f"Available balance: ${result.summary.available_balance:.2f}")


def sell(
    target: Annotated[
        str,
        typer.Argument(help="Order ID of an open buy, or a market ID when --outcome is given."),
    ],
    price: Annotated[float, typer.Option("--price", "-p", help="Sale price per share (0-1).")],
    shares: Annotated[
        float | None,
        typer.Option(
            "--shares",
            "-s",
            help="Shares to sell. Defaults to the whole order (or whole position).",
        ),
    ] = None,
    outcome: Annotated[
        str | None,
        typer.Option("--outcome", "-o", help="Treat TARGET as a market ID and sell this outcome."),
    ] = None,
    markets_file: Annotated[
        Path | None,
        typer.Option(
            "--markets",
            "-m",
            help="Market data JSON used to re-mark the remaining open positions.",
        ),
    ] = None,
    output_json: Annotated[bool, typer.Option("--json", help="Output as JSON")] = False,
) -> None:
    """Sell shares, consuming buy lots oldest first (FIFO)."""
    markets = load_markets_file(markets_file) if markets_file is not None else None
    sell_target: str | tuple[str, str] = (target, outcome) if outcome is not None else target

    ledger = open_ledger()
    try:
        result = ledger.sell(sell_target, price, shares, markets=markets)
    except LedgerError as e:
        exit_ledger_error(e)

    if output_json:
        echo_json(result.to_dict())
        return

    console.print(f"[green]✓[/green] {result.message}")

    if len(result.allocations) > 1:
        table = Table(title="Lots Consumed (FIFO)", show_header=True)
        table.add_column("Order ID", style="dim", no_wrap=True)
        table.add_column("Shares", justify="right")
        table.add_column("Cost Basis", justify="right")
        table.add_column("Remaining", justify="right")
        for lot in result.allocations:
            table.add_row(
                lot.order_id,
                format_shares(lot.shares),
                f"${lot.cost_basis:.2f}",
                format_shares(lot.shares_remaining),
            )
        console.print(table)

    console.print(f"Realized P&L: {format_signed_currency(result.summary.realized_pnl)}")
    console.print(f"Available balance: ${result.summary.available_balance:.2f}")


def mark(
    markets_file: Annotated[
        Path,
        typer.Argument(help="JSON file with a list of markets (or {\"markets\": [...]})."),
    ],
    output_json: Annotated[bool, typer.Option("--json", help="Output as JSON")] = False,
) -> None:
    """Re-price open positions from current market data."""
    markets = load_markets_file(markets_file)

    ledger = open_ledger()
    try:
        result = ledger.mark_to_market(markets)
    except LedgerError as e:
        exit_ledger_error(e)

    if output_json:
        echo_json(result.to_dict())
        return

    if result.persisted:
        console.print(f"[green]✓[/green] Updated {result.updated} open order(s)")
    else:
        console.print("[dim]No open orders changed.[/dim]")
    if result.unavailable:
        console.print(
            f"[yellow]{result.unavailable} open order(s) had no quote; "
            "previous valuation kept.[/yellow]"
        )
    console.print(
        f"Unrealized P&L: {format_signed_currency(result.summary.total_pnl)} "
        f"({result.summary.total_pnl_percentage:.1f}%)"
    )


def reset(
    balance: Annotated[
        float | None,
        typer.Option(
            "--balance",
            "-b",
            help="Starting balance for the fresh ledger. Defaults to the configured balance.",
            show_default=False,
        ),
    ] = None,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip the confirmation prompt."),
    ] = False,
) -> None:
    """Erase every order and start over with a fresh balance."""
    if not (yes or typer.confirm("Delete all orders and reset the ledger?", default=False)):
        console.print("[yellow]Reset cancelled.[/yellow]")
        raise typer.Exit(0)

    ledger = open_ledger()
    try:
        summary = ledger.reset(balance)
    except LedgerError as e:
        exit_ledger_error(e)

    console.print(
        f"[green]✓[/green] Ledger reset. Starting balance: ${summary.starting_balance:.2f}"
    )
