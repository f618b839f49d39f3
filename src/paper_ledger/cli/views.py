"""Read-only ledger commands: positions, history and summary."""

from __future__ import annotations

from typing import TYPE_CHECKING, Annotated

import typer
from rich.table import Table

from paper_ledger.cli.utils import console, echo_json, format_signed_currency, open_ledger
from paper_ledger.ledger.models import format_shares

if TYPE_CHECKING:
    from decimal import Decimal

    from paper_ledger.ledger import Order


def _price(value: Decimal | None) -> str:
    return "-" if value is None else f"${value:.3f}"


def _pnl_cell(order: Order) -> str:
    if order.pnl is None:
        return "-"
    pct = f" ({order.pnl_percentage:.1f}%)" if order.pnl_percentage is not None else ""
    return f"{format_signed_currency(order.pnl)}{pct}"


def positions(
    market_id: Annotated[
        str | None,
        typer.Option("--market", "-m", help="Filter by market ID."),
    ] = None,
    output_json: Annotated[bool, typer.Option("--json", help="Output as JSON")] = False,
) -> None:
    """View open positions (unconsumed buy lots, oldest first)."""
    orders = open_ledger().list_open()
    if market_id:
        orders = [order for order in orders if order.market_id == market_id]

    if output_json:
        echo_json([order.to_document() for order in orders])
        return

    if not orders:
        console.print("[yellow]No open positions found[/yellow]")
        return

    table = Table(title="Open Positions", show_header=True)
    table.add_column("Order ID", style="dim", no_wrap=True)
    table.add_column("Market", style="cyan")
    table.add_column("Outcome", style="magenta")
    table.add_column("Shares", justify="right")
    table.add_column("Entry", justify="right")
    table.add_column("Current", justify="right")
    table.add_column("Value", justify="right")
    table.add_column("Unrealized P&L", justify="right")

    for order in orders:
        table.add_row(
            order.id,
            order.market_question or order.market_id,
            order.outcome,
            format_shares(order.shares),
            _price(order.price),
            _price(order.current_price),
            "-" if order.current_value is None else f"${order.current_value:.2f}",
            _pnl_cell(order),
        )

    console.print(table)


def history(
    limit: Annotated[
        int,
        typer.Option("--limit", "-n", help="Number of orders to show."),
    ] = 20,
    market_id: Annotated[
        str | None,
        typer.Option("--market", "-m", help="Filter by market ID."),
    ] = None,
    output_json: Annotated[bool, typer.Option("--json", help="Output as JSON")] = False,
) -> None:
    """View order history, newest first (closed buys and sells included)."""
    orders = open_ledger().list_history()
    if market_id:
        orders = [order for order in orders if order.market_id == market_id]
    orders = orders[:limit]

    if output_json:
        echo_json([order.to_document() for order in orders])
        return

    if not orders:
        console.print("[yellow]No orders found[/yellow]")
        return

    table = Table(title=f"Order History (Last {limit})", show_header=True)
    table.add_column("Date", style="dim")
    table.add_column("Market", style="cyan")
    table.add_column("Outcome", style="magenta")
    table.add_column("Action", style="yellow")
    table.add_column("Shares", justify="right")
    table.add_column("Price", justify="right")
    table.add_column("Total", justify="right")
    table.add_column("P&L", justify="right")

    for order in orders:
        table.add_row(
            order.timestamp.strftime("%Y-%m-%d %H:%M"),
            order.market_question or order.market_id,
            order.outcome,
            order.action.value.upper(),
            format_shares(order.shares),
            _price(order.price),
            f"${order.total_cost:.2f}",
            _pnl_cell(order),
        )

    console.print(table)


def summary(
    output_json: Annotated[bool, typer.Option("--json", help="Output as JSON")] = False,
) -> None:
    """View account summary: balance, invested, unrealized and realized P&L."""
    result = open_ledger().summary()

    if output_json:
        echo_json(result.to_dict())
        return

    table = Table(title="Account Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    table.add_row("Starting Balance", f"${result.starting_balance:.2f}")
    table.add_row("Available Balance", f"${result.available_balance:.2f}")
    table.add_row("Open Orders", str(result.total_orders))
    table.add_row("Total Invested", f"${result.total_invested:.2f}")
    table.add_row("Current Value", f"${result.total_current_value:.2f}")
    table.add_row(
        "Unrealized P&L",
        f"{format_signed_currency(result.total_pnl)} ({result.total_pnl_percentage:.1f}%)",
    )
    table.add_row("Sell Proceeds", f"${result.total_sell_proceeds:.2f}")
    table.add_row("Realized P&L", format_signed_currency(result.realized_pnl))
    if result.winning_sells or result.losing_sells:
        table.add_row("Win Rate", f"{result.win_rate:.1%}")

    console.print(table)
