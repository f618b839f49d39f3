"""Summary projection: aggregate metrics derived from a ledger.

The projection is recomputed from the full order list on every read. Nothing here keeps
running totals, so repeated refreshes cannot drift.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict

from paper_ledger.constants import DEFAULT_STARTING_BALANCE, ZERO
from paper_ledger.ledger.models import pnl_percentage

if TYPE_CHECKING:
    from paper_ledger.ledger.models import OrderBook


class LedgerSummary(BaseModel):
    """Aggregate view of a simulated account."""

    model_config = ConfigDict(frozen=True)

    total_orders: int
    total_invested: Decimal
    total_current_value: Decimal
    total_pnl: Decimal
    total_pnl_percentage: Decimal
    total_sell_proceeds: Decimal
    realized_pnl: Decimal
    starting_balance: Decimal
    available_balance: Decimal
    winning_sells: int = 0
    losing_sells: int = 0
    win_rate: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


def summarize(
    book: OrderBook, *, default_starting_balance: Decimal = DEFAULT_STARTING_BALANCE
) -> LedgerSummary:
    """
    Project ``book`` into a LedgerSummary.

    - Invested / current value / unrealized P&L cover open buys only.
    - Realized P&L is the sum of the locked-in P&L of every sell.
    - Available balance = starting balance - open cost basis + realized P&L.

    Args:
        book: Ledger snapshot.
        default_starting_balance: Used when the ledger was never reset with an explicit
            balance.
    """
    open_buys = book.open_buys()
    sells = book.sells()

    total_invested = sum((order.total_cost for order in open_buys), ZERO)
    total_current_value = sum(
        (order.current_value for order in open_buys if order.current_value is not None), ZERO
    )
    total_pnl = total_current_value - total_invested

    total_sell_proceeds = sum((order.total_cost for order in sells), ZERO)
    realized = [order.pnl for order in sells if order.pnl is not None]
    realized_pnl = sum(realized, ZERO)

    winning = sum(1 for pnl in realized if pnl > 0)
    losing = sum(1 for pnl in realized if pnl < 0)

    starting_balance = (
        book.starting_balance if book.starting_balance is not None else default_starting_balance
    )

    return LedgerSummary(
        total_orders=len(open_buys),
        total_invested=total_invested,
        total_current_value=total_current_value,
        total_pnl=total_pnl,
        total_pnl_percentage=pnl_percentage(total_pnl, total_invested),
        total_sell_proceeds=total_sell_proceeds,
        realized_pnl=realized_pnl,
        starting_balance=starting_balance,
        available_balance=starting_balance - total_invested + realized_pnl,
        winning_sells=winning,
        losing_sells=losing,
        win_rate=winning / len(realized) if realized else 0.0,
    )
