"""FIFO (First-In-First-Out) cost-basis allocation for closing sells.

This module walks the open buy lots of one instrument, oldest first, and works out how
many shares and how much cost basis each lot gives up to fill a sell.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING

from paper_ledger.constants import ZERO
from paper_ledger.ledger.exceptions import InsufficientSharesError

if TYPE_CHECKING:
    from paper_ledger.ledger.models import Instrument, Order, OrderBook


@dataclass(frozen=True)
class LotConsumption:
    """Shares and cost basis taken from one buy order by a sell."""

    order_id: str
    shares: Decimal
    cost_basis: Decimal
    shares_remaining: Decimal


@dataclass
class FifoAllocation:
    """Result of allocating a sell across open buy lots.

    ``updated_orders`` maps order id to the reduced buy order that should replace the
    original in the ledger.
    """

    shares: Decimal
    cost_basis: Decimal = ZERO
    consumptions: list[LotConsumption] = field(default_factory=list)
    updated_orders: dict[str, Order] = field(default_factory=dict)


def consume_lot(order: Order, shares: Decimal) -> tuple[Order, Decimal]:
    """
    Take ``shares`` from a buy order and return ``(reduced_order, cost_basis_consumed)``.

    Cost per share is recomputed from the order's current ``total_cost / shares`` since
    both shrink together across partial sells. Only consuming exactly the open shares
    counts as full consumption; it takes the whole remaining cost, so a full liquidation
    never leaves a residual. A partial consumption keeps the exact remaining shares,
    however small.

    The reduced order keeps its last ``current_price`` and is re-valued for the shares it
    still holds; a fully consumed order has its snapshot value/P&L cleared.

    Raises:
        ValueError: If ``shares`` is not positive or exceeds the order's open shares.
    """
    if shares <= 0:
        raise ValueError(f"Consumed shares must be positive (got {shares})")
    if shares > order.shares:
        raise ValueError(
            f"Cannot consume {shares} shares from order {order.id} holding {order.shares}"
        )

    if shares == order.shares:
        reduced = order.model_copy(
            update={
                "shares": ZERO,
                "total_cost": ZERO,
                "current_value": None,
                "pnl": None,
                "pnl_percentage": None,
            }
        )
        return reduced, order.total_cost

    consumed_cost = order.total_cost * shares / order.shares
    # Division rounds to context precision; never let the remaining cost go negative.
    cost_left = max(order.total_cost - consumed_cost, ZERO)
    reduced = order.model_copy(
        update={"shares": order.shares - shares, "total_cost": cost_left}
    )
    if reduced.current_price is not None:
        reduced = reduced.revalue(reduced.current_price)
    return reduced, consumed_cost


def fifo_lots(book: OrderBook, instrument: Instrument | None = None) -> list[Order]:
    """
    Open buys (for ``instrument``, or all instruments) in FIFO order.

    Sorted by timestamp ascending. ``sorted`` is stable, so orders sharing a timestamp
    keep their ledger insertion order.
    """
    return sorted(book.open_buys(instrument), key=lambda order: order.timestamp)


def allocate_fifo(
    book: OrderBook, instrument: Instrument, shares_to_sell: Decimal
) -> FifoAllocation:
    """
    Allocate ``shares_to_sell`` across the open buy lots of ``instrument`` (FIFO).

    The availability check runs before any lot is touched, so the walk below always
    completes once it starts.

    Args:
        book: Ledger to allocate against (not modified).
        instrument: ``(market_id, outcome)`` being sold.
        shares_to_sell: Quantity to close; must be positive.

    Returns:
        FifoAllocation with per-lot consumptions, total cost basis and reduced orders.

    Raises:
        InsufficientSharesError: If the open position is smaller than ``shares_to_sell``.
    """
    lots = fifo_lots(book, instrument)
    held = sum((lot.shares for lot in lots), ZERO)
    if shares_to_sell > held:
        raise InsufficientSharesError(held=held, requested=shares_to_sell)

    allocation = FifoAllocation(shares=shares_to_sell)
    remaining = shares_to_sell

    for lot in lots:
        if remaining <= 0:
            break

        take = min(lot.shares, remaining)
        reduced, cost = consume_lot(lot, take)

        allocation.cost_basis += cost
        allocation.updated_orders[lot.id] = reduced
        allocation.consumptions.append(
            LotConsumption(
                order_id=lot.id,
                shares=take,
                cost_basis=cost,
                shares_remaining=reduced.shares,
            )
        )
        remaining -= take

    return allocation
