"""Order engine: the owned, lock-guarded simulated ledger.

Every mutating operation is one read-modify-write cycle against the store:

1. load the whole ledger,
2. validate the intent and compute the new ledger (nothing is written on rejection),
3. save the whole ledger,
4. recompute the summary from what was saved.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any

import structlog

from paper_ledger.config import get_config
from paper_ledger.ledger._fifo import LotConsumption, allocate_fifo, fifo_lots
from paper_ledger.ledger.exceptions import (
    InsufficientBalanceError,
    InvalidOrderError,
    OrderNotFoundError,
    QuoteUnavailableError,
)
from paper_ledger.ledger.models import (
    Instrument,
    Order,
    OrderAction,
    OrderBook,
    format_shares,
    pnl_percentage,
)
from paper_ledger.ledger.quotes import MarketInput, QuoteBook, build_quote_book
from paper_ledger.ledger.store import JsonFileLedgerStore, LedgerStore
from paper_ledger.ledger.summary import LedgerSummary, summarize

if TYPE_CHECKING:
    from paper_ledger.config import LedgerConfig

logger = structlog.get_logger()

SellTarget = str | tuple[str, str]
"""An order id, or an instrument ``(market_id, outcome)``."""


@dataclass(frozen=True)
class OrderResult:
    """Outcome of a successful place/sell."""

    order: Order
    message: str
    summary: LedgerSummary
    allocations: tuple[LotConsumption, ...] = ()
    success: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "order": self.order.to_document(),
            "message": self.message,
            "summary": self.summary.to_dict(),
            "allocations": [
                {
                    "orderId": lot.order_id,
                    "shares": str(lot.shares),
                    "costBasis": str(lot.cost_basis),
                    "sharesRemaining": str(lot.shares_remaining),
                }
                for lot in self.allocations
            ],
        }


@dataclass(frozen=True)
class MarkToMarketResult:
    """Outcome of re-pricing the open positions."""

    updated: int
    unavailable: int
    summary: LedgerSummary
    open_orders: list[Order] = field(default_factory=list)

    @property
    def persisted(self) -> bool:
        """True when at least one snapshot changed (and the ledger was written)."""
        return self.updated > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": True,
            "updated": self.updated,
            "unavailable": self.unavailable,
            "orders": [order.to_document() for order in self.open_orders],
            "summary": self.summary.to_dict(),
        }


def _to_decimal(value: Decimal | int | float | str, *, name: str) -> Decimal:
    """Coerce a caller-supplied number to a finite Decimal."""
    if isinstance(value, bool):
        raise InvalidOrderError(f"{name} must be a number (got {value!r})")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except InvalidOperation:
            raise InvalidOrderError(f"{name} must be a number (got {value!r})") from None
    if not result.is_finite():
        raise InvalidOrderError(f"{name} must be finite (got {value!r})")
    return result


def _require_instrument(market_id: str, outcome: str) -> Instrument:
    if not market_id or not market_id.strip():
        raise InvalidOrderError("market_id is required")
    if not outcome or not outcome.strip():
        raise InvalidOrderError("outcome is required")
    return (market_id, outcome)


def _coerce_quote_book(markets: QuoteBook | Iterable[MarketInput]) -> QuoteBook:
    if isinstance(markets, QuoteBook):
        return markets
    return build_quote_book(markets)


def apply_quotes(book: OrderBook, quotes: QuoteBook) -> tuple[OrderBook, int, int]:
    """
    Re-mark every open buy in ``book`` against ``quotes``.

    Sells and closed buys are left untouched. An open buy without a quote keeps its
    previous snapshot.

    Returns:
        ``(book, updated, unavailable)``. ``book`` is the input object itself when no
        snapshot changed, so callers can skip the write.
    """
    orders: list[Order] = []
    updated = 0
    unavailable = 0

    for order in book.orders:
        if not order.is_open:
            orders.append(order)
            continue

        try:
            price = quotes.require(order.market_id, order.outcome)
        except QuoteUnavailableError as e:
            logger.debug(
                "Quote unavailable; keeping previous snapshot", order_id=order.id, **e.details()
            )
            unavailable += 1
            orders.append(order)
            continue

        revalued = order.revalue(price)
        if revalued.snapshot != order.snapshot:
            updated += 1
        orders.append(revalued)

    if not updated:
        return book, 0, unavailable
    return book.replace_orders(orders), updated, unavailable


class PaperLedger:
    """
    A single simulated account: place buys, close positions FIFO, mark to market.

    The ledger owns one store and serializes every read-modify-write cycle on it, so
    concurrent callers sharing the instance cannot double-consume the same buy lots.
    Failed validations raise a ``LedgerError`` subclass before anything is written.
    """

    def __init__(
        self,
        store: LedgerStore,
        *,
        default_starting_balance: Decimal | None = None,
    ) -> None:
        """
        Initialize the ledger.

        Args:
            store: Whole-document backend holding the order book.
            default_starting_balance: Balance for ledgers never reset with an explicit one
                (defaults to the configured starting balance).
        """
        self._store = store
        self._default_starting_balance = (
            default_starting_balance
            if default_starting_balance is not None
            else get_config().starting_balance
        )
        self._lock = threading.RLock()

    @classmethod
    def from_config(cls, config: LedgerConfig | None = None) -> PaperLedger:
        """Build a ledger backed by the JSON file named in ``config`` (or the global one)."""
        config = config or get_config()
        return cls(
            JsonFileLedgerStore(config.ledger_path),
            default_starting_balance=config.starting_balance,
        )

    @property
    def store(self) -> LedgerStore:
        return self._store

    # ------------------------------------------------------------------ helpers

    def _summarize(self, book: OrderBook) -> LedgerSummary:
        return summarize(book, default_starting_balance=self._default_starting_balance)

    def _snapshot(self) -> OrderBook:
        with self._lock:
            return self._store.load()

    def _commit(self, book: OrderBook) -> LedgerSummary:
        """Persist ``book``; the summary is only produced once the write succeeded."""
        self._store.save(book)
        return self._summarize(book)

    # --------------------------------------------------------------- mutations

    def place(
        self,
        market_id: str,
        market_question: str,
        outcome: str,
        action: OrderAction | str,
        shares: Decimal | int | float | str,
        price: Decimal | int | float | str,
    ) -> OrderResult:
        """
        Place a buy, or close shares via the FIFO sell path.

        Args:
            market_id: Market identifier.
            market_question: Display label stored with the order.
            outcome: Outcome label being traded.
            action: ``buy`` or ``sell``.
            shares: Quantity, must be positive.
            price: Execution price per share, finite and non-negative.

        Returns:
            OrderResult with the new order and the post-trade summary.

        Raises:
            InvalidOrderError: If a precondition fails.
            InsufficientBalanceError: If a buy costs more than the available balance.
            InsufficientSharesError: If a sell exceeds the open position.
            StoreUnavailableError: If the ledger could not be saved.
        """
        try:
            action = OrderAction(action)
        except ValueError:
            raise InvalidOrderError(f"action must be 'buy' or 'sell' (got {action!r})") from None

        instrument = _require_instrument(market_id, outcome)
        qty = _to_decimal(shares, name="shares")
        px = _to_decimal(price, name="price")
        if qty <= 0:
            raise InvalidOrderError(f"shares must be positive (got {format_shares(qty)})")
        if px < 0:
            raise InvalidOrderError(f"price must be non-negative (got {px})")

        if action == OrderAction.SELL:
            return self.sell(instrument, px, qty)

        with self._lock:
            book = self._store.load()
            available = self._summarize(book).available_balance
            required = qty * px
            if required > available:
                raise InsufficientBalanceError(available=available, required=required)

            order = Order.open_buy(
                market_id=market_id,
                market_question=market_question,
                outcome=outcome,
                shares=qty,
                price=px,
            )
            message = (
                f"Order placed: buy {format_shares(qty)} shares of "
                f'"{outcome}" at ${px:.3f}'
            )
            summary = self._commit(book.append(order))

        logger.info(
            "Order placed",
            order_id=order.id,
            market_id=market_id,
            outcome=outcome,
            shares=str(qty),
            price=str(px),
        )
        return OrderResult(order=order, message=message, summary=summary)

    def _resolve_target(self, book: OrderBook, target: SellTarget) -> tuple[Instrument, Decimal]:
        """Return the instrument to sell and the default quantity for ``target``."""
        if isinstance(target, tuple):
            instrument = _require_instrument(*target)
            return instrument, book.net_position(instrument)

        order = book.find(target)
        if order is None:
            raise OrderNotFoundError(target)
        if not order.is_buy:
            raise InvalidOrderError("Can only sell buy orders")
        return order.instrument, order.shares

    def sell(
        self,
        target: SellTarget,
        current_price: Decimal | int | float | str,
        shares_to_sell: Decimal | int | float | str | None = None,
        markets: QuoteBook | Iterable[MarketInput] | None = None,
    ) -> OrderResult:
        """
        Close shares of an instrument at ``current_price``, consuming buy lots FIFO.

        The instrument's open shares across all buy lots must cover ``shares_to_sell``.
        Lots are consumed oldest first regardless of which order id was referenced.

        Args:
            target: Order id of an open buy, or ``(market_id, outcome)``.
            current_price: Sale price per share.
            shares_to_sell: Quantity to close. Defaults to the referenced order's open
                shares, or the whole position for an instrument target.
            markets: Optional fresh market data; remaining open buys are re-marked
                from it in the same write.

        Returns:
            OrderResult carrying the new sell order, per-lot allocations and summary.

        Raises:
            OrderNotFoundError: If ``target`` is an unknown order id.
            InvalidOrderError: If the target is a sell order or the inputs are invalid.
            InsufficientSharesError: If the open position is too small.
            StoreUnavailableError: If the ledger could not be saved.
        """
        px = _to_decimal(current_price, name="current_price")
        if px < 0:
            raise InvalidOrderError(f"current_price must be non-negative (got {px})")
        requested = (
            _to_decimal(shares_to_sell, name="shares_to_sell")
            if shares_to_sell is not None
            else None
        )
        if requested is not None and requested <= 0:
            raise InvalidOrderError(
                f"shares_to_sell must be positive (got {format_shares(requested)})"
            )
        quotes = _coerce_quote_book(markets) if markets is not None else None

        with self._lock:
            book = self._store.load()
            instrument, default_qty = self._resolve_target(book, target)
            qty = requested if requested is not None else default_qty
            if qty <= 0:
                market_id, outcome = instrument
                raise InvalidOrderError(
                    f"No open shares to sell for {market_id!r} / {outcome!r}"
                )

            lots = fifo_lots(book, instrument)
            allocation = allocate_fifo(book, instrument, qty)

            proceeds = qty * px
            pnl = proceeds - allocation.cost_basis
            market_id, outcome = instrument
            sell_order = Order(
                market_id=market_id,
                market_question=lots[0].market_question if lots else "",
                outcome=outcome,
                action=OrderAction.SELL,
                shares=qty,
                price=px,
                total_cost=proceeds,
                current_price=px,
                current_value=proceeds,
                pnl=pnl,
                pnl_percentage=pnl_percentage(pnl, allocation.cost_basis),
            )

            orders = [allocation.updated_orders.get(order.id, order) for order in book.orders]
            new_book = book.replace_orders([*orders, sell_order])
            if quotes is not None:
                new_book, _, _ = apply_quotes(new_book, quotes)
            pnl_pct = sell_order.pnl_percentage or Decimal(0)
            message = (
                f'Sold {format_shares(qty)} shares of "{outcome}" at ${px:.3f} '
                f"for a {'profit' if pnl >= 0 else 'loss'} of ${abs(pnl):.2f} "
                f"({pnl_pct:.1f}%)"
            )
            summary = self._commit(new_book)

        logger.info(
            "Position sold",
            order_id=sell_order.id,
            market_id=market_id,
            outcome=outcome,
            shares=str(qty),
            price=str(px),
            cost_basis=str(allocation.cost_basis),
            pnl=str(pnl),
            lots=len(allocation.consumptions),
        )
        return OrderResult(
            order=sell_order,
            message=message,
            summary=summary,
            allocations=tuple(allocation.consumptions),
        )

    def mark_to_market(self, markets: QuoteBook | Iterable[MarketInput]) -> MarkToMarketResult:
        """
        Re-price all open buys from current quotes without adding ledger entries.

        Resolved markets price the winning outcome at 1 and every other outcome at 0.
        Orders without a quote keep their previous snapshot. The ledger is written only
        when at least one snapshot changed.

        Raises:
            StoreUnavailableError: If a changed ledger could not be saved.
        """
        quotes = _coerce_quote_book(markets)

        with self._lock:
            book = self._store.load()
            new_book, updated, unavailable = apply_quotes(book, quotes)
            summary = self._commit(new_book) if updated else self._summarize(book)

        if updated:
            logger.info("Marked to market", updated=updated, unavailable=unavailable)
        else:
            logger.debug("Mark to market made no changes", unavailable=unavailable)

        return MarkToMarketResult(
            updated=updated,
            unavailable=unavailable,
            summary=summary,
            open_orders=fifo_lots(new_book),
        )

    def reset(self, starting_balance: Decimal | int | float | str | None = None) -> LedgerSummary:
        """
        Replace the ledger with an empty one and a fresh starting balance.

        Args:
            starting_balance: New balance; defaults to the configured starting balance.

        Raises:
            InvalidOrderError: If the balance is negative or not a number.
            StoreUnavailableError: If the ledger could not be saved.
        """
        balance = (
            _to_decimal(starting_balance, name="starting_balance")
            if starting_balance is not None
            else self._default_starting_balance
        )
        if balance < 0:
            raise InvalidOrderError(f"starting_balance must be non-negative (got {balance})")

        with self._lock:
            summary = self._commit(OrderBook.empty(balance))

        logger.info("Ledger reset", starting_balance=str(balance))
        return summary

    # ------------------------------------------------------------------- reads

    def summary(self) -> LedgerSummary:
        """Aggregate metrics recomputed from the current ledger."""
        return self._summarize(self._snapshot())

    def list_open(self) -> list[Order]:
        """Open buys, oldest first (the order FIFO sells consume them in)."""
        return fifo_lots(self._snapshot())

    def list_history(self) -> list[Order]:
        """Every order, including closed buys and sells, newest first."""
        chronological = sorted(self._snapshot().orders, key=lambda order: order.timestamp)
        return list(reversed(chronological))

    def net_position(self, market_id: str, outcome: str) -> Decimal:
        """Open shares held for ``(market_id, outcome)``."""
        return self._snapshot().net_position((market_id, outcome))

    def get_order(self, order_id: str) -> Order:
        """
        Return an order by id.

        Raises:
            OrderNotFoundError: If no order has this id.
        """
        order = self._snapshot().find(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    def market_orders(self, market_id: str) -> list[Order]:
        """All orders on ``market_id`` in ledger order."""
        return [order for order in self._snapshot().orders if order.market_id == market_id]

    def outcome_orders(self, market_id: str, outcome: str) -> list[Order]:
        """All orders on one outcome of ``market_id`` in ledger order."""
        return [
            order
            for order in self._snapshot().orders
            if order.instrument == (market_id, outcome)
        ]
