"""Unit tests for the PaperLedger order engine."""

from __future__ import annotations

import threading
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import pytest

from paper_ledger.config import LedgerConfig, set_config
from paper_ledger.ledger import (
    InMemoryLedgerStore,
    InsufficientBalanceError,
    InsufficientSharesError,
    InvalidOrderError,
    JsonFileLedgerStore,
    LedgerError,
    OrderAction,
    OrderNotFoundError,
    PaperLedger,
    QuoteBook,
    StoreUnavailableError,
    build_quote_book,
)

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path


def _buy(ledger: PaperLedger, shares: Any = 100, price: Any = 0.40, outcome: str = "Yes"):
    return ledger.place("m1", "Will it rain?", outcome, "buy", shares, price)


class TestPlaceBuy:
    """Tests for placing buy orders."""

    def test_buy_records_order_and_debits_balance(self, ledger: PaperLedger) -> None:
        result = _buy(ledger)

        assert result.success
        assert result.order.action == OrderAction.BUY
        assert result.order.total_cost == Decimal("40")
        assert result.summary.available_balance == Decimal("9960")
        assert result.message == 'Order placed: buy 100 shares of "Yes" at $0.400'

    def test_buy_accepts_string_and_decimal_inputs(self, ledger: PaperLedger) -> None:
        result = ledger.place("m1", "", "Yes", OrderAction.BUY, "12.5", Decimal("0.2"))
        assert result.order.total_cost == Decimal("2.5")

    def test_buy_exactly_the_available_balance(self, ledger: PaperLedger) -> None:
        result = _buy(ledger, shares=10000, price=1)
        assert result.summary.available_balance == 0

    def test_insufficient_balance_leaves_ledger_unchanged(
        self, ledger: PaperLedger, memory_store: InMemoryLedgerStore
    ) -> None:
        _buy(ledger)
        before = memory_store.document

        with pytest.raises(InsufficientBalanceError) as exc_info:
            _buy(ledger, shares=20000, price=0.5)

        assert exc_info.value.available == Decimal("9960")
        assert exc_info.value.required == Decimal("10000")
        assert exc_info.value.shortfall == Decimal("40")
        assert "You have $9960.00 but need $10000.00" in exc_info.value.message
        assert memory_store.document == before

    @pytest.mark.parametrize(
        ("shares", "price"),
        [(0, 0.5), (-1, 0.5), (10, -0.1), ("abc", 0.5), (10, float("nan")), (True, 0.5)],
    )
    def test_invalid_inputs_rejected(self, ledger: PaperLedger, shares: Any, price: Any) -> None:
        with pytest.raises(InvalidOrderError):
            _buy(ledger, shares=shares, price=price)
        assert ledger.summary().total_orders == 0

    def test_unknown_action_rejected(self, ledger: PaperLedger) -> None:
        with pytest.raises(InvalidOrderError, match="action"):
            ledger.place("m1", "", "Yes", "hold", 1, 0.5)

    def test_missing_market_or_outcome_rejected(self, ledger: PaperLedger) -> None:
        with pytest.raises(InvalidOrderError):
            ledger.place("", "", "Yes", "buy", 1, 0.5)
        with pytest.raises(InvalidOrderError):
            ledger.place("m1", "", "  ", "buy", 1, 0.5)

    def test_zero_price_buy_is_allowed(self, ledger: PaperLedger) -> None:
        result = _buy(ledger, price=0)
        assert result.order.total_cost == 0
        assert ledger.summary().total_orders == 1

    def test_huge_integral_quantity_reports_every_digit(self, ledger: PaperLedger) -> None:
        result = ledger.place("m1", "", "Yes", "buy", "1E+30", 0)

        assert f"buy 1{'0' * 30} shares" in result.message
        assert ledger.net_position("m1", "Yes") == Decimal("1E+30")

    def test_default_starting_balance_comes_from_config(self) -> None:
        set_config(LedgerConfig(starting_balance=Decimal("50")))
        ledger = PaperLedger(InMemoryLedgerStore())

        with pytest.raises(InsufficientBalanceError):
            _buy(ledger, shares=100, price=0.6)


class TestSell:
    """Tests for closing positions FIFO."""

    def test_sell_by_instrument_consumes_oldest_first(self, ledger: PaperLedger) -> None:
        first = _buy(ledger, 100, 0.40).order
        second = _buy(ledger, 100, 0.70).order

        result = ledger.sell(("m1", "Yes"), 0.60, 150)

        assert result.order.action == OrderAction.SELL
        assert result.order.total_cost == Decimal("90")
        assert result.order.pnl == Decimal("15")
        assert result.order.pnl_percentage == Decimal("20")
        assert result.order.market_question == "Will it rain?"
        assert [a.order_id for a in result.allocations] == [first.id, second.id]
        assert ledger.get_order(first.id).shares == 0
        assert ledger.get_order(second.id).shares == Decimal("50")
        assert ledger.get_order(second.id).total_cost == Decimal("35")
        assert result.message == (
            'Sold 150 shares of "Yes" at $0.600 for a profit of $15.00 (20.0%)'
        )

    def test_sell_by_order_id_still_consumes_fifo(self, ledger: PaperLedger) -> None:
        first = _buy(ledger, 100, 0.40).order
        second = _buy(ledger, 100, 0.70).order

        result = ledger.sell(second.id, 0.50, 50)

        assert [a.order_id for a in result.allocations] == [first.id]
        assert ledger.get_order(first.id).shares == Decimal("50")
        assert ledger.get_order(second.id).shares == Decimal("100")

    def test_sell_by_order_id_defaults_to_whole_order(self, ledger: PaperLedger) -> None:
        order = _buy(ledger, 80, 0.50).order

        result = ledger.sell(order.id, 0.25)

        assert result.order.shares == Decimal("80")
        assert result.order.pnl == Decimal("-20")
        assert "for a loss of $20.00 (-50.0%)" in result.message
        assert ledger.net_position("m1", "Yes") == 0

    def test_sell_by_instrument_defaults_to_whole_position(self, ledger: PaperLedger) -> None:
        _buy(ledger, 30, 0.50)
        _buy(ledger, 20, 0.50)

        result = ledger.sell(("m1", "Yes"), 0.5)

        assert result.order.shares == Decimal("50")
        assert ledger.list_open() == []

    def test_sell_without_position_rejected(self, ledger: PaperLedger) -> None:
        with pytest.raises(InvalidOrderError, match="No open shares"):
            ledger.sell(("m1", "Yes"), 0.5)

    def test_sell_unknown_order_id(self, ledger: PaperLedger) -> None:
        with pytest.raises(OrderNotFoundError) as exc_info:
            ledger.sell("missing", 0.5, 1)
        assert exc_info.value.to_dict() == {
            "reason": "order_not_found",
            "message": "Order not found: missing",
            "order_id": "missing",
        }

    def test_sell_targeting_a_sell_order_rejected(self, ledger: PaperLedger) -> None:
        _buy(ledger)
        sell = ledger.sell(("m1", "Yes"), 0.5, 10).order

        with pytest.raises(InvalidOrderError, match="Can only sell buy orders"):
            ledger.sell(sell.id, 0.5, 1)

    def test_oversell_leaves_ledger_unchanged(
        self, ledger: PaperLedger, memory_store: InMemoryLedgerStore
    ) -> None:
        _buy(ledger, 50, 0.5)
        before = memory_store.document

        with pytest.raises(InsufficientSharesError) as exc_info:
            ledger.sell(("m1", "Yes"), 0.6, 60)

        assert exc_info.value.held == Decimal("50")
        assert exc_info.value.requested == Decimal("60")
        assert memory_store.document == before

    @pytest.mark.parametrize(("price", "shares"), [(-0.1, 1), (0.5, 0), (0.5, -3)])
    def test_invalid_sell_inputs(self, ledger: PaperLedger, price: Any, shares: Any) -> None:
        _buy(ledger)
        with pytest.raises(InvalidOrderError):
            ledger.sell(("m1", "Yes"), price, shares)

    def test_existing_sells_never_change(self, ledger: PaperLedger) -> None:
        _buy(ledger, 100, 0.40)
        first_sell = ledger.sell(("m1", "Yes"), 0.50, 40).order
        _buy(ledger, 100, 0.10)
        ledger.sell(("m1", "Yes"), 0.90, 100)

        stored = ledger.get_order(first_sell.id)
        assert stored.pnl == first_sell.pnl
        assert stored.total_cost == first_sell.total_cost

    def test_realized_pnl_restores_balance(self, ledger: PaperLedger) -> None:
        _buy(ledger, 100, 0.40)
        result = ledger.sell(("m1", "Yes"), 0.60, 100)

        assert result.summary.realized_pnl == Decimal("20")
        assert result.summary.available_balance == Decimal("10020")
        assert result.summary.total_invested == 0

    def test_partial_sell_of_tiny_lot_keeps_the_remainder(self, ledger: PaperLedger) -> None:
        lot = _buy(ledger, "5E-13", "0.5").order

        result = ledger.sell(("m1", "Yes"), "0.5", "1E-13")

        assert result.order.total_cost == Decimal("5E-14")
        assert ledger.net_position("m1", "Yes") == Decimal("4E-13")
        assert ledger.get_order(lot.id).total_cost == Decimal("2E-13")

    def test_sell_with_markets_remarks_remaining_positions(
        self, ledger: PaperLedger, make_market: Callable[..., dict[str, Any]]
    ) -> None:
        _buy(ledger, 100, 0.40, outcome="Yes")
        no = _buy(ledger, 100, 0.50, outcome="No").order

        ledger.sell(("m1", "Yes"), 0.6, 50, markets=[make_market("m1", prices=["0.6", "0.3"])])

        remaining_yes = ledger.list_open()[0]
        assert remaining_yes.current_price == Decimal("0.6")
        assert remaining_yes.current_value == Decimal("30")
        assert ledger.get_order(no.id).current_price == Decimal("0.3")


class TestPlaceSell:
    """place(sell) closes inventory through the FIFO path."""

    def test_place_sell_consumes_buys(self, ledger: PaperLedger) -> None:
        _buy(ledger, 100, 0.40)

        result = ledger.place("m1", "Will it rain?", "Yes", "sell", 60, 0.5)

        assert result.order.pnl == Decimal("6")
        assert ledger.net_position("m1", "Yes") == Decimal("40")

    def test_place_sell_requires_position(self, ledger: PaperLedger) -> None:
        with pytest.raises(InsufficientSharesError):
            ledger.place("m1", "", "Yes", OrderAction.SELL, 1, 0.5)


class TestMarkToMarket:
    """Tests for mark_to_market()."""

    def test_updates_open_buys(
        self, ledger: PaperLedger, make_market: Callable[..., dict[str, Any]]
    ) -> None:
        _buy(ledger, 100, 0.40)

        result = ledger.mark_to_market([make_market("m1", prices=["0.55", "0.45"])])

        assert result.updated == 1
        assert result.persisted
        order = result.open_orders[0]
        assert order.current_price == Decimal("0.55")
        assert order.pnl == Decimal("15")
        assert order.pnl_percentage == Decimal("37.5")
        assert result.summary.total_pnl == Decimal("15")

    def test_is_idempotent_and_skips_the_write(
        self, ledger: PaperLedger, memory_store: InMemoryLedgerStore
    ) -> None:
        _buy(ledger, 100, 0.40)
        markets = build_quote_book(
            [{"id": "m1", "outcomes": ["Yes", "No"], "outcomePrices": ["0.7", "0.3"]}]
        )

        first = ledger.mark_to_market(markets)
        document = memory_store.document
        second = ledger.mark_to_market(markets)

        assert first.updated == 1
        assert second.updated == 0
        assert not second.persisted
        assert second.summary == first.summary
        assert memory_store.document == document

    def test_missing_quote_keeps_previous_snapshot(self, ledger: PaperLedger) -> None:
        order = _buy(ledger, 100, 0.40).order

        result = ledger.mark_to_market(QuoteBook())

        assert result.updated == 0
        assert result.unavailable == 1
        assert ledger.get_order(order.id).current_price == Decimal("0.4")

    def test_resolved_market_prices_winner_and_loser(
        self, ledger: PaperLedger, make_market: Callable[..., dict[str, Any]]
    ) -> None:
        yes = _buy(ledger, 100, 0.40, outcome="Yes").order
        no = _buy(ledger, 100, 0.60, outcome="No").order
        sell = ledger.sell(yes.id, 0.5, 10).order

        ledger.mark_to_market(
            [make_market("m1", prices=["0.9", "0.1"], isExpired=True, resolvedOutcome="Yes")]
        )

        assert ledger.get_order(yes.id).current_price == Decimal("1")
        assert ledger.get_order(yes.id).current_value == Decimal("90")
        assert ledger.get_order(no.id).current_price == Decimal("0")
        assert ledger.get_order(no.id).pnl == Decimal("-60")
        assert ledger.get_order(sell.id).current_price == Decimal("0.5")

    def test_matches_condition_id_alias(self, ledger: PaperLedger) -> None:
        ledger.place("0xabc", "", "Yes", "buy", 10, 0.5)

        result = ledger.mark_to_market(
            [{"id": "slug", "conditionId": "0xabc", "outcomes": ["Yes"], "outcomePrices": ["0.8"]}]
        )

        assert result.updated == 1
        assert result.open_orders[0].current_price == Decimal("0.8")

    def test_closed_buys_untouched(
        self, ledger: PaperLedger, make_market: Callable[..., dict[str, Any]]
    ) -> None:
        order = _buy(ledger, 10, 0.5).order
        ledger.sell(order.id, 0.5)

        result = ledger.mark_to_market([make_market("m1", prices=["0.9", "0.1"])])

        assert result.updated == 0
        assert ledger.get_order(order.id).current_value is None


class TestResetAndReads:
    """Tests for reset() and read operations."""

    def test_reset_clears_orders_and_sets_balance(self, ledger: PaperLedger) -> None:
        _buy(ledger)
        ledger.sell(("m1", "Yes"), 0.9, 50)

        summary = ledger.reset(500)

        assert summary.starting_balance == Decimal("500")
        assert summary.available_balance == Decimal("500")
        assert summary.realized_pnl == 0
        assert ledger.list_history() == []
        assert ledger.summary().starting_balance == Decimal("500")

    def test_reset_defaults_to_configured_balance(self, ledger: PaperLedger) -> None:
        ledger.reset(1)
        assert ledger.reset().starting_balance == Decimal("10000")

    def test_reset_rejects_negative_balance(self, ledger: PaperLedger) -> None:
        with pytest.raises(InvalidOrderError):
            ledger.reset(-1)

    def test_history_is_newest_first(self, ledger: PaperLedger) -> None:
        buy = _buy(ledger).order
        sell = ledger.sell(buy.id, 0.5, 10).order

        history = ledger.list_history()

        assert [o.id for o in history] == [sell.id, buy.id]

    def test_market_and_outcome_orders(self, ledger: PaperLedger) -> None:
        yes = _buy(ledger, outcome="Yes").order
        no = _buy(ledger, outcome="No").order
        other = ledger.place("m2", "", "Yes", "buy", 1, 0.5).order

        assert [o.id for o in ledger.market_orders("m1")] == [yes.id, no.id]
        assert [o.id for o in ledger.outcome_orders("m1", "No")] == [no.id]
        assert [o.id for o in ledger.market_orders("m2")] == [other.id]

    def test_get_order_missing(self, ledger: PaperLedger) -> None:
        with pytest.raises(OrderNotFoundError):
            ledger.get_order("nope")


class TestPersistence:
    """Tests for the engine against the JSON file store."""

    def test_state_survives_a_new_ledger_instance(
        self, file_ledger: PaperLedger, ledger_path: Path
    ) -> None:
        _buy(file_ledger, 100, 0.40)
        file_ledger.sell(("m1", "Yes"), 0.6, 25)

        reopened = PaperLedger(JsonFileLedgerStore(ledger_path))

        assert reopened.net_position("m1", "Yes") == Decimal("75")
        assert reopened.summary().realized_pnl == Decimal("5")

    def test_write_failure_surfaces_store_unavailable(self, tmp_path: Path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        ledger = PaperLedger(JsonFileLedgerStore(blocker / "orders.json"))

        with pytest.raises(StoreUnavailableError):
            _buy(ledger)

    def test_from_config_uses_configured_path(self, tmp_path: Path) -> None:
        path = tmp_path / "custom.json"
        ledger = PaperLedger.from_config(
            LedgerConfig(starting_balance=Decimal("100"), ledger_path=path)
        )

        _buy(ledger, 10, 0.5)

        assert path.exists()
        assert ledger.summary().available_balance == Decimal("95")


class TestConcurrency:
    """Concurrent callers sharing one ledger never corrupt it."""

    def test_concurrent_buys_are_all_recorded(self, ledger: PaperLedger) -> None:
        threads = [threading.Thread(target=_buy, args=(ledger, 1, 0.5)) for _ in range(20)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert ledger.net_position("m1", "Yes") == Decimal("20")
        assert ledger.summary().available_balance == Decimal("9990")

    def test_concurrent_sells_never_double_consume(self, ledger: PaperLedger) -> None:
        _buy(ledger, 100, 0.40)
        _buy(ledger, 100, 0.70)
        successes: list[Decimal] = []
        failures: list[LedgerError] = []
        lock = threading.Lock()

        def _sell() -> None:
            try:
                result = ledger.sell(("m1", "Yes"), 0.5, 50)
            except InsufficientSharesError as e:
                with lock:
                    failures.append(e)
                return
            with lock:
                successes.append(result.order.shares)

        threads = [threading.Thread(target=_sell) for _ in range(10)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(successes) == 4
        assert len(failures) == 6
        assert ledger.net_position("m1", "Yes") == 0
        assert ledger.summary().total_invested == 0
