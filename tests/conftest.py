"""
Shared test fixtures.

PHILOSOPHY: Use REAL objects wherever possible. Only mock at system boundaries.
- Real Pydantic models (not dicts pretending to be models)
- Real in-memory store, or a real JSON file under tmp_path, for ledger tests
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Any

import pytest

from paper_ledger.config import LedgerConfig, get_config, set_config
from paper_ledger.ledger import InMemoryLedgerStore, JsonFileLedgerStore, PaperLedger

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from pathlib import Path


# ============================================================================
# Global state
# ============================================================================
@pytest.fixture(autouse=True)
def _restore_config(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Keep the process-wide config and PAPER_LEDGER_* env vars isolated per test."""
    monkeypatch.delenv("PAPER_LEDGER_STARTING_BALANCE", raising=False)
    monkeypatch.delenv("PAPER_LEDGER_PATH", raising=False)
    original = get_config()
    set_config(LedgerConfig())
    yield
    set_config(original)


# ============================================================================
# Ledgers
# ============================================================================
@pytest.fixture
def memory_store() -> InMemoryLedgerStore:
    return InMemoryLedgerStore()


@pytest.fixture
def ledger(memory_store: InMemoryLedgerStore) -> PaperLedger:
    """In-memory ledger with a $10,000 starting balance."""
    return PaperLedger(memory_store, default_starting_balance=Decimal("10000"))


@pytest.fixture
def ledger_path(tmp_path: Path) -> Path:
    return tmp_path / "data" / "orders.json"


@pytest.fixture
def file_ledger(ledger_path: Path) -> PaperLedger:
    """JSON-file ledger with a $10,000 starting balance."""
    return PaperLedger(JsonFileLedgerStore(ledger_path), default_starting_balance=Decimal("10000"))


# ============================================================================
# Domain Object Builders
# ============================================================================
@pytest.fixture
def make_market() -> Callable[..., dict[str, Any]]:
    """Factory for upstream market records (the shape price feeds return)."""

    def _make(
        market_id: str = "market-1",
        question: str = "Will it rain tomorrow?",
        outcomes: list[str] | str | None = None,
        prices: list[str] | str | None = None,
        **overrides: Any,
    ) -> dict[str, Any]:
        market: dict[str, Any] = {
            "id": market_id,
            "question": question,
            "outcomes": outcomes if outcomes is not None else ["Yes", "No"],
            "outcomePrices": prices if prices is not None else ["0.5", "0.5"],
        }
        market.update(overrides)
        return market

    return _make
