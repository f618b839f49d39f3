"""Simulated order ledger: FIFO cost basis, mark-to-market and account summary."""

from paper_ledger.ledger._fifo import FifoAllocation, LotConsumption, allocate_fifo
from paper_ledger.ledger.engine import (
    MarkToMarketResult,
    OrderResult,
    PaperLedger,
    SellTarget,
    apply_quotes,
)
from paper_ledger.ledger.exceptions import (
    InsufficientBalanceError,
    InsufficientSharesError,
    InvalidOrderError,
    LedgerError,
    OrderNotFoundError,
    QuoteUnavailableError,
    StoreUnavailableError,
)
from paper_ledger.ledger.models import Instrument, Order, OrderAction, OrderBook
from paper_ledger.ledger.quotes import (
    MarketDescriptor,
    MarketQuote,
    MarketToken,
    QuoteBook,
    build_quote_book,
)
from paper_ledger.ledger.store import InMemoryLedgerStore, JsonFileLedgerStore, LedgerStore
from paper_ledger.ledger.summary import LedgerSummary, summarize

__all__ = [
    "FifoAllocation",
    "InMemoryLedgerStore",
    "Instrument",
    "InsufficientBalanceError",
    "InsufficientSharesError",
    "InvalidOrderError",
    "JsonFileLedgerStore",
    "LedgerError",
    "LedgerStore",
    "LedgerSummary",
    "LotConsumption",
    "MarkToMarketResult",
    "MarketDescriptor",
    "MarketQuote",
    "MarketToken",
    "Order",
    "OrderAction",
    "OrderBook",
    "OrderNotFoundError",
    "OrderResult",
    "PaperLedger",
    "QuoteBook",
    "QuoteUnavailableError",
    "SellTarget",
    "StoreUnavailableError",
    "allocate_fifo",
    "apply_quotes",
    "build_quote_book",
    "summarize",
]
