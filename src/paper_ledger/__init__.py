"""
Paper Ledger.

Simulated prediction-market trading: a persistent order ledger with FIFO cost basis,
mark-to-market valuation and account summary.
"""

__version__ = "0.1.0"

from paper_ledger.config import LedgerConfig
from paper_ledger.ledger import PaperLedger

# Configure structlog once at import time (quiet by default).
from paper_ledger.logging import configure_structlog

configure_structlog()

__all__ = [
    "LedgerConfig",
    "PaperLedger",
    "__version__",
]
