"""
Centralized path defaults for the paper ledger.

All paths are expressed relative to the current working directory. Every default can be
overridden via `PAPER_LEDGER_PATH` or the CLI `--ledger` option.
"""

from pathlib import Path

DEFAULT_DATA_DIR = Path("data")
DEFAULT_LEDGER_PATH = DEFAULT_DATA_DIR / "orders.json"

__all__ = [
    "DEFAULT_DATA_DIR",
    "DEFAULT_LEDGER_PATH",
]
