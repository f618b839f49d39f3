"""Centralized policy constants for the paper ledger.

Named constants for policy-encoding literals shared by the engine, the summary projection
and the CLI.
"""

from __future__ import annotations

from decimal import Decimal

# =============================================================================
# Account
# =============================================================================

# Simulated cash a fresh (or freshly reset) ledger starts with, in currency units.
#
# Used by:
# - config.py: default for LedgerConfig.starting_balance
# - ledger/summary.py: fallback when a stored ledger carries no starting balance
DEFAULT_STARTING_BALANCE: Decimal = Decimal("10000")

# =============================================================================
# Arithmetic
# =============================================================================

ZERO: Decimal = Decimal("0")
ONE: Decimal = Decimal("1")
HUNDRED: Decimal = Decimal("100")

# =============================================================================
# Quotes
# =============================================================================

# Valid price range for a prediction-market outcome (probability-priced contracts).
MIN_OUTCOME_PRICE: Decimal = ZERO
MAX_OUTCOME_PRICE: Decimal = ONE

# Terminal prices for resolved markets.
WINNING_OUTCOME_PRICE: Decimal = ONE
LOSING_OUTCOME_PRICE: Decimal = ZERO
