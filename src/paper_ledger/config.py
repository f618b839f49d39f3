"""
Configuration for the paper ledger (starting balance and storage location).
"""

from __future__ import annotations

import os
from decimal import Decimal, InvalidOperation
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from paper_ledger.constants import DEFAULT_STARTING_BALANCE
from paper_ledger.paths import DEFAULT_LEDGER_PATH

STARTING_BALANCE_ENV_VAR = "PAPER_LEDGER_STARTING_BALANCE"
LEDGER_PATH_ENV_VAR = "PAPER_LEDGER_PATH"


class LedgerConfig(BaseModel):
    """Configuration for a simulated account."""

    model_config = ConfigDict(frozen=True)

    starting_balance: Decimal = Field(default=DEFAULT_STARTING_BALANCE, ge=0)
    ledger_path: Path = DEFAULT_LEDGER_PATH


def load_config_from_env() -> LedgerConfig:
    """Build a config from `PAPER_LEDGER_*` environment variables.

    Raises:
        ValueError: If `PAPER_LEDGER_STARTING_BALANCE` is not a non-negative number.
    """
    overrides: dict[str, object] = {}

    raw_balance = os.getenv(STARTING_BALANCE_ENV_VAR)
    if raw_balance:
        try:
            balance = Decimal(raw_balance.strip())
        except InvalidOperation:
            raise ValueError(
                f"{STARTING_BALANCE_ENV_VAR} must be a number (got {raw_balance!r})"
            ) from None
        if not balance.is_finite() or balance < 0:
            raise ValueError(
                f"{STARTING_BALANCE_ENV_VAR} must be finite and non-negative (got {raw_balance!r})"
            )
        overrides["starting_balance"] = balance

    raw_path = os.getenv(LEDGER_PATH_ENV_VAR)
    if raw_path:
        overrides["ledger_path"] = Path(raw_path)

    return LedgerConfig.model_validate(overrides)


# Singleton for global access
_config = LedgerConfig()


def get_config() -> LedgerConfig:
    """Get the current global configuration."""
    return _config


def set_config(config: LedgerConfig) -> None:
    """Replace the global configuration."""
    global _config  # noqa: PLW0603 - intentional singleton for CLI state
    _config = config
