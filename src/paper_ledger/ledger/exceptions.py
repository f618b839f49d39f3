"""Exceptions raised by the paper ledger.

Every exception carries a machine-readable ``reason`` code plus the quantities needed to
render an actionable message (amounts, share counts, ids).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, ClassVar

from paper_ledger.ledger.models import format_shares

if TYPE_CHECKING:
    from decimal import Decimal
    from pathlib import Path


class LedgerError(Exception):
    """Base exception for ledger failures."""

    reason: ClassVar[str] = "ledger_error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def details(self) -> dict[str, Any]:
        """Structured, JSON-safe details for this failure."""
        return {}

    def to_dict(self) -> dict[str, Any]:
        """Return ``{"reason", "message", **details}`` for API/CLI consumers."""
        return {"reason": self.reason, "message": self.message, **self.details()}


class InvalidOrderError(LedgerError):
    """Order intent failed a precondition (non-positive shares, bad price, wrong target)."""

    reason: ClassVar[str] = "invalid_order"


class InsufficientBalanceError(LedgerError):
    """A buy would cost more than the available simulated cash."""

    reason: ClassVar[str] = "insufficient_balance"

    def __init__(self, available: Decimal, required: Decimal) -> None:
        self.available = available
        self.required = required
        super().__init__(
            f"Insufficient balance! You have ${available:.2f} "
            f"but need ${required:.2f} for this trade."
        )

    @property
    def shortfall(self) -> Decimal:
        """Amount missing to cover the trade."""
        return self.required - self.available

    def details(self) -> dict[str, Any]:
        return {
            "available": str(self.available),
            "required": str(self.required),
            "shortfall": str(self.shortfall),
        }


class InsufficientSharesError(LedgerError):
    """A sell would exceed the open position for the instrument."""

    reason: ClassVar[str] = "insufficient_shares"

    def __init__(self, held: Decimal, requested: Decimal) -> None:
        self.held = held
        self.requested = requested
        super().__init__(
            f"Insufficient shares! You have {format_shares(held)} shares "
            f"but trying to sell {format_shares(requested)}."
        )

    def details(self) -> dict[str, Any]:
        return {"held": str(self.held), "requested": str(self.requested)}


class OrderNotFoundError(LedgerError):
    """Referenced order id does not exist in the ledger."""

    reason: ClassVar[str] = "order_not_found"

    def __init__(self, order_id: str) -> None:
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}")

    def details(self) -> dict[str, Any]:
        return {"order_id": self.order_id}


class QuoteUnavailableError(LedgerError):
    """No price is known for an instrument.

    Mark-to-market handles this internally by skipping the order.
    """

    reason: ClassVar[str] = "quote_unavailable"

    def __init__(self, market_id: str, outcome: str) -> None:
        self.market_id = market_id
        self.outcome = outcome
        super().__init__(f"No quote available for {market_id!r} / {outcome!r}")

    def details(self) -> dict[str, Any]:
        return {"market_id": self.market_id, "outcome": self.outcome}


class StoreUnavailableError(LedgerError):
    """The ledger blob could not be written (or read, where reads must not degrade)."""

    reason: ClassVar[str] = "store_unavailable"

    def __init__(self, message: str, path: Path | None = None) -> None:
        self.path = path
        super().__init__(message)

    def details(self) -> dict[str, Any]:
        return {"path": str(self.path) if self.path is not None else None}
