"""Ledger data models: orders and the order book document.

Python attributes are snake_case; the persisted document uses camelCase aliases
(``marketId``, ``totalCost``, ...) so ``orders.json`` files written by earlier
front-ends load unchanged.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from paper_ledger.constants import HUNDRED, ZERO

_MODEL_CONFIG = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(UTC)


def new_order_id() -> str:
    """Return a fresh, never-reused order id."""
    return uuid.uuid4().hex


def format_shares(value: Decimal) -> str:
    """Render a share quantity without trailing zeros (``50`` not ``50.000``)."""
    return format(value.normalize(), "f")


def pnl_percentage(pnl: Decimal, basis: Decimal) -> Decimal:
    """P&L as a percentage of ``basis`` (0 when the basis is zero)."""
    if basis == 0:
        return ZERO
    return pnl / basis * HUNDRED


class OrderAction(str, Enum):
    """Direction of a ledger order."""

    BUY = "buy"
    SELL = "sell"


Instrument = tuple[str, str]
"""A tradable instrument: ``(market_id, outcome)``."""


class Order(BaseModel):
    """A single buy or sell in the simulated ledger.

    Buy orders shrink (``shares`` and ``total_cost`` together) as FIFO sells consume them;
    sell orders are never modified after creation. ``total_cost`` is the remaining cost
    basis on a buy and the proceeds on a sell.
    """

    model_config = _MODEL_CONFIG

    id: str = Field(default_factory=new_order_id)
    market_id: str
    market_question: str = ""
    outcome: str
    action: OrderAction
    shares: Decimal = Field(..., ge=0)
    price: Decimal = Field(..., ge=0)
    total_cost: Decimal = Field(..., ge=0)
    timestamp: datetime = Field(default_factory=utc_now)

    # Snapshot fields: recomputed by mark-to-market on open buys, frozen on sells.
    current_price: Decimal | None = None
    current_value: Decimal | None = None
    pnl: Decimal | None = None
    pnl_percentage: Decimal | None = None

    @field_validator(
        "shares",
        "price",
        "total_cost",
        "current_price",
        "current_value",
        "pnl",
        "pnl_percentage",
        mode="before",
    )
    @classmethod
    def float_to_decimal(cls, value: Any) -> Any:
        """Go through ``str`` for floats so ``0.1`` loads as ``Decimal("0.1")``."""
        if isinstance(value, float):
            return Decimal(str(value))
        return value

    @field_validator("timestamp", mode="after")
    @classmethod
    def ensure_utc_aware(cls, dt: datetime) -> datetime:
        """Normalize naive timestamps to UTC."""
        if dt.tzinfo is None:
            return dt.replace(tzinfo=UTC)
        return dt.astimezone(UTC)

    @classmethod
    def open_buy(
        cls,
        *,
        market_id: str,
        market_question: str,
        outcome: str,
        shares: Decimal,
        price: Decimal,
        timestamp: datetime | None = None,
    ) -> Order:
        """Create a new buy whose snapshot starts at the execution price."""
        cost = shares * price
        return cls(
            market_id=market_id,
            market_question=market_question,
            outcome=outcome,
            action=OrderAction.BUY,
            shares=shares,
            price=price,
            total_cost=cost,
            timestamp=timestamp or utc_now(),
            current_price=price,
            current_value=cost,
            pnl=ZERO,
            pnl_percentage=ZERO,
        )

    @property
    def is_buy(self) -> bool:
        return self.action == OrderAction.BUY

    @property
    def is_sell(self) -> bool:
        return self.action == OrderAction.SELL

    @property
    def is_open(self) -> bool:
        """True for buys that still hold unconsumed shares."""
        return self.is_buy and self.shares > 0

    @property
    def instrument(self) -> Instrument:
        return (self.market_id, self.outcome)

    @property
    def snapshot(self) -> tuple[Decimal | None, ...]:
        """Mark-to-market fields as ``(current_price, current_value, pnl, pnl_percentage)``."""
        return (self.current_price, self.current_value, self.pnl, self.pnl_percentage)

    def revalue(self, price: Decimal) -> Order:
        """Return this buy re-marked at ``price`` (value from remaining shares and cost)."""
        current_value = self.shares * price
        pnl = current_value - self.total_cost
        return self.model_copy(
            update={
                "current_price": price,
                "current_value": current_value,
                "pnl": pnl,
                "pnl_percentage": pnl_percentage(pnl, self.total_cost),
            }
        )

    def to_document(self) -> dict[str, Any]:
        """Serialize for the ledger store (camelCase, unset snapshot fields omitted)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class OrderBook(BaseModel):
    """The whole persisted ledger: orders in insertion (FIFO) order plus metadata."""

    model_config = _MODEL_CONFIG

    orders: tuple[Order, ...] = ()
    last_updated: datetime = Field(default_factory=utc_now)
    # Balance fixed at the last reset; None means "use the configured default".
    starting_balance: Decimal | None = Field(default=None, ge=0)

    @field_validator("starting_balance", mode="before")
    @classmethod
    def float_to_decimal(cls, value: Any) -> Any:
        if isinstance(value, float):
            return Decimal(str(value))
        return value

    @classmethod
    def empty(cls, starting_balance: Decimal | None = None) -> OrderBook:
        """A fresh ledger with no orders, stamped now."""
        return cls(orders=(), last_updated=utc_now(), starting_balance=starting_balance)

    def replace_orders(self, orders: Iterable[Order]) -> OrderBook:
        """Return a new book holding ``orders`` and a fresh ``last_updated`` stamp."""
        return self.model_copy(update={"orders": tuple(orders), "last_updated": utc_now()})

    def append(self, order: Order) -> OrderBook:
        return self.replace_orders((*self.orders, order))

    def find(self, order_id: str) -> Order | None:
        for order in self.orders:
            if order.id == order_id:
                return order
        return None

    def open_buys(self, instrument: Instrument | None = None) -> list[Order]:
        """Open buys in ledger order, optionally restricted to one instrument."""
        return [
            order
            for order in self.orders
            if order.is_open and (instrument is None or order.instrument == instrument)
        ]

    def sells(self) -> list[Order]:
        return [order for order in self.orders if order.is_sell]

    def net_position(self, instrument: Instrument) -> Decimal:
        """Sum of open buy shares for ``instrument``."""
        return sum((order.shares for order in self.open_buys(instrument)), ZERO)

    def to_document(self) -> dict[str, Any]:
        """Serialize the whole ledger document for the store."""
        document: dict[str, Any] = {
            "orders": [order.to_document() for order in self.orders],
            "lastUpdated": self.last_updated.isoformat(),
        }
        if self.starting_balance is not None:
            document["startingBalance"] = str(self.starting_balance)
        return document
