"""Price feed adapter: normalize upstream market records into outcome quotes.

Upstream market feeds carry many optional and legacy-named fields (``conditionId`` vs
``condition_id``, outcome lists that arrive as JSON-encoded strings, winners flagged on
tokens or in ``resolvedOutcome``). This module folds them into one ``MarketQuote`` per
(market, outcome) so the ledger engine never sees raw feed shapes.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from decimal import Decimal, InvalidOperation
from typing import Any

import structlog
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from paper_ledger.constants import (
    LOSING_OUTCOME_PRICE,
    MAX_OUTCOME_PRICE,
    MIN_OUTCOME_PRICE,
    WINNING_OUTCOME_PRICE,
)
from paper_ledger.ledger.exceptions import QuoteUnavailableError

logger = structlog.get_logger()


class MarketToken(BaseModel):
    """Outcome token as listed by CLOB-style market records."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    token_id: str = ""
    outcome: str
    winner: bool = False


class MarketDescriptor(BaseModel):
    """An upstream market record, reduced to the fields that drive pricing."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    id: str | None = None
    condition_id: str | None = Field(
        default=None, validation_alias=AliasChoices("conditionId", "condition_id")
    )
    question: str = ""
    outcomes: list[str] = Field(default_factory=list)
    outcome_prices: list[str] = Field(
        default_factory=list, validation_alias=AliasChoices("outcomePrices", "outcome_prices")
    )
    is_expired: bool = Field(
        default=False, validation_alias=AliasChoices("isExpired", "is_expired")
    )
    resolved_outcome: str | None = Field(
        default=None, validation_alias=AliasChoices("resolvedOutcome", "resolved_outcome")
    )
    tokens: list[MarketToken] = Field(default_factory=list)

    @field_validator("outcomes", "outcome_prices", mode="before")
    @classmethod
    def decode_json_list(cls, value: Any) -> Any:
        """Accept JSON-encoded lists (``'["Yes", "No"]'``) as well as real lists."""
        if value is None:
            return []
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except json.JSONDecodeError:
                raise ValueError(f"expected a list or JSON-encoded list (got {value!r})") from None
        if isinstance(value, list):
            return [str(item) for item in value]
        return value

    @property
    def market_ids(self) -> tuple[str, ...]:
        """Every identifier this market may be referenced by (deduplicated, in order)."""
        ids: list[str] = []
        for candidate in (self.id, self.condition_id):
            if candidate and candidate not in ids:
                ids.append(candidate)
        return tuple(ids)

    @property
    def winning_outcome(self) -> str | None:
        """Declared winner from ``resolvedOutcome`` or a token flagged ``winner``."""
        if self.resolved_outcome:
            return self.resolved_outcome
        for token in self.tokens:
            if token.winner:
                return token.outcome
        return None

    @property
    def is_resolved(self) -> bool:
        """Expired with a declared winner."""
        return self.is_expired and self.winning_outcome is not None

    def quotes(self) -> list[MarketQuote]:
        """One quote per priced outcome; resolved markets price at 1 (winner) / 0."""
        if not self.market_ids:
            return []

        market_id = self.market_ids[0]
        winner = self.winning_outcome if self.is_resolved else None
        quotes: list[MarketQuote] = []

        for index, outcome in enumerate(self.outcomes):
            if winner is not None:
                price = WINNING_OUTCOME_PRICE if outcome == winner else LOSING_OUTCOME_PRICE
            else:
                raw = self.outcome_prices[index] if index < len(self.outcome_prices) else None
                parsed = _parse_price(raw, market_id=market_id, outcome=outcome)
                if parsed is None:
                    continue
                price = parsed

            quotes.append(
                MarketQuote(
                    market_id=market_id,
                    outcome_label=outcome,
                    price=price,
                    is_resolved=winner is not None,
                    winning_outcome=winner,
                )
            )
        return quotes


class MarketQuote(BaseModel):
    """Normalized price for one outcome of one market."""

    model_config = ConfigDict(frozen=True)

    market_id: str
    outcome_label: str
    price: Decimal = Field(..., ge=MIN_OUTCOME_PRICE, le=MAX_OUTCOME_PRICE)
    is_resolved: bool = False
    winning_outcome: str | None = None

    def price_for(self, outcome: str) -> Decimal:
        """Terminal price for ``outcome`` when resolved, otherwise the quoted price."""
        if self.is_resolved and self.winning_outcome is not None:
            if outcome == self.winning_outcome:
                return WINNING_OUTCOME_PRICE
            return LOSING_OUTCOME_PRICE
        return self.price


def _parse_price(raw: str | None, *, market_id: str, outcome: str) -> Decimal | None:
    if raw is None or raw == "":
        return None
    try:
        price = Decimal(raw)
    except InvalidOperation:
        logger.warning("Unparseable outcome price; skipping", market_id=market_id, outcome=outcome)
        return None
    if not price.is_finite() or not MIN_OUTCOME_PRICE <= price <= MAX_OUTCOME_PRICE:
        logger.warning(
            "Outcome price outside [0, 1]; skipping",
            market_id=market_id,
            outcome=outcome,
            price=raw,
        )
        return None
    return price


class QuoteBook:
    """Lookup from ``(market_id, outcome)`` to the latest quote.

    A market is indexed under every id it carries, so an order recorded against a
    condition id still finds its price when the feed keys markets by slug id.
    """

    def __init__(self) -> None:
        self._quotes: dict[tuple[str, str], MarketQuote] = {}

    def __len__(self) -> int:
        return len(self._quotes)

    def __contains__(self, key: object) -> bool:
        return key in self._quotes

    def add(self, quote: MarketQuote, *, aliases: Iterable[str] = ()) -> None:
        """Index ``quote`` under its market id and any ``aliases``."""
        for market_id in (quote.market_id, *aliases):
            self._quotes[(market_id, quote.outcome_label)] = quote

    def add_market(self, market: MarketDescriptor) -> int:
        """Index every quote of ``market``; returns the number of outcomes priced."""
        quotes = market.quotes()
        for quote in quotes:
            self.add(quote, aliases=market.market_ids[1:])
        return len(quotes)

    def quote(self, market_id: str, outcome: str) -> MarketQuote | None:
        return self._quotes.get((market_id, outcome))

    def get(self, market_id: str, outcome: str) -> Decimal | None:
        """Return the price for the instrument, or None if no quote is known."""
        found = self.quote(market_id, outcome)
        return found.price_for(outcome) if found is not None else None

    def require(self, market_id: str, outcome: str) -> Decimal:
        """Return the price for the instrument.

        Raises:
            QuoteUnavailableError: If no quote is known.
        """
        price = self.get(market_id, outcome)
        if price is None:
            raise QuoteUnavailableError(market_id=market_id, outcome=outcome)
        return price


MarketInput = MarketDescriptor | Mapping[str, Any]


def build_quote_book(markets: Iterable[MarketInput]) -> QuoteBook:
    """
    Build a QuoteBook from market descriptors or raw upstream market dicts.

    Records that fail validation, carry no id, or have unusable prices are skipped with a
    warning; they never abort the whole batch.
    """
    book = QuoteBook()
    for raw in markets:
        if isinstance(raw, MarketDescriptor):
            market = raw
        else:
            try:
                market = MarketDescriptor.model_validate(raw)
            except ValidationError as e:
                logger.warning("Invalid market record; skipping", errors=e.error_count())
                continue

        if not market.market_ids:
            logger.warning("Market record has no id; skipping", question=market.question)
            continue
        book.add_market(market)
    return book
