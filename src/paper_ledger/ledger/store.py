"""Ledger storage backends.

The ledger is a single JSON document (``{"orders": [...], "lastUpdated": ...}``) that is
always read and written whole. Backends only move that document; they never patch it.
"""

from __future__ import annotations

import copy
import json
import os
import uuid
from pathlib import Path
from typing import Any, Protocol

import structlog
from pydantic import ValidationError

from paper_ledger.ledger.exceptions import StoreUnavailableError
from paper_ledger.ledger.models import OrderBook

logger = structlog.get_logger()


class LedgerStore(Protocol):
    """Protocol for a whole-document ledger blob store."""

    def load(self) -> OrderBook:
        """Return the stored ledger.

        Must never raise: a missing, unreadable or corrupt blob yields an empty ledger.
        """
        ...

    def save(self, book: OrderBook) -> None:
        """Replace the stored ledger with ``book``.

        Raises:
            StoreUnavailableError: If the blob could not be written.
        """
        ...


def _book_from_document(raw: Any, *, source: str) -> OrderBook | None:
    """Validate a raw ledger document, or return None if it is unusable."""
    if not isinstance(raw, dict):
        logger.warning("Ledger document must be a JSON object", source=source)
        return None
    try:
        return OrderBook.model_validate(raw)
    except ValidationError as e:
        logger.warning(
            "Ledger document failed validation",
            source=source,
            errors=e.error_count(),
        )
        return None


class JsonFileLedgerStore:
    """Ledger persisted as a JSON file, replaced atomically on every save."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        """Return the ledger file path."""
        return self._path

    def load(self) -> OrderBook:
        if not self._path.exists():
            return OrderBook.empty()

        try:
            with self._path.open(encoding="utf-8") as f:
                raw = json.load(f)
        except json.JSONDecodeError:
            logger.warning("Ledger file is not valid JSON", path=str(self._path))
            return self._set_aside()
        except OSError as e:
            logger.warning(
                "Ledger file could not be read; starting empty",
                path=str(self._path),
                error=str(e),
            )
            return OrderBook.empty()

        book = _book_from_document(raw, source=str(self._path))
        if book is None:
            return self._set_aside()
        return book

    def _set_aside(self) -> OrderBook:
        """Move an unusable ledger file out of the way and start from an empty ledger.

        The file is renamed to ``<name>.corrupt`` (with a unique suffix if that backup
        already exists), so the next save cannot overwrite the user's data.
        """
        backup = self._path.with_name(f"{self._path.name}.corrupt")
        if backup.exists():
            backup = self._path.with_name(f"{self._path.name}.corrupt.{uuid.uuid4().hex[:8]}")
        try:
            self._path.replace(backup)
        except OSError as e:
            logger.warning(
                "Unusable ledger file could not be moved aside; starting empty",
                path=str(self._path),
                error=str(e),
            )
            return OrderBook.empty()

        logger.warning(
            "Unusable ledger file moved aside; starting empty",
            path=str(self._path),
            backup=str(backup),
        )
        return OrderBook.empty()

    def save(self, book: OrderBook) -> None:
        """Write JSON atomically (temp file + fsync + rename)."""
        tmp_path = self._path.with_suffix(f"{self._path.suffix}.tmp.{uuid.uuid4().hex}")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with tmp_path.open("w", encoding="utf-8") as f:
                json.dump(book.to_document(), f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            tmp_path.replace(self._path)
        except OSError as e:
            if tmp_path.exists():
                tmp_path.unlink()
            raise StoreUnavailableError(
                f"Failed to write ledger file {self._path}: {e}", path=self._path
            ) from e

        logger.debug("Ledger saved", path=str(self._path), orders=len(book.orders))


class InMemoryLedgerStore:
    """Ledger held as an in-process document (tests, embedding, ephemeral sessions).

    The document is deep-copied on the way in and out, so callers never share state with
    the stored blob.
    """

    def __init__(self, document: dict[str, Any] | None = None) -> None:
        self._document = copy.deepcopy(document) if document is not None else None

    @property
    def document(self) -> dict[str, Any] | None:
        """Return a copy of the raw stored document."""
        return copy.deepcopy(self._document)

    def load(self) -> OrderBook:
        if self._document is None:
            return OrderBook.empty()
        book = _book_from_document(copy.deepcopy(self._document), source="memory")
        return book if book is not None else OrderBook.empty()

    def save(self, book: OrderBook) -> None:
        self._document = book.to_document()
