"""Knowledge store interface shared by the LanceDB and in-memory backends."""

import re
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from lancedb.pydantic import LanceModel

from starbound_kb.logging import get_logger
from starbound_kb.schemas.database import TABLE_KEYS, TABLE_SCHEMAS, SourceSchema

logger = get_logger(__name__)


class MergePolicy(str, Enum):
    """How a batch of rows combines with rows already stored under the same key."""

    IGNORE = "insert-or-ignore"
    REPLACE = "insert-or-replace"
    APPEND = "append"


@dataclass
class _PendingWrite:
    table: str
    policy: MergePolicy
    rows: list[dict[str, Any]] = field(default_factory=list)


def collapse_duplicates(
    rows: list[dict[str, Any]], key: str, policy: MergePolicy
) -> list[dict[str, Any]]:
    """
    Collapse rows sharing a key within one batch.

    insert-or-ignore keeps the first row per key, insert-or-replace the last;
    append keeps everything.
    """
    if policy is MergePolicy.APPEND:
        return list(rows)

    by_key: dict[Any, dict[str, Any]] = {}
    for row in rows:
        row_key = row[key]
        if policy is MergePolicy.IGNORE and row_key in by_key:
            continue
        by_key[row_key] = row
    return list(by_key.values())


def sanitize_filter_value(value: str) -> str:
    """
    Sanitize value for safe use in a filter expression.

    Raises:
        ValueError: If value contains disallowed characters
    """
    if not re.match(r"^[a-zA-Z0-9_./:-]+$", value):
        raise ValueError(
            f"Invalid filter value: '{value}'. "
            f"Only alphanumeric characters and _ . / : - are allowed."
        )
    return value


class KnowledgeStore(ABC):
    """
    Normalized tables plus a full-text search index.

    Writes issued inside ``transaction()`` are buffered and flushed per table
    when the block exits cleanly; if the block raises, the buffer is dropped
    and nothing from it is written. Writes outside a transaction flush at once.
    """

    def __init__(self) -> None:
        self._pending: list[_PendingWrite] | None = None

    # === backend hooks ===

    @abstractmethod
    def _write(self, table: str, rows: list[dict[str, Any]], policy: MergePolicy) -> None:
        """Apply a deduplicated batch to one table."""

    @abstractmethod
    def rows(self, table: str) -> list[dict[str, Any]]:
        """Return all rows of a table (empty if it does not exist)."""

    @abstractmethod
    def count(self, table: str) -> int:
        """Return the number of rows in a table."""

    @abstractmethod
    def _find_source(self, name: str) -> dict[str, Any] | None:
        """Look up a source row by name."""

    def refresh_search_index(self) -> None:
        """Rebuild full-text indexes after a run. No-op by default."""

    # === public API ===

    def get_or_create_source(
        self,
        name: str,
        version: str | None = None,
        description: str | None = None,
        url: str | None = None,
    ) -> str:
        """
        Return the source name, creating the source row if it does not exist.

        Sources are never replaced or deleted.
        """
        if self._find_source(name) is None:
            row = SourceSchema(
                name=name,
                version=version,
                description=description,
                url=url,
                created_at=datetime.now(UTC).isoformat(),
            )
            self._write("sources", [row.model_dump()], MergePolicy.IGNORE)
            logger.info("Registered source %s", name)
        return name

    def insert_or_ignore(self, table: str, rows: list[LanceModel]) -> None:
        """Insert rows whose key is not stored yet; existing rows win."""
        self._submit(table, rows, MergePolicy.IGNORE)

    def insert_or_replace(self, table: str, rows: list[LanceModel]) -> None:
        """Insert rows, replacing stored rows with the same key."""
        self._submit(table, rows, MergePolicy.REPLACE)

    def append(self, table: str, rows: list[LanceModel]) -> None:
        """Append rows unconditionally."""
        self._submit(table, rows, MergePolicy.APPEND)

    @contextmanager
    def transaction(self) -> Iterator["KnowledgeStore"]:
        """Buffer writes and flush them together when the block succeeds."""
        if self._pending is not None:
            # Nested blocks join the outer batch
            yield self
            return

        self._pending = []
        try:
            yield self
        except BaseException:
            dropped = sum(len(p.rows) for p in self._pending)
            self._pending = None
            logger.warning("Transaction aborted, discarded %d buffered rows", dropped)
            raise

        pending, self._pending = self._pending, None
        for batch in _coalesce(pending):
            self._flush(batch)

    # === internals ===

    def _submit(self, table: str, rows: list[LanceModel], policy: MergePolicy) -> None:
        if table not in TABLE_SCHEMAS:
            raise KeyError(f"Unknown table: {table}")
        if not rows:
            return

        batch = _PendingWrite(table=table, policy=policy, rows=[r.model_dump() for r in rows])
        if self._pending is None:
            self._flush(batch)
        else:
            self._pending.append(batch)

    def _flush(self, batch: _PendingWrite) -> None:
        rows = collapse_duplicates(batch.rows, TABLE_KEYS[batch.table], batch.policy)
        logger.debug("Flushing %d rows to %s (%s)", len(rows), batch.table, batch.policy.value)
        self._write(batch.table, rows, batch.policy)


def _coalesce(pending: list[_PendingWrite]) -> list[_PendingWrite]:
    """Group buffered writes by (table, policy), keeping first-submission order."""
    merged: dict[tuple[str, MergePolicy], _PendingWrite] = {}
    for batch in pending:
        group = merged.setdefault(
            (batch.table, batch.policy), _PendingWrite(batch.table, batch.policy)
        )
        group.rows.extend(batch.rows)
    return list(merged.values())
