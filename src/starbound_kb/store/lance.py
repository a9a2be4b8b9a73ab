"""LanceDB-backed knowledge store.

Each flushed batch is a single LanceDB operation per table (``add`` or
``merge_insert``), so a batch either lands as one table version or not at all.
"""

from pathlib import Path
from typing import Any

import lancedb
import pyarrow as pa

from starbound_kb.logging import get_logger
from starbound_kb.schemas.database import FTS_COLUMNS, SEARCH_TABLE, TABLE_KEYS, TABLE_SCHEMAS
from starbound_kb.store.base import KnowledgeStore, MergePolicy, sanitize_filter_value

logger = get_logger(__name__)


class LanceKnowledgeStore(KnowledgeStore):
    """Knowledge store persisted in a LanceDB directory."""

    def __init__(self, db_path: str | Path):
        """
        Initialize the store.

        Args:
            db_path: Path to the LanceDB database directory
        """
        super().__init__()
        self.db_path = Path(db_path)
        self._db: lancedb.DBConnection | None = None

    @property
    def db(self) -> lancedb.DBConnection:
        """Lazy-connect to database."""
        if self._db is None:
            self._db = lancedb.connect(str(self.db_path))
        return self._db

    def is_initialized(self) -> bool:
        """Check if the database exists and has been written to."""
        return self.db_path.exists() and "sources" in self._table_names()

    def _table_names(self) -> list[str]:
        return list(self.db.list_tables().tables)

    def _open(self, table: str) -> Any:
        return self.db.create_table(table, schema=TABLE_SCHEMAS[table], exist_ok=True)

    def _write(self, table: str, rows: list[dict[str, Any]], policy: MergePolicy) -> None:
        if not rows:
            return

        lance_table = self._open(table)
        data = pa.Table.from_pylist(rows, schema=TABLE_SCHEMAS[table].to_arrow_schema())

        if policy is MergePolicy.APPEND:
            lance_table.add(data)
            return

        merge = lance_table.merge_insert(TABLE_KEYS[table])
        if policy is MergePolicy.REPLACE:
            merge = merge.when_matched_update_all()
        merge.when_not_matched_insert_all().execute(data)

    def rows(self, table: str) -> list[dict[str, Any]]:
        if table not in self._table_names():
            return []
        return self.db.open_table(table).to_arrow().to_pylist()  # type: ignore[no-any-return]

    def count(self, table: str) -> int:
        if table not in self._table_names():
            return 0
        return self.db.open_table(table).count_rows()  # type: ignore[no-any-return]

    def _find_source(self, name: str) -> dict[str, Any] | None:
        if "sources" not in self._table_names():
            return None

        safe_name = sanitize_filter_value(name)
        matches = (
            self.db.open_table("sources").search().where(f"name = '{safe_name}'").limit(1).to_list()
        )
        return matches[0] if matches else None

    def refresh_search_index(self) -> None:
        """Rebuild FTS indexes on the search table."""
        if SEARCH_TABLE not in self._table_names():
            return

        search_table = self.db.open_table(SEARCH_TABLE)
        if search_table.count_rows() == 0:
            return

        for column in FTS_COLUMNS:
            search_table.create_fts_index(column, replace=True)
        logger.info("Rebuilt full-text indexes on %s", SEARCH_TABLE)
