"""In-memory knowledge store for tests and dry runs."""

from typing import Any

from starbound_kb.schemas.database import TABLE_KEYS
from starbound_kb.store.base import KnowledgeStore, MergePolicy


class MemoryKnowledgeStore(KnowledgeStore):
    """Keeps every table as an ordered list of row dicts."""

    def __init__(self) -> None:
        super().__init__()
        self._tables: dict[str, list[dict[str, Any]]] = {}

    def _write(self, table: str, rows: list[dict[str, Any]], policy: MergePolicy) -> None:
        stored = self._tables.setdefault(table, [])

        if policy is MergePolicy.APPEND:
            stored.extend(dict(row) for row in rows)
            return

        key = TABLE_KEYS[table]
        positions = {row[key]: i for i, row in enumerate(stored)}
        for row in rows:
            index = positions.get(row[key])
            if index is None:
                positions[row[key]] = len(stored)
                stored.append(dict(row))
            elif policy is MergePolicy.REPLACE:
                stored[index] = dict(row)

    def rows(self, table: str) -> list[dict[str, Any]]:
        return [dict(row) for row in self._tables.get(table, [])]

    def count(self, table: str) -> int:
        return len(self._tables.get(table, []))

    def _find_source(self, name: str) -> dict[str, Any] | None:
        for row in self._tables.get("sources", []):
            if row["name"] == name:
                return dict(row)
        return None
