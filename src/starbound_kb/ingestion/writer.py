"""Write candidate records to a knowledge store.

Each ``write_*`` function stores one record family inside a single store
transaction, with that family's merge policy, and appends a search row for
every record it writes.
"""

import json
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field

from starbound_kb.ingestion.lua_docs import LuaDocSet, context_for_table
from starbound_kb.ingestion.source_fields import SourceFieldFile
from starbound_kb.ingestion.sources import FRACKIN_UNIVERSE, OPENSTARBOUND, SourceInfo
from starbound_kb.logging import get_logger
from starbound_kb.schemas.database import (
    SEARCH_TABLE,
    ApiFunctionSchema,
    ApiTableSchema,
    AssetFieldSchema,
    AssetTypeSchema,
    ExtractionSchema,
    RecipeSchema,
    ResearchNodeSchema,
    SearchEntrySchema,
)
from starbound_kb.schemas.records import (
    ExtractedField,
    ParsedExtraction,
    ParsedFunction,
    ParsedRecipe,
    ResearchNode,
)
from starbound_kb.store.base import KnowledgeStore

logger = get_logger(__name__)


@dataclass
class WriteSummary:
    """Rows submitted per table by one write call."""

    rows: dict[str, int] = field(default_factory=dict)
    search_rows: int = 0

    def record(self, table: str, count: int) -> None:
        self.rows[table] = self.rows.get(table, 0) + count

    def total(self, table: str) -> int:
        return self.rows.get(table, 0)


def _new_id() -> str:
    return uuid.uuid4().hex


def _register(store: KnowledgeStore, source: SourceInfo) -> str:
    return store.get_or_create_source(
        source.name, version=source.version, description=source.description, url=source.url
    )


def _search_row(entity_type: str, entity_id: str, name: str, content: str, source: str) -> SearchEntrySchema:
    return SearchEntrySchema(
        id=_new_id(),
        entity_type=entity_type,
        entity_id=entity_id,
        name=name,
        content=content,
        source=source,
    )


def _format_count(count: int | float) -> str:
    return str(int(count)) if float(count).is_integer() else str(count)


# === Lua API ===


def function_row(fn: ParsedFunction, source: str) -> ApiFunctionSchema:
    return ApiFunctionSchema(
        id=f"{source}/{fn.qualified_name}",
        source=source,
        table_name=fn.table_name,
        name=fn.function_name,
        signature=fn.signature,
        description=fn.description,
        return_type=fn.return_type,
        parameters=json.dumps([p.model_dump() for p in fn.parameters]),
        examples=fn.examples,
        notes="\n".join(f"Source: {p}" for p in fn.provenance),
    )


def write_lua_api(store: KnowledgeStore, doc_set: LuaDocSet) -> WriteSummary:
    """
    Store the tables and functions of one documentation set.

    Tables are insert-or-ignore; functions are insert-or-replace, so a
    re-run refreshes signatures and descriptions.
    """
    summary = WriteSummary()
    source = _register(store, doc_set.source)

    by_table: dict[str, dict[str, ApiFunctionSchema]] = {}
    for fn in doc_set.functions:
        row = function_row(fn, source)
        by_table.setdefault(fn.table_name, {})[row.id] = row

    with store.transaction():
        for table_name, functions in by_table.items():
            context = context_for_table(table_name)
            store.insert_or_ignore(
                "api_tables",
                [
                    ApiTableSchema(
                        id=f"{source}/{table_name}",
                        source=source,
                        name=table_name,
                        description=f"Lua {table_name} table: {len(functions)} functions. Available in: {context}",
                        context=context,
                    )
                ],
            )
            store.insert_or_replace("api_functions", list(functions.values()))
            summary.record("api_tables", 1)
            summary.record("api_functions", len(functions))

        search_rows = [
            _search_row("lua_function", row.id, f"{row.table_name}.{row.name}", row.description, source)
            for functions in by_table.values()
            for row in functions.values()
        ]
        store.append(SEARCH_TABLE, search_rows)
        summary.search_rows = len(search_rows)

    logger.info(
        "Wrote %d tables with %d functions for %s",
        summary.total("api_tables"), summary.total("api_functions"), source,
        extra={"entity_type": "lua_function"},
    )
    return summary


# === Asset schemas ===


def describe_field(extracted: ExtractedField) -> str:
    """Human-readable provenance line stored as the field description."""
    parts = [
        f"Extracted from {extracted.source_file}:{extracted.line_number}.",
        "Optional." if extracted.optional else "Required.",
    ]
    if extracted.default_value:
        parts.append(f"Default: {extracted.default_value}")
    return " ".join(parts)


def write_asset_schemas(
    store: KnowledgeStore,
    files: Iterable[SourceFieldFile],
    source_info: SourceInfo = OPENSTARBOUND,
) -> WriteSummary:
    """
    Store asset types and their recovered fields.

    Both are insert-or-ignore keyed by asset type and field path, so the
    first definition of a field wins and re-runs add nothing new. Files with
    no asset mapping are not stored.
    """
    summary = WriteSummary()
    source = _register(store, source_info)

    with store.transaction():
        for source_file in files:
            if not source_file.mapped:
                logger.debug("Not storing unmapped %s", source_file.file_name)
                continue

            asset_type = AssetTypeSchema(
                id=f"{source}/{source_file.asset_type}",
                source=source,
                name=source_file.asset_type,
                file_extension=source_file.extension,
                description=source_file.description,
                base_path="",
            )
            store.insert_or_ignore("asset_types", [asset_type])
            search_rows = [
                _search_row("asset_type", asset_type.id, asset_type.name, asset_type.description, source)
            ]

            fields: dict[str, AssetFieldSchema] = {}
            for extracted in source_file.fields:
                row_id = f"{source}/{source_file.asset_type}.{extracted.field_name}"
                if row_id in fields:
                    continue
                fields[row_id] = AssetFieldSchema(
                    id=row_id,
                    source=source,
                    asset_type=source_file.asset_type,
                    field_path=extracted.field_name,
                    type=extracted.type,
                    description=describe_field(extracted),
                    required=not extracted.optional,
                    default_value=extracted.default_value,
                    enum_values=[],
                    examples=[],
                )

            store.insert_or_ignore("asset_fields", list(fields.values()))
            search_rows.extend(
                _search_row(
                    "asset_field", row.id, f"{row.asset_type}.{row.field_path}", row.description, source
                )
                for row in fields.values()
            )
            store.append(SEARCH_TABLE, search_rows)

            summary.record("asset_types", 1)
            summary.record("asset_fields", len(fields))
            summary.search_rows += len(search_rows)

    logger.info(
        "Wrote %d asset types with %d fields",
        summary.total("asset_types"), summary.total("asset_fields"),
        extra={"entity_type": "asset_field"},
    )
    return summary


# === Frackin' Universe data ===


def write_recipes(
    store: KnowledgeStore,
    recipes: list[ParsedRecipe],
    source_info: SourceInfo = FRACKIN_UNIVERSE,
) -> WriteSummary:
    """Append crafting recipes."""
    summary = WriteSummary()
    source = _register(store, source_info)

    rows: list[RecipeSchema] = []
    search_rows: list[SearchEntrySchema] = []
    for recipe in recipes:
        row = RecipeSchema(
            id=_new_id(),
            source=source,
            output_item=recipe.output_item,
            output_count=float(recipe.output_count),
            station=recipe.station,
            groups=recipe.groups,
            inputs=json.dumps([i.model_dump() for i in recipe.inputs]),
            duration=recipe.duration,
            notes=f"Source: {recipe.source_file}" if recipe.source_file else None,
        )
        rows.append(row)
        search_rows.append(
            _search_row(
                "recipe",
                row.id,
                recipe.output_item,
                f"Crafts {recipe.output_item} x{_format_count(recipe.output_count)} at {recipe.station or 'hand'}",
                source,
            )
        )

    with store.transaction():
        store.append("recipes", rows)
        store.append(SEARCH_TABLE, search_rows)

    summary.record("recipes", len(rows))
    summary.search_rows = len(search_rows)
    logger.info("Wrote %d recipes", len(rows), extra={"entity_type": "recipe"})
    return summary


def summarize_extraction(extraction: ParsedExtraction) -> str:
    """``method: input -> output, output``, each output item named once."""
    items = ", ".join(dict.fromkeys(o.item for o in extraction.outputs))
    return f"{extraction.method}: {extraction.input_item} -> {items}"


def write_extractions(
    store: KnowledgeStore,
    extractions: list[ParsedExtraction],
    source_info: SourceInfo = FRACKIN_UNIVERSE,
) -> WriteSummary:
    """Append extraction records (centrifuge tables and lab recipes alike)."""
    summary = WriteSummary()
    source = _register(store, source_info)

    rows: list[ExtractionSchema] = []
    search_rows: list[SearchEntrySchema] = []
    for extraction in extractions:
        row = ExtractionSchema(
            id=_new_id(),
            source=source,
            input_item=extraction.input_item,
            method=extraction.method,
            outputs=json.dumps([o.model_dump() for o in extraction.outputs]),
            notes=extraction.notes,
        )
        rows.append(row)
        search_rows.append(
            _search_row("extraction", row.id, extraction.input_item, summarize_extraction(extraction), source)
        )

    with store.transaction():
        store.append("extractions", rows)
        store.append(SEARCH_TABLE, search_rows)

    summary.record("extractions", len(rows))
    summary.search_rows = len(search_rows)
    logger.info("Wrote %d extraction records", len(rows), extra={"entity_type": "extraction"})
    return summary


def write_research_nodes(
    store: KnowledgeStore,
    nodes: list[ResearchNode],
    source_info: SourceInfo = FRACKIN_UNIVERSE,
) -> WriteSummary:
    """Store research nodes, replacing earlier rows for the same ``tree:node``."""
    summary = WriteSummary()
    source = _register(store, source_info)

    rows: list[ResearchNodeSchema] = []
    search_rows: list[SearchEntrySchema] = []
    for node in nodes:
        rows.append(
            ResearchNodeSchema(
                id=node.key,
                source=source,
                tree_id=node.tree_id,
                tree=node.tree_name,
                node_id=node.node_id,
                name=node.name,
                description=node.description,
                cost=json.dumps([c.model_dump() for c in node.cost]),
                prerequisites=node.prerequisites,
                unlocks=node.unlocks,
            )
        )
        search_rows.append(
            _search_row(
                "research",
                node.key,
                node.name,
                f"Research: {node.name} in {node.tree_name}. {node.description}".strip(),
                source,
            )
        )

    with store.transaction():
        store.insert_or_replace("research_nodes", rows)
        store.append(SEARCH_TABLE, search_rows)

    summary.record("research_nodes", len(rows))
    summary.search_rows = len(search_rows)
    logger.info("Wrote %d research nodes", len(rows), extra={"entity_type": "research"})
    return summary
