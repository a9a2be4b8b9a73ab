"""LanceDB table schemas for the knowledge store."""

from types import MappingProxyType

from lancedb.pydantic import LanceModel


class SourceSchema(LanceModel):  # type: ignore[misc]
    """Named origin of extracted data (base game, a mod, a doc set)."""

    name: str
    version: str | None = None
    description: str | None = None
    url: str | None = None
    created_at: str


class ApiTableSchema(LanceModel):  # type: ignore[misc]
    """A Lua API table (world, entity, player, ...)."""

    id: str  # '{source}/{name}'
    source: str
    name: str
    description: str
    context: str  # script contexts that may call into this table


class ApiFunctionSchema(LanceModel):  # type: ignore[misc]
    """A Lua API function; overloads are merged into one row."""

    id: str  # '{source}/{table}.{name}'
    source: str
    table_name: str
    name: str
    signature: str
    description: str
    return_type: str
    parameters: str  # JSON array of {name, type, optional}
    examples: list[str]
    notes: str


class AssetTypeSchema(LanceModel):  # type: ignore[misc]
    """A category of asset file with an inferable schema."""

    id: str  # '{source}/{name}'
    source: str
    name: str
    file_extension: str
    description: str
    base_path: str


class AssetFieldSchema(LanceModel):  # type: ignore[misc]
    """A field of an asset type, keyed by dot-notation path."""

    id: str  # '{source}/{asset_type}.{field_path}'
    source: str
    asset_type: str
    field_path: str
    type: str
    description: str
    required: bool
    default_value: str | None = None  # unparsed source literal
    enum_values: list[str]
    examples: list[str]


class RecipeSchema(LanceModel):  # type: ignore[misc]
    """A crafting recipe."""

    id: str
    source: str
    output_item: str
    output_count: float
    station: str | None = None
    groups: list[str]
    inputs: str  # JSON array of {item, count}
    duration: float | None = None
    notes: str | None = None


class ExtractionSchema(LanceModel):  # type: ignore[misc]
    """Input item transformed into outputs with probability or tier."""

    id: str
    source: str
    input_item: str
    method: str
    outputs: str  # JSON array of {item, count, probability, tier}
    notes: str | None = None


class ResearchNodeSchema(LanceModel):  # type: ignore[misc]
    """A research tree node with derived prerequisites."""

    id: str  # '{tree_id}:{node_id}'
    source: str
    tree_id: str
    tree: str
    node_id: str
    name: str
    description: str
    cost: str  # JSON array of {item, count}
    prerequisites: list[str]
    unlocks: list[str]


class SearchEntrySchema(LanceModel):  # type: ignore[misc]
    """Full-text search row pointing back at a stored entity."""

    id: str
    entity_type: str
    entity_id: str
    name: str
    content: str
    source: str


TABLE_SCHEMAS: MappingProxyType[str, type[LanceModel]] = MappingProxyType(
    {
        "sources": SourceSchema,
        "api_tables": ApiTableSchema,
        "api_functions": ApiFunctionSchema,
        "asset_types": AssetTypeSchema,
        "asset_fields": AssetFieldSchema,
        "recipes": RecipeSchema,
        "extractions": ExtractionSchema,
        "research_nodes": ResearchNodeSchema,
        "search_index": SearchEntrySchema,
    }
)

# Key column used by merge_insert for keyed tables
TABLE_KEYS: MappingProxyType[str, str] = MappingProxyType(
    {name: ("name" if name == "sources" else "id") for name in TABLE_SCHEMAS}
)

SEARCH_TABLE = "search_index"
FTS_COLUMNS = ("name", "content")
