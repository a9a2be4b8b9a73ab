"""Extraction pipeline: parse game data and docs into candidate records."""

from starbound_kb.ingestion.discovery import find_files, read_text
from starbound_kb.ingestion.lua_docs import (
    LuaDocSet,
    collect_lua_doc_sets,
    merge_overloads,
    parse_markdown,
)
from starbound_kb.ingestion.recipes import (
    Collected,
    collect_centrifuge_recipes,
    collect_lab_recipes,
    collect_recipes,
    parse_centrifuge_table,
    parse_lab_recipes,
    parse_recipe,
)
from starbound_kb.ingestion.research import (
    build_node_table,
    collect_research_nodes,
    link_prerequisites,
    load_research_documents,
)
from starbound_kb.ingestion.sanitizer import parse_json_text, read_json_file, strip_json_comments
from starbound_kb.ingestion.source_fields import (
    PATTERN_FAMILIES,
    SourceFieldFile,
    collect_source_fields,
    extract_fields,
)
from starbound_kb.ingestion.writer import (
    WriteSummary,
    write_asset_schemas,
    write_extractions,
    write_lua_api,
    write_recipes,
    write_research_nodes,
)

__all__ = [
    # Files
    "find_files",
    "read_text",
    "strip_json_comments",
    "parse_json_text",
    "read_json_file",
    # Lua docs
    "LuaDocSet",
    "parse_markdown",
    "merge_overloads",
    "collect_lua_doc_sets",
    # Engine source
    "PATTERN_FAMILIES",
    "SourceFieldFile",
    "extract_fields",
    "collect_source_fields",
    # Frackin' Universe
    "Collected",
    "parse_recipe",
    "collect_recipes",
    "parse_centrifuge_table",
    "collect_centrifuge_recipes",
    "parse_lab_recipes",
    "collect_lab_recipes",
    "load_research_documents",
    "build_node_table",
    "link_prerequisites",
    "collect_research_nodes",
    # Writing
    "WriteSummary",
    "write_lua_api",
    "write_asset_schemas",
    "write_recipes",
    "write_extractions",
    "write_research_nodes",
]
