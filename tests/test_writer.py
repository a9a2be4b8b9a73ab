"""Tests for writing candidate records to a knowledge store."""

import json

from starbound_kb.ingestion.lua_docs import LuaDocSet, merge_overloads, parse_markdown
from starbound_kb.ingestion.source_fields import SourceFieldFile, extract_fields
from starbound_kb.ingestion.sources import OPENSTARBOUND, VANILLA
from starbound_kb.ingestion.writer import (
    describe_field,
    summarize_extraction,
    write_asset_schemas,
    write_extractions,
    write_lua_api,
    write_recipes,
    write_research_nodes,
)
from starbound_kb.schemas.records import (
    CountedItem,
    ExtractionOutput,
    ParsedExtraction,
    ParsedRecipe,
    ResearchNode,
)
from starbound_kb.store import MemoryKnowledgeStore

PLAYER_DOC = """#### `void` player.giveItem(`ItemDescriptor` item)

Gives the player an item.

#### `void` player.giveItem(`ItemDescriptor` item, `bool` silent)

Gives the player an item quietly.

#### `float` world.time()

Returns the world time.
"""

PROJECTILE_SOURCE = """\
config.speed = json.getFloat("speed", 50.0f);
config.power = json.getFloat("power");
config.timeToLive = json.get("timeToLive", 5.0).toFloat();
"""


def doc_set(text=PLAYER_DOC, source=VANILLA):
    functions = merge_overloads(parse_markdown(text, "player.md"))
    return LuaDocSet(source=source, directory=None, functions=functions)  # type: ignore[arg-type]


def field_file(text=PROJECTILE_SOURCE, mapped=True):
    return SourceFieldFile(
        file_name="StarProjectileDatabase.cpp",
        asset_type="projectile",
        extension=".projectile",
        description="Projectile definitions.",
        mapped=mapped,
        fields=extract_fields(text, "StarProjectileDatabase.cpp"),
    )


def search_rows(store, entity_type):
    return [r for r in store.rows("search_index") if r["entity_type"] == entity_type]


class TestWriteLuaApi:
    """Test Lua API writes."""

    def test_tables_functions_and_search(self):
        store = MemoryKnowledgeStore()
        summary = write_lua_api(store, doc_set())

        assert summary.total("api_tables") == 2
        assert summary.total("api_functions") == 2

        tables = {r["name"]: r for r in store.rows("api_tables")}
        assert tables["player"]["description"] == "Lua player table: 1 functions. Available in: player"
        assert tables["world"]["context"] == "universal"

        functions = {r["id"]: r for r in store.rows("api_functions")}
        give = functions["vanilla/player.giveItem"]
        assert len(json.loads(give["parameters"])) == 2
        assert give["signature"].count("\n") == 1
        assert give["notes"] == "Source: player.md:1\nSource: player.md:5"

        names = {r["name"] for r in search_rows(store, "lua_function")}
        assert names == {"player.giveItem", "world.time"}

    def test_registers_source(self):
        store = MemoryKnowledgeStore()
        write_lua_api(store, doc_set(source=OPENSTARBOUND))

        (source,) = store.rows("sources")
        assert source["name"] == "openstarbound"
        assert source["version"] is None

    def test_rerun_replaces_functions(self):
        store = MemoryKnowledgeStore()
        write_lua_api(store, doc_set())
        write_lua_api(store, doc_set(PLAYER_DOC.replace("Returns the world time.", "Updated.")))

        functions = {r["id"]: r for r in store.rows("api_functions")}
        assert len(functions) == 2
        assert functions["vanilla/world.time"]["description"] == "Updated."
        assert store.count("api_tables") == 2


class TestWriteAssetSchemas:
    """Test asset type and field writes."""

    def test_fields_written(self):
        store = MemoryKnowledgeStore()
        summary = write_asset_schemas(store, [field_file()])

        assert summary.total("asset_types") == 1
        fields = {r["field_path"]: r for r in store.rows("asset_fields")}
        assert set(fields) == {"speed", "power", "timeToLive"}
        assert fields["speed"]["required"] is False
        assert fields["speed"]["default_value"] == "50.0f"
        assert fields["power"]["required"] is True
        assert fields["timeToLive"]["type"] == "Float"
        assert fields["speed"]["description"] == (
            "Extracted from StarProjectileDatabase.cpp:1. Optional. Default: 50.0f"
        )

        assert len(search_rows(store, "asset_type")) == 1
        assert {r["name"] for r in search_rows(store, "asset_field")} == {
            "projectile.speed",
            "projectile.power",
            "projectile.timeToLive",
        }

    def test_rerun_adds_no_duplicate_fields(self):
        store = MemoryKnowledgeStore()
        write_asset_schemas(store, [field_file()])
        first = store.rows("asset_fields")

        write_asset_schemas(store, [field_file()])

        assert store.rows("asset_fields") == first
        assert store.count("asset_types") == 1

    def test_first_definition_wins(self):
        """A name recovered at two types is stored once, at the first type."""
        store = MemoryKnowledgeStore()
        write_asset_schemas(store, [field_file('a = c.getString("mode");\nb = c.get("mode", 3);')])

        (row,) = store.rows("asset_fields")
        assert row["type"] == "String"

    def test_unmapped_files_not_stored(self):
        store = MemoryKnowledgeStore()
        summary = write_asset_schemas(store, [field_file(mapped=False)])

        assert summary.rows == {}
        assert store.count("asset_fields") == 0
        assert store.count("asset_types") == 0

    def test_describe_required_field(self):
        (extracted,) = extract_fields('c.getInt("a");', "StarX.cpp")
        assert describe_field(extracted) == "Extracted from StarX.cpp:1. Required."


class TestWriteFrackinUniverse:
    """Test recipe, extraction and research writes."""

    def test_recipes_append(self):
        store = MemoryKnowledgeStore()
        recipe = ParsedRecipe(
            output_item="fu_ironplate",
            output_count=2,
            station="craftingfurnace",
            groups=["craftingfurnace"],
            inputs=[CountedItem(item="ironbar", count=1)],
        )
        write_recipes(store, [recipe, recipe.model_copy(update={"station": None})])
        write_recipes(store, [recipe])

        assert store.count("recipes") == 3
        contents = [r["content"] for r in search_rows(store, "recipe")]
        assert "Crafts fu_ironplate x2 at craftingfurnace" in contents
        assert "Crafts fu_ironplate x2 at hand" in contents
        assert json.loads(store.rows("recipes")[0]["inputs"]) == [{"item": "ironbar", "count": 1}]
        assert store.rows("sources")[0]["name"] == "frackin-universe"

    def test_extractions(self):
        store = MemoryKnowledgeStore()
        extraction = ParsedExtraction(
            input_item="goldore",
            method="extraction lab",
            outputs=[
                ExtractionOutput(item="goldbar", count=1, probability=1.0, tier="basic"),
                ExtractionOutput(item="goldbar", count=2, probability=1.0, tier="improved"),
                ExtractionOutput(item="slag", count=1, probability=1.0, tier="all"),
            ],
            notes="Input count: 1",
        )
        write_extractions(store, [extraction])

        (row,) = store.rows("extractions")
        assert len(json.loads(row["outputs"])) == 3
        assert row["notes"] == "Input count: 1"
        (search,) = search_rows(store, "extraction")
        assert search["content"] == "extraction lab: goldore -> goldbar, slag"
        assert summarize_extraction(extraction) == search["content"]

    def test_research_nodes_replace(self):
        store = MemoryKnowledgeStore()
        node = ResearchNode(
            tree_id="t1",
            tree_name="Tree One",
            node_id="b",
            name="Bee",
            description="Bees.",
            prerequisites=["t1:a"],
        )
        write_research_nodes(store, [node])
        write_research_nodes(store, [node.model_copy(update={"name": "Bees"})])

        (row,) = store.rows("research_nodes")
        assert row["id"] == "t1:b"
        assert row["name"] == "Bees"
        assert row["prerequisites"] == ["t1:a"]
        contents = [r["content"] for r in search_rows(store, "research")]
        assert "Research: Bee in Tree One. Bees." in contents
