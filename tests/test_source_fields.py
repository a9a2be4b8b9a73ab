"""Tests for the heuristic C++ field extractor."""

import re

import pytest

from starbound_kb.ingestion.source_fields import (
    CONVERTER_TYPE_MAP,
    DATABASE_TO_ASSET,
    GETTER_TYPE_MAP,
    PATTERN_FAMILIES,
    FieldLedger,
    SourceText,
    collect_source_fields,
    extract_fields,
    infer_literal_type,
    scan_converter_wrapped,
    scan_generic_accessors,
    scan_generic_optionals,
    scan_optional_typed_accessors,
    scan_presence_checks,
    scan_typed_accessors,
)
from starbound_kb.schemas.policy import ExtractionPolicy

OBJECT_DATABASE = """\
ObjectConfigPtr ObjectDatabase::readConfig(String const& path) {
  auto config = make_shared<ObjectConfig>();
  config->name = configJson.getString("objectName");
  config->health = configJson.getFloat("health", 1.0f);
  config->rarity = configJson.getString("rarity", "Common");
  config->category = configJson.optString("category");
  config->printable = configJson.getBool("printable", true);
  config->imagePosition = jsonToVec2F(configJson.get("imagePosition"));
  config->lightColor = jsonToColor(configJson.opt("lightColor").value(JsonArray{0, 0, 0}));
  config->flickerPeriod = configJson.get("flickerPeriod", 0.3).toFloat();
  config->scripts = configJson.get("scripts", JsonArray());
  config->tags = configJson.get("colonyTags", JsonArray()).toArray();
  config->soundEffect = configJson.get("soundEffect", "");
  if (configJson.contains("breakDropOptions"))
    readDrops(configJson);
  if (configJson.contains("health"))
    warn();
  return config;
}
"""


STATEMENT_CLIPPED = ExtractionPolicy(clip_converter_window=True)


def by_name(fields):
    return {(f.field_name, f.type): f for f in fields}


class TestTypeTables:
    """Test fixed lookup tables."""

    def test_tables_are_read_only(self):
        with pytest.raises(TypeError):
            GETTER_TYPE_MAP["Long"] = "Int"  # type: ignore[index]
        with pytest.raises(TypeError):
            DATABASE_TO_ASSET["StarFooDatabase.cpp"] = None  # type: ignore[index]

    def test_double_maps_to_float(self):
        assert GETTER_TYPE_MAP["Double"] == "Float"

    def test_converter_types(self):
        assert CONVERTER_TYPE_MAP["jsonToVec2F"] == "Vec2F"
        assert CONVERTER_TYPE_MAP["jsonToStringList"] == "String[]"

    def test_known_database_mapping(self):
        mapping = DATABASE_TO_ASSET["StarObjectDatabase.cpp"]
        assert mapping.asset_type == "object"
        assert mapping.extension == ".object"

    def test_families_in_priority_order(self):
        assert [f.name for f in PATTERN_FAMILIES] == [
            "typed-accessor",
            "optional-typed-accessor",
            "generic-optional",
            "converter-wrapped",
            "generic-accessor",
            "presence-check",
        ]


class TestInferLiteralType:
    @pytest.mark.parametrize(
        ("literal", "expected"),
        [
            ("true", "Bool"),
            ("false", "Bool"),
            ("JsonArray()", "Array"),
            ("{}", "Array"),
            ("JsonObject()", "Object"),
            ("JsonObject{}", "Object"),
            ("0.5", "Float"),
            ("-1.25f", "Float"),
            ("42", "Int"),
            ("-3", "Int"),
            ('"idle"', "String"),
            ("Vec2F()", None),
            ("someConstant", None),
        ],
    )
    def test_literal_shapes(self, literal, expected):
        assert infer_literal_type(literal) == expected


class TestPatternFamilies:
    """Each family is callable on its own."""

    def scan(self, family, text):
        return list(family(SourceText(text, "StarTest.cpp"), FieldLedger()))

    def test_typed_accessor_with_default(self):
        (field,) = self.scan(scan_typed_accessors, 'c.getFloat("speed", 1.5f)')
        assert (field.field_name, field.type, field.default_value, field.optional) == (
            "speed", "Float", "1.5f", True,
        )

    def test_typed_accessor_without_default_is_required(self):
        (field,) = self.scan(scan_typed_accessors, 'c.getString("name")')
        assert field.optional is False
        assert field.default_value is None

    def test_typed_accessor_nested_default(self):
        (field,) = self.scan(scan_typed_accessors, 'c.getArray("list", JsonArray())')
        assert field.default_value == "JsonArray()"

    def test_optional_typed_accessor(self):
        (field,) = self.scan(scan_optional_typed_accessors, 'c.optUInt("stack")')
        assert (field.type, field.optional, field.default_value) == ("UInt", True, None)

    def test_generic_optional_uses_nearby_converter(self):
        (field,) = self.scan(scan_generic_optionals, 'jsonToRectF(c.opt("bounds").value())')
        assert field.type == "RectF"
        assert field.optional is True

    def test_generic_optional_defaults_to_json(self):
        (field,) = self.scan(scan_generic_optionals, 'auto x = c.opt("whatever");')
        assert field.type == "Json"

    def test_converter_wrapped(self):
        (field,) = self.scan(scan_converter_wrapped, 'jsonToPolyF(c.get("collision"))')
        assert (field.type, field.optional) == ("PolyF", False)

    def test_generic_accessor_trailing_coercion(self):
        (field,) = self.scan(scan_generic_accessors, 'c.get("period", 0.3).toFloat()')
        assert field.type == "Float"

    def test_generic_accessor_coercion_without_default(self):
        (field,) = self.scan(scan_generic_accessors, 'c.get("count").toInt()')
        assert (field.type, field.optional) == ("Int", False)

    def test_converter_beats_coercion(self):
        text = 'auto v = jsonToVec2I(c.get("size")); other.get("x").toString();'
        fields = by_name(self.scan(scan_generic_accessors, text))
        assert ("size", "Vec2I") in fields

    def test_generic_accessor_literal_default(self):
        (field,) = self.scan(scan_generic_accessors, 'c.get("enabled", false)')
        assert (field.type, field.default_value, field.optional) == ("Bool", "false", True)

    def test_generic_accessor_unknown(self):
        (field,) = self.scan(scan_generic_accessors, 'c.get("thing", someDefault)')
        assert field.type == "Json"

    def test_presence_check_skips_seen_names(self):
        source = SourceText('c.contains("a"); c.contains("b");', "StarTest.cpp")
        ledger = FieldLedger()
        ledger.add(next(scan_typed_accessors(SourceText('c.getInt("a")', "StarTest.cpp"), ledger)))

        found = [f.field_name for f in scan_presence_checks(source, ledger)]
        assert found == ["b"]


class TestExtractFields:
    """Test the full extractor over one file."""

    def test_object_database(self):
        """Statement clipping keeps each converter on its own line."""
        fields = by_name(
            extract_fields(OBJECT_DATABASE, "StarObjectDatabase.cpp", policy=STATEMENT_CLIPPED)
        )

        assert fields[("objectName", "String")].optional is False
        assert fields[("health", "Float")].default_value == "1.0f"
        assert fields[("rarity", "String")].default_value == '"Common"'
        assert fields[("category", "String")].optional is True
        assert fields[("printable", "Bool")].default_value == "true"
        assert fields[("imagePosition", "Vec2F")].optional is False
        assert fields[("lightColor", "Color")].optional is True
        assert fields[("flickerPeriod", "Float")].default_value == "0.3"
        assert fields[("scripts", "Array")].default_value == "JsonArray()"
        assert ("colonyTags", "Array") in fields
        assert fields[("breakDropOptions", "Json")].pattern == "presence-check"

    def test_presence_check_does_not_duplicate_known_names(self):
        fields = extract_fields(OBJECT_DATABASE, "StarObjectDatabase.cpp")
        assert [f.field_name for f in fields].count("health") == 1

    def test_converter_wrapped_get_is_not_reported_twice(self):
        """The generic accessor family resolves the same converter type, so (name, type) dedups."""
        fields = extract_fields('x = jsonToVec2F(c.get("offset"));', "StarTest.cpp")
        assert [(f.field_name, f.type, f.pattern) for f in fields] == [
            ("offset", "Vec2F", "converter-wrapped")
        ]

    def test_same_name_different_types_both_survive(self):
        text = 'a = c.getString("mode");\nb = c.get("mode", 3);'
        fields = by_name(extract_fields(text, "StarTest.cpp"))
        assert ("mode", "String") in fields
        assert ("mode", "Int") in fields

    def test_line_numbers_and_context(self):
        fields = by_name(extract_fields(OBJECT_DATABASE, "StarObjectDatabase.cpp"))
        health = fields[("health", "Float")]

        assert health.line_number == 4
        assert health.context == (
            'config->name = configJson.getString("objectName"); | '
            'config->health = configJson.getFloat("health", 1.0f);'
        )
        assert health.source_file == "StarObjectDatabase.cpp"

    def test_first_line_context_has_no_previous_line(self):
        (field,) = extract_fields('c.getInt("a");', "StarTest.cpp")
        assert field.line_number == 1
        assert field.context == 'c.getInt("a");'

    def test_no_matches(self):
        assert extract_fields("int main() { return 0; }", "StarTest.cpp") == []

    def test_garbage_input(self):
        assert extract_fields('.get(\n"unterminated', "StarTest.cpp") == []


class TestConverterWindow:
    """Converter search radius around untyped accessors."""

    SPLIT_STATEMENTS = 'auto v = config.get("offset");\nm_offset = jsonToVec2F(v);\n'
    NEIGHBOURS = 'a = jsonToColor(c.get("tint"));\nb = c.get("period", 0.3);\n'

    def test_fixed_radius_reaches_next_statement(self):
        fields = extract_fields(self.SPLIT_STATEMENTS, "StarTest.cpp")
        assert [(f.field_name, f.type) for f in fields] == [("offset", "Vec2F")]

    def test_fixed_radius_sees_neighbouring_converter(self):
        fields = by_name(extract_fields(self.NEIGHBOURS, "StarTest.cpp"))
        assert ("tint", "Color") in fields
        assert ("period", "Color") in fields

    def test_clipping_stops_at_statement_end(self):
        fields = extract_fields(self.SPLIT_STATEMENTS, "StarTest.cpp", policy=STATEMENT_CLIPPED)
        assert [(f.field_name, f.type) for f in fields] == [("offset", "Json")]

    def test_clipping_falls_back_to_literal(self):
        fields = by_name(extract_fields(self.NEIGHBOURS, "StarTest.cpp", policy=STATEMENT_CLIPPED))
        assert fields[("period", "Float")].default_value == "0.3"

    def test_window_methods(self):
        text = "a; b = c.get(\"x\"); d"
        match = re.search(r'c\.get\("x"\)', text)
        assert SourceText(text, "StarTest.cpp").converter_window(match, 100, 100) == text
        clipped = SourceText(text, "StarTest.cpp", clip_statements=True)
        assert clipped.converter_window(match, 100, 100) == ' b = c.get("x");'


class TestCollectSourceFields:
    """Test directory scanning."""

    def test_scans_database_files(self, tmp_path):
        (tmp_path / "StarObjectDatabase.cpp").write_text(OBJECT_DATABASE, encoding="utf-8")
        (tmp_path / "StarWidgetDatabase.cpp").write_text('c.getInt("w");', encoding="utf-8")
        (tmp_path / "StarObject.cpp").write_text('c.getInt("ignored");', encoding="utf-8")
        (tmp_path / "OtherDatabase.cpp").write_text('c.getInt("ignored");', encoding="utf-8")

        results = {r.file_name: r for r in collect_source_fields(tmp_path)}

        assert set(results) == {"StarObjectDatabase.cpp", "StarWidgetDatabase.cpp"}
        assert results["StarObjectDatabase.cpp"].mapped is True
        assert results["StarObjectDatabase.cpp"].asset_type == "object"
        assert results["StarWidgetDatabase.cpp"].mapped is False
        assert results["StarWidgetDatabase.cpp"].asset_type == "widget"

    def test_missing_directory(self, tmp_path):
        assert collect_source_fields(tmp_path / "nope") == []
