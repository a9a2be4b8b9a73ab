"""Asset schema recovery from OpenStarbound's ``Star*Database.cpp`` sources.

The engine reads asset JSON through a handful of accessor shapes
(``.getString("name", default)``, ``.optFloat("name")``,
``jsonToVec2F(config.get("name"))``, ``.contains("name")``...). Each shape is
a pattern family; families run in a fixed priority order and the first
family to report a ``(field, type)`` pair wins. This is schema recovery, not
verification: anything the patterns do not recognize is silently missed.
"""

import bisect
import re
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import NamedTuple

from starbound_kb.ingestion.discovery import find_files, read_text
from starbound_kb.logging import get_logger
from starbound_kb.schemas.policy import ExtractionPolicy
from starbound_kb.schemas.records import ExtractedField

logger = get_logger(__name__)

OPAQUE_TYPE = "Json"

# Radius scanned for converter names around untyped accessors
OPT_WINDOW = 100
GET_WINDOW_BEFORE = 150
GET_WINDOW_AFTER = 50
COERCION_WINDOW = 30


class AssetMapping(NamedTuple):
    asset_type: str
    extension: str
    description: str


DATABASE_TO_ASSET: MappingProxyType[str, AssetMapping] = MappingProxyType(
    {
        "StarObjectDatabase.cpp": AssetMapping("object", ".object", "Placeable objects: furniture, crafting stations, wired objects, containers."),
        "StarItemDatabase.cpp": AssetMapping("item", ".item", "Generic items: crafting materials, consumables, quest items. Also handles recipe files."),
        "StarProjectileDatabase.cpp": AssetMapping("projectile", ".projectile", "Projectile definitions: bullets, rockets, energy bolts, thrown items."),
        "StarMonsterDatabase.cpp": AssetMapping("monster", ".monstertype", "Monster type definitions: behavior, stats, drops, animations."),
        "StarNpcDatabase.cpp": AssetMapping("npc", ".npctype", "NPC type definitions: scripts, items, behavior, spawning."),
        "StarBiomeDatabase.cpp": AssetMapping("biome", ".biome", "Biome definitions: terrain generation, flora, fauna, weather, music."),
        "StarMaterialDatabase.cpp": AssetMapping("material", ".material", "Material/block definitions: collision, health, rendering, interactions."),
        "StarLiquidsDatabase.cpp": AssetMapping("liquid", ".liquid", "Liquid definitions: color, physics, status effects, interactions."),
        "StarStatusEffectDatabase.cpp": AssetMapping("statuseffect", ".statuseffect", "Status effect definitions: buffs, debuffs, environmental effects."),
        "StarTechDatabase.cpp": AssetMapping("tech", ".tech", "Tech definitions: player abilities like double jump, dash, sphere."),
        "StarCodexDatabase.cpp": AssetMapping("codex", ".codex", "Codex entries: lore books, data logs, blueprints."),
        "StarVehicleDatabase.cpp": AssetMapping("vehicle", ".vehicle", "Vehicle definitions: hoverbikes, boats, mechs."),
        "StarStagehandDatabase.cpp": AssetMapping("stagehand", ".stagehand", "Stagehand definitions: invisible world entities that run scripts."),
        "StarTenantDatabase.cpp": AssetMapping("tenant", ".tenant", "Tenant/colony deed definitions: which NPCs move in based on furniture tags."),
        "StarQuestTemplateDatabase.cpp": AssetMapping("quest", ".questtemplate", "Quest template definitions: objectives, rewards, dialog."),
        "StarDamageDatabase.cpp": AssetMapping("damagetype", ".damage", "Damage type definitions: damage kinds, resistances, knockback."),
        "StarParticleDatabase.cpp": AssetMapping("particle", ".particle", "Particle effect definitions: visual effects, trails, explosions."),
        "StarPlantDatabase.cpp": AssetMapping("plant", ".modularstem", "Plant definitions: trees, saplings, growth stages."),
        "StarSpeciesDatabase.cpp": AssetMapping("species", ".species", "Species definitions: humanoid config, overrides."),
        "StarDanceDatabase.cpp": AssetMapping("dance", ".dance", "Dance emote definitions."),
        "StarEffectSourceDatabase.cpp": AssetMapping("effectsource", ".effectsource", "Effect source definitions: named effect emitters."),
        "StarSpawnTypeDatabase.cpp": AssetMapping("spawntype", ".spawntypes", "Spawn type definitions: monster/NPC spawn profiles for biomes."),
        "StarRadioMessageDatabase.cpp": AssetMapping("radiomessage", ".radiomessages", "Radio message definitions: SAIL communications, popup messages."),
        "StarCollectionDatabase.cpp": AssetMapping("collection", ".collection", "Collection definitions: in-game collectible tracking."),
        "StarTerrainDatabase.cpp": AssetMapping("terrain", ".terrain", "Terrain generation selector definitions."),
        "StarAiDatabase.cpp": AssetMapping("ai", ".aimission", "AI mission definitions: SAIL AI interface missions."),
        "StarBehaviorDatabase.cpp": AssetMapping("behavior", ".behavior", "Behavior tree definitions: NPC/monster AI behavior trees."),
        "StarStatisticsDatabase.cpp": AssetMapping("statistics", ".event", "Statistics/achievement event definitions."),
        "StarTilesetDatabase.cpp": AssetMapping("tileset", ".tileset", "Tileset definitions for dungeon/structure generation."),
    }
)

GETTER_TYPE_MAP: MappingProxyType[str, str] = MappingProxyType(
    {
        "String": "String",
        "Bool": "Bool",
        "Float": "Float",
        "Double": "Float",
        "Int": "Int",
        "UInt": "UInt",
        "Array": "Array",
        "Object": "Object",
    }
)

CONVERTER_TYPE_MAP: MappingProxyType[str, str] = MappingProxyType(
    {
        "jsonToVec2F": "Vec2F",
        "jsonToVec2I": "Vec2I",
        "jsonToVec2U": "Vec2U",
        "jsonToVec3B": "Vec3B",
        "jsonToVec4B": "Vec4B",
        "jsonToColor": "Color",
        "jsonToRectF": "RectF",
        "jsonToPolyF": "PolyF",
        "jsonToStringList": "String[]",
        "jsonToStringSet": "StringSet",
        "jsonToWeightedPool": "WeightedPool",
    }
)

_KINDS = "|".join(GETTER_TYPE_MAP)
_CONVERTERS = "|".join(CONVERTER_TYPE_MAP)
# Default argument, allowing one level of nested parens: JsonArray(), Vec2F(0, 0)
_DEFAULT = r"((?:[^()]|\([^()]*\))*)"

TYPED_ACCESSOR = re.compile(rf'\.get({_KINDS})\s*\(\s*"([^"]+)"(?:\s*,\s*{_DEFAULT})?\)')
OPTIONAL_TYPED_ACCESSOR = re.compile(rf'\.opt({_KINDS})\s*\(\s*"([^"]+)"\s*\)')
GENERIC_OPTIONAL = re.compile(r'\.opt\s*\(\s*"([^"]+)"\s*\)')
CONVERTER_WRAPPED = re.compile(rf'({_CONVERTERS})\s*\([^)]*\.get\w*\s*\(\s*"([^"]+)"')
GENERIC_ACCESSOR = re.compile(rf'\.get\s*\(\s*"([^"]+)"(?:\s*,\s*{_DEFAULT})?\)')
PRESENCE_CHECK = re.compile(r'\.contains\s*\(\s*"([^"]+)"\s*\)')
TRAILING_COERCION = re.compile(rf"^\s*\)?\s*\.\s*to({_KINDS})\s*\(")

FLOAT_LITERAL = re.compile(r"^-?\d+\.\d+f?$")
INT_LITERAL = re.compile(r"^-?\d+$")


class SourceText:
    """Source text with line lookup for match offsets."""

    def __init__(self, text: str, source_file: str, clip_statements: bool = False):
        self.text = text
        self.source_file = source_file
        self.clip_statements = clip_statements
        self.lines = text.split("\n")
        self._line_starts = [0] + [m.end() for m in re.finditer("\n", text)]

    def line_number(self, index: int) -> int:
        """1-based line number of a character offset."""
        return bisect.bisect_right(self._line_starts, index)

    def context(self, index: int) -> str:
        """The matched line and the line before it, trimmed and joined."""
        line_number = self.line_number(index)
        start = max(0, line_number - 2)
        return " | ".join(line.strip() for line in self.lines[start:line_number])

    def window(self, start: int, end: int) -> str:
        return self.text[max(0, start) : end]

    def converter_window(self, match: re.Match[str], before: int, after: int) -> str:
        """Fixed radius around a match, or its statement when clipping is on."""
        if self.clip_statements:
            return self.statement_window(match, before, after)
        return self.window(match.start() - before, match.end() + after)

    def statement_window(self, match: re.Match[str], before: int, after: int) -> str:
        """Text within a radius of a match, clipped to the statement holding it."""
        lo = max(0, match.start() - before)
        head = self.text[lo : match.start()]
        cut = max(head.rfind(";"), head.rfind("{"), head.rfind("}"))
        if cut != -1:
            head = head[cut + 1 :]

        tail = self.text[match.end() : match.end() + after]
        cut = tail.find(";")
        if cut != -1:
            tail = tail[: cut + 1]

        return head + match.group(0) + tail

    def candidate(
        self,
        match: re.Match[str],
        pattern: str,
        field_name: str,
        type_name: str,
        default_value: str | None = None,
        optional: bool = False,
    ) -> ExtractedField:
        return ExtractedField(
            field_name=field_name,
            type=type_name,
            default_value=default_value,
            optional=optional,
            source_file=self.source_file,
            line_number=self.line_number(match.start()),
            context=self.context(match.start()),
            pattern=pattern,
        )


@dataclass
class FieldLedger:
    """Fields accepted so far for one file."""

    fields: list[ExtractedField] = field(default_factory=list)
    keys: set[tuple[str, str]] = field(default_factory=set)
    names: set[str] = field(default_factory=set)

    def add(self, candidate: ExtractedField) -> bool:
        key = (candidate.field_name, candidate.type)
        if key in self.keys:
            return False
        self.keys.add(key)
        self.names.add(candidate.field_name)
        self.fields.append(candidate)
        return True


def _clean_default(raw: str | None) -> str | None:
    if raw is None:
        return None
    return raw.strip() or None


def converter_type_near(window: str) -> str | None:
    """Semantic type of the first known converter named in a text window."""
    for converter, type_name in CONVERTER_TYPE_MAP.items():
        if converter in window:
            return type_name
    return None


def infer_literal_type(default_value: str) -> str | None:
    """Infer a type from the shape of a default expression."""
    value = default_value.strip()
    if value in ("true", "false"):
        return "Bool"
    if value in ("JsonArray()", "JsonArray{}", "{}"):
        return "Array"
    if value in ("JsonObject()", "JsonObject{}"):
        return "Object"
    if FLOAT_LITERAL.match(value):
        return "Float"
    if INT_LITERAL.match(value):
        return "Int"
    if value.startswith('"'):
        return "String"
    return None


# === Pattern families, in priority order ===


def scan_typed_accessors(source: SourceText, ledger: FieldLedger) -> Iterator[ExtractedField]:
    """``.getFloat("speed", 1.0)``: typed; a default makes the field optional."""
    for match in TYPED_ACCESSOR.finditer(source.text):
        kind, name, raw_default = match.groups()
        default = _clean_default(raw_default)
        yield source.candidate(
            match, "typed-accessor", name, GETTER_TYPE_MAP[kind], default, optional=default is not None
        )


def scan_optional_typed_accessors(
    source: SourceText, ledger: FieldLedger
) -> Iterator[ExtractedField]:
    """``.optString("name")``: typed, always optional."""
    for match in OPTIONAL_TYPED_ACCESSOR.finditer(source.text):
        kind, name = match.groups()
        yield source.candidate(match, "optional-typed-accessor", name, GETTER_TYPE_MAP[kind], optional=True)


def scan_generic_optionals(source: SourceText, ledger: FieldLedger) -> Iterator[ExtractedField]:
    """``.opt("name")``: type from a nearby converter, else opaque Json."""
    for match in GENERIC_OPTIONAL.finditer(source.text):
        window = source.converter_window(match, OPT_WINDOW, OPT_WINDOW)
        type_name = converter_type_near(window) or OPAQUE_TYPE
        yield source.candidate(match, "generic-optional", match.group(1), type_name, optional=True)


def scan_converter_wrapped(source: SourceText, ledger: FieldLedger) -> Iterator[ExtractedField]:
    """``jsonToVec2F(config.get("offset"))``: converter's type, required."""
    for match in CONVERTER_WRAPPED.finditer(source.text):
        converter, name = match.groups()
        yield source.candidate(match, "converter-wrapped", name, CONVERTER_TYPE_MAP[converter])


def scan_generic_accessors(source: SourceText, ledger: FieldLedger) -> Iterator[ExtractedField]:
    """
    ``.get("name")`` / ``.get("name", default)``.

    Type resolution, first hit wins: a converter named nearby, a trailing
    ``.toX()`` coercion, then the shape of the default literal.
    """
    for match in GENERIC_ACCESSOR.finditer(source.text):
        name, raw_default = match.groups()
        default = _clean_default(raw_default)

        window = source.converter_window(match, GET_WINDOW_BEFORE, GET_WINDOW_AFTER)
        type_name = converter_type_near(window)

        if type_name is None:
            trailing = source.window(match.end(), match.end() + COERCION_WINDOW)
            coercion = TRAILING_COERCION.match(trailing)
            if coercion:
                type_name = GETTER_TYPE_MAP[coercion.group(1)]

        if type_name is None and default is not None:
            type_name = infer_literal_type(default)

        yield source.candidate(
            match,
            "generic-accessor",
            name,
            type_name or OPAQUE_TYPE,
            default,
            optional=default is not None,
        )


def scan_presence_checks(source: SourceText, ledger: FieldLedger) -> Iterator[ExtractedField]:
    """``.contains("name")`` for a name nothing else found: present, untyped, optional."""
    for match in PRESENCE_CHECK.finditer(source.text):
        name = match.group(1)
        if name in ledger.names:
            continue
        yield source.candidate(match, "presence-check", name, OPAQUE_TYPE, optional=True)


@dataclass(frozen=True)
class FieldPattern:
    """A named pattern family."""

    name: str
    scan: Callable[[SourceText, FieldLedger], Iterator[ExtractedField]]


PATTERN_FAMILIES: tuple[FieldPattern, ...] = (
    FieldPattern("typed-accessor", scan_typed_accessors),
    FieldPattern("optional-typed-accessor", scan_optional_typed_accessors),
    FieldPattern("generic-optional", scan_generic_optionals),
    FieldPattern("converter-wrapped", scan_converter_wrapped),
    FieldPattern("generic-accessor", scan_generic_accessors),
    FieldPattern("presence-check", scan_presence_checks),
)


def extract_fields(
    text: str,
    source_file: str,
    families: tuple[FieldPattern, ...] = PATTERN_FAMILIES,
    policy: ExtractionPolicy | None = None,
) -> list[ExtractedField]:
    """
    Run the pattern families over one source file.

    Args:
        text: C++ source text
        source_file: File name recorded on each field
        families: Pattern families in priority order
        policy: Extraction policy (converter window clipping)

    Returns:
        Fields deduplicated by (name, type), in discovery order
    """
    policy = policy or ExtractionPolicy()
    source = SourceText(text, source_file, clip_statements=policy.clip_converter_window)
    ledger = FieldLedger()

    for family in families:
        for candidate in family.scan(source, ledger):
            ledger.add(candidate)

    return ledger.fields


@dataclass
class SourceFieldFile:
    """Fields recovered from one ``Star*Database.cpp`` file."""

    file_name: str
    asset_type: str
    extension: str
    description: str
    mapped: bool
    fields: list[ExtractedField] = field(default_factory=list)


def asset_mapping_for(file_name: str) -> AssetMapping | None:
    return DATABASE_TO_ASSET.get(file_name)


def collect_source_fields(
    game_source_dir: Path,
    policy: ExtractionPolicy | None = None,
) -> list[SourceFieldFile]:
    """
    Extract fields from every ``Star*Database.cpp`` in a directory.

    Files missing from DATABASE_TO_ASSET are still scanned for the report,
    flagged ``mapped=False``, and never written.
    """
    results: list[SourceFieldFile] = []

    paths = [
        p
        for p in find_files(game_source_dir, {"Database.cpp"}, recursive=False)
        if p.name.startswith("Star")
    ]

    for path in paths:
        text = read_text(path)
        if text is None:
            continue

        mapping = asset_mapping_for(path.name)
        if mapping is None:
            fallback = path.name.removeprefix("Star").removesuffix("Database.cpp").lower()
            mapping = AssetMapping(fallback, "unknown", "")

        fields = extract_fields(text, path.name, policy=policy)
        results.append(
            SourceFieldFile(
                file_name=path.name,
                asset_type=mapping.asset_type,
                extension=mapping.extension,
                description=mapping.description,
                mapped=path.name in DATABASE_TO_ASSET,
                fields=fields,
            )
        )
        logger.debug("%s: %d fields", path.name, len(fields), extra={"source_file": path.name})

    logger.info(
        "Extracted %d fields from %d database files",
        sum(len(r.fields) for r in results),
        len(results),
        extra={"entity_type": "asset_field"},
    )
    return results
