"""Recipe and extraction-table parsing for Frackin' Universe data.

Three independent sub-extractors:

- ``.recipe`` crafting recipes anywhere under the mod root
- centrifuge/sifter/rock-crusher tables (rarity tiers -> probability)
- extraction lab style configs (per-tier output counts)
"""

from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Generic, TypeVar

from starbound_kb.ingestion.discovery import find_files
from starbound_kb.ingestion.sanitizer import read_json_file
from starbound_kb.logging import get_logger
from starbound_kb.schemas.policy import ExtractionPolicy
from starbound_kb.schemas.records import (
    CountedItem,
    ExtractionOutput,
    ParsedExtraction,
    ParsedRecipe,
)

logger = get_logger(__name__)

T = TypeVar("T")

CENTRIFUGE_CONFIG = Path("objects/generic/centrifuge_recipes.config")

CENTRIFUGE_GROUPS: MappingProxyType[str, str] = MappingProxyType(
    {
        "itemMapFarm": "centrifuge (farm)",
        "itemMapBees": "centrifuge (bees)",
        "itemMapLiquids": "centrifuge (liquids)",
        "itemMapPowder": "sifter (powder)",
        "itemMapRocks": "rock crusher",
        "itemMapIsotopes": "centrifuge (isotopes)",
    }
)

# Lab config file -> method label; every file is optional
EXTRACTION_CONFIGS: MappingProxyType[str, str] = MappingProxyType(
    {
        "objects/generic/extractionlab_recipes.config": "extraction lab",
        "objects/generic/extractionlabmadness_recipes.config": "psionic amplifier",
        "objects/generic/xenostation_recipes.config": "xeno research lab",
        "objects/power/fu_liquidmixer/fu_liquidmixer_recipes.config": "liquid mixer",
        "objects/generic/honeyjarrer_recipes.config": "honey extractor",
    }
)

LAB_RECIPE_LIST_KEY = "recipes"
ALL_TIERS = "all"
LAB_PROBABILITY = 1.0


@dataclass
class Collected(Generic[T]):
    """Records from one sub-extractor plus what it skipped."""

    records: list[T] = field(default_factory=list)
    scanned: int = 0
    skipped: int = 0
    notices: list[str] = field(default_factory=list)

    def notice(self, message: str) -> None:
        logger.info(message)
        self.notices.append(message)


def as_count(value: Any, default: int | float | None = None) -> int | float | None:
    """A JSON number usable as a count, or None (booleans are not counts)."""
    if isinstance(value, bool) or not isinstance(value, int | float):
        return default
    return value


# === Crafting recipes ===


def parse_recipe(data: Any, source_file: str | None = None) -> ParsedRecipe | None:
    """
    Parse one ``.recipe`` document.

    Args:
        data: Parsed JSON
        source_file: Path recorded on the recipe

    Returns:
        ParsedRecipe, or None if the output item or input list is unusable
    """
    if not isinstance(data, dict):
        return None

    output = data.get("output")
    inputs = data.get("input")
    if not isinstance(output, dict) or not isinstance(inputs, list):
        return None

    output_item = output.get("item")
    if not isinstance(output_item, str) or not output_item:
        return None

    parsed_inputs = [
        CountedItem(item=entry["item"], count=as_count(entry.get("count"), 1))
        for entry in inputs
        if isinstance(entry, dict) and isinstance(entry.get("item"), str)
    ]

    raw_groups = data.get("groups")
    groups = [g for g in raw_groups if isinstance(g, str)] if isinstance(raw_groups, list) else []
    duration = as_count(data.get("duration"))

    return ParsedRecipe(
        output_item=output_item,
        output_count=as_count(output.get("count"), 1),
        station=groups[0] if groups else None,
        groups=groups,
        inputs=parsed_inputs,
        duration=float(duration) if duration is not None else None,
        source_file=source_file,
    )


def collect_recipes(root: Path) -> Collected[ParsedRecipe]:
    """Parse every ``.recipe`` file under root, skipping unusable ones."""
    result: Collected[ParsedRecipe] = Collected()

    for path in find_files(root, {".recipe"}):
        result.scanned += 1
        recipe = parse_recipe(read_json_file(path), str(path.relative_to(root)))
        if recipe is None:
            result.skipped += 1
            logger.debug("Skipping unusable recipe %s", path, extra={"source_file": str(path)})
            continue
        result.records.append(recipe)

    logger.info(
        "Parsed %d recipes (%d skipped)", len(result.records), result.skipped,
        extra={"entity_type": "recipe"},
    )
    return result


# === Centrifuge-style rarity tables ===


def parse_centrifuge_table(
    data: Any,
    policy: ExtractionPolicy | None = None,
) -> list[ParsedExtraction]:
    """
    Parse a centrifuge config: group key -> input item -> output item -> [rarity, count].

    Only the keys in CENTRIFUGE_GROUPS are read. Inputs left with no valid
    outputs are dropped.
    """
    policy = policy or ExtractionPolicy()
    if not isinstance(data, dict):
        return []

    extractions: list[ParsedExtraction] = []
    for group_key, method in CENTRIFUGE_GROUPS.items():
        input_map = data.get(group_key)
        if not isinstance(input_map, dict):
            continue

        for input_item, output_map in input_map.items():
            if not isinstance(output_map, dict):
                continue

            outputs: list[ExtractionOutput] = []
            for output_item, rarity_and_count in output_map.items():
                if not isinstance(rarity_and_count, list) or len(rarity_and_count) < 2:
                    continue
                count = as_count(rarity_and_count[1])
                if count is None:
                    continue
                tier = str(rarity_and_count[0])
                outputs.append(
                    ExtractionOutput(
                        item=output_item,
                        count=count,
                        probability=policy.probability_for(tier),
                        tier=tier,
                    )
                )

            if outputs:
                extractions.append(
                    ParsedExtraction(input_item=input_item, method=method, outputs=outputs)
                )

    return extractions


def collect_centrifuge_recipes(
    root: Path,
    policy: ExtractionPolicy | None = None,
) -> Collected[ParsedExtraction]:
    result: Collected[ParsedExtraction] = Collected()
    config_path = root / CENTRIFUGE_CONFIG

    if not config_path.is_file():
        result.notice(f"{config_path.name} not found, skipping.")
        return result

    result.scanned = 1
    data = read_json_file(config_path)
    if data is None:
        result.skipped = 1
        result.notice(f"Failed to parse {config_path.name}, skipping.")
        return result

    result.records = parse_centrifuge_table(data, policy)
    logger.info(
        "Parsed %d centrifuge entries", len(result.records), extra={"entity_type": "extraction"}
    )
    return result


# === Extraction lab style configs ===


def _lab_outputs(outputs: dict[str, Any], lab_tiers: list[str]) -> list[ExtractionOutput]:
    parsed: list[ExtractionOutput] = []
    for output_item, value in outputs.items():
        count = as_count(value)
        if count is not None:
            parsed.append(ExtractionOutput(item=output_item, count=count, probability=LAB_PROBABILITY, tier=ALL_TIERS))
            continue

        if not isinstance(value, list):
            continue
        counts = [as_count(v) for v in value]
        if len(counts) == 1 and counts[0] is not None:
            parsed.append(ExtractionOutput(item=output_item, count=counts[0], probability=LAB_PROBABILITY, tier=ALL_TIERS))
        elif len(counts) >= len(lab_tiers):
            for tier, tier_count in zip(lab_tiers, counts):
                if tier_count is None:
                    continue
                parsed.append(ExtractionOutput(item=output_item, count=tier_count, probability=LAB_PROBABILITY, tier=tier))

    return parsed


def parse_lab_recipes(
    data: Any,
    method: str,
    policy: ExtractionPolicy | None = None,
) -> list[ParsedExtraction] | None:
    """
    Parse an extraction lab style config.

    The document is either a list of recipes or an object holding that list
    under ``recipes``. Each recipe maps ``inputs`` (item -> count) against
    ``outputs`` (item -> count, ``[count]``, or one count per lab tier); every
    input item becomes its own record.

    Returns:
        Parsed records, or None when the document has neither shape
    """
    policy = policy or ExtractionPolicy()

    recipes = data.get(LAB_RECIPE_LIST_KEY) if isinstance(data, dict) else data
    if not isinstance(recipes, list):
        return None

    extractions: list[ParsedExtraction] = []
    for recipe in recipes:
        if not isinstance(recipe, dict):
            continue
        inputs = recipe.get("inputs")
        outputs = recipe.get("outputs")
        if not isinstance(inputs, dict) or not isinstance(outputs, dict):
            continue

        parsed_outputs = _lab_outputs(outputs, policy.lab_tiers)
        if not parsed_outputs:
            continue

        for input_item, raw_count in inputs.items():
            input_count = as_count(raw_count)
            if input_count is None:
                continue
            extractions.append(
                ParsedExtraction(
                    input_item=input_item,
                    input_count=input_count,
                    method=method,
                    outputs=[o.model_copy() for o in parsed_outputs],
                    notes=f"Input count: {input_count}",
                )
            )

    return extractions


def collect_lab_recipes(
    root: Path,
    policy: ExtractionPolicy | None = None,
) -> Collected[ParsedExtraction]:
    """Parse each lab config in EXTRACTION_CONFIGS that exists under root."""
    result: Collected[ParsedExtraction] = Collected()

    for relative, method in EXTRACTION_CONFIGS.items():
        config_path = root / relative
        if not config_path.is_file():
            result.notice(f"{config_path.name} not found, skipping.")
            continue

        result.scanned += 1
        data = read_json_file(config_path)
        if data is None:
            result.skipped += 1
            result.notice(f"Failed to parse {config_path.name}, skipping.")
            continue

        extractions = parse_lab_recipes(data, method, policy)
        if extractions is None:
            result.skipped += 1
            result.notice(f"Unexpected format in {config_path.name}, skipping.")
            continue

        logger.debug("%s: %d records", config_path.name, len(extractions), extra={"source_file": relative})
        result.records.extend(extractions)

    logger.info(
        "Parsed %d lab extraction records", len(result.records), extra={"entity_type": "extraction"}
    )
    return result
