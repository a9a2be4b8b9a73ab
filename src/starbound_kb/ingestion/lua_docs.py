"""Lua API reference parser for OpenStarbound's ``doc/lua`` Markdown files.

Function entries are level 3 or 4 headings of the form::

    #### `EntityId` world.spawnItem(`String` itemName, `Vec2F` position, [`Int` count])

followed by free-text description up to the next signature heading or a
``---`` rule. Consecutive headings for the same function are overloads and
get merged into one entry.
"""

import re
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType

from starbound_kb.ingestion.discovery import find_files, read_text
from starbound_kb.ingestion.sources import OPENSTARBOUND, VANILLA, SourceInfo
from starbound_kb.logging import get_logger
from starbound_kb.schemas.policy import ExtractionPolicy
from starbound_kb.schemas.records import ParsedFunction, ParsedParam, Provenance

logger = get_logger(__name__)

VOID_RETURN = "void"
OVERLOAD_LABEL = "**Overload:**"
HORIZONTAL_RULE = "---"
EXTENSION_DOC_DIR = "openstarbound"

CANDIDATE_HEADING = re.compile(r"^#{3,4}(?!#)")
SIGNATURE_WITH_RETURN = re.compile(r"^#{3,4}\s+`([^`]+)`\s+(\w+)\.(\w+)\(([^)]*)\)\s*$")
SIGNATURE_NO_RETURN = re.compile(r"^#{3,4}\s+(\w+)\.(\w+)\(([^)]*)\)\s*$")
PARAM_PATTERN = re.compile(r"(\[?)\s*`([^`]+)`\s+(\w+)\s*\]?")
BARE_PARAM_PATTERN = re.compile(r"^(\[?)\s*([^\s\[\]`]+)\s+(\w+)\s*\]?$")
FENCED_BLOCK = re.compile(r"```[\w+-]*[ \t]*\n(.*?)```", re.DOTALL)

# Which script contexts can reach each Lua table
TABLE_CONTEXTS: MappingProxyType[str, str] = MappingProxyType(
    {
        "world": "universal",
        "entity": "universal",
        "config": "universal",
        "animator": "universal",
        "message": "universal",
        "root": "universal",
        "utility": "universal",
        "physics": "universal",
        "player": "player",
        "activeItem": "activeitem",
        "activeitemanimation": "activeitem",
        "item": "activeitem,object",
        "monster": "monster",
        "npc": "npc",
        "object": "object",
        "objectanimator": "object",
        "projectile": "projectile",
        "stagehand": "stagehand",
        "statuscontroller": "player,npc,monster",
        "statuseffect": "statuseffect",
        "tech": "tech",
        "vehicle": "vehicle",
        "quest": "quest",
        "celestial": "universal",
        "commandprocessor": "universal",
        "containerpane": "pane",
        "localanimator": "deployable",
        "movementcontroller": "tech,vehicle",
        "actormovementcontroller": "player,npc,monster",
        "playercompanions": "player",
        "scriptedanimator": "deployable",
        "scriptpane": "pane",
        "updatablescript": "universal",
        "widget": "pane",
        # OpenStarbound extensions
        "assets": "universal",
        "camera": "universal",
        "chat": "universal",
        "clipboard": "pane",
        "effect": "statuseffect",
        "http": "universal",
        "input": "universal",
        "interface": "pane",
        "itemdrop": "itemdrop",
        "renderer": "universal",
        "songbook": "activeitem",
        "threads": "universal",
        "universe": "universal",
    }
)


@dataclass
class SignatureHeading:
    """The pieces of a matched signature heading."""

    return_type: str
    table_name: str
    function_name: str
    raw_params: str


@dataclass
class LuaDocSet:
    """Functions parsed from one documentation directory."""

    source: SourceInfo
    directory: Path
    functions: list[ParsedFunction] = field(default_factory=list)
    file_counts: dict[str, int] = field(default_factory=dict)


def context_for_table(table_name: str) -> str:
    """Script contexts for a Lua table, 'unknown' if unmapped."""
    return TABLE_CONTEXTS.get(table_name, "unknown")


def is_candidate_heading(line: str) -> bool:
    """A level 3/4 heading with a backtick and an opening paren."""
    return bool(CANDIDATE_HEADING.match(line)) and "`" in line and "(" in line


def parse_signature_line(line: str) -> SignatureHeading | None:
    """
    Match a signature heading.

    Args:
        line: A single Markdown line

    Returns:
        SignatureHeading, or None if the line is not a signature
    """
    match = SIGNATURE_WITH_RETURN.match(line)
    if match:
        return SignatureHeading(
            return_type=match.group(1),
            table_name=match.group(2),
            function_name=match.group(3),
            raw_params=match.group(4),
        )

    # Callbacks and hooks have no declared return type
    match = SIGNATURE_NO_RETURN.match(line)
    if match:
        return SignatureHeading(
            return_type=VOID_RETURN,
            table_name=match.group(1),
            function_name=match.group(2),
            raw_params=match.group(3),
        )

    return None


def parse_parameters(raw_params: str) -> list[ParsedParam]:
    """
    Parse the contents of a signature's parentheses.

    Each parameter is ``[``? type name ``]``?, brackets marking it optional.
    Types are normally backtick-quoted; lists written without backticks are
    parsed per comma-separated segment.
    """
    if not raw_params.strip():
        return []

    if "`" in raw_params:
        return [
            ParsedParam(name=m.group(3), type=m.group(2), optional=m.group(1) == "[")
            for m in PARAM_PATTERN.finditer(raw_params)
        ]

    params: list[ParsedParam] = []
    for segment in raw_params.split(","):
        match = BARE_PARAM_PATTERN.match(segment.strip())
        if match:
            params.append(
                ParsedParam(name=match.group(3), type=match.group(2), optional=match.group(1) == "[")
            )
    return params


def format_signature(table_name: str, function_name: str, params: list[ParsedParam]) -> str:
    """Canonical one-line signature, e.g. ``world.spawnItem(String itemName, [Int count])``."""
    rendered = ", ".join(
        f"[{p.type} {p.name}]" if p.optional else f"{p.type} {p.name}" for p in params
    )
    return f"{table_name}.{function_name}({rendered})"


def parse_markdown(text: str, source_file: str) -> list[ParsedFunction]:
    """
    Parse every signature entry in a Markdown document, without merging overloads.

    Args:
        text: Markdown content
        source_file: File name recorded as provenance

    Returns:
        Entries in document order
    """
    lines = text.split("\n")
    functions: list[ParsedFunction] = []

    i = 0
    while i < len(lines):
        line = lines[i]
        if not is_candidate_heading(line):
            i += 1
            continue

        heading = parse_signature_line(line)
        i += 1
        if heading is None:
            continue

        line_number = i  # 1-based number of the heading line

        description_lines: list[str] = []
        while i < len(lines):
            next_line = lines[i]
            if is_candidate_heading(next_line):
                break
            if next_line.strip() == HORIZONTAL_RULE:
                i += 1
                break
            description_lines.append(next_line)
            i += 1

        params = parse_parameters(heading.raw_params)
        functions.append(
            ParsedFunction(
                table_name=heading.table_name,
                function_name=heading.function_name,
                return_type=heading.return_type,
                parameters=params,
                signature=format_signature(heading.table_name, heading.function_name, params),
                description="\n".join(description_lines).strip(),
                provenance=[Provenance(source_file=source_file, line_number=line_number)],
            )
        )

    return functions


def merge_overloads(
    functions: list[ParsedFunction],
    policy: ExtractionPolicy | None = None,
) -> list[ParsedFunction]:
    """
    Fold each overload into the entry immediately before it.

    An entry is an overload when the previous entry has the same table and
    function name. Signatures are newline-joined and descriptions appended
    under an overload label. Whether the overload's parameters and return
    type become canonical is decided by ``policy.overload_wins`` (by default:
    strictly more parameters wins, as a proxy for the more complete form).
    """
    policy = policy or ExtractionPolicy()
    merged: list[ParsedFunction] = []

    for fn in functions:
        previous = merged[-1] if merged else None
        if (
            previous is None
            or previous.table_name != fn.table_name
            or previous.function_name != fn.function_name
        ):
            merged.append(fn.model_copy(deep=True))
            continue

        previous.signature += f"\n{fn.signature}"
        if fn.description:
            previous.description += f"\n\n{OVERLOAD_LABEL}\n{fn.description}"
        if policy.overload_wins(len(fn.parameters), len(previous.parameters)):
            previous.parameters = list(fn.parameters)
            previous.return_type = fn.return_type
        previous.provenance.extend(fn.provenance)

    return merged


def split_examples(description: str) -> tuple[str, list[str]]:
    """
    Pull fenced code blocks out of a description.

    Returns:
        (description without code blocks, code block bodies in order)
    """
    examples = [m.group(1).strip("\n") for m in FENCED_BLOCK.finditer(description)]
    cleaned = FENCED_BLOCK.sub("", description).strip()
    return cleaned, examples


def parse_markdown_file(
    path: Path,
    policy: ExtractionPolicy | None = None,
) -> list[ParsedFunction]:
    """Parse, merge overloads and split out examples for one file."""
    text = read_text(path)
    if text is None:
        return []

    functions = merge_overloads(parse_markdown(text, path.name), policy)
    for fn in functions:
        fn.description, fn.examples = split_examples(fn.description)
    return functions


def collect_lua_docs(
    directory: Path,
    source: SourceInfo,
    policy: ExtractionPolicy | None = None,
) -> LuaDocSet:
    """Parse every ``*.md`` file directly inside a directory."""
    doc_set = LuaDocSet(source=source, directory=directory)

    for path in find_files(directory, {".md"}, recursive=False):
        functions = parse_markdown_file(path, policy)
        if functions:
            doc_set.file_counts[path.name] = len(functions)
            doc_set.functions.extend(functions)

    logger.info(
        "Parsed %d functions from %s", len(doc_set.functions), directory,
        extra={"entity_type": "lua_function"},
    )
    return doc_set


def collect_lua_doc_sets(
    lua_doc_dir: Path,
    policy: ExtractionPolicy | None = None,
) -> list[LuaDocSet]:
    """
    Parse the base API docs and, when present, the OpenStarbound extension docs.

    Args:
        lua_doc_dir: The ``doc/lua`` directory of an OpenStarbound checkout
        policy: Extraction policy

    Returns:
        One LuaDocSet per documentation directory found
    """
    doc_sets = [collect_lua_docs(lua_doc_dir, VANILLA, policy)]

    extension_dir = lua_doc_dir / EXTENSION_DOC_DIR
    if extension_dir.is_dir():
        doc_sets.append(collect_lua_docs(extension_dir, OPENSTARBOUND, policy))
    else:
        logger.info("No %s/ extension docs under %s, skipping", EXTENSION_DOC_DIR, lua_doc_dir)

    return doc_sets
