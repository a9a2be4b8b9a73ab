"""Research tree extraction.

Research trees live in any ``.config`` file with a ``researchTree`` key::

    {
      "researchTree": {"fu_agriculture": {"node": {"price": [...], "children": [...], "unlocks": [...]}}},
      "strings": {"trees": {...}, "research": {"node": {"name": ..., "description": ...}}}
    }

Only ``children`` is authored. Prerequisites are derived in two passes:
first every node is established across all files, then the ``children``
lists are re-scanned and inverted.
"""

from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from starbound_kb.ingestion.discovery import find_files
from starbound_kb.ingestion.sanitizer import read_json_file
from starbound_kb.logging import get_logger
from starbound_kb.schemas.records import CountedItem, ResearchNode, node_key

logger = get_logger(__name__)

RESEARCH_MARKER = "researchTree"


@dataclass
class ResearchDocument:
    """A config file that declares research trees."""

    source_file: str
    trees: dict[str, Any]
    strings: dict[str, Any] = field(default_factory=dict)

    def tree_name(self, tree_id: str) -> str:
        names = self.strings.get("trees")
        if isinstance(names, dict) and isinstance(names.get(tree_id), str):
            return names[tree_id]
        return tree_id

    def node_strings(self, node_id: str) -> dict[str, Any]:
        research = self.strings.get("research")
        if isinstance(research, dict) and isinstance(research.get(node_id), dict):
            return research[node_id]
        return {}

    def node_bodies(self) -> Iterator[tuple[str, str, dict[str, Any]]]:
        """Yield (tree id, node id, body) for every well-formed node."""
        for tree_id, tree_nodes in self.trees.items():
            if not isinstance(tree_nodes, dict):
                continue
            for node_id, body in tree_nodes.items():
                if isinstance(body, dict):
                    yield tree_id, node_id, body


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, str)]


def _parse_price(value: Any) -> list[CountedItem]:
    """``price`` is a list of ``[item, count]`` pairs."""
    if not isinstance(value, list):
        return []

    cost: list[CountedItem] = []
    for entry in value:
        if not isinstance(entry, list) or len(entry) < 2 or not isinstance(entry[0], str):
            continue
        count = entry[1]
        if isinstance(count, bool) or not isinstance(count, int | float):
            continue
        cost.append(CountedItem(item=entry[0], count=count))
    return cost


def load_research_documents(paths: list[Path], root: Path | None = None) -> list[ResearchDocument]:
    """
    Read candidate config files and keep those carrying a research tree.

    Args:
        paths: Config files to read
        root: If given, source files are recorded relative to it

    Returns:
        Documents in path order; unreadable or unrelated files are dropped
    """
    documents: list[ResearchDocument] = []

    for path in paths:
        data = read_json_file(path)
        if not isinstance(data, dict):
            continue
        trees = data.get(RESEARCH_MARKER)
        if not isinstance(trees, dict) or not trees:
            continue

        strings = data.get("strings")
        documents.append(
            ResearchDocument(
                source_file=str(path.relative_to(root)) if root else str(path),
                trees=trees,
                strings=strings if isinstance(strings, dict) else {},
            )
        )

    return documents


def build_node_table(documents: list[ResearchDocument]) -> dict[str, ResearchNode]:
    """
    Pass 1: establish every node, keyed by ``tree:node``.

    A node defined more than once keeps its last definition.
    """
    nodes: dict[str, ResearchNode] = {}

    for document in documents:
        for tree_id, node_id, body in document.node_bodies():
            strings = document.node_strings(node_id)
            name = strings.get("name")
            description = strings.get("description")

            node = ResearchNode(
                tree_id=tree_id,
                tree_name=document.tree_name(tree_id),
                node_id=node_id,
                name=name if isinstance(name, str) else node_id,
                description=description if isinstance(description, str) else "",
                cost=_parse_price(body.get("price")),
                children=_string_list(body.get("children")),
                unlocks=_string_list(body.get("unlocks")),
                source_file=document.source_file,
            )
            nodes[node.key] = node

    return nodes


def link_prerequisites(
    nodes: dict[str, ResearchNode],
    documents: list[ResearchDocument],
) -> dict[str, ResearchNode]:
    """
    Pass 2: invert authored ``children`` into derived prerequisites.

    If node A lists B as a child, ``tree:A`` is added to B's prerequisites.
    Children resolve within the parent's tree. Edges to nodes missing from
    the table are ignored; each prerequisite is recorded once, in discovery
    order.
    """
    for document in documents:
        for tree_id, node_id, body in document.node_bodies():
            parent_key = node_key(tree_id, node_id)
            for child_id in _string_list(body.get("children")):
                child = nodes.get(node_key(tree_id, child_id))
                if child is None:
                    logger.debug("Unknown child %s of %s", child_id, parent_key)
                    continue
                if parent_key not in child.prerequisites:
                    child.prerequisites.append(parent_key)

    return nodes


def collect_research_nodes(root: Path) -> list[ResearchNode]:
    """Find research trees under root and build the node DAG."""
    documents = load_research_documents(find_files(root, {".config"}), root)
    nodes = link_prerequisites(build_node_table(documents), documents)

    logger.info(
        "Found %d research nodes in %d files", len(nodes), len(documents),
        extra={"entity_type": "research"},
    )
    return list(nodes.values())
