"""Candidate records produced by the extractors, before they are written."""

from pydantic import BaseModel, Field


class ParsedParam(BaseModel):
    """One parameter of a documented Lua function."""

    name: str
    type: str
    optional: bool = False


class Provenance(BaseModel):
    """Where a parsed entry came from."""

    source_file: str
    line_number: int

    def __str__(self) -> str:
        return f"{self.source_file}:{self.line_number}"


class ParsedFunction(BaseModel):
    """A Lua API function parsed from a signature heading."""

    table_name: str
    function_name: str
    return_type: str = "void"
    parameters: list[ParsedParam] = Field(default_factory=list)
    signature: str
    description: str = ""
    examples: list[str] = Field(default_factory=list)
    provenance: list[Provenance] = Field(default_factory=list)

    @property
    def qualified_name(self) -> str:
        return f"{self.table_name}.{self.function_name}"


class ExtractedField(BaseModel):
    """An asset field recovered from engine source text."""

    field_name: str
    type: str
    default_value: str | None = None
    optional: bool = False
    source_file: str
    line_number: int
    context: str = Field("", description="Matched line plus one line of context, for review only")
    pattern: str = Field("", description="Name of the pattern family that produced the field")


class CountedItem(BaseModel):
    """An item with a stack count."""

    item: str
    count: int | float = 1


class ParsedRecipe(BaseModel):
    """A crafting recipe from a .recipe file."""

    output_item: str
    output_count: int | float = 1
    station: str | None = None
    groups: list[str] = Field(default_factory=list)
    inputs: list[CountedItem] = Field(default_factory=list)
    duration: float | None = None
    source_file: str | None = None


class ExtractionOutput(BaseModel):
    """One output of an extraction record."""

    item: str
    count: int | float
    probability: float
    tier: str | None = None


class ParsedExtraction(BaseModel):
    """An input item transformed by some method into weighted or tiered outputs."""

    input_item: str
    input_count: int | float = 1
    method: str
    outputs: list[ExtractionOutput] = Field(default_factory=list)
    notes: str | None = None


class ResearchNode(BaseModel):
    """A research tree node; prerequisites are derived from parent ``children`` lists."""

    tree_id: str
    tree_name: str
    node_id: str
    name: str
    description: str = ""
    cost: list[CountedItem] = Field(default_factory=list)
    children: list[str] = Field(default_factory=list)
    prerequisites: list[str] = Field(default_factory=list)
    unlocks: list[str] = Field(default_factory=list)
    source_file: str | None = None

    @property
    def key(self) -> str:
        """Global identity: node ids are only unique within a tree."""
        return node_key(self.tree_id, self.node_id)


def node_key(tree_id: str, node_id: str) -> str:
    """Build the global ``tree:node`` identity of a research node."""
    return f"{tree_id}:{node_id}"
