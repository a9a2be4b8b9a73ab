"""Pydantic schemas for starbound-kb."""

from starbound_kb.schemas.database import (
    ApiFunctionSchema,
    ApiTableSchema,
    AssetFieldSchema,
    AssetTypeSchema,
    ExtractionSchema,
    RecipeSchema,
    ResearchNodeSchema,
    SearchEntrySchema,
    SourceSchema,
)
from starbound_kb.schemas.policy import ExtractionPolicy
from starbound_kb.schemas.records import (
    CountedItem,
    ExtractedField,
    ExtractionOutput,
    ParsedExtraction,
    ParsedFunction,
    ParsedParam,
    ParsedRecipe,
    Provenance,
    ResearchNode,
)

__all__ = [
    # Policy
    "ExtractionPolicy",
    # Candidate records
    "ParsedParam",
    "Provenance",
    "ParsedFunction",
    "ExtractedField",
    "CountedItem",
    "ParsedRecipe",
    "ExtractionOutput",
    "ParsedExtraction",
    "ResearchNode",
    # Store tables
    "SourceSchema",
    "ApiTableSchema",
    "ApiFunctionSchema",
    "AssetTypeSchema",
    "AssetFieldSchema",
    "RecipeSchema",
    "ExtractionSchema",
    "ResearchNodeSchema",
    "SearchEntrySchema",
]
