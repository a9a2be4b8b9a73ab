"""Extraction policy: tunable heuristics loaded from an optional YAML file."""

from typing import Literal

from pydantic import BaseModel, Field, field_validator

OverloadPrimary = Literal["most-parameters", "first", "last"]

# Approximate drop chance per centrifuge rarity tier, most common first
DEFAULT_RARITY_PROBABILITIES: dict[str, float] = {
    "common": 0.9,
    "uncommon": 0.5,
    "rare": 0.2,
    "rarest": 0.05,
}

DEFAULT_LAB_TIERS: list[str] = ["basic", "improved", "advanced"]


class ExtractionPolicy(BaseModel):
    """Heuristics that decide how ambiguous source data is normalized."""

    overload_primary: OverloadPrimary = Field(
        "most-parameters",
        description="Which overload supplies the canonical parameter list and return type",
    )
    rarity_probabilities: dict[str, float] = Field(
        default_factory=lambda: dict(DEFAULT_RARITY_PROBABILITIES),
        description="Rarity tier -> probability, ordered from most to least common",
    )
    lab_tiers: list[str] = Field(
        default_factory=lambda: list(DEFAULT_LAB_TIERS),
        min_length=3,
        max_length=3,
        description="Names of the three extraction lab upgrade tiers",
    )
    clip_converter_window: bool = Field(
        False,
        description="Cut converter search windows at the enclosing C++ statement",
    )

    @field_validator("rarity_probabilities")
    @classmethod
    def validate_rarity_probabilities(cls, v: dict[str, float]) -> dict[str, float]:
        """Require probabilities in (0, 1], strictly decreasing in declaration order."""
        if not v:
            raise ValueError("At least one rarity tier is required.")

        previous: float | None = None
        for tier, probability in v.items():
            if not 0 < probability <= 1:
                raise ValueError(f"Probability for '{tier}' must be in (0, 1], got {probability}.")
            if previous is not None and probability >= previous:
                raise ValueError(
                    f"Rarity probabilities must strictly decrease; '{tier}' is {probability}."
                )
            previous = probability
        return v

    def probability_for(self, tier: str) -> float:
        """Probability for a rarity tier; unknown tiers count as the rarest."""
        if tier in self.rarity_probabilities:
            return self.rarity_probabilities[tier]
        return list(self.rarity_probabilities.values())[-1]

    def overload_wins(self, overload_params: int, canonical_params: int) -> bool:
        """Whether an overload replaces the canonical parameters and return type."""
        if self.overload_primary == "first":
            return False
        if self.overload_primary == "last":
            return True
        return overload_params > canonical_params
