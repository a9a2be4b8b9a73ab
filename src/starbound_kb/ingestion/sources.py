"""Known data sources and their descriptive metadata."""

from dataclasses import dataclass


@dataclass(frozen=True)
class SourceInfo:
    """Metadata recorded when a source is first created."""

    name: str
    version: str | None
    description: str
    url: str


VANILLA = SourceInfo(
    name="vanilla",
    version="1.4.4",
    description="Base Starbound game",
    url="https://starbounder.org/Modding:Portal",
)

OPENSTARBOUND = SourceInfo(
    name="openstarbound",
    version=None,
    description="OpenStarbound C++ source, authoritative asset schema definitions",
    url="https://github.com/OpenStarbound/OpenStarbound",
)

FRACKIN_UNIVERSE = SourceInfo(
    name="frackin-universe",
    version=None,
    description="Frackin Universe overhaul mod",
    url="https://github.com/sayterdarkwynd/FrackinUniverse",
)
