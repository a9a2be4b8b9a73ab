"""Starbound modding knowledge base: extraction pipeline."""

__version__ = "0.3.0"
