"""Knowledge store backends."""

from starbound_kb.store.base import KnowledgeStore, MergePolicy
from starbound_kb.store.lance import LanceKnowledgeStore
from starbound_kb.store.memory import MemoryKnowledgeStore

__all__ = ["KnowledgeStore", "MergePolicy", "LanceKnowledgeStore", "MemoryKnowledgeStore"]
