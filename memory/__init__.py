"""
🧠 NOVA MEMORY
==============
Per-entity interaction history with decayed prompt context.

Usage:
    from memory import MemoryStore, SystemEntity

    memory = MemoryStore()
    memory.append(SystemEntity.STATUS, "status", "Recalibration initiated.")
"""

from .memory_store import (
    FRESH_RELATIONSHIP_CONTEXT,
    OUTDATED_CONTEXT,
    PERMANENT_CATEGORIES,
    MemoryStore,
    SystemEntity,
    format_context_line,
)

__all__ = [
    "FRESH_RELATIONSHIP_CONTEXT",
    "OUTDATED_CONTEXT",
    "PERMANENT_CATEGORIES",
    "MemoryStore",
    "SystemEntity",
    "format_context_line",
]
