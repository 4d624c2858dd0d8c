"""
🧠 NOVA MEMORY STORE
====================
Append-only interaction history per entity, plus the decayed context summary
that is injected into AI prompts.

HOW DECAY WORKS:
- Trust signals, cultural notes and buying-cycle notes never expire
- Everything else drops out of the context after the decay window (90 days)
- Entries themselves are never deleted; decay only affects the summary

RESERVED ENTITIES:
System state lives on pseudo-entities listed in ``SystemEntity``. The
orchestrator is the only reader/writer of ``SystemEntity.MISSIONS``.
"""

from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

from loguru import logger

from config.settings import settings
from database.models import MemoryCategory, MemoryEntry, new_id, utcnow
from database.store import ResilientTable


class SystemEntity(str, Enum):
    """Reserved entity ids that carry system state instead of a Lead/Event."""
    STATUS = "SYSTEM"
    MISSIONS = "SYSTEM_MISSIONS"


PERMANENT_CATEGORIES = frozenset({
    MemoryCategory.TRUST_SIGNAL,
    MemoryCategory.CULTURAL_NOTE,
    MemoryCategory.BUYING_CYCLE,
})

FRESH_RELATIONSHIP_CONTEXT = "Fresh relationship. No historical equestrian context available."
OUTDATED_CONTEXT = "Historical data outdated. Treat as a fresh relationship."

CONTEXT_DATE_FORMAT = "%d %b %Y"

EntityRef = Union[str, SystemEntity]


def _entity_key(entity_id: EntityRef) -> str:
    return entity_id.value if isinstance(entity_id, SystemEntity) else str(entity_id)


def format_context_line(entry: MemoryEntry) -> str:
    """Render one entry as ``[date] CATEGORY: content``."""
    label = entry.category.value if entry.category else entry.type.upper()
    return f"[{entry.timestamp.strftime(CONTEXT_DATE_FORMAT)}] {label}: {entry.content}"


class MemoryStore:
    """
    Timeline of immutable facts per entity.

    Usage:
        memory = MemoryStore()

        memory.append("lead-1", "action", "Called the stable manager", MemoryCategory.ACTION)
        timeline = memory.list_for_entity("lead-1")
        context = memory.build_context("lead-1")

    Args:
        table: Backing table (defaults to the ``memories`` table)
        clock: Returns "now" as an aware datetime
        decay_days: Age after which non-permanent entries leave the context
    """

    def __init__(
        self,
        table: Optional[ResilientTable] = None,
        clock: Optional[Callable[[], datetime]] = None,
        decay_days: Optional[int] = None
    ):
        self.table = table if table is not None else ResilientTable("memories")
        self.clock = clock or utcnow
        self.decay_days = decay_days if decay_days is not None else settings.decision.decay_window_days

    def append(
        self,
        entity_id: EntityRef,
        type: str,
        content: str,
        category: Optional[MemoryCategory] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> MemoryEntry:
        """
        Record a new fact. Assigns id and timestamp.

        Always returns a usable entry, even when the remote write fails.
        """
        entry = MemoryEntry(
            id=new_id("mem"),
            entity_id=_entity_key(entity_id),
            type=type,
            content=content,
            timestamp=self.clock(),
            category=category,
            metadata=metadata,
        )
        self.table.insert(entry.to_record())
        logger.debug(f"Memory [{entry.entity_id}] {type}: {content[:60]}")
        return entry

    def list_for_entity(self, entity_id: EntityRef) -> List[MemoryEntry]:
        """All entries for one entity, oldest first."""
        rows = self.table.select(
            filters={"entity_id": _entity_key(entity_id)},
            order_by="timestamp",
        )
        entries = [MemoryEntry.from_record(r) for r in rows]
        return sorted(entries, key=lambda e: e.timestamp)

    def list_recent(self, limit: Optional[int] = None) -> List[MemoryEntry]:
        """Global feed across all entities, newest first."""
        limit = limit if limit is not None else settings.pipeline.recent_memory_limit
        rows = self.table.select(order_by="timestamp", descending=True, limit=limit)
        entries = [MemoryEntry.from_record(r) for r in rows]
        return sorted(entries, key=lambda e: e.timestamp, reverse=True)

    def find_latest(
        self,
        entity_id: EntityRef,
        metadata_match: Optional[Dict[str, Any]] = None,
        limit: Optional[int] = None
    ) -> Optional[MemoryEntry]:
        """
        Newest entry in the recent feed for ``entity_id`` whose metadata
        contains every key/value in ``metadata_match``.
        """
        key = _entity_key(entity_id)
        for entry in self.list_recent(limit):
            if entry.entity_id != key:
                continue
            meta = entry.metadata or {}
            if all(meta.get(k) == v for k, v in (metadata_match or {}).items()):
                return entry
        return None

    def build_context(self, entity_id: EntityRef, now: Optional[datetime] = None) -> str:
        """
        Compress an entity's timeline into a prompt-ready string.

        Args:
            entity_id: Entity whose timeline to summarise
            now: Reference time for the decay cutoff (defaults to the clock)

        Returns:
            Newline-joined ``[date] CATEGORY: content`` lines, or one of the
            fresh/outdated sentinels
        """
        entries = self.list_for_entity(entity_id)
        if not entries:
            return FRESH_RELATIONSHIP_CONTEXT

        now = now or self.clock()
        cutoff = now - timedelta(days=self.decay_days)

        relevant = [
            e for e in entries
            if e.category in PERMANENT_CATEGORIES or e.timestamp >= cutoff
        ]
        if not relevant:
            return OUTDATED_CONTEXT

        return "\n".join(format_context_line(e) for e in relevant)
