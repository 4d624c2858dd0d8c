"""
🎯 STAGE 3: MISSION SYNTHESIS
=============================
Turns the discovery inbox into today's ranked mission batch.

The batch is stored as ONE memory entry on ``SystemEntity.MISSIONS`` with
``metadata.date`` set to today's UTC date. A new day has no entry until the
next recalibration, so the read path returns an empty list meanwhile.
"""

import json
from datetime import datetime
from typing import Callable, List, Optional, Sequence

from loguru import logger

from config.settings import settings
from database.lead_repository import LeadRepository
from database.models import Lead, MemoryCategory, Mission, utcnow
from memory import MemoryStore, SystemEntity
from orchestration.decision_engine import (
    evaluate_relationship_safety,
    explain_verdict,
    sort_missions_by_priority,
)


def mission_date_key(now: datetime) -> str:
    """Cache key of a mission batch: the UTC calendar date."""
    return now.date().isoformat()


class MissionSynthesisPipeline:
    """
    Usage:
        pipeline = MissionSynthesisPipeline(gateway, memory, leads)
        missions = pipeline.run()
    """

    def __init__(
        self,
        gateway,
        memory: MemoryStore,
        leads: LeadRepository,
        clock: Optional[Callable[[], datetime]] = None,
        sample_size: Optional[int] = None,
        limit: Optional[int] = None
    ):
        self.gateway = gateway
        self.memory = memory
        self.leads = leads
        self.clock = clock or utcnow
        self.sample_size = sample_size if sample_size is not None else settings.pipeline.inbox_sample_size
        self.limit = limit if limit is not None else settings.decision.max_visible_results

    def build_context(self, leads: Sequence[Lead], now: datetime) -> str:
        """
        One block per lead: identity plus its safety verdict. Open leads also
        carry their decayed memory context.
        """
        blocks = []
        for lead in leads:
            verdict = evaluate_relationship_safety(self.memory.list_for_entity(lead.id), now=now)
            header = (
                f"ID: {lead.id} | {lead.full_name}, {lead.title or 'Unknown title'} "
                f"at {lead.company_name} [{explain_verdict(verdict)}]"
            )
            if verdict.safe:
                blocks.append(f"{header}\nContext: {self.memory.build_context(lead.id, now=now)}")
            else:
                blocks.append(header)
        return "\n".join(blocks)

    def run(self) -> List[Mission]:
        """
        Returns:
            The ranked batch that was cached for today
        """
        logger.info("=" * 50)
        logger.info("🎯 STAGE 3: MISSION SYNTHESIS")
        logger.info("=" * 50)

        now = self.clock()
        inbox = self.leads.get_discovery_inbox()[:self.sample_size]
        logger.info(f"📥 Inbox sample: {len(inbox)} leads")

        context = self.build_context(inbox, now)
        missions = self.gateway.generate_daily_missions(context, self.limit)
        ranked = sort_missions_by_priority(missions, self.limit)

        self.memory.append(
            SystemEntity.MISSIONS,
            "command",
            json.dumps([m.to_record() for m in ranked]),
            category=MemoryCategory.SYSTEM,
            metadata={"date": mission_date_key(now), "count": len(ranked)},
        )

        logger.info(f"✅ Cached {len(ranked)} missions for {mission_date_key(now)}")
        return ranked
