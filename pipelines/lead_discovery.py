"""
🔎 STAGE 1: LEAD DISCOVERY
==========================
Scans the market for equine companies and turns their decision makers into
scored discovery leads.

FOR EACH (keyword, location) TARGET:
1. Search companies, keep the elite ones (relevance above threshold)
2. Qualify the first few (deep audit)
3. Find decision makers at each qualified company
4. Skip contacts already in the discovery log
5. Score every new contact (AI triple + deterministic priority)
6. Log the lead
"""

from dataclasses import replace
from typing import Any, Dict, List, Optional, Sequence, Tuple

from loguru import logger

from config.settings import DISCOVERY_TARGETS, settings
from database.lead_repository import LeadRepository
from database.models import Lead, LeadScoring, MemoryCategory
from memory import MemoryStore
from orchestration.decision_engine import calculate_lead_priority, filter_elite_companies


def score_lead(gateway, memory: MemoryStore, lead: Lead) -> Tuple[Lead, Dict[str, Any]]:
    """
    Ask the AI for the scoring triple and compute the overall priority.

    Returns:
        (lead with scoring attached, raw assessment incl. ``overall``)
    """
    context = memory.build_context(lead.id)
    assessment = gateway.analyze_lead_priority(lead, context)

    scoring = LeadScoring(
        authority=assessment.get("authority", 0),
        intent=assessment.get("intent", 0),
        engagement=assessment.get("engagement", 0),
    )
    scoring.overall = calculate_lead_priority(scoring)
    assessment = {**assessment, "overall": scoring.overall}

    return replace(lead, scoring=scoring, nova_confidence=scoring.overall), assessment


def log_priority_decision(memory: MemoryStore, lead: Lead, assessment: Dict[str, Any]) -> None:
    """Persist the scoring decision on the lead's timeline."""
    memory.append(
        lead.id,
        "decision",
        (
            f"Nova Priority: {assessment['overall']}%. "
            f"Action: {assessment.get('recommended_action', 'wait')}. "
            f"Insight: {assessment.get('explanation', '')}"
        ),
        category=MemoryCategory.SYSTEM,
        metadata=assessment,
    )


class LeadDiscoveryPipeline:
    """
    Usage:
        pipeline = LeadDiscoveryPipeline(gateway, memory, leads)
        new_leads = pipeline.run()
    """

    def __init__(
        self,
        gateway,
        memory: MemoryStore,
        leads: LeadRepository,
        targets: Optional[Sequence[Tuple[str, str]]] = None,
        companies_per_target: Optional[int] = None
    ):
        self.gateway = gateway
        self.memory = memory
        self.leads = leads
        self.targets = list(targets) if targets is not None else list(DISCOVERY_TARGETS)
        self.companies_per_target = (
            companies_per_target
            if companies_per_target is not None
            else settings.pipeline.companies_per_target
        )

        logger.info("LeadDiscoveryPipeline initialized")
        logger.info(f"  - Targets: {len(self.targets)}, {self.companies_per_target} companies each")

    def run(self) -> List[Lead]:
        """
        Run every discovery target. Any AI failure propagates and aborts the
        run; leads already logged stay logged.

        Returns:
            Leads newly added to the discovery log
        """
        logger.info("=" * 50)
        logger.info("🔎 STAGE 1: LEAD DISCOVERY")
        logger.info("=" * 50)

        added: List[Lead] = []

        for keyword, location in self.targets:
            logger.info(f"\n📍 Scanning: {keyword} in {location}")
            companies = self.gateway.search_companies(keyword, location)
            logger.info(f"   Found {len(companies)} companies")

            elite = filter_elite_companies(companies)
            logger.info(f"   {len(elite)} above the elite relevance threshold")

            for company in elite[:self.companies_per_target]:
                company.intelligence = self.gateway.qualify_company(company)
                contacts = self.gateway.find_decision_makers(company)
                logger.info(f"   🏢 {company.name}: {len(contacts)} decision makers")

                for contact in contacts:
                    if self.leads.is_logged(contact):
                        logger.debug(f"   ⏭️ {contact.full_name} already logged")
                        continue

                    lead, assessment = score_lead(self.gateway, self.memory, contact)
                    lead = replace(lead, source=f"Big Brain: {keyword} / {location}")

                    if self.leads.save_lead(lead):
                        log_priority_decision(self.memory, lead, assessment)
                        added.append(lead)

        logger.info(f"\n📊 TOTAL: {len(added)} new leads")
        return added
