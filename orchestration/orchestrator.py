"""
🛰️ NOVA ORCHESTRATOR
====================
Single entry point for everything the operator can trigger.

Two kinds of work:
- Recalibration: the 3-stage background pipeline (discovery, events,
  missions). At most one runs at a time; extra requests are dropped.
- Synchronous operations: chat, outreach drafts, scoring, CRM actions.
  AI failures here degrade to fallbacks instead of raising.

State machine:
    Idle --recalibrate()--> Refreshing --(done or failed)--> Idle
"""

import json
import random
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

from loguru import logger

from config.settings import settings
from database.event_repository import EventRepository, organizer_as_lead
from database.lead_repository import LeadRepository
from database.models import (
    Company,
    Lead,
    LeadStatus,
    MemoryCategory,
    MemoryEntry,
    Mission,
    Temperature,
    utcnow,
)
from memory import MemoryStore, SystemEntity
from pipelines import (
    EventDiscoveryPipeline,
    LeadDiscoveryPipeline,
    MissionSynthesisPipeline,
    log_priority_decision,
    mission_date_key,
    score_lead,
)

from .decision_engine import SafetyVerdict, evaluate_relationship_safety


BRAIN_FALLBACK = "Nova Backend Error: strategic brain unavailable. Try again shortly."
OUTREACH_FALLBACK = "Outreach synthesis disrupted. Draft manually or retry later."
EMPTY_ANSWER = "No insight returned."

OPERATOR_ACTIONS = ("done", "snooze", "ignore")


@dataclass
class Notice:
    """Operator-facing outcome message (level: success | info | error)."""
    level: str
    message: str


class NovaOrchestrator:
    """
    Usage:
        nova = NovaOrchestrator()

        future = nova.recalibrate()        # None if a run is already active
        if future is not None:
            future.result()

        missions = nova.get_daily_commands()
        answer = nova.ask_brain("Which stables in Dubai are expanding?")

    Args:
        gateway: AI gateway (defaults to GeminiGateway)
        memory: Memory store
        leads: Lead/CRM repository
        events: Event repository
        mailer: E-mail collaborator (optional; send_email returns False without it)
        clock: Returns "now" as an aware datetime
        rng: Random source for event target selection
    """

    def __init__(
        self,
        gateway=None,
        memory: Optional[MemoryStore] = None,
        leads: Optional[LeadRepository] = None,
        events: Optional[EventRepository] = None,
        mailer=None,
        clock: Optional[Callable[[], datetime]] = None,
        rng: Optional[random.Random] = None
    ):
        if gateway is None:
            from .ai_gateway import GeminiGateway
            gateway = GeminiGateway()

        self.clock = clock or utcnow
        self.gateway = gateway
        self.memory = memory if memory is not None else MemoryStore(clock=self.clock)
        self.leads = leads if leads is not None else LeadRepository(clock=self.clock)
        self.events = events if events is not None else EventRepository(clock=self.clock)
        self.mailer = mailer
        self.rng = rng or random.Random()

        self.last_run_at: Optional[datetime] = None
        self._refreshing = False
        self._state_lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="nova-recalibrate")

    # ===================================
    # RECALIBRATION
    # ===================================

    def is_refreshing(self) -> bool:
        with self._state_lock:
            return self._refreshing

    def recalibrate(self) -> Optional[Future]:
        """
        Start a background recalibration.

        Returns:
            Future resolving to True/False (run succeeded), or None when a
            run is already in progress and this request was dropped
        """
        with self._state_lock:
            if self._refreshing:
                logger.info("⏳ Recalibration already running - request dropped")
                return None
            self._refreshing = True

        try:
            return self._executor.submit(self._run_pipeline)
        except RuntimeError:
            with self._state_lock:
                self._refreshing = False
            raise

    def _run_pipeline(self) -> bool:
        try:
            self.memory.append(
                SystemEntity.STATUS, "status", "Recalibration initiated.",
                category=MemoryCategory.SYSTEM,
            )

            LeadDiscoveryPipeline(self.gateway, self.memory, self.leads).run()
            EventDiscoveryPipeline(self.gateway, self.events, rng=self.rng, clock=self.clock).run()
            MissionSynthesisPipeline(self.gateway, self.memory, self.leads, clock=self.clock).run()

            self.memory.append(
                SystemEntity.STATUS, "status", "Recalibration complete.",
                category=MemoryCategory.SYSTEM,
            )
            self.last_run_at = self.clock()
            logger.info("✅ Recalibration complete")
            return True

        except Exception as e:
            logger.error(f"❌ Recalibration failed: {e}")
            return False

        finally:
            with self._state_lock:
                self._refreshing = False

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def get_daily_commands(self) -> List[Mission]:
        """Today's cached mission batch, or [] when absent or unreadable."""
        today = mission_date_key(self.clock())
        entry = self.memory.find_latest(SystemEntity.MISSIONS, {"date": today})
        if entry is None:
            return []

        try:
            data = json.loads(entry.content)
            return [Mission.from_record(m) for m in data if isinstance(m, dict)]
        except (ValueError, TypeError) as e:
            logger.warning(f"Unreadable mission batch {entry.id}: {e}")
            return []

    # ===================================
    # AI PASS-THROUGHS
    # ===================================

    def ask_brain(self, prompt: str) -> str:
        try:
            return self.gateway.ask(prompt) or EMPTY_ANSWER
        except Exception as e:
            logger.error(f"Strategic brain failed: {e}")
            return BRAIN_FALLBACK

    def generate_outreach(self, mission: Mission) -> str:
        try:
            return self.gateway.draft_outreach(mission) or OUTREACH_FALLBACK
        except Exception as e:
            logger.error(f"Outreach draft failed for {mission.contact_name}: {e}")
            return OUTREACH_FALLBACK

    def discover_companies(self, keyword: str, location: str) -> List[Company]:
        try:
            return self.gateway.search_companies(keyword, location)
        except Exception as e:
            logger.error(f"Company search failed ({keyword} / {location}): {e}")
            return []

    def qualify_company(self, company: Company) -> Dict[str, Any]:
        try:
            return self.gateway.qualify_company(company)
        except Exception as e:
            logger.error(f"Qualification failed for {company.name}: {e}")
            return {}

    def find_decision_makers(self, company: Company) -> List[Lead]:
        try:
            return self.gateway.find_decision_makers(company)
        except Exception as e:
            logger.error(f"Decision maker search failed for {company.name}: {e}")
            return []

    def analyze_lead_priority(self, lead: Lead) -> Optional[Lead]:
        """Score one lead and log the decision. None when the AI fails."""
        try:
            scored, assessment = score_lead(self.gateway, self.memory, lead)
        except Exception as e:
            logger.error(f"Priority analysis failed for {lead.full_name}: {e}")
            return None

        log_priority_decision(self.memory, scored, assessment)
        return scored

    # ===================================
    # OPERATOR ACTIONS
    # ===================================

    def record_action(self, entity_id: str, action: str) -> MemoryEntry:
        """Log the operator's response to a recommendation."""
        action = action.lower()
        if action not in OPERATOR_ACTIONS:
            raise ValueError(f"Unknown action '{action}', expected one of {OPERATOR_ACTIONS}")

        return self.memory.append(
            entity_id,
            "action",
            f"Action: [{action.upper()}] on recommended step.",
            category=MemoryCategory.ACTION,
            metadata={"action": action},
        )

    def set_temperature(self, lead_id: str, temperature: Temperature) -> None:
        self.leads.update_lead_temperature(lead_id, temperature)
        self.memory.append(
            lead_id,
            "decision",
            f"Relationship temperature manually set to {temperature.value}.",
            category=MemoryCategory.SYSTEM,
        )

    def check_relationship_safety(self, entity_id: str) -> SafetyVerdict:
        return evaluate_relationship_safety(
            self.memory.list_for_entity(entity_id),
            now=self.clock(),
        )

    def save_discovery_leads(self, ids: Sequence[str]) -> Notice:
        """Bulk-promote selected discovery leads to the CRM."""
        if not ids:
            return Notice("info", "No leads selected.")

        try:
            count = self.leads.bulk_update_lead_status(ids, LeadStatus.SAVED)
        except Exception as e:
            logger.error(f"Bulk save failed: {e}")
            return Notice("error", f"Could not save contacts: {e}")

        if count == 0:
            return Notice("info", "No new contacts saved. Selected leads are already in the CRM.")
        return Notice("success", f"{count} contact(s) saved to CRM.")

    def promote_mission(self, mission: Mission, add_follow_up: bool = True) -> Lead:
        contact = self.leads.promote_mission_to_crm(mission, add_follow_up=add_follow_up)
        self.memory.append(
            contact.id,
            "decision",
            f"Mission promoted to CRM ({mission.priority}): {mission.recommended_action}",
            category=MemoryCategory.SYSTEM,
            metadata={"company": mission.company, "priority": mission.priority},
        )
        return contact

    def promote_event_organizer(self, event_id: str) -> bool:
        """Add an event's organizer to the discovery log."""
        event = self.events.get_event_by_id(event_id)
        if event is None:
            logger.warning(f"Event not found: {event_id}")
            return False

        if not self.leads.save_lead(organizer_as_lead(event)):
            return False

        self.memory.append(
            event.id,
            "decision",
            f"Organizer {event.organizer} promoted to discovery leads.",
            category=MemoryCategory.SYSTEM,
        )
        return True

    def send_email(
        self,
        to: str,
        subject: str,
        html: str,
        contact_name: str,
        entity_id: Optional[str] = None
    ) -> bool:
        """Deliver an e-mail; only a delivered message is logged to memory."""
        if self.mailer is None:
            logger.warning("No mailer configured - email not sent")
            return False

        if not self.mailer.send(to, subject, html):
            return False

        self.memory.append(
            entity_id or to,
            "email",
            f"Email sent to {contact_name} ({to}). Subject: {subject}",
            category=MemoryCategory.ACTION,
            metadata={"status": "sent", "provider": "resend", "to": to, "subject": subject},
        )
        return True
