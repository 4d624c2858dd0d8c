"""
👥 LEAD REPOSITORY
==================
Discovery log and CRM contacts over two resilient tables.

LIFECYCLE:
    DISCOVERED ──► SAVED (promoted to CRM, one-way)
        │     └──► IGNORED / ARCHIVED
        └── Enriched (parallel pre-save state)

Leads are never removed from the discovery log; only their status changes.
Whether a discovery lead is already in the CRM (``is_saved``) is worked out
at read time, never stored.
"""

from dataclasses import replace
from datetime import datetime
from typing import Callable, List, Optional, Sequence, Tuple

from loguru import logger

from config.settings import settings
from database.models import (
    INBOX_STATUSES,
    PLACEHOLDER_EMAIL,
    DealStage,
    Lead,
    LeadStatus,
    Mission,
    Reminder,
    ReminderType,
    RoleType,
    Temperature,
    new_id,
    same_contact,
    utcnow,
)
from database import reminders as reminder_ops
from database.store import ResilientTable


MISSION_SOURCE = "Nova Mission"


def split_contact_name(contact_name: str) -> Tuple[str, str]:
    """Split "First Middle Last" into ("First", "Middle Last")."""
    parts = (contact_name or "").split()
    if not parts:
        return "", ""
    return parts[0], " ".join(parts[1:])


class LeadRepository:
    """
    CRUD with duplicate suppression for discovery leads and CRM contacts.

    Usage:
        repo = LeadRepository()

        repo.save_lead(lead)                  # into the discovery log
        inbox = repo.get_discovery_inbox()    # DISCOVERED + Enriched
        repo.promote_to_crm(inbox[0])         # False if already in CRM

    Args:
        leads_table: Discovery log table (defaults to ``leads``)
        crm_table: CRM table (defaults to ``crm_contacts``)
        clock: Returns "now" as an aware datetime
    """

    def __init__(
        self,
        leads_table: Optional[ResilientTable] = None,
        crm_table: Optional[ResilientTable] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.leads = leads_table if leads_table is not None else ResilientTable("leads")
        self.crm = crm_table if crm_table is not None else ResilientTable("crm_contacts")
        self.clock = clock or utcnow

    # ===================================
    # DISCOVERY LEADS
    # ===================================

    def is_logged(self, lead: Lead) -> bool:
        """
        True when the discovery log already holds this lead: the same id, the
        same real e-mail address, or the same person per the contact rule.
        """
        for existing in self._all_discovery_leads():
            if existing.id == lead.id:
                return True
            if lead.email and lead.email != PLACEHOLDER_EMAIL and existing.email == lead.email:
                return True
            if same_contact(existing, lead):
                return True
        return False

    def save_lead(self, lead: Lead) -> bool:
        """Log a discovered lead. Skipped (returns False) when ``is_logged``."""
        if self.is_logged(lead):
            return False

        entry = replace(
            lead,
            status=LeadStatus.DISCOVERED,
            discovered_at=self.clock(),
            is_saved=False,
        )
        self.leads.insert(entry.to_record())
        logger.debug(f"Logged lead {entry.full_name} @ {entry.company_name}")
        return True

    def _all_discovery_leads(self) -> List[Lead]:
        rows = self.leads.select(order_by="discovered_at", descending=True)
        return [Lead.from_record(r) for r in rows]

    def get_all_leads(self) -> List[Lead]:
        """Full discovery log, newest first, with ``is_saved`` derived from the CRM."""
        contacts = self.get_crm_contacts()
        leads = self._all_discovery_leads()
        for lead in leads:
            lead.is_saved = any(same_contact(lead, c) for c in contacts)
        return leads

    def get_discovery_inbox(self) -> List[Lead]:
        """Leads still awaiting a decision (DISCOVERED or Enriched)."""
        return [l for l in self.get_all_leads() if l.status in INBOX_STATUSES]

    def update_lead_status(self, id: str, status: LeadStatus) -> None:
        self.leads.update(id, {"status": status.value})

    def bulk_update_lead_status(self, ids: Sequence[str], status: LeadStatus) -> int:
        """
        Move several discovery leads to ``status``.

        SAVED goes through ``promote_to_crm`` one lead at a time, so
        duplicates are skipped silently. Any other status is a plain batch
        write.

        Returns:
            Number of leads actually saved (SAVED) or updated (other statuses)
        """
        wanted = set(ids)
        selected = [l for l in self.get_all_leads() if l.id in wanted]

        if status == LeadStatus.SAVED:
            saved = 0
            for lead in selected:
                if self.promote_to_crm(lead):
                    saved += 1
            logger.info(f"Promoted {saved}/{len(selected)} leads to CRM")
            return saved

        self.leads.update_many(list(wanted), {"status": status.value})
        return len(selected)

    # ===================================
    # CRM CONTACTS
    # ===================================

    def get_crm_contacts(self) -> List[Lead]:
        rows = self.crm.select(order_by="discovered_at", descending=True)
        contacts = [Lead.from_record(r) for r in rows]
        for contact in contacts:
            contact.is_saved = True
        return contacts

    def get_lead_by_id(self, id: str) -> Optional[Lead]:
        """CRM contact if promoted, otherwise the discovery lead."""
        row = self.crm.select_by_id(id)
        if row is not None:
            lead = Lead.from_record(row)
            lead.is_saved = True
            return lead
        row = self.leads.select_by_id(id)
        return Lead.from_record(row) if row is not None else None

    def promote_to_crm(self, lead: Lead) -> bool:
        """
        Copy a lead into the CRM.

        Returns False, without merging anything, when a contact with the same
        LinkedIn URL or the same first name + last name + company exists.
        """
        if any(same_contact(c, lead) for c in self.get_crm_contacts()):
            logger.info(f"⏭️ {lead.full_name} @ {lead.company_name} already in CRM")
            return False

        entry = replace(
            lead,
            status=LeadStatus.SAVED,
            temperature=lead.temperature or Temperature.COLD,
            saved_at=self.clock(),
            is_saved=True,
        )
        self.crm.upsert(entry.to_record())
        self.update_lead_status(lead.id, LeadStatus.SAVED)
        logger.info(f"✅ Promoted {lead.full_name} @ {lead.company_name} to CRM")
        return True

    def promote_mission_to_crm(self, mission: Mission, add_follow_up: bool = True) -> Lead:
        """
        Merge a mission into the matching CRM contact, or create one.

        The match is first name + last name (split from ``contact_name``) +
        company. This is looser than ``promote_to_crm``: LinkedIn is not
        consulted and a match merges instead of being rejected.

        Merge: appends a notes line, raises temperature to at least Warm
        (Hot stays Hot), sets the deal stage to Strategic and optionally adds
        a follow-up reminder.
        """
        now = self.clock()
        today = now.date()
        first, last = split_contact_name(mission.contact_name)
        note_line = (
            f"[{today.isoformat()}] Nova mission ({mission.priority}): "
            f"{mission.recommended_action}. {mission.explanation}"
        ).strip()

        follow_up: Optional[Reminder] = None
        if add_follow_up:
            follow_up = reminder_ops.follow_up_in(
                settings.pipeline.follow_up_days,
                f"Follow up on: {mission.recommended_action}",
                today=today,
            )

        existing = next(
            (
                c for c in self.get_crm_contacts()
                if c.first_name == first and c.last_name == last and c.company_name == mission.company
            ),
            None,
        )

        if existing is not None:
            notes = f"{existing.notes}\n{note_line}" if existing.notes else note_line
            temperature = Temperature.HOT if existing.temperature == Temperature.HOT else Temperature.WARM
            reminders = list(existing.reminders)
            if follow_up is not None:
                reminders = reminder_ops.add_reminder(reminders, follow_up)

            merged = replace(
                existing,
                notes=notes,
                temperature=temperature,
                deal_stage=DealStage.STRATEGIC,
                reminders=reminders,
            )
            self.crm.update(existing.id, {
                "notes": merged.notes,
                "temperature": merged.temperature.value,
                "deal_stage": merged.deal_stage.value,
                "reminders": [r.to_record() for r in merged.reminders],
            })
            logger.info(f"🔗 Merged mission into CRM contact {merged.full_name}")
            return merged

        contact = Lead(
            id=new_id("lead"),
            first_name=first,
            last_name=last,
            title=mission.role,
            role_type=RoleType.DECISION_MAKER,
            company_name=mission.company,
            email=PLACEHOLDER_EMAIL,
            linkedin="",
            status=LeadStatus.SAVED,
            deal_stage=DealStage.STRATEGIC,
            temperature=Temperature.WARM,
            reminders=[follow_up] if follow_up is not None else [],
            notes=note_line,
            source=MISSION_SOURCE,
            discovered_at=now,
            saved_at=now,
            nova_confidence=mission.confidence,
            is_saved=True,
        )
        self.crm.upsert(contact.to_record())
        logger.info(f"➕ Created CRM contact {contact.full_name} from mission")
        return contact

    def update_lead_temperature(self, id: str, temperature: Temperature) -> None:
        self.crm.update(id, {"temperature": temperature.value})

    def update_lead_notes(self, id: str, notes: str) -> None:
        self.crm.update(id, {"notes": notes})

    def update_lead_whatsapp(self, id: str, whatsapp: str, permission: bool) -> None:
        self.crm.update(id, {"whatsapp": whatsapp, "whatsapp_permission": permission})

    def update_lead_reminders(self, id: str, reminders: List[Reminder]) -> None:
        self.crm.update(id, {"reminders": [r.to_record() for r in reminders]})

    # ===================================
    # REMINDERS (CRM contacts only)
    # ===================================

    def _contact_reminders(self, lead_id: str) -> Optional[List[Reminder]]:
        row = self.crm.select_by_id(lead_id)
        if row is None:
            logger.warning(f"CRM contact not found: {lead_id}")
            return None
        return Lead.from_record(row).reminders

    def add_reminder(
        self,
        lead_id: str,
        reminder_date: str,
        note: str,
        type: ReminderType = ReminderType.FOLLOW_UP
    ) -> Optional[Reminder]:
        current = self._contact_reminders(lead_id)
        if current is None:
            return None
        reminder = reminder_ops.make_reminder(reminder_date, note, type)
        self.update_lead_reminders(lead_id, reminder_ops.add_reminder(current, reminder))
        return reminder

    def toggle_reminder(self, lead_id: str, reminder_id: str) -> Optional[List[Reminder]]:
        current = self._contact_reminders(lead_id)
        if current is None:
            return None
        updated = reminder_ops.toggle_reminder(current, reminder_id)
        self.update_lead_reminders(lead_id, updated)
        return updated

    def delete_reminder(self, lead_id: str, reminder_id: str) -> Optional[List[Reminder]]:
        current = self._contact_reminders(lead_id)
        if current is None:
            return None
        updated = reminder_ops.delete_reminder(current, reminder_id)
        self.update_lead_reminders(lead_id, updated)
        return updated
