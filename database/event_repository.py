"""
🏇 EVENT REPOSITORY
===================
Market events (exhibitions, cups, shows, race meetings) over one resilient
table, plus the "event organizer as a lead" derivation.
"""

from dataclasses import replace
from datetime import datetime
from typing import Callable, List, Optional, Sequence

from loguru import logger

from config.settings import EVENT_MONTHS
from database.models import (
    PLACEHOLDER_EMAIL,
    DealStage,
    EquineEvent,
    Lead,
    LeadStatus,
    Reminder,
    ReminderType,
    RoleType,
    utcnow,
)
from database import reminders as reminder_ops
from database.store import ResilientTable


EVENTS_CATEGORY = "Events & Competitions"


def _month_index(month: str) -> int:
    try:
        return EVENT_MONTHS.index((month or "").strip().capitalize())
    except ValueError:
        return len(EVENT_MONTHS)


def organizer_as_lead(event: EquineEvent) -> Lead:
    """
    Derive a discovery lead for the organizer of ``event``.

    The id is derived from the event id, so promoting the same organizer
    twice is caught by the discovery log's duplicate check.
    """
    when = " ".join(p for p in (event.dates, event.month, str(event.year or "")) if p)
    return Lead(
        id=f"lead-organizer-{event.id}",
        first_name=event.organizer,
        last_name="",
        title="Event Organizer",
        role_type=RoleType.DECISION_MAKER,
        company_id=event.id,
        company_name=event.organizer,
        company_domain=event.website,
        email=event.email or PLACEHOLDER_EMAIL,
        linkedin=event.linkedin,
        status=LeadStatus.DISCOVERED,
        deal_stage=DealStage.DISCOVERY,
        horse_category=EVENTS_CATEGORY,
        notes=f"Organizer of {event.name} ({when}, {event.location}).",
        source=f"Event: {event.name}",
    )


class EventRepository:
    """
    CRUD over discovered market events.

    Usage:
        events = EventRepository()

        events.save_event(event)            # False if already known
        calendar = events.get_all_events()  # year, then calendar month

    Args:
        table: Backing table (defaults to ``events_collection``)
        clock: Returns "now" as an aware datetime
    """

    def __init__(
        self,
        table: Optional[ResilientTable] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.table = table if table is not None else ResilientTable("events_collection")
        self.clock = clock or utcnow

    def save_event(self, event: EquineEvent) -> bool:
        """Store a new event; skipped when the id or website is already known."""
        for row in self.table.select():
            if row.get("id") == event.id:
                return False
            if event.website and row.get("website") == event.website:
                return False

        entry = event if event.discovered_at else replace(event, discovered_at=self.clock())
        self.table.insert(entry.to_record())
        logger.debug(f"Saved event {event.name} ({event.month} {event.year})")
        return True

    def bulk_save_events(self, events: Sequence[EquineEvent]) -> int:
        """Replace the whole event collection with ``events``."""
        now = self.clock()
        records = [
            (e if e.discovered_at else replace(e, discovered_at=now)).to_record()
            for e in events
        ]
        self.table.replace_all(records)
        logger.info(f"Replaced event collection with {len(records)} events")
        return len(records)

    def get_all_events(self) -> List[EquineEvent]:
        """All events ordered by year, then calendar month."""
        events = [EquineEvent.from_record(r) for r in self.table.select(order_by="year")]
        return sorted(events, key=lambda e: (e.year, _month_index(e.month)))

    def get_event_by_id(self, id: str) -> Optional[EquineEvent]:
        row = self.table.select_by_id(id)
        return EquineEvent.from_record(row) if row is not None else None

    def update_event_reminders(self, id: str, reminders: List[Reminder]) -> None:
        self.table.update(id, {"reminders": [r.to_record() for r in reminders]})

    # ===================================
    # REMINDERS
    # ===================================

    def add_reminder(
        self,
        event_id: str,
        reminder_date: str,
        note: str,
        type: ReminderType = ReminderType.EVENT_CHECK_IN
    ) -> Optional[Reminder]:
        event = self.get_event_by_id(event_id)
        if event is None:
            logger.warning(f"Event not found: {event_id}")
            return None
        reminder = reminder_ops.make_reminder(reminder_date, note, type)
        self.update_event_reminders(event_id, reminder_ops.add_reminder(event.reminders, reminder))
        return reminder

    def toggle_reminder(self, event_id: str, reminder_id: str) -> Optional[List[Reminder]]:
        event = self.get_event_by_id(event_id)
        if event is None:
            return None
        updated = reminder_ops.toggle_reminder(event.reminders, reminder_id)
        self.update_event_reminders(event_id, updated)
        return updated

    def delete_reminder(self, event_id: str, reminder_id: str) -> Optional[List[Reminder]]:
        event = self.get_event_by_id(event_id)
        if event is None:
            return None
        updated = reminder_ops.delete_reminder(event.reminders, reminder_id)
        self.update_event_reminders(event_id, updated)
        return updated
