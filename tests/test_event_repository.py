import unittest
from datetime import date

from database import reminders as reminder_ops
from database.event_repository import EVENTS_CATEGORY, EventRepository, organizer_as_lead
from database.models import EquineEvent, ReminderType, RoleType
from database.store import ResilientTable

from tests.fakes import FakeClock, FakeRemote, at, offline_table


def make_event(id: str, name: str, year: int, month: str, website: str = "", **kwargs) -> EquineEvent:
    return EquineEvent(id=id, name=name, year=year, month=month, website=website, **kwargs)


class EventRepositoryTests(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = FakeClock(at(2026, 2, 1))
        self.events = EventRepository(table=offline_table("events_collection"), clock=self.clock)

    def test_save_dedups_on_id_and_website(self) -> None:
        cup = make_event("ev-1", "Dubai World Cup", 2026, "March", "https://dubaiworldcup.com")
        self.assertTrue(self.events.save_event(cup))
        self.assertFalse(self.events.save_event(cup))
        self.assertFalse(self.events.save_event(
            make_event("ev-2", "DWC Night", 2026, "March", "https://dubaiworldcup.com")
        ))
        self.assertTrue(self.events.save_event(make_event("ev-3", "Doha Show", 2026, "March")))
        self.assertTrue(self.events.save_event(make_event("ev-4", "Riyadh Cup", 2026, "February")))

    def test_save_stamps_discovery_time(self) -> None:
        self.events.save_event(make_event("ev-1", "Show", 2026, "May"))
        self.assertEqual(self.events.get_event_by_id("ev-1").discovered_at, at(2026, 2, 1))

    def test_calendar_order(self) -> None:
        for ev in (
            make_event("a", "A", 2027, "January"),
            make_event("b", "B", 2026, "December"),
            make_event("c", "C", 2026, "March"),
            make_event("d", "D", 2026, "february"),
        ):
            self.events.save_event(ev)
        self.assertEqual([e.id for e in self.events.get_all_events()], ["d", "c", "b", "a"])

    def test_bulk_save_replaces_collection(self) -> None:
        remote = FakeRemote()
        events = EventRepository(table=ResilientTable("events_collection", remote=remote), clock=self.clock)
        events.save_event(make_event("old", "Old", 2025, "May"))
        self.assertEqual(events.bulk_save_events([make_event("new", "New", 2026, "June")]), 1)
        self.assertEqual([e.id for e in events.get_all_events()], ["new"])
        self.assertEqual(list(remote.tables["events_collection"]), ["new"])

    def test_bulk_save_replaces_collection_when_remote_clear_fails(self) -> None:
        remote = FakeRemote()
        remote.tables["events_collection"] = {
            "old": make_event("old", "Old", 2025, "May").to_record(),
        }
        remote.fail_writes = True
        events = EventRepository(table=ResilientTable("events_collection", remote=remote), clock=self.clock)

        events.bulk_save_events([make_event("new", "New", 2026, "June")])
        self.assertEqual([e.id for e in events.get_all_events()], ["new"])
        self.assertIsNone(events.get_event_by_id("old"))

    def test_reminder_lifecycle(self) -> None:
        self.events.save_event(make_event("ev-1", "Show", 2026, "May"))
        reminder = self.events.add_reminder("ev-1", "2026-04-20", "Book stand")
        self.assertEqual(reminder.type, ReminderType.EVENT_CHECK_IN)

        toggled = self.events.toggle_reminder("ev-1", reminder.id)
        self.assertTrue(toggled[0].is_completed)
        self.assertEqual(self.events.delete_reminder("ev-1", reminder.id), [])
        self.assertIsNone(self.events.add_reminder("missing", "2026-04-20", "x"))


class OrganizerLeadTests(unittest.TestCase):
    def test_organizer_becomes_decision_maker(self) -> None:
        event = make_event(
            "ev-1", "Sharjah Arabian Horse Show", 2026, "April", "https://sahs.ae",
            dates="10-12", city="Sharjah", country="United Arab Emirates", organizer="Sharjah Equestrian Club",
        )
        lead = organizer_as_lead(event)
        self.assertEqual(lead.id, "lead-organizer-ev-1")
        self.assertEqual(lead.first_name, "Sharjah Equestrian Club")
        self.assertEqual(lead.company_name, "Sharjah Equestrian Club")
        self.assertEqual(lead.role_type, RoleType.DECISION_MAKER)
        self.assertEqual(lead.horse_category, EVENTS_CATEGORY)
        self.assertIn("10-12 April 2026", lead.notes)
        self.assertIn("Sharjah, United Arab Emirates", lead.notes)


class ReminderHelperTests(unittest.TestCase):
    def test_follow_up_date(self) -> None:
        reminder = reminder_ops.follow_up_in(7, "Call back", today=date(2026, 12, 28))
        self.assertEqual(reminder.date, "2027-01-04")
        self.assertEqual(reminder.type, ReminderType.FOLLOW_UP)

    def test_helpers_do_not_mutate(self) -> None:
        first = reminder_ops.make_reminder("2026-01-01", "a")
        reminders = [first]
        added = reminder_ops.add_reminder(reminders, reminder_ops.make_reminder(date(2026, 1, 2), "b"))
        self.assertEqual(len(reminders), 1)
        self.assertEqual(added[1].date, "2026-01-02")

        toggled = reminder_ops.toggle_reminder(added, first.id)
        self.assertFalse(first.is_completed)
        self.assertTrue(toggled[0].is_completed)
        self.assertFalse(toggled[1].is_completed)

        self.assertEqual(reminder_ops.delete_reminder(toggled, first.id), [toggled[1]])


if __name__ == "__main__":
    unittest.main()
