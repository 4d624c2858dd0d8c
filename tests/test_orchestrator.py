import json
import random
import unittest
from unittest import mock

from database.event_repository import EventRepository
from database.lead_repository import LeadRepository
from database.models import Company, EquineEvent, LeadStatus, MemoryCategory, Temperature
from memory import MemoryStore, SystemEntity
from orchestration.errors import AIGatewayError
from orchestration.orchestrator import (
    BRAIN_FALLBACK,
    OUTREACH_FALLBACK,
    NovaOrchestrator,
)
from pipelines import EventDiscoveryPipeline, LeadDiscoveryPipeline, MissionSynthesisPipeline

from tests.fakes import FakeClock, FakeGateway, at, make_lead, make_mission, offline_table


class OrchestratorTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = FakeClock(at(2026, 10, 18, 9))
        self.gateway = FakeGateway()
        self.memory = MemoryStore(table=offline_table("memories"), clock=self.clock)
        self.leads = LeadRepository(
            leads_table=offline_table("leads"),
            crm_table=offline_table("crm_contacts"),
            clock=self.clock,
        )
        self.events = EventRepository(table=offline_table("events_collection"), clock=self.clock)
        self.mailer = mock.Mock()
        self.nova = NovaOrchestrator(
            gateway=self.gateway,
            memory=self.memory,
            leads=self.leads,
            events=self.events,
            mailer=self.mailer,
            clock=self.clock,
            rng=random.Random(7),
        )
        self.addCleanup(self.nova.shutdown)

    def status_log(self) -> list:
        return [e.content for e in self.memory.list_for_entity(SystemEntity.STATUS)]

    def run_once(self) -> bool:
        future = self.nova.recalibrate()
        self.assertIsNotNone(future)
        return future.result(timeout=10)


class RecalibrationTests(OrchestratorTestCase):
    def test_full_run(self) -> None:
        self.assertTrue(self.run_once())

        self.assertEqual(self.status_log(), ["Recalibration initiated.", "Recalibration complete."])
        self.assertEqual(self.nova.last_run_at, at(2026, 10, 18, 9))
        self.assertFalse(self.nova.is_refreshing())

        inbox = self.leads.get_discovery_inbox()
        self.assertEqual([l.id for l in inbox], ["lead-hamad"])
        self.assertEqual(inbox[0].scoring.overall, 75)
        self.assertTrue(inbox[0].source.startswith("Big Brain: "))

        # every target finds the same contact; only the first sighting is scored
        self.assertEqual(self.gateway.calls.count("analyze_lead_priority"), 1)
        decisions = self.memory.list_for_entity("lead-hamad")
        self.assertEqual(len(decisions), 1)
        self.assertIn("Nova Priority: 75%", decisions[0].content)

        missions = self.nova.get_daily_commands()
        self.assertEqual([m.contact_name for m in missions], ["Hamad Al Mansouri"])

    def test_concurrent_request_is_dropped(self) -> None:
        self.gateway.release.clear()
        future = self.nova.recalibrate()
        self.assertTrue(self.gateway.started.wait(timeout=5))

        self.assertTrue(self.nova.is_refreshing())
        self.assertIsNone(self.nova.recalibrate())

        self.gateway.release.set()
        self.assertTrue(future.result(timeout=10))
        self.assertEqual(self.gateway.calls.count("search_companies"), 5)
        self.assertEqual(self.gateway.calls.count("generate_daily_missions"), 1)
        self.assertFalse(self.nova.is_refreshing())
        self.assertEqual(self.status_log().count("Recalibration initiated."), 1)

        self.assertTrue(self.run_once())

    def test_failure_keeps_earlier_work(self) -> None:
        self.gateway.discover_events = mock.Mock(side_effect=AIGatewayError("quota"))

        self.assertFalse(self.run_once())
        self.assertFalse(self.nova.is_refreshing())
        self.assertIsNone(self.nova.last_run_at)
        self.assertEqual(self.status_log(), ["Recalibration initiated."])
        self.assertEqual(len(self.leads.get_discovery_inbox()), 1)
        self.assertEqual(self.nova.get_daily_commands(), [])

    def test_missions_are_cached_per_day(self) -> None:
        self.run_once()
        self.clock.advance(days=1)
        self.assertEqual(self.nova.get_daily_commands(), [])

    def test_unreadable_mission_cache(self) -> None:
        self.memory.append(SystemEntity.MISSIONS, "command", "{not json", metadata={"date": "2026-10-18"})
        self.assertEqual(self.nova.get_daily_commands(), [])
        self.clock.advance(seconds=1)
        self.memory.append(SystemEntity.MISSIONS, "command", json.dumps({"a": 1}), metadata={"date": "2026-10-18"})
        self.assertEqual(self.nova.get_daily_commands(), [])

    def test_missions_are_ranked_before_caching(self) -> None:
        self.gateway.missions = [
            make_mission("Low Guy", "X", "Medium", 99),
            make_mission("Top Guy", "Y", "Critical", 50),
        ]
        self.run_once()
        self.assertEqual([m.contact_name for m in self.nova.get_daily_commands()], ["Top Guy", "Low Guy"])


class PipelineStageTests(OrchestratorTestCase):
    def test_mission_context_marks_locked_leads(self) -> None:
        open_lead = make_lead("Sara", "Q", "Stud A", id="lead-open")
        locked_lead = make_lead("Omar", "K", "Stud B", id="lead-locked")
        self.leads.save_lead(open_lead)
        self.leads.save_lead(locked_lead)
        self.nova.record_action("lead-locked", "done")

        MissionSynthesisPipeline(self.gateway, self.memory, self.leads, clock=self.clock).run()

        lines = self.gateway.mission_context.split("\n")
        locked = next(l for l in lines if l.startswith("ID: lead-locked"))
        self.assertIn("LOCKED: Cooldown active", locked)
        opened = lines.index(next(l for l in lines if l.startswith("ID: lead-open")))
        self.assertIn("OPEN: ", lines[opened])
        self.assertTrue(lines[opened + 1].startswith("Context: Fresh relationship"))

    def test_event_target_rolls_into_next_year(self) -> None:
        rng = mock.Mock()
        rng.choice.side_effect = ["March", "Qatar", "December", "Oman"]
        stage = EventDiscoveryPipeline(self.gateway, self.events, rng=rng, clock=self.clock)
        self.assertEqual(stage.pick_target(), ("March", "Qatar", 2027))
        self.assertEqual(stage.pick_target(), ("December", "Oman", 2026))

    def test_event_stage_saves_new_events(self) -> None:
        self.gateway.events = [
            EquineEvent(id="ev-1", name="Qatar Gold Cup", year=2027, month="March", country="Qatar"),
        ]
        stage = EventDiscoveryPipeline(self.gateway, self.events, rng=random.Random(1), clock=self.clock)
        self.assertEqual(len(stage.run()), 1)
        self.assertEqual(stage.run(), [])

    def test_discovery_qualifies_only_elite_companies(self) -> None:
        self.gateway.companies.insert(0, Company(id="comp-0", name="Small Yard", relevance_score=40))
        self.gateway.qualify_company = mock.Mock(return_value={})

        stage = LeadDiscoveryPipeline(
            self.gateway, self.memory, self.leads,
            targets=[("stables", "Qatar")], companies_per_target=1,
        )
        stage.run()

        qualified = [c.args[0].id for c in self.gateway.qualify_company.call_args_list]
        self.assertEqual(qualified, ["comp-1"])

    def test_discovery_scores_only_new_contacts(self) -> None:
        self.leads.save_lead(make_lead("Hamad", "Al Mansouri", "Al Wathba Stables", id="lead-earlier"))

        stage = LeadDiscoveryPipeline(self.gateway, self.memory, self.leads, targets=[("stables", "Qatar")])
        self.assertEqual(stage.run(), [])
        self.assertNotIn("analyze_lead_priority", self.gateway.calls)


class SynchronousOperationTests(OrchestratorTestCase):
    def test_ai_failures_degrade(self) -> None:
        self.gateway.error = AIGatewayError("down")
        company = self.gateway.companies[0]

        self.assertEqual(self.nova.ask_brain("status?"), BRAIN_FALLBACK)
        self.assertEqual(self.nova.generate_outreach(make_mission("A B", "C")), OUTREACH_FALLBACK)
        self.assertEqual(self.nova.discover_companies("stables", "Qatar"), [])
        self.assertEqual(self.nova.qualify_company(company), {})
        self.assertEqual(self.nova.find_decision_makers(company), [])
        self.assertIsNone(self.nova.analyze_lead_priority(make_lead("A", "B", "C")))

    def test_pass_throughs(self) -> None:
        self.assertEqual(self.nova.ask_brain("status?"), "answer: status?")
        self.assertTrue(self.nova.generate_outreach(make_mission("A B", "C")).startswith("SUBJECT:"))
        self.assertEqual(len(self.nova.discover_companies("stables", "Qatar")), 1)

    def test_analyze_lead_priority_logs_decision(self) -> None:
        lead = make_lead("A", "B", "C", id="lead-a")
        scored = self.nova.analyze_lead_priority(lead)
        self.assertEqual(scored.scoring.overall, 75)
        self.assertEqual(scored.nova_confidence, 75)
        entry = self.memory.list_for_entity("lead-a")[0]
        self.assertEqual(entry.type, "decision")
        self.assertEqual(entry.metadata["overall"], 75)

    def test_record_action(self) -> None:
        entry = self.nova.record_action("lead-a", "Snooze")
        self.assertEqual(entry.category, MemoryCategory.ACTION)
        self.assertIn("[SNOOZE]", entry.content)
        self.assertFalse(self.nova.check_relationship_safety("lead-a").safe)
        with self.assertRaises(ValueError):
            self.nova.record_action("lead-a", "archive")

    def test_set_temperature(self) -> None:
        lead = make_lead("A", "B", "C", id="lead-a")
        self.leads.promote_to_crm(lead)
        self.nova.set_temperature("lead-a", Temperature.HOT)
        self.assertEqual(self.leads.get_lead_by_id("lead-a").temperature, Temperature.HOT)
        entry = self.memory.list_for_entity("lead-a")[0]
        self.assertEqual(entry.category, MemoryCategory.SYSTEM)
        self.assertTrue(self.nova.check_relationship_safety("lead-a").safe)

    def test_save_discovery_leads_notices(self) -> None:
        a = make_lead("A", "One", "Stud A")
        b = make_lead("B", "Two", "Stud B")
        self.leads.save_lead(a)
        self.leads.save_lead(b)

        notice = self.nova.save_discovery_leads([a.id, b.id])
        self.assertEqual((notice.level, notice.message), ("success", "2 contact(s) saved to CRM."))
        self.assertEqual(self.nova.save_discovery_leads([a.id]).level, "info")
        self.assertEqual(self.nova.save_discovery_leads([]).level, "info")

        with mock.patch.object(self.leads, "bulk_update_lead_status", side_effect=RuntimeError("boom")):
            self.assertEqual(self.nova.save_discovery_leads([a.id]).level, "error")

    def test_promote_mission(self) -> None:
        contact = self.nova.promote_mission(make_mission("Hamad Al Mansouri", "Al Wathba"))
        self.assertEqual(self.leads.get_lead_by_id(contact.id).status, LeadStatus.SAVED)
        self.assertEqual(self.memory.list_for_entity(contact.id)[0].type, "decision")

    def test_promote_event_organizer(self) -> None:
        self.events.save_event(EquineEvent(
            id="ev-1", name="Riyadh Cup", year=2027, month="February",
            country="Saudi Arabia", organizer="Jockey Club of Saudi Arabia",
        ))
        self.assertTrue(self.nova.promote_event_organizer("ev-1"))
        self.assertFalse(self.nova.promote_event_organizer("ev-1"))
        self.assertFalse(self.nova.promote_event_organizer("missing"))
        self.assertEqual(self.leads.get_discovery_inbox()[0].company_name, "Jockey Club of Saudi Arabia")

    def test_send_email_logs_only_delivered_mail(self) -> None:
        self.mailer.send.return_value = False
        self.assertFalse(self.nova.send_email("x@stud.ae", "Hi", "<p>Hi</p>", "Omar", entity_id="lead-a"))
        self.assertEqual(self.memory.list_for_entity("lead-a"), [])

        self.mailer.send.return_value = True
        self.assertTrue(self.nova.send_email("x@stud.ae", "Hi", "<p>Hi</p>", "Omar", entity_id="lead-a"))
        entry = self.memory.list_for_entity("lead-a")[0]
        self.assertEqual(entry.type, "email")
        self.assertEqual(entry.metadata["status"], "sent")
        self.mailer.send.assert_called_with("x@stud.ae", "Hi", "<p>Hi</p>")

    def test_send_email_without_mailer(self) -> None:
        self.nova.mailer = None
        self.assertFalse(self.nova.send_email("x@stud.ae", "Hi", "<p>Hi</p>", "Omar"))


if __name__ == "__main__":
    unittest.main()
