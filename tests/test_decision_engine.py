import unittest
from datetime import timedelta

from database.models import Company, LeadScoring, MemoryCategory, MemoryEntry
from orchestration.decision_engine import (
    OPTIMAL_WINDOW_REASON,
    TRUST_WARNING_REASON,
    SafetyVerdict,
    calculate_lead_priority,
    evaluate_relationship_safety,
    explain_verdict,
    filter_elite_companies,
    priority_weight,
    sort_missions_by_priority,
)

from tests.fakes import at, make_mission


NOW = at(2026, 3, 20)


def entry(days_ago: float, type: str = "note", category=None, content: str = "x") -> MemoryEntry:
    return MemoryEntry(
        id=f"mem-{days_ago}-{type}",
        entity_id="lead-1",
        type=type,
        content=content,
        timestamp=NOW - timedelta(days=days_ago),
        category=category,
    )


class LeadPriorityTests(unittest.TestCase):
    def test_weighted_sum(self) -> None:
        self.assertEqual(calculate_lead_priority({"intent": 80, "authority": 60, "engagement": 50}), 68)
        self.assertEqual(calculate_lead_priority({"authority": 80, "intent": 60, "engagement": 40}), 62)

    def test_accepts_scoring_record(self) -> None:
        self.assertEqual(calculate_lead_priority(LeadScoring(authority=100, intent=100, engagement=100)), 100)

    def test_halves_round_up(self) -> None:
        self.assertEqual(calculate_lead_priority({"intent": 1}), 1)
        self.assertEqual(calculate_lead_priority({"intent": 3}), 2)

    def test_missing_components_count_as_zero(self) -> None:
        self.assertEqual(calculate_lead_priority({"authority": 50}), 15)
        self.assertEqual(calculate_lead_priority({"intent": 100}), 50)
        self.assertEqual(calculate_lead_priority({}), 0)
        self.assertEqual(calculate_lead_priority(None), 0)

    def test_out_of_range_inputs_are_not_clamped(self) -> None:
        self.assertEqual(calculate_lead_priority({"intent": 200}), 100)
        self.assertEqual(calculate_lead_priority({"intent": -10}), -5)


class EliteFilterTests(unittest.TestCase):
    def test_strictly_above_threshold(self) -> None:
        companies = [
            Company(id="a", name="A", relevance_score=75),
            Company(id="b", name="B", relevance_score=76),
            Company(id="c", name="C", relevance_score=10),
        ]
        self.assertEqual([c.id for c in filter_elite_companies(companies)], ["b"])


class RelationshipSafetyTests(unittest.TestCase):
    def test_empty_history_is_safe(self) -> None:
        verdict = evaluate_relationship_safety([], now=NOW)
        self.assertEqual(verdict, SafetyVerdict(True, OPTIMAL_WINDOW_REASON, None))

    def test_recent_outreach_locks(self) -> None:
        verdict = evaluate_relationship_safety([entry(3, type="outreach")], now=NOW)
        self.assertFalse(verdict.safe)
        self.assertEqual(verdict.days_since_last_action, 3)
        self.assertIn("Cooldown active", verdict.reason)
        self.assertIn("3", verdict.reason)

    def test_action_category_counts_as_engagement(self) -> None:
        verdict = evaluate_relationship_safety([entry(1, category=MemoryCategory.ACTION)], now=NOW)
        self.assertFalse(verdict.safe)

    def test_only_latest_engagement_matters(self) -> None:
        memories = [entry(30, type="outreach"), entry(2, type="outreach")]
        self.assertEqual(evaluate_relationship_safety(memories, now=NOW).days_since_last_action, 2)

    def test_cooldown_boundary(self) -> None:
        self.assertTrue(evaluate_relationship_safety([entry(7, type="outreach")], now=NOW).safe)
        self.assertFalse(evaluate_relationship_safety([entry(5.5, type="outreach")], now=NOW).safe)

    def test_partial_days_round_up(self) -> None:
        verdict = evaluate_relationship_safety([entry(6.1, type="outreach")], now=NOW)
        self.assertEqual(verdict.days_since_last_action, 7)
        self.assertTrue(verdict.safe)

    def test_old_outreach_is_safe_and_reports_days(self) -> None:
        verdict = evaluate_relationship_safety([entry(10, type="outreach")], now=NOW)
        self.assertTrue(verdict.safe)
        self.assertEqual(verdict.days_since_last_action, 10)

    def test_other_types_do_not_start_cooldown(self) -> None:
        memories = [entry(1, type="decision", category=MemoryCategory.SYSTEM)]
        self.assertTrue(evaluate_relationship_safety(memories, now=NOW).safe)

    def test_negative_trust_signal_locks(self) -> None:
        memories = [entry(200, category=MemoryCategory.TRUST_SIGNAL, content="NEGATIVE: unpaid invoice")]
        verdict = evaluate_relationship_safety(memories, now=NOW)
        self.assertEqual(verdict, SafetyVerdict(False, TRUST_WARNING_REASON, None))

    def test_positive_trust_signal_is_safe(self) -> None:
        memories = [entry(5, category=MemoryCategory.TRUST_SIGNAL, content="Very positive visit")]
        self.assertTrue(evaluate_relationship_safety(memories, now=NOW).safe)

    def test_trust_veto_outside_cooldown_in_any_order(self) -> None:
        action = entry(10, category=MemoryCategory.ACTION)
        trust = entry(40, category=MemoryCategory.TRUST_SIGNAL, content="Negative outcome at Doha tender")
        for memories in ([action, trust], [trust, action]):
            verdict = evaluate_relationship_safety(memories, now=NOW)
            self.assertFalse(verdict.safe)
            self.assertEqual(verdict.reason, TRUST_WARNING_REASON)
            self.assertEqual(verdict.days_since_last_action, 10)

    def test_cooldown_wins_over_trust(self) -> None:
        memories = [
            entry(50, category=MemoryCategory.TRUST_SIGNAL, content="negative feedback"),
            entry(2, type="outreach"),
        ]
        verdict = evaluate_relationship_safety(memories, now=NOW)
        self.assertFalse(verdict.safe)
        self.assertIn("Cooldown active", verdict.reason)

    def test_custom_cooldown(self) -> None:
        self.assertTrue(evaluate_relationship_safety([entry(3, type="outreach")], now=NOW, cooldown_days=2).safe)

    def test_explain_verdict(self) -> None:
        self.assertEqual(explain_verdict(SafetyVerdict(True, "ok")), "OPEN: ok")
        self.assertEqual(explain_verdict(SafetyVerdict(False, "no")), "LOCKED: no")


class MissionRankingTests(unittest.TestCase):
    def test_priority_then_confidence(self) -> None:
        missions = [
            make_mission("A", "X", "Medium", 99),
            make_mission("B", "X", "Critical", 10),
            make_mission("C", "X", "High", 50),
            make_mission("D", "X", "Critical", 70),
            make_mission("E", "X", "Low", 100),
        ]
        ranked = sort_missions_by_priority(missions)
        self.assertEqual([m.contact_name for m in ranked], ["D", "B", "C", "A", "E"])

    def test_reference_ordering(self) -> None:
        missions = [
            {"priority": "Medium", "confidence": 90},
            {"priority": "Critical", "confidence": 10},
            {"priority": "High", "confidence": 50},
            {"priority": "High", "confidence": 80},
        ]
        ranked = sort_missions_by_priority(missions)
        self.assertEqual(
            [(m["priority"], m["confidence"]) for m in ranked],
            [("Critical", 10), ("High", 80), ("High", 50), ("Medium", 90)],
        )
        self.assertIsNot(ranked, missions)
        self.assertEqual(missions[0]["priority"], "Medium")

    def test_ties_keep_input_order(self) -> None:
        missions = [make_mission(name, "X", "High", 60) for name in "PQRS"]
        self.assertEqual([m.contact_name for m in sort_missions_by_priority(missions)], list("PQRS"))

    def test_truncates_and_leaves_input_alone(self) -> None:
        missions = [make_mission(str(i), "X", "Medium", i) for i in range(40)]
        before = list(missions)
        ranked = sort_missions_by_priority(missions)
        self.assertEqual(len(ranked), 33)
        self.assertEqual(ranked[0].contact_name, "39")
        self.assertEqual(missions, before)

    def test_accepts_plain_dicts(self) -> None:
        ranked = sort_missions_by_priority([
            {"priority": "High", "confidence": 1},
            {"priority": "Critical", "confidence": 1},
        ])
        self.assertEqual(ranked[0]["priority"], "Critical")

    def test_unknown_priority_weighs_zero(self) -> None:
        self.assertEqual(priority_weight("Urgent"), 0)
        self.assertEqual(priority_weight(None), 0)
        self.assertEqual(priority_weight("Critical"), 3)


if __name__ == "__main__":
    unittest.main()
