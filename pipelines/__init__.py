"""
🔧 NOVA RECALIBRATION PIPELINES
===============================
The three stages of a recalibration run, in order.

Each pipeline:
- Has a single responsibility
- Takes its collaborators in the constructor
- Exposes run() and lets failures propagate to the orchestrator

Usage:
    from pipelines import LeadDiscoveryPipeline, EventDiscoveryPipeline, MissionSynthesisPipeline

    LeadDiscoveryPipeline(gateway, memory, leads).run()
    EventDiscoveryPipeline(gateway, events).run()
    missions = MissionSynthesisPipeline(gateway, memory, leads).run()
"""

from .lead_discovery import LeadDiscoveryPipeline, log_priority_decision, score_lead
from .event_discovery import EventDiscoveryPipeline
from .mission_synthesis import MissionSynthesisPipeline, mission_date_key

__all__ = [
    "LeadDiscoveryPipeline",
    "EventDiscoveryPipeline",
    "MissionSynthesisPipeline",
    "log_priority_decision",
    "mission_date_key",
    "score_lead",
]
