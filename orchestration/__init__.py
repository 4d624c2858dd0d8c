"""
🤖 NOVA ORCHESTRATION
=====================
Decision logic, AI access and outbound delivery.

Components:
- decision_engine: Deterministic priority, safety and mission ranking
- GeminiGateway: Every AI call, with quota retry and region/vertical filtering
- ResendMailer: Outgoing e-mail

The NovaOrchestrator lives in ``orchestration.orchestrator`` and is not
re-exported here, since it depends on ``pipelines`` which in turn depends
on this package.

Usage:
    from orchestration import GeminiGateway, calculate_lead_priority
    from orchestration.orchestrator import NovaOrchestrator

    nova = NovaOrchestrator(gateway=GeminiGateway())
    nova.recalibrate()
"""

from .ai_gateway import GeminiGateway
from .decision_engine import (
    SafetyVerdict,
    calculate_lead_priority,
    evaluate_relationship_safety,
    filter_elite_companies,
    sort_missions_by_priority,
)
from .errors import AIGatewayError, NovaError, QuotaExceededError
from .mailer import ResendMailer

__all__ = [
    "GeminiGateway",
    "SafetyVerdict",
    "calculate_lead_priority",
    "evaluate_relationship_safety",
    "filter_elite_companies",
    "sort_missions_by_priority",
    "AIGatewayError",
    "NovaError",
    "QuotaExceededError",
    "ResendMailer",
]
