"""
🎯 DETERMINISTIC DECISION ENGINE
================================
Pure functions that gate and rank machine-generated suggestions.
No API calls, no storage, no clock of its own.

WHAT IT DECIDES:
1. Lead priority: weighted blend of the AI scoring triple
2. Relationship safety: is outbound engagement appropriate right now?
3. Mission ranking: which suggestions the operator sees, in what order

"Wait" is an ordinary answer here, not an error: every function returns a
result for any input and treats missing fields as zero/absent.
"""

import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from config.settings import settings
from database.models import (
    Company,
    LeadScoring,
    MemoryCategory,
    MemoryEntry,
    Mission,
    utcnow,
)


PRIORITY_WEIGHTS = {
    "Critical": 3,
    "High": 2,
    "Medium": 1,
}

OUTREACH_TYPE = "outreach"

TRUST_WARNING_REASON = "Negative trust signal on record. Hold outbound engagement."
OPTIMAL_WINDOW_REASON = "Optimal engagement window. No cooldown or trust flags."

DAY_SECONDS = 86400


@dataclass(frozen=True)
class SafetyVerdict:
    """Outcome of the relationship-safety check."""
    safe: bool
    reason: str
    days_since_last_action: Optional[int] = None


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _field(obj: Any, name: str, default: Any = None) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name, default)
    return getattr(obj, name, default)


def _number(value: Any) -> float:
    try:
        return float(value) if value is not None else 0.0
    except (TypeError, ValueError):
        return 0.0


# ===========================================
# LEAD PRIORITY
# ===========================================

def calculate_lead_priority(scoring: Union[LeadScoring, Mapping[str, Any], None]) -> int:
    """
    Weighted priority of a lead.

    overall = round(intent * 0.5 + authority * 0.3 + engagement * 0.2)

    Inputs are not clamped; out-of-range values just flow through the
    arithmetic. Halves round up.

    Args:
        scoring: LeadScoring or mapping with any of authority/intent/engagement

    Returns:
        Integer priority score
    """
    weights = settings.decision
    authority = _number(_field(scoring, "authority", 0)) if scoring is not None else 0.0
    intent = _number(_field(scoring, "intent", 0)) if scoring is not None else 0.0
    engagement = _number(_field(scoring, "engagement", 0)) if scoring is not None else 0.0

    return _round_half_up(
        intent * weights.intent_weight +
        authority * weights.authority_weight +
        engagement * weights.engagement_weight
    )


def filter_elite_companies(
    companies: Sequence[Company],
    threshold: Optional[float] = None
) -> List[Company]:
    """Keep companies whose relevance score is above the elite threshold."""
    if threshold is None:
        threshold = settings.decision.elite_relevance_threshold
    return [c for c in companies if (c.relevance_score or 0) > threshold]


# ===========================================
# RELATIONSHIP SAFETY
# ===========================================

def _days_between(now: datetime, then: datetime) -> int:
    return math.ceil(abs((now - then).total_seconds()) / DAY_SECONDS)


def evaluate_relationship_safety(
    memories: Sequence[MemoryEntry],
    now: Optional[datetime] = None,
    cooldown_days: Optional[int] = None
) -> SafetyVerdict:
    """
    Decide whether outbound engagement is currently safe.

    First match wins:
    1. Cooldown: the latest outreach/ACTION entry is fewer than
       ``cooldown_days`` days old
    2. Trust: any TRUST_SIGNAL entry mentions "negative"
    3. Otherwise safe

    Args:
        memories: Full timeline of one entity (any order)
        now: Reference time (defaults to current UTC time)
        cooldown_days: Override of the configured cooldown

    Returns:
        SafetyVerdict with a human-readable reason
    """
    now = now or utcnow()
    if cooldown_days is None:
        cooldown_days = settings.decision.cooldown_days

    engagements = [
        m for m in memories
        if m.type == OUTREACH_TYPE or m.category == MemoryCategory.ACTION
    ]
    if engagements:
        last = max(engagements, key=lambda m: m.timestamp)
        days = _days_between(now, last.timestamp)
        if days < cooldown_days:
            return SafetyVerdict(
                safe=False,
                reason=(
                    f"Cooldown active: last engagement {days} day(s) ago, "
                    f"minimum spacing is {cooldown_days} days."
                ),
                days_since_last_action=days,
            )
    else:
        days = None

    for m in memories:
        if m.category == MemoryCategory.TRUST_SIGNAL and "negative" in (m.content or "").lower():
            return SafetyVerdict(safe=False, reason=TRUST_WARNING_REASON, days_since_last_action=days)

    return SafetyVerdict(safe=True, reason=OPTIMAL_WINDOW_REASON, days_since_last_action=days)


# ===========================================
# MISSION RANKING
# ===========================================

def priority_weight(priority: Any) -> int:
    """Map a priority label to its bucket weight (unknown labels weigh 0)."""
    if priority is None:
        return 0
    label = priority.value if isinstance(priority, Enum) else str(priority)
    return PRIORITY_WEIGHTS.get(label, 0)


def sort_missions_by_priority(
    missions: Sequence[Union[Mission, Dict[str, Any]]],
    limit: Optional[int] = None
) -> List[Union[Mission, Dict[str, Any]]]:
    """
    Rank missions by priority bucket, then confidence, both descending.

    Ties keep their input order. The input is not modified; the result is a
    new list truncated to the visible maximum (33).
    """
    if limit is None:
        limit = settings.decision.max_visible_results

    ranked = sorted(
        missions,
        key=lambda m: (
            -priority_weight(_field(m, "priority")),
            -_number(_field(m, "confidence", 0)),
        ),
    )
    return ranked[:limit]


def explain_verdict(verdict: SafetyVerdict) -> str:
    """One-line status used in mission context and logs."""
    state = "OPEN" if verdict.safe else "LOCKED"
    return f"{state}: {verdict.reason}"
