"""
🗂️ NOVA DATA MODEL
==================
Records exchanged between the store, the decision layer and the orchestrator.

Every dataclass converts to and from the snake_case row dictionaries the
store persists. Datetimes travel as ISO-8601 strings.
"""

import re
import uuid
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


# ===========================================
# ENUMS
# ===========================================

class LeadStatus(str, Enum):
    DISCOVERED = "DISCOVERED"
    SAVED = "SAVED"
    IGNORED = "IGNORED"
    ARCHIVED = "ARCHIVED"
    ENRICHED = "Enriched"


INBOX_STATUSES = (LeadStatus.DISCOVERED, LeadStatus.ENRICHED)


class RoleType(str, Enum):
    DECISION_MAKER = "Decision Maker"
    INFLUENCER = "Influencer"
    GATEKEEPER = "Gatekeeper"
    IRRELEVANT = "Irrelevant"


class Temperature(str, Enum):
    COLD = "Cold"
    WARM = "Warm"
    HOT = "Hot"


class DealStage(str, Enum):
    DISCOVERY = "Discovery"
    EVALUATION = "Evaluation"
    TRIAL = "Trial"
    SUPPLY_DISCUSSION = "Supply discussion"
    CLOSING = "Closing / Contract"
    NONE = "None"
    SAVED = "Saved"
    STRATEGIC = "Strategic"


class MemoryCategory(str, Enum):
    ACTION = "ACTION"
    SYSTEM = "SYSTEM"
    ENGAGEMENT = "ENGAGEMENT"
    TRUST_SIGNAL = "TRUST_SIGNAL"
    CULTURAL_NOTE = "CULTURAL_NOTE"
    BUYING_CYCLE = "BUYING_CYCLE"


class ReminderType(str, Enum):
    FOLLOW_UP = "Follow-up"
    EVENT_CHECK_IN = "Event Check-in"
    MEETING = "Meeting"
    CONTRACT_REVIEW = "Contract Review"


class MissionPriority(str, Enum):
    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"


# Used where the AI did not return a reachable mailbox
PLACEHOLDER_EMAIL = "contact-via-nova@pending.local"


# ===========================================
# HELPERS
# ===========================================

def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id(prefix: str) -> str:
    """Collision-resistant id, e.g. ``lead-3f2a...``."""
    return f"{prefix}-{uuid.uuid4().hex}"


_FRACTION = re.compile(r"\.(\d+)")


def _six_digit_fraction(match: "re.Match") -> str:
    return "." + match.group(1)[:6].ljust(6, "0")


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an ISO timestamp (``Z`` suffix allowed) into an aware datetime.

    Postgres drops trailing zeros from fractional seconds
    (``09:00:00.12345+00:00``); the fraction is padded to microseconds
    before parsing.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        text = _FRACTION.sub(_six_digit_fraction, text, count=1)
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def coerce_enum(enum_cls, value, default=None):
    """Coerce a raw value into ``enum_cls``; unknown values map to ``default``."""
    if value is None or value == "":
        return default
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        return default


def _num(value: Any, default: float = 0) -> float:
    try:
        return float(value) if value is not None else default
    except (TypeError, ValueError):
        return default


# ===========================================
# RECORDS
# ===========================================

@dataclass
class LeadScoring:
    """AI-derived scoring triple plus the deterministic overall score."""
    authority: float = 0
    intent: float = 0
    engagement: float = 0
    overall: int = 0

    @classmethod
    def from_record(cls, data: Optional[Dict[str, Any]]) -> Optional["LeadScoring"]:
        if not data:
            return None
        return cls(
            authority=_num(data.get("authority")),
            intent=_num(data.get("intent")),
            engagement=_num(data.get("engagement")),
            overall=int(_num(data.get("overall"))),
        )


@dataclass
class Reminder:
    id: str
    date: str
    type: ReminderType
    note: str
    is_completed: bool = False

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "date": self.date,
            "type": self.type.value,
            "note": self.note,
            "is_completed": self.is_completed,
        }

    @classmethod
    def from_record(cls, data: Dict[str, Any]) -> "Reminder":
        return cls(
            id=data["id"],
            date=data.get("date", ""),
            type=coerce_enum(ReminderType, data.get("type"), ReminderType.FOLLOW_UP),
            note=data.get("note", ""),
            is_completed=bool(data.get("is_completed", False)),
        )


@dataclass
class Lead:
    """A person at a company, from first discovery through the CRM."""
    id: str
    first_name: str
    last_name: str
    title: str = ""
    role_type: RoleType = RoleType.INFLUENCER
    company_id: str = ""
    company_name: str = ""
    company_domain: str = ""
    email: str = PLACEHOLDER_EMAIL
    linkedin: str = ""
    whatsapp: str = ""
    whatsapp_permission: bool = False
    status: LeadStatus = LeadStatus.DISCOVERED
    deal_stage: DealStage = DealStage.DISCOVERY
    horse_category: str = ""
    horse_sub_category: str = ""
    temperature: Optional[Temperature] = None
    scoring: Optional[LeadScoring] = None
    reminders: List[Reminder] = field(default_factory=list)
    notes: str = ""
    source: str = ""
    discovered_at: Optional[datetime] = None
    saved_at: Optional[datetime] = None
    nova_confidence: Optional[float] = None
    # Derived at read time, never persisted
    is_saved: bool = False

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "title": self.title,
            "role_type": self.role_type.value,
            "company_id": self.company_id,
            "company_name": self.company_name,
            "company_domain": self.company_domain,
            "email": self.email,
            "linkedin": self.linkedin,
            "whatsapp": self.whatsapp,
            "whatsapp_permission": self.whatsapp_permission,
            "status": self.status.value,
            "deal_stage": self.deal_stage.value,
            "horse_category": self.horse_category,
            "horse_sub_category": self.horse_sub_category,
            "temperature": self.temperature.value if self.temperature else None,
            "scoring": asdict(self.scoring) if self.scoring else None,
            "reminders": [r.to_record() for r in self.reminders],
            "notes": self.notes,
            "source": self.source,
            "discovered_at": _iso(self.discovered_at),
            "saved_at": _iso(self.saved_at),
            "nova_confidence": self.nova_confidence,
        }

    @classmethod
    def from_record(cls, data: Dict[str, Any]) -> "Lead":
        return cls(
            id=data["id"],
            first_name=data.get("first_name") or "",
            last_name=data.get("last_name") or "",
            title=data.get("title") or "",
            role_type=coerce_enum(RoleType, data.get("role_type"), RoleType.INFLUENCER),
            company_id=data.get("company_id") or "",
            company_name=data.get("company_name") or "",
            company_domain=data.get("company_domain") or "",
            email=data.get("email") or PLACEHOLDER_EMAIL,
            linkedin=data.get("linkedin") or "",
            whatsapp=data.get("whatsapp") or "",
            whatsapp_permission=bool(data.get("whatsapp_permission", False)),
            status=coerce_enum(LeadStatus, data.get("status"), LeadStatus.DISCOVERED),
            deal_stage=coerce_enum(DealStage, data.get("deal_stage"), DealStage.DISCOVERY),
            horse_category=data.get("horse_category") or "",
            horse_sub_category=data.get("horse_sub_category") or "",
            temperature=coerce_enum(Temperature, data.get("temperature")),
            scoring=LeadScoring.from_record(data.get("scoring")),
            reminders=[Reminder.from_record(r) for r in data.get("reminders") or []],
            notes=data.get("notes") or "",
            source=data.get("source") or "",
            discovered_at=parse_timestamp(data.get("discovered_at")),
            saved_at=parse_timestamp(data.get("saved_at")),
            nova_confidence=data.get("nova_confidence"),
        )


def same_contact(a: Lead, b: Lead) -> bool:
    """
    Duplicate rule for CRM promotion.

    Two leads are the same person when both carry the same non-empty LinkedIn
    URL, or when first name, last name and company name all match exactly.
    """
    if a.linkedin and b.linkedin and a.linkedin == b.linkedin:
        return True
    return (
        a.first_name == b.first_name
        and a.last_name == b.last_name
        and a.company_name == b.company_name
    )


@dataclass
class Company:
    """A discovered organisation, input to qualification and contact search."""
    id: str
    name: str
    domain: str = ""
    location: str = ""
    industry: str = "Equine Industry"
    horse_category: str = ""
    horse_sub_category: str = ""
    buyer_role: str = ""
    size: str = ""
    revenue: str = ""
    relevance_score: float = 0
    intelligence: Dict[str, Any] = field(default_factory=dict)


@dataclass
class EquineEvent:
    """A market event (exhibition, cup, show, race meeting)."""
    id: str
    name: str
    year: int
    month: str
    dates: str = ""
    city: str = ""
    country: str = ""
    organizer: str = ""
    website: str = ""
    linkedin: str = ""
    email: str = ""
    category: str = ""
    reminders: List[Reminder] = field(default_factory=list)
    discovered_at: Optional[datetime] = None

    @property
    def location(self) -> str:
        return ", ".join(p for p in (self.city, self.country) if p)

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "year": self.year,
            "month": self.month,
            "dates": self.dates,
            "city": self.city,
            "country": self.country,
            "organizer": self.organizer,
            "website": self.website,
            "linkedin": self.linkedin,
            "email": self.email,
            "category": self.category,
            "reminders": [r.to_record() for r in self.reminders],
            "discovered_at": _iso(self.discovered_at),
        }

    @classmethod
    def from_record(cls, data: Dict[str, Any]) -> "EquineEvent":
        return cls(
            id=data["id"],
            name=data.get("name") or "",
            year=int(_num(data.get("year"))),
            month=data.get("month") or "",
            dates=data.get("dates") or "",
            city=data.get("city") or "",
            country=data.get("country") or "",
            organizer=data.get("organizer") or "",
            website=data.get("website") or "",
            linkedin=data.get("linkedin") or "",
            email=data.get("email") or "",
            category=data.get("category") or "",
            reminders=[Reminder.from_record(r) for r in data.get("reminders") or []],
            discovered_at=parse_timestamp(data.get("discovered_at")),
        )


@dataclass
class Mission:
    """An AI-synthesised suggested next action. Not persisted by identity."""
    contact_name: str
    role: str
    company: str
    priority: str
    explanation: str
    confidence: float = 0
    recommended_action: str = ""
    reasoning_source: str = ""

    def to_record(self) -> Dict[str, Any]:
        return {
            "contact_name": self.contact_name,
            "role": self.role,
            "company": self.company,
            "priority": self.priority,
            "explanation": self.explanation,
            "confidence": self.confidence,
            "recommended_action": self.recommended_action,
            "reasoning_source": self.reasoning_source,
        }

    @classmethod
    def from_record(cls, data: Dict[str, Any]) -> "Mission":
        # The model answers in camelCase, the cache stores snake_case
        def pick(snake: str, camel: str, default: Any = "") -> Any:
            if snake in data:
                return data[snake]
            return data.get(camel, default)

        return cls(
            contact_name=pick("contact_name", "contactName") or "",
            role=pick("role", "role") or "",
            company=pick("company", "company") or "",
            priority=pick("priority", "priority") or "",
            explanation=pick("explanation", "explanation") or "",
            confidence=_num(pick("confidence", "confidence", 0)),
            recommended_action=pick("recommended_action", "recommendedAction") or "",
            reasoning_source=pick("reasoning_source", "reasoningSource") or "",
        )


@dataclass(frozen=True)
class MemoryEntry:
    """An immutable timestamped fact about one entity."""
    id: str
    entity_id: str
    type: str
    content: str
    timestamp: datetime
    category: Optional[MemoryCategory] = None
    metadata: Optional[Dict[str, Any]] = None

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "entity_id": self.entity_id,
            "type": self.type,
            "category": self.category.value if self.category else None,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
            "metadata": self.metadata,
        }

    @classmethod
    def from_record(cls, data: Dict[str, Any]) -> "MemoryEntry":
        return cls(
            id=str(data["id"]),
            entity_id=data.get("entity_id") or "",
            type=data.get("type") or "",
            content=data.get("content") or "",
            timestamp=parse_timestamp(data.get("timestamp")) or utcnow(),
            category=coerce_enum(MemoryCategory, data.get("category")),
            metadata=data.get("metadata"),
        )
