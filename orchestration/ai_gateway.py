"""
🤖 NOVA AI GATEWAY
==================
Structured generation on Google Gemini for discovery, scoring, mission
synthesis, chat and outreach drafting.

MODELS:
- Discovery model (Flash): company/event scans, missions, outreach drafts
- Strategic model (Pro): qualification, priority scoring, free-form chat

ERRORS:
- Quota / rate-limit failures are retried 3 more times (2s, 4s, 8s)
- Anything else fails immediately as ``AIGatewayError``
- Discovery results outside the regional/vertical whitelist are discarded
"""

import json
import re
from typing import Any, Dict, List, Optional

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions
from loguru import logger
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from config.settings import (
    ALLOWED_COUNTRIES,
    ALLOWED_EQUINE_CATEGORIES,
    EQUINE_KEYWORDS,
    identity_context,
    settings,
)
from database.models import (
    PLACEHOLDER_EMAIL,
    Company,
    DealStage,
    EquineEvent,
    Lead,
    LeadStatus,
    Mission,
    RoleType,
    coerce_enum,
    new_id,
)
from orchestration.errors import AIGatewayError, QuotaExceededError


REGION_LOCKDOWN_INSTRUCTION = f"""
CRITICAL GEOGRAPHIC LOCKDOWN:
You are strictly limited to the following countries: {", ".join(ALLOWED_COUNTRIES)}.
1. Do not return any results, entities, or events from outside these countries.
2. Every entity, company, or event MUST be physically located in the requested country.
3. Do not guess, infer, or hallucinate geography.
"""

VERTICAL_LOCKDOWN_INSTRUCTION = "\n".join([
    "STRICT VERTICAL LOCKDOWN:",
    "You may ONLY return businesses in these categories:",
    *[f"{i + 1}. {c}" for i, c in enumerate(ALLOWED_EQUINE_CATEGORIES)],
    "",
    "VALIDATION RULES:",
    "1. No generic agriculture, logistics or trading firms without a primary equine focus.",
    "2. No livestock or pet generalists unless they run a major dedicated equine division.",
    "3. Decision makers only: Managing Directors, Horse Operations Managers, Stable Owners, Royal Equine Officials.",
])

_FENCE_PATTERN = re.compile(r"```(?:json)?", re.IGNORECASE)


# ===========================================
# HELPERS
# ===========================================

def is_quota_error(exc: BaseException) -> bool:
    """True for quota / rate-limit failures, the only retryable kind."""
    if isinstance(exc, (google_exceptions.ResourceExhausted, google_exceptions.TooManyRequests)):
        return True
    text = str(exc).lower()
    return any(marker in text for marker in ("429", "quota", "rate limit", "resource_exhausted"))


def _log_quota_retry(retry_state) -> None:
    wait = retry_state.next_action.sleep if retry_state.next_action else 0
    logger.warning(
        f"⏳ Gemini quota hit (attempt {retry_state.attempt_number}), retrying in {wait:.0f}s"
    )


def parse_json_response(text: str) -> Any:
    """Parse model output as JSON, tolerating markdown code fences."""
    cleaned = _FENCE_PATTERN.sub("", text or "").strip()
    if not cleaned:
        raise AIGatewayError("Empty response from model")
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise AIGatewayError(f"Unparsable model response: {e}") from e


def _mentions_country(value: str) -> bool:
    text = (value or "").lower()
    return any(
        re.search(rf"\b{re.escape(country.lower())}\b", text)
        for country in ALLOWED_COUNTRIES
    )


def validate_regional_and_vertical(results: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Keep only results inside the whitelist.

    A result survives when its country/location names an allowed country,
    its category is an allowed equine category, and its name or category
    contains an equine keyword.
    """
    kept = []
    for item in results:
        if not isinstance(item, dict):
            continue
        where = f"{item.get('country') or ''} {item.get('location') or ''}"
        if not _mentions_country(where):
            continue
        category = item.get("horseCategory") or ""
        if category not in ALLOWED_EQUINE_CATEGORIES:
            continue
        scan = f"{item.get('name') or ''} {category}".lower()
        if not any(kw in scan for kw in EQUINE_KEYWORDS):
            continue
        kept.append(item)

    dropped = len(results) - len(kept)
    if dropped:
        logger.debug(f"Whitelist discarded {dropped} of {len(results)} results")
    return kept


def _items(data: Any, key: str) -> List[Any]:
    """Accept either ``{"key": [...]}`` or a bare list."""
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        return data.get(key) or []
    return []


def _score(data: Dict[str, Any], *keys: str) -> float:
    for key in keys:
        if data.get(key) is not None:
            try:
                return float(data[key])
            except (TypeError, ValueError):
                return 0.0
    return 0.0


# ===========================================
# GATEWAY
# ===========================================

class GeminiGateway:
    """
    Gemini-backed AI collaborator.

    Usage:
        gateway = GeminiGateway()

        companies = gateway.search_companies("royal stables", "Qatar")
        contacts = gateway.find_decision_makers(companies[0])
        reply = gateway.ask("Which Qatari stables import feed from Europe?")
    """

    def __init__(self, api_key: Optional[str] = None):
        self.api_key = api_key if api_key is not None else settings.api.gemini_api_key
        self.discovery_model = settings.ai.discovery_model
        self.strategic_model = settings.ai.strategic_model

        if self.api_key:
            genai.configure(api_key=self.api_key)
            logger.info("✅ Gemini API initialized")
            logger.info(f"   Discovery model: {self.discovery_model}")
            logger.info(f"   Strategic model: {self.strategic_model}")
        else:
            logger.warning("⚠️ GEMINI_API_KEY not set - AI calls will fail")

    # ===================================
    # TRANSPORT
    # ===================================

    def _invoke_model(
        self,
        model_name: str,
        prompt: str,
        system_instruction: str,
        json_mode: bool
    ) -> str:
        """Single raw call to Gemini. Returns the response text."""
        if not self.api_key:
            raise AIGatewayError("GEMINI_API_KEY not set")

        model = genai.GenerativeModel(model_name, system_instruction=system_instruction)
        config = {"response_mime_type": "application/json"} if json_mode else None
        response = model.generate_content(prompt, generation_config=config)
        return response.text or ""

    @retry(
        retry=retry_if_exception(is_quota_error),
        stop=stop_after_attempt(settings.ai.quota_retries + 1),
        wait=wait_exponential(multiplier=settings.ai.quota_backoff_seconds, max=60),
        before_sleep=_log_quota_retry,
        reraise=True,
    )
    def _call_with_retry(
        self,
        model_name: str,
        prompt: str,
        system_instruction: str,
        json_mode: bool
    ) -> str:
        return self._invoke_model(model_name, prompt, system_instruction, json_mode)

    def _generate(
        self,
        prompt: str,
        system_instruction: str,
        model: Optional[str] = None,
        json_mode: bool = False
    ) -> str:
        """Call the model, classifying failures into gateway errors."""
        model_name = model or self.discovery_model
        try:
            return self._call_with_retry(model_name, prompt, system_instruction, json_mode)
        except AIGatewayError:
            raise
        except Exception as e:
            if is_quota_error(e):
                logger.error(f"❌ Gemini quota exhausted after retries: {e}")
                raise QuotaExceededError(str(e)) from e
            logger.error(f"❌ Gemini error: {e}")
            raise AIGatewayError(str(e)) from e

    def _generate_json(
        self,
        prompt: str,
        system_instruction: str,
        model: Optional[str] = None
    ) -> Any:
        return parse_json_response(
            self._generate(prompt, system_instruction, model=model, json_mode=True)
        )

    # ===================================
    # DISCOVERY
    # ===================================

    def search_companies(self, keyword: str, location: str) -> List[Company]:
        """List high-value equine companies for ``keyword`` in ``location``."""
        prompt = f"""
Perform a market intelligence scan.
Task: Identify the top 20 high-value companies and stakeholders for "{keyword}" in the equine industry in {location}.

{REGION_LOCKDOWN_INSTRUCTION}
{VERTICAL_LOCKDOWN_INSTRUCTION}

For each company, provide:
- Accurate legal name
- Corporate domain
- Physical headquarters (City, Country)
- Industry segment (MUST be one of the allowed horse categories)
- Strategic relevance score (0-100)
- Estimated revenue or market cap category
- Key stakeholder role (decision makers only)

Output JSON format:
{{ "results": [{{ "name": "...", "domain": "...", "location": "...", "horseCategory": "...", "horseSubCategory": "...", "buyerRole": "...", "size": "...", "relevanceScore": 85, "revenue": "..." }}] }}

Identity Context: {identity_context()}
"""
        data = self._generate_json(
            prompt,
            f"You are the Nova regional and vertical scanner. Horse business focus is mandatory. Lockdown is active for {location}.",
        )
        results = validate_regional_and_vertical(_items(data, "results"))

        return [
            Company(
                id=new_id("comp"),
                name=c.get("name") or "",
                domain=c.get("domain") or "",
                location=c.get("location") or location,
                horse_category=c.get("horseCategory") or "",
                horse_sub_category=c.get("horseSubCategory") or "",
                buyer_role=c.get("buyerRole") or "",
                size=c.get("size") or "",
                revenue=c.get("revenue") or "",
                relevance_score=_score(c, "relevanceScore"),
            )
            for c in results
        ]

    def qualify_company(self, company: Company) -> Dict[str, Any]:
        """Deep audit of one company: score, buying focus, capacity, summary."""
        prompt = f"""
Execute a deep equine audit for {company.name} ({company.horse_sub_category or company.horse_category}).
Estimate seasonal demand in {company.location}.

{REGION_LOCKDOWN_INSTRUCTION}

Output JSON Object:
{{ "companyScore": 0-100, "buyingFocus": "...", "stableCapacity": "...", "intelligenceSummary": "..." }}
"""
        data = self._generate_json(
            prompt,
            "You are the Nova qualification analyst for the Middle Eastern equine sector.",
            model=self.strategic_model,
        )
        return data if isinstance(data, dict) else {}

    def find_decision_makers(self, company: Company) -> List[Lead]:
        """Identify owners, GMs and vets at ``company``."""
        prompt = f"""
Identify decision makers at {company.name} ({company.location}).
Focus on Owners, General Managers, Horse Operations Managers and Head Vets.

{VERTICAL_LOCKDOWN_INSTRUCTION}

Output JSON Object:
{{ "contacts": [{{ "firstName": "...", "lastName": "...", "title": "...", "linkedin": "...", "roleType": "Decision Maker|Influencer|Gatekeeper|Irrelevant" }}] }}
"""
        data = self._generate_json(
            prompt,
            "You are the Nova stakeholder mapper. Return real, verifiable people only.",
        )

        leads = []
        for c in _items(data, "contacts"):
            if not isinstance(c, dict) or not (c.get("firstName") or c.get("lastName")):
                continue
            leads.append(Lead(
                id=new_id("lead"),
                first_name=c.get("firstName") or "",
                last_name=c.get("lastName") or "",
                title=c.get("title") or "",
                role_type=coerce_enum(RoleType, c.get("roleType"), RoleType.INFLUENCER),
                company_id=company.id,
                company_name=company.name,
                company_domain=company.domain,
                email=PLACEHOLDER_EMAIL,
                linkedin=c.get("linkedin") or "",
                status=LeadStatus.DISCOVERED,
                deal_stage=DealStage.DISCOVERY,
                horse_category=company.horse_category,
                horse_sub_category=company.horse_sub_category,
            ))
        return leads

    def analyze_lead_priority(self, lead: Lead, memory_context: str) -> Dict[str, Any]:
        """
        Score authority / intent / engagement for one lead.

        Returns:
            Dict with authority, intent, engagement, explanation,
            recommended_action and reasoning_source
        """
        prompt = f"""
Strategic analysis of {lead.full_name}, {lead.title} at {lead.company_name}.
Sector: {lead.horse_sub_category or lead.horse_category}
History: {memory_context}

OPERATIONAL RULES:
1. AUTHORITY: High score for owners and heads of royal/government programs.
2. INTENT: Boost the score if active racing/competition signals appear in the history.
3. Elite operations rank above supply/trade.

Output JSON Object:
{{ "horseAuthorityScore": 0-100, "horseIntentScore": 0-100, "horseEngagementScore": 0-100, "recommendedAction": "email|linkedin|wait|pause|close", "explanation": "...", "reasoningSource": "..." }}
"""
        data = self._generate_json(
            prompt,
            "You are the Nova strategic brain. Evaluate trust and intent within the Middle Eastern equine sector.",
            model=self.strategic_model,
        )
        if not isinstance(data, dict):
            data = {}
        return {
            "authority": _score(data, "horseAuthorityScore", "authority"),
            "intent": _score(data, "horseIntentScore", "intent"),
            "engagement": _score(data, "horseEngagementScore", "engagement"),
            "recommended_action": data.get("recommendedAction") or "wait",
            "explanation": data.get("explanation") or "",
            "reasoning_source": data.get("reasoningSource") or "",
        }

    def discover_events(self, month: str, country: str, year: int) -> List[EquineEvent]:
        """Find equestrian events in ``country`` during ``month`` ``year``."""
        prompt = f"""
Find high-value equestrian events (exhibitions, cups, shows, racing events) taking place in {country} during {month} {year}.

{REGION_LOCKDOWN_INSTRUCTION}

Output JSON format:
{{ "events": [{{ "name": "...", "year": {year}, "month": "{month}", "dates": "...", "city": "...", "country": "{country}", "organizer": "...", "website": "...", "linkedin": "...", "email": "...", "category": "..." }}] }}

Identity Context: {identity_context()}
"""
        data = self._generate_json(
            prompt,
            "You are the Nova regional event discovery engine. Equine only. Middle East only.",
        )

        events = []
        for e in _items(data, "events"):
            if not isinstance(e, dict) or not e.get("name"):
                continue
            if not _mentions_country(f"{e.get('country') or ''} {e.get('city') or ''}"):
                continue
            try:
                event_year = int(e.get("year") or year)
            except (TypeError, ValueError):
                event_year = year
            events.append(EquineEvent(
                id=new_id("event"),
                name=e["name"],
                year=event_year,
                month=e.get("month") or month,
                dates=e.get("dates") or "",
                city=e.get("city") or "",
                country=e.get("country") or country,
                organizer=e.get("organizer") or "",
                website=e.get("website") or "",
                linkedin=e.get("linkedin") or "",
                email=e.get("email") or "",
                category=e.get("category") or "",
            ))
        return events

    # ===================================
    # MISSIONS, CHAT, OUTREACH
    # ===================================

    def generate_daily_missions(self, context: str, limit: int) -> List[Mission]:
        """Synthesise up to ``limit`` missions from the lead context lines."""
        prompt = f"""
Generate {limit} missions from this context:
{context}

Leads marked LOCKED must not receive outreach today; suggest waiting or research instead.

{REGION_LOCKDOWN_INSTRUCTION}

Output JSON Object with missions array:
{{ "missions": [{{ "contactName": "...", "role": "...", "company": "...", "priority": "Critical|High|Medium", "explanation": "...", "reasoningSource": "...", "confidence": 0-100, "recommendedAction": "..." }}] }}
"""
        data = self._generate_json(
            prompt,
            "You are Mission Control. Optimize engagement across regional equine relationships.",
        )
        return [
            Mission.from_record(m)
            for m in _items(data, "missions")
            if isinstance(m, dict)
        ]

    def ask(self, prompt: str) -> str:
        """Free-form strategic question."""
        system = (
            "You are the Nova strategic brain. Answer complex queries with deep logic, "
            "restricted to Middle East equine market dynamics. "
            f"{REGION_LOCKDOWN_INSTRUCTION} {VERTICAL_LOCKDOWN_INSTRUCTION} Owner: {identity_context()}"
        )
        return self._generate(prompt, system, model=self.strategic_model)

    def draft_outreach(self, mission: Mission) -> str:
        """Draft an outreach e-mail (subject + body) for a mission."""
        ident = settings.identity
        prompt = f"""
Draft a high-status, relationship-focused outreach email from {ident.full_name}, {ident.role} at {ident.company_name} (based in {ident.location}),
to {mission.contact_name} ({mission.role} at {mission.company}).

Focus on: {mission.recommended_action}
Context: {mission.explanation}

Respect Middle Eastern cultural pacing. Include a professional signature with website: {ident.website}
Output format:
SUBJECT: [subject line]
BODY:
[email body]
"""
        system = (
            "You are the Nova outreach engine. Professional and culturally precise communication "
            f"for the Arab equine region. Owner: {identity_context()}"
        )
        return self._generate(prompt, system)
