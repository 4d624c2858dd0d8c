"""
⚙️ NOVA INTELLIGENCE SETTINGS
=============================
Central configuration for the store, the AI gateway and the decision layer.
Loads values from environment variables with sensible defaults.
"""

from pathlib import Path
from typing import List, Tuple
from pydantic_settings import BaseSettings
from pydantic import Field
from dotenv import load_dotenv

# Load .env file from project root
PROJECT_ROOT = Path(__file__).parent.parent
ENV_FILE = PROJECT_ROOT / ".env"
if ENV_FILE.exists():
    load_dotenv(ENV_FILE)
else:
    # Try config directory
    load_dotenv(PROJECT_ROOT / "config" / ".env")


class DatabaseSettings(BaseSettings):
    """Supabase database configuration."""
    supabase_url: str = Field(default="", alias="SUPABASE_URL")
    supabase_key: str = Field(default="", alias="SUPABASE_KEY")

    @property
    def is_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)


class APISettings(BaseSettings):
    """API keys for external services."""
    gemini_api_key: str = Field(default="", alias="GEMINI_API_KEY")
    resend_api_key: str = Field(default="", alias="RESEND_API_KEY")
    sender_email: str = Field(default="info@nobelspiritlabs.store", alias="SENDER_EMAIL")


class AISettings(BaseSettings):
    """AI model configuration."""
    discovery_model: str = Field(
        default="gemini-3-flash-preview",
        alias="GEMINI_DISCOVERY_MODEL"
    )
    strategic_model: str = Field(
        default="gemini-3-pro-preview",
        alias="GEMINI_STRATEGIC_MODEL"
    )
    # Extra attempts after the first call, quota errors only
    quota_retries: int = Field(default=3, alias="AI_QUOTA_RETRIES")
    quota_backoff_seconds: float = Field(default=2.0, alias="AI_QUOTA_BACKOFF_SECONDS")


class DecisionSettings(BaseSettings):
    """Deterministic decision layer thresholds and weights."""
    intent_weight: float = Field(default=0.5, alias="WEIGHT_INTENT")
    authority_weight: float = Field(default=0.3, alias="WEIGHT_AUTHORITY")
    engagement_weight: float = Field(default=0.2, alias="WEIGHT_ENGAGEMENT")
    cooldown_days: int = Field(default=7, alias="COOLDOWN_DAYS")
    decay_window_days: int = Field(default=90, alias="DECAY_WINDOW_DAYS")
    max_visible_results: int = Field(default=33, alias="MAX_VISIBLE_RESULTS")
    elite_relevance_threshold: int = Field(default=75, alias="ELITE_RELEVANCE_THRESHOLD")

    def validate_weights(self) -> bool:
        """Ensure priority weights sum to 1.0."""
        total = self.intent_weight + self.authority_weight + self.engagement_weight
        return abs(total - 1.0) < 0.001


class PipelineSettings(BaseSettings):
    """Background recalibration configuration."""
    companies_per_target: int = Field(default=3, alias="COMPANIES_PER_TARGET")
    inbox_sample_size: int = Field(default=20, alias="INBOX_SAMPLE_SIZE")
    recent_memory_limit: int = Field(default=100, alias="RECENT_MEMORY_LIMIT")
    follow_up_days: int = Field(default=7, alias="FOLLOW_UP_DAYS")


class IdentitySettings(BaseSettings):
    """The operator every outbound message is signed by."""
    full_name: str = Field(default="Walid Kenawy", alias="OPERATOR_NAME")
    role: str = Field(default="Director", alias="OPERATOR_ROLE")
    company_name: str = Field(default="ONE DIRECTION sp. z o.o.", alias="OPERATOR_COMPANY")
    address: str = Field(
        default="Gagarina 3/5/7 m47, 26-600 Radom, Poland",
        alias="OPERATOR_ADDRESS"
    )
    krs: str = Field(default="0000718357", alias="OPERATOR_KRS")
    vat: str = Field(default="PL7962982725", alias="OPERATOR_VAT")
    eori: str = Field(default="PL79629827250000", alias="OPERATOR_EORI")
    website: str = Field(default="https://nobelspiritlabs.store", alias="OPERATOR_WEBSITE")
    email: str = Field(default="info@nobelspiritlabs.store", alias="OPERATOR_EMAIL")
    phone: str = Field(default="+48 739 256 482", alias="OPERATOR_PHONE")
    location: str = Field(default="Warsaw, Poland", alias="OPERATOR_LOCATION")


class Settings:
    """
    Master settings class that combines all configuration.

    Usage:
        from config.settings import settings

        # Access database settings
        url = settings.database.supabase_url

        # Access decision thresholds
        days = settings.decision.cooldown_days
    """

    def __init__(self):
        self.database = DatabaseSettings()
        self.api = APISettings()
        self.ai = AISettings()
        self.decision = DecisionSettings()
        self.pipeline = PipelineSettings()
        self.identity = IdentitySettings()
        self.project_root = PROJECT_ROOT

    def validate(self) -> dict:
        """
        Validate all settings and return status.
        Returns dict with validation results.
        """
        results = {
            "database_configured": self.database.is_configured,
            "gemini_configured": bool(self.api.gemini_api_key),
            "resend_configured": bool(self.api.resend_api_key),
            "weights_valid": self.decision.validate_weights(),
            "discovery_targets": len(DISCOVERY_TARGETS),
        }
        # The store falls back to local memory, so only the AI key is critical
        results["all_valid"] = all([
            results["gemini_configured"],
            results["weights_valid"]
        ])
        return results

    def print_status(self):
        """Print configuration status to console."""
        validation = self.validate()

        print("\n" + "="*50)
        print("⚙️  NOVA INTELLIGENCE CONFIGURATION STATUS")
        print("="*50)

        print("\n📡 API Keys:")
        print(f"  • Supabase: {'✅ Configured' if validation['database_configured'] else '⚠️  Local memory only'}")
        print(f"  • Gemini:   {'✅ Configured' if validation['gemini_configured'] else '❌ Missing'}")
        print(f"  • Resend:   {'✅ Configured' if validation['resend_configured'] else '⚠️  Optional'}")

        print("\n🎯 Discovery:")
        print(f"  • Targets: {validation['discovery_targets']} configured")
        print(f"  • Countries: {len(ALLOWED_COUNTRIES)} allowed")

        print("\n⚖️  Priority Weights:")
        print(f"  • Valid: {'✅ Yes' if validation['weights_valid'] else '❌ No (must sum to 1.0)'}")

        print("\n" + "="*50)
        if validation["all_valid"]:
            print("✅ All critical settings configured! Ready to run.")
        else:
            print("❌ Some settings are missing. Check your .env file.")
        print("="*50 + "\n")

        return validation


# Singleton instance - import this in other modules
settings = Settings()


def identity_context() -> str:
    """Render the operator identity block injected into AI prompts."""
    ident = settings.identity
    return f"""
STRICT OWNER IDENTITY:
Name: {ident.full_name}
Role: {ident.role}
Company: {ident.company_name}
Registered Address: {ident.address}
KRS: {ident.krs}
VAT: {ident.vat}
EORI: {ident.eori}
Website: {ident.website}
Email: {ident.email}
Phone: {ident.phone}
Primary Base: {ident.location}
"""


# ===========================================
# DISCOVERY TARGETS (keyword, location)
# ===========================================
# Market scans executed on every recalibration

DISCOVERY_TARGETS: List[Tuple[str, str]] = [
    ("royal stables", "United Arab Emirates"),
    ("racing operations", "Qatar"),
    ("equine veterinary hospital", "Saudi Arabia"),
    ("horse feed importer", "Kuwait"),
    ("endurance stables", "Bahrain"),
]


# ===========================================
# REGIONAL & VERTICAL WHITELIST
# ===========================================

ALLOWED_COUNTRIES = [
    "United Arab Emirates",
    "UAE",
    "Saudi Arabia",
    "KSA",
    "Qatar",
    "Kuwait",
    "Oman",
    "Bahrain",
    "Jordan",
    "Egypt",
    "Morocco",
]

# Countries events are discovered in (one is picked per run)
EVENT_COUNTRIES = [
    "United Arab Emirates",
    "Saudi Arabia",
    "Qatar",
    "Kuwait",
    "Oman",
    "Bahrain",
    "Jordan",
    "Egypt",
    "Morocco",
]

ALLOWED_EQUINE_CATEGORIES = [
    "Stables",
    "Horse Farms & Stud",
    "Racing Operations",
    "Equestrian Clubs",
    "Veterinary Clinics",
    "Equine Nutrition & Feed",
    "Importers & Distributors",
    "Tack & Equipment",
    "Horse Transport",
    "Events & Competitions",
]

EQUINE_KEYWORDS = [
    "horse",
    "equine",
    "stable",
    "stud",
    "racing",
    "stallion",
    "mare",
    "equestrian",
    "tack",
    "farrier",
    "thoroughbred",
    "arabian",
]

EVENT_MONTHS = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]


if __name__ == "__main__":
    # Test configuration when run directly
    settings.print_status()
