"""Data models for the support decision engine."""

import time
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ChurnRisk(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Tone(str, Enum):
    """Emotional tone detected in a player message."""

    CALM = "calm"
    FRUSTRATED = "frustrated"
    ANGRY = "angry"
    AGITATED = "agitated"
    URGENT = "urgent"
    DISAPPOINTED = "disappointed"


class CategoryId(str, Enum):
    """Closed set of support categories."""

    ACCOUNT_ACCESS = "account_access"
    MISSING_REWARDS = "missing_rewards"
    PURCHASE_ISSUES = "purchase_issues"
    TECHNICAL = "technical"
    GAMEPLAY = "gameplay"
    ACCOUNT_RECOVERY = "account_recovery"
    OTHER = "other"


class RouteDecision(str, Enum):
    AUTOMATED = "automated"
    HUMAN = "human"
    SUGGEST = "suggest"


class Urgency(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class PlayerTier(str, Enum):
    """Spend bracket; thresholds live in compensation.classify_player_tier."""

    F2P = "f2p"
    LIGHT_SPENDER = "light_spender"
    MEDIUM_SPENDER = "medium_spender"
    WHALE = "whale"
    VIP_WHALE = "vip_whale"


class ImpactLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Severity(str, Enum):
    """Severity used by the VIP-scaled resolution compensation."""

    MINOR = "minor"
    MODERATE = "moderate"
    SEVERE = "severe"


class AccountStatus(str, Enum):
    ACTIVE = "active"
    LOCKED = "locked"
    SUSPENDED = "suspended"
    BANNED = "banned"
    PENDING_VERIFICATION = "pending_verification"


class ChatRole(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


# --- Player ---


class PlayerProfile(BaseModel):
    """Immutable snapshot of a player supplied by the caller (or the player registry)."""

    model_config = ConfigDict(frozen=True)

    player_id: str = Field(..., description="Unique player identifier")
    player_name: str = Field(default="", description="Display name")
    game_level: int = Field(default=1, ge=1)
    vip_level: int = Field(default=0, ge=0)
    total_spend: float = Field(default=0.0, ge=0.0, description="Cumulative spend in currency units")
    churn_risk: ChurnRisk = ChurnRisk.LOW
    is_spender: bool = False
    session_days: int = Field(default=0, ge=0)
    kingdom_id: Optional[int] = None
    alliance_name: Optional[str] = None
    account_status: AccountStatus = AccountStatus.ACTIVE
    lock_reason: Optional[str] = None
    support_tier: Optional[str] = Field(None, description="standard | priority | vip | premium")


# --- Sentiment & classification ---


class SentimentResult(BaseModel):
    """Tone, intensity and escalation flag derived from a single message."""

    tone: Tone = Tone.CALM
    intensity: int = Field(default=3, ge=1, le=10)
    requires_human: bool = False


class CategorySuggestion(BaseModel):
    id: CategoryId
    confidence: float = Field(..., ge=0.0, le=1.0)
    reasoning: str = ""


class IssueClassification(BaseModel):
    """Result of classify_problem: ranked categories plus the routing verdict."""

    suggested_categories: list[CategorySuggestion] = Field(default_factory=list, max_length=3)
    auto_resolvable: bool = False
    route_decision: RouteDecision = RouteDecision.HUMAN
    reasoning: str = ""
    suggested_urgency: Urgency = Urgency.MEDIUM
    sentiment: SentimentResult = Field(default_factory=SentimentResult)
    account_locked: bool = False
    requires_email_verification: bool = False
    source: str = Field(default="model", description="model | keyword_fallback | verification_flow | default")

    @property
    def top_category(self) -> CategoryId:
        if not self.suggested_categories:
            return CategoryId.OTHER
        return self.suggested_categories[0].id


class RoutingDecision(BaseModel):
    route: RouteDecision
    auto_resolvable: bool
    urgency: Urgency


# --- Compensation ---


class RewardItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    quantity: int = Field(default=1, ge=1)


class CompensationRule(BaseModel):
    """One (tier, impact) row of the rule table. Read-only at runtime."""

    model_config = ConfigDict(frozen=True)

    gold: int = Field(..., ge=0)
    gems: int = Field(default=0, ge=0)
    resources: dict[str, int] = Field(default_factory=dict)
    items: tuple[RewardItem, ...] = ()
    vip_points: int = Field(default=0, ge=0)
    multiplier: float = Field(default=1.0, ge=0.0, description="Tier multiplier")
    requires_approval: bool = False


class CompensationParams(BaseModel):
    """Calculator input; every field is validated before any computation."""

    player_level: int = Field(..., ge=1)
    vip_level: int = Field(..., ge=0)
    total_spend: float = Field(..., ge=0.0)
    churn_risk: ChurnRisk = ChurnRisk.LOW
    impact_level: ImpactLevel
    is_weekend: bool = False


class CalculatedCompensation(BaseModel):
    gold: int = Field(..., ge=0)
    gems: int = Field(..., ge=0)
    vip_points: int = Field(..., ge=0)
    resources: dict[str, int] = Field(default_factory=dict)
    items: list[RewardItem] = Field(default_factory=list)
    special_offers: dict[str, Any] = Field(default_factory=dict)
    multiplier_applied: float = Field(..., ge=0.0)
    tier_multiplier: float = Field(..., ge=0.0)
    churn_multiplier: float = Field(..., ge=0.0)
    weekend_multiplier: float = Field(..., ge=0.0)
    player_tier: PlayerTier
    rule_key: str = Field(..., description="tier_impact key of the rule actually applied")
    requires_approval: bool = False
    error: Optional[str] = None


# --- Automated resolution ---


class IntakeForm(BaseModel):
    """Automated-support intake form."""

    identity_confirmed: bool = False
    problem_category: str = Field(..., description="Category id chosen by the player or suggested by analysis")
    problem_description: str = ""
    urgency_level: str = "medium"
    device_info: Optional[str] = None
    last_known_working: Optional[str] = None
    affected_features: list[str] = Field(default_factory=list)


class CompensationBlock(BaseModel):
    gold: int = Field(default=0, ge=0)
    resources: dict[str, int] = Field(default_factory=dict)
    items: list[RewardItem] = Field(default_factory=list)
    description: str = ""


class ResolutionDetail(BaseModel):
    category: str
    actions: list[str] = Field(default_factory=list)
    compensation: Optional[CompensationBlock] = None
    timeline: str = ""
    follow_up_instructions: str = ""


class AutomatedResolution(BaseModel):
    ticket_id: str
    success: bool
    resolution: ResolutionDetail
    escalation_reason: Optional[str] = None


class TicketRecord(BaseModel):
    """Resolved-case record handed to the ticket store."""

    ticket_id: str
    player_id: str
    title: str
    description: str = ""
    category: str = ""
    priority: str = "medium"
    status: str = Field(default="open", description="open | resolved | escalated")
    resolution_summary: str = ""
    compensation_awarded: Optional[CompensationBlock] = None
    chat_summary: str = ""
    key_issues: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    outcome_rating: str = ""
    created_at: float = Field(default_factory=time.time, description="Unix timestamp")


# --- Replies ---


class ParsedReply(BaseModel):
    problem_summary: str = ""
    solution: str = ""
    compensation_text: str = ""
    has_compensation: bool = False


class ChatTurn(BaseModel):
    """A single role-tagged turn of a conversation."""

    role: ChatRole
    content: str

    @field_validator("content")
    @classmethod
    def _strip(cls, v: str) -> str:
        return v.strip()


# --- Message analysis ---


class DetectedIssue(BaseModel):
    issue_type: CategoryId
    description: str
    player_impact: ImpactLevel
    confidence: float = Field(..., ge=0.0, le=1.0)


class MessageAnalysis(BaseModel):
    """Result of analyze_message: issue, sentiment, routing and compensation."""

    issue_detected: bool
    issue: Optional[DetectedIssue] = None
    sentiment: Optional[SentimentResult] = None
    routing: Optional[RoutingDecision] = None
    compensation: Optional[CalculatedCompensation] = None
    requires_human_review: bool = True


class ChatReply(BaseModel):
    """Generated support reply: cleaned text, its three parsed parts and the analysis that priced it."""

    content: str
    reply: ParsedReply
    analysis: Optional[MessageAnalysis] = None
