"""REST API for the support decision engine."""

import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import Body, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from redis.exceptions import RedisError

from support_engine.config import LOG_LEVEL, MANUAL_TICKET_PREFIX, MIN_DESCRIPTION_LENGTH
from support_engine.engine import SupportEngine
from support_engine.errors import UpstreamUnavailable, ValidationError
from support_engine.llm.client import OllamaGenerator
from support_engine.models import (
    AutomatedResolution,
    ChatReply,
    ChatTurn,
    ImpactLevel,
    IntakeForm,
    IssueClassification,
    MessageAnalysis,
    ParsedReply,
    PlayerProfile,
    PlayerTier,
    TicketRecord,
)
from support_engine.rules import rule_key
from support_engine.services.player_registry import PlayerRegistry
from support_engine.services.ticket_store import TicketStore
from support_engine.services.ticket_utils import build_ticket_record, generate_ticket_id
from support_engine.webhook import notify_human_escalation

logger = logging.getLogger(__name__)

generator = OllamaGenerator()
engine = SupportEngine(generator=generator)
player_registry = PlayerRegistry()
ticket_store = TicketStore()


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        player_registry.seed_demo_players()
    except RedisError as e:
        logger.warning("Could not seed demo players (Redis down?): %s", e)
    yield


app = FastAPI(
    title="Support Decision Engine",
    description="Issue analysis, routing, compensation and automated resolution for game support.",
    version="0.3.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["Content-Type", "Authorization"],
)


def _load_player(player_id: Optional[str], inline: Optional[PlayerProfile] = None, required: bool = False) -> Optional[PlayerProfile]:
    """Inline profile wins; otherwise look it up. 404/503 only when the profile is required."""
    if inline is not None:
        return inline
    if not player_id:
        if required:
            raise HTTPException(status_code=400, detail="player_id is required")
        return None
    try:
        profile = player_registry.get(player_id)
    except RedisError as e:
        logger.warning("Player lookup failed for %s: %s", player_id, e)
        if required:
            raise HTTPException(status_code=503, detail="Player store unavailable")
        return None
    if profile is None and required:
        raise HTTPException(status_code=404, detail="Player not found")
    return profile


def _store_ticket(record: TicketRecord) -> bool:
    try:
        ticket_store.create(record)
    except RedisError as e:
        logger.warning("Could not persist ticket %s: %s", record.ticket_id, e)
        return False
    return True


# --- Analysis ---


class AnalyzeProblemRequest(BaseModel):
    problem_description: str = Field(..., description="Player's description of the problem")
    player_id: Optional[str] = None
    player: Optional[PlayerProfile] = Field(None, description="Inline profile; skips the registry lookup")


@app.post("/analyze-problem", response_model=IssueClassification)
async def analyze_problem(payload: AnalyzeProblemRequest) -> IssueClassification:
    """Suggest categories and a route for a problem description; notifies the webhook on human routing."""
    description = payload.problem_description.strip()
    if len(description) < MIN_DESCRIPTION_LENGTH:
        raise HTTPException(
            status_code=400,
            detail=f"Problem description must be at least {MIN_DESCRIPTION_LENGTH} characters long",
        )
    profile = _load_player(payload.player_id, payload.player)
    player_id = payload.player_id or (profile.player_id if profile else None)
    result = await engine.classify_problem(description, profile, player_id)
    await notify_human_escalation(result, description, player_id)
    return result


class AnalyzeMessageRequest(BaseModel):
    message: str
    player_id: Optional[str] = None
    player: Optional[PlayerProfile] = None


@app.post("/analyze-player-message", response_model=MessageAnalysis)
async def analyze_player_message(payload: AnalyzeMessageRequest) -> MessageAnalysis:
    profile = _load_player(payload.player_id, payload.player)
    try:
        return await engine.analyze_message(payload.message, profile)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))


# --- Compensation ---


@app.post("/calculate-compensation")
def calculate_compensation(params: dict[str, Any] = Body(...)) -> dict:
    """Tiered compensation; raw body so field-level validation errors come back as 400."""
    try:
        result = engine.calculate_compensation(params)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {
        "success": True,
        "compensation": result.model_dump(mode="json"),
        "debug": {
            "player_tier": result.player_tier.value,
            "rule_key": result.rule_key,
            "multiplier": result.multiplier_applied,
            "fallback_used": result.error is not None,
        },
    }


@app.get("/compensation/rules")
def list_compensation_rules(player_tier: Optional[str] = None, impact_level: Optional[str] = None) -> dict:
    """Rule table listing, optionally filtered by tier and/or impact."""
    try:
        tier_filter = PlayerTier(player_tier) if player_tier else None
        impact_filter = ImpactLevel(impact_level) if impact_level else None
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    rules = []
    for (tier, impact), rule in engine.rule_table.items():
        if tier_filter is not None and tier != tier_filter:
            continue
        if impact_filter is not None and impact != impact_filter:
            continue
        rules.append({
            "key": rule_key(tier, impact),
            "player_tier": tier.value,
            "impact_level": impact.value,
            "rule": rule.model_dump(mode="json"),
        })
    return {"rules": rules, "count": len(rules)}


# --- Automated resolution ---


class ResolveRequest(BaseModel):
    player_id: str
    form: IntakeForm
    use_analysis: bool = Field(False, description="Let message analysis override the form category")


class ResolveResponse(BaseModel):
    resolution: AutomatedResolution
    ticket: TicketRecord
    ticket_persisted: bool


@app.post("/resolve", response_model=ResolveResponse)
async def resolve(payload: ResolveRequest) -> ResolveResponse:
    profile = _load_player(payload.player_id, required=True)
    analysis = None
    if payload.use_analysis and payload.form.problem_description.strip():
        analysis = await engine.analyze_message(payload.form.problem_description, profile)
    resolution = engine.resolve_issue(payload.form, profile, analysis)
    record = build_ticket_record(payload.form, profile, resolution)
    return ResolveResponse(resolution=resolution, ticket=record, ticket_persisted=_store_ticket(record))


# --- Replies ---


class ParseReplyRequest(BaseModel):
    text: str


@app.post("/parse-reply", response_model=ParsedReply)
def parse_reply(payload: ParseReplyRequest) -> ParsedReply:
    return engine.parse_structured_reply(payload.text)


class ChatRequest(BaseModel):
    messages: list[ChatTurn] = Field(..., description="Conversation so far, oldest first")
    player_id: Optional[str] = None
    player: Optional[PlayerProfile] = None
    context: str = Field("", description="System logs or other context for the agent")


@app.post("/chat", response_model=ChatReply)
async def chat(payload: ChatRequest) -> ChatReply:
    """Structured three-part support reply. 503 when the text generator is unavailable."""
    profile = _load_player(payload.player_id, payload.player)
    try:
        return await engine.generate_reply(payload.messages, profile, payload.context)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except UpstreamUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))


# --- Tickets & players ---


class ManualTicketRequest(BaseModel):
    player_id: str
    title: str
    description: str = ""
    category: str = "other"
    priority: str = "medium"


@app.post("/tickets", status_code=201, response_model=TicketRecord)
def create_ticket(payload: ManualTicketRequest) -> TicketRecord:
    """File a ticket by hand (TK-prefixed id)."""
    record = TicketRecord(
        ticket_id=generate_ticket_id(MANUAL_TICKET_PREFIX),
        player_id=payload.player_id,
        title=payload.title,
        description=payload.description,
        category=payload.category,
        priority=payload.priority,
        status="open",
        tags=["manual", payload.category],
    )
    if not _store_ticket(record):
        raise HTTPException(status_code=503, detail="Ticket store unavailable")
    return record


@app.get("/tickets/{ticket_id}", response_model=TicketRecord)
def get_ticket(ticket_id: str) -> TicketRecord:
    try:
        record = ticket_store.get(ticket_id)
    except RedisError as e:
        logger.warning("Ticket lookup failed for %s: %s", ticket_id, e)
        raise HTTPException(status_code=503, detail="Ticket store unavailable")
    if record is None:
        raise HTTPException(status_code=404, detail="Ticket not found")
    return record


@app.get("/players/{player_id}", response_model=PlayerProfile)
def get_player(player_id: str) -> PlayerProfile:
    return _load_player(player_id, required=True)


@app.get("/players/{player_id}/tickets", response_model=list[TicketRecord])
def get_player_tickets(player_id: str, limit: int = 50) -> list[TicketRecord]:
    if limit < 1 or limit > 200:
        limit = 50
    try:
        return ticket_store.list_for_player(player_id, limit=limit)
    except RedisError as e:
        logger.warning("Ticket listing failed for %s: %s", player_id, e)
        raise HTTPException(status_code=503, detail="Ticket store unavailable")


@app.get("/health")
async def health() -> dict:
    """Liveness plus text-generator reachability (never fails when the generator is down)."""
    out: dict[str, Any] = {"status": "ok"}
    check = getattr(engine.generator, "health", None)
    if check is not None:
        out["generator"] = await check()
    else:
        out["generator"] = {"status": "not_configured"}
    return out


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    uvicorn.run(app, host="0.0.0.0", port=8000)
