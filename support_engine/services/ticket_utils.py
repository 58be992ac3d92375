"""Ticket identifiers and ticket records for resolved cases."""

import random
import re
from datetime import datetime
from typing import Optional

from support_engine.models import AutomatedResolution, IntakeForm, PlayerProfile, TicketRecord

TICKET_ID_RE = re.compile(r"^[A-Z]{2,3}-\d{8}-\d{4}-\d{3}$")

_rng = random.Random()


def generate_ticket_id(prefix: str, now: Optional[datetime] = None, rng: Optional[random.Random] = None) -> str:
    """PREFIX-YYYYMMDD-HHMM-NNN with a zero-padded random 3-digit suffix."""
    if not re.fullmatch(r"[A-Z]{2,3}", prefix):
        raise ValueError(f"Ticket prefix must be 2-3 uppercase letters, got {prefix!r}")
    now = now or datetime.now()
    suffix = (rng or _rng).randint(0, 999)
    return f"{prefix}-{now:%Y%m%d}-{now:%H%M}-{suffix:03d}"


def is_valid_ticket_id(ticket_id: str) -> bool:
    return bool(TICKET_ID_RE.match(ticket_id or ""))


def build_ticket_record(form: IntakeForm, profile: PlayerProfile, resolution: AutomatedResolution) -> TicketRecord:
    """Ticket record for an automated-resolution attempt (resolved or escalated)."""
    detail = resolution.resolution
    if resolution.success:
        summary = f"Automated resolution: {'. '.join(detail.actions)}."
    else:
        summary = f"Escalated to human review: {resolution.escalation_reason}"
    chat_summary = (
        f'Automated intake form resolution. Player reported: "{form.problem_description}". '
        f"System applied: {detail.category} protocol."
    )
    if form.last_known_working:
        chat_summary += f" Last known working: {form.last_known_working}."
    key_issues = [form.problem_category, "automated_resolution"] + list(form.affected_features)
    return TicketRecord(
        ticket_id=resolution.ticket_id,
        player_id=profile.player_id,
        title=f"{detail.category} - Automated Resolution",
        description=form.problem_description,
        category=form.problem_category,
        priority=form.urgency_level,
        status="resolved" if resolution.success else "escalated",
        resolution_summary=summary,
        compensation_awarded=detail.compensation,
        chat_summary=chat_summary,
        key_issues=key_issues,
        tags=["automated", form.problem_category, f"vip_{profile.vip_level}"],
        outcome_rating="successful" if resolution.success else "escalated",
    )
