"""Prompt templates and the typed-turn -> flat text conversion used at the generator boundary."""

from typing import Iterable, Optional

from support_engine.models import ChatRole, ChatTurn, MessageAnalysis, PlayerProfile

CLASSIFICATION_PROMPT = """
You are an expert customer support system analyzing a player's problem description to suggest the most appropriate support categories.

Available Categories:
1. account_access - Login, password, or locked account issues
2. missing_rewards - Daily rewards, event items, or missing purchases
3. purchase_issues - Payment issues, missing items, or refunds
4. technical - Crashes, performance, or connectivity problems
5. gameplay - Game mechanics, bugs, or balance concerns
6. account_recovery - Lost progress or account restoration
7. other - Complex problems requiring human review

Player's Problem: "{description}"

Player Context: {player_context}

Analyze this problem and respond with ONLY a clean JSON object containing:
{{
  "suggestedCategories": [
    {{
      "id": "category_id",
      "confidence": 0.95,
      "reasoning": "Why this category fits"
    }}
  ],
  "autoResolvable": true/false,
  "routeDecision": "automated" | "human" | "suggest",
  "reasoning": "Overall analysis of the problem complexity",
  "suggestedUrgency": "low" | "medium" | "high",
  "sentiment": {{
    "tone": "calm" | "frustrated" | "angry" | "agitated" | "urgent" | "disappointed",
    "intensity": 1-10,
    "requiresHuman": true/false
  }}
}}

IMPORTANT: Return ONLY the JSON object, no markdown, no explanations, no additional text.

Rules:
- Suggest 1-3 categories maximum, ranked by confidence (0.0-1.0)
- autoResolvable: false for complex issues needing human review
- routeDecision:
  * "automated" = clear-cut issue, proceed directly to automation
  * "human" = complex issue, route directly to chat
  * "suggest" = borderline case, show category suggestions to user
- Only suggest categories with confidence > 0.6
- Account recovery and gameplay balance issues are typically not auto-resolvable
- suggestedUrgency guidelines:
  * "high" = Cannot access account, game crashes preventing play, missing purchases
  * "medium" = Missing rewards, technical issues affecting gameplay experience
  * "low" = General inquiries, minor gameplay issues, enhancement requests
- sentiment analysis:
  * "calm" = Professional, neutral, patient tone
  * "frustrated" = Some negative words, mild complaints
  * "angry"/"agitated" = Strong negative language, caps, exclamation marks, demanding tone
  * "urgent" = Time-sensitive language, immediate action needed
  * "disappointed" = Sad or let down tone
  * intensity: 1-3=mild, 4-6=moderate, 7-10=severe
  * requiresHuman: true if tone is frustrated/angry/agitated with intensity > 6
"""

STRUCTURED_FORMAT = """CRITICAL FORMAT REQUIREMENT: You MUST structure your response in exactly 3 parts separated by triple dashes (---).

ABSOLUTELY FORBIDDEN:
- Do NOT use section headers like "PROBLEM_SUMMARY:", "SOLUTION:", or "COMPENSATION:"
- Do NOT repeat any content between sections
- Do NOT include any labels, headers, or section names

REQUIRED FORMAT (NO HEADERS, just content separated by ---):

[First part: Problem acknowledgment with specific context - ONE TIME ONLY]

---

[Second part: Step-by-step solution - ONE TIME ONLY]

---

[Third part: Compensation text - ONLY include this section if you have been specifically told that compensation is approved. Otherwise omit it entirely.]

The first part must reference concrete details from the player's context (game level, VIP status, system logs) instead of generic acknowledgments.

CRITICAL: Each section appears EXACTLY ONCE. NO repetition, NO duplication, NO section headers."""

NO_COMPENSATION_GUIDANCE = (
    "CRITICAL: No compensation is warranted for this issue. Do NOT include a COMPENSATION "
    "section in your response. End your response after the SOLUTION section only."
)

ACCOUNT_ACCESS_GUIDANCE = """CRITICAL: This is an ACCOUNT ACCESS issue. You MUST:
1. Address the account lockout/access problem directly
2. Provide specific steps to regain access (verification, password reset, etc.)
3. Do NOT give generic gameplay advice
4. Reference their VIP status and account value to show priority support"""

_ROLE_LABELS = {
    ChatRole.SYSTEM: "System",
    ChatRole.USER: "Human",
    ChatRole.ASSISTANT: "Assistant",
}


def describe_player(profile: Optional[PlayerProfile]) -> str:
    """One-line player summary for the classification prompt."""
    if profile is None:
        return "Unknown player"
    kind = "Premium" if profile.is_spender else "Standard"
    return f"Level {profile.game_level}, VIP {profile.vip_level}, {kind} player"


def build_classification_prompt(description: str, profile: Optional[PlayerProfile] = None) -> str:
    return CLASSIFICATION_PROMPT.format(description=description, player_context=describe_player(profile))


def build_support_system_prompt(profile: Optional[PlayerProfile], context: str = "") -> str:
    """Base persona plus whatever player context is known."""
    lines = [
        "You are a friendly, knowledgeable customer support agent for a mobile strategy game.",
        "Be concise and specific. Never promise anything you were not told is approved.",
    ]
    if profile is not None:
        lines.append("")
        lines.append("### PLAYER CONTEXT:")
        name = profile.player_name or profile.player_id
        lines.append(f"- Player: {name} (Level {profile.game_level}, VIP {profile.vip_level})")
        lines.append(f"- Lifetime spend: ${profile.total_spend:.2f}")
        lines.append(f"- Churn risk: {profile.churn_risk.value.upper()}")
        if profile.session_days:
            lines.append(f"- Engagement: {profile.session_days} days active")
        if profile.account_status.value != "active":
            lines.append(f"- Account status: {profile.account_status.value}")
    if context:
        lines.append("")
        lines.append("### SYSTEM CONTEXT AND LOGS:")
        lines.append(context)
    return "\n".join(lines)


def compensation_guidance(analysis: Optional[MessageAnalysis]) -> str:
    """Tell the generator exactly which compensation (if any) it may mention."""
    if analysis is None or not analysis.issue_detected:
        return ""
    comp = analysis.compensation
    if comp is None or (comp.gold <= 0 and not comp.resources):
        guidance = NO_COMPENSATION_GUIDANCE
    else:
        description = analysis.issue.description if analysis.issue else "reported issue"
        parts = []
        if comp.gold > 0:
            parts.append(f"{comp.gold} gold")
        if comp.resources:
            parts.append("additional resources")
        guidance = (
            f"I've detected an issue and have prepared a compensation package for the player ({description}). "
            f"Include a COMPENSATION section mentioning exactly: {' and '.join(parts)} for this inconvenience."
        )
    if analysis.issue is not None and analysis.issue.issue_type.value == "account_access":
        guidance = f"{guidance}\n\n{ACCOUNT_ACCESS_GUIDANCE}"
    return guidance


def flatten_turns(turns: Iterable[ChatTurn]) -> str:
    """
    Render typed turns as the `Role: content` transcript the generator expects,
    ending with an open `Assistant:` turn.
    """
    chunks = [f"{_ROLE_LABELS[t.role]}: {t.content}\n\n" for t in turns]
    chunks.append("Assistant: ")
    return "".join(chunks)
