"""
Structured chat replies: build the system prompt, render the typed conversation
for the generator, and split the answer into its three parts.

Unlike classification there is no fallback text here, so UpstreamUnavailable
from the generator propagates to the caller.
"""

import logging
from typing import Optional, Sequence

from support_engine.config import CHAT_MAX_TOKENS, CHAT_TEMPERATURE
from support_engine.errors import ValidationError
from support_engine.llm.client import TextGenerator, generate_with_timeout
from support_engine.llm.prompts import (
    STRUCTURED_FORMAT,
    build_support_system_prompt,
    compensation_guidance,
    flatten_turns,
)
from support_engine.models import ChatReply, ChatRole, ChatTurn, MessageAnalysis, PlayerProfile
from support_engine.reply_parser import clean_reply, parse_structured_reply

logger = logging.getLogger(__name__)


def last_user_message(turns: Sequence[ChatTurn]) -> str:
    for turn in reversed(turns):
        if turn.role == ChatRole.USER:
            return turn.content
    return ""


def build_prompt_turns(
    turns: Sequence[ChatTurn],
    profile: Optional[PlayerProfile] = None,
    analysis: Optional[MessageAnalysis] = None,
    context: str = "",
) -> list[ChatTurn]:
    """
    One leading system turn (persona, player context, format rules, compensation
    guidance, then any caller-supplied system text) followed by the conversation.
    """
    sections = [build_support_system_prompt(profile, context), STRUCTURED_FORMAT]
    guidance = compensation_guidance(analysis)
    if guidance:
        sections.append(guidance)
    sections.extend(t.content for t in turns if t.role == ChatRole.SYSTEM and t.content)
    system = ChatTurn(role=ChatRole.SYSTEM, content="\n\n".join(sections))
    return [system] + [t for t in turns if t.role != ChatRole.SYSTEM]


async def generate_structured_reply(
    generator: TextGenerator,
    turns: Sequence[ChatTurn],
    profile: Optional[PlayerProfile] = None,
    analysis: Optional[MessageAnalysis] = None,
    context: str = "",
    timeout: Optional[float] = None,
) -> ChatReply:
    if not last_user_message(turns):
        raise ValidationError("messages", "must contain a non-empty user message")

    prompt = flatten_turns(build_prompt_turns(turns, profile, analysis, context))
    logger.debug("Chat prompt (%d chars)", len(prompt))
    raw = await generate_with_timeout(
        generator,
        prompt,
        temperature=CHAT_TEMPERATURE,
        max_tokens=CHAT_MAX_TOKENS,
        timeout=timeout,
    )
    parsed = parse_structured_reply(raw)
    logger.info(
        "Structured reply generated (%d chars, compensation=%s)",
        len(raw), parsed.has_compensation,
    )
    return ChatReply(content=clean_reply(raw), reply=parsed, analysis=analysis)
