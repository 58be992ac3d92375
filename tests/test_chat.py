"""
Unit tests for prompt assembly and structured chat replies.
Run: pytest tests/test_chat.py -v
"""

import asyncio
import json

import pytest

from support_engine.chat import build_prompt_turns, generate_structured_reply, last_user_message
from support_engine.engine import SupportEngine
from support_engine.errors import UpstreamUnavailable, ValidationError
from support_engine.llm.prompts import (
    NO_COMPENSATION_GUIDANCE,
    STRUCTURED_FORMAT,
    compensation_guidance,
    describe_player,
    flatten_turns,
)
from support_engine.models import (
    CalculatedCompensation,
    CategoryId,
    ChatRole,
    ChatTurn,
    DetectedIssue,
    ImpactLevel,
    MessageAnalysis,
    PlayerTier,
)
from tests.fakes import FakeGenerator

REPLY = "Sorry your daily reward went missing.\n---\nWe re-sent it to your mailbox.\n---\nPlease accept 1750 gold."


def _turn(role, content):
    return ChatTurn(role=role, content=content)


def _analysis(issue_type=CategoryId.MISSING_REWARDS, gold=1750, resources=None, with_comp=True):
    comp = None
    if with_comp:
        comp = CalculatedCompensation(
            gold=gold, gems=0, vip_points=0, resources=resources or {},
            multiplier_applied=1.0, tier_multiplier=1.0, churn_multiplier=1.0, weekend_multiplier=1.0,
            player_tier=PlayerTier.MEDIUM_SPENDER, rule_key="medium_spender_medium",
        )
    return MessageAnalysis(
        issue_detected=True,
        issue=DetectedIssue(issue_type=issue_type, description="Reward missing", player_impact=ImpactLevel.MEDIUM,
                            confidence=0.9),
        compensation=comp,
    )


class TestPrompts:
    def test_flatten_turns(self):
        text = flatten_turns([_turn(ChatRole.SYSTEM, "Be nice"), _turn(ChatRole.USER, "Hi")])
        assert text == "System: Be nice\n\nHuman: Hi\n\nAssistant: "

    def test_turn_content_stripped(self):
        assert _turn(ChatRole.USER, "  hello \n").content == "hello"

    def test_describe_player(self, player1):
        assert describe_player(None) == "Unknown player"
        assert describe_player(player1) == "Level 15, VIP 3, Premium player"

    def test_guidance_with_compensation(self):
        guidance = compensation_guidance(_analysis(resources={"energy": 60}))
        assert "1750 gold and additional resources" in guidance

    def test_guidance_without_compensation(self):
        assert compensation_guidance(_analysis(with_comp=False)) == NO_COMPENSATION_GUIDANCE
        assert compensation_guidance(_analysis(gold=0)) == NO_COMPENSATION_GUIDANCE

    def test_guidance_account_access(self):
        assert "ACCOUNT ACCESS" in compensation_guidance(_analysis(issue_type=CategoryId.ACCOUNT_ACCESS))

    def test_no_guidance_when_nothing_detected(self):
        assert compensation_guidance(None) == ""
        assert compensation_guidance(MessageAnalysis(issue_detected=False)) == ""

    def test_single_leading_system_turn(self, player1):
        turns = [
            _turn(ChatRole.USER, "Where is my reward?"),
            _turn(ChatRole.SYSTEM, "Logs: reward job failed at 02:00"),
            _turn(ChatRole.ASSISTANT, "Let me check."),
        ]
        built = build_prompt_turns(turns, player1, _analysis())
        assert [t.role for t in built] == [ChatRole.SYSTEM, ChatRole.USER, ChatRole.ASSISTANT]
        system = built[0].content
        assert STRUCTURED_FORMAT in system
        assert "Logs: reward job failed at 02:00" in system
        assert "TestPlayer1 (Level 15, VIP 3)" in system
        assert "1750 gold" in system

    def test_last_user_message(self):
        turns = [_turn(ChatRole.USER, "first"), _turn(ChatRole.ASSISTANT, "ok"), _turn(ChatRole.USER, "second")]
        assert last_user_message(turns) == "second"
        assert last_user_message([_turn(ChatRole.ASSISTANT, "ok")]) == ""


class TestGenerateStructuredReply:
    def test_parsed_reply(self, player1):
        gen = FakeGenerator(["Assistant: " + REPLY])
        reply = asyncio.run(
            generate_structured_reply(gen, [_turn(ChatRole.USER, "My reward is missing")], player1, _analysis())
        )
        assert reply.content == REPLY
        assert reply.reply.solution == "We re-sent it to your mailbox."
        assert reply.reply.has_compensation is True
        assert gen.prompts[0].endswith("Human: My reward is missing\n\nAssistant: ")

    def test_requires_user_message(self):
        with pytest.raises(ValidationError):
            asyncio.run(generate_structured_reply(FakeGenerator([REPLY]), [_turn(ChatRole.ASSISTANT, "hi")]))

    def test_generator_failure_propagates(self):
        gen = FakeGenerator(error=ConnectionError("refused"))
        with pytest.raises(UpstreamUnavailable):
            asyncio.run(generate_structured_reply(gen, [_turn(ChatRole.USER, "help")]))

    def test_empty_output_is_unavailable(self):
        with pytest.raises(UpstreamUnavailable):
            asyncio.run(generate_structured_reply(FakeGenerator(["   "]), [_turn(ChatRole.USER, "help")]))


class TestEngineReply:
    def test_requires_generator(self):
        with pytest.raises(UpstreamUnavailable):
            asyncio.run(SupportEngine().generate_reply([_turn(ChatRole.USER, "hello")]))

    def test_prompt_mentions_computed_compensation(self, player1):
        classification = json.dumps({
            "suggestedCategories": [{"id": "missing_rewards", "confidence": 0.9, "reasoning": "Daily reward missing"}],
            "autoResolvable": True,
            "routeDecision": "automated",
            "reasoning": "Clear missing reward",
            "suggestedUrgency": "medium",
        })
        gen = FakeGenerator([classification, REPLY])
        engine = SupportEngine(generator=gen)
        reply = asyncio.run(
            engine.generate_reply([_turn(ChatRole.USER, "My daily reward did not arrive")], profile=player1)
        )
        assert reply.analysis.compensation.gold == 1750
        assert len(gen.prompts) == 2
        assert "1750 gold" in gen.prompts[1]
        assert reply.reply.compensation_text == "Please accept 1750 gold."

    def test_without_profile_skips_analysis(self):
        gen = FakeGenerator([REPLY])
        reply = asyncio.run(SupportEngine(generator=gen).generate_reply([_turn(ChatRole.USER, "hello")]))
        assert reply.analysis is None
        assert len(gen.prompts) == 1
