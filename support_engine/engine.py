"""
SupportEngine: one object wiring the analyzer, classifier, calculator, resolver
and reply parser around injected configuration (lexicons, rule table, text
generator, verification-flagged player ids).
"""

import logging
import random
from typing import Any, Mapping, Optional, Sequence, Union

from support_engine.analysis import analyze_message
from support_engine.chat import generate_structured_reply, last_user_message
from support_engine.classifier import ProblemClassifier
from support_engine.compensation import CompensationCalculator
from support_engine.config import VERIFICATION_PLAYER_IDS
from support_engine.errors import UpstreamUnavailable
from support_engine.lexicons import DEFAULT_LEXICONS, Lexicons
from support_engine.llm.client import TextGenerator
from support_engine.models import (
    AutomatedResolution,
    CalculatedCompensation,
    ChatReply,
    ChatTurn,
    CompensationParams,
    IntakeForm,
    IssueClassification,
    MessageAnalysis,
    ParsedReply,
    PlayerProfile,
    SentimentResult,
)
from support_engine.reply_parser import parse_structured_reply
from support_engine.rules import DEFAULT_RULE_TABLE, CompensationRuleTable
from support_engine.sentiment import SentimentAnalyzer
from support_engine.services.resolution_engine import ResolutionEngine

logger = logging.getLogger(__name__)


class SupportEngine:
    def __init__(
        self,
        generator: Optional[TextGenerator] = None,
        lexicons: Lexicons = DEFAULT_LEXICONS,
        rule_table: CompensationRuleTable = DEFAULT_RULE_TABLE,
        verification_player_ids: frozenset[str] = VERIFICATION_PLAYER_IDS,
        generation_timeout: Optional[float] = None,
        rng: Optional[random.Random] = None,
    ):
        self.generator = generator
        self.generation_timeout = generation_timeout
        self.sentiment_analyzer = SentimentAnalyzer(lexicons)
        self.classifier = ProblemClassifier(
            generator=generator,
            lexicons=lexicons,
            sentiment_analyzer=self.sentiment_analyzer,
            verification_player_ids=verification_player_ids,
            timeout=generation_timeout,
        )
        self.calculator = CompensationCalculator(rule_table)
        self.resolver = ResolutionEngine(lexicons, verification_player_ids, rng=rng)

    @property
    def rule_table(self) -> CompensationRuleTable:
        return self.calculator.rule_table

    def analyze_sentiment(self, text: str, account_lock: bool = False) -> SentimentResult:
        return self.sentiment_analyzer.analyze(text, account_lock=account_lock)

    async def classify_problem(
        self,
        description: Optional[str],
        profile: Optional[PlayerProfile] = None,
        player_id: Optional[str] = None,
    ) -> IssueClassification:
        return await self.classifier.classify(description, profile, player_id)

    async def analyze_message(self, text: str, profile: Optional[PlayerProfile] = None) -> MessageAnalysis:
        return await analyze_message(text, profile, self.classifier, self.calculator)

    def calculate_compensation(
        self, params: Union[CompensationParams, Mapping[str, Any]]
    ) -> CalculatedCompensation:
        return self.calculator.calculate(params)

    def resolve_issue(
        self,
        form: IntakeForm,
        profile: PlayerProfile,
        analysis: Optional[MessageAnalysis] = None,
    ) -> AutomatedResolution:
        return self.resolver.resolve(form, profile, analysis)

    def parse_structured_reply(self, raw_text: str) -> ParsedReply:
        return parse_structured_reply(raw_text)

    async def generate_reply(
        self,
        turns: Sequence[ChatTurn],
        profile: Optional[PlayerProfile] = None,
        context: str = "",
    ) -> ChatReply:
        """
        Analyze the latest player message (when a profile is known) so the reply
        mentions only the compensation actually computed, then generate and parse.
        """
        if self.generator is None:
            raise UpstreamUnavailable("No text generator configured")
        analysis = None
        message = last_user_message(turns)
        if profile is not None and message:
            analysis = await self.analyze_message(message, profile)
        return await generate_structured_reply(
            self.generator,
            turns,
            profile=profile,
            analysis=analysis,
            context=context,
            timeout=self.generation_timeout,
        )
