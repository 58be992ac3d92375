"""
Issue category classifier.

Primary path asks the text generator for a JSON classification; if the call
fails, times out, or the output cannot be parsed, a deterministic keyword
matcher takes over. Sentiment is always recomputed locally and can force the
case to a human regardless of what either path decided.
"""

import logging
from typing import Optional

from support_engine.config import ANALYSIS_MAX_TOKENS, ANALYSIS_TEMPERATURE, VERIFICATION_PLAYER_IDS
from support_engine.errors import ClassificationParseError, UpstreamUnavailable
from support_engine.lexicons import DEFAULT_LEXICONS, KeywordRule, Lexicons
from support_engine.llm.client import TextGenerator, generate_with_timeout
from support_engine.llm.json_extraction import ClassificationPayload, parse_classification
from support_engine.llm.prompts import build_classification_prompt
from support_engine.models import (
    CategoryId,
    CategorySuggestion,
    IssueClassification,
    PlayerProfile,
    RouteDecision,
    SentimentResult,
    Urgency,
)
from support_engine.routing import decide_route
from support_engine.sentiment import SentimentAnalyzer

logger = logging.getLogger(__name__)

MIN_CONFIDENCE = 0.6
MAX_SUGGESTIONS = 3
FALLBACK_CONFIDENCE = 0.75
DEFAULT_CONFIDENCE = 0.5
VERIFICATION_CONFIDENCE = 0.95


def match_category(text: str, lexicons: Lexicons = DEFAULT_LEXICONS) -> Optional[KeywordRule]:
    """First keyword rule (in priority order) whose keywords appear in `text`."""
    desc = (text or "").lower()
    for rule in lexicons.category_rules:
        if rule.matches(desc):
            return rule
    return None


def default_classification(sentiment: SentimentResult, reasoning: str) -> IssueClassification:
    """Conservative result: `other`, human route, nothing automated."""
    return IssueClassification(
        suggested_categories=[
            CategorySuggestion(
                id=CategoryId.OTHER,
                confidence=DEFAULT_CONFIDENCE,
                reasoning="Unable to classify - defaulting to human review",
            )
        ],
        auto_resolvable=False,
        route_decision=RouteDecision.HUMAN,
        reasoning=reasoning,
        suggested_urgency=Urgency.MEDIUM,
        sentiment=sentiment,
        source="default",
    )


class ProblemClassifier:
    """Classify a problem description into support categories and an initial route."""

    def __init__(
        self,
        generator: Optional[TextGenerator] = None,
        lexicons: Lexicons = DEFAULT_LEXICONS,
        sentiment_analyzer: Optional[SentimentAnalyzer] = None,
        verification_player_ids: frozenset[str] = VERIFICATION_PLAYER_IDS,
        timeout: Optional[float] = None,
    ):
        self.generator = generator
        self.lexicons = lexicons
        self.sentiment_analyzer = sentiment_analyzer or SentimentAnalyzer(lexicons)
        self.verification_player_ids = verification_player_ids
        self.timeout = timeout

    async def classify(
        self,
        description: Optional[str],
        profile: Optional[PlayerProfile] = None,
        player_id: Optional[str] = None,
    ) -> IssueClassification:
        """Never raises: any unexpected failure yields the conservative default classification."""
        text = description if isinstance(description, str) else ""
        try:
            result = await self._classify(text, profile, player_id)
        except Exception:
            logger.exception("Classification failed; defaulting to human review")
            result = default_classification(
                self.sentiment_analyzer.analyze(text),
                "System error - routing to human agent for safety",
            )
        logger.info(
            "Classified as %s (route=%s, auto=%s, source=%s, tone=%s)",
            result.top_category.value, result.route_decision.value, result.auto_resolvable,
            result.source, result.sentiment.tone.value,
        )
        return result

    async def _classify(
        self, text: str, profile: Optional[PlayerProfile], player_id: Optional[str]
    ) -> IssueClassification:
        pid = player_id or (profile.player_id if profile else None)
        if pid in self.verification_player_ids and self.lexicons.mentions_account_access(text):
            logger.info("Account access issue for verification-flagged player %s", pid)
            return self.verification_flow(text)

        sentiment = self.sentiment_analyzer.analyze(text)
        if not text.strip():
            result = default_classification(sentiment, "Empty problem description - routing to human agent")
        elif self.generator is None:
            result = self.keyword_fallback(text, sentiment)
        else:
            try:
                raw = await generate_with_timeout(
                    self.generator,
                    build_classification_prompt(text, profile),
                    temperature=ANALYSIS_TEMPERATURE,
                    max_tokens=ANALYSIS_MAX_TOKENS,
                    timeout=self.timeout,
                )
                result = self._from_payload(parse_classification(raw), sentiment)
            except (UpstreamUnavailable, ClassificationParseError) as e:
                logger.warning("Model classification unavailable (%s); using keyword fallback", e)
                result = self.keyword_fallback(text, sentiment)
        return self._apply_sentiment_override(result, sentiment)

    def _from_payload(self, payload: ClassificationPayload, sentiment: SentimentResult) -> IssueClassification:
        kept = [
            CategorySuggestion(id=s.id, confidence=s.confidence, reasoning=s.reasoning)
            for s in payload.suggested_categories
            if s.confidence > MIN_CONFIDENCE
        ]
        if not kept:
            raise ClassificationParseError("No suggested category above the confidence threshold")
        kept.sort(key=lambda s: s.confidence, reverse=True)
        return IssueClassification(
            suggested_categories=kept[:MAX_SUGGESTIONS],
            auto_resolvable=payload.auto_resolvable,
            route_decision=payload.route_decision,
            reasoning=payload.reasoning,
            suggested_urgency=payload.suggested_urgency,
            sentiment=sentiment,
            source="model",
        )

    def keyword_fallback(self, text: str, sentiment: SentimentResult) -> IssueClassification:
        rule = match_category(text, self.lexicons)
        if rule is None:
            return default_classification(sentiment, "No category keywords matched - routing to human agent")
        return IssueClassification(
            suggested_categories=[
                CategorySuggestion(
                    id=rule.category,
                    confidence=FALLBACK_CONFIDENCE,
                    reasoning="Keyword-based fallback analysis",
                )
            ],
            auto_resolvable=rule.auto_resolvable,
            route_decision=RouteDecision.AUTOMATED if rule.auto_resolvable else RouteDecision.HUMAN,
            reasoning="Fallback analysis due to AI parsing error",
            suggested_urgency=rule.urgency_for(text.lower()),
            sentiment=sentiment,
            source="keyword_fallback",
        )

    def verification_flow(self, text: str) -> IssueClassification:
        """Fixed account_access verdict for flagged profiles; only sentiment decides the route."""
        sentiment = self.sentiment_analyzer.analyze(text, account_lock=True)
        needs_human = sentiment.requires_human
        if needs_human:
            suggestion_reason = "Account lock detected with negative sentiment - requires human agent"
            reasoning = (
                f"Account locked with {sentiment.tone.value} sentiment - "
                "routing to human agent for personalized assistance"
            )
        else:
            suggestion_reason = "Account lock detected - requires identity verification"
            reasoning = "Account is locked - automated verification process available"
        return IssueClassification(
            suggested_categories=[
                CategorySuggestion(
                    id=CategoryId.ACCOUNT_ACCESS,
                    confidence=VERIFICATION_CONFIDENCE,
                    reasoning=suggestion_reason,
                )
            ],
            auto_resolvable=not needs_human,
            route_decision=RouteDecision.HUMAN if needs_human else RouteDecision.AUTOMATED,
            reasoning=reasoning,
            suggested_urgency=Urgency.HIGH,
            sentiment=sentiment,
            account_locked=True,
            requires_email_verification=not needs_human,
            source="verification_flow",
        )

    @staticmethod
    def _apply_sentiment_override(result: IssueClassification, sentiment: SentimentResult) -> IssueClassification:
        routing = decide_route(result.route_decision, result.auto_resolvable, sentiment, result.suggested_urgency)
        update = {
            "route_decision": routing.route,
            "auto_resolvable": routing.auto_resolvable,
            "sentiment": sentiment,
        }
        if sentiment.requires_human:
            logger.info(
                "Sentiment override: %s (intensity %d) - routing to human agent",
                sentiment.tone.value, sentiment.intensity,
            )
            update["reasoning"] = f"Detected {sentiment.tone.value} sentiment requiring human attention"
        return result.model_copy(update=update)


_default_classifier = ProblemClassifier()


async def classify_problem(
    description: Optional[str],
    profile: Optional[PlayerProfile] = None,
    player_id: Optional[str] = None,
) -> IssueClassification:
    """Keyword-only classification with the built-in lexicons (no generator configured)."""
    return await _default_classifier.classify(description, profile, player_id)
