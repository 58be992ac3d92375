"""
Player-message analysis: detect the issue, read the player's tone, choose a
route and price a compensation package in one pass.
"""

import logging
from typing import Optional

from support_engine.classifier import ProblemClassifier
from support_engine.compensation import CompensationCalculator
from support_engine.errors import SupportEngineError, ValidationError
from support_engine.models import (
    AccountStatus,
    CalculatedCompensation,
    CategoryId,
    CompensationParams,
    DetectedIssue,
    ImpactLevel,
    MessageAnalysis,
    PlayerProfile,
    RouteDecision,
    RoutingDecision,
    Urgency,
)
from support_engine.routing import decide_route

logger = logging.getLogger(__name__)

URGENCY_TO_IMPACT = {
    Urgency.LOW: ImpactLevel.LOW,
    Urgency.MEDIUM: ImpactLevel.MEDIUM,
    Urgency.HIGH: ImpactLevel.HIGH,
}


def _compensate(
    calculator: CompensationCalculator, profile: Optional[PlayerProfile], impact: ImpactLevel
) -> Optional[CalculatedCompensation]:
    if profile is None:
        return None
    params = CompensationParams(
        player_level=profile.game_level,
        vip_level=profile.vip_level,
        total_spend=profile.total_spend,
        churn_risk=profile.churn_risk,
        impact_level=impact,
    )
    try:
        return calculator.calculate(params)
    except SupportEngineError as e:
        logger.warning("Compensation skipped for %s: %s", profile.player_id, e)
        return None


async def analyze_message(
    text: str,
    profile: Optional[PlayerProfile],
    classifier: ProblemClassifier,
    calculator: CompensationCalculator,
) -> MessageAnalysis:
    """
    A locked account turns any message into a critical account_access issue.
    Otherwise the classifier decides; category `other` never earns compensation.
    """
    if not text or not text.strip():
        raise ValidationError("message", "is required")

    if profile is not None and profile.account_status == AccountStatus.LOCKED:
        return _locked_account_analysis(text, profile, classifier, calculator)

    classification = await classifier.classify(text, profile)
    category = classification.top_category
    detected = category != CategoryId.OTHER or classifier.lexicons.has_issue_keyword(text)
    routing = RoutingDecision(
        route=classification.route_decision,
        auto_resolvable=classification.auto_resolvable,
        urgency=classification.suggested_urgency,
    )
    if not detected:
        logger.info("No issue detected in message from %s", profile.player_id if profile else "unknown player")
        return MessageAnalysis(
            issue_detected=False,
            sentiment=classification.sentiment,
            routing=routing,
            requires_human_review=classification.sentiment.requires_human,
        )

    top = classification.suggested_categories[0] if classification.suggested_categories else None
    impact = URGENCY_TO_IMPACT[classification.suggested_urgency]
    issue = DetectedIssue(
        issue_type=category,
        description=(top.reasoning if top and top.reasoning else classification.reasoning) or "Reported issue",
        player_impact=impact,
        confidence=top.confidence if top else 0.5,
    )
    compensation = None if category == CategoryId.OTHER else _compensate(calculator, profile, impact)
    review = (
        classification.sentiment.requires_human
        or routing.route == RouteDecision.HUMAN
        or (compensation is not None and compensation.requires_approval)
    )
    logger.info(
        "Message analysis: issue=%s impact=%s route=%s review=%s",
        category.value, impact.value, routing.route.value, review,
    )
    return MessageAnalysis(
        issue_detected=True,
        issue=issue,
        sentiment=classification.sentiment,
        routing=routing,
        compensation=compensation,
        requires_human_review=review,
    )


def _locked_account_analysis(
    text: str,
    profile: PlayerProfile,
    classifier: ProblemClassifier,
    calculator: CompensationCalculator,
) -> MessageAnalysis:
    reason = profile.lock_reason or "security"
    sentiment = classifier.sentiment_analyzer.analyze(text, account_lock=True)
    routing = decide_route(RouteDecision.AUTOMATED, True, sentiment, Urgency.HIGH)
    issue = DetectedIssue(
        issue_type=CategoryId.ACCOUNT_ACCESS,
        description=f"Account access issue - account is locked due to {reason}. Player cannot access game properly.",
        player_impact=ImpactLevel.CRITICAL,
        confidence=1.0,
    )
    compensation = _compensate(calculator, profile, ImpactLevel.CRITICAL)
    review = (
        sentiment.requires_human
        or routing.route == RouteDecision.HUMAN
        or (compensation is not None and compensation.requires_approval)
    )
    logger.info("Locked account %s: treating message as critical account access issue", profile.player_id)
    return MessageAnalysis(
        issue_detected=True,
        issue=issue,
        sentiment=sentiment,
        routing=routing,
        compensation=compensation,
        requires_human_review=review,
    )
