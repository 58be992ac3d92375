"""Routing policy: combine the classifier verdict with the sentiment escalation flag."""

from support_engine.models import RouteDecision, RoutingDecision, SentimentResult, Urgency


def decide_route(
    route: RouteDecision,
    auto_resolvable: bool,
    sentiment: SentimentResult,
    urgency: Urgency = Urgency.MEDIUM,
) -> RoutingDecision:
    """
    Final route for a case. A sentiment that requires a human always wins and
    disables automation; otherwise the classifier's route and flag pass through.
    """
    if sentiment.requires_human:
        return RoutingDecision(route=RouteDecision.HUMAN, auto_resolvable=False, urgency=urgency)
    return RoutingDecision(route=route, auto_resolvable=auto_resolvable, urgency=urgency)
