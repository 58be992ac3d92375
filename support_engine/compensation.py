"""
Tiered compensation calculator.

Tier comes from cumulative spend, the base package from the (tier, impact)
rule table, and the final gold/gems/VIP points from three multipliers:
tier multiplier x churn multiplier x weekend multiplier.
"""

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Mapping, Union

from pydantic import ValidationError as PydanticValidationError

from support_engine.errors import RuleLookupMiss, ValidationError
from support_engine.models import (
    CalculatedCompensation,
    ChurnRisk,
    CompensationParams,
    CompensationRule,
    ImpactLevel,
    PlayerTier,
)
from support_engine.rules import DEFAULT_RULE_TABLE, CompensationRuleTable, rule_key

logger = logging.getLogger(__name__)

CHURN_MULTIPLIERS: Mapping[ChurnRisk, float] = {
    ChurnRisk.LOW: 1.0,
    ChurnRisk.MEDIUM: 1.25,
    ChurnRisk.HIGH: 1.5,
}
WEEKEND_MULTIPLIER = 1.1
FALLBACK_ERROR = "No matching rule found, using fallback"

# Upper bounds (exclusive) of each paid tier; spend of exactly 0 is f2p.
TIER_THRESHOLDS: tuple[tuple[float, PlayerTier], ...] = (
    (50.0, PlayerTier.LIGHT_SPENDER),
    (500.0, PlayerTier.MEDIUM_SPENDER),
    (2000.0, PlayerTier.WHALE),
)

_FIELD_MESSAGES = {
    "player_level": "must be a positive number",
    "vip_level": "must be a non-negative number",
    "total_spend": "must be a non-negative number",
    "impact_level": "must be low, medium, high, or critical",
    "churn_risk": "must be low, medium, or high",
    "is_weekend": "must be a boolean",
}


def classify_player_tier(total_spend: float) -> PlayerTier:
    """Map cumulative spend to a tier: 0 | (0,50) | [50,500) | [500,2000) | [2000,inf)."""
    if total_spend < 0:
        raise ValidationError("total_spend", _FIELD_MESSAGES["total_spend"])
    if total_spend == 0:
        return PlayerTier.F2P
    for upper, tier in TIER_THRESHOLDS:
        if total_spend < upper:
            return tier
    return PlayerTier.VIP_WHALE


def round_half_away_from_zero(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def special_offers_for(tier: PlayerTier) -> dict[str, Any]:
    offers: dict[str, Any] = {}
    if tier in (PlayerTier.WHALE, PlayerTier.VIP_WHALE):
        offers["discount_percent"] = 10
    if tier == PlayerTier.VIP_WHALE:
        offers["exclusive_bundle_unlock"] = True
        offers["vip_support_priority"] = True
    return offers


class CompensationCalculator:
    """Compute a compensation package from validated params and an injected rule table."""

    def __init__(self, rule_table: CompensationRuleTable = DEFAULT_RULE_TABLE):
        self.rule_table = rule_table

    @staticmethod
    def validate(params: Union[CompensationParams, Mapping[str, Any]]) -> CompensationParams:
        """Validate raw params; raise ValidationError naming the first bad field."""
        if isinstance(params, CompensationParams):
            return params
        try:
            return CompensationParams.model_validate(dict(params))
        except PydanticValidationError as e:
            first = e.errors()[0]
            field = str(first["loc"][0]) if first.get("loc") else "params"
            message = _FIELD_MESSAGES.get(field, first.get("msg", "invalid value"))
            if first.get("type") == "missing":
                message = "is required"
            raise ValidationError(field, message) from e

    def lookup_rule(self, tier: PlayerTier, impact: ImpactLevel) -> tuple[str, CompensationRule]:
        """
        Exact (tier, impact) rule; a `critical` impact with no explicit rule uses
        the tier's `high` rule. Raises RuleLookupMiss when neither exists.
        """
        rule = self.rule_table.get(tier, impact)
        if rule is not None:
            return rule_key(tier, impact), rule
        if impact == ImpactLevel.CRITICAL:
            rule = self.rule_table.get(tier, ImpactLevel.HIGH)
            if rule is not None:
                return rule_key(tier, ImpactLevel.HIGH), rule
        raise RuleLookupMiss(tier.value, impact.value)

    def calculate(self, params: Union[CompensationParams, Mapping[str, Any]]) -> CalculatedCompensation:
        p = self.validate(params)
        tier = classify_player_tier(p.total_spend)

        error = None
        try:
            key, rule = self.lookup_rule(tier, p.impact_level)
            requires_approval = rule.requires_approval
        except RuleLookupMiss as miss:
            logger.warning("%s; falling back to default rule.", miss)
            default_tier, default_impact = self.rule_table.default_key
            key, rule = rule_key(default_tier, default_impact), self.rule_table.default_rule
            requires_approval = False
            error = FALLBACK_ERROR

        churn_multiplier = CHURN_MULTIPLIERS[p.churn_risk]
        weekend_multiplier = WEEKEND_MULTIPLIER if p.is_weekend else 1.0
        total_multiplier = rule.multiplier * churn_multiplier * weekend_multiplier

        result = CalculatedCompensation(
            gold=round_half_away_from_zero(rule.gold * total_multiplier),
            gems=round_half_away_from_zero(rule.gems * total_multiplier),
            vip_points=round_half_away_from_zero(rule.vip_points * total_multiplier),
            resources=dict(rule.resources),
            items=list(rule.items),
            special_offers=special_offers_for(tier),
            multiplier_applied=total_multiplier,
            tier_multiplier=rule.multiplier,
            churn_multiplier=churn_multiplier,
            weekend_multiplier=weekend_multiplier,
            player_tier=tier,
            rule_key=key,
            requires_approval=requires_approval,
            error=error,
        )
        logger.info(
            "Compensation for %s player (impact=%s, churn=%s): gold=%d gems=%d x%.3f approval=%s",
            tier.value, p.impact_level.value, p.churn_risk.value,
            result.gold, result.gems, total_multiplier, requires_approval,
        )
        return result


_default_calculator = CompensationCalculator()


def calculate_compensation(params: Union[CompensationParams, Mapping[str, Any]]) -> CalculatedCompensation:
    """Calculate with the built-in rule table."""
    return _default_calculator.calculate(params)
