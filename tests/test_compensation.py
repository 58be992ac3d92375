"""
Unit tests for the tiered compensation calculator.
Run: pytest tests/test_compensation.py -v
"""

import itertools

import pytest

from support_engine.compensation import (
    FALLBACK_ERROR,
    CompensationCalculator,
    calculate_compensation,
    classify_player_tier,
    round_half_away_from_zero,
)
from support_engine.errors import ValidationError
from support_engine.models import ChurnRisk, CompensationRule, ImpactLevel, PlayerTier
from support_engine.rules import DEFAULT_RULE_TABLE, CompensationRuleTable


def _params(**overrides):
    params = {
        "player_level": 1,
        "vip_level": 0,
        "total_spend": 0,
        "churn_risk": "low",
        "impact_level": "low",
        "is_weekend": False,
    }
    params.update(overrides)
    return params


class TestPlayerTier:
    @pytest.mark.parametrize(
        "spend,tier",
        [
            (0, PlayerTier.F2P),
            (0.01, PlayerTier.LIGHT_SPENDER),
            (49.99, PlayerTier.LIGHT_SPENDER),
            (50, PlayerTier.MEDIUM_SPENDER),
            (499.99, PlayerTier.MEDIUM_SPENDER),
            (500, PlayerTier.WHALE),
            (1999.99, PlayerTier.WHALE),
            (2000, PlayerTier.VIP_WHALE),
            (1_000_000, PlayerTier.VIP_WHALE),
        ],
    )
    def test_thresholds(self, spend, tier):
        assert classify_player_tier(spend) == tier

    def test_negative_spend_rejected(self):
        with pytest.raises(ValidationError):
            classify_player_tier(-1)


class TestRounding:
    def test_half_away_from_zero(self):
        assert round_half_away_from_zero(0.5) == 1
        assert round_half_away_from_zero(2.5) == 3
        assert round_half_away_from_zero(1.49) == 1
        assert round_half_away_from_zero(412.5) == 413


class TestCalculate:
    def test_f2p_low_baseline(self):
        result = calculate_compensation(_params())
        assert result.gold == 100
        assert result.gems == 0
        assert result.vip_points == 0
        assert result.multiplier_applied == 1.0
        assert result.requires_approval is False
        assert result.player_tier == PlayerTier.F2P
        assert result.resources == {"energy": 10}
        assert result.error is None

    def test_churn_multiplier_rounds_half_up(self):
        # 300 gold x 1.1 tier x 1.25 churn = 412.5
        result = calculate_compensation(_params(total_spend=10, churn_risk="medium"))
        assert result.player_tier == PlayerTier.LIGHT_SPENDER
        assert result.gold == 413
        assert result.gems == 14
        assert result.vip_points == 7
        assert result.churn_multiplier == 1.25

    def test_all_multipliers(self):
        result = calculate_compensation(
            _params(total_spend=800, churn_risk="high", impact_level="medium", is_weekend=True)
        )
        assert result.player_tier == PlayerTier.WHALE
        assert result.tier_multiplier == 1.7
        assert result.churn_multiplier == 1.5
        assert result.weekend_multiplier == 1.1
        assert result.multiplier_applied == pytest.approx(1.7 * 1.5 * 1.1)
        assert result.gold == 5610
        assert result.gems == 701

    def test_resources_and_items_unscaled(self):
        result = calculate_compensation(_params(total_spend=800, churn_risk="high", impact_level="high"))
        assert result.resources["energy"] == 200
        assert [(i.name, i.quantity) for i in result.items] == [
            ("speed_up", 20), ("shield", 10), ("premium_chest", 5),
        ]

    def test_critical_uses_tier_high_rule(self):
        result = calculate_compensation(_params(total_spend=800, impact_level="critical"))
        assert result.rule_key == "whale_high"
        assert result.gold == 7000
        assert result.requires_approval is True
        assert result.error is None

    def test_approval_flag_from_rule(self):
        assert calculate_compensation(_params(impact_level="high")).requires_approval is True
        assert calculate_compensation(_params(total_spend=2500, impact_level="medium")).requires_approval is True
        assert calculate_compensation(_params(total_spend=100, impact_level="medium")).requires_approval is False

    def test_missing_rule_uses_global_default(self):
        table = CompensationRuleTable(
            {(PlayerTier.F2P, ImpactLevel.LOW): CompensationRule(gold=100, resources={"energy": 10})}
        )
        calc = CompensationCalculator(table)
        result = calc.calculate(_params(total_spend=10, impact_level="high"))
        assert result.error == FALLBACK_ERROR
        assert result.requires_approval is False
        assert result.rule_key == "f2p_low"
        assert result.player_tier == PlayerTier.LIGHT_SPENDER
        assert result.gold == 100

    def test_special_offers(self):
        assert calculate_compensation(_params(total_spend=100)).special_offers == {}
        assert calculate_compensation(_params(total_spend=600)).special_offers == {"discount_percent": 10}
        assert calculate_compensation(_params(total_spend=5000)).special_offers == {
            "discount_percent": 10,
            "exclusive_bundle_unlock": True,
            "vip_support_priority": True,
        }

    def test_defaults_for_optional_fields(self):
        result = calculate_compensation({"player_level": 5, "vip_level": 1, "total_spend": 0, "impact_level": "low"})
        assert result.churn_multiplier == 1.0
        assert result.weekend_multiplier == 1.0

    def test_composition_invariant(self):
        spends = (0, 20, 100, 900, 3000)
        for spend, impact, churn, weekend in itertools.product(spends, ImpactLevel, ChurnRisk, (False, True)):
            result = calculate_compensation(
                _params(total_spend=spend, impact_level=impact.value, churn_risk=churn.value, is_weekend=weekend)
            )
            assert isinstance(result.gold, int) and result.gold >= 0
            assert isinstance(result.gems, int) and result.gems >= 0
            assert isinstance(result.vip_points, int) and result.vip_points >= 0
            assert result.multiplier_applied == (
                result.tier_multiplier * result.churn_multiplier * result.weekend_multiplier
            )


class TestValidation:
    @pytest.mark.parametrize(
        "overrides,field",
        [
            ({"player_level": 0}, "player_level"),
            ({"vip_level": -1}, "vip_level"),
            ({"total_spend": -5}, "total_spend"),
            ({"impact_level": "extreme"}, "impact_level"),
            ({"churn_risk": "huge"}, "churn_risk"),
        ],
    )
    def test_out_of_domain(self, overrides, field):
        with pytest.raises(ValidationError) as exc:
            calculate_compensation(_params(**overrides))
        assert exc.value.field == field
        assert field in str(exc.value)

    def test_missing_field(self):
        params = _params()
        del params["impact_level"]
        with pytest.raises(ValidationError) as exc:
            calculate_compensation(params)
        assert exc.value.field == "impact_level"
        assert exc.value.message == "is required"

    def test_validation_error_is_value_error(self):
        with pytest.raises(ValueError):
            calculate_compensation(_params(player_level=-3))


class TestRuleTable:
    def test_default_table_complete(self):
        assert len(DEFAULT_RULE_TABLE) == 15
        for tier in PlayerTier:
            for impact in (ImpactLevel.LOW, ImpactLevel.MEDIUM, ImpactLevel.HIGH):
                assert (tier, impact) in DEFAULT_RULE_TABLE

    def test_default_key_required(self):
        with pytest.raises(ValueError):
            CompensationRuleTable({(PlayerTier.WHALE, ImpactLevel.LOW): CompensationRule(gold=1)})
