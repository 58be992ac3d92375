"""
Compensation rule table keyed by (player tier, impact level).

The table is immutable configuration; `CompensationCalculator` receives it at
construction so alternate rule sets can be swapped in.
"""

from types import MappingProxyType
from typing import Iterator, Mapping, Optional

from support_engine.models import CompensationRule, ImpactLevel, PlayerTier, RewardItem


def rule_key(tier: PlayerTier, impact: ImpactLevel) -> str:
    return f"{tier.value}_{impact.value}"


def _items(*pairs: tuple[str, int]) -> tuple[RewardItem, ...]:
    return tuple(RewardItem(name=name, quantity=qty) for name, qty in pairs)


class CompensationRuleTable:
    """Read-only mapping of (tier, impact) -> CompensationRule with a global default rule."""

    def __init__(
        self,
        rules: Mapping[tuple[PlayerTier, ImpactLevel], CompensationRule],
        default_key: tuple[PlayerTier, ImpactLevel] = (PlayerTier.F2P, ImpactLevel.LOW),
    ):
        if default_key not in rules:
            raise ValueError(f"Default rule {default_key} missing from rule table")
        self._rules = MappingProxyType(dict(rules))
        self.default_key = default_key

    def get(self, tier: PlayerTier, impact: ImpactLevel) -> Optional[CompensationRule]:
        return self._rules.get((tier, impact))

    @property
    def default_rule(self) -> CompensationRule:
        return self._rules[self.default_key]

    def items(self) -> Iterator[tuple[tuple[PlayerTier, ImpactLevel], CompensationRule]]:
        return iter(self._rules.items())

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, key: object) -> bool:
        return key in self._rules


_T = PlayerTier
_I = ImpactLevel

DEFAULT_RULES: dict[tuple[PlayerTier, ImpactLevel], CompensationRule] = {
    # F2P
    (_T.F2P, _I.LOW): CompensationRule(gold=100, gems=0, resources={"energy": 10}, vip_points=0, multiplier=1.0),
    (_T.F2P, _I.MEDIUM): CompensationRule(
        gold=400, gems=0, resources={"energy": 35, "wood": 100},
        items=_items(("speed_up", 2)), vip_points=0, multiplier=1.0,
    ),
    (_T.F2P, _I.HIGH): CompensationRule(
        gold=1000, gems=0, resources={"energy": 100, "wood": 500, "stone": 300},
        items=_items(("speed_up", 5), ("shield", 1)), vip_points=0, multiplier=1.0, requires_approval=True,
    ),
    # Light spender
    (_T.LIGHT_SPENDER, _I.LOW): CompensationRule(
        gold=300, gems=10, resources={"energy": 20, "wood": 100}, vip_points=5, multiplier=1.1,
    ),
    (_T.LIGHT_SPENDER, _I.MEDIUM): CompensationRule(
        gold=500, gems=25, resources={"energy": 40, "wood": 200, "stone": 100},
        items=_items(("speed_up", 3)), vip_points=10, multiplier=1.2,
    ),
    (_T.LIGHT_SPENDER, _I.HIGH): CompensationRule(
        gold=800, gems=50, resources={"energy": 75, "wood": 400, "stone": 200},
        items=_items(("speed_up", 5), ("shield", 2)), vip_points=20, multiplier=1.3,
    ),
    # Medium spender
    (_T.MEDIUM_SPENDER, _I.LOW): CompensationRule(
        gold=500, gems=25, resources={"energy": 30, "wood": 150, "stone": 100},
        items=_items(("speed_up", 2)), vip_points=15, multiplier=1.2,
    ),
    (_T.MEDIUM_SPENDER, _I.MEDIUM): CompensationRule(
        gold=1000, gems=75, resources={"energy": 60, "wood": 300, "stone": 200, "iron": 100},
        items=_items(("speed_up", 5), ("shield", 2)), vip_points=30, multiplier=1.4,
    ),
    (_T.MEDIUM_SPENDER, _I.HIGH): CompensationRule(
        gold=1500, gems=150, resources={"energy": 100, "wood": 500, "stone": 300, "iron": 200},
        items=_items(("speed_up", 8), ("shield", 3), ("premium_chest", 1)),
        vip_points=50, multiplier=1.5, requires_approval=True,
    ),
    # Whale
    (_T.WHALE, _I.LOW): CompensationRule(
        gold=1000, gems=100, resources={"energy": 50, "wood": 250, "stone": 150, "iron": 100},
        items=_items(("speed_up", 5), ("shield", 2)), vip_points=50, multiplier=1.5,
    ),
    (_T.WHALE, _I.MEDIUM): CompensationRule(
        gold=2000, gems=250, resources={"energy": 100, "wood": 500, "stone": 300, "iron": 200, "gems": 25},
        items=_items(("speed_up", 10), ("shield", 5), ("premium_chest", 2)), vip_points=100, multiplier=1.7,
    ),
    (_T.WHALE, _I.HIGH): CompensationRule(
        gold=3500, gems=500, resources={"energy": 200, "wood": 1000, "stone": 600, "iron": 400, "gems": 100},
        items=_items(("speed_up", 20), ("shield", 10), ("premium_chest", 5)),
        vip_points=200, multiplier=2.0, requires_approval=True,
    ),
    # VIP whale
    (_T.VIP_WHALE, _I.LOW): CompensationRule(
        gold=2000, gems=200, resources={"energy": 75, "wood": 400, "stone": 250, "iron": 150, "gems": 50},
        items=_items(("speed_up", 10), ("shield", 5), ("premium_chest", 2)), vip_points=100, multiplier=2.0,
    ),
    (_T.VIP_WHALE, _I.MEDIUM): CompensationRule(
        gold=4000, gems=500, resources={"energy": 150, "wood": 800, "stone": 500, "iron": 300, "gems": 150},
        items=_items(("speed_up", 20), ("shield", 10), ("premium_chest", 5), ("exclusive_bundle", 1)),
        vip_points=250, multiplier=2.5, requires_approval=True,
    ),
    (_T.VIP_WHALE, _I.HIGH): CompensationRule(
        gold=7500, gems=1000, resources={"energy": 300, "wood": 1500, "stone": 1000, "iron": 600, "gems": 300},
        items=_items(("speed_up", 50), ("shield", 25), ("premium_chest", 15), ("exclusive_bundle", 3)),
        vip_points=500, multiplier=3.0, requires_approval=True,
    ),
}

DEFAULT_RULE_TABLE = CompensationRuleTable(DEFAULT_RULES)
