"""
Player profile registry backed by Redis (player:{id} holds the profile JSON).
The decision engine only reads profiles; registration exists for seeding and admin use.
"""

import logging
from typing import Optional

from support_engine.config import REDIS_CONN_TIMEOUT, REDIS_URL
from support_engine.models import AccountStatus, ChurnRisk, PlayerProfile

logger = logging.getLogger(__name__)

PLAYER_PREFIX = "player:"


def _player_key(player_id: str) -> str:
    return f"{PLAYER_PREFIX}{player_id}"


# Demo profiles (seeded at startup)
DEMO_PLAYERS = [
    PlayerProfile(
        player_id="lannister-gold",
        player_name="LannisterGold",
        game_level=27,
        vip_level=12,
        is_spender=True,
        total_spend=2187.00,
        session_days=89,
        kingdom_id=421,
        alliance_name="House Lannister",
        account_status=AccountStatus.LOCKED,
        lock_reason="automated_security",
        support_tier="vip",
        churn_risk=ChurnRisk.LOW,
    ),
    PlayerProfile(
        player_id="player1",
        player_name="TestPlayer1",
        game_level=15,
        vip_level=3,
        is_spender=True,
        total_spend=120.50,
        session_days=25,
        kingdom_id=101,
        alliance_name="Northern Alliance",
        account_status=AccountStatus.ACTIVE,
        support_tier="priority",
        churn_risk=ChurnRisk.MEDIUM,
    ),
]


class PlayerRegistry:
    def __init__(self, redis_client=None):
        self._client = redis_client

    def _redis(self):
        if self._client is None:
            import redis

            self._client = redis.from_url(
                REDIS_URL,
                decode_responses=True,
                socket_connect_timeout=REDIS_CONN_TIMEOUT,
            )
        return self._client

    def get(self, player_id: str) -> Optional[PlayerProfile]:
        raw = self._redis().get(_player_key(player_id))
        if not raw:
            return None
        return PlayerProfile.model_validate_json(raw)

    def register(self, profile: PlayerProfile) -> None:
        """Upsert a profile."""
        self._redis().set(_player_key(profile.player_id), profile.model_dump_json())
        logger.info(
            "Player %s registered (VIP %d, spend %.2f, status=%s).",
            profile.player_id, profile.vip_level, profile.total_spend, profile.account_status.value,
        )

    def seed_demo_players(self) -> int:
        """Register demo players only if they don't exist. Returns how many were written."""
        seeded = 0
        for profile in DEMO_PLAYERS:
            if self.get(profile.player_id) is None:
                self.register(profile)
                seeded += 1
        if seeded:
            logger.info("Seeded %d demo players (existing players left unchanged).", seeded)
        return seeded
