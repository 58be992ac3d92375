import pytest

from support_engine.models import AccountStatus, ChurnRisk, PlayerProfile
from tests.fakes import FakeRedis


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def player1():
    return PlayerProfile(
        player_id="player1",
        player_name="TestPlayer1",
        game_level=15,
        vip_level=3,
        is_spender=True,
        total_spend=120.50,
        session_days=25,
        churn_risk=ChurnRisk.MEDIUM,
    )


@pytest.fixture
def f2p_player():
    return PlayerProfile(player_id="f2p-1", player_name="Newbie", game_level=3, vip_level=0, total_spend=0.0)


@pytest.fixture
def locked_whale():
    return PlayerProfile(
        player_id="lannister-gold",
        player_name="LannisterGold",
        game_level=27,
        vip_level=12,
        is_spender=True,
        total_spend=2187.00,
        session_days=89,
        account_status=AccountStatus.LOCKED,
        lock_reason="automated_security",
        support_tier="vip",
    )
