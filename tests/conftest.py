"""
LST Accumulator Test Configuration
==================================
Shared fixtures: a paper environment, governance keys and a wired strategy.
"""

import pytest
from solders.pubkey import Pubkey

from src.lst_strategy.access import Governance
from src.lst_strategy.config import StrategyConfig
from src.lst_strategy.drivers.virtual import build_virtual_environment
from src.lst_strategy.integration import QueueStakingIntegration
from src.lst_strategy.strategy import LSTAccumulatorStrategy
from src.shared.system.persistence import PersistenceDB
from src.shared.system.signal_bus import SignalBus


UNIT = 10**18


# ============================================================================
# KEYS
# ============================================================================


@pytest.fixture
def ops():
    """Management key."""
    return Pubkey.new_unique()


@pytest.fixture
def guardian():
    """Emergency admin key."""
    return Pubkey.new_unique()


@pytest.fixture
def stranger():
    return Pubkey.new_unique()


@pytest.fixture
def governance(ops, guardian):
    return Governance(management=ops, emergency_admin=guardian)


# ============================================================================
# PAPER ENVIRONMENT
# ============================================================================


@pytest.fixture
def env():
    """Custody, pool, staking protocol and queue sharing one account."""
    return build_virtual_environment()


@pytest.fixture
def config():
    return StrategyConfig(
        name="test-lst",
        referral="ref-test",
        dust_threshold=100,
        max_request_amount=1000 * UNIT,
        min_request_amount=1,
    )


@pytest.fixture
def integration(env, config):
    return QueueStakingIntegration.from_config(config, env.custody, env.pool, env.staking, env.queue)


@pytest.fixture
def bus():
    return SignalBus()


@pytest.fixture
def strategy(integration, governance, config, bus):
    return LSTAccumulatorStrategy(integration, governance, config=config, bus=bus)


# ============================================================================
# PERSISTENCE
# ============================================================================


@pytest.fixture
def temp_db(tmp_path):
    """Fresh PersistenceDB singleton backed by a temp file."""
    PersistenceDB._instance = None
    db = PersistenceDB(str(tmp_path / "lst_test.db"))
    yield db
    db.close()
    PersistenceDB._instance = None
