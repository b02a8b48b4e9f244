"""
LST Accumulator Strategy
========================
Accumulates a liquid-staking token (LST) on behalf of depositors and
tracks the protocol's asynchronous two-phase redemption.

Components:
- ValuationOracle: liquid + LST valuation, recomputed per call
- AccessController / Governance: admission and tier checks
- RoutingEngine: native mint vs market swap, dust floor
- RedemptionLedger: pending redemptions across initiate → claim
- LSTAccumulatorStrategy: lifecycle coordinator and entry points

Staking protocols plug in through `LSTIntegration` subclasses; paper
collaborators live in `src.lst_strategy.drivers.virtual`.
"""

from src.lst_strategy.types import (
    MAX_UINT256,
    StrategyState,
    StakeResult,
    StakeRoute,
    Tier,
    WithdrawalHandle,
    StrategyError,
    PreconditionError,
    UnauthorizedError,
    RedemptionsPendingError,
    LedgerInvariantError,
    ExternalCallError,
    SlippageError,
)
from src.lst_strategy.config import StrategyConfig
from src.lst_strategy.access import Governance

__all__ = [
    # Types
    "MAX_UINT256",
    "StrategyState",
    "StakeResult",
    "StakeRoute",
    "Tier",
    "WithdrawalHandle",
    "StrategyConfig",
    "Governance",
    # Errors
    "StrategyError",
    "PreconditionError",
    "UnauthorizedError",
    "RedemptionsPendingError",
    "LedgerInvariantError",
    "ExternalCallError",
    "SlippageError",
]


def get_strategy():
    """Lazy import for the coordinator (pulls in logging and persistence)."""
    from src.lst_strategy.strategy import LSTAccumulatorStrategy
    return LSTAccumulatorStrategy
