"""Collaborator drivers for the LST strategy (paper mode)."""

from src.lst_strategy.drivers.virtual import (
    VirtualCustody,
    VirtualMarketPool,
    VirtualStakingProtocol,
    VirtualWithdrawalQueue,
    VirtualEnvironment,
    build_virtual_environment,
)

__all__ = [
    "VirtualCustody",
    "VirtualMarketPool",
    "VirtualStakingProtocol",
    "VirtualWithdrawalQueue",
    "VirtualEnvironment",
    "build_virtual_environment",
]
