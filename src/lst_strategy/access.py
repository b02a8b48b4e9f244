"""
Access Controller
=================
Governance tiers and deposit admission.

Tiers:
1. MANAGEMENT - routine tuning (stake toggle, deposit limit, manual ops)
2. EMERGENCY  - management or the emergency admin (allowlist, open mode, shutdown)
3. KEEPER     - keepers or management (periodic cycle)

Every privileged entry point calls one of the `require_*` checks first;
a failed check raises `UnauthorizedError` before anything is touched.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Optional, Set

from solders.pubkey import Pubkey

from src.lst_strategy.integration import LSTIntegration
from src.lst_strategy.types import StrategyState, Tier, UnauthorizedError
from src.lst_strategy.valuation import ValuationOracle


@dataclass
class Governance:
    """Role holders for one strategy instance."""

    management: Pubkey
    emergency_admin: Optional[Pubkey] = None
    keepers: Set[Pubkey] = field(default_factory=set)

    def copy(self) -> "Governance":
        return replace(self, keepers=set(self.keepers))

    def restore(self, snapshot: "Governance") -> None:
        self.management = snapshot.management
        self.emergency_admin = snapshot.emergency_admin
        self.keepers = set(snapshot.keepers)

    def require_management(self, caller: Optional[Pubkey]) -> None:
        if caller is None or caller != self.management:
            raise UnauthorizedError(caller, Tier.MANAGEMENT)

    def require_emergency_authority(self, caller: Optional[Pubkey]) -> None:
        if caller is None or caller not in (self.management, self.emergency_admin):
            raise UnauthorizedError(caller, Tier.EMERGENCY)

    def require_keeper(self, caller: Optional[Pubkey]) -> None:
        if caller is None or (caller != self.management and caller not in self.keepers):
            raise UnauthorizedError(caller, Tier.KEEPER)


class AccessController:
    """
    Decides how much new capital a depositor may contribute.

    Order of checks matters: the integration's external precondition
    (e.g. staking paused) runs before the generic capacity check.
    """

    def __init__(self, state: StrategyState, oracle: ValuationOracle, integration: LSTIntegration):
        self.state = state
        self.oracle = oracle
        self.integration = integration

    def is_admitted(self, depositor: Pubkey) -> bool:
        return self.state.open_deposits or depositor in self.state.allowed

    async def available_deposit_capacity(self, depositor: Pubkey) -> int:
        if await self.integration.deposits_blocked():
            return 0
        if self.state.is_shutdown:
            return 0
        if not self.is_admitted(depositor):
            return 0

        total = await self.oracle.total_value()
        return max(0, self.state.deposit_limit - total)
