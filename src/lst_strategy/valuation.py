"""
Valuation Oracle
================
Live valuation of the capital the strategy manages.

Total value is always recomputed from custody balances; nothing here is
cached across calls.
"""

from __future__ import annotations

from dataclasses import dataclass

from src.lst_strategy.integration import LSTIntegration


@dataclass(frozen=True)
class ValuationSnapshot:
    """Point-in-time breakdown, valid only for the call that produced it."""

    liquid_balance: int
    lst_balance: int
    lst_value: int

    @property
    def total_value(self) -> int:
        return self.liquid_balance + self.lst_value


class ValuationOracle:
    def __init__(self, integration: LSTIntegration):
        self.integration = integration

    async def liquid_balance(self) -> int:
        return await self.integration.liquid_balance()

    async def lst_balance(self) -> int:
        return await self.integration.lst_balance()

    async def lst_value(self, amount: int) -> int:
        return await self.integration.lst_to_asset(amount)

    async def snapshot(self) -> ValuationSnapshot:
        liquid = await self.liquid_balance()
        lst = await self.lst_balance()
        return ValuationSnapshot(
            liquid_balance=liquid,
            lst_balance=lst,
            lst_value=await self.lst_value(lst),
        )

    async def total_value(self) -> int:
        """Liquid balance + LST valuation."""
        return (await self.snapshot()).total_value
