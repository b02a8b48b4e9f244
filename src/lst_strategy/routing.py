"""
Routing Engine
==============
Converts liquid capital into LST along the path that yields at least as
much LST, and converts LST back through the market.

Decision (one shot per call, no retry, no split):
1. DUST   → amount <= dust floor: skip, capital stays idle
2. QUOTE  → ask the pool how much LST `amount` buys
3. MARKET → quote beats the native mint: swap with min_out = mint output
4. MINT   → otherwise deposit natively (1:1 by protocol design)
"""

from __future__ import annotations

from src.lst_strategy.integration import LSTIntegration
from src.lst_strategy.types import SlippageError, StakeResult, StakeRoute
from src.shared.system.logging import Logger


class RoutingEngine:
    def __init__(self, integration: LSTIntegration, dust_threshold: int = 100):
        if dust_threshold < 0:
            raise ValueError("dust_threshold must be non-negative")
        self.integration = integration
        self.dust_threshold = dust_threshold

    def is_dust(self, amount: int) -> bool:
        return amount <= self.dust_threshold

    async def stake(self, amount: int) -> StakeResult:
        """
        Convert `amount` liquid capital to LST.

        The market path is only taken when its quote strictly beats the mint,
        and is executed with the mint output as its floor so a stale quote can
        never deliver less than the native rate.
        """
        if self.is_dust(amount):
            Logger.debug(f"[ROUTER] {amount} at or below dust floor {self.dust_threshold}, skipping")
            return StakeResult(route=StakeRoute.SKIPPED, amount_in=amount)

        quoted = await self.integration.quote_stake(amount)
        baseline = await self.integration.mint_output(amount)

        if quoted > baseline:
            lst_out = await self.integration.market_stake(amount, baseline)
            if lst_out < baseline:
                raise SlippageError(min_out=baseline, actual_out=lst_out)
            Logger.info(f"[ROUTER] Market route: {amount} → {lst_out} LST (quote {quoted})")
            return StakeResult(StakeRoute.MARKET, amount, lst_out, quoted)

        lst_out = await self.integration.native_mint(amount)
        Logger.info(f"[ROUTER] Mint route: {amount} → {lst_out} LST (quote {quoted})")
        return StakeResult(StakeRoute.MINT, amount, lst_out, quoted)

    async def swap_to_asset(self, amount: int, min_out: int) -> int:
        """Sell `amount` LST through the pool; no native-unstake fallback."""
        out = await self.integration.market_unstake(amount, min_out)
        if out < min_out:
            raise SlippageError(min_out=min_out, actual_out=out)
        Logger.info(f"[ROUTER] Swapped {amount} LST → {out} (min {min_out})")
        return out
