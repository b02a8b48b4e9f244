"""
Staking Integrations
====================
Capability interface between the strategy core and a concrete staking
protocol deployment.

The core never touches a pool, a staking contract or a withdrawal queue
directly. It holds an `LSTIntegration` and asks it to:
- value LST in liquid-asset terms
- quote / execute market swaps in either direction
- mint LST natively
- queue and settle two-phase withdrawals
- harvest auxiliary rewards

Collaborators are typed as Protocols so live RPC clients and the paper
drivers in `src.lst_strategy.drivers.virtual` are interchangeable. Every
collaborator call goes through `_call`, so whatever a live client raises
reaches the core as an `ExternalCallError`.
"""

from __future__ import annotations

from abc import ABC
from typing import TYPE_CHECKING, Any, Awaitable, Callable, List, Protocol, Sequence, runtime_checkable

from solders.pubkey import Pubkey

from src.lst_strategy.types import (
    ExternalCallError,
    PartialClaimError,
    PreconditionError,
    StrategyError,
    WithdrawalHandle,
)
from src.shared.system.logging import Logger

if TYPE_CHECKING:
    from src.lst_strategy.config import StrategyConfig


# ═══════════════════════════════════════════════════════════════════════════════
# COLLABORATOR PROTOCOLS
# ═══════════════════════════════════════════════════════════════════════════════


@runtime_checkable
class Custody(Protocol):
    """Token balances held by the strategy account."""

    @property
    def address(self) -> Pubkey:
        ...

    async def liquid_balance(self) -> int:
        """Liquid asset (wrapped form) held."""
        ...

    async def lst_balance(self) -> int:
        ...

    async def native_balance(self) -> int:
        """Unwrapped native capital held (transient, between unwrap and mint)."""
        ...

    async def wrap(self, amount: int) -> None:
        ...

    async def unwrap(self, amount: int) -> None:
        ...


@runtime_checkable
class MarketPool(Protocol):
    async def quote(self, from_token: str, to_token: str, amount: int) -> int:
        ...

    async def execute_swap(
        self, from_token: str, to_token: str, amount_in: int, min_amount_out: int
    ) -> int:
        ...


@runtime_checkable
class StakingProtocol(Protocol):
    async def mint(self, amount: int, referral: str) -> int:
        """Deposit `amount` native capital, receive LST 1:1."""
        ...

    async def is_paused(self) -> bool:
        ...


@runtime_checkable
class WithdrawalQueue(Protocol):
    async def request(self, amounts: Sequence[int], owner: Pubkey) -> List[int]:
        ...

    async def is_claimable(self, request_id: int) -> bool:
        ...

    async def claim(self, request_id: int) -> int:
        """Credit the settled native capital to the owner; returns the amount paid."""
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# INTEGRATIONS
# ═══════════════════════════════════════════════════════════════════════════════


class LSTIntegration(ABC):
    """
    Base staking integration: 1:1 rebasing LST with a request/claim queue.

    Subclasses override the hooks whose behaviour differs per deployment
    (valuation, reward harvesting, pause checks).
    """

    protocol: str = "generic"

    def __init__(
        self,
        custody: Custody,
        pool: MarketPool,
        staking: StakingProtocol,
        queue: WithdrawalQueue,
        asset_symbol: str = "WETH",
        lst_symbol: str = "stETH",
        referral: str = "",
        max_request_amount: int = 1000 * 10**18,
        min_request_amount: int = 1,
    ):
        if min_request_amount <= 0 or max_request_amount < 2 * min_request_amount:
            raise ValueError("withdrawal request bounds must satisfy 0 < 2*min <= max")
        self.custody = custody
        self.pool = pool
        self.staking = staking
        self.queue = queue
        self.asset_symbol = asset_symbol
        self.lst_symbol = lst_symbol
        self.referral = referral
        self.max_request_amount = max_request_amount
        self.min_request_amount = min_request_amount

    @classmethod
    def from_config(
        cls,
        config: "StrategyConfig",
        custody: Custody,
        pool: MarketPool,
        staking: StakingProtocol,
        queue: WithdrawalQueue,
    ) -> "LSTIntegration":
        return cls(
            custody,
            pool,
            staking,
            queue,
            asset_symbol=config.asset_symbol,
            lst_symbol=config.lst_symbol,
            referral=config.referral,
            max_request_amount=config.max_request_amount,
            min_request_amount=config.min_request_amount,
        )

    @staticmethod
    async def _call(operation: str, fn: Callable[..., Awaitable[Any]], *args) -> Any:
        """Invoke a collaborator, normalising foreign failures to ExternalCallError."""
        try:
            return await fn(*args)
        except StrategyError:
            raise
        except Exception as e:
            raise ExternalCallError(f"{operation} failed: {e}") from e

    # -------------------------------------------------------------------------
    # Balances & valuation
    # -------------------------------------------------------------------------

    async def liquid_balance(self) -> int:
        return await self._call("custody.liquid_balance", self.custody.liquid_balance)

    async def lst_balance(self) -> int:
        return await self._call("custody.lst_balance", self.custody.lst_balance)

    async def native_balance(self) -> int:
        return await self._call("custody.native_balance", self.custody.native_balance)

    async def lst_to_asset(self, amount: int) -> int:
        """Value of `amount` LST in liquid-asset units. Default 1:1."""
        return amount

    async def mint_output(self, amount: int) -> int:
        """LST received from the native mint path. Protocol guarantees 1:1."""
        return amount

    # -------------------------------------------------------------------------
    # Preconditions
    # -------------------------------------------------------------------------

    async def deposits_blocked(self) -> bool:
        """External precondition that zeroes deposit capacity."""
        return False

    # -------------------------------------------------------------------------
    # Conversion paths
    # -------------------------------------------------------------------------

    async def quote_stake(self, amount: int) -> int:
        return await self._call("pool.quote", self.pool.quote, self.asset_symbol, self.lst_symbol, amount)

    async def market_stake(self, amount: int, min_out: int) -> int:
        return await self._call(
            "pool.execute_swap", self.pool.execute_swap,
            self.asset_symbol, self.lst_symbol, amount, min_out,
        )

    async def native_mint(self, amount: int) -> int:
        await self._call("custody.unwrap", self.custody.unwrap, amount)
        try:
            return await self._call("staking.mint", self.staking.mint, amount, self.referral)
        except ExternalCallError:
            # Undo the unwrap; if this also fails the next sweep picks it up
            await self._call("custody.wrap", self.custody.wrap, amount)
            raise

    async def market_unstake(self, amount: int, min_out: int) -> int:
        return await self._call(
            "pool.execute_swap", self.pool.execute_swap,
            self.lst_symbol, self.asset_symbol, amount, min_out,
        )

    async def sweep_native(self) -> int:
        """Wrap any native capital left in custody back into the liquid asset."""
        idle = await self.native_balance()
        if idle > 0:
            await self._call("custody.wrap", self.custody.wrap, idle)
            Logger.info(f"[LEDGER] Wrapped {idle} idle native capital")
        return idle

    # -------------------------------------------------------------------------
    # Two-phase withdrawal
    # -------------------------------------------------------------------------

    def split_request(self, amount: int) -> List[int]:
        """Split a withdrawal into queue-sized chunks, each within [min, max]."""
        if amount < self.min_request_amount:
            raise PreconditionError(
                f"withdrawal {amount} below minimum request {self.min_request_amount}"
            )
        full, remainder = divmod(amount, self.max_request_amount)
        chunks = [self.max_request_amount] * full
        if remainder:
            if remainder < self.min_request_amount:
                # Rebalance the tail so both pieces clear the minimum
                tail = chunks.pop() + remainder
                chunks.extend([tail - tail // 2, tail // 2])
            else:
                chunks.append(remainder)
        return chunks

    async def submit_requests(self, chunks: Sequence[int]) -> List[int]:
        """Queue the chunks; LST leaves custody once this returns."""
        request_ids = await self._call(
            "queue.request", self.queue.request, list(chunks), self.custody.address
        )
        Logger.debug(f"[LEDGER] Queued {len(chunks)} request(s): {request_ids}")
        return list(request_ids)

    def issue_handle(self, request_ids: Sequence[int], chunks: Sequence[int], amount: int) -> WithdrawalHandle:
        if len(request_ids) != len(chunks):
            raise ExternalCallError(
                f"queue returned {len(request_ids)} ids for {len(chunks)} requests"
            )
        return WithdrawalHandle(
            protocol=self.protocol,
            request_ids=tuple(request_ids),
            requested_amount=amount,
        )

    async def claim_withdrawal(self, handle: WithdrawalHandle) -> int:
        """
        Settle every request in the handle; returns native capital paid out.

        Proceeds stay native here; wrapping is a separate `sweep_native()`
        step so a wrap failure can never undo the booking of a settled claim.
        """
        if handle.protocol != self.protocol:
            raise PreconditionError(
                f"handle issued by '{handle.protocol}' cannot be claimed on '{self.protocol}'"
            )
        if not handle.request_ids:
            raise PreconditionError("handle carries no request ids")

        # Refuse before any request in the batch is settled
        for request_id in handle.request_ids:
            if not await self._call("queue.is_claimable", self.queue.is_claimable, request_id):
                raise PreconditionError(f"request {request_id} is not claimable yet")

        realized = 0
        for i, request_id in enumerate(handle.request_ids):
            try:
                realized += await self._call("queue.claim", self.queue.claim, request_id)
            except ExternalCallError as e:
                if i == 0:
                    raise
                remaining = WithdrawalHandle(
                    protocol=self.protocol,
                    request_ids=handle.request_ids[i:],
                    requested_amount=max(0, handle.requested_amount - realized),
                )
                raise PartialClaimError(realized=realized, remaining=remaining, reason=str(e)) from e
        return realized

    # -------------------------------------------------------------------------
    # Rewards
    # -------------------------------------------------------------------------

    async def harvest_rewards(self) -> int:
        """Claim and sell auxiliary reward streams. Default no-op."""
        return 0


class QueueStakingIntegration(LSTIntegration):
    """
    Rebasing 1:1 LST (stETH-style) with a pausable staking contract.

    New deposits are refused while the staking protocol is paused, since
    idle capital could not be routed through the native mint.
    """

    protocol = "lido"

    async def deposits_blocked(self) -> bool:
        paused = await self._call("staking.is_paused", self.staking.is_paused)
        if paused:
            Logger.warning("[ACCESS] Staking protocol paused, deposits blocked")
        return paused


class MarketValuedIntegration(QueueStakingIntegration):
    """
    Same protocol, but LST is marked to the pool's bid instead of 1:1.

    Used by deployments that must not report value the market would not pay.
    """

    async def lst_to_asset(self, amount: int) -> int:
        if amount == 0:
            return 0
        return await self._call("pool.quote", self.pool.quote, self.lst_symbol, self.asset_symbol, amount)
