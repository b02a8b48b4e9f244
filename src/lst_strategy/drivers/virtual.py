"""
Virtual Drivers
===============
Paper collaborators for the LST strategy.

In-memory stand-ins for the strategy's custody account, the market pool,
the staking protocol and its withdrawal queue. They move balances exactly
like their on-chain counterparts (checks first, then balance changes), so
the strategy code path is identical in paper and live mode.

Extra controls for simulation and tests:
- set the pool price and an execution drift (stale quote)
- pause the staking protocol
- finalize queued requests with a rounding loss
- make the next call to any method revert
"""

from __future__ import annotations

from dataclasses import dataclass
from fractions import Fraction
from typing import Dict, List, Optional, Sequence, Tuple

from solders.pubkey import Pubkey

from src.lst_strategy.types import ExternalCallError, SlippageError
from src.shared.system.logging import Logger


LIQUID = "liquid"
LST = "lst"
NATIVE = "native"


class _Revertible:
    """Lets a test make the next call to a named method revert."""

    def __init__(self):
        self._failures: Dict[str, Tuple[int, Exception]] = {}
        self.calls: Dict[str, int] = {}

    def fail_next(self, method: str, error: Optional[Exception] = None, after: int = 0) -> None:
        """Revert one call to `method`, letting the first `after` calls through."""
        error = error or ExternalCallError(f"{type(self).__name__}.{method} reverted")
        self._failures[method] = (after, error)

    def _enter(self, method: str) -> None:
        self.calls[method] = self.calls.get(method, 0) + 1
        if method not in self._failures:
            return
        skip, error = self._failures[method]
        if skip > 0:
            self._failures[method] = (skip - 1, error)
            return
        del self._failures[method]
        raise error


# =============================================================================
# CUSTODY
# =============================================================================


class VirtualCustody(_Revertible):
    """Strategy account holding liquid asset, LST and transient native capital."""

    def __init__(
        self,
        liquid: int = 0,
        lst: int = 0,
        native: int = 0,
        address: Optional[Pubkey] = None,
    ):
        super().__init__()
        self._address = address or Pubkey.new_unique()
        self.balances: Dict[str, int] = {LIQUID: liquid, LST: lst, NATIVE: native}

    @property
    def address(self) -> Pubkey:
        return self._address

    def credit(self, token: str, amount: int) -> None:
        if amount < 0:
            raise ValueError("credit amount must be non-negative")
        self.balances[token] += amount

    def debit(self, token: str, amount: int) -> None:
        if amount < 0:
            raise ValueError("debit amount must be non-negative")
        if self.balances[token] < amount:
            raise ExternalCallError(
                f"insufficient {token}: requested {amount}, available {self.balances[token]}"
            )
        self.balances[token] -= amount

    def deposit(self, amount: int) -> None:
        """Depositor capital arriving from the vault framework."""
        self.credit(LIQUID, amount)

    async def liquid_balance(self) -> int:
        self._enter("liquid_balance")
        return self.balances[LIQUID]

    async def lst_balance(self) -> int:
        self._enter("lst_balance")
        return self.balances[LST]

    async def native_balance(self) -> int:
        self._enter("native_balance")
        return self.balances[NATIVE]

    async def wrap(self, amount: int) -> None:
        self._enter("wrap")
        self.debit(NATIVE, amount)
        self.credit(LIQUID, amount)

    async def unwrap(self, amount: int) -> None:
        self._enter("unwrap")
        self.debit(LIQUID, amount)
        self.credit(NATIVE, amount)


# =============================================================================
# MARKET POOL
# =============================================================================


class VirtualMarketPool(_Revertible):
    """
    Constant-price pool between the liquid asset and the LST.

    `lst_per_asset` is the quoted price. `execution_drift` scales the price
    actually paid at execution, modelling a quote that went stale.
    """

    def __init__(
        self,
        custody: VirtualCustody,
        asset_symbol: str = "WETH",
        lst_symbol: str = "stETH",
        lst_per_asset: Fraction = Fraction(1),
        execution_drift: Fraction = Fraction(1),
    ):
        super().__init__()
        self.custody = custody
        self.asset_symbol = asset_symbol
        self.lst_symbol = lst_symbol
        self.lst_per_asset = Fraction(lst_per_asset)
        self.execution_drift = Fraction(execution_drift)
        self.swaps: List[tuple] = []

    def set_price(self, lst_per_asset: Fraction) -> None:
        self.lst_per_asset = Fraction(lst_per_asset)

    def _token_key(self, symbol: str) -> str:
        if symbol == self.asset_symbol:
            return LIQUID
        if symbol == self.lst_symbol:
            return LST
        raise ExternalCallError(f"pool does not trade {symbol}")

    def _price(self, from_token: str, to_token: str, drift: Fraction) -> Fraction:
        src, dst = self._token_key(from_token), self._token_key(to_token)
        if src == dst:
            raise ExternalCallError("cannot swap a token for itself")
        price = self.lst_per_asset * drift
        return price if src == LIQUID else 1 / price

    async def quote(self, from_token: str, to_token: str, amount: int) -> int:
        self._enter("quote")
        return int(amount * self._price(from_token, to_token, Fraction(1)))

    async def execute_swap(
        self, from_token: str, to_token: str, amount_in: int, min_amount_out: int
    ) -> int:
        self._enter("execute_swap")
        out = int(amount_in * self._price(from_token, to_token, self.execution_drift))
        if out < min_amount_out:
            raise SlippageError(min_out=min_amount_out, actual_out=out)
        self.custody.debit(self._token_key(from_token), amount_in)
        self.custody.credit(self._token_key(to_token), out)
        self.swaps.append((from_token, to_token, amount_in, out))
        Logger.debug(f"[PAPER] Swap {amount_in} {from_token} → {out} {to_token}")
        return out


# =============================================================================
# STAKING PROTOCOL
# =============================================================================


class VirtualStakingProtocol(_Revertible):
    """1:1 native mint, pausable."""

    def __init__(self, custody: VirtualCustody):
        super().__init__()
        self.custody = custody
        self.paused = False
        self.referrals: List[str] = []

    async def is_paused(self) -> bool:
        self._enter("is_paused")
        return self.paused

    async def mint(self, amount: int, referral: str) -> int:
        self._enter("mint")
        if self.paused:
            raise ExternalCallError("staking protocol is paused")
        if amount <= 0:
            raise ExternalCallError("zero deposit")
        self.custody.debit(NATIVE, amount)
        self.custody.credit(LST, amount)
        self.referrals.append(referral)
        return amount


# =============================================================================
# WITHDRAWAL QUEUE
# =============================================================================


@dataclass
class QueuedRequest:
    request_id: int
    owner: Pubkey
    amount: int
    realized: int = 0
    finalized: bool = False
    claimed: bool = False


class VirtualWithdrawalQueue(_Revertible):
    """
    Request/claim queue. Requests lock LST immediately; claims pay native
    capital once the request has been finalized by `finalize()`.
    """

    def __init__(self, custody: VirtualCustody):
        super().__init__()
        self.custody = custody
        self.requests: Dict[int, QueuedRequest] = {}
        self._next_id = 1

    async def request(self, amounts: Sequence[int], owner: Pubkey) -> List[int]:
        self._enter("request")
        if not amounts or any(a <= 0 for a in amounts):
            raise ExternalCallError("invalid request amounts")
        self.custody.debit(LST, sum(amounts))

        ids = []
        for amount in amounts:
            request_id = self._next_id
            self._next_id += 1
            self.requests[request_id] = QueuedRequest(request_id, owner, amount)
            ids.append(request_id)
        return ids

    def finalize(self, request_id: int, loss: int = 0) -> None:
        """Mark a request claimable, paying `amount - loss`."""
        req = self.requests[request_id]
        if not 0 <= loss <= req.amount:
            raise ValueError("loss must be within the requested amount")
        req.realized = req.amount - loss
        req.finalized = True

    def finalize_all(self, loss_per_request: int = 0) -> None:
        for req in self.requests.values():
            if not req.finalized:
                self.finalize(req.request_id, loss_per_request)

    async def is_claimable(self, request_id: int) -> bool:
        self._enter("is_claimable")
        req = self.requests.get(request_id)
        return req is not None and req.finalized and not req.claimed

    async def claim(self, request_id: int) -> int:
        self._enter("claim")
        req = self.requests.get(request_id)
        if req is None:
            raise ExternalCallError(f"unknown request {request_id}")
        if not req.finalized:
            raise ExternalCallError(f"request {request_id} not finalized")
        if req.claimed:
            raise ExternalCallError(f"request {request_id} already claimed")
        req.claimed = True
        self.custody.credit(NATIVE, req.realized)
        return req.realized


# =============================================================================
# FACTORY
# =============================================================================


@dataclass
class VirtualEnvironment:
    custody: VirtualCustody
    pool: VirtualMarketPool
    staking: VirtualStakingProtocol
    queue: VirtualWithdrawalQueue


def build_virtual_environment(
    liquid: int = 0,
    lst: int = 0,
    asset_symbol: str = "WETH",
    lst_symbol: str = "stETH",
    lst_per_asset: Fraction = Fraction(1),
) -> VirtualEnvironment:
    custody = VirtualCustody(liquid=liquid, lst=lst)
    return VirtualEnvironment(
        custody=custody,
        pool=VirtualMarketPool(custody, asset_symbol, lst_symbol, lst_per_asset),
        staking=VirtualStakingProtocol(custody),
        queue=VirtualWithdrawalQueue(custody),
    )
