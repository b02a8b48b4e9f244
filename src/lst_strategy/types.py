"""
LST Strategy Type Definitions
=============================
Dataclasses and errors shared by every LST strategy component.

- StrategyState: the durable state of one strategy instance
- WithdrawalHandle: tagged handle returned by initiate, required by claim
- StakeResult: outcome of one routing decision
- Error taxonomy: precondition / invariant / external-call (partial claim, slippage)
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Dict, Optional, Set, Tuple

from solders.pubkey import Pubkey


MAX_UINT256 = 2**256 - 1


class Tier(Enum):
    """Governance tier required by a privileged operation."""

    MANAGEMENT = "MANAGEMENT"
    EMERGENCY = "EMERGENCY"
    KEEPER = "KEEPER"


class StakeRoute(Enum):
    """Path chosen by the routing engine."""

    MINT = "MINT"          # Native protocol deposit, 1:1 by design
    MARKET = "MARKET"      # Pool swap, only when it beats the mint
    SKIPPED = "SKIPPED"    # At or below the dust floor


# =============================================================================
# STATE
# =============================================================================


@dataclass
class StrategyState:
    """
    Durable state of a deployed strategy.

    Everything else (balances, total value) is read live at call time.

    Attributes:
        stake_on_deploy: Auto-convert deployed liquid capital to LST
        deposit_limit: Ceiling on total managed value
        open_deposits: Admit any depositor up to the ceiling
        allowed: Depositors admitted while deposits are closed
        pending_redemptions: LST committed to unclaimed withdrawal requests
        is_shutdown: Strategy no longer accepts or deploys capital
    """

    stake_on_deploy: bool = True
    deposit_limit: int = MAX_UINT256
    open_deposits: bool = False
    allowed: Set[Pubkey] = field(default_factory=set)
    pending_redemptions: int = 0
    is_shutdown: bool = False

    def __post_init__(self) -> None:
        if self.deposit_limit < 0:
            raise ValueError("deposit_limit must be non-negative")
        if self.pending_redemptions < 0:
            raise ValueError("pending_redemptions must be non-negative")

    def copy(self) -> "StrategyState":
        return replace(self, allowed=set(self.allowed))

    def restore(self, snapshot: "StrategyState") -> None:
        """Roll back in place; components hold references to this object."""
        for f in fields(self):
            setattr(self, f.name, getattr(snapshot, f.name))
        self.allowed = set(snapshot.allowed)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stake_on_deploy": self.stake_on_deploy,
            "deposit_limit": str(self.deposit_limit),
            "open_deposits": self.open_deposits,
            "allowed": sorted(str(a) for a in self.allowed),
            "pending_redemptions": str(self.pending_redemptions),
            "is_shutdown": self.is_shutdown,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StrategyState":
        # Amounts travel as strings; 2**256 does not fit SQLite INTEGER or JSON floats
        return cls(
            stake_on_deploy=bool(data.get("stake_on_deploy", True)),
            deposit_limit=int(data.get("deposit_limit", MAX_UINT256)),
            open_deposits=bool(data.get("open_deposits", False)),
            allowed={Pubkey.from_string(a) for a in data.get("allowed", [])},
            pending_redemptions=int(data.get("pending_redemptions", 0)),
            is_shutdown=bool(data.get("is_shutdown", False)),
        )


# =============================================================================
# RESULTS & HANDLES
# =============================================================================


@dataclass(frozen=True)
class StakeResult:
    """Outcome of a single `stake()` routing decision."""

    route: StakeRoute
    amount_in: int
    lst_out: int = 0
    quoted_out: int = 0

    def __repr__(self) -> str:
        return (
            f"StakeResult({self.route.value}: in={self.amount_in}, "
            f"out={self.lst_out}, quote={self.quoted_out})"
        )


@dataclass(frozen=True)
class WithdrawalHandle:
    """
    Opaque claim ticket for an initiated withdrawal.

    The ledger only tracks the aggregate pending amount; the request
    identities live here and must be retained by the caller to claim.
    `protocol` tags which staking integration issued the handle, so a
    handle can never be settled against a different queue.
    """

    protocol: str
    request_ids: Tuple[int, ...]
    requested_amount: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "protocol": self.protocol,
            "request_ids": list(self.request_ids),
            "requested_amount": str(self.requested_amount),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WithdrawalHandle":
        return cls(
            protocol=str(data["protocol"]),
            request_ids=tuple(int(i) for i in data["request_ids"]),
            requested_amount=int(data["requested_amount"]),
        )


# =============================================================================
# ERRORS
# =============================================================================


class StrategyError(Exception):
    """Base class for every strategy failure."""


class PreconditionError(StrategyError):
    """Operation refused before any state was touched."""


@dataclass(eq=False)
class UnauthorizedError(PreconditionError):
    """Caller does not hold the tier the operation requires."""

    caller: Optional[Pubkey]
    tier: Tier

    def __str__(self) -> str:
        return f"UNAUTHORIZED: {self.caller} lacks {self.tier.value} tier"


@dataclass(eq=False)
class RedemptionsPendingError(PreconditionError):
    """Valuation cycle attempted while redemptions are in flight."""

    pending: int

    def __str__(self) -> str:
        return f"CYCLE BLOCKED: {self.pending} LST still pending redemption"


@dataclass(eq=False)
class LedgerInvariantError(StrategyError):
    """
    Claim would drive pending_redemptions below zero.

    Indicates upstream bookkeeping corruption. Never caught or clamped.
    """

    pending: int
    realized: int

    def __str__(self) -> str:
        return (
            f"LEDGER INVARIANT VIOLATED: realized {self.realized} exceeds "
            f"pending {self.pending}"
        )


class ExternalCallError(StrategyError):
    """A collaborator (pool, staking protocol, queue, custody) reverted."""


@dataclass(eq=False)
class PartialClaimError(ExternalCallError):
    """
    A multi-request claim failed part way through.

    `realized` was already paid out by the queue and is booked; `remaining`
    carries the unclaimed request ids so the rest can be claimed later.
    """

    realized: int
    remaining: WithdrawalHandle
    reason: str = ""

    def __str__(self) -> str:
        return (
            f"PARTIAL CLAIM: {self.realized} realized, requests "
            f"{list(self.remaining.request_ids)} unclaimed ({self.reason})"
        )


@dataclass(eq=False)
class SlippageError(ExternalCallError):
    """Market output fell below the enforced minimum."""

    min_out: int
    actual_out: int

    def __str__(self) -> str:
        return f"SLIPPAGE: output {self.actual_out} below minimum {self.min_out}"
