"""
LST Accumulator Strategy
========================
Lifecycle coordinator: the only object callers talk to.

Entry points:
1. GOVERNANCE → set_stake_on_deploy / set_deposit_limit (management)
                set_open_deposits / set_allowed / shutdown (emergency)
2. HOOKS      → deploy / free / report_value / capacity reads (vault framework)
3. CYCLE      → run_cycle (keeper): harvest, stake idle capital, revalue
4. REDEMPTION → initiate_withdrawal / claim_withdrawal (management)
5. OVERRIDES  → manual_stake / manual_swap_to_asset (management)
6. EMERGENCY  → emergency_exit (emergency)

Every mutating entry point runs inside `_atomic()`: one asyncio.Lock per
instance serialises callers, and the state is restored if the body raises,
so a failed operation leaves no partial ledger update behind. The one
exception is a ledger change whose external counterpart already happened
(queue accepted a request, paid a claim): the ledger checkpoints it and a
later failure only rolls back to that point. Events are buffered and
published after the state is saved.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from solders.pubkey import Pubkey

from src.lst_strategy.access import AccessController, Governance
from src.lst_strategy.config import StrategyConfig
from src.lst_strategy.integration import LSTIntegration
from src.lst_strategy.ledger import RedemptionLedger
from src.lst_strategy.routing import RoutingEngine
from src.lst_strategy.store import StrategyStateStore
from src.lst_strategy.types import (
    ExternalCallError,
    PreconditionError,
    StakeResult,
    StakeRoute,
    StrategyState,
    WithdrawalHandle,
)
from src.lst_strategy.valuation import ValuationOracle
from src.shared.system.logging import Logger
from src.shared.system.signal_bus import Signal, SignalBus, SignalType, signal_bus


@dataclass
class _Transaction:
    """Rollback point and buffered events of the operation in flight."""

    state: StrategyState
    governance: Governance
    events: List[Signal] = field(default_factory=list)
    committed_events: int = 0
    checkpointed: bool = False


class LSTAccumulatorStrategy:
    """
    Accumulates LST for depositors and tracks in-flight redemptions.

    Example:
        >>> strategy = LSTAccumulatorStrategy(integration, Governance(management=ops))
        >>> await strategy.deploy(10**18)
        >>> handle = await strategy.initiate_withdrawal(ops, 5 * 10**17)
        >>> # ... protocol finalizes the request ...
        >>> await strategy.claim_withdrawal(ops, handle)
    """

    def __init__(
        self,
        integration: LSTIntegration,
        governance: Governance,
        config: Optional[StrategyConfig] = None,
        state: Optional[StrategyState] = None,
        store: Optional[StrategyStateStore] = None,
        bus: Optional[SignalBus] = None,
    ):
        self.config = config or StrategyConfig()
        self.integration = integration
        self.governance = governance
        self.store = store
        self.bus = bus or signal_bus

        if state is None and store is not None:
            state = store.load(self.config.name)
            if state is not None:
                Logger.info(f"[STRATEGY] Restored '{self.config.name}' (pending={state.pending_redemptions})")
        self.state = state or StrategyState()

        self.oracle = ValuationOracle(integration)
        self.access = AccessController(self.state, self.oracle, integration)
        self.router = RoutingEngine(integration, self.config.dust_threshold)
        self.ledger = RedemptionLedger(self.state, integration, on_commit=self._checkpoint)

        self._lock = asyncio.Lock()
        self._tx: Optional[_Transaction] = None

    # =========================================================================
    # TRANSACTION BOUNDARY
    # =========================================================================

    @asynccontextmanager
    async def _atomic(self, operation: str):
        async with self._lock:
            tx = _Transaction(state=self.state.copy(), governance=self.governance.copy())
            self._tx = tx
            try:
                yield
                self._save()
            except Exception as e:
                # Roll back to the last checkpoint; anything before it already happened externally
                self.state.restore(tx.state)
                self.governance.restore(tx.governance)
                Logger.error(f"[STRATEGY] {operation} failed: {e}")
                if tx.checkpointed:
                    self._save()
                    self._publish(tx.events[:tx.committed_events])
                raise
            finally:
                self._tx = None
            self._publish(tx.events)

    def _checkpoint(self) -> None:
        """Mark the current state as final; a later failure rolls back to here."""
        tx = self._tx
        if tx is None:
            return
        tx.state = self.state.copy()
        tx.governance = self.governance.copy()
        tx.committed_events = len(tx.events)
        tx.checkpointed = True

    def _save(self) -> None:
        if self.store is not None:
            self.store.save(self.config.name, self.state)

    def _publish(self, events: List[Signal]) -> None:
        for signal in events:
            self.bus.emit(signal)
            if self.store is not None:
                self.store.record(self.config.name, signal.type.value, signal.data)

    def _emit(self, signal_type: SignalType, data: Dict[str, Any]) -> None:
        """Queue an event; it is published once the operation's state is saved."""
        signal = Signal(type=signal_type, source=self.config.name, data=data)
        if self._tx is None:
            self._publish([signal])
        else:
            self._tx.events.append(signal)

    def _config_changed(self, field_name: str, value: Any) -> None:
        Logger.info(f"[ACCESS] {field_name} → {value}")
        self._emit(SignalType.CONFIG_CHANGE, {"field": field_name, "value": str(value)})

    # =========================================================================
    # READS
    # =========================================================================

    async def total_value(self) -> int:
        return await self.oracle.total_value()

    async def available_deposit_capacity(self, depositor: Pubkey) -> int:
        return await self.access.available_deposit_capacity(depositor)

    async def available_withdraw_capacity(self, owner: Pubkey) -> int:
        """Only idle liquid capital; nothing is unstaked to serve a withdrawal."""
        return await self.oracle.liquid_balance()

    @property
    def pending_redemptions(self) -> int:
        return self.state.pending_redemptions

    async def status(self) -> Dict[str, Any]:
        snap = await self.oracle.snapshot()
        return {
            "name": self.config.name,
            "state": self.state.to_dict(),
            "liquid_balance": snap.liquid_balance,
            "lst_balance": snap.lst_balance,
            "lst_value": snap.lst_value,
            "total_value": snap.total_value,
        }

    # =========================================================================
    # GOVERNANCE
    # =========================================================================

    async def set_stake_on_deploy(self, caller: Pubkey, enabled: bool) -> None:
        self.governance.require_management(caller)
        async with self._atomic("set_stake_on_deploy"):
            self.state.stake_on_deploy = enabled
            self._config_changed("stake_on_deploy", enabled)

    async def set_deposit_limit(self, caller: Pubkey, limit: int) -> None:
        self.governance.require_management(caller)
        if limit < 0:
            raise PreconditionError("deposit limit must be non-negative")
        async with self._atomic("set_deposit_limit"):
            self.state.deposit_limit = limit
            self._config_changed("deposit_limit", limit)

    async def set_open_deposits(self, caller: Pubkey, is_open: bool) -> None:
        self.governance.require_emergency_authority(caller)
        async with self._atomic("set_open_deposits"):
            self.state.open_deposits = is_open
            self._config_changed("open_deposits", is_open)

    async def set_allowed(self, caller: Pubkey, depositor: Pubkey, allowed: bool) -> None:
        self.governance.require_emergency_authority(caller)
        async with self._atomic("set_allowed"):
            if allowed:
                self.state.allowed.add(depositor)
            else:
                self.state.allowed.discard(depositor)
            self._config_changed(f"allowed[{depositor}]", allowed)

    async def shutdown(self, caller: Pubkey) -> None:
        """Stop admitting and deploying capital. Irreversible."""
        self.governance.require_emergency_authority(caller)
        async with self._atomic("shutdown"):
            self.state.is_shutdown = True
            Logger.warning(f"[EMERGENCY] Strategy '{self.config.name}' shut down")
            self._emit(SignalType.EMERGENCY, {"action": "shutdown"})

    async def set_emergency_admin(self, caller: Pubkey, admin: Optional[Pubkey]) -> None:
        self.governance.require_management(caller)
        async with self._atomic("set_emergency_admin"):
            self.governance.emergency_admin = admin
            self._config_changed("emergency_admin", admin)

    async def set_keeper(self, caller: Pubkey, keeper: Pubkey, enabled: bool) -> None:
        self.governance.require_management(caller)
        async with self._atomic("set_keeper"):
            if enabled:
                self.governance.keepers.add(keeper)
            else:
                self.governance.keepers.discard(keeper)
            self._config_changed(f"keeper[{keeper}]", enabled)

    # =========================================================================
    # FRAMEWORK HOOKS
    # =========================================================================

    async def _stake(self, amount: int) -> StakeResult:
        result = await self.router.stake(amount)
        if result.route is not StakeRoute.SKIPPED:
            self._emit(SignalType.STAKE, {
                "route": result.route.value,
                "amount_in": str(result.amount_in),
                "lst_out": str(result.lst_out),
            })
        return result

    async def deploy(self, amount: int) -> Optional[StakeResult]:
        """New capital arrived; convert it if auto-staking is on."""
        async with self._atomic("deploy"):
            if not self.state.stake_on_deploy or self.state.is_shutdown:
                return None
            return await self._stake(amount)

    async def free(self, amount: int) -> None:
        # Withdrawals are served from idle capital only
        Logger.debug(f"[STRATEGY] free({amount}) ignored, nothing is unstaked on withdraw")

    async def _harvest_and_report(self) -> int:
        self.ledger.assert_settled()

        # Claim proceeds or a failed mint's re-wrap may have left native capital behind
        await self.integration.sweep_native()

        harvested = await self.integration.harvest_rewards()
        if harvested:
            Logger.info(f"[CYCLE] Harvested {harvested} from reward streams")

        if self.state.stake_on_deploy and not self.state.is_shutdown:
            idle = await self.oracle.liquid_balance()
            await self._stake(idle)

        total = await self.oracle.total_value()
        self._emit(SignalType.CYCLE, {"total_value": str(total)})
        Logger.success(f"[CYCLE] Reported total value {total}")
        return total

    async def report_value(self) -> int:
        """Harvest, deploy idle capital, return liquid + LST valuation."""
        async with self._atomic("report_value"):
            return await self._harvest_and_report()

    async def run_cycle(self, caller: Pubkey) -> int:
        self.governance.require_keeper(caller)
        return await self.report_value()

    # =========================================================================
    # TWO-PHASE REDEMPTION
    # =========================================================================

    async def initiate_withdrawal(self, caller: Pubkey, amount: int) -> WithdrawalHandle:
        self.governance.require_management(caller)
        async with self._atomic("initiate_withdrawal"):
            handle = await self.ledger.initiate_withdrawal(amount)
            self._emit(SignalType.WITHDRAWAL_INITIATED, handle.to_dict())
            return handle

    async def claim_withdrawal(self, caller: Pubkey, handle: WithdrawalHandle) -> int:
        self.governance.require_management(caller)
        async with self._atomic("claim_withdrawal"):
            realized = await self.ledger.claim_withdrawal(handle)
            self._emit(SignalType.WITHDRAWAL_CLAIMED, {
                **handle.to_dict(),
                "realized": str(realized),
            })
            self._checkpoint()

            try:
                await self.integration.sweep_native()
            except ExternalCallError as e:
                Logger.warning(f"[LEDGER] Claim proceeds left unwrapped until the next cycle: {e}")
            return realized

    # =========================================================================
    # MANUAL OVERRIDES
    # =========================================================================

    async def manual_stake(self, caller: Pubkey, amount: int) -> StakeResult:
        self.governance.require_management(caller)
        async with self._atomic("manual_stake"):
            amount = min(amount, await self.oracle.liquid_balance())
            if amount <= 0:
                raise PreconditionError("no idle liquid capital to stake")
            result = await self._stake(amount)
            if result.route is StakeRoute.SKIPPED:
                Logger.warning(f"[STRATEGY] manual_stake({amount}) is dust, left idle")
            return result

    async def manual_swap_to_asset(self, caller: Pubkey, amount: int, min_out: int) -> int:
        self.governance.require_management(caller)
        async with self._atomic("manual_swap_to_asset"):
            amount = min(amount, await self.oracle.lst_balance())
            if amount <= 0:
                raise PreconditionError("no free LST to swap")
            out = await self.router.swap_to_asset(amount, min_out)
            self._emit(SignalType.SWAP, {"amount_in": str(amount), "amount_out": str(out)})
            return out

    # =========================================================================
    # EMERGENCY
    # =========================================================================

    async def emergency_exit(self, caller: Pubkey, amount: int) -> int:
        """
        Best-effort wind-down: sell up to `amount` LST with no minimum output.

        Returns the liquid capital received (0 when there is no LST).
        """
        self.governance.require_emergency_authority(caller)
        async with self._atomic("emergency_exit"):
            amount = min(amount, await self.oracle.lst_balance())
            if amount <= 0:
                return 0
            out = await self.router.swap_to_asset(amount, 0)
            Logger.warning(f"[EMERGENCY] Exited {amount} LST → {out}")
            self._emit(SignalType.EMERGENCY, {
                "action": "emergency_exit",
                "amount_in": str(amount),
                "amount_out": str(out),
            })
            return out
