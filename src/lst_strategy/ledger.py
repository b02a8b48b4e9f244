"""
Redemption Ledger
=================
Tracks LST committed to in-flight two-phase withdrawals.

Lot lifecycle:
    FREE ──initiate──▶ QUEUED ──claim──▶ CLAIMED
    (LST held)         (in pending_redemptions)   (liquid capital again)

Only the aggregate is stored. Request identities travel in the
`WithdrawalHandle` returned by `initiate_withdrawal`.

Once the queue has accepted a request or paid out a claim, the matching
ledger change is final: `on_commit` is called so the owning transaction
keeps it even if a later step of the same operation fails.
"""

from __future__ import annotations

from typing import Callable, Optional

from src.lst_strategy.integration import LSTIntegration
from src.lst_strategy.types import (
    LedgerInvariantError,
    PartialClaimError,
    PreconditionError,
    RedemptionsPendingError,
    StrategyState,
    WithdrawalHandle,
)
from src.shared.system.logging import Logger


class RedemptionLedger:
    def __init__(
        self,
        state: StrategyState,
        integration: LSTIntegration,
        on_commit: Optional[Callable[[], None]] = None,
    ):
        self.state = state
        self.integration = integration
        self.on_commit = on_commit

    @property
    def pending(self) -> int:
        return self.state.pending_redemptions

    def assert_settled(self) -> None:
        """Raise while any redemption is still in flight."""
        if self.state.pending_redemptions != 0:
            raise RedemptionsPendingError(self.state.pending_redemptions)

    def _commit(self) -> None:
        if self.on_commit is not None:
            self.on_commit()

    def _debit_pending(self, realized: int) -> None:
        if realized < 0:
            raise ValueError("realized amount must be non-negative")
        if realized > self.state.pending_redemptions:
            raise LedgerInvariantError(pending=self.state.pending_redemptions, realized=realized)
        self.state.pending_redemptions -= realized

    async def initiate_withdrawal(self, amount: int) -> WithdrawalHandle:
        """
        Queue a redemption of up to `amount` free LST.

        The pending total is raised before the external request goes out;
        if the request call fails the increment is undone and the error
        re-raised. A failure after the queue accepted the request keeps it.
        """
        if amount < 0:
            raise PreconditionError("withdrawal amount must be non-negative")

        free_lst = await self.integration.lst_balance()
        amount = min(amount, free_lst)
        if amount == 0:
            raise PreconditionError("no free LST to withdraw")
        chunks = self.integration.split_request(amount)

        self.state.pending_redemptions += amount
        try:
            request_ids = await self.integration.submit_requests(chunks)
        except Exception:
            self.state.pending_redemptions -= amount
            raise
        self._commit()

        try:
            handle = self.integration.issue_handle(request_ids, chunks, amount)
        except Exception as e:
            Logger.critical(
                f"[LEDGER] {amount} LST queued but no usable handle ({e}); "
                f"pending stays at {self.pending} until reconciled"
            )
            raise

        Logger.info(
            f"[LEDGER] Initiated withdrawal of {amount} LST "
            f"({len(handle.request_ids)} request(s)), pending={self.pending}"
        )
        return handle

    def _book_claim(self, requested: int, realized: int, request_ids) -> None:
        if realized > requested:
            # Realized above requested leaves the aggregate over-debited for other lots
            Logger.warning(
                f"[LEDGER] Realized {realized} exceeds requested {requested} "
                f"for requests {list(request_ids)}"
            )
        self._debit_pending(realized)
        self._commit()

    async def claim_withdrawal(self, handle: WithdrawalHandle) -> int:
        """
        Settle a queued redemption.

        The pending total drops by the realized amount, which may be below the
        requested amount because of protocol rounding. Proceeds arrive as
        native capital; the caller sweeps them into the liquid asset.
        """
        try:
            realized = await self.integration.claim_withdrawal(handle)
        except PartialClaimError as e:
            claimed = handle.request_ids[:len(handle.request_ids) - len(e.remaining.request_ids)]
            self._book_claim(handle.requested_amount, e.realized, claimed)
            Logger.warning(
                f"[LEDGER] Partial claim booked {e.realized}, pending={self.pending}; "
                f"retry with requests {list(e.remaining.request_ids)}"
            )
            raise

        self._book_claim(handle.requested_amount, realized, handle.request_ids)
        Logger.success(
            f"[LEDGER] Claimed {realized} of {handle.requested_amount} requested, "
            f"pending={self.pending}"
        )
        return realized
