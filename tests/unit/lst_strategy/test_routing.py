"""
Routing Engine Unit Tests
=========================
Mint vs market decision, dust floor, min-output guard, failure propagation.

All tests run against the virtual pool and staking protocol.
"""

from fractions import Fraction

import pytest

from src.lst_strategy.routing import RoutingEngine
from src.lst_strategy.types import ExternalCallError, SlippageError, StakeRoute


UNIT = 10**18


@pytest.fixture
def router(integration):
    return RoutingEngine(integration, dust_threshold=100)


# =============================================================================
# TEST: ROUTE DECISION
# =============================================================================


@pytest.mark.unit
class TestRouteDecision:
    """stake() uses the market iff its quote strictly beats the mint."""

    @pytest.mark.asyncio
    async def test_market_route_when_quote_beats_mint(self, router, env):
        """stake(10) with quote(10) = 10.01 → market, LST >= 10."""
        env.custody.deposit(10 * UNIT)
        env.pool.set_price(Fraction(1001, 1000))

        result = await router.stake(10 * UNIT)

        assert result.route == StakeRoute.MARKET
        assert result.quoted_out == 10_010_000_000_000_000_000
        assert result.lst_out >= 10 * UNIT
        assert env.custody.balances["lst"] == result.lst_out
        assert env.custody.balances["liquid"] == 0
        assert env.staking.calls.get("mint", 0) == 0

    @pytest.mark.asyncio
    async def test_mint_route_when_quote_equals_amount(self, router, env):
        """A 1:1 quote is not strictly better; mint wins ties."""
        env.custody.deposit(5 * UNIT)

        result = await router.stake(5 * UNIT)

        assert result.route == StakeRoute.MINT
        assert result.lst_out == 5 * UNIT
        assert env.pool.swaps == []

    @pytest.mark.asyncio
    async def test_mint_route_when_market_is_at_premium(self, router, env):
        env.custody.deposit(5 * UNIT)
        env.pool.set_price(Fraction(995, 1000))

        result = await router.stake(5 * UNIT)

        assert result.route == StakeRoute.MINT
        assert result.lst_out == 5 * UNIT
        assert env.custody.balances["native"] == 0

    @pytest.mark.asyncio
    async def test_mint_forwards_referral(self, router, env):
        env.custody.deposit(UNIT)
        await router.stake(UNIT)
        assert env.staking.referrals == ["ref-test"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [0, 1, 100])
    async def test_dust_is_skipped(self, router, env, amount):
        """Amounts at or below the floor make no external call."""
        env.custody.deposit(amount)

        result = await router.stake(amount)

        assert result.route == StakeRoute.SKIPPED
        assert env.pool.calls == {}
        assert env.staking.calls == {}
        assert env.custody.balances["liquid"] == amount

    @pytest.mark.asyncio
    async def test_just_above_dust_is_staked(self, router, env):
        env.custody.deposit(101)
        result = await router.stake(101)
        assert result.route == StakeRoute.MINT


# =============================================================================
# TEST: FAILURE MODES
# =============================================================================


@pytest.mark.unit
class TestRoutingFailures:
    """No retry, no fallback, no partial balance change."""

    @pytest.mark.asyncio
    async def test_stale_quote_reverts_market_route(self, router, env):
        """Execution worse than 1:1 trips the min-out guard."""
        env.custody.deposit(10 * UNIT)
        env.pool.set_price(Fraction(1001, 1000))
        env.pool.execution_drift = Fraction(998, 1000)

        with pytest.raises(SlippageError) as exc:
            await router.stake(10 * UNIT)

        assert exc.value.min_out == 10 * UNIT
        assert env.custody.balances["liquid"] == 10 * UNIT
        assert env.custody.balances["lst"] == 0
        # No silent fallback to the mint
        assert env.staking.calls.get("mint", 0) == 0

    @pytest.mark.asyncio
    async def test_mint_failure_propagates_and_rewraps(self, router, env):
        env.custody.deposit(3 * UNIT)
        env.staking.fail_next("mint")

        with pytest.raises(ExternalCallError):
            await router.stake(3 * UNIT)

        assert env.custody.balances["liquid"] == 3 * UNIT
        assert env.custody.balances["native"] == 0
        assert env.custody.balances["lst"] == 0

    @pytest.mark.asyncio
    async def test_paused_protocol_mint_fails(self, router, env):
        env.custody.deposit(UNIT)
        env.staking.paused = True

        with pytest.raises(ExternalCallError, match="paused"):
            await router.stake(UNIT)
        assert env.custody.balances["liquid"] == UNIT

    @pytest.mark.asyncio
    async def test_quote_failure_propagates(self, router, env):
        env.custody.deposit(UNIT)
        env.pool.fail_next("quote")

        with pytest.raises(ExternalCallError):
            await router.stake(UNIT)

    @pytest.mark.asyncio
    async def test_foreign_collaborator_error_is_normalised(self, router, env):
        """A live client's own exception type surfaces as ExternalCallError."""
        env.custody.deposit(UNIT)
        env.pool.fail_next("quote", ConnectionError("rpc timeout"))

        with pytest.raises(ExternalCallError, match="pool.quote failed") as exc:
            await router.stake(UNIT)
        assert isinstance(exc.value.__cause__, ConnectionError)

    @pytest.mark.asyncio
    async def test_foreign_mint_error_still_rewraps(self, router, env):
        env.custody.deposit(2 * UNIT)
        env.staking.fail_next("mint", RuntimeError("node unavailable"))

        with pytest.raises(ExternalCallError, match="staking.mint failed"):
            await router.stake(2 * UNIT)

        assert env.custody.balances["liquid"] == 2 * UNIT
        assert env.custody.balances["native"] == 0

    def test_negative_dust_rejected(self, integration):
        with pytest.raises(ValueError):
            RoutingEngine(integration, dust_threshold=-1)


# =============================================================================
# TEST: SWAP BACK
# =============================================================================


@pytest.mark.unit
class TestSwapToAsset:

    @pytest.mark.asyncio
    async def test_swap_respects_min_out(self, router, env):
        env.custody.credit("lst", 10 * UNIT)
        env.pool.set_price(Fraction(1002, 1000))

        with pytest.raises(SlippageError):
            await router.swap_to_asset(10 * UNIT, 10 * UNIT)

        assert env.custody.balances["lst"] == 10 * UNIT
        assert env.custody.balances["liquid"] == 0

    @pytest.mark.asyncio
    async def test_swap_never_uses_native_unstake(self, router, env):
        env.custody.credit("lst", 4 * UNIT)

        out = await router.swap_to_asset(4 * UNIT, 0)

        assert out == 4 * UNIT
        assert env.queue.calls == {}
        assert env.custody.balances["liquid"] == 4 * UNIT

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [10**18 + 7, 123_456_789, 10 * UNIT + 1])
    async def test_round_trip_within_two_units(self, router, env, amount):
        """swap_to_asset(stake(amount)) returns amount within 2 base units."""
        env.custody.deposit(amount)
        env.pool.set_price(Fraction(1001, 1000))

        staked = await router.stake(amount)
        back = await router.swap_to_asset(staked.lst_out, 0)

        assert staked.route == StakeRoute.MARKET
        assert 0 <= amount - back <= 2
