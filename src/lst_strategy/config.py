"""
LST Strategy Configuration
==========================
Immutable deployment metadata. Mutable strategy state lives in
`StrategyState`; this only carries what is fixed at deployment.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class StrategyConfig:
    name: str = "lst-accumulator"

    # Token symbols as understood by the market pool
    asset_symbol: str = "WETH"
    lst_symbol: str = "stETH"

    # Opaque identifier forwarded to the staking protocol's mint
    referral: str = ""

    # Amounts at or below this are left idle
    dust_threshold: int = 100

    # Withdrawal queue bounds per request
    max_request_amount: int = 1000 * 10**18
    min_request_amount: int = 1

    @classmethod
    def from_settings(cls) -> "StrategyConfig":
        from config.settings import Settings
        return cls(
            name=Settings.LST_STRATEGY_NAME,
            asset_symbol=Settings.LST_ASSET_SYMBOL,
            lst_symbol=Settings.LST_TOKEN_SYMBOL,
            referral=Settings.LST_REFERRAL,
            dust_threshold=Settings.LST_DUST_THRESHOLD,
            max_request_amount=Settings.LST_MAX_REQUEST_AMOUNT,
            min_request_amount=Settings.LST_MIN_REQUEST_AMOUNT,
        )
