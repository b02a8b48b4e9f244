import os
from dotenv import load_dotenv

# Load Environment Variables from project root .env
env_path = os.path.join(os.path.dirname(__file__), "../.env")
load_dotenv(env_path)


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Settings:
    # ═══════════════════════════════════════════════════════════════════
    # LST ACCUMULATOR CONFIGURATION
    # ═══════════════════════════════════════════════════════════════════

    # Console output (file log is always written)
    SILENT_MODE = _env_bool("SILENT_MODE", "false")

    # Paths
    DATA_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "../data"))
    LST_DB_PATH = os.getenv("LST_DB_PATH", os.path.join(DATA_DIR, "lst_strategy.db"))

    # --- Deployment identity ---
    LST_STRATEGY_NAME = os.getenv("LST_STRATEGY_NAME", "lst-accumulator")
    LST_ASSET_SYMBOL = os.getenv("LST_ASSET_SYMBOL", "WETH")
    LST_TOKEN_SYMBOL = os.getenv("LST_TOKEN_SYMBOL", "stETH")

    # Opaque identifier handed to the staking protocol on every mint
    LST_REFERRAL = os.getenv("LST_REFERRAL", "")

    # --- Routing ---
    # Idle amounts at or below this floor are never staked (base units)
    LST_DUST_THRESHOLD = int(os.getenv("LST_DUST_THRESHOLD", "100"))

    # --- Withdrawal queue limits (base units) ---
    # Requests above the max are split into several queue entries
    LST_MAX_REQUEST_AMOUNT = int(os.getenv("LST_MAX_REQUEST_AMOUNT", str(1000 * 10**18)))
    LST_MIN_REQUEST_AMOUNT = int(os.getenv("LST_MIN_REQUEST_AMOUNT", "1"))
