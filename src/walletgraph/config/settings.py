import os
from dotenv import load_dotenv
load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# ---- Ledger indexer (Blockscout-style v2 API) ----
LEDGER_API_URL = os.environ.get("LEDGER_API_URL", "https://api.scan.pulsechain.com/api/v2")
LEDGER_API_KEY = os.environ.get("LEDGER_API_KEY")

LEDGER_TIMEOUT_SEC = int(os.environ.get("LEDGER_TIMEOUT_SEC", "15"))
LEDGER_REQUESTS_PER_SEC = float(os.environ.get("LEDGER_REQUESTS_PER_SEC", "0"))   # 0 = no throttle
LEDGER_BATCH_SIZE = int(os.environ.get("LEDGER_BATCH_SIZE", "50"))
LEDGER_DIRECTION = os.environ.get("LEDGER_DIRECTION", "both")      # both | outbound
LEDGER_SORT = os.environ.get("LEDGER_SORT", "desc")

# Older deployments queried one token contract for every wallet. Unset = query the wallet itself.
LEDGER_SCOPE_ADDRESS = os.environ.get("LEDGER_SCOPE_ADDRESS") or None

# Raw integer units -> display units (18 for wei-denominated values). 0 = use values as-is.
LEDGER_VALUE_DECIMALS = int(os.environ.get("LEDGER_VALUE_DECIMALS", "0"))

# ---- Traversal ----
STARTING_WALLET = os.environ.get("STARTING_WALLET", "0xfD35CFd830ADace105280B33A911C16367EF2337")
DEFAULT_MAX_DEPTH = int(os.environ.get("MAX_DEPTH", "3"))
MAX_CONCURRENCY = int(os.environ.get("MAX_CONCURRENCY", "8"))        # 0 = unbounded
DEDUPE_ACROSS_BRANCHES = _env_bool("DEDUPE_ACROSS_BRANCHES", False)

REFRESH_INTERVAL_SEC = 60

# ---- Preferences ----
PREFERENCES_PATH = os.environ.get("PREFERENCES_PATH", ".cache/preferences.json")
DEFAULT_THEME = "dark"
