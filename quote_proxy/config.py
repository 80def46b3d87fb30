"""Configuration: env vars, provider endpoints, cache window, pair defaults."""

import os
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# ---------------------------------------------------------------------------
# API keys
# ---------------------------------------------------------------------------
# Twelve Data is read per request (see twelve_data_api_key) so a missing key
# fails the request that needs it rather than the process.
TWELVE_DATA_ENV_VARS: tuple[str, ...] = ("TWELVE_DATA_API_KEY", "TWELVEDATA_API_KEY")
EXCHANGERATE_HOST_ACCESS_KEY: str = os.getenv("EXCHANGERATE_HOST_ACCESS_KEY", "")


def twelve_data_api_key() -> str:
    """Return the Twelve Data API key, or ``""`` when none is configured."""
    for name in TWELVE_DATA_ENV_VARS:
        value = os.getenv(name, "").strip()
        if value:
            return value
    return ""


# ---------------------------------------------------------------------------
# Provider endpoints
# ---------------------------------------------------------------------------
TWELVE_DATA_BASE_URL: str = "https://api.twelvedata.com"
EXCHANGERATE_HOST_BASE_URL: str = "https://api.exchangerate.host"
OPEN_ER_API_BASE_URL: str = "https://open.er-api.com"

PROVIDER_TIMEOUT_SECONDS: float = float(os.getenv("PROVIDER_TIMEOUT_SECONDS", "10"))

# ---------------------------------------------------------------------------
# Pairs & cache
# ---------------------------------------------------------------------------
DEFAULT_PAIR: str = "EUR/USD"

# Pairs served by the cached /api/fx route.  The cache holds one entry.
CACHED_PAIRS: frozenset[str] = frozenset({DEFAULT_PAIR})

# Freshness window for the cached route, in milliseconds.
MIN_REFRESH_MS: int = int(os.getenv("MIN_REFRESH_MS", "5000"))

# Prefer the provider-reported quote time over local receive time.
TRUST_PROVIDER_TIMESTAMP: bool = _env_bool("TRUST_PROVIDER_TIMESTAMP")

# ---------------------------------------------------------------------------
# HTTP surface
# ---------------------------------------------------------------------------
CORS_HEADERS: dict[str, str] = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
