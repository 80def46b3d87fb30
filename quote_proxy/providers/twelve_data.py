"""Twelve Data API provider for FX pairs and other instruments."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from quote_proxy.config import (
    PROVIDER_TIMEOUT_SECONDS,
    TWELVE_DATA_BASE_URL,
    TWELVE_DATA_ENV_VARS,
    twelve_data_api_key,
)
from quote_proxy.errors import ConfigurationError
from quote_proxy.providers.base import (
    QuoteProvider,
    epoch_seconds_to_ms,
    to_finite_float,
)

logger = logging.getLogger(__name__)

_OHLC_KEYS = ("open", "high", "low", "close")


# ---------------------------------------------------------------------------
# Pure helper functions
# ---------------------------------------------------------------------------


def _parse_ohlc(raw: dict) -> dict[str, float | None] | None:
    """Pull open/high/low/close out of a /quote payload.

    Returns ``None`` when none of the four fields is numeric.
    """
    ohlc = {key: to_finite_float(raw.get(key)) for key in _OHLC_KEYS}
    if all(v is None for v in ohlc.values()):
        return None
    return ohlc


def _parse_market_open(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "false"):
        return value.lower() == "true"
    return None


def _parse_enrichments(raw: dict) -> dict[str, Any]:
    """Best-effort extraction of the optional /quote fields.

    Missing fields are omitted rather than set to None.
    """
    result: dict[str, Any] = {}

    ohlc = _parse_ohlc(raw)
    if ohlc is not None:
        result["ohlc"] = ohlc

    for key in ("change", "percent_change"):
        val = to_finite_float(raw.get(key))
        if val is not None:
            result[key] = val

    market_open = _parse_market_open(raw.get("is_market_open"))
    if market_open is not None:
        result["is_market_open"] = market_open

    return result


# ---------------------------------------------------------------------------
# Provider class
# ---------------------------------------------------------------------------


class TwelveDataProvider(QuoteProvider):
    """Twelve Data ``/quote`` implementation of the QuoteProvider interface.

    The API key is resolved on every call so a missing key surfaces as a
    ``ConfigurationError`` for that request only.
    """

    name = "twelvedata"

    def __init__(
        self,
        api_key: str | None = None,
        *,
        timeout: float = PROVIDER_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(TWELVE_DATA_BASE_URL, timeout=timeout, transport=transport)
        self._api_key = api_key

    def _resolve_api_key(self) -> str:
        key = self._api_key if self._api_key is not None else twelve_data_api_key()
        if not key:
            raise ConfigurationError(f"Missing {TWELVE_DATA_ENV_VARS[0]} env var")
        return key

    def _build_request(self, base: str, quote: str | None) -> tuple[str, dict]:
        symbol = f"{base}/{quote}" if quote else base
        return "/quote", {"symbol": symbol, "apikey": self._resolve_api_key()}

    def _enrich(self, payload: dict) -> dict[str, Any]:
        return _parse_enrichments(payload)

    def _provider_timestamp_ms(self, payload: dict) -> int | None:
        return epoch_seconds_to_ms(payload.get("timestamp"))
