"""exchangerate.host provider (primary source for the cached FX route)."""

from __future__ import annotations

import httpx

from quote_proxy.config import (
    EXCHANGERATE_HOST_ACCESS_KEY,
    EXCHANGERATE_HOST_BASE_URL,
    PROVIDER_TIMEOUT_SECONDS,
)
from quote_proxy.errors import ValidationError
from quote_proxy.providers.base import QuoteProvider, epoch_seconds_to_ms


class ExchangeRateHostProvider(QuoteProvider):
    """Reads ``rates.<QUOTE>`` from ``/latest?base=...&symbols=...``."""

    name = "exchangerate.host"

    def __init__(
        self,
        access_key: str = EXCHANGERATE_HOST_ACCESS_KEY,
        *,
        timeout: float = PROVIDER_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(EXCHANGERATE_HOST_BASE_URL, timeout=timeout, transport=transport)
        self._access_key = access_key

    def _build_request(self, base: str, quote: str | None) -> tuple[str, dict]:
        if quote is None:
            raise ValidationError(f"{self.name} only quotes currency pairs, got {base!r}")
        params = {"base": base, "symbols": quote}
        if self._access_key:
            params["access_key"] = self._access_key
        return "/latest", params

    def _provider_timestamp_ms(self, payload: dict) -> int | None:
        return epoch_seconds_to_ms(payload.get("timestamp"))
