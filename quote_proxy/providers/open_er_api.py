"""open.er-api.com provider (fallback source for the cached FX route)."""

from __future__ import annotations

import httpx

from quote_proxy.config import OPEN_ER_API_BASE_URL, PROVIDER_TIMEOUT_SECONDS
from quote_proxy.errors import ValidationError
from quote_proxy.providers.base import QuoteProvider, epoch_seconds_to_ms


class OpenErApiProvider(QuoteProvider):
    """Reads ``rates.<QUOTE>`` from ``/v6/latest/<BASE>`` (no key required)."""

    name = "open.er-api.com"

    def __init__(
        self,
        *,
        timeout: float = PROVIDER_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(OPEN_ER_API_BASE_URL, timeout=timeout, transport=transport)

    def _build_request(self, base: str, quote: str | None) -> tuple[str, dict]:
        if quote is None:
            raise ValidationError(f"{self.name} only quotes currency pairs, got {base!r}")
        return f"/v6/latest/{base}", {}

    def _provider_timestamp_ms(self, payload: dict) -> int | None:
        return epoch_seconds_to_ms(payload.get("time_last_update_unix"))
