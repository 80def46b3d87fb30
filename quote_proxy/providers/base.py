"""Abstract base class and shared response handling for quote providers."""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from typing import Any, Callable

import httpx
from pydantic import BaseModel, Field

from quote_proxy.config import PROVIDER_TIMEOUT_SECONDS
from quote_proxy.symbols import split_pair

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------------


class ProviderResult(BaseModel):
    """Outcome of one upstream call.

    ``price`` is set iff ``ok``; ``error`` is set iff not ``ok``.
    """

    ok: bool
    source: str
    price: float | None = None
    raw: Any = None
    error: str | None = None
    status_code: int | None = None
    provider_timestamp_ms: int | None = None
    extras: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def success(cls, source: str, price: float, raw: Any, **kwargs: Any) -> ProviderResult:
        return cls(ok=True, source=source, price=price, raw=raw, **kwargs)

    @classmethod
    def failure(cls, source: str, error: str, raw: Any = None, **kwargs: Any) -> ProviderResult:
        return cls(ok=False, source=source, error=error, raw=raw, **kwargs)


# ---------------------------------------------------------------------------
# Pure helper functions
# ---------------------------------------------------------------------------


def to_finite_float(value: Any) -> float | None:
    """Coerce *value* to a finite float, or ``None``.

    Numeric strings are accepted (``"1.0875"``); booleans, NaN and
    infinities are not.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _finite_or_none(text: str) -> float | None:
    """JSON number hook: NaN, infinities and overflowing literals become None."""
    number = float(text)
    return number if math.isfinite(number) else None


def _from_rates(payload: dict, quote: str | None) -> Any:
    rates = payload.get("rates")
    if quote is None or not isinstance(rates, dict):
        return None
    return rates.get(quote)


def _field(name: str) -> Callable[[dict, str | None], Any]:
    return lambda payload, _quote: payload.get(name)


# Evaluated in order; the first finite number wins.
PRICE_EXTRACTORS: tuple[tuple[str, Callable[[dict, str | None], Any]], ...] = (
    ("rates", _from_rates),
    ("price", _field("price")),
    ("close", _field("close")),
    ("bid", _field("bid")),
    ("ask", _field("ask")),
)


def extract_price(payload: dict, quote: str | None = None) -> float | None:
    """Return the first finite price found in *payload*, or ``None``.

    *quote* is the quote currency used to look up ``rates.<quote>``.
    """
    for _name, extractor in PRICE_EXTRACTORS:
        number = to_finite_float(extractor(payload, quote))
        if number is not None:
            return number
    return None


def _error_message(payload: dict) -> str:
    error = payload.get("error")
    if isinstance(error, dict):
        return str(error.get("info") or error.get("message") or error.get("type") or error)
    for key in ("message", "error-type", "error"):
        if payload.get(key):
            return str(payload[key])
    return "provider reported an error"


def reported_error(payload: dict) -> str | None:
    """Return the provider's own error description, or ``None`` if there is none.

    Covers the shapes used by the supported providers: Twelve Data
    (``status: "error"`` / ``code``), exchangerate.host (``success: false``)
    and open.er-api.com (``result: "error"``).  A ``code`` outside 2xx counts
    as an error even when the HTTP status was 200.
    """
    code = payload.get("code")
    bad_code = code is not None and not str(code).strip().startswith("2")
    flagged = (
        payload.get("status") == "error"
        or payload.get("result") == "error"
        or payload.get("success") is False
        or bool(payload.get("error"))
    )
    if not (flagged or bad_code):
        return None

    message = _error_message(payload)
    if code is not None:
        return f"{code}: {message}"
    return message


# ---------------------------------------------------------------------------
# Provider base class
# ---------------------------------------------------------------------------


class QuoteProvider(ABC):
    """Interface every upstream quote provider implements.

    Subclasses describe the request (``_build_request``) and may add
    provider-specific fields (``_enrich``); HTTP, JSON and price handling
    live here.  Request errors (timeouts, DNS, refused connections, bad
    content encodings) propagate to the caller.
    """

    name: str = ""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = PROVIDER_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    @abstractmethod
    def _build_request(self, base: str, quote: str | None) -> tuple[str, dict]:
        """Return ``(endpoint, query params)`` for the pair *base*/*quote*."""

    def _enrich(self, payload: dict) -> dict[str, Any]:
        """Extra fields to attach to a successful result."""
        return {}

    def _provider_timestamp_ms(self, payload: dict) -> int | None:
        """The upstream quote time in epoch milliseconds, if reported."""
        return None

    # -- Public interface ----------------------------------------------------

    async def fetch(self, pair: str) -> ProviderResult:
        """Fetch the latest price for *pair* (``BASE/QUOTE``)."""
        base, quote = split_pair(pair)
        endpoint, params = self._build_request(base, quote)
        resp = await self._client.get(endpoint, params=params)
        result = self._parse_response(resp, quote)
        if not result.ok:
            logger.warning("%s quote for %s failed: %s", self.name, pair, result.error)
        return result

    def _parse_response(self, resp: httpx.Response, quote: str | None) -> ProviderResult:
        try:
            payload = resp.json(parse_float=_finite_or_none, parse_constant=lambda _c: None)
        except ValueError:
            payload = None
        raw = payload if payload is not None else resp.text

        if not resp.is_success:
            error = f"HTTP {resp.status_code} {resp.reason_phrase}".strip()
            if isinstance(payload, dict):
                upstream = reported_error(payload)
                if upstream:
                    error = f"{error} ({upstream})"
            return ProviderResult.failure(
                self.name, error, raw=raw, status_code=resp.status_code
            )

        if not isinstance(payload, dict):
            return ProviderResult.failure(
                self.name,
                "unparseable response body",
                raw=raw,
                status_code=resp.status_code,
            )

        upstream = reported_error(payload)
        if upstream:
            return ProviderResult.failure(
                self.name, upstream, raw=payload, status_code=resp.status_code
            )

        price = extract_price(payload, quote)
        if price is None:
            return ProviderResult.failure(
                self.name,
                "no finite price in response",
                raw=payload,
                status_code=resp.status_code,
            )

        return ProviderResult.success(
            self.name,
            price,
            payload,
            status_code=resp.status_code,
            provider_timestamp_ms=self._provider_timestamp_ms(payload),
            extras=self._enrich(payload),
        )


def epoch_seconds_to_ms(value: Any) -> int | None:
    seconds = to_finite_float(value)
    if seconds is None:
        return None
    return int(seconds * 1000)
