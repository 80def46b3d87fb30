"""Quote resolution: cache check, then an ordered provider chain.

CHECK_CACHE -> CALL_PRIMARY -> CALL_FALLBACK -> respond.  Each provider is
tried once, in order, until one returns a usable price.  A chain of one
provider (the Twelve Data route) simply has no fallback step.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import Any

import httpx
from pydantic import BaseModel, Field

from quote_proxy.cache import CachedQuote, Clock, QuoteCache, now_ms
from quote_proxy.config import TRUST_PROVIDER_TIMESTAMP
from quote_proxy.errors import QuoteUnavailableError, ValidationError
from quote_proxy.providers.base import ProviderResult, QuoteProvider

logger = logging.getLogger(__name__)


class Resolution(BaseModel):
    """A resolved quote, fresh from a provider or served from cache."""

    pair: str
    price: float | None
    source: str
    raw: Any = None
    cached: bool = False
    timestamp_ms: int
    latency_ms: int
    extras: dict[str, Any] = Field(default_factory=dict)


class QuoteResolver:
    """Resolve a pair through an optional cache and a provider chain.

    *providers* are tried in order.  *cache* may be ``None`` to always go
    upstream.  *supported_pairs* restricts which pairs may be requested.
    """

    def __init__(
        self,
        providers: Sequence[QuoteProvider],
        cache: QuoteCache | None = None,
        supported_pairs: Iterable[str] | None = None,
        clock: Clock = now_ms,
        trust_provider_timestamp: bool = TRUST_PROVIDER_TIMESTAMP,
    ) -> None:
        if not providers:
            raise ValueError("QuoteResolver needs at least one provider")
        self.providers = list(providers)
        self.cache = cache
        self.supported_pairs = frozenset(supported_pairs) if supported_pairs is not None else None
        self._clock = clock
        self._trust_provider_timestamp = trust_provider_timestamp

    async def close(self) -> None:
        """Close every provider's HTTP client."""
        for provider in self.providers:
            await provider.close()

    async def resolve(self, pair: str) -> Resolution:
        """Return a quote for *pair*.

        Raises ``ValidationError`` for unsupported pairs and
        ``QuoteUnavailableError`` when every provider fails.  When no
        provider could be reached at all, the last request error is
        re-raised.  A failed resolve never touches the cache.
        """
        if self.supported_pairs is not None and pair not in self.supported_pairs:
            supported = ", ".join(sorted(self.supported_pairs))
            raise ValidationError(f"Unsupported pair {pair!r}; supported: {supported}")

        started = self._clock()

        hit = self._cached(pair, started)
        if hit is not None:
            return Resolution(
                pair=pair,
                price=hit.price,
                source=hit.source,
                raw=hit.raw,
                cached=True,
                timestamp_ms=hit.reported_timestamp_ms,
                latency_ms=max(self._clock() - started, 0),
            )

        failures: list[ProviderResult] = []
        request_errors: list[httpx.RequestError] = []

        for index, provider in enumerate(self.providers):
            if index:
                logger.info("Falling back to %s for %s", provider.name, pair)
            try:
                result = await provider.fetch(pair)
            except httpx.RequestError as exc:
                logger.warning("%s request for %s failed: %s", provider.name, pair, exc)
                request_errors.append(exc)
                failures.append(
                    ProviderResult.failure(provider.name, f"{type(exc).__name__}: {exc}")
                )
                continue

            if result.ok:
                return self._accept(pair, result, started)
            failures.append(result)

        if len(request_errors) == len(self.providers):
            raise request_errors[-1]
        raise QuoteUnavailableError(pair, failures)

    # -- Internals -----------------------------------------------------------

    def _cached(self, pair: str, now: int) -> CachedQuote | None:
        if self.cache is None:
            return None
        hit = self.cache.get(now)
        if hit is None or hit.pair != pair:
            return None
        logger.debug("Cache hit for %s (%s)", pair, hit.source)
        return hit

    def _accept(self, pair: str, result: ProviderResult, started: int) -> Resolution:
        received = self._clock()
        timestamp_ms = received
        if self._trust_provider_timestamp and result.provider_timestamp_ms is not None:
            timestamp_ms = result.provider_timestamp_ms

        if self.cache is not None:
            self.cache.set(
                CachedQuote(
                    pair=pair,
                    price=result.price,
                    source=result.source,
                    raw=result.raw,
                    timestamp_ms=timestamp_ms,
                ),
                now=received,
            )

        return Resolution(
            pair=pair,
            price=result.price,
            source=result.source,
            raw=result.raw,
            cached=False,
            timestamp_ms=timestamp_ms,
            latency_ms=max(received - started, 0),
            extras=result.extras,
        )
