"""Single-entry, short-TTL quote cache.

Holds the last good quote for one pair so bursts of requests inside the
freshness window don't reach the upstream providers.  The cache lives for
the lifetime of the process only; each running instance has its own.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

from pydantic import BaseModel

from quote_proxy.config import MIN_REFRESH_MS

logger = logging.getLogger(__name__)

Clock = Callable[[], int]


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class CachedQuote(BaseModel):
    """The last successfully retrieved quote."""

    pair: str = ""
    price: float | None = None
    source: str = ""
    raw: Any = None
    fetched_at_ms: int = 0
    # Timestamp reported to callers; None means fetched_at_ms.
    timestamp_ms: int | None = None

    @property
    def reported_timestamp_ms(self) -> int:
        return self.fetched_at_ms if self.timestamp_ms is None else self.timestamp_ms


class QuoteCache:
    """Last-writer-wins cache with a fixed freshness window.

    *clock* returns epoch milliseconds and is injectable so tests can move
    time deterministically.
    """

    def __init__(self, ttl_ms: int = MIN_REFRESH_MS, clock: Clock = now_ms) -> None:
        self.ttl_ms = ttl_ms
        self._clock = clock
        self._entry = CachedQuote()

    @property
    def entry(self) -> CachedQuote:
        """The current entry, fresh or not."""
        return self._entry

    def get(self, now: int | None = None) -> CachedQuote | None:
        """Return the entry if it has a price and is inside the window."""
        now = self._clock() if now is None else now
        entry = self._entry
        if entry.price is None:
            return None
        if now - entry.fetched_at_ms >= self.ttl_ms:
            return None
        return entry

    def set(self, quote: CachedQuote, now: int | None = None) -> CachedQuote:
        """Replace the entry, stamping it with *now*.

        The stamp never moves backwards, even if the clock does.
        """
        now = self._clock() if now is None else now
        stamped = quote.model_copy(
            update={"fetched_at_ms": max(now, self._entry.fetched_at_ms)}
        )
        self._entry = stamped
        logger.debug("Cached %s quote %s at %d", stamped.source, stamped.price, stamped.fetched_at_ms)
        return stamped
