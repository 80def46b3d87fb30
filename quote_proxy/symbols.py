"""Currency-pair normalization for incoming query parameters."""

from __future__ import annotations

import re

from quote_proxy.config import DEFAULT_PAIR

_SLASH_PAIR = re.compile(r"^([A-Z]{3})\s*/\s*([A-Z]{3})$")
_CONCAT_PAIR = re.compile(r"^([A-Z]{3})([A-Z]{3})$")


def normalize_pair(value: str | None) -> str:
    """Return *value* as ``BASE/QUOTE``.

    ``eurusd`` and ``eur/usd`` both become ``EUR/USD``.  Empty input falls
    back to ``DEFAULT_PAIR``.  Anything that is not a currency pair (e.g. an
    equity ticker) is returned upper-cased so Twelve Data can still quote it.
    """
    if value is None:
        return DEFAULT_PAIR
    cleaned = value.strip().upper()
    if not cleaned:
        return DEFAULT_PAIR

    match = _SLASH_PAIR.match(cleaned) or _CONCAT_PAIR.match(cleaned)
    if match:
        return f"{match.group(1)}/{match.group(2)}"
    return cleaned


def split_pair(pair: str) -> tuple[str, str | None]:
    """Split a normalized pair into ``(base, quote)``.

    Non-pair symbols return ``(symbol, None)``.
    """
    base, sep, quote = pair.partition("/")
    if not sep:
        return pair, None
    return base, quote
