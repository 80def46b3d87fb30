"""Exception types raised by providers and the quote resolver."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from quote_proxy.providers.base import ProviderResult


class QuoteProxyError(Exception):
    """Base class for all errors mapped to a JSON envelope."""

    status_code = 500


class ConfigurationError(QuoteProxyError):
    """Raised when a required credential or setting is missing."""

    status_code = 500


class ValidationError(QuoteProxyError):
    """Raised when a request asks for a pair the route does not serve."""

    status_code = 400


class ProviderError(QuoteProxyError):
    """Raised when an upstream provider fails to deliver a usable quote."""

    status_code = 502


class QuoteUnavailableError(ProviderError):
    """Every provider in the chain failed.

    *failures* holds one ``ProviderResult`` per provider, in call order.
    """

    def __init__(self, pair: str, failures: list[ProviderResult]) -> None:
        self.pair = pair
        self.failures = failures
        summary = "; ".join(f"{f.source}: {f.error}" for f in failures)
        super().__init__(f"No provider returned a quote for {pair} ({summary})")
