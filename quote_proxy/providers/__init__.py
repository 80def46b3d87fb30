"""Quote providers package."""

from quote_proxy.providers.base import ProviderResult, QuoteProvider
from quote_proxy.providers.exchangerate_host import ExchangeRateHostProvider
from quote_proxy.providers.open_er_api import OpenErApiProvider
from quote_proxy.providers.twelve_data import TwelveDataProvider

__all__ = [
    "ExchangeRateHostProvider",
    "OpenErApiProvider",
    "ProviderResult",
    "QuoteProvider",
    "TwelveDataProvider",
]
