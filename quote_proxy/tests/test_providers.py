"""Tests for provider clients and their shared parsing helpers.

Covers:
- to_finite_float / extract_price precedence and coercion
- reported_error for each provider's error shape
- HTTP failures, unparseable bodies and error payloads become failed results
- Twelve Data request params, enrichments and missing-key handling
- exchangerate.host and open.er-api.com request shapes
"""

from __future__ import annotations

import httpx
import pytest

from quote_proxy.errors import ConfigurationError, ValidationError
from quote_proxy.providers import (
    ExchangeRateHostProvider,
    OpenErApiProvider,
    TwelveDataProvider,
)
from quote_proxy.providers.base import extract_price, reported_error, to_finite_float

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_TD_QUOTE = {
    "symbol": "EUR/USD",
    "name": "Euro / US Dollar",
    "exchange": "Forex",
    "datetime": "2025-01-06",
    "timestamp": 1736164800,
    "open": "1.03080",
    "high": "1.04360",
    "low": "1.03050",
    "close": "1.03880",
    "previous_close": "1.03080",
    "change": "0.00800",
    "percent_change": "0.77610",
    "is_market_open": True,
}


def _transport(status: int = 200, payload=None, *, text: str | None = None, calls=None):
    """MockTransport answering every request with the same response."""

    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)
        if text is not None:
            return httpx.Response(status, text=text)
        return httpx.Response(status, json=payload)

    return httpx.MockTransport(handler)


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


class TestToFiniteFloat:
    def test_numeric_string(self):
        assert to_finite_float("1.0875") == 1.0875

    def test_number(self):
        assert to_finite_float(2) == 2.0

    def test_garbage_string(self):
        assert to_finite_float("abc") is None

    def test_empty_string(self):
        assert to_finite_float("") is None

    def test_none(self):
        assert to_finite_float(None) is None

    def test_bool_rejected(self):
        assert to_finite_float(True) is None

    def test_nan_and_inf_rejected(self):
        assert to_finite_float(float("nan")) is None
        assert to_finite_float("inf") is None
        assert to_finite_float("-Infinity") is None


class TestExtractPrice:
    def test_string_price_coerced(self):
        assert extract_price({"price": "1.0875"}) == 1.0875

    def test_non_numeric_price_is_none(self):
        assert extract_price({"price": "abc"}) is None

    def test_non_numeric_price_falls_through_to_close(self):
        assert extract_price({"price": "abc", "close": "1.09"}) == 1.09

    def test_rates_wins_over_price(self):
        payload = {"rates": {"USD": 1.1}, "price": 1.2}
        assert extract_price(payload, "USD") == 1.1

    def test_rates_ignored_without_quote(self):
        assert extract_price({"rates": {"USD": 1.1}, "price": 1.2}) == 1.2

    def test_missing_rate_falls_through(self):
        assert extract_price({"rates": {"GBP": 0.8}, "bid": "1.05"}, "USD") == 1.05

    def test_precedence_price_close_bid_ask(self):
        assert extract_price({"close": 2, "bid": 3, "ask": 4}) == 2
        assert extract_price({"bid": 3, "ask": 4}) == 3
        assert extract_price({"ask": 4}) == 4

    def test_nothing_numeric(self):
        assert extract_price({"foo": 1}) is None


class TestReportedError:
    def test_clean_payload(self):
        assert reported_error({"price": "1.08"}) is None

    def test_success_code_is_clean(self):
        assert reported_error({"code": 200, "price": "1.08"}) is None

    def test_twelve_data_error(self):
        payload = {"code": 401, "message": "Invalid API key", "status": "error"}
        assert reported_error(payload) == "401: Invalid API key"

    def test_string_code_despite_no_status(self):
        assert reported_error({"code": "400", "message": "bad symbol"}) == "400: bad symbol"

    def test_exchangerate_host_error(self):
        payload = {
            "success": False,
            "error": {"code": 101, "type": "missing_access_key", "info": "You have not supplied an API Access Key."},
        }
        assert reported_error(payload) == "You have not supplied an API Access Key."

    def test_open_er_api_error(self):
        payload = {"result": "error", "error-type": "unsupported-code"}
        assert reported_error(payload) == "unsupported-code"


# ---------------------------------------------------------------------------
# Shared response handling
# ---------------------------------------------------------------------------


class TestProviderResponses:
    @pytest.mark.asyncio
    async def test_http_503_is_failure(self):
        provider = OpenErApiProvider(transport=_transport(503, {"message": "down"}))
        result = await provider.fetch("EUR/USD")
        await provider.close()

        assert result.ok is False
        assert result.price is None
        assert result.status_code == 503
        assert result.error.startswith("HTTP 503 Service Unavailable")
        assert result.raw == {"message": "down"}

    @pytest.mark.asyncio
    async def test_http_error_includes_upstream_message(self):
        payload = {"code": 429, "message": "rate limited", "status": "error"}
        provider = TwelveDataProvider(api_key="k", transport=_transport(429, payload))
        result = await provider.fetch("EUR/USD")
        await provider.close()

        assert result.ok is False
        assert "429: rate limited" in result.error

    @pytest.mark.asyncio
    async def test_unparseable_body_is_failure(self):
        provider = OpenErApiProvider(transport=_transport(200, text="<html>oops</html>"))
        result = await provider.fetch("EUR/USD")
        await provider.close()

        assert result.ok is False
        assert result.error == "unparseable response body"
        assert result.raw == "<html>oops</html>"

    @pytest.mark.asyncio
    async def test_non_object_json_is_failure(self):
        provider = OpenErApiProvider(transport=_transport(200, [1, 2, 3]))
        result = await provider.fetch("EUR/USD")
        await provider.close()

        assert result.ok is False
        assert result.error == "unparseable response body"

    @pytest.mark.asyncio
    async def test_error_code_on_http_200_is_failure(self):
        payload = {"code": "400", "message": "symbol not found", "price": "1.08"}
        provider = TwelveDataProvider(api_key="k", transport=_transport(200, payload))
        result = await provider.fetch("EUR/USD")
        await provider.close()

        assert result.ok is False
        assert result.error == "400: symbol not found"
        assert result.raw == payload

    @pytest.mark.asyncio
    async def test_non_numeric_price_is_failure(self):
        provider = TwelveDataProvider(api_key="k", transport=_transport(200, {"price": "abc"}))
        result = await provider.fetch("EUR/USD")
        await provider.close()

        assert result.ok is False
        assert result.error == "no finite price in response"

    @pytest.mark.asyncio
    async def test_transport_error_propagates(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        provider = OpenErApiProvider(transport=httpx.MockTransport(handler))
        with pytest.raises(httpx.ConnectError):
            await provider.fetch("EUR/USD")
        await provider.close()


# ---------------------------------------------------------------------------
# Twelve Data
# ---------------------------------------------------------------------------


class TestTwelveDataProvider:
    @pytest.mark.asyncio
    async def test_request_params(self):
        calls: list[httpx.Request] = []
        provider = TwelveDataProvider(api_key="secret", transport=_transport(200, _TD_QUOTE, calls=calls))
        await provider.fetch("EUR/USD")
        await provider.close()

        assert len(calls) == 1
        assert calls[0].url.path == "/quote"
        assert calls[0].url.params["symbol"] == "EUR/USD"
        assert calls[0].url.params["apikey"] == "secret"

    @pytest.mark.asyncio
    async def test_plain_symbol_request(self):
        calls: list[httpx.Request] = []
        provider = TwelveDataProvider(api_key="secret", transport=_transport(200, _TD_QUOTE, calls=calls))
        await provider.fetch("AAPL")
        await provider.close()

        assert calls[0].url.params["symbol"] == "AAPL"

    @pytest.mark.asyncio
    async def test_quote_uses_close_and_enrichments(self):
        provider = TwelveDataProvider(api_key="k", transport=_transport(200, _TD_QUOTE))
        result = await provider.fetch("EUR/USD")
        await provider.close()

        assert result.ok is True
        assert result.source == "twelvedata"
        assert result.price == pytest.approx(1.0388)
        assert result.provider_timestamp_ms == 1736164800000
        assert result.extras["ohlc"] == {
            "open": pytest.approx(1.0308),
            "high": pytest.approx(1.0436),
            "low": pytest.approx(1.0305),
            "close": pytest.approx(1.0388),
        }
        assert result.extras["change"] == pytest.approx(0.008)
        assert result.extras["percent_change"] == pytest.approx(0.7761)
        assert result.extras["is_market_open"] is True

    @pytest.mark.asyncio
    async def test_price_endpoint_shape(self):
        provider = TwelveDataProvider(api_key="k", transport=_transport(200, {"price": "1.0875"}))
        result = await provider.fetch("EUR/USD")
        await provider.close()

        assert result.ok is True
        assert result.price == 1.0875
        assert result.extras == {}

    @pytest.mark.asyncio
    async def test_missing_key_raises(self, monkeypatch):
        monkeypatch.delenv("TWELVE_DATA_API_KEY", raising=False)
        monkeypatch.delenv("TWELVEDATA_API_KEY", raising=False)
        calls: list[httpx.Request] = []
        provider = TwelveDataProvider(transport=_transport(200, _TD_QUOTE, calls=calls))
        with pytest.raises(ConfigurationError, match="TWELVE_DATA_API_KEY"):
            await provider.fetch("EUR/USD")
        await provider.close()
        assert calls == []

    @pytest.mark.asyncio
    async def test_legacy_env_var_accepted(self, monkeypatch):
        monkeypatch.delenv("TWELVE_DATA_API_KEY", raising=False)
        monkeypatch.setenv("TWELVEDATA_API_KEY", "legacy")
        calls: list[httpx.Request] = []
        provider = TwelveDataProvider(transport=_transport(200, _TD_QUOTE, calls=calls))
        await provider.fetch("EUR/USD")
        await provider.close()
        assert calls[0].url.params["apikey"] == "legacy"


# ---------------------------------------------------------------------------
# Rates providers
# ---------------------------------------------------------------------------


class TestExchangeRateHostProvider:
    @pytest.mark.asyncio
    async def test_reads_rate(self):
        calls: list[httpx.Request] = []
        payload = {"success": True, "base": "EUR", "timestamp": 1736164800, "rates": {"USD": 1.0391}}
        provider = ExchangeRateHostProvider(access_key="", transport=_transport(200, payload, calls=calls))
        result = await provider.fetch("EUR/USD")
        await provider.close()

        assert result.ok is True
        assert result.source == "exchangerate.host"
        assert result.price == 1.0391
        assert result.provider_timestamp_ms == 1736164800000
        assert calls[0].url.path == "/latest"
        assert calls[0].url.params["base"] == "EUR"
        assert calls[0].url.params["symbols"] == "USD"
        assert "access_key" not in calls[0].url.params

    @pytest.mark.asyncio
    async def test_sends_access_key(self):
        calls: list[httpx.Request] = []
        payload = {"rates": {"USD": 1.04}}
        provider = ExchangeRateHostProvider(access_key="abc", transport=_transport(200, payload, calls=calls))
        await provider.fetch("EUR/USD")
        await provider.close()
        assert calls[0].url.params["access_key"] == "abc"

    @pytest.mark.asyncio
    async def test_rejects_plain_symbol(self):
        provider = ExchangeRateHostProvider(access_key="", transport=_transport(200, {}))
        with pytest.raises(ValidationError):
            await provider.fetch("AAPL")
        await provider.close()


class TestOpenErApiProvider:
    @pytest.mark.asyncio
    async def test_reads_rate(self):
        calls: list[httpx.Request] = []
        payload = {
            "result": "success",
            "base_code": "EUR",
            "time_last_update_unix": 1736121751,
            "rates": {"EUR": 1, "USD": 1.035},
        }
        provider = OpenErApiProvider(transport=_transport(200, payload, calls=calls))
        result = await provider.fetch("EUR/USD")
        await provider.close()

        assert result.ok is True
        assert result.source == "open.er-api.com"
        assert result.price == 1.035
        assert result.provider_timestamp_ms == 1736121751000
        assert calls[0].url.path == "/v6/latest/EUR"

    @pytest.mark.asyncio
    async def test_error_result(self):
        payload = {"result": "error", "error-type": "unsupported-code"}
        provider = OpenErApiProvider(transport=_transport(200, payload))
        result = await provider.fetch("XXX/USD")
        await provider.close()

        assert result.ok is False
        assert result.error == "unsupported-code"


# ---------------------------------------------------------------------------
# Non-finite JSON numbers
# ---------------------------------------------------------------------------


def _raw_transport(body: bytes) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=body, headers={"content-type": "application/json"})

    return httpx.MockTransport(handler)


class TestNonFiniteNumbers:
    @pytest.mark.asyncio
    async def test_nan_field_becomes_none(self):
        body = b'{"price": "1.08", "change": NaN, "percent_change": Infinity}'
        provider = TwelveDataProvider(api_key="k", transport=_raw_transport(body))
        result = await provider.fetch("EUR/USD")
        await provider.close()

        assert result.ok is True
        assert result.price == 1.08
        assert result.raw == {"price": "1.08", "change": None, "percent_change": None}
        assert "change" not in result.extras

    @pytest.mark.asyncio
    async def test_overflowing_number_becomes_none(self):
        body = b'{"rates": {"USD": 1e400}, "close": -1e999, "bid": 1.07}'
        provider = OpenErApiProvider(transport=_raw_transport(body))
        result = await provider.fetch("EUR/USD")
        await provider.close()

        assert result.ok is True
        assert result.price == 1.07
        assert result.raw["rates"] == {"USD": None}
        assert result.raw["close"] is None
