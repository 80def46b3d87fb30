"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import uvicorn
from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse, Response

from quote_proxy.cache import QuoteCache
from quote_proxy.config import (
    CACHED_PAIRS,
    CORS_HEADERS,
    LOG_FORMAT,
    LOG_LEVEL,
    MIN_REFRESH_MS,
)
from quote_proxy.errors import (
    ConfigurationError,
    QuoteProxyError,
    QuoteUnavailableError,
)
from quote_proxy.providers import (
    ExchangeRateHostProvider,
    OpenErApiProvider,
    TwelveDataProvider,
)
from quote_proxy.resolver import QuoteResolver, Resolution
from quote_proxy.symbols import normalize_pair

logger = logging.getLogger(__name__)

_JSON_MEDIA_TYPE = "application/json; charset=utf-8"


# ---------------------------------------------------------------------------
# Resolver wiring
# ---------------------------------------------------------------------------


def build_quote_resolver() -> QuoteResolver:
    """Twelve Data only: no cache, no fallback, any symbol."""
    return QuoteResolver([TwelveDataProvider()])


def build_fx_resolver() -> QuoteResolver:
    """exchangerate.host with open.er-api.com fallback behind a 5 s cache."""
    return QuoteResolver(
        [ExchangeRateHostProvider(), OpenErApiProvider()],
        cache=QuoteCache(ttl_ms=MIN_REFRESH_MS),
        supported_pairs=CACHED_PAIRS,
    )


# ---------------------------------------------------------------------------
# Envelopes
# ---------------------------------------------------------------------------


def _json(status_code: int, body: dict, *, success: bool = False) -> JSONResponse:
    headers = dict(CORS_HEADERS)
    if success:
        headers["Cache-Control"] = "no-store"
    return JSONResponse(
        status_code=status_code,
        content=body,
        headers=headers,
        media_type=_JSON_MEDIA_TYPE,
    )


def _success_body(resolver: QuoteResolver, resolution: Resolution) -> dict:
    body: dict = {
        "ok": True,
        "provider": resolution.source,
        "pair": resolution.pair,
        "symbol": resolution.pair,
        "price": resolution.price,
        "timestamp_ms": resolution.timestamp_ms,
        "latency_ms": resolution.latency_ms,
    }
    if resolver.cache is not None:
        body["cached"] = resolution.cached
        body["source"] = resolution.source
    body.update(resolution.extras)
    body["raw"] = resolution.raw
    return body


def _failure_body(exc: QuoteUnavailableError) -> dict:
    """502 envelope.  Chains report both the primary and fallback errors."""
    last = exc.failures[-1]
    body: dict = {
        "ok": False,
        "provider": last.source,
        "pair": exc.pair,
        "symbol": exc.pair,
        "raw": last.raw,
        "status": "error",
        "error": str(exc),
    }
    if len(exc.failures) > 1:
        body["primary_error"] = exc.failures[0].error
        body["fallback_error"] = last.error
        body["raw"] = {f.source: f.raw for f in exc.failures}
    return body


async def _envelope(resolver: QuoteResolver, requested: str | None) -> tuple[int, dict]:
    """Resolve *requested* into ``(status code, envelope body)``."""
    try:
        pair = normalize_pair(requested)
        resolution = await resolver.resolve(pair)
    except QuoteUnavailableError as exc:
        return exc.status_code, _failure_body(exc)
    except QuoteProxyError as exc:
        if isinstance(exc, ConfigurationError):
            logger.error("Configuration error: %s", exc)
        return exc.status_code, {"ok": False, "error": str(exc)}
    return 200, _success_body(resolver, resolution)


async def _respond(resolver: QuoteResolver, requested: str | None) -> JSONResponse:
    """Resolve *requested* and render the JSON envelope.

    Nothing raised here escapes to the ASGI server, rendering included.
    """
    try:
        status_code, body = await _envelope(resolver, requested)
        return _json(status_code, body, success=status_code == 200)
    except Exception as exc:
        logger.exception("Quote request for %r failed", requested)
        return _json(500, {"ok": False, "error": str(exc) or type(exc).__name__})


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


def create_app(
    quote_resolver: QuoteResolver | None = None,
    fx_resolver: QuoteResolver | None = None,
) -> FastAPI:
    """Build the app.  Resolvers not passed in are created at startup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Initialize resolvers on startup, close their clients on shutdown."""
        app.state.quote_resolver = quote_resolver or build_quote_resolver()
        app.state.fx_resolver = fx_resolver or build_fx_resolver()
        logger.info("Quote proxy started")
        yield
        await app.state.quote_resolver.close()
        await app.state.fx_resolver.close()
        logger.info("Quote proxy stopped")

    app = FastAPI(title="Quote Proxy", lifespan=lifespan)

    @app.get("/api/health")
    async def health() -> dict:
        """Return service health status."""
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.get("/api/quote")
    async def quote(
        request: Request,
        pair: str | None = Query(None),
        symbol: str | None = Query(None),
    ) -> JSONResponse:
        """Live Twelve Data quote for any pair or symbol (default EUR/USD)."""
        return await _respond(request.app.state.quote_resolver, pair or symbol)

    @app.get("/api/fx")
    async def fx(
        request: Request,
        pair: str | None = Query(None),
        symbol: str | None = Query(None),
    ) -> JSONResponse:
        """EUR/USD with provider fallback, cached for a few seconds."""
        return await _respond(request.app.state.fx_resolver, pair or symbol)

    @app.options("/api/quote")
    @app.options("/api/fx")
    async def preflight() -> Response:
        """CORS preflight: 200, CORS headers, empty body."""
        return Response(status_code=200, headers=CORS_HEADERS)

    return app


app = create_app()


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)
    uvicorn.run("quote_proxy.main:app", host="0.0.0.0", port=8000)
