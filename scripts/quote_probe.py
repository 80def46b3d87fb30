#!/usr/bin/env python3
"""Live probe of every quote provider and both resolver chains.

Calls Twelve Data, exchangerate.host and open.er-api.com directly, then
resolves the same pair twice through the cached FX chain to show the
second call being served from cache.
"""

import asyncio
import logging
import os
import sys

# Ensure project root is on sys.path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("quote_probe")


async def main(pair: str) -> int:
    import httpx

    from quote_proxy.errors import ConfigurationError, QuoteProxyError, ValidationError
    from quote_proxy.main import build_fx_resolver
    from quote_proxy.providers import (
        ExchangeRateHostProvider,
        OpenErApiProvider,
        TwelveDataProvider,
    )
    from quote_proxy.symbols import normalize_pair

    pair = normalize_pair(pair)

    print("=" * 70)
    print(f"  QUOTE PROBE: {pair}")
    print("=" * 70)

    # -----------------------------------------------------------------------
    # Step 1: Each provider on its own
    # -----------------------------------------------------------------------
    print("\n--- Step 1: Providers ---")
    failures = 0
    for provider in (TwelveDataProvider(), ExchangeRateHostProvider(), OpenErApiProvider()):
        try:
            result = await provider.fetch(pair)
        except (ConfigurationError, ValidationError) as exc:
            print(f"  {provider.name:20s}  SKIPPED ({exc})")
            continue
        except httpx.RequestError as exc:
            print(f"  {provider.name:20s}  UNREACHABLE ({exc})")
            failures += 1
            continue
        finally:
            await provider.close()

        if result.ok:
            print(f"  {provider.name:20s}  {result.price:>12.6f}")
        else:
            print(f"  {provider.name:20s}  ERROR {result.error}")
            failures += 1

    # -----------------------------------------------------------------------
    # Step 2: Cached FX chain (second call should hit the cache)
    # -----------------------------------------------------------------------
    print("\n--- Step 2: FX chain ---")
    resolver = build_fx_resolver()
    try:
        for attempt in (1, 2):
            resolution = await resolver.resolve(pair)
            print(
                f"  attempt {attempt}: {resolution.price} from {resolution.source} "
                f"(cached={resolution.cached}, latency={resolution.latency_ms} ms)"
            )
    except (QuoteProxyError, httpx.RequestError) as exc:
        print(f"  ERROR: {exc}")
        return 1
    finally:
        await resolver.close()

    print("\n" + "=" * 70)
    print(f"  PROBE COMPLETE: {failures} provider failure(s)")
    print("=" * 70)
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else "EUR/USD")))
