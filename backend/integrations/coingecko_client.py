"""CoinGecko market data provider for current cryptocurrency prices.

Used as the fallback price source when an asset has no pair against the
exchange quote currency.
"""

import logging
import time as time_module
from datetime import datetime, timezone
from typing import Optional

import httpx

from integrations.market_data_protocol import PriceQuote
from integrations.parsing_utils import parse_decimal

logger = logging.getLogger(__name__)

# Hardcoded mapping for the most common crypto symbols.
# Covers the vast majority of real portfolios without an API call.
_KNOWN_COIN_IDS: dict[str, str] = {
    "BTC": "bitcoin",
    "ETH": "ethereum",
    "BNB": "binancecoin",
    "SOL": "solana",
    "SUI": "sui",
    "DOGE": "dogecoin",
    "ADA": "cardano",
    "XRP": "ripple",
    "DOT": "polkadot",
    "AVAX": "avalanche-2",
    "MATIC": "matic-network",
    "POL": "matic-network",
    "LINK": "chainlink",
    "UNI": "uniswap",
    "ATOM": "cosmos",
    "LTC": "litecoin",
    "NEAR": "near",
    "APT": "aptos",
    "ARB": "arbitrum",
    "OP": "optimism",
    "FIL": "filecoin",
    "AAVE": "aave",
    "SHIB": "shiba-inu",
    "TRX": "tron",
    "XLM": "stellar",
    "ALGO": "algorand",
    "PEPE": "pepe",
    "RENDER": "render-token",
    "INJ": "injective-protocol",
    "SEI": "sei-network",
}

# Max retries for rate-limited requests
_MAX_RETRIES = 3
_BASE_DELAY_SECONDS = 1.0


class CoinGeckoClient:
    """Market data provider using the CoinGecko API for crypto prices."""

    def __init__(self, api_key: Optional[str] = None, vs_currency: str = "usd"):
        """Initialize with optional API key.

        Args:
            api_key: CoinGecko demo API key. If provided, uses the
                     x-cg-demo-api-key header for higher rate limits.
                     If None, uses the keyless public API.
            vs_currency: Currency prices are quoted in.
        """
        headers: dict[str, str] = {}
        if api_key:
            headers["x-cg-demo-api-key"] = api_key
        self._client = httpx.Client(
            base_url="https://api.coingecko.com/api/v3",
            headers=headers,
            timeout=30.0,
        )
        self._vs_currency = vs_currency
        self._resolved_ids: dict[str, str] = dict(_KNOWN_COIN_IDS)
        self._names: dict[str, str] = {}

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()

    @property
    def provider_name(self) -> str:
        return "coingecko"

    def _resolve_coin_id(self, symbol: str) -> Optional[str]:
        """Resolve a ticker symbol to a CoinGecko coin ID.

        Checks the cached mapping first, then falls back to the
        /search endpoint for unknown symbols.
        """
        upper = symbol.upper()
        if upper in self._resolved_ids:
            return self._resolved_ids[upper]

        try:
            response = self._request_with_retry("GET", "/search", params={"query": symbol})
            coins = response.json().get("coins", [])
        except (httpx.HTTPError, ValueError):
            logger.warning(
                "CoinGecko: failed to resolve symbol %s", symbol,
                exc_info=True,
            )
            return None

        # Pick the exact symbol match with the best (lowest) market_cap_rank
        best = None
        for coin in coins:
            if coin.get("symbol", "").upper() != upper:
                continue
            rank = coin.get("market_cap_rank")
            if best is None:
                best = coin
            elif rank is not None and rank < (best.get("market_cap_rank") or float("inf")):
                best = coin

        if best is None:
            logger.warning("CoinGecko: no matching coin for symbol %s", symbol)
            return None

        coin_id = best["id"]
        self._resolved_ids[upper] = coin_id
        if best.get("name"):
            self._names[upper] = best["name"]
        logger.info("CoinGecko: resolved %s -> %s", symbol, coin_id)
        return coin_id

    def _request_with_retry(
        self, method: str, path: str, **kwargs
    ) -> httpx.Response:
        """Make an HTTP request with retry on 429 rate limit responses."""
        last_exc: Optional[Exception] = None
        for attempt in range(_MAX_RETRIES):
            try:
                response = self._client.request(method, path, **kwargs)
                if response.status_code == 429:
                    delay = _BASE_DELAY_SECONDS * (2 ** attempt)
                    logger.warning(
                        "CoinGecko: rate limited, retrying in %.1fs (attempt %d/%d)",
                        delay, attempt + 1, _MAX_RETRIES,
                    )
                    time_module.sleep(delay)
                    continue
                response.raise_for_status()
                return response
            except httpx.HTTPStatusError as e:
                if e.response.status_code == 429:
                    delay = _BASE_DELAY_SECONDS * (2 ** attempt)
                    time_module.sleep(delay)
                    last_exc = e
                    continue
                raise

        raise last_exc or httpx.HTTPError("CoinGecko: max retries exceeded")

    def get_current_prices(self, symbols: list[str]) -> dict[str, PriceQuote]:
        """Fetch current prices for *symbols* from ``/simple/price``.

        Unknown symbols and request failures are logged and omitted.
        """
        ids_by_symbol: dict[str, str] = {}
        for symbol in symbols:
            coin_id = self._resolve_coin_id(symbol)
            if coin_id is not None:
                ids_by_symbol[symbol.upper()] = coin_id
        if not ids_by_symbol:
            return {}

        try:
            response = self._request_with_retry(
                "GET",
                "/simple/price",
                params={
                    "ids": ",".join(sorted(set(ids_by_symbol.values()))),
                    "vs_currencies": self._vs_currency,
                    "include_24hr_change": "true",
                },
            )
            data = response.json()
        except (httpx.HTTPError, ValueError):
            logger.warning(
                "CoinGecko: failed to fetch prices for %s",
                ", ".join(ids_by_symbol), exc_info=True,
            )
            return {}

        now = datetime.now(timezone.utc)
        quotes: dict[str, PriceQuote] = {}
        for symbol, coin_id in ids_by_symbol.items():
            entry = data.get(coin_id) or {}
            price = parse_decimal(entry.get(self._vs_currency))
            if price is None or price <= 0:
                logger.warning("CoinGecko: no price data for %s (%s)", symbol, coin_id)
                continue
            quotes[symbol] = PriceQuote(
                symbol=symbol,
                price=price,
                name=self._names.get(symbol),
                change_24h=parse_decimal(entry.get(f"{self._vs_currency}_24h_change")),
                source="coingecko",
                as_of=now,
            )
        return quotes

    def get_current_price(self, symbol: str) -> Optional[PriceQuote]:
        """Current price for one symbol, or ``None``."""
        return self.get_current_prices([symbol]).get(symbol.upper())
