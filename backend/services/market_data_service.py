"""Market data service: current prices from the exchange with a CoinGecko fallback."""

import logging
from typing import Optional

from config import settings
from integrations.exceptions import ProviderError
from integrations.market_data_protocol import PriceQuote
from services.errors import PriceUnavailableError
from utils.symbols import normalize_symbol

logger = logging.getLogger(__name__)


class MarketDataService:
    """Price resolver used by sync and valuation.

    Bulk lookups go to the exchange ticker endpoint and are best-effort.
    Single lookups try the exchange first and CoinGecko second.
    Implements the ``PriceResolver`` protocol.
    """

    def __init__(self, exchange_client=None, fallback_provider=None):
        """Initialize with optional providers for dependency injection.

        Args:
            exchange_client: Object with ``get_ticker_prices``/``get_ticker_price``
                (a ``BinanceClient``). Created on first use if None.
            fallback_provider: Object with ``get_current_price`` (a
                ``CoinGeckoClient``). Created on first use if None.
        """
        self._exchange_client = exchange_client
        self._fallback_provider = fallback_provider
        self._owned: list = []

    @property
    def exchange_client(self):
        """Get the exchange price source, creating if not provided."""
        if self._exchange_client is None:
            from integrations.binance_client import BinanceClient

            self._exchange_client = BinanceClient()
            self._owned.append(self._exchange_client)
        return self._exchange_client

    @property
    def fallback_provider(self):
        """Get the fallback price source, creating if not provided."""
        if self._fallback_provider is None:
            from integrations.coingecko_client import CoinGeckoClient

            self._fallback_provider = CoinGeckoClient(
                api_key=settings.COINGECKO_API_KEY or None
            )
            self._owned.append(self._fallback_provider)
        return self._fallback_provider

    def close(self) -> None:
        """Close the HTTP clients this service created. Injected ones are left open."""
        while self._owned:
            self._owned.pop().close()

    def get_prices(self, symbols: list[str]) -> dict[str, PriceQuote]:
        """Bulk prices keyed by uppercase symbol.

        Exchange failures are logged and yield an empty mapping; missing
        symbols should be retried with :meth:`get_price`.
        """
        normalized = list(dict.fromkeys(normalize_symbol(s) for s in symbols if s))
        if not normalized:
            return {}
        try:
            quotes = self.exchange_client.get_ticker_prices(normalized)
        except ProviderError as e:
            logger.warning("Bulk price lookup failed for %d symbols: %s", len(normalized), e)
            return {}

        missing = [s for s in normalized if s not in quotes]
        if missing:
            logger.info("No bulk price for %s", ", ".join(missing))
        return quotes

    def get_price(self, symbol: str) -> PriceQuote:
        """Price for one symbol.

        Raises:
            PriceUnavailableError: Neither the exchange nor the fallback
                provider returned a price.
        """
        normalized = normalize_symbol(symbol)
        quote: Optional[PriceQuote] = None
        try:
            quote = self.exchange_client.get_ticker_price(normalized)
        except ProviderError as e:
            logger.warning("Exchange price lookup failed for %s: %s", normalized, e)

        if quote is not None:
            return quote

        logger.info("No exchange pair for %s, trying %s", normalized, "CoinGecko")
        quote = self.fallback_provider.get_current_price(normalized)
        if quote is None:
            raise PriceUnavailableError(
                normalized, f"no {settings.QUOTE_ASSET} pair and fallback failed"
            )
        return quote

    def get_prices_with_fallback(self, symbols: list[str]) -> tuple[dict[str, PriceQuote], list[str]]:
        """Bulk lookup followed by individual fallback for misses.

        Returns:
            Tuple of (quotes by symbol, symbols that could not be priced).
        """
        quotes = self.get_prices(symbols)
        unpriced: list[str] = []
        for symbol in dict.fromkeys(normalize_symbol(s) for s in symbols if s):
            if symbol in quotes:
                continue
            try:
                quotes[symbol] = self.get_price(symbol)
            except PriceUnavailableError as e:
                logger.warning("%s", e)
                unpriced.append(symbol)
        return quotes, unpriced
