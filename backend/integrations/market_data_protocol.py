"""Market data protocol definitions.

Defines the price-resolver interface used by holdings reconciliation and
valuation.  This is separate from the exchange account protocol, which
handles balances and earn products.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Protocol


@dataclass
class PriceQuote:
    """Current price of a symbol in the quote currency."""

    symbol: str
    price: Decimal
    name: str | None = None
    change_24h: Decimal | None = None  # percent
    source: str = ""  # e.g., "binance", "coingecko"
    as_of: datetime | None = None


class PriceResolver(Protocol):
    """Protocol for current-price lookups."""

    def get_prices(self, symbols: list[str]) -> dict[str, PriceQuote]:
        """Bulk lookup; best effort.

        Symbols without a quote are simply absent from the result, which
        tells the caller to try :meth:`get_price` individually.
        """
        ...

    def get_price(self, symbol: str) -> PriceQuote:
        """Single lookup with fallbacks.

        Raises:
            PriceUnavailableError: No source could price the symbol.
        """
        ...
