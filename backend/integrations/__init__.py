"""External API integrations.

This package contains:
- Exchange protocol: account snapshot types the sync services consume
- Binance client: spot balances, Simple Earn and ticker prices
- CoinGecko client: fallback prices for assets without an exchange pair
"""

from integrations.exchange_protocol import (
    EarnPositionSnapshot,
    ExchangeAccountClient,
    ExchangeBalance,
    RewardSnapshot,
)
from integrations.market_data_protocol import PriceQuote, PriceResolver

__all__ = [
    "EarnPositionSnapshot",
    "ExchangeAccountClient",
    "ExchangeBalance",
    "PriceQuote",
    "PriceResolver",
    "RewardSnapshot",
]
