"""Service factories used as FastAPI dependencies.

Each factory yields a service for one request and closes the HTTP clients
it opened once the response is sent. Tests replace these through
``app.dependency_overrides``.
"""

from collections.abc import Iterator

from integrations.exchange_protocol import ExchangeAccountClient
from integrations.market_data_protocol import PriceResolver
from services.earn_sync_service import EarnSyncService
from services.holdings_sync_service import HoldingsSyncService


def get_exchange_client() -> Iterator[ExchangeAccountClient]:
    """Exchange account adapter for sync endpoints."""
    from integrations.binance_client import BinanceClient

    client = BinanceClient()
    try:
        yield client
    finally:
        client.close()


def get_price_resolver() -> Iterator[PriceResolver]:
    """Price resolver for valuation endpoints."""
    from services.market_data_service import MarketDataService

    resolver = MarketDataService()
    try:
        yield resolver
    finally:
        resolver.close()


def get_holdings_sync_service() -> Iterator[HoldingsSyncService]:
    """Holdings sync sharing one Binance client between balances and prices."""
    from integrations.binance_client import BinanceClient
    from services.market_data_service import MarketDataService

    client = BinanceClient()
    resolver = MarketDataService(exchange_client=client)
    try:
        yield HoldingsSyncService(exchange_client=client, price_resolver=resolver)
    finally:
        resolver.close()
        client.close()


def get_earn_sync_service() -> Iterator[EarnSyncService]:
    """Earn positions and rewards sync."""
    from integrations.binance_client import BinanceClient

    client = BinanceClient()
    try:
        yield EarnSyncService(exchange_client=client)
    finally:
        client.close()
