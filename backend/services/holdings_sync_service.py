"""Holdings sync - reconcile a user's exchange portfolio with spot balances."""

import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy.orm import Session

from config import settings
from integrations.exceptions import ProviderError
from integrations.exchange_protocol import ExchangeAccountClient, ExchangeBalance
from integrations.market_data_protocol import PriceQuote, PriceResolver
from models import Holding, Portfolio
from services.average_cost_ledger import quantize
from services.portfolio_service import PortfolioService
from services.reconciliation import (
    SnapshotReconciler,
    record_failed_sync,
    record_sync,
    require_user,
)
from utils.symbols import filter_reason, filter_valid_symbols, is_valid_symbol

logger = logging.getLogger(__name__)

SYNC_TYPE = "holdings"
SYNC_NOTES = "Synced from Binance"
SYNC_PORTFOLIO_DESCRIPTION = "Automatically synced from Binance account"


@dataclass
class HoldingsSyncResult:
    """Outcome of :meth:`HoldingsSyncService.reconcile_holdings`."""

    portfolio_id: str | None = None
    portfolio_name: str | None = None
    added: int = 0
    updated: int = 0
    deleted: int = 0
    total: int = 0
    errors: list[str] = field(default_factory=list)


class HoldingsSyncService:
    """Reconciles the sync portfolio's holdings against exchange balances.

    Existing holdings get the observed quantity (free + locked) and keep
    their average cost.  New holdings start with the current price as
    their average cost.  Holdings whose asset left the account are
    deleted.
    """

    def __init__(
        self,
        exchange_client: Optional[ExchangeAccountClient] = None,
        price_resolver: Optional[PriceResolver] = None,
    ):
        """Initialize with optional collaborators for dependency injection.

        Args:
            exchange_client: Account adapter. A ``BinanceClient`` is
                created on first use if None.
            price_resolver: Price lookups. A ``MarketDataService`` sharing
                the exchange client is created on first use if None.
        """
        self._exchange_client = exchange_client
        self._price_resolver = price_resolver
        self._reconciler: SnapshotReconciler[Holding, ExchangeBalance] = SnapshotReconciler(
            "holdings",
            local_key=lambda holding: holding.symbol,
            item_key=lambda balance: balance.asset.upper(),
        )

    @property
    def exchange_client(self) -> ExchangeAccountClient:
        if self._exchange_client is None:
            from integrations.binance_client import BinanceClient

            self._exchange_client = BinanceClient()
        return self._exchange_client

    @property
    def price_resolver(self) -> PriceResolver:
        if self._price_resolver is None:
            from services.market_data_service import MarketDataService

            self._price_resolver = MarketDataService(exchange_client=self.exchange_client)
        return self._price_resolver

    @staticmethod
    def find_sync_portfolio(db: Session, user_id: str) -> Portfolio | None:
        return (
            db.query(Portfolio)
            .filter(
                Portfolio.user_id == user_id,
                Portfolio.name == settings.SYNC_PORTFOLIO_NAME,
            )
            .first()
        )

    @classmethod
    def get_or_create_sync_portfolio(cls, db: Session, user_id: str) -> Portfolio:
        """Find the user's exchange portfolio, creating it on first sync."""
        portfolio = cls.find_sync_portfolio(db, user_id)
        if portfolio is not None:
            return portfolio

        # The exchange portfolio becomes the user's only default
        PortfolioService._clear_default(db, user_id)
        portfolio = Portfolio(
            user_id=user_id,
            name=settings.SYNC_PORTFOLIO_NAME,
            description=SYNC_PORTFOLIO_DESCRIPTION,
            is_default=True,
        )
        db.add(portfolio)
        db.flush()
        logger.info("Created portfolio %r for user %s", portfolio.name, user_id)
        return portfolio

    def reconcile_holdings(self, db: Session, user_id: str) -> HoldingsSyncResult:
        """Sync the user's exchange portfolio with current spot balances.

        Commits on completion.

        Raises:
            NotFoundError: The user does not exist.
            ProviderError: Balances could not be fetched.
        """
        require_user(db, user_id)

        logger.info("Fetching %s balances for user %s", "Binance", user_id)
        try:
            balances = self.exchange_client.get_account_balances()
        except ProviderError as e:
            logger.warning("Holdings sync aborted for user %s: %s", user_id, e)
            record_failed_sync(db, user_id, SYNC_TYPE, str(e))
            raise

        if not balances:
            # Could be a liquidated account or a transient empty response;
            # local holdings are kept either way.
            logger.warning(
                "Exchange returned no balances for user %s; skipping deletions", user_id
            )
            portfolio = self.find_sync_portfolio(db, user_id)
            record_sync(db, user_id, SYNC_TYPE, "success")
            db.commit()
            return HoldingsSyncResult(
                portfolio_id=portfolio.id if portfolio else None,
                portfolio_name=portfolio.name if portfolio else None,
                total=len(portfolio.holdings) if portfolio else 0,
            )

        portfolio = self.get_or_create_sync_portfolio(db, user_id)
        quotes = self.price_resolver.get_prices(
            filter_valid_symbols(b.asset for b in balances)
        )

        def apply_balance(
            db: Session, balance: ExchangeBalance, existing: Holding | None
        ) -> Holding | None:
            symbol = balance.asset.upper()
            if not is_valid_symbol(symbol):
                logger.info("Skipping %s: %s", symbol, filter_reason(symbol))
                return None

            quantity = balance.total
            if quantity < settings.DUST_THRESHOLD:
                logger.debug("Skipping %s: dust balance %s", symbol, quantity)
                return None

            quote = self._resolve_price(symbol, quotes)

            if existing is not None:
                existing.quantity = quantize(quantity)
                logger.info("Updated %s: quantity=%s", symbol, existing.quantity)
                return existing

            holding = Holding(
                portfolio_id=portfolio.id,
                symbol=symbol,
                name=quote.name or symbol,
                quantity=quantize(quantity),
                average_cost=quantize(quote.price),
                notes=SYNC_NOTES,
            )
            db.add(holding)
            logger.info("Created %s: quantity=%s @ %s", symbol, holding.quantity, quote.price)
            return holding

        outcome = self._reconciler.reconcile(
            db,
            list(portfolio.holdings),
            balances,
            apply_balance,
        )

        record_sync(
            db, user_id, SYNC_TYPE, outcome.status,
            added=outcome.added, updated=outcome.updated,
            deleted=outcome.deleted, errors=outcome.errors,
        )
        db.commit()
        db.refresh(portfolio)

        result = HoldingsSyncResult(
            portfolio_id=portfolio.id,
            portfolio_name=portfolio.name,
            added=outcome.added,
            updated=outcome.updated,
            deleted=outcome.deleted,
            total=len(portfolio.holdings),
            errors=outcome.errors,
        )
        logger.info(
            "Holdings sync for user %s: %d added, %d updated, %d deleted, %d errors",
            user_id, result.added, result.updated, result.deleted, len(result.errors),
        )
        return result

    def _resolve_price(self, symbol: str, quotes: dict[str, PriceQuote]) -> PriceQuote:
        """Bulk quote if present, otherwise an individual lookup (may raise PriceUnavailableError)."""
        quote = quotes.get(symbol)
        if quote is not None:
            return quote
        return self.price_resolver.get_price(symbol)
