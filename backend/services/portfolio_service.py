"""Service for portfolios and their valuation."""

import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from integrations.market_data_protocol import PriceQuote, PriceResolver
from models import Holding, Portfolio
from schemas import PortfolioCreate, PortfolioUpdate
from services.errors import NotFoundError, PriceUnavailableError
from services.reconciliation import require_user
from services.valuation_service import (
    ZERO,
    calculate_allocation,
    calculate_gain_loss,
    calculate_portfolio_gain_loss,
)

logger = logging.getLogger(__name__)


class PortfolioService:
    """Portfolio CRUD and the current-value summary."""

    def __init__(self, price_resolver: Optional[PriceResolver] = None):
        """Initialize with an optional price resolver for dependency injection."""
        self._price_resolver = price_resolver

    @property
    def price_resolver(self) -> PriceResolver:
        if self._price_resolver is None:
            from services.market_data_service import MarketDataService

            self._price_resolver = MarketDataService()
        return self._price_resolver

    # --- CRUD ---

    @staticmethod
    def list_portfolios(db: Session, user_id: str) -> list[Portfolio]:
        return (
            db.query(Portfolio)
            .filter(Portfolio.user_id == user_id)
            .order_by(Portfolio.is_default.desc(), Portfolio.name)
            .all()
        )

    @staticmethod
    def get_portfolio(db: Session, portfolio_id: str, user_id: str | None = None) -> Portfolio:
        """Fetch a portfolio, optionally checking ownership."""
        portfolio = db.get(Portfolio, portfolio_id)
        if portfolio is None or (user_id is not None and portfolio.user_id != user_id):
            raise NotFoundError("Portfolio", portfolio_id)
        return portfolio

    @staticmethod
    def create_portfolio(db: Session, user_id: str, data: PortfolioCreate) -> Portfolio:
        require_user(db, user_id)
        if data.is_default:
            PortfolioService._clear_default(db, user_id)
        portfolio = Portfolio(
            user_id=user_id,
            name=data.name,
            description=data.description,
            is_default=data.is_default,
        )
        db.add(portfolio)
        db.flush()
        logger.info("Created portfolio %r for user %s", data.name, user_id)
        return portfolio

    @staticmethod
    def update_portfolio(
        db: Session, portfolio_id: str, user_id: str, data: PortfolioUpdate
    ) -> Portfolio:
        portfolio = PortfolioService.get_portfolio(db, portfolio_id, user_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            if value is None and field != "description":
                continue
            setattr(portfolio, field, value)
        db.flush()
        return portfolio

    @staticmethod
    def delete_portfolio(db: Session, portfolio_id: str, user_id: str) -> None:
        """Delete a portfolio with its holdings and their transactions."""
        portfolio = PortfolioService.get_portfolio(db, portfolio_id, user_id)
        db.delete(portfolio)
        db.flush()
        logger.info("Deleted portfolio %s", portfolio_id)

    @staticmethod
    def set_default(db: Session, portfolio_id: str, user_id: str) -> Portfolio:
        """Make a portfolio the user's only default."""
        portfolio = PortfolioService.get_portfolio(db, portfolio_id, user_id)
        PortfolioService._clear_default(db, user_id)
        portfolio.is_default = True
        db.flush()
        return portfolio

    @staticmethod
    def _clear_default(db: Session, user_id: str) -> None:
        db.query(Portfolio).filter(
            Portfolio.user_id == user_id, Portfolio.is_default.is_(True)
        ).update({Portfolio.is_default: False}, synchronize_session="fetch")

    # --- Valuation ---

    def get_summary(self, db: Session, portfolio_id: str, user_id: str | None = None) -> dict:
        """Value every holding at current prices.

        Holdings without a price are valued at 0 and reported in
        ``unpriced_symbols``.

        Returns:
            Dict matching ``schemas.PortfolioSummary``.
        """
        portfolio = self.get_portfolio(db, portfolio_id, user_id)
        holdings: list[Holding] = list(portfolio.holdings)

        quotes: dict[str, PriceQuote] = {}
        unpriced: list[str] = []
        if holdings:
            symbols = [h.symbol for h in holdings]
            quotes = self.price_resolver.get_prices(symbols)
            for symbol in symbols:
                if symbol in quotes:
                    continue
                try:
                    quotes[symbol] = self.price_resolver.get_price(symbol)
                except PriceUnavailableError as e:
                    logger.warning("Valuing %s at 0: %s", symbol, e)
                    unpriced.append(symbol)

        values: dict[str, Decimal] = {}
        rows: list[dict] = []
        positions: list[tuple[Decimal, Decimal, Decimal]] = []
        for holding in holdings:
            quote = quotes.get(holding.symbol)
            price = quote.price if quote else ZERO
            gain_loss = calculate_gain_loss(holding.quantity, holding.average_cost, price)
            values[holding.id] = gain_loss.current_value
            positions.append((holding.quantity, holding.average_cost, price))
            rows.append({
                "holding_id": holding.id,
                "symbol": holding.symbol,
                "name": holding.name,
                "quantity": holding.quantity,
                "average_cost": holding.average_cost,
                "current_price": quote.price if quote else None,
                "current_value": gain_loss.current_value,
                "cost_basis": gain_loss.cost_basis,
                "gain_loss": gain_loss.amount,
                "gain_loss_percent": gain_loss.percent,
                "price_change_24h": quote.change_24h if quote else None,
            })

        allocation = calculate_allocation(values)
        for row in rows:
            row["allocation_percent"] = allocation[row["holding_id"]]
        rows.sort(key=lambda r: r["current_value"], reverse=True)

        totals = calculate_portfolio_gain_loss(positions)
        return {
            "portfolio_id": portfolio.id,
            "name": portfolio.name,
            "total_value": totals.current_value,
            "total_cost": totals.cost_basis,
            "total_gain_loss": totals.amount,
            "total_gain_loss_percent": totals.percent,
            "holdings": rows,
            "unpriced_symbols": unpriced,
        }
