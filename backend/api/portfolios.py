"""Portfolio API endpoints."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from api.dependencies import get_price_resolver
from api.helpers import get_current_user_id, raise_http_error
from database import get_db
from integrations.market_data_protocol import PriceResolver
from schemas import (
    HoldingCreate,
    HoldingResponse,
    PortfolioCreate,
    PortfolioResponse,
    PortfolioSummary,
    PortfolioUpdate,
)
from services.errors import ConflictError, NotFoundError
from services.holdings_service import HoldingsService
from services.portfolio_service import PortfolioService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/portfolios", tags=["portfolios"])


@router.get("", response_model=list[PortfolioResponse])
def list_portfolios(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    """List the user's portfolios, default first."""
    return PortfolioService.list_portfolios(db, user_id)


@router.post("", response_model=PortfolioResponse, status_code=201)
def create_portfolio(
    data: PortfolioCreate,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    """Create a portfolio."""
    try:
        portfolio = PortfolioService.create_portfolio(db, user_id, data)
        db.commit()
        db.refresh(portfolio)
        return portfolio
    except NotFoundError as e:
        raise_http_error(e)


@router.get("/{portfolio_id}", response_model=PortfolioResponse)
def get_portfolio(
    portfolio_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    """Get a portfolio."""
    try:
        return PortfolioService.get_portfolio(db, portfolio_id, user_id)
    except NotFoundError as e:
        raise_http_error(e)


@router.patch("/{portfolio_id}", response_model=PortfolioResponse)
def update_portfolio(
    portfolio_id: str,
    data: PortfolioUpdate,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    """Rename or re-describe a portfolio."""
    try:
        portfolio = PortfolioService.update_portfolio(db, portfolio_id, user_id, data)
        db.commit()
        db.refresh(portfolio)
        return portfolio
    except NotFoundError as e:
        raise_http_error(e)


@router.delete("/{portfolio_id}", status_code=204)
def delete_portfolio(
    portfolio_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    """Delete a portfolio with all of its holdings and transactions."""
    try:
        PortfolioService.delete_portfolio(db, portfolio_id, user_id)
        db.commit()
    except NotFoundError as e:
        raise_http_error(e)


@router.post("/{portfolio_id}/default", response_model=PortfolioResponse)
def set_default_portfolio(
    portfolio_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    """Make this the user's default portfolio."""
    try:
        portfolio = PortfolioService.set_default(db, portfolio_id, user_id)
        db.commit()
        db.refresh(portfolio)
        return portfolio
    except NotFoundError as e:
        raise_http_error(e)


@router.get("/{portfolio_id}/summary", response_model=PortfolioSummary)
def get_portfolio_summary(
    portfolio_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    price_resolver: PriceResolver = Depends(get_price_resolver),
):
    """Value the portfolio at current prices: allocation and gain/loss per holding."""
    try:
        return PortfolioService(price_resolver=price_resolver).get_summary(
            db, portfolio_id, user_id
        )
    except NotFoundError as e:
        raise_http_error(e)


@router.get("/{portfolio_id}/holdings", response_model=list[HoldingResponse])
def list_holdings(
    portfolio_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    """List the holdings of a portfolio."""
    try:
        PortfolioService.get_portfolio(db, portfolio_id, user_id)
        return HoldingsService.list_holdings(db, portfolio_id)
    except NotFoundError as e:
        raise_http_error(e)


@router.post("/{portfolio_id}/holdings", response_model=HoldingResponse, status_code=201)
def add_holding(
    portfolio_id: str,
    data: HoldingCreate,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    """Manually add a holding to a portfolio."""
    try:
        PortfolioService.get_portfolio(db, portfolio_id, user_id)
        holding = HoldingsService.add_holding(db, portfolio_id, data)
        db.commit()
        db.refresh(holding)
        return holding
    except (NotFoundError, ConflictError) as e:
        raise_http_error(e)
