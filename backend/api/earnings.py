"""Earn positions and rewards API endpoints."""

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from api.dependencies import get_price_resolver
from api.helpers import get_current_user_id, raise_http_error
from database import get_db
from integrations.market_data_protocol import PriceResolver
from schemas import EarningsSummary, EarnPositionResponse, EarnRewardResponse
from services.earnings_service import EarningsService
from services.errors import NotFoundError

router = APIRouter(prefix="/api/earnings", tags=["earnings"])


@router.get("/positions", response_model=list[EarnPositionResponse])
def get_positions(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    """Earn positions ordered by type then asset."""
    try:
        return EarningsService.get_positions(db, user_id)
    except NotFoundError as e:
        raise_http_error(e)


@router.get("/rewards", response_model=list[EarnRewardResponse])
def get_rewards(
    start: datetime | None = Query(default=None),
    end: datetime | None = Query(default=None),
    asset: str | None = Query(default=None),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    """Reward history, newest first."""
    try:
        return EarningsService.get_rewards_history(db, user_id, start, end, asset)
    except NotFoundError as e:
        raise_http_error(e)


@router.get("/summary", response_model=EarningsSummary)
def get_summary(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    price_resolver: PriceResolver = Depends(get_price_resolver),
):
    """Counts, estimated daily earnings and reward totals."""
    try:
        return EarningsService(price_resolver=price_resolver).get_summary(db, user_id)
    except NotFoundError as e:
        raise_http_error(e)
