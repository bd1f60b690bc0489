"""Sync API endpoints: reconcile holdings, earn positions and rewards with the exchange."""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from api.dependencies import get_earn_sync_service, get_holdings_sync_service
from api.helpers import get_current_user_id, raise_http_error
from database import get_db
from integrations.exceptions import ProviderError
from models import SyncLogEntry
from schemas import (
    EarnSyncResponse,
    HoldingsSyncResponse,
    RewardsSyncRequest,
    RewardsSyncResponse,
    SyncLogEntryResponse,
)
from services.earn_sync_service import EarnSyncService
from services.errors import NotFoundError
from services.holdings_sync_service import HoldingsSyncService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sync", tags=["sync"])


@router.post("/holdings", response_model=HoldingsSyncResponse)
def sync_holdings(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    sync_service: HoldingsSyncService = Depends(get_holdings_sync_service),
):
    """Reconcile the exchange portfolio with current spot balances.

    Per-asset failures (no price, write error) do not fail the request;
    they are listed in ``errors``.

    Raises:
        HTTPException:
            - 404 Not Found: Unknown user
            - 502 Bad Gateway: Exchange unreachable or credentials rejected
    """
    try:
        return sync_service.reconcile_holdings(db, user_id)
    except (NotFoundError, ProviderError) as e:
        logger.warning("Holdings sync failed for user %s: %s", user_id, e)
        raise_http_error(e)


@router.post("/earn", response_model=EarnSyncResponse)
def sync_earn_positions(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    sync_service: EarnSyncService = Depends(get_earn_sync_service),
):
    """Reconcile earn positions with the exchange's Simple Earn account."""
    try:
        return sync_service.reconcile_earn_positions(db, user_id)
    except (NotFoundError, ProviderError) as e:
        logger.warning("Earn sync failed for user %s: %s", user_id, e)
        raise_http_error(e)


@router.post("/rewards", response_model=RewardsSyncResponse)
def sync_rewards(
    window: RewardsSyncRequest | None = None,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    sync_service: EarnSyncService = Depends(get_earn_sync_service),
):
    """Import earn rewards, skipping ones already stored."""
    window = window or RewardsSyncRequest()
    try:
        return sync_service.sync_rewards(db, user_id, window.start, window.end)
    except (NotFoundError, ProviderError) as e:
        logger.warning("Rewards sync failed for user %s: %s", user_id, e)
        raise_http_error(e)


@router.get("/history", response_model=list[SyncLogEntryResponse])
def get_sync_history(
    limit: int = Query(default=20, ge=1, le=200),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    """Most recent sync runs for the user, newest first."""
    return (
        db.query(SyncLogEntry)
        .filter(SyncLogEntry.user_id == user_id)
        .order_by(SyncLogEntry.created_at.desc())
        .limit(limit)
        .all()
    )
