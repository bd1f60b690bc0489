"""Holding and per-holding transaction API endpoints."""

import logging
from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from api.helpers import get_current_user_id, get_owned_holding, raise_http_error
from database import get_db
from schemas import (
    HoldingResponse,
    HoldingTransactionStats,
    HoldingUpdate,
    TransactionCreate,
    TransactionListResponse,
    TransactionResponse,
)
from services.errors import ConflictError, InsufficientQuantityError, NotFoundError
from services.holdings_service import HoldingsService
from services.transaction_service import TransactionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/holdings", tags=["holdings"])


@router.get("/{holding_id}", response_model=HoldingResponse)
def get_holding(
    holding_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    """Get a holding."""
    return get_owned_holding(db, holding_id, user_id)


@router.patch("/{holding_id}", response_model=HoldingResponse)
def update_holding(
    holding_id: str,
    data: HoldingUpdate,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    """Edit a holding.

    Returns 409 when quantity or average cost is edited on a holding that
    has transactions.
    """
    get_owned_holding(db, holding_id, user_id)
    try:
        holding = HoldingsService.update_holding(db, holding_id, data)
        db.commit()
        db.refresh(holding)
        return holding
    except (NotFoundError, ConflictError) as e:
        raise_http_error(e)


@router.delete("/{holding_id}", status_code=204)
def delete_holding(
    holding_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    """Delete a holding and its transactions."""
    get_owned_holding(db, holding_id, user_id)
    HoldingsService.delete_holding(db, holding_id)
    db.commit()


@router.get("/{holding_id}/transactions", response_model=TransactionListResponse)
def list_transactions(
    holding_id: str,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    sort_by: Literal["date", "quantity", "total_cost", "type"] = Query(default="date"),
    order: Literal["asc", "desc"] = Query(default="desc"),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    """List a holding's transactions, paginated."""
    get_owned_holding(db, holding_id, user_id)
    return TransactionService.list_transactions(db, holding_id, page, limit, sort_by, order)


@router.post(
    "/{holding_id}/transactions", response_model=TransactionResponse, status_code=201
)
def add_transaction(
    holding_id: str,
    data: TransactionCreate,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    """Record a BUY or SELL; the holding's quantity and average cost are recalculated.

    Returns 400 when a SELL exceeds the current quantity.
    """
    get_owned_holding(db, holding_id, user_id)
    try:
        txn = TransactionService.add_transaction(db, holding_id, data)
        db.commit()
        db.refresh(txn)
        return txn
    except (NotFoundError, InsufficientQuantityError) as e:
        raise_http_error(e)


@router.get("/{holding_id}/stats", response_model=HoldingTransactionStats)
def get_holding_stats(
    holding_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    """Total invested and average BUY price of a holding."""
    get_owned_holding(db, holding_id, user_id)
    return TransactionService.get_stats(db, holding_id)
