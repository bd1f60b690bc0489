"""Transaction API endpoints."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from api.helpers import get_current_user_id, get_owned_transaction, raise_http_error
from database import get_db
from schemas import TransactionResponse, TransactionUpdate
from services.errors import InsufficientQuantityError, NotFoundError
from services.transaction_service import TransactionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/transactions", tags=["transactions"])


@router.get("/{transaction_id}", response_model=TransactionResponse)
def get_transaction(
    transaction_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    """Get a transaction."""
    return get_owned_transaction(db, transaction_id, user_id)


@router.patch("/{transaction_id}", response_model=TransactionResponse)
def update_transaction(
    transaction_id: str,
    data: TransactionUpdate,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    """Edit a transaction; total cost and the holding are recalculated."""
    get_owned_transaction(db, transaction_id, user_id)
    try:
        txn = TransactionService.update_transaction(db, transaction_id, data)
        db.commit()
        db.refresh(txn)
        return txn
    except (NotFoundError, InsufficientQuantityError) as e:
        raise_http_error(e)


@router.delete("/{transaction_id}", status_code=204)
def delete_transaction(
    transaction_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    """Delete a transaction and recalculate its holding."""
    get_owned_transaction(db, transaction_id, user_id)
    TransactionService.delete_transaction(db, transaction_id)
    db.commit()
