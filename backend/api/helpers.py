"""Shared API helpers for route handlers.

Common lookups, the current-user dependency and the mapping from
service-layer errors to HTTP responses.
"""

from typing import NoReturn, TypeVar

from fastapi import Header, HTTPException
from sqlalchemy.orm import Session

from config import settings
from database import Base
from integrations.exceptions import ProviderAuthError, ProviderError
from models import Holding, Transaction
from services.errors import ConflictError, InsufficientQuantityError, NotFoundError

T = TypeVar("T", bound=Base)


def get_or_404(db: Session, model: type[T], entity_id: str, detail: str = "Not found") -> T:
    """Fetch a single entity by primary key or raise 404.

    Raises:
        HTTPException: 404 if the entity doesn't exist.
    """
    entity = db.query(model).filter(model.id == entity_id).first()
    if not entity:
        raise HTTPException(status_code=404, detail=detail)
    return entity


def get_current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """Resolve the acting user from the ``X-User-Id`` header.

    Falls back to the configured default user (single-user mode).
    """
    return x_user_id or settings.DEFAULT_USER_ID


def get_owned_holding(db: Session, holding_id: str, user_id: str) -> Holding:
    """Fetch a holding that belongs to one of the user's portfolios, or 404."""
    holding = get_or_404(db, Holding, holding_id, "Holding not found")
    if holding.portfolio.user_id != user_id:
        raise HTTPException(status_code=404, detail="Holding not found")
    return holding


def get_owned_transaction(db: Session, transaction_id: str, user_id: str) -> Transaction:
    """Fetch a transaction whose holding the user owns, or 404."""
    txn = get_or_404(db, Transaction, transaction_id, "Transaction not found")
    if txn.holding.portfolio.user_id != user_id:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return txn


def raise_http_error(error: Exception) -> NoReturn:
    """Translate a service or provider exception into an ``HTTPException``.

    Unknown exceptions are re-raised unchanged.
    """
    if isinstance(error, NotFoundError):
        raise HTTPException(status_code=404, detail=str(error)) from error
    if isinstance(error, InsufficientQuantityError):
        raise HTTPException(status_code=400, detail=str(error)) from error
    if isinstance(error, ConflictError):
        raise HTTPException(status_code=409, detail=str(error)) from error
    if isinstance(error, ProviderAuthError):
        raise HTTPException(
            status_code=502,
            detail=(
                f"Provider authentication failed for {error.provider_name}. "
                "Please check your credentials and try again."
            ),
        ) from error
    if isinstance(error, ProviderError):
        raise HTTPException(
            status_code=502,
            detail=f"{error.provider_name or 'Provider'} is unavailable: {error}",
        ) from error
    if isinstance(error, ValueError):
        raise HTTPException(status_code=400, detail=str(error)) from error
    raise error
