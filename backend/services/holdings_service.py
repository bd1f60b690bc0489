"""Service for manually managed holdings."""

import logging

from sqlalchemy.orm import Session

from models import Holding, Portfolio, Transaction
from schemas import HoldingCreate, HoldingUpdate
from services.errors import ConflictError, NotFoundError

logger = logging.getLogger(__name__)


class HoldingsService:
    """CRUD for holdings.

    Once a holding has transactions its quantity and average cost belong
    to the ledger and cannot be edited directly.
    """

    @staticmethod
    def get_holding(db: Session, holding_id: str) -> Holding:
        holding = db.get(Holding, holding_id)
        if holding is None:
            raise NotFoundError("Holding", holding_id)
        return holding

    @staticmethod
    def list_holdings(db: Session, portfolio_id: str) -> list[Holding]:
        if db.get(Portfolio, portfolio_id) is None:
            raise NotFoundError("Portfolio", portfolio_id)
        return (
            db.query(Holding)
            .filter(Holding.portfolio_id == portfolio_id)
            .order_by(Holding.symbol)
            .all()
        )

    @staticmethod
    def find_by_symbol(db: Session, portfolio_id: str, symbol: str) -> Holding | None:
        return (
            db.query(Holding)
            .filter(Holding.portfolio_id == portfolio_id, Holding.symbol == symbol.upper())
            .first()
        )

    @staticmethod
    def add_holding(db: Session, portfolio_id: str, data: HoldingCreate) -> Holding:
        """Add a holding to a portfolio.

        Raises:
            NotFoundError: The portfolio does not exist.
            ConflictError: The portfolio already holds this symbol.
        """
        if db.get(Portfolio, portfolio_id) is None:
            raise NotFoundError("Portfolio", portfolio_id)
        if HoldingsService.find_by_symbol(db, portfolio_id, data.symbol):
            raise ConflictError(f"Holding for {data.symbol} already exists in this portfolio")

        holding = Holding(
            portfolio_id=portfolio_id,
            symbol=data.symbol,
            name=data.name,
            quantity=data.quantity,
            average_cost=data.average_cost,
            notes=data.notes,
        )
        db.add(holding)
        db.flush()
        logger.info("Added holding %s to portfolio %s", data.symbol, portfolio_id)
        return holding

    @staticmethod
    def update_holding(db: Session, holding_id: str, data: HoldingUpdate) -> Holding:
        """Update a holding's name/notes, or its quantity/cost while it has no history."""
        holding = HoldingsService.get_holding(db, holding_id)
        changes = data.model_dump(exclude_unset=True)

        derived = {"quantity", "average_cost"} & changes.keys()
        if derived:
            has_transactions = (
                db.query(Transaction.id)
                .filter(Transaction.holding_id == holding_id)
                .first()
                is not None
            )
            if has_transactions:
                raise ConflictError(
                    f"{holding.symbol} has transactions; "
                    f"{', '.join(sorted(derived))} are derived from them"
                )

        for field, value in changes.items():
            if value is None and field != "notes":
                continue
            setattr(holding, field, value)
        db.flush()
        return holding

    @staticmethod
    def delete_holding(db: Session, holding_id: str) -> None:
        """Delete a holding together with its transactions."""
        holding = HoldingsService.get_holding(db, holding_id)
        db.delete(holding)
        db.flush()
        logger.info("Deleted holding %s (%s)", holding.symbol, holding_id)
