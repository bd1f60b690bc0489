"""Service for recording BUY/SELL transactions and keeping holdings derived from them.

Every mutation ends with a full average-cost replay over the holding's
transactions, written back to ``Holding.quantity``/``average_cost``.
"""

import logging
import math
from decimal import Decimal

from sqlalchemy import asc, desc
from sqlalchemy.orm import Session

from integrations.parsing_utils import to_naive_utc
from models import Holding, Transaction
from schemas import TransactionCreate, TransactionUpdate
from services.average_cost_ledger import (
    LedgerResult,
    ZERO,
    average_buy_price,
    quantize,
    recompute_holding,
    total_invested,
)
from services.errors import InsufficientQuantityError, NotFoundError

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = {
    "date": Transaction.date,
    "quantity": Transaction.quantity,
    "total_cost": Transaction.total_cost,
    "type": Transaction.type,
}

# Changing any of these invalidates the holding's derived state
_REPLAY_FIELDS = frozenset({"type", "quantity", "price_per_unit", "fee", "date"})


def compute_total_cost(quantity: Decimal, price_per_unit: Decimal, fee: Decimal) -> Decimal:
    """``quantity * price_per_unit + fee`` rounded to 8 places."""
    return quantize(Decimal(quantity) * Decimal(price_per_unit) + Decimal(fee or 0))


class TransactionService:
    """Transaction CRUD plus the holding recalculation side effect."""

    @staticmethod
    def _get_holding(db: Session, holding_id: str) -> Holding:
        holding = db.get(Holding, holding_id)
        if holding is None:
            raise NotFoundError("Holding", holding_id)
        return holding

    @staticmethod
    def _get_transaction(db: Session, transaction_id: str) -> Transaction:
        txn = db.get(Transaction, transaction_id)
        if txn is None:
            raise NotFoundError("Transaction", transaction_id)
        return txn

    @staticmethod
    def _transactions_for(db: Session, holding_id: str) -> list[Transaction]:
        return (
            db.query(Transaction)
            .filter(Transaction.holding_id == holding_id)
            .order_by(Transaction.date, Transaction.created_at)
            .all()
        )

    # --- Ledger side effect ---

    @staticmethod
    def recalculate_holding(db: Session, holding_id: str) -> LedgerResult | None:
        """Replay all transactions of a holding and persist the result.

        A holding with no transactions is left untouched.  A negative
        replayed quantity (history that oversells) is stored as 0.
        """
        holding = TransactionService._get_holding(db, holding_id)
        db.flush()
        result = recompute_holding(TransactionService._transactions_for(db, holding_id))
        if result is None:
            logger.debug("Holding %s has no transactions, keeping current values", holding_id)
            return None

        quantity = result.quantity
        if quantity < 0:
            logger.warning(
                "Holding %s (%s) replays to negative quantity %s, storing 0",
                holding.symbol, holding_id, quantity,
            )
            quantity = ZERO

        holding.quantity = quantity
        holding.average_cost = result.average_cost
        db.flush()
        logger.info(
            "Recalculated %s: quantity=%s average_cost=%s",
            holding.symbol, quantity, result.average_cost,
        )
        return result

    # --- CRUD ---

    @staticmethod
    def add_transaction(
        db: Session, holding_id: str, data: TransactionCreate
    ) -> Transaction:
        """Record a transaction and recalculate the holding.

        Raises:
            NotFoundError: The holding does not exist.
            InsufficientQuantityError: A SELL exceeds the current quantity.
        """
        holding = TransactionService._get_holding(db, holding_id)

        if data.type == "SELL" and data.quantity > Decimal(holding.quantity):
            raise InsufficientQuantityError(holding.symbol, data.quantity, holding.quantity)

        txn = Transaction(
            holding_id=holding.id,
            type=data.type,
            quantity=quantize(data.quantity),
            price_per_unit=quantize(data.price_per_unit),
            fee=quantize(data.fee),
            total_cost=compute_total_cost(data.quantity, data.price_per_unit, data.fee),
            date=to_naive_utc(data.date),
            notes=data.notes,
        )
        db.add(txn)
        db.flush()
        logger.info(
            "Added %s of %s %s @ %s to holding %s",
            data.type, data.quantity, holding.symbol, data.price_per_unit, holding_id,
        )

        TransactionService.recalculate_holding(db, holding_id)
        return txn

    @staticmethod
    def update_transaction(
        db: Session, transaction_id: str, data: TransactionUpdate
    ) -> Transaction:
        """Edit a transaction; ``total_cost`` is always recomputed.

        A SELL is re-validated against the quantity the holding would have
        without this transaction.
        """
        txn = TransactionService._get_transaction(db, transaction_id)
        holding = txn.holding
        # An explicit null means "unchanged" for every field except notes
        changes = {
            field: value
            for field, value in data.model_dump(exclude_unset=True).items()
            if value is not None or field == "notes"
        }

        new_type = changes.get("type", txn.type)
        new_quantity = Decimal(changes.get("quantity", txn.quantity))
        if new_type == "SELL" and ("type" in changes or "quantity" in changes):
            signed_old = Decimal(txn.quantity) if txn.type == "BUY" else -Decimal(txn.quantity)
            available = Decimal(holding.quantity) - signed_old
            if new_quantity > available:
                raise InsufficientQuantityError(holding.symbol, new_quantity, available)

        for field, value in changes.items():
            if field in ("quantity", "price_per_unit", "fee"):
                value = quantize(value)
            elif field == "date":
                value = to_naive_utc(value)
            setattr(txn, field, value)

        txn.total_cost = compute_total_cost(txn.quantity, txn.price_per_unit, txn.fee)
        db.flush()

        if _REPLAY_FIELDS & changes.keys():
            TransactionService.recalculate_holding(db, holding.id)
        return txn

    @staticmethod
    def delete_transaction(db: Session, transaction_id: str) -> None:
        """Delete a transaction and recalculate its holding."""
        txn = TransactionService._get_transaction(db, transaction_id)
        holding_id = txn.holding_id
        db.delete(txn)
        db.flush()
        logger.info("Deleted transaction %s from holding %s", transaction_id, holding_id)
        TransactionService.recalculate_holding(db, holding_id)

    @staticmethod
    def list_transactions(
        db: Session,
        holding_id: str,
        page: int = 1,
        limit: int = 10,
        sort_by: str = "date",
        order: str = "desc",
    ) -> dict:
        """Paginated transactions of a holding.

        Returns a dict with ``items``, ``total``, ``page``, ``limit`` and
        ``total_pages``.
        """
        TransactionService._get_holding(db, holding_id)
        if sort_by not in SORTABLE_FIELDS:
            raise ValueError(
                f"Cannot sort by {sort_by!r}; expected one of {sorted(SORTABLE_FIELDS)}"
            )
        direction = asc if order == "asc" else desc

        query = db.query(Transaction).filter(Transaction.holding_id == holding_id)
        total = query.count()
        items = (
            query.order_by(direction(SORTABLE_FIELDS[sort_by]), direction(Transaction.created_at))
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return {
            "items": items,
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": math.ceil(total / limit) if total else 0,
        }

    # --- Aggregates ---

    @staticmethod
    def get_total_invested(db: Session, holding_id: str) -> Decimal:
        TransactionService._get_holding(db, holding_id)
        return total_invested(TransactionService._transactions_for(db, holding_id))

    @staticmethod
    def get_average_price(db: Session, holding_id: str) -> Decimal:
        TransactionService._get_holding(db, holding_id)
        return average_buy_price(TransactionService._transactions_for(db, holding_id))

    @staticmethod
    def get_stats(db: Session, holding_id: str) -> dict:
        """Transaction count, total invested and average BUY price."""
        TransactionService._get_holding(db, holding_id)
        transactions = TransactionService._transactions_for(db, holding_id)
        return {
            "holding_id": holding_id,
            "transaction_count": len(transactions),
            "total_invested": total_invested(transactions),
            "average_buy_price": average_buy_price(transactions),
        }
