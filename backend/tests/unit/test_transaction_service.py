"""Tests for TransactionService: CRUD with holding recalculation."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError
from sqlalchemy.orm import Session

from models import Holding, Transaction
from schemas import TransactionCreate, TransactionUpdate
from services.errors import InsufficientQuantityError, NotFoundError
from services.transaction_service import TransactionService, compute_total_cost
from tests.fixtures import add_transaction_row


def _create(type: str, qty: str, price: str, day: int, fee: str = "0") -> TransactionCreate:
    return TransactionCreate(
        type=type,
        quantity=Decimal(qty),
        price_per_unit=Decimal(price),
        fee=Decimal(fee),
        date=datetime(2024, 1, day, tzinfo=timezone.utc),
    )


class TestAddTransaction:
    def test_buy_updates_holding(self, db: Session, holding: Holding):
        txn = TransactionService.add_transaction(db, holding.id, _create("BUY", "1", "100", 1, fee="2"))

        assert txn.total_cost == Decimal("102")
        db.refresh(holding)
        assert holding.quantity == Decimal("1")
        assert holding.average_cost == Decimal("100")

    def test_two_buys_average(self, db: Session, holding: Holding):
        TransactionService.add_transaction(db, holding.id, _create("BUY", "1", "100", 1))
        TransactionService.add_transaction(db, holding.id, _create("BUY", "1", "200", 2))

        db.refresh(holding)
        assert holding.quantity == Decimal("2")
        assert holding.average_cost == Decimal("150")

    def test_sell_keeps_average(self, db: Session, holding: Holding):
        TransactionService.add_transaction(db, holding.id, _create("BUY", "2", "100", 1))
        TransactionService.add_transaction(db, holding.id, _create("SELL", "1", "500", 2))

        db.refresh(holding)
        assert holding.quantity == Decimal("1")
        assert holding.average_cost == Decimal("100")

    def test_sell_more_than_held_rejected(self, db: Session, holding: Holding):
        TransactionService.add_transaction(db, holding.id, _create("BUY", "1", "100", 1))

        with pytest.raises(InsufficientQuantityError) as exc_info:
            TransactionService.add_transaction(db, holding.id, _create("SELL", "2", "100", 2))

        assert "Cannot sell 2 BTC" in str(exc_info.value)
        assert db.query(Transaction).count() == 1

    def test_sell_on_empty_holding_rejected(self, db: Session, holding: Holding):
        with pytest.raises(InsufficientQuantityError):
            TransactionService.add_transaction(db, holding.id, _create("SELL", "1", "100", 1))

    def test_backdated_buy_replays_full_history(self, db: Session, holding: Holding):
        TransactionService.add_transaction(db, holding.id, _create("BUY", "1", "100", 5))
        TransactionService.add_transaction(db, holding.id, _create("SELL", "1", "120", 6))
        # Lands before the SELL, so the SELL now leaves one unit at 200
        TransactionService.add_transaction(db, holding.id, _create("BUY", "1", "300", 1))

        db.refresh(holding)
        assert holding.quantity == Decimal("1")
        assert holding.average_cost == Decimal("200")

    def test_unknown_holding(self, db: Session):
        with pytest.raises(NotFoundError):
            TransactionService.add_transaction(db, "missing", _create("BUY", "1", "1", 1))

    def test_date_stored_as_naive_utc(self, db: Session, holding: Holding):
        data = TransactionCreate(
            type="BUY",
            quantity=Decimal("1"),
            price_per_unit=Decimal("1"),
            date=datetime(2024, 1, 1, 5, tzinfo=timezone(timedelta(hours=5))),
        )
        txn = TransactionService.add_transaction(db, holding.id, data)
        assert txn.date == datetime(2024, 1, 1, 0, 0)


class TestUpdateTransaction:
    def test_price_change_recomputes_total_and_holding(self, db: Session, holding: Holding):
        txn = TransactionService.add_transaction(db, holding.id, _create("BUY", "2", "100", 1, fee="1"))

        updated = TransactionService.update_transaction(
            db, txn.id, TransactionUpdate(price_per_unit=Decimal("150"))
        )

        assert updated.total_cost == Decimal("301")
        db.refresh(holding)
        assert holding.average_cost == Decimal("150")

    def test_notes_only_keeps_holding(self, db: Session, holding: Holding):
        txn = TransactionService.add_transaction(db, holding.id, _create("BUY", "1", "100", 1))
        TransactionService.update_transaction(db, txn.id, TransactionUpdate(notes="cold wallet"))

        assert txn.notes == "cold wallet"
        db.refresh(holding)
        assert holding.quantity == Decimal("1")

    def test_growing_sell_beyond_available_rejected(self, db: Session, holding: Holding):
        TransactionService.add_transaction(db, holding.id, _create("BUY", "2", "100", 1))
        sell_txn = TransactionService.add_transaction(db, holding.id, _create("SELL", "1", "100", 2))

        # Without this SELL, 2 units are available
        TransactionService.update_transaction(db, sell_txn.id, TransactionUpdate(quantity=Decimal("2")))
        with pytest.raises(InsufficientQuantityError):
            TransactionService.update_transaction(
                db, sell_txn.id, TransactionUpdate(quantity=Decimal("3"))
            )

    def test_turning_buy_into_sell_checks_quantity(self, db: Session, holding: Holding):
        buy_txn = TransactionService.add_transaction(db, holding.id, _create("BUY", "1", "100", 1))

        with pytest.raises(InsufficientQuantityError):
            TransactionService.update_transaction(db, buy_txn.id, TransactionUpdate(type="SELL"))

    def test_unknown_transaction(self, db: Session):
        with pytest.raises(NotFoundError):
            TransactionService.update_transaction(db, "missing", TransactionUpdate(notes="x"))


class TestDeleteTransaction:
    def test_delete_recalculates(self, db: Session, holding: Holding):
        first = TransactionService.add_transaction(db, holding.id, _create("BUY", "1", "100", 1))
        TransactionService.add_transaction(db, holding.id, _create("BUY", "1", "200", 2))

        TransactionService.delete_transaction(db, first.id)

        db.refresh(holding)
        assert holding.quantity == Decimal("1")
        assert holding.average_cost == Decimal("200")

    def test_deleting_last_transaction_keeps_values(self, db: Session, holding: Holding):
        only = TransactionService.add_transaction(db, holding.id, _create("BUY", "1", "100", 1))

        TransactionService.delete_transaction(db, only.id)

        db.refresh(holding)
        assert holding.quantity == Decimal("1")
        assert holding.average_cost == Decimal("100")


class TestRecalculateHolding:
    def test_negative_replay_stored_as_zero(self, db: Session, holding: Holding):
        add_transaction_row(db, holding, "BUY", "1", "100", datetime(2024, 1, 1))
        add_transaction_row(db, holding, "SELL", "2", "100", datetime(2024, 1, 2))

        result = TransactionService.recalculate_holding(db, holding.id)

        assert result.quantity == Decimal("-1")
        assert result.warnings
        assert holding.quantity == Decimal("0")
        assert holding.average_cost == Decimal("0")

    def test_no_transactions_returns_none(self, db: Session, holding: Holding):
        holding.quantity = Decimal("3")
        db.flush()
        assert TransactionService.recalculate_holding(db, holding.id) is None
        assert holding.quantity == Decimal("3")


class TestListTransactions:
    def test_pagination_and_sort(self, db: Session, holding: Holding):
        for day in range(1, 6):
            add_transaction_row(db, holding, "BUY", str(day), "10", datetime(2024, 1, day))

        page = TransactionService.list_transactions(db, holding.id, page=2, limit=2)

        assert page["total"] == 5
        assert page["total_pages"] == 3
        assert [t.quantity for t in page["items"]] == [Decimal("3"), Decimal("2")]

    def test_ascending(self, db: Session, holding: Holding):
        add_transaction_row(db, holding, "BUY", "1", "10", datetime(2024, 1, 2))
        add_transaction_row(db, holding, "BUY", "2", "10", datetime(2024, 1, 1))

        page = TransactionService.list_transactions(db, holding.id, order="asc")

        assert [t.quantity for t in page["items"]] == [Decimal("2"), Decimal("1")]

    def test_empty(self, db: Session, holding: Holding):
        page = TransactionService.list_transactions(db, holding.id)
        assert page["items"] == []
        assert page["total_pages"] == 0

    def test_bad_sort_field(self, db: Session, holding: Holding):
        with pytest.raises(ValueError, match="Cannot sort by"):
            TransactionService.list_transactions(db, holding.id, sort_by="notes")


class TestStats:
    def test_stats(self, db: Session, holding: Holding):
        TransactionService.add_transaction(db, holding.id, _create("BUY", "1", "100", 1, fee="1"))
        TransactionService.add_transaction(db, holding.id, _create("BUY", "3", "200", 2))
        TransactionService.add_transaction(db, holding.id, _create("SELL", "2", "300", 3, fee="1"))

        stats = TransactionService.get_stats(db, holding.id)

        assert stats["transaction_count"] == 3
        # 101 + 600 - 601
        assert stats["total_invested"] == Decimal("100")
        assert stats["average_buy_price"] == Decimal("175")
        assert TransactionService.get_total_invested(db, holding.id) == Decimal("100")
        assert TransactionService.get_average_price(db, holding.id) == Decimal("175")


class TestTransactionSchemas:
    def test_rejects_future_date(self):
        with pytest.raises(ValidationError):
            TransactionCreate(
                type="BUY",
                quantity=Decimal("1"),
                price_per_unit=Decimal("1"),
                date=datetime.now(timezone.utc) + timedelta(days=2),
            )

    def test_rejects_excess_precision(self):
        with pytest.raises(ValidationError):
            _create("BUY", "0.123456789", "1", 1)

    def test_rejects_non_positive_quantity(self):
        with pytest.raises(ValidationError):
            _create("BUY", "0", "1", 1)

    def test_rejects_unknown_type(self):
        with pytest.raises(ValidationError):
            _create("SWAP", "1", "1", 1)


def test_compute_total_cost():
    assert compute_total_cost(Decimal("0.5"), Decimal("30000"), Decimal("1.5")) == Decimal("15001.5")
