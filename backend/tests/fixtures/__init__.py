"""Test fixtures and sample data."""
from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy.orm import Session

from config import settings
from models import Holding, Portfolio, Transaction, User
from services.transaction_service import compute_total_cost


def add_transaction_row(
    db: Session,
    holding: Holding,
    type: str,
    quantity: str,
    price: str,
    date: datetime,
    fee: str = "0",
) -> Transaction:
    """Insert a transaction row directly, bypassing validation and recalculation."""
    txn = Transaction(
        holding_id=holding.id,
        type=type,
        quantity=Decimal(quantity),
        price_per_unit=Decimal(price),
        fee=Decimal(fee),
        total_cost=compute_total_cost(Decimal(quantity), Decimal(price), Decimal(fee)),
        date=date,
    )
    db.add(txn)
    db.flush()
    return txn


@pytest.fixture
def user(db: Session) -> User:
    """The default single-user-mode user."""
    u = User(
        id=settings.DEFAULT_USER_ID,
        email="test@example.com",
        name="Test User",
    )
    db.add(u)
    db.commit()
    db.refresh(u)
    return u


@pytest.fixture
def other_user(db: Session) -> User:
    """A second user, for ownership checks."""
    u = User(email="other@example.com", name="Other User")
    db.add(u)
    db.commit()
    db.refresh(u)
    return u


@pytest.fixture
def portfolio(db: Session, user: User) -> Portfolio:
    """A manually managed portfolio."""
    p = Portfolio(user_id=user.id, name="Long Term", description="HODL", is_default=False)
    db.add(p)
    db.commit()
    db.refresh(p)
    return p


@pytest.fixture
def holding(db: Session, portfolio: Portfolio) -> Holding:
    """An empty BTC holding with no transactions."""
    h = Holding(
        portfolio_id=portfolio.id,
        symbol="BTC",
        name="Bitcoin",
        quantity=Decimal("0"),
        average_cost=Decimal("0"),
    )
    db.add(h)
    db.commit()
    db.refresh(h)
    return h
