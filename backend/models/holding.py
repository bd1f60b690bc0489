"""Holding model - a position in one asset within a portfolio."""

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from database import Base
from models.utils import generate_uuid


class Holding(Base):
    """A holding of a single asset inside a portfolio.

    ``quantity`` and ``average_cost`` are derived from the holding's
    transactions once any exist; see ``services.average_cost_ledger``.
    """

    __tablename__ = "holdings"
    __table_args__ = (
        UniqueConstraint("portfolio_id", "symbol", name="uix_holding_portfolio_symbol"),
        CheckConstraint("quantity >= 0", name="ck_holding_quantity_non_negative"),
        CheckConstraint("average_cost >= 0", name="ck_holding_average_cost_non_negative"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    portfolio_id = Column(
        String(36), ForeignKey("portfolios.id", ondelete="CASCADE"), nullable=False, index=True
    )
    symbol = Column(String, nullable=False)  # Uppercase ticker, e.g. "BTC"
    name = Column(String, nullable=False)
    quantity = Column(Numeric(28, 8), nullable=False, default=Decimal("0"))
    average_cost = Column(Numeric(28, 8), nullable=False, default=Decimal("0"))
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    portfolio = relationship("Portfolio", back_populates="holdings")
    transactions = relationship(
        "Transaction",
        back_populates="holding",
        cascade="all, delete-orphan",
        order_by="Transaction.date",
    )
