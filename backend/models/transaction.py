"""Transaction model - a BUY or SELL against a holding."""

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import relationship

from database import Base
from models.utils import generate_uuid

TRANSACTION_TYPES = ("BUY", "SELL")


class Transaction(Base):
    """A single trade.

    ``total_cost`` is ``quantity * price_per_unit + fee`` and is always
    recomputed by the service layer.
    """

    __tablename__ = "transactions"
    __table_args__ = (
        CheckConstraint("type IN ('BUY', 'SELL')", name="ck_transaction_type"),
        CheckConstraint("quantity > 0", name="ck_transaction_quantity_positive"),
        CheckConstraint("price_per_unit > 0", name="ck_transaction_price_positive"),
        CheckConstraint("fee >= 0", name="ck_transaction_fee_non_negative"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    holding_id = Column(
        String(36), ForeignKey("holdings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type = Column(String(4), nullable=False)
    quantity = Column(Numeric(28, 8), nullable=False)
    price_per_unit = Column(Numeric(28, 8), nullable=False)
    fee = Column(Numeric(28, 8), nullable=False, default=Decimal("0"))
    total_cost = Column(Numeric(28, 8), nullable=False)
    date = Column(DateTime, nullable=False, index=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    holding = relationship("Holding", back_populates="transactions")
