"""EarnPosition model - a Simple Earn subscription mirrored from the exchange."""

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import relationship

from database import Base
from models.utils import generate_uuid


class EarnPosition(Base):
    """An earn product position.

    Created, updated and deleted only by earn reconciliation; the
    combination of user_id + product_id + asset identifies a position.
    """

    __tablename__ = "earn_positions"
    __table_args__ = (
        UniqueConstraint(
            "user_id", "product_id", "asset", name="uix_earn_position_user_product_asset"
        ),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    asset = Column(String, nullable=False)
    product_id = Column(String, nullable=False)
    product_name = Column(String, nullable=False)
    type = Column(String, nullable=False)  # "FLEXIBLE" | "LOCKED"
    amount = Column(Numeric(28, 8), nullable=False, default=Decimal("0"))
    current_apy = Column(Numeric(18, 8), nullable=False, default=Decimal("0"))  # percent
    daily_earnings = Column(Numeric(28, 8), nullable=True)
    lock_period = Column(Integer, nullable=True)  # days
    locked_until = Column(DateTime, nullable=True)
    can_redeem = Column(Boolean, default=True, nullable=False)
    auto_subscribe = Column(Boolean, default=False, nullable=False)
    last_synced_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    user = relationship("User", back_populates="earn_positions")
    rewards = relationship("EarnReward", back_populates="position")
