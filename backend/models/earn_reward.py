"""EarnReward model - a reward payout from an earn product."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import relationship

from database import Base
from models.utils import generate_uuid


class EarnReward(Base):
    """A reward paid out to a user.

    Rewards carry no external id; sync deduplicates on
    (user_id, asset, amount, reward_date, type).
    """

    __tablename__ = "earn_rewards"
    __table_args__ = (
        Index("ix_earn_reward_dedup", "user_id", "asset", "reward_date", "type"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position_id = Column(
        String(36), ForeignKey("earn_positions.id", ondelete="SET NULL"), nullable=True, index=True
    )
    asset = Column(String, nullable=False)
    amount = Column(Numeric(28, 8), nullable=False)
    type = Column(String, nullable=False)  # e.g. "REALTIME", "BONUS", "LOCKED"
    reward_date = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    # Relationships
    user = relationship("User", back_populates="earn_rewards")
    position = relationship("EarnPosition", back_populates="rewards")
