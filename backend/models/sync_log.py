"""SyncLogEntry model - records the outcome of each reconciliation run."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, JSON, String

from database import Base
from models.utils import generate_uuid

SYNC_TYPES = ("holdings", "earn_positions", "earn_rewards")


class SyncLogEntry(Base):
    """A log entry recording the result of one reconciliation run."""

    __tablename__ = "sync_log_entries"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    sync_type = Column(String, nullable=False)  # one of SYNC_TYPES
    status = Column(String, nullable=False)  # "success" | "failed" | "partial"
    error_messages = Column(JSON, nullable=True)  # list[str]
    added = Column(Integer, default=0)
    updated = Column(Integer, default=0)
    deleted = Column(Integer, default=0)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
