"""SQLAlchemy ORM models."""

from .user import User
from .portfolio import Portfolio
from .holding import Holding
from .transaction import Transaction
from .earn_position import EarnPosition
from .earn_reward import EarnReward
from .sync_log import SyncLogEntry
from .utils import generate_uuid

__all__ = ["EarnPosition", "EarnReward", "Holding", "Portfolio", "SyncLogEntry", "Transaction", "User", "generate_uuid"]
