"""Pydantic request/response schemas."""

from .earn import AssetEarnings, EarningsSummary, EarnPositionResponse, EarnRewardResponse
from .holding import (
    HoldingCreate,
    HoldingResponse,
    HoldingUpdate,
    HoldingValuation,
    PortfolioCreate,
    PortfolioResponse,
    PortfolioSummary,
    PortfolioUpdate,
)
from .sync import (
    EarnSyncResponse,
    HoldingsSyncResponse,
    RewardsSyncRequest,
    RewardsSyncResponse,
    SyncLogEntryResponse,
)
from .transaction import (
    HoldingTransactionStats,
    TransactionCreate,
    TransactionListResponse,
    TransactionResponse,
    TransactionUpdate,
)

__all__ = [
    "AssetEarnings",
    "EarningsSummary",
    "EarnPositionResponse",
    "EarnRewardResponse",
    "EarnSyncResponse",
    "HoldingCreate",
    "HoldingResponse",
    "HoldingTransactionStats",
    "HoldingUpdate",
    "HoldingValuation",
    "HoldingsSyncResponse",
    "PortfolioCreate",
    "PortfolioResponse",
    "PortfolioSummary",
    "PortfolioUpdate",
    "RewardsSyncRequest",
    "RewardsSyncResponse",
    "SyncLogEntryResponse",
    "TransactionCreate",
    "TransactionListResponse",
    "TransactionResponse",
    "TransactionUpdate",
]
