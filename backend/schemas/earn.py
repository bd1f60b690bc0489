"""Pydantic schemas for earn positions and rewards."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict


class EarnPositionResponse(BaseModel):
    """Schema for EarnPosition API response."""

    id: str
    asset: str
    product_id: str
    product_name: str
    type: str
    amount: Decimal
    current_apy: Decimal
    daily_earnings: Decimal | None = None
    lock_period: int | None = None
    locked_until: datetime | None = None
    can_redeem: bool
    auto_subscribe: bool
    last_synced_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class EarnRewardResponse(BaseModel):
    """Schema for EarnReward API response."""

    id: str
    asset: str
    amount: Decimal
    type: str
    reward_date: datetime
    position_id: str | None = None

    model_config = ConfigDict(from_attributes=True)


class AssetEarnings(BaseModel):
    """Per-asset earn breakdown."""

    asset: str
    total_amount: Decimal
    position_count: int
    estimated_daily_earnings: Decimal
    total_rewards: Decimal
    value_usd: Decimal | None = None


class EarningsSummary(BaseModel):
    """Earn account overview."""

    total_positions: int
    flexible_count: int
    locked_count: int
    total_value_usd: Decimal
    estimated_daily_earnings: Decimal
    total_rewards_all_time: Decimal
    total_rewards_last_30_days: Decimal
    by_asset: list[AssetEarnings]
