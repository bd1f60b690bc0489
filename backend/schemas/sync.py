"""Pydantic schemas for reconciliation runs."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, model_validator


class HoldingsSyncResponse(BaseModel):
    """Result of reconciling holdings against exchange balances."""

    portfolio_id: str | None = None
    portfolio_name: str | None = None
    added: int
    updated: int
    deleted: int
    total: int
    errors: list[str]


class EarnSyncResponse(BaseModel):
    """Result of reconciling earn positions."""

    added: int
    updated: int
    deleted: int
    total: int
    errors: list[str]


class RewardsSyncRequest(BaseModel):
    """Optional date window for a rewards sync."""

    start: datetime | None = None
    end: datetime | None = None

    @model_validator(mode="after")
    def check_window(self):
        if self.start and self.end and self.start > self.end:
            raise ValueError("start must not be after end")
        return self


class RewardsSyncResponse(BaseModel):
    """Result of a rewards sync."""

    rewards_added: int
    duplicates_skipped: int
    errors: list[str]


class SyncLogEntryResponse(BaseModel):
    """Schema for SyncLogEntry API response."""

    id: str
    sync_type: str
    status: str
    added: int
    updated: int
    deleted: int
    error_messages: list[str] | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
