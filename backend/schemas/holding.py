"""Pydantic schemas for portfolios and holdings."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PortfolioCreate(BaseModel):
    """Schema for creating a portfolio."""

    name: str = Field(min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    is_default: bool = False


class PortfolioUpdate(BaseModel):
    """Schema for renaming or re-describing a portfolio."""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)


class PortfolioResponse(BaseModel):
    """Schema for Portfolio API response."""

    id: str
    user_id: str
    name: str
    description: str | None = None
    is_default: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class HoldingCreate(BaseModel):
    """Schema for manually adding a holding."""

    symbol: str = Field(min_length=1, max_length=20)
    name: str = Field(min_length=1, max_length=100)
    quantity: Decimal = Field(default=Decimal("0"), ge=0)
    average_cost: Decimal = Field(default=Decimal("0"), ge=0)
    notes: str | None = Field(default=None, max_length=500)

    @field_validator("symbol")
    @classmethod
    def uppercase_symbol(cls, v: str) -> str:
        return v.strip().upper()


class HoldingUpdate(BaseModel):
    """Schema for editing a holding.

    ``quantity`` and ``average_cost`` are only accepted while the holding
    has no transactions.
    """

    name: str | None = Field(default=None, min_length=1, max_length=100)
    quantity: Decimal | None = Field(default=None, ge=0)
    average_cost: Decimal | None = Field(default=None, ge=0)
    notes: str | None = Field(default=None, max_length=500)


class HoldingResponse(BaseModel):
    """Schema for Holding API response."""

    id: str
    portfolio_id: str
    symbol: str
    name: str
    quantity: Decimal
    average_cost: Decimal
    notes: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class HoldingValuation(BaseModel):
    """A holding valued at the current price."""

    holding_id: str
    symbol: str
    name: str
    quantity: Decimal
    average_cost: Decimal
    current_price: Decimal | None = None
    current_value: Decimal
    cost_basis: Decimal
    gain_loss: Decimal
    gain_loss_percent: Decimal
    allocation_percent: Decimal
    price_change_24h: Decimal | None = None


class PortfolioSummary(BaseModel):
    """Portfolio totals with per-holding valuations."""

    portfolio_id: str
    name: str
    total_value: Decimal
    total_cost: Decimal
    total_gain_loss: Decimal
    total_gain_loss_percent: Decimal
    holdings: list[HoldingValuation]
    unpriced_symbols: list[str] = []
