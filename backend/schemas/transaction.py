"""Pydantic schemas for holding transactions."""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

TransactionType = Literal["BUY", "SELL"]

MAX_DECIMAL_PLACES = 8


def _check_precision(value: Decimal | None) -> Decimal | None:
    if value is None:
        return value
    exponent = value.as_tuple().exponent
    if isinstance(exponent, int) and -exponent > MAX_DECIMAL_PLACES:
        raise ValueError(f"at most {MAX_DECIMAL_PLACES} decimal places allowed")
    return value


def _check_not_future(value: datetime | None) -> datetime | None:
    if value is None:
        return value
    aware = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if aware > datetime.now(timezone.utc):
        raise ValueError("transaction date cannot be in the future")
    return value


class TransactionCreate(BaseModel):
    """Schema for recording a BUY or SELL."""

    type: TransactionType
    quantity: Decimal = Field(gt=0)
    price_per_unit: Decimal = Field(gt=0)
    fee: Decimal = Field(default=Decimal("0"), ge=0)
    date: datetime
    notes: str | None = Field(default=None, max_length=500)

    check_precision = field_validator("quantity", "price_per_unit", "fee")(_check_precision)
    check_not_future = field_validator("date")(_check_not_future)


class TransactionUpdate(BaseModel):
    """Schema for editing a transaction. ``total_cost`` is never accepted."""

    type: TransactionType | None = None
    quantity: Decimal | None = Field(default=None, gt=0)
    price_per_unit: Decimal | None = Field(default=None, gt=0)
    fee: Decimal | None = Field(default=None, ge=0)
    date: datetime | None = None
    notes: str | None = Field(default=None, max_length=500)

    check_precision = field_validator("quantity", "price_per_unit", "fee")(_check_precision)
    check_not_future = field_validator("date")(_check_not_future)


class TransactionResponse(BaseModel):
    """Schema for Transaction API response."""

    id: str
    holding_id: str
    type: str
    quantity: Decimal
    price_per_unit: Decimal
    fee: Decimal
    total_cost: Decimal
    date: datetime
    notes: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TransactionListResponse(BaseModel):
    """A page of transactions."""

    items: list[TransactionResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class HoldingTransactionStats(BaseModel):
    """Aggregates over a holding's transactions."""

    holding_id: str
    transaction_count: int
    total_invested: Decimal
    average_buy_price: Decimal
