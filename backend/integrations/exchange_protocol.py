"""Exchange account protocol definitions.

Normalized snapshot types returned by an exchange account adapter, and
the protocol the reconciliation services depend on.  Binance is the only
implementation today; tests substitute an in-memory mock.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Protocol


@dataclass
class ExchangeBalance:
    """Spot balance of one asset."""

    asset: str
    free: Decimal
    locked: Decimal = Decimal("0")

    @property
    def total(self) -> Decimal:
        return self.free + self.locked


@dataclass
class EarnPositionSnapshot:
    """Normalized earn product position.

    ``current_apy`` is a percentage (5.25 means 5.25%).
    """

    asset: str
    product_id: str
    product_name: str
    type: str  # "FLEXIBLE" | "LOCKED"
    amount: Decimal
    current_apy: Decimal
    daily_earnings: Decimal | None = None
    lock_period: int | None = None  # days
    locked_until: datetime | None = None
    can_redeem: bool = True
    auto_subscribe: bool = False
    raw_data: dict | None = None


@dataclass
class RewardSnapshot:
    """A single reward payout.

    ``position_id`` is the exchange identifier of the product/position the
    reward came from, used to link it to a local ``EarnPosition``.
    """

    asset: str
    amount: Decimal
    type: str
    reward_date: datetime
    position_id: str | None = None
    raw_data: dict | None = None


class ExchangeAccountClient(Protocol):
    """Protocol for exchange account adapters.

    Every method raises a :class:`~integrations.exceptions.ProviderError`
    subclass when the exchange cannot be reached or rejects the request.
    """

    @property
    def provider_name(self) -> str:
        """Return the provider name (e.g., 'Binance')."""
        ...

    def get_account_balances(self) -> list[ExchangeBalance]:
        """Fetch non-zero spot balances."""
        ...

    def get_all_earn_positions(self) -> list[EarnPositionSnapshot]:
        """Fetch all flexible and locked earn positions."""
        ...

    def get_all_rewards_history(
        self, start: datetime | None = None, end: datetime | None = None
    ) -> list[RewardSnapshot]:
        """Fetch rewards paid between *start* and *end* (exchange default window when omitted)."""
        ...
