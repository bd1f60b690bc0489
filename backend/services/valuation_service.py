"""Valuation math: gain/loss and allocation percentages.

Pure functions over ``Decimal``; callers supply quantities, costs and
current prices.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")
ZERO = Decimal("0")


@dataclass(frozen=True)
class GainLoss:
    """Unrealized gain or loss of a position."""

    amount: Decimal
    percent: Decimal
    current_value: Decimal
    cost_basis: Decimal

    @property
    def is_profit(self) -> bool:
        return self.amount >= 0


def round_percent(value: Decimal) -> Decimal:
    """Round a percentage to 2 places, half up."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def calculate_gain_loss(
    quantity: Decimal, average_cost: Decimal, current_price: Decimal
) -> GainLoss:
    """Gain/loss of ``quantity`` units bought at ``average_cost`` now at ``current_price``.

    The percentage is 0 when the cost basis is 0.
    """
    current_value = Decimal(quantity) * Decimal(current_price)
    cost_basis = Decimal(quantity) * Decimal(average_cost)
    amount = current_value - cost_basis
    percent = round_percent(amount / cost_basis * 100) if cost_basis != 0 else ZERO
    return GainLoss(
        amount=amount,
        percent=percent,
        current_value=current_value,
        cost_basis=cost_basis,
    )


def calculate_allocation(values: dict[str, Decimal]) -> dict[str, Decimal]:
    """Share of the total for each key, as a percentage rounded to 2 places.

    Every share is 0 when the total is 0.
    """
    total = sum(values.values(), ZERO)
    if total == 0:
        return {key: ZERO for key in values}
    return {key: round_percent(value / total * 100) for key, value in values.items()}


def calculate_portfolio_gain_loss(
    positions: list[tuple[Decimal, Decimal, Decimal]],
) -> GainLoss:
    """Aggregate gain/loss over ``(quantity, average_cost, current_price)`` tuples."""
    total_value = ZERO
    total_cost = ZERO
    for quantity, average_cost, current_price in positions:
        total_value += Decimal(quantity) * Decimal(current_price)
        total_cost += Decimal(quantity) * Decimal(average_cost)
    amount = total_value - total_cost
    percent = round_percent(amount / total_cost * 100) if total_cost != 0 else ZERO
    return GainLoss(
        amount=amount,
        percent=percent,
        current_value=total_value,
        cost_basis=total_cost,
    )
