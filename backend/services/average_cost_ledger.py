"""Moving weighted-average cost ledger.

A holding's ``quantity`` and ``average_cost`` are a materialized view of
its transactions.  :func:`recompute_holding` rebuilds that view from the
full transaction list every time; nothing is updated incrementally.

Rules, applied in ascending date order:

* BUY ``q @ p``: cost += q * p, quantity += q.  The fee is *not* part of
  the cost basis (it only feeds the transaction's own ``total_cost``).
* SELL ``q``: when quantity > 0 the sold units leave at the running
  average, cost -= q * (cost / quantity), quantity -= q.  When nothing is
  held the SELL changes nothing.

Selling never moves the average cost of what remains.
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol

logger = logging.getLogger(__name__)

QUANTUM = Decimal("0.00000001")
ZERO = Decimal("0")


class LedgerTransaction(Protocol):
    """Fields the ledger reads; ``models.Transaction`` satisfies this."""

    type: str
    quantity: Decimal
    price_per_unit: Decimal
    total_cost: Decimal
    date: object


@dataclass(frozen=True)
class LedgerResult:
    """Outcome of a replay.

    ``warnings`` lists replay anomalies (SELLs that exceeded what was held
    at that point); an empty list means the history is consistent.
    """

    quantity: Decimal
    average_cost: Decimal
    warnings: tuple[str, ...] = field(default_factory=tuple)


def quantize(value: Decimal) -> Decimal:
    """Round to 8 fractional digits, half up."""
    return Decimal(value).quantize(QUANTUM, rounding=ROUND_HALF_UP)


def sort_by_date(transactions: Iterable[LedgerTransaction]) -> list[LedgerTransaction]:
    """Ascending by date; equal dates keep their input order."""
    return sorted(transactions, key=lambda t: t.date)


def recompute_holding(transactions: Sequence[LedgerTransaction]) -> LedgerResult | None:
    """Replay *transactions* and return the holding's quantity and average cost.

    Returns ``None`` for an empty list: a holding without history keeps its
    manually entered values.
    """
    if not transactions:
        return None

    total_quantity = ZERO
    total_cost = ZERO
    warnings: list[str] = []

    for txn in sort_by_date(transactions):
        quantity = Decimal(txn.quantity)
        if txn.type == "BUY":
            total_cost += quantity * Decimal(txn.price_per_unit)
            total_quantity += quantity
        elif txn.type == "SELL":
            if total_quantity <= 0:
                warnings.append(
                    f"SELL of {quantity} on {txn.date} ignored: nothing held at that point"
                )
                continue
            if quantity > total_quantity:
                warnings.append(
                    f"SELL of {quantity} on {txn.date} exceeds the {total_quantity} held"
                )
            current_avg_cost = total_cost / total_quantity
            total_cost -= quantity * current_avg_cost
            total_quantity -= quantity
        else:
            raise ValueError(f"Unknown transaction type: {txn.type!r}")

    if total_quantity > 0:
        average_cost = total_cost / total_quantity
    else:
        average_cost = ZERO

    for warning in warnings:
        logger.warning("Average-cost replay: %s", warning)

    return LedgerResult(
        quantity=quantize(total_quantity),
        average_cost=quantize(average_cost),
        warnings=tuple(warnings),
    )


def total_invested(transactions: Iterable[LedgerTransaction]) -> Decimal:
    """Sum of BUY ``total_cost`` minus sum of SELL ``total_cost`` (fees included)."""
    invested = ZERO
    for txn in transactions:
        if txn.type == "BUY":
            invested += Decimal(txn.total_cost)
        elif txn.type == "SELL":
            invested -= Decimal(txn.total_cost)
    return quantize(invested)


def average_buy_price(transactions: Iterable[LedgerTransaction]) -> Decimal:
    """Quantity-weighted mean BUY price; SELLs are ignored entirely.

    Unlike :func:`recompute_holding` this is a plain purchase average, and
    it is 0 when there are no BUYs.
    """
    bought_quantity = ZERO
    bought_value = ZERO
    for txn in transactions:
        if txn.type != "BUY":
            continue
        quantity = Decimal(txn.quantity)
        bought_quantity += quantity
        bought_value += quantity * Decimal(txn.price_per_unit)
    if bought_quantity == 0:
        return ZERO
    return quantize(bought_value / bought_quantity)
