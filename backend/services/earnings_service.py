"""Read-side queries over earn positions and rewards."""

import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from integrations.market_data_protocol import PriceResolver
from integrations.parsing_utils import to_naive_utc
from models import EarnPosition, EarnReward
from services.errors import PriceUnavailableError
from services.reconciliation import require_user

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

# Assets treated as worth one quote unit when valuing positions
_USD_STABLECOINS = frozenset({"USDT", "USDC", "BUSD", "FDUSD", "TUSD", "USDP", "DAI"})


class EarningsService:
    """Positions, reward history and the earn summary for a user."""

    def __init__(self, price_resolver: Optional[PriceResolver] = None):
        """Initialize with an optional price resolver.

        Without one the summary reports ``total_value_usd`` as 0 and no
        per-asset value.
        """
        self._price_resolver = price_resolver

    @staticmethod
    def get_positions(db: Session, user_id: str) -> list[EarnPosition]:
        require_user(db, user_id)
        return (
            db.query(EarnPosition)
            .filter(EarnPosition.user_id == user_id)
            .order_by(EarnPosition.type, EarnPosition.asset)
            .all()
        )

    @staticmethod
    def get_rewards_history(
        db: Session,
        user_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
        asset: str | None = None,
    ) -> list[EarnReward]:
        """Rewards newest first, optionally within [start, end] and for one asset."""
        require_user(db, user_id)
        query = db.query(EarnReward).filter(EarnReward.user_id == user_id)
        if start is not None:
            query = query.filter(EarnReward.reward_date >= to_naive_utc(start))
        if end is not None:
            query = query.filter(EarnReward.reward_date <= to_naive_utc(end))
        if asset:
            query = query.filter(EarnReward.asset == asset.upper())
        return query.order_by(EarnReward.reward_date.desc()).all()

    def get_summary(self, db: Session, user_id: str) -> dict:
        """Earn overview: counts, estimated daily earnings, reward totals, per-asset breakdown.

        Returns:
            Dict matching ``schemas.EarningsSummary``.
        """
        positions = self.get_positions(db, user_id)
        since = to_naive_utc(datetime.now(timezone.utc) - timedelta(days=30))

        rewards_by_asset: dict[str, Decimal] = {
            asset: Decimal(total or 0)
            for asset, total in db.query(EarnReward.asset, func.sum(EarnReward.amount))
            .filter(EarnReward.user_id == user_id)
            .group_by(EarnReward.asset)
        }
        recent_total = sum(
            (
                Decimal(amount)
                for (amount,) in db.query(EarnReward.amount).filter(
                    EarnReward.user_id == user_id, EarnReward.reward_date >= since
                )
            ),
            ZERO,
        )

        by_asset: dict[str, dict] = {}
        for position in positions:
            entry = by_asset.setdefault(position.asset, {
                "asset": position.asset,
                "total_amount": ZERO,
                "position_count": 0,
                "estimated_daily_earnings": ZERO,
                "total_rewards": rewards_by_asset.get(position.asset, ZERO),
                "value_usd": None,
            })
            entry["total_amount"] += Decimal(position.amount)
            entry["position_count"] += 1
            entry["estimated_daily_earnings"] += Decimal(position.daily_earnings or 0)

        total_value = self._value_assets(by_asset)

        return {
            "total_positions": len(positions),
            "flexible_count": sum(1 for p in positions if p.type == "FLEXIBLE"),
            "locked_count": sum(1 for p in positions if p.type == "LOCKED"),
            "total_value_usd": total_value,
            "estimated_daily_earnings": sum(
                (e["estimated_daily_earnings"] for e in by_asset.values()), ZERO
            ),
            "total_rewards_all_time": sum(rewards_by_asset.values(), ZERO),
            "total_rewards_last_30_days": recent_total,
            "by_asset": sorted(by_asset.values(), key=lambda e: e["asset"]),
        }

    def _value_assets(self, by_asset: dict[str, dict]) -> Decimal:
        """Fill ``value_usd`` per asset where a price is available; return the sum."""
        if self._price_resolver is None or not by_asset:
            return ZERO

        priceable = [a for a in by_asset if a not in _USD_STABLECOINS]
        quotes = self._price_resolver.get_prices(priceable) if priceable else {}
        total = ZERO
        for asset, entry in by_asset.items():
            if asset in _USD_STABLECOINS:
                price = Decimal("1")
            elif asset in quotes:
                price = quotes[asset].price
            else:
                try:
                    price = self._price_resolver.get_price(asset).price
                except PriceUnavailableError as e:
                    logger.warning("Earn summary: %s", e)
                    continue
            entry["value_usd"] = entry["total_amount"] * price
            total += entry["value_usd"]
        return total
