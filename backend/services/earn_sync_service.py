"""Earn sync - reconcile earn positions and import reward history."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from integrations.exceptions import ProviderError
from integrations.exchange_protocol import EarnPositionSnapshot, ExchangeAccountClient
from integrations.parsing_utils import to_naive_utc
from models import EarnPosition, EarnReward
from services.average_cost_ledger import quantize
from services.reconciliation import (
    SnapshotReconciler,
    record_failed_sync,
    record_sync,
    require_user,
)

logger = logging.getLogger(__name__)

POSITIONS_SYNC_TYPE = "earn_positions"
REWARDS_SYNC_TYPE = "earn_rewards"

RewardKey = tuple[str, Decimal, datetime, str]


@dataclass
class EarnSyncResult:
    """Outcome of :meth:`EarnSyncService.reconcile_earn_positions`."""

    added: int = 0
    updated: int = 0
    deleted: int = 0
    total: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass
class RewardsSyncResult:
    """Outcome of :meth:`EarnSyncService.sync_rewards`."""

    rewards_added: int = 0
    duplicates_skipped: int = 0
    errors: list[str] = field(default_factory=list)


def reward_key(asset: str, amount: Decimal, reward_date: datetime, reward_type: str) -> RewardKey:
    """Dedup key of a reward: (asset, amount, date, type) within one user.

    Amounts compare at stored precision and dates as naive UTC, matching
    what the database round-trips.
    """
    return (asset.upper(), quantize(amount), to_naive_utc(reward_date), reward_type)


class EarnSyncService:
    """Keeps ``EarnPosition`` rows equal to the exchange's earn snapshot.

    Positions are keyed on (product_id, asset) per user.  Rewards carry no
    external id and are deduplicated on :func:`reward_key`.
    """

    def __init__(self, exchange_client: Optional[ExchangeAccountClient] = None):
        """Initialize with an optional exchange client for dependency injection."""
        self._exchange_client = exchange_client
        self._reconciler: SnapshotReconciler[EarnPosition, EarnPositionSnapshot] = SnapshotReconciler(
            "earn positions",
            local_key=lambda position: (position.product_id, position.asset),
            item_key=lambda snapshot: (snapshot.product_id, snapshot.asset.upper()),
        )

    @property
    def exchange_client(self) -> ExchangeAccountClient:
        if self._exchange_client is None:
            from integrations.binance_client import BinanceClient

            self._exchange_client = BinanceClient()
        return self._exchange_client

    def reconcile_earn_positions(self, db: Session, user_id: str) -> EarnSyncResult:
        """Sync the user's earn positions with the exchange.

        Commits on completion.

        Raises:
            NotFoundError: The user does not exist.
            ProviderError: Positions could not be fetched.
        """
        require_user(db, user_id)

        try:
            snapshot = self.exchange_client.get_all_earn_positions()
        except ProviderError as e:
            logger.warning("Earn sync aborted for user %s: %s", user_id, e)
            record_failed_sync(db, user_id, POSITIONS_SYNC_TYPE, str(e))
            raise

        local_positions = (
            db.query(EarnPosition).filter(EarnPosition.user_id == user_id).all()
        )

        if not snapshot:
            logger.warning(
                "Exchange returned no earn positions for user %s; skipping deletions", user_id
            )
            record_sync(db, user_id, POSITIONS_SYNC_TYPE, "success")
            db.commit()
            return EarnSyncResult(total=len(local_positions))

        synced_at = to_naive_utc(datetime.now(timezone.utc))

        def apply_position(
            db: Session, item: EarnPositionSnapshot, existing: EarnPosition | None
        ) -> EarnPosition:
            fields = {
                "amount": quantize(item.amount),
                "current_apy": quantize(item.current_apy),
                "daily_earnings": (
                    quantize(item.daily_earnings) if item.daily_earnings is not None else None
                ),
                "lock_period": item.lock_period,
                "locked_until": to_naive_utc(item.locked_until),
                "can_redeem": item.can_redeem,
                "auto_subscribe": item.auto_subscribe,
                "last_synced_at": synced_at,
            }
            if existing is not None:
                for name, value in fields.items():
                    setattr(existing, name, value)
                logger.info(
                    "Updated %s position %s: %s @ %s%% APY",
                    item.type, item.asset, item.amount, item.current_apy,
                )
                return existing

            position = EarnPosition(
                user_id=user_id,
                asset=item.asset.upper(),
                product_id=item.product_id,
                product_name=item.product_name,
                type=item.type,
                **fields,
            )
            db.add(position)
            logger.info(
                "Created %s position %s: %s @ %s%% APY",
                item.type, item.asset, item.amount, item.current_apy,
            )
            return position

        outcome = self._reconciler.reconcile(db, local_positions, snapshot, apply_position)

        record_sync(
            db, user_id, POSITIONS_SYNC_TYPE, outcome.status,
            added=outcome.added, updated=outcome.updated,
            deleted=outcome.deleted, errors=outcome.errors,
        )
        db.commit()

        total = db.query(EarnPosition).filter(EarnPosition.user_id == user_id).count()
        return EarnSyncResult(
            added=outcome.added,
            updated=outcome.updated,
            deleted=outcome.deleted,
            total=total,
            errors=outcome.errors,
        )

    def sync_rewards(
        self,
        db: Session,
        user_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> RewardsSyncResult:
        """Import rewards paid between *start* and *end*, skipping duplicates.

        Each new reward is linked to the user's position with the same
        asset and product id, when there is one.  Commits on completion.

        Raises:
            NotFoundError: The user does not exist.
            ProviderError: Reward history could not be fetched.
        """
        require_user(db, user_id)

        try:
            rewards = self.exchange_client.get_all_rewards_history(start, end)
        except ProviderError as e:
            logger.warning("Rewards sync aborted for user %s: %s", user_id, e)
            record_failed_sync(db, user_id, REWARDS_SYNC_TYPE, str(e))
            raise

        result = RewardsSyncResult()
        if not rewards:
            logger.info("No rewards in exchange history for user %s", user_id)
            record_sync(db, user_id, REWARDS_SYNC_TYPE, "success")
            db.commit()
            return result

        # Load existing dedup keys in one query
        existing_keys: set[RewardKey] = {
            reward_key(asset, amount, reward_date, reward_type)
            for asset, amount, reward_date, reward_type in db.query(
                EarnReward.asset, EarnReward.amount, EarnReward.reward_date, EarnReward.type
            ).filter(EarnReward.user_id == user_id)
        }
        position_ids: dict[tuple[str, str], str] = {
            (asset, product_id): position_id
            for position_id, asset, product_id in db.query(
                EarnPosition.id, EarnPosition.asset, EarnPosition.product_id
            ).filter(EarnPosition.user_id == user_id)
        }

        for reward in rewards:
            key = reward_key(reward.asset, reward.amount, reward.reward_date, reward.type)
            if key in existing_keys:
                result.duplicates_skipped += 1
                continue

            asset, amount, reward_date, reward_type = key
            try:
                with db.begin_nested():
                    db.add(
                        EarnReward(
                            user_id=user_id,
                            position_id=position_ids.get((asset, reward.position_id or "")),
                            asset=asset,
                            amount=amount,
                            type=reward_type,
                            reward_date=reward_date,
                        )
                    )
                    db.flush()
            except Exception as e:
                logger.error(
                    "Failed to store %s reward for %s: %s", reward_type, asset, e, exc_info=True
                )
                result.errors.append(f"Failed to process reward for {asset}: {e}")
                continue

            existing_keys.add(key)
            result.rewards_added += 1

        record_sync(
            db, user_id, REWARDS_SYNC_TYPE, "partial" if result.errors else "success",
            added=result.rewards_added, errors=result.errors,
        )
        db.commit()
        logger.info(
            "Rewards sync for user %s: %d added, %d duplicates skipped, %d errors",
            user_id, result.rewards_added, result.duplicates_skipped, len(result.errors),
        )
        return result
