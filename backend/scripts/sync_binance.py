#!/usr/bin/env python
"""Run exchange reconciliation from the command line.

Dry-run by default: fetches balances, earn positions and rewards and
prints them.  Pass --write to reconcile them into the database.

Usage:
    python -m scripts.sync_binance
    python -m scripts.sync_binance --only holdings --verbose
    python -m scripts.sync_binance --write --user-id <uuid>
    python -m scripts.sync_binance --write --only rewards --days 30
"""

import argparse
import sys
import time
from datetime import datetime, timedelta, timezone

from config import settings
from integrations.binance_client import BinanceClient
from integrations.exceptions import ProviderError
from logging_config import setup_logging
from services.earn_sync_service import EarnSyncService
from services.errors import NotFoundError
from services.holdings_sync_service import HoldingsSyncService
from services.market_data_service import MarketDataService
from utils.symbols import filter_reason, is_valid_symbol

STEPS = ("holdings", "earn", "rewards")


def print_section(title: str) -> None:
    print()
    print(f"=== {title} ===")


def print_errors(errors: list[str]) -> None:
    for error in errors:
        print(f"  ! {error}")


def dry_run(client: BinanceClient, steps: list[str], start, verbose: bool) -> None:
    """Fetch and display exchange data without touching the database."""
    if "holdings" in steps:
        print_section("Spot balances")
        balances = client.get_account_balances()
        for balance in balances:
            note = "" if is_valid_symbol(balance.asset) else f"  ({filter_reason(balance.asset)})"
            print(f"  {balance.asset:<10} {balance.total}{note}")
            if verbose:
                print(f"             free={balance.free} locked={balance.locked}")
        print(f"  {len(balances)} balances")

    if "earn" in steps:
        print_section("Earn positions")
        positions = client.get_all_earn_positions()
        for position in positions:
            print(
                f"  {position.type:<9} {position.asset:<8} {position.amount} "
                f"@ {position.current_apy:.2f}% ({position.product_id})"
            )
        print(f"  {len(positions)} positions")

    if "rewards" in steps:
        print_section("Rewards")
        rewards = client.get_all_rewards_history(start)
        for reward in rewards if verbose else rewards[:20]:
            print(f"  {reward.reward_date:%Y-%m-%d %H:%M} {reward.type:<9} {reward.asset:<8} {reward.amount}")
        print(f"  {len(rewards)} reward records")


def write_run(client: BinanceClient, steps: list[str], user_id: str, start) -> None:
    """Reconcile into the database."""
    from database import Base, get_engine, get_session_local

    Base.metadata.create_all(bind=get_engine())
    db = get_session_local()()
    try:
        if "holdings" in steps:
            print_section("Holdings sync")
            service = HoldingsSyncService(
                exchange_client=client,
                price_resolver=MarketDataService(exchange_client=client),
            )
            result = service.reconcile_holdings(db, user_id)
            print(f"  Portfolio: {result.portfolio_name} ({result.portfolio_id})")
            print(f"  added={result.added} updated={result.updated} deleted={result.deleted} total={result.total}")
            print_errors(result.errors)

        earn_service = EarnSyncService(exchange_client=client)
        if "earn" in steps:
            print_section("Earn sync")
            earn = earn_service.reconcile_earn_positions(db, user_id)
            print(f"  added={earn.added} updated={earn.updated} deleted={earn.deleted} total={earn.total}")
            print_errors(earn.errors)

        if "rewards" in steps:
            print_section("Rewards sync")
            rewards = earn_service.sync_rewards(db, user_id, start)
            print(f"  added={rewards.rewards_added} duplicates={rewards.duplicates_skipped}")
            print_errors(rewards.errors)
    finally:
        db.close()


def main(argv: list[str] | None = None) -> None:
    """Entry point: parse args and run the requested steps."""
    parser = argparse.ArgumentParser(
        description="Fetch Binance account data and optionally reconcile it into the database.",
    )
    parser.add_argument(
        "--only",
        choices=STEPS,
        action="append",
        help="Run only this step (repeatable). Default: all steps.",
    )
    parser.add_argument(
        "--user-id",
        default=settings.DEFAULT_USER_ID,
        help="User to sync (default: the configured default user)",
    )
    parser.add_argument(
        "--days",
        type=int,
        default=None,
        help="Rewards window in days, fetched in 3-month chunks (default: exchange default of 7 days)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Show more detail")
    parser.add_argument(
        "--write",
        action="store_true",
        help="Actually write to the database",
    )
    args = parser.parse_args(argv)

    setup_logging("DEBUG" if args.verbose else None)
    steps = args.only or list(STEPS)
    start = (
        datetime.now(timezone.utc) - timedelta(days=args.days) if args.days else None
    )

    client = BinanceClient()
    if not client.is_configured():
        print("Error: BINANCE_API_KEY and BINANCE_API_SECRET must be set.")
        sys.exit(1)

    print(f"Steps: {', '.join(steps)}")
    print(f"Mode: {'write' if args.write else 'dry-run'}")
    print("-" * 60)

    started = time.time()
    try:
        if args.write:
            write_run(client, steps, args.user_id, start)
        else:
            dry_run(client, steps, start, args.verbose)
    except (ProviderError, NotFoundError) as e:
        print(f"\nError: {e}")
        sys.exit(1)
    finally:
        client.close()

    print()
    print(f"Finished in {time.time() - started:.2f}s")
    if not args.write:
        print("(Dry-run, no database changes. Use --write to persist.)")


if __name__ == "__main__":
    main()
