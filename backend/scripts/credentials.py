#!/usr/bin/env python3
"""Manage Binance and CoinGecko credentials in the system keychain.

Keychain values take priority over environment variables and ``.env``
(see ``config.KeychainSettingsSource``).

Usage:
    python -m scripts.credentials list
    python -m scripts.credentials set BINANCE_API_KEY
    python -m scripts.credentials delete BINANCE_API_SECRET
    python -m scripts.credentials import-env --clean
"""

import argparse
import getpass
import re
import sys
from pathlib import Path

from dotenv import dotenv_values

from services.credential_manager import (
    CREDENTIAL_KEYS,
    delete_credential,
    get_credential,
    list_credentials,
    set_credential,
)


def mask(value: str) -> str:
    """Show only the last four characters of a secret."""
    if len(value) <= 4:
        return "*" * len(value)
    return "*" * (len(value) - 4) + value[-4:]


def import_env(env_path: Path, *, clean: bool = False) -> int:
    """Copy credentials from ``.env`` into the keychain.

    Returns:
        Number of credentials stored.
    """
    if not env_path.exists():
        print(f"No .env file found at {env_path}")
        sys.exit(1)

    values = dotenv_values(env_path)
    stored: list[str] = []
    unchanged: list[str] = []

    for key in sorted(CREDENTIAL_KEYS):
        value = values.get(key)
        if not value:
            continue
        if get_credential(key) == value.strip():
            unchanged.append(key)
            continue
        if set_credential(key, value):
            stored.append(key)
            print(f"  + {key}")
        else:
            print(f"  ! {key} (failed)")

    for key in unchanged:
        print(f"  = {key} (already in keychain)")

    if clean and (stored or unchanged):
        _strip_env_keys(env_path, stored + unchanged)
    return len(stored)


def _strip_env_keys(env_path: Path, keys: list[str]) -> None:
    """Remove credential lines from .env, preserving everything else."""
    pattern = re.compile(r"^(" + "|".join(re.escape(k) for k in keys) + r")\s*=")
    lines = env_path.read_text().splitlines(keepends=True)
    env_path.write_text("".join(line for line in lines if not pattern.match(line)))
    print(f"Removed {len(keys)} credential(s) from {env_path}")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Manage keychain credentials")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("list", help="Show which credentials are stored")

    set_parser = sub.add_parser("set", help="Store a credential (prompts for the value)")
    set_parser.add_argument("key", choices=sorted(CREDENTIAL_KEYS))

    delete_parser = sub.add_parser("delete", help="Remove a credential")
    delete_parser.add_argument("key", choices=sorted(CREDENTIAL_KEYS))

    import_parser = sub.add_parser("import-env", help="Copy credentials from .env")
    import_parser.add_argument(
        "--env-file",
        type=Path,
        default=Path(__file__).parent.parent / ".env",
        help="Path to .env file (default: backend/.env)",
    )
    import_parser.add_argument(
        "--clean", action="store_true", help="Remove imported credentials from .env"
    )

    args = parser.parse_args(argv)

    if args.command == "list":
        stored = list_credentials()
        for key in sorted(CREDENTIAL_KEYS):
            status = mask(stored[key]) if key in stored else "(not set)"
            print(f"  {key:<20} {status}")
    elif args.command == "set":
        value = getpass.getpass(f"{args.key}: ")
        if not set_credential(args.key, value):
            print(f"Failed to store {args.key}")
            sys.exit(1)
        print(f"Stored {args.key}")
    elif args.command == "delete":
        if not delete_credential(args.key):
            print(f"{args.key} was not in the keychain")
            sys.exit(1)
        print(f"Deleted {args.key}")
    else:
        import_env(args.env_file, clean=args.clean)


if __name__ == "__main__":
    main()
