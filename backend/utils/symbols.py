"""Asset symbol helpers shared by sync and pricing.

Exchange account balances include tokens that cannot be priced against
the quote currency: stablecoins that *are* the quote currency, and
exchange-internal derivative tokens (``LDBTC`` for Simple Earn
flexible balances, ``RWUSD`` and friends).
"""

import logging
from collections.abc import Iterable

logger = logging.getLogger(__name__)

# Prefixes used by the exchange for internal derivative/receipt tokens
INVALID_SYMBOL_PREFIXES: tuple[str, ...] = ("LD", "RW", "BS", "BN")

# Listed assets that happen to start with one of those prefixes
PREFIX_EXCEPTIONS: frozenset[str] = frozenset({"BNB", "BNT", "BSV", "LDO"})

# Stablecoins that serve as quote currencies and have no USDT pair
EXCLUDED_SYMBOLS: frozenset[str] = frozenset(
    {"USDT", "BUSD", "USDC", "DAI", "TUSD", "USDP", "FDUSD"}
)


def normalize_symbol(symbol: str | None) -> str:
    """Return *symbol* stripped and upper-cased (``""`` for ``None``)."""
    return (symbol or "").strip().upper()


def _invalid_prefix(symbol: str) -> str | None:
    if symbol in PREFIX_EXCEPTIONS:
        return None
    for prefix in INVALID_SYMBOL_PREFIXES:
        if symbol.startswith(prefix):
            return prefix
    return None


def is_valid_symbol(symbol: str | None) -> bool:
    """Check whether *symbol* can be priced against the quote currency."""
    normalized = normalize_symbol(symbol)
    if not normalized:
        return False
    if normalized in EXCLUDED_SYMBOLS:
        return False
    return _invalid_prefix(normalized) is None


def filter_reason(symbol: str | None) -> str:
    """Human readable explanation of why a symbol is (or is not) filtered."""
    normalized = normalize_symbol(symbol)
    if not normalized:
        return "Empty or invalid symbol"
    if normalized in EXCLUDED_SYMBOLS:
        return "Stablecoin used as quote currency"
    prefix = _invalid_prefix(normalized)
    if prefix:
        return (
            f"Binance-specific token with {prefix} prefix "
            "(not supported for price fetching)"
        )
    return "Valid symbol"


def filter_valid_symbols(symbols: Iterable[str]) -> list[str]:
    """Return the priceable symbols from *symbols*, preserving order.

    Filtered symbols are logged at INFO level; duplicates are dropped.
    """
    valid: list[str] = []
    filtered: list[str] = []
    seen: set[str] = set()
    for symbol in symbols:
        normalized = normalize_symbol(symbol)
        if normalized in seen:
            continue
        seen.add(normalized)
        if is_valid_symbol(normalized):
            valid.append(normalized)
        else:
            filtered.append(normalized)

    if filtered:
        logger.info(
            "Filtered %d unpriceable symbols: %s", len(filtered), ", ".join(filtered)
        )
    return valid
