"""Binance REST client for spot balances, Simple Earn and ticker prices.

Signed endpoints use HMAC-SHA256 over the query string with the API
secret, and the API key in the ``X-MBX-APIKEY`` header.  Public ticker
endpoints need no credentials.
"""

import hashlib
import hmac
import logging
import time as time_module
from datetime import datetime
from decimal import Decimal
from typing import Iterator
from urllib.parse import urlencode

import httpx

from config import settings
from integrations.exceptions import (
    ProviderAPIError,
    ProviderAuthError,
    ProviderConnectionError,
    ProviderDataError,
)
from integrations.exchange_protocol import (
    EarnPositionSnapshot,
    ExchangeBalance,
    RewardSnapshot,
)
from integrations.market_data_protocol import PriceQuote
from integrations.parsing_utils import (
    parse_decimal,
    parse_epoch_millis,
    to_epoch_millis,
)

logger = logging.getLogger(__name__)

PROVIDER_NAME = "Binance"

# Max retries for rate-limited / 5xx requests
_MAX_RETRIES = 3
_BASE_DELAY_SECONDS = 1.0

# Simple Earn list endpoints cap ``size`` at 100
_PAGE_SIZE = 100

# The flexible rewards endpoint requires one request per reward type
_FLEXIBLE_REWARD_TYPES = ("BONUS", "REALTIME", "REWARDS")

# Rewards endpoints reject ranges longer than 3 months
_REWARD_WINDOW_MS = 90 * 24 * 60 * 60 * 1000

_DAYS_PER_YEAR = Decimal("365")

# Display names for common assets; the ticker endpoint does not return them
_ASSET_NAMES: dict[str, str] = {
    "BTC": "Bitcoin",
    "ETH": "Ethereum",
    "BNB": "BNB",
    "SOL": "Solana",
    "XRP": "XRP",
    "ADA": "Cardano",
    "DOGE": "Dogecoin",
    "DOT": "Polkadot",
    "AVAX": "Avalanche",
    "MATIC": "Polygon",
    "POL": "Polygon",
    "LINK": "Chainlink",
    "UNI": "Uniswap",
    "ATOM": "Cosmos",
    "LTC": "Litecoin",
    "NEAR": "NEAR Protocol",
    "APT": "Aptos",
    "ARB": "Arbitrum",
    "OP": "Optimism",
    "SHIB": "Shiba Inu",
    "TRX": "TRON",
    "XLM": "Stellar",
}


def asset_display_name(symbol: str) -> str:
    """Best-effort human name for *symbol*; the symbol itself when unknown."""
    return _ASSET_NAMES.get(symbol.upper(), symbol.upper())


class BinanceClient:
    """Exchange account adapter and price source backed by the Binance API.

    Implements the ``ExchangeAccountClient`` protocol.
    """

    def __init__(
        self,
        api_key: str | None = None,
        api_secret: str | None = None,
        base_url: str | None = None,
        quote_asset: str | None = None,
        recv_window: int | None = None,
        timeout: float | None = None,
    ):
        """Initialize the client.

        Args:
            api_key: Binance API key. Defaults to ``settings.BINANCE_API_KEY``.
            api_secret: Binance API secret. Defaults to ``settings.BINANCE_API_SECRET``.
            base_url: REST base URL (testnet or a regional mirror).
            quote_asset: Quote currency for ticker lookups (``"USDT"``).
            recv_window: Milliseconds a signed request stays valid.
            timeout: HTTP timeout in seconds.
        """
        self._api_key = settings.BINANCE_API_KEY if api_key is None else api_key
        self._api_secret = settings.BINANCE_API_SECRET if api_secret is None else api_secret
        self._quote_asset = (quote_asset or settings.QUOTE_ASSET).upper()
        self._recv_window = recv_window or settings.BINANCE_RECV_WINDOW

        headers: dict[str, str] = {}
        if self._api_key:
            headers["X-MBX-APIKEY"] = self._api_key
        self._client = httpx.Client(
            base_url=base_url or settings.BINANCE_BASE_URL,
            headers=headers,
            timeout=timeout or settings.BINANCE_TIMEOUT,
        )

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()

    @property
    def provider_name(self) -> str:
        return PROVIDER_NAME

    @property
    def quote_asset(self) -> str:
        return self._quote_asset

    def is_configured(self) -> bool:
        """Check whether both API key and secret are present."""
        return bool(self._api_key and self._api_secret)

    def _check_credentials(self) -> None:
        if not self.is_configured():
            raise ProviderAuthError(
                "Binance API credentials not configured. "
                "Set BINANCE_API_KEY and BINANCE_API_SECRET.",
                provider_name=PROVIDER_NAME,
            )

    def _sign(self, params: dict) -> dict:
        """Return *params* with ``recvWindow``, ``timestamp`` and ``signature`` added."""
        signed = dict(params)
        signed["recvWindow"] = self._recv_window
        signed["timestamp"] = int(time_module.time() * 1000)
        query = urlencode(signed)
        signed["signature"] = hmac.new(
            self._api_secret.encode("utf-8"),
            query.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()
        return signed

    @staticmethod
    def _error_details(response: httpx.Response) -> tuple[int | None, str]:
        """Extract Binance's ``{"code": ..., "msg": ...}`` error body, if any."""
        try:
            body = response.json()
        except ValueError:
            return None, response.text[:200]
        if isinstance(body, dict):
            return body.get("code"), str(body.get("msg", ""))
        return None, str(body)[:200]

    def _request(
        self,
        method: str,
        path: str,
        params: dict | None = None,
        signed: bool = False,
    ):
        """Make a request and return the decoded JSON body.

        Retries 418/429/5xx responses with exponential backoff; signed
        requests are re-signed on every attempt so the timestamp stays fresh.

        Raises:
            ProviderAuthError: Missing credentials or HTTP 401/403.
            ProviderConnectionError: Network failure or timeout.
            ProviderAPIError: Any other error response.
            ProviderDataError: Body is not valid JSON.
        """
        if signed:
            self._check_credentials()

        last_error: ProviderAPIError | None = None
        for attempt in range(_MAX_RETRIES):
            request_params = self._sign(params or {}) if signed else (params or {})
            try:
                response = self._client.request(method, path, params=request_params)
            except httpx.TransportError as exc:
                raise ProviderConnectionError(
                    f"Binance connection failed: {exc}",
                    provider_name=PROVIDER_NAME,
                ) from exc

            status = response.status_code
            if status < 400:
                try:
                    return response.json()
                except ValueError as exc:
                    raise ProviderDataError(
                        f"Binance returned invalid JSON for {path}",
                        provider_name=PROVIDER_NAME,
                    ) from exc

            error_code, message = self._error_details(response)
            if status in (401, 403):
                raise ProviderAuthError(
                    f"Binance authentication failed (HTTP {status}): {message}",
                    provider_name=PROVIDER_NAME,
                )

            last_error = ProviderAPIError(
                f"Binance API error (HTTP {status}) on {path}: {message}",
                provider_name=PROVIDER_NAME,
                status_code=status,
                error_code=error_code,
            )
            if not last_error.retriable:
                raise last_error

            delay = _BASE_DELAY_SECONDS * (2 ** attempt)
            logger.warning(
                "Binance: HTTP %d on %s, retrying in %.1fs (attempt %d/%d)",
                status, path, delay, attempt + 1, _MAX_RETRIES,
            )
            time_module.sleep(delay)

        raise last_error

    def _paginate(self, path: str, params: dict | None = None) -> Iterator[dict]:
        """Yield every row of a Simple Earn ``{"rows": [...], "total": n}`` listing."""
        current = 1
        fetched = 0
        while True:
            data = self._request(
                "GET",
                path,
                params={**(params or {}), "current": current, "size": _PAGE_SIZE},
                signed=True,
            )
            if not isinstance(data, dict):
                raise ProviderDataError(
                    f"Unexpected response shape from {path}", provider_name=PROVIDER_NAME
                )
            rows = data.get("rows") or []
            yield from rows
            fetched += len(rows)
            total = data.get("total")
            if len(rows) < _PAGE_SIZE or (total is not None and fetched >= int(total)):
                return
            current += 1

    # ------------------------------------------------------------------
    # Spot account
    # ------------------------------------------------------------------

    def get_account_balances(self) -> list[ExchangeBalance]:
        """Fetch non-zero spot balances from ``/api/v3/account``."""
        data = self._request(
            "GET", "/api/v3/account", params={"omitZeroBalances": "true"}, signed=True
        )
        if not isinstance(data, dict) or not isinstance(data.get("balances"), list):
            raise ProviderDataError(
                "Binance account response has no balances list",
                provider_name=PROVIDER_NAME,
            )

        balances: list[ExchangeBalance] = []
        for item in data["balances"]:
            asset = (item.get("asset") or "").upper()
            free = parse_decimal(item.get("free"), Decimal("0"))
            locked = parse_decimal(item.get("locked"), Decimal("0"))
            if not asset or free + locked <= 0:
                continue
            balances.append(ExchangeBalance(asset=asset, free=free, locked=locked))

        logger.info("Binance: fetched %d non-zero balances", len(balances))
        return balances

    # ------------------------------------------------------------------
    # Simple Earn
    # ------------------------------------------------------------------

    def get_flexible_positions(self) -> list[EarnPositionSnapshot]:
        """Fetch Simple Earn flexible positions."""
        positions: list[EarnPositionSnapshot] = []
        for row in self._paginate("/sapi/v1/simple-earn/flexible/position"):
            position = self._map_flexible_position(row)
            if position is not None:
                positions.append(position)
        return positions

    def get_locked_positions(self) -> list[EarnPositionSnapshot]:
        """Fetch Simple Earn locked positions."""
        positions: list[EarnPositionSnapshot] = []
        for row in self._paginate("/sapi/v1/simple-earn/locked/position"):
            position = self._map_locked_position(row)
            if position is not None:
                positions.append(position)
        return positions

    def get_all_earn_positions(self) -> list[EarnPositionSnapshot]:
        """Fetch flexible and locked positions."""
        positions = self.get_flexible_positions() + self.get_locked_positions()
        logger.info("Binance: fetched %d earn positions", len(positions))
        return positions

    @staticmethod
    def _map_flexible_position(row: dict) -> EarnPositionSnapshot | None:
        asset = (row.get("asset") or "").upper()
        product_id = row.get("productId")
        amount = parse_decimal(row.get("totalAmount"))
        if not asset or not product_id or amount is None:
            logger.warning("Binance: skipping malformed flexible position %r", row)
            return None

        # Rates come back as fractions ("0.0525" is 5.25%)
        rate = parse_decimal(row.get("latestAnnualPercentageRate"), Decimal("0"))
        return EarnPositionSnapshot(
            asset=asset,
            product_id=str(product_id),
            product_name=f"{asset} Flexible",
            type="FLEXIBLE",
            amount=amount,
            current_apy=rate * 100,
            daily_earnings=amount * rate / _DAYS_PER_YEAR,
            can_redeem=bool(row.get("canRedeem", True)),
            auto_subscribe=bool(row.get("autoSubscribe", False)),
            raw_data=row,
        )

    @staticmethod
    def _map_locked_position(row: dict) -> EarnPositionSnapshot | None:
        asset = (row.get("asset") or "").upper()
        # Locked rewards reference positionId, so it is the identity here
        position_id = row.get("positionId")
        amount = parse_decimal(row.get("amount"))
        if not asset or position_id is None or amount is None:
            logger.warning("Binance: skipping malformed locked position %r", row)
            return None

        rate = parse_decimal(row.get("APY") or row.get("apy"), Decimal("0"))
        duration = row.get("duration")
        lock_period = int(duration) if duration not in (None, "") else None
        locked_until = parse_epoch_millis(
            row.get("redeemDate") or row.get("deliverDate") or row.get("rewardsEndDate")
        )
        return EarnPositionSnapshot(
            asset=asset,
            product_id=str(position_id),
            product_name=f"{asset} Locked {lock_period}d" if lock_period else f"{asset} Locked",
            type="LOCKED",
            amount=amount,
            current_apy=rate * 100,
            daily_earnings=amount * rate / _DAYS_PER_YEAR,
            lock_period=lock_period,
            locked_until=locked_until,
            can_redeem=bool(row.get("canRedeemEarly", False)),
            auto_subscribe=bool(row.get("isAutoRenew", row.get("autoSubscribe", False))),
            raw_data=row,
        )

    def get_all_rewards_history(
        self, start: datetime | None = None, end: datetime | None = None
    ) -> list[RewardSnapshot]:
        """Fetch flexible and locked rewards between *start* and *end*.

        Without a range Binance returns the last 7 days. Binance caps each
        request at 3 months, so longer ranges are fetched in consecutive
        windows.
        """
        rewards: list[RewardSnapshot] = []
        for window in self._reward_windows(start, end):
            for reward_type in _FLEXIBLE_REWARD_TYPES:
                for row in self._paginate(
                    "/sapi/v1/simple-earn/flexible/history/rewardsRecord",
                    params={**window, "type": reward_type},
                ):
                    reward = self._map_reward(
                        row, amount_key="rewards", position_key="productId", reward_type="FLEXIBLE"
                    )
                    if reward is not None:
                        rewards.append(reward)

            for row in self._paginate(
                "/sapi/v1/simple-earn/locked/history/rewardsRecord", params=window
            ):
                reward = self._map_reward(
                    row, amount_key="amount", position_key="positionId", reward_type="LOCKED"
                )
                if reward is not None:
                    rewards.append(reward)

        logger.info("Binance: fetched %d reward records", len(rewards))
        return rewards

    @staticmethod
    def _reward_windows(start: datetime | None, end: datetime | None) -> list[dict[str, int]]:
        """Split [start, end] into request ranges no longer than 3 months.

        Without *start* a single range is returned and Binance applies its
        7-day default. A missing *end* means now.
        """
        if start is None:
            return [{"endTime": to_epoch_millis(end)}] if end is not None else [{}]

        start_ms = to_epoch_millis(start)
        end_ms = to_epoch_millis(end) if end is not None else int(time_module.time() * 1000)
        windows: list[dict[str, int]] = []
        while start_ms <= end_ms:
            chunk_end = min(start_ms + _REWARD_WINDOW_MS - 1, end_ms)
            windows.append({"startTime": start_ms, "endTime": chunk_end})
            start_ms = chunk_end + 1
        return windows

    @staticmethod
    def _map_reward(
        row: dict, amount_key: str, position_key: str, reward_type: str
    ) -> RewardSnapshot | None:
        asset = (row.get("asset") or "").upper()
        amount = parse_decimal(row.get(amount_key))
        reward_date = parse_epoch_millis(row.get("time"))
        if not asset or amount is None or reward_date is None:
            logger.warning("Binance: skipping malformed reward record %r", row)
            return None
        position_id = row.get(position_key) or row.get("projectId")
        return RewardSnapshot(
            asset=asset,
            amount=amount,
            type=reward_type,
            reward_date=reward_date,
            position_id=str(position_id) if position_id is not None else None,
            raw_data=row,
        )

    # ------------------------------------------------------------------
    # Prices
    # ------------------------------------------------------------------

    def _pair(self, symbol: str) -> str:
        return f"{symbol.upper()}{self._quote_asset}"

    def _map_ticker(self, symbol: str, ticker: dict) -> PriceQuote | None:
        price = parse_decimal(ticker.get("lastPrice"))
        if price is None or price <= 0:
            return None
        return PriceQuote(
            symbol=symbol.upper(),
            price=price,
            name=asset_display_name(symbol),
            change_24h=parse_decimal(ticker.get("priceChangePercent")),
            source="binance",
            as_of=parse_epoch_millis(ticker.get("closeTime")),
        )

    def get_ticker_prices(self, symbols: list[str]) -> dict[str, PriceQuote]:
        """Bulk 24h tickers for *symbols* quoted in the quote asset.

        Binance rejects the whole batch (HTTP 400, code -1121) when any pair
        does not exist; in that case an empty mapping is returned and the
        caller falls back to per-symbol lookups.
        """
        if not symbols:
            return {}

        pairs = {self._pair(s): s.upper() for s in symbols}
        symbols_param = "[" + ",".join(f'"{pair}"' for pair in pairs) + "]"
        try:
            data = self._request("GET", "/api/v3/ticker/24hr", params={"symbols": symbols_param})
        except ProviderAPIError as exc:
            if exc.status_code == 400:
                logger.info(
                    "Binance: bulk ticker rejected (%s), falling back to single lookups", exc
                )
                return {}
            raise

        quotes: dict[str, PriceQuote] = {}
        for ticker in data if isinstance(data, list) else []:
            symbol = pairs.get(ticker.get("symbol", ""))
            if symbol is None:
                continue
            quote = self._map_ticker(symbol, ticker)
            if quote is not None:
                quotes[symbol] = quote
        return quotes

    def get_ticker_price(self, symbol: str) -> PriceQuote | None:
        """24h ticker for a single symbol; ``None`` when the pair does not exist."""
        try:
            data = self._request("GET", "/api/v3/ticker/24hr", params={"symbol": self._pair(symbol)})
        except ProviderAPIError as exc:
            if exc.status_code == 400:
                return None
            raise
        if not isinstance(data, dict):
            raise ProviderDataError(
                f"Unexpected ticker response for {symbol}", provider_name=PROVIDER_NAME
            )
        return self._map_ticker(symbol, data)
