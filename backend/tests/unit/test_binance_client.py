"""Unit tests for BinanceClient (mocked httpx)."""

import hashlib
import hmac
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import MagicMock, patch
from urllib.parse import urlencode

import httpx
import pytest

from integrations.binance_client import BinanceClient, asset_display_name
from integrations.exceptions import (
    ProviderAPIError,
    ProviderAuthError,
    ProviderConnectionError,
    ProviderDataError,
)


@pytest.fixture
def client():
    return BinanceClient(api_key="test-key", api_secret="test-secret", quote_asset="USDT")


@pytest.fixture
def unconfigured():
    return BinanceClient(api_key="", api_secret="")


def _response(payload=None, status_code: int = 200, text: str = "") -> MagicMock:
    mock_response = MagicMock()
    mock_response.status_code = status_code
    if payload is None:
        mock_response.json.side_effect = ValueError("no json")
    else:
        mock_response.json.return_value = payload
    mock_response.text = text
    return mock_response


def _ms(dt: datetime) -> int:
    return int(dt.timestamp() * 1000)


class TestConfiguration:
    def test_is_configured(self, client, unconfigured):
        assert client.is_configured() is True
        assert unconfigured.is_configured() is False

    def test_api_key_header(self, client):
        assert client._client.headers.get("X-MBX-APIKEY") == "test-key"

    def test_signed_call_requires_credentials(self, unconfigured):
        with patch.object(unconfigured._client, "request") as mock_req:
            with pytest.raises(ProviderAuthError):
                unconfigured.get_account_balances()
        mock_req.assert_not_called()

    def test_provider_name(self, client):
        assert client.provider_name == "Binance"


class TestSigning:
    def test_signature_is_hmac_of_query(self, client):
        with patch("integrations.binance_client.time_module.time", return_value=1700000000.0):
            signed = client._sign({"omitZeroBalances": "true"})

        assert signed["timestamp"] == 1700000000000
        assert signed["recvWindow"] == 10000
        unsigned = {k: v for k, v in signed.items() if k != "signature"}
        expected = hmac.new(
            b"test-secret", urlencode(unsigned).encode(), hashlib.sha256
        ).hexdigest()
        assert signed["signature"] == expected


class TestRequestErrors:
    def test_401_is_auth_error(self, client):
        body = {"code": -2015, "msg": "Invalid API-key, IP, or permissions for action."}
        with patch.object(client._client, "request", return_value=_response(body, 401)):
            with pytest.raises(ProviderAuthError, match="Invalid API-key"):
                client.get_account_balances()

    def test_connection_error(self, client):
        with patch.object(client._client, "request", side_effect=httpx.ConnectError("refused")):
            with pytest.raises(ProviderConnectionError):
                client.get_account_balances()

    def test_timeout(self, client):
        with patch.object(client._client, "request", side_effect=httpx.ReadTimeout("slow")):
            with pytest.raises(ProviderConnectionError):
                client.get_account_balances()

    @pytest.mark.parametrize(
        "error",
        [
            httpx.ReadError("connection reset"),
            httpx.RemoteProtocolError("server disconnected"),
            httpx.WriteError("broken pipe"),
        ],
    )
    def test_transport_errors_are_connection_errors(self, error):
        def handler(request: httpx.Request) -> httpx.Response:
            raise error

        transport_client = BinanceClient(api_key="test-key", api_secret="test-secret")
        transport_client._client = httpx.Client(
            base_url="https://api.binance.com", transport=httpx.MockTransport(handler)
        )

        with pytest.raises(ProviderConnectionError):
            transport_client.get_account_balances()

    def test_400_not_retried(self, client):
        body = {"code": -1102, "msg": "Mandatory parameter missing"}
        with patch.object(client._client, "request", return_value=_response(body, 400)) as mock_req:
            with pytest.raises(ProviderAPIError) as exc_info:
                client.get_account_balances()
        assert exc_info.value.error_code == -1102
        assert exc_info.value.status_code == 400
        mock_req.assert_called_once()

    def test_429_retried_then_succeeds(self, client):
        responses = [
            _response({"code": -1003, "msg": "Too many requests"}, 429),
            _response({"balances": []}),
        ]
        with patch.object(client._client, "request", side_effect=responses) as mock_req:
            with patch("integrations.binance_client.time_module.sleep") as mock_sleep:
                assert client.get_account_balances() == []
        assert mock_req.call_count == 2
        mock_sleep.assert_called_once_with(1.0)

    def test_5xx_exhausts_retries(self, client):
        with patch.object(client._client, "request", return_value=_response(None, 503, "down")) as mock_req:
            with patch("integrations.binance_client.time_module.sleep"):
                with pytest.raises(ProviderAPIError) as exc_info:
                    client.get_account_balances()
        assert exc_info.value.retriable is True
        assert mock_req.call_count == 3

    def test_invalid_json(self, client):
        with patch.object(client._client, "request", return_value=_response(None, 200, "<html>")):
            with pytest.raises(ProviderDataError):
                client.get_account_balances()


class TestAccountBalances:
    def test_maps_non_zero_balances(self, client):
        payload = {
            "balances": [
                {"asset": "BTC", "free": "0.50000000", "locked": "0.10000000"},
                {"asset": "ETH", "free": "0.00000000", "locked": "0.00000000"},
                {"asset": "LDUSDT", "free": "25.5", "locked": "0"},
            ]
        }
        with patch.object(client._client, "request", return_value=_response(payload)) as mock_req:
            balances = client.get_account_balances()

        assert [b.asset for b in balances] == ["BTC", "LDUSDT"]
        assert balances[0].total == Decimal("0.6")
        method, path = mock_req.call_args.args
        assert (method, path) == ("GET", "/api/v3/account")
        params = mock_req.call_args.kwargs["params"]
        assert params["omitZeroBalances"] == "true"
        assert "signature" in params

    def test_missing_balances_list(self, client):
        with patch.object(client._client, "request", return_value=_response({"code": 0})):
            with pytest.raises(ProviderDataError):
                client.get_account_balances()


class TestEarnPositions:
    def test_flexible_position(self, client):
        payload = {
            "rows": [{
                "asset": "USDT",
                "productId": "USDT001",
                "totalAmount": "1000",
                "latestAnnualPercentageRate": "0.0365",
                "canRedeem": True,
                "autoSubscribe": True,
            }],
            "total": 1,
        }
        with patch.object(client._client, "request", return_value=_response(payload)):
            positions = client.get_flexible_positions()

        position = positions[0]
        assert position.type == "FLEXIBLE"
        assert position.product_name == "USDT Flexible"
        assert position.current_apy == Decimal("3.65")
        assert position.daily_earnings == Decimal("0.1")
        assert position.auto_subscribe is True

    def test_locked_position(self, client):
        redeem = datetime(2026, 12, 1, tzinfo=timezone.utc)
        payload = {
            "rows": [{
                "positionId": 123456,
                "projectId": "Bnb*30",
                "asset": "BNB",
                "amount": "10",
                "APY": "0.12",
                "duration": "30",
                "redeemDate": str(_ms(redeem)),
                "canRedeemEarly": False,
                "isAutoRenew": True,
            }],
            "total": 1,
        }
        with patch.object(client._client, "request", return_value=_response(payload)):
            position = client.get_locked_positions()[0]

        assert position.product_id == "123456"
        assert position.product_name == "BNB Locked 30d"
        assert position.lock_period == 30
        assert position.locked_until == redeem
        assert position.current_apy == Decimal("12.00")
        assert position.can_redeem is False
        assert position.auto_subscribe is True

    def test_malformed_rows_skipped(self, client):
        payload = {"rows": [{"asset": "BTC"}], "total": 1}
        with patch.object(client._client, "request", return_value=_response(payload)):
            assert client.get_flexible_positions() == []

    def test_pagination(self, client):
        first = {
            "rows": [
                {"asset": "BTC", "productId": f"P{i}", "totalAmount": "1"} for i in range(100)
            ],
            "total": 101,
        }
        second = {"rows": [{"asset": "ETH", "productId": "P100", "totalAmount": "1"}], "total": 101}
        with patch.object(
            client._client, "request", side_effect=[_response(first), _response(second)]
        ) as mock_req:
            positions = client.get_flexible_positions()

        assert len(positions) == 101
        pages = [call.kwargs["params"]["current"] for call in mock_req.call_args_list]
        assert pages == [1, 2]

    def test_all_positions_combines_both(self, client):
        flexible = {"rows": [{"asset": "USDT", "productId": "USDT001", "totalAmount": "5"}], "total": 1}
        locked = {"rows": [{"asset": "BNB", "positionId": 9, "amount": "1"}], "total": 1}
        with patch.object(
            client._client, "request", side_effect=[_response(flexible), _response(locked)]
        ):
            positions = client.get_all_earn_positions()
        assert [p.type for p in positions] == ["FLEXIBLE", "LOCKED"]


class TestRewardsHistory:
    def test_flexible_and_locked_rewards(self, client):
        paid = datetime(2026, 10, 1, tzinfo=timezone.utc)

        def fake_request(method, path, params=None):
            if "flexible" in path:
                if params["type"] == "REALTIME":
                    return _response({
                        "rows": [{"asset": "USDT", "rewards": "0.0123", "projectId": "USDT001",
                                  "type": "REALTIME", "time": _ms(paid)}],
                        "total": 1,
                    })
                return _response({"rows": [], "total": 0})
            return _response({
                "rows": [{"positionId": "123456", "time": _ms(paid), "asset": "BNB",
                          "lockPeriod": "30", "amount": "0.003"}],
                "total": 1,
            })

        start = datetime(2026, 9, 25, tzinfo=timezone.utc)
        with patch.object(client._client, "request", side_effect=fake_request) as mock_req:
            rewards = client.get_all_rewards_history(
                start=start, end=datetime(2026, 10, 19, tzinfo=timezone.utc)
            )

        assert [(r.asset, r.type, r.amount) for r in rewards] == [
            ("USDT", "FLEXIBLE", Decimal("0.0123")),
            ("BNB", "LOCKED", Decimal("0.003")),
        ]
        assert rewards[0].position_id == "USDT001"
        assert rewards[1].position_id == "123456"
        assert rewards[0].reward_date == paid
        # Three flexible reward types plus one locked listing
        assert mock_req.call_count == 4
        assert all(c.kwargs["params"]["startTime"] == _ms(start) for c in mock_req.call_args_list)

    def test_long_range_split_into_three_month_windows(self, client):
        start = datetime(2026, 1, 1, tzinfo=timezone.utc)
        end = datetime(2026, 10, 1, tzinfo=timezone.utc)

        with patch.object(
            client._client, "request", return_value=_response({"rows": [], "total": 0})
        ) as mock_req:
            assert client.get_all_rewards_history(start=start, end=end) == []

        locked = [
            c.kwargs["params"] for c in mock_req.call_args_list if "locked" in c.args[1]
        ]
        assert len(locked) == 4
        assert locked[0]["startTime"] == _ms(start)
        assert locked[-1]["endTime"] == _ms(end)
        for prev, nxt in zip(locked, locked[1:]):
            assert nxt["startTime"] == prev["endTime"] + 1
        assert all(
            w["endTime"] - w["startTime"] < 90 * 24 * 60 * 60 * 1000 for w in locked
        )
        assert mock_req.call_count == 16

    def test_no_range_uses_exchange_default(self, client):
        with patch.object(
            client._client, "request", return_value=_response({"rows": [], "total": 0})
        ) as mock_req:
            client.get_all_rewards_history()

        assert mock_req.call_count == 4
        assert all("startTime" not in c.kwargs["params"] for c in mock_req.call_args_list)


class TestTickerPrices:
    def test_bulk(self, client):
        payload = [
            {"symbol": "BTCUSDT", "lastPrice": "50000.01", "priceChangePercent": "-2.5",
             "closeTime": 1700000000000},
            {"symbol": "ETHUSDT", "lastPrice": "3000.00", "priceChangePercent": "1.0",
             "closeTime": 1700000000000},
        ]
        with patch.object(client._client, "request", return_value=_response(payload)) as mock_req:
            quotes = client.get_ticker_prices(["btc", "ETH"])

        assert mock_req.call_args.kwargs["params"] == {"symbols": '["BTCUSDT","ETHUSDT"]'}
        assert quotes["BTC"].price == Decimal("50000.01")
        assert quotes["BTC"].name == "Bitcoin"
        assert quotes["BTC"].change_24h == Decimal("-2.5")
        assert quotes["ETH"].source == "binance"

    def test_bulk_invalid_pair_returns_empty(self, client):
        body = {"code": -1121, "msg": "Invalid symbol."}
        with patch.object(client._client, "request", return_value=_response(body, 400)):
            assert client.get_ticker_prices(["BTC", "NOPAIR"]) == {}

    def test_bulk_empty_input(self, client):
        with patch.object(client._client, "request") as mock_req:
            assert client.get_ticker_prices([]) == {}
        mock_req.assert_not_called()

    def test_single(self, client):
        payload = {"symbol": "SOLUSDT", "lastPrice": "150", "priceChangePercent": "0"}
        with patch.object(client._client, "request", return_value=_response(payload)) as mock_req:
            quote = client.get_ticker_price("sol")

        assert mock_req.call_args.kwargs["params"] == {"symbol": "SOLUSDT"}
        assert quote.symbol == "SOL"
        assert quote.price == Decimal("150")

    def test_single_unknown_pair(self, client):
        body = {"code": -1121, "msg": "Invalid symbol."}
        with patch.object(client._client, "request", return_value=_response(body, 400)):
            assert client.get_ticker_price("XYZ") is None

    def test_public_endpoint_needs_no_credentials(self, unconfigured):
        payload = {"symbol": "BTCUSDT", "lastPrice": "1"}
        with patch.object(unconfigured._client, "request", return_value=_response(payload)):
            assert unconfigured.get_ticker_price("BTC").price == Decimal("1")


def test_asset_display_name():
    assert asset_display_name("eth") == "Ethereum"
    assert asset_display_name("UNKNOWN") == "UNKNOWN"
