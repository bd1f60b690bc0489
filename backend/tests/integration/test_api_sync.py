"""Integration tests for sync API endpoints."""

from decimal import Decimal

from config import settings
from integrations.exchange_protocol import ExchangeBalance
from models import EarnPosition, EarnReward, Holding, Portfolio, SyncLogEntry


class TestHoldingsSync:
    def test_creates_sync_portfolio_and_holdings(self, client_with_mock_sync, db):
        response = client_with_mock_sync.post("/api/sync/holdings")
        assert response.status_code == 200

        body = response.json()
        assert body["portfolio_name"] == settings.SYNC_PORTFOLIO_NAME
        # USDT is a stablecoin and LDBTC an earn receipt; both are filtered
        assert body["added"] == 2
        assert body["deleted"] == 0
        assert body["total"] == 2
        assert body["errors"] == []

        holdings = {h.symbol: h for h in db.query(Holding).all()}
        assert set(holdings) == {"BTC", "ETH"}
        assert holdings["BTC"].quantity == Decimal("0.6")
        assert holdings["BTC"].average_cost == Decimal("50000")

    def test_second_sync_is_idempotent(self, client_with_mock_sync, db):
        client_with_mock_sync.post("/api/sync/holdings")
        body = client_with_mock_sync.post("/api/sync/holdings").json()

        assert body["added"] == 0
        assert body["updated"] == 2
        assert db.query(Portfolio).count() == 1

    def test_removed_asset_is_deleted(self, client_with_mock_sync, db, mock_exchange):
        client_with_mock_sync.post("/api/sync/holdings")
        mock_exchange.balances = [b for b in mock_exchange.balances if b.asset != "ETH"]

        body = client_with_mock_sync.post("/api/sync/holdings").json()

        assert body["deleted"] == 1
        assert [h.symbol for h in db.query(Holding).all()] == ["BTC"]

    def test_unpriced_asset_reported(self, client_with_mock_sync, mock_exchange):
        mock_exchange.balances.append(ExchangeBalance(asset="OBSCURE", free=Decimal("5")))

        body = client_with_mock_sync.post("/api/sync/holdings").json()

        assert body["added"] == 2
        assert len(body["errors"]) == 1
        assert "OBSCURE" in body["errors"][0]

    def test_exchange_failure_returns_502(self, client_with_failing_sync, db):
        response = client_with_failing_sync.post("/api/sync/holdings")

        assert response.status_code == 502
        assert "Binance API unavailable" in response.json()["detail"]
        entry = db.query(SyncLogEntry).one()
        assert entry.status == "failed"
        assert entry.error_messages == ["Binance API unavailable"]

    def test_unknown_user(self, client_with_mock_sync):
        response = client_with_mock_sync.post(
            "/api/sync/holdings", headers={"X-User-Id": "nobody"}
        )
        assert response.status_code == 404


class TestEarnSync:
    def test_positions_created(self, client_with_mock_sync, db):
        response = client_with_mock_sync.post("/api/sync/earn")
        assert response.status_code == 200
        assert response.json()["added"] == 2

        locked = db.query(EarnPosition).filter_by(type="LOCKED").one()
        assert locked.asset == "BNB"
        assert locked.lock_period == 30
        assert locked.can_redeem is False

    def test_redeemed_position_deleted(self, client_with_mock_sync, db, mock_exchange):
        client_with_mock_sync.post("/api/sync/earn")
        mock_exchange.positions = mock_exchange.positions[:1]

        body = client_with_mock_sync.post("/api/sync/earn").json()

        assert body["updated"] == 1
        assert body["deleted"] == 1
        assert body["total"] == 1

    def test_auth_failure_returns_502(self, client_with_auth_failure):
        response = client_with_auth_failure.post("/api/sync/earn")

        assert response.status_code == 502
        assert "authentication failed" in response.json()["detail"]


class TestRewardsSync:
    def test_rewards_imported_and_deduplicated(self, client_with_mock_sync, db):
        client_with_mock_sync.post("/api/sync/earn")

        first = client_with_mock_sync.post("/api/sync/rewards").json()
        assert first == {"rewards_added": 3, "duplicates_skipped": 0, "errors": []}

        second = client_with_mock_sync.post("/api/sync/rewards").json()
        assert second == {"rewards_added": 0, "duplicates_skipped": 3, "errors": []}
        assert db.query(EarnReward).count() == 3

        linked = db.query(EarnReward).filter(EarnReward.position_id.isnot(None)).count()
        assert linked == 3

    def test_window_forwarded(self, client_with_mock_sync, mock_exchange):
        response = client_with_mock_sync.post(
            "/api/sync/rewards",
            json={"start": "2026-09-01T00:00:00Z", "end": "2026-10-01T00:00:00Z"},
        )
        assert response.status_code == 200
        start, end = mock_exchange.reward_windows[-1]
        assert (start.month, end.month) == (9, 10)

    def test_inverted_window_rejected(self, client_with_mock_sync):
        response = client_with_mock_sync.post(
            "/api/sync/rewards",
            json={"start": "2026-10-01T00:00:00Z", "end": "2026-09-01T00:00:00Z"},
        )
        assert response.status_code == 422


class TestHistory:
    def test_history_lists_runs(self, client_with_mock_sync):
        client_with_mock_sync.post("/api/sync/holdings")
        client_with_mock_sync.post("/api/sync/earn")

        history = client_with_mock_sync.get("/api/sync/history").json()

        assert {entry["sync_type"] for entry in history} == {"holdings", "earn_positions"}
        holdings_run = next(e for e in history if e["sync_type"] == "holdings")
        assert holdings_run["status"] == "success"
        assert holdings_run["added"] == 2

    def test_history_scoped_to_user(self, client_with_mock_sync, other_user):
        client_with_mock_sync.post("/api/sync/holdings")

        history = client_with_mock_sync.get(
            "/api/sync/history", headers={"X-User-Id": other_user.id}
        ).json()
        assert history == []
