"""Tests for the HTTP API — /accounts, /orders, /orders/preview, /history, /health."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from aurum.api.routers import configure_routers
from aurum.broker.models import OrderResponse, TradeSummary
from aurum.errors import (
    AccountNotActive,
    AccountNotFound,
    InvalidRiskInput,
    OrderRejected,
    OrderStatusUnknown,
    PriceUnavailable,
    SessionLimitReached,
)
from aurum.history.reconstructor import build_history
from aurum.main import app
from aurum.repos.account_repo import TradingAccount
from aurum.risk.bracket import RiskParameters, compute_bracket
from aurum.services.order_service import PlacementResult

client = TestClient(app)


# ── Helpers ──────────────────────────────────────────────────────────────


def _bracket():
    return compute_bracket(
        RiskParameters(
            instrument="EUR_USD",
            account_equity=10_000.0,
            direction="BUY",
            reference_price=1.1,
        )
    )


def _make_order_service(error=None):
    """Return a mock OrderService with canned preview/place responses."""
    service = AsyncMock()
    bracket = _bracket()
    service.preview.return_value = bracket
    service.place.return_value = PlacementResult(
        order_id=1,
        bracket=bracket,
        fill=OrderResponse("500", "501", "EUR_USD", 35714, 1.10003, "2026-10-18T13:00:01Z"),
    )
    if error is not None:
        service.preview.side_effect = error
        service.place.side_effect = error
    return service


def _make_account_repo(account=None):
    repo = MagicMock()
    repo.get_account.return_value = account
    return repo


@pytest.fixture(autouse=True)
def _reset_routers():
    yield
    configure_routers()


_ORDER_BODY = {"account_id": 3, "instrument": "EUR_USD", "side": "buy"}


# ── Tests ────────────────────────────────────────────────────────────────


def test_health():
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


class TestPreviewEndpoint:
    def test_returns_bracket(self):
        service = _make_order_service()
        configure_routers(order_service=service)
        resp = client.post("/orders/preview", json=_ORDER_BODY)
        assert resp.status_code == 200
        bracket = resp.json()["bracket"]
        assert bracket["units"] == 35_714
        assert bracket["signed_units"] == 35_714
        assert bracket["stop_loss_price"] == pytest.approx(1.0993)
        assert bracket["risk_dollars"] == 25.0
        assert bracket["approx"] is False
        service.preview.assert_awaited_once_with(3, "EUR_USD", "BUY")

    def test_missing_fields(self):
        configure_routers(order_service=_make_order_service())
        resp = client.post("/orders/preview", json={"instrument": "EUR_USD"})
        assert resp.status_code == 400

    def test_non_integer_account(self):
        configure_routers(order_service=_make_order_service())
        resp = client.post("/orders/preview", json={**_ORDER_BODY, "account_id": "abc"})
        assert resp.status_code == 400

    def test_not_configured(self):
        resp = client.post("/orders/preview", json=_ORDER_BODY)
        assert resp.status_code == 503


class TestPlaceEndpoint:
    def test_places_order(self):
        service = _make_order_service()
        configure_routers(order_service=service)
        resp = client.post("/orders", json={**_ORDER_BODY, "reason": "breakout"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["order_id"] == 1
        assert data["fill"]["trade_id"] == "501"
        assert data["bracket"]["take_profit_price"] == pytest.approx(1.1021)
        service.place.assert_awaited_once_with(3, "EUR_USD", "BUY", reason="breakout")

    @pytest.mark.parametrize(
        "error, status",
        [
            (AccountNotFound("Trading account 3 not found"), 404),
            (AccountNotActive("Account not active"), 403),
            (SessionLimitReached("London", "2026-10-18T08:00:00+00:00"), 403),
            (InvalidRiskInput("account_equity must be positive"), 422),
            (PriceUnavailable("EUR_USD", "non-tradeable"), 503),
            (OrderRejected("INSUFFICIENT_MARGIN"), 400),
            (OrderStatusUnknown("EUR_USD", "read timed out"), 503),
        ],
    )
    def test_domain_errors_map_to_status(self, error, status):
        configure_routers(order_service=_make_order_service(error))
        resp = client.post("/orders", json=_ORDER_BODY)
        assert resp.status_code == status
        assert resp.json()["detail"] == str(error)


class TestOrdersEndpoint:
    def test_lists_orders(self):
        repo = MagicMock()
        repo.get_orders.return_value = {"orders": [{"id": 1}, {"id": 2}], "total": 5}
        configure_routers(order_repo=repo)
        resp = client.get("/orders?account_id=3&limit=2&offset=0&status=filled")
        assert resp.status_code == 200
        data = resp.json()
        assert data["total"] == 5
        assert data["has_more"] is True
        repo.get_orders.assert_called_once_with(3, limit=2, offset=0, status_filter="filled")

    def test_account_id_required(self):
        configure_routers(order_repo=MagicMock())
        assert client.get("/orders").status_code == 422

    def test_no_repo_returns_empty(self):
        resp = client.get("/orders?account_id=3")
        assert resp.json() == {"orders": [], "total": 0}


class TestHistoryEndpoint:
    def _history_service(self):
        service = AsyncMock()
        service.load.return_value = build_history(
            [],
            closed=[
                TradeSummary(
                    trade_id="11",
                    instrument="USD_JPY",
                    state="CLOSED",
                    initial_units=-2000,
                    current_units=0,
                    price=150.25,
                    realized_pnl=1.996,
                    average_close_price=150.24,
                    open_time="2026-10-01T08:00:00Z",
                    close_time="2026-10-01T09:00:00Z",
                )
            ],
        )
        return service

    def test_by_broker_account(self):
        service = self._history_service()
        configure_routers(history_service=service)
        resp = client.get(
            "/history?broker_account_id=101-001-1&from=2026-10-01T00:00:00Z",
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["summary"]["closed_trades"] == 1
        assert data["summary"]["total_realized_pl"] == 2.0
        trade = data["history"][0]
        assert trade["side"] == "SELL"
        assert trade["duration_seconds"] == 3600
        assert data["skipped_events"] == 0
        service.load.assert_awaited_once_with(
            "101-001-1", from_time="2026-10-01T00:00:00Z", to_time=None,
        )

    def test_by_account_id(self):
        service = self._history_service()
        account = TradingAccount(3, None, "standard", 10_000.0, 10_000.0, "active", "101-001-7")
        configure_routers(history_service=service, account_repo=_make_account_repo(account))
        resp = client.get("/history?account_id=3")
        assert resp.status_code == 200
        assert service.load.await_args.args[0] == "101-001-7"

    def test_unknown_account(self):
        configure_routers(
            history_service=self._history_service(),
            account_repo=_make_account_repo(None),
        )
        assert client.get("/history?account_id=3").status_code == 404

    def test_requires_an_account(self):
        configure_routers(history_service=self._history_service())
        assert client.get("/history").status_code == 400

    def test_broker_unavailable(self):
        from aurum.errors import InputUnavailable

        service = AsyncMock()
        service.load.side_effect = InputUnavailable("Transactions unavailable")
        configure_routers(history_service=service)
        assert client.get("/history?broker_account_id=x").status_code == 503


class TestAccountEndpoints:
    def _account(self, status="pending", broker_account_id=None):
        return TradingAccount(
            id=4,
            user_id=7,
            plan_type="pro",
            account_size=10_000.0,
            current_balance=10_000.0,
            status=status,
            broker_account_id=broker_account_id,
        )

    def _account_service(self):
        service = MagicMock()
        service.open_from_plan.return_value = self._account()
        service.activate = AsyncMock(
            return_value=self._account("active", "101-001-12345678-009"),
        )
        return service

    def test_open_account(self):
        service = self._account_service()
        configure_routers(account_service=service)
        resp = client.post("/accounts", json={"cost": "150", "user_id": 7})
        assert resp.status_code == 200
        assert resp.json()["account"]["status"] == "pending"
        service.open_from_plan.assert_called_once_with("150", user_id=7)

    def test_open_account_unknown_cost(self):
        service = self._account_service()
        service.open_from_plan.side_effect = KeyError("999")
        configure_routers(account_service=service)
        resp = client.post("/accounts", json={"cost": 999})
        assert resp.status_code == 400

    def test_open_account_requires_cost(self):
        configure_routers(account_service=self._account_service())
        assert client.post("/accounts", json={}).status_code == 400

    def test_activate(self):
        service = self._account_service()
        configure_routers(account_service=service)
        resp = client.post(
            "/accounts/4/activate", json={"broker_account_id": "101-001-12345678-009"},
        )
        assert resp.status_code == 200
        assert resp.json()["account"]["broker_account_id"] == "101-001-12345678-009"
        service.activate.assert_awaited_once_with(4, "101-001-12345678-009")

    @pytest.mark.parametrize(
        "error, status",
        [
            (AccountNotFound("Trading account 4 not found"), 404),
            (ValueError("broker_account_id is required"), 400),
        ],
    )
    def test_activate_errors(self, error, status):
        service = self._account_service()
        service.activate.side_effect = error
        configure_routers(account_service=service)
        resp = client.post("/accounts/4/activate", json={})
        assert resp.status_code == status

    def test_not_configured(self):
        assert client.post("/accounts", json={"cost": 150}).status_code == 503
