"""Tests for the order placement workflow.

Uses real SQLite repositories on a temp file and a mocked broker.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import httpx
import pytest

from aurum.broker.models import OrderResponse, Quote
from aurum.config import Config
from aurum.errors import (
    AccountNotActive,
    AccountNotFound,
    InputUnavailable,
    InvalidRiskInput,
    OrderRejected,
    OrderStatusUnknown,
    PriceUnavailable,
    SessionLimitReached,
)
from aurum.repos.account_repo import AccountRepo
from aurum.repos.order_repo import OrderRepo
from aurum.services.order_service import OrderService

NOON = datetime(2026, 10, 18, 13, 0, tzinfo=timezone.utc)


def _make_config(db_path: str, **overrides) -> Config:
    fields = dict(
        oanda_account_id="101-001-12345678-001",
        oanda_api_token="test-token",
        oanda_environment="practice",
        risk_fraction=0.0025,
        stop_pips=7,
        price_source="mid",
        strict_cross_rates=False,
        allow_multiple_trades=False,
        history_lookback_days=365,
        db_path=db_path,
        log_level="INFO",
        health_port=8080,
    )
    fields.update(overrides)
    return Config(**fields)


def _quote(price=1.1, instrument="EUR_USD", status="tradeable") -> Quote:
    return Quote(
        instrument=instrument,
        bid=price,
        ask=price,
        closeout_bid=price,
        closeout_ask=price,
        status=status,
    )


def _make_broker(quote=None, fill=None):
    """Return a mock broker with canned pricing and fill responses."""
    broker = AsyncMock()
    broker.get_quote.return_value = quote if quote is not None else _quote()
    broker.place_order.return_value = fill or OrderResponse(
        order_id="500",
        trade_id="501",
        instrument="EUR_USD",
        units=35714,
        price=1.10003,
        time="2026-10-18T13:00:01Z",
    )
    return broker


def _active_account(db_path, size=10_000.0, plan_type="standard") -> int:
    repo = AccountRepo(db_path)
    account_id = repo.insert_account(size, plan_type=plan_type)
    repo.activate(account_id, "101-001-12345678-009")
    return account_id


def _service(db_path, broker, **config_overrides) -> OrderService:
    return OrderService(
        _make_config(db_path, **config_overrides),
        broker,
        AccountRepo(db_path),
        OrderRepo(db_path),
    )


# ── Placement ────────────────────────────────────────────────────────────


class TestPlace:
    @pytest.mark.asyncio
    async def test_places_and_records_fill(self, db_path):
        account_id = _active_account(db_path)
        broker = _make_broker()
        result = await _service(db_path, broker).place(
            account_id, "eur/usd", "buy", reason="breakout", now=NOON,
        )

        assert result.bracket.units == 35_714
        assert result.fill.trade_id == "501"

        order = broker.place_order.await_args.args[0]
        assert order.instrument == "EUR_USD"
        assert order.units == 35_714
        assert order.stop_loss_price == pytest.approx(1.0993)
        assert order.take_profit_price == pytest.approx(1.1021)
        assert broker.place_order.await_args.args[1] == "101-001-12345678-009"
        broker.get_quote.assert_awaited_once_with("EUR_USD", "101-001-12345678-009")

        stored = OrderRepo(db_path).get_orders(account_id)["orders"]
        assert len(stored) == 1
        assert stored[0]["id"] == result.order_id
        assert stored[0]["status"] == "filled"
        assert stored[0]["entry_price"] == pytest.approx(1.10003)
        assert stored[0]["reason"] == "breakout"
        assert stored[0]["placed_at"] == "2026-10-18T13:00:00+00:00"

    @pytest.mark.asyncio
    async def test_pro_plan_sell(self, db_path):
        account_id = _active_account(db_path, plan_type="pro")
        broker = _make_broker(quote=_quote(1.085))
        result = await _service(db_path, broker).place(
            account_id, "EUR_USD", "SELL", now=NOON,
        )
        assert result.bracket.reward_pips == 42
        assert result.bracket.take_profit_price == pytest.approx(1.0808)
        assert broker.place_order.await_args.args[0].units == -35_714

    @pytest.mark.asyncio
    async def test_second_order_in_session_blocked(self, db_path):
        account_id = _active_account(db_path)
        broker = _make_broker()
        service = _service(db_path, broker)
        await service.place(account_id, "EUR_USD", "BUY", now=NOON)

        with pytest.raises(SessionLimitReached, match="New York"):
            await service.place(account_id, "EUR_USD", "SELL", now=NOON.replace(hour=15))
        assert broker.place_order.await_count == 1

    @pytest.mark.asyncio
    async def test_next_session_allowed(self, db_path):
        account_id = _active_account(db_path)
        broker = _make_broker()
        service = _service(db_path, broker)
        await service.place(account_id, "EUR_USD", "BUY", now=NOON)
        await service.place(account_id, "EUR_USD", "BUY", now=NOON.replace(hour=23))
        assert broker.place_order.await_count == 2

    @pytest.mark.asyncio
    async def test_multiple_trades_flag_disables_guard(self, db_path):
        account_id = _active_account(db_path)
        broker = _make_broker()
        service = _service(db_path, broker, allow_multiple_trades=True)
        await service.place(account_id, "EUR_USD", "BUY", now=NOON)
        await service.place(account_id, "EUR_USD", "BUY", now=NOON)
        assert broker.place_order.await_count == 2

    @pytest.mark.asyncio
    async def test_rejection_recorded_and_reraised(self, db_path):
        account_id = _active_account(db_path)
        broker = _make_broker()
        broker.place_order.side_effect = OrderRejected("INSUFFICIENT_MARGIN")
        service = _service(db_path, broker)

        with pytest.raises(OrderRejected):
            await service.place(account_id, "EUR_USD", "BUY", now=NOON)

        stored = OrderRepo(db_path).get_orders(account_id)["orders"]
        assert stored[0]["status"] == "rejected"
        assert stored[0]["reject_reason"] == "INSUFFICIENT_MARGIN"

        # A rejected order does not use up the session
        broker.place_order.side_effect = None
        await service.place(account_id, "EUR_USD", "BUY", now=NOON)

    @pytest.mark.asyncio
    async def test_unconfirmed_order_recorded_as_unknown(self, db_path):
        account_id = _active_account(db_path)
        broker = _make_broker()
        broker.place_order.side_effect = httpx.ReadTimeout("read timed out")
        service = _service(db_path, broker)

        with pytest.raises(OrderStatusUnknown, match="check the broker account") as exc_info:
            await service.place(account_id, "EUR_USD", "BUY", now=NOON)
        assert isinstance(exc_info.value, InputUnavailable)

        stored = OrderRepo(db_path).get_orders(account_id)["orders"]
        assert stored[0]["status"] == "unknown"
        assert stored[0]["reject_reason"] == "read timed out"

        # The order may have filled, so the session is used up
        broker.place_order.side_effect = None
        with pytest.raises(SessionLimitReached):
            await service.place(account_id, "EUR_USD", "BUY", now=NOON.replace(hour=14))
        assert broker.place_order.await_count == 1

    @pytest.mark.asyncio
    async def test_risk_budget_too_small(self, db_path):
        account_id = _active_account(db_path, size=0.2)
        broker = _make_broker()
        with pytest.raises(InvalidRiskInput, match="too small"):
            await _service(db_path, broker).place(account_id, "EUR_USD", "BUY", now=NOON)
        broker.place_order.assert_not_awaited()


# ── Refusals before any order is sent ────────────────────────────────────


class TestRefusals:
    @pytest.mark.asyncio
    async def test_unknown_account(self, db_path):
        with pytest.raises(AccountNotFound):
            await _service(db_path, _make_broker()).place(42, "EUR_USD", "BUY", now=NOON)

    @pytest.mark.asyncio
    async def test_pending_account(self, db_path):
        account_id = AccountRepo(db_path).insert_account(10_000.0)
        broker = _make_broker()
        with pytest.raises(AccountNotActive):
            await _service(db_path, broker).place(account_id, "EUR_USD", "BUY", now=NOON)
        broker.get_quote.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_live_price(self, db_path):
        account_id = _active_account(db_path)
        halted = Quote("EUR_USD", None, None, None, None, tradeable=False, status="non-tradeable")
        broker = _make_broker(quote=halted)
        with pytest.raises(PriceUnavailable, match="non-tradeable"):
            await _service(db_path, broker).place(account_id, "EUR_USD", "BUY", now=NOON)
        broker.place_order.assert_not_awaited()
        assert OrderRepo(db_path).get_orders(account_id)["total"] == 0

    @pytest.mark.asyncio
    async def test_pricing_request_failure(self, db_path):
        account_id = _active_account(db_path)
        broker = _make_broker()
        broker.get_quote.side_effect = httpx.ConnectError("connection refused")
        with pytest.raises(PriceUnavailable, match="broker request failed"):
            await _service(db_path, broker).preview(account_id, "EUR_USD", "BUY")

    @pytest.mark.asyncio
    async def test_malformed_instrument(self, db_path):
        account_id = _active_account(db_path)
        broker = _make_broker()
        with pytest.raises(InvalidRiskInput):
            await _service(db_path, broker).preview(account_id, "EURUSD", "BUY")
        broker.get_quote.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_strict_cross_rates(self, db_path):
        account_id = _active_account(db_path)
        broker = _make_broker(quote=_quote(0.865, "EUR_GBP"))
        with pytest.raises(InvalidRiskInput, match="cross pair"):
            await _service(db_path, broker, strict_cross_rates=True).preview(
                account_id, "EUR_GBP", "BUY",
            )


class TestPreview:
    @pytest.mark.asyncio
    async def test_preview_does_not_place(self, db_path):
        account_id = _active_account(db_path)
        broker = _make_broker(quote=_quote(150.25, "USD_JPY"))
        bracket = await _service(db_path, broker).preview(account_id, "USD_JPY", "BUY")
        assert bracket.stop_loss_price == pytest.approx(150.18)
        assert bracket.take_profit_price == pytest.approx(150.46)
        broker.place_order.assert_not_awaited()
