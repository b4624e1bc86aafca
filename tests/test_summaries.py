"""Tests for the trade-summary history path and input selection."""

import pytest

from aurum.broker.models import TradeSummary
from aurum.history.models import summarize, trade_to_dict
from aurum.history.reconstructor import (
    build_from_summaries,
    build_history,
    reconstruct,
)


def _closed_summary(**overrides) -> TradeSummary:
    fields = dict(
        trade_id="101",
        instrument="EUR_USD",
        state="CLOSED",
        initial_units=1000.0,
        current_units=0.0,
        price=1.1,
        realized_pnl=3.0,
        average_close_price=1.10030,
        open_time="2026-03-02T08:00:00.000000000Z",
        close_time="2026-03-02T10:30:00.000000000Z",
    )
    fields.update(overrides)
    return TradeSummary(**fields)


def _open_summary(**overrides) -> TradeSummary:
    fields = dict(
        trade_id="301",
        instrument="USD_JPY",
        state="OPEN",
        initial_units=-2000.0,
        current_units=-2000.0,
        price=150.25,
        unrealized_pnl=-7.5,
        open_time="2026-03-04T12:00:00Z",
    )
    fields.update(overrides)
    return TradeSummary(**fields)


_TRANSACTIONS = [
    {
        "id": "100",
        "type": "ORDER_FILL",
        "time": "2026-03-02T08:00:00Z",
        "instrument": "EUR_USD",
        "units": "1000",
        "price": "1.10000",
        "tradeOpened": {"tradeID": "101", "units": "1000", "price": "1.10000"},
    },
    {
        "id": "103",
        "type": "TRADE_CLOSE",
        "time": "2026-03-02T10:30:00Z",
        "tradeID": "101",
        "units": "1000",
        "price": "1.10030",
        "pl": "3.00",
    },
]


def _shape(value):
    """Nested key structure of a serialised trade."""
    if isinstance(value, dict):
        return {k: _shape(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_shape(v) for v in value]
    return None


class TestBuildFromSummaries:
    def test_closed_summary(self):
        trade = build_from_summaries([_closed_summary()])[0]
        assert trade.status == "closed"
        assert trade.side == "BUY"
        assert trade.open_units == 1000
        assert trade.remaining_units == 0
        assert len(trade.closes) == 1
        assert trade.closes[0].price == pytest.approx(1.1003)
        assert trade.total_realized_pl == pytest.approx(3.0)

    def test_open_summary(self):
        trade = build_from_summaries([], [_open_summary()])[0]
        assert trade.status == "open"
        assert trade.side == "SELL"
        assert trade.remaining_units == 2000
        assert trade.unrealized_pl == pytest.approx(-7.5)
        assert trade.closes == ()

    def test_partially_closed_open_summary(self):
        trade = build_from_summaries(
            [],
            [_open_summary(current_units=-1200.0, realized_pnl=4.25)],
        )[0]
        assert trade.status == "open"
        assert trade.remaining_units == 1200
        assert trade.closes[0].units == 800
        assert trade.total_realized_pl == pytest.approx(4.25)

    def test_break_even_partial_close_keeps_its_leg(self):
        trade = build_from_summaries(
            [],
            [_open_summary(current_units=-1200.0, realized_pnl=0.0)],
        )[0]
        assert len(trade.closes) == 1
        assert trade.closes[0].units == 800
        assert trade.closes[0].realized_pl == 0.0
        assert trade.total_realized_pl == 0.0

    def test_open_overrides_closed_with_same_id(self):
        trades = build_from_summaries(
            [_closed_summary(trade_id="301")], [_open_summary()],
        )
        assert len(trades) == 1
        assert trades[0].status == "open"

    def test_same_shape_as_transaction_path(self):
        from_summary = trade_to_dict(build_from_summaries([_closed_summary()])[0])
        from_txns = trade_to_dict(reconstruct(_TRANSACTIONS)[0])
        assert _shape(from_summary) == _shape(from_txns)
        for key in ("trade_id", "instrument", "side", "status", "remaining_units"):
            assert from_summary[key] == from_txns[key]
        assert from_summary["totals"] == from_txns["totals"]

    def test_sorted_most_recent_first(self):
        trades = build_from_summaries([_closed_summary()], [_open_summary()])
        assert [t.trade_id for t in trades] == ["301", "101"]


class TestBuildHistory:
    def test_prefers_summaries(self):
        result = build_history(
            [_open_summary()], closed=[_closed_summary()], transactions=[],
        )
        assert [t.trade_id for t in result.trades] == ["301", "101"]
        assert result.skipped_count == 0

    def test_falls_back_to_transactions_when_summaries_missing(self):
        result = build_history([], closed=None, transactions=_TRANSACTIONS)
        assert [t.trade_id for t in result.trades] == ["101"]

    def test_falls_back_when_summaries_empty(self):
        result = build_history([], closed=[], transactions=_TRANSACTIONS)
        assert len(result.trades) == 1

    def test_nothing_available(self):
        assert build_history([], closed=None).trades == []


class TestSummarize:
    def test_totals(self):
        trades = build_from_summaries([_closed_summary()], [_open_summary()])
        assert summarize(trades) == {
            "total_trades": 2,
            "open_trades": 1,
            "closed_trades": 1,
            "total_realized_pl": 3.0,
            "total_unrealized_pl": -7.5,
        }

    def test_empty(self):
        assert summarize([])["total_trades"] == 0
