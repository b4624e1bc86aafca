"""Trade history reconstruction — pure functions, no I/O.

Two thin adapters feed the shared ``TradeLedger``:

* ``reconstruct`` folds raw broker transactions (fills and closes) in
  time order.
* ``build_from_summaries`` maps the broker's pre-aggregated open / closed
  trade summaries directly.

``build_history`` prefers summaries and falls back to transactions.
"""

import logging
from collections.abc import Iterable, Mapping
from typing import Optional

from aurum.broker.models import TradeSummary
from aurum.history.builder import EPOCH, TradeBuilder, TradeLedger, id_sort_key
from aurum.history.identifiers import (
    CLOSE,
    CLOSE_UNITS_ACCESSORS,
    FILL,
    REALIZED_PL_ACCESSORS,
    classify,
    first_present,
    resolve_trade_id,
    to_float,
)
from aurum.history.models import (
    CloseLeg,
    LogicalTrade,
    ReconstructionResult,
    UnresolvedTradeIdentifier,
)
from aurum.timeutils import parse_time

logger = logging.getLogger("aurum")

_CLASS_RANK = {FILL: 0, CLOSE: 1}


def _transaction_sort_key(txn: Mapping) -> tuple:
    """Ascending time; ties broken by transaction id, fills first, trade id."""
    event_class = classify(txn)
    trade_id = resolve_trade_id(txn, event_class) if event_class else None
    return (
        parse_time(txn.get("time")) or EPOCH,
        id_sort_key(txn.get("id")),
        _CLASS_RANK.get(event_class, 2),
        id_sort_key(trade_id),
    )


def _unrealized_lookup(open_trades: Iterable[TradeSummary]) -> dict[str, Optional[float]]:
    return {str(t.trade_id): t.unrealized_pnl for t in open_trades or ()}


def _apply_fill(ledger: TradeLedger, trade_id: str, txn: Mapping) -> None:
    opened = txn.get("tradeOpened")
    opened = opened if isinstance(opened, Mapping) else {}
    units = to_float(opened.get("units"))
    if units is None:
        units = to_float(txn.get("units")) or 0.0
    price = to_float(opened.get("price"))
    if price is None:
        price = to_float(txn.get("price"))
    ledger.get(trade_id).apply_fill(
        units=units,
        price=price,
        time=txn.get("time"),
        instrument=txn.get("instrument"),
    )


def _apply_close(ledger: TradeLedger, trade_id: str, txn: Mapping) -> None:
    ledger.get(trade_id).apply_close(
        units=to_float(first_present(txn, CLOSE_UNITS_ACCESSORS)),
        price=to_float(txn.get("price")),
        time=txn.get("time"),
        realized_pl=to_float(first_present(txn, REALIZED_PL_ACCESSORS)),
        instrument=txn.get("instrument"),
    )


def reconstruct_with_report(
    transactions: Iterable[Mapping],
    open_trades: Iterable[TradeSummary] = (),
) -> ReconstructionResult:
    """Fold *transactions* into logical trades and report skipped events.

    Args:
        transactions: Raw broker transaction dicts, in any order.
        open_trades: Snapshot of currently open trades, used only for
            unrealized P&L.

    Returns:
        A ``ReconstructionResult`` whose trades are sorted most recent
        activity first.
    """
    ledger = TradeLedger()
    skipped: list[UnresolvedTradeIdentifier] = []

    for txn in sorted(transactions or (), key=_transaction_sort_key):
        event_class = classify(txn)
        if event_class is None:
            continue
        trade_id = resolve_trade_id(txn, event_class)
        if trade_id is None:
            skipped.append(
                UnresolvedTradeIdentifier(
                    transaction_id=txn.get("id"),
                    type=txn.get("type"),
                    time=txn.get("time"),
                )
            )
            continue
        if event_class == FILL:
            _apply_fill(ledger, trade_id, txn)
        else:
            _apply_close(ledger, trade_id, txn)

    if skipped:
        logger.warning(
            "Skipped %d transaction(s) with no resolvable trade id", len(skipped),
        )
    trades = ledger.finish(_unrealized_lookup(open_trades))
    return ReconstructionResult(trades=trades, skipped=skipped)


def reconstruct(
    transactions: Iterable[Mapping],
    open_trades: Iterable[TradeSummary] = (),
) -> list[LogicalTrade]:
    """Return the logical trades rebuilt from raw *transactions*."""
    return reconstruct_with_report(transactions, open_trades).trades


# ── Summary path ─────────────────────────────────────────────────────────


def _closed_builder(summary: TradeSummary) -> TradeBuilder:
    initial = summary.initial_units or 0.0
    units = abs(initial) or None
    return TradeBuilder(
        trade_id=str(summary.trade_id),
        instrument=summary.instrument,
        side="BUY" if initial >= 0 else "SELL",
        opened_at=summary.open_time,
        closed_at=summary.close_time,
        open_price=summary.price,
        open_units=units,
        remaining_units=0.0,
        closes=[
            CloseLeg(
                units=units,
                price=summary.average_close_price,
                time=summary.close_time,
                realized_pl=summary.realized_pnl,
            )
        ],
        total_realized_pl=summary.realized_pnl or 0.0,
    )


def _open_builder(summary: TradeSummary) -> TradeBuilder:
    initial = summary.initial_units or 0.0
    current = summary.current_units or 0.0
    open_units = abs(initial or current) or None
    builder = TradeBuilder(
        trade_id=str(summary.trade_id),
        instrument=summary.instrument,
        side="BUY" if (current or initial) >= 0 else "SELL",
        opened_at=summary.open_time,
        open_price=summary.price,
        open_units=open_units,
        remaining_units=abs(current),
    )
    if (
        open_units
        and abs(current) < open_units
        and summary.realized_pnl is not None
    ):
        # Partially closed; the broker only reports the aggregate leg
        builder.closes.append(
            CloseLeg(
                units=open_units - abs(current),
                price=summary.average_close_price,
                time=None,
                realized_pl=summary.realized_pnl,
            )
        )
        builder.total_realized_pl = summary.realized_pnl
    return builder


def build_from_summaries(
    closed: Iterable[TradeSummary],
    open_trades: Iterable[TradeSummary] = (),
) -> list[LogicalTrade]:
    """Build logical trades from the broker's trade summaries.

    Closed summaries become closed trades with one aggregate close leg;
    open summaries become open trades carrying their unrealized P&L.
    An id present in both lists is treated as open.
    """
    ledger = TradeLedger()
    for summary in closed or ():
        ledger.replace(_closed_builder(summary))
    open_list = list(open_trades or ())
    for summary in open_list:
        ledger.replace(_open_builder(summary))
    return ledger.finish(_unrealized_lookup(open_list))


def build_history(
    open_trades: Iterable[TradeSummary] = (),
    closed: Optional[Iterable[TradeSummary]] = None,
    transactions: Optional[Iterable[Mapping]] = None,
) -> ReconstructionResult:
    """Build the trade ledger from the best input available.

    Summaries are preferred since they carry the broker's own aggregates;
    transaction folding is used when summaries are unavailable
    (``closed is None``) or produce no trades.
    """
    open_list = list(open_trades or ())
    if closed is not None:
        trades = build_from_summaries(closed, open_list)
        if trades:
            return ReconstructionResult(trades=trades)
    if transactions is None:
        return ReconstructionResult(trades=[])
    logger.info("Building trade history from transactions (no summaries)")
    return reconstruct_with_report(transactions, open_list)
